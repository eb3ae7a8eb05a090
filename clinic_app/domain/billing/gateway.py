"""
MercadoPago Gateway
Creates checkout preferences and fetches authoritative payment status
"""

import logging
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict

from ...exceptions import PaymentNotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)


class GatewayOrder(BaseModel):
    orderId: str
    approvalUrl: Optional[str] = None
    sandboxApprovalUrl: Optional[str] = None


class GatewayPayment(BaseModel):
    """Subset of the gateway's payment resource the reconciler relies on"""

    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]
    status: str
    transaction_amount: Optional[float] = None
    external_reference: Optional[str] = None


class MercadoPagoGateway:
    """
    Thin async client over the MercadoPago REST API.

    A ``transport`` can be passed to route requests somewhere other than the
    network (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        access_token: Optional[str],
        api_url: str = "https://api.mercadopago.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict:
        if not self.access_token:
            logger.error("❌ MERCADOPAGO_ACCESS_TOKEN not configured")
            raise UpstreamUnavailable("Payment service is not configured")
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.api_url, timeout=self.timeout, transport=self.transport)

    async def create_order(
        self,
        title: str,
        unit_price: float,
        external_reference: str,
        success_url: str,
        failure_url: str,
        pending_url: str,
        notify_url: str,
        currency: str = "CLP",
    ) -> GatewayOrder:
        """Create a single-item checkout preference"""
        payload = {
            "items": [
                {
                    "title": title,
                    "unit_price": unit_price,
                    "currency_id": currency,
                    "quantity": 1,
                }
            ],
            "external_reference": external_reference,
            "back_urls": {
                "success": success_url,
                "failure": failure_url,
                "pending": pending_url,
            },
            "notification_url": notify_url,
            "auto_return": "approved",
        }

        try:
            async with self._client() as http_client:
                response = await http_client.post("/checkout/preferences", json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"❌ Payment order request failed: {e}")
            raise UpstreamUnavailable("Could not reach the payment service") from e

        if response.status_code not in (200, 201):
            logger.error(f"❌ Failed to create payment order: {response.status_code} {response.text}")
            raise UpstreamUnavailable("Could not generate the payment link")

        data = response.json()
        logger.info(f"✅ Payment order {data.get('id')} created for reference {external_reference}")
        return GatewayOrder(
            orderId=str(data["id"]),
            approvalUrl=data.get("init_point"),
            sandboxApprovalUrl=data.get("sandbox_init_point"),
        )

    async def get_payment(self, payment_id: Union[int, str]) -> GatewayPayment:
        """
        Fetch a payment by id.

        Raises:
            PaymentNotFound: The gateway does not know the payment (yet)
            UpstreamUnavailable: Any other failure
        """
        try:
            async with self._client() as http_client:
                response = await http_client.get(f"/v1/payments/{payment_id}", headers=self._headers())
        except httpx.HTTPError as e:
            logger.error(f"❌ Payment lookup for {payment_id} failed: {e}")
            raise UpstreamUnavailable(f"Could not reach the payment service: {e}") from e

        if response.status_code == 404:
            raise PaymentNotFound(f"Payment {payment_id} not found")
        if response.status_code != 200:
            logger.error(f"❌ Payment lookup for {payment_id} returned {response.status_code}: {response.text}")
            raise UpstreamUnavailable(f"Payment service returned {response.status_code}")

        return GatewayPayment.model_validate(response.json())
