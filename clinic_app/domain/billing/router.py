"""Billing router - Payment order creation and gateway webhook"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...config import MERCADOPAGO_WEBHOOK_SECRET
from ...database import get_db
from ...webhook_security import verify_mercadopago_signature
from .gateway import MercadoPagoGateway
from .reconciliation_service import SettlementReconciler
from .schemas import CreateOrderRequest, CreateOrderResponse, WebhookNotification
from .service import PaymentOrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_gateway(request: Request) -> MercadoPagoGateway:
    """Gateway client built at startup"""
    return request.app.state.payment_gateway


def get_reconciler(request: Request) -> SettlementReconciler:
    """Reconciler built at startup"""
    return request.app.state.reconciler


def get_payment_order_service(
    db: Session = Depends(get_db),
    gateway: MercadoPagoGateway = Depends(get_gateway),
) -> PaymentOrderService:
    """Dependency injection for PaymentOrderService"""
    return PaymentOrderService(db, gateway)


@router.post("/create-order", response_model=CreateOrderResponse)
async def create_order(
    data: CreateOrderRequest,
    service: PaymentOrderService = Depends(get_payment_order_service),
):
    """Price the appointment for the patient's insurance tier and return the checkout link"""
    return await service.create_order(data)


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    reconciler: SettlementReconciler = Depends(get_reconciler),
):
    """
    Gateway notification endpoint.

    Always acknowledges with 200: the gateway redelivers on any other status
    and reconciliation is idempotent, so failures are only logged. The actual
    work runs after the response is sent.
    """
    try:
        body = await request.json()
        notification = WebhookNotification.model_validate(body)
    except (ValueError, ValidationError) as e:
        logger.error(f"❌ Invalid webhook payload: {e}")
        return {"status": "ok"}

    payment_id = notification.data.id if notification.data else None
    # Some deliveries carry data.id only in the query string
    if payment_id is None:
        payment_id = request.query_params.get("data.id")

    logger.info(f"📥 Received payment webhook: type={notification.type} action={notification.action} id={payment_id}")

    if not verify_mercadopago_signature(
        MERCADOPAGO_WEBHOOK_SECRET,
        request.headers.get("x-signature", ""),
        request.headers.get("x-request-id", ""),
        str(payment_id) if payment_id is not None else None,
    ):
        logger.error("❌ Invalid webhook signature, notification dropped")
        return {"status": "ok"}

    background_tasks.add_task(reconciler.handle_notification, notification.type, payment_id)
    return {"status": "ok"}
