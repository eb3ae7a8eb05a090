"""Payment order service - Prices an unpaid appointment and opens a gateway checkout"""

import logging

from sqlalchemy.orm import Session

from ...config import FRONTEND_URL, PAYMENT_CURRENCY, PUBLIC_BACKEND_URL
from ...exceptions import Conflict, NotFound
from ...models import STATE_UNPAID
from .gateway import MercadoPagoGateway
from .pricing import apply_pricing
from .repository import BillingRepository
from .schemas import CreateOrderRequest, CreateOrderResponse

logger = logging.getLogger(__name__)


class PaymentOrderService:
    def __init__(self, db: Session, gateway: MercadoPagoGateway):
        self.db = db
        self.gateway = gateway
        self.repo = BillingRepository()

    async def create_order(self, data: CreateOrderRequest) -> CreateOrderResponse:
        """
        Write the pricing snapshot, then create the checkout.

        The snapshot is committed before the gateway call so no row lock is
        held while waiting on the network.
        """
        try:
            appointment = self.repo.get_appointment_locked(self.db, data.appointmentId)
            if not appointment or not appointment.is_active:
                raise NotFound("Appointment not found")
            if not appointment.appointment_type:
                raise NotFound("Appointment type not found")
            if not appointment.patient:
                raise NotFound("Patient not found")
            if appointment.state != STATE_UNPAID:
                raise Conflict(f"Appointment is already {appointment.state}; only unpaid appointments can be paid")

            pricing = apply_pricing(appointment, appointment.appointment_type, appointment.patient)
            title = data.motive or appointment.appointment_type.name or appointment.appointment_type.specialty
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        appointment_id = data.appointmentId
        order = await self.gateway.create_order(
            title=title,
            unit_price=float(pricing["finalPrice"]),
            external_reference=str(appointment_id),
            success_url=f"{FRONTEND_URL}/payment-success?appointmentId={appointment_id}",
            failure_url=f"{FRONTEND_URL}/payment-failure?appointmentId={appointment_id}",
            pending_url=f"{FRONTEND_URL}/payment-pending?appointmentId={appointment_id}",
            notify_url=f"{PUBLIC_BACKEND_URL}/payments/webhook",
            currency=PAYMENT_CURRENCY,
        )

        return CreateOrderResponse(
            orderId=order.orderId,
            approvalUrl=order.approvalUrl,
            sandboxApprovalUrl=order.sandboxApprovalUrl,
            originalPrice=float(pricing["originalPrice"]),
            finalPrice=float(pricing["finalPrice"]),
            discountAmount=float(pricing["discountAmount"]),
            discountPercent=pricing["discountPercent"],
            insuranceTier=pricing["tier"],
            requiresInsuranceVerification=pricing["requiresVerification"],
        )
