"""
Settlement reconciliation

Turns a gateway payment notification into exactly one invoice and a paid
appointment:

1. Poll the gateway for the payment, retrying with exponential backoff while
   it reports "not found" (notifications can arrive before the payment is
   queryable).
2. Map the payment's external reference back to an appointment.
3. In a single transaction, check the amount and that the practitioner is
   still free at that time, then create the invoice and mark the appointment
   paid.
4. Best-effort confirmation email after commit.

Nothing here raises to the webhook caller; the gateway redelivers on non-200
responses and processing is idempotent, so failures are logged and dropped.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import (
    AmountMismatch,
    ClinicError,
    Conflict,
    InvalidArgument,
    NotFound,
    PaymentNotFound,
    UpstreamUnavailable,
)
from ...models import STATE_PAID, STATE_UNPAID, TIER_SELF_PAY, Appointment
from ..scheduling.repository import ScheduleRepository
from .gateway import GatewayPayment, MercadoPagoGateway
from .pricing import expected_settlement_amount, to_money
from .repository import BillingRepository

logger = logging.getLogger(__name__)

PAYMENT_APPROVED = "approved"

OUTCOME_SETTLED = "settled"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"
OUTCOME_FAILED = "failed"

Notifier = Callable[[str, dict], Awaitable[object]]


def parse_external_reference(reference: Optional[str]) -> int:
    """Appointment id echoed back by the gateway"""
    try:
        return int(str(reference).strip())
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid external reference: {reference!r}") from None


def build_confirmation_details(appointment: Appointment) -> dict:
    appointment_type = appointment.appointment_type
    return {
        "patientName": appointment.patient.display_name,
        "date": appointment.appointment_date.strftime("%A, %B %d, %Y"),
        "startTime": appointment.start_time,
        "practitionerName": appointment.practitioner.display_name,
        "specialty": appointment_type.specialty,
        "insuranceTier": appointment.insurance_tier_applied or TIER_SELF_PAY,
        "originalPrice": appointment.original_price if appointment.original_price is not None else appointment_type.price,
        "finalPrice": appointment.final_price if appointment.final_price is not None else appointment_type.price,
        "discountAmount": appointment.discount_amount or 0,
        "requiresVerification": bool(appointment.requires_insurance_verification),
    }


class SettlementReconciler:
    """
    Built once at startup and shared by webhook deliveries. Each settlement
    opens its own session from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        gateway: MercadoPagoGateway,
        notifier: Optional[Notifier] = None,
        max_attempts: int = 10,
        base_delay: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.notifier = notifier
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep
        self.repo = BillingRepository()

    async def handle_notification(self, notification_type: Optional[str], payment_id: Optional[Union[int, str]]) -> str:
        """Entry point for webhook deliveries. Never raises."""
        if notification_type != "payment":
            logger.info(f"ℹ️ Ignoring notification of type {notification_type}")
            return OUTCOME_IGNORED
        if payment_id in (None, ""):
            logger.warning("⚠️ Payment notification without data.id")
            return OUTCOME_IGNORED

        try:
            return await self.reconcile(payment_id)
        except AmountMismatch as e:
            logger.error(f"❌ Settlement aborted for payment {payment_id}: {e.message}")
        except UpstreamUnavailable as e:
            logger.error(f"❌ Payment {payment_id} could not be fetched, appointment stays unpaid: {e.message}")
        except ClinicError as e:
            logger.error(f"❌ Reconciliation of payment {payment_id} failed ({type(e).__name__}): {e.message}")
        except Exception as e:
            logger.exception(f"❌ Unexpected error reconciling payment {payment_id}: {e}")
        return OUTCOME_FAILED

    async def fetch_payment_with_retry(self, payment_id: Union[int, str]) -> GatewayPayment:
        """
        Poll the gateway until the payment exists.

        Waits base_delay * 2**attempt after every "not found", the last one
        included, so the default policy gives the gateway about 85 minutes.
        Only PaymentNotFound is retried; any other error propagates immediately.
        """
        for attempt in range(self.max_attempts):
            try:
                payment = await self.gateway.get_payment(payment_id)
                logger.info(
                    f"✅ Payment {payment_id} fetched on attempt {attempt + 1}: "
                    f"status={payment.status}, reference={payment.external_reference}"
                )
                return payment
            except PaymentNotFound:
                delay = self.base_delay * (2**attempt)
                logger.warning(
                    f"⌛ Payment {payment_id} not found yet (attempt {attempt + 1}/{self.max_attempts}), "
                    f"waiting {delay}s"
                )
                await self.sleep(delay)

        raise UpstreamUnavailable(f"Payment {payment_id} not found after {self.max_attempts} attempts")

    async def reconcile(self, payment_id: Union[int, str]) -> str:
        payment = await self.fetch_payment_with_retry(payment_id)
        appointment_id = parse_external_reference(payment.external_reference)

        if payment.status != PAYMENT_APPROVED:
            logger.info(f"ℹ️ Payment {payment_id} for appointment {appointment_id} is {payment.status}, nothing to do")
            return OUTCOME_IGNORED

        outcome, details, email = self.settle(appointment_id, payment)
        if outcome == OUTCOME_SETTLED:
            await self._notify(appointment_id, email, details)
        return outcome

    def settle(self, appointment_id: int, payment: GatewayPayment) -> tuple[str, Optional[dict], Optional[str]]:
        """
        Atomically create the invoice and mark the appointment paid.

        Returns:
            (outcome, confirmation details, patient email)

        Raises:
            NotFound: Unknown appointment or missing associations
            AmountMismatch: Reported amount differs from the stored price
            Conflict: The practitioner is already paid for an overlapping time
        """
        db = self.session_factory()
        try:
            self.repo.lock_practitioner_of(db, appointment_id)
            appointment = self.repo.get_appointment_locked(db, appointment_id)
            if not appointment:
                raise NotFound(f"Appointment {appointment_id} not found")
            if not appointment.appointment_type or not appointment.patient or not appointment.practitioner:
                raise NotFound(f"Appointment {appointment_id} is missing its type, patient or practitioner")

            if appointment.state != STATE_UNPAID or self.repo.get_invoice_for_appointment(db, appointment_id):
                logger.info(
                    f"🔁 Duplicate delivery for appointment {appointment_id} (state {appointment.state}), skipping"
                )
                db.rollback()
                return OUTCOME_DUPLICATE, None, None

            expected = expected_settlement_amount(appointment)
            if payment.transaction_amount is None or to_money(payment.transaction_amount) != expected:
                raise AmountMismatch(
                    f"Amount mismatch for appointment {appointment_id}. "
                    f"Expected: {expected}, received: {payment.transaction_amount}"
                )

            taken = ScheduleRepository.find_overlapping_bookings(
                db,
                appointment.practitioner_id,
                appointment.appointment_date,
                appointment.start_time,
                appointment.end_time,
                exclude_id=appointment.id,
            )
            if taken:
                logger.warning(
                    f"⚠️ Payment {payment.id} for appointment {appointment_id} not applied: practitioner "
                    f"{appointment.practitioner_id} is already booked by appointment {taken[0].id} at "
                    f"{appointment.appointment_date} {appointment.start_time}-{appointment.end_time}"
                )
                raise Conflict(
                    f"Appointment {appointment_id} cannot be marked paid: "
                    f"its time overlaps paid appointment {taken[0].id}"
                )

            invoice = self.repo.create_invoice(
                db,
                appointment_id=appointment.id,
                payment_id=str(payment.id),
                payment_method="mercado_pago",
                transaction_amount=float(expected),
                paid_amount=float(payment.transaction_amount),
                payment_status=payment.status,
                status="paid",
                paid_at=datetime.utcnow(),
            )
            appointment.state = STATE_PAID
            invoice_id = invoice.id
            details = build_confirmation_details(appointment)
            email = appointment.patient.email
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if self.repo.get_invoice_for_appointment(db, appointment_id):
                logger.info(f"🔁 Appointment {appointment_id} was settled concurrently, skipping")
                return OUTCOME_DUPLICATE, None, None
            # Patient already holds another paid appointment
            raise Conflict(f"Appointment {appointment_id} cannot be marked paid: {e.orig}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"✅ Payment {payment.id} settled appointment {appointment_id}, invoice {invoice_id}")
        return OUTCOME_SETTLED, details, email

    async def _notify(self, appointment_id: int, email: Optional[str], details: dict) -> None:
        if not email:
            logger.warning(f"⚠️ No confirmation sent for appointment {appointment_id}: patient has no email")
            return
        if self.notifier is None:
            return
        try:
            await self.notifier(email, details)
            logger.info(f"📧 Confirmation sent for appointment {appointment_id}")
        except Exception as e:
            logger.error(f"❌ Confirmation email for appointment {appointment_id} failed (settlement kept): {e}")
