"""Billing repository - Settlement and invoice database operations"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Appointment, Practitioner
from ...models_invoice import Invoice


class BillingRepository:
    @staticmethod
    def lock_practitioner_of(db: Session, appointment_id: int) -> Optional[int]:
        """
        Lock the practitioner row of an appointment and return its id.

        Taken before the appointment lock, in the same order as the deactivation
        cascade (practitioner, then its appointments).
        """
        practitioner_id = db.query(Appointment.practitioner_id).filter(Appointment.id == appointment_id).scalar()
        if practitioner_id is None:
            return None
        db.query(Practitioner.id).filter(Practitioner.id == practitioner_id).with_for_update().first()
        return practitioner_id

    @staticmethod
    def get_appointment_locked(db: Session, appointment_id: int) -> Optional[Appointment]:
        """
        Appointment row locked FOR UPDATE, with its associations loaded explicitly.

        selectinload issues separate SELECTs, so the lock only applies to the
        appointment row.
        """
        return (
            db.query(Appointment)
            .options(
                selectinload(Appointment.patient),
                selectinload(Appointment.practitioner),
                selectinload(Appointment.appointment_type),
            )
            .filter(Appointment.id == appointment_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def get_invoice_for_appointment(db: Session, appointment_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.appointment_id == appointment_id).first()

    @staticmethod
    def create_invoice(db: Session, **invoice_data) -> Invoice:
        invoice = Invoice(**invoice_data)
        db.add(invoice)
        db.flush()
        return invoice
