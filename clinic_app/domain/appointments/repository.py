"""Appointment repository - Database operations for appointments"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    ACTIVE_STATES,
    RELEASABLE_STATES,
    Appointment,
    AppointmentType,
    Patient,
    Practitioner,
)


class AppointmentRepository:
    """Repository for appointment database operations.

    Write methods only add/flush; callers own the transaction.
    """

    @staticmethod
    def get_appointment(db: Session, appointment_id: int, lock: bool = False) -> Optional[Appointment]:
        query = db.query(Appointment).filter(Appointment.id == appointment_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_appointment_with_relations(db: Session, appointment_id: int) -> Optional[Appointment]:
        """Appointment with practitioner, patient, type and invoice loaded explicitly"""
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.practitioner),
                joinedload(Appointment.patient),
                joinedload(Appointment.appointment_type),
                joinedload(Appointment.invoice),
            )
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_patient(db: Session, patient_id: int, lock: bool = False) -> Optional[Patient]:
        query = db.query(Patient).filter(Patient.id == patient_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_practitioner(db: Session, practitioner_id: int, lock: bool = False) -> Optional[Practitioner]:
        query = db.query(Practitioner).filter(Practitioner.id == practitioner_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_appointment_type(db: Session, appointment_type_id: int) -> Optional[AppointmentType]:
        return db.query(AppointmentType).filter(AppointmentType.id == appointment_type_id).first()

    @staticmethod
    def has_active_appointment(db: Session, patient_id: int) -> bool:
        """Whether the patient holds a paid or in-progress, non-deleted appointment"""
        appointment = (
            db.query(Appointment.id)
            .filter(
                Appointment.patient_id == patient_id,
                Appointment.state.in_(ACTIVE_STATES),
                Appointment.is_active.is_(True),
            )
            .first()
        )
        return appointment is not None

    @staticmethod
    def create_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def release_for_practitioners(db: Session, practitioner_ids: list[int]) -> int:
        """
        Soft-delete completed, unpaid and no-show appointments of the given
        practitioners. Paid and in-progress visits are never touched.
        """
        if not practitioner_ids:
            return 0
        return (
            db.query(Appointment)
            .filter(
                Appointment.practitioner_id.in_(practitioner_ids),
                Appointment.state.in_(RELEASABLE_STATES),
            )
            .update({Appointment.is_active: False}, synchronize_session=False)
        )
