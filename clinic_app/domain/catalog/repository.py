"""Catalog repository - Practitioner and appointment type lookups used by cascades"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import AppointmentType, Practitioner


class CatalogRepository:
    @staticmethod
    def get_practitioner(db: Session, practitioner_id: int, lock: bool = False) -> Optional[Practitioner]:
        query = db.query(Practitioner).filter(Practitioner.id == practitioner_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_appointment_type(db: Session, appointment_type_id: int, lock: bool = False) -> Optional[AppointmentType]:
        query = db.query(AppointmentType).filter(AppointmentType.id == appointment_type_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_active_practitioners_by_specialty(db: Session, specialty: str) -> list[Practitioner]:
        return (
            db.query(Practitioner)
            .filter(Practitioner.specialty == specialty, Practitioner.is_active.is_(True))
            .with_for_update()
            .all()
        )
