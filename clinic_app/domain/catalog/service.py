"""Catalog service - Deactivation of practitioners and appointment types"""

import logging

from sqlalchemy.orm import Session

from ...exceptions import NotFound
from ..appointments.service import AppointmentService
from .repository import CatalogRepository

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Soft-deletes catalog entries and runs the appointment cascade in the same
    transaction: finished or unpaid appointments are released and schedule
    templates removed. Paid and in-progress visits are kept.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CatalogRepository()
        self.appointments = AppointmentService(db)

    def deactivate_practitioner(self, practitioner_id: int) -> dict:
        try:
            practitioner = self.repo.get_practitioner(self.db, practitioner_id, lock=True)
            if not practitioner:
                raise NotFound("Practitioner not found")

            practitioner.is_active = False
            result = self.appointments.release_practitioners([practitioner.id], commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"🗑️ Practitioner {practitioner_id} deactivated")
        return {"practitionerIds": [practitioner_id], **result}

    def deactivate_appointment_type(self, appointment_type_id: int) -> dict:
        """Deactivate a type and every active practitioner of its specialty"""
        try:
            appointment_type = self.repo.get_appointment_type(self.db, appointment_type_id, lock=True)
            if not appointment_type:
                raise NotFound("Appointment type not found")

            appointment_type.is_active = False
            practitioners = self.repo.get_active_practitioners_by_specialty(self.db, appointment_type.specialty)
            practitioner_ids = [p.id for p in practitioners]
            for practitioner in practitioners:
                practitioner.is_active = False

            result = self.appointments.release_practitioners(practitioner_ids, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"🗑️ Appointment type {appointment_type_id} ({appointment_type.specialty}) deactivated "
            f"with {len(practitioner_ids)} practitioner(s)"
        )
        return {"practitionerIds": practitioner_ids, **result}
