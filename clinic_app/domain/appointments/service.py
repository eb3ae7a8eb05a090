"""Appointment service - Booking admission, cascades and insurance verification"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import Conflict, InvalidArgument, NotFound
from ...models import ACTIVE_STATES, STATE_UNPAID, Appointment
from ...shared.time_utils import time_to_minutes
from ..scheduling.repository import ScheduleRepository
from ..scheduling.service import ScheduleService
from .repository import AppointmentRepository
from .schemas import InsuranceVerificationRequest, PatientBookingRequest

logger = logging.getLogger(__name__)

ACTIVE_APPOINTMENT_MESSAGE = (
    "Patient already has an active appointment. "
    "It must be attended and finished before booking another one."
)

SLOT_TAKEN_MESSAGE = "The selected time is no longer available with this practitioner."

BOOKING_FIELDS = {
    "patientId": "patient",
    "practitionerId": "practitioner",
    "appointmentDate": "date",
    "startTime": "start time",
    "endTime": "end time",
    "appointmentTypeId": "appointment type",
    "specialty": "specialty",
}


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment_with_relations(self.db, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment

    def has_active_appointment(self, patient_id: int) -> bool:
        return self.repo.has_active_appointment(self.db, patient_id)

    def create_patient_booking(self, data: PatientBookingRequest) -> int:
        """
        Create an unpaid appointment for a patient.

        The patient and practitioner rows are locked for the duration of the
        check-then-insert so concurrent submissions for the same patient or
        the same practitioner are serialized.

        Returns:
            The new appointment id

        Raises:
            InvalidArgument: If a field is missing or the time range is invalid
            Conflict: If the patient already holds an active appointment or the
                range overlaps a paid booking of the practitioner
        """
        missing = [label for field, label in BOOKING_FIELDS.items() if getattr(data, field) in (None, "")]
        if missing:
            raise InvalidArgument(f"All fields are required (missing: {', '.join(missing)})")

        if time_to_minutes(data.startTime) >= time_to_minutes(data.endTime):
            raise InvalidArgument("Start time must be before end time")

        try:
            patient = self.repo.get_patient(self.db, data.patientId, lock=True)
            if not patient:
                raise NotFound("Patient not found")

            practitioner = self.repo.get_practitioner(self.db, data.practitionerId, lock=True)
            if not practitioner or not practitioner.is_active:
                raise NotFound("Practitioner not found")

            appointment_type = self.repo.get_appointment_type(self.db, data.appointmentTypeId)
            if not appointment_type or not appointment_type.is_active:
                raise NotFound("Appointment type not found")

            if self.repo.has_active_appointment(self.db, patient.id):
                logger.warning(f"⚠️ Patient {patient.id} already has an active appointment")
                raise Conflict(ACTIVE_APPOINTMENT_MESSAGE)

            taken = ScheduleRepository.find_overlapping_bookings(
                self.db, practitioner.id, data.appointmentDate, data.startTime, data.endTime
            )
            if taken:
                logger.warning(
                    f"⚠️ Practitioner {practitioner.id} is already booked on {data.appointmentDate} "
                    f"{data.startTime}-{data.endTime} (appointment {taken[0].id})"
                )
                raise Conflict(SLOT_TAKEN_MESSAGE)

            appointment = self.repo.create_appointment(
                self.db,
                patient_id=patient.id,
                practitioner_id=practitioner.id,
                appointment_type_id=appointment_type.id,
                appointment_date=data.appointmentDate,
                start_time=data.startTime,
                end_time=data.endTime,
                state=STATE_UNPAID,
                motive=data.specialty,
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Booking rejected by store constraint for patient {data.patientId}: {e}")
            raise Conflict(ACTIVE_APPOINTMENT_MESSAGE) from e
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"✅ Appointment {appointment.id} booked for patient {data.patientId} with practitioner "
            f"{data.practitionerId} on {data.appointmentDate} {data.startTime}-{data.endTime}"
        )
        return appointment.id

    def release_practitioners(self, practitioner_ids: list[int], commit: bool = True) -> dict:
        """
        Deactivation cascade: soft-delete the practitioners' finished or unpaid
        appointments and drop their schedule templates. Paid and in-progress
        visits stay untouched.
        """
        schedules = ScheduleService(self.db)
        released = self.repo.release_for_practitioners(self.db, practitioner_ids)
        removed_templates = 0
        for practitioner_id in practitioner_ids:
            removed_templates += schedules.delete_templates_for_practitioner(practitioner_id, commit=False)

        if commit:
            self.db.commit()

        logger.info(
            f"🧹 Cascade for practitioner(s) {practitioner_ids}: {released} appointment(s) released, "
            f"{removed_templates} template(s) removed"
        )
        return {"releasedAppointments": released, "removedTemplates": removed_templates}

    def verify_insurance(self, appointment_id: int, data: InsuranceVerificationRequest) -> Appointment:
        """
        Record the in-person insurance check.

        Documents presented: the appointment and the patient are marked as
        verified, so later bookings skip the check. Otherwise the price
        difference is recorded as paid in cash.
        """
        try:
            appointment = self.repo.get_appointment(self.db, appointment_id, lock=True)
            if not appointment or not appointment.is_active:
                raise NotFound("Appointment not found")
            if appointment.state not in ACTIVE_STATES:
                raise Conflict("Insurance can only be verified for paid or in-progress appointments")
            if not appointment.requires_insurance_verification:
                raise Conflict("Appointment does not require insurance verification")
            if appointment.insurance_verified:
                raise Conflict("Insurance already verified for this appointment")

            if data.documentsPresented:
                appointment.insurance_verified = True
                appointment.cash_difference_paid = 0
                appointment.patient.insurance_verified = True
            else:
                difference = (appointment.original_price or 0) - (appointment.final_price or 0)
                appointment.cash_difference_paid = max(difference, 0)
            appointment.verification_notes = data.notes
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if data.documentsPresented:
            logger.info(f"🪪 Insurance verified in person for appointment {appointment_id}")
        else:
            logger.info(
                f"💵 Appointment {appointment_id}: no insurance documents, "
                f"cash difference {appointment.cash_difference_paid} recorded"
            )
        return self.get_appointment(appointment_id)
