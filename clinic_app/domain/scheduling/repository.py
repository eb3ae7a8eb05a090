"""Scheduling repository - Database operations for schedule templates and availability"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    NON_BLOCKING_STATES,
    Appointment,
    AppointmentType,
    Practitioner,
    ScheduleTemplate,
)
from ...shared.time_utils import intervals_overlap, time_to_minutes


class ScheduleRepository:
    """Repository for schedule template database operations.

    Write methods only add/flush; callers own the transaction.
    """

    @staticmethod
    def list_templates(db: Session, skip: int = 0, limit: int = 20) -> tuple[int, list[ScheduleTemplate]]:
        """Templates of active practitioners, paginated"""
        query = (
            db.query(ScheduleTemplate)
            .join(Practitioner, ScheduleTemplate.practitioner_id == Practitioner.id)
            .filter(Practitioner.is_active.is_(True))
        )
        total = query.count()
        templates = (
            query.options(joinedload(ScheduleTemplate.practitioner))
            .order_by(ScheduleTemplate.practitioner_id, ScheduleTemplate.weekday, ScheduleTemplate.start_time)
            .offset(skip)
            .limit(limit)
            .all()
        )
        return total, templates

    @staticmethod
    def get_template(db: Session, template_id: int) -> Optional[ScheduleTemplate]:
        return db.query(ScheduleTemplate).filter(ScheduleTemplate.id == template_id).first()

    @staticmethod
    def get_practitioner(db: Session, practitioner_id: int, lock: bool = False) -> Optional[Practitioner]:
        """Get a practitioner; ``lock`` takes a row lock for the rest of the transaction"""
        query = db.query(Practitioner).filter(Practitioner.id == practitioner_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def find_overlapping(
        db: Session,
        practitioner_id: int,
        weekday: int,
        start_time: str,
        end_time: str,
        exclude_id: Optional[int] = None,
    ) -> list[ScheduleTemplate]:
        """
        Templates of the same practitioner and weekday whose [start, end) overlaps
        the given window. Zero-padded HH:MM strings compare in clock order.
        """
        query = db.query(ScheduleTemplate).filter(
            ScheduleTemplate.practitioner_id == practitioner_id,
            ScheduleTemplate.weekday == weekday,
            ScheduleTemplate.start_time < end_time,
            ScheduleTemplate.end_time > start_time,
        )
        if exclude_id is not None:
            query = query.filter(ScheduleTemplate.id != exclude_id)
        return query.all()

    @staticmethod
    def create_template(db: Session, **template_data) -> ScheduleTemplate:
        template = ScheduleTemplate(**template_data)
        db.add(template)
        db.flush()
        return template

    @staticmethod
    def update_template(db: Session, template: ScheduleTemplate, **updates) -> ScheduleTemplate:
        for key, value in updates.items():
            if hasattr(template, key):
                setattr(template, key, value)
        db.flush()
        return template

    @staticmethod
    def delete_template(db: Session, template: ScheduleTemplate) -> None:
        db.delete(template)
        db.flush()

    @staticmethod
    def delete_templates_for_practitioner(db: Session, practitioner_id: int) -> int:
        """Bulk delete; returns the number of removed templates"""
        return (
            db.query(ScheduleTemplate)
            .filter(ScheduleTemplate.practitioner_id == practitioner_id)
            .delete(synchronize_session=False)
        )

    # Availability queries
    @staticmethod
    def get_active_appointment_type(db: Session, specialty: str) -> Optional[AppointmentType]:
        return (
            db.query(AppointmentType)
            .filter(AppointmentType.specialty == specialty, AppointmentType.is_active.is_(True))
            .first()
        )

    @staticmethod
    def get_active_practitioners(db: Session, specialty: str) -> list[Practitioner]:
        return (
            db.query(Practitioner)
            .filter(Practitioner.specialty == specialty, Practitioner.is_active.is_(True))
            .order_by(Practitioner.id)
            .all()
        )

    @staticmethod
    def get_templates_for_weekday(
        db: Session, practitioner_ids: list[int], weekday: int
    ) -> list[ScheduleTemplate]:
        if not practitioner_ids:
            return []
        return (
            db.query(ScheduleTemplate)
            .filter(
                ScheduleTemplate.practitioner_id.in_(practitioner_ids),
                ScheduleTemplate.weekday == weekday,
            )
            .order_by(ScheduleTemplate.practitioner_id, ScheduleTemplate.start_time)
            .all()
        )

    @staticmethod
    def get_blocking_appointments(db: Session, practitioner_id: int, day: date) -> list[Appointment]:
        """Active bookings that occupy the practitioner's time on a date"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.practitioner_id == practitioner_id,
                Appointment.appointment_date == day,
                Appointment.state.notin_(NON_BLOCKING_STATES),
                Appointment.is_active.is_(True),
            )
            .all()
        )

    @staticmethod
    def find_overlapping_bookings(
        db: Session,
        practitioner_id: int,
        day: date,
        start_time: str,
        end_time: str,
        exclude_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Blocking bookings of the practitioner on a date whose [start, end) overlaps the range"""
        start, end = time_to_minutes(start_time), time_to_minutes(end_time)
        return [
            appointment
            for appointment in ScheduleRepository.get_blocking_appointments(db, practitioner_id, day)
            if appointment.id != exclude_id
            and intervals_overlap(
                start, end, time_to_minutes(appointment.start_time), time_to_minutes(appointment.end_time)
            )
        ]
