"""
Availability service - Bookable slots for a specialty on a calendar date

Slots come from the weekly templates of every active practitioner of the
specialty: each template is cut into back-to-back slots of the appointment
type's duration, skipping slots that touch the lunch break, slots already
past (when the date is today) and slots overlapping an existing booking.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from ...config import CLINIC_TIMEZONE
from ...exceptions import InvalidArgument, NotFound
from ...shared.time_utils import (
    intervals_overlap,
    minute_of_day,
    minutes_to_time,
    time_to_minutes,
    weekday_name,
    weekday_of,
)
from .repository import ScheduleRepository

logger = logging.getLogger(__name__)


def clinic_now() -> datetime:
    """Current time in the clinic's timezone"""
    try:
        return datetime.now(ZoneInfo(CLINIC_TIMEZONE))
    except ZoneInfoNotFoundError:
        logger.warning(f"⚠️ Unknown timezone '{CLINIC_TIMEZONE}', using server local time")
        return datetime.now()


def generate_candidate_slots(
    start: int,
    end: int,
    duration: int,
    break_start: Optional[int] = None,
    break_end: Optional[int] = None,
) -> list[tuple[int, int]]:
    """
    Walk [start, end) in steps of ``duration`` minutes.

    A slot intersecting [break_start, break_end) is dropped; a trailing
    remainder shorter than ``duration`` is discarded.
    """
    if duration <= 0:
        raise InvalidArgument("Appointment duration must be positive")

    has_break = break_start is not None and break_end is not None
    slots = []
    cursor = start
    while cursor + duration <= end:
        slot_end = cursor + duration
        if not (has_break and intervals_overlap(cursor, slot_end, break_start, break_end)):
            slots.append((cursor, slot_end))
        cursor += duration
    return slots


class AvailabilityService:
    """Service layer for slot availability"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = clinic_now):
        self.db = db
        self.repo = ScheduleRepository()
        self.clock = clock

    def find_available_slots(self, specialty: str, day: date) -> list[dict]:
        """
        Available slots for ``specialty`` on ``day``, across all its practitioners.

        Raises:
            NotFound: If no active appointment type exists for the specialty
        """
        appointment_type = self.repo.get_active_appointment_type(self.db, specialty)
        if not appointment_type:
            raise NotFound(f"No active appointment type for specialty '{specialty}'")

        weekday = weekday_of(day)
        logger.info(f"🔎 Availability for {specialty} on {day.isoformat()} ({weekday_name(weekday)})")

        practitioners = self.repo.get_active_practitioners(self.db, specialty)
        if not practitioners:
            return []
        by_id = {p.id: p for p in practitioners}

        templates = self.repo.get_templates_for_weekday(self.db, list(by_id), weekday)
        if not templates:
            logger.info(f"ℹ️ No schedules for {specialty} on {weekday_name(weekday)}")
            return []

        now = self.clock()
        earliest = minute_of_day(now) if day == now.date() else None

        booked_cache: dict[int, list[tuple[int, int]]] = {}
        slots = []
        for template in templates:
            practitioner = by_id[template.practitioner_id]
            candidates = generate_candidate_slots(
                time_to_minutes(template.start_time),
                time_to_minutes(template.end_time),
                appointment_type.duration_minutes,
                time_to_minutes(template.break_start) if template.break_start else None,
                time_to_minutes(template.break_end) if template.break_end else None,
            )

            if earliest is not None:
                candidates = [(s, e) for s, e in candidates if s >= earliest]

            if practitioner.id not in booked_cache:
                booked_cache[practitioner.id] = self._booked_intervals(practitioner.id, day)
            booked = booked_cache[practitioner.id]

            for slot_start, slot_end in candidates:
                if any(intervals_overlap(slot_start, slot_end, b_start, b_end) for b_start, b_end in booked):
                    continue
                slots.append(
                    {
                        "practitionerId": practitioner.id,
                        "practitionerName": practitioner.display_name,
                        "date": day.isoformat(),
                        "start": minutes_to_time(slot_start),
                        "end": minutes_to_time(slot_end),
                        "price": appointment_type.price,
                        "appointmentTypeId": appointment_type.id,
                        "specialty": appointment_type.specialty,
                    }
                )

        slots.sort(key=lambda s: (s["start"], s["practitionerId"]))
        logger.info(f"✅ {len(slots)} slot(s) available for {specialty} on {day.isoformat()}")
        return slots

    def _booked_intervals(self, practitioner_id: int, day: date) -> list[tuple[int, int]]:
        appointments = self.repo.get_blocking_appointments(self.db, practitioner_id, day)
        return [(time_to_minutes(a.start_time), time_to_minutes(a.end_time)) for a in appointments]
