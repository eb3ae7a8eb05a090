"""Schedule service - Business logic for weekly schedule templates"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import InvalidArgument, NotFound, OverlapConflict
from ...models import ScheduleTemplate
from ...shared.time_utils import time_to_minutes, weekday_name
from .repository import ScheduleRepository
from .schemas import ScheduleTemplateCreate, ScheduleTemplateUpdate

logger = logging.getLogger(__name__)


def validate_window(
    start_time: str,
    end_time: str,
    break_start: Optional[str] = None,
    break_end: Optional[str] = None,
) -> None:
    """
    Check a template window: start before end, and an optional lunch break
    lying strictly inside it.

    Raises:
        InvalidArgument: If the window or the break is inconsistent
    """
    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time)
    if start >= end:
        raise InvalidArgument("Start time must be before end time")

    if (break_start is None) != (break_end is None):
        raise InvalidArgument("Lunch break needs both a start and an end")

    if break_start is not None:
        lunch_start = time_to_minutes(break_start)
        lunch_end = time_to_minutes(break_end)
        if lunch_start >= lunch_end:
            raise InvalidArgument("Lunch break start must be before its end")
        if not (start < lunch_start and lunch_end < end):
            raise InvalidArgument("Lunch break must lie strictly within the schedule window")


class ScheduleService:
    """Service layer for schedule template business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ScheduleRepository()

    def list_templates(self, skip: int = 0, limit: int = 20) -> tuple[int, list[ScheduleTemplate]]:
        return self.repo.list_templates(self.db, skip, limit)

    def get_template(self, template_id: int) -> ScheduleTemplate:
        template = self.repo.get_template(self.db, template_id)
        if not template:
            raise NotFound("Schedule template not found")
        return template

    def create_template(self, data: ScheduleTemplateCreate) -> ScheduleTemplate:
        """Create a template after the window and overlap checks"""
        try:
            self._lock_practitioner(data.practitionerId)
            validate_window(data.startTime, data.endTime, data.breakStart, data.breakEnd)
            self._ensure_no_overlap(data.practitionerId, data.weekday, data.startTime, data.endTime)

            template = self.repo.create_template(
                self.db,
                practitioner_id=data.practitionerId,
                weekday=data.weekday,
                start_time=data.startTime,
                end_time=data.endTime,
                break_start=data.breakStart,
                break_end=data.breakEnd,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(template)
        logger.info(
            f"✅ Schedule template {template.id} created for practitioner {template.practitioner_id} "
            f"on {weekday_name(template.weekday)} {template.start_time}-{template.end_time}"
        )
        return template

    def update_template(self, template_id: int, data: ScheduleTemplateUpdate) -> ScheduleTemplate:
        """Apply a partial update and re-run the checks, excluding the template itself"""
        try:
            template = self.get_template(template_id)

            practitioner_id = data.practitionerId if data.practitionerId is not None else template.practitioner_id
            weekday = data.weekday if data.weekday is not None else template.weekday
            start_time = data.startTime or template.start_time
            end_time = data.endTime or template.end_time
            if data.clearBreak:
                break_start, break_end = None, None
            else:
                break_start = data.breakStart or template.break_start
                break_end = data.breakEnd or template.break_end

            self._lock_practitioner(practitioner_id)
            validate_window(start_time, end_time, break_start, break_end)
            self._ensure_no_overlap(practitioner_id, weekday, start_time, end_time, exclude_id=template.id)

            self.repo.update_template(
                self.db,
                template,
                practitioner_id=practitioner_id,
                weekday=weekday,
                start_time=start_time,
                end_time=end_time,
                break_start=break_start,
                break_end=break_end,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(template)
        logger.info(f"✏️ Schedule template {template.id} updated")
        return template

    def delete_template(self, template_id: int) -> None:
        try:
            template = self.get_template(template_id)
            self.repo.delete_template(self.db, template)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"🗑️ Schedule template {template_id} deleted")

    def delete_templates_for_practitioner(self, practitioner_id: int, commit: bool = True) -> int:
        """Remove every template of a practitioner (deactivation cascade)"""
        deleted = self.repo.delete_templates_for_practitioner(self.db, practitioner_id)
        if commit:
            self.db.commit()
        logger.info(f"🗑️ Removed {deleted} schedule template(s) of practitioner {practitioner_id}")
        return deleted

    def _lock_practitioner(self, practitioner_id: int) -> None:
        # Serializes concurrent template writes for the same practitioner
        practitioner = self.repo.get_practitioner(self.db, practitioner_id, lock=True)
        if not practitioner or not practitioner.is_active:
            raise NotFound("Practitioner not found")

    def _ensure_no_overlap(
        self,
        practitioner_id: int,
        weekday: int,
        start_time: str,
        end_time: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        overlapping = self.repo.find_overlapping(
            self.db, practitioner_id, weekday, start_time, end_time, exclude_id=exclude_id
        )
        if overlapping:
            logger.warning(
                f"⚠️ Overlapping schedule for practitioner {practitioner_id} on "
                f"{weekday_name(weekday)}: {start_time}-{end_time} vs template {overlapping[0].id}"
            )
            raise OverlapConflict("An overlapping schedule already exists for this practitioner on that day")
