"""Scheduling router - FastAPI endpoints for schedule templates and availability"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import ScheduleTemplate
from ...shared.time_utils import weekday_name
from .availability_service import AvailabilityService
from .schemas import (
    AvailabilityRequest,
    AvailableSlot,
    ScheduleTemplateCreate,
    ScheduleTemplateListResponse,
    ScheduleTemplateResponse,
    ScheduleTemplateUpdate,
)
from .service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["Schedules"])
availability_router = APIRouter(prefix="/availability", tags=["Availability"])


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def to_response(template: ScheduleTemplate) -> ScheduleTemplateResponse:
    return ScheduleTemplateResponse(
        id=template.id,
        practitionerId=template.practitioner_id,
        practitionerName=template.practitioner.display_name if template.practitioner else None,
        weekday=template.weekday,
        weekdayName=weekday_name(template.weekday),
        startTime=template.start_time,
        endTime=template.end_time,
        breakStart=template.break_start,
        breakEnd=template.break_end,
    )


# ============================================================================
# SCHEDULE TEMPLATES
# ============================================================================


@router.get("", response_model=ScheduleTemplateListResponse)
async def list_schedule_templates(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    service: ScheduleService = Depends(get_schedule_service),
):
    """List weekly templates of active practitioners"""
    total, templates = service.list_templates(skip, limit)
    return ScheduleTemplateListResponse(total=total, templates=[to_response(t) for t in templates])


@router.get("/{template_id}", response_model=ScheduleTemplateResponse)
async def get_schedule_template(
    template_id: int,
    service: ScheduleService = Depends(get_schedule_service),
):
    return to_response(service.get_template(template_id))


@router.post("", response_model=ScheduleTemplateResponse, status_code=201)
async def create_schedule_template(
    data: ScheduleTemplateCreate,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Create a weekly template; rejected with 409 when it overlaps another"""
    return to_response(service.create_template(data))


@router.put("/{template_id}", response_model=ScheduleTemplateResponse)
async def update_schedule_template(
    template_id: int,
    data: ScheduleTemplateUpdate,
    service: ScheduleService = Depends(get_schedule_service),
):
    return to_response(service.update_template(template_id, data))


@router.delete("/{template_id}")
async def delete_schedule_template(
    template_id: int,
    service: ScheduleService = Depends(get_schedule_service),
):
    service.delete_template(template_id)
    return {"ok": True, "message": "Schedule template deleted"}


# ============================================================================
# AVAILABILITY
# ============================================================================


@availability_router.post("", response_model=list[AvailableSlot])
async def search_availability(
    data: AvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable slots for a specialty on a date; empty list when nothing is free"""
    return service.find_available_slots(data.specialty, data.day)
