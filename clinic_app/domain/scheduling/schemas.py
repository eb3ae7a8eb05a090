"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_clock_time, validate_weekday


class ScheduleTemplateCreate(BaseModel):
    """Schema for creating a weekly schedule template"""

    practitionerId: int
    weekday: Union[int, str]
    startTime: str
    endTime: str
    breakStart: Optional[str] = None
    breakEnd: Optional[str] = None

    @field_validator("weekday")
    @classmethod
    def check_weekday(cls, v):
        return validate_weekday(v)

    @field_validator("startTime", "endTime", "breakStart", "breakEnd")
    @classmethod
    def check_times(cls, v):
        return validate_clock_time(v)


class ScheduleTemplateUpdate(BaseModel):
    """Schema for updating a schedule template; omitted fields keep their value"""

    practitionerId: Optional[int] = None
    weekday: Optional[Union[int, str]] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    breakStart: Optional[str] = None
    breakEnd: Optional[str] = None
    # Explicitly drop an existing lunch break
    clearBreak: bool = False

    @field_validator("weekday")
    @classmethod
    def check_weekday(cls, v):
        return validate_weekday(v)

    @field_validator("startTime", "endTime", "breakStart", "breakEnd")
    @classmethod
    def check_times(cls, v):
        return validate_clock_time(v)


class ScheduleTemplateResponse(BaseModel):
    id: int
    practitionerId: int
    practitionerName: Optional[str] = None
    weekday: int
    weekdayName: str
    startTime: str
    endTime: str
    breakStart: Optional[str] = None
    breakEnd: Optional[str] = None


class ScheduleTemplateListResponse(BaseModel):
    total: int
    templates: list[ScheduleTemplateResponse]


class AvailabilityRequest(BaseModel):
    """Schema for an availability search"""

    model_config = ConfigDict(populate_by_name=True)

    specialty: str = Field(..., min_length=1)
    day: date = Field(..., alias="date")


class AvailableSlot(BaseModel):
    practitionerId: int
    practitionerName: str
    date: str
    start: str
    end: str
    price: float
    appointmentTypeId: int
    specialty: str
