from datetime import datetime, time
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.core.schemas import format_time_24, parse_time_24


class AvailabilityWindowIn(BaseModel):
    day_of_week: int = Field(..., ge=1, le=7, description="1=Monday .. 7=Sunday")
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 15:00")
    is_recurring: bool = True
    notes: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return parse_time_24(v)


class TeacherAvailabilityCreate(AvailabilityWindowIn):
    teacher_id: Optional[UUID] = Field(None, description="Defaults to the logged-in teacher")


class TeacherAvailabilityUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=1, le=7)
    start_time: Optional[Union[str, time]] = None
    end_time: Optional[Union[str, time]] = None
    is_recurring: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Optional[Union[str, time]]) -> Optional[time]:
        if v is None:
            return None
        return parse_time_24(v)


class TeacherAvailabilityBulk(BaseModel):
    """Replaces every window of one teacher."""

    teacher_id: Optional[UUID] = None
    windows: List[AvailabilityWindowIn] = Field(default_factory=list)


class TeacherAvailabilityResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    teacher_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_recurring: bool
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return format_time_24(t)
