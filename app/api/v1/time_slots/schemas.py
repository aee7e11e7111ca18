from datetime import datetime, time
from typing import Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.core.schemas import format_time_24, parse_time_24


class TimeSlotTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_default: bool = False
    is_active: bool = True


class TimeSlotTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class TimeSlotTemplateResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    description: Optional[str] = None
    is_default: bool
    is_active: bool
    slot_count: int = 0
    class_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimeSlotCreate(BaseModel):
    template_id: UUID
    day_of_week: int = Field(..., ge=1, le=7, description="1=Monday .. 7=Sunday")
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:00")
    end_time: Union[str, time] = Field(..., description="24-hour format, e.g. 08:50")
    name: str = Field(..., min_length=1, max_length=100, description="e.g. Period 1, Lunch")
    is_break: bool = False

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> time:
        return parse_time_24(v)


class TimeSlotUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=1, le=7)
    start_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 08:00")
    end_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 08:50")
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_break: Optional[bool] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time(cls, v: Optional[Union[str, time]]) -> Optional[time]:
        if v is None:
            return None
        return parse_time_24(v)


class TimeSlotResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    template_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    name: str
    is_break: bool
    created_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return format_time_24(t)


class TimeSlotListResponse(BaseModel):
    slots: List[TimeSlotResponse]
    slots_by_day: Dict[int, List[TimeSlotResponse]]
    total: int
    teaching_slots: int
    break_slots: int


class ClassTemplateBinding(BaseModel):
    time_slot_template_id: Optional[UUID] = Field(None, description="null unbinds the class")


class ClassTemplateResponse(BaseModel):
    class_id: UUID
    class_name: str
    time_slot_template_id: Optional[UUID] = None
