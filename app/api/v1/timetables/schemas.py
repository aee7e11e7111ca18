from datetime import datetime, time
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from app.core.enums import TimetableStatus
from app.core.schemas import format_time_24


class TimetableEntryCreate(BaseModel):
    class_id: UUID
    subject_id: UUID
    teacher_id: Optional[UUID] = Field(None, description="Leave empty for an unassigned period")
    time_slot_id: UUID
    academic_year: Optional[str] = Field(None, max_length=20, description="Defaults to the class's academic year")
    replaces_entry_id: Optional[UUID] = Field(
        None, description="Active entry of the same class this draft supersedes on publish"
    )


class TimetableEntryUpdate(BaseModel):
    """Re-assign a draft entry. Send teacher_id: null to unassign the teacher."""

    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    time_slot_id: Optional[UUID] = None
    replaces_entry_id: Optional[UUID] = None


class DraftItem(BaseModel):
    subject_id: UUID
    teacher_id: Optional[UUID] = None
    time_slot_id: UUID


class ClassDraftReplace(BaseModel):
    academic_year: Optional[str] = Field(None, max_length=20)
    entries: List[DraftItem] = Field(default_factory=list)


class ClassScopedRequest(BaseModel):
    class_id: UUID


class TimetableEntryResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    class_id: UUID
    class_name: Optional[str] = None
    subject_id: UUID
    subject_name: Optional[str] = None
    teacher_id: Optional[UUID] = None
    teacher_name: Optional[str] = None
    time_slot_id: UUID
    slot_name: Optional[str] = None
    day_of_week: int
    start_time: time
    end_time: time
    replaces_entry_id: Optional[UUID] = None
    academic_year: Optional[str] = None
    status: TimetableStatus
    created_at: datetime
    updated_at: datetime
    warnings: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return format_time_24(t)


class DiscardResponse(BaseModel):
    class_id: UUID
    entries_discarded: int


class PublishResponse(BaseModel):
    class_id: UUID
    entries_activated: int
    entries: List[TimetableEntryResponse]


class TeacherScheduleResponse(BaseModel):
    schedule: List[TimetableEntryResponse]
    schedule_by_day: Dict[int, List[TimetableEntryResponse]]
    total_periods: int
