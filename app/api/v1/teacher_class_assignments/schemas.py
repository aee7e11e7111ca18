from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TeacherClassAssignmentCreate(BaseModel):
    teacher_id: UUID
    class_id: UUID
    subject_id: UUID
    weekly_hours: int = Field(..., ge=0, le=60, description="Periods per week")


class TeacherClassAssignmentUpdate(BaseModel):
    weekly_hours: int = Field(..., ge=0, le=60)


class TeacherClassAssignmentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    teacher_id: UUID
    teacher_name: Optional[str] = None
    class_id: UUID
    class_name: Optional[str] = None
    subject_id: UUID
    subject_name: Optional[str] = None
    weekly_hours: int
    created_at: datetime
    warnings: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class WorkloadAssignment(BaseModel):
    class_id: UUID
    class_name: str
    subject_id: UUID
    subject_name: str
    weekly_hours: int


class TeacherWorkloadResponse(BaseModel):
    teacher_id: UUID
    teacher_name: str
    total_weekly_hours: int
    max_weekly_hours: int
    assignment_count: int
    class_count: int
    scheduled_periods: int = Field(0, description="Periods in the published timetable")
    assignments: List[WorkloadAssignment]
    warnings: List[str] = Field(default_factory=list)
