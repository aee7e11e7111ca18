from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class TeacherQualificationCreate(BaseModel):
    teacher_id: UUID
    subject_id: UUID


class TeacherQualificationResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    teacher_id: UUID
    teacher_name: Optional[str] = None
    subject_id: UUID
    subject_name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class QualifiedTeacher(BaseModel):
    teacher_id: UUID
    name: str
