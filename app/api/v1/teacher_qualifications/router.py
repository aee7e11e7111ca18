from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_capability
from app.auth.schemas import CurrentUser
from app.core.enums import Capability
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import QualifiedTeacher, TeacherQualificationCreate, TeacherQualificationResponse
from . import service

router = APIRouter(prefix="/api/v1/teacher-qualifications", tags=["teacher-qualifications"])
subjects_router = APIRouter(prefix="/api/v1/subjects", tags=["teacher-qualifications"])


@router.post("", response_model=TeacherQualificationResponse, status_code=status.HTTP_201_CREATED)
async def create_qualification(
    payload: TeacherQualificationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_MANAGE)),
):
    try:
        return await service.create_qualification(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("", response_model=List[TeacherQualificationResponse])
async def list_qualifications(
    teacher_id: Optional[UUID] = Query(None),
    subject_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_READ)),
):
    return await service.list_qualifications(
        db, current_user.tenant_id, teacher_id=teacher_id, subject_id=subject_id
    )


@router.delete("/{qualification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_qualification(
    qualification_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_MANAGE)),
):
    try:
        await service.delete_qualification(db, current_user.tenant_id, qualification_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@subjects_router.get("/{subject_id}/qualified-teachers", response_model=List[QualifiedTeacher])
async def get_qualified_teachers(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_READ)),
):
    """Teachers who can be picked for this subject when building a timetable."""
    try:
        return await service.get_qualified_teachers(db, current_user.tenant_id, subject_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
