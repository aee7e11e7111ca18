from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import has_capability, require_any_capability, require_capability
from app.auth.schemas import CurrentUser
from app.core.enums import Capability
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    TeacherClassAssignmentCreate,
    TeacherClassAssignmentResponse,
    TeacherClassAssignmentUpdate,
    TeacherWorkloadResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/teacher-class-assignments", tags=["teacher-class-assignments"])
teachers_router = APIRouter(prefix="/api/v1/teachers", tags=["teacher-class-assignments"])


@router.post("", response_model=TeacherClassAssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    payload: TeacherClassAssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_MANAGE)),
):
    try:
        return await service.create_assignment(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("", response_model=List[TeacherClassAssignmentResponse])
async def list_assignments(
    teacher_id: Optional[UUID] = Query(None),
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_READ)),
):
    return await service.list_assignments(db, current_user.tenant_id, teacher_id=teacher_id, class_id=class_id)


@router.put("/{assignment_id}", response_model=TeacherClassAssignmentResponse)
async def update_assignment(
    assignment_id: UUID,
    payload: TeacherClassAssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_MANAGE)),
):
    try:
        return await service.update_assignment(db, current_user.tenant_id, assignment_id, payload.weekly_hours)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.QUALIFICATIONS_MANAGE)),
):
    try:
        await service.delete_assignment(db, current_user.tenant_id, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@teachers_router.get("/{teacher_id}/workload", response_model=TeacherWorkloadResponse)
async def get_teacher_workload(
    teacher_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(
        require_any_capability(Capability.WORKLOAD_READ, Capability.WORKLOAD_READ_OWN)
    ),
):
    if not has_capability(current_user, Capability.WORKLOAD_READ) and current_user.id != teacher_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own workload")
    try:
        return await service.get_teacher_workload(db, current_user.tenant_id, teacher_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
