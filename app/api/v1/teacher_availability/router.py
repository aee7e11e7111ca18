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
    TeacherAvailabilityBulk,
    TeacherAvailabilityCreate,
    TeacherAvailabilityResponse,
    TeacherAvailabilityUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/teacher-availability", tags=["teacher-availability"])

_manage = require_any_capability(Capability.AVAILABILITY_MANAGE, Capability.AVAILABILITY_MANAGE_OWN)


def _target_teacher(current_user: CurrentUser, teacher_id: Optional[UUID]) -> UUID:
    """Admins name the teacher; teachers may only act on themselves."""
    if has_capability(current_user, Capability.AVAILABILITY_MANAGE):
        if teacher_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="teacher_id is required")
        return teacher_id
    if teacher_id is not None and teacher_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only manage your own availability")
    return current_user.id


def _owner(current_user: CurrentUser) -> Optional[UUID]:
    return None if has_capability(current_user, Capability.AVAILABILITY_MANAGE) else current_user.id


@router.get("", response_model=List[TeacherAvailabilityResponse])
async def list_availability(
    teacher_id: Optional[UUID] = Query(None),
    day_of_week: Optional[int] = Query(None, ge=1, le=7),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.AVAILABILITY_READ)),
):
    return await service.list_availability(db, current_user.tenant_id, teacher_id=teacher_id, day_of_week=day_of_week)


@router.post("", response_model=TeacherAvailabilityResponse, status_code=status.HTTP_201_CREATED)
async def create_availability(
    payload: TeacherAvailabilityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    teacher_id = _target_teacher(current_user, payload.teacher_id)
    try:
        return await service.create_availability(db, current_user.tenant_id, teacher_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/bulk", response_model=List[TeacherAvailabilityResponse])
async def replace_availability(
    payload: TeacherAvailabilityBulk,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    teacher_id = _target_teacher(current_user, payload.teacher_id)
    try:
        return await service.replace_availability(db, current_user.tenant_id, teacher_id, payload.windows)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/{availability_id}", response_model=TeacherAvailabilityResponse)
async def update_availability(
    availability_id: UUID,
    payload: TeacherAvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        return await service.update_availability(
            db, current_user.tenant_id, availability_id, payload, owner_id=_owner(current_user)
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{availability_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_availability(
    availability_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        await service.delete_availability(db, current_user.tenant_id, availability_id, owner_id=_owner(current_user))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
