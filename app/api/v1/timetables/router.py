from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import has_capability, require_any_capability, require_capability
from app.auth.schemas import CurrentUser
from app.core.enums import Capability, TimetableStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    ClassDraftReplace,
    ClassScopedRequest,
    DiscardResponse,
    PublishResponse,
    TeacherScheduleResponse,
    TimetableEntryCreate,
    TimetableEntryResponse,
    TimetableEntryUpdate,
)
from . import service, workflow

router = APIRouter(prefix="/api/v1/timetables", tags=["timetables"])


@router.get("", response_model=List[TimetableEntryResponse])
async def list_timetable_entries(
    class_id: Optional[UUID] = Query(None),
    status_filter: Optional[TimetableStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_READ)),
):
    return await service.list_entries(db, current_user.tenant_id, class_id=class_id, status=status_filter)


@router.get("/me", response_model=TeacherScheduleResponse)
async def get_my_timetable(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_READ_OWN)),
):
    """Published periods of the logged-in teacher across all classes."""
    return await service.get_teacher_schedule(db, current_user.tenant_id, current_user.id)


@router.post("", response_model=TimetableEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_timetable_entry(
    payload: TimetableEntryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_WRITE)),
):
    try:
        return await workflow.assign(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/classes/{class_id}/draft", response_model=List[TimetableEntryResponse])
async def replace_class_draft(
    class_id: UUID,
    payload: ClassDraftReplace,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_WRITE)),
):
    """Replace the class's whole draft. Any rejected entry rolls the batch back."""
    try:
        return await workflow.replace_class_draft(db, current_user.tenant_id, class_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/discard", response_model=DiscardResponse)
async def discard_draft(
    payload: ClassScopedRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_PUBLISH)),
):
    try:
        count = await workflow.discard(db, current_user.tenant_id, payload.class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return DiscardResponse(class_id=payload.class_id, entries_discarded=count)


@router.post("/publish", response_model=PublishResponse)
async def publish_draft(
    payload: ClassScopedRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_PUBLISH)),
):
    try:
        entries = await workflow.publish(db, current_user.tenant_id, payload.class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return PublishResponse(class_id=payload.class_id, entries_activated=len(entries), entries=entries)


@router.get("/{entry_id}", response_model=TimetableEntryResponse)
async def get_timetable_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_READ)),
):
    try:
        return await service.get_entry(db, current_user.tenant_id, entry_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/{entry_id}", response_model=TimetableEntryResponse)
async def update_timetable_entry(
    entry_id: UUID,
    payload: TimetableEntryUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_capability(Capability.TIMETABLE_WRITE)),
):
    try:
        return await workflow.update_entry(db, current_user.tenant_id, entry_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timetable_entry(
    entry_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(
        require_any_capability(Capability.TIMETABLE_WRITE, Capability.TIMETABLE_DELETE_OWN)
    ),
):
    # Teachers without write access may only remove periods they teach
    owner_id = None if has_capability(current_user, Capability.TIMETABLE_WRITE) else current_user.id
    try:
        await service.delete_entry(db, current_user.tenant_id, entry_id, owner_id=owner_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
