from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_capability
from app.auth.schemas import CurrentUser
from app.core.enums import Capability
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    ClassTemplateBinding,
    ClassTemplateResponse,
    TimeSlotCreate,
    TimeSlotListResponse,
    TimeSlotResponse,
    TimeSlotTemplateCreate,
    TimeSlotTemplateResponse,
    TimeSlotTemplateUpdate,
    TimeSlotUpdate,
)
from . import service

templates_router = APIRouter(prefix="/api/v1/time-slot-templates", tags=["time-slots"])
router = APIRouter(prefix="/api/v1/time-slots", tags=["time-slots"])
class_binding_router = APIRouter(prefix="/api/v1/classes", tags=["time-slots"])

_read = require_capability(Capability.TIME_SLOTS_READ)
_manage = require_capability(Capability.TIME_SLOTS_MANAGE)


# ----- Templates -----

@templates_router.get("", response_model=List[TimeSlotTemplateResponse])
async def list_templates(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_read),
):
    return await service.list_templates(db, current_user.tenant_id, include_inactive=include_inactive)


@templates_router.post("", response_model=TimeSlotTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TimeSlotTemplateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        return await service.create_template(db, current_user.tenant_id, payload, created_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@templates_router.get("/{template_id}", response_model=TimeSlotTemplateResponse)
async def get_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_read),
):
    try:
        return await service.get_template(db, current_user.tenant_id, template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@templates_router.put("/{template_id}", response_model=TimeSlotTemplateResponse)
async def update_template(
    template_id: UUID,
    payload: TimeSlotTemplateUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        return await service.update_template(db, current_user.tenant_id, template_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@templates_router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        await service.delete_template(db, current_user.tenant_id, template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Slots -----

@router.get("", response_model=TimeSlotListResponse)
async def list_slots(
    template_id: Optional[UUID] = Query(None),
    day_of_week: Optional[int] = Query(None, ge=1, le=7),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_read),
):
    return await service.list_slots(db, current_user.tenant_id, template_id=template_id, day_of_week=day_of_week)


@router.post("", response_model=TimeSlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    payload: TimeSlotCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        return await service.create_slot(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/{slot_id}", response_model=TimeSlotResponse)
async def get_slot(
    slot_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_read),
):
    try:
        return await service.get_slot(db, current_user.tenant_id, slot_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/{slot_id}", response_model=TimeSlotResponse)
async def update_slot(
    slot_id: UUID,
    payload: TimeSlotUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        return await service.update_slot(db, current_user.tenant_id, slot_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        await service.delete_slot(db, current_user.tenant_id, slot_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Class binding -----

@class_binding_router.put("/{class_id}/time-slot-template", response_model=ClassTemplateResponse)
async def bind_class_template(
    class_id: UUID,
    payload: ClassTemplateBinding,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(_manage),
):
    try:
        return await service.bind_class_template(db, current_user.tenant_id, class_id, payload.time_slot_template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
