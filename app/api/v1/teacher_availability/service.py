import logging
from datetime import datetime, time
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, ServiceError
from app.core.models import TeacherAvailability
from app.core.services import get_scoped, get_teacher

from .schemas import (
    AvailabilityWindowIn,
    TeacherAvailabilityResponse,
    TeacherAvailabilityUpdate,
)

logger = logging.getLogger(__name__)


def _check_window(start: time, end: time) -> None:
    if end <= start:
        raise ServiceError("end_time must be after start_time", status.HTTP_400_BAD_REQUEST)


def _new_row(tenant_id: UUID, teacher_id: UUID, w: AvailabilityWindowIn) -> TeacherAvailability:
    _check_window(w.start_time, w.end_time)
    return TeacherAvailability(
        tenant_id=tenant_id,
        teacher_id=teacher_id,
        day_of_week=w.day_of_week,
        start_time=w.start_time,
        end_time=w.end_time,
        is_recurring=w.is_recurring,
        notes=w.notes,
    )


async def create_availability(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: UUID,
    window: AvailabilityWindowIn,
) -> TeacherAvailabilityResponse:
    teacher = await get_teacher(db, teacher_id, tenant_id)
    obj = _new_row(tenant_id, teacher.id, window)
    db.add(obj)
    await db.commit()
    return TeacherAvailabilityResponse.model_validate(obj)


async def list_availability(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: Optional[UUID] = None,
    day_of_week: Optional[int] = None,
) -> List[TeacherAvailabilityResponse]:
    stmt = select(TeacherAvailability).where(TeacherAvailability.tenant_id == tenant_id)
    if teacher_id is not None:
        stmt = stmt.where(TeacherAvailability.teacher_id == teacher_id)
    if day_of_week is not None:
        stmt = stmt.where(TeacherAvailability.day_of_week == day_of_week)
    stmt = stmt.order_by(TeacherAvailability.day_of_week, TeacherAvailability.start_time)
    result = await db.execute(stmt)
    return [TeacherAvailabilityResponse.model_validate(a) for a in result.scalars().all()]


async def _get_owned(
    db: AsyncSession, tenant_id: UUID, availability_id: UUID, owner_id: Optional[UUID]
) -> TeacherAvailability:
    obj = await get_scoped(db, TeacherAvailability, availability_id, tenant_id, "Availability")
    if owner_id is not None and obj.teacher_id != owner_id:
        raise ForbiddenError("You can only manage your own availability")
    return obj


async def update_availability(
    db: AsyncSession,
    tenant_id: UUID,
    availability_id: UUID,
    payload: TeacherAvailabilityUpdate,
    *,
    owner_id: Optional[UUID] = None,
) -> TeacherAvailabilityResponse:
    obj = await _get_owned(db, tenant_id, availability_id, owner_id)
    start = payload.start_time if payload.start_time is not None else obj.start_time
    end = payload.end_time if payload.end_time is not None else obj.end_time
    _check_window(start, end)
    obj.start_time = start
    obj.end_time = end
    if payload.day_of_week is not None:
        obj.day_of_week = payload.day_of_week
    if payload.is_recurring is not None:
        obj.is_recurring = payload.is_recurring
    if "notes" in payload.model_fields_set:
        obj.notes = payload.notes
    obj.updated_at = datetime.utcnow()
    await db.commit()
    return TeacherAvailabilityResponse.model_validate(obj)


async def delete_availability(
    db: AsyncSession,
    tenant_id: UUID,
    availability_id: UUID,
    *,
    owner_id: Optional[UUID] = None,
) -> None:
    obj = await _get_owned(db, tenant_id, availability_id, owner_id)
    await db.delete(obj)
    await db.commit()


async def replace_availability(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: UUID,
    windows: List[AvailabilityWindowIn],
) -> List[TeacherAvailabilityResponse]:
    """Swap all of a teacher's windows in one transaction. An empty list clears them."""
    teacher = await get_teacher(db, teacher_id, tenant_id)
    rows = [_new_row(tenant_id, teacher.id, w) for w in windows]
    await db.execute(
        delete(TeacherAvailability).where(
            TeacherAvailability.tenant_id == tenant_id,
            TeacherAvailability.teacher_id == teacher.id,
        )
    )
    db.add_all(rows)
    await db.commit()
    logger.info("Replaced availability of teacher %s with %d windows", teacher.id, len(rows))
    rows.sort(key=lambda r: (r.day_of_week, r.start_time))
    return [TeacherAvailabilityResponse.model_validate(r) for r in rows]
