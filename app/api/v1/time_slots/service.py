import logging
from collections import defaultdict
from datetime import datetime, time
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import SchoolClass, TimeSlot, TimeSlotTemplate, TimetableEntry
from app.core.schemas import describe_window
from app.core.services import get_scoped

from .schemas import (
    ClassTemplateResponse,
    TimeSlotCreate,
    TimeSlotListResponse,
    TimeSlotResponse,
    TimeSlotTemplateCreate,
    TimeSlotTemplateResponse,
    TimeSlotTemplateUpdate,
    TimeSlotUpdate,
)

logger = logging.getLogger(__name__)


def _template_response(t: TimeSlotTemplate, slot_count: int = 0, class_count: int = 0) -> TimeSlotTemplateResponse:
    return TimeSlotTemplateResponse(
        id=t.id,
        tenant_id=t.tenant_id,
        name=t.name,
        description=t.description,
        is_default=t.is_default,
        is_active=t.is_active,
        slot_count=slot_count,
        class_count=class_count,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def _slot_response(s: TimeSlot) -> TimeSlotResponse:
    return TimeSlotResponse.model_validate(s)


async def _counts(db: AsyncSession, template_ids: List[UUID]) -> Dict[UUID, Dict[str, int]]:
    counts: Dict[UUID, Dict[str, int]] = {tid: {"slot_count": 0, "class_count": 0} for tid in template_ids}
    if not template_ids:
        return counts
    slot_rows = await db.execute(
        select(TimeSlot.template_id, func.count(TimeSlot.id))
        .where(TimeSlot.template_id.in_(template_ids))
        .group_by(TimeSlot.template_id)
    )
    for tid, n in slot_rows.all():
        counts[tid]["slot_count"] = n
    class_rows = await db.execute(
        select(SchoolClass.time_slot_template_id, func.count(SchoolClass.id))
        .where(SchoolClass.time_slot_template_id.in_(template_ids))
        .group_by(SchoolClass.time_slot_template_id)
    )
    for tid, n in class_rows.all():
        counts[tid]["class_count"] = n
    return counts


async def _clear_default(db: AsyncSession, tenant_id: UUID, keep_id: Optional[UUID] = None) -> None:
    """Unset is_default on the school's other templates (same transaction as the new default)."""
    stmt = update(TimeSlotTemplate).where(
        TimeSlotTemplate.tenant_id == tenant_id,
        TimeSlotTemplate.is_default.is_(True),
    )
    if keep_id is not None:
        stmt = stmt.where(TimeSlotTemplate.id != keep_id)
    await db.execute(stmt.values(is_default=False).execution_options(synchronize_session="fetch"))


# ----- Templates -----

async def create_template(
    db: AsyncSession,
    tenant_id: UUID,
    payload: TimeSlotTemplateCreate,
    created_by: Optional[UUID] = None,
) -> TimeSlotTemplateResponse:
    if payload.is_default:
        await _clear_default(db, tenant_id)
    obj = TimeSlotTemplate(
        tenant_id=tenant_id,
        name=payload.name.strip(),
        description=payload.description,
        is_default=payload.is_default,
        is_active=payload.is_active,
        created_by=created_by,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("A time slot template with this name already exists", status.HTTP_409_CONFLICT)
    logger.info("Created time slot template %s (%s) default=%s", obj.id, obj.name, obj.is_default)
    return _template_response(obj)


async def list_templates(
    db: AsyncSession,
    tenant_id: UUID,
    include_inactive: bool = False,
) -> List[TimeSlotTemplateResponse]:
    stmt = select(TimeSlotTemplate).where(TimeSlotTemplate.tenant_id == tenant_id)
    if not include_inactive:
        stmt = stmt.where(TimeSlotTemplate.is_active.is_(True))
    stmt = stmt.order_by(TimeSlotTemplate.is_default.desc(), TimeSlotTemplate.name)
    templates = (await db.execute(stmt)).scalars().all()
    counts = await _counts(db, [t.id for t in templates])
    return [_template_response(t, **counts[t.id]) for t in templates]


async def get_template(db: AsyncSession, tenant_id: UUID, template_id: UUID) -> TimeSlotTemplateResponse:
    obj = await get_scoped(db, TimeSlotTemplate, template_id, tenant_id, "Time slot template")
    counts = await _counts(db, [obj.id])
    return _template_response(obj, **counts[obj.id])


async def update_template(
    db: AsyncSession,
    tenant_id: UUID,
    template_id: UUID,
    payload: TimeSlotTemplateUpdate,
) -> TimeSlotTemplateResponse:
    obj = await get_scoped(db, TimeSlotTemplate, template_id, tenant_id, "Time slot template")
    if payload.is_default:
        await _clear_default(db, tenant_id, keep_id=obj.id)
    if payload.name is not None:
        obj.name = payload.name.strip()
    if "description" in payload.model_fields_set:
        obj.description = payload.description
    if payload.is_default is not None:
        obj.is_default = payload.is_default
    if payload.is_active is not None:
        obj.is_active = payload.is_active
    obj.updated_at = datetime.utcnow()
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("A time slot template with this name already exists", status.HTTP_409_CONFLICT)
    counts = await _counts(db, [obj.id])
    return _template_response(obj, **counts[obj.id])


async def delete_template(db: AsyncSession, tenant_id: UUID, template_id: UUID) -> None:
    """Delete a template and its slots. Refused while classes use it or entries reference its slots."""
    obj = await get_scoped(db, TimeSlotTemplate, template_id, tenant_id, "Time slot template")
    counts = (await _counts(db, [obj.id]))[obj.id]
    if counts["class_count"]:
        raise ServiceError(
            f"Template is used by {counts['class_count']} class(es); assign them another template first",
            status.HTTP_409_CONFLICT,
        )
    referenced = (
        await db.execute(
            select(func.count(TimetableEntry.id))
            .join(TimeSlot, TimetableEntry.time_slot_id == TimeSlot.id)
            .where(TimeSlot.template_id == obj.id)
        )
    ).scalar_one()
    if referenced:
        raise ServiceError(
            f"{referenced} timetable entries use this template's slots; remove them first",
            status.HTTP_409_CONFLICT,
        )
    await db.execute(delete(TimeSlot).where(TimeSlot.template_id == obj.id))
    await db.execute(delete(TimeSlotTemplate).where(TimeSlotTemplate.id == obj.id))
    await db.commit()
    logger.info("Deleted time slot template %s", template_id)


# ----- Slots -----

async def _check_no_overlap(
    db: AsyncSession,
    template_id: UUID,
    day_of_week: int,
    start_time: time,
    end_time: time,
    exclude_id: Optional[UUID] = None,
) -> None:
    stmt = select(TimeSlot).where(
        TimeSlot.template_id == template_id,
        TimeSlot.day_of_week == day_of_week,
        TimeSlot.start_time < end_time,
        TimeSlot.end_time > start_time,
    )
    if exclude_id is not None:
        stmt = stmt.where(TimeSlot.id != exclude_id)
    clash = (await db.execute(stmt.order_by(TimeSlot.start_time).limit(1))).scalar_one_or_none()
    if clash is not None:
        raise ServiceError(
            f"Time slot overlaps with '{clash.name}' "
            f"({describe_window(clash.day_of_week, clash.start_time, clash.end_time)})",
            status.HTTP_409_CONFLICT,
        )


async def create_slot(db: AsyncSession, tenant_id: UUID, payload: TimeSlotCreate) -> TimeSlotResponse:
    template = await get_scoped(db, TimeSlotTemplate, payload.template_id, tenant_id, "Time slot template")
    if payload.end_time <= payload.start_time:
        raise ServiceError("end_time must be after start_time", status.HTTP_400_BAD_REQUEST)
    await _check_no_overlap(db, template.id, payload.day_of_week, payload.start_time, payload.end_time)
    obj = TimeSlot(
        tenant_id=tenant_id,
        template_id=template.id,
        day_of_week=payload.day_of_week,
        start_time=payload.start_time,
        end_time=payload.end_time,
        name=payload.name.strip(),
        is_break=payload.is_break,
    )
    db.add(obj)
    await db.commit()
    return _slot_response(obj)


async def list_slots(
    db: AsyncSession,
    tenant_id: UUID,
    template_id: Optional[UUID] = None,
    day_of_week: Optional[int] = None,
) -> TimeSlotListResponse:
    stmt = select(TimeSlot).where(TimeSlot.tenant_id == tenant_id)
    if template_id is not None:
        stmt = stmt.where(TimeSlot.template_id == template_id)
    if day_of_week is not None:
        stmt = stmt.where(TimeSlot.day_of_week == day_of_week)
    stmt = stmt.order_by(TimeSlot.day_of_week, TimeSlot.start_time)
    slots = [_slot_response(s) for s in (await db.execute(stmt)).scalars().all()]
    by_day: Dict[int, List[TimeSlotResponse]] = defaultdict(list)
    for s in slots:
        by_day[s.day_of_week].append(s)
    breaks = sum(1 for s in slots if s.is_break)
    return TimeSlotListResponse(
        slots=slots,
        slots_by_day=dict(by_day),
        total=len(slots),
        teaching_slots=len(slots) - breaks,
        break_slots=breaks,
    )


async def get_slot(db: AsyncSession, tenant_id: UUID, slot_id: UUID) -> TimeSlotResponse:
    return _slot_response(await get_scoped(db, TimeSlot, slot_id, tenant_id, "Time slot"))


async def _entry_count(db: AsyncSession, slot_id: UUID) -> int:
    stmt = select(func.count(TimetableEntry.id)).where(TimetableEntry.time_slot_id == slot_id)
    return (await db.execute(stmt)).scalar_one()


async def update_slot(db: AsyncSession, tenant_id: UUID, slot_id: UUID, payload: TimeSlotUpdate) -> TimeSlotResponse:
    obj = await get_scoped(db, TimeSlot, slot_id, tenant_id, "Time slot")
    day = payload.day_of_week if payload.day_of_week is not None else obj.day_of_week
    start = payload.start_time if payload.start_time is not None else obj.start_time
    end = payload.end_time if payload.end_time is not None else obj.end_time
    if end <= start:
        raise ServiceError("end_time must be after start_time", status.HTTP_400_BAD_REQUEST)

    moves = (day, start, end) != (obj.day_of_week, obj.start_time, obj.end_time)
    if moves and await _entry_count(db, obj.id):
        raise ServiceError(
            "Time slot is used by timetable entries; its day and time cannot change",
            status.HTTP_409_CONFLICT,
        )
    if payload.is_break and not obj.is_break and await _entry_count(db, obj.id):
        raise ServiceError("Time slot has timetable entries and cannot become a break", status.HTTP_409_CONFLICT)
    if moves:
        await _check_no_overlap(db, obj.template_id, day, start, end, exclude_id=obj.id)

    obj.day_of_week = day
    obj.start_time = start
    obj.end_time = end
    if payload.name is not None:
        obj.name = payload.name.strip()
    if payload.is_break is not None:
        obj.is_break = payload.is_break
    await db.commit()
    return _slot_response(obj)


async def delete_slot(db: AsyncSession, tenant_id: UUID, slot_id: UUID) -> None:
    obj = await get_scoped(db, TimeSlot, slot_id, tenant_id, "Time slot")
    used = await _entry_count(db, obj.id)
    if used:
        raise ServiceError(
            f"Time slot is used by {used} timetable entries; remove them before deleting the slot",
            status.HTTP_409_CONFLICT,
        )
    await db.execute(delete(TimeSlot).where(TimeSlot.id == obj.id))
    await db.commit()
    logger.info("Deleted time slot %s", slot_id)


# ----- Class binding -----

async def bind_class_template(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    template_id: Optional[UUID],
) -> ClassTemplateResponse:
    """Bind a class to one template. Refused while the class has entries on slots of another template."""
    cl = await get_scoped(db, SchoolClass, class_id, tenant_id, "Class")
    if template_id is not None:
        template = await get_scoped(db, TimeSlotTemplate, template_id, tenant_id, "Time slot template")
        if not template.is_active:
            raise ServiceError("Time slot template is inactive", status.HTTP_400_BAD_REQUEST)
        foreign = (
            await db.execute(
                select(func.count(TimetableEntry.id))
                .join(TimeSlot, TimetableEntry.time_slot_id == TimeSlot.id)
                .where(TimetableEntry.class_id == cl.id, TimeSlot.template_id != template_id)
            )
        ).scalar_one()
        if foreign:
            raise ServiceError(
                "Class has timetable entries on another template's slots; remove them first",
                status.HTTP_409_CONFLICT,
            )
    cl.time_slot_template_id = template_id
    cl.updated_at = datetime.utcnow()
    await db.commit()
    logger.info("Class %s bound to time slot template %s", class_id, template_id)
    return ClassTemplateResponse(class_id=cl.id, class_name=cl.name, time_slot_template_id=template_id)
