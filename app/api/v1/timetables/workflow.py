"""
Draft workflow: resolves references, gathers the facts the validator needs and
drives the store. Owns the transaction for single assignments and batch replace.
"""

import logging
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, TypeVar
from uuid import UUID

from fastapi import status
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.config import settings
from app.core.enums import TimetableStatus
from app.core.exceptions import ServiceError, StorageConflict, ValidationRejected
from app.core.models import (
    SchoolClass,
    SchoolSubject,
    TeacherAvailability,
    TeacherClassAssignment,
    TeacherQualification,
    TimeSlot,
    TimetableEntry,
)
from app.core.services import get_optional_teacher, get_scoped

from . import service
from .schemas import ClassDraftReplace, TimetableEntryCreate, TimetableEntryResponse, TimetableEntryUpdate
from .validator import (
    AvailabilityWindow,
    EntrySnapshot,
    ProposedEntry,
    SlotWindow,
    ValidationContext,
    ValidationPolicy,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DRAFT = TimetableStatus.draft.value
ACTIVE = TimetableStatus.active.value


class _Refs(NamedTuple):
    school_class: SchoolClass
    subject: SchoolSubject
    teacher: Optional[User]
    slot: TimeSlot

    def relations(self) -> Dict:
        return {
            "school_class": self.school_class,
            "subject": self.subject,
            "teacher": self.teacher,
            "time_slot": self.slot,
        }


def _window(slot: TimeSlot) -> SlotWindow:
    return SlotWindow(
        id=slot.id,
        day_of_week=slot.day_of_week,
        start_time=slot.start_time,
        end_time=slot.end_time,
        name=slot.name,
    )


async def _resolve(
    db: AsyncSession,
    tenant_id: UUID,
    school_class: SchoolClass,
    subject_id: UUID,
    teacher_id: Optional[UUID],
    time_slot_id: UUID,
) -> _Refs:
    subject = await get_scoped(db, SchoolSubject, subject_id, tenant_id, "Subject")
    teacher = await get_optional_teacher(db, teacher_id, tenant_id)
    slot = await get_scoped(db, TimeSlot, time_slot_id, tenant_id, "Time slot")
    if slot.is_break:
        raise ServiceError(f"'{slot.name}' is a break; periods cannot be scheduled in it", status.HTTP_400_BAD_REQUEST)
    if school_class.time_slot_template_id is not None and slot.template_id != school_class.time_slot_template_id:
        raise ServiceError(
            "Time slot does not belong to the class's time slot template",
            status.HTTP_400_BAD_REQUEST,
        )
    return _Refs(school_class, subject, teacher, slot)


async def _load_slice(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    teacher_id: Optional[UUID],
    day_of_week: int,
    exclude_ids: Sequence[UUID] = (),
) -> Tuple[List[EntrySnapshot], Dict[UUID, SlotWindow]]:
    """Scheduled entries of the class, plus the teacher's entries on the slot's day."""
    scope = TimetableEntry.class_id == class_id
    if teacher_id is not None:
        scope = or_(scope, and_(TimetableEntry.teacher_id == teacher_id, TimeSlot.day_of_week == day_of_week))
    stmt = (
        select(
            TimetableEntry.id,
            TimetableEntry.tenant_id,
            TimetableEntry.class_id,
            TimetableEntry.subject_id,
            TimetableEntry.teacher_id,
            TimetableEntry.time_slot_id,
            TimetableEntry.status,
            SchoolClass.name,
            TimeSlot.day_of_week,
            TimeSlot.start_time,
            TimeSlot.end_time,
            TimeSlot.name,
        )
        .join(TimeSlot, TimetableEntry.time_slot_id == TimeSlot.id)
        .join(SchoolClass, TimetableEntry.class_id == SchoolClass.id)
        .where(
            TimetableEntry.tenant_id == tenant_id,
            TimetableEntry.status.in_((DRAFT, ACTIVE)),
            scope,
        )
    )
    if exclude_ids:
        stmt = stmt.where(TimetableEntry.id.notin_(list(exclude_ids)))

    existing: List[EntrySnapshot] = []
    slots: Dict[UUID, SlotWindow] = {}
    for row in (await db.execute(stmt)).all():
        (entry_id, school_id, cls_id, subject_id, t_id, slot_id, entry_status,
         class_name, day, start, end, slot_name) = row
        existing.append(
            EntrySnapshot(
                id=entry_id,
                school_id=school_id,
                class_id=cls_id,
                subject_id=subject_id,
                teacher_id=t_id,
                time_slot_id=slot_id,
                status=entry_status,
                class_name=class_name,
            )
        )
        slots[slot_id] = SlotWindow(id=slot_id, day_of_week=day, start_time=start, end_time=end, name=slot_name)
    return existing, slots


async def _build_context(
    db: AsyncSession,
    tenant_id: UUID,
    refs: _Refs,
    slots: Dict[UUID, SlotWindow],
) -> ValidationContext:
    policy = ValidationPolicy(
        require_explicit_availability=settings.require_explicit_availability,
        strict_weekly_hours=settings.strict_weekly_hours,
    )
    teacher = refs.teacher
    if teacher is None:
        return ValidationContext(
            slot=_window(refs.slot),
            policy=policy,
            slots=slots,
            subject_name=refs.subject.name,
        )

    qualified = await db.execute(
        select(TeacherQualification.subject_id).where(
            TeacherQualification.tenant_id == tenant_id,
            TeacherQualification.teacher_id == teacher.id,
        )
    )
    windows = await db.execute(
        select(TeacherAvailability.day_of_week, TeacherAvailability.start_time, TeacherAvailability.end_time).where(
            TeacherAvailability.tenant_id == tenant_id,
            TeacherAvailability.teacher_id == teacher.id,
            TeacherAvailability.day_of_week == refs.slot.day_of_week,
        )
    )
    weekly_hours = (
        await db.execute(
            select(TeacherClassAssignment.weekly_hours).where(
                TeacherClassAssignment.tenant_id == tenant_id,
                TeacherClassAssignment.teacher_id == teacher.id,
                TeacherClassAssignment.class_id == refs.school_class.id,
                TeacherClassAssignment.subject_id == refs.subject.id,
            )
        )
    ).scalar_one_or_none()

    return ValidationContext(
        slot=_window(refs.slot),
        policy=policy,
        qualified_subject_ids=frozenset(qualified.scalars().all()),
        availability=tuple(
            AvailabilityWindow(day_of_week=d, start_time=s, end_time=e) for d, s, e in windows.all()
        ),
        slots=slots,
        weekly_hours=weekly_hours,
        teacher_name=teacher.full_name,
        subject_name=refs.subject.name,
    )


async def _run_with_retry(db: AsyncSession, attempt: Callable[[], Awaitable[T]]) -> T:
    """Run attempt; after a lost storage race roll back and run it once more on fresh data."""
    try:
        return await attempt()
    except StorageConflict as exc:
        await db.rollback()
        logger.info("Retrying timetable write after storage conflict (%s)", exc.reason.value)
    try:
        return await attempt()
    except StorageConflict as exc:
        await db.rollback()
        raise ValidationRejected(exc.reason, exc.message)


async def _check_replaced(db: AsyncSession, tenant_id: UUID, class_id: UUID, entry_id: Optional[UUID]) -> None:
    if entry_id is None:
        return
    replaced = await get_scoped(db, TimetableEntry, entry_id, tenant_id, "Replaced entry")
    if replaced.class_id != class_id or replaced.status != ACTIVE:
        raise ServiceError(
            "replaces_entry_id must reference an active entry of the same class",
            status.HTTP_400_BAD_REQUEST,
        )


async def _stage(
    db: AsyncSession,
    tenant_id: UUID,
    refs: _Refs,
    academic_year: Optional[str],
    replaces_entry_id: Optional[UUID] = None,
) -> TimetableEntryResponse:
    """Validate and flush one new draft built from resolved references."""
    proposed = ProposedEntry(
        school_id=tenant_id,
        class_id=refs.school_class.id,
        subject_id=refs.subject.id,
        teacher_id=refs.teacher.id if refs.teacher is not None else None,
        time_slot_id=refs.slot.id,
        replaces_entry_id=replaces_entry_id,
    )
    existing, slots = await _load_slice(db, tenant_id, proposed.class_id, proposed.teacher_id, refs.slot.day_of_week)
    context = await _build_context(db, tenant_id, refs, slots)
    obj, outcome = await service.create_draft_entry(
        db,
        proposed,
        existing,
        context,
        academic_year=academic_year,
        relations=refs.relations(),
    )
    return service.to_response(obj, outcome.warnings)


async def assign(db: AsyncSession, tenant_id: UUID, payload: TimetableEntryCreate) -> TimetableEntryResponse:
    """Create one draft entry after validation; commits on success."""

    async def attempt() -> TimetableEntryResponse:
        school_class = await get_scoped(db, SchoolClass, payload.class_id, tenant_id, "Class")
        refs = await _resolve(db, tenant_id, school_class, payload.subject_id, payload.teacher_id, payload.time_slot_id)
        await _check_replaced(db, tenant_id, school_class.id, payload.replaces_entry_id)
        result = await _stage(
            db,
            tenant_id,
            refs,
            payload.academic_year or school_class.academic_year,
            payload.replaces_entry_id,
        )
        await db.commit()
        return result

    result = await _run_with_retry(db, attempt)
    logger.info(
        "Draft entry %s created for class %s at slot %s", result.id, result.class_id, result.time_slot_id
    )
    return result


async def update_entry(
    db: AsyncSession,
    tenant_id: UUID,
    entry_id: UUID,
    payload: TimetableEntryUpdate,
) -> TimetableEntryResponse:
    """Re-assign subject, teacher or slot of a draft entry through the same checks."""
    changes = payload.model_fields_set

    async def attempt() -> TimetableEntryResponse:
        entry = await get_scoped(db, TimetableEntry, entry_id, tenant_id, "Timetable entry")
        if entry.status != DRAFT:
            raise ServiceError(
                "Only draft entries can be edited; create a draft that replaces it instead",
                status.HTTP_409_CONFLICT,
            )
        school_class = await get_scoped(db, SchoolClass, entry.class_id, tenant_id, "Class")
        refs = await _resolve(
            db,
            tenant_id,
            school_class,
            payload.subject_id or entry.subject_id,
            payload.teacher_id if "teacher_id" in changes else entry.teacher_id,
            payload.time_slot_id or entry.time_slot_id,
        )
        if "replaces_entry_id" in changes:
            replaces_entry_id = payload.replaces_entry_id
            await _check_replaced(db, tenant_id, school_class.id, replaces_entry_id)
        elif refs.slot.id == entry.time_slot_id:
            replaces_entry_id = entry.replaces_entry_id
        else:
            # The superseded period sits on the old slot
            replaces_entry_id = None
        proposed = ProposedEntry(
            school_id=tenant_id,
            class_id=school_class.id,
            subject_id=refs.subject.id,
            teacher_id=refs.teacher.id if refs.teacher is not None else None,
            time_slot_id=refs.slot.id,
            replaces_entry_id=replaces_entry_id,
        )
        existing, slots = await _load_slice(
            db, tenant_id, school_class.id, proposed.teacher_id, refs.slot.day_of_week, exclude_ids=[entry.id]
        )
        context = await _build_context(db, tenant_id, refs, slots)
        obj, outcome = await service.update_draft_entry(
            db, entry, proposed, existing, context, relations=refs.relations()
        )
        await db.commit()
        return service.to_response(obj, outcome.warnings)

    result = await _run_with_retry(db, attempt)
    logger.info("Draft entry %s updated", entry_id)
    return result


async def replace_class_draft(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    payload: ClassDraftReplace,
) -> List[TimetableEntryResponse]:
    """Swap the class's whole draft for the given items, all or nothing.

    Each item that lands on a slot the class already has an active period in
    supersedes that period.
    """

    async def attempt() -> List[TimetableEntryResponse]:
        school_class = await get_scoped(db, SchoolClass, class_id, tenant_id, "Class", for_update=True)
        await db.execute(
            delete(TimetableEntry)
            .where(
                TimetableEntry.tenant_id == tenant_id,
                TimetableEntry.class_id == class_id,
                TimetableEntry.status == DRAFT,
            )
            .execution_options(synchronize_session="fetch")
        )
        active_by_slot = dict(
            (
                await db.execute(
                    select(TimetableEntry.time_slot_id, TimetableEntry.id).where(
                        TimetableEntry.tenant_id == tenant_id,
                        TimetableEntry.class_id == class_id,
                        TimetableEntry.status == ACTIVE,
                    )
                )
            ).all()
        )
        academic_year = payload.academic_year or school_class.academic_year

        created: List[TimetableEntryResponse] = []
        for index, item in enumerate(payload.entries):
            try:
                refs = await _resolve(db, tenant_id, school_class, item.subject_id, item.teacher_id, item.time_slot_id)
                created.append(
                    await _stage(db, tenant_id, refs, academic_year, active_by_slot.get(item.time_slot_id))
                )
            except ValidationRejected as exc:
                await db.rollback()
                raise ValidationRejected(exc.reason, exc.message, index=index)
            except StorageConflict:
                raise
            except ServiceError as exc:
                await db.rollback()
                raise ServiceError(f"Entry {index}: {exc.message}", exc.status_code)
        await db.commit()
        return created

    result = await _run_with_retry(db, attempt)
    logger.info("Replaced draft timetable of class %s with %d entries", class_id, len(result))
    return result


async def discard(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> int:
    return await service.discard_draft(db, tenant_id, class_id)


async def publish(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> List[TimetableEntryResponse]:
    return await service.publish_draft(db, tenant_id, class_id)
