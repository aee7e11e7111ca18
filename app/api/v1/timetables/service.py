"""
Timetable assignment store: draft/active entries and their bulk status transitions.

Single-entry writes only flush; the workflow commits (or rolls back) so several
writes can share one transaction. Discard and publish are complete transactions.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from app.auth.models import User
from app.core.enums import RejectionReason, TimetableStatus
from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    NothingToDiscard,
    NothingToPublish,
    StorageConflict,
    ValidationRejected,
)
from app.core.models import SchoolClass, TimeSlot, TimetableEntry
from app.core.schemas import describe_window
from app.core.services import get_scoped

from .schemas import TeacherScheduleResponse, TimetableEntryResponse
from .validator import EntrySnapshot, ProposedEntry, ValidationContext, ValidationOutcome, validate

logger = logging.getLogger(__name__)

DRAFT = TimetableStatus.draft.value
ACTIVE = TimetableStatus.active.value


def to_response(e: TimetableEntry, warnings: Sequence[str] = ()) -> TimetableEntryResponse:
    """Relationships (school_class, subject, teacher, time_slot) must already be loaded."""
    slot = e.time_slot
    return TimetableEntryResponse(
        id=e.id,
        tenant_id=e.tenant_id,
        class_id=e.class_id,
        class_name=e.school_class.name if e.school_class is not None else None,
        subject_id=e.subject_id,
        subject_name=e.subject.name if e.subject is not None else None,
        teacher_id=e.teacher_id,
        teacher_name=e.teacher.full_name if e.teacher is not None else None,
        time_slot_id=e.time_slot_id,
        slot_name=slot.name,
        day_of_week=slot.day_of_week,
        start_time=slot.start_time,
        end_time=slot.end_time,
        replaces_entry_id=e.replaces_entry_id,
        academic_year=e.academic_year,
        status=e.status,
        created_at=e.created_at,
        updated_at=e.updated_at,
        warnings=list(warnings),
    )


def _with_relations(stmt):
    return stmt.execution_options(populate_existing=True).options(
        selectinload(TimetableEntry.school_class),
        selectinload(TimetableEntry.subject),
        selectinload(TimetableEntry.teacher),
        selectinload(TimetableEntry.time_slot),
    )


def conflict_reason_from_integrity_error(exc: IntegrityError) -> RejectionReason:
    """Map a unique-index violation to the collision it represents."""
    if "teacher" in str(exc.orig).lower():
        return RejectionReason.TEACHER_DOUBLE_BOOKED
    return RejectionReason.CLASS_OVERLAP


def _reject(outcome: ValidationOutcome, proposed: ProposedEntry) -> ValidationRejected:
    logger.info(
        "Assignment rejected: reason=%s class=%s slot=%s teacher=%s detail=%s",
        outcome.reason.value,
        proposed.class_id,
        proposed.time_slot_id,
        proposed.teacher_id,
        outcome.detail,
    )
    return ValidationRejected(outcome.reason, outcome.detail)


async def _flush_or_conflict(db: AsyncSession, proposed: ProposedEntry) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        reason = conflict_reason_from_integrity_error(exc)
        logger.warning(
            "Unique index rejected timetable write: reason=%s class=%s slot=%s teacher=%s",
            reason.value,
            proposed.class_id,
            proposed.time_slot_id,
            proposed.teacher_id,
        )
        raise StorageConflict("Another request booked this slot at the same time", reason)


async def create_draft_entry(
    db: AsyncSession,
    proposed: ProposedEntry,
    existing: Sequence[EntrySnapshot],
    context: ValidationContext,
    *,
    academic_year: Optional[str] = None,
    relations: Optional[Dict] = None,
) -> Tuple[TimetableEntry, ValidationOutcome]:
    """Validate and insert one draft row. No write happens on rejection.

    relations optionally pre-populates school_class/subject/teacher/time_slot on the new
    row so it can be rendered without another query.
    """
    outcome = validate(proposed, existing, context)
    if not outcome.accepted:
        raise _reject(outcome, proposed)
    obj = TimetableEntry(
        tenant_id=proposed.school_id,
        class_id=proposed.class_id,
        subject_id=proposed.subject_id,
        teacher_id=proposed.teacher_id,
        time_slot_id=proposed.time_slot_id,
        replaces_entry_id=proposed.replaces_entry_id,
        academic_year=academic_year,
        status=DRAFT,
        **(relations or {}),
    )
    db.add(obj)
    await _flush_or_conflict(db, proposed)
    return obj, outcome


async def update_draft_entry(
    db: AsyncSession,
    entry: TimetableEntry,
    proposed: ProposedEntry,
    existing: Sequence[EntrySnapshot],
    context: ValidationContext,
    *,
    relations: Optional[Dict] = None,
) -> Tuple[TimetableEntry, ValidationOutcome]:
    """Re-validate a draft row against its new values (the row itself excluded) and apply them."""
    outcome = validate(proposed, existing, context)
    if not outcome.accepted:
        raise _reject(outcome, proposed)
    entry.subject_id = proposed.subject_id
    entry.teacher_id = proposed.teacher_id
    entry.time_slot_id = proposed.time_slot_id
    entry.replaces_entry_id = proposed.replaces_entry_id
    entry.updated_at = datetime.utcnow()
    for key, value in (relations or {}).items():
        setattr(entry, key, value)
    await _flush_or_conflict(db, proposed)
    return entry, outcome


async def get_entry(db: AsyncSession, tenant_id: UUID, entry_id: UUID) -> TimetableEntryResponse:
    result = await db.execute(_with_relations(select(TimetableEntry).where(TimetableEntry.id == entry_id)))
    obj = result.scalar_one_or_none()
    if obj is None:
        raise NotFoundError("Timetable entry not found")
    if obj.tenant_id != tenant_id:
        raise ForbiddenError("Timetable entry belongs to another school")
    return to_response(obj)


async def list_entries(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: Optional[UUID] = None,
    status: Optional[TimetableStatus] = None,
) -> List[TimetableEntryResponse]:
    stmt = (
        select(TimetableEntry)
        .join(TimeSlot, TimetableEntry.time_slot_id == TimeSlot.id)
        .where(TimetableEntry.tenant_id == tenant_id)
    )
    if class_id is not None:
        stmt = stmt.where(TimetableEntry.class_id == class_id)
    if status is not None:
        stmt = stmt.where(TimetableEntry.status == status.value)
    stmt = stmt.order_by(TimeSlot.day_of_week, TimeSlot.start_time, TimetableEntry.status)
    result = await db.execute(_with_relations(stmt))
    return [to_response(e) for e in result.scalars().all()]


async def get_teacher_schedule(db: AsyncSession, tenant_id: UUID, teacher_id: UUID) -> TeacherScheduleResponse:
    """A teacher's published periods across all classes, grouped by day."""
    stmt = (
        select(TimetableEntry)
        .join(TimeSlot, TimetableEntry.time_slot_id == TimeSlot.id)
        .where(
            TimetableEntry.tenant_id == tenant_id,
            TimetableEntry.teacher_id == teacher_id,
            TimetableEntry.status == ACTIVE,
        )
        .order_by(TimeSlot.day_of_week, TimeSlot.start_time)
    )
    result = await db.execute(_with_relations(stmt))
    schedule = [to_response(e) for e in result.scalars().all()]
    by_day: Dict[int, List[TimetableEntryResponse]] = defaultdict(list)
    for item in schedule:
        by_day[item.day_of_week].append(item)
    return TeacherScheduleResponse(schedule=schedule, schedule_by_day=dict(by_day), total_periods=len(schedule))


async def delete_entry(
    db: AsyncSession,
    tenant_id: UUID,
    entry_id: UUID,
    *,
    owner_id: Optional[UUID] = None,
) -> None:
    """Remove one entry regardless of status. owner_id restricts the delete to that teacher's periods."""
    obj = await get_scoped(db, TimetableEntry, entry_id, tenant_id, "Timetable entry")
    if owner_id is not None and obj.teacher_id != owner_id:
        raise ForbiddenError("You can only remove your own timetable entries")
    await db.delete(obj)
    await db.commit()
    logger.info("Deleted %s timetable entry %s (class %s)", obj.status, entry_id, obj.class_id)


async def discard_draft(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> int:
    """Delete every draft row of the class in one statement. Returns the count deleted."""
    await get_scoped(db, SchoolClass, class_id, tenant_id, "Class")
    result = await db.execute(
        delete(TimetableEntry)
        .where(
            TimetableEntry.tenant_id == tenant_id,
            TimetableEntry.class_id == class_id,
            TimetableEntry.status == DRAFT,
        )
        .execution_options(synchronize_session="fetch")
    )
    count = result.rowcount or 0
    if count == 0:
        await db.rollback()
        raise NothingToDiscard()
    await db.commit()
    logger.info("Discarded %d draft timetable entries for class %s", count, class_id)
    return count


async def _find_publish_conflict(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> Optional[str]:
    """First draft of the class whose teacher is already active in another class at an
    overlapping time. Slots of different templates overlap when their times intersect."""
    other = aliased(TimetableEntry)
    other_slot = aliased(TimeSlot)
    other_class = aliased(SchoolClass)
    stmt = (
        select(User.full_name, TimeSlot.day_of_week, TimeSlot.start_time, TimeSlot.end_time, TimeSlot.name, other_class.name)
        .select_from(TimetableEntry)
        .join(TimeSlot, TimeSlot.id == TimetableEntry.time_slot_id)
        .join(
            other,
            (other.tenant_id == TimetableEntry.tenant_id)
            & (other.teacher_id == TimetableEntry.teacher_id),
        )
        .join(other_slot, other_slot.id == other.time_slot_id)
        .join(User, User.id == TimetableEntry.teacher_id)
        .join(other_class, other_class.id == other.class_id)
        .where(
            TimetableEntry.tenant_id == tenant_id,
            TimetableEntry.class_id == class_id,
            TimetableEntry.status == DRAFT,
            other.status == ACTIVE,
            other.class_id != class_id,
            other_slot.day_of_week == TimeSlot.day_of_week,
            other_slot.start_time < TimeSlot.end_time,
            TimeSlot.start_time < other_slot.end_time,
        )
        .order_by(TimeSlot.day_of_week, TimeSlot.start_time)
        .limit(1)
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        return None
    teacher_name, day, start, end, slot_name, other_class_name = row
    return (
        f"{teacher_name} is already teaching {other_class_name} at "
        f"{describe_window(day, start, end)} ({slot_name})"
    )


async def publish_draft(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> List[TimetableEntryResponse]:
    """Replace the class's active set with its drafts, all or nothing."""
    # Row lock on the class serialises concurrent publishes of the same class (PostgreSQL).
    await get_scoped(db, SchoolClass, class_id, tenant_id, "Class", for_update=True)

    draft_count = (
        await db.execute(
            select(func.count(TimetableEntry.id)).where(
                TimetableEntry.tenant_id == tenant_id,
                TimetableEntry.class_id == class_id,
                TimetableEntry.status == DRAFT,
            )
        )
    ).scalar_one()
    if draft_count == 0:
        await db.rollback()
        raise NothingToPublish()

    conflict = await _find_publish_conflict(db, tenant_id, class_id)
    if conflict is not None:
        await db.rollback()
        logger.info("Publish of class %s rejected: %s", class_id, conflict)
        raise ValidationRejected(RejectionReason.TEACHER_DOUBLE_BOOKED, conflict)

    try:
        await db.execute(
            delete(TimetableEntry)
            .where(
                TimetableEntry.tenant_id == tenant_id,
                TimetableEntry.class_id == class_id,
                TimetableEntry.status == ACTIVE,
            )
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(
            update(TimetableEntry)
            .where(
                TimetableEntry.tenant_id == tenant_id,
                TimetableEntry.class_id == class_id,
                TimetableEntry.status == DRAFT,
            )
            .values(status=ACTIVE, replaces_entry_id=None, updated_at=datetime.utcnow())
            .execution_options(synchronize_session="fetch")
        )
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        reason = conflict_reason_from_integrity_error(exc)
        logger.warning("Publish of class %s lost a storage race (%s)", class_id, reason.value)
        raise ValidationRejected(reason, "A concurrent change booked the same teacher or slot; publish was not applied")

    logger.info("Published %d timetable entries for class %s", draft_count, class_id)
    return await list_entries(db, tenant_id, class_id=class_id, status=TimetableStatus.active)
