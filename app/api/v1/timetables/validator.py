"""
Conflict validation for proposed timetable assignments.

Pure decision logic: every fact a check needs is handed in through the proposal,
the snapshot of existing entries and the ValidationContext. Nothing here touches
the database, the clock or random state, so identical inputs give identical outcomes.

Checks run in a fixed order and stop at the first hard failure:
    1. qualification      -> NOT_QUALIFIED
    2. availability       -> TEACHER_UNAVAILABLE
    3. class collision    -> CLASS_OVERLAP
    4. teacher collision  -> TEACHER_DOUBLE_BOOKED
    5. weekly-hour budget -> warning, or BUDGET_EXCEEDED when strict
"""

from datetime import time
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import RejectionReason, TimetableStatus
from app.core.schemas import describe_window

_SCHEDULED_STATUSES = (TimetableStatus.draft.value, TimetableStatus.active.value)


class ProposedEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    school_id: UUID
    class_id: UUID
    subject_id: UUID
    teacher_id: Optional[UUID] = None
    time_slot_id: UUID
    # Entry superseded by this proposal (ignored by the collision checks)
    replaces_entry_id: Optional[UUID] = None


class EntrySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    school_id: UUID
    class_id: UUID
    subject_id: UUID
    teacher_id: Optional[UUID] = None
    time_slot_id: UUID
    status: str
    class_name: Optional[str] = None


class SlotWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    name: str = ""

    def describe(self) -> str:
        label = describe_window(self.day_of_week, self.start_time, self.end_time)
        return f"{label} ({self.name})" if self.name else label

    def overlaps(self, other: "SlotWindow") -> bool:
        return (
            self.day_of_week == other.day_of_week
            and self.start_time < other.end_time
            and other.start_time < self.end_time
        )


class AvailabilityWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    day_of_week: int
    start_time: time
    end_time: time

    def contains(self, slot: SlotWindow) -> bool:
        return (
            self.day_of_week == slot.day_of_week
            and self.start_time <= slot.start_time
            and slot.end_time <= self.end_time
        )


class ValidationPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    require_explicit_availability: bool
    strict_weekly_hours: bool = False


class ValidationContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    slot: SlotWindow
    policy: ValidationPolicy
    qualified_subject_ids: FrozenSet[UUID] = frozenset()
    availability: Tuple[AvailabilityWindow, ...] = ()
    # Slots referenced by existing entries, for overlap checks across templates
    slots: Dict[UUID, SlotWindow] = Field(default_factory=dict)
    # Configured periods per week for (teacher, class, subject); None = no budget
    weekly_hours: Optional[int] = None
    teacher_name: Optional[str] = None
    subject_name: Optional[str] = None


class ValidationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: Optional[RejectionReason] = None
    detail: str = ""
    warnings: Tuple[str, ...] = ()

    @classmethod
    def accept(cls, warnings: Sequence[str] = ()) -> "ValidationOutcome":
        return cls(accepted=True, warnings=tuple(warnings))

    @classmethod
    def reject(cls, reason: RejectionReason, detail: str) -> "ValidationOutcome":
        return cls(accepted=False, reason=reason, detail=detail)


def validate(
    proposed: ProposedEntry,
    existing: Sequence[EntrySnapshot],
    context: ValidationContext,
) -> ValidationOutcome:
    """Decide whether the proposed assignment may be written as a draft."""
    teacher_label = context.teacher_name or (str(proposed.teacher_id) if proposed.teacher_id else "")
    relevant = [
        e
        for e in existing
        if e.school_id == proposed.school_id
        and e.status in _SCHEDULED_STATUSES
        and e.id != proposed.replaces_entry_id
    ]

    if proposed.teacher_id is not None:
        if proposed.subject_id not in context.qualified_subject_ids:
            subject_label = context.subject_name or str(proposed.subject_id)
            return ValidationOutcome.reject(
                RejectionReason.NOT_QUALIFIED,
                f"{teacher_label} is not qualified to teach {subject_label}",
            )

        rejection = _check_availability(context, teacher_label)
        if rejection is not None:
            return rejection

    for entry in relevant:
        if entry.class_id == proposed.class_id and entry.time_slot_id == proposed.time_slot_id:
            class_label = entry.class_name or "This class"
            return ValidationOutcome.reject(
                RejectionReason.CLASS_OVERLAP,
                f"{class_label} already has a period at {context.slot.describe()} ({entry.status})",
            )

    if proposed.teacher_id is None:
        return ValidationOutcome.accept()

    for entry in relevant:
        if entry.teacher_id != proposed.teacher_id:
            continue
        other_slot = context.slots.get(entry.time_slot_id)
        if entry.time_slot_id == proposed.time_slot_id or (
            other_slot is not None and other_slot.overlaps(context.slot)
        ):
            where = (other_slot or context.slot).describe()
            class_label = entry.class_name or str(entry.class_id)
            return ValidationOutcome.reject(
                RejectionReason.TEACHER_DOUBLE_BOOKED,
                f"{teacher_label} is already booked for {class_label} at {where} ({entry.status})",
            )

    warnings: List[str] = []
    if context.weekly_hours is not None:
        scheduled = sum(
            1
            for e in relevant
            if e.status == TimetableStatus.draft.value
            and e.teacher_id == proposed.teacher_id
            and e.class_id == proposed.class_id
            and e.subject_id == proposed.subject_id
        )
        if scheduled + 1 > context.weekly_hours:
            message = (
                f"{teacher_label} would teach {scheduled + 1} periods of "
                f"{context.subject_name or 'this subject'} a week; the assignment allows {context.weekly_hours}"
            )
            if context.policy.strict_weekly_hours:
                return ValidationOutcome.reject(RejectionReason.BUDGET_EXCEEDED, message)
            warnings.append(message)

    return ValidationOutcome.accept(warnings)


def _check_availability(context: ValidationContext, teacher_label: str) -> Optional[ValidationOutcome]:
    if not context.availability:
        if not context.policy.require_explicit_availability:
            return None
        return ValidationOutcome.reject(
            RejectionReason.TEACHER_UNAVAILABLE,
            f"{teacher_label} has no availability recorded",
        )
    if any(window.contains(context.slot) for window in context.availability):
        return None
    return ValidationOutcome.reject(
        RejectionReason.TEACHER_UNAVAILABLE,
        f"{teacher_label} is not available {context.slot.describe()}",
    )
