"""Weekly-hour assignments (teacher x class x subject) and teacher workload."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.enums import TimetableStatus
from app.core.exceptions import ServiceError
from app.core.models import SchoolClass, SchoolSubject, TeacherClassAssignment, TeacherQualification, TimetableEntry
from app.core.services import get_scoped, get_teacher

from .schemas import (
    TeacherClassAssignmentCreate,
    TeacherClassAssignmentResponse,
    TeacherWorkloadResponse,
    WorkloadAssignment,
)

logger = logging.getLogger(__name__)


def _to_response(a: TeacherClassAssignment, warnings: Optional[List[str]] = None) -> TeacherClassAssignmentResponse:
    return TeacherClassAssignmentResponse(
        id=a.id,
        tenant_id=a.tenant_id,
        teacher_id=a.teacher_id,
        teacher_name=a.teacher.full_name if a.teacher is not None else None,
        class_id=a.class_id,
        class_name=a.school_class.name if a.school_class is not None else None,
        subject_id=a.subject_id,
        subject_name=a.subject.name if a.subject is not None else None,
        weekly_hours=a.weekly_hours,
        created_at=a.created_at,
        warnings=warnings or [],
    )


async def _total_hours(
    db: AsyncSession, tenant_id: UUID, teacher_id: UUID, exclude_id: Optional[UUID] = None
) -> int:
    stmt = select(func.coalesce(func.sum(TeacherClassAssignment.weekly_hours), 0)).where(
        TeacherClassAssignment.tenant_id == tenant_id,
        TeacherClassAssignment.teacher_id == teacher_id,
    )
    if exclude_id is not None:
        stmt = stmt.where(TeacherClassAssignment.id != exclude_id)
    return (await db.execute(stmt)).scalar_one()


def _check_hours(total: int) -> List[str]:
    """Reject totals above the maximum; warn above the warning threshold."""
    if total > settings.max_teacher_weekly_hours:
        raise ServiceError(
            f"This assignment exceeds the maximum weekly hours ({settings.max_teacher_weekly_hours}h); "
            f"total would be {total}h",
            status.HTTP_400_BAD_REQUEST,
        )
    if total > settings.teacher_workload_warning_hours:
        return [
            f"High workload: total weekly hours would be {total}h "
            f"(limit {settings.max_teacher_weekly_hours}h)"
        ]
    return []


async def create_assignment(
    db: AsyncSession,
    tenant_id: UUID,
    payload: TeacherClassAssignmentCreate,
) -> TeacherClassAssignmentResponse:
    teacher = await get_teacher(db, payload.teacher_id, tenant_id)
    cl = await get_scoped(db, SchoolClass, payload.class_id, tenant_id, "Class")
    subj = await get_scoped(db, SchoolSubject, payload.subject_id, tenant_id, "Subject")
    qualified = (
        await db.execute(
            select(TeacherQualification.id).where(
                TeacherQualification.tenant_id == tenant_id,
                TeacherQualification.teacher_id == teacher.id,
                TeacherQualification.subject_id == subj.id,
            )
        )
    ).scalar_one_or_none()
    if qualified is None:
        raise ServiceError(f"{teacher.full_name} is not qualified to teach {subj.name}", status.HTTP_400_BAD_REQUEST)
    warnings = _check_hours(await _total_hours(db, tenant_id, teacher.id) + payload.weekly_hours)

    obj = TeacherClassAssignment(
        tenant_id=tenant_id,
        teacher_id=teacher.id,
        class_id=cl.id,
        subject_id=subj.id,
        weekly_hours=payload.weekly_hours,
        teacher=teacher,
        school_class=cl,
        subject=subj,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("This teacher already teaches this subject to the class", status.HTTP_409_CONFLICT)
    if warnings:
        logger.info("Teacher %s workload warning: %s", teacher.id, warnings[0])
    return _to_response(obj, warnings)


async def list_assignments(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> List[TeacherClassAssignmentResponse]:
    stmt = (
        select(TeacherClassAssignment)
        .options(
            selectinload(TeacherClassAssignment.teacher),
            selectinload(TeacherClassAssignment.school_class),
            selectinload(TeacherClassAssignment.subject),
        )
        .where(TeacherClassAssignment.tenant_id == tenant_id)
    )
    if teacher_id is not None:
        stmt = stmt.where(TeacherClassAssignment.teacher_id == teacher_id)
    if class_id is not None:
        stmt = stmt.where(TeacherClassAssignment.class_id == class_id)
    stmt = stmt.order_by(TeacherClassAssignment.created_at)
    result = await db.execute(stmt)
    return [_to_response(a) for a in result.scalars().all()]


async def update_assignment(
    db: AsyncSession,
    tenant_id: UUID,
    assignment_id: UUID,
    weekly_hours: int,
) -> TeacherClassAssignmentResponse:
    obj = await get_scoped(db, TeacherClassAssignment, assignment_id, tenant_id, "Assignment")
    warnings = _check_hours(await _total_hours(db, tenant_id, obj.teacher_id, exclude_id=obj.id) + weekly_hours)
    obj.weekly_hours = weekly_hours
    await db.commit()
    result = await db.execute(
        select(TeacherClassAssignment)
        .options(
            selectinload(TeacherClassAssignment.teacher),
            selectinload(TeacherClassAssignment.school_class),
            selectinload(TeacherClassAssignment.subject),
        )
        .where(TeacherClassAssignment.id == obj.id)
        .execution_options(populate_existing=True)
    )
    return _to_response(result.scalar_one(), warnings)


async def delete_assignment(db: AsyncSession, tenant_id: UUID, assignment_id: UUID) -> None:
    obj = await get_scoped(db, TeacherClassAssignment, assignment_id, tenant_id, "Assignment")
    await db.delete(obj)
    await db.commit()


async def get_teacher_workload(db: AsyncSession, tenant_id: UUID, teacher_id: UUID) -> TeacherWorkloadResponse:
    teacher = await get_teacher(db, teacher_id, tenant_id)
    rows = (
        await db.execute(
            select(
                SchoolClass.id,
                SchoolClass.name,
                SchoolSubject.id,
                SchoolSubject.name,
                TeacherClassAssignment.weekly_hours,
            )
            .select_from(TeacherClassAssignment)
            .join(SchoolClass, TeacherClassAssignment.class_id == SchoolClass.id)
            .join(SchoolSubject, TeacherClassAssignment.subject_id == SchoolSubject.id)
            .where(
                TeacherClassAssignment.tenant_id == tenant_id,
                TeacherClassAssignment.teacher_id == teacher.id,
            )
            .order_by(SchoolClass.name, SchoolSubject.name)
        )
    ).all()
    assignments = [
        WorkloadAssignment(
            class_id=class_id,
            class_name=class_name,
            subject_id=subject_id,
            subject_name=subject_name,
            weekly_hours=hours or 0,
        )
        for class_id, class_name, subject_id, subject_name, hours in rows
    ]
    total = sum(a.weekly_hours for a in assignments)
    scheduled = (
        await db.execute(
            select(func.count(TimetableEntry.id)).where(
                TimetableEntry.tenant_id == tenant_id,
                TimetableEntry.teacher_id == teacher.id,
                TimetableEntry.status == TimetableStatus.active.value,
            )
        )
    ).scalar_one()

    warnings: List[str] = []
    if total > settings.max_teacher_weekly_hours:
        warnings.append(f"Total weekly hours {total}h exceed the maximum of {settings.max_teacher_weekly_hours}h")
    elif total > settings.teacher_workload_warning_hours:
        warnings.append(f"High workload: {total}h of {settings.max_teacher_weekly_hours}h")

    return TeacherWorkloadResponse(
        teacher_id=teacher.id,
        teacher_name=teacher.full_name,
        total_weekly_hours=total,
        max_weekly_hours=settings.max_teacher_weekly_hours,
        assignment_count=len(assignments),
        class_count=len({a.class_id for a in assignments}),
        scheduled_periods=scheduled,
        assignments=assignments,
        warnings=warnings,
    )
