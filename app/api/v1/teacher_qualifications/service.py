from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth.models import User
from app.core.enums import UserRole
from app.core.exceptions import ServiceError
from app.core.models import SchoolSubject, TeacherQualification
from app.core.services import get_scoped, get_teacher

from .schemas import QualifiedTeacher, TeacherQualificationCreate, TeacherQualificationResponse


def _to_response(q: TeacherQualification) -> TeacherQualificationResponse:
    return TeacherQualificationResponse(
        id=q.id,
        tenant_id=q.tenant_id,
        teacher_id=q.teacher_id,
        teacher_name=q.teacher.full_name if q.teacher is not None else None,
        subject_id=q.subject_id,
        subject_name=q.subject.name if q.subject is not None else None,
        created_at=q.created_at,
    )


async def create_qualification(
    db: AsyncSession,
    tenant_id: UUID,
    payload: TeacherQualificationCreate,
) -> TeacherQualificationResponse:
    teacher = await get_teacher(db, payload.teacher_id, tenant_id)
    subject = await get_scoped(db, SchoolSubject, payload.subject_id, tenant_id, "Subject")
    obj = TeacherQualification(
        tenant_id=tenant_id,
        teacher_id=teacher.id,
        subject_id=subject.id,
        teacher=teacher,
        subject=subject,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Teacher is already qualified for this subject", status.HTTP_409_CONFLICT)
    return _to_response(obj)


async def list_qualifications(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: Optional[UUID] = None,
    subject_id: Optional[UUID] = None,
) -> List[TeacherQualificationResponse]:
    stmt = (
        select(TeacherQualification)
        .options(selectinload(TeacherQualification.teacher), selectinload(TeacherQualification.subject))
        .where(TeacherQualification.tenant_id == tenant_id)
    )
    if teacher_id is not None:
        stmt = stmt.where(TeacherQualification.teacher_id == teacher_id)
    if subject_id is not None:
        stmt = stmt.where(TeacherQualification.subject_id == subject_id)
    stmt = stmt.order_by(TeacherQualification.created_at)
    result = await db.execute(stmt)
    return [_to_response(q) for q in result.scalars().all()]


async def delete_qualification(db: AsyncSession, tenant_id: UUID, qualification_id: UUID) -> None:
    """Existing timetable entries are left alone; only new assignments are checked."""
    obj = await get_scoped(db, TeacherQualification, qualification_id, tenant_id, "Qualification")
    await db.delete(obj)
    await db.commit()


async def get_qualified_teachers(db: AsyncSession, tenant_id: UUID, subject_id: UUID) -> List[QualifiedTeacher]:
    """Active teachers of the school who may be scheduled for the subject."""
    await get_scoped(db, SchoolSubject, subject_id, tenant_id, "Subject")
    result = await db.execute(
        select(User.id, User.full_name)
        .join(TeacherQualification, TeacherQualification.teacher_id == User.id)
        .where(
            TeacherQualification.tenant_id == tenant_id,
            TeacherQualification.subject_id == subject_id,
            User.role == UserRole.TEACHER.value,
            User.status == "ACTIVE",
        )
        .order_by(User.full_name)
    )
    return [QualifiedTeacher(teacher_id=tid, name=name) for tid, name in result.all()]
