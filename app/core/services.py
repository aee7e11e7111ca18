"""Tenant-scoped lookups shared by the scheduling modules."""

from typing import Optional, Type, TypeVar
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.enums import UserRole
from app.core.exceptions import ForbiddenError, NotFoundError, ServiceError

ModelT = TypeVar("ModelT")


async def get_scoped(
    db: AsyncSession,
    model: Type[ModelT],
    obj_id: UUID,
    tenant_id: UUID,
    label: str,
    *,
    for_update: bool = False,
) -> ModelT:
    """Load a row and re-check it belongs to the caller's school.

    Missing rows raise NotFoundError; rows of another school raise ForbiddenError.
    """
    obj = await db.get(model, obj_id, with_for_update=for_update or None)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    if obj.tenant_id != tenant_id:
        raise ForbiddenError(f"{label} belongs to another school")
    return obj


async def get_teacher(db: AsyncSession, teacher_id: UUID, tenant_id: UUID) -> User:
    user = await get_scoped(db, User, teacher_id, tenant_id, "Teacher")
    if user.role != UserRole.TEACHER.value:
        raise NotFoundError("Teacher not found")
    if user.status != "ACTIVE":
        raise ServiceError("Teacher is not active", status.HTTP_400_BAD_REQUEST)
    return user


async def get_optional_teacher(
    db: AsyncSession, teacher_id: Optional[UUID], tenant_id: UUID
) -> Optional[User]:
    if teacher_id is None:
        return None
    return await get_teacher(db, teacher_id, tenant_id)
