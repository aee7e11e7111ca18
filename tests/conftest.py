import os

# Settings are read at import time; give the test run a complete environment.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-unused.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("REQUIRE_EXPLICIT_AVAILABILITY", "false")

from datetime import time
from types import SimpleNamespace
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.auth.models import User
from app.auth.security import create_access_token
from app.core.enums import UserRole
from app.core.models import (
    SchoolClass,
    SchoolSubject,
    TeacherQualification,
    Tenant,
    TimeSlot,
    TimeSlotTemplate,
)
from app.db.session import create_tables, get_db
from app.main import app


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(
        subject={"user_id": str(user.id), "tenant_id": str(user.tenant_id), "role": user.role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def engine(tmp_path):
    """File-backed SQLite so separate sessions really run concurrently."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'timetable.db'}",
        echo=False,
        connect_args={"timeout": 15},
    )
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; one session per request like get_db."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def school(session_factory) -> SimpleNamespace:
    """One school with an admin, two teachers qualified for Mathematics, two classes and a Monday grid.

    Period 1 08:00-08:50, Period 2 08:50-09:40, Break 09:40-10:00.
    Built in its own session so rollbacks in a test session never expire these objects.
    """
    async with session_factory() as db_session:
        return await _seed_school(db_session)


async def _seed_school(db_session: AsyncSession) -> SimpleNamespace:
    tenant = Tenant(organization_name="Green Valley School")
    db_session.add(tenant)
    await db_session.flush()

    admin = User(tenant_id=tenant.id, full_name="Asha Admin", email="admin@gv.test", role=UserRole.SCHOOL_ADMIN.value)
    teacher = User(tenant_id=tenant.id, full_name="Ravi Kumar", email="ravi@gv.test", role=UserRole.TEACHER.value)
    teacher2 = User(tenant_id=tenant.id, full_name="Meera Nair", email="meera@gv.test", role=UserRole.TEACHER.value)
    parent = User(tenant_id=tenant.id, full_name="Pat Parent", email="parent@gv.test", role=UserRole.PARENT.value)
    math = SchoolSubject(tenant_id=tenant.id, name="Mathematics", code="MATH")
    science = SchoolSubject(tenant_id=tenant.id, name="Science", code="SCI")
    template = TimeSlotTemplate(tenant_id=tenant.id, name="Regular Week", is_default=True)
    db_session.add_all([admin, teacher, teacher2, parent, math, science, template])
    await db_session.flush()

    slot1 = TimeSlot(
        tenant_id=tenant.id, template_id=template.id, day_of_week=1,
        start_time=time(8, 0), end_time=time(8, 50), name="Period 1",
    )
    slot2 = TimeSlot(
        tenant_id=tenant.id, template_id=template.id, day_of_week=1,
        start_time=time(8, 50), end_time=time(9, 40), name="Period 2",
    )
    break_slot = TimeSlot(
        tenant_id=tenant.id, template_id=template.id, day_of_week=1,
        start_time=time(9, 40), end_time=time(10, 0), name="Break", is_break=True,
    )
    class_a = SchoolClass(
        tenant_id=tenant.id, name="Grade 5A", academic_year="2025-2026", time_slot_template_id=template.id
    )
    class_b = SchoolClass(
        tenant_id=tenant.id, name="Grade 5B", academic_year="2025-2026", time_slot_template_id=template.id
    )
    db_session.add_all([slot1, slot2, break_slot, class_a, class_b])
    db_session.add_all(
        [
            TeacherQualification(tenant_id=tenant.id, teacher_id=teacher.id, subject_id=math.id),
            TeacherQualification(tenant_id=tenant.id, teacher_id=teacher2.id, subject_id=math.id),
        ]
    )
    await db_session.commit()

    return SimpleNamespace(
        tenant=tenant,
        admin=admin,
        teacher=teacher,
        teacher2=teacher2,
        parent=parent,
        math=math,
        science=science,
        template=template,
        slot1=slot1,
        slot2=slot2,
        break_slot=break_slot,
        class_a=class_a,
        class_b=class_b,
    )


@pytest.fixture()
async def other_school(session_factory) -> SimpleNamespace:
    async with session_factory() as db_session:
        return await _seed_other_school(db_session)


async def _seed_other_school(db_session: AsyncSession) -> SimpleNamespace:
    tenant = Tenant(organization_name="Hill Top Academy")
    db_session.add(tenant)
    await db_session.flush()
    admin = User(tenant_id=tenant.id, full_name="Other Admin", email="admin@ht.test", role=UserRole.SCHOOL_ADMIN.value)
    school_class = SchoolClass(tenant_id=tenant.id, name="Grade 1")
    db_session.add_all([admin, school_class])
    await db_session.commit()
    return SimpleNamespace(tenant=tenant, admin=admin, school_class=school_class)
