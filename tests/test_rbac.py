from uuid import uuid4

import pytest

from app.auth.rbac import ROLE_CAPABILITIES, has_capability
from app.auth.schemas import CurrentUser
from app.core.enums import Capability, UserRole


def _user(role: UserRole) -> CurrentUser:
    return CurrentUser(id=uuid4(), tenant_id=uuid4(), role=role, full_name="Someone")


def test_every_role_has_an_entry() -> None:
    assert set(ROLE_CAPABILITIES) == set(UserRole)


@pytest.mark.parametrize("role", [UserRole.SUPER_ADMIN, UserRole.SCHOOL_ADMIN])
def test_admins_hold_every_capability(role: UserRole) -> None:
    user = _user(role)
    assert all(has_capability(user, c) for c in Capability)


def test_teacher_capabilities_are_self_scoped() -> None:
    teacher = _user(UserRole.TEACHER)
    assert has_capability(teacher, Capability.TIMETABLE_READ_OWN)
    assert has_capability(teacher, Capability.AVAILABILITY_MANAGE_OWN)
    assert has_capability(teacher, Capability.WORKLOAD_READ_OWN)
    assert not has_capability(teacher, Capability.TIMETABLE_WRITE)
    assert not has_capability(teacher, Capability.TIMETABLE_PUBLISH)
    assert not has_capability(teacher, Capability.AVAILABILITY_MANAGE)
    assert not has_capability(teacher, Capability.WORKLOAD_READ)


@pytest.mark.parametrize("role", [UserRole.PARENT, UserRole.STUDENT])
def test_families_only_read_timetables(role: UserRole) -> None:
    user = _user(role)
    granted = {c for c in Capability if has_capability(user, c)}
    assert granted == {Capability.TIMETABLE_READ}
