from typing import Dict, FrozenSet

from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import Capability, UserRole


_ADMIN_CAPABILITIES: FrozenSet[Capability] = frozenset(Capability)

ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.SUPER_ADMIN: _ADMIN_CAPABILITIES,
    UserRole.SCHOOL_ADMIN: _ADMIN_CAPABILITIES,
    UserRole.TEACHER: frozenset(
        {
            Capability.TIMETABLE_READ,
            Capability.TIMETABLE_READ_OWN,
            Capability.TIMETABLE_DELETE_OWN,
            Capability.TIME_SLOTS_READ,
            Capability.AVAILABILITY_READ,
            Capability.AVAILABILITY_MANAGE_OWN,
            Capability.WORKLOAD_READ_OWN,
        }
    ),
    UserRole.PARENT: frozenset({Capability.TIMETABLE_READ}),
    UserRole.STUDENT: frozenset({Capability.TIMETABLE_READ}),
}


def has_capability(user: CurrentUser, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(user.role, frozenset())


def require_capability(capability: Capability):
    """
    Dependency factory to enforce a capability from the role table.

    Example:
        Depends(require_capability(Capability.TIMETABLE_PUBLISH))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_capability(current_user, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


def require_any_capability(*capabilities: Capability):
    """Pass when the role holds at least one of the capabilities; the handler narrows further
    (e.g. AVAILABILITY_MANAGE for any teacher vs AVAILABILITY_MANAGE_OWN for oneself)."""

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not any(has_capability(current_user, c) for c in capabilities):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker
