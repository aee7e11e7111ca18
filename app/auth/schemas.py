from uuid import UUID

from pydantic import BaseModel

from app.core.enums import UserRole


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for capability checks.
    tenant_id is the caller's school; every read and write is scoped to it.
    """

    id: UUID
    tenant_id: UUID
    role: UserRole
    full_name: str
