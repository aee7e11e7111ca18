import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Tenant(Base):
    """
    School (tenant) in the multi-tenant platform.

    Owned by the surrounding administration app; the scheduling engine only reads it
    and uses its id as the scope of every row it touches.
    """

    __tablename__ = "tenants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_name = Column(String(255), nullable=False)
    timezone = Column(String(100), nullable=False, default="UTC")
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")
