"""Tenant-scoped classes (e.g. Nursery, 1st, 10th A). Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class SchoolClass(Base):
    """Tenant-scoped class master. Bound to exactly one time-slot template once scheduled."""

    __tablename__ = "classes"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_class_tenant_name"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(50), nullable=False)
    academic_year = Column(String(20), nullable=True)  # e.g. "2025-2026"
    time_slot_template_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("time_slot_templates.id", ondelete="RESTRICT"),
        nullable=True,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", backref="school_classes")
    time_slot_template = relationship("TimeSlotTemplate", foreign_keys=[time_slot_template_id])
