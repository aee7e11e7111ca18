"""Time slot templates and their slots. A class is bound to one template; timetable entries reference slots."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


class TimeSlotTemplate(Base):
    """Named, reusable weekly grid of slots. At most one is_default per school."""

    __tablename__ = "time_slot_templates"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_time_slot_template_tenant_name"),
        Index(
            "uq_time_slot_template_tenant_default",
            "tenant_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    slots = relationship("TimeSlot", back_populates="template", cascade="all, delete-orphan")


class TimeSlot(Base):
    __tablename__ = "time_slots"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_time_slot_start_before_end"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_time_slot_day_of_week"),
        Index("ix_time_slots_template_day", "template_id", "day_of_week"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    template_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("time_slot_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_of_week = Column(Integer, nullable=False)  # 1=Monday .. 7=Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    name = Column(String(100), nullable=False)
    is_break = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    template = relationship("TimeSlotTemplate", back_populates="slots")
