"""Weekly windows in which a teacher may be scheduled. Windows may touch or overlap."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Text, Time, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class TeacherAvailability(Base):
    __tablename__ = "teacher_availability"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_teacher_availability_start_before_end"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_teacher_availability_day_of_week"),
        Index("ix_teacher_availability_teacher_day", "tenant_id", "teacher_id", "day_of_week"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 1=Monday .. 7=Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    teacher = relationship("User", foreign_keys=[teacher_id])
