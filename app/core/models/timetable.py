"""Timetable entry (source of truth). One period: class x subject x teacher x time slot, draft or active."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class TimetableEntry(Base):
    __tablename__ = "timetable_entries"
    __table_args__ = (
        # A class holds one period per slot inside each of the draft and active sets.
        Index(
            "uq_timetable_entry_class_slot_status",
            "tenant_id", "class_id", "time_slot_id", "status",
            unique=True,
        ),
        # Same for a teacher; NULL teacher_id (unassigned period) never collides.
        Index(
            "uq_timetable_entry_teacher_slot_status",
            "tenant_id", "teacher_id", "time_slot_id", "status",
            unique=True,
        ),
        CheckConstraint("status IN ('draft', 'active')", name="ck_timetable_entry_status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True)
    time_slot_id = Column(Uuid(as_uuid=True), ForeignKey("time_slots.id", ondelete="RESTRICT"), nullable=False)
    # Active entry of the same class this draft supersedes; cleared on publish
    replaces_entry_id = Column(
        Uuid(as_uuid=True), ForeignKey("timetable_entries.id", ondelete="SET NULL"), nullable=True
    )
    # Label only; a class has one draft and one active set whatever the year
    academic_year = Column(String(20), nullable=True)
    status = Column(String(10), nullable=False, default="draft")  # draft | active
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    subject = relationship("SchoolSubject")
    teacher = relationship("User", foreign_keys=[teacher_id])
    time_slot = relationship("TimeSlot")
