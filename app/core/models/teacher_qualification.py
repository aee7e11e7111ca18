"""Teacher qualification (year-agnostic). Defines which subjects a teacher may be scheduled for."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class TeacherQualification(Base):
    __tablename__ = "teacher_qualifications"
    __table_args__ = (
        UniqueConstraint("tenant_id", "teacher_id", "subject_id", name="uq_teacher_qualification"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    teacher = relationship("User", foreign_keys=[teacher_id])
    subject = relationship("SchoolSubject")
