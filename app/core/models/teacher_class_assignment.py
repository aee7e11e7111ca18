import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class TeacherClassAssignment(Base):
    """Teacher teaches subject to class for weekly_hours periods a week.
    weekly_hours is the budget the scheduler checks drafts against.
    """

    __tablename__ = "teacher_class_assignments"
    __table_args__ = (
        UniqueConstraint("teacher_id", "class_id", "subject_id", name="uq_teacher_class_subject"),
        CheckConstraint("weekly_hours >= 0", name="ck_teacher_class_assignment_hours"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False)
    weekly_hours = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    teacher = relationship("User", foreign_keys=[teacher_id])
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    subject = relationship("SchoolSubject", foreign_keys=[subject_id])
