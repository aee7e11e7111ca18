from app.core.models.tenant import Tenant
from app.core.models.class_model import SchoolClass
from app.core.models.school_subject import SchoolSubject
from app.core.models.time_slot import TimeSlot, TimeSlotTemplate
from app.core.models.teacher_qualification import TeacherQualification
from app.core.models.teacher_class_assignment import TeacherClassAssignment
from app.core.models.teacher_availability import TeacherAvailability
from app.core.models.timetable import TimetableEntry

__all__ = [
    "Tenant",
    "SchoolClass",
    "SchoolSubject",
    "TimeSlot",
    "TimeSlotTemplate",
    "TeacherQualification",
    "TeacherClassAssignment",
    "TeacherAvailability",
    "TimetableEntry",
]
