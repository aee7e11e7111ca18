from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    TEACHER = "TEACHER"
    PARENT = "PARENT"
    STUDENT = "STUDENT"


class TimetableStatus(str, Enum):
    draft = "draft"
    active = "active"


class RejectionReason(str, Enum):
    NOT_QUALIFIED = "NOT_QUALIFIED"
    TEACHER_UNAVAILABLE = "TEACHER_UNAVAILABLE"
    CLASS_OVERLAP = "CLASS_OVERLAP"
    TEACHER_DOUBLE_BOOKED = "TEACHER_DOUBLE_BOOKED"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"


class Capability(str, Enum):
    TIMETABLE_READ = "TIMETABLE_READ"
    TIMETABLE_READ_OWN = "TIMETABLE_READ_OWN"
    TIMETABLE_WRITE = "TIMETABLE_WRITE"
    TIMETABLE_DELETE_OWN = "TIMETABLE_DELETE_OWN"
    TIMETABLE_PUBLISH = "TIMETABLE_PUBLISH"
    TIME_SLOTS_READ = "TIME_SLOTS_READ"
    TIME_SLOTS_MANAGE = "TIME_SLOTS_MANAGE"
    QUALIFICATIONS_READ = "QUALIFICATIONS_READ"
    QUALIFICATIONS_MANAGE = "QUALIFICATIONS_MANAGE"
    AVAILABILITY_READ = "AVAILABILITY_READ"
    AVAILABILITY_MANAGE = "AVAILABILITY_MANAGE"
    AVAILABILITY_MANAGE_OWN = "AVAILABILITY_MANAGE_OWN"
    WORKLOAD_READ = "WORKLOAD_READ"
    WORKLOAD_READ_OWN = "WORKLOAD_READ_OWN"
