from typing import Optional

from fastapi import status

from app.core.enums import RejectionReason


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def detail(self):
        return self.message


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ForbiddenError(ServiceError):
    def __init__(self, message: str = "Resource belongs to another school") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NothingToDiscard(NotFoundError):
    def __init__(self) -> None:
        super().__init__("No draft timetable found to discard")


class NothingToPublish(NotFoundError):
    def __init__(self) -> None:
        super().__init__("No draft timetable found to publish")


# Collisions are conflicts; the remaining reasons are bad requests.
_CONFLICT_REASONS = (RejectionReason.CLASS_OVERLAP, RejectionReason.TEACHER_DOUBLE_BOOKED)


class ValidationRejected(ServiceError):
    """A proposed assignment failed one of the conflict checks."""

    def __init__(self, reason: RejectionReason, message: str, index: Optional[int] = None) -> None:
        code = status.HTTP_409_CONFLICT if reason in _CONFLICT_REASONS else status.HTTP_400_BAD_REQUEST
        super().__init__(message, code)
        self.reason = reason
        # Position of the rejected item inside a batch request
        self.index = index

    @property
    def detail(self):
        body = {"reason": self.reason.value, "message": self.message}
        if self.index is not None:
            body["index"] = self.index
        return body


class StorageConflict(ServiceError):
    """A uniqueness constraint rejected a write that passed validation (lost race)."""

    def __init__(self, message: str, reason: RejectionReason) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.reason = reason
