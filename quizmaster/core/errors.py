"""
Typed failures raised by the services and translated to HTTP by the API layer.
"""
from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(AppError):
    """A referenced user, quiz, question, attempt, assignment or request does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class DuplicateRequest(AppError):
    """A pending access request already exists for the (user, quiz) pair."""
    status_code = status.HTTP_409_CONFLICT
    error_type = "duplicate_request"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"


class Unauthorized(AppError):
    """The actor lacks the ownership or role the operation needs."""
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "unauthorized"


class InvalidState(AppError):
    """The entity is not in a state that allows the requested transition."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_state"


class StorageFailure(AppError):
    """The underlying transaction could not commit."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "storage_failure"
