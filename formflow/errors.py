"""Domain errors raised by the services and rendered by the API."""

from fastapi import status


class FormflowError(Exception):
    """Base class for failures that are shown to the user as a message."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(FormflowError):
    """A field constraint was violated."""

    status_code = 422
    default_message = "Invalid input"


class InvalidCredentials(FormflowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password."


class AccountPendingApproval(FormflowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Your account is awaiting approval from an administrator."


class PermissionDenied(FormflowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action."


class EmailAlreadyExists(FormflowError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "An account with this email already exists."


class NotFound(FormflowError):
    """The targeted record is missing or was deleted."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Record not found"


class BackendUnavailable(FormflowError):
    """A persistence or identity call failed; the user may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The service is temporarily unavailable. Please try again."
