"""Pydantic schemas for API requests and responses."""

from formflow.schemas.auth import (
    AuthResponse,
    RegisterResponse,
    SessionResponse,
    UserLogin,
    UserRegister,
)
from formflow.schemas.submission import (
    DateRange,
    Submission,
    SubmissionBulkDelete,
    SubmissionDeleteResponse,
    SubmissionUpdate,
)
from formflow.schemas.user import User, UserEmailUpdate, UserPasswordUpdate, UserResponse

__all__ = [
    "UserRegister",
    "UserLogin",
    "RegisterResponse",
    "SessionResponse",
    "AuthResponse",
    "User",
    "UserResponse",
    "UserEmailUpdate",
    "UserPasswordUpdate",
    "Submission",
    "SubmissionUpdate",
    "SubmissionBulkDelete",
    "SubmissionDeleteResponse",
    "DateRange",
]
