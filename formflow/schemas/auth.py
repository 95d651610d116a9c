"""Authentication schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from formflow.models.enums import SessionState, UserRole


class UserRegister(BaseModel):
    """User registration request."""

    name: str = Field(..., min_length=2, max_length=255)
    division: str = Field(..., min_length=1, max_length=255)
    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=6, max_length=128)


class UserLogin(BaseModel):
    """User login request."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class RegisterResponse(BaseModel):
    """Registration outcome; the account still needs approval."""

    id: str
    status: str = "pending"
    message: str = "Your account is now awaiting approval from an administrator."


class SessionResponse(BaseModel):
    """Current session information."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    role: UserRole
    state: SessionState
    email: str
    name: str
    division: str
    expires_at: datetime


class AuthResponse(BaseModel):
    """Authentication response with token and session info."""

    access_token: str
    token_type: str = "bearer"  # noqa: S105
    session: SessionResponse
