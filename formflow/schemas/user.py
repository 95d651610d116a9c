"""User directory schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from formflow.models.enums import UserRole, UserStatus


class User(BaseModel):
    """A directory record.

    ``role`` is derived at read time and is never written to the store.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    division: str
    email: str
    status: UserStatus = UserStatus.PENDING
    role: UserRole = UserRole.USER

    def to_record(self) -> dict:
        """Serialize for the persistence adapter."""
        return self.model_dump(mode="json", exclude={"role"})


class UserEmailUpdate(BaseModel):
    """Change a user's login email."""

    email: EmailStr = Field(..., max_length=255)


class UserPasswordUpdate(BaseModel):
    """Change a user's password."""

    password: str = Field(..., min_length=6, max_length=128)


class UserResponse(BaseModel):
    """User information response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    division: str
    email: str
    status: UserStatus
    role: UserRole
