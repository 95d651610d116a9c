"""Enums for record fields."""

from enum import Enum


class UserStatus(str, Enum):
    """Approval status of a registered account."""

    PENDING = "pending"
    APPROVED = "approved"

    def can_login(self) -> bool:
        """Check if this status allows establishing a session."""
        return self == UserStatus.APPROVED


class UserRole(str, Enum):
    """Role of an authenticated principal."""

    ADMIN = "admin"
    USER = "user"


class SessionState(str, Enum):
    """States of the authentication state machine."""

    UNAUTHENTICATED = "unauthenticated"
    PENDING = "pending"
    AUTHENTICATED_USER = "authenticated_user"
    AUTHENTICATED_ADMIN = "authenticated_admin"


class SortDirection(str, Enum):
    """Sort direction for table views."""

    ASC = "asc"
    DESC = "desc"


class SubmissionSortKey(str, Enum):
    """Scalar submission fields a table view can sort by."""

    ID = "id"
    USER_ID = "user_id"
    USER_NAME = "user_name"
    USER_DIVISION = "user_division"
    DESCRIPTION = "description"
    TIMESTAMP = "timestamp"


class DatePreset(str, Enum):
    """Quick date ranges offered next to the date picker."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7 = "last7"
    LAST_30 = "last30"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
