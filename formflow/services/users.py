"""User directory: registration, approval and admin edits of accounts."""

import logging

from formflow.errors import EmailAlreadyExists, FormflowError, NotFound, ValidationError
from formflow.models.enums import UserStatus
from formflow.schemas.user import User
from formflow.services.identity import AdminAllowList, IdentityProvider, normalize_email
from formflow.services.persistence import USERS, PersistenceAdapter

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
PASSWORD_MIN_LENGTH = 6


def _clean_name(name: str) -> str:
    name = name.strip()
    if len(name) < NAME_MIN_LENGTH:
        raise ValidationError("Name must be at least 2 characters.")
    return name


def _clean_division(division: str) -> str:
    division = division.strip()
    if not division:
        raise ValidationError("Division is required.")
    return division


def _clean_email(email: str) -> str:
    email = normalize_email(email)
    local, _, domain = email.partition("@")
    if not local or "." not in domain or " " in email:
        raise ValidationError("Invalid email address.")
    return email


def _check_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError("Password must be at least 6 characters.")


class UserDirectory:
    """Registered users and their approval status.

    The directory never stores passwords; credentials live with the identity
    provider under the same id.
    """

    def __init__(self, store: PersistenceAdapter, identity: IdentityProvider, admins: AdminAllowList):
        self.store = store
        self.identity = identity
        self.admins = admins

    def _email_taken(self, email: str, exclude_user_id: str | None = None) -> bool:
        if self.admins.contains(email):
            return True
        existing = self.get_by_email(email)
        return existing is not None and existing.id != exclude_user_id

    def register(self, name: str, division: str, email: str, password: str) -> str:
        """Create a pending account and its credential. Returns the new user id."""
        name = _clean_name(name)
        division = _clean_division(division)
        email = _clean_email(email)
        _check_password(password)

        if self._email_taken(email):
            raise EmailAlreadyExists()

        user_id = self.identity.create_account(email, password)
        user = User(id=user_id, name=name, division=division, email=email)
        try:
            self.store.put(USERS, user_id, user.to_record())
        except FormflowError:
            logger.error(f"Failed to store user record for {email}, removing credential")
            self.identity.delete_account(user_id)
            raise

        logger.info(f"Registered user {user_id} ({email}), awaiting approval")
        return user_id

    def get(self, user_id: str) -> User | None:
        record = self.store.get(USERS, user_id)
        return User.model_validate(record) if record else None

    def require(self, user_id: str) -> User:
        user = self.get(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_by_email(self, email: str) -> User | None:
        matches = self.store.query(USERS, "email", normalize_email(email))
        return User.model_validate(matches[0]) if matches else None

    def approve(self, user_id: str) -> User:
        """Approve a pending account. Approving twice is a no-op."""
        user = self.require(user_id)
        if user.status == UserStatus.APPROVED:
            return user

        record = self.store.patch(USERS, user_id, {"status": UserStatus.APPROVED.value})
        logger.info(f"Approved user {user_id} ({user.email})")
        return User.model_validate(record)

    def update_email(self, user_id: str, new_email: str) -> User:
        """Change the login email of a user.

        The credential is updated first. If the directory write then fails the
        credential is put back and the failure propagates.
        """
        user = self.require(user_id)
        new_email = _clean_email(new_email)
        if new_email == user.email:
            return user
        if self._email_taken(new_email, exclude_user_id=user_id):
            raise EmailAlreadyExists()

        self.identity.update_email(user_id, new_email)
        try:
            record = self.store.patch(USERS, user_id, {"email": new_email})
        except FormflowError:
            logger.error(f"Failed to update email of user {user_id}, restoring credential")
            self.identity.update_email(user_id, user.email)
            raise

        logger.info(f"Changed email of user {user_id} to {new_email}")
        return User.model_validate(record)

    def update_password(self, user_id: str, new_password: str) -> None:
        self.require(user_id)
        _check_password(new_password)
        self.identity.update_password(user_id, new_password)
        logger.info(f"Changed password of user {user_id}")

    def delete(self, user_id: str) -> bool:
        """Delete a user and their credential.

        Submissions are kept. Returns False if the user was already gone.
        Open sessions end on their next check; ``SessionService`` can end them
        right away.
        """
        existed = self.store.delete(USERS, user_id)
        self.identity.delete_account(user_id)
        if existed:
            logger.info(f"Deleted user {user_id}")
        return existed

    def list(self, exclude_user_id: str | None = None) -> list[User]:
        """All users in registration order, optionally without one id."""
        return [
            User.model_validate(record)
            for record in self.store.list(USERS)
            if record.get("id") != exclude_user_id
        ]
