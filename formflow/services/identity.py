"""Identity provider backed by the persistence adapter, plus the admin allow-list."""

import logging
import uuid
from collections.abc import Iterable

from formflow.config import AdminAccount
from formflow.errors import EmailAlreadyExists
from formflow.services.auth import get_password_hash, verify_password
from formflow.services.persistence import CREDENTIALS, PersistenceAdapter, Record

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively."""
    return email.strip().lower()


def admin_principal_id(email: str) -> str:
    return f"admin:{normalize_email(email)}"


class AdminAllowList:
    """Configured administrators. Admins never appear in the user directory."""

    def __init__(self, accounts: Iterable[AdminAccount]):
        self._accounts = {normalize_email(account.email): account for account in accounts}

    def __len__(self) -> int:
        return len(self._accounts)

    def contains(self, email: str) -> bool:
        return normalize_email(email) in self._accounts

    def get(self, email: str) -> AdminAccount | None:
        return self._accounts.get(normalize_email(email))

    def match(self, email: str, password: str) -> AdminAccount | None:
        """Return the admin whose email and password both match."""
        account = self.get(email)
        if account is None or not verify_password(password, account.password_hash):
            return None
        return account


class IdentityProvider:
    """Owns login credentials. Passwords are only ever kept as bcrypt hashes.

    The principal id of a credential is the id of the matching directory record.
    """

    def __init__(self, store: PersistenceAdapter):
        self.store = store

    def _find_by_email(self, email: str) -> Record | None:
        matches = self.store.query(CREDENTIALS, "email", normalize_email(email))
        return matches[0] if matches else None

    def create_account(self, email: str, password: str, principal_id: str | None = None) -> str:
        """Create a credential and return its principal id."""
        if self._find_by_email(email) is not None:
            raise EmailAlreadyExists()

        principal_id = principal_id or uuid.uuid4().hex
        self.store.put(
            CREDENTIALS,
            principal_id,
            {"email": normalize_email(email), "password_hash": get_password_hash(password)},
        )
        return principal_id

    def authenticate(self, email: str, password: str) -> str | None:
        """Return the principal id if the password matches, otherwise None."""
        credential = self._find_by_email(email)
        if credential is None:
            return None
        if not verify_password(password, credential["password_hash"]):
            return None
        return credential["id"]

    def get_email(self, principal_id: str) -> str | None:
        credential = self.store.get(CREDENTIALS, principal_id)
        return credential["email"] if credential else None

    def update_email(self, principal_id: str, email: str) -> None:
        existing = self._find_by_email(email)
        if existing is not None and existing["id"] != principal_id:
            raise EmailAlreadyExists()
        self.store.patch(CREDENTIALS, principal_id, {"email": normalize_email(email)})

    def update_password(self, principal_id: str, password: str) -> None:
        self.store.patch(CREDENTIALS, principal_id, {"password_hash": get_password_hash(password)})

    def delete_account(self, principal_id: str) -> bool:
        deleted = self.store.delete(CREDENTIALS, principal_id)
        if deleted:
            logger.info(f"Deleted credential {principal_id}")
        return deleted
