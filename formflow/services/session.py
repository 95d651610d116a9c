"""Login sessions for admins and approved users.

A session is a record in the ``sessions`` collection plus a signed token that
carries its id. Role is decided at login from the admin allow-list and never
read from the user directory.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from formflow.config import get_settings
from formflow.errors import AccountPendingApproval, InvalidCredentials
from formflow.models.enums import SessionState, UserRole
from formflow.services.auth import create_access_token, decode_access_token
from formflow.services.events import SessionEvents, SessionEventType
from formflow.services.identity import (
    AdminAllowList,
    IdentityProvider,
    admin_principal_id,
    normalize_email,
)
from formflow.services.persistence import SESSIONS, PersistenceAdapter, Record
from formflow.services.users import UserDirectory

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass(frozen=True)
class SessionContext:
    """The authenticated principal behind a request."""

    session_id: str
    role: UserRole
    user_id: str
    email: str
    name: str
    division: str
    expires_at: datetime

    @property
    def state(self) -> SessionState:
        if self.role == UserRole.ADMIN:
            return SessionState.AUTHENTICATED_ADMIN
        return SessionState.AUTHENTICATED_USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class SessionService:
    """Opens, checks and ends sessions, publishing every transition."""

    def __init__(
        self,
        store: PersistenceAdapter,
        identity: IdentityProvider,
        directory: UserDirectory,
        admins: AdminAllowList,
        events: SessionEvents,
        ttl: timedelta | None = None,
    ):
        self.store = store
        self.identity = identity
        self.directory = directory
        self.admins = admins
        self.events = events
        self.ttl = ttl or timedelta(minutes=settings.jwt_expiration_minutes)

    def login(self, email: str, password: str) -> tuple[str, SessionContext]:
        """Authenticate and open a session.

        Raises:
            AccountPendingApproval: the account exists but is not approved yet
            InvalidCredentials: unknown email or wrong password
        """
        admin = self.admins.match(email, password)
        if admin is not None:
            return self._open(
                principal_id=admin_principal_id(admin.email),
                role=UserRole.ADMIN,
                email=normalize_email(admin.email),
                name=admin.name,
                division=admin.division,
            )

        user = self.directory.get_by_email(email)
        if user is None:
            logger.warning(f"Login refused for unknown email {normalize_email(email)}")
            raise InvalidCredentials()
        if not user.status.can_login():
            logger.warning(f"Login refused for pending user {user.id}")
            raise AccountPendingApproval()
        if self.identity.authenticate(email, password) != user.id:
            logger.warning(f"Login refused for user {user.id}: wrong password")
            raise InvalidCredentials()

        return self._open(
            principal_id=user.id,
            role=UserRole.USER,
            email=user.email,
            name=user.name,
            division=user.division,
        )

    def _open(
        self, principal_id: str, role: UserRole, email: str, name: str, division: str
    ) -> tuple[str, SessionContext]:
        self._prune_expired()

        session_id = uuid.uuid4().hex
        expires_at = datetime.now(UTC) + self.ttl
        self.store.put(
            SESSIONS,
            session_id,
            {
                "principal_id": principal_id,
                "role": role.value,
                "email": email,
                "expires_at": expires_at.isoformat(),
            },
        )
        token = create_access_token(session_id, principal_id, role, expires_at)
        context = SessionContext(
            session_id=session_id,
            role=role,
            user_id=principal_id,
            email=email,
            name=name,
            division=division,
            expires_at=expires_at,
        )

        logger.info(f"Session opened for {email} ({role.value})")
        self.events.publish(SessionEventType.LOGGED_IN, principal_id, role)
        return token, context

    def _prune_expired(self) -> None:
        now = datetime.now(UTC)
        for record in self.store.list(SESSIONS):
            if _expires_at(record) <= now:
                self.store.delete(SESSIONS, record["id"])

    def _end(self, record: Record, event_type: SessionEventType) -> bool:
        if not self.store.delete(SESSIONS, record["id"]):
            return False
        self.events.publish(event_type, record["principal_id"], UserRole(record["role"]))
        return True

    def current_session(self, token: str) -> SessionContext | None:
        """Return the live session for a token, or None.

        A user session also ends when the user was deleted or is no longer
        approved; its record is revoked on the spot.
        """
        payload = decode_access_token(token)
        if not payload or not payload.get("sid"):
            return None

        record = self.store.get(SESSIONS, payload["sid"])
        if record is None or record.get("principal_id") != payload.get("sub"):
            return None

        expires_at = _expires_at(record)
        if expires_at <= datetime.now(UTC):
            self.store.delete(SESSIONS, record["id"])
            return None

        role = UserRole(record["role"])
        if role == UserRole.ADMIN:
            admin = self.admins.get(record["email"])
            if admin is None:
                logger.info(f"Revoking session of removed admin {record['email']}")
                self._end(record, SessionEventType.REVOKED)
                return None
            return SessionContext(
                session_id=record["id"],
                role=role,
                user_id=record["principal_id"],
                email=normalize_email(admin.email),
                name=admin.name,
                division=admin.division,
                expires_at=expires_at,
            )

        user = self.directory.get(record["principal_id"])
        if user is None or not user.status.can_login():
            logger.info(f"Revoking session of user {record['principal_id']}")
            self._end(record, SessionEventType.REVOKED)
            return None
        return SessionContext(
            session_id=record["id"],
            role=role,
            user_id=user.id,
            email=user.email,
            name=user.name,
            division=user.division,
            expires_at=expires_at,
        )

    def logout(self, token: str | None) -> None:
        """End the session behind a token. Safe to call any number of times."""
        if not token:
            return
        payload = decode_access_token(token, verify_exp=False)
        if not payload or not payload.get("sid"):
            return

        record = self.store.get(SESSIONS, payload["sid"])
        if record is None:
            return
        if self._end(record, SessionEventType.LOGGED_OUT):
            logger.info(f"Session closed for {record['email']}")

    def revoke_user_sessions(self, user_id: str) -> int:
        """End every open session of a principal. Returns how many were ended."""
        records = self.store.query(SESSIONS, "principal_id", user_id)
        ended = sum(self._end(record, SessionEventType.REVOKED) for record in records)
        if ended:
            logger.info(f"Revoked {ended} session(s) of {user_id}")
        return ended


def _expires_at(record: Record) -> datetime:
    expires_at = datetime.fromisoformat(record["expires_at"])
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at
