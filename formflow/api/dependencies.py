"""FastAPI dependencies for storage backends, services and authentication."""

from datetime import date, datetime
from functools import lru_cache
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from formflow.config import get_settings
from formflow.database import get_db
from formflow.errors import PermissionDenied, ValidationError
from formflow.models.enums import DatePreset, SortDirection, SubmissionSortKey, UserRole
from formflow.schemas.submission import DateRange
from formflow.services.blobs import BlobStore, FileBlobStore, InlineBlobStore
from formflow.services.events import SessionEvents
from formflow.services.export import ExportService
from formflow.services.identity import AdminAllowList, IdentityProvider
from formflow.services.persistence import DocumentStore, LocalKeyValueStore, PersistenceAdapter
from formflow.services.session import SessionContext, SessionService
from formflow.services.submissions import SubmissionQuery, SubmissionRepository, date_range_preset
from formflow.services.users import UserDirectory

settings = get_settings()

security = HTTPBearer(auto_error=False)


@lru_cache
def get_local_store() -> LocalKeyValueStore:
    """Single shared local store so its lock covers every request."""
    return LocalKeyValueStore(settings.local_store_path)


def get_store(db: Annotated[Session, Depends(get_db)]) -> PersistenceAdapter:
    """Persistence backend selected by ``STORAGE_BACKEND``."""
    if settings.storage_backend == "hosted":
        return DocumentStore(db)
    return get_local_store()


@lru_cache
def get_blob_store() -> BlobStore:
    """Blob store matching the persistence backend."""
    if settings.storage_backend == "hosted":
        return FileBlobStore(settings.blob_dir, settings.blob_base_url)
    return InlineBlobStore()


@lru_cache
def get_admin_allow_list() -> AdminAllowList:
    return AdminAllowList(settings.admin_accounts)


@lru_cache
def get_session_events() -> SessionEvents:
    return SessionEvents()


def get_display_timezone() -> ZoneInfo:
    return ZoneInfo(settings.display_timezone)


def get_identity_provider(
    store: Annotated[PersistenceAdapter, Depends(get_store)],
) -> IdentityProvider:
    return IdentityProvider(store)


def get_user_directory(
    store: Annotated[PersistenceAdapter, Depends(get_store)],
    identity: Annotated[IdentityProvider, Depends(get_identity_provider)],
    admins: Annotated[AdminAllowList, Depends(get_admin_allow_list)],
) -> UserDirectory:
    """Get user directory with dependencies."""
    return UserDirectory(store, identity, admins)


def get_session_service(
    store: Annotated[PersistenceAdapter, Depends(get_store)],
    identity: Annotated[IdentityProvider, Depends(get_identity_provider)],
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
    admins: Annotated[AdminAllowList, Depends(get_admin_allow_list)],
    events: Annotated[SessionEvents, Depends(get_session_events)],
) -> SessionService:
    """Get session service with dependencies."""
    return SessionService(store, identity, directory, admins, events)


def get_submission_repository(
    store: Annotated[PersistenceAdapter, Depends(get_store)],
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
) -> SubmissionRepository:
    """Get submission repository with dependencies."""
    return SubmissionRepository(store, blobs)


def get_export_service(
    blobs: Annotated[BlobStore, Depends(get_blob_store)],
    tz: Annotated[ZoneInfo, Depends(get_display_timezone)],
) -> ExportService:
    """Get export service with dependencies."""
    return ExportService(
        blobs,
        tz=tz,
        timestamp_format=settings.timestamp_format,
        http_timeout=settings.http_timeout,
    )


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    return credentials.credentials if credentials else None


def get_current_session(
    token: Annotated[str | None, Depends(get_bearer_token)],
    sessions: Annotated[SessionService, Depends(get_session_service)],
) -> SessionContext:
    """Get the current session from the bearer token."""
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = sessions.current_session(token)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return session


def require_admin(
    session: Annotated[SessionContext, Depends(get_current_session)],
) -> SessionContext:
    if not session.is_admin:
        raise PermissionDenied("Administrator access required.")
    return session


def require_user(
    session: Annotated[SessionContext, Depends(get_current_session)],
) -> SessionContext:
    if session.role != UserRole.USER:
        raise PermissionDenied("Only registered users can submit.")
    return session


def get_submission_query(
    tz: Annotated[ZoneInfo, Depends(get_display_timezone)],
    q: Annotated[str, Query(max_length=200)] = "",
    start: date | None = None,
    end: date | None = None,
    preset: DatePreset | None = None,
    sort: SubmissionSortKey = SubmissionSortKey.TIMESTAMP,
    direction: SortDirection = SortDirection.DESC,
) -> SubmissionQuery:
    """Filter and sort settings shared by the admin table and the exports.

    A preset wins over explicit ``start``/``end`` dates.
    """
    date_range = None
    if preset is not None:
        date_range = date_range_preset(preset, datetime.now(tz).date())
    elif start is not None:
        if end is not None and end < start:
            raise ValidationError("The end date must not be before the start date.")
        date_range = DateRange(start=start, end=end)
    elif end is not None:
        raise ValidationError("A date range needs a start date.")

    return SubmissionQuery(text=q, date_range=date_range, sort_key=sort, direction=direction)
