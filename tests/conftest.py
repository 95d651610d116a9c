"""Pytest configuration and fixtures."""

import base64

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from formflow.api.dependencies import (
    get_admin_allow_list,
    get_blob_store,
    get_session_events,
    get_store,
)
from formflow.config import AdminAccount
from formflow.database import Base
from formflow.main import app
from formflow.services.auth import get_password_hash
from formflow.services.blobs import FileBlobStore, InlineBlobStore
from formflow.services.events import SessionEvents
from formflow.services.identity import AdminAllowList, IdentityProvider
from formflow.services.persistence import DocumentStore, LocalKeyValueStore
from formflow.services.session import SessionService
from formflow.services.submissions import SubmissionRepository
from formflow.services.users import UserDirectory

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class AuthHeaders(dict):
    """Dict subclass that also stores the principal id and email."""

    def __init__(self, *args, user_id: str | None = None, email: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.email = email


@pytest.fixture(scope="session")
def admin_accounts():
    """One configured administrator. Hashing once keeps the suite fast."""
    return [
        AdminAccount(
            email="admin@example.com",
            password_hash=get_password_hash("adminpass123"),
            name="Head Admin",
            division="IT",
        )
    ]


@pytest.fixture
def admins(admin_accounts):
    return AdminAllowList(admin_accounts)


@pytest.fixture
def local_store(tmp_path):
    """Local JSON store in a temporary directory."""
    return LocalKeyValueStore(tmp_path / "formflow.json")


@pytest.fixture
def document_store():
    """Document store over a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()

    yield DocumentStore(session)

    session.close()
    engine.dispose()


@pytest.fixture(params=["local", "hosted"])
def store(request):
    """Every test using the store runs against both backends."""
    if request.param == "hosted":
        return request.getfixturevalue("document_store")
    return request.getfixturevalue("local_store")


@pytest.fixture
def blob_store(store, tmp_path):
    """Blob store matching the backend, as the application wires them."""
    if isinstance(store, DocumentStore):
        return FileBlobStore(tmp_path / "blobs", "/media")
    return InlineBlobStore()


@pytest.fixture
def png_bytes():
    """A valid 1x1 PNG image."""
    return PNG_BYTES


@pytest.fixture
def events():
    return SessionEvents()


@pytest.fixture
def identity(store):
    return IdentityProvider(store)


@pytest.fixture
def directory(store, identity, admins):
    return UserDirectory(store, identity, admins)


@pytest.fixture
def sessions(store, identity, directory, admins, events):
    return SessionService(store, identity, directory, admins, events)


@pytest.fixture
def repository(store, blob_store):
    return SubmissionRepository(store, blob_store)


@pytest.fixture
def approved_user(directory):
    """An approved directory user."""
    user_id = directory.register("Budi Santoso", "Logistics", "budi@example.com", "testpass123")
    return directory.approve(user_id)


@pytest.fixture(scope="function")
def client(store, blob_store, admins, events):
    """Create a test client with storage and allow-list overrides."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_admin_allow_list] = lambda: admins
    app.dependency_overrides[get_session_events] = lambda: events
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _login(client, email, password):
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    data = response.json()
    return AuthHeaders(
        {"Authorization": f"Bearer {data['access_token']}"},
        user_id=data["session"]["user_id"],
        email=email,
    )


@pytest.fixture
def admin_headers(client):
    """Log in as the configured admin."""
    return _login(client, "admin@example.com", "adminpass123")


@pytest.fixture
def create_user(client, admin_headers):
    """Factory that registers a user, approves them and logs them in."""

    def _create_user(email, name="Test User", division="Sales", approve=True):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": "testpass123", "name": name, "division": division},
        )
        assert response.status_code == 201, response.text
        user_id = response.json()["id"]
        if not approve:
            return AuthHeaders(user_id=user_id, email=email)

        response = client.post(f"/api/v1/users/{user_id}/approve", headers=admin_headers)
        assert response.status_code == 200, response.text
        return _login(client, email, "testpass123")

    return _create_user


@pytest.fixture
def auth_headers(create_user):
    """An approved, logged-in user."""
    return create_user("test@example.com", name="Test User", division="Sales")


@pytest.fixture
def submit(client):
    """Factory that posts a submission as the given user."""

    def _submit(headers, description="Order of twenty boxes of paper", images=1):
        files = [("images", (f"photo-{n}.png", PNG_BYTES, "image/png")) for n in range(images)]
        return client.post(
            "/api/v1/submissions",
            headers=headers,
            data={"description": description},
            files=files or None,
        )

    return _submit
