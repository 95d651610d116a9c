"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from formflow.api.dependencies import (
    get_bearer_token,
    get_current_session,
    get_session_service,
    get_user_directory,
)
from formflow.schemas.auth import (
    AuthResponse,
    RegisterResponse,
    SessionResponse,
    UserLogin,
    UserRegister,
)
from formflow.services.session import SessionContext, SessionService
from formflow.services.users import UserDirectory

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
):
    """Register a new account. It stays pending until an admin approves it."""
    user_id = directory.register(
        user_data.name, user_data.division, user_data.email, user_data.password
    )
    return RegisterResponse(id=user_id)


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    sessions: Annotated[SessionService, Depends(get_session_service)],
):
    """Login with email and password."""
    access_token, session = sessions.login(credentials.email, credentials.password)
    return AuthResponse(
        access_token=access_token,
        session=SessionResponse.model_validate(session),
    )


@router.get("/me", response_model=SessionResponse)
def get_me(
    session: Annotated[SessionContext, Depends(get_current_session)],
):
    """Get current session information."""
    return SessionResponse.model_validate(session)


@router.post("/logout")
def logout(
    token: Annotated[str | None, Depends(get_bearer_token)],
    sessions: Annotated[SessionService, Depends(get_session_service)],
):
    """End the current session. Logging out twice is fine."""
    sessions.logout(token)
    return {"message": "Logged out successfully"}
