"""User management API endpoints (admin only)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from formflow.api.dependencies import get_session_service, get_user_directory, require_admin
from formflow.schemas.user import UserEmailUpdate, UserPasswordUpdate, UserResponse
from formflow.services.session import SessionContext, SessionService
from formflow.services.users import UserDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
def get_users(
    admin: Annotated[SessionContext, Depends(require_admin)],
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
):
    """List every registered user."""
    return directory.list(exclude_user_id=admin.user_id)


@router.post("/{user_id}/approve", response_model=UserResponse)
def approve_user(
    user_id: str,
    admin: Annotated[SessionContext, Depends(require_admin)],
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
):
    """Approve a pending account."""
    return directory.approve(user_id)


@router.put("/{user_id}/email", response_model=UserResponse)
def update_user_email(
    user_id: str,
    update_data: UserEmailUpdate,
    admin: Annotated[SessionContext, Depends(require_admin)],
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
):
    """Change a user's login email."""
    return directory.update_email(user_id, update_data.email)


@router.put("/{user_id}/password")
def update_user_password(
    user_id: str,
    update_data: UserPasswordUpdate,
    admin: Annotated[SessionContext, Depends(require_admin)],
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
):
    """Set a new password for a user."""
    directory.update_password(user_id, update_data.password)
    return {"message": "Password updated successfully"}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    admin: Annotated[SessionContext, Depends(require_admin)],
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
    sessions: Annotated[SessionService, Depends(get_session_service)],
):
    """Delete a user, their credential and their open sessions. Submissions stay."""
    directory.delete(user_id)
    sessions.revoke_user_sessions(user_id)
    logger.info(f"User {user_id} removed by {admin.email}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
