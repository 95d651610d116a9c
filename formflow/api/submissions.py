"""Submission API endpoints."""

import asyncio
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from formflow.api.dependencies import (
    get_blob_store,
    get_current_session,
    get_display_timezone,
    get_submission_query,
    get_submission_repository,
    get_user_directory,
    require_admin,
    require_user,
)
from formflow.errors import NotFound, PermissionDenied
from formflow.schemas.submission import (
    Submission,
    SubmissionBulkDelete,
    SubmissionDeleteResponse,
    SubmissionUpdate,
)
from formflow.services.blobs import BlobStore, fetch_image
from formflow.services.export import attachment_headers
from formflow.services.session import SessionContext
from formflow.services.submissions import (
    MAX_FILE_SIZE,
    ImageUpload,
    SubmissionQuery,
    SubmissionRepository,
    image_download_name,
)
from formflow.services.users import UserDirectory

router = APIRouter(prefix="/api/v1/submissions", tags=["submissions"])


def _read_upload(upload: UploadFile) -> ImageUpload:
    # One byte past the limit is enough to reject oversized files
    data = upload.file.read(MAX_FILE_SIZE + 1)
    return ImageUpload(
        content_type=upload.content_type or "",
        data=data,
        filename=upload.filename,
    )


@router.post("", response_model=Submission, status_code=status.HTTP_201_CREATED)
def create_submission(
    description: Annotated[str, Form()],
    session: Annotated[SessionContext, Depends(require_user)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
    directory: Annotated[UserDirectory, Depends(get_user_directory)],
    images: Annotated[list[UploadFile] | None, File()] = None,
):
    """Submit a description with one to five images."""
    owner = directory.require(session.user_id)
    uploads = [_read_upload(upload) for upload in images or []]
    submission_id = repository.create(
        owner_user_id=owner.id,
        owner_name=owner.name,
        owner_division=owner.division,
        description=description,
        images=uploads,
    )
    return repository.require(submission_id)


@router.get("/mine", response_model=list[Submission])
def get_my_submissions(
    session: Annotated[SessionContext, Depends(require_user)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
):
    """List the current user's own submissions."""
    return repository.list_by_owner(session.user_id)


@router.get("", response_model=list[Submission])
def get_submissions(
    admin: Annotated[SessionContext, Depends(require_admin)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
    query: Annotated[SubmissionQuery, Depends(get_submission_query)],
    tz: Annotated[ZoneInfo, Depends(get_display_timezone)],
):
    """List all submissions, filtered and sorted.

    Query params: ``q`` (text), ``start``/``end`` (inclusive dates) or
    ``preset``, ``sort`` and ``direction``.
    """
    return query.apply(repository.list_all(), tz=tz)


@router.post("/bulk-delete", response_model=SubmissionDeleteResponse)
def bulk_delete_submissions(
    delete_data: SubmissionBulkDelete,
    admin: Annotated[SessionContext, Depends(require_admin)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
):
    """Delete several submissions at once."""
    result = repository.delete(delete_data.ids)
    return SubmissionDeleteResponse(
        deleted=result.deleted, missing=result.missing, blob_failures=result.blob_failures
    )


@router.get("/{submission_id}", response_model=Submission)
def get_submission(
    submission_id: str,
    session: Annotated[SessionContext, Depends(get_current_session)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
):
    """Get a single submission (admin or owner)."""
    submission = repository.require(submission_id)
    _check_access(session, submission)
    return submission


@router.put("/{submission_id}", response_model=Submission)
def update_submission(
    submission_id: str,
    update_data: SubmissionUpdate,
    admin: Annotated[SessionContext, Depends(require_admin)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
):
    """Edit the name or description of a submission."""
    return repository.update(submission_id, update_data)


@router.delete("/{submission_id}", response_model=SubmissionDeleteResponse)
def delete_submission(
    submission_id: str,
    admin: Annotated[SessionContext, Depends(require_admin)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
):
    """Delete a submission. Deleting one that is already gone succeeds."""
    result = repository.delete(submission_id)
    return SubmissionDeleteResponse(
        deleted=result.deleted, missing=result.missing, blob_failures=result.blob_failures
    )


@router.get("/{submission_id}/images/{number}")
async def download_submission_image(
    submission_id: str,
    number: int,
    session: Annotated[SessionContext, Depends(get_current_session)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
):
    """Download the ``number``-th image (1-based) of a submission."""
    submission = await asyncio.to_thread(repository.require, submission_id)
    _check_access(session, submission)
    if number < 1 or number > len(submission.images):
        raise NotFound("Image not found")

    image = await fetch_image(submission.images[number - 1], blob_store)
    filename = image_download_name(submission, number - 1, image.extension)
    return Response(
        content=image.data,
        media_type=image.content_type,
        headers=attachment_headers(filename),
    )


def _check_access(session: SessionContext, submission: Submission) -> None:
    if not session.is_admin and submission.user_id != session.user_id:
        raise PermissionDenied("You can only view your own submissions.")
