"""Export API endpoints (admin only)."""

import asyncio
import logging
from datetime import datetime
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Response

from formflow.api.dependencies import (
    get_display_timezone,
    get_export_service,
    get_submission_query,
    get_submission_repository,
    require_admin,
)
from formflow.errors import NotFound
from formflow.schemas.submission import Submission
from formflow.services.export import ExportService, attachment_headers, export_filename
from formflow.services.session import SessionContext
from formflow.services.submissions import SubmissionQuery, SubmissionRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/exports", tags=["exports"])

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _current_view(
    repository: SubmissionRepository, query: SubmissionQuery, tz: ZoneInfo
) -> list[Submission]:
    view = query.apply(repository.list_all(), tz=tz)
    if not view:
        raise NotFound("There are no submissions to export.")
    return view


@router.get("/submissions.csv")
def export_submissions_csv(
    admin: Annotated[SessionContext, Depends(require_admin)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
    exporter: Annotated[ExportService, Depends(get_export_service)],
    query: Annotated[SubmissionQuery, Depends(get_submission_query)],
    tz: Annotated[ZoneInfo, Depends(get_display_timezone)],
):
    """Download the filtered and sorted submissions as CSV."""
    view = _current_view(repository, query, tz)
    filename = export_filename("csv", datetime.now(tz).date())
    logger.info(f"CSV export of {len(view)} submission(s) by {admin.email}")
    return Response(
        content=exporter.to_csv(view),
        media_type="text/csv; charset=utf-8",
        headers=attachment_headers(filename),
    )


@router.get("/submissions.docx")
async def export_submissions_docx(
    admin: Annotated[SessionContext, Depends(require_admin)],
    repository: Annotated[SubmissionRepository, Depends(get_submission_repository)],
    exporter: Annotated[ExportService, Depends(get_export_service)],
    query: Annotated[SubmissionQuery, Depends(get_submission_query)],
    tz: Annotated[ZoneInfo, Depends(get_display_timezone)],
):
    """Download the filtered and sorted submissions as a Word report."""
    view = await asyncio.to_thread(_current_view, repository, query, tz)
    filename = export_filename("docx", datetime.now(tz).date())
    logger.info(f"Word export of {len(view)} submission(s) by {admin.email}")
    return Response(
        content=await exporter.to_docx(view),
        media_type=DOCX_MEDIA_TYPE,
        headers=attachment_headers(filename),
    )
