"""CSV and Word exports of a submission view."""

import asyncio
import csv
import io
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, tzinfo
from urllib.parse import quote

import httpx
from docx import Document
from docx.enum.section import WD_SECTION
from docx.image.exceptions import (
    InvalidImageStreamError,
    UnexpectedEndOfFileError,
    UnrecognizedImageError,
)
from docx.shared import Inches, Pt

from formflow.errors import FormflowError
from formflow.schemas.submission import Submission
from formflow.services.blobs import BlobStore, FetchedImage, fetch_image

logger = logging.getLogger(__name__)

EXPORT_BASENAME = "Data Order dan"
CSV_HEADERS = ["ID", "Name", "Division", "Description", "Timestamp"]
IMAGE_WIDTH = Inches(2)
UNAVAILABLE_IMAGE_TEXT = "[image unavailable]"
UNSUPPORTED_IMAGE_TEXT = "[image format not supported]"

# Raised by python-docx for unknown formats and for damaged image data
IMAGE_ERRORS = (InvalidImageStreamError, UnexpectedEndOfFileError, UnrecognizedImageError)


def export_filename(extension: str, today: date | None = None) -> str:
    """Download name of an export, e.g. ``Data Order dan 2024-05-01.csv``."""
    today = today or datetime.now(UTC).date()
    return f"{EXPORT_BASENAME} {today.isoformat()}.{extension}"


class ExportService:
    """Renders submissions as CSV or as a Word report. Never writes to the store."""

    def __init__(
        self,
        blob_store: BlobStore,
        tz: tzinfo = UTC,
        timestamp_format: str = "%d/%m/%Y %H:%M:%S",
        http_timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.blob_store = blob_store
        self.tz = tz
        self.timestamp_format = timestamp_format
        self.http_timeout = http_timeout
        self.http_client = http_client

    def format_timestamp(self, timestamp: datetime) -> str:
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return timestamp.astimezone(self.tz).strftime(self.timestamp_format)

    def to_csv(self, records: Sequence[Submission]) -> bytes:
        """One header row, then one fully quoted row per record in input order."""
        buffer = io.StringIO()
        buffer.write(",".join(CSV_HEADERS) + "\n")

        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        for submission in records:
            writer.writerow(
                [
                    submission.id,
                    submission.user_name or "",
                    submission.user_division or "",
                    submission.description or "",
                    self.format_timestamp(submission.timestamp),
                ]
            )

        # Rows are joined by newlines, there is no trailing one
        return buffer.getvalue().removesuffix("\n").encode("utf-8")

    async def to_docx(self, records: Sequence[Submission]) -> bytes:
        """Build a Word report with one section per record.

        Images of a record are fetched concurrently; sections keep input order.
        """
        document = Document()
        async with self._client() as client:
            for number, submission in enumerate(records, start=1):
                images = await self._fetch_images(submission, client)
                self._add_report(document, number, submission, images)

        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        async with httpx.AsyncClient(timeout=self.http_timeout) as client:
            yield client

    async def _fetch_images(
        self, submission: Submission, client: httpx.AsyncClient
    ) -> list[FetchedImage | None]:
        results = await asyncio.gather(
            *(fetch_image(ref, self.blob_store, client) for ref in submission.images),
            return_exceptions=True,
        )

        images: list[FetchedImage | None] = []
        for ref, result in zip(submission.images, results, strict=True):
            if isinstance(result, FormflowError):
                logger.warning(
                    f"Skipping image {ref[:80]} of submission {submission.id}: {result.message}"
                )
                images.append(None)
            elif isinstance(result, BaseException):
                raise result
            else:
                images.append(result)
        return images

    def _add_report(
        self,
        document,
        number: int,
        submission: Submission,
        images: list[FetchedImage | None],
    ) -> None:
        if number > 1:
            document.add_section(WD_SECTION.NEW_PAGE)

        heading = document.add_paragraph()
        run = heading.add_run(f"Report #{number}")
        run.bold = True
        run.font.size = Pt(14)
        heading.paragraph_format.space_after = Pt(10)

        document.add_paragraph(f"Name: {submission.user_name or ''}")
        document.add_paragraph(f"Division: {submission.user_division or ''}")
        document.add_paragraph(f"Time: {self.format_timestamp(submission.timestamp)}")
        document.add_paragraph(f"Description: {submission.description or ''}")

        label = document.add_paragraph("Images:")
        label.paragraph_format.space_before = Pt(10)
        label.paragraph_format.space_after = Pt(10)

        gallery = document.add_paragraph()
        for image in images:
            if image is None:
                gallery.add_run(f"{UNAVAILABLE_IMAGE_TEXT} ")
                continue
            try:
                gallery.add_run().add_picture(io.BytesIO(image.data), width=IMAGE_WIDTH)
            except IMAGE_ERRORS as e:
                logger.warning(
                    f"Cannot embed {image.content_type} image of submission {submission.id}: {e!r}"
                )
                gallery.add_run(f"{UNSUPPORTED_IMAGE_TEXT} ")

        separator = document.add_paragraph("---")
        separator.paragraph_format.space_before = Pt(20)
        separator.paragraph_format.space_after = Pt(20)


def attachment_headers(filename: str) -> dict[str, str]:
    """``Content-Disposition`` header for a download, safe for non-ASCII names."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    disposition = f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
    return {"Content-Disposition": disposition}
