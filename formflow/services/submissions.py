"""Submission repository and the filter/sort helpers used by admin views."""

import calendar
import logging
import re
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo

from formflow.errors import FormflowError, NotFound, ValidationError
from formflow.models.enums import DatePreset, SortDirection, SubmissionSortKey
from formflow.schemas.submission import DateRange, Submission, SubmissionUpdate
from formflow.services.blobs import BlobStore
from formflow.services.persistence import SUBMISSIONS, PersistenceAdapter

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
MAX_FILES = 5
ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 500
USER_NAME_MIN_LENGTH = 2


@dataclass(frozen=True)
class ImageUpload:
    """An image file as received from the submitter."""

    content_type: str
    data: bytes
    filename: str | None = None


@dataclass
class DeleteResult:
    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    blob_failures: list[str] = field(default_factory=list)


def validate_description(description: str) -> str:
    description = description.strip()
    if len(description) < DESCRIPTION_MIN_LENGTH:
        raise ValidationError("Description must be at least 10 characters.")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError("Description must be at most 500 characters.")
    return description


def validate_images(images: Sequence[ImageUpload]) -> None:
    if not images:
        raise ValidationError("At least one image is required.")
    if len(images) > MAX_FILES:
        raise ValidationError("You can upload at most 5 images.")
    for image in images:
        if image.content_type.lower() not in ACCEPTED_IMAGE_TYPES:
            raise ValidationError("Only .jpg, .jpeg, .png and .webp files are accepted.")
        if not image.data:
            raise ValidationError("Image files must not be empty.")
        if len(image.data) > MAX_FILE_SIZE:
            raise ValidationError("Maximum file size is 5MB.")


def _now() -> datetime:
    return datetime.now(UTC)


class SubmissionRepository:
    """Stores submissions and the image blobs they reference."""

    def __init__(self, store: PersistenceAdapter, blobs: BlobStore):
        self.store = store
        self.blobs = blobs

    def create(
        self,
        owner_user_id: str,
        owner_name: str,
        owner_division: str,
        description: str,
        images: Sequence[ImageUpload],
    ) -> str:
        """Validate, upload the images and store a new submission.

        The owner's name and division are copied onto the record and never
        refreshed afterwards. Nothing is uploaded unless validation passes.
        """
        description = validate_description(description)
        validate_images(images)

        refs: list[str] = []
        try:
            for image in images:
                refs.append(self.blobs.upload(image.data, image.content_type.lower()))
            submission = Submission(
                id=uuid.uuid4().hex,
                user_id=owner_user_id,
                user_name=owner_name,
                user_division=owner_division,
                description=description,
                images=refs,
                timestamp=_now(),
            )
            self.store.put(SUBMISSIONS, submission.id, submission.to_record())
        except FormflowError:
            logger.error(f"Failed to store submission of {owner_user_id}, releasing images")
            self._release(refs)
            raise

        logger.info(f"Created submission {submission.id} with {len(refs)} image(s)")
        return submission.id

    def get(self, submission_id: str) -> Submission | None:
        record = self.store.get(SUBMISSIONS, submission_id)
        return Submission.model_validate(record) if record else None

    def require(self, submission_id: str) -> Submission:
        submission = self.get(submission_id)
        if submission is None:
            raise NotFound("Submission not found")
        return submission

    def list_all(self) -> list[Submission]:
        return [Submission.model_validate(record) for record in self.store.list(SUBMISSIONS)]

    def list_by_owner(self, user_id: str) -> list[Submission]:
        records = self.store.query(SUBMISSIONS, "user_id", user_id)
        return [Submission.model_validate(record) for record in records]

    def update(self, submission_id: str, patch: SubmissionUpdate) -> Submission:
        """Apply an admin edit and refresh the timestamp."""
        current = self.require(submission_id)

        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "user_name" in changes:
            changes["user_name"] = changes["user_name"].strip()
            if len(changes["user_name"]) < USER_NAME_MIN_LENGTH:
                raise ValidationError("Name must be at least 2 characters.")
        if "description" in changes:
            changes["description"] = validate_description(changes["description"])

        updated = current.model_copy(update={**changes, "timestamp": _now()})
        record = updated.to_record()
        stored = self.store.patch(
            SUBMISSIONS,
            submission_id,
            {key: record[key] for key in (*changes, "timestamp")},
        )
        logger.info(f"Updated submission {submission_id}: {', '.join(changes) or 'timestamp'}")
        return Submission.model_validate(stored)

    def delete(self, ids: str | Iterable[str]) -> DeleteResult:
        """Delete one or many submissions and release their images.

        Ids that are already gone are reported as missing. A blob that cannot be
        released is reported and does not stop the record from being deleted.
        """
        if isinstance(ids, str):
            ids = [ids]

        result = DeleteResult()
        for submission_id in dict.fromkeys(ids):
            record = self.store.get(SUBMISSIONS, submission_id)
            if record is None or not self.store.delete(SUBMISSIONS, submission_id):
                result.missing.append(submission_id)
                continue
            result.deleted.append(submission_id)
            result.blob_failures.extend(self._release(record.get("images", [])))

        logger.info(
            f"Deleted {len(result.deleted)} submission(s), {len(result.missing)} already gone"
        )
        return result

    def _release(self, refs: Iterable[str]) -> list[str]:
        failures = []
        for ref in refs:
            try:
                self.blobs.delete(ref)
            except FormflowError as e:
                logger.error(f"Failed to release image {ref[:80]}: {e.message}")
                failures.append(ref)
        return failures


@dataclass(frozen=True)
class SubmissionQuery:
    """Filter and sort settings of an admin table view."""

    text: str = ""
    date_range: DateRange | None = None
    sort_key: SubmissionSortKey | None = SubmissionSortKey.TIMESTAMP
    direction: SortDirection = SortDirection.DESC

    def apply(self, records: Iterable[Submission], tz: tzinfo = UTC) -> list[Submission]:
        view = filter_submissions(records, self.text, self.date_range, tz)
        if self.sort_key is None:
            return view
        return sort_submissions(view, self.sort_key, self.direction)


def _local_date(timestamp: datetime, tz: tzinfo) -> date:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(tz).date()


def filter_submissions(
    records: Iterable[Submission],
    text_query: str = "",
    date_range: DateRange | None = None,
    tz: tzinfo = UTC,
) -> list[Submission]:
    """Keep records matching both the text query and the date range.

    The text query is a case-insensitive substring match on name, division and
    description. Date bounds are whole days in ``tz``, both inclusive.
    """
    result = list(records)

    query = (text_query or "").lower()
    if query:
        result = [
            submission
            for submission in result
            if query in (submission.user_name or "").lower()
            or query in (submission.user_division or "").lower()
            or query in (submission.description or "").lower()
        ]

    if date_range is not None:
        first, last = date_range.start, date_range.last_day
        result = [
            submission
            for submission in result
            if first <= _local_date(submission.timestamp, tz) <= last
        ]

    return result


def sort_submissions(
    records: Iterable[Submission],
    key: SubmissionSortKey | str = SubmissionSortKey.TIMESTAMP,
    direction: SortDirection | str = SortDirection.DESC,
) -> list[Submission]:
    """Stable sort by a scalar field. Missing values sort as an empty string."""
    field_name = SubmissionSortKey(key).value

    def sort_value(submission: Submission):
        value = getattr(submission, field_name)
        return "" if value is None else value

    return sorted(records, key=sort_value, reverse=SortDirection(direction) == SortDirection.DESC)


def date_range_preset(preset: DatePreset | str, today: date) -> DateRange:
    """Resolve a quick-pick preset relative to ``today``."""
    preset = DatePreset(preset)
    if preset == DatePreset.TODAY:
        return DateRange(start=today, end=today)
    if preset == DatePreset.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return DateRange(start=yesterday, end=yesterday)
    if preset == DatePreset.LAST_7:
        return DateRange(start=today - timedelta(days=6), end=today)
    if preset == DatePreset.LAST_30:
        return DateRange(start=today - timedelta(days=29), end=today)
    if preset == DatePreset.THIS_MONTH:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return DateRange(start=today.replace(day=1), end=today.replace(day=last_day))

    # Last month
    end = today.replace(day=1) - timedelta(days=1)
    return DateRange(start=end.replace(day=1), end=end)


def image_download_name(submission: Submission, index: int, extension: str) -> str:
    """File name for the ``index``-th (0-based) image of a submission."""
    name = re.sub(r"\s+", "_", submission.user_name)
    return f"submission-{name}-{submission.id[:8]}-image-{index + 1}.{extension}"
