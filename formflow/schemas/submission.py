"""Submission schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Submission(BaseModel):
    """A stored submission.

    ``user_name`` and ``user_division`` are a copy of the owner taken when the
    submission was created. They are never refreshed from the live user record.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    user_name: str
    user_division: str
    description: str
    images: list[str]
    timestamp: datetime

    def to_record(self) -> dict:
        """Serialize for the persistence adapter."""
        return self.model_dump(mode="json")


class SubmissionUpdate(BaseModel):
    """Admin edit of a submission. Only these fields may change."""

    model_config = ConfigDict(extra="forbid")

    user_name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)


class DateRange(BaseModel):
    """Inclusive range of calendar days. A missing end means a single day."""

    start: date
    end: date | None = None

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.end is not None and self.end < self.start:
            raise ValueError("Date range end must not be before its start")
        return self

    @property
    def last_day(self) -> date:
        return self.end or self.start


class SubmissionBulkDelete(BaseModel):
    """Delete several submissions at once."""

    ids: list[str] = Field(..., min_length=1)


class SubmissionDeleteResponse(BaseModel):
    """Outcome of a delete, including blobs that could not be released."""

    deleted: list[str]
    missing: list[str]
    blob_failures: list[str]
