"""SQLAlchemy models."""

from formflow.models.document import Document

__all__ = [
    "Document",
]
