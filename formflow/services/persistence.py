"""Persistence adapter with a local JSON key-value backend and a hosted document backend.

Both backends expose the same collection operations, so repositories never need
to know which one they are talking to. Records are JSON-compatible dicts that
always carry a string ``id``.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from formflow.errors import BackendUnavailable, NotFound
from formflow.models.document import Document

logger = logging.getLogger(__name__)

Record = dict[str, Any]
RecordList = list[Record]

# Collection names
USERS = "users"
SUBMISSIONS = "submissions"
CREDENTIALS = "credentials"
SESSIONS = "sessions"


class PersistenceAdapter(ABC):
    """Collection store used by every repository."""

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Record | None:
        """Return a record by id, or None if it does not exist."""

    @abstractmethod
    def list(self, collection: str) -> RecordList:
        """Return every record of a collection in insertion order."""

    @abstractmethod
    def query(self, collection: str, field: str, value: Any) -> RecordList:
        """Return records whose top-level ``field`` equals ``value``."""

    @abstractmethod
    def put(self, collection: str, record_id: str, record: Record) -> Record:
        """Insert or replace a record."""

    @abstractmethod
    def patch(self, collection: str, record_id: str, partial: Record) -> Record:
        """Shallow-merge ``partial`` into an existing record.

        Raises:
            NotFound: if the record does not exist.
        """

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> bool:
        """Delete a record. Returns False if it was already absent."""


class LocalKeyValueStore(PersistenceAdapter):
    """Single JSON file holding one array of records per collection."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _read(self) -> dict[str, RecordList]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.error(f"Failed to read local store {self.path}: {e}")
            raise BackendUnavailable() from e

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Local store {self.path} is not valid JSON: {e}")
            raise BackendUnavailable() from e
        if not isinstance(data, dict):
            logger.error(f"Local store {self.path} does not hold an object of collections")
            raise BackendUnavailable()
        return data

    def _write(self, data: dict[str, RecordList]) -> None:
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write local store {self.path}: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise BackendUnavailable() from e

    def get(self, collection: str, record_id: str) -> Record | None:
        with self._lock:
            for record in self._read().get(collection, []):
                if record.get("id") == record_id:
                    return copy.deepcopy(record)
        return None

    def list(self, collection: str) -> RecordList:
        with self._lock:
            return copy.deepcopy(self._read().get(collection, []))

    def query(self, collection: str, field: str, value: Any) -> RecordList:
        return [record for record in self.list(collection) if record.get(field) == value]

    def put(self, collection: str, record_id: str, record: Record) -> Record:
        stored = {**copy.deepcopy(record), "id": record_id}
        with self._lock:
            data = self._read()
            records = data.setdefault(collection, [])
            for index, existing in enumerate(records):
                if existing.get("id") == record_id:
                    records[index] = stored
                    break
            else:
                records.append(stored)
            self._write(data)
        return copy.deepcopy(stored)

    def patch(self, collection: str, record_id: str, partial: Record) -> Record:
        with self._lock:
            data = self._read()
            records = data.get(collection, [])
            for index, existing in enumerate(records):
                if existing.get("id") == record_id:
                    merged = {**existing, **copy.deepcopy(partial), "id": record_id}
                    records[index] = merged
                    self._write(data)
                    return copy.deepcopy(merged)
        raise NotFound(f"{collection} record {record_id} not found")

    def delete(self, collection: str, record_id: str) -> bool:
        with self._lock:
            data = self._read()
            records = data.get(collection, [])
            remaining = [record for record in records if record.get("id") != record_id]
            if len(remaining) == len(records):
                return False
            data[collection] = remaining
            self._write(data)
        return True


class DocumentStore(PersistenceAdapter):
    """Hosted document collections stored as JSON rows in the SQL database."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Document store call failed: {e}")
            raise BackendUnavailable() from e

    def _find(self, collection: str, record_id: str) -> Document | None:
        return (
            self.db.query(Document)
            .filter(Document.collection == collection, Document.doc_id == record_id)
            .first()
        )

    def get(self, collection: str, record_id: str) -> Record | None:
        with self._guard():
            doc = self._find(collection, record_id)
            return copy.deepcopy(doc.data) if doc else None

    def list(self, collection: str) -> RecordList:
        with self._guard():
            docs = (
                self.db.query(Document)
                .filter(Document.collection == collection)
                .order_by(Document.pk)
                .all()
            )
            return [copy.deepcopy(doc.data) for doc in docs]

    def query(self, collection: str, field: str, value: Any) -> RecordList:
        if not isinstance(value, str):
            return [record for record in self.list(collection) if record.get(field) == value]

        with self._guard():
            docs = (
                self.db.query(Document)
                .filter(
                    Document.collection == collection,
                    Document.data[field].as_string() == value,
                )
                .order_by(Document.pk)
                .all()
            )
            return [copy.deepcopy(doc.data) for doc in docs]

    def put(self, collection: str, record_id: str, record: Record) -> Record:
        stored = {**copy.deepcopy(record), "id": record_id}
        with self._guard():
            doc = self._find(collection, record_id)
            if doc:
                doc.data = stored
            else:
                self.db.add(Document(collection=collection, doc_id=record_id, data=stored))
            self.db.commit()
        return copy.deepcopy(stored)

    def patch(self, collection: str, record_id: str, partial: Record) -> Record:
        with self._guard():
            doc = self._find(collection, record_id)
            if doc is None:
                raise NotFound(f"{collection} record {record_id} not found")
            merged = {**doc.data, **copy.deepcopy(partial), "id": record_id}
            # Reassign so the JSON column is flagged dirty
            doc.data = merged
            self.db.commit()
        return copy.deepcopy(merged)

    def delete(self, collection: str, record_id: str) -> bool:
        with self._guard():
            doc = self._find(collection, record_id)
            if doc is None:
                return False
            self.db.delete(doc)
            self.db.commit()
        return True
