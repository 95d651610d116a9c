"""Blob storage for submission images.

Images are referenced from submissions in one of three forms: an inline
``data:`` URL (local backend), a ``<base_url>/<name>`` path into the file blob
store (hosted backend), or an ``http(s)`` URL resolved by external storage.
"""

import asyncio
import base64
import binascii
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote_to_bytes

import httpx

from formflow.errors import BackendUnavailable, NotFound

logger = logging.getLogger(__name__)

_CONTENT_TYPES = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}


@dataclass(frozen=True)
class FetchedImage:
    """Raw image bytes resolved from a reference."""

    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return extension_for(self.content_type)


def extension_for(content_type: str) -> str:
    """File extension for a content type, e.g. ``image/jpeg`` -> ``jpeg``."""
    subtype = content_type.partition("/")[2].split(";")[0].strip().lower()
    return subtype or "bin"


def encode_data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(ref: str) -> FetchedImage:
    """Decode a ``data:`` URL.

    Raises:
        ValueError: if ``ref`` is not a well-formed data URL.
    """
    header, sep, payload = ref.partition(",")
    if not header.startswith("data:") or not sep:
        raise ValueError("Not a data URL")

    meta = header[len("data:") :]
    content_type = meta.split(";")[0] or "application/octet-stream"
    if ";base64" in meta:
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload: {e}") from e
    else:
        data = unquote_to_bytes(payload)
    return FetchedImage(content_type=content_type, data=data)


class BlobStore(ABC):
    """Storage for image bytes referenced by submissions."""

    @abstractmethod
    def upload(self, data: bytes, content_type: str) -> str:
        """Store bytes and return the reference to keep on the record."""

    @abstractmethod
    def fetch(self, ref: str) -> FetchedImage:
        """Resolve a reference produced by ``upload``."""

    @abstractmethod
    def delete(self, ref: str) -> None:
        """Release a stored blob. A blob that is already gone is not an error."""


class InlineBlobStore(BlobStore):
    """Keeps image bytes inside the record as data URLs."""

    def upload(self, data: bytes, content_type: str) -> str:
        return encode_data_url(data, content_type)

    def fetch(self, ref: str) -> FetchedImage:
        try:
            return decode_data_url(ref)
        except ValueError as e:
            raise NotFound("Unreadable inline image") from e

    def delete(self, ref: str) -> None:
        # Nothing stored outside the record
        return None


class FileBlobStore(BlobStore):
    """Stores image files in a directory and hands out ``<base_url>/<name>`` references."""

    def __init__(self, root: str | Path, base_url: str = "/media"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path_for(self, ref: str) -> Path:
        prefix = f"{self.base_url}/"
        if not ref.startswith(prefix):
            raise NotFound("Unknown image reference")
        name = ref[len(prefix) :]
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise NotFound("Unknown image reference")
        return self.root / name

    def upload(self, data: bytes, content_type: str) -> str:
        name = f"{uuid.uuid4().hex}.{extension_for(content_type)}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to store blob {name}: {e}")
            raise BackendUnavailable() from e
        return f"{self.base_url}/{name}"

    def fetch(self, ref: str) -> FetchedImage:
        path = self._path_for(ref)
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise NotFound("Image not found") from e
        except OSError as e:
            logger.error(f"Failed to read blob {path}: {e}")
            raise BackendUnavailable() from e
        content_type = _CONTENT_TYPES.get(path.suffix.lstrip(".").lower(), "application/octet-stream")
        return FetchedImage(content_type=content_type, data=data)

    def delete(self, ref: str) -> None:
        path = self._path_for(ref)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise BackendUnavailable(f"Could not delete image {ref}") from e


async def _download(client: httpx.AsyncClient, url: str) -> FetchedImage:
    try:
        response = await client.get(url)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Failed to download image {url!r}: {e}")
        raise BackendUnavailable("Could not download image") from e
    content_type = response.headers.get("content-type", "application/octet-stream")
    return FetchedImage(content_type=content_type.split(";")[0].strip(), data=response.content)


async def fetch_image(
    ref: str,
    blob_store: BlobStore,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> FetchedImage:
    """Resolve any image reference into raw bytes."""
    if ref.startswith("data:"):
        try:
            return decode_data_url(ref)
        except ValueError as e:
            raise NotFound("Unreadable inline image") from e

    if ref.startswith(("http://", "https://")):
        if client is not None:
            return await _download(client, ref)
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            return await _download(own_client, ref)

    return await asyncio.to_thread(blob_store.fetch, ref)
