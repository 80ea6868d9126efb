"""
Storage abstraction for uploaded files: local disk and in-memory testing.

Uploads are fully buffered by the ingress layer before a handler runs, so
the storage clients only ever deal with bytes and the URL they end up at.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from chapelboard.errors import ServerError

logger = logging.getLogger(__name__)


def _stored_name(filename: str | None) -> str:
    # Millisecond timestamp sorts uploads by arrival; the hex suffix avoids
    # collisions between uploads in the same request.
    ext = os.path.splitext(filename or "")[1].lower()
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"


class StorageClient(Protocol):
    """Defines the operations the API needs from upload storage."""

    def save_upload(self, filename: str | None, data: bytes) -> str:
        ...

    def get_bytes(self, url: str) -> bytes:
        ...

    def delete(self, url: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    url_prefix: str = "/uploads"
    stored_objects: dict = field(default_factory=dict)

    def save_upload(self, filename: str | None, data: bytes) -> str:
        url = f"{self.url_prefix}/{_stored_name(filename)}"
        self.stored_objects[url] = data
        return url

    def get_bytes(self, url: str) -> bytes:
        stored = self.stored_objects.get(url)
        if stored is None:
            raise FileNotFoundError(url)
        return stored

    def delete(self, url: str) -> None:
        self.stored_objects.pop(url, None)


@dataclass
class LocalDiskStorageClient:
    """
    Writes uploads into ``upload_dir`` and serves them under ``url_prefix``.
    """

    upload_dir: str
    url_prefix: str = "/uploads"

    def __post_init__(self):
        self.root = Path(self.upload_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def save_upload(self, filename: str | None, data: bytes) -> str:
        name = _stored_name(filename)
        try:
            (self.root / name).write_bytes(data)
        except OSError as exc:
            logger.exception("Failed to write upload %s", name)
            raise ServerError("Failed to store uploaded file") from exc
        return f"{self.url_prefix}/{name}"

    def get_bytes(self, url: str) -> bytes:
        name = url.rsplit("/", 1)[-1]
        return (self.root / name).read_bytes()

    def delete(self, url: str) -> None:
        name = url.rsplit("/", 1)[-1]
        try:
            (self.root / name).unlink(missing_ok=True)
        except OSError as exc:
            logger.exception("Failed to remove upload %s", name)
            raise ServerError("Failed to remove uploaded file") from exc
