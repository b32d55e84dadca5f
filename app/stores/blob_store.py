"""
Blob Store — attachment bytes on the local filesystem.

Files are written under UPLOAD_ROOT with a random prefix so two uploads of
the same name never collide; the returned URL is what gets recorded on the
achievement's attachment list and is served by the /uploads route.
"""

import logging
import re
import uuid
from pathlib import Path

from app.core.exceptions import DependencyError, NotFoundError

logger = logging.getLogger(__name__)


def _clean_segment(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", (value or "").strip())
    cleaned = cleaned.lstrip(".")
    return cleaned or "file"


class LocalBlobStore:
    """Filesystem-backed blob store."""

    def __init__(self, root: str, url_prefix: str = "/uploads"):
        self._root = Path(root)
        self._url_prefix = url_prefix.rstrip("/")
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def store(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        """Persist ``data`` and return its public URL."""
        key = f"{uuid.uuid4().hex}_{_clean_segment(filename)}"
        path = self._root / key
        try:
            path.write_bytes(data)
        except OSError as exc:
            logger.error("Blob write failed for %s: %s", key, exc)
            raise DependencyError("blob_store", "store", exc) from exc
        logger.info("Stored blob %s (%d bytes, %s)", key, len(data), content_type or "unknown")
        return f"{self._url_prefix}/{key}"

    def resolve(self, url_or_key: str) -> Path:
        """Map a URL (or bare key) back to a path inside the root."""
        key = url_or_key
        if key.startswith(self._url_prefix + "/"):
            key = key[len(self._url_prefix) + 1:]
        if not key or key != _clean_segment(key) or "/" in key:
            raise NotFoundError(resource="Blob", resource_id=url_or_key)
        return self._root / key

    def delete(self, url: str) -> bool:
        """Remove a stored blob; returns False when it was already gone."""
        path = self.resolve(url)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise DependencyError("blob_store", "delete", exc) from exc
        logger.info("Deleted blob %s", path.name)
        return True
