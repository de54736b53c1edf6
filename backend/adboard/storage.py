"""Filesystem-backed image store.

Images live under `<root>/<namespace>/<filename>` where `namespace` is
the resource kind (`ads` or `users`). Only the generated filename is kept
in database rows, so moving the root directory never invalidates them.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_LOGGER = logging.getLogger("adboard.storage")

ADS_NAMESPACE = "ads"
USERS_NAMESPACE = "users"


@dataclass
class ImageUpload:
    """An uploaded file as handed from the HTTP layer to the services."""
    data: bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.data

    @property
    def size(self) -> int:
        return len(self.data)


class ImageStore:
    """Save, load and delete image blobs below a root directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def init(self) -> None:
        """Create the root directory if it does not exist yet."""
        if not self.root.exists():
            self.root.mkdir(parents=True, exist_ok=True)
            _LOGGER.info("created upload root %s", self.root)

    def _path(self, namespace: str, filename: str) -> Path:
        # stored names are generated by `save`; refuse anything that could walk out of the namespace
        if Path(filename).name != filename or filename in (".", ".."):
            raise ValueError(f"invalid image filename: {filename!r}")
        return self.root / namespace / filename

    def save(self, data: bytes, namespace: str, original_filename: Optional[str] = None) -> str:
        """Write `data` under `namespace` and return the generated filename.

        The name is a random uuid4 hex string; the extension of
        `original_filename` is preserved when there is one.
        """
        directory = self.root / namespace
        directory.mkdir(parents=True, exist_ok=True)
        extension = Path(original_filename).suffix if original_filename else ""
        filename = uuid.uuid4().hex + extension
        destination = directory / filename
        destination.write_bytes(data)
        _LOGGER.info("file saved: %s", destination)
        return filename

    def load(self, namespace: str, filename: Optional[str]) -> bytes:
        """Return the stored bytes, raising FileNotFoundError if there are none."""
        if not filename:
            raise FileNotFoundError("no image filename given")
        path = self._path(namespace, filename)
        if not path.exists():
            raise FileNotFoundError(f"image not found: {path}")
        return path.read_bytes()

    def delete(self, namespace: str, filename: Optional[str]) -> None:
        """Remove a stored image; a missing name or file is a no-op."""
        if not filename:
            return
        path = self._path(namespace, filename)
        if path.exists():
            path.unlink()
            _LOGGER.info("file deleted: %s", path)
