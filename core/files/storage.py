# Path: core/files/storage.py
# Purpose: Store uploaded image bytes on disk under collision-free filenames.
# Layer: core/files.
# Details: Validates extension and size; removal is best-effort and tolerates missing files.

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Iterable, Optional, Tuple

from core.errors import InvalidImageError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")


class FileStorage:
    """Own the bytes behind Image.path."""

    def __init__(
        self,
        directory: Path | str,
        allowed_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        max_size_bytes: Optional[int] = None,
    ) -> None:
        self.directory = Path(directory)
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions}
        self.max_size_bytes = max_size_bytes
        self.directory.mkdir(parents=True, exist_ok=True)

    def validate(self, filename: str, data: bytes) -> None:
        """Raise InvalidImageError for unsupported extensions, empty payloads, or oversize uploads."""

        ext = Path(filename or "").suffix.lower()
        if ext not in self.allowed_extensions:
            raise InvalidImageError(f"unsupported file format: {ext or '<none>'}", step="validate")
        if not data:
            raise InvalidImageError("image payload is empty", step="validate")
        if self.max_size_bytes is not None and len(data) > self.max_size_bytes:
            raise InvalidImageError(
                f"image exceeds maximum size of {self.max_size_bytes} bytes", step="validate"
            )

    @staticmethod
    def unique_filename(original: str) -> str:
        """Return ``<8 hex>_<sanitised stem><ext>`` for an uploaded filename."""

        name = Path(original).name
        ext = Path(name).suffix
        stem = name[: len(name) - len(ext)] if ext else name
        stem = stem.replace(" ", "_").replace("..", "_") or "image"
        return f"{uuid.uuid4().hex[:8]}_{stem}{ext.lower()}"

    def save(self, filename: str, data: bytes) -> Tuple[str, str]:
        """Write bytes under a unique name and return (stored filename, path)."""

        stored = self.unique_filename(filename)
        target = self.directory / stored
        target.write_bytes(data)
        return stored, str(target.as_posix())

    def read(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def delete(self, path: str) -> bool:
        """Remove a stored file; a missing file is not an error. Returns True when a file was removed."""

        try:
            Path(path).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to delete file %s: %s", path, exc)
            return False
