# Path: core/indexing/scanner.py
# Purpose: Scan folders and load image files as ingestion inputs.
# Layer: core/indexing.
# Details: Provides reusable filesystem scanning for bulk ingestion jobs.

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from core.files.storage import DEFAULT_EXTENSIONS
from core.models.domain import ImageInput


class ImageScanner:
    """Scan filesystem paths for supported image files."""

    def __init__(self, root: Path, extensions: Optional[Iterable[str]] = None) -> None:
        self.root = Path(root)
        self.extensions = {ext.lower() for ext in (extensions or DEFAULT_EXTENSIONS)}

    def scan(self) -> List[Path]:
        """Return discovered image paths in a stable, sorted order."""

        if not self.root.is_dir():
            raise FileNotFoundError(f"Image folder does not exist: {self.root}")
        return sorted(self._iter_image_files())

    def load(self, paths: Optional[Iterable[Path]] = None) -> List[ImageInput]:
        """Read each file into an ImageInput keyed by its file name."""

        return [ImageInput(data=path.read_bytes(), filename=path.name) for path in (paths or self.scan())]

    def _iter_image_files(self) -> Iterable[Path]:
        """Yield image files under the root directory."""

        for path in self.root.rglob("*"):
            if path.is_file() and path.suffix.lower() in self.extensions:
                yield path
