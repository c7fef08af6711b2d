# Path: core/metadata/sqlite_store.py
# Purpose: Persist records and images in SQLite with referential integrity.
# Layer: core/metadata.
# Details: images.record_id cascades on record delete; images.vector_id is indexed for reverse lookups.

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from core.errors import (
    ImageNotFoundError,
    InvalidRequestError,
    MetadataReadError,
    MetadataWriteError,
    RecordNotFoundError,
)
from core.models.domain import Image, Record

_IMAGE_COLUMNS = "id, record_id, filename, path, vector_id, created_at"
_RECORD_COLUMNS = "id, name, description, created_at, updated_at"


def _to_datetime(value: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(value) if value is not None else None


def _row_to_image(row: Tuple) -> Image:
    return Image(
        id=int(row[0]),
        record_id=int(row[1]),
        filename=str(row[2]),
        path=str(row[3]),
        vector_id=str(row[4]),
        created_at=_to_datetime(row[5]),
    )


def _row_to_record(row: Tuple, images: Optional[List[Image]] = None) -> Record:
    return Record(
        id=int(row[0]),
        name=str(row[1]),
        description=str(row[2] or ""),
        images=images or [],
        created_at=_to_datetime(row[3]),
        updated_at=_to_datetime(row[4]),
    )


class MetadataStore:
    """Relational store for Record and Image entities.

    Each call opens its own connection, so a single instance is safe to share
    across worker threads. SQLite's busy timeout doubles as the per-call
    timeout for lock contention.
    """

    def __init__(self, db_path: Path | str, timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ensure_schema()

    # SQLite helpers
    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection with foreign keys enabled; commit on success, roll back on error."""

        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        """Create the records and images tables with their indexes."""

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS images (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    record_id INTEGER NOT NULL REFERENCES records(id) ON DELETE CASCADE,
                    filename TEXT NOT NULL,
                    path TEXT NOT NULL,
                    vector_id TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_images_record ON images(record_id)")
            conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_images_vector ON images(vector_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_records_created ON records(created_at)")

    def ping(self) -> None:
        """Raise MetadataReadError when the database cannot be queried."""

        try:
            with self._connect() as conn:
                conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            raise MetadataReadError(f"metadata store unreachable: {exc}", step="ping") from exc

    # Records
    def create_record(self, name: str, description: str = "") -> Record:
        """Insert a new record; the name must be non-empty."""

        if not name or not name.strip():
            raise InvalidRequestError("name is required", step="create_record")
        now = time.time()
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    "INSERT INTO records (name, description, created_at, updated_at) VALUES (?, ?, ?, ?)",
                    (name, description or "", now, now),
                )
                record_id = int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise MetadataWriteError(f"failed to create record: {exc}", step="create_record") from exc
        return Record(
            id=record_id,
            name=name,
            description=description or "",
            created_at=_to_datetime(now),
            updated_at=_to_datetime(now),
        )

    def get_record(self, record_id: int) -> Record:
        """Return a record with its images ordered by creation."""

        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT {_RECORD_COLUMNS} FROM records WHERE id = ?", (record_id,)).fetchone()
                if row is None:
                    raise RecordNotFoundError(record_id)
                images = self._images_for(conn, [record_id]).get(record_id, [])
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to get record: {exc}", step="get_record", record_id=record_id) from exc
        return _row_to_record(row, images)

    def require_record(self, record_id: int) -> None:
        """Raise RecordNotFoundError unless the record exists."""

        try:
            with self._connect() as conn:
                row = conn.execute("SELECT 1 FROM records WHERE id = ?", (record_id,)).fetchone()
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to get record: {exc}", step="lookup_record", record_id=record_id) from exc
        if row is None:
            raise RecordNotFoundError(record_id)

    def list_records(self, limit: int = 10, offset: int = 0) -> Tuple[List[Record], int]:
        """Return one page of records, newest first, plus the total record count."""

        try:
            with self._connect() as conn:
                total = int(conn.execute("SELECT COUNT(*) FROM records").fetchone()[0])
                rows = conn.execute(
                    f"SELECT {_RECORD_COLUMNS} FROM records ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                    (limit, offset),
                ).fetchall()
                images = self._images_for(conn, [int(row[0]) for row in rows])
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to get records: {exc}", step="list_records") from exc
        return [_row_to_record(row, images.get(int(row[0]), [])) for row in rows], total

    def update_record(self, record_id: int, name: Optional[str] = None, description: Optional[str] = None) -> Record:
        """Rename and/or describe a record; empty or blank values leave the field untouched."""

        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT {_RECORD_COLUMNS} FROM records WHERE id = ?", (record_id,)).fetchone()
                if row is None:
                    raise RecordNotFoundError(record_id)
                new_name = name if name and name.strip() else row[1]
                new_description = description if description else row[2]
                conn.execute(
                    "UPDATE records SET name = ?, description = ?, updated_at = ? WHERE id = ?",
                    (new_name, new_description, time.time(), record_id),
                )
        except sqlite3.Error as exc:
            raise MetadataWriteError(
                f"failed to update record: {exc}", step="update_record", record_id=record_id
            ) from exc
        return self.get_record(record_id)

    def delete_record(self, record_id: int) -> Record:
        """Delete a record and, through the cascade, its images.

        Returns the deleted record including the images that were removed, read
        in the same transaction as the delete so no vector id is missed.
        """

        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT {_RECORD_COLUMNS} FROM records WHERE id = ?", (record_id,)).fetchone()
                if row is None:
                    raise RecordNotFoundError(record_id)
                images = self._images_for(conn, [record_id]).get(record_id, [])
                conn.execute("DELETE FROM records WHERE id = ?", (record_id,))
        except sqlite3.Error as exc:
            raise MetadataWriteError(
                f"failed to delete record: {exc}", step="delete_record", record_id=record_id
            ) from exc
        return _row_to_record(row, images)

    # Images
    def add_image(self, record_id: int, filename: str, path: str, vector_id: str) -> Image:
        """Insert an image row referencing an existing record and a vector id."""

        now = time.time()
        try:
            with self._connect() as conn:
                exists = conn.execute("SELECT 1 FROM records WHERE id = ?", (record_id,)).fetchone()
                if exists is None:
                    raise RecordNotFoundError(record_id, step="add_image", vector_id=vector_id)
                cursor = conn.execute(
                    "INSERT INTO images (record_id, filename, path, vector_id, created_at) VALUES (?, ?, ?, ?, ?)",
                    (record_id, filename, path, vector_id, now),
                )
                image_id = int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise MetadataWriteError(
                f"failed to add image: {exc}", step="add_image", record_id=record_id, vector_id=vector_id
            ) from exc
        return Image(
            id=image_id,
            record_id=record_id,
            filename=filename,
            path=path,
            vector_id=vector_id,
            created_at=_to_datetime(now),
        )

    def get_image(self, image_id: int) -> Image:
        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT {_IMAGE_COLUMNS} FROM images WHERE id = ?", (image_id,)).fetchone()
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to get image: {exc}", step="get_image", image_id=image_id) from exc
        if row is None:
            raise ImageNotFoundError(image_id=image_id)
        return _row_to_image(row)

    def get_image_by_vector_id(self, vector_id: str) -> Image:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    f"SELECT {_IMAGE_COLUMNS} FROM images WHERE vector_id = ?", (vector_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise MetadataReadError(
                f"failed to get image: {exc}", step="get_image_by_vector", vector_id=vector_id
            ) from exc
        if row is None:
            raise ImageNotFoundError(vector_id=vector_id)
        return _row_to_image(row)

    def list_images(self, record_id: int) -> List[Image]:
        try:
            with self._connect() as conn:
                return self._images_for(conn, [record_id]).get(record_id, [])
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to get images: {exc}", step="list_images", record_id=record_id) from exc

    def delete_image(self, image_id: int) -> Image:
        """Delete an image row and return it so the caller can remove its vector."""

        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT {_IMAGE_COLUMNS} FROM images WHERE id = ?", (image_id,)).fetchone()
                if row is None:
                    raise ImageNotFoundError(image_id=image_id, step="delete_image")
                conn.execute("DELETE FROM images WHERE id = ?", (image_id,))
        except sqlite3.Error as exc:
            raise MetadataWriteError(f"failed to delete image: {exc}", step="delete_image", image_id=image_id) from exc
        return _row_to_image(row)

    def resolve_vector_ids(self, vector_ids: Iterable[str]) -> Dict[str, Tuple[Image, Record]]:
        """Map vector ids to their image and owning record; ids without a row are absent."""

        ids = list(dict.fromkeys(vector_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"""
                    SELECT i.id, i.record_id, i.filename, i.path, i.vector_id, i.created_at,
                           r.id, r.name, r.description, r.created_at, r.updated_at
                    FROM images AS i
                    JOIN records AS r ON r.id = i.record_id
                    WHERE i.vector_id IN ({placeholders})
                    """,
                    ids,
                ).fetchall()
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to resolve vector ids: {exc}", step="resolve") from exc

        resolved: Dict[str, Tuple[Image, Record]] = {}
        for row in rows:
            image = _row_to_image(row[:6])
            resolved[image.vector_id] = (image, _row_to_record(row[6:]))
        return resolved

    def vector_ids(self) -> Set[str]:
        """Return every vector id referenced by an image row."""

        try:
            with self._connect() as conn:
                return {str(row[0]) for row in conn.execute("SELECT vector_id FROM images").fetchall()}
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to list vector ids: {exc}", step="vector_ids") from exc

    # Statistics
    def counts(self, since: Optional[float] = None) -> Dict[str, int]:
        """Return record and image totals, plus counts created at or after ``since`` when given."""

        try:
            with self._connect() as conn:
                result = {
                    "records": int(conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]),
                    "images": int(conn.execute("SELECT COUNT(*) FROM images").fetchone()[0]),
                }
                if since is not None:
                    result["records_since"] = int(
                        conn.execute("SELECT COUNT(*) FROM records WHERE created_at >= ?", (since,)).fetchone()[0]
                    )
                    result["images_since"] = int(
                        conn.execute("SELECT COUNT(*) FROM images WHERE created_at >= ?", (since,)).fetchone()[0]
                    )
        except sqlite3.Error as exc:
            raise MetadataReadError(f"failed to count rows: {exc}", step="counts") from exc
        return result

    @staticmethod
    def _images_for(conn: sqlite3.Connection, record_ids: List[int]) -> Dict[int, List[Image]]:
        """Return images grouped by record id, each group ordered by creation."""

        if not record_ids:
            return {}
        placeholders = ",".join("?" for _ in record_ids)
        rows = conn.execute(
            f"""
            SELECT {_IMAGE_COLUMNS}
            FROM images
            WHERE record_id IN ({placeholders})
            ORDER BY created_at, id
            """,
            record_ids,
        ).fetchall()
        grouped: Dict[int, List[Image]] = {}
        for row in rows:
            image = _row_to_image(row)
            grouped.setdefault(image.record_id, []).append(image)
        return grouped
