# Path: core/vector_store/numpy_store.py
# Purpose: Provide a vector store keyed by string ids with exact brute-force L2 search.
# Layer: core/vector_store.
# Details: Searches a numpy matrix; with a path, every insert/delete is committed to SQLite before it returns.

from __future__ import annotations

import json
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from core.models.domain import SearchCandidate
from .base import VectorStore


class NumpyVectorStore(VectorStore):
    """Exact nearest-neighbour store backed by a dense float32 matrix.

    All mutations and reads hold a single lock, so the store can be shared by
    the batch coordinator's worker threads. Row order in the matrix follows
    insertion order; ties in distance keep that order because the sort is stable.

    Without ``path`` the store lives in memory only. With ``path`` the vectors
    are journaled to ``<path>.sqlite3``: each insert or delete is committed
    there before the call returns, so a killed process loses nothing it
    acknowledged. A generation counter bumped by every write lets other
    processes sharing the file notice the change and reload before their next
    read or write.
    """

    def __init__(
        self,
        dim: int,
        name: str = "numpy",
        metric: str = "l2",
        path: Optional[str] = None,
        timeout: float = 5.0,
    ) -> None:
        if metric != "l2":
            raise ValueError(f"Unsupported metric {metric!r}; only 'l2' is available.")
        self.dim = dim
        self.name = name
        self.metric = metric
        self.timeout = timeout
        self._ids: List[str] = []
        self._rows: Dict[str, int] = {}
        self._inserted_at: Dict[str, float] = {}
        self._vectors: np.ndarray = np.empty((0, dim), dtype=np.float32)
        self._lock = threading.RLock()
        self._generation: Optional[int] = None
        self.db_path: Optional[Path] = Path(path).with_suffix(".sqlite3") if path else None
        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_schema()
            with self._lock:
                self._sync()

    # SQLite journal
    @contextmanager
    def _connect(self, timeout: Optional[float] = None, write: bool = False) -> Iterator[sqlite3.Connection]:
        """Yield a connection; writers hold the database write lock from the first statement."""

        conn = sqlite3.connect(self.db_path, timeout=self.timeout if timeout is None else timeout, isolation_level=None)
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect(write=True) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS vectors (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    vector_id TEXT NOT NULL UNIQUE,
                    vector BLOB NOT NULL,
                    inserted_at REAL NOT NULL
                )
                """
            )
            conn.execute("CREATE TABLE IF NOT EXISTS index_meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            conn.execute("INSERT OR IGNORE INTO index_meta (key, value) VALUES ('dim', ?)", (str(self.dim),))
            conn.execute("INSERT OR IGNORE INTO index_meta (key, value) VALUES ('metric', ?)", (self.metric,))
            conn.execute("INSERT OR IGNORE INTO index_meta (key, value) VALUES ('generation', '0')")
            meta = dict(conn.execute("SELECT key, value FROM index_meta").fetchall())
        if int(meta["dim"]) != self.dim or meta["metric"] != self.metric:
            raise ValueError(
                f"Index at {self.db_path} holds {meta['metric']} vectors of dimension {meta['dim']}, "
                f"expected {self.metric} vectors of dimension {self.dim}."
            )

    @staticmethod
    def _read_generation(conn: sqlite3.Connection) -> int:
        return int(conn.execute("SELECT value FROM index_meta WHERE key = 'generation'").fetchone()[0])

    @staticmethod
    def _bump_generation(conn: sqlite3.Connection) -> int:
        conn.execute("UPDATE index_meta SET value = CAST(value AS INTEGER) + 1 WHERE key = 'generation'")
        return NumpyVectorStore._read_generation(conn)

    def _reload(self, conn: sqlite3.Connection, generation: int) -> None:
        rows = conn.execute("SELECT vector_id, vector, inserted_at FROM vectors ORDER BY seq").fetchall()
        self._replace(
            [str(row[0]) for row in rows],
            [np.frombuffer(row[1], dtype=np.float32) for row in rows],
            [float(row[2]) for row in rows],
        )
        self._generation = generation

    def _refresh(self, conn: sqlite3.Connection) -> None:
        generation = self._read_generation(conn)
        if generation != self._generation:
            self._reload(conn, generation)

    def _sync(self, timeout: Optional[float] = None) -> None:
        """Pick up writes committed by other processes; caller holds the lock."""

        if self.db_path is None:
            return
        with self._connect(timeout) as conn:
            self._refresh(conn)

    # In-memory matrix
    def _replace(self, ids: List[str], vectors: Sequence[np.ndarray], inserted_at: List[float]) -> None:
        self._ids = ids
        self._rows = {vector_id: index for index, vector_id in enumerate(ids)}
        self._inserted_at = dict(zip(ids, inserted_at))
        if vectors:
            self._vectors = np.vstack([np.asarray(vector, dtype=np.float32).reshape(1, -1) for vector in vectors])
        else:
            self._vectors = np.empty((0, self.dim), dtype=np.float32)

    def _append(self, vector_id: str, array: np.ndarray, inserted_at: float) -> None:
        self._vectors = np.vstack([self._vectors, array.reshape(1, -1)])
        self._rows[vector_id] = len(self._ids)
        self._ids.append(vector_id)
        self._inserted_at[vector_id] = inserted_at

    def _remove(self, vector_id: str) -> bool:
        row = self._rows.pop(vector_id, None)
        if row is None:
            return False
        self._vectors = np.delete(self._vectors, row, axis=0)
        del self._ids[row]
        self._inserted_at.pop(vector_id, None)
        for index in range(row, len(self._ids)):
            self._rows[self._ids[index]] = index
        return True

    def _coerce(self, vector: np.ndarray) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float32).reshape(-1)
        if array.shape[0] != self.dim:
            raise ValueError(f"Vector dimensionality {array.shape[0]} does not match store dimension {self.dim}.")
        return array

    def insert(self, vector_id: str, vector: np.ndarray, timeout: Optional[float] = None) -> None:
        """Append a vector; duplicate ids are rejected."""

        array = self._coerce(vector)
        now = time.time()
        with self._lock:
            if self.db_path is None:
                if vector_id in self._rows:
                    raise ValueError(f"Vector id {vector_id} already exists.")
                self._append(vector_id, array, now)
                return
            with self._connect(timeout, write=True) as conn:
                self._refresh(conn)
                if vector_id in self._rows:
                    raise ValueError(f"Vector id {vector_id} already exists.")
                conn.execute(
                    "INSERT INTO vectors (vector_id, vector, inserted_at) VALUES (?, ?, ?)",
                    (vector_id, array.tobytes(), now),
                )
                generation = self._bump_generation(conn)
            self._append(vector_id, array, now)
            self._generation = generation

    def delete(self, vector_id: str, timeout: Optional[float] = None) -> None:
        """Remove a vector and re-number the rows that followed it."""

        with self._lock:
            if self.db_path is None:
                self._remove(vector_id)
                return
            with self._connect(timeout, write=True) as conn:
                self._refresh(conn)
                if vector_id not in self._rows:
                    return
                conn.execute("DELETE FROM vectors WHERE vector_id = ?", (vector_id,))
                generation = self._bump_generation(conn)
            self._remove(vector_id)
            self._generation = generation

    def search(self, query: np.ndarray, k: int, timeout: Optional[float] = None) -> List[SearchCandidate]:
        """Return the k nearest neighbours using L2 distance."""

        array = self._coerce(query)
        if k <= 0:
            return []
        with self._lock:
            self._sync(timeout)
            if not self._ids:
                return []
            distances = np.linalg.norm(self._vectors - array.reshape(1, -1), axis=1)
            ranked_indices = np.argsort(distances, kind="stable")[:k]
            return [SearchCandidate(vector_id=self._ids[idx], distance=float(distances[idx])) for idx in ranked_indices]

    def get_vector(self, vector_id: str) -> Optional[np.ndarray]:
        with self._lock:
            self._sync()
            row = self._rows.get(vector_id)
            if row is None:
                return None
            return self._vectors[row].copy()

    def contains(self, vector_id: str) -> bool:
        with self._lock:
            self._sync()
            return vector_id in self._rows

    def ids(self) -> List[str]:
        with self._lock:
            self._sync()
            return list(self._ids)

    def count(self) -> int:
        with self._lock:
            self._sync()
            return len(self._ids)

    def inserted_at(self, vector_id: str) -> Optional[float]:
        with self._lock:
            self._sync()
            return self._inserted_at.get(vector_id)

    def ping(self) -> None:
        with self._lock:
            self._sync()

    def save(self, path: str) -> None:
        """Export vectors and ids as a numpy array plus a JSON manifest."""

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self._sync()
            np.save(target.with_suffix(".npy"), self._vectors)
            manifest = {"dim": self.dim, "metric": self.metric, "ids": self._ids}
        target.with_suffix(".json").write_text(json.dumps(manifest), encoding="utf-8")

    def load(self, path: str) -> None:
        """Replace the contents with an export written by :meth:`save`.

        Imported vectors get the load time as their insertion time. A journaled
        store commits the import in one transaction.
        """

        ids, vectors = self._read_export(path)
        now = time.time()
        with self._lock:
            if self.db_path is not None:
                with self._connect(write=True) as conn:
                    conn.execute("DELETE FROM vectors")
                    conn.executemany(
                        "INSERT INTO vectors (vector_id, vector, inserted_at) VALUES (?, ?, ?)",
                        [(vector_id, vector.tobytes(), now) for vector_id, vector in zip(ids, vectors)],
                    )
                    self._generation = self._bump_generation(conn)
            self._replace(ids, list(vectors), [now] * len(ids))

    def _read_export(self, path: str) -> Tuple[List[str], np.ndarray]:
        target = Path(path)
        vector_path = target.with_suffix(".npy")
        manifest_path = target.with_suffix(".json")
        if not vector_path.exists() or not manifest_path.exists():
            raise FileNotFoundError(f"Missing vector store files for {path}.")

        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
        vectors = np.load(vector_path).astype(np.float32)
        ids = [str(item) for item in manifest.get("ids", [])]
        if int(manifest.get("dim", self.dim)) != self.dim:
            raise ValueError(f"Stored index has dimension {manifest.get('dim')}, expected {self.dim}.")
        if vectors.shape[0] != len(ids):
            raise ValueError(f"Stored index has {vectors.shape[0]} vectors but {len(ids)} ids.")
        return ids, vectors.reshape(len(ids), self.dim)
