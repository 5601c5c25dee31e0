"""SQLite-backed vector index with namespaces.

Vectors are stored as packed float32 blobs. A query loads the namespace
once into a normalised numpy matrix and scores every vector in a single
matrix-vector product; the matrix is cached until the namespace is written
again. Each job writes to its own namespace and every read is filtered by
namespace in SQL, so one job never sees another job's vectors.
"""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from subsmith.core.errors import ConfigError


@dataclass(frozen=True)
class VectorRecord:
    id: str
    values: list[float]
    text: str


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float
    text: str


@dataclass(frozen=True)
class _Namespace:
    ids: list[str]
    texts: list[str]
    matrix: np.ndarray  # rows are unit vectors (zero rows stay zero)


def _normalise(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=-1, keepdims=True)
    return np.divide(matrix, norms, out=np.zeros_like(matrix), where=norms != 0)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    pair = _normalise(np.asarray([a, b], dtype=np.float32))
    return float(pair[0] @ pair[1])


def _pack(values: list[float]) -> bytes:
    return np.asarray(values, dtype=np.float32).tobytes()


class SqliteVectorIndex:
    """Upsert, query and delete vectors by namespace."""

    def __init__(self, db_path: Path, index_name: str | None) -> None:
        if not index_name:
            raise ConfigError("Vector index requires an index name (memory.index_name).")
        self.index_name = index_name
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, _Namespace] = {}
        self._cache_lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path), timeout=30, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        return connection

    def _init_db(self) -> None:
        connection = self._connect()
        try:
            with connection:
                connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS vectors (
                        index_name TEXT NOT NULL,
                        namespace TEXT NOT NULL,
                        id TEXT NOT NULL,
                        text TEXT NOT NULL,
                        embedding BLOB NOT NULL,
                        PRIMARY KEY (index_name, namespace, id)
                    )
                    """
                )
        finally:
            connection.close()

    def _invalidate(self, namespace: str) -> None:
        with self._cache_lock:
            self._cache.pop(namespace, None)

    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        rows = [(self.index_name, namespace, r.id, r.text, _pack(r.values)) for r in records]
        connection = self._connect()
        try:
            with connection:
                connection.executemany(
                    """
                    INSERT INTO vectors(index_name, namespace, id, text, embedding)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(index_name, namespace, id) DO UPDATE SET
                        text=excluded.text,
                        embedding=excluded.embedding
                    """,
                    rows,
                )
        finally:
            connection.close()
            self._invalidate(namespace)

    def _load(self, namespace: str) -> _Namespace:
        with self._cache_lock:
            cached = self._cache.get(namespace)
        if cached is not None:
            return cached

        connection = self._connect()
        try:
            rows = connection.execute(
                "SELECT id, text, embedding FROM vectors WHERE index_name=? AND namespace=? "
                "ORDER BY id",
                (self.index_name, namespace),
            ).fetchall()
        finally:
            connection.close()

        if rows:
            matrix = np.stack([np.frombuffer(row["embedding"], dtype=np.float32) for row in rows])
        else:
            matrix = np.zeros((0, 0), dtype=np.float32)
        loaded = _Namespace(
            ids=[row["id"] for row in rows],
            texts=[row["text"] for row in rows],
            matrix=_normalise(matrix),
        )
        with self._cache_lock:
            self._cache[namespace] = loaded
        return loaded

    def query(self, namespace: str, vector: list[float], top_k: int) -> list[VectorMatch]:
        loaded = self._load(namespace)
        if not loaded.ids or top_k <= 0:
            return []
        query = _normalise(np.asarray(vector, dtype=np.float32))
        scores = loaded.matrix @ query
        k = min(top_k, len(scores))
        # argpartition picks the top k, argsort orders just those
        top = np.argpartition(-scores, k - 1)[:k]
        top = top[np.argsort(-scores[top], kind="stable")]
        return [
            VectorMatch(id=loaded.ids[i], score=float(scores[i]), text=loaded.texts[i])
            for i in top
        ]

    def delete_namespace(self, namespace: str) -> int:
        connection = self._connect()
        try:
            with connection:
                cursor = connection.execute(
                    "DELETE FROM vectors WHERE index_name=? AND namespace=?",
                    (self.index_name, namespace),
                )
            return cursor.rowcount
        finally:
            connection.close()
            self._invalidate(namespace)

    def count(self, namespace: str) -> int:
        connection = self._connect()
        try:
            row = connection.execute(
                "SELECT COUNT(*) FROM vectors WHERE index_name=? AND namespace=?",
                (self.index_name, namespace),
            ).fetchone()
        finally:
            connection.close()
        return int(row[0])
