"""Shared helpers for SQLite-backed vector stores."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path

import numpy as np

from groundchat.config import config
from groundchat.models import DocumentChunk

logger = config.get_logger(__name__)

ChunkRow = tuple[int, str, str, str, str | None]

_SELECT_CHUNKS = """
    SELECT id, chunk_key, content, metadata, vector_file
    FROM chunks
"""


class BaseSQLiteStore:
    """Chunk metadata persisted in SQLite.

    The integer row id doubles as the vector id and as the insertion order
    used to break score ties. Upserting an existing chunk key keeps its row id.
    """

    backend = "base"

    def __init__(self, db_path: Path) -> None:
        """Remember the metadata database location; nothing is created yet."""
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Create storage tables if missing and load persisted data."""
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()
        self.load()
        self._initialized = True
        logger.info("%s vector store initialized at %s", self.backend, self.db_path)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _create_tables(self) -> None:
        """Create chunk table and indexes if they don't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chunk_key TEXT NOT NULL UNIQUE,
                    content TEXT NOT NULL,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    vector_file TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_chunks_key ON chunks(chunk_key)"
            )
            conn.commit()
            logger.info("Database tables created/verified")

    @staticmethod
    def _encode_metadata(metadata: dict[str, str]) -> str:
        return json.dumps({str(k): str(v) for k, v in metadata.items()}, sort_keys=True)

    @staticmethod
    def _decode_metadata(raw: str | None) -> dict[str, str]:
        if not raw:
            return {}
        return {str(k): str(v) for k, v in json.loads(raw).items()}

    def _upsert_row(
        self,
        cursor: sqlite3.Cursor,
        chunk: DocumentChunk,
        *,
        vector_file: str | None,
    ) -> int:
        """Insert or update a chunk row keyed by chunk id.

        Raises:
            RuntimeError: If the row id cannot be read back.

        Returns:
            The row id of the chunk.
        """
        cursor.execute(
            """
            INSERT INTO chunks (chunk_key, content, metadata, vector_file)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(chunk_key) DO UPDATE SET
                content = excluded.content,
                metadata = excluded.metadata,
                vector_file = excluded.vector_file,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                chunk.id,
                chunk.content,
                self._encode_metadata(chunk.metadata),
                vector_file,
            ),
        )
        cursor.execute("SELECT id FROM chunks WHERE chunk_key = ?", (chunk.id,))
        row = cursor.fetchone()
        if row is None:
            msg = f"Failed to upsert chunk '{chunk.id}'"
            raise RuntimeError(msg)
        return int(row[0])

    def _build_chunk_from_row(
        self,
        row: ChunkRow,
        *,
        embedding: np.ndarray | None = None,
    ) -> DocumentChunk:
        """Create a DocumentChunk from a metadata row.

        Returns:
            DocumentChunk hydrated with metadata and optional embedding.
        """
        _row_id, chunk_key, content, metadata, _vector_file = row
        return DocumentChunk(
            id=chunk_key,
            content=content,
            metadata=self._decode_metadata(metadata),
            embedding=embedding,
        )

    def _fetch_all_rows(self, cursor: sqlite3.Cursor) -> list[ChunkRow]:
        cursor.execute(f"{_SELECT_CHUNKS} ORDER BY id")  # noqa: S608
        return cursor.fetchall()

    def _fetch_rows_by_id(
        self,
        cursor: sqlite3.Cursor,
        row_ids: Iterable[int],
    ) -> dict[int, ChunkRow]:
        ids = [int(row_id) for row_id in row_ids]
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        cursor.execute(f"{_SELECT_CHUNKS} WHERE id IN ({placeholders})", ids)  # noqa: S608
        return {int(row[0]): row for row in cursor.fetchall()}

    @staticmethod
    def _embedded_pairs(
        chunks: Sequence[DocumentChunk],
        dimension: int | None,
        *,
        stored_label: str,
    ) -> list[tuple[DocumentChunk, np.ndarray]]:
        """Pair chunks with float32 embeddings, checking the whole batch first.

        Chunks without an embedding are skipped.

        Raises:
            ValueError: If an embedding's dimension differs from ``dimension``
                or from the first embedding of the batch.

        Returns:
            (chunk, embedding) pairs ready to be written.
        """
        pairs: list[tuple[DocumentChunk, np.ndarray]] = []
        for chunk in chunks:
            if chunk.embedding is None:
                logger.warning("Skipping chunk %s without embedding", chunk.id)
                continue
            embedding = np.asarray(chunk.embedding, dtype=np.float32).reshape(-1)
            if dimension is None:
                dimension = embedding.shape[0]
            elif embedding.shape[0] != dimension:
                msg = (
                    f"Embedding dimension {embedding.shape[0]} does not match "
                    f"{stored_label} {dimension}"
                )
                raise ValueError(msg)
            pairs.append((chunk, embedding))
        return pairs

    def prune_document(self, document: str, keep_ids: Iterable[str]) -> int:
        """Delete chunks of ``document`` whose ids are not in ``keep_ids``.

        Returns:
            Number of chunks removed.
        """
        keep = set(keep_ids)
        with self._lock:
            with self._connect() as conn:
                cursor = conn.cursor()
                stale = [
                    row
                    for row in self._fetch_all_rows(cursor)
                    if row[1] not in keep
                    and self._decode_metadata(row[3]).get("document") == document
                ]
                cursor.executemany(
                    "DELETE FROM chunks WHERE id = ?",
                    [(row[0],) for row in stale],
                )
                conn.commit()
            if stale:
                self._forget_rows(stale)

        if stale:
            logger.info("Pruned %d stale chunks of document %s", len(stale), document)
        return len(stale)

    def _forget_rows(self, rows: Sequence[ChunkRow]) -> None:
        raise NotImplementedError

    def count(self) -> int:
        """Number of chunks in the metadata store."""
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) FROM chunks").fetchone()
        return int(row[0])

    def upsert(self, chunk: DocumentChunk) -> None:
        """Insert ``chunk`` or replace the stored chunk with the same id."""
        self.upsert_many([chunk])

    def upsert_many(self, chunks: Sequence[DocumentChunk]) -> None:
        raise NotImplementedError

    def load(self) -> None:
        raise NotImplementedError
