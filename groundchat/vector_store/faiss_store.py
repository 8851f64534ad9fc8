"""FAISS-backed vector storage with SQLite metadata."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from groundchat.config import config
from groundchat.vector_store.base import BaseSQLiteStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    from groundchat.models import DocumentChunk, ScoredChunk
    from groundchat.vector_store.base import ChunkRow

logger = config.get_logger(__name__)


class FaissVectorStore(BaseSQLiteStore):
    """Vector storage using FAISS for embeddings and SQLite for metadata."""

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
        raw_top_k_multiplier: int = 2,
    ) -> None:
        """Configure FAISS-backed vector store."""
        self.index_path = Path(index_path)

        self.index: faiss.IndexIDMap | None = None
        self.raw_top_k_multiplier = max(1, raw_top_k_multiplier)
        self.chunks_by_id: dict[int, DocumentChunk] = {}

        super().__init__(db_path)

    def initialize(self) -> None:
        self.index_path.parent.mkdir(exist_ok=True, parents=True)
        super().initialize()

    @staticmethod
    def _normalize_embedding(embedding: np.ndarray) -> np.ndarray:
        """Normalize embedding for cosine similarity using inner product search.

        Returns:
            Normalized embedding vector.
        """
        vector = np.array(embedding, dtype="float32").reshape(1, -1)
        if np.linalg.norm(vector) > 0:
            faiss.normalize_L2(vector)
        return vector[0]

    def _init_index(self, dimension: int) -> None:
        """Initialize FAISS index if missing."""
        base_index = faiss.IndexFlatIP(dimension)
        self.index = faiss.IndexIDMap(base_index)
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)

    def upsert_many(self, chunks: Sequence[DocumentChunk]) -> None:
        """Add or replace chunks in the FAISS index and metadata store.

        Raises:
            ValueError: If embedding dimension mismatches the index.
        """
        if not chunks:
            return

        embeddings_batch: list[np.ndarray] = []
        vector_ids: list[int] = []
        stored: dict[int, DocumentChunk] = {}

        with self._lock:
            pairs = self._embedded_pairs(
                chunks,
                self.index.d if self.index is not None else None,
                stored_label="FAISS index dimension",
            )
            if not pairs:
                logger.warning("No embeddings added to FAISS index")
                return
            if self.index is None:
                self._init_index(pairs[0][1].shape[0])
            index = self.index

            with self._connect() as conn:
                cursor = conn.cursor()

                for chunk, raw_embedding in pairs:
                    embedding = self._normalize_embedding(raw_embedding)
                    vector_id = self._upsert_row(cursor, chunk, vector_file=None)
                    if vector_id in stored:
                        # Same id twice in one batch: the later chunk wins.
                        position = vector_ids.index(vector_id)
                        embeddings_batch[position] = embedding
                    else:
                        embeddings_batch.append(embedding)
                        vector_ids.append(vector_id)
                    stored[vector_id] = chunk

                conn.commit()

            ids_array = np.asarray(vector_ids, dtype="int64")
            index.remove_ids(ids_array)
            index.add_with_ids(
                np.vstack(embeddings_batch).astype("float32"),
                ids_array,
            )  # pyright: ignore[reportCallIssue]
            self.chunks_by_id.update(stored)

        logger.info("Upserted %d vectors into FAISS index", len(vector_ids))

    def _forget_rows(self, rows: Sequence[ChunkRow]) -> None:
        vector_ids = [int(row[0]) for row in rows]
        if self.index is not None:
            self.index.remove_ids(np.asarray(vector_ids, dtype="int64"))
        for vector_id in vector_ids:
            self.chunks_by_id.pop(vector_id, None)

    def search(
        self,
        query_embedding: np.ndarray,
        k: int = 5,
    ) -> list[ScoredChunk]:
        """Search similar chunks using FAISS index.

        FAISS does not order equal scores; results are re-sorted by score and
        then by vector id, which follows insertion order.

        Returns:
            Ranked list of (DocumentChunk, score) tuples.

        Raises:
            ValueError: If the query dimension differs from the index.
        """
        with self._lock:
            index = self.index
            if index is None or index.ntotal == 0 or k <= 0:
                return []

            normalized_query = self._normalize_embedding(query_embedding)
            if normalized_query.shape[0] != index.d:
                msg = (
                    f"Query dimension {normalized_query.shape[0]} does not match "
                    f"FAISS index dimension {index.d}"
                )
                raise ValueError(msg)

            raw_top_k = min(max(k, self.raw_top_k_multiplier * k), index.ntotal)
            scores, vector_ids = index.search(
                normalized_query.reshape(1, -1),
                raw_top_k,
            )  # pyright: ignore[reportCallIssue]
            chunks_by_id = dict(self.chunks_by_id)

        hits = sorted(
            (
                (float(score), int(vector_id))
                for score, vector_id in zip(scores[0], vector_ids[0], strict=True)
                if int(vector_id) != -1  # faiss returns -1 for empty results
            ),
            key=lambda hit: (-hit[0], hit[1]),
        )

        missing = [vector_id for _, vector_id in hits if vector_id not in chunks_by_id]
        if missing:
            with self._connect() as conn:
                rows = self._fetch_rows_by_id(conn.cursor(), missing)
            for vector_id, row in rows.items():
                chunks_by_id[vector_id] = self._build_chunk_from_row(row)

        results: list[ScoredChunk] = [
            (chunks_by_id[vector_id], score)
            for score, vector_id in hits
            if vector_id in chunks_by_id
        ]
        return results[:k]

    def save(self) -> None:
        """Persist FAISS index to disk."""
        with self._lock:
            index = self.index
            if index is None:
                logger.warning("No FAISS index to save")
                return

            self.index_path.parent.mkdir(exist_ok=True, parents=True)
            faiss.write_index(index, str(self.index_path))
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Load metadata and FAISS index from disk.

        Raises:
            sqlite3.Error: If metadata read fails.
        """
        if self.index_path.exists():
            index = faiss.read_index(str(self.index_path))
            logger.info(
                "Loaded FAISS index from %s with %d vectors",
                self.index_path,
                index.ntotal,
            )
            if not isinstance(index, (faiss.IndexIDMap, faiss.IndexIDMap2)):
                logger.warning(
                    "Loaded FAISS index is %s; wrapping with IndexIDMap to enable IDs",
                    type(index).__name__,
                )
                index = faiss.IndexIDMap(index)
        else:
            logger.warning(
                "FAISS index not found at %s. Start with an empty index.",
                self.index_path,
            )
            index = None

        try:
            with self._connect() as conn:
                rows = self._fetch_all_rows(conn.cursor())
        except sqlite3.Error:
            logger.exception("Error loading metadata for FAISS vector store")
            raise

        chunks_by_id = {int(row[0]): self._build_chunk_from_row(row) for row in rows}

        with self._lock:
            self.index = index
            self.chunks_by_id = chunks_by_id

        logger.info("Loaded %d chunks from metadata store", len(chunks_by_id))
