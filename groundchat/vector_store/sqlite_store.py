"""SQLite-based vector storage with numpy file backend."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from groundchat.config import config
from groundchat.vector_store.base import BaseSQLiteStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    from groundchat.models import DocumentChunk, ScoredChunk
    from groundchat.vector_store.base import ChunkRow

logger = config.get_logger(__name__)


class SQLiteVectorStore(BaseSQLiteStore):
    """Vector storage using SQLite for metadata and numpy files for embeddings."""

    backend = "sqlite"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        vectors_dir: Path = Path("data/vectors"),
    ) -> None:
        """Initialize the SQLiteVectorStore with database and vector directory paths.

        Args:
            db_path: Path to the SQLite database file.
            vectors_dir: Directory to store numpy vector files.
        """
        self.vectors_dir = Path(vectors_dir)

        self.chunks: list[DocumentChunk] = []
        self.embeddings: np.ndarray | None = None

        super().__init__(db_path)

    def initialize(self) -> None:
        self.vectors_dir.mkdir(exist_ok=True, parents=True)
        super().initialize()

    def upsert_many(self, chunks: Sequence[DocumentChunk]) -> None:
        """Add chunks with embeddings to the store, replacing same-id chunks.

        Raises:
            ValueError: If an embedding's dimension differs from stored vectors.
        """
        if not chunks:
            return

        with self._lock:
            dimension = (
                self.embeddings.shape[1] if self.embeddings is not None else None
            )
            pairs = self._embedded_pairs(
                chunks, dimension, stored_label="stored dimension"
            )
            if not pairs:
                return

            vector_files: dict[str, np.ndarray] = {}
            with self._connect() as conn:
                cursor = conn.cursor()
                for chunk, embedding in pairs:
                    row_id = self._upsert_row(cursor, chunk, vector_file=None)
                    vector_filename = f"chunk{row_id:08d}.npy"
                    cursor.execute(
                        "UPDATE chunks SET vector_file = ? WHERE id = ?",
                        (vector_filename, row_id),
                    )
                    vector_files[vector_filename] = embedding
                conn.commit()

            # Vector files are only touched once the rows are committed.
            for vector_filename, embedding in vector_files.items():
                np.save(self.vectors_dir / vector_filename, embedding)

            self.load()

        logger.info("Upserted %d chunks into SQLite vector store", len(pairs))

    def _forget_rows(self, rows: Sequence[ChunkRow]) -> None:
        for row in rows:
            vector_file = row[4]
            if vector_file:
                (self.vectors_dir / str(vector_file)).unlink(missing_ok=True)
        self.load()

    @staticmethod
    def cosine_similarity(
        query_embedding: np.ndarray,
        embeddings: np.ndarray,
    ) -> np.ndarray:
        """Calculate cosine similarity between query and document embeddings.

        Returns:
            np.ndarray: Array of cosine similarity scores
                    between the query and each document embedding.
        """
        eps = np.finfo(np.float32).eps
        query_norm = query_embedding / max(np.linalg.norm(query_embedding), eps)
        doc_norms = embeddings / np.maximum(
            np.linalg.norm(embeddings, axis=1, keepdims=True), eps
        )

        return np.dot(doc_norms, query_norm)

    def search(
        self,
        query_embedding: np.ndarray,
        k: int = 5,
    ) -> list[ScoredChunk]:
        """Search for similar chunks based on query embedding.

        Equal scores keep insertion order.

        Returns:
            A list of tuples, each containing a DocumentChunk and its similarity score.

        Raises:
            ValueError: If the query dimension differs from stored vectors.
        """
        with self._lock:
            chunks, embeddings = self.chunks, self.embeddings

        if embeddings is None or not chunks or k <= 0:
            return []

        query = np.asarray(query_embedding, dtype=np.float32)
        if query.shape[0] != embeddings.shape[1]:
            msg = (
                f"Query dimension {query.shape[0]} does not match "
                f"stored dimension {embeddings.shape[1]}"
            )
            raise ValueError(msg)

        similarities = self.cosine_similarity(query, embeddings)
        top_indices = np.argsort(-similarities, kind="stable")[:k]

        results = []
        for idx in top_indices:
            chunk = chunks[int(idx)]
            score = float(similarities[idx])
            logger.debug("Retrieved chunk %s with similarity %.4f", chunk.id, score)
            results.append((chunk, score))
        return results

    def save(self) -> None:  # noqa: PLR6301
        """
        Save operation - data is already persisted in SQLite and files.

        Note:
            This method is kept as an instance method for interface consistency
            with other vector store implementations, even though it does not use `self`.
        """
        logger.info("Data already persisted in SQLite database and vector files")

    def load(self) -> None:
        """Load chunks and their vectors from SQLite and the vectors directory.

        Raises:
            sqlite3.Error: If an error occurs while loading
                    from the SQLite vector store.
        """
        try:
            with self._connect() as conn:
                rows = self._fetch_all_rows(conn.cursor())
        except sqlite3.Error:
            logger.exception("Error loading from SQLite vector store")
            raise

        chunks: list[DocumentChunk] = []
        vectors: list[np.ndarray] = []
        for row in rows:
            vector_file = row[4]
            vector_path = self.vectors_dir / str(vector_file) if vector_file else None
            if vector_path is None or not vector_path.exists():
                logger.warning("Vector file missing for chunk %s", row[1])
                continue
            embedding = np.load(vector_path)
            chunks.append(self._build_chunk_from_row(row, embedding=embedding))
            vectors.append(embedding)

        with self._lock:
            self.chunks = chunks
            self.embeddings = np.vstack(vectors) if vectors else None

        logger.info("Loaded %d chunks from SQLite vector store", len(chunks))
