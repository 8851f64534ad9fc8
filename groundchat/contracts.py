"""Collaborator interfaces consumed by the pipeline.

Any object with matching methods can be injected into ``RAGPipeline``;
tests use in-memory fakes, production uses the OpenAI services and the
SQLite/FAISS vector stores.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    import numpy as np

    from .models import DocumentChunk, ScoredChunk


@runtime_checkable
class EmbeddingClient(Protocol):
    """Converts text to a fixed-length vector.

    Raises ``EmbeddingError`` when the service is unreachable or rejects input.
    """

    async def embed(self, text: str) -> np.ndarray: ...

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]: ...


@runtime_checkable
class CompletionClient(Protocol):
    """Generates text for a prompt.

    Raises ``GenerationError`` on any service failure.
    """

    async def generate(self, prompt: str) -> str: ...


@runtime_checkable
class VectorStore(Protocol):
    """Stores chunks and answers nearest-neighbour queries.

    ``search`` returns at most ``k`` results in descending score order, ties
    kept in insertion order. It is called from a worker thread.
    ``prune_document`` deletes the chunks of a document whose ids are not
    kept and returns how many were removed.
    """

    def initialize(self) -> None: ...

    def search(self, query_embedding: np.ndarray, k: int) -> list[ScoredChunk]: ...

    def upsert(self, chunk: DocumentChunk) -> None: ...

    def upsert_many(self, chunks: Sequence[DocumentChunk]) -> None: ...

    def prune_document(self, document: str, keep_ids: Iterable[str]) -> int: ...

    def save(self) -> None: ...
