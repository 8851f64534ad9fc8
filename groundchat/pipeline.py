"""Retrieval-augmented response pipeline."""

from __future__ import annotations

import asyncio
import sqlite3
from numbers import Real
from typing import TYPE_CHECKING

from .completion import CompletionService
from .config import config
from .conversation import ConversationStore
from .document_processing import DocumentLoader, TextChunker
from .embeddings import EmbeddingService
from .errors import ConfigurationError, EmbeddingError, GenerationError, SearchError
from .models import (
    ConversationTurn,
    DocumentChunk,
    GroundedAnswer,
    Role,
    ScoredChunk,
)
from .prompt import assemble_context, build_prompt, enforce_unavailable_signal
from .vector_store import get_vector_store

if TYPE_CHECKING:
    from pathlib import Path

    import numpy as np

    from .contracts import CompletionClient, EmbeddingClient, VectorStore

logger = config.get_logger(__name__)

SEARCH_FAILURES = (sqlite3.Error, OSError, RuntimeError, ValueError)


class RAGPipeline:
    """Turns a chat message plus session history into a grounded answer.

    Flow per message: embed -> search -> assemble context -> build prompt ->
    generate -> update conversation memory. Each external call is bounded by
    its own timeout, and memory is only written after generation succeeds.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        embedding_client: EmbeddingClient | None = None,
        vector_store: VectorStore | None = None,
        completion_client: CompletionClient | None = None,
        conversation_store: ConversationStore | None = None,
        top_k: int | None = None,
        embedding_timeout: float | None = None,
        search_timeout: float | None = None,
        completion_timeout: float | None = None,
        chunker: TextChunker | None = None,
    ) -> None:
        """Initialize the pipeline with its collaborators.

        Any collaborator left as None is built from ``config``.

        Raises:
            ConfigurationError: If K or a timeout is not positive, or a default
                collaborator cannot be configured.
        """
        self.top_k = top_k if top_k is not None else config.TOP_K_CHUNKS
        self.embedding_timeout = (
            embedding_timeout
            if embedding_timeout is not None
            else config.EMBEDDING_TIMEOUT
        )
        self.search_timeout = (
            search_timeout if search_timeout is not None else config.SEARCH_TIMEOUT
        )
        self.completion_timeout = (
            completion_timeout
            if completion_timeout is not None
            else config.COMPLETION_TIMEOUT
        )
        self._validate_settings()

        self.embedding_client = embedding_client or EmbeddingService()
        self.completion_client = completion_client or CompletionService()
        if vector_store is None:
            try:
                vector_store = get_vector_store(config.VECTOR_BACKEND)
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
        self.vector_store = vector_store
        self.conversation_store = conversation_store or ConversationStore()
        self.chunker = chunker or TextChunker(
            chunk_size=config.CHUNK_SIZE, overlap=config.CHUNK_OVERLAP
        )
        self._initialized = False

    def _validate_settings(self) -> None:
        if self.top_k < 1:
            msg = f"top_k must be at least 1, got {self.top_k}"
            raise ConfigurationError(msg)
        timeouts = {
            "embedding_timeout": self.embedding_timeout,
            "search_timeout": self.search_timeout,
            "completion_timeout": self.completion_timeout,
        }
        for name, value in timeouts.items():
            if value <= 0:
                msg = f"{name} must be positive, got {value}"
                raise ConfigurationError(msg)

    @property
    def max_history(self) -> int:
        return self.conversation_store.max_length

    def initialize(self) -> None:
        """Create vector storage and load persisted data; call once at startup."""
        self.vector_store.initialize()
        self._initialized = True
        logger.info(
            "Pipeline initialized (top_k=%d, max_history=%d)",
            self.top_k,
            self.max_history,
        )

    def clear(self, session_key: str) -> None:
        """Forget the conversation for ``session_key``."""
        self.conversation_store.clear(session_key)

    async def answer(self, session_key: str, user_message: str) -> GroundedAnswer:
        """Answer ``user_message`` for ``session_key`` from retrieved context only.

        Returns:
            GroundedAnswer: Generated text and whether any context was used.

        Raises:
            ConfigurationError: If ``initialize()`` has not been called.
            EmbeddingError: If the query cannot be embedded.
            SearchError: If the vector store fails.
            GenerationError: If the completion service fails.
        """
        if not self._initialized:
            msg = "RAGPipeline.initialize() must be called before answer()"
            raise ConfigurationError(msg)

        logger.info("Processing message for session %s", session_key)

        query_embedding = await self._embed(user_message)
        results = await self._retrieve(query_embedding)
        used_context = bool(results)

        context_block = assemble_context(results)
        history = self._bounded_history(session_key)
        prompt = build_prompt(context_block, history, user_message)

        text = await self._generate(prompt)
        if not used_context:
            grounded_text = enforce_unavailable_signal(text)
            if grounded_text != text:
                logger.warning(
                    "Reply without retrieved context replaced by unavailable notice"
                )
            text = grounded_text

        user_turn = ConversationTurn(role=Role.USER, text=user_message)
        assistant_turn = ConversationTurn(role=Role.ASSISTANT, text=text)
        self.conversation_store.extend(session_key, [user_turn, assistant_turn])

        sources = list(dict.fromkeys(chunk.label for chunk, _ in results))
        for i, (chunk, score) in enumerate(results, start=1):
            logger.info("  Context %d: %s (score: %.4f)", i, chunk.label, score)

        return GroundedAnswer(text=text, used_context=used_context, sources=sources)

    async def _embed(self, text: str) -> np.ndarray:
        try:
            return await asyncio.wait_for(
                self.embedding_client.embed(text),
                timeout=self.embedding_timeout,
            )
        except TimeoutError as exc:
            msg = f"Embedding timed out after {self.embedding_timeout}s"
            raise EmbeddingError(msg) from exc

    async def _retrieve(self, query_embedding: np.ndarray) -> list[ScoredChunk]:
        try:
            raw_results = await asyncio.wait_for(
                asyncio.to_thread(
                    self.vector_store.search, query_embedding, self.top_k
                ),
                timeout=self.search_timeout,
            )
        except TimeoutError as exc:
            msg = f"Vector search timed out after {self.search_timeout}s"
            raise SearchError(msg) from exc
        except SEARCH_FAILURES as exc:
            msg = f"Vector search failed: {exc}"
            raise SearchError(msg) from exc

        return self._validate_results(raw_results)

    def _validate_results(self, raw_results: object) -> list[ScoredChunk]:
        if not isinstance(raw_results, (list, tuple)):
            msg = f"Vector store returned {type(raw_results).__name__}, expected a list"
            raise SearchError(msg)

        results: list[ScoredChunk] = []
        for item in raw_results:
            if (
                not isinstance(item, tuple)
                or len(item) != 2  # noqa: PLR2004
                or not isinstance(item[0], DocumentChunk)
                or not isinstance(item[1], Real)
            ):
                msg = f"Malformed search result: {item!r}"
                raise SearchError(msg)
            results.append((item[0], float(item[1])))

        if len(results) > self.top_k:
            logger.warning(
                "Vector store returned %d results for k=%d; keeping the first %d",
                len(results),
                self.top_k,
                self.top_k,
            )
            results = results[: self.top_k]

        logger.info("Retrieved %d relevant chunks", len(results))
        return results

    def _bounded_history(self, session_key: str) -> list[ConversationTurn]:
        history = self.conversation_store.history(session_key)
        if len(history) > self.max_history:
            logger.warning(
                "Session %s returned %d turns, above the bound of %d; truncating",
                session_key,
                len(history),
                self.max_history,
            )
            history = history[-self.max_history :]
        return history

    async def _generate(self, prompt: str) -> str:
        try:
            return await asyncio.wait_for(
                self.completion_client.generate(prompt),
                timeout=self.completion_timeout,
            )
        except TimeoutError as exc:
            msg = f"Completion timed out after {self.completion_timeout}s"
            raise GenerationError(msg) from exc

    async def add_document(
        self,
        name: str,
        content: str,
        metadata: dict[str, str] | None = None,
    ) -> int:
        """Chunk, embed and upsert a document into the knowledge base.

        Re-adding a document with the same name replaces its previous version:
        chunks with the same index are overwritten and chunks the new version
        no longer has are removed once the new chunks are stored.

        Returns:
            int: Number of chunks stored.
        """
        logger.info("Adding document: %s", name)

        chunks = self.chunker.chunk_text(content, document=name, metadata=metadata)
        if not chunks:
            logger.warning("Document %s produced no chunks", name)
            removed = await asyncio.to_thread(
                self.vector_store.prune_document, name, []
            )
            if removed:
                await asyncio.to_thread(self.vector_store.save)
            return 0

        embeddings = await self.embedding_client.embed_batch(
            [chunk.content for chunk in chunks]
        )
        embedded = [
            DocumentChunk(
                id=chunk.id,
                content=chunk.content,
                metadata=chunk.metadata,
                embedding=embedding,
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]

        await asyncio.to_thread(self.vector_store.upsert_many, embedded)
        removed = await asyncio.to_thread(
            self.vector_store.prune_document, name, [chunk.id for chunk in embedded]
        )
        await asyncio.to_thread(self.vector_store.save)

        logger.info(
            "Document %s added with %d chunks (%d stale chunks removed)",
            name,
            len(embedded),
            removed,
        )
        return len(embedded)

    async def process_document(self, file_path: Path) -> int:
        """Load a document from disk and add it to the knowledge base.

        Returns:
            int: Number of chunks stored.
        """
        logger.info("Starting ingestion for document: %s", file_path)
        text = await asyncio.to_thread(DocumentLoader.load_document, file_path)
        return await self.add_document(
            file_path.stem, text, metadata={"source": file_path.name}
        )
