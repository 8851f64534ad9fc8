"""Test configuration and fixtures for GroundChat tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock collaborators (embedding, completion, vector store)
- OpenAI API response helpers
- Text processing fixtures
- Vector store fixtures
- Pipeline factories
"""

import hashlib
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import numpy as np
import pytest
from openai import OpenAIError

from groundchat import (
    CompletionService,
    ConversationStore,
    DocumentChunk,
    EmbeddingService,
    FaissVectorStore,
    RAGPipeline,
    SQLiteVectorStore,
    TextChunker,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
TEST_DATA_DIR = PROJECT_ROOT / "tests" / "data"


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_EMBEDDING_MODEL = "text-embedding-3-small"
    TEST_CHAT_MODEL = "gpt-4o-mini"
    DEFAULT_EMBEDDING_DIMENSION = 64

    # Text Chunking Configuration
    SMALL_CHUNK_SIZE = 100
    SMALL_CHUNK_OVERLAP = 20
    DEFAULT_CHUNK_SIZE = 500
    DEFAULT_CHUNK_OVERLAP = 100

    # Pipeline Configuration
    TOP_K = 3
    MAX_HISTORY = 20


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    def vector_for(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        return self.vector_for(text)

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        return [self.vector_for(text) for text in texts]


class FakeCompletionClient:
    """Completion client that records prompts and replays a fixed reply."""

    def __init__(self, reply: str = "Test response") -> None:
        self.reply = reply
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


class FakeVectorStore:
    """In-memory vector store returning a canned result list."""

    def __init__(self, results=None) -> None:  # noqa: ANN001
        self.results = list(results or [])
        self.upserted: list[DocumentChunk] = []
        self.initialized = False
        self.saved = 0
        self.search_calls: list[int] = []
        self.pruned: list[str] = []

    def initialize(self) -> None:
        self.initialized = True

    def search(self, query_embedding, k):  # noqa: ANN001, ANN201, ARG002
        self.search_calls.append(k)
        return self.results[:k]

    def upsert(self, chunk: DocumentChunk) -> None:
        self.upsert_many([chunk])

    def upsert_many(self, chunks) -> None:  # noqa: ANN001
        replaced = {chunk.id for chunk in chunks}
        self.upserted = [c for c in self.upserted if c.id not in replaced]
        self.upserted.extend(chunks)

    def prune_document(self, document, keep_ids) -> int:  # noqa: ANN001
        keep = set(keep_ids)
        before = len(self.upserted)
        self.upserted = [
            chunk
            for chunk in self.upserted
            if chunk.id in keep or chunk.metadata.get("document") != document
        ]
        self.pruned.append(document)
        return before - len(self.upserted)

    def save(self) -> None:
        self.saved += 1


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch AsyncEmbeddings.create so no request leaves the process."""
    with patch(
        "openai.resources.embeddings.AsyncEmbeddings.create",
        new_callable=AsyncMock,
    ) as mock_create:
        yield mock_create


@pytest.fixture
def openai_chat_api_mock():
    """Patch AsyncCompletions.create for chat completions."""
    with patch(
        "openai.resources.chat.completions.AsyncCompletions.create",
        new_callable=AsyncMock,
    ) as mock_create:
        yield mock_create


@pytest.fixture
def embedding_service_factory():
    """Factory for creating EmbeddingService instances with different configurations."""

    def _create_service(api_key=None, model=None, max_input_chars=None):  # noqa: ANN202
        return EmbeddingService(
            api_key=api_key or TestConstants.TEST_API_KEY,
            model=model,
            max_input_chars=max_input_chars,
        )

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    """Default EmbeddingService with test API key for most tests."""
    return embedding_service_factory()


@pytest.fixture
def completion_service():
    return CompletionService(
        api_key=TestConstants.TEST_API_KEY,
        model=TestConstants.TEST_CHAT_MODEL,
        max_tokens=200,
        temperature=0.2,
    )


@pytest.fixture
def text_chunker_small():
    """Text chunker configured for small chunks (100/20)."""
    return TextChunker(
        chunk_size=TestConstants.SMALL_CHUNK_SIZE,
        overlap=TestConstants.SMALL_CHUNK_OVERLAP,
    )


@pytest.fixture
def text_chunker_default():
    """Text chunker configured with default settings (500/100)."""
    return TextChunker(
        chunk_size=TestConstants.DEFAULT_CHUNK_SIZE,
        overlap=TestConstants.DEFAULT_CHUNK_OVERLAP,
    )


@pytest.fixture(scope="session")
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def mock_embeddings(mock_embedding_service):
    """Factory function to create mock embeddings using the service."""
    return mock_embedding_service.vector_for


@pytest.fixture
def temp_vector_store(tmp_path) -> SQLiteVectorStore:
    """Create and initialize a temporary SQLite vector store."""
    store = SQLiteVectorStore(tmp_path / "test_store.db", tmp_path / "vectors")
    store.initialize()
    return store


@pytest.fixture
def temp_faiss_store(tmp_path) -> FaissVectorStore:
    """Create and initialize a temporary FAISS vector store."""
    store = FaissVectorStore(
        db_path=tmp_path / "faiss_store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )
    store.initialize()
    return store


@pytest.fixture
def sample_text_chunks():
    """Create sample document chunks with text and metadata only (no embeddings)."""
    texts = [
        "Pollinet is a collective of beekeepers in the Alps.",
        "Pollinet was founded in 2019 in Grenoble.",
        "Members share hive sensor data every morning.",
        "The collective runs a yearly honey tasting.",
        "New members pay no fee in their first season.",
    ]
    return [
        DocumentChunk(
            id=f"pollinet_{i}",
            content=text,
            metadata={
                "source": f"pollinet_{i // 3}.md",
                "document": "pollinet",
                "chunk_index": str(i),
            },
        )
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def sample_embedded_chunks(sample_text_chunks, mock_embeddings):
    """Create sample document chunks with embeddings based on text chunks."""
    return [
        DocumentChunk(
            id=chunk.id,
            content=chunk.content,
            metadata=chunk.metadata,
            embedding=mock_embeddings(chunk.content),
        )
        for chunk in sample_text_chunks
    ]


@pytest.fixture
def sample_chunks():
    """Two scored chunks about Pollinet, best match first."""
    return [
        (
            DocumentChunk(
                id="about_0",
                content="Pollinet is a collective of beekeepers in the Alps.",
                metadata={"source": "about.md"},
            ),
            0.91,
        ),
        (
            DocumentChunk(
                id="history_0",
                content="Pollinet was founded in 2019 in Grenoble.",
                metadata={"source": "history.md"},
            ),
            0.77,
        ),
    ]


@pytest.fixture(scope="session")
def sample_document_path():
    """Path to the sample knowledge base document."""
    return TEST_DATA_DIR / "sample_knowledge_base.md"


@pytest.fixture
def pipeline_factory(mock_embedding_service):
    """Factory for RAGPipeline instances wired to in-memory collaborators."""

    def _create_pipeline(  # noqa: PLR0913
        *,
        results=None,
        reply: str = "Test response",
        vector_store=None,
        completion_client=None,
        embedding_client=None,
        max_history: int = TestConstants.MAX_HISTORY,
        top_k: int = TestConstants.TOP_K,
        initialize: bool = True,
        **kwargs,
    ) -> RAGPipeline:
        pipeline = RAGPipeline(
            embedding_client=embedding_client or mock_embedding_service,
            vector_store=vector_store or FakeVectorStore(results),
            completion_client=completion_client or FakeCompletionClient(reply),
            conversation_store=ConversationStore(max_length=max_history),
            top_k=top_k,
            chunker=TextChunker(chunk_size=200, overlap=50),
            **kwargs,
        )
        if initialize:
            pipeline.initialize()
        return pipeline

    return _create_pipeline


@pytest.fixture
def make_completion_client():
    """Factory for FakeCompletionClient instances."""
    return FakeCompletionClient


@pytest.fixture
def make_vector_store():
    """Factory for FakeVectorStore instances."""
    return FakeVectorStore


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Configure the patched embeddings API for a scenario.

    Scenarios: 'single_success', 'batch_success', 'multiple_batches',
    'partial_failure', 'error' and 'empty'.
    """

    def _create_mock(  # noqa: ANN202
        scenario="single_success",
        embeddings=None,
        error_message="API Error",
    ):
        openai_embeddings_api_mock.reset_mock()
        openai_embeddings_api_mock.side_effect = None
        openai_embeddings_api_mock.return_value = None

        if scenario == "single_success":
            mock_embedding = embeddings or [0.1, 0.2, 0.3, 0.4, 0.5]
            openai_embeddings_api_mock.return_value = create_mock_openai_response(
                [mock_embedding]
            )
        elif scenario == "batch_success":
            mock_embeddings = embeddings or [
                [0.1, 0.2, 0.3],
                [0.4, 0.5, 0.6],
                [0.7, 0.8, 0.9],
            ]
            openai_embeddings_api_mock.return_value = create_mock_openai_response(
                mock_embeddings
            )
        elif scenario == "multiple_batches":
            openai_embeddings_api_mock.side_effect = [
                create_mock_openai_response([[0.1, 0.2], [0.3, 0.4]]),
                create_mock_openai_response([[0.5, 0.6], [0.7, 0.8]]),
            ]
        elif scenario == "partial_failure":
            openai_embeddings_api_mock.side_effect = [
                create_mock_openai_response([[0.1, 0.2]]),
                OpenAIError("Second batch failed"),
            ]
        elif scenario == "error":
            openai_embeddings_api_mock.side_effect = OpenAIError(error_message)
        elif scenario == "empty":
            openai_embeddings_api_mock.return_value = create_mock_openai_response([])

        return openai_embeddings_api_mock

    return _create_mock


@pytest.fixture
def openai_chat_factory(openai_chat_api_mock):
    """Configure the patched chat completions API with a reply or an error."""

    def _create_mock(content="Test response", side_effect=None):  # noqa: ANN202
        openai_chat_api_mock.reset_mock()
        openai_chat_api_mock.side_effect = side_effect
        openai_chat_api_mock.return_value = create_mock_chat_response(content)
        return openai_chat_api_mock

    return _create_mock
