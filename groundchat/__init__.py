"""GroundChat - grounded retrieval-augmented chat answers."""

from .completion import CompletionService
from .conversation import ConversationStore
from .document_processing import DocumentLoader, TextChunker
from .embeddings import EmbeddingService
from .errors import (
    ConfigurationError,
    EmbeddingError,
    GenerationError,
    GroundChatError,
    RAGServiceError,
    SearchError,
)
from .models import (
    ConversationSession,
    ConversationTurn,
    DocumentChunk,
    GroundedAnswer,
    Role,
)
from .pipeline import RAGPipeline
from .transport import ChatHandler, IncomingMessage, mention_or_keyword_trigger
from .vector_store import FaissVectorStore, SQLiteVectorStore, get_vector_store

__all__ = [
    "ChatHandler",
    "CompletionService",
    "ConfigurationError",
    "ConversationSession",
    "ConversationStore",
    "ConversationTurn",
    "DocumentChunk",
    "DocumentLoader",
    "EmbeddingError",
    "EmbeddingService",
    "FaissVectorStore",
    "GenerationError",
    "GroundChatError",
    "GroundedAnswer",
    "IncomingMessage",
    "RAGPipeline",
    "RAGServiceError",
    "Role",
    "SQLiteVectorStore",
    "SearchError",
    "TextChunker",
    "get_vector_store",
    "mention_or_keyword_trigger",
]
