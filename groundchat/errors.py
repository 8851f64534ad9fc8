"""Exception hierarchy for GroundChat."""

SERVICE_UNAVAILABLE_MESSAGE = (
    "Sorry, the knowledge base is temporarily unavailable. Please try again later."
)
GENERATION_FAILED_MESSAGE = (
    "Sorry, I encountered an error while processing your request. Please try again."
)


class GroundChatError(Exception):
    """Base class for all GroundChat errors."""


class ConfigurationError(GroundChatError, ValueError):
    """Required settings are missing or invalid."""


class RAGServiceError(GroundChatError):
    """A collaborator call failed while answering a message.

    ``user_message`` is safe to show to chat users; the exception text and its
    chained cause are for logs only.
    """

    user_message: str = GENERATION_FAILED_MESSAGE


class EmbeddingError(RAGServiceError):
    """Embedding service unreachable, input rejected or call timed out."""

    user_message = SERVICE_UNAVAILABLE_MESSAGE


class SearchError(RAGServiceError):
    """Vector store unreachable or returned a malformed response."""

    user_message = SERVICE_UNAVAILABLE_MESSAGE


class GenerationError(RAGServiceError):
    """Completion service unreachable, rate-limited or timed out."""

    user_message = GENERATION_FAILED_MESSAGE
