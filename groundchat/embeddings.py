"""OpenAI embeddings service."""

import numpy as np
from openai import AsyncOpenAI, OpenAIError

from .config import config
from .errors import ConfigurationError, EmbeddingError

logger = config.get_logger(__name__)


class EmbeddingService:
    """Handles OpenAI embeddings generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_input_chars: int | None = None,
    ) -> None:
        """Initialize the EmbeddingService with OpenAI API key and model.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            max_input_chars: Longest accepted input. If None, uses
                config.EMBEDDING_MAX_INPUT_CHARS.

        Raises:
            ConfigurationError: If no API key is available.
        """
        api_key = api_key or config.get_openai_api_key()
        if not api_key:
            msg = "OPENAI_API_KEY is required for the embedding service"
            raise ConfigurationError(msg)

        default_headers = config.get_api_headers()
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=config.EMBEDDING_TIMEOUT,
            max_retries=config.OPENAI_MAX_RETRIES,
        )
        self.model = model or config.EMBEDDING_MODEL
        self.max_input_chars = max_input_chars or config.EMBEDDING_MAX_INPUT_CHARS

    def _check_input(self, text: str) -> None:
        if not text or not text.strip():
            msg = "Cannot embed empty text"
            raise EmbeddingError(msg)
        if len(text) > self.max_input_chars:
            msg = (
                f"Input of {len(text)} characters exceeds the embedding limit "
                f"of {self.max_input_chars}"
            )
            raise EmbeddingError(msg)

    async def embed(self, text: str) -> np.ndarray:
        """Get embedding for a single text.

        Args:
            text: The input text to generate an embedding for.

        Returns:
            np.ndarray: The embedding vector for the input text.

        Raises:
            EmbeddingError: If the input is rejected or the API call fails.
        """
        self._check_input(text)
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
            )
        except OpenAIError as exc:
            logger.exception("Error generating embedding")
            msg = f"Embedding request failed: {exc}"
            raise EmbeddingError(msg) from exc

        if not response.data:
            msg = "Embedding response contained no vectors"
            raise EmbeddingError(msg)
        return np.array(response.data[0].embedding, dtype=np.float32)

    async def embed_batch(
        self,
        texts: list[str],
        batch_size: int = 100,
    ) -> list[np.ndarray]:
        """Get embeddings for multiple texts in batches.

        Args:
            texts: List of input texts to generate embeddings for.
            batch_size: Number of texts to process in each batch.

        Returns:
            list[np.ndarray]: List of embedding vectors for the input texts.

        Raises:
            EmbeddingError: If any input is rejected or a batch request fails.
        """
        for text in texts:
            self._check_input(text)

        embeddings: list[np.ndarray] = []

        for i in range(0, len(texts), batch_size):
            batch_texts = texts[i : i + batch_size]
            try:
                response = await self.client.embeddings.create(
                    model=self.model,
                    input=batch_texts,
                )
            except OpenAIError as exc:
                logger.exception("Error generating batch embeddings")
                msg = f"Batch embedding request failed: {exc}"
                raise EmbeddingError(msg) from exc

            if len(response.data) != len(batch_texts):
                msg = (
                    f"Expected {len(batch_texts)} embeddings, "
                    f"got {len(response.data)}"
                )
                raise EmbeddingError(msg)

            embeddings.extend(
                np.array(data.embedding, dtype=np.float32) for data in response.data
            )
            logger.info("Generated embeddings for batch %d", i // batch_size + 1)

        return embeddings
