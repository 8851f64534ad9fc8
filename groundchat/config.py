"""Configuration management for GroundChat."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)

VECTOR_BACKENDS = frozenset({"faiss", "sqlite"})


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip().lower() for item in value.split(",") if item.strip())


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")
    OPENAI_MAX_RETRIES: int = int(os.getenv("OPENAI_MAX_RETRIES", "2"))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Ingestion Configuration
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))

    # Embedding Configuration
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_MAX_INPUT_CHARS: int = int(
        os.getenv("EMBEDDING_MAX_INPUT_CHARS", "30000")
    )

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-4o-mini")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "500"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.3"))

    # Retrieval and Memory Configuration
    TOP_K_CHUNKS: int = int(os.getenv("TOP_K_CHUNKS", "5"))
    MAX_CONVERSATION_HISTORY: int = int(os.getenv("MAX_CONVERSATION_HISTORY", "20"))

    # Timeouts (seconds) for each external call
    EMBEDDING_TIMEOUT: float = float(os.getenv("EMBEDDING_TIMEOUT", "15"))
    SEARCH_TIMEOUT: float = float(os.getenv("SEARCH_TIMEOUT", "10"))
    COMPLETION_TIMEOUT: float = float(os.getenv("COMPLETION_TIMEOUT", "60"))

    # Vector Store Configuration
    VECTOR_BACKEND: str = os.getenv("VECTOR_BACKEND", "faiss").lower()
    VECTOR_STORE_DB_PATH: Path = Path(
        os.getenv("VECTOR_STORE_DB_PATH", "data/vector_store.db")
    )
    VECTOR_STORE_DIR: Path = Path(os.getenv("VECTOR_STORE_DIR", "data/vectors"))
    FAISS_INDEX_PATH: Path = Path(
        os.getenv("FAISS_INDEX_PATH", "data/faiss/index.faiss")
    )

    # Chat Transport Configuration
    BOT_USERNAME: str = os.getenv("BOT_USERNAME", "")
    TRIGGER_KEYWORDS: tuple[str, ...] = _split_csv(os.getenv("TRIGGER_KEYWORDS", ""))

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "GroundChat/1.0")

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values.

        Raises:
            ConfigurationError: If a required setting is missing or out of range.
        """
        if not cls.get_openai_api_key():
            msg = (
                "OPENAI_API_KEY is required. Please set it in .env file or environment."
            )
            raise ConfigurationError(msg)

        if cls.VECTOR_BACKEND not in VECTOR_BACKENDS:
            msg = (
                f"VECTOR_BACKEND must be one of {sorted(VECTOR_BACKENDS)}, "
                f"got '{cls.VECTOR_BACKEND}'"
            )
            raise ConfigurationError(msg)

        positive_settings = {
            "TOP_K_CHUNKS": cls.TOP_K_CHUNKS,
            "MAX_CONVERSATION_HISTORY": cls.MAX_CONVERSATION_HISTORY,
            "EMBEDDING_MAX_INPUT_CHARS": cls.EMBEDDING_MAX_INPUT_CHARS,
            "EMBEDDING_TIMEOUT": cls.EMBEDDING_TIMEOUT,
            "SEARCH_TIMEOUT": cls.SEARCH_TIMEOUT,
            "COMPLETION_TIMEOUT": cls.COMPLETION_TIMEOUT,
            "CHUNK_SIZE": cls.CHUNK_SIZE,
        }
        for name, value in positive_settings.items():
            if value <= 0:
                msg = f"{name} must be positive, got {value}"
                raise ConfigurationError(msg)

        if not 0 <= cls.CHUNK_OVERLAP < cls.CHUNK_SIZE:
            msg = (
                f"CHUNK_OVERLAP ({cls.CHUNK_OVERLAP}) must be non-negative "
                f"and smaller than CHUNK_SIZE ({cls.CHUNK_SIZE})"
            )
            raise ConfigurationError(msg)

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment.

        Returns:
            True if environment is development.
        """
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment.

        Returns:
            True if environment is production.
        """
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def setup_logging(cls) -> None:
        """Setup basic logging configuration.

        Configure logging once at application startup with:
        - Console output for all levels
        - Simple, readable format
        - Configurable level via environment variable
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        logging.getLogger("openai").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound API calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
