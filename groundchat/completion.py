"""OpenAI chat completion service."""

from openai import AsyncOpenAI, OpenAIError

from .config import config
from .errors import ConfigurationError, GenerationError

logger = config.get_logger(__name__)


class CompletionService:
    """Turns a fully built prompt into generated text."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> None:
        """Initialize the CompletionService.

        Args:
            api_key: OpenAI API key. If None, reads from the environment.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            max_tokens: Response token limit. If None, uses config.CHAT_MAX_TOKENS.
            temperature: Sampling temperature. If None, uses config.CHAT_TEMPERATURE.

        Raises:
            ConfigurationError: If no API key is available.
        """
        api_key = api_key or config.get_openai_api_key()
        if not api_key:
            msg = "OPENAI_API_KEY is required for the completion service"
            raise ConfigurationError(msg)

        default_headers = config.get_api_headers()
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
            timeout=config.COMPLETION_TIMEOUT,
            max_retries=config.OPENAI_MAX_RETRIES,
        )
        self.model = model or config.CHAT_MODEL
        self.max_tokens = max_tokens or config.CHAT_MAX_TOKENS
        self.temperature = (
            temperature if temperature is not None else config.CHAT_TEMPERATURE
        )

    async def generate(self, prompt: str) -> str:
        """Generate a reply for ``prompt``.

        Returns:
            str: The stripped completion text.

        Raises:
            GenerationError: If the API call fails or returns no content.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            logger.exception("Error generating completion")
            msg = f"Completion request failed: {exc}"
            raise GenerationError(msg) from exc

        if not response.choices:
            msg = "Completion response contained no choices"
            raise GenerationError(msg)

        answer = response.choices[0].message.content
        if not answer or not answer.strip():
            msg = "Completion response was empty"
            raise GenerationError(msg)
        return answer.strip()
