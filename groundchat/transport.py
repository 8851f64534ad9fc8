"""Chat transport glue: when to respond, what to ask and how to reply.

A transport (Streamlit page, console REPL, a bot framework) turns its own
updates into ``IncomingMessage`` objects and sends back whatever
``ChatHandler.handle`` returns.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import config
from .errors import RAGServiceError

if TYPE_CHECKING:
    from .pipeline import RAGPipeline

logger = config.get_logger(__name__)

START_MESSAGE = (
    "Hello! I'm a knowledge base assistant.\n\n"
    "I answer questions using only the documents in my knowledge base.\n\n"
    "How to use me:\n"
    "- In private chats: just send me your question\n"
    "- In group chats: mention me or use one of my trigger keywords\n\n"
    "If I don't have the answer, I'll tell you."
)
HELP_MESSAGE = (
    "Commands:\n"
    "/start - Welcome message and introduction\n"
    "/help - Show this help message\n"
    "/clear - Clear conversation history\n\n"
    "How I work:\n"
    "- I search the knowledge base for passages related to your question\n"
    "- I answer only from those passages\n"
    "- I remember our recent conversation so you can ask follow-up questions\n"
    "- I never make up information; if I don't know, I'll say so"
)
CLEAR_MESSAGE = "Conversation history cleared! Starting fresh."

_COMMAND_PATTERN = re.compile(
    r"^/(?P<name>[a-z]\w*)(?:@(?P<target>\w+))?(?:\s.*)?$",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(frozen=True)
class IncomingMessage:
    """A text message delivered by a chat transport."""

    session_key: str
    text: str
    is_private: bool = True
    mentions: tuple[str, ...] = ()


TriggerPredicate = Callable[[IncomingMessage], bool]


def mention_or_keyword_trigger(
    bot_username: str = "",
    keywords: Iterable[str] = (),
) -> TriggerPredicate:
    """Build the default predicate deciding whether the bot should respond.

    The bot always responds in private chats. In group chats it responds when
    the text mentions ``@bot_username``, when a mention entity names the bot,
    or when any keyword appears (case-insensitive).
    """
    username = bot_username.lower().lstrip("@")
    lowered_keywords = tuple(k.lower() for k in keywords if k)

    def should_respond(message: IncomingMessage) -> bool:
        if message.is_private:
            return True

        text = message.text.lower()
        if username and f"@{username}" in text:
            return True
        if username and any(
            mention.lower().lstrip("@") == username for mention in message.mentions
        ):
            return True
        return any(keyword in text for keyword in lowered_keywords)

    return should_respond


def extract_query(bot_username: str, text: str) -> str:
    """Remove ``@bot_username`` mentions from ``text`` and trim whitespace."""
    username = bot_username.lstrip("@")
    if username:
        text = re.sub(rf"@{re.escape(username)}\b", "", text, flags=re.IGNORECASE)
    return text.strip()


class ChatHandler:
    """Routes incoming messages to commands or to the pipeline."""

    def __init__(
        self,
        pipeline: RAGPipeline,
        *,
        bot_username: str | None = None,
        should_respond: TriggerPredicate | None = None,
    ) -> None:
        """Initialize ChatHandler.

        Args:
            pipeline: An initialized RAG pipeline.
            bot_username: Bot handle without ``@``. If None, uses
                config.BOT_USERNAME.
            should_respond: Trigger predicate. If None, mentions of the bot or
                config.TRIGGER_KEYWORDS trigger a reply in group chats.
        """
        self.pipeline = pipeline
        self.bot_username = (
            bot_username if bot_username is not None else config.BOT_USERNAME
        )
        self.should_respond = should_respond or mention_or_keyword_trigger(
            self.bot_username, config.TRIGGER_KEYWORDS
        )

    def _command_reply(self, name: str, message: IncomingMessage) -> str | None:
        if name == "start":
            return START_MESSAGE
        if name == "help":
            return HELP_MESSAGE
        if name == "clear":
            self.pipeline.clear(message.session_key)
            return CLEAR_MESSAGE
        logger.debug("Ignoring unknown command /%s", name)
        return None

    async def handle(self, message: IncomingMessage) -> str | None:
        """Produce the reply for ``message``.

        Commands never reach the pipeline: unknown commands and commands
        addressed to another bot are ignored.

        Returns:
            str | None: Text to send back, or None when the message is ignored.
        """
        match = _COMMAND_PATTERN.match(message.text.strip())
        if match is not None:
            target = match.group("target")
            if target and target.lower() != self.bot_username.lower():
                return None
            return self._command_reply(match.group("name").lower(), message)

        if not self.should_respond(message):
            logger.debug("Skipping message (no mention/keyword)")
            return None

        query = extract_query(self.bot_username, message.text)
        if not query:
            logger.debug("Query is empty after removing mentions")
            return None

        logger.info("Received query from session %s", message.session_key)

        try:
            answer = await self.pipeline.answer(message.session_key, query)
        except RAGServiceError as exc:
            logger.error(
                "Error answering message for session %s: %s",
                message.session_key,
                exc,
                exc_info=exc,
            )
            return exc.user_message

        return answer.text
