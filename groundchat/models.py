"""Data models for the retrieval pipeline."""

import datetime
from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum

import numpy as np


class Role(StrEnum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class DocumentChunk:
    """A unit of source text stored with its embedding for retrieval."""

    id: str
    content: str
    metadata: dict[str, str] = field(default_factory=dict)
    embedding: np.ndarray | None = field(default=None, compare=False, repr=False)

    @property
    def label(self) -> str:
        """Identifying label used to tag the chunk inside prompts."""
        return self.metadata.get("source") or self.metadata.get("document") or self.id


ScoredChunk = tuple[DocumentChunk, float]


def utc_timestamp() -> str:
    return datetime.datetime.now(tz=datetime.UTC).isoformat()


@dataclass(frozen=True)
class ConversationTurn:
    """Represents a single turn in the conversation."""

    role: Role
    text: str
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass
class ConversationSession:
    """Bounded, ordered history of turns for one session key.

    The ``deque`` drops the oldest turn once ``max_length`` is reached.
    """

    key: str
    max_length: int
    turns: deque[ConversationTurn] = field(init=False)

    def __post_init__(self) -> None:
        self.turns = deque(maxlen=self.max_length)


@dataclass(frozen=True)
class GroundedAnswer:
    """Answer returned to the chat transport."""

    text: str
    used_context: bool
    sources: list[str] = field(default_factory=list)
