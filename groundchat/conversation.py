"""Per-session conversation memory."""

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from .config import config
from .errors import ConfigurationError
from .models import ConversationSession, ConversationTurn

logger = config.get_logger(__name__)


class ConversationStore:
    """In-memory, per-key bounded conversation history.

    Each key has its own lock, so writers on different keys never wait on each
    other while writers on the same key are serialized. The registry lock is
    only held long enough to find, create or drop a key's lock. Locks exist
    only for keys with a session (or a write in flight); ``clear`` drops them.
    """

    def __init__(self, max_length: int | None = None) -> None:
        """Initialize ConversationStore.

        Args:
            max_length: Turns kept per session. If None, uses
                config.MAX_CONVERSATION_HISTORY.

        Raises:
            ConfigurationError: If max_length is smaller than 1.
        """
        if max_length is None:
            max_length = config.MAX_CONVERSATION_HISTORY
        if max_length < 1:
            msg = f"max_length must be at least 1, got {max_length}"
            raise ConfigurationError(msg)

        self.max_length = max_length
        self._sessions: dict[str, ConversationSession] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _locked(self, key: str, *, create: bool) -> Iterator[bool]:
        """Hold the current lock for ``key``; yields False if there is none.

        A waiter whose lock was dropped by ``clear`` retries with the lock
        now registered for the key.
        """
        while True:
            with self._registry_lock:
                lock = self._locks.get(key)
                if lock is None:
                    if not create:
                        break
                    lock = self._locks[key] = threading.Lock()
            lock.acquire()
            with self._registry_lock:
                current = self._locks.get(key) is lock
            if current:
                break
            lock.release()

        if lock is None:
            yield False
            return
        try:
            yield True
        finally:
            lock.release()

    def append(self, key: str, turn: ConversationTurn) -> None:
        """Append one turn, evicting the oldest turn once the bound is hit."""
        self.extend(key, [turn])

    def extend(self, key: str, turns: Iterable[ConversationTurn]) -> None:
        """Append several turns for ``key`` as one atomic step."""
        with self._locked(key, create=True):
            session = self._sessions.get(key)
            if session is None:
                session = self._sessions[key] = ConversationSession(
                    key=key, max_length=self.max_length
                )
                logger.debug("Created conversation session %s", key)
            session.turns.extend(turns)

    def history(self, key: str) -> list[ConversationTurn]:
        """Return a snapshot of the session's turns, oldest first.

        Returns:
            list[ConversationTurn]: Copy of the turns; empty for an unknown key.
        """
        with self._locked(key, create=False):
            session = self._sessions.get(key)
            return list(session.turns) if session else []

    def clear(self, key: str) -> None:
        """Remove all turns for ``key``. Clearing an unknown key is a no-op."""
        with self._locked(key, create=False) as held:
            if not held:
                return
            with self._registry_lock:
                removed = self._sessions.pop(key, None)
                del self._locks[key]
        if removed is not None:
            logger.info("Conversation history cleared for session %s", key)

    def session(self, key: str) -> ConversationSession | None:
        """Return a detached copy of the session for ``key``, if any."""
        with self._locked(key, create=False):
            session = self._sessions.get(key)
            if session is None:
                return None
            snapshot = ConversationSession(key=key, max_length=session.max_length)
            snapshot.turns.extend(session.turns)
            return snapshot

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
