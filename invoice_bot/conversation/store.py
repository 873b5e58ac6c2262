"""In-memory conversation store keyed by Telegram user id."""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

from invoice_bot.conversation.state import ConversationState


class ConversationStore:
    """Holds at most one conversation state per user.

    ``locked(user_id)`` serializes event handling for one user; events of
    different users never wait on each other. A user's lock lives only while
    some event holds or waits on it.
    """

    def __init__(self) -> None:
        self._states: dict[int, ConversationState] = {}
        self._locks: weakref.WeakValueDictionary[int, threading.RLock] = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def _lock_for(self, user_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock

    @contextmanager
    def locked(self, user_id: int) -> Iterator[None]:
        lock = self._lock_for(user_id)
        with lock:
            yield

    def get(self, user_id: int) -> ConversationState | None:
        with self._lock_for(user_id):
            return self._states.get(user_id)

    def set(self, user_id: int, state: ConversationState) -> None:
        """Replace the user's state; any unfinished flow is discarded."""
        with self._lock_for(user_id):
            self._states[user_id] = state

    def clear(self, user_id: int) -> None:
        with self._lock_for(user_id):
            self._states.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._states)
