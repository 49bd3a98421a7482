"""
In-memory, per-session conversation store.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

USER = "user"
ASSISTANT = "assistant"

DEFAULT_MAX_PAIRS = int(os.getenv("MAX_HISTORY_PAIRS", "10"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Turn:
    """Single conversation entry."""

    role: str
    content: str
    created_at: datetime = field(default_factory=_utcnow)


class ConversationStore:
    """
    Session id -> ordered transcript, bounded to the last max_pairs exchanges.

    Appends for one session are serialised by a per-session lock; different
    sessions never contend. Nothing is persisted.
    """

    def __init__(self, max_pairs: Optional[int] = None):
        self.max_pairs = max_pairs if max_pairs is not None else DEFAULT_MAX_PAIRS
        if self.max_pairs < 1:
            raise ValueError("max_pairs must be at least 1")
        self._sessions: Dict[str, List[Turn]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return 2 * self.max_pairs

    def _session(self, session_id: str) -> tuple[List[Turn], threading.Lock]:
        with self._registry_lock:
            turns = self._sessions.setdefault(session_id, [])
            lock = self._locks.setdefault(session_id, threading.Lock())
        return turns, lock

    def _append_locked(self, turns: List[Turn], role: str, content: str) -> None:
        turns.append(Turn(role=role, content=content))
        # FIFO: drop the oldest user+assistant pair
        while len(turns) > self.max_entries:
            del turns[:2]

    def get(self, session_id: str) -> List[Turn]:
        """Return a copy of the transcript, creating an empty one for unseen sessions."""
        turns, lock = self._session(session_id)
        with lock:
            return list(turns)

    def append(self, session_id: str, role: str, content: str) -> None:
        """Append one turn."""
        if role not in (USER, ASSISTANT):
            raise ValueError(f"unknown role: {role!r}")
        turns, lock = self._session(session_id)
        with lock:
            self._append_locked(turns, role, content)

    def append_exchange(self, session_id: str, question: str, answer: str) -> int:
        """Append the user turn then the assistant turn as one step; return the pair count."""
        turns, lock = self._session(session_id)
        with lock:
            self._append_locked(turns, USER, question)
            self._append_locked(turns, ASSISTANT, answer)
            return len(turns) // 2

    def pair_count(self, session_id: str) -> int:
        return len(self.get(session_id)) // 2

    def clear(self, session_id: str) -> None:
        """Forget the session entirely. Unknown sessions are a no-op."""
        with self._registry_lock:
            self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)

    def active_sessions(self) -> int:
        with self._registry_lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._registry_lock:
            return session_id in self._sessions
