"""Per-session prompt continuity state."""

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_SESSION_ID = "default"


@dataclass
class PromptChain:
    """Prompt lineage for one scrolling session.

    ``original_user_theme`` is written once, by the first tile that carries
    a user prompt, and stays fixed until :meth:`reset`.
    """

    session_id: str = DEFAULT_SESSION_ID
    original_user_theme: Optional[str] = None
    evolved_prompt: Optional[str] = None
    prompts: list[str] = field(default_factory=list)
    touched_at: float = field(default_factory=time.monotonic)

    def remember_theme(self, theme: Optional[str]) -> bool:
        """Store the theme if none is set yet. Returns True if stored."""
        if not theme or self.original_user_theme is not None:
            return False
        self.original_user_theme = theme
        return True

    def record(self, prompt: str) -> None:
        """Append a prompt to the history and make it the latest evolved prompt."""
        self.evolved_prompt = prompt
        self.prompts.append(prompt)

    def reset(self) -> None:
        self.original_user_theme = None
        self.evolved_prompt = None
        self.prompts = []


class SessionStore:
    """In-memory map of session id to :class:`PromptChain` with TTL eviction."""

    def __init__(self, ttl_seconds: float = 3600.0, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, PromptChain] = {}
        self._lock = threading.Lock()

    def get(self, session_id: Optional[str] = None) -> PromptChain:
        """Get or create the chain for a session."""
        session_id = session_id or DEFAULT_SESSION_ID
        self.evict_expired()
        with self._lock:
            chain = self._sessions.get(session_id)
            if chain is None:
                chain = PromptChain(session_id=session_id, touched_at=self._clock())
                self._sessions[session_id] = chain
            else:
                chain.touched_at = self._clock()
            return chain

    def reset(self, session_id: Optional[str] = None) -> bool:
        """Clear a session. Returns True if it existed."""
        session_id = session_id or DEFAULT_SESSION_ID
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def evict_expired(self) -> int:
        """Drop sessions idle for longer than the TTL."""
        now = self._clock()
        with self._lock:
            expired = [
                sid for sid, chain in self._sessions.items()
                if now - chain.touched_at > self.ttl_seconds
            ]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
