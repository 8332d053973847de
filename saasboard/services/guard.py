"""Per-conversation advisory lock for the chat relay.

Only one reply may stream into a conversation at a time; a second relay on
the same conversation is turned away until the first releases its claim.
Claims carry an expiry so a relay that never got to release (for example a
response that was prepared but never iterated) cannot block a conversation
forever.

Each claim is identified by a token, and only the holder of the current
token can release it. A relay whose claim expired and was taken over cannot
drop its successor's claim.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable


class ConversationGuard:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._claims: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def claim(self, conversation_id: str) -> str | None:
        """Take the conversation and return the claim token; None if a live claim holds it."""
        with self._lock:
            now = self._clock()
            current = self._claims.get(conversation_id)
            if current is not None and current[1] > now:
                return None
            token = uuid.uuid4().hex
            self._claims[conversation_id] = (token, now + self.ttl_seconds)
            return token

    def release(self, conversation_id: str, token: str) -> bool:
        """Drop the claim if ``token`` still owns it; False when it had been taken over."""
        with self._lock:
            current = self._claims.get(conversation_id)
            if current is None or current[0] != token:
                return False
            del self._claims[conversation_id]
            return True

    def is_claimed(self, conversation_id: str) -> bool:
        with self._lock:
            current = self._claims.get(conversation_id)
            return current is not None and current[1] > self._clock()
