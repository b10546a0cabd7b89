"""Pending multi-turn command intents.

An intent records that a user's next plain message continues a command they
started (for example ``/subscribe`` without a keyword). Entries expire lazily
on read; there is no sweeper. Intents are keyed by user, so a newer intent in
another chat replaces the older one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class PendingIntent:
    chat_id: int
    action: str
    expires_at: float


class PendingIntentStore:
    """In-process TTL map from user id to their pending intent."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[int, PendingIntent] = {}

    def set(self, user_id: int, chat_id: int, action: str, ttl: Optional[float] = None) -> PendingIntent:
        lifetime = self._ttl if ttl is None else ttl
        intent = PendingIntent(chat_id=chat_id, action=action, expires_at=self._clock() + lifetime)
        self._entries[user_id] = intent
        return intent

    def get(self, user_id: int) -> Optional[PendingIntent]:
        intent = self._entries.get(user_id)
        if intent is None:
            return None
        if intent.expires_at <= self._clock():
            self._entries.pop(user_id, None)
            return None
        return intent

    def get_for_chat(self, user_id: int, chat_id: int) -> Optional[PendingIntent]:
        """Return the intent only when it was started in ``chat_id``."""

        intent = self.get(user_id)
        if intent is None or intent.chat_id != chat_id:
            return None
        return intent

    def clear(self, user_id: int) -> None:
        self._entries.pop(user_id, None)
