from __future__ import annotations

import secrets
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


class HandoffStore:
    """
    One-shot payloads carried across a redirect.

    `put` returns an opaque token; `take` hands the payload back once and
    forgets it. Nothing is written anywhere, and entries older than `ttl`
    seconds are dropped.
    """

    def __init__(self, ttl: float = 1800, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._entries)

    def _purge(self) -> None:
        cutoff = self.clock() - self.ttl
        for token in [t for t, (created, _) in self._entries.items() if created < cutoff]:
            del self._entries[token]

    def put(self, payload: Any) -> str:
        token = secrets.token_urlsafe(16)
        with self._lock:
            self._purge()
            self._entries[token] = (self.clock(), payload)
        return token

    def take(self, token: Optional[str], kind: Type[T]) -> Optional[T]:
        if not token:
            return None
        with self._lock:
            self._purge()
            entry = self._entries.pop(token, None)
        if entry is None:
            return None
        payload = entry[1]
        # a checkout token must not open the thank-you page and vice versa
        return payload if isinstance(payload, kind) else None
