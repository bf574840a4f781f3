"""Expire-after-write key/value cache with an injectable clock."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple

Clock = Callable[[], float]


class TTLCache:
    """Small in-process cache where each entry expires ``ttl`` seconds after it is written.

    Writes are a single dict assignment, so concurrent fills race harmlessly
    (last writer wins). Expired entries are dropped lazily on read.
    """

    def __init__(self, default_ttl: float = 60.0, clock: Optional[Clock] = None) -> None:
        self.default_ttl = default_ttl
        self._clock: Clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return default
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        lifetime = self.default_ttl if ttl is None else ttl
        if lifetime <= 0:
            # Already expired: drop any previous value for the key
            self._entries.pop(key, None)
            return
        self._entries[key] = (value, self._clock() + lifetime)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, expires_at in self._entries.values() if expires_at > now)


_MISSING = object()
