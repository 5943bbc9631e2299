# comprint/client/cache.py
"""
Client-side caches.

QueryCache holds GET responses under tuple keys such as
("inventory",) or ("inventory", "<id>"); invalidating a prefix drops every
key that starts with it. RoleCache keeps the signed-in user's role for a
bounded time instead of for the life of the process.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

CacheKey = Tuple[Hashable, ...]

_MISSING = object()


class QueryCache:
    def __init__(self, ttl: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}

    def get(self, key: CacheKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return default
        return value

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl, value)

    def invalidate(self, prefix: CacheKey) -> int:
        """Drop every key starting with `prefix`. Returns how many were dropped."""
        n = len(prefix)
        stale = [k for k in self._entries if k[:n] == prefix]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: CacheKey) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._entries)


class RoleCache:
    """user id -> role, each entry valid for `ttl` seconds."""

    def __init__(self, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._roles: Dict[str, Tuple[float, str]] = {}

    def get(self, user_id: str) -> Optional[str]:
        entry = self._roles.get(str(user_id))
        if entry is None:
            return None
        expires_at, role = entry
        if self._clock() >= expires_at:
            del self._roles[str(user_id)]
            return None
        return role

    def set(self, user_id: str, role: str) -> None:
        self._roles[str(user_id)] = (self._clock() + self.ttl, role)

    def invalidate(self, user_id: Optional[str] = None) -> None:
        if user_id is None:
            self._roles.clear()
        else:
            self._roles.pop(str(user_id), None)
