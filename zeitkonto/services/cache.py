from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL_SECONDS = 300.0


def make_cache_key(user_id: str, kind: str, params: dict[str, Any] | None = None) -> str:
    serialized = json.dumps(params or {}, sort_keys=True, default=str, separators=(",", ":"))
    return f"{user_id}:{kind}:{serialized}"


def _user_of(key: str) -> str:
    return key.split(":", 1)[0]


class ResultCache:
    """Get/set/invalidate contract shared by every cache backend.

    The cache is never a source of truth: a miss only means recompute.
    ``invalidate`` must be idempotent and must drop every key of the user.

    Readers take ``generation(user_id)`` before loading data and hand it to
    ``set``; a write whose generation was superseded by an invalidation is
    dropped, so a result computed from pre-mutation rows is never stored.
    """

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def generation(self, user_id: str) -> int:
        raise NotImplementedError

    def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
        *,
        generation: int | None = None,
    ) -> None:
        raise NotImplementedError

    def invalidate(self, user_id: str | None = None) -> None:
        raise NotImplementedError

    def sweep(self) -> int:
        return 0


@dataclass
class _CacheEntry:
    value: Any
    computed_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        return now - self.computed_at < self.ttl_seconds


class InMemoryResultCache(ResultCache):
    def __init__(
        self,
        *,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self._invalidations = 0
        self._all_invalidated_at = 0
        self._user_invalidated_at: dict[str, int] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_fresh(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def _generation_locked(self, user_id: str) -> int:
        return max(self._all_invalidated_at, self._user_invalidated_at.get(user_id, 0))

    def generation(self, user_id: str) -> int:
        with self._lock:
            return self._generation_locked(user_id)

    def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
        *,
        generation: int | None = None,
    ) -> None:
        entry = _CacheEntry(
            value=value,
            computed_at=self._clock(),
            ttl_seconds=ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds,
        )
        with self._lock:
            if generation is not None and generation != self._generation_locked(_user_of(key)):
                return
            self._entries[key] = entry

    def invalidate(self, user_id: str | None = None) -> None:
        with self._lock:
            self._invalidations += 1
            if user_id is None:
                self._all_invalidated_at = self._invalidations
                self._entries.clear()
                return
            self._user_invalidated_at[user_id] = self._invalidations
            prefix = f"{user_id}:"
            for key in [item for item in self._entries if item.startswith(prefix)]:
                del self._entries[key]

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            stale_keys = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
            for key in stale_keys:
                del self._entries[key]
        return len(stale_keys)
