from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from schoolchat.domain.models import UserRecord
from schoolchat.infrastructure.repositories.directory import DirectoryStore

logger = structlog.get_logger()


@dataclass(slots=True)
class _CachedUser:
    user: UserRecord
    fetched_at: float


class UserCache:
    """Read-through, process-local user snapshot cache with a fixed TTL.

    Used to authenticate live connections without a directory round trip
    per reconnect. Never invalidated on user mutation: a snapshot may be
    stale for up to ``ttl_seconds``. Misses are not cached.

    Expired entries are not swept; they are replaced on the next lookup of
    the same user, so the map holds at most one entry per user ever seen.
    """

    def __init__(
        self,
        directory: DirectoryStore,
        *,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._directory = directory
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CachedUser] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, user_id: str) -> UserRecord | None:
        now = self._clock()
        cached = self._entries.get(user_id)
        if cached is not None and now - cached.fetched_at < self._ttl:
            return cached.user

        user = await self._directory.find_user_by_id(user_id)
        if user is None:
            self._entries.pop(user_id, None)
            return None

        self._entries[user_id] = _CachedUser(user=user, fetched_at=now)
        logger.debug("user_cache_refreshed", user_id=user_id)
        return user

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()
