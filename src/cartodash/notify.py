"""Forward record-store change notifications to Redis pub/sub."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import redis

if TYPE_CHECKING:
    from collections.abc import Callable

    from cartodash.store import RecordStore

__all__ = ["RedisChangePublisher", "get_redis_client", "CHANGE_EVENT"]

logger = logging.getLogger(__name__)

CHANGE_EVENT = "records_changed"


def get_redis_client(url: str) -> redis.Redis:  # type: ignore[type-arg]
    """Create a Redis client."""
    return redis.Redis.from_url(url, decode_responses=True)


class RedisChangePublisher:
    """Store subscriber that tells other dashboard instances to refresh.

    Publishing is best-effort: a Redis failure is logged and the mutation
    that triggered it still stands.
    """

    def __init__(self, client: redis.Redis, channel: str) -> None:  # type: ignore[type-arg]
        self._client = client
        self._channel = channel
        self._unsubscribe: Callable[[], None] | None = None
        self.published = 0

    def attach(self, store: RecordStore) -> None:
        self._unsubscribe = store.subscribe(self)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def close(self) -> None:
        self.detach()
        self._client.close()

    def __call__(self) -> None:
        message = json.dumps({"event": CHANGE_EVENT, "at": datetime.now(UTC).isoformat()})
        try:
            self._client.publish(self._channel, message)
        except redis.RedisError:
            logger.warning("Change notification to %s failed", self._channel, exc_info=True)
            return
        self.published += 1
