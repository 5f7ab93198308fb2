"""Real health-check probes for downstream dependencies."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import psycopg
    import redis

__all__ = ["check_postgres", "check_redis"]

logger = logging.getLogger(__name__)

_TIMEOUT = 2  # seconds — fast-fail for readiness


def _sync_check_postgres(dsn: str) -> bool:
    """Blocking SELECT 1 against the games table."""
    import psycopg as _pg  # noqa: F811

    conn: psycopg.Connection[Any] = _pg.connect(dsn, connect_timeout=_TIMEOUT)
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1 FROM games LIMIT 1")
    finally:
        conn.close()
    return True


async def check_postgres(dsn: str) -> bool | None:
    """Probe PostgreSQL (non-blocking). None when not configured."""
    if not dsn:
        return None
    try:
        return await asyncio.to_thread(partial(_sync_check_postgres, dsn))
    except Exception:
        logger.warning("Postgres health-check failed", exc_info=True)
        return False


def _sync_check_redis(url: str) -> bool:
    """Blocking PING against Redis."""
    import redis as _redis  # noqa: F811

    client: redis.Redis = _redis.Redis.from_url(  # type: ignore[type-arg]
        url,
        socket_timeout=_TIMEOUT,
        socket_connect_timeout=_TIMEOUT,
    )
    try:
        client.ping()
    finally:
        client.close()
    return True


async def check_redis(url: str) -> bool | None:
    """PING the Redis instance (non-blocking). None when not configured."""
    if not url:
        return None
    try:
        return await asyncio.to_thread(partial(_sync_check_redis, url))
    except Exception:
        logger.warning("Redis health-check failed", exc_info=True)
        return False
