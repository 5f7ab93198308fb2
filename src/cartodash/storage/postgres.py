"""PostgreSQL connection management."""

from __future__ import annotations

from typing import Any

import psycopg

__all__ = ["get_connection", "ensure_schema", "SCHEMA_SQL"]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS games (
    id                TEXT PRIMARY KEY,
    client_name       TEXT NOT NULL,
    game_type         TEXT NOT NULL,
    cartomante        TEXT NOT NULL,
    value             NUMERIC(12, 2) NOT NULL,
    game_date         DATE NOT NULL,
    payment_time      TIME NOT NULL,
    status            TEXT NOT NULL,
    campaign          TEXT,
    conversation_link TEXT,
    queue_position    INTEGER,
    started_at        TIMESTAMPTZ,
    finished_at       TIMESTAMPTZ,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT now(),
    version           INTEGER NOT NULL DEFAULT 1
);
CREATE INDEX IF NOT EXISTS games_status_cartomante_idx ON games (status, cartomante);
"""


def get_connection(dsn: str) -> psycopg.Connection[tuple[object, ...]]:
    """Create a new PostgreSQL connection."""
    return psycopg.connect(dsn, autocommit=False)


def ensure_schema(conn: psycopg.Connection[Any]) -> None:
    """Create the games table if it is missing."""
    with conn.cursor() as cur:
        cur.execute(SCHEMA_SQL)
    conn.commit()
