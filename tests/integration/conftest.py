"""Shared fixtures for integration tests.

These tests drive the real FastAPI app through the ASGI transport:
    HTTP → QueueService → RecordStore → in-memory repository → projections

No mocks on internal components. The app state is wired directly because
the ASGI transport does not run the lifespan.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from cartodash.api.app import create_app, wire_state
from cartodash.settings import Settings
from cartodash.store import RecordStore

DAY = "2026-03-14"


@pytest.fixture()
def integration_settings() -> Settings:
    return Settings(environment="dev", pg_dsn="", redis_url="", log_json=False)


@pytest.fixture()
def app_store(integration_settings: Settings) -> tuple[Any, RecordStore]:
    app = create_app()
    store = wire_state(app, integration_settings)
    return app, store


@pytest.fixture()
async def client(app_store: tuple[Any, RecordStore]) -> AsyncIterator[AsyncClient]:
    app, _ = app_store
    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def create_record(client: AsyncClient) -> Callable[..., Awaitable[dict[str, Any]]]:
    """POST /records with sensible defaults; returns the created record."""

    async def _create(client_name: str, payment_time: str, **fields: Any) -> dict[str, Any]:
        payload = {
            "client_name": client_name,
            "consultation_type_id": "1",
            "practitioner_id": "1",
            "date": DAY,
            "payment_time": payment_time,
            **fields,
        }
        resp = await client.post("/records", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()  # type: ignore[no-any-return]

    return _create
