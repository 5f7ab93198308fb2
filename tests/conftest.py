"""Shared fixtures: deterministic clock, catalog, store and record factory."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

import pytest

from cartodash.catalog import DEFAULT_CATALOG, Catalog
from cartodash.queue.lifecycle import QueueService
from cartodash.records import ConsultationRecord, RecordStatus
from cartodash.settings import Settings
from cartodash.storage.repository import InMemoryRecordRepository
from cartodash.store import RecordStore

BASE_DAY = date(2026, 3, 14)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def base_day() -> date:
    return BASE_DAY


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 13, 0, tzinfo=UTC))


@pytest.fixture()
def catalog() -> Catalog:
    return DEFAULT_CATALOG


@pytest.fixture()
def repository() -> InMemoryRecordRepository:
    return InMemoryRecordRepository()


@pytest.fixture()
def store(repository: InMemoryRecordRepository, clock: FakeClock) -> RecordStore:
    counter = itertools.count(1)
    return RecordStore(repository, clock=clock, id_factory=lambda: f"rec-{next(counter)}")


@pytest.fixture()
def queue(store: RecordStore, catalog: Catalog) -> QueueService:
    return QueueService(store, catalog)


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(environment="dev", pg_dsn="", redis_url="", log_json=False)


@pytest.fixture()
def make_record() -> Callable[..., ConsultationRecord]:
    """Build a ConsultationRecord directly, for pure projection/report tests."""

    def _make(
        record_id: str,
        *,
        client_name: str = "Maria",
        consultation_type_id: str = "1",
        practitioner_id: str = "1",
        value: str | Decimal = "10",
        day: date = BASE_DAY,
        payment_time: str = "10:00",
        status: RecordStatus = RecordStatus.WAITING,
        **extra: Any,
    ) -> ConsultationRecord:
        paid = time.fromisoformat(payment_time)
        extra.setdefault("created_at", datetime.combine(day, paid, tzinfo=UTC))
        return ConsultationRecord(
            id=record_id,
            client_name=client_name,
            consultation_type_id=consultation_type_id,
            practitioner_id=practitioner_id,
            value=Decimal(value),
            date=day,
            payment_time=paid,
            status=status,
            **extra,
        )

    return _make
