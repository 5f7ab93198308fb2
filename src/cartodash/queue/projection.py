"""Read-model projections of the waiting list.

All functions are pure: they take a snapshot (``RecordStore.get_all()``) and
never mutate it.

Ordering of the waiting bucket is resolved once per read:

1. order the waiting records by payment (date, payment_time, created_at, id);
2. a record without ``queue_position`` takes its 1-based index in that
   order as its effective position;
3. sort by (effective position, explicit before implicit, payment order).

The key is a plain tuple, so the order is total and stable across calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cartodash.records import ConsultationRecord, RecordStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cartodash.catalog import Catalog

__all__ = [
    "QueueBuckets",
    "QueueEntry",
    "waiting_list",
    "project_queue",
    "queue_position",
    "estimated_wait_minutes",
    "queue_entries",
    "next_client",
    "active_record",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueBuckets:
    waiting: list[ConsultationRecord] = field(default_factory=list)
    in_progress: list[ConsultationRecord] = field(default_factory=list)
    finished: list[ConsultationRecord] = field(default_factory=list)


@dataclass(frozen=True)
class QueueEntry:
    """One visible queue row: record, 1-based place and ETA."""

    record: ConsultationRecord
    position: int
    wait_minutes: int


def _payment_key(record: ConsultationRecord) -> tuple[object, ...]:
    return (record.date, record.payment_time, record.created_at, record.id)


def _scoped(
    records: Iterable[ConsultationRecord],
    status: RecordStatus,
    practitioner_id: str | None,
) -> list[ConsultationRecord]:
    return [
        r
        for r in records
        if r.status == status and (practitioner_id is None or r.practitioner_id == practitioner_id)
    ]


def waiting_list(
    records: Iterable[ConsultationRecord],
    practitioner_id: str | None = None,
) -> list[ConsultationRecord]:
    """Ordered waiting records, optionally scoped to one practitioner."""
    by_payment = sorted(_scoped(records, RecordStatus.WAITING, practitioner_id), key=_payment_key)

    def sort_key(item: tuple[int, ConsultationRecord]) -> tuple[int, int, int]:
        paid_order, record = item
        if record.queue_position is not None:
            return (record.queue_position, 0, paid_order)
        return (paid_order + 1, 1, paid_order)

    ordered = sorted(enumerate(by_payment), key=sort_key)
    return [record for _, record in ordered]


def project_queue(
    records: Iterable[ConsultationRecord],
    practitioner_id: str | None = None,
) -> QueueBuckets:
    snapshot = list(records)
    in_progress = sorted(
        _scoped(snapshot, RecordStatus.IN_PROGRESS, practitioner_id),
        key=lambda r: (r.started_at is None, r.started_at or r.created_at),
    )
    finished = sorted(
        _scoped(snapshot, RecordStatus.FINISHED, practitioner_id),
        key=lambda r: (r.finished_at is None, r.finished_at or r.created_at),
        reverse=True,
    )
    return QueueBuckets(
        waiting=waiting_list(snapshot, practitioner_id),
        in_progress=in_progress,
        finished=finished,
    )


def _find(records: Iterable[ConsultationRecord], record_id: str) -> ConsultationRecord | None:
    return next((r for r in records if r.id == record_id), None)


def queue_position(records: Iterable[ConsultationRecord], record_id: str) -> int:
    """1-based place in the practitioner's waiting list, 0 when not waiting."""
    snapshot = list(records)
    target = _find(snapshot, record_id)
    if target is None or target.status != RecordStatus.WAITING:
        return 0
    ordered = waiting_list(snapshot, target.practitioner_id)
    return next(i for i, r in enumerate(ordered, start=1) if r.id == record_id)


def _duration(record: ConsultationRecord, catalog: Catalog) -> int:
    kind = catalog.find_consultation_type(record.consultation_type_id)
    if kind is None:
        logger.warning(
            "Record %s has unknown consultation type %s; counting 0 minutes",
            record.id,
            record.consultation_type_id,
        )
        return 0
    return kind.duration_minutes


def estimated_wait_minutes(
    records: Iterable[ConsultationRecord],
    record_id: str,
    catalog: Catalog,
) -> int:
    """Sum of expected durations ahead of *record_id* for its practitioner."""
    snapshot = list(records)
    target = _find(snapshot, record_id)
    if target is None or target.status != RecordStatus.WAITING:
        return 0
    total = 0
    for record in waiting_list(snapshot, target.practitioner_id):
        if record.id == record_id:
            break
        total += _duration(record, catalog)
    return total


def queue_entries(
    records: Iterable[ConsultationRecord],
    practitioner_id: str,
    catalog: Catalog,
) -> list[QueueEntry]:
    """Waiting list with positions and ETAs, computed in one pass."""
    entries: list[QueueEntry] = []
    elapsed = 0
    for position, record in enumerate(waiting_list(records, practitioner_id), start=1):
        entries.append(QueueEntry(record=record, position=position, wait_minutes=elapsed))
        elapsed += _duration(record, catalog)
    return entries


def next_client(
    records: Iterable[ConsultationRecord],
    practitioner_id: str,
) -> ConsultationRecord | None:
    ordered = waiting_list(records, practitioner_id)
    return ordered[0] if ordered else None


def active_record(
    records: Iterable[ConsultationRecord],
    practitioner_id: str,
) -> ConsultationRecord | None:
    return next(
        (
            r
            for r in records
            if r.practitioner_id == practitioner_id and r.status == RecordStatus.IN_PROGRESS
        ),
        None,
    )
