"""Dashboard read models: live overview, practitioner day sheets, queue load."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from cartodash.queue.projection import active_record, estimated_wait_minutes, queue_entries
from cartodash.records import REVENUE_STATUSES, RecordStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cartodash.catalog import Catalog
    from cartodash.queue.projection import QueueEntry
    from cartodash.records import ConsultationRecord

__all__ = [
    "DailySummary",
    "OverviewMetrics",
    "QueueLoad",
    "daily_summary",
    "daily_history",
    "overview",
    "practitioner_dashboard",
    "queue_load",
]

# Operation status thresholds (waiting records)
OVERLOAD_QUEUE = 8
BUSY_QUEUE = 4

# Queue load suggestion thresholds
REDISTRIBUTE_FACTOR = 1.5
PRIORITY_WAIT_MINUTES = 60

_ACTIVE_DAY_STATUSES = frozenset(
    {RecordStatus.WAITING, RecordStatus.IN_PROGRESS, RecordStatus.FINISHED}
)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


# ── Practitioner day sheets ─────────────────────────────


@dataclass(frozen=True)
class DailySummary:
    date: date
    total_games: int
    completed_games: int
    total_earnings: Decimal
    average_minutes: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "total_games": self.total_games,
            "completed_games": self.completed_games,
            "total_earnings": str(self.total_earnings),
            "average_minutes": round(self.average_minutes, 1),
        }


def daily_summary(day: date, records: list[ConsultationRecord]) -> DailySummary:
    """Summarise one practitioner's records for *day*."""
    completed = [r for r in records if r.status == RecordStatus.FINISHED]
    timed = [m for m in (r.service_minutes for r in completed) if m is not None]
    return DailySummary(
        date=day,
        total_games=len(records),
        completed_games=len(completed),
        total_earnings=sum((r.value for r in records if r.status in REVENUE_STATUSES), Decimal("0")),
        average_minutes=_mean(timed),
    )


def daily_history(
    records: Iterable[ConsultationRecord],
    practitioner_id: str,
    today: date,
    days: int = 30,
) -> list[DailySummary]:
    """Per-day summaries for the last *days* days, newest first."""
    since = today - timedelta(days=days)
    by_day: dict[date, list[ConsultationRecord]] = defaultdict(list)
    for record in records:
        if record.practitioner_id == practitioner_id and since <= record.date <= today:
            by_day[record.date].append(record)
    return [daily_summary(day, by_day[day]) for day in sorted(by_day, reverse=True)]


def practitioner_dashboard(
    records: Iterable[ConsultationRecord],
    practitioner_id: str,
    catalog: Catalog,
    today: date,
    days: int = 30,
) -> dict[str, Any]:
    snapshot = list(records)
    mine_today = [
        r for r in snapshot if r.practitioner_id == practitioner_id and r.date == today
    ]
    current = active_record(snapshot, practitioner_id)
    return {
        "practitioner": catalog.practitioner(practitioner_id).name,
        "today": daily_summary(today, mine_today).to_dict(),
        "current": current.to_dict() if current else None,
        "queue": [_entry_dict(e) for e in queue_entries(snapshot, practitioner_id, catalog)],
        "history": [s.to_dict() for s in daily_history(snapshot, practitioner_id, today, days)],
    }


def _entry_dict(entry: QueueEntry) -> dict[str, Any]:
    return {
        **entry.record.to_dict(),
        "position": entry.position,
        "wait_minutes": entry.wait_minutes,
    }


# ── Live overview ───────────────────────────────────────


@dataclass(frozen=True)
class OverviewMetrics:
    today_revenue: Decimal
    finished_today: int
    active_games: int
    queue_length: int
    average_wait_minutes: int
    conversion_rate: int
    peak_hour: int | None
    efficiency: int

    @property
    def operation_status(self) -> str:
        if self.queue_length > OVERLOAD_QUEUE:
            return "overload"
        if self.queue_length > BUSY_QUEUE:
            return "busy"
        if self.active_games > 0:
            return "active"
        return "calm"

    def to_dict(self) -> dict[str, Any]:
        return {
            "today_revenue": str(self.today_revenue),
            "finished_today": self.finished_today,
            "active_games": self.active_games,
            "queue_length": self.queue_length,
            "average_wait_minutes": self.average_wait_minutes,
            "conversion_rate": self.conversion_rate,
            "peak_hour": self.peak_hour,
            "efficiency": self.efficiency,
            "operation_status": self.operation_status,
        }


def overview(
    records: Iterable[ConsultationRecord],
    catalog: Catalog,
    today: date,
    tz: tzinfo | None = None,
) -> OverviewMetrics:
    """Whole-business metrics for *today*.

    Args:
        tz: Business timezone used to bucket ``finished_at`` into hours.
    """
    snapshot = list(records)
    todays = [r for r in snapshot if r.date == today and r.status in _ACTIVE_DAY_STATUSES]
    finished = [r for r in todays if r.status == RecordStatus.FINISHED]
    active = [r for r in snapshot if r.status == RecordStatus.IN_PROGRESS]
    waiting = [r for r in snapshot if r.status == RecordStatus.WAITING]

    waits = [float(estimated_wait_minutes(snapshot, r.id, catalog)) for r in waiting]

    hours = Counter(
        (r.finished_at.astimezone(tz) if tz else r.finished_at).hour
        for r in finished
        if r.finished_at is not None
    )
    peak_hour = hours.most_common(1)[0][0] if hours else None

    actual = sum(m for m in (r.service_minutes for r in finished) if m is not None)
    expected = 0
    for r in finished:
        kind = catalog.find_consultation_type(r.consultation_type_id)
        if kind is not None and r.service_minutes is not None:
            expected += kind.duration_minutes
    efficiency = min(100.0, expected / actual * 100) if actual > 0 else 0.0

    return OverviewMetrics(
        today_revenue=sum((r.value for r in todays if r.status in REVENUE_STATUSES), Decimal("0")),
        finished_today=len(finished),
        active_games=len(active),
        queue_length=len(waiting),
        average_wait_minutes=round(_mean(waits)),
        conversion_rate=round(len(finished) / len(todays) * 100) if todays else 0,
        peak_hour=peak_hour,
        efficiency=round(efficiency),
    )


# ── Queue load suggestions ──────────────────────────────


@dataclass(frozen=True)
class QueueLoad:
    practitioner_id: str
    practitioner_name: str
    current_queue: int
    busy: bool
    average_wait_minutes: int
    longest_wait_minutes: int
    balance: int
    suggested_action: str = "normal"
    waiting_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "practitioner_id": self.practitioner_id,
            "practitioner_name": self.practitioner_name,
            "current_queue": self.current_queue,
            "busy": self.busy,
            "average_wait_minutes": self.average_wait_minutes,
            "longest_wait_minutes": self.longest_wait_minutes,
            "balance": self.balance,
            "suggested_action": self.suggested_action,
            "waiting_ids": list(self.waiting_ids),
        }


def queue_load(records: Iterable[ConsultationRecord], catalog: Catalog) -> list[QueueLoad]:
    """Per-practitioner load with a suggested action.

    ``redistribute`` when a queue is longer than 1.5× an even share,
    ``priority`` when someone would wait more than an hour.
    """
    snapshot = list(records)
    practitioners = catalog.practitioners
    total_waiting = sum(1 for r in snapshot if r.status == RecordStatus.WAITING)
    even_share = total_waiting / len(practitioners)

    loads: list[QueueLoad] = []
    for practitioner in practitioners:
        entries = queue_entries(snapshot, practitioner.id, catalog)
        waits = [e.wait_minutes for e in entries]
        if even_share > 0:
            deviation = abs(len(entries) - even_share)
            balance = max(0.0, 100 - deviation / even_share * 50)
        else:
            balance = 100.0

        action = "normal"
        if even_share > 0 and len(entries) > even_share * REDISTRIBUTE_FACTOR:
            action = "redistribute"
        elif any(w > PRIORITY_WAIT_MINUTES for w in waits):
            action = "priority"

        loads.append(
            QueueLoad(
                practitioner_id=practitioner.id,
                practitioner_name=practitioner.name,
                current_queue=len(entries),
                busy=active_record(snapshot, practitioner.id) is not None,
                average_wait_minutes=round(_mean([float(w) for w in waits])),
                longest_wait_minutes=max(waits, default=0),
                balance=round(balance),
                suggested_action=action,
                waiting_ids=[e.record.id for e in entries],
            )
        )
    return loads
