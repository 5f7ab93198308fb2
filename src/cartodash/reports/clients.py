"""Client ranking — per-client rollup of visits, spend and visit frequency."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from cartodash.records import REVENUE_STATUSES, RecordStatus

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from cartodash.records import ConsultationRecord

__all__ = ["ClientAggregate", "aggregate_clients"]


@dataclass
class ClientAggregate:
    key: str
    name: str
    total_games: int = 0
    total_spent: Decimal = Decimal("0")
    visit_dates: list[date] = field(default_factory=list)
    average_frequency_days: float | None = None

    @property
    def last_visit(self) -> date | None:
        return max(self.visit_dates) if self.visit_dates else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "total_games": self.total_games,
            "total_spent": str(self.total_spent),
            "visit_dates": [d.isoformat() for d in self.visit_dates],
            "average_frequency_days": (
                round(self.average_frequency_days, 2)
                if self.average_frequency_days is not None
                else None
            ),
            "last_visit": self.last_visit.isoformat() if self.last_visit else None,
        }


def _average_gap_days(dates: list[date]) -> float | None:
    if len(dates) < 2:
        return None
    gaps = [(later - earlier).days for earlier, later in zip(dates, dates[1:])]
    return sum(gaps) / len(gaps)


def aggregate_clients(
    records: Iterable[ConsultationRecord],
    statuses: Collection[RecordStatus] | None = REVENUE_STATUSES,
    *,
    start: date | None = None,
    end: date | None = None,
) -> list[ClientAggregate]:
    """Group by lowercase client name and rank by total spend.

    Args:
        records: Snapshot to fold over.
        statuses: Statuses to include; ``None`` includes every status.
        start: Inclusive lower bound on the record date.
        end: Inclusive upper bound on the record date.
    """
    clients: dict[str, ClientAggregate] = {}
    for record in records:
        if statuses is not None and record.status not in statuses:
            continue
        if start is not None and record.date < start:
            continue
        if end is not None and record.date > end:
            continue
        agg = clients.get(record.client_key)
        if agg is None:
            agg = clients[record.client_key] = ClientAggregate(
                key=record.client_key, name=record.client_name
            )
        agg.total_games += 1
        agg.total_spent += record.value
        agg.visit_dates.append(record.date)

    for agg in clients.values():
        agg.visit_dates.sort()
        agg.average_frequency_days = _average_gap_days(agg.visit_dates)

    return sorted(clients.values(), key=lambda c: (-c.total_spent, c.key))
