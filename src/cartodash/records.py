"""Consultation record model ("game") and its status vocabulary."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any

__all__ = [
    "ConsultationRecord",
    "NewRecord",
    "RecordStatus",
    "IMMUTABLE_FIELDS",
    "REVENUE_STATUSES",
]


class RecordStatus(StrEnum):
    WAITING = "waiting"
    PAID_ONLY = "paid_only"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS: dict[RecordStatus, str] = {
    RecordStatus.WAITING: "Na fila",
    RecordStatus.PAID_ONLY: "Apenas pago",
    RecordStatus.IN_PROGRESS: "Em Jogo",
    RecordStatus.FINISHED: "Jogo finalizado",
}

# Statuses counted by every revenue rollup unless a caller asks otherwise.
REVENUE_STATUSES: frozenset[RecordStatus] = frozenset({RecordStatus.FINISHED})

# Set at creation, never changed by update().
IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "practitioner_id", "value", "created_at"})


@dataclass(frozen=True)
class NewRecord:
    """A consultation as captured at the counter, before it has an id."""

    client_name: str
    consultation_type_id: str
    practitioner_id: str
    value: Decimal
    date: date
    payment_time: time
    status: RecordStatus = RecordStatus.WAITING
    campaign: str | None = None
    conversation_link: str | None = None
    queue_position: int | None = None


@dataclass(frozen=True)
class ConsultationRecord:
    """Immutable snapshot of one consultation; the store swaps whole snapshots."""

    id: str
    client_name: str
    consultation_type_id: str
    practitioner_id: str
    value: Decimal
    date: date
    payment_time: time
    status: RecordStatus
    campaign: str | None = None
    conversation_link: str | None = None
    queue_position: int | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: int = 1

    @property
    def client_key(self) -> str:
        return self.client_name.lower()

    @property
    def service_minutes(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds() / 60

    @classmethod
    def create(cls, record_id: str, new: NewRecord, created_at: datetime) -> ConsultationRecord:
        values = {f.name: getattr(new, f.name) for f in fields(NewRecord)}
        return cls(id=record_id, created_at=created_at, **values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "client_name": self.client_name,
            "consultation_type_id": self.consultation_type_id,
            "practitioner_id": self.practitioner_id,
            "value": str(self.value),
            "date": self.date.isoformat(),
            "payment_time": self.payment_time.strftime("%H:%M"),
            "status": self.status.value,
            "status_label": self.status.label,
            "campaign": self.campaign,
            "conversation_link": self.conversation_link,
            "queue_position": self.queue_position,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "created_at": self.created_at.isoformat(),
            "version": self.version,
        }
