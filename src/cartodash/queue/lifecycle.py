"""Consultation lifecycle: enqueue → start → finish, plus revert and reorder."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING

from cartodash.errors import (
    CartodashError,
    InvalidTransitionError,
    PractitionerBusyError,
    QueueBoundaryError,
    RecordNotFoundError,
    ValidationError,
)
from cartodash.identity import require_admin, require_practitioner_access
from cartodash.queue.projection import active_record, waiting_list
from cartodash.records import ConsultationRecord, NewRecord, RecordStatus

if TYPE_CHECKING:
    from cartodash.catalog import Catalog
    from cartodash.identity import Operator
    from cartodash.store import RecordStore

__all__ = ["Direction", "QueueService", "StartResult"]

logger = logging.getLogger(__name__)

_INITIAL_STATUSES = frozenset({RecordStatus.WAITING, RecordStatus.PAID_ONLY})


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class StartResult:
    record: ConsultationRecord
    open_link: str | None  # conversation the operator should open now


class QueueService:
    """State-changing queue operations, all routed through the record store."""

    def __init__(self, store: RecordStore, catalog: Catalog) -> None:
        self._store = store
        self._catalog = catalog

    def _require(self, record_id: str) -> ConsultationRecord:
        record = self._store.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def _apply(self, record_id: str, **changes: object) -> ConsultationRecord:
        updated = self._store.update(record_id, **changes)
        if updated is None:
            raise RecordNotFoundError(record_id)
        return updated

    # -- enqueue ------------------------------------------------------------

    def enqueue(
        self,
        *,
        client_name: str,
        consultation_type_id: str,
        practitioner_id: str,
        day: date,
        payment_time: time,
        value: Decimal | None = None,
        status: RecordStatus = RecordStatus.WAITING,
        campaign: str | None = None,
        conversation_link: str | None = None,
    ) -> ConsultationRecord:
        """Validate against the catalog and create the record."""
        if not client_name.strip():
            raise ValidationError("client_name is required")
        if status not in _INITIAL_STATUSES:
            raise ValidationError(f"Records cannot be created as {status.value}")
        kind = self._catalog.consultation_type(consultation_type_id)
        self._catalog.practitioner(practitioner_id)
        if value is not None and value < 0:
            raise ValidationError("value cannot be negative")
        return self._store.add(
            NewRecord(
                client_name=client_name.strip(),
                consultation_type_id=kind.id,
                practitioner_id=practitioner_id,
                value=kind.base_price if value is None else value,
                date=day,
                payment_time=payment_time,
                status=status,
                campaign=campaign or None,
                conversation_link=conversation_link or None,
            )
        )

    # -- transitions --------------------------------------------------------

    def start(self, record_id: str, operator: Operator | None = None) -> StartResult:
        record = self._require(record_id)
        require_practitioner_access(operator, record.practitioner_id)
        if record.status != RecordStatus.WAITING:
            raise InvalidTransitionError(
                f"Cannot start record {record_id} from {record.status.value}"
            )
        busy = active_record(self._store.get_all(), record.practitioner_id)
        if busy is not None:
            raise PractitionerBusyError(
                f"Practitioner {record.practitioner_id} is already attending {busy.client_name}"
            )
        started = self._apply(
            record_id,
            status=RecordStatus.IN_PROGRESS,
            started_at=self._store.clock(),
        )
        logger.info("Record %s started for practitioner %s", record_id, record.practitioner_id)
        return StartResult(record=started, open_link=started.conversation_link)

    def finish(self, record_id: str, operator: Operator | None = None) -> ConsultationRecord:
        record = self._require(record_id)
        require_practitioner_access(operator, record.practitioner_id)
        if record.status != RecordStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Cannot finish record {record_id} from {record.status.value}"
            )
        finished = self._apply(
            record_id,
            status=RecordStatus.FINISHED,
            finished_at=self._store.clock(),
        )
        logger.info("Record %s finished", record_id)
        return finished

    def revert(self, record_id: str, operator: Operator | None) -> ConsultationRecord:
        """Administrative: reopen a finished consultation."""
        require_admin(operator, "revert a finished consultation")
        record = self._require(record_id)
        if record.status != RecordStatus.FINISHED:
            raise InvalidTransitionError(
                f"Only finished records can be reverted; {record_id} is {record.status.value}"
            )
        reverted = self._apply(record_id, status=RecordStatus.IN_PROGRESS, finished_at=None)
        logger.info("Record %s reverted to in_progress by %s", record_id, operator.operator_id)  # type: ignore[union-attr]
        return reverted

    # -- reorder ------------------------------------------------------------

    def reorder(
        self,
        record_id: str,
        direction: Direction,
        operator: Operator | None = None,
    ) -> list[ConsultationRecord]:
        """Swap the record with its neighbour; returns the new waiting list.

        The practitioner's waiting records are first numbered 1..n in their
        current order, so the two swapped positions never tie with a third
        record. Only records whose position changes are written.
        """
        record = self._require(record_id)
        require_practitioner_access(operator, record.practitioner_id)
        if record.status != RecordStatus.WAITING:
            raise QueueBoundaryError(f"Record {record_id} is not waiting")

        ordered = waiting_list(self._store.get_all(), record.practitioner_id)
        index = next(i for i, r in enumerate(ordered) if r.id == record_id)
        target = index - 1 if direction == Direction.UP else index + 1
        if target < 0 or target >= len(ordered):
            raise QueueBoundaryError(f"Cannot move {record.client_name} {direction.value}")

        neighbour = ordered[target]
        ordered[index], ordered[target] = neighbour, record
        written: list[ConsultationRecord] = []
        try:
            for position, item in enumerate(ordered, start=1):
                if item.queue_position != position:
                    self._apply(item.id, queue_position=position)
                    written.append(item)
        except CartodashError:
            for original in reversed(written):
                self._compensate(original)
            raise
        logger.info("Record %s moved %s past %s", record.id, direction.value, neighbour.id)
        return waiting_list(self._store.get_all(), record.practitioner_id)

    def _compensate(self, original: ConsultationRecord) -> None:
        try:
            self._store.update(original.id, queue_position=original.queue_position)
        except CartodashError:
            logger.error(
                "Reorder left record %s at a swapped position; manual fix needed",
                original.id,
                exc_info=True,
            )
