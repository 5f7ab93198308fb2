"""Record store — single owner of the consultation record snapshot.

Every mutation goes repository first, then memory, then subscribers. A failed
write leaves the snapshot untouched and raises ``PersistenceError``; a write
that lost a version race pulls the stored copy in and raises
``StaleRecordError`` so the caller can retry against fresh state.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from cartodash.errors import PersistenceError, StaleRecordError, ValidationError
from cartodash.records import IMMUTABLE_FIELDS, ConsultationRecord, NewRecord, RecordStatus

if TYPE_CHECKING:
    from cartodash.storage.repository import RecordRepositoryProtocol

__all__ = ["RecordStore", "Clock", "utc_now"]

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Listener = Callable[[], None]


def utc_now() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class RecordStore:
    """Brokers all reads and writes of consultation records."""

    def __init__(
        self,
        repository: RecordRepositoryProtocol | None = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._repo = repository
        self._clock = clock
        self._new_id = id_factory
        self._records: list[ConsultationRecord] = []
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @property
    def clock(self) -> Clock:
        return self._clock

    # -- lifecycle ----------------------------------------------------------

    def load(self) -> int:
        """Fill the snapshot from the repository. Returns the record count.

        An unreachable repository is logged and the store starts empty.
        """
        if self._repo is None:
            return 0
        try:
            records = self._repo.list_records()
        except Exception:
            logger.warning("Record repository unavailable; starting with empty snapshot", exc_info=True)
            return 0
        with self._lock:
            self._records = list(records)
        logger.info("Loaded %d consultation records", len(records))
        self._broadcast()
        return len(records)

    # -- subscriptions ------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners = [fn for fn in self._listeners if fn is not listener]

        return unsubscribe

    def _broadcast(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.warning("Store subscriber %r failed", listener, exc_info=True)

    # -- persistence --------------------------------------------------------

    def _persist(self, record: ConsultationRecord, expected_version: int | None) -> None:
        if self._repo is None:
            return
        try:
            self._repo.upsert_record(record, expected_version)
        except StaleRecordError:
            raise
        except Exception as e:
            logger.error("Persisting record %s failed: %s", record.id, e, exc_info=True)
            raise PersistenceError(f"Could not save record {record.id}") from e

    def _merge_remote(self, record_id: str) -> None:
        """Replace the local copy with the stored one after a lost version race.

        Called without the store lock held; the reload does repository I/O and
        notifies subscribers.
        """
        logger.warning("Stale write on record %s; reloading stored copy", record_id)
        try:
            self.reload(record_id)
        except PersistenceError:
            logger.warning("Reload after stale write failed for %s", record_id)

    # -- writes -------------------------------------------------------------

    def add(self, new: NewRecord) -> ConsultationRecord:
        """Assign an id, persist, append, notify. Returns the stored record."""
        if not new.client_name.strip():
            raise ValidationError("client_name is required")
        record = ConsultationRecord.create(self._new_id(), new, created_at=self._clock())
        try:
            with self._lock:
                self._persist(record, expected_version=None)
                self._records.append(record)
        except StaleRecordError:
            self._merge_remote(record.id)
            raise
        logger.info(
            "Record %s added for %s (practitioner=%s status=%s)",
            record.id,
            record.client_name,
            record.practitioner_id,
            record.status,
        )
        self._broadcast()
        return record

    def update(self, record_id: str, **changes: Any) -> ConsultationRecord | None:
        """Merge *changes* into the record. Returns None if the id is absent."""
        locked = IMMUTABLE_FIELDS.intersection(changes)
        if locked:
            raise ValidationError(f"Fields cannot be changed: {', '.join(sorted(locked))}")
        changes.pop("version", None)
        try:
            with self._lock:
                index = self._index_of(record_id)
                if index is None:
                    logger.info("Update ignored; record %s not found", record_id)
                    return None
                current = self._records[index]
                try:
                    merged = replace(current, **changes, version=current.version + 1)
                except TypeError as e:
                    raise ValidationError(str(e)) from e
                self._persist(merged, expected_version=current.version)
                self._records[index] = merged
        except StaleRecordError:
            self._merge_remote(record_id)
            raise
        self._broadcast()
        return merged

    def reload(self, record_id: str) -> ConsultationRecord | None:
        """Pull one record from the repository into the snapshot."""
        if self._repo is None:
            return self.get(record_id)
        try:
            remote = self._repo.get_record(record_id)
        except Exception as e:
            raise PersistenceError(f"Could not reload record {record_id}") from e
        with self._lock:
            index = self._index_of(record_id)
            if remote is None:
                if index is not None:
                    del self._records[index]
            elif index is None:
                self._records.append(remote)
            else:
                self._records[index] = remote
        self._broadcast()
        return remote

    def _index_of(self, record_id: str) -> int | None:
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        return None

    # -- reads --------------------------------------------------------------

    def get(self, record_id: str) -> ConsultationRecord | None:
        with self._lock:
            index = self._index_of(record_id)
            return None if index is None else self._records[index]

    def get_all(self) -> list[ConsultationRecord]:
        """Shallow copy of the snapshot."""
        with self._lock:
            return list(self._records)

    def get_by_status(self, status: RecordStatus) -> list[ConsultationRecord]:
        return [r for r in self.get_all() if r.status == status]

    def get_by_date(self, day: date) -> list[ConsultationRecord]:
        return [r for r in self.get_all() if r.date == day]
