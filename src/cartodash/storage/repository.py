"""Consultation record repository — protocol + implementations."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol

from cartodash.errors import StaleRecordError
from cartodash.records import ConsultationRecord, RecordStatus

if TYPE_CHECKING:
    import psycopg

__all__ = [
    "RecordRepositoryProtocol",
    "InMemoryRecordRepository",
    "PostgresRecordRepository",
    "status_to_code",
    "status_from_code",
]

_STATUS_CODES: dict[RecordStatus, str] = {
    RecordStatus.WAITING: "na_fila",
    RecordStatus.PAID_ONLY: "apenas_pago",
    RecordStatus.IN_PROGRESS: "em_jogo",
    RecordStatus.FINISHED: "jogo_finalizado",
}
_CODE_STATUSES: dict[str, RecordStatus] = {v: k for k, v in _STATUS_CODES.items()}


def status_to_code(status: RecordStatus) -> str:
    return _STATUS_CODES[status]


def status_from_code(code: str) -> RecordStatus:
    """Accept storage codes as well as the human labels older rows carry."""
    if code in _CODE_STATUSES:
        return _CODE_STATUSES[code]
    for status in RecordStatus:
        if code == status.label:
            return status
    raise ValueError(f"Unknown status code: {code!r}")


class RecordRepositoryProtocol(Protocol):
    """Minimal contract for durable record storage."""

    def list_records(self) -> list[ConsultationRecord]:
        """Return every stored record."""
        ...

    def get_record(self, record_id: str) -> ConsultationRecord | None:
        """Return one record or None."""
        ...

    def upsert_record(self, record: ConsultationRecord, expected_version: int | None) -> None:
        """Insert (expected_version=None) or update guarded by the stored version.

        Raises StaleRecordError when the stored version is not *expected_version*.
        """
        ...


# ── In-memory implementation (dev / tests) ──────────────


class InMemoryRecordRepository:
    """Record storage backed by a plain dict — no external deps."""

    def __init__(self, records: list[ConsultationRecord] | None = None) -> None:
        self._rows: dict[str, ConsultationRecord] = {r.id: r for r in records or []}

    def list_records(self) -> list[ConsultationRecord]:
        return list(self._rows.values())

    def get_record(self, record_id: str) -> ConsultationRecord | None:
        return self._rows.get(record_id)

    def upsert_record(self, record: ConsultationRecord, expected_version: int | None) -> None:
        current = self._rows.get(record.id)
        if expected_version is None:
            if current is not None:
                raise StaleRecordError(record.id, 0)
        elif current is None or current.version != expected_version:
            raise StaleRecordError(record.id, expected_version)
        self._rows[record.id] = record


# ── PostgreSQL implementation ────────────────────────────

_COLUMNS = (
    "id, client_name, game_type, cartomante, value, game_date, payment_time, status, "
    "campaign, conversation_link, queue_position, started_at, finished_at, created_at, version"
)


class PostgresRecordRepository:
    """Consultation records in the ``games`` table."""

    def __init__(self, conn: psycopg.Connection[Any]) -> None:
        self._conn = conn

    def list_records(self) -> list[ConsultationRecord]:
        with self._conn.cursor() as cur:
            cur.execute(
                f"SELECT {_COLUMNS} FROM games ORDER BY game_date, payment_time, created_at"  # noqa: S608
            )
            rows = cur.fetchall()
        self._conn.commit()
        return [_from_row(r) for r in rows]

    def get_record(self, record_id: str) -> ConsultationRecord | None:
        with self._conn.cursor() as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM games WHERE id = %s", (record_id,))  # noqa: S608
            row = cur.fetchone()
        self._conn.commit()
        return _from_row(row) if row else None

    def upsert_record(self, record: ConsultationRecord, expected_version: int | None) -> None:
        params = _to_params(record)
        try:
            with self._conn.cursor() as cur:
                if expected_version is None:
                    cur.execute(
                        f"""
                        INSERT INTO games ({_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (id) DO NOTHING
                        """,  # noqa: S608
                        params,
                    )
                else:
                    cur.execute(
                        """
                        UPDATE games SET
                            client_name = %s, game_type = %s, status = %s,
                            campaign = %s, conversation_link = %s, queue_position = %s,
                            started_at = %s, finished_at = %s, game_date = %s,
                            payment_time = %s, version = %s
                        WHERE id = %s AND version = %s
                        """,
                        (
                            record.client_name,
                            record.consultation_type_id,
                            status_to_code(record.status),
                            record.campaign,
                            record.conversation_link,
                            record.queue_position,
                            record.started_at,
                            record.finished_at,
                            record.date,
                            record.payment_time,
                            record.version,
                            record.id,
                            expected_version,
                        ),
                    )
                affected = cur.rowcount
        except Exception:
            self._conn.rollback()
            raise
        if affected == 0:
            self._conn.rollback()
            raise StaleRecordError(record.id, expected_version or 0)
        self._conn.commit()


def _to_params(record: ConsultationRecord) -> tuple[Any, ...]:
    return (
        record.id,
        record.client_name,
        record.consultation_type_id,
        record.practitioner_id,
        record.value,
        record.date,
        record.payment_time,
        status_to_code(record.status),
        record.campaign,
        record.conversation_link,
        record.queue_position,
        record.started_at,
        record.finished_at,
        record.created_at,
        record.version,
    )


def _from_row(r: tuple[Any, ...]) -> ConsultationRecord:
    return ConsultationRecord(
        id=str(r[0]),
        client_name=r[1],
        consultation_type_id=str(r[2]),
        practitioner_id=str(r[3]),
        value=Decimal(str(r[4])),
        date=r[5],
        payment_time=r[6],
        status=status_from_code(r[7]),
        campaign=r[8],
        conversation_link=r[9],
        queue_position=r[10],
        started_at=r[11],
        finished_at=r[12],
        created_at=r[13],
        version=int(r[14]),
    )
