"""Export feed — finished consultations resolved for document generation."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cartodash.reports.finance import filter_records
from cartodash.records import RecordStatus

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from cartodash.catalog import Catalog
    from cartodash.records import ConsultationRecord

__all__ = ["ExportRow", "export_finished", "render_csv", "CSV_FIELDS"]

CSV_FIELDS = [
    "record_id",
    "date",
    "payment_time",
    "client_name",
    "consultation_type",
    "practitioner",
    "value",
    "campaign",
    "started_at",
    "finished_at",
]


@dataclass(frozen=True)
class ExportRow:
    """A finished record with catalog names resolved."""

    record: ConsultationRecord
    consultation_type: str
    practitioner: str

    def to_dict(self) -> dict[str, Any]:
        r = self.record
        return {
            "record_id": r.id,
            "date": r.date.isoformat(),
            "payment_time": r.payment_time.strftime("%H:%M"),
            "client_name": r.client_name,
            "consultation_type": self.consultation_type,
            "practitioner": self.practitioner,
            "value": str(r.value),
            "campaign": r.campaign or "",
            "started_at": r.started_at.isoformat() if r.started_at else "",
            "finished_at": r.finished_at.isoformat() if r.finished_at else "",
        }


def export_finished(
    records: Iterable[ConsultationRecord],
    catalog: Catalog,
    *,
    start: date | None = None,
    end: date | None = None,
    practitioner_id: str | None = None,
) -> list[ExportRow]:
    """Finished records in [start, end], newest first."""
    selected = filter_records(
        records,
        start=start,
        end=end,
        practitioner_id=practitioner_id,
        statuses={RecordStatus.FINISHED},
    )
    selected.sort(key=lambda r: (r.date, r.payment_time), reverse=True)
    rows: list[ExportRow] = []
    for record in selected:
        kind = catalog.find_consultation_type(record.consultation_type_id)
        practitioner = catalog.find_practitioner(record.practitioner_id)
        rows.append(
            ExportRow(
                record=record,
                consultation_type=kind.name if kind else record.consultation_type_id,
                practitioner=practitioner.name if practitioner else record.practitioner_id,
            )
        )
    return rows


def render_csv(rows: list[ExportRow]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_FIELDS)
    writer.writeheader()
    writer.writerows(row.to_dict() for row in rows)
    return buf.getvalue()
