"""Tests for dashboard read models and the CSV export feed."""

from __future__ import annotations

import csv
import io
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from cartodash.catalog import Catalog
from cartodash.records import ConsultationRecord, RecordStatus
from cartodash.reports.dashboard import (
    OverviewMetrics,
    daily_history,
    daily_summary,
    overview,
    practitioner_dashboard,
    queue_load,
)
from cartodash.reports.export import CSV_FIELDS, export_finished, render_csv

MakeRecord = Callable[..., ConsultationRecord]

DAY = date(2026, 3, 14)


def _finished(make_record: MakeRecord, rid: str, start_hour: int, minutes: int, **kw: object) -> ConsultationRecord:
    started = datetime(2026, 3, 14, start_hour, 0, tzinfo=UTC)
    return make_record(
        rid,
        status=RecordStatus.FINISHED,
        started_at=started,
        finished_at=started + timedelta(minutes=minutes),
        **kw,
    )


# ── Practitioner day sheet ──────────────────────────────


def test_daily_summary(make_record: MakeRecord) -> None:
    records = [
        _finished(make_record, "1", 10, 12, value="30"),
        _finished(make_record, "2", 11, 8, value="20"),
        make_record("3", value="50"),
    ]
    summary = daily_summary(DAY, records)

    assert summary.total_games == 3
    assert summary.completed_games == 2
    assert summary.total_earnings == Decimal("50")
    assert summary.average_minutes == 10


def test_daily_history_newest_first(make_record: MakeRecord) -> None:
    records = [
        make_record("old", day=DAY - timedelta(days=40), status=RecordStatus.FINISHED),
        make_record("mid", day=DAY - timedelta(days=2), status=RecordStatus.FINISHED),
        make_record("new", day=DAY, status=RecordStatus.FINISHED),
        make_record("other", day=DAY, practitioner_id="2", status=RecordStatus.FINISHED),
    ]
    history = daily_history(records, "1", DAY)
    assert [s.date for s in history] == [DAY, DAY - timedelta(days=2)]
    assert all(s.total_games == 1 for s in history)


def test_practitioner_dashboard(make_record: MakeRecord, catalog: Catalog) -> None:
    records = [
        make_record("live", status=RecordStatus.IN_PROGRESS),
        make_record("a", consultation_type_id="5", payment_time="09:00"),
        make_record("b", payment_time="09:05"),
    ]
    sheet = practitioner_dashboard(records, "1", catalog, DAY)

    assert sheet["practitioner"] == "Vanessa Barreto"
    assert sheet["current"]["id"] == "live"
    assert [(e["id"], e["position"], e["wait_minutes"]) for e in sheet["queue"]] == [
        ("a", 1, 0),
        ("b", 2, 30),
    ]
    assert sheet["today"]["total_games"] == 3


# ── Live overview ───────────────────────────────────────


def test_overview_metrics(make_record: MakeRecord, catalog: Catalog) -> None:
    records = [
        _finished(make_record, "f1", 14, 10, value="10"),
        _finished(make_record, "f2", 14, 20, value="10", consultation_type_id="1"),
        make_record("live", status=RecordStatus.IN_PROGRESS, practitioner_id="2"),
        make_record("w1", payment_time="09:00"),
        make_record("w2", payment_time="09:05"),
        make_record("paid", status=RecordStatus.PAID_ONLY, value="99"),
    ]
    metrics = overview(records, catalog, DAY)

    assert metrics.today_revenue == Decimal("20")
    assert metrics.finished_today == 2
    assert metrics.active_games == 1
    assert metrics.queue_length == 2
    assert metrics.average_wait_minutes == 5
    assert metrics.conversion_rate == 40
    assert metrics.peak_hour == 14
    assert metrics.efficiency == 67
    assert metrics.operation_status == "active"


def test_operation_status_thresholds() -> None:
    def status(queue_length: int, active: int = 0) -> str:
        return OverviewMetrics(Decimal("0"), 0, active, queue_length, 0, 0, None, 0).operation_status

    assert status(9) == "overload"
    assert status(5) == "busy"
    assert status(4, active=1) == "active"
    assert status(0) == "calm"


def test_queue_load_suggestions(make_record: MakeRecord, catalog: Catalog) -> None:
    records = [
        make_record(f"w{i}", consultation_type_id="5", payment_time=f"09:{i:02d}")
        for i in range(4)
    ]
    loads = {load.practitioner_id: load for load in queue_load(records, catalog)}

    assert loads["1"].current_queue == 4
    assert loads["1"].suggested_action == "redistribute"
    assert loads["1"].longest_wait_minutes == 90
    assert loads["1"].to_dict()["waiting_ids"] == ["w0", "w1", "w2", "w3"]
    assert loads["2"].current_queue == 0
    assert loads["2"].to_dict()["waiting_ids"] == []
    assert loads["2"].suggested_action == "normal"


def test_queue_load_priority_on_long_wait(make_record: MakeRecord, catalog: Catalog) -> None:
    records = [
        make_record(f"p1-{i}", consultation_type_id="5", payment_time=f"09:{i:02d}") for i in range(4)
    ] + [
        make_record(f"p2-{i}", practitioner_id="2", payment_time=f"09:{i:02d}") for i in range(3)
    ]
    loads = {load.practitioner_id: load for load in queue_load(records, catalog)}
    assert loads["1"].suggested_action == "priority"
    assert loads["2"].suggested_action == "normal"
    assert loads["1"].balance == 93


# ── Export ──────────────────────────────────────────────


def test_export_finished_rows(make_record: MakeRecord, catalog: Catalog) -> None:
    records = [
        _finished(make_record, "old", 9, 10, day=date(2026, 3, 1)),
        _finished(make_record, "new", 10, 10, day=date(2026, 3, 10), campaign="Instagram"),
        _finished(make_record, "hers", 10, 10, practitioner_id="2"),
        make_record("waiting"),
    ]
    rows = export_finished(records, catalog, practitioner_id="1")
    assert [r.record.id for r in rows] == ["new", "old"]

    ranged = export_finished(records, catalog, start=date(2026, 3, 5), end=date(2026, 3, 31))
    assert {r.record.id for r in ranged} == {"new", "hers"}


def test_render_csv(make_record: MakeRecord, catalog: Catalog) -> None:
    rows = export_finished([_finished(make_record, "r1", 10, 15, campaign="Google")], catalog)
    parsed = list(csv.DictReader(io.StringIO(render_csv(rows))))

    assert list(parsed[0]) == CSV_FIELDS
    assert parsed[0]["record_id"] == "r1"
    assert parsed[0]["practitioner"] == "Vanessa Barreto"
    assert parsed[0]["consultation_type"] == "01 Pergunta Objetiva"
    assert parsed[0]["campaign"] == "Google"
