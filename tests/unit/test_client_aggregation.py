"""Tests for the client ranking rollup."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal

from cartodash.records import ConsultationRecord, RecordStatus
from cartodash.reports.clients import aggregate_clients

MakeRecord = Callable[..., ConsultationRecord]

FINISHED = RecordStatus.FINISHED


def test_maria_two_visits(make_record: MakeRecord) -> None:
    records = [
        make_record("1", client_name="Maria", value="30", day=date(2024, 1, 1), status=FINISHED),
        make_record("2", client_name="Maria", value="50", day=date(2024, 1, 11), status=FINISHED),
    ]
    [maria] = aggregate_clients(records)

    assert maria.total_games == 2
    assert maria.total_spent == Decimal("80")
    assert maria.average_frequency_days == 10
    assert maria.last_visit == date(2024, 1, 11)


def test_name_matching_is_case_insensitive(make_record: MakeRecord) -> None:
    records = [
        make_record("1", client_name="Maria", status=FINISHED),
        make_record("2", client_name="MARIA", status=FINISHED),
    ]
    [client] = aggregate_clients(records)
    assert client.key == "maria"
    assert client.name == "Maria"
    assert client.total_games == 2


def test_single_visit_has_no_frequency(make_record: MakeRecord) -> None:
    [client] = aggregate_clients([make_record("1", status=FINISHED)])
    assert client.average_frequency_days is None
    assert client.to_dict()["average_frequency_days"] is None


def test_finished_only_by_default(make_record: MakeRecord) -> None:
    records = [
        make_record("1", value="30", status=FINISHED),
        make_record("2", value="50", status=RecordStatus.WAITING),
        make_record("3", value="25", status=RecordStatus.PAID_ONLY),
    ]
    [finished_only] = aggregate_clients(records)
    [everything] = aggregate_clients(records, statuses=None)

    assert finished_only.total_spent == Decimal("30")
    assert everything.total_spent == Decimal("105")
    assert everything.total_games == 3


def test_ranked_by_spend_then_key(make_record: MakeRecord) -> None:
    records = [
        make_record("1", client_name="Zélia", value="20", status=FINISHED),
        make_record("2", client_name="Ana", value="20", status=FINISHED),
        make_record("3", client_name="Bia", value="50", status=FINISHED),
    ]
    ranking = [c.name for c in aggregate_clients(records)]
    assert ranking == ["Bia", "Ana", "Zélia"]


def test_date_range_filter(make_record: MakeRecord) -> None:
    records = [
        make_record("1", day=date(2024, 1, 1), status=FINISHED),
        make_record("2", day=date(2024, 2, 1), status=FINISHED),
        make_record("3", day=date(2024, 3, 1), status=FINISHED),
    ]
    [client] = aggregate_clients(records, start=date(2024, 1, 15), end=date(2024, 2, 28))
    assert client.visit_dates == [date(2024, 2, 1)]


def test_empty_input() -> None:
    assert aggregate_clients([]) == []
