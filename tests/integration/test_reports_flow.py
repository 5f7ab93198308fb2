"""Integration: finished consultations flowing into clients, finance and exports."""

from __future__ import annotations

import csv
import io
from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from httpx import AsyncClient

CreateRecord = Callable[..., Awaitable[dict[str, Any]]]

ADMIN = {"x-operator-id": "ops-1", "x-operator-role": "admin"}


async def _complete(client: AsyncClient, record: dict[str, Any]) -> None:
    assert (await client.post(f"/records/{record['id']}/start")).status_code == 200
    assert (await client.post(f"/records/{record['id']}/finish")).status_code == 200


@pytest.fixture()
async def history(client: AsyncClient, create_record: CreateRecord) -> None:
    """Maria: two finished visits ten days apart; Joana: finished; Rita: still waiting."""
    first = await create_record("Maria", "10:00", date="2024-01-01", value="30", campaign="Instagram")
    await _complete(client, first)
    second = await create_record("maria", "10:00", date="2024-01-11", value="50", campaign="instagram")
    await _complete(client, second)
    joana = await create_record("Joana", "11:00", date="2024-01-11", value="40", practitioner_id="2")
    await _complete(client, joana)
    await create_record("Rita", "12:00", date="2024-01-11", value="35")


@pytest.mark.anyio()
async def test_catalog(client: AsyncClient) -> None:
    body = (await client.get("/catalog")).json()
    assert {p["name"] for p in body["practitioners"]} == {"Vanessa Barreto", "Alana Cerqueira"}
    assert len(body["consultation_types"]) == 6


@pytest.mark.anyio()
async def test_client_ranking(client: AsyncClient, history: None) -> None:
    ranking = (await client.get("/clients")).json()

    assert [c["key"] for c in ranking] == ["maria", "joana"]
    maria = ranking[0]
    assert maria["total_games"] == 2
    assert maria["total_spent"] == "80"
    assert maria["average_frequency_days"] == 10

    everything = (await client.get("/clients", params={"scope": "all"})).json()
    assert {c["key"] for c in everything} == {"maria", "joana", "rita"}


@pytest.mark.anyio()
async def test_client_ranking_rejects_inverted_range(client: AsyncClient) -> None:
    resp = await client.get("/clients", params={"start": "2024-02-01", "end": "2024-01-01"})
    assert resp.status_code == 400


@pytest.mark.anyio()
async def test_financial_report(client: AsyncClient, history: None) -> None:
    body = (await client.get("/reports/financial")).json()
    assert body["total_revenue"] == "120.00"
    assert body["total_games"] == 3
    assert body["revenue_by_practitioner"] == {"Vanessa Barreto": "80.00", "Alana Cerqueira": "40.00"}


@pytest.mark.anyio()
async def test_spend_drives_profit_and_campaigns(client: AsyncClient, history: None) -> None:
    denied = await client.put("/campaigns/spend", json={"spend": {"Instagram": "20"}})
    assert denied.status_code == 403

    resp = await client.put("/campaigns/spend", json={"spend": {"Instagram": "20"}}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["campaigns"] == 1

    profit = (await client.get("/reports/profit")).json()
    assert profit["business_revenue"] == "100.00"
    assert profit["practitioner_commissions"] == "20.00"
    assert profit["ad_spend"] == "20.00"
    assert profit["net_profit"] == "80.00"

    campaigns = (await client.get("/reports/campaigns")).json()
    [instagram] = campaigns["campaigns"]
    assert instagram["revenue"] == "80.00"
    assert instagram["conversions"] == 2
    assert instagram["roas"] == "4.00"
    assert campaigns["spend_updated_at"] is not None


@pytest.mark.anyio()
async def test_negative_spend_rejected(client: AsyncClient) -> None:
    resp = await client.put("/campaigns/spend", json={"spend": {"Google": "-5"}}, headers=ADMIN)
    assert resp.status_code == 400


@pytest.mark.anyio()
async def test_campaign_without_spend_is_not_computable(client: AsyncClient, history: None) -> None:
    campaigns = (await client.get("/reports/campaigns")).json()["campaigns"]
    [instagram] = campaigns
    assert instagram["roas"] is None
    assert instagram["computable"] is False


@pytest.mark.anyio()
async def test_export_csv(client: AsyncClient, history: None) -> None:
    resp = await client.get("/reports/export.csv", params={"practitioner_id": "1"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert [r["date"] for r in rows] == ["2024-01-11", "2024-01-01"]
    assert {r["practitioner"] for r in rows} == {"Vanessa Barreto"}


@pytest.mark.anyio()
async def test_dashboards(client: AsyncClient, create_record: CreateRecord) -> None:
    await create_record("Ana", "09:00")
    await create_record("Bia", "09:05", consultation_type_id="5")

    overview = (await client.get("/dashboard/overview")).json()
    assert overview["queue_length"] == 2
    assert overview["operation_status"] == "calm"
    assert {q["practitioner_id"] for q in overview["queues"]} == {"1", "2"}

    sheet = (await client.get("/dashboard/practitioners/1")).json()
    assert sheet["practitioner"] == "Vanessa Barreto"
    assert [(e["client_name"], e["wait_minutes"]) for e in sheet["queue"]] == [("Ana", 0), ("Bia", 10)]
    assert sheet["current"] is None


@pytest.mark.anyio()
async def test_practitioner_dashboard_unknown_practitioner(client: AsyncClient) -> None:
    resp = await client.get("/dashboard/practitioners/99")
    assert resp.status_code == 400
