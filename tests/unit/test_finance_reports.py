"""Tests for revenue, profit and campaign ROAS rollups."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal

from cartodash.campaigns import InMemoryCampaignSpendProvider, spend_for
from cartodash.catalog import Catalog
from cartodash.records import ConsultationRecord, RecordStatus
from cartodash.reports.finance import (
    CampaignReturn,
    campaign_returns,
    financial_report,
    profit_report,
    return_for_campaign,
)

MakeRecord = Callable[..., ConsultationRecord]

FINISHED = RecordStatus.FINISHED


class TestFinancialReport:
    def test_counts_finished_only(self, make_record: MakeRecord, catalog: Catalog) -> None:
        records = [
            make_record("1", value="30", consultation_type_id="3", status=FINISHED),
            make_record("2", value="50", consultation_type_id="5", practitioner_id="2", status=FINISHED),
            make_record("3", value="40", status=RecordStatus.WAITING),
        ]
        report = financial_report(records, catalog)

        assert report.total_revenue == Decimal("80")
        assert report.total_games == 2
        assert report.average_ticket == Decimal("40")
        assert report.revenue_by_practitioner == {
            "Vanessa Barreto": Decimal("30"),
            "Alana Cerqueira": Decimal("50"),
        }
        assert report.revenue_by_type["Mandala Amorosa"] == Decimal("30")

    def test_date_range(self, make_record: MakeRecord, catalog: Catalog) -> None:
        records = [
            make_record("1", value="30", day=date(2026, 3, 1), status=FINISHED),
            make_record("2", value="50", day=date(2026, 3, 20), status=FINISHED),
        ]
        report = financial_report(records, catalog, start=date(2026, 3, 10), end=date(2026, 3, 31))
        assert report.total_revenue == Decimal("50")
        assert report.to_dict()["period"] == "2026-03-10/2026-03-31"

    def test_empty_report(self, catalog: Catalog) -> None:
        data = financial_report([], catalog).to_dict()
        assert data["total_revenue"] == "0.00"
        assert data["average_ticket"] == "0.00"


class TestProfitReport:
    def test_commission_split_and_spend(self, make_record: MakeRecord, catalog: Catalog) -> None:
        records = [
            make_record("1", value="100", practitioner_id="1", status=FINISHED),
            make_record("2", value="100", practitioner_id="2", status=FINISHED),
        ]
        report = profit_report(records, catalog, {"Instagram": Decimal("20")})

        assert report.business_revenue == Decimal("150")
        assert report.practitioner_commissions == Decimal("50")
        assert report.total_costs == Decimal("70")
        assert report.net_profit == Decimal("130")
        assert report.margin_percent == Decimal("65")
        assert report.margin_rating == "excellent"
        assert report.to_dict()["roi_percent"] == "185.71"

    def test_no_costs_means_roi_not_computable(self, make_record: MakeRecord, catalog: Catalog) -> None:
        report = profit_report([make_record("1", value="30", status=FINISHED)], catalog, {})
        assert report.total_costs == 0
        assert report.roi_percent is None
        assert report.to_dict()["roi_percent"] is None

    def test_low_margin(self, make_record: MakeRecord, catalog: Catalog) -> None:
        report = profit_report(
            [make_record("1", value="100", status=FINISHED)], catalog, {"Google": Decimal("95")}
        )
        assert report.margin_rating == "low"


class TestCampaignReturns:
    def test_spend_lookup_is_substring_case_insensitive(self) -> None:
        spend = {"Instagram Março": Decimal("40")}
        assert spend_for(spend, "instagram") == Decimal("40")
        assert spend_for(spend, "tiktok") == Decimal("0")

    def test_roas(self, make_record: MakeRecord) -> None:
        records = [
            make_record("1", value="50", campaign="instagram", status=FINISHED),
            make_record("2", value="30", campaign="Instagram stories", status=FINISHED),
            make_record("3", value="99", campaign="instagram", status=RecordStatus.WAITING),
        ]
        row = return_for_campaign(records, {"Instagram": Decimal("20")}, "Instagram")

        assert row.revenue == Decimal("80")
        assert row.conversions == 2
        assert row.roas == Decimal("4")

    def test_zero_spend_is_not_computable(self) -> None:
        row = CampaignReturn(campaign="Indicação", revenue=Decimal("100"), conversions=2, spend=Decimal("0"))
        assert row.roas is None
        assert row.to_dict()["computable"] is False
        assert row.to_dict()["roas"] is None

    def test_rows_cover_spend_keys_and_unfunded_labels(self, make_record: MakeRecord) -> None:
        records = [
            make_record("1", value="50", campaign="Instagram", status=FINISHED),
            make_record("2", value="70", campaign="Indicação", status=FINISHED),
        ]
        rows = campaign_returns(records, {"Instagram": Decimal("25"), "Google": Decimal("10")})
        by_name = {r.campaign: r for r in rows}

        assert set(by_name) == {"Instagram", "Google", "Indicação"}
        assert by_name["Instagram"].roas == Decimal("2")
        assert by_name["Google"].revenue == Decimal("0")
        assert by_name["Indicação"].roas is None
        assert rows[0].campaign == "Indicação"


def test_in_memory_spend_provider_replace() -> None:
    provider = InMemoryCampaignSpendProvider({"Old": Decimal("1")})
    provider.replace({"Instagram": Decimal("30")})
    assert provider.spend_by_campaign() == {"Instagram": Decimal("30")}
    assert provider.updated_at is not None
