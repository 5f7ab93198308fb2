"""Revenue, cost/profit and campaign return-on-ad-spend rollups.

All rollups count ``REVENUE_STATUSES`` (finished consultations) unless the
caller passes another status set.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from cartodash.campaigns import spend_for
from cartodash.records import REVENUE_STATUSES

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from cartodash.catalog import Catalog
    from cartodash.records import ConsultationRecord, RecordStatus

__all__ = [
    "CampaignReturn",
    "FinancialReport",
    "ProfitReport",
    "campaign_returns",
    "filter_records",
    "financial_report",
    "profit_report",
    "return_for_campaign",
]

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def _money(value: Decimal) -> str:
    return str(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal | None:
    if denominator == 0:
        return None
    return numerator / denominator


def filter_records(
    records: Iterable[ConsultationRecord],
    *,
    start: date | None = None,
    end: date | None = None,
    practitioner_id: str | None = None,
    statuses: Collection[RecordStatus] | None = REVENUE_STATUSES,
) -> list[ConsultationRecord]:
    """Records inside [start, end] for one practitioner (or all)."""
    return [
        r
        for r in records
        if (statuses is None or r.status in statuses)
        and (start is None or r.date >= start)
        and (end is None or r.date <= end)
        and (practitioner_id is None or r.practitioner_id == practitioner_id)
    ]


def _period(start: date | None, end: date | None) -> str:
    if start is None and end is None:
        return "all"
    return f"{start.isoformat() if start else '…'}/{end.isoformat() if end else '…'}"


# ── Revenue ─────────────────────────────────────────────


@dataclass(frozen=True)
class FinancialReport:
    period: str
    total_revenue: Decimal
    total_games: int
    revenue_by_practitioner: dict[str, Decimal]
    revenue_by_type: dict[str, Decimal]

    @property
    def average_ticket(self) -> Decimal:
        return self.total_revenue / max(self.total_games, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "total_revenue": _money(self.total_revenue),
            "total_games": self.total_games,
            "average_ticket": _money(self.average_ticket),
            "revenue_by_practitioner": {k: _money(v) for k, v in self.revenue_by_practitioner.items()},
            "revenue_by_type": {k: _money(v) for k, v in self.revenue_by_type.items()},
        }


def financial_report(
    records: Iterable[ConsultationRecord],
    catalog: Catalog,
    *,
    start: date | None = None,
    end: date | None = None,
    statuses: Collection[RecordStatus] | None = REVENUE_STATUSES,
) -> FinancialReport:
    selected = filter_records(records, start=start, end=end, statuses=statuses)
    by_practitioner: dict[str, Decimal] = defaultdict(lambda: _ZERO)
    by_type: dict[str, Decimal] = defaultdict(lambda: _ZERO)
    for record in selected:
        practitioner = catalog.find_practitioner(record.practitioner_id)
        kind = catalog.find_consultation_type(record.consultation_type_id)
        by_practitioner[practitioner.name if practitioner else record.practitioner_id] += record.value
        by_type[kind.name if kind else record.consultation_type_id] += record.value
    return FinancialReport(
        period=_period(start, end),
        total_revenue=sum((r.value for r in selected), _ZERO),
        total_games=len(selected),
        revenue_by_practitioner=dict(by_practitioner),
        revenue_by_type=dict(by_type),
    )


# ── Costs & profit ──────────────────────────────────────


@dataclass(frozen=True)
class ProfitReport:
    period: str
    total_revenue: Decimal
    business_revenue: Decimal
    practitioner_commissions: Decimal
    ad_spend: Decimal

    @property
    def total_costs(self) -> Decimal:
        return self.practitioner_commissions + self.ad_spend

    @property
    def net_profit(self) -> Decimal:
        return self.total_revenue - self.total_costs

    @property
    def margin_percent(self) -> Decimal:
        ratio = _ratio(self.net_profit, self.total_revenue)
        return _ZERO if ratio is None else ratio * 100

    @property
    def roi_percent(self) -> Decimal | None:
        ratio = _ratio(self.net_profit, self.total_costs)
        return None if ratio is None else ratio * 100

    @property
    def margin_rating(self) -> str:
        if self.margin_percent >= 20:
            return "excellent"
        if self.margin_percent >= 10:
            return "good"
        return "low"

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "total_revenue": _money(self.total_revenue),
            "business_revenue": _money(self.business_revenue),
            "practitioner_commissions": _money(self.practitioner_commissions),
            "ad_spend": _money(self.ad_spend),
            "total_costs": _money(self.total_costs),
            "net_profit": _money(self.net_profit),
            "margin_percent": _money(self.margin_percent),
            "margin_rating": self.margin_rating,
            "roi_percent": _money(self.roi_percent) if self.roi_percent is not None else None,
        }


def profit_report(
    records: Iterable[ConsultationRecord],
    catalog: Catalog,
    spend: dict[str, Decimal],
    *,
    start: date | None = None,
    end: date | None = None,
    statuses: Collection[RecordStatus] | None = REVENUE_STATUSES,
) -> ProfitReport:
    """Revenue minus practitioner commissions and ad spend."""
    selected = filter_records(records, start=start, end=end, statuses=statuses)
    business = _ZERO
    commissions = _ZERO
    for record in selected:
        practitioner = catalog.find_practitioner(record.practitioner_id)
        if practitioner is None:
            business += record.value
            continue
        business += practitioner.business_share(record.value)
        commissions += practitioner.commission(record.value)
    return ProfitReport(
        period=_period(start, end),
        total_revenue=sum((r.value for r in selected), _ZERO),
        business_revenue=business,
        practitioner_commissions=commissions,
        ad_spend=sum(spend.values(), _ZERO),
    )


# ── Campaign ROAS ───────────────────────────────────────


@dataclass(frozen=True)
class CampaignReturn:
    campaign: str
    revenue: Decimal
    conversions: int
    spend: Decimal

    @property
    def roas(self) -> Decimal | None:
        """Revenue per unit of spend; None when spend is unknown or zero."""
        return _ratio(self.revenue, self.spend)

    def to_dict(self) -> dict[str, Any]:
        roas = self.roas
        return {
            "campaign": self.campaign,
            "revenue": _money(self.revenue),
            "conversions": self.conversions,
            "spend": _money(self.spend),
            "roas": str(roas.quantize(_CENT, rounding=ROUND_HALF_UP)) if roas is not None else None,
            "computable": roas is not None,
        }


def return_for_campaign(
    records: Iterable[ConsultationRecord],
    spend: dict[str, Decimal],
    campaign: str,
    *,
    statuses: Collection[RecordStatus] | None = REVENUE_STATUSES,
) -> CampaignReturn:
    """Revenue of records labelled with *campaign* (substring, case-insensitive)."""
    needle = campaign.lower()
    matched = [
        r
        for r in records
        if r.campaign
        and needle in r.campaign.lower()
        and (statuses is None or r.status in statuses)
    ]
    return CampaignReturn(
        campaign=campaign,
        revenue=sum((r.value for r in matched), _ZERO),
        conversions=len(matched),
        spend=spend[campaign] if campaign in spend else spend_for(spend, campaign),
    )


def campaign_returns(
    records: Iterable[ConsultationRecord],
    spend: dict[str, Decimal],
    *,
    start: date | None = None,
    end: date | None = None,
    statuses: Collection[RecordStatus] | None = REVENUE_STATUSES,
) -> list[CampaignReturn]:
    """One row per known campaign, plus record labels no spend entry covers."""
    selected = filter_records(records, start=start, end=end, statuses=statuses)
    names = list(spend)
    known = [n.lower() for n in names]
    for record in selected:
        if not record.campaign:
            continue
        label = record.campaign.lower()
        if any(k in label or label in k for k in known):
            continue
        names.append(record.campaign)
        known.append(label)
    rows = [return_for_campaign(selected, spend, name, statuses=None) for name in names]
    return sorted(rows, key=lambda r: (-r.revenue, r.campaign.lower()))
