"""Reporting endpoints: catalog, clients, finance, campaigns, dashboards, export.

``GET /reports/export.csv`` streams finished consultations as CSV.
"""

from __future__ import annotations

import datetime as dt
import io
import logging
from decimal import Decimal
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from starlette.responses import StreamingResponse

from cartodash.api.deps import (
    business_today,
    get_catalog,
    get_operator,
    get_settings,
    get_spend_provider,
    get_store,
)
from cartodash.campaigns import CampaignSpendProviderProtocol
from cartodash.catalog import Catalog
from cartodash.errors import ValidationError
from cartodash.identity import Operator, require_admin, require_practitioner_access
from cartodash.reports.clients import aggregate_clients
from cartodash.reports.dashboard import overview, practitioner_dashboard, queue_load
from cartodash.reports.export import export_finished, render_csv
from cartodash.reports.finance import campaign_returns, financial_report, profit_report
from cartodash.store import RecordStore

router = APIRouter()

__all__ = ["router"]

logger = logging.getLogger(__name__)


class SpendUpdate(BaseModel):
    """Full replacement of the advertising spend table."""

    spend: dict[str, Decimal] = Field(default_factory=dict)


def _check_range(start: dt.date | None, end: dt.date | None) -> None:
    if start is not None and end is not None and start > end:
        raise ValidationError("start must not be after end")


@router.get("/catalog", summary="Practitioners and consultation types", operation_id="get_catalog")
async def get_catalog_view(
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> dict[str, Any]:
    return catalog.to_dict()


@router.get("/clients", summary="Client ranking", operation_id="list_clients")
async def list_clients(
    store: Annotated[RecordStore, Depends(get_store)],
    scope: Literal["finished", "all"] = "finished",
    start: dt.date | None = Query(None),
    end: dt.date | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
) -> list[dict[str, Any]]:
    """Clients ranked by total spend.

    ``scope=finished`` counts completed consultations only; ``scope=all``
    counts every record regardless of status.
    """
    _check_range(start, end)
    kwargs: dict[str, Any] = {"start": start, "end": end}
    if scope == "all":
        kwargs["statuses"] = None
    clients = aggregate_clients(store.get_all(), **kwargs)
    return [c.to_dict() for c in clients[:limit]]


# ── Finance ─────────────────────────────────────────────


@router.get("/reports/financial", summary="Revenue report", operation_id="financial_report")
async def get_financial_report(
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
    start: dt.date | None = Query(None),
    end: dt.date | None = Query(None),
) -> dict[str, Any]:
    _check_range(start, end)
    return financial_report(store.get_all(), catalog, start=start, end=end).to_dict()


@router.get("/reports/profit", summary="Costs and profit", operation_id="profit_report")
async def get_profit_report(
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
    provider: Annotated[CampaignSpendProviderProtocol, Depends(get_spend_provider)],
    start: dt.date | None = Query(None),
    end: dt.date | None = Query(None),
) -> dict[str, Any]:
    _check_range(start, end)
    report = profit_report(
        store.get_all(), catalog, provider.spend_by_campaign(), start=start, end=end
    )
    return report.to_dict()


@router.get("/reports/campaigns", summary="Return on ad spend per campaign", operation_id="campaign_report")
async def get_campaign_report(
    store: Annotated[RecordStore, Depends(get_store)],
    provider: Annotated[CampaignSpendProviderProtocol, Depends(get_spend_provider)],
    start: dt.date | None = Query(None),
    end: dt.date | None = Query(None),
) -> dict[str, Any]:
    _check_range(start, end)
    rows = campaign_returns(store.get_all(), provider.spend_by_campaign(), start=start, end=end)
    return {
        "campaigns": [row.to_dict() for row in rows],
        "spend_updated_at": getattr(provider, "updated_at", None),
    }


@router.put("/campaigns/spend", summary="Replace campaign ad spend (admin)", operation_id="put_campaign_spend")
async def put_campaign_spend(
    body: SpendUpdate,
    provider: Annotated[CampaignSpendProviderProtocol, Depends(get_spend_provider)],
    operator: Annotated[Operator | None, Depends(get_operator)],
) -> dict[str, Any]:
    require_admin(operator, "update campaign spend")
    if any(amount < 0 for amount in body.spend.values()):
        raise ValidationError("spend cannot be negative")
    replace = getattr(provider, "replace", None)
    if replace is None:
        raise HTTPException(status_code=405, detail="Spend provider is read-only")
    replace(body.spend)
    logger.info("Campaign spend replaced (%d campaigns)", len(body.spend))
    return {"campaigns": len(body.spend), "updated_at": getattr(provider, "updated_at", None)}


@router.get("/reports/export.csv", summary="Download finished consultations", operation_id="export_csv")
async def export_csv(
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
    start: dt.date | None = Query(None),
    end: dt.date | None = Query(None),
    practitioner_id: str | None = Query(None),
) -> StreamingResponse:
    _check_range(start, end)
    rows = export_finished(
        store.get_all(), catalog, start=start, end=end, practitioner_id=practitioner_id
    )
    buf = io.StringIO(render_csv(rows))
    return StreamingResponse(
        buf,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=consultations.csv"},
    )


# ── Dashboards ──────────────────────────────────────────


@router.get("/dashboard/overview", summary="Live business overview", operation_id="dashboard_overview")
async def dashboard_overview(
    request: Request,
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
) -> dict[str, Any]:
    settings = get_settings(request)
    snapshot = store.get_all()
    today = business_today(request)
    metrics = overview(snapshot, catalog, today, ZoneInfo(settings.business_timezone))
    return {
        "date": today.isoformat(),
        **metrics.to_dict(),
        "queues": [load.to_dict() for load in queue_load(snapshot, catalog)],
    }


@router.get(
    "/dashboard/practitioners/{practitioner_id}",
    summary="Practitioner day sheet",
    operation_id="practitioner_dashboard",
)
async def get_practitioner_dashboard(
    practitioner_id: str,
    request: Request,
    store: Annotated[RecordStore, Depends(get_store)],
    catalog: Annotated[Catalog, Depends(get_catalog)],
    operator: Annotated[Operator | None, Depends(get_operator)],
    days: int = Query(30, ge=1, le=365),
) -> dict[str, Any]:
    require_practitioner_access(operator, practitioner_id)
    return practitioner_dashboard(
        store.get_all(), practitioner_id, catalog, business_today(request), days
    )
