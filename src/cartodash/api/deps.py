"""Request-scoped accessors for services wired on ``app.state``."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from fastapi import Header, Request

from cartodash.errors import AuthorizationError
from cartodash.identity import Operator, Role

if TYPE_CHECKING:
    from cartodash.campaigns import CampaignSpendProviderProtocol
    from cartodash.catalog import Catalog
    from cartodash.queue.lifecycle import QueueService
    from cartodash.settings import Settings
    from cartodash.store import RecordStore

__all__ = [
    "business_now",
    "business_today",
    "get_catalog",
    "get_operator",
    "get_queue",
    "get_settings",
    "get_spend_provider",
    "get_store",
]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


def get_store(request: Request) -> RecordStore:
    return request.app.state.store  # type: ignore[no-any-return]


def get_queue(request: Request) -> QueueService:
    return request.app.state.queue  # type: ignore[no-any-return]


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog  # type: ignore[no-any-return]


def get_spend_provider(request: Request) -> CampaignSpendProviderProtocol:
    return request.app.state.spend_provider  # type: ignore[no-any-return]


def business_now(request: Request) -> datetime:
    """Current wall-clock time in the business timezone."""
    settings = get_settings(request)
    return datetime.now(ZoneInfo(settings.business_timezone))


def business_today(request: Request) -> date:
    return business_now(request).date()


def get_operator(
    x_operator_id: str | None = Header(default=None),
    x_operator_role: str | None = Header(default=None),
    x_practitioner_id: str | None = Header(default=None),
) -> Operator | None:
    """Operator identity forwarded by the identity provider, if any."""
    if not x_operator_id and not x_operator_role:
        return None
    try:
        role = Role(x_operator_role or "")
    except ValueError:
        raise AuthorizationError(f"Unknown operator role: {x_operator_role!r}") from None
    return Operator(
        operator_id=x_operator_id or "anonymous",
        role=role,
        practitioner_id=x_practitioner_id,
    )
