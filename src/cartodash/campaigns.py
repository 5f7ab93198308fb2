"""Campaign ad-spend lookups — in-memory store for MVP."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Protocol

__all__ = [
    "CampaignSpendProviderProtocol",
    "InMemoryCampaignSpendProvider",
    "spend_for",
]


class CampaignSpendProviderProtocol(Protocol):
    """Minimal contract for advertising spend figures."""

    def spend_by_campaign(self) -> dict[str, Decimal]:
        """Return total spend keyed by campaign name."""
        ...


class InMemoryCampaignSpendProvider:
    """Spend figures pushed in by an operator or an importer."""

    def __init__(self, spend: dict[str, Decimal] | None = None) -> None:
        self._spend: dict[str, Decimal] = dict(spend or {})
        self.updated_at: str | None = None

    def spend_by_campaign(self) -> dict[str, Decimal]:
        return dict(self._spend)

    def replace(self, spend: dict[str, Decimal]) -> None:
        self._spend = dict(spend)
        self.updated_at = datetime.now(UTC).isoformat()


def spend_for(spend: dict[str, Decimal], campaign: str) -> Decimal:
    """Spend of the first campaign whose name contains *campaign*, case-insensitive.

    No match means no known spend: ``Decimal(0)``.
    """
    needle = campaign.lower()
    for name, amount in spend.items():
        if needle in name.lower():
            return amount
    return Decimal("0")
