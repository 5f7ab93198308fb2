"""Practitioner and consultation-type catalogs.

Catalogs are plain data loaded once at startup, either from a JSON file
(``CARTODASH_CATALOG_PATH``) or from the built-in defaults below. Core logic
only ever looks entries up by id.

JSON layout::

    {
      "practitioners": [{"id": "1", "name": "...", "commission_multiplier": 1.0}],
      "consultation_types": [{"id": "1", "name": "...", "base_price": "10", "duration_minutes": 10}]
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from cartodash.errors import CatalogError

__all__ = [
    "Catalog",
    "ConsultationType",
    "Practitioner",
    "DEFAULT_CATALOG",
    "load_catalog",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Practitioner:
    id: str
    name: str
    commission_multiplier: Decimal  # share of value kept by the business

    def business_share(self, value: Decimal) -> Decimal:
        return value * self.commission_multiplier

    def commission(self, value: Decimal) -> Decimal:
        """Amount paid out to the practitioner."""
        return value - self.business_share(value)


@dataclass(frozen=True)
class ConsultationType:
    id: str
    name: str
    base_price: Decimal
    duration_minutes: int


class Catalog:
    """Immutable lookup tables for practitioners and consultation types."""

    def __init__(
        self,
        practitioners: list[Practitioner],
        consultation_types: list[ConsultationType],
    ) -> None:
        if not practitioners:
            raise CatalogError("Catalog needs at least one practitioner")
        if not consultation_types:
            raise CatalogError("Catalog needs at least one consultation type")
        self._practitioners = {p.id: p for p in practitioners}
        self._types = {t.id: t for t in consultation_types}
        if len(self._practitioners) != len(practitioners):
            raise CatalogError("Duplicate practitioner id in catalog")
        if len(self._types) != len(consultation_types):
            raise CatalogError("Duplicate consultation type id in catalog")

    @property
    def practitioners(self) -> list[Practitioner]:
        return list(self._practitioners.values())

    @property
    def consultation_types(self) -> list[ConsultationType]:
        return list(self._types.values())

    def practitioner(self, practitioner_id: str) -> Practitioner:
        try:
            return self._practitioners[practitioner_id]
        except KeyError:
            raise CatalogError(f"Unknown practitioner: {practitioner_id}") from None

    def consultation_type(self, type_id: str) -> ConsultationType:
        try:
            return self._types[type_id]
        except KeyError:
            raise CatalogError(f"Unknown consultation type: {type_id}") from None

    def find_consultation_type(self, type_id: str) -> ConsultationType | None:
        return self._types.get(type_id)

    def find_practitioner(self, practitioner_id: str) -> Practitioner | None:
        return self._practitioners.get(practitioner_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "practitioners": [
                {
                    "id": p.id,
                    "name": p.name,
                    "commission_multiplier": str(p.commission_multiplier),
                }
                for p in self.practitioners
            ],
            "consultation_types": [
                {
                    "id": t.id,
                    "name": t.name,
                    "base_price": str(t.base_price),
                    "duration_minutes": t.duration_minutes,
                }
                for t in self.consultation_types
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Catalog:
        try:
            practitioners = [
                Practitioner(
                    id=str(p["id"]),
                    name=str(p["name"]),
                    commission_multiplier=Decimal(str(p.get("commission_multiplier", "1"))),
                )
                for p in data.get("practitioners", [])
            ]
            types = [
                ConsultationType(
                    id=str(t["id"]),
                    name=str(t["name"]),
                    base_price=Decimal(str(t["base_price"])),
                    duration_minutes=int(t["duration_minutes"]),
                )
                for t in data.get("consultation_types", [])
            ]
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise CatalogError(f"Malformed catalog: {e}") from e
        return cls(practitioners, types)


DEFAULT_CATALOG = Catalog(
    practitioners=[
        Practitioner("1", "Vanessa Barreto", Decimal("1.0")),
        Practitioner("2", "Alana Cerqueira", Decimal("0.5")),
    ],
    consultation_types=[
        ConsultationType("1", "01 Pergunta Objetiva", Decimal("10"), 10),
        ConsultationType("2", "03 Perguntas Objetivas", Decimal("25"), 15),
        ConsultationType("3", "Mandala Amorosa", Decimal("30"), 15),
        ConsultationType("4", "Espiada no Ex", Decimal("40"), 20),
        ConsultationType("5", "Jogo Completo - 30 Min", Decimal("50"), 30),
        ConsultationType("6", "Insisto ou desisto?", Decimal("35"), 15),
    ],
)


def load_catalog(path: str = "") -> Catalog:
    """Load the catalog from *path*, or return the defaults when empty."""
    if not path:
        return DEFAULT_CATALOG
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read catalog {path}: {e}") from e
    catalog = Catalog.from_dict(data)
    logger.info(
        "Catalog loaded from %s: %d practitioners, %d consultation types",
        path,
        len(catalog.practitioners),
        len(catalog.consultation_types),
    )
    return catalog
