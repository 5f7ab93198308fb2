"""Operator identity and role checks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from cartodash.errors import AuthorizationError

__all__ = ["Operator", "Role", "require_admin", "require_practitioner_access"]


class Role(StrEnum):
    ADMIN = "admin"
    PRACTITIONER = "practitioner"


@dataclass(frozen=True)
class Operator:
    """Who is driving the dashboard, as supplied by the identity provider."""

    operator_id: str
    role: Role
    practitioner_id: str | None = None  # set for practitioner accounts

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_act_for(self, practitioner_id: str) -> bool:
        return self.is_admin or self.practitioner_id == practitioner_id


def require_admin(operator: Operator | None, action: str) -> None:
    if operator is None or not operator.is_admin:
        raise AuthorizationError(f"Only administrators may {action}")


def require_practitioner_access(operator: Operator | None, practitioner_id: str) -> None:
    """No operator means an internal caller; otherwise the queue must be theirs."""
    if operator is not None and not operator.can_act_for(practitioner_id):
        raise AuthorizationError(f"Operator {operator.operator_id} cannot manage this queue")
