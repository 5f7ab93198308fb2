"""Domain errors surfaced to operators.

Every error carries an ``error_code`` and an HTTP ``status_code`` so the API
layer can render the standard error envelope without a lookup table.
"""

from __future__ import annotations

__all__ = [
    "CartodashError",
    "ValidationError",
    "CatalogError",
    "QueueBoundaryError",
    "RecordNotFoundError",
    "InvalidTransitionError",
    "PractitionerBusyError",
    "StaleRecordError",
    "AuthorizationError",
    "PersistenceError",
]


class CartodashError(Exception):
    """Base class for handled, operator-visible failures."""

    error_code = "INTERNAL_ERROR"
    status_code = 500


class ValidationError(CartodashError):
    """Missing or invalid input; raised before any mutation."""

    error_code = "INVALID_REQUEST"
    status_code = 400


class CatalogError(ValidationError):
    """Unknown practitioner or consultation type, or a malformed catalog."""


class QueueBoundaryError(ValidationError):
    """Reorder target has no neighbour in the requested direction."""

    error_code = "INVALID_MOVE"


class RecordNotFoundError(CartodashError):
    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record {record_id} not found")
        self.record_id = record_id


class InvalidTransitionError(CartodashError):
    """Lifecycle operation attempted from a state that does not allow it."""

    error_code = "INVALID_TRANSITION"
    status_code = 409


class PractitionerBusyError(InvalidTransitionError):
    """Practitioner already has a consultation in progress."""


class StaleRecordError(CartodashError):
    """Write rejected because the stored version moved on."""

    error_code = "STALE_RECORD"
    status_code = 409

    def __init__(self, record_id: str, expected_version: int) -> None:
        super().__init__(
            f"Record {record_id} changed since version {expected_version}; reload and retry"
        )
        self.record_id = record_id
        self.expected_version = expected_version


class AuthorizationError(CartodashError):
    error_code = "FORBIDDEN"
    status_code = 403


class PersistenceError(CartodashError):
    """Remote write failed; the in-memory snapshot was left untouched."""

    error_code = "PERSISTENCE_UNAVAILABLE"
    status_code = 503
