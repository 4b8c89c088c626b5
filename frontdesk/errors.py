"""Domain errors raised by the service layer.

``ValidationFailed``, ``DuplicateEntry`` and ``NotFound`` are raised before any
mutation and translated to HTTP responses by the handler registered in
``frontdesk.main``. ``AssetDeletionPartialFailure`` and
``AggregateConsistencyAnomaly`` are never raised to callers: they are logged
and attached to otherwise successful results.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from fastapi import status


class FrontDeskError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> str | dict:
        if self.field is None:
            return self.message
        return {"message": self.message, "field": self.field}


class ValidationFailed(FrontDeskError):
    """Malformed input: bad date ordering, out-of-range value, bad identity format."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DuplicateEntry(FrontDeskError):
    """Uniqueness violation on serial/entry number or guest identity fields."""

    status_code = status.HTTP_409_CONFLICT


class NotFound(FrontDeskError):
    """Referenced booking or guest does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class AssetDeletionPartialFailure(Exception):
    """Some document assets could not be removed from the asset store."""

    def __init__(self, failed_public_ids: list[str], deleted: int) -> None:
        super().__init__(
            f"{len(failed_public_ids)} document asset(s) could not be deleted: {', '.join(failed_public_ids)}"
        )
        self.failed_public_ids = failed_public_ids
        self.deleted = deleted


class AggregateConsistencyAnomaly(Exception):
    """A ledger update hit an impossible state and was floored at zero."""

    def __init__(
        self,
        guest_id: uuid.UUID | None,
        reason: str,
        *,
        visits: int | None = None,
        revenue: Decimal | None = None,
    ) -> None:
        super().__init__(f"guest {guest_id}: {reason}")
        self.guest_id = guest_id
        self.reason = reason
        self.visits = visits
        self.revenue = revenue

    def as_dict(self) -> dict:
        return {
            "guest_id": str(self.guest_id) if self.guest_id else None,
            "reason": self.reason,
        }
