"""Pydantic v2 request/response schemas for guest endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from frontdesk.schemas.booking import MOBILE_REGEX, BookingResponse, NationalId

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class GuestUpdate(BaseModel):
    """Schema for partially updating a guest. All fields optional."""

    name: str | None = Field(None, min_length=1, max_length=100)
    mobile: str | None = Field(None, pattern=MOBILE_REGEX)
    national_id: NationalId | None = None
    is_active: bool | None = None


class GuestDocumentUpdate(BaseModel):
    """Attach (or replace) the guest's identity-document reference."""

    url: str = Field(..., min_length=1, max_length=512)
    public_id: str | None = Field(None, max_length=255)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class GuestResponse(BaseModel):
    """Public guest information returned by the API."""

    id: uuid.UUID
    name: str
    mobile: str
    national_id: str | None = None
    id_document_url: str | None = None
    total_visits: int
    total_revenue: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GuestListResponse(BaseModel):
    """Paginated list of guests."""

    items: list[GuestResponse]
    total: int


class GuestTotals(BaseModel):
    """Lifetime totals: live counters plus archived history."""

    visits: int
    revenue: Decimal
    live_visits: int
    live_revenue: Decimal
    historic_visits: int
    historic_revenue: Decimal


class GuestSummaryResponse(BaseModel):
    """Archived totals kept for a guest after their old bookings were removed."""

    guest_id: uuid.UUID
    name: str
    mobile: str
    national_id: str | None = None
    total_historic_visits: int
    total_historic_revenue: Decimal
    first_visit: datetime | None = None
    last_archived_visit: datetime | None = None
    archived_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GuestDetailResponse(GuestResponse):
    totals: GuestTotals


class GuestHistoryResponse(BaseModel):
    """A guest's lifetime view: totals, recent bookings and archived summary.

    ``guest`` is absent when only the archived summary survives.
    """

    guest: GuestResponse | None = None
    totals: GuestTotals
    recent_bookings: list[BookingResponse]
    historic_summary: GuestSummaryResponse | None = None
