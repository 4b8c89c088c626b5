"""Bookings API router.

Any active staff account may run the booking lifecycle; the service layer
raises domain errors that the application-level handler turns into 404/409/422.
"""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.deps import get_current_active_user, get_db
from frontdesk.models.booking import Booking
from frontdesk.models.user import User
from frontdesk.schemas.booking import (
    BookingCreate,
    BookingDeleteResponse,
    BookingListQuery,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
    GuestLookupResponse,
)
from frontdesk.services import assets
from frontdesk.services import bookings as booking_service

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a booking",
)
async def create_booking(
    body: BookingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Create a booking, registering the guest on first visit."""
    return await booking_service.create_booking(db, body, created_by=current_user.id)


@router.get(
    "",
    response_model=BookingListResponse,
    summary="List and search bookings",
)
async def list_bookings(
    query: Annotated[BookingListQuery, Query()],
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Return a page of bookings.

    ``search`` of three characters or more is ranked by relevance across guest
    name, mobile, serial number and room; shorter input matches the start of
    the mobile or serial number.
    """
    return await booking_service.list_bookings(db, query)


@router.get(
    "/lookup",
    response_model=GuestLookupResponse,
    summary="Find a person's bookings by mobile or national ID",
)
async def lookup_guest_bookings(
    mobile: str | None = Query(None, description="10-digit mobile number"),
    national_id: str | None = Query(None, description="National ID, with or without dashes"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Look up a person as main guest first, then as an additional guest."""
    return await booking_service.lookup_guest_bookings(db, mobile=mobile, national_id=national_id)


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking by ID",
)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    return await booking_service.get_booking(db, booking_id)


@router.put(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Update a booking",
)
async def update_booking(
    booking_id: uuid.UUID,
    body: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    """Partially update a booking. Only explicitly provided fields are changed.

    Documents of companions removed by the update are deleted from the asset
    store after the change is committed.
    """
    booking, released = await booking_service.update_booking(db, booking_id, body)
    await assets.delete_after_commit(db, released)
    return booking


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Change booking status",
)
async def update_booking_status(
    booking_id: uuid.UUID,
    body: BookingStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Booking:
    return await booking_service.transition_status(db, booking_id, body.status)


@router.delete(
    "/{booking_id}",
    response_model=BookingDeleteResponse,
    summary="Delete a booking",
)
async def delete_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> BookingDeleteResponse:
    """Delete a booking and reverse its contribution to the guest's totals.

    Document-asset cleanup problems are listed under ``warnings``.
    """
    outcome = await booking_service.delete_booking(db, booking_id)
    outcome.asset_cleanup = await assets.delete_after_commit(db, outcome.document_ids)
    return BookingDeleteResponse(
        message="Booking deleted successfully",
        guest_removed=outcome.guest_removed,
        asset_cleanup=outcome.asset_cleanup.as_dict(),
        warnings=outcome.warnings,
    )
