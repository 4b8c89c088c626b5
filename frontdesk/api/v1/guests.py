"""Guests API router: identity records with their lifetime totals."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.deps import get_current_active_user, get_db
from frontdesk.models.guest import Guest
from frontdesk.models.user import User
from frontdesk.schemas.guest import (
    GuestDetailResponse,
    GuestDocumentUpdate,
    GuestHistoryResponse,
    GuestListResponse,
    GuestResponse,
    GuestUpdate,
)
from frontdesk.services import guests as guest_service
from frontdesk.services import assets, ledger, reporting

router = APIRouter(prefix="/api/v1/guests", tags=["guests"])


@router.get(
    "",
    response_model=GuestListResponse,
    summary="List guests with optional search",
)
async def list_guests(
    search: str | None = Query(None, description="Search by name, mobile or national ID"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    return await guest_service.list_guests(db, search=search, skip=skip, limit=limit)


@router.get(
    "/search",
    response_model=GuestHistoryResponse,
    summary="Find a guest by mobile or national ID",
)
async def search_guest(
    mobile: str | None = Query(None, description="10-digit mobile number"),
    national_id: str | None = Query(None, description="National ID, with or without dashes"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Return the matching guest with lifetime totals and recent bookings."""
    return await guest_service.find_guest(db, mobile=mobile, national_id=national_id)


@router.get(
    "/{guest_id}",
    response_model=GuestDetailResponse,
    summary="Get a guest by ID",
)
async def get_guest(
    guest_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> GuestDetailResponse:
    guest = await guest_service.get_guest(db, guest_id)
    totals = await ledger.full_totals(db, guest_id)
    return GuestDetailResponse(
        **GuestResponse.model_validate(guest).model_dump(),
        totals=totals.as_dict(),
    )


@router.get(
    "/{guest_id}/history",
    response_model=GuestHistoryResponse,
    summary="Lifetime history of a guest",
)
async def get_guest_history(
    guest_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Live plus archived totals, bookings inside the retention window and the
    historic summary. Works for guests known only from archived data."""
    return await reporting.guest_history(db, guest_id)


@router.put(
    "/{guest_id}",
    response_model=GuestResponse,
    summary="Update a guest",
)
async def update_guest(
    guest_id: uuid.UUID,
    body: GuestUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Guest:
    """Partially update a guest. Mobile and national ID must stay unique."""
    return await guest_service.update_guest(db, guest_id, body)


@router.put(
    "/{guest_id}/document",
    response_model=GuestResponse,
    summary="Attach an identity document to a guest",
)
async def set_guest_document(
    guest_id: uuid.UUID,
    body: GuestDocumentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Guest:
    guest, stale = await guest_service.set_identity_document(db, guest_id, body)
    await assets.delete_after_commit(db, stale)
    return guest
