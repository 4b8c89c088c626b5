"""Guest identity reads and edits outside the booking flow."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.errors import DuplicateEntry, NotFound, ValidationFailed
from frontdesk.models.guest import Guest
from frontdesk.schemas.guest import GuestDocumentUpdate, GuestUpdate
from frontdesk.services import ledger, reporting
from frontdesk.services.identifiers import format_national_id

logger = logging.getLogger(__name__)


async def get_guest(db: AsyncSession, guest_id: uuid.UUID) -> Guest:
    guest = await ledger.get_guest(db, guest_id)
    if guest is None:
        raise NotFound("Guest not found")
    return guest


async def list_guests(
    db: AsyncSession,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """Guests matching ``search`` on name, mobile or national ID, newest first."""
    filters = []
    if search:
        filters.append(
            or_(
                Guest.name.icontains(search, autoescape=True),
                Guest.mobile.icontains(search, autoescape=True),
                Guest.national_id.icontains(search, autoescape=True),
            )
        )

    total_result = await db.execute(select(func.count()).select_from(Guest).where(*filters))
    result = await db.execute(
        select(Guest).where(*filters).order_by(Guest.created_at.desc(), Guest.id).offset(skip).limit(limit)
    )
    return {"items": list(result.scalars().all()), "total": total_result.scalar_one()}


async def find_guest(db: AsyncSession, mobile: str | None = None, national_id: str | None = None) -> dict:
    """Look a guest up by mobile or national ID and return their history.

    Raises:
        ValidationFailed: Neither key was given.
        NotFound: No live guest matches.
    """
    if not mobile and not national_id:
        raise ValidationFailed("Mobile number or national ID is required", field="mobile")
    conditions = []
    if mobile:
        conditions.append(Guest.mobile == mobile)
    if national_id:
        conditions.append(Guest.national_id == format_national_id(national_id))

    result = await db.execute(select(Guest.id).where(or_(*conditions)).limit(1))
    guest_id = result.scalar_one_or_none()
    if guest_id is None:
        raise NotFound("Guest not found")
    return await reporting.guest_history(db, guest_id)


async def update_guest(db: AsyncSession, guest_id: uuid.UUID, changes: GuestUpdate) -> Guest:
    """Edit a guest's identity. Mobile and national ID stay unique across guests.

    Bookings keep the identity they were made under.
    """
    guest = await get_guest(db, guest_id)
    update_data = {key: value for key, value in changes.model_dump(exclude_unset=True).items() if value is not None}

    if "mobile" in update_data and update_data["mobile"] != guest.mobile:
        taken = await db.execute(select(Guest.id).where(Guest.mobile == update_data["mobile"], Guest.id != guest.id))
        if taken.first() is not None:
            raise DuplicateEntry("Another guest already uses this mobile number", field="mobile")
    if "national_id" in update_data and update_data["national_id"] != guest.national_id:
        taken = await db.execute(
            select(Guest.id).where(Guest.national_id == update_data["national_id"], Guest.id != guest.id)
        )
        if taken.first() is not None:
            raise DuplicateEntry("Another guest already uses this national ID", field="national_id")

    for field_name, value in update_data.items():
        setattr(guest, field_name, value)

    await db.flush()
    await db.refresh(guest)
    return guest


async def set_identity_document(
    db: AsyncSession,
    guest_id: uuid.UUID,
    document: GuestDocumentUpdate,
) -> tuple[Guest, list[str]]:
    """Point the guest at a newly uploaded identity document.

    Returns the guest and the asset id of the replaced document, if any, for
    removal once the change is committed.
    """
    guest = await get_guest(db, guest_id)
    previous = guest.id_document_public_id

    guest.id_document_url = document.url
    guest.id_document_public_id = document.public_id
    await db.flush()
    await db.refresh(guest)

    stale = [previous] if previous and previous != document.public_id else []
    logger.info("Updated identity document for guest %s", guest.id)
    return guest, stale
