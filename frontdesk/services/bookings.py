"""Booking lifecycle: create, update, status transition, delete, search.

Every mutation keeps the owning guest's live totals in step through
``frontdesk.services.ledger``; derived fields (``total_amount``,
``group_size``) are recomputed here whenever their inputs change.
"""

from __future__ import annotations

import enum
import logging
import math
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from frontdesk.config import settings
from frontdesk.database import utcnow
from frontdesk.errors import AggregateConsistencyAnomaly, DuplicateEntry, NotFound, ValidationFailed
from frontdesk.models.booking import AdditionalGuest, Booking, BookingDocument, BookingStatus
from frontdesk.models.guest import Guest
from frontdesk.schemas.booking import (
    AdditionalGuestIn,
    BookingCreate,
    BookingListQuery,
    BookingUpdate,
    DocumentIn,
)
from frontdesk.services import ledger
from frontdesk.services.assets import AssetCleanupResult
from frontdesk.services.identifiers import format_national_id, generate_entry_no, generate_serial_no
from frontdesk.services.pricing import compute_total_amount

logger = logging.getLogger(__name__)

# Attempts at drawing a fresh generated serial/entry number before giving up.
_MAX_NUMBER_ATTEMPTS = 5

# Relevance weights for free-text search of three characters or more.
_SEARCH_WEIGHTS = (
    (Booking.guest_name, 10),
    (Booking.guest_mobile, 8),
    (Booking.serial_no, 6),
    (Booking.room, 4),
)
MIN_RELEVANCE_QUERY = 3

_SORTS = {
    "check_in": (Booking.check_in.desc(),),
    "guest_name": (Booking.guest_name.asc(),),
    "rent": (Booking.rent.desc(), Booking.check_in.desc()),
    "room": (Booking.room.asc(), Booking.check_in.desc()),
    "status": (Booking.status.asc(), Booking.check_in.desc()),
}

# Fields that may not be cleared by sending an explicit null on update.
_NON_NULLABLE_UPDATES = {
    "guest_name",
    "guest_mobile",
    "room",
    "rent",
    "check_in",
    "status",
    "payment_status",
    "additional_guests",
}

_IDENTITY_FIELDS = {
    "guest_name": "name",
    "guest_mobile": "mobile",
    "guest_national_id": "national_id",
}


@dataclass
class DeleteOutcome:
    """What happened besides the booking row disappearing."""

    guest_removed: bool
    document_ids: list[str] = field(default_factory=list)
    anomalies: list[AggregateConsistencyAnomaly] = field(default_factory=list)
    # Filled in by the caller once the deletion is committed
    asset_cleanup: AssetCleanupResult = field(default_factory=AssetCleanupResult)

    @property
    def warnings(self) -> list[str]:
        messages = [str(anomaly) for anomaly in self.anomalies]
        if self.asset_cleanup.failure is not None:
            messages.append(str(self.asset_cleanup.failure))
        return messages


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_stay(check_in, check_out) -> None:
    if check_out is not None and check_out < check_in:
        raise ValidationFailed("check_out must not be before check_in", field="check_out")


def _build_documents(items: list[DocumentIn]) -> list[BookingDocument]:
    return [
        BookingDocument(url=item.url, public_id=item.public_id, doc_type=item.doc_type.value)
        for item in items
    ]


def _build_additional_guests(items: list[AdditionalGuestIn]) -> list[AdditionalGuest]:
    return [
        AdditionalGuest(
            position=position,
            name=item.name,
            mobile=item.mobile,
            national_id=item.national_id,
            documents=_build_documents(item.documents),
        )
        for position, item in enumerate(items)
    ]


async def _number_taken(db: AsyncSession, column, value: str) -> bool:
    result = await db.execute(select(func.count()).select_from(Booking).where(column == value))
    return result.scalar_one() > 0


async def _allocate_number(db: AsyncSession, column, generator) -> str:
    for _ in range(_MAX_NUMBER_ATTEMPTS):
        candidate = generator()
        if not await _number_taken(db, column, candidate):
            return candidate
    raise DuplicateEntry(f"Could not allocate a unique {column.key}; retry the request", field=column.key)


async def _resolve_guest(
    db: AsyncSession,
    name: str,
    mobile: str,
    national_id: str | None,
) -> Guest:
    """Find the guest owning ``mobile`` / ``national_id`` or register a new one."""
    conditions = [Guest.mobile == mobile]
    if national_id:
        conditions.append(Guest.national_id == national_id)
    result = await db.execute(select(Guest).where(or_(*conditions)))
    matches = list(result.scalars().all())

    if len(matches) > 1:
        raise DuplicateEntry(
            "Mobile number and national ID belong to different guests",
            field="guest_national_id",
        )

    if matches:
        guest = matches[0]
        if national_id and guest.national_id is None:
            guest.national_id = national_id
        elif national_id and guest.national_id != national_id:
            raise DuplicateEntry(
                "Mobile number is registered to a guest with a different national ID",
                field="guest_mobile",
            )
        return guest

    guest = Guest(
        name=name,
        mobile=mobile,
        national_id=national_id,
        total_visits=0,
        total_revenue=Decimal("0"),
    )
    db.add(guest)
    await db.flush()
    logger.info("Registered new guest %s (mobile %s)", guest.id, mobile)
    return guest


async def _check_identity_free(
    db: AsyncSession,
    guest_id: uuid.UUID,
    mobile: str | None,
    national_id: str | None,
) -> None:
    """Raise if another guest already holds the new mobile or national ID."""
    if mobile is not None:
        result = await db.execute(select(Guest.id).where(Guest.mobile == mobile, Guest.id != guest_id))
        if result.first() is not None:
            raise DuplicateEntry("Another guest already uses this mobile number", field="guest_mobile")
    if national_id is not None:
        result = await db.execute(
            select(Guest.id).where(Guest.national_id == national_id, Guest.id != guest_id)
        )
        if result.first() is not None:
            raise DuplicateEntry("Another guest already uses this national ID", field="guest_national_id")


async def _flush(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateEntry("A record with these unique values already exists") from exc


def _relevance_score(term: str) -> ColumnElement:
    """Weighted count of searchable fields containing each word of ``term``."""
    parts = [
        case((column.icontains(word, autoescape=True), weight), else_=0)
        for word in term.split()
        for column, weight in _SEARCH_WEIGHTS
    ]
    score = parts[0]
    for part in parts[1:]:
        score = score + part
    return score


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def get_booking(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    """Return a booking or raise :class:`NotFound`."""
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking not found")
    return booking


async def create_booking(
    db: AsyncSession,
    data: BookingCreate,
    created_by: uuid.UUID | None = None,
) -> Booking:
    """Persist a new booking and count the visit against its guest.

    Raises:
        ValidationFailed: check_out precedes check_in.
        DuplicateEntry: the supplied entry number is taken, or the guest's
            mobile and national ID point at different guests.
    """
    _validate_stay(data.check_in, data.check_out)

    if data.entry_no is not None:
        if await _number_taken(db, Booking.entry_no, data.entry_no):
            raise DuplicateEntry(
                "Entry number already exists. Please use a different entry number.",
                field="entry_no",
            )
        entry_no = data.entry_no
    else:
        entry_no = await _allocate_number(db, Booking.entry_no, generate_entry_no)
    serial_no = await _allocate_number(db, Booking.serial_no, generate_serial_no)

    guest = await _resolve_guest(db, data.guest_name, data.guest_mobile, data.guest_national_id)

    booking = Booking(
        serial_no=serial_no,
        entry_no=entry_no,
        guest_id=guest.id,
        guest_name=data.guest_name,
        guest_mobile=data.guest_mobile,
        guest_national_id=data.guest_national_id or guest.national_id,
        room=data.room,
        rent=data.rent,
        check_in=data.check_in,
        check_out=data.check_out,
        status=data.status.value,
        payment_status=data.payment_status.value,
        total_amount=compute_total_amount(data.check_in, data.check_out, data.rent),
        group_size=1 + len(data.additional_guests),
        notes=data.notes,
        created_by=created_by,
        documents=_build_documents(data.documents),
        additional_guests=_build_additional_guests(data.additional_guests),
    )
    db.add(booking)
    await _flush(db)

    await ledger.record_visit(db, guest.id, data.rent)

    await db.refresh(booking)
    logger.info("Created booking %s (serial %s) for guest %s", booking.id, serial_no, guest.id)
    return booking


async def update_booking(
    db: AsyncSession, booking_id: uuid.UUID, changes: BookingUpdate
) -> tuple[Booking, list[str]]:
    """Apply a partial update and re-derive amounts and group size.

    Guest identity fields are written to the booking and to the guest record.
    A rent change shifts the guest's live revenue by the difference.

    Returns the booking and the asset ids of companion documents that were
    dropped by replacing ``additional_guests``.
    """
    booking = await get_booking(db, booking_id)
    update_data = changes.model_dump(exclude_unset=True)
    for name in _NON_NULLABLE_UPDATES:
        if name in update_data and update_data[name] is None:
            del update_data[name]

    check_in = update_data.get("check_in", booking.check_in)
    check_out = update_data.get("check_out", booking.check_out)
    _validate_stay(check_in, check_out)

    identity_changes = {
        guest_field: update_data[booking_field]
        for booking_field, guest_field in _IDENTITY_FIELDS.items()
        if booking_field in update_data and update_data[booking_field] != getattr(booking, booking_field)
    }
    if booking.guest_id is not None and identity_changes:
        await _check_identity_free(
            db,
            booking.guest_id,
            identity_changes.get("mobile"),
            identity_changes.get("national_id"),
        )
        guest = await ledger.get_guest(db, booking.guest_id)
        if guest is not None:
            for guest_field, value in identity_changes.items():
                setattr(guest, guest_field, value)
            logger.info("Propagated identity change %s to guest %s", sorted(identity_changes), guest.id)

    old_rent = Decimal(booking.rent)
    released: list[str] = []
    if "additional_guests" in update_data:
        previous = {
            doc.public_id for extra in booking.additional_guests for doc in extra.documents if doc.public_id
        }
        booking.additional_guests = _build_additional_guests(changes.additional_guests or [])
        kept = {doc.public_id for extra in booking.additional_guests for doc in extra.documents}
        released = sorted(previous - kept)
        booking.group_size = 1 + len(booking.additional_guests)
        del update_data["additional_guests"]

    for name, value in update_data.items():
        if isinstance(value, enum.Enum):
            value = value.value
        setattr(booking, name, value)

    booking.total_amount = compute_total_amount(booking.check_in, booking.check_out, booking.rent)
    await _flush(db)

    new_rent = Decimal(booking.rent)
    if booking.guest_id is not None and new_rent != old_rent:
        await ledger.adjust_revenue(db, booking.guest_id, new_rent - old_rent)

    await db.refresh(booking)
    return booking, released


async def transition_status(db: AsyncSession, booking_id: uuid.UUID, new_status: BookingStatus) -> Booking:
    """Move a booking to any status in the enum.

    Checking out a guest without a recorded check-out time stamps the
    current time, provided it does not precede check-in.
    """
    booking = await get_booking(db, booking_id)
    previous = booking.status
    booking.status = new_status.value

    if new_status is BookingStatus.CHECKED_OUT and booking.check_out is None:
        now = utcnow()
        if now >= booking.check_in:
            booking.check_out = now
            booking.total_amount = compute_total_amount(booking.check_in, now, booking.rent)

    await _flush(db)
    await db.refresh(booking)
    logger.info("Booking %s status %s -> %s", booking.id, previous, booking.status)
    return booking


async def delete_booking(db: AsyncSession, booking_id: uuid.UUID) -> DeleteOutcome:
    """Delete a booking and reverse its ledger contribution.

    The asset ids of its documents are returned on the outcome; remove them
    with :func:`frontdesk.services.assets.delete_after_commit`.
    """
    booking = await get_booking(db, booking_id)
    public_ids = booking.document_public_ids()
    guest_id = booking.guest_id
    rent = Decimal(booking.rent)

    anomalies: list[AggregateConsistencyAnomaly] = []
    if guest_id is not None:
        anomaly = await ledger.reverse_visit(db, guest_id, rent)
        if anomaly is not None:
            anomalies.append(anomaly)

    await db.delete(booking)
    await db.flush()

    guest_removed = False
    if guest_id is not None:
        guest_removed = await ledger.remove_if_exhausted(db, guest_id)

    logger.info("Deleted booking %s (%d document asset(s) to release)", booking_id, len(public_ids))
    return DeleteOutcome(guest_removed=guest_removed, document_ids=public_ids, anomalies=anomalies)


async def list_bookings(db: AsyncSession, query: BookingListQuery) -> dict:
    """Return one page of bookings matching the filters, with paging metadata.

    Searches of three characters or more rank matches by weighted relevance
    over guest name, mobile, serial number and room; shorter searches match
    the start of the mobile number or serial number.
    """
    limit = min(query.limit, settings.max_page_size)
    filters: list[ColumnElement] = []

    if query.status is not None:
        filters.append(Booking.status == query.status.value)
    if query.start_date is not None:
        filters.append(Booking.check_in >= query.start_date)
    if query.end_date is not None:
        filters.append(Booking.check_in <= query.end_date)

    order_by = list(_SORTS[query.sort_by])
    term = (query.search or "").strip()
    if len(term) >= MIN_RELEVANCE_QUERY:
        score = _relevance_score(term)
        filters.append(score > 0)
        order_by.insert(0, score.desc())
    elif term:
        filters.append(
            or_(
                Booking.guest_mobile.istartswith(term, autoescape=True),
                Booking.serial_no.istartswith(term, autoescape=True),
            )
        )
    order_by.append(Booking.id)

    count_result = await db.execute(select(func.count()).select_from(Booking).where(*filters))
    total_count = count_result.scalar_one()

    result = await db.execute(
        select(Booking)
        .where(*filters)
        .order_by(*order_by)
        .offset((query.page - 1) * limit)
        .limit(limit)
    )
    items = list(result.scalars().all())

    total_pages = math.ceil(total_count / limit) if total_count else 0
    return {
        "items": items,
        "page": query.page,
        "limit": limit,
        "total_pages": total_pages,
        "total_count": total_count,
        "has_next_page": query.page < total_pages,
        "has_prev_page": query.page > 1,
    }


async def lookup_guest_bookings(
    db: AsyncSession,
    mobile: str | None = None,
    national_id: str | None = None,
) -> dict:
    """Find a person in booking records, first as main guest, then as companion.

    Raises:
        ValidationFailed: neither a mobile number nor a national ID was given.
        NotFound: no booking mentions the person.
    """
    if not mobile and not national_id:
        raise ValidationFailed("Mobile number or national ID is required", field="mobile")
    if national_id:
        national_id = format_national_id(national_id)

    main_conditions = []
    if mobile:
        main_conditions.append(Booking.guest_mobile == mobile)
    if national_id:
        main_conditions.append(Booking.guest_national_id == national_id)

    result = await db.execute(
        select(Booking).where(or_(*main_conditions)).order_by(Booking.created_at.desc(), Booking.id)
    )
    bookings = list(result.scalars().all())

    if bookings:
        latest = bookings[0]
        return {
            "name": latest.guest_name,
            "mobile": latest.guest_mobile,
            "national_id": latest.guest_national_id,
            "is_additional_guest": False,
            "total_bookings": len(bookings),
            "total_spent": sum((Decimal(b.rent) for b in bookings), Decimal("0")),
            "last_visit": latest.check_in,
            "documents": list(latest.documents),
            "bookings": [_lookup_item(b, "main") for b in bookings],
        }

    guest_conditions = []
    if mobile:
        guest_conditions.append(AdditionalGuest.mobile == mobile)
    if national_id:
        guest_conditions.append(AdditionalGuest.national_id == national_id)

    result = await db.execute(
        select(Booking)
        .where(Booking.id.in_(select(AdditionalGuest.booking_id).where(or_(*guest_conditions))))
        .order_by(Booking.created_at.desc(), Booking.id)
    )
    bookings = list(result.scalars().all())
    if not bookings:
        raise NotFound("Guest not found")

    latest = bookings[0]
    person = next(
        (
            extra
            for extra in latest.additional_guests
            if (mobile and extra.mobile == mobile) or (national_id and extra.national_id == national_id)
        ),
        None,
    )
    return {
        "name": person.name if person else latest.guest_name,
        "mobile": person.mobile if person else mobile,
        "national_id": person.national_id if person else national_id,
        "is_additional_guest": True,
        "total_bookings": len(bookings),
        # Companions do not pay for the stay.
        "total_spent": Decimal("0"),
        "last_visit": latest.check_in,
        "documents": list(person.documents) if person else [],
        "bookings": [_lookup_item(b, "guest") for b in bookings],
    }


def _lookup_item(booking: Booking, role: str) -> dict:
    return {
        "id": booking.id,
        "serial_no": booking.serial_no,
        "entry_no": booking.entry_no,
        "room": booking.room,
        "rent": booking.rent,
        "check_in": booking.check_in,
        "check_out": booking.check_out,
        "status": booking.status,
        "total_amount": booking.total_amount,
        "role": role,
    }
