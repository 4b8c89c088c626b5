"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from frontdesk.models.booking import BookingStatus, DocumentType, PaymentStatus
from frontdesk.services.identifiers import format_national_id, is_valid_national_id

MOBILE_REGEX = r"^[0-9]{10}$"

SortField = Literal["check_in", "guest_name", "rent", "room", "status"]


def normalize_national_id(value: str) -> str:
    """Accept ``NNNN-NNNN-NNNN`` or 12 bare digits; reject anything else."""
    value = format_national_id(value.strip())
    if not is_valid_national_id(value):
        raise ValueError("National ID must be 12 digits in the form NNNN-NNNN-NNNN")
    return value


def to_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC; convert aware inputs."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


NationalId = Annotated[str, AfterValidator(normalize_national_id)]
UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


# ---------------------------------------------------------------------------
# Nested schemas
# ---------------------------------------------------------------------------


class DocumentIn(BaseModel):
    """Reference to an identity document already stored in the asset store."""

    url: str = Field(..., min_length=1, max_length=512)
    public_id: str | None = Field(None, max_length=255)
    doc_type: DocumentType = DocumentType.OTHER


class DocumentResponse(BaseModel):
    id: uuid.UUID
    url: str
    public_id: str | None = None
    doc_type: str

    model_config = ConfigDict(from_attributes=True)


class AdditionalGuestIn(BaseModel):
    """A companion on the booking, with their own identity subset and documents."""

    name: str = Field(..., min_length=1, max_length=100)
    mobile: str | None = Field(None, pattern=MOBILE_REGEX)
    national_id: NationalId | None = None
    documents: list[DocumentIn] = Field(default_factory=list)


class AdditionalGuestResponse(BaseModel):
    id: uuid.UUID
    name: str
    mobile: str | None = None
    national_id: str | None = None
    documents: list[DocumentResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Schema for creating a new booking.

    ``entry_no`` may be supplied by the desk (e.g. from a paper register);
    otherwise one is generated. Omitting ``check_out`` records a guest who is
    still in-house.
    """

    guest_name: str = Field(..., min_length=1, max_length=100)
    guest_mobile: str = Field(..., pattern=MOBILE_REGEX)
    guest_national_id: NationalId | None = None
    entry_no: str | None = Field(None, max_length=50)
    room: str = Field("TBD", min_length=1, max_length=10)
    rent: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    check_in: UtcDatetime
    check_out: UtcDatetime | None = None
    status: BookingStatus = BookingStatus.CHECKED_IN
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: str | None = Field(None, max_length=500)
    documents: list[DocumentIn] = Field(default_factory=list)
    additional_guests: list[AdditionalGuestIn] = Field(default_factory=list)

    @field_validator("entry_no")
    @classmethod
    def strip_entry_no(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None


class BookingUpdate(BaseModel):
    """Schema for partially updating a booking. All fields optional.

    Sending ``check_out: null`` explicitly marks the guest as in-house again.
    ``additional_guests``, when sent, replaces the whole list.
    """

    guest_name: str | None = Field(None, min_length=1, max_length=100)
    guest_mobile: str | None = Field(None, pattern=MOBILE_REGEX)
    guest_national_id: NationalId | None = None
    room: str | None = Field(None, min_length=1, max_length=10)
    rent: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    check_in: UtcDatetime | None = None
    check_out: UtcDatetime | None = None
    status: BookingStatus | None = None
    payment_status: PaymentStatus | None = None
    notes: str | None = Field(None, max_length=500)
    additional_guests: list[AdditionalGuestIn] | None = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingListQuery(BaseModel):
    """Filters, paging and ordering for the booking list."""

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: str | None = None
    status: BookingStatus | None = None
    sort_by: SortField = "check_in"
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    """Standard booking response returned from CRUD operations."""

    id: uuid.UUID
    serial_no: str
    entry_no: str
    guest_id: uuid.UUID | None = None
    guest_name: str
    guest_mobile: str
    guest_national_id: str | None = None
    room: str
    rent: Decimal
    check_in: datetime
    check_out: datetime | None = None
    status: str
    payment_status: str
    total_amount: Decimal
    group_size: int
    notes: str | None = None
    created_by: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime
    additional_guests: list[AdditionalGuestResponse] = []
    documents: list[DocumentResponse] = []

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    """One page of bookings plus paging metadata."""

    items: list[BookingResponse]
    page: int
    limit: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool


class AssetCleanupResponse(BaseModel):
    requested: int
    deleted: int
    failed: list[str]
    skipped: bool


class BookingDeleteResponse(BaseModel):
    """Deletion succeeded; asset cleanup problems are reported, not raised."""

    message: str
    guest_removed: bool
    asset_cleanup: AssetCleanupResponse
    warnings: list[str] = []


class GuestBookingItem(BaseModel):
    """A booking as seen from one person's lookup, with their role on it."""

    id: uuid.UUID
    serial_no: str
    entry_no: str
    room: str
    rent: Decimal
    check_in: datetime
    check_out: datetime | None = None
    status: str
    total_amount: Decimal
    role: Literal["main", "guest"]


class GuestLookupResponse(BaseModel):
    """A person found in booking records, as main guest or as companion."""

    name: str
    mobile: str | None = None
    national_id: str | None = None
    is_additional_guest: bool
    total_bookings: int
    total_spent: Decimal
    last_visit: datetime
    documents: list[DocumentResponse] = []
    bookings: list[GuestBookingItem]
