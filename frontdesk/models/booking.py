"""Booking model: one guest stay, with its additional guests and documents."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from frontdesk.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class BookingStatus(str, enum.Enum):
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    PARTIAL = "partial"


class DocumentType(str, enum.Enum):
    NATIONAL_ID_FRONT = "national-id-front"
    NATIONAL_ID_BACK = "national-id-back"
    PASSPORT = "passport"
    DRIVING_LICENSE = "driving-license"
    OTHER = "other"


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A stay record.

    Guest name, mobile and national ID are copied onto the booking when it is
    created so the history stays stable if the guest record is edited later.
    ``guest_id`` is a weak reference and is cleared when the guest is removed.
    """

    __tablename__ = "bookings"

    serial_no: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    entry_no: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)

    guest_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("guests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    guest_name: Mapped[str] = mapped_column(String(100), nullable=False)
    guest_mobile: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    guest_national_id: Mapped[str | None] = mapped_column(String(14), index=True, nullable=True)

    room: Mapped[str] = mapped_column(String(10), default="TBD", nullable=False)
    rent: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    check_in: Mapped[datetime] = mapped_column(nullable=False, index=True)
    check_out: Mapped[datetime | None] = mapped_column(nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=BookingStatus.CHECKED_IN.value,
        index=True,
    )
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    group_size: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    additional_guests: Mapped[list["AdditionalGuest"]] = relationship(
        back_populates="booking",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="AdditionalGuest.position",
    )
    documents: Mapped[list["BookingDocument"]] = relationship(
        back_populates="booking",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_bookings_status_check_in", "status", "check_in"),
        Index("ix_bookings_mobile_status", "guest_mobile", "status"),
    )

    def document_public_ids(self) -> list[str]:
        """Asset identifiers for every document on the booking and its additional guests."""
        ids = [doc.public_id for doc in self.documents if doc.public_id]
        for extra in self.additional_guests:
            ids.extend(doc.public_id for doc in extra.documents if doc.public_id)
        return ids

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, serial_no={self.serial_no}, guest_id={self.guest_id}, status={self.status})>"


class AdditionalGuest(UUIDPrimaryKeyMixin, Base):
    """A companion travelling on someone else's booking."""

    __tablename__ = "additional_guests"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(10), index=True, nullable=True)
    national_id: Mapped[str | None] = mapped_column(String(14), index=True, nullable=True)

    booking: Mapped["Booking"] = relationship(back_populates="additional_guests")
    documents: Mapped[list["BookingDocument"]] = relationship(
        back_populates="additional_guest",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class BookingDocument(UUIDPrimaryKeyMixin, Base):
    """An identity-document image held by the asset store.

    Belongs either to the booking's main guest (``booking_id``) or to one of
    its additional guests (``additional_guest_id``).
    """

    __tablename__ = "booking_documents"

    booking_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    additional_guest_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("additional_guests.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    public_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    doc_type: Mapped[str] = mapped_column(String(30), default=DocumentType.OTHER.value, nullable=False)

    booking: Mapped["Booking | None"] = relationship("Booking", back_populates="documents")
    additional_guest: Mapped["AdditionalGuest | None"] = relationship("AdditionalGuest", back_populates="documents")
