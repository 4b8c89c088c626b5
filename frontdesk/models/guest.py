"""Guest identity model: a person who has stayed at the hotel."""

from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from frontdesk.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Guest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A guest tracked by mobile number and national ID.

    ``total_visits`` and ``total_revenue`` cover live bookings only; archived
    contributions are held in :class:`~frontdesk.models.guest_summary.GuestSummary`.
    Counters are changed exclusively through ``frontdesk.services.ledger``.
    """

    __tablename__ = "guests"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    mobile: Mapped[str] = mapped_column(String(10), unique=True, index=True, nullable=False)
    national_id: Mapped[str | None] = mapped_column(String(14), unique=True, index=True, nullable=True)
    id_document_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    id_document_public_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_visits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Guest id={self.id} mobile={self.mobile!r} visits={self.total_visits}>"
