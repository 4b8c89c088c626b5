"""Historic summary: aggregate totals for a guest's archived bookings."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from frontdesk.database import Base, UUIDPrimaryKeyMixin


class GuestSummary(UUIDPrimaryKeyMixin, Base):
    """Totals preserved for bookings removed from the live set by archival.

    The row outlives the guest it describes, so ``guest_id`` is a plain column
    rather than a foreign key.
    """

    __tablename__ = "guest_summaries"

    guest_id: Mapped[uuid.UUID] = mapped_column(unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    mobile: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    national_id: Mapped[str | None] = mapped_column(String(14), index=True, nullable=True)
    total_historic_visits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_historic_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    first_visit: Mapped[datetime | None] = mapped_column(nullable=True)
    last_archived_visit: Mapped[datetime | None] = mapped_column(nullable=True)
    archived_at: Mapped[datetime] = mapped_column(server_default=func.now())
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    def __repr__(self) -> str:
        return f"<GuestSummary guest_id={self.guest_id} visits={self.total_historic_visits}>"
