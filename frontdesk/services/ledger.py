"""Guest aggregate ledger: live visit/revenue counters plus the historic summary.

Live counters on :class:`Guest` are changed only by single-statement SQL
updates (``SET total_visits = total_visits + 1``) so concurrent bookings for
the same guest never lose an update. Decrements are floored at zero inside
the same statement; when the floor is needed an
:class:`AggregateConsistencyAnomaly` is logged and returned to the caller.

Revenue is measured in nightly ``rent`` throughout the ledger: create adds
the booking's rent, delete and archival subtract it, and a rent change on an
existing booking adjusts by the difference.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from frontdesk.database import utcnow
from frontdesk.errors import AggregateConsistencyAnomaly, NotFound
from frontdesk.models.booking import Booking
from frontdesk.models.guest import Guest
from frontdesk.models.guest_summary import GuestSummary

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


@dataclass
class FullTotals:
    """Lifetime totals for a guest: live counters plus archived history."""

    live_visits: int
    live_revenue: Decimal
    historic_visits: int
    historic_revenue: Decimal

    @property
    def visits(self) -> int:
        return self.live_visits + self.historic_visits

    @property
    def revenue(self) -> Decimal:
        return self.live_revenue + self.historic_revenue

    def as_dict(self) -> dict:
        return {
            "visits": self.visits,
            "revenue": self.revenue,
            "live_visits": self.live_visits,
            "live_revenue": self.live_revenue,
            "historic_visits": self.historic_visits,
            "historic_revenue": self.historic_revenue,
        }


def _floored(expr: ColumnElement, zero: int | Decimal = 0) -> ColumnElement:
    return case((expr < zero, zero), else_=expr)


async def get_guest(db: AsyncSession, guest_id: uuid.UUID) -> Guest | None:
    """Load a guest with counters re-read from the database."""
    result = await db.execute(
        select(Guest).where(Guest.id == guest_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def record_visit(db: AsyncSession, guest_id: uuid.UUID, revenue_delta: Decimal) -> None:
    """Count one more live visit worth ``revenue_delta`` for the guest."""
    await db.execute(
        update(Guest)
        .where(Guest.id == guest_id)
        .values(
            total_visits=Guest.total_visits + 1,
            total_revenue=Guest.total_revenue + revenue_delta,
        )
        .execution_options(synchronize_session="fetch")
    )


async def reverse_visit(
    db: AsyncSession,
    guest_id: uuid.UUID,
    revenue_delta: Decimal,
    visits: int = 1,
) -> AggregateConsistencyAnomaly | None:
    """Remove ``visits`` visits and ``revenue_delta`` revenue, never going below zero."""
    result = await db.execute(
        select(Guest.total_visits, Guest.total_revenue).where(Guest.id == guest_id)
    )
    row = result.one_or_none()
    if row is None:
        anomaly = AggregateConsistencyAnomaly(guest_id, "guest missing while reversing visits")
        logger.warning("Ledger anomaly: %s", anomaly)
        return anomaly

    anomaly = None
    if row.total_visits < visits or row.total_revenue < revenue_delta:
        anomaly = AggregateConsistencyAnomaly(
            guest_id,
            f"reversal of {visits} visit(s) / {revenue_delta} exceeds live totals "
            f"({row.total_visits} / {row.total_revenue}); floored at zero",
            visits=row.total_visits,
            revenue=row.total_revenue,
        )
        logger.warning("Ledger anomaly: %s", anomaly)

    await db.execute(
        update(Guest)
        .where(Guest.id == guest_id)
        .values(
            total_visits=_floored(Guest.total_visits - visits),
            total_revenue=_floored(Guest.total_revenue - revenue_delta, _ZERO),
        )
        .execution_options(synchronize_session="fetch")
    )
    return anomaly


async def adjust_revenue(db: AsyncSession, guest_id: uuid.UUID, delta: Decimal) -> None:
    """Shift live revenue by ``delta`` (e.g. after a rent correction), floored at zero."""
    if delta == 0:
        return
    await db.execute(
        update(Guest)
        .where(Guest.id == guest_id)
        .values(total_revenue=_floored(Guest.total_revenue + delta, _ZERO))
        .execution_options(synchronize_session="fetch")
    )


async def remove_if_exhausted(db: AsyncSession, guest_id: uuid.UUID) -> bool:
    """Delete the guest if it has no live visits left.

    The visit check and the delete are one statement, so a booking recorded
    concurrently keeps the guest alive. Bookings still pointing at a removed
    guest are detached.
    """
    result = await db.execute(
        delete(Guest)
        .where(Guest.id == guest_id, Guest.total_visits == 0)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False

    stale = db.identity_map.get(db.identity_key(Guest, guest_id))
    if stale is not None:
        db.expunge(stale)

    await db.execute(
        update(Booking)
        .where(Booking.guest_id == guest_id)
        .values(guest_id=None)
        .execution_options(synchronize_session="fetch")
    )
    logger.info("Removed guest %s with no remaining visits", guest_id)
    return True


async def get_summary(db: AsyncSession, guest_id: uuid.UUID) -> GuestSummary | None:
    result = await db.execute(
        select(GuestSummary)
        .where(GuestSummary.guest_id == guest_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def full_totals(db: AsyncSession, guest_id: uuid.UUID) -> FullTotals:
    """Live plus historic totals for a guest.

    Raises:
        NotFound: When neither a live guest record nor a historic summary exists.
    """
    guest = await get_guest(db, guest_id)
    summary = await get_summary(db, guest_id)
    if guest is None and summary is None:
        raise NotFound("Guest not found")

    return FullTotals(
        live_visits=guest.total_visits if guest else 0,
        live_revenue=Decimal(guest.total_revenue) if guest else _ZERO,
        historic_visits=summary.total_historic_visits if summary else 0,
        historic_revenue=Decimal(summary.total_historic_revenue) if summary else _ZERO,
    )


async def merge_historic(
    db: AsyncSession,
    *,
    guest_id: uuid.UUID,
    name: str,
    mobile: str,
    national_id: str | None,
    visits: int,
    revenue: Decimal,
    first_visit: datetime,
    last_visit: datetime,
) -> AggregateConsistencyAnomaly | None:
    """Add an archived batch to the guest's historic summary, creating it if needed.

    The summary only ever grows; a negative batch is reported and ignored.
    """
    if visits < 0 or revenue < 0:
        anomaly = AggregateConsistencyAnomaly(
            guest_id,
            f"historic summary would shrink by {visits} visit(s) / {revenue}; batch ignored",
        )
        logger.warning("Ledger anomaly: %s", anomaly)
        return anomaly

    result = await db.execute(
        select(GuestSummary).where(GuestSummary.guest_id == guest_id).with_for_update()
    )
    summary = result.scalar_one_or_none()
    now = utcnow()

    if summary is None:
        db.add(
            GuestSummary(
                guest_id=guest_id,
                name=name,
                mobile=mobile,
                national_id=national_id,
                total_historic_visits=visits,
                total_historic_revenue=revenue,
                first_visit=first_visit,
                last_archived_visit=last_visit,
                archived_at=now,
            )
        )
        await db.flush()
        return None

    if summary.first_visit is None or first_visit < summary.first_visit:
        summary.first_visit = first_visit
    if summary.last_archived_visit is None or last_visit > summary.last_archived_visit:
        summary.last_archived_visit = last_visit
    summary.name = name
    summary.mobile = mobile
    summary.national_id = national_id
    summary.archived_at = now
    # Increment in SQL so concurrent merges for the same guest add up.
    summary.total_historic_visits = GuestSummary.total_historic_visits + visits
    summary.total_historic_revenue = GuestSummary.total_historic_revenue + revenue
    await db.flush()
    await db.refresh(summary)
    return None
