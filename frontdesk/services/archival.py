"""Archival: move bookings past the retention horizon into historic summaries.

Each guest's batch of old bookings is folded into its
:class:`~frontdesk.models.guest_summary.GuestSummary`, subtracted from the
live counters and deleted inside one SAVEPOINT. A batch that fails is rolled
back on its own and the run moves on; the caller commits once at the end.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.config import settings
from frontdesk.database import utcnow
from frontdesk.errors import AggregateConsistencyAnomaly, ValidationFailed
from frontdesk.models.booking import Booking
from frontdesk.models.guest import Guest
from frontdesk.models.guest_summary import GuestSummary
from frontdesk.services import ledger

logger = logging.getLogger(__name__)


@dataclass
class ArchiveOutcome:
    bookings_archived: int = 0
    guests_affected: int = 0
    guests_deleted: int = 0
    failed_groups: list[str] = field(default_factory=list)
    anomalies: list[AggregateConsistencyAnomaly] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "bookings_archived": self.bookings_archived,
            "guests_affected": self.guests_affected,
            "guests_deleted": self.guests_deleted,
            "failed_groups": list(self.failed_groups),
            "anomalies": [anomaly.as_dict() for anomaly in self.anomalies],
        }


def retention_cutoff(now: datetime, years: int) -> datetime:
    """``now`` moved back ``years`` calendar years (29 February becomes the 28th)."""
    try:
        return now.replace(year=now.year - years)
    except ValueError:
        return now.replace(year=now.year - years, day=28)


async def _group_bookings(
    db: AsyncSession, bookings: list[Booking]
) -> dict[uuid.UUID | str, list[Booking]]:
    """Group by guest; bookings detached from a guest fall back to their mobile."""
    groups: dict[uuid.UUID | str, list[Booking]] = defaultdict(list)
    orphan_mobiles = {b.guest_mobile for b in bookings if b.guest_id is None}

    guest_by_mobile: dict[str, uuid.UUID] = {}
    if orphan_mobiles:
        result = await db.execute(select(Guest.mobile, Guest.id).where(Guest.mobile.in_(orphan_mobiles)))
        guest_by_mobile = {row.mobile: row.id for row in result}

    for booking in bookings:
        if booking.guest_id is not None:
            groups[booking.guest_id].append(booking)
        else:
            groups[guest_by_mobile.get(booking.guest_mobile, booking.guest_mobile)].append(booking)
    return groups


async def _summary_key(db: AsyncSession, mobile: str) -> uuid.UUID:
    """Summary id for bookings whose guest no longer exists."""
    result = await db.execute(
        select(GuestSummary.guest_id).where(GuestSummary.mobile == mobile).limit(1)
    )
    return result.scalar_one_or_none() or uuid.uuid4()


async def _archive_group(
    db: AsyncSession,
    key: uuid.UUID | str,
    bookings: list[Booking],
) -> list[AggregateConsistencyAnomaly]:
    anomalies: list[AggregateConsistencyAnomaly] = []
    visits = len(bookings)
    revenue = sum((Decimal(b.rent) for b in bookings), Decimal("0"))
    first_visit = min(b.created_at for b in bookings)
    last_visit = max(b.created_at for b in bookings)
    latest = max(bookings, key=lambda b: b.created_at)

    guest = await ledger.get_guest(db, key) if isinstance(key, uuid.UUID) else None
    if guest is not None:
        guest_id, name, mobile, national_id = guest.id, guest.name, guest.mobile, guest.national_id
    else:
        guest_id = key if isinstance(key, uuid.UUID) else await _summary_key(db, latest.guest_mobile)
        name, mobile, national_id = latest.guest_name, latest.guest_mobile, latest.guest_national_id

    anomaly = await ledger.merge_historic(
        db,
        guest_id=guest_id,
        name=name,
        mobile=mobile,
        national_id=national_id,
        visits=visits,
        revenue=revenue,
        first_visit=first_visit,
        last_visit=last_visit,
    )
    if anomaly is not None:
        anomalies.append(anomaly)

    # Detached bookings count toward no guest's live totals
    attached = [b for b in bookings if b.guest_id is not None]
    if guest is not None and attached:
        live_revenue = sum((Decimal(b.rent) for b in attached), Decimal("0"))
        anomaly = await ledger.reverse_visit(db, guest.id, live_revenue, visits=len(attached))
        if anomaly is not None:
            anomalies.append(anomaly)

    for booking in bookings:
        await db.delete(booking)
    await db.flush()
    return anomalies


async def _sweep_exhausted_guests(db: AsyncSession) -> int:
    """Delete guests with no live visits and no remaining bookings."""
    has_bookings = exists().where(Booking.guest_id == Guest.id)
    result = await db.execute(select(Guest.id).where(Guest.total_visits == 0, ~has_bookings))
    guest_ids = list(result.scalars().all())
    if not guest_ids:
        return 0
    await db.execute(
        delete(Guest).where(Guest.id.in_(guest_ids)).execution_options(synchronize_session="fetch")
    )
    return len(guest_ids)


async def run_archive(
    db: AsyncSession,
    retention_years: int | None = None,
    now: datetime | None = None,
) -> ArchiveOutcome:
    """Archive every booking created before the retention horizon.

    Running again with nothing newly eligible archives nothing and leaves
    every summary as it was.
    """
    years = retention_years if retention_years is not None else settings.archive_retention_years
    if years < 1:
        raise ValidationFailed("Retention must be at least one year", field="retention_years")
    cutoff = retention_cutoff(now or utcnow(), years)
    logger.info("Archiving bookings created before %s", cutoff.isoformat())

    result = await db.execute(
        select(Booking).where(Booking.created_at < cutoff).order_by(Booking.created_at)
    )
    bookings = list(result.scalars().all())
    outcome = ArchiveOutcome()

    if bookings:
        logger.info("Found %d booking(s) to archive", len(bookings))
        groups = await _group_bookings(db, bookings)
        for key, group in groups.items():
            try:
                async with db.begin_nested():
                    anomalies = await _archive_group(db, key, group)
            except SQLAlchemyError:
                logger.exception("Archiving %d booking(s) for %s failed; group skipped", len(group), key)
                outcome.failed_groups.append(str(key))
                continue
            outcome.bookings_archived += len(group)
            outcome.guests_affected += 1
            outcome.anomalies.extend(anomalies)
            logger.info("Archived %d visit(s) for %s", len(group), key)
    else:
        logger.info("No bookings old enough to archive")

    outcome.guests_deleted = await _sweep_exhausted_guests(db)
    if outcome.guests_deleted:
        logger.info("Deleted %d guest(s) with no remaining visits", outcome.guests_deleted)

    logger.info(
        "Archive run complete: %d booking(s), %d guest(s) affected, %d failed group(s)",
        outcome.bookings_archived,
        outcome.guests_affected,
        len(outcome.failed_groups),
    )
    return outcome
