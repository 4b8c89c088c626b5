"""Tests for moving old bookings into historic summaries."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.database import utcnow
from frontdesk.errors import ValidationFailed
from frontdesk.models.booking import Booking
from frontdesk.models.guest_summary import GuestSummary
from frontdesk.schemas.booking import BookingCreate
from frontdesk.services import bookings, ledger
from frontdesk.services.archival import retention_cutoff, run_archive
from tests.factories import booking_payload, insert_booking, insert_guest

THREE_YEARS = timedelta(days=3 * 365)


async def _booking_count(db_session: AsyncSession, **filters) -> int:
    stmt = select(func.count()).select_from(Booking).filter_by(**filters)
    return (await db_session.execute(stmt)).scalar_one()


async def _summaries_for_mobile(db_session: AsyncSession, mobile: str) -> list[GuestSummary]:
    result = await db_session.execute(
        select(GuestSummary)
        .where(GuestSummary.mobile == mobile)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def test_retention_cutoff_moves_back_calendar_years():
    assert retention_cutoff(datetime(2026, 10, 18, 9, 30), 2) == datetime(2024, 10, 18, 9, 30)


def test_retention_cutoff_leap_day():
    assert retention_cutoff(datetime(2028, 2, 29, 10), 2) == datetime(2026, 2, 28, 10)


@pytest.mark.asyncio(loop_scope="session")
class TestRunArchive:
    async def test_old_bookings_folded_into_summary(self, db_session: AsyncSession):
        now = utcnow()
        old = now - THREE_YEARS
        guest = await insert_guest(
            db_session, "9811000001", total_visits=3, total_revenue=Decimal("4500")
        )
        await insert_booking(db_session, guest, created_at=old, rent=Decimal("1000"))
        await insert_booking(db_session, guest, created_at=old + timedelta(days=30), rent=Decimal("1500"))
        recent = await insert_booking(db_session, guest, rent=Decimal("2000"))

        before = await ledger.full_totals(db_session, guest.id)
        outcome = await run_archive(db_session, retention_years=2, now=now)
        after = await ledger.full_totals(db_session, guest.id)

        assert outcome.bookings_archived == 2
        assert outcome.guests_affected == 1
        assert outcome.guests_deleted == 0
        assert outcome.failed_groups == []
        assert outcome.anomalies == []

        assert (after.visits, after.revenue) == (before.visits, before.revenue)
        assert after.live_visits == 1
        assert after.live_revenue == Decimal("2000")
        assert after.historic_visits == 2
        assert after.historic_revenue == Decimal("2500")

        summary = await ledger.get_summary(db_session, guest.id)
        assert summary.mobile == "9811000001"
        assert summary.first_visit == old
        assert summary.last_archived_visit == old + timedelta(days=30)

        assert await _booking_count(db_session, guest_id=guest.id) == 1
        assert await _booking_count(db_session, id=recent.id) == 1

    async def test_second_run_is_a_no_op(self, db_session: AsyncSession):
        now = utcnow()
        guest = await insert_guest(db_session, "9811000002", total_visits=2, total_revenue=Decimal("3000"))
        await insert_booking(db_session, guest, created_at=now - THREE_YEARS, rent=Decimal("1000"))
        await insert_booking(db_session, guest, rent=Decimal("2000"))

        await run_archive(db_session, retention_years=2, now=now)
        first = await ledger.full_totals(db_session, guest.id)
        outcome = await run_archive(db_session, retention_years=2, now=now)
        second = await ledger.full_totals(db_session, guest.id)

        assert outcome.bookings_archived == 0
        assert outcome.guests_affected == 0
        assert first == second

    async def test_guest_with_nothing_live_is_swept(self, db_session: AsyncSession):
        now = utcnow()
        guest = await insert_guest(db_session, "9811000003", total_visits=1, total_revenue=Decimal("800"))
        await insert_booking(db_session, guest, created_at=now - THREE_YEARS, rent=Decimal("800"))

        outcome = await run_archive(db_session, retention_years=2, now=now)

        assert outcome.guests_deleted == 1
        assert await ledger.get_guest(db_session, guest.id) is None
        totals = await ledger.full_totals(db_session, guest.id)
        assert totals.live_visits == 0
        assert totals.historic_visits == 1
        assert totals.revenue == Decimal("800")

    async def test_live_counters_floored_when_short(self, db_session: AsyncSession):
        now = utcnow()
        guest = await insert_guest(db_session, "9811000004", total_visits=1, total_revenue=Decimal("100"))
        await insert_booking(db_session, guest, created_at=now - THREE_YEARS, rent=Decimal("1000"))
        await insert_booking(db_session, guest, created_at=now - THREE_YEARS, rent=Decimal("1000"))

        outcome = await run_archive(db_session, retention_years=2, now=now)

        assert len(outcome.anomalies) == 1
        assert outcome.anomalies[0].guest_id == guest.id
        summary = await ledger.get_summary(db_session, guest.id)
        assert summary.total_historic_visits == 2

    async def test_orphans_share_one_summary_per_mobile(self, db_session: AsyncSession):
        now = utcnow()
        await insert_booking(
            db_session, None, created_at=now - THREE_YEARS, rent=Decimal("700"), mobile="9811000005"
        )
        await run_archive(db_session, retention_years=2, now=now)

        await insert_booking(
            db_session,
            None,
            created_at=now - THREE_YEARS + timedelta(days=1),
            rent=Decimal("300"),
            mobile="9811000005",
        )
        outcome = await run_archive(db_session, retention_years=2, now=now)

        assert outcome.bookings_archived == 1
        summaries = await _summaries_for_mobile(db_session, "9811000005")
        assert len(summaries) == 1
        assert summaries[0].total_historic_visits == 2
        assert summaries[0].total_historic_revenue == Decimal("1000")

    async def test_failed_group_rolled_back_and_others_archived(self, db_session: AsyncSession):
        now = utcnow()
        broken = await insert_guest(db_session, "9811000006", total_visits=1, total_revenue=Decimal("500"))
        healthy = await insert_guest(db_session, "9811000007", total_visits=2, total_revenue=Decimal("1100"))
        await insert_booking(db_session, broken, created_at=now - THREE_YEARS, rent=Decimal("500"))
        await insert_booking(db_session, healthy, created_at=now - THREE_YEARS, rent=Decimal("600"))
        await insert_booking(db_session, healthy, rent=Decimal("500"))

        real_merge = ledger.merge_historic

        async def flaky_merge(db, **kwargs):
            if kwargs["guest_id"] == broken.id:
                raise OperationalError("UPDATE guest_summaries", {}, Exception("lock timeout"))
            return await real_merge(db, **kwargs)

        with patch("frontdesk.services.ledger.merge_historic", side_effect=flaky_merge):
            outcome = await run_archive(db_session, retention_years=2, now=now)

        assert outcome.failed_groups == [str(broken.id)]
        assert outcome.bookings_archived == 1
        assert await _booking_count(db_session, guest_id=broken.id) == 1
        assert await ledger.get_summary(db_session, broken.id) is None

        untouched = await ledger.get_guest(db_session, broken.id)
        assert untouched.total_visits == 1
        archived = await ledger.full_totals(db_session, healthy.id)
        assert archived.historic_visits == 1
        assert archived.live_visits == 1

    async def test_recent_bookings_left_alone(self, db_session: AsyncSession):
        now = utcnow()
        guest = await insert_guest(db_session, "9811000008", total_visits=1, total_revenue=Decimal("900"))
        await insert_booking(db_session, guest, created_at=now - timedelta(days=400), rent=Decimal("900"))

        outcome = await run_archive(db_session, retention_years=2, now=now)

        assert outcome.bookings_archived == 0
        assert await ledger.get_summary(db_session, guest.id) is None

    async def test_detached_booking_leaves_live_counters_alone(self, db_session: AsyncSession):
        now = utcnow()
        await insert_booking(
            db_session, None, created_at=now - THREE_YEARS, rent=Decimal("1000"), mobile="9811000009"
        )
        created = await bookings.create_booking(
            db_session,
            BookingCreate(**booking_payload(guest_mobile="9811000009", check_out=None)),
        )
        before = await ledger.full_totals(db_session, created.guest_id)

        outcome = await run_archive(db_session, retention_years=2, now=now)
        after = await ledger.full_totals(db_session, created.guest_id)

        assert outcome.bookings_archived == 1
        assert outcome.anomalies == []
        assert (after.live_visits, after.live_revenue) == (before.live_visits, before.live_revenue)
        assert after.historic_visits == 1
        assert after.historic_revenue == Decimal("1000")
        assert await _booking_count(db_session, guest_id=created.guest_id) == 1

    async def test_zero_retention_rejected(self, db_session: AsyncSession):
        with pytest.raises(ValidationFailed) as excinfo:
            await run_archive(db_session, retention_years=0)
        assert excinfo.value.field == "retention_years"
