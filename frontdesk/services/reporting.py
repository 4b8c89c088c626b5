"""Read-only statistics over the live booking set.

Figures are aggregated in Python over the fetched rows, which keeps bucketing
by day/month identical across PostgreSQL and SQLite. Every window is
evaluated against ``now`` (naive UTC), passed in by tests for determinism.
"""

from __future__ import annotations

import csv
import io
import logging
import uuid
from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.config import settings
from frontdesk.database import utcnow
from frontdesk.errors import ValidationFailed
from frontdesk.models.booking import Booking, BookingStatus
from frontdesk.models.guest import Guest
from frontdesk.services import ledger
from frontdesk.services.archival import retention_cutoff
from frontdesk.services.pricing import billable_days

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_CENT = Decimal("0.01")
_REVENUE_STATUSES = (BookingStatus.CHECKED_IN.value, BookingStatus.CHECKED_OUT.value)

# (lower bound, label); a guest falls in the last bucket whose bound it reaches.
VISIT_FREQUENCY_BUCKETS = (
    (1, "1"),
    (2, "2-4"),
    (5, "5-9"),
    (10, "10-19"),
    (20, "20-49"),
    (50, "50+"),
)

BOOKING_EXPORT_FIELDS = (
    "id",
    "serial_no",
    "entry_no",
    "guest_name",
    "guest_mobile",
    "guest_national_id",
    "room",
    "rent",
    "check_in",
    "check_out",
    "status",
    "payment_status",
    "total_amount",
    "group_size",
    "created_at",
)
GUEST_EXPORT_FIELDS = (
    "id",
    "name",
    "mobile",
    "national_id",
    "total_visits",
    "total_revenue",
    "is_active",
    "created_at",
)


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _mean(values: list[Decimal]) -> Decimal:
    if not values:
        return _quantize(_ZERO)
    return _quantize(sum(values, _ZERO) / len(values))


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


async def _sum_rent(db: AsyncSession, *filters) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Booking.rent), 0)).where(
            Booking.status.in_(_REVENUE_STATUSES), *filters
        )
    )
    return Decimal(str(result.scalar_one()))


async def _count(db: AsyncSession, *filters) -> int:
    result = await db.execute(select(func.count()).select_from(Booking).where(*filters))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


async def dashboard_stats(db: AsyncSession, now: datetime | None = None) -> dict:
    """Headline counts; revenue counts rent of checked-in and checked-out stays."""
    now = now or utcnow()
    today = _start_of_day(now)
    tomorrow = today + timedelta(days=1)

    recent = await db.execute(select(Booking).order_by(Booking.created_at.desc(), Booking.id).limit(5))

    return {
        "total_bookings": await _count(db),
        "today_check_ins": await _count(db, Booking.check_in >= today, Booking.check_in < tomorrow),
        "active_bookings": await _count(db, Booking.status == BookingStatus.CHECKED_IN.value),
        "total_revenue": _quantize(await _sum_rent(db)),
        "today_revenue": _quantize(
            await _sum_rent(db, Booking.created_at >= today, Booking.created_at < tomorrow)
        ),
        "recent_bookings": list(recent.scalars().all()),
    }


# ---------------------------------------------------------------------------
# Revenue
# ---------------------------------------------------------------------------


def revenue_window(
    period: str,
    year: int | None,
    month: int | None,
    now: datetime,
) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` window for a revenue report.

    A whole calendar year or month when requested, otherwise the trailing
    twelve months.
    """
    if month is not None and not 1 <= month <= 12:
        raise ValidationFailed("month must be between 1 and 12", field="month")
    if period == "year" and year is not None:
        return datetime(year, 1, 1), datetime(year + 1, 1, 1)
    if period == "month" and year is not None and month is not None:
        start = datetime(year, month, 1)
        end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
        return start, end
    return retention_cutoff(now, 1), now + timedelta(microseconds=1)


def _bucket_label(moment: datetime, period: str) -> str:
    if period == "day":
        return moment.strftime("%Y-%m-%d")
    if period == "month":
        return moment.strftime("%Y-%m")
    return moment.strftime("%Y")


async def revenue_analytics(
    db: AsyncSession,
    period: str = "month",
    year: int | None = None,
    month: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Revenue, booking count and average rate per bucket, plus revenue by rate."""
    start, end = revenue_window(period, year, month, now or utcnow())
    result = await db.execute(
        select(Booking).where(
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.created_at >= start,
            Booking.created_at < end,
        )
    )
    bookings = list(result.scalars().all())

    buckets: dict[str, list[Booking]] = defaultdict(list)
    by_rate: dict[Decimal, list[Booking]] = defaultdict(list)
    for booking in bookings:
        buckets[_bucket_label(booking.created_at, period)].append(booking)
        by_rate[_quantize(Decimal(booking.rent))].append(booking)

    bucket_rows = [
        {
            "period": label,
            "revenue": _quantize(sum((Decimal(b.total_amount) for b in items), _ZERO)),
            "bookings": len(items),
            "average_rate": _mean([Decimal(b.rent) for b in items]),
        }
        for label, items in sorted(buckets.items())
    ]
    rate_rows = sorted(
        (
            {
                "rate": rate,
                "bookings": len(items),
                "revenue": _quantize(sum((Decimal(b.total_amount) for b in items), _ZERO)),
            }
            for rate, items in by_rate.items()
        ),
        key=lambda row: (-row["revenue"], row["rate"]),
    )

    return {
        "period": period,
        "period_start": start.date(),
        "period_end": (end - timedelta(microseconds=1)).date(),
        "buckets": bucket_rows,
        "by_rate": rate_rows,
        "total_revenue": _quantize(sum((row["revenue"] for row in bucket_rows), _ZERO)),
    }


# ---------------------------------------------------------------------------
# Occupancy
# ---------------------------------------------------------------------------


def _stay_dates(booking: Booking, first: date, last: date, today: date) -> list[date]:
    """Calendar days of a stay, clipped to ``[first, last]``; open stays run to today."""
    stay_end = booking.check_out.date() if booking.check_out is not None else today
    day = max(booking.check_in.date(), first)
    end = min(stay_end, last)
    days: list[date] = []
    while day <= end:
        days.append(day)
        day += timedelta(days=1)
    return days


async def occupancy_analytics(db: AsyncSession, days: int = 30, now: datetime | None = None) -> dict:
    """Rooms and bookings per day over the trailing ``days``, per-room utilisation
    over the same window, and average billable stay length."""
    if days < 1:
        raise ValidationFailed("days must be at least 1", field="days")
    now = now or utcnow()
    today = now.date()
    first = today - timedelta(days=days - 1)
    window_start = datetime.combine(first, time.min)
    window_end = datetime.combine(today + timedelta(days=1), time.min)

    result = await db.execute(
        select(Booking).where(
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.check_in < window_end,
            (Booking.check_out.is_(None)) | (Booking.check_out >= window_start),
        )
    )
    bookings = list(result.scalars().all())

    rooms_by_day: dict[date, set[str]] = defaultdict(set)
    bookings_by_day: Counter[date] = Counter()
    days_by_room: dict[str, set[date]] = defaultdict(set)
    for booking in bookings:
        for day in _stay_dates(booking, first, today, today):
            rooms_by_day[day].add(booking.room)
            bookings_by_day[day] += 1
            days_by_room[booking.room].add(day)

    daily = []
    day = first
    while day <= today:
        daily.append(
            {"date": day, "occupied_rooms": len(rooms_by_day[day]), "bookings": bookings_by_day[day]}
        )
        day += timedelta(days=1)

    rooms = sorted(
        (
            {
                "room": room,
                "occupied_days": len(occupied),
                "utilisation_rate": _quantize(Decimal(len(occupied) * 100) / Decimal(days)),
            }
            for room, occupied in days_by_room.items()
        ),
        key=lambda row: (-row["occupied_days"], row["room"]),
    )

    stays = await db.execute(
        select(Booking.check_in, Booking.check_out).where(
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.check_out.is_not(None),
            Booking.created_at >= retention_cutoff(now, settings.archive_retention_years),
        )
    )
    stay_lengths = [Decimal(billable_days(row.check_in, row.check_out)) for row in stays]

    return {
        "period_start": first,
        "period_end": today,
        "daily": daily,
        "rooms": rooms,
        "average_stay_days": _mean(stay_lengths),
    }


# ---------------------------------------------------------------------------
# Guests
# ---------------------------------------------------------------------------


def frequency_label(visits: int) -> str | None:
    label = None
    for lower, name in VISIT_FREQUENCY_BUCKETS:
        if visits >= lower:
            label = name
    return label


async def guest_analytics(db: AsyncSession, window_years: int = 2, now: datetime | None = None) -> dict:
    """New vs returning bookings, visit-frequency distribution, top guests and
    monthly acquisition.

    A booking is "new" when it is the earliest check-in for its guest among
    the bookings created inside the window.
    """
    now = now or utcnow()
    start = retention_cutoff(now, window_years)

    result = await db.execute(
        select(Booking.id, Booking.guest_id, Booking.guest_mobile)
        .where(Booking.created_at >= start)
        .order_by(Booking.check_in, Booking.created_at, Booking.id)
    )
    seen: set[uuid.UUID | str] = set()
    new_bookings = returning_bookings = 0
    for row in result:
        key = row.guest_id or row.guest_mobile
        if key in seen:
            returning_bookings += 1
        else:
            seen.add(key)
            new_bookings += 1

    visits = await db.execute(select(Guest.total_visits))
    frequency: Counter[str] = Counter()
    for total_visits in visits.scalars():
        label = frequency_label(total_visits)
        if label is not None:
            frequency[label] += 1

    top = await db.execute(
        select(Guest)
        .where(Guest.is_active.is_(True))
        .order_by(Guest.total_revenue.desc(), Guest.name)
        .limit(10)
    )

    created = await db.execute(select(Guest.created_at))
    acquisition: Counter[str] = Counter(moment.strftime("%Y-%m") for moment in created.scalars())

    return {
        "period_start": start.date(),
        "period_end": now.date(),
        "new_bookings": new_bookings,
        "returning_bookings": returning_bookings,
        "visit_frequency": [
            {"label": name, "guests": frequency[name]} for _, name in VISIT_FREQUENCY_BUCKETS
        ],
        "top_guests": list(top.scalars().all()),
        "acquisition": [
            {"month": month, "new_guests": count} for month, count in sorted(acquisition.items())
        ],
    }


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def rows_to_csv(rows: list[dict], fields: tuple[str, ...]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fields, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({name: "" if row[name] is None else row[name] for name in fields})
    return buffer.getvalue()


async def export_data(
    db: AsyncSession,
    export_type: str = "bookings",
    fmt: str = "json",
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> dict | str:
    """Export bookings or guests created in ``[start, end]``.

    The window defaults to the retention horizon. Returns ``{"type", "count",
    "data"}`` for JSON and the CSV text otherwise.
    """
    if export_type not in ("bookings", "guests"):
        raise ValidationFailed('Invalid export type. Use "bookings" or "guests"', field="type")
    now = now or utcnow()
    start = start or retention_cutoff(now, settings.archive_retention_years)
    end = end or now
    if end < start:
        raise ValidationFailed("end must not be before start", field="end")

    model, fields = (Booking, BOOKING_EXPORT_FIELDS) if export_type == "bookings" else (Guest, GUEST_EXPORT_FIELDS)
    result = await db.execute(
        select(model)
        .where(model.created_at >= start, model.created_at <= end)
        .order_by(model.created_at, model.id)
    )
    rows = [{name: getattr(item, name) for name in fields} for item in result.scalars().all()]
    logger.info("Exporting %d %s row(s) as %s", len(rows), export_type, fmt)

    if fmt == "csv":
        return rows_to_csv(rows, fields)
    return {"type": export_type, "count": len(rows), "data": rows}


# ---------------------------------------------------------------------------
# Guest history
# ---------------------------------------------------------------------------


async def guest_history(db: AsyncSession, guest_id: uuid.UUID, now: datetime | None = None) -> dict:
    """A guest's lifetime totals, bookings inside the retention window and
    archived summary.

    Raises:
        NotFound: When neither a live guest nor a historic summary exists.
    """
    totals = await ledger.full_totals(db, guest_id)
    cutoff = retention_cutoff(now or utcnow(), settings.archive_retention_years)

    result = await db.execute(
        select(Booking)
        .where(Booking.guest_id == guest_id, Booking.created_at >= cutoff)
        .order_by(Booking.created_at.desc(), Booking.id)
    )
    return {
        "guest": await ledger.get_guest(db, guest_id),
        "totals": totals.as_dict(),
        "recent_bookings": list(result.scalars().all()),
        "historic_summary": await ledger.get_summary(db, guest_id),
    }
