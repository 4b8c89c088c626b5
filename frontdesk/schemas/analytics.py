"""Pydantic v2 schemas for analytics endpoints."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict

from frontdesk.schemas.booking import BookingResponse

RevenuePeriod = Literal["day", "month", "year"]
ExportType = Literal["bookings", "guests"]
ExportFormat = Literal["json", "csv"]


class DashboardResponse(BaseModel):
    """Headline numbers for the front desk."""

    total_bookings: int
    today_check_ins: int
    active_bookings: int
    total_revenue: Decimal
    today_revenue: Decimal
    recent_bookings: list[BookingResponse]


class RevenueBucket(BaseModel):
    period: str
    revenue: Decimal
    bookings: int
    average_rate: Decimal


class RevenueByRate(BaseModel):
    rate: Decimal
    bookings: int
    revenue: Decimal


class RevenueAnalyticsResponse(BaseModel):
    period: RevenuePeriod
    period_start: date
    period_end: date
    buckets: list[RevenueBucket]
    by_rate: list[RevenueByRate]
    total_revenue: Decimal


class DailyOccupancy(BaseModel):
    date: date
    occupied_rooms: int
    bookings: int


class RoomUtilisation(BaseModel):
    room: str
    occupied_days: int
    utilisation_rate: Decimal  # percentage 0.00–100.00


class OccupancyAnalyticsResponse(BaseModel):
    """Occupancy over a trailing window of calendar days."""

    period_start: date
    period_end: date
    daily: list[DailyOccupancy]
    rooms: list[RoomUtilisation]
    average_stay_days: Decimal


class FrequencyBucket(BaseModel):
    label: str
    guests: int


class TopGuest(BaseModel):
    id: uuid.UUID
    name: str
    mobile: str
    total_visits: int
    total_revenue: Decimal

    model_config = ConfigDict(from_attributes=True)


class AcquisitionPoint(BaseModel):
    month: str
    new_guests: int


class GuestAnalyticsResponse(BaseModel):
    period_start: date
    period_end: date
    new_bookings: int
    returning_bookings: int
    visit_frequency: list[FrequencyBucket]
    top_guests: list[TopGuest]
    acquisition: list[AcquisitionPoint]
