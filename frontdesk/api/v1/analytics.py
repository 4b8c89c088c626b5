"""Analytics API router: dashboard, revenue, occupancy, guest statistics and export.

The dashboard is open to every active staff account; the detailed reports and
the export are limited to managers and admins.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.deps import get_current_active_user, get_db, require_manager
from frontdesk.models.user import User
from frontdesk.schemas.analytics import (
    DashboardResponse,
    ExportFormat,
    ExportType,
    GuestAnalyticsResponse,
    OccupancyAnalyticsResponse,
    RevenueAnalyticsResponse,
    RevenuePeriod,
)
from frontdesk.schemas.booking import UtcDatetime
from frontdesk.services import reporting

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Booking counts, revenue and the five most recent bookings."""
    return await reporting.dashboard_stats(db)


@router.get("/revenue", response_model=RevenueAnalyticsResponse)
async def get_revenue(
    period: RevenuePeriod = Query("month", description="Bucket size"),
    year: int | None = Query(None, ge=1970, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_manager),
) -> dict:
    """Revenue per bucket for a calendar year or month, or the trailing twelve months."""
    return await reporting.revenue_analytics(db, period=period, year=year, month=month)


@router.get("/occupancy", response_model=OccupancyAnalyticsResponse)
async def get_occupancy(
    days: int = Query(30, ge=1, le=366, description="Trailing window in days"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_manager),
) -> dict:
    return await reporting.occupancy_analytics(db, days=days)


@router.get("/guests", response_model=GuestAnalyticsResponse)
async def get_guest_analytics(
    window_years: int = Query(2, ge=1, le=10, description="Years of bookings counted as new or returning"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_manager),
) -> dict:
    return await reporting.guest_analytics(db, window_years=window_years)


@router.get("/export", response_model=None)
async def export_data(
    export_type: ExportType = Query("bookings", alias="type"),
    fmt: ExportFormat = Query("json", alias="format"),
    start: UtcDatetime | None = Query(None, description="Created on or after"),
    end: UtcDatetime | None = Query(None, description="Created on or before"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_manager),
) -> dict | Response:
    """Export bookings or guests as JSON or CSV (default window: retention horizon)."""
    payload = await reporting.export_data(db, export_type=export_type, fmt=fmt, start=start, end=end)
    if fmt == "csv":
        return Response(
            content=payload,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={export_type}_export.csv"},
        )
    return payload
