"""Pydantic v2 schemas for the archival endpoint."""

import uuid

from pydantic import BaseModel, Field


class ArchiveRequest(BaseModel):
    retention_years: int | None = Field(None, ge=1, description="Defaults to the configured retention")


class AnomalyResponse(BaseModel):
    guest_id: uuid.UUID | None = None
    reason: str


class ArchiveResult(BaseModel):
    """Totals for one archival run."""

    bookings_archived: int
    guests_affected: int
    guests_deleted: int
    failed_groups: list[str]
    anomalies: list[AnomalyResponse]
