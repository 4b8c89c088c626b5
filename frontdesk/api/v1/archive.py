"""Admin API router: on-demand archival of bookings past the retention horizon."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.deps import get_db, require_admin
from frontdesk.models.user import User
from frontdesk.schemas.archive import ArchiveRequest, ArchiveResult
from frontdesk.services.archival import run_archive

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.post("/archive", response_model=ArchiveResult)
async def archive_bookings(
    body: ArchiveRequest | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> dict:
    """Fold old bookings into historic summaries and remove them from the live set.

    Safe to repeat: a run with nothing newly eligible changes nothing.
    """
    logger.info("Archive run requested by %s", current_user.email)
    retention_years = body.retention_years if body is not None else None
    outcome = await run_archive(db, retention_years=retention_years)
    return outcome.as_dict()
