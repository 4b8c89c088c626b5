"""Async client for the asset store that holds identity-document images.

Documents are addressed by the public identifier the store returned on
upload. Deletion is best-effort: failures are collected into an
:class:`AssetDeletionPartialFailure` instead of raised, so removing a booking
never depends on the asset store being reachable.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.config import settings
from frontdesk.errors import AssetDeletionPartialFailure

logger = logging.getLogger(__name__)


@dataclass
class AssetCleanupResult:
    """Outcome of a bulk deletion."""

    requested: int = 0
    deleted: int = 0
    failed: list[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def failure(self) -> AssetDeletionPartialFailure | None:
        if not self.failed:
            return None
        return AssetDeletionPartialFailure(self.failed, self.deleted)

    def as_dict(self) -> dict:
        return {
            "requested": self.requested,
            "deleted": self.deleted,
            "failed": list(self.failed),
            "skipped": self.skipped,
        }


def get_asset_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Create an HTTP client bound to the configured asset store."""
    headers = {}
    if settings.asset_store_api_key:
        headers["Authorization"] = f"Bearer {settings.asset_store_api_key}"
    return httpx.AsyncClient(
        base_url=settings.asset_store_url.rstrip("/"),
        headers=headers,
        timeout=httpx.Timeout(settings.asset_store_timeout_seconds),
        transport=transport,
    )


async def delete_asset(client: httpx.AsyncClient, public_id: str) -> None:
    """Delete one asset. A 404 counts as already deleted.

    Raises:
        httpx.HTTPError: On transport failure or any other error status.
    """
    response = await client.delete(f"/assets/{public_id}")
    if response.status_code == httpx.codes.NOT_FOUND:
        logger.info("Asset %s already absent from the asset store", public_id)
        return
    response.raise_for_status()


async def delete_assets(
    public_ids: list[str],
    transport: httpx.AsyncBaseTransport | None = None,
) -> AssetCleanupResult:
    """Delete every asset in ``public_ids`` concurrently and report the outcome."""
    result = AssetCleanupResult(requested=len(public_ids))
    if not public_ids:
        return result

    if not settings.asset_store_enabled:
        logger.warning(
            "Asset store not configured; leaving %d document asset(s) in place", len(public_ids)
        )
        result.skipped = True
        return result

    async with get_asset_client(transport) as client:
        outcomes = await asyncio.gather(
            *[delete_asset(client, public_id) for public_id in public_ids],
            return_exceptions=True,
        )

    for public_id, outcome in zip(public_ids, outcomes):
        if isinstance(outcome, Exception):
            logger.warning("Could not delete asset %s: %s", public_id, outcome)
            result.failed.append(public_id)
        else:
            result.deleted += 1

    if result.failed:
        logger.warning("Asset cleanup incomplete: %s", result.failure)
    else:
        logger.info("Deleted %d document asset(s)", result.deleted)
    return result


async def delete_after_commit(db: AsyncSession, public_ids: list[str]) -> AssetCleanupResult:
    """Commit ``db``, then delete ``public_ids`` from the asset store.

    Images are removed only once the rows that referenced them are gone for
    good, and no transaction stays open while the store is being called.
    """
    await db.commit()
    return await delete_assets(public_ids)
