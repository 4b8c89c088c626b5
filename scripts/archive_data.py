"""Archive bookings older than the retention horizon into guest summaries.

Intended for a scheduled job::

    python -m scripts.archive_data --years 2
"""

import argparse
import asyncio
import logging

from frontdesk.config import settings
from frontdesk.database import async_session_factory, engine
from frontdesk.services.archival import run_archive

logger = logging.getLogger("scripts.archive_data")


async def archive(retention_years: int) -> dict:
    """Run one archival pass and commit it."""
    try:
        async with async_session_factory() as session:
            outcome = await run_archive(session, retention_years=retention_years)
            await session.commit()
    finally:
        await engine.dispose()
    return outcome.as_dict()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--years",
        type=int,
        default=settings.archive_retention_years,
        help="retention horizon in years (default: %(default)s)",
    )
    args = parser.parse_args()
    if args.years < 1:
        parser.error("--years must be at least 1")

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    result = asyncio.run(archive(args.years))
    print(
        f"Archived {result['bookings_archived']} booking(s) for {result['guests_affected']} guest(s); "
        f"deleted {result['guests_deleted']} guest(s); {len(result['failed_groups'])} group(s) failed"
    )


if __name__ == "__main__":
    main()
