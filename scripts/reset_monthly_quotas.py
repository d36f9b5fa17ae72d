#!/usr/bin/env python3
"""
Reset current-month quota counters for every restaurant.

Meant to run from a scheduler on the first day of each month:

    python scripts/reset_monthly_quotas.py
    python scripts/reset_monthly_quotas.py --dry-run
"""
import argparse
import asyncio
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import get_settings
from database import build_engine, build_session_factory, session_scope
from database.repositories import QuotaRepository
from services.quota_manager import QuotaManager, format_bytes

logger = logging.getLogger("reset_monthly_quotas")


async def run_reset(
    session_factory: async_sessionmaker[AsyncSession],
    dry_run: bool = False,
) -> int:
    """
    Reset (or, with ``dry_run``, only report) monthly counters.

    Returns:
        Number of quota rows reset, or that would be reset
    """
    async with session_scope(session_factory) as session:
        rows, total_bytes, total_requests = await QuotaRepository(session).monthly_totals()

    logger.info(
        f"{rows} quota rows, {format_bytes(total_bytes)} and {total_requests} requests "
        f"recorded this month"
    )

    if dry_run:
        logger.info("Dry run: no counters changed")
        return rows

    return await QuotaManager(session_factory).reset_monthly_quotas()


async def main(dry_run: bool = False) -> int:
    settings = get_settings()
    if not settings.database_url:
        logger.error("DATABASE_URL not configured")
        return 1

    engine = build_engine(settings)
    try:
        count = await run_reset(build_session_factory(engine), dry_run=dry_run)
    finally:
        await engine.dispose()

    verb = "Would reset" if dry_run else "Reset"
    logger.info(f"{verb} {count} quota rows")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reset monthly storage quota counters")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report current usage without resetting anything",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(main(dry_run=args.dry_run)))
