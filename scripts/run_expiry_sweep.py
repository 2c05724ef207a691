#!/usr/bin/env python
"""Delete expired forecasts once and exit.

For deployments that disable the in-process reaper
(FORECAST_REAPER_ENABLED=false) and schedule sweeps externally, e.g. cron.
Only meaningful with FORECAST_STORE_BACKEND=database; the memory backend
keeps forecasts inside the serving process, out of reach of this script.

Usage:
    uv run python scripts/run_expiry_sweep.py
    uv run python scripts/run_expiry_sweep.py --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from anomalycast.core.config import get_settings
from anomalycast.core.logging import configure_logging, get_logger
from anomalycast.features.forecasting.deps import build_forecast_store
from anomalycast.features.forecasting.reaper import ExpiryReaper
from anomalycast.shared.clock import SystemClock

logger = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete expired forecast requests.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List expired forecasts without deleting them",
    )
    return parser.parse_args()


async def run(dry_run: bool) -> int:
    settings = get_settings()
    if settings.forecast_store_backend != "database":
        logger.error(
            "scripts.expiry_sweep_refused",
            store_backend=settings.forecast_store_backend,
        )
        print(
            f"[FAIL] FORECAST_STORE_BACKEND={settings.forecast_store_backend}: "
            "forecasts live in the serving process, nothing to sweep"
        )
        return 1

    engine = create_async_engine(settings.database_url)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    store = build_forecast_store(settings, session_maker)

    try:
        if dry_run:
            expired = await store.find_expired(SystemClock().now())
            for job_id, forecast_id in expired:
                print(f"{job_id}/{forecast_id}")
            print(f"{len(expired)} expired forecast(s)")
            return 0

        result = await ExpiryReaper(store).sweep()
        print(f"Deleted {result.deleted} expired forecast(s), {result.failed} failed")
        return 1 if result.failed else 0

    except Exception as e:
        logger.error("scripts.expiry_sweep_failed", error=str(e), exc_info=True)
        print(f"[FAIL] Sweep failed: {e}")
        return 1

    finally:
        await engine.dispose()


def main() -> None:
    configure_logging()
    args = parse_args()
    sys.exit(asyncio.run(run(args.dry_run)))


if __name__ == "__main__":
    main()
