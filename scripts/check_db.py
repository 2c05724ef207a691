#!/usr/bin/env python
"""Check database connectivity and the forecasting schema.

Usage:
    uv run python scripts/check_db.py
"""

import asyncio
import sys

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from anomalycast.core.config import get_settings

REQUIRED_TABLES = ("anomaly_job", "forecast_request_stats", "forecast_point")


async def check_database():
    """Verify database connection and that migrations have been applied."""
    settings = get_settings()

    print("AnomalyCast - Database Connectivity Check")
    print("=" * 41)
    print(f"Database URL: {settings.database_url.split('@')[1]}")  # Hide credentials
    print()

    engine = create_async_engine(settings.database_url)

    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            assert result.scalar() == 1
            print("[OK] Basic connectivity")

            result = await conn.execute(text("SELECT version()"))
            version = result.scalar()
            print(f"[OK] PostgreSQL version: {version[:50]}...")

            result = await conn.execute(
                text(
                    "SELECT table_name FROM information_schema.tables "
                    "WHERE table_schema = 'public'"
                )
            )
            present = set(result.scalars())
            missing = [name for name in REQUIRED_TABLES if name not in present]
            if missing:
                print(f"[WARN] Missing tables: {', '.join(missing)}")
                print("       Run: uv run alembic upgrade head")
            else:
                print("[OK] Forecasting tables present")

            if "forecast_request_stats" in present:
                result = await conn.execute(
                    text(
                        "SELECT count(*) FROM forecast_request_stats "
                        "WHERE expiry_time IS NOT NULL AND expiry_time <= now()"
                    )
                )
                print(f"[OK] Expired forecasts awaiting sweep: {result.scalar()}")

        print()
        print("Database check completed successfully!")
        return 0

    except Exception as e:
        print(f"[FAIL] Connection failed: {e}")
        print()
        print("Troubleshooting:")
        print("  1. Ensure Docker is running: docker-compose up -d")
        print("  2. Check DATABASE_URL in .env file")
        print("  3. Verify PostgreSQL container is healthy: docker-compose ps")
        return 1

    finally:
        await engine.dispose()


def main():
    sys.exit(asyncio.run(check_database()))


if __name__ == "__main__":
    main()
