#!/usr/bin/env python
"""Check that the ledger database is reachable and ready for ingestion.

Verifies connectivity, the presence of the ledger tables and that every
partner layout's default client is registered.

Usage:
    python scripts/check_db.py
"""

import asyncio
import sys

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.config import get_settings
from app.features.data_platform.models import CatalogCacheEntry, Client, Product
from app.features.ingest.layouts import LAYOUTS

REQUIRED_TABLES = ("client", "product", "catalog_cache", "sales_record")


async def check_database() -> int:
    """Run the readiness checks; returns a process exit code."""
    settings = get_settings()

    print("SellOutLedger - Database Readiness Check")
    print("=" * 42)
    print(f"Database URL: {settings.database_url.rsplit('@', 1)[-1]}")  # Hide credentials
    print()

    engine = create_async_engine(settings.database_url)
    failures = 0

    try:
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            missing = [name for name in REQUIRED_TABLES if name not in tables]
            if missing:
                print(f"[FAIL] Missing tables: {', '.join(missing)}")
                print("       Run: alembic upgrade head")
                return 1
            print("[OK] Ledger tables present")

            for label, model in (("Products", Product), ("Catalog entries", CatalogCacheEntry)):
                count = (await conn.execute(select(func.count()).select_from(model))).scalar_one()
                status = "OK" if count else "WARN"
                print(f"[{status}] {label}: {count}")

            client_codes = {layout.default_client_code for layout in LAYOUTS.values()}
            result = await conn.execute(select(Client.code).where(Client.code.in_(client_codes)))
            registered = set(result.scalars())
            for layout in LAYOUTS.values():
                if layout.default_client_code in registered:
                    print(f"[OK] Layout {layout.code}: client {layout.default_client_code}")
                else:
                    failures += 1
                    print(f"[FAIL] Layout {layout.code}: client {layout.default_client_code} missing")

    except (SQLAlchemyError, OSError) as e:
        print(f"[FAIL] Connection failed: {e}")
        print()
        print("Troubleshooting:")
        print("  1. Check DATABASE_URL in .env file")
        print("  2. Verify PostgreSQL is accepting connections")
        return 1

    finally:
        await engine.dispose()

    print()
    print("Database check completed" + (" with failures." if failures else " successfully!"))
    return 1 if failures else 0


def main() -> None:
    sys.exit(asyncio.run(check_database()))


if __name__ == "__main__":
    main()
