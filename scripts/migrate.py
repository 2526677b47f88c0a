#!/usr/bin/env python3
"""Database migration script - creates the idempotency table."""

import asyncio
import sys

from dotenv import load_dotenv

from tronsigner.config import get_settings
from tronsigner.idempotency import Database


async def main():
    """Create tables that do not exist yet."""
    load_dotenv()
    settings = get_settings()

    if not settings.database_url:
        print("DATABASE_URL not set - in-memory idempotency needs no migration")
        sys.exit(1)

    database = Database(settings.database_url)
    print(f"Database URL: {settings.get_safe_dict()['database_url']}")
    print("Creating database tables...")

    try:
        await database.init()
        print("Database tables created successfully!")
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
