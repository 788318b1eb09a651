#!/usr/bin/env python3
"""Create marketplace settlement tables."""

import argparse
import asyncio
import sys

from loguru import logger

from app.config.database import create_engine
from app.config.settings import settings
from app.models import Base
from app.utils.logging import setup_logging


async def init_database(database_url: str | None = None, drop: bool = False) -> None:
    """Create all tables, optionally dropping them first."""
    engine = create_engine(database_url)
    logger.info("Connecting to database...")

    async with engine.begin() as conn:
        if drop:
            logger.warning("Dropping existing tables...")
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    await engine.dispose()
    logger.success(
        f"Database tables created: {', '.join(sorted(Base.metadata.tables))}"
    )


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override DATABASE_URL from settings",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop all tables before creating them",
    )
    args = parser.parse_args()

    setup_logging()
    if args.drop and settings.environment == "production":
        logger.error("Refusing to drop tables in production")
        return 1

    asyncio.run(init_database(args.database_url, drop=args.drop))
    return 0


if __name__ == "__main__":
    sys.exit(main())
