"""
Create any missing tables for the ORM models. Safe to re-run.

Run before the first seed:
  python -m schooladmin.db.schema_check
"""
import asyncio
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

# Register every model on Base.metadata
import schooladmin.auth.models  # noqa: F401
import schooladmin.core.models  # noqa: F401
from schooladmin.core.logging import configure_logging
from schooladmin.db.session import Base, engine

logger = logging.getLogger(__name__)


async def ensure_schema(db_engine: AsyncEngine) -> List[str]:
    """Create tables that do not exist yet; returns the names created."""
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [name for name in Base.metadata.tables if name not in existing]
        await conn.run_sync(Base.metadata.create_all)

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All required tables already exist in the database.")
    return missing


async def main() -> None:
    configure_logging()
    await ensure_schema(engine)


if __name__ == "__main__":
    asyncio.run(main())
