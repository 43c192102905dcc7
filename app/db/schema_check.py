"""
Create any missing fee ledger tables. Run once against a new database:

    python -m app.db.schema_check
"""

import asyncio
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import app.auth.models  # noqa: F401  users and roles live on the same metadata
import app.core.models  # noqa: F401
from app.core.logging_config import configure_logging
from app.db.session import Base, engine

logger = logging.getLogger(__name__)


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create tables missing from the database and return their names. Existing tables are never altered."""
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [table.name for table in Base.metadata.sorted_tables if table.name not in existing]
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All fee ledger tables already exist in the database.")
    return missing


async def main() -> None:
    configure_logging()
    await ensure_tables(engine)


if __name__ == "__main__":
    asyncio.run(main())
