"""Script to initialize the database from the table metadata.

Intended for local development; deployed databases are migrated with Alembic
(``python scripts/migrate.py``).
"""

import asyncio

from sqlalchemy import text

from medislot.database import DATABASE_URL, engine
from medislot.models import metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        if DATABASE_URL.startswith("postgresql"):
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
