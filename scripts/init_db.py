"""Script to initialize the database without running migrations."""

import asyncio

from app.database import engine
from app.models import combined_metadata


async def init_db() -> None:
    """Create every scheduling table that does not exist yet."""
    metadata = combined_metadata()

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()

    print(f"✓ Database initialized with {len(metadata.tables)} tables")


if __name__ == "__main__":
    asyncio.run(init_db())
