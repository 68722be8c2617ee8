"""Create (or recreate) every table without Alembic, for local development.

Usage:
    python -m scripts.init_db           # create missing tables
    python -m scripts.init_db --reset   # drop everything first
"""

import argparse
import asyncio

from sqlalchemy import text

from app.config import settings
from app.database import engine
from app.models import metadata


async def init_db(reset: bool = False) -> None:
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        if reset:
            await conn.run_sync(metadata.drop_all)
            print(f"✓ Dropped {len(metadata.tables)} tables")
        await conn.run_sync(metadata.create_all)
    await engine.dispose()

    print(f"✓ Tables ready: {', '.join(sorted(metadata.tables))}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--reset", action="store_true", help="drop all tables before creating them")
    args = parser.parse_args()

    if args.reset and settings.is_production:
        parser.error("refusing to --reset a production database")
    asyncio.run(init_db(reset=args.reset))


if __name__ == "__main__":
    main()
