"""
Create the Swap schema directly from the ORM metadata.

For local development and demos; deployed databases are migrated with Alembic.
Usage: python -m swap.scripts.init_db [--drop]
"""
import asyncio
import argparse

from swap.database import Base, engine
import swap.models  # noqa: F401  (registers tables on Base.metadata)


async def init_db(drop: bool = False):
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
            print("✓ Dropped existing tables")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print(f"✓ Created tables: {', '.join(sorted(Base.metadata.tables))}")


def main():
    parser = argparse.ArgumentParser(description="Create Swap database tables")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()
    asyncio.run(init_db(drop=args.drop))


if __name__ == "__main__":
    main()
