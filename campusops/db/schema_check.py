import asyncio
from typing import List

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

import campusops.auth.models  # noqa: F401  (registers auth tables on Base.metadata)
import campusops.core.models  # noqa: F401
from campusops.db.session import Base, engine

SCHEMAS = ("core", "auth")


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """
    Ensure the core/auth schemas and every mapped table exist. Missing tables are created;
    existing ones are left untouched. Returns the names of the tables that were created.
    """
    async with db_engine.begin() as conn:
        for schema in SCHEMAS:
            await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))

        missing: List[str] = []
        for table in Base.metadata.sorted_tables:
            result = await conn.execute(text("SELECT to_regclass(:relname)"), {"relname": table.fullname})
            if result.scalar() is None:
                missing.append(table.fullname)

        await conn.run_sync(Base.metadata.create_all)
    return missing


async def main() -> None:
    missing = await ensure_tables(engine)
    if missing:
        print("Created missing tables: " + ", ".join(missing))
    else:
        print("All required auth/core tables already exist in the database.")


if __name__ == "__main__":
    asyncio.run(main())
