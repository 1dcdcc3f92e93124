from __future__ import annotations

"""setup_db.py — Initialise database infrastructure.

Run once before load_csv.py:
    python scripts/setup_db.py

Creates:
  - pgvector extension
  - keywords, students, student_keywords_relations tables
  - HNSW indexes on both vector columns (opclass follows DISTANCE_METRIC)
"""

import asyncio
import sys
from pathlib import Path

# Allow running from project root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent))

from kwsearch.core.errors import ConfigurationError
from kwsearch.core.log_config import configure_logging
from kwsearch.db.schema_utils import create_schema
from kwsearch.db.session import async_engine, verify_store


async def main() -> None:
    configure_logging()
    try:
        await verify_store()
        print("Creating schema …")
        await create_schema()
        print("✓ Database setup complete.")
    except ConfigurationError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)
    finally:
        await async_engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
