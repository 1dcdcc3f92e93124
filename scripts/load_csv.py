from __future__ import annotations

"""load_csv.py — Bulk-load keywords, students and relations from CSV files.

Usage:
    python scripts/load_csv.py ./data/test

The directory must contain keywords.csv, students.csv and relations.csv.
Rows whose primary key already exists are left untouched.
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from kwsearch.core.errors import ConfigurationError, DataError, StoreError
from kwsearch.core.log_config import configure_logging
from kwsearch.db.session import AsyncSessionLocal, async_engine, verify_store
from kwsearch.ingestion.csv_loader import load_directory


async def main(data_dir: Path) -> None:
    configure_logging()
    try:
        await verify_store()
        async with AsyncSessionLocal() as session:
            summary = await load_directory(session, data_dir)
    except (ConfigurationError, DataError, StoreError) as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)
    finally:
        await async_engine.dispose()

    print(
        f"Inserted {summary.keywords} keywords, {summary.students} students, "
        f"{summary.relations} relations from {data_dir}"
    )


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/load_csv.py <data_dir>")
        sys.exit(1)

    asyncio.run(main(Path(sys.argv[1])))
