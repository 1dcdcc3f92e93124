from __future__ import annotations

"""CLI smoke test for student similarity search.

Usage:
    python scripts/search_students.py "機械学習 自然言語処理"
    python scripts/search_students.py --k 3 "NLP"

Requires OPENAI_API_KEY and a synchronized database (see sync_embeddings.py).
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from kwsearch.config import settings, validate_settings
from kwsearch.core.errors import KwsearchError
from kwsearch.core.providers.openai_provider import OpenAIProvider
from kwsearch.db.session import AsyncSessionLocal, async_engine
from kwsearch.search.engine import search


async def main(query: str, k: int) -> None:
    try:
        validate_settings()
        provider = OpenAIProvider()
        async with AsyncSessionLocal() as session:
            matches = await search(query, k, session, provider)
    except KwsearchError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)
    finally:
        await async_engine.dispose()

    print(f"Query  : {query!r}")
    print("-" * 60)

    if not matches:
        print("No results returned.")
        return

    for match in matches:
        print(f"Student ID: {match.student_id}")
        print(f"Student Name: {match.name}")
        print("Keywords:")
        for kw in match.keywords:
            print(f"\tID: {kw.keyword_id}, Text: {kw.text}, Distance: {kw.distance:.6f}")
        print("-" * 35)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Search students by keyword similarity")
    parser.add_argument("query", nargs="+")
    parser.add_argument("--k", type=int, default=settings.default_search_k)
    args = parser.parse_args()

    asyncio.run(main(" ".join(args.query), args.k))
