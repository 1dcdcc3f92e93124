from __future__ import annotations

"""sync_embeddings.py — Embed every keyword / student that has no vector yet.

Usage:
    python scripts/sync_embeddings.py                 # keywords, then students
    python scripts/sync_embeddings.py --kind student
    python scripts/sync_embeddings.py --rebuild       # re-embed everything

Requires OPENAI_API_KEY. Safe to re-run after a failure: only rows that are
still NULL are sent to the provider. A failed --rebuild leaves the rows it did
not reach on their previous vectors, so finish it with another --rebuild.
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from kwsearch.config import validate_settings
from kwsearch.core.errors import ConfigurationError, KwsearchError, SyncError
from kwsearch.core.log_config import configure_logging
from kwsearch.core.providers.openai_provider import OpenAIProvider
from kwsearch.db.session import AsyncSessionLocal, async_engine, verify_store
from kwsearch.schemas.store import EntityKind
from kwsearch.sync.synchronizer import synchronize, synchronize_all


async def main(kind: EntityKind | None, rebuild: bool, batch_size: int | None) -> int:
    configure_logging()
    try:
        validate_settings()
        await verify_store()
        provider = OpenAIProvider()

        async with AsyncSessionLocal() as session:
            if kind is None:
                reports = await synchronize_all(
                    session, provider, batch_size=batch_size, rebuild=rebuild
                )
            else:
                reports = [
                    await synchronize(
                        kind, session, provider, batch_size=batch_size, rebuild=rebuild
                    )
                ]
        for report in reports:
            print(
                f"{report.kind.value}: selected={report.selected} written={report.written} "
                f"batches={report.batches} skipped={report.skipped_ids}"
            )
    except ConfigurationError as exc:
        print(f"ERROR: {exc}")
        return 2
    except SyncError as exc:
        print(f"ERROR: {exc}")
        print(f"  failed batch ids     : {exc.batch_ids}")
        print(f"  still unsynchronized : {exc.unsynchronized_ids}")
        return 1
    except KwsearchError as exc:
        print(f"ERROR: {exc}")
        return 1
    finally:
        await async_engine.dispose()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Synchronize keyword / student embeddings")
    parser.add_argument(
        "--kind",
        choices=[k.value for k in EntityKind],
        help="sync one kind only (default: keywords, then students)",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help=(
            "re-embed every row and overwrite its vector in place; search keeps "
            "the old vectors until each row is rewritten, and a failed rebuild "
            "must be finished with another --rebuild"
        ),
    )
    parser.add_argument("--batch-size", type=int, default=None)
    return parser


if __name__ == "__main__":
    args = build_parser().parse_args()
    selected = EntityKind(args.kind) if args.kind else None
    sys.exit(asyncio.run(main(selected, args.rebuild, args.batch_size)))
