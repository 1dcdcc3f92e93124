from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from kwsearch.config import settings
from kwsearch.db.distance import DistanceMetric
from kwsearch.db.session import async_engine

logger = logging.getLogger(__name__)


async def create_schema(
    engine: AsyncEngine = async_engine,
    dimensions: int | None = None,
    metric: DistanceMetric | None = None,
) -> None:
    """Create the pgvector extension, the three tables, and their indexes.

    DDL is idempotent (IF NOT EXISTS) so safe to re-run. The HNSW opclass is
    derived from the configured distance metric so the index serves the same
    operator the search query uses.
    """
    dim = dimensions or settings.openai_embedding_dimensions
    metric = metric or DistanceMetric(settings.distance_metric)
    logger.info("schema_utils.create_schema", extra={"dimensions": dim, "metric": metric.value})

    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

        await conn.execute(text(f"""
            CREATE TABLE IF NOT EXISTS keywords (
                keyword_id      INTEGER PRIMARY KEY,
                keyword_text    TEXT NOT NULL,
                embedding       vector({dim})
            )
        """))

        await conn.execute(text(f"""
            CREATE TABLE IF NOT EXISTS students (
                student_id              INTEGER PRIMARY KEY,
                student_name            TEXT NOT NULL,
                keyword_list_embedding  vector({dim})
            )
        """))

        await conn.execute(text("""
            CREATE TABLE IF NOT EXISTS student_keywords_relations (
                student_id  INTEGER NOT NULL
                                REFERENCES students(student_id) ON DELETE CASCADE,
                keyword_id  INTEGER NOT NULL
                                REFERENCES keywords(keyword_id) ON DELETE CASCADE,
                PRIMARY KEY (student_id, keyword_id)
            )
        """))

        await conn.execute(text(f"""
            CREATE INDEX IF NOT EXISTS idx_keywords_embedding
                ON keywords
                USING hnsw (embedding {metric.opclass})
        """))

        await conn.execute(text(f"""
            CREATE INDEX IF NOT EXISTS idx_students_keyword_list_embedding
                ON students
                USING hnsw (keyword_list_embedding {metric.opclass})
        """))

        await conn.execute(text("""
            CREATE INDEX IF NOT EXISTS idx_student_keywords_relations_keyword_id
                ON student_keywords_relations (keyword_id)
        """))

    logger.info("schema_utils.create_schema.done")
