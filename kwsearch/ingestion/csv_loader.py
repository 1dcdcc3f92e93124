from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kwsearch.core.errors import DataError, StoreError
from kwsearch.db.models import Keyword, Student, StudentKeyword

logger = logging.getLogger(__name__)

KEYWORDS_FILE = "keywords.csv"
STUDENTS_FILE = "students.csv"
RELATIONS_FILE = "relations.csv"


class KeywordRow(BaseModel):
    keyword_id: int
    keyword_text: str

    @field_validator("keyword_text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("keyword_text is empty")
        return v


class StudentRow(BaseModel):
    student_id: int
    student_name: str | None = None

    def resolved_name(self) -> str:
        # Source data only carries ids; names are generated placeholders.
        return self.student_name or f"田中{self.student_id} 太郎{self.student_id}"


class RelationRow(BaseModel):
    student_id: int
    keyword_id: int


RowT = TypeVar("RowT", bound=BaseModel)


@dataclass
class LoadSummary:
    keywords: int = 0
    students: int = 0
    relations: int = 0


def read_rows(path: Path, model: type[RowT]) -> list[RowT]:
    """Parse a headed CSV file into validated rows. Raises DataError naming the line."""
    rows: list[RowT] = []
    with path.open(newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        # header is line 1
        for line_no, record in enumerate(reader, start=2):
            cleaned = {k.strip(): (v.strip() if v else None) for k, v in record.items() if k}
            try:
                rows.append(model.model_validate(cleaned))
            except ValidationError as exc:
                raise DataError(f"{path.name}:{line_no}: {exc.errors()[0]['msg']}") from exc
    return rows


_INSERT_CHUNK = 1000  # keeps each statement under the bind-parameter limit


async def _insert_ignore(session: AsyncSession, model: type, values: list[dict]) -> int:
    inserted = 0
    for i in range(0, len(values), _INSERT_CHUNK):
        stmt = insert(model).values(values[i : i + _INSERT_CHUNK]).on_conflict_do_nothing()
        result = await session.execute(stmt)
        inserted += result.rowcount
    return inserted


async def load_directory(session: AsyncSession, data_dir: Path) -> LoadSummary:
    """Load keywords, students and relations from ``data_dir`` in one transaction.

    Existing primary keys are left untouched, so re-loading the same files is a no-op.
    """
    keywords = read_rows(data_dir / KEYWORDS_FILE, KeywordRow)
    students = read_rows(data_dir / STUDENTS_FILE, StudentRow)
    relations = read_rows(data_dir / RELATIONS_FILE, RelationRow)

    summary = LoadSummary()
    try:
        summary.keywords = await _insert_ignore(
            session, Keyword, [{"keyword_id": r.keyword_id, "keyword_text": r.keyword_text} for r in keywords]
        )
        summary.students = await _insert_ignore(
            session, Student, [{"student_id": r.student_id, "student_name": r.resolved_name()} for r in students]
        )
        summary.relations = await _insert_ignore(
            session, StudentKeyword, [r.model_dump() for r in relations]
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreError(f"failed to load {data_dir}: {exc}") from exc

    logger.info(
        "csv_loader.load_directory",
        extra={
            "dir": str(data_dir),
            "keywords": summary.keywords,
            "students": summary.students,
            "relations": summary.relations,
        },
    )
    return summary
