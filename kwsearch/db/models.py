from __future__ import annotations

from pgvector.sqlalchemy import Vector
from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from kwsearch.config import settings

EMBEDDING_DIM = settings.openai_embedding_dimensions


class Base(DeclarativeBase):
    pass


class Keyword(Base):
    __tablename__ = "keywords"

    keyword_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    keyword_text: Mapped[str] = mapped_column(Text, nullable=False)
    # NULL until the synchronizer has embedded keyword_text
    embedding: Mapped[list[float] | None] = mapped_column(Vector(EMBEDDING_DIM), nullable=True)


class Student(Base):
    __tablename__ = "students"

    student_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    student_name: Mapped[str] = mapped_column(Text, nullable=False)
    # Embedding of the space-joined text of every related keyword, not an
    # average of the keyword vectors.
    keyword_list_embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIM), nullable=True
    )


class StudentKeyword(Base):
    __tablename__ = "student_keywords_relations"

    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("students.student_id", ondelete="CASCADE"),
        primary_key=True,
    )
    keyword_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("keywords.keyword_id", ondelete="CASCADE"),
        primary_key=True,
    )
