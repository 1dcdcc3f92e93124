"""Create keywords, students and student_keywords_relations

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector

from kwsearch.config import settings
from kwsearch.db.distance import DistanceMetric

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_DIM = settings.openai_embedding_dimensions
_OPCLASS = DistanceMetric(settings.distance_metric).opclass


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")
    op.create_table(
        "keywords",
        sa.Column("keyword_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("keyword_text", sa.Text, nullable=False),
        sa.Column("embedding", Vector(_DIM), nullable=True),
    )
    op.create_table(
        "students",
        sa.Column("student_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("student_name", sa.Text, nullable=False),
        sa.Column("keyword_list_embedding", Vector(_DIM), nullable=True),
    )
    op.create_table(
        "student_keywords_relations",
        sa.Column(
            "student_id",
            sa.Integer,
            sa.ForeignKey("students.student_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "keyword_id",
            sa.Integer,
            sa.ForeignKey("keywords.keyword_id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index(
        "idx_keywords_embedding",
        "keywords",
        ["embedding"],
        postgresql_using="hnsw",
        postgresql_ops={"embedding": _OPCLASS},
    )
    op.create_index(
        "idx_students_keyword_list_embedding",
        "students",
        ["keyword_list_embedding"],
        postgresql_using="hnsw",
        postgresql_ops={"keyword_list_embedding": _OPCLASS},
    )
    op.create_index(
        "idx_student_keywords_relations_keyword_id",
        "student_keywords_relations",
        ["keyword_id"],
    )


def downgrade() -> None:
    op.drop_table("student_keywords_relations")
    op.drop_table("students")
    op.drop_table("keywords")
