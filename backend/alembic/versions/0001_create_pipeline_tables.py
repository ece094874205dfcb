"""Create question_keywords, topics and ideas tables.

Revision ID: 0001
Revises: None
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _json_list(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(astext_type=sa.Text()),
        server_default=sa.text("'[]'::jsonb"),
        nullable=False,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _user_id() -> sa.Column:
    return sa.Column(
        "user_id",
        sa.String(length=255),
        server_default=sa.text("'default-user'"),
        nullable=False,
    )


def upgrade() -> None:
    """Create the three pipeline tables."""
    op.create_table(
        "question_keywords",
        _uuid_pk(),
        sa.Column("keyword", sa.String(length=500), nullable=False),
        sa.Column("competition", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("overall", sa.Float(), nullable=False),
        sa.Column("search_volume", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "thirty_day_ago_searches", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("timestamp", sa.Integer(), nullable=True),
        sa.Column("number_of_words", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column(
            "added_to_title", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        _user_id(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("keyword", "user_id", name="uq_question_keywords_keyword_user"),
        sa.CheckConstraint("overall > 50", name="ck_question_keywords_overall"),
    )
    op.create_index(
        op.f("ix_question_keywords_keyword"), "question_keywords", ["keyword"], unique=False
    )
    op.create_index(
        op.f("ix_question_keywords_overall"), "question_keywords", ["overall"], unique=False
    )
    op.create_index(
        op.f("ix_question_keywords_user_id"), "question_keywords", ["user_id"], unique=False
    )

    op.create_table(
        "topics",
        _uuid_pk(),
        sa.Column("topic_name", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("narration_script", sa.Text(), nullable=True),
        _json_list("narration_script_variations"),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("level", sa.String(length=20), server_default=sa.text("'scripting'"), nullable=False),
        _json_list("generated_titles"),
        _json_list("title_prompt_variations"),
        sa.Column("selected_title", sa.String(length=500), nullable=True),
        _json_list("generated_thumbnails"),
        _json_list("thumbnail_prompt_results"),
        sa.Column("selected_thumbnail", sa.String(length=2048), nullable=True),
        sa.Column("seo_description", sa.Text(), nullable=True),
        _json_list("tags"),
        _json_list("timestamps"),
        sa.Column("audio_url", sa.String(length=2048), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        _user_id(),
        sa.Column("source_keyword_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("claimed_by", sa.String(length=100), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attempt_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["source_keyword_id"], ["question_keywords.id"], ondelete="SET NULL"
        ),
    )
    for column in ("status", "level", "user_id", "source_keyword_id", "created_at"):
        op.create_index(op.f(f"ix_topics_{column}"), "topics", [column], unique=False)

    op.create_table(
        "ideas",
        _uuid_pk(),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("competition", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("overall", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("search_volume", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "thirty_day_ago_searches", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("number_of_words", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column(
            "converted_to_topic", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        _user_id(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("converted_to_topic", "user_id", "created_at"):
        op.create_index(op.f(f"ix_ideas_{column}"), "ideas", [column], unique=False)


def downgrade() -> None:
    """Drop the pipeline tables."""
    op.drop_table("ideas")
    op.drop_table("topics")
    op.drop_table("question_keywords")
