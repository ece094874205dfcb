"""Topic model: one video moving through the production pipeline.

A Topic carries two progress markers:
- status: state of the asynchronous narration-script generation
- level: coarse production stage, forward-only

Legal (level, status) combinations are enforced by
tubeflow.services.topic_state.TopicStage, not by the table.
Claim bookkeeping (claimed_by, claimed_at, attempt_count) belongs to the
generation poller.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from tubeflow.core.database import Base


class TopicStatus(str, Enum):
    """Narration generation status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TopicLevel(str, Enum):
    """Production stage, in pipeline order."""

    SCRIPTING = "scripting"
    TITLE = "title"
    THUMBNAIL = "thumbnail"
    FINISHED = "finished"
    EDITING = "editing"
    UPLOADED = "uploaded"


LEVEL_ORDER: list[TopicLevel] = list(TopicLevel)


class Topic(Base):
    """Topic model.

    Attributes:
        id: UUID primary key
        topic_name: Working name of the video
        description: Free-form notes
        narration_script: Generated or hand-edited narration text
        narration_script_variations: [{prompt, result, generated_at}], capped
        status: TopicStatus value
        level: TopicLevel value
        generated_titles: Latest batch of candidate titles
        title_prompt_variations: [{prompt, titles, generated_at}], capped
        selected_title: Chosen title, editable after selection
        generated_thumbnails: Latest batch of [{index, url}]
        thumbnail_prompt_results: [{prompt, url, generated_at}], capped
        selected_thumbnail: Chosen thumbnail URL
        seo_description / tags / timestamps / audio_url: extra assets,
            written together or not at all
        error_message: Last generation failure
        processed_at: When the narration script was last completed
        user_id: Owner
        source_keyword_id: Keyword this topic was spun off from
        claimed_by / claimed_at / attempt_count: poller claim bookkeeping
    """

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    topic_name: Mapped[str] = mapped_column(String(500), nullable=False)

    description: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )

    narration_script: Mapped[str | None] = mapped_column(Text, nullable=True)

    narration_script_variations: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TopicStatus.PENDING.value,
        server_default=text("'pending'"),
        index=True,
    )

    level: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TopicLevel.SCRIPTING.value,
        server_default=text("'scripting'"),
        index=True,
    )

    generated_titles: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    title_prompt_variations: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    selected_title: Mapped[str | None] = mapped_column(String(500), nullable=True)

    generated_thumbnails: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    thumbnail_prompt_results: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    selected_thumbnail: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    seo_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    tags: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    timestamps: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    audio_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="default-user",
        server_default=text("'default-user'"),
        index=True,
    )

    source_keyword_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("question_keywords.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    claimed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    attempt_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return (
            f"<Topic(id={self.id!r}, topic_name={self.topic_name!r}, "
            f"status={self.status!r}, level={self.level!r})>"
        )
