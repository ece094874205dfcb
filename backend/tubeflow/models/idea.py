"""Idea model: a curated video idea, convertible once into a Topic."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from tubeflow.core.database import Base


class Idea(Base):
    """Idea model.

    Metrics are copied from the keyword the idea was promoted from, if any.
    converted_to_topic is a one-way latch.
    """

    __tablename__ = "ideas"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)

    description: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )

    competition: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )

    overall: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )

    search_volume: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    thirty_day_ago_searches: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    number_of_words: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )

    converted_to_topic: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="default-user",
        server_default=text("'default-user'"),
        index=True,
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
        return f"<Idea(id={self.id!r}, title={self.title!r}, converted={self.converted_to_topic!r})>"
