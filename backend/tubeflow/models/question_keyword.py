"""QuestionKeyword model: an imported, scored candidate phrase.

Keywords are unique per (keyword, user_id); a re-import updates the
existing row. Only keywords with overall > 50 are ever stored.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from tubeflow.core.database import Base

# Keywords must score strictly above this to be kept.
MIN_OVERALL_SCORE = 50


class QuestionKeyword(Base):
    """Imported keyword with its quality metrics.

    Attributes:
        id: UUID primary key
        keyword: Phrase text (trimmed)
        competition: 0-100 competition score
        overall: Overall quality score, always > 50
        search_volume: Monthly search volume
        thirty_day_ago_searches: Volume 30 days earlier
        timestamp: Raw timestamp column from the spreadsheet, if any
        number_of_words: Word count reported by the spreadsheet
        added_to_title: True while a Topic spun off from this keyword exists
        user_id: Owner
    """

    __tablename__ = "question_keywords"
    __table_args__ = (
        UniqueConstraint("keyword", "user_id", name="uq_question_keywords_keyword_user"),
        CheckConstraint(f"overall > {MIN_OVERALL_SCORE}", name="ck_question_keywords_overall"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    keyword: Mapped[str] = mapped_column(String(500), nullable=False, index=True)

    competition: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )

    overall: Mapped[float] = mapped_column(Float, nullable=False, index=True)

    search_volume: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    thirty_day_ago_searches: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    timestamp: Mapped[int | None] = mapped_column(Integer, nullable=True)

    number_of_words: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )

    added_to_title: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
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
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<QuestionKeyword(id={self.id!r}, keyword={self.keyword!r}, overall={self.overall!r})>"
