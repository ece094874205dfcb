"""Unit tests for keyword, idea and topic conversions.

Tests cover:
- Keyword add-to-title / remove-from-title round trip
- Keyword → idea moves the keyword with its metrics
- Idea → keyword restores the keyword, raising a low score to the minimum
- Idea → topic converts at most once
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.models.topic import TopicLevel, TopicStatus
from tubeflow.repositories.keyword import KeywordRepository
from tubeflow.services.conversion import RESTORED_MIN_OVERALL, ConversionService
from tubeflow.services.errors import ConflictError, NotFoundError
from tubeflow.services.idea import IdeaService
from tubeflow.services.keyword import KeywordService
from tubeflow.services.topic import TopicService


@pytest.fixture
def service(db_session: AsyncSession) -> ConversionService:
    return ConversionService(db_session)


async def make_keyword(session: AsyncSession, text: str = "bar", **fields):
    return await KeywordRepository(session).create(
        keyword=text,
        overall=fields.pop("overall", 75),
        competition=fields.pop("competition", 30),
        search_volume=fields.pop("search_volume", 900),
        **fields,
    )


class TestKeywordToTitle:
    """Keyword add-to-title and remove-from-title."""

    @pytest.mark.asyncio
    async def test_add_then_remove(self, db_session: AsyncSession, service: ConversionService) -> None:
        keyword = await make_keyword(db_session)

        topic = await service.add_keyword_to_title(keyword.id)

        assert topic.topic_name == "bar"
        assert topic.source_keyword_id == keyword.id
        assert topic.level == TopicLevel.SCRIPTING.value
        assert topic.status == TopicStatus.PENDING.value
        stored = await KeywordService(db_session).get_keyword(keyword.id)
        await db_session.refresh(stored)
        assert stored.added_to_title is True

        removal = await service.remove_keyword_from_title(keyword.id)

        assert removal.deleted_topic_ids == [topic.id]
        assert removal.keyword.added_to_title is False
        with pytest.raises(NotFoundError):
            await TopicService(db_session).get_topic(topic.id)

    @pytest.mark.asyncio
    async def test_add_twice_conflicts(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        keyword = await make_keyword(db_session)
        await service.add_keyword_to_title(keyword.id)

        with pytest.raises(ConflictError):
            await service.add_keyword_to_title(keyword.id)

        assert len(await TopicService(db_session).list_topics()) == 1

    @pytest.mark.asyncio
    async def test_remove_falls_back_to_name(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        keyword = await make_keyword(db_session, added_to_title=True)
        topic = await TopicService(db_session).create_topic("bar")

        removal = await service.remove_keyword_from_title(keyword.id)

        assert removal.deleted_topic_ids == [topic.id]

    @pytest.mark.asyncio
    async def test_remove_without_topic_clears_flag(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        keyword = await make_keyword(db_session, added_to_title=True)

        removal = await service.remove_keyword_from_title(keyword.id)

        assert removal.deleted_topic_ids == []
        assert removal.keyword.added_to_title is False

    @pytest.mark.asyncio
    async def test_unknown_keyword(self, service: ConversionService) -> None:
        with pytest.raises(NotFoundError):
            await service.add_keyword_to_title("00000000-0000-0000-0000-000000000000")


class TestKeywordIdeaRoundTrip:
    """Keyword → idea → keyword."""

    @pytest.mark.asyncio
    async def test_keyword_moves_to_ideas(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        keyword = await make_keyword(db_session, "owl facts", overall=82, search_volume=400)

        idea = await service.add_keyword_to_ideas(keyword.id)

        assert idea.title == "owl facts"
        assert idea.overall == 82
        assert idea.search_volume == 400
        with pytest.raises(NotFoundError):
            await KeywordService(db_session).get_keyword(keyword.id)

    @pytest.mark.asyncio
    async def test_idea_restored_as_keyword(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        keyword = await make_keyword(db_session, "owl facts", overall=82)
        idea = await service.add_keyword_to_ideas(keyword.id)

        restored = await service.remove_idea_to_keywords(idea.id)

        assert restored.keyword == "owl facts"
        assert restored.overall == 82
        assert restored.added_to_title is False
        with pytest.raises(NotFoundError):
            await IdeaService(db_session).get_idea(idea.id)

    @pytest.mark.asyncio
    async def test_low_score_raised_to_minimum(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        idea = await IdeaService(db_session).create_idea("hand written idea")

        restored = await service.remove_idea_to_keywords(idea.id)

        assert restored.overall == RESTORED_MIN_OVERALL

    @pytest.mark.asyncio
    async def test_restore_updates_reimported_keyword(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        existing = await make_keyword(db_session, "owl facts", overall=60)
        idea = await IdeaService(db_session).create_idea(
            "owl facts", metrics={"overall": 90}
        )

        restored = await service.remove_idea_to_keywords(idea.id)

        assert restored.id == existing.id
        assert restored.overall == 90


class TestIdeaToTopic:
    """Idea → topic conversion."""

    @pytest.mark.asyncio
    async def test_convert_uses_idea_title(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        idea = await IdeaService(db_session).create_idea("Owl facts", "Night birds")

        result = await service.convert_idea_to_topic(idea.id)

        assert result.topic.topic_name == "Owl facts"
        assert result.topic.description == "Night birds"
        assert result.topic.status == TopicStatus.PENDING.value
        assert result.idea.converted_to_topic is True

    @pytest.mark.asyncio
    async def test_convert_with_overrides(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        idea = await IdeaService(db_session).create_idea("Owl facts", "Night birds")

        result = await service.convert_idea_to_topic(idea.id, "Owls: the full story", "")

        assert result.topic.topic_name == "Owls: the full story"
        assert result.topic.description == ""

    @pytest.mark.asyncio
    async def test_convert_twice_conflicts(
        self, db_session: AsyncSession, service: ConversionService
    ) -> None:
        idea = await IdeaService(db_session).create_idea("Owl facts")
        await service.convert_idea_to_topic(idea.id)

        with pytest.raises(ConflictError):
            await service.convert_idea_to_topic(idea.id)

        assert len(await TopicService(db_session).list_topics()) == 1
