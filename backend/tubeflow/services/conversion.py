"""Conversions between keywords, ideas and topics.

Each conversion runs in the caller's session, so the source mutation and the
target creation are committed (or rolled back) together. Flags that must not
be flipped twice (keyword added_to_title, idea converted_to_topic) are set
with conditional updates; losing that race raises ConflictError.

ERROR LOGGING REQUIREMENTS:
- Log every conversion at INFO level with source and target ids
- Log conflicts at WARNING level
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.logging import get_logger
from tubeflow.models.idea import Idea
from tubeflow.models.question_keyword import MIN_OVERALL_SCORE, QuestionKeyword
from tubeflow.models.topic import Topic
from tubeflow.repositories.idea import IdeaRepository
from tubeflow.repositories.keyword import KeywordRepository
from tubeflow.repositories.topic import TopicRepository
from tubeflow.services.errors import ConflictError
from tubeflow.services.idea import METRIC_FIELDS, IdeaService
from tubeflow.services.keyword import KeywordService
from tubeflow.services.topic import TopicService

logger = get_logger(__name__)

# Score given to a restored keyword whose idea carried no usable overall.
RESTORED_MIN_OVERALL = MIN_OVERALL_SCORE + 1


@dataclass
class TitleRemoval:
    keyword: QuestionKeyword
    deleted_topic_ids: list[str]


@dataclass
class IdeaConversion:
    idea: Idea
    topic: Topic


class ConversionService:
    """Keyword → Topic, Keyword ⇄ Idea and Idea → Topic conversions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.keyword_repo = KeywordRepository(session)
        self.idea_repo = IdeaRepository(session)
        self.topic_repo = TopicRepository(session)
        self.keywords = KeywordService(session)
        self.ideas = IdeaService(session)
        self.topics = TopicService(session)

    async def add_keyword_to_title(self, keyword_id: str) -> Topic:
        """Spin a topic off a keyword and flag the keyword."""
        keyword = await self.keywords.get_keyword(keyword_id)
        if not await self.keyword_repo.set_added_to_title(keyword_id, True):
            logger.warning(
                "Keyword already added to title", extra={"keyword_id": keyword_id}
            )
            raise ConflictError("Keyword has already been added to a title")

        topic = await self.topics.create_topic(
            keyword.keyword,
            user_id=keyword.user_id,
            source_keyword_id=keyword.id,
        )
        logger.info(
            "Keyword added to title",
            extra={"keyword_id": keyword_id, "topic_id": topic.id},
        )
        return topic

    async def remove_keyword_from_title(self, keyword_id: str) -> TitleRemoval:
        """Delete the topic spun off a keyword and clear the flag.

        A missing topic is not an error; the flag is cleared regardless.
        """
        keyword = await self.keywords.get_keyword(keyword_id)
        topics = await self.topic_repo.find_by_source_keyword(keyword_id)
        if not topics:
            fallback = await self.topic_repo.find_unlinked_by_name(
                keyword.keyword, keyword.user_id
            )
            topics = [fallback] if fallback is not None else []

        deleted = []
        for topic in topics:
            if await self.topic_repo.delete(topic.id):
                deleted.append(topic.id)

        await self.keyword_repo.set_added_to_title(keyword_id, False)
        await self.session.refresh(keyword)
        logger.info(
            "Keyword removed from title",
            extra={"keyword_id": keyword_id, "deleted_topic_ids": deleted},
        )
        return TitleRemoval(keyword=keyword, deleted_topic_ids=deleted)

    async def add_keyword_to_ideas(self, keyword_id: str) -> Idea:
        """Move a keyword into the idea list; the keyword row is deleted."""
        keyword = await self.keywords.get_keyword(keyword_id)
        idea = await self.ideas.create_idea(
            keyword.keyword,
            description="",
            user_id=keyword.user_id,
            metrics={name: getattr(keyword, name) for name in METRIC_FIELDS},
        )
        await self.keyword_repo.delete(keyword_id)
        logger.info(
            "Keyword moved to ideas",
            extra={"keyword_id": keyword_id, "idea_id": idea.id},
        )
        return idea

    async def remove_idea_to_keywords(self, idea_id: str) -> QuestionKeyword:
        """Restore an idea as a keyword and delete the idea.

        Timestamp and added_to_title history are not carried by ideas and
        are not restored. If the keyword was re-imported meanwhile the
        existing row is updated instead.
        """
        idea = await self.ideas.get_idea(idea_id)
        metrics = {name: getattr(idea, name) for name in METRIC_FIELDS}
        if not metrics["overall"] or metrics["overall"] <= MIN_OVERALL_SCORE:
            metrics["overall"] = RESTORED_MIN_OVERALL

        existing = await self.keyword_repo.get_by_keyword(idea.title, idea.user_id)
        if existing is not None:
            keyword = await self.keyword_repo.update(existing, metrics)
        else:
            keyword = await self.keyword_repo.create(
                keyword=idea.title,
                user_id=idea.user_id,
                added_to_title=False,
                **metrics,
            )
        await self.idea_repo.delete(idea_id)
        logger.info(
            "Idea restored as keyword",
            extra={
                "idea_id": idea_id,
                "keyword_id": keyword.id,
                "updated_existing": existing is not None,
            },
        )
        return keyword

    async def convert_idea_to_topic(
        self,
        idea_id: str,
        topic_name: str | None = None,
        description: str | None = None,
    ) -> IdeaConversion:
        """Create a topic from an idea; each idea converts at most once."""
        idea = await self.ideas.get_idea(idea_id)
        if not await self.idea_repo.mark_converted(idea_id):
            logger.warning("Idea already converted", extra={"idea_id": idea_id})
            raise ConflictError("Idea has already been converted to a topic")

        name = topic_name.strip() if topic_name and topic_name.strip() else idea.title
        topic = await self.topics.create_topic(
            name,
            description=description if description is not None else idea.description,
            user_id=idea.user_id,
        )
        idea = await self.ideas.get_idea(idea_id)
        logger.info(
            "Idea converted to topic",
            extra={"idea_id": idea_id, "topic_id": topic.id},
        )
        return IdeaConversion(idea=idea, topic=topic)
