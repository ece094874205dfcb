"""Topic lifecycle service.

The only legitimate mutator of a topic's generation fields. Every write is
a conditional update that expects the (level, status) the operation was
planned against; if another request moved the topic in the meantime the
write does not apply and ConflictError is raised.

Stage rules live in tubeflow.services.topic_state; this module adds the
field preconditions (script present, title selected, ...) and talks to the
asset generation façade.

ERROR LOGGING REQUIREMENTS:
- Log method entry at DEBUG level with topic_id
- Log every level/status transition at INFO level
- Log validation and precondition failures at WARNING level
- Log unexpected exceptions with full stack trace
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger
from tubeflow.models.topic import Topic, TopicLevel, TopicStatus
from tubeflow.repositories.topic import TopicRepository
from tubeflow.services.asset_generation import AssetGenerator, now_iso
from tubeflow.services.errors import (
    ConflictError,
    GenerationError,
    NotFoundError,
    PreconditionFailedError,
    ServiceError,
    ValidationError,
)
from tubeflow.services.generation_poller import GenerationPoller, append_capped
from tubeflow.services.topic_state import TopicStage

logger = get_logger(__name__)

EXTRA_ASSET_FIELDS = ("seo_description", "tags", "timestamps", "audio_url")


def _required_text(field: str, value: str | None, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        logger.warning("Validation failed", extra={"field": field, "reason": message})
        raise ValidationError(field, value, message)
    return cleaned


class TopicService:
    """Topic lifecycle operations for one request."""

    def __init__(
        self,
        session: AsyncSession,
        assets: AssetGenerator | None = None,
        poller: GenerationPoller | None = None,
    ) -> None:
        self.session = session
        self.repo = TopicRepository(session)
        self.assets = assets
        self.poller = poller
        self._history_limit = get_settings().variation_history_limit

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_topic(self, topic_id: str) -> Topic:
        topic = await self.repo.get_by_id(topic_id, refresh=True)
        if topic is None:
            raise NotFoundError("Topic", topic_id)
        return topic

    async def list_topics(self, user_id: str | None = None) -> list[Topic]:
        return await self.repo.list_all(user_id)

    async def status_stats(self, user_id: str | None = None) -> dict[str, Any]:
        """Counts per status (every status present) and per level."""
        by_status = await self.repo.count_by("status", user_id)
        by_level = await self.repo.count_by("level", user_id)
        return {
            "status": {s.value: by_status.get(s.value, 0) for s in TopicStatus},
            "level": {lv.value: by_level.get(lv.value, 0) for lv in TopicLevel},
            "total": sum(by_status.values()),
        }

    # ------------------------------------------------------------------
    # Creation / deletion
    # ------------------------------------------------------------------

    async def create_topic(
        self,
        topic_name: str | None,
        description: str | None = None,
        user_id: str | None = None,
        source_keyword_id: str | None = None,
    ) -> Topic:
        """New topic in scripting/pending, picked up by the next poller pass."""
        name = _required_text("topic_name", topic_name, "Topic name is required")
        stage = TopicStage.initial()
        topic = await self.repo.create(
            topic_name=name,
            description=(description or "").strip(),
            user_id=user_id or get_settings().default_user_id,
            source_keyword_id=source_keyword_id,
            **stage.as_values(),
        )
        logger.info(
            "Topic created",
            extra={"topic_id": topic.id, "topic_name": name, "stage": stage.name},
        )
        return topic

    async def delete_topic(self, topic_id: str) -> None:
        """Hard delete. Stored thumbnails and audio are left in storage."""
        if not await self.repo.delete(topic_id):
            raise NotFoundError("Topic", topic_id)
        logger.info("Topic deleted", extra={"topic_id": topic_id})

    # ------------------------------------------------------------------
    # Narration script
    # ------------------------------------------------------------------

    async def generate_script(self, topic_id: str) -> Topic:
        """Generate the narration script of a pending topic.

        Generation failures are recorded on the topic (status failed,
        error_message) and never raised.
        """
        await self.get_topic(topic_id)
        poller = self._require_poller()
        outcome = await poller.process_topic(topic_id)
        logger.debug("Script generation finished", extra={"topic_id": topic_id, "outcome": outcome})
        return await self.get_topic(topic_id)

    async def regenerate_script(self, topic_id: str) -> Topic:
        """Discard the script and generate a new one right away.

        The topic returns to scripting/pending; downstream selections stay
        as data but the topic has to advance through the stages again.
        """
        topic = await self.get_topic(topic_id)
        stage = TopicStage.of(topic)
        new_stage = stage.restart_scripting()
        await self._apply(
            topic,
            stage,
            {
                **new_stage.as_values(),
                "narration_script": None,
                "error_message": None,
                "attempt_count": 0,
                "claimed_by": None,
                "claimed_at": None,
            },
        )
        self._log_transition(topic_id, "regenerate_script", stage, new_stage)

        # The pass runs in its own sessions and must see the reset.
        await self.session.commit()
        if self.poller is not None:
            await self.poller.process_now()
        return await self.get_topic(topic_id)

    async def update_script(self, topic_id: str, text: str | None) -> Topic:
        """Manual script override; marks the script completed."""
        script = _required_text("narration_script", text, "Narration script is required")
        topic = await self.get_topic(topic_id)
        stage = TopicStage.of(topic)
        new_stage = stage.complete_script()
        await self._apply(
            topic,
            stage,
            {
                **new_stage.as_values(),
                "narration_script": script,
                "processed_at": datetime.now(UTC),
                "error_message": None,
                "claimed_by": None,
                "claimed_at": None,
            },
        )
        self._log_transition(topic_id, "update_script", stage, new_stage)
        return await self.get_topic(topic_id)

    # ------------------------------------------------------------------
    # Titles
    # ------------------------------------------------------------------

    async def generate_titles(self, topic_id: str) -> Topic:
        topic = await self.get_topic(topic_id)
        self._require_script(topic)
        stage = TopicStage.of(topic)
        new_stage = stage.advance_to(TopicLevel.TITLE)

        generated = await self._require_assets().generate_titles(
            topic.topic_name, topic.narration_script or "", topic.description
        )
        audit = {
            "prompt": generated.prompt,
            "titles": generated.titles,
            "generated_at": now_iso(),
        }
        await self._apply(
            topic,
            stage,
            {
                **new_stage.as_values(),
                "generated_titles": generated.titles,
                "title_prompt_variations": append_capped(
                    topic.title_prompt_variations, audit, self._history_limit
                ),
            },
        )
        self._log_transition(topic_id, "generate_titles", stage, new_stage)
        return await self.get_topic(topic_id)

    async def select_title(self, topic_id: str, title: str | None) -> Topic:
        selected = _required_text("title", title, "Title is required")
        topic = await self.get_topic(topic_id)
        self._require_script(topic)
        stage = TopicStage.of(topic)
        new_stage = stage.advance_to(TopicLevel.THUMBNAIL)
        await self._apply(
            topic, stage, {**new_stage.as_values(), "selected_title": selected}
        )
        self._log_transition(topic_id, "select_title", stage, new_stage)
        return await self.get_topic(topic_id)

    async def update_title(self, topic_id: str, title: str | None) -> Topic:
        """Edit the selected title without touching the level."""
        updated = _required_text("title", title, "Title is required")
        topic = await self.get_topic(topic_id)
        if not topic.selected_title:
            raise PreconditionFailedError("No title has been selected yet")
        stage = TopicStage.of(topic)
        await self._apply(topic, stage, {"selected_title": updated})
        logger.info("Selected title updated", extra={"topic_id": topic_id})
        return await self.get_topic(topic_id)

    # ------------------------------------------------------------------
    # Thumbnails
    # ------------------------------------------------------------------

    async def generate_thumbnails(self, topic_id: str) -> Topic:
        topic = await self.get_topic(topic_id)
        self._require_script(topic)
        self._require_title(topic)
        stage = TopicStage.of(topic)
        new_stage = stage.advance_to(TopicLevel.THUMBNAIL)

        batch = await self._require_assets().generate_thumbnails(
            topic.topic_name, topic.selected_title or ""
        )
        history = list(topic.thumbnail_prompt_results or [])
        generated_at = now_iso()
        for thumb in batch.thumbnails:
            history = append_capped(
                history,
                {"prompt": thumb.prompt, "url": thumb.url, "generated_at": generated_at},
                self._history_limit,
            )
        await self._apply(
            topic,
            stage,
            {
                **new_stage.as_values(),
                "generated_thumbnails": [
                    {"index": thumb.index, "url": thumb.url} for thumb in batch.thumbnails
                ],
                "thumbnail_prompt_results": history,
            },
        )
        logger.info(
            "Thumbnails generated",
            extra={
                "topic_id": topic_id,
                "generated": len(batch.thumbnails),
                "skipped": batch.failed_indexes,
            },
        )
        self._log_transition(topic_id, "generate_thumbnails", stage, new_stage)
        return await self.get_topic(topic_id)

    async def select_thumbnail(self, topic_id: str, url: str | None) -> Topic:
        thumbnail = _required_text("thumbnail_url", url, "Thumbnail URL is required")
        topic = await self.get_topic(topic_id)
        self._require_title(topic)
        stage = TopicStage.of(topic)
        new_stage = stage.advance_to(TopicLevel.FINISHED)
        await self._apply(
            topic, stage, {**new_stage.as_values(), "selected_thumbnail": thumbnail}
        )
        self._log_transition(topic_id, "select_thumbnail", stage, new_stage)
        return await self.get_topic(topic_id)

    # ------------------------------------------------------------------
    # Extra assets
    # ------------------------------------------------------------------

    async def generate_extra_assets(self, topic_id: str) -> Topic:
        """SEO description, tags, timestamps and audio, all or nothing.

        The four calls run concurrently. If any fails nothing is written and
        an audio file that was already uploaded is removed again.
        """
        topic = await self.get_topic(topic_id)
        self._require_script(topic)
        self._require_title(topic)
        stage = TopicStage.of(topic)
        assets = self._require_assets()
        script = topic.narration_script or ""

        results = await asyncio.gather(
            assets.generate_seo_description(topic.topic_name, script),
            assets.generate_tags(topic.topic_name, script, topic.selected_title or ""),
            assets.generate_timestamps(script),
            assets.generate_audio(script, topic.id),
            return_exceptions=True,
        )
        failures = {
            name: result
            for name, result in zip(EXTRA_ASSET_FIELDS, results, strict=True)
            if isinstance(result, BaseException)
        }
        if failures:
            audio = results[3]
            if isinstance(audio, str):
                await assets.discard(audio)
            for name, error in failures.items():
                logger.error(
                    "Extra asset generation failed",
                    extra={
                        "topic_id": topic_id,
                        "asset": name,
                        "error_type": type(error).__name__,
                        "error_message": str(error),
                    },
                )
            for error in failures.values():
                if not isinstance(error, Exception):
                    raise error
            detail = "; ".join(f"{name}: {error}" for name, error in failures.items())
            raise GenerationError(
                "generate_extra_assets", f"Failed to generate extra assets ({detail})"
            )

        values = dict(zip(EXTRA_ASSET_FIELDS, results, strict=True))
        try:
            await self._apply(topic, stage, values)
        except ServiceError:
            await assets.discard(values["audio_url"])
            raise
        logger.info(
            "Extra assets generated",
            extra={"topic_id": topic_id, "tag_count": len(values["tags"])},
        )
        return await self.get_topic(topic_id)

    # ------------------------------------------------------------------
    # Editing / upload
    # ------------------------------------------------------------------

    async def mark_as_editing(self, topic_id: str) -> Topic:
        topic = await self.get_topic(topic_id)
        stage = TopicStage.of(topic)
        if not (topic.seo_description and topic.audio_url):
            raise PreconditionFailedError(
                "SEO description and audio must be generated before editing"
            )
        if stage.level != TopicLevel.FINISHED:
            raise PreconditionFailedError(
                f"Topic must be at level 'finished' to start editing (is '{stage.level.value}')"
            )
        new_stage = stage.advance_to(TopicLevel.EDITING)
        await self._apply(topic, stage, new_stage.as_values())
        self._log_transition(topic_id, "mark_as_editing", stage, new_stage)
        return await self.get_topic(topic_id)

    async def mark_as_uploaded(self, topic_id: str) -> Topic:
        topic = await self.get_topic(topic_id)
        stage = TopicStage.of(topic)
        if stage.level != TopicLevel.EDITING:
            raise PreconditionFailedError(
                f"Topic must be at level 'editing' to be uploaded (is '{stage.level.value}')"
            )
        new_stage = stage.advance_to(TopicLevel.UPLOADED)
        await self._apply(topic, stage, new_stage.as_values())
        self._log_transition(topic_id, "mark_as_uploaded", stage, new_stage)
        return await self.get_topic(topic_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _apply(self, topic: Topic, stage: TopicStage, values: dict[str, Any]) -> None:
        """Write `values` only if the topic is still at `stage`."""
        updated = await self.repo.update_fields(
            topic.id,
            {**values, "updated_at": datetime.now(UTC)},
            expected=stage.as_values(),
        )
        if not updated:
            logger.warning(
                "Topic changed concurrently, update not applied",
                extra={"topic_id": topic.id, "expected_stage": stage.name},
            )
            raise ConflictError("Topic was modified by another request, please retry")

    def _require_script(self, topic: Topic) -> None:
        if not topic.narration_script:
            logger.warning("Precondition failed: no script", extra={"topic_id": topic.id})
            raise PreconditionFailedError("Narration script not generated yet")

    def _require_title(self, topic: Topic) -> None:
        if not topic.selected_title:
            logger.warning("Precondition failed: no title", extra={"topic_id": topic.id})
            raise PreconditionFailedError("Title not selected yet")

    def _require_assets(self) -> AssetGenerator:
        if self.assets is None:
            raise GenerationError("assets", "Asset generation is not available")
        return self.assets

    def _require_poller(self) -> GenerationPoller:
        if self.poller is None:
            raise GenerationError("generate_script", "Generation poller is not available")
        return self.poller

    @staticmethod
    def _log_transition(
        topic_id: str, operation: str, before: TopicStage, after: TopicStage
    ) -> None:
        logger.info(
            "Topic stage transition",
            extra={
                "topic_id": topic_id,
                "operation": operation,
                "from_stage": before.name,
                "to_stage": after.name,
            },
        )
