"""Generation poller: drives narration scripts for pending topics.

Each pass:
1. Recover stale claims: topics left in `processing` longer than the claim
   timeout go back to `pending`, or to `failed` once they used up their
   attempts.
2. Pick up to `batch_size` pending topics (oldest first).
3. Process them one at a time: claim, generate, record the outcome.

A claim is a conditional UPDATE from `pending` to `processing` that stamps
the runner id; if it touches no row another runner owns the topic and it
is skipped. Every step commits in its own short session and no session is
open while the generation call runs. Writing the outcome is again
conditional on still owning the claim, so a topic that was reset in the
meantime is left alone.

ERROR LOGGING REQUIREMENTS:
- Log each pass with its counts and duration
- Log every claim, lost claim, success and failure with the topic id
- Log stale-claim recovery at WARNING level
- One item's failure must never abort the batch
"""

import os
import socket
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger, poller_logger
from tubeflow.models.topic import TopicStatus
from tubeflow.repositories.topic import TopicRepository
from tubeflow.services.asset_generation import AssetGenerator, now_iso

logger = get_logger(__name__)

POLLER_JOB_ID = "generation_poller"

AssetGeneratorFactory = Callable[[], Awaitable[AssetGenerator]]


@dataclass
class PollerRunResult:
    """Counts for one poller pass."""

    trigger: str
    runner_id: str
    candidates: int = 0
    claimed: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    reclaimed: int = 0
    topic_ids: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "runner_id": self.runner_id,
            "candidates": self.candidates,
            "claimed": self.claimed,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "reclaimed": self.reclaimed,
            "topic_ids": self.topic_ids,
            "duration_ms": round(self.duration_ms, 2),
        }


def append_capped(history: list[Any] | None, entry: Any, limit: int) -> list[Any]:
    """Append to a history list, keeping only the newest `limit` entries."""
    entries = [*(history or []), entry]
    return entries[-limit:] if limit > 0 else entries


def new_runner_id() -> str:
    """Unique claimant id: host, pid and a random suffix per pass."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"


class GenerationPoller:
    """Claims pending topics and generates their narration scripts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        asset_factory: AssetGeneratorFactory,
        batch_size: int | None = None,
        claim_timeout_seconds: int | None = None,
        max_attempts: int | None = None,
        history_limit: int | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._asset_factory = asset_factory
        self._batch_size = batch_size or settings.poller_batch_size
        self._claim_timeout = claim_timeout_seconds or settings.poller_claim_timeout_seconds
        self._max_attempts = max_attempts or settings.poller_max_attempts
        self._history_limit = history_limit or settings.variation_history_limit

    async def run_tick(self) -> dict[str, Any]:
        """Scheduled entry point."""
        result = await self._run_pass("timer")
        return result.to_dict()

    async def process_now(self) -> PollerRunResult:
        """One full pass outside the timer; safe to run next to a timer pass."""
        return await self._run_pass("manual")

    async def process_topic(self, topic_id: str) -> str:
        """Claim and process a single topic; returns the outcome name."""
        assets = await self._asset_factory()
        return await self._process_one(topic_id, new_runner_id(), assets)

    async def _run_pass(self, trigger: str) -> PollerRunResult:
        runner_id = new_runner_id()
        result = PollerRunResult(trigger=trigger, runner_id=runner_id)
        start_time = time.monotonic()
        poller_logger.pass_start(runner_id, trigger)

        result.reclaimed = await self.reclaim_stale()

        async with self._session_factory() as session:
            topic_ids = await TopicRepository(session).list_pending_ids(self._batch_size)
        result.candidates = len(topic_ids)

        if not topic_ids:
            poller_logger.nothing_pending(runner_id)
        else:
            assets = await self._asset_factory()
            for topic_id in topic_ids:
                item_start = time.monotonic()
                try:
                    outcome = await self._process_one(topic_id, runner_id, assets)
                except Exception as e:
                    # A claimed topic left in processing is recovered by reclaim_stale
                    poller_logger.item_failed(
                        runner_id,
                        topic_id,
                        str(e),
                        type(e).__name__,
                        (time.monotonic() - item_start) * 1000,
                    )
                    outcome = "failed"
                if outcome == "skipped":
                    result.skipped += 1
                    continue
                result.claimed += 1
                result.topic_ids.append(topic_id)
                if outcome == "completed":
                    result.completed += 1
                else:
                    result.failed += 1

        result.duration_ms = (time.monotonic() - start_time) * 1000
        poller_logger.pass_complete(
            runner_id,
            trigger,
            candidates=result.candidates,
            completed=result.completed,
            failed=result.failed,
            skipped=result.skipped,
            reclaimed=result.reclaimed,
            duration_ms=result.duration_ms,
        )
        return result

    async def _process_one(
        self, topic_id: str, runner_id: str, assets: AssetGenerator
    ) -> str:
        """Claim, generate, record. Returns completed, failed or skipped."""
        async with self._session_factory() as session:
            repo = TopicRepository(session)
            claimed = await repo.claim(topic_id, runner_id, datetime.now(UTC))
            await session.commit()
            if not claimed:
                poller_logger.claim_lost(runner_id, topic_id)
                return "skipped"
            topic = await repo.get_by_id(topic_id, refresh=True)
            if topic is None:
                return "skipped"
            topic_name, description = topic.topic_name, topic.description

        poller_logger.claimed(runner_id, topic_id, topic_name)
        start_time = time.monotonic()

        try:
            generated = await assets.generate_narration_script(topic_name, description)
        except Exception as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            poller_logger.item_failed(
                runner_id, topic_id, str(e), type(e).__name__, duration_ms
            )
            await self._record(
                topic_id,
                runner_id,
                {
                    "status": TopicStatus.FAILED.value,
                    "error_message": str(e) or type(e).__name__,
                },
            )
            return "failed"

        duration_ms = (time.monotonic() - start_time) * 1000
        recorded = await self._record(
            topic_id,
            runner_id,
            {
                "status": TopicStatus.COMPLETED.value,
                "narration_script": generated.script,
                "processed_at": datetime.now(UTC),
                "error_message": None,
            },
            variation={
                "prompt": generated.prompt,
                "result": generated.script,
                "generated_at": now_iso(),
            },
        )
        if not recorded:
            return "skipped"
        poller_logger.item_completed(runner_id, topic_id, len(generated.script), duration_ms)
        return "completed"

    async def _record(
        self,
        topic_id: str,
        runner_id: str,
        values: dict[str, Any],
        variation: dict[str, Any] | None = None,
    ) -> bool:
        """Write an outcome if this runner still owns the claim."""
        async with self._session_factory() as session:
            repo = TopicRepository(session)
            if variation is not None:
                topic = await repo.get_by_id(topic_id, refresh=True)
                if topic is None:
                    return False
                values["narration_script_variations"] = append_capped(
                    topic.narration_script_variations, variation, self._history_limit
                )
            updated = await repo.update_fields(
                topic_id,
                {**values, "claimed_by": None, "claimed_at": None, "updated_at": datetime.now(UTC)},
                expected={"status": TopicStatus.PROCESSING.value, "claimed_by": runner_id},
            )
            await session.commit()

        if not updated:
            logger.warning(
                "Generation result discarded, claim no longer held",
                extra={"topic_id": topic_id, "runner_id": runner_id},
            )
        return updated

    async def reclaim_stale(self) -> int:
        """Release processing claims older than the claim timeout."""
        cutoff = datetime.now(UTC) - timedelta(seconds=self._claim_timeout)
        reclaimed = 0
        async with self._session_factory() as session:
            repo = TopicRepository(session)
            for topic in await repo.list_stale_claims(cutoff):
                exhausted = topic.attempt_count >= self._max_attempts
                values: dict[str, Any] = {
                    "status": (
                        TopicStatus.FAILED.value if exhausted else TopicStatus.PENDING.value
                    ),
                    "claimed_by": None,
                    "claimed_at": None,
                    "updated_at": datetime.now(UTC),
                }
                if exhausted:
                    values["error_message"] = (
                        f"Narration generation abandoned after {topic.attempt_count} attempts"
                    )
                if await repo.update_fields(
                    topic.id,
                    values,
                    expected={
                        "status": TopicStatus.PROCESSING.value,
                        "claimed_by": topic.claimed_by,
                    },
                ):
                    reclaimed += 1
                    poller_logger.stale_reclaimed(topic.id, topic.attempt_count, exhausted)
            await session.commit()
        return reclaimed


# Global poller instance, created at startup
generation_poller: GenerationPoller | None = None


def init_generation_poller(
    session_factory: async_sessionmaker[AsyncSession],
    asset_factory: AssetGeneratorFactory,
) -> GenerationPoller:
    global generation_poller
    generation_poller = GenerationPoller(session_factory, asset_factory)
    return generation_poller


def get_generation_poller() -> GenerationPoller:
    """Dependency for getting the generation poller."""
    if generation_poller is None:
        raise RuntimeError("Generation poller not initialized")
    return generation_poller
