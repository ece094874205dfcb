"""Composite topic state.

A topic's progress is the pair (level, status). Only these stages exist:

    scripting/pending      scripting/processing
    scripting/completed    scripting/failed
    title/completed        thumbnail/completed
    finished/completed     editing/completed      uploaded/completed

Any level past scripting requires a completed narration script, so a
topic can never be "finished" with a failed script. Levels move forward
only; the single way back is restart_scripting(), used when the narration
script is regenerated.
"""

from dataclasses import dataclass
from typing import Any

from tubeflow.models.topic import LEVEL_ORDER, TopicLevel, TopicStatus
from tubeflow.services.errors import PreconditionFailedError

# Generation status moves allowed while scripting.
STATUS_TRANSITIONS: dict[TopicStatus, set[TopicStatus]] = {
    TopicStatus.PENDING: {TopicStatus.PROCESSING, TopicStatus.COMPLETED},
    TopicStatus.PROCESSING: {
        TopicStatus.COMPLETED,
        TopicStatus.FAILED,
        TopicStatus.PENDING,
    },
    TopicStatus.COMPLETED: {TopicStatus.COMPLETED},
    TopicStatus.FAILED: {TopicStatus.COMPLETED},
}


@dataclass(frozen=True)
class TopicStage:
    """Immutable (level, status) pair that only admits legal combinations."""

    level: TopicLevel
    status: TopicStatus

    def __post_init__(self) -> None:
        if self.level != TopicLevel.SCRIPTING and self.status != TopicStatus.COMPLETED:
            raise PreconditionFailedError(
                f"Illegal topic state: level '{self.level.value}' "
                f"requires a completed script, status is '{self.status.value}'"
            )

    @classmethod
    def of(cls, topic: Any) -> "TopicStage":
        """Stage of a Topic row (anything with `level` and `status`)."""
        return cls(TopicLevel(topic.level), TopicStatus(topic.status))

    @classmethod
    def initial(cls) -> "TopicStage":
        return cls(TopicLevel.SCRIPTING, TopicStatus.PENDING)

    @property
    def name(self) -> str:
        """Tag of the stage, e.g. `scripting:failed` or `thumbnail`."""
        if self.level == TopicLevel.SCRIPTING:
            return f"scripting:{self.status.value}"
        return self.level.value

    @property
    def rank(self) -> int:
        return LEVEL_ORDER.index(self.level)

    def is_at_least(self, level: TopicLevel) -> bool:
        return self.rank >= LEVEL_ORDER.index(level)

    def with_status(self, status: TopicStatus) -> "TopicStage":
        """Change the generation status.

        Raises:
            PreconditionFailedError: For a move the status machine forbids
        """
        if status == self.status:
            return self
        if self.level != TopicLevel.SCRIPTING:
            raise PreconditionFailedError(
                f"Cannot set status '{status.value}' on a topic at level "
                f"'{self.level.value}'"
            )
        if status not in STATUS_TRANSITIONS[self.status]:
            raise PreconditionFailedError(
                f"Cannot move script status from '{self.status.value}' to '{status.value}'"
            )
        return TopicStage(self.level, status)

    def complete_script(self) -> "TopicStage":
        """Script set by hand or by generation; legal from any scripting status.

        Past scripting the status is already completed, so this is a no-op.
        """
        if self.level != TopicLevel.SCRIPTING:
            return self
        return TopicStage(self.level, TopicStatus.COMPLETED)

    def advance_to(self, level: TopicLevel) -> "TopicStage":
        """Move forward to `level`; a level at or behind the current one is a no-op.

        Raises:
            PreconditionFailedError: If the narration script is not completed
        """
        if LEVEL_ORDER.index(level) <= self.rank:
            return self
        if self.status != TopicStatus.COMPLETED:
            raise PreconditionFailedError(
                f"Cannot advance to '{level.value}' before the narration script is completed"
            )
        return TopicStage(level, self.status)

    def restart_scripting(self) -> "TopicStage":
        """Back to scripting/pending for a fresh narration script."""
        return TopicStage.initial()

    def as_values(self) -> dict[str, str]:
        """Column values for a conditional update."""
        return {"level": self.level.value, "status": self.status.value}
