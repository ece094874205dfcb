"""Models layer - SQLAlchemy ORM models.

All models inherit from the Base class defined in core.database.
"""

from tubeflow.core.database import Base
from tubeflow.models.idea import Idea
from tubeflow.models.question_keyword import MIN_OVERALL_SCORE, QuestionKeyword
from tubeflow.models.topic import LEVEL_ORDER, Topic, TopicLevel, TopicStatus

__all__ = [
    "Base",
    "Idea",
    "LEVEL_ORDER",
    "MIN_OVERALL_SCORE",
    "QuestionKeyword",
    "Topic",
    "TopicLevel",
    "TopicStatus",
]
