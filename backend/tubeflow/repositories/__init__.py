"""Repositories layer - Data access and persistence.

Repositories handle all database operations using SQLAlchemy.
They abstract the database implementation from the service layer.
"""

from tubeflow.repositories.idea import IdeaQuery, IdeaRepository
from tubeflow.repositories.keyword import KeywordQuery, KeywordRepository
from tubeflow.repositories.topic import TopicRepository

__all__ = [
    "IdeaQuery",
    "IdeaRepository",
    "KeywordQuery",
    "KeywordRepository",
    "TopicRepository",
]
