"""Business logic layer.

Services own validation, lifecycle rules and orchestration; endpoints stay
thin and repositories stay free of business rules.
"""

from tubeflow.services.asset_generation import AssetGenerator, get_asset_generator
from tubeflow.services.conversion import ConversionService, IdeaConversion, TitleRemoval
from tubeflow.services.errors import (
    ConflictError,
    GenerationError,
    NotFoundError,
    PreconditionFailedError,
    ServiceError,
    StorageError,
    ValidationError,
)
from tubeflow.services.generation_poller import (
    GenerationPoller,
    PollerRunResult,
    get_generation_poller,
    init_generation_poller,
)
from tubeflow.services.idea import IdeaService
from tubeflow.services.keyword import KeywordService, Page
from tubeflow.services.keyword_import import ImportStats, KeywordImportService
from tubeflow.services.topic import TopicService
from tubeflow.services.topic_state import TopicStage

__all__ = [
    "AssetGenerator",
    "ConflictError",
    "ConversionService",
    "GenerationError",
    "GenerationPoller",
    "IdeaConversion",
    "IdeaService",
    "ImportStats",
    "KeywordImportService",
    "KeywordService",
    "NotFoundError",
    "Page",
    "PollerRunResult",
    "PreconditionFailedError",
    "ServiceError",
    "StorageError",
    "TitleRemoval",
    "TopicService",
    "TopicStage",
    "ValidationError",
    "get_asset_generator",
    "get_generation_poller",
    "init_generation_poller",
]
