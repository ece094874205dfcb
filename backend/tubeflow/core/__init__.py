"""Core utilities and configuration."""

from tubeflow.core.config import Settings, get_settings
from tubeflow.core.database import Base, db_manager, get_session, transaction
from tubeflow.core.logging import db_logger, get_logger, setup_logging
from tubeflow.core.scheduler import get_scheduler, scheduler_manager

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "get_session",
    "transaction",
    # Logging
    "db_logger",
    "get_logger",
    "setup_logging",
    # Scheduler
    "get_scheduler",
    "scheduler_manager",
]
