"""Structured logging configuration.

All logs go to stdout so the process supervisor can capture them.
Uses JSON format for structured logging in production.

ERROR LOGGING REQUIREMENTS:
- Database connection errors with masked connection string
- Slow queries (>100ms) at WARNING level
- Transaction failures with rollback context
- Outbound Gemini calls with model, timing and retry attempt
- Scheduler lifecycle and job execution outcomes
- Poller claims, item outcomes and stale-claim recovery
"""

import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from pythonjsonlogger import jsonlogger

from tubeflow.core.config import get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined]
    """JSON formatter adding timestamp, level and logger name."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def mask_connection_string(conn_str: str) -> str:
    """Mask the password in a user:password@host connection string."""
    if not conn_str:
        return ""
    return re.sub(r"(://[^:]+:)([^@]+)(@)", r"\1****\3", conn_str)


def truncate_text(text: str | None, max_length: int = 500) -> str:
    """Truncate long text for log output."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... (truncated, {len(text)} chars)"


def setup_logging() -> None:
    """Configure application logging.

    JSON format in production, text format in development.
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    formatter: logging.Formatter
    if settings.log_format == "json":
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


class DatabaseLogger:
    """Logger for database operations."""

    def __init__(self) -> None:
        self.logger = get_logger("database")

    def connection_error(self, error: Exception, connection_string: str) -> None:
        """Log database connection error with masked connection string."""
        self.logger.error(
            "Database connection failed",
            extra={
                "connection_string": mask_connection_string(connection_string),
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
        )

    def slow_query(
        self, query: str, duration_ms: float, table: str | None = None
    ) -> None:
        """Log slow query at WARNING level."""
        self.logger.warning(
            "Slow query detected",
            extra={
                "duration_ms": round(duration_ms, 2),
                "query": query[:500],
                "table": table,
            },
        )

    def transaction_failure(
        self, error: Exception, table: str | None = None, context: str | None = None
    ) -> None:
        """Log transaction failure with rollback context."""
        self.logger.error(
            "Transaction failed, rolling back",
            extra={
                "error_type": type(error).__name__,
                "error_message": str(error),
                "table": table,
                "rollback_context": context,
            },
        )

    def migration_start(self, version: str, description: str) -> None:
        """Log migration start."""
        self.logger.info(
            "Starting database migration",
            extra={"migration_version": version, "description": description},
        )

    def migration_end(self, version: str, success: bool) -> None:
        """Log migration completion."""
        self.logger.log(
            logging.INFO if success else logging.ERROR,
            "Database migration completed",
            extra={"migration_version": version, "success": success},
        )


db_logger = DatabaseLogger()


class GeminiLogger:
    """Logger for Gemini API calls.

    Logs outbound calls with model and timing, request/response bodies at
    DEBUG (truncated), timeouts, rate limits and auth failures. API keys are
    never logged.
    """

    def __init__(self) -> None:
        self.logger = get_logger("gemini")

    def api_call_start(
        self,
        model: str,
        operation: str,
        prompt_length: int,
        retry_attempt: int = 0,
    ) -> None:
        """Log outbound API call start at DEBUG level."""
        self.logger.debug(
            f"Gemini API call: {model}",
            extra={
                "model": model,
                "operation": operation,
                "prompt_length": prompt_length,
                "retry_attempt": retry_attempt,
            },
        )

    def api_call_success(
        self,
        model: str,
        operation: str,
        duration_ms: float,
        prompt_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> None:
        """Log successful API call with token usage."""
        self.logger.info(
            f"Gemini API call completed: {model}",
            extra={
                "model": model,
                "operation": operation,
                "duration_ms": round(duration_ms, 2),
                "prompt_tokens": prompt_tokens,
                "output_tokens": output_tokens,
                "success": True,
            },
        )

    def api_call_error(
        self,
        model: str,
        operation: str,
        duration_ms: float,
        status_code: int | None,
        error: str,
        error_type: str,
        retry_attempt: int = 0,
    ) -> None:
        """Log failed API call; 4xx at WARNING, everything else at ERROR."""
        level = (
            logging.WARNING
            if status_code and 400 <= status_code < 500
            else logging.ERROR
        )
        self.logger.log(
            level,
            f"Gemini API call failed: {model}",
            extra={
                "model": model,
                "operation": operation,
                "duration_ms": round(duration_ms, 2),
                "status_code": status_code,
                "error": error,
                "error_type": error_type,
                "retry_attempt": retry_attempt,
                "success": False,
            },
        )

    def timeout(self, model: str, timeout_seconds: float) -> None:
        """Log request timeout at WARNING level."""
        self.logger.warning(
            "Gemini API request timeout",
            extra={"model": model, "timeout_seconds": timeout_seconds},
        )

    def rate_limit(self, model: str, retry_after: float | None = None) -> None:
        """Log rate limit (429) at WARNING level."""
        self.logger.warning(
            "Gemini API rate limit hit (429)",
            extra={"model": model, "retry_after_seconds": retry_after},
        )

    def auth_failure(self, status_code: int) -> None:
        """Log authentication failure (401/403) at WARNING level."""
        self.logger.warning(
            f"Gemini API authentication failed ({status_code})",
            extra={"status_code": status_code},
        )

    def request_body(self, model: str, prompt: str) -> None:
        """Log request prompt at DEBUG level."""
        self.logger.debug(
            "Gemini API request body",
            extra={"model": model, "prompt": truncate_text(prompt, 500)},
        )

    def response_body(self, model: str, response_text: str, duration_ms: float) -> None:
        """Log response text at DEBUG level."""
        self.logger.debug(
            "Gemini API response body",
            extra={
                "model": model,
                "response_text": truncate_text(response_text, 500),
                "duration_ms": round(duration_ms, 2),
            },
        )

    def circuit_blocked(self, operation: str) -> None:
        """Log a call rejected by the open circuit breaker."""
        self.logger.warning(
            "Gemini call blocked by circuit breaker",
            extra={"operation": operation},
        )


gemini_logger = GeminiLogger()


class SchedulerLogger:
    """Logger for APScheduler lifecycle and job execution."""

    def __init__(self) -> None:
        self.logger = get_logger("scheduler")

    def scheduler_start(self, job_count: int) -> None:
        self.logger.info("Scheduler started", extra={"job_count": job_count})

    def scheduler_stop(self, graceful: bool) -> None:
        self.logger.info("Scheduler stopped", extra={"graceful": graceful})

    def job_added(
        self,
        job_id: str,
        job_name: str | None,
        trigger: str,
        next_run: str | None = None,
    ) -> None:
        self.logger.info(
            "Job added to scheduler",
            extra={
                "job_id": job_id,
                "job_name": job_name,
                "trigger": trigger,
                "next_run": next_run,
            },
        )

    def job_execution_success(
        self,
        job_id: str,
        duration_ms: float,
        result: Any = None,
    ) -> None:
        self.logger.info(
            "Job execution completed",
            extra={
                "job_id": job_id,
                "duration_ms": round(duration_ms, 2),
                "success": True,
                "result": str(result)[:200] if result else None,
            },
        )

    def job_execution_error(
        self,
        job_id: str,
        duration_ms: float,
        error: str,
        error_type: str,
    ) -> None:
        self.logger.error(
            "Job execution failed",
            extra={
                "job_id": job_id,
                "duration_ms": round(duration_ms, 2),
                "success": False,
                "error": error,
                "error_type": error_type,
            },
        )

    def job_missed(self, job_id: str, scheduled_time: str, misfire_grace_time: int) -> None:
        self.logger.warning(
            "Job execution missed",
            extra={
                "job_id": job_id,
                "scheduled_time": scheduled_time,
                "misfire_grace_time": misfire_grace_time,
            },
        )

    def job_max_instances_reached(self, job_id: str) -> None:
        self.logger.warning(
            "Job max instances reached, skipping execution",
            extra={"job_id": job_id},
        )

    def slow_job_execution(
        self, job_id: str, duration_ms: float, threshold_ms: int
    ) -> None:
        self.logger.warning(
            "Slow job execution detected",
            extra={
                "job_id": job_id,
                "duration_ms": round(duration_ms, 2),
                "threshold_ms": threshold_ms,
            },
        )

    def scheduler_not_available(self, operation: str, reason: str) -> None:
        self.logger.warning(
            "Scheduler not available",
            extra={"operation": operation, "reason": reason},
        )


scheduler_logger = SchedulerLogger()


class PollerLogger:
    """Logger for the narration generation poller."""

    def __init__(self) -> None:
        self.logger = get_logger("poller")

    def pass_start(self, runner_id: str, trigger: str) -> None:
        self.logger.debug(
            "Generation pass started",
            extra={"runner_id": runner_id, "trigger": trigger},
        )

    def nothing_pending(self, runner_id: str) -> None:
        self.logger.debug("No pending topics to process", extra={"runner_id": runner_id})

    def pass_complete(
        self,
        runner_id: str,
        trigger: str,
        candidates: int,
        completed: int,
        failed: int,
        skipped: int,
        reclaimed: int,
        duration_ms: float,
    ) -> None:
        self.logger.info(
            "Generation pass completed",
            extra={
                "runner_id": runner_id,
                "trigger": trigger,
                "candidates": candidates,
                "completed": completed,
                "failed": failed,
                "skipped": skipped,
                "reclaimed": reclaimed,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def claimed(self, runner_id: str, topic_id: str, topic_name: str) -> None:
        self.logger.info(
            "Topic claimed for narration generation",
            extra={
                "runner_id": runner_id,
                "topic_id": topic_id,
                "topic_name": truncate_text(topic_name, 100),
            },
        )

    def claim_lost(self, runner_id: str, topic_id: str) -> None:
        self.logger.debug(
            "Topic already claimed by another runner",
            extra={"runner_id": runner_id, "topic_id": topic_id},
        )

    def item_completed(
        self, runner_id: str, topic_id: str, script_length: int, duration_ms: float
    ) -> None:
        self.logger.info(
            "Narration script generated",
            extra={
                "runner_id": runner_id,
                "topic_id": topic_id,
                "script_length": script_length,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def item_failed(
        self,
        runner_id: str,
        topic_id: str,
        error: str,
        error_type: str,
        duration_ms: float,
    ) -> None:
        self.logger.error(
            "Narration script generation failed",
            extra={
                "runner_id": runner_id,
                "topic_id": topic_id,
                "error": error,
                "error_type": error_type,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def stale_reclaimed(self, topic_id: str, attempt_count: int, failed: bool) -> None:
        self.logger.warning(
            "Stale processing claim recovered",
            extra={
                "topic_id": topic_id,
                "attempt_count": attempt_count,
                "marked_failed": failed,
            },
        )


poller_logger = PollerLogger()
