"""Keyword import from uploaded or server-local spreadsheets.

Each row is upserted inside its own savepoint so a row that fails to save
is counted and reported without rolling back the rest of the file.

ERROR LOGGING REQUIREMENTS:
- Log file start/finish at INFO level with row counts
- Log skipped duplicate files at INFO level
- Log per-row save failures at WARNING level with the keyword text
- Log unreadable files at ERROR level
"""

import asyncio
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger
from tubeflow.services.errors import ValidationError
from tubeflow.services.keyword import KeywordService
from tubeflow.utils.spreadsheet import (
    SUPPORTED_EXTENSIONS,
    SpreadsheetError,
    is_duplicate_file_name,
    is_supported,
    map_keyword_row,
    read_rows,
)

logger = get_logger(__name__)


@dataclass
class FileImportResult:
    """Row counts for one imported file."""

    file_name: str
    total_keywords: int = 0
    stored_keywords: int = 0
    updated_keywords: int = 0
    skipped_keywords: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass
class ImportStats:
    """Totals across every file of one import."""

    files_processed: int = 0
    files_skipped: int = 0
    total_keywords: int = 0
    stored_keywords: int = 0
    updated_keywords: int = 0
    skipped_keywords: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    file_results: list[FileImportResult] = field(default_factory=list)

    def add(self, result: FileImportResult) -> None:
        self.files_processed += 1
        self.total_keywords += result.total_keywords
        self.stored_keywords += result.stored_keywords
        self.updated_keywords += result.updated_keywords
        self.skipped_keywords += result.skipped_keywords
        self.errors.extend({"file": result.file_name, **e} for e in result.errors)
        self.file_results.append(result)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class KeywordImportService:
    """Reads spreadsheets and upserts their keyword rows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.keywords = KeywordService(session)

    async def import_uploads(
        self, files: list[tuple[str, bytes]], user_id: str | None = None
    ) -> ImportStats:
        """Import uploaded files given as (file name, content) pairs."""
        settings = get_settings()
        if not files:
            raise ValidationError("files", None, "No files uploaded")
        if len(files) > settings.import_max_files:
            raise ValidationError(
                "files",
                len(files),
                f"At most {settings.import_max_files} files can be uploaded at once",
            )
        for name, _ in files:
            if not is_supported(name):
                raise ValidationError(
                    "files",
                    name,
                    f"Unsupported file type, allowed: {', '.join(SUPPORTED_EXTENSIONS)}",
                )

        stats = ImportStats()
        for name, data in files:
            if is_duplicate_file_name(name):
                logger.info("Skipping duplicate file", extra={"file_name": name})
                stats.files_skipped += 1
                continue
            stats.add(await self._import_bytes(name, data, user_id))
        return stats

    def list_directory(self, directory: str) -> dict[str, Any]:
        """Spreadsheets in a server-local directory, without importing."""
        files = [
            {
                "file_name": path.name,
                "path": str(path),
                "size_bytes": path.stat().st_size,
                "modified_at": datetime.fromtimestamp(path.stat().st_mtime, UTC).isoformat(),
            }
            for path in self._directory_files(directory)
        ]
        return {"directory": directory, "count": len(files), "files": files}

    async def import_directory(self, directory: str, user_id: str | None = None) -> ImportStats:
        stats = ImportStats()
        for path in self._directory_files(directory):
            stats.add(await self._import_bytes(path.name, path.read_bytes(), user_id))
        logger.info(
            "Directory import complete",
            extra={
                "directory": directory,
                "files_processed": stats.files_processed,
                "stored_keywords": stats.stored_keywords,
                "updated_keywords": stats.updated_keywords,
            },
        )
        return stats

    async def import_file(self, file_path: str, user_id: str | None = None) -> FileImportResult:
        path = Path(file_path)
        if not path.is_file():
            raise ValidationError("file_path", file_path, f"File not found: {file_path}")
        if not is_supported(path.name):
            raise ValidationError(
                "file_path", file_path, f"Unsupported file type '{path.suffix}'"
            )
        return await self._import_bytes(path.name, path.read_bytes(), user_id)

    def _directory_files(self, directory: str) -> list[Path]:
        root = Path(directory)
        if not root.is_dir():
            raise ValidationError("directory_path", directory, f"Directory not found: {directory}")
        return sorted(
            path
            for path in root.iterdir()
            if path.is_file()
            and is_supported(path.name)
            and not is_duplicate_file_name(path.name)
        )

    async def _import_bytes(
        self, file_name: str, data: bytes, user_id: str | None
    ) -> FileImportResult:
        result = FileImportResult(file_name=file_name)
        start_time = time.monotonic()

        try:
            rows = await asyncio.to_thread(read_rows, data, file_name)
        except SpreadsheetError as e:
            logger.error(
                "Could not read spreadsheet",
                extra={"file_name": file_name, "error_message": e.message},
            )
            result.errors.append({"error": e.message})
            return result

        for row in rows:
            result.total_keywords += 1
            fields = map_keyword_row(row)
            try:
                async with self.session.begin_nested():
                    outcome = await self.keywords.upsert_keyword(fields, user_id)
            except SQLAlchemyError as e:
                logger.warning(
                    "Failed to save keyword",
                    extra={
                        "file_name": file_name,
                        "keyword": fields["keyword"],
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    },
                )
                result.errors.append({"keyword": fields["keyword"], "error": str(e)})
                result.skipped_keywords += 1
                continue

            if outcome == "inserted":
                result.stored_keywords += 1
            elif outcome == "updated":
                result.updated_keywords += 1
            else:
                result.skipped_keywords += 1

        logger.info(
            "File imported",
            extra={
                "file_name": file_name,
                "total_keywords": result.total_keywords,
                "stored_keywords": result.stored_keywords,
                "updated_keywords": result.updated_keywords,
                "skipped_keywords": result.skipped_keywords,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result
