#!/usr/bin/env python3
"""Import keyword spreadsheets from a local directory.

Usage:
    1. Set DATABASE_URL in backend/.env (or the environment)
    2. Run: cd backend && python -m tubeflow.scripts.import_keywords ./exports
       Optional: --user-id someone

Every .xlsx, .xls and .csv file in the directory is read; names like
"export (1).xlsx" are treated as duplicate downloads and skipped. Only
keywords with an overall score above 50 are stored; keywords that already
exist for the user are updated in place.

Exit status is 0 on success, 1 if the directory is missing or any file or
row could not be imported.
"""

import argparse
import asyncio
import sys

from tubeflow.core.config import get_settings
from tubeflow.core.database import db_manager, transaction
from tubeflow.core.logging import get_logger, setup_logging
from tubeflow.services.errors import ValidationError
from tubeflow.services.keyword_import import ImportStats, KeywordImportService

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m tubeflow.scripts.import_keywords",
        description="Import keyword spreadsheets from a directory.",
    )
    parser.add_argument("directory", help="Directory containing spreadsheets")
    parser.add_argument(
        "--user-id",
        default=None,
        help="Owner of the imported keywords (default: DEFAULT_USER_ID)",
    )
    return parser.parse_args(argv)


async def run_import(directory: str, user_id: str | None) -> ImportStats:
    db_manager.init_db()
    try:
        async with db_manager.session_factory() as session:
            async with transaction(session, table="question_keywords"):
                return await KeywordImportService(session).import_directory(
                    directory, user_id
                )
    finally:
        await db_manager.close()


def print_summary(stats: ImportStats) -> None:
    print("=" * 60)
    print("Keyword import")
    print("=" * 60)
    for result in stats.file_results:
        print(
            f"  {result.file_name}: {result.total_keywords} rows, "
            f"{result.stored_keywords} stored, {result.updated_keywords} updated, "
            f"{result.skipped_keywords} skipped"
        )
    print("-" * 60)
    print(f"Files processed: {stats.files_processed}")
    print(f"Total keywords:  {stats.total_keywords}")
    print(f"Stored:          {stats.stored_keywords}")
    print(f"Updated:         {stats.updated_keywords}")
    print(f"Skipped:         {stats.skipped_keywords}")
    for error in stats.errors:
        print(f"  ! {error}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging()
    user_id = args.user_id or get_settings().default_user_id

    try:
        stats = asyncio.run(run_import(args.directory, user_id))
    except ValidationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if stats.files_processed == 0:
        print(f"No spreadsheets found in {args.directory}")
        return 0

    print_summary(stats)
    return 1 if stats.errors else 0


if __name__ == "__main__":
    sys.exit(main())
