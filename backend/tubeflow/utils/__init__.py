"""Utility helpers."""

from tubeflow.utils.spreadsheet import (
    SUPPORTED_EXTENSIONS,
    SpreadsheetError,
    is_duplicate_file_name,
    map_keyword_row,
    read_rows,
)

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "SpreadsheetError",
    "is_duplicate_file_name",
    "map_keyword_row",
    "read_rows",
]
