"""Spreadsheet reading and keyword column mapping.

Keyword research exports come as .xlsx, legacy .xls or .csv with slightly
different column headers depending on the tool that produced them. Rows are
read with pandas (openpyxl for .xlsx, xlrd for .xls) and mapped onto keyword
fields by taking the first non-empty of several accepted header names.
"""

import math
import re
from io import BytesIO
from pathlib import PurePath
from typing import Any

import pandas as pd

SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv")

# Browser downloads of the same export get "(1)", "(2)" ... appended.
_DUPLICATE_NAME = re.compile(r"\(\d+\)\.[^.]+$")

_BOM = "\ufeff"

COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "keyword": ("Keyword", "keyword"),
    "competition": ("Competition", "competition"),
    "overall": ("Overall", "overall"),
    "search_volume": ("Search volume", "searchVolume", "search_volume"),
    "thirty_day_ago_searches": ("30d ago searches", "thirtyDayAgoSearches"),
    "timestamp": ("Timestamp", "timestamp"),
    "number_of_words": ("Number of words", "numberOfWords", "number_of_words"),
}


class SpreadsheetError(Exception):
    """Raised when a file cannot be read as a spreadsheet."""

    def __init__(self, file_name: str, message: str) -> None:
        self.file_name = file_name
        self.message = message
        super().__init__(f"{file_name}: {message}")


def extension_of(file_name: str) -> str:
    return PurePath(file_name).suffix.lower()


def is_supported(file_name: str) -> bool:
    return extension_of(file_name) in SUPPORTED_EXTENSIONS


def is_duplicate_file_name(file_name: str) -> bool:
    """True for names like ``keywords (1).xlsx``."""
    return bool(_DUPLICATE_NAME.search(file_name))


def _clean_header(name: Any) -> str:
    return str(name).replace(_BOM, "").strip()


def read_rows(data: bytes, file_name: str) -> list[dict[str, Any]]:
    """Read the first sheet of a workbook (or a CSV) into row mappings.

    Header names are trimmed and stripped of a byte order mark; empty
    cells become None.
    """
    ext = extension_of(file_name)
    try:
        if ext == ".csv":
            frame = pd.read_csv(BytesIO(data), dtype=object, encoding="utf-8-sig")
        elif ext in (".xlsx", ".xls"):
            frame = pd.read_excel(
                BytesIO(data),
                sheet_name=0,
                dtype=object,
                engine="openpyxl" if ext == ".xlsx" else "xlrd",
            )
        else:
            raise SpreadsheetError(file_name, f"Unsupported file type '{ext or file_name}'")
    except SpreadsheetError:
        raise
    except pd.errors.EmptyDataError:
        return []
    except Exception as e:
        raise SpreadsheetError(file_name, f"Could not read spreadsheet: {e}") from e

    frame.columns = [_clean_header(column) for column in frame.columns]
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.to_dict(orient="records")


def _first_present(row: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = row.get(name)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return None if number is None else int(number)


def map_keyword_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map one spreadsheet row to keyword fields.

    Missing or unparseable numbers fall back to competition 0, overall 0,
    search volume 0, 30-day searches 0, no timestamp and one word.
    """
    raw = {field: _first_present(row, names) for field, names in COLUMN_SYNONYMS.items()}
    keyword = raw["keyword"]
    return {
        "keyword": str(keyword).strip() if keyword is not None else "",
        "competition": _to_float(raw["competition"]) or 0.0,
        "overall": _to_float(raw["overall"]) or 0.0,
        "search_volume": _to_int(raw["search_volume"]) or 0,
        "thirty_day_ago_searches": _to_int(raw["thirty_day_ago_searches"]) or 0,
        "timestamp": _to_int(raw["timestamp"]) or None,
        "number_of_words": _to_int(raw["number_of_words"]) or 1,
    }
