"""Unit tests for keyword spreadsheet import.

Tests cover:
- CSV (with byte order mark) and xlsx uploads
- Header synonyms and numeric fallbacks
- Upsert of repeated keywords instead of duplicates
- Duplicate download names ("name (1).csv") skipped
- Upload limits and unsupported file types
- Server-local directory listing and import
- Unreadable files reported per file
"""

from io import BytesIO
from pathlib import Path

import pandas as pd
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tubeflow.repositories.keyword import KeywordQuery
from tubeflow.services.errors import ValidationError
from tubeflow.services.keyword import KeywordService
from tubeflow.services.keyword_import import KeywordImportService
from tubeflow.utils.spreadsheet import (
    is_duplicate_file_name,
    is_supported,
    map_keyword_row,
    read_rows,
)

# ---------------------------------------------------------------------------
# Test Data
# ---------------------------------------------------------------------------

CSV_EXPORT = (
    "\ufeffKeyword,Competition,Overall,Search volume,30d ago searches,Number of words\n"
    "how to bake bread,20,75,1000,900,4\n"
    "bread knife,10,40,500,450,2\n"
    ",30,80,100,90,1\n"
    "sourdough starter,35,66,,,\n"
).encode("utf-8")


def xlsx_bytes(rows: list[dict]) -> bytes:
    buffer = BytesIO()
    pd.DataFrame(rows).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


@pytest.fixture
def importer(db_session: AsyncSession) -> KeywordImportService:
    return KeywordImportService(db_session)


async def stored_keywords(session: AsyncSession) -> dict[str, float]:
    page = await KeywordService(session).list_keywords(KeywordQuery(limit=500))
    return {k.keyword: k.overall for k in page.items}


# ---------------------------------------------------------------------------
# Spreadsheet helpers
# ---------------------------------------------------------------------------


class TestSpreadsheetHelpers:
    """Tests for reading and mapping spreadsheet rows."""

    def test_csv_header_bom_removed(self) -> None:
        rows = read_rows(CSV_EXPORT, "export.csv")

        assert "Keyword" in rows[0]
        assert rows[0]["Keyword"] == "how to bake bread"

    def test_empty_cells_become_none(self) -> None:
        rows = read_rows(CSV_EXPORT, "export.csv")

        assert rows[2]["Keyword"] is None
        assert rows[3]["Search volume"] is None

    def test_empty_csv(self) -> None:
        assert read_rows(b"", "empty.csv") == []

    def test_map_row_with_camel_case_headers(self) -> None:
        fields = map_keyword_row(
            {"keyword": " rust ", "overall": "71.5", "searchVolume": "300", "numberOfWords": 1}
        )

        assert fields["keyword"] == "rust"
        assert fields["overall"] == 71.5
        assert fields["search_volume"] == 300
        assert fields["number_of_words"] == 1

    def test_map_row_defaults(self) -> None:
        fields = map_keyword_row({"Keyword": "bare", "Overall": "not a number"})

        assert fields == {
            "keyword": "bare",
            "competition": 0.0,
            "overall": 0.0,
            "search_volume": 0,
            "thirty_day_ago_searches": 0,
            "timestamp": None,
            "number_of_words": 1,
        }

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("export (1).csv", True), ("export (12).xlsx", True), ("export.csv", False),
         ("export (final).csv", False)],
    )
    def test_duplicate_file_names(self, name: str, expected: bool) -> None:
        assert is_duplicate_file_name(name) is expected

    def test_supported_extensions(self) -> None:
        assert is_supported("a.XLSX")
        assert is_supported("b.xls")
        assert not is_supported("c.txt")


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


class TestImportUploads:
    """Tests for import_uploads."""

    @pytest.mark.asyncio
    async def test_csv_upload(
        self, db_session: AsyncSession, importer: KeywordImportService
    ) -> None:
        stats = await importer.import_uploads([("export.csv", CSV_EXPORT)])

        assert stats.files_processed == 1
        assert stats.total_keywords == 4
        assert stats.stored_keywords == 2
        assert stats.skipped_keywords == 2
        assert await stored_keywords(db_session) == {
            "how to bake bread": 75,
            "sourdough starter": 66,
        }

    @pytest.mark.asyncio
    async def test_repeated_keyword_is_updated(
        self, db_session: AsyncSession, importer: KeywordImportService
    ) -> None:
        data = xlsx_bytes([{"Keyword": "foo", "Overall": 80}, {"Keyword": "foo", "Overall": 90}])

        stats = await importer.import_uploads([("research.xlsx", data)])

        assert stats.stored_keywords == 1
        assert stats.updated_keywords == 1
        assert await stored_keywords(db_session) == {"foo": 90}

    @pytest.mark.asyncio
    async def test_reimport_updates_in_place(
        self, db_session: AsyncSession, importer: KeywordImportService
    ) -> None:
        await importer.import_uploads([("export.csv", CSV_EXPORT)])

        stats = await importer.import_uploads([("export.csv", CSV_EXPORT)])

        assert stats.stored_keywords == 0
        assert stats.updated_keywords == 2
        assert len(await stored_keywords(db_session)) == 2

    @pytest.mark.asyncio
    async def test_duplicate_file_name_skipped(self, importer: KeywordImportService) -> None:
        stats = await importer.import_uploads(
            [("export.csv", CSV_EXPORT), ("export (1).csv", CSV_EXPORT)]
        )

        assert stats.files_processed == 1
        assert stats.files_skipped == 1

    @pytest.mark.asyncio
    async def test_too_many_files(self, importer: KeywordImportService) -> None:
        files = [(f"export_{i}.csv", CSV_EXPORT) for i in range(21)]

        with pytest.raises(ValidationError):
            await importer.import_uploads(files)

    @pytest.mark.asyncio
    async def test_no_files(self, importer: KeywordImportService) -> None:
        with pytest.raises(ValidationError):
            await importer.import_uploads([])

    @pytest.mark.asyncio
    async def test_unsupported_type_rejects_whole_upload(
        self, db_session: AsyncSession, importer: KeywordImportService
    ) -> None:
        with pytest.raises(ValidationError):
            await importer.import_uploads([("export.csv", CSV_EXPORT), ("notes.txt", b"hi")])

        assert await stored_keywords(db_session) == {}

    @pytest.mark.asyncio
    async def test_unreadable_file_reported(self, importer: KeywordImportService) -> None:
        stats = await importer.import_uploads(
            [("broken.xlsx", b"definitely not a workbook"), ("export.csv", CSV_EXPORT)]
        )

        assert stats.files_processed == 2
        assert stats.stored_keywords == 2
        assert stats.errors[0]["file"] == "broken.xlsx"
        assert stats.file_results[0].total_keywords == 0

    @pytest.mark.asyncio
    async def test_upload_for_user(
        self, db_session: AsyncSession, importer: KeywordImportService
    ) -> None:
        await importer.import_uploads([("export.csv", CSV_EXPORT)], user_id="alice")

        page = await KeywordService(db_session).list_keywords(KeywordQuery(user_id="alice"))
        assert page.total == 2


# ---------------------------------------------------------------------------
# Server-local files
# ---------------------------------------------------------------------------


class TestLocalImport:
    """Tests for directory listing and import."""

    @pytest.fixture
    def export_dir(self, tmp_path: Path) -> Path:
        directory = tmp_path / "exports"
        directory.mkdir()
        (directory / "a.csv").write_bytes(CSV_EXPORT)
        (directory / "b.xlsx").write_bytes(xlsx_bytes([{"Keyword": "rust", "Overall": 77}]))
        (directory / "a (1).csv").write_bytes(CSV_EXPORT)
        (directory / "readme.txt").write_text("not a spreadsheet")
        return directory

    def test_list_directory(self, importer: KeywordImportService, export_dir: Path) -> None:
        listing = importer.list_directory(str(export_dir))

        assert listing["count"] == 2
        assert [f["file_name"] for f in listing["files"]] == ["a.csv", "b.xlsx"]
        assert listing["files"][0]["size_bytes"] == len(CSV_EXPORT)

    def test_list_missing_directory(self, importer: KeywordImportService, tmp_path: Path) -> None:
        with pytest.raises(ValidationError):
            importer.list_directory(str(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_import_directory(
        self, db_session: AsyncSession, importer: KeywordImportService, export_dir: Path
    ) -> None:
        stats = await importer.import_directory(str(export_dir))

        assert stats.files_processed == 2
        assert stats.stored_keywords == 3
        assert set(await stored_keywords(db_session)) == {
            "how to bake bread",
            "sourdough starter",
            "rust",
        }

    @pytest.mark.asyncio
    async def test_import_single_file(
        self, importer: KeywordImportService, export_dir: Path
    ) -> None:
        result = await importer.import_file(str(export_dir / "b.xlsx"))

        assert result.file_name == "b.xlsx"
        assert result.stored_keywords == 1

    @pytest.mark.asyncio
    async def test_import_missing_file(
        self, importer: KeywordImportService, export_dir: Path
    ) -> None:
        with pytest.raises(ValidationError):
            await importer.import_file(str(export_dir / "nope.csv"))

    @pytest.mark.asyncio
    async def test_import_unsupported_file(
        self, importer: KeywordImportService, export_dir: Path
    ) -> None:
        with pytest.raises(ValidationError):
            await importer.import_file(str(export_dir / "readme.txt"))
