"""Tests for the keyword import command line script."""

from typing import Any

import pytest

from tubeflow.scripts import import_keywords
from tubeflow.services.errors import ValidationError
from tubeflow.services.keyword_import import FileImportResult, ImportStats


def stats_with(*results: FileImportResult) -> ImportStats:
    stats = ImportStats()
    for result in results:
        stats.add(result)
    return stats


@pytest.fixture
def fake_import(monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
    """Replace the database-backed import with a canned outcome."""
    state: dict[str, Any] = {"stats": ImportStats(), "error": None, "calls": []}

    async def run_import(directory: str, user_id: str | None) -> ImportStats:
        state["calls"].append((directory, user_id))
        if state["error"] is not None:
            raise state["error"]
        return state["stats"]

    monkeypatch.setattr(import_keywords, "run_import", run_import)
    monkeypatch.setattr(import_keywords, "setup_logging", lambda: None)
    return state


class TestImportKeywordsScript:
    def test_parse_args(self) -> None:
        args = import_keywords.parse_args(["./exports", "--user-id", "alice"])

        assert args.directory == "./exports"
        assert args.user_id == "alice"

    def test_successful_import(self, fake_import: dict[str, Any], capsys: Any) -> None:
        fake_import["stats"] = stats_with(
            FileImportResult(file_name="week1.csv", total_keywords=3, stored_keywords=2, skipped_keywords=1)
        )

        assert import_keywords.main(["./exports", "--user-id", "alice"]) == 0

        assert fake_import["calls"] == [("./exports", "alice")]
        out = capsys.readouterr().out
        assert "week1.csv: 3 rows, 2 stored, 0 updated, 1 skipped" in out
        assert "Files processed: 1" in out

    def test_user_defaults_from_settings(self, fake_import: dict[str, Any]) -> None:
        import_keywords.main(["./exports"])

        assert fake_import["calls"][0][1] == "default-user"

    def test_empty_directory(self, fake_import: dict[str, Any], capsys: Any) -> None:
        assert import_keywords.main(["./empty"]) == 0
        assert "No spreadsheets found in ./empty" in capsys.readouterr().out

    def test_row_errors_fail_the_run(self, fake_import: dict[str, Any]) -> None:
        fake_import["stats"] = stats_with(
            FileImportResult(file_name="bad.xlsx", errors=[{"error": "Could not read file"}])
        )

        assert import_keywords.main(["./exports"]) == 1

    def test_missing_directory(self, fake_import: dict[str, Any], capsys: Any) -> None:
        fake_import["error"] = ValidationError(
            "directory_path", "./nope", "Directory not found: ./nope"
        )

        assert import_keywords.main(["./nope"]) == 1
        assert "Directory not found: ./nope" in capsys.readouterr().err
