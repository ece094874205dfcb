"""Tests for the Keywords API endpoints.

Tests cover:
- Multipart spreadsheet upload and upsert by keyword text
- Server-local directory listing and import
- Listing with filters and pagination metadata
- Statistics, update and delete
- Keyword to topic and keyword to idea conversions
"""

from pathlib import Path
from typing import Any

import pytest
from httpx import AsyncClient

KEYWORDS = "/api/v1/keywords"


def csv_file(rows: list[tuple[str, int, int]], name: str = "export.csv") -> tuple:
    lines = ["Keyword,Competition,Overall,Search volume"]
    lines += [f"{kw},{competition},{overall},1000" for kw, competition, overall in rows]
    return ("files", (name, "\n".join(lines).encode("utf-8"), "text/csv"))


async def upload(client: AsyncClient, *files: tuple, user_id: str | None = None) -> dict[str, Any]:
    data = {"user_id": user_id} if user_id else {}
    response = await client.post(f"{KEYWORDS}/upload", files=list(files), data=data)
    assert response.status_code == 200
    return response.json()["data"]


async def keyword_id(client: AsyncClient, text: str) -> str:
    response = await client.get(KEYWORDS, params={"search": text})
    matches = [k for k in response.json()["data"] if k["keyword"] == text]
    assert len(matches) == 1
    return matches[0]["id"]


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


class TestUpload:
    """Tests for POST /api/v1/keywords/upload."""

    @pytest.mark.asyncio
    async def test_upload_csv(self, async_client: AsyncClient) -> None:
        stats = await upload(
            async_client,
            csv_file([("what is dark matter", 20, 80), ("why is the sky blue", 30, 70)]),
        )

        assert stats["files_processed"] == 1
        assert stats["stored_keywords"] == 2
        assert stats["file_results"][0]["file_name"] == "export.csv"

        listing = (await async_client.get(KEYWORDS)).json()
        assert listing["pagination"]["total"] == 2

    @pytest.mark.asyncio
    async def test_reimport_updates_existing_keyword(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("foo", 20, 80)]))
        stats = await upload(async_client, csv_file([("foo", 20, 90)]))

        assert stats["updated_keywords"] == 1
        assert stats["stored_keywords"] == 0

        listing = (await async_client.get(KEYWORDS, params={"search": "foo"})).json()
        assert listing["pagination"]["total"] == 1
        assert listing["data"][0]["overall"] == 90

    @pytest.mark.asyncio
    async def test_upload_assigns_user(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("solar flares", 10, 75)]), user_id="alice")

        listing = (await async_client.get(KEYWORDS, params={"user_id": "alice"})).json()
        assert [k["keyword"] for k in listing["data"]] == ["solar flares"]
        assert listing["data"][0]["user_id"] == "alice"

    @pytest.mark.asyncio
    async def test_unsupported_file_type(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            f"{KEYWORDS}/upload",
            files=[("files", ("notes.txt", b"hello", "text/plain"))],
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "VALIDATION_ERROR"


class TestLocalImport:
    """Tests for the server-local import endpoints."""

    @pytest.fixture
    def export_dir(self, tmp_path: Path) -> Path:
        (tmp_path / "week1.csv").write_text(
            "Keyword,Competition,Overall\nhow do magnets work,15,72\n", encoding="utf-8"
        )
        (tmp_path / "week1 (1).csv").write_text(
            "Keyword,Competition,Overall\nhow do magnets work,15,72\n", encoding="utf-8"
        )
        (tmp_path / "readme.txt").write_text("not a spreadsheet", encoding="utf-8")
        return tmp_path

    @pytest.mark.asyncio
    async def test_list_directory(self, async_client: AsyncClient, export_dir: Path) -> None:
        response = await async_client.get(
            f"{KEYWORDS}/local/list", params={"directory_path": str(export_dir)}
        )

        assert response.status_code == 200
        listing = response.json()["data"]
        assert listing["count"] == 1
        assert [f["file_name"] for f in listing["files"]] == ["week1.csv"]

    @pytest.mark.asyncio
    async def test_missing_directory(self, async_client: AsyncClient, tmp_path: Path) -> None:
        response = await async_client.get(
            f"{KEYWORDS}/local/list", params={"directory_path": str(tmp_path / "nope")}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_import_directory(self, async_client: AsyncClient, export_dir: Path) -> None:
        response = await async_client.post(
            f"{KEYWORDS}/local/import-directory",
            json={"directory_path": str(export_dir)},
        )

        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["files_processed"] == 1
        assert stats["stored_keywords"] == 1

    @pytest.mark.asyncio
    async def test_import_file(self, async_client: AsyncClient, export_dir: Path) -> None:
        response = await async_client.post(
            f"{KEYWORDS}/local/import-file",
            json={"file_path": str(export_dir / "week1.csv")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Imported week1.csv"
        assert body["data"]["stored_keywords"] == 1


# ---------------------------------------------------------------------------
# Listing and CRUD
# ---------------------------------------------------------------------------


class TestListKeywords:
    """Tests for GET /api/v1/keywords."""

    @pytest.mark.asyncio
    async def test_pagination_metadata(self, async_client: AsyncClient) -> None:
        await upload(
            async_client,
            csv_file([(f"question number {i}", 10, 60 + i) for i in range(5)]),
        )

        response = await async_client.get(KEYWORDS, params={"page": 2, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"] == {"total": 5, "page": 2, "limit": 2, "pages": 3}
        assert [k["overall"] for k in body["data"]] == [62, 61]

    @pytest.mark.asyncio
    async def test_list_returns_keyword_objects(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("tides", 20, 80), ("waves", 30, 75)]))

        response = await async_client.get(KEYWORDS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert isinstance(body["data"], list)
        assert [k["keyword"] for k in body["data"]] == ["tides", "waves"]
        assert {"id", "competition", "search_volume", "added_to_title"} <= set(body["data"][0])

    @pytest.mark.asyncio
    async def test_filter_by_overall(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("low", 10, 55), ("high", 10, 95)]))

        response = await async_client.get(KEYWORDS, params={"min_overall": 90})

        assert [k["keyword"] for k in response.json()["data"]] == ["high"]

    @pytest.mark.asyncio
    async def test_invalid_page_is_validation_error(self, async_client: AsyncClient) -> None:
        response = await async_client.get(KEYWORDS, params={"page": 0})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"


class TestKeywordCrud:
    """Tests for stats, get, update and delete."""

    @pytest.mark.asyncio
    async def test_stats(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("a", 20, 80), ("b", 40, 60)]))

        response = await async_client.get(f"{KEYWORDS}/stats")

        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["total"] == 2
        assert stats["avg_overall"] == 70

    @pytest.mark.asyncio
    async def test_update_keyword(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("tides", 20, 80)]))
        kid = await keyword_id(async_client, "tides")

        response = await async_client.put(f"{KEYWORDS}/{kid}", json={"overall": 88})

        assert response.status_code == 200
        assert response.json()["data"]["overall"] == 88

    @pytest.mark.asyncio
    async def test_update_rejects_low_overall(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("tides", 20, 80)]))
        kid = await keyword_id(async_client, "tides")

        response = await async_client.put(f"{KEYWORDS}/{kid}", json={"overall": 10})

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_rename_to_existing_keyword(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("foo", 20, 80), ("bar", 20, 70)]))
        bar_id = await keyword_id(async_client, "bar")

        response = await async_client.put(f"{KEYWORDS}/{bar_id}", json={"keyword": "foo"})

        assert response.status_code == 400
        assert response.json()["error"] == "CONFLICT"
        stored = (await async_client.get(f"{KEYWORDS}/{bar_id}")).json()["data"]
        assert stored["keyword"] == "bar"

    @pytest.mark.asyncio
    async def test_delete_keyword(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("tides", 20, 80)]))
        kid = await keyword_id(async_client, "tides")

        response = await async_client.delete(f"{KEYWORDS}/{kid}")
        assert response.status_code == 200

        missing = await async_client.get(f"{KEYWORDS}/{kid}")
        assert missing.status_code == 404
        assert missing.json()["error"] == "NOT_FOUND"


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


class TestKeywordConversions:
    """Keyword to topic and keyword to idea."""

    @pytest.mark.asyncio
    async def test_add_and_remove_from_title(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("why do cats purr", 20, 80)]))
        kid = await keyword_id(async_client, "why do cats purr")

        response = await async_client.post(f"{KEYWORDS}/{kid}/add-to-title")
        assert response.status_code == 200
        topic = response.json()["data"]
        assert topic["topic_name"] == "why do cats purr"
        assert topic["source_keyword_id"] == kid

        keyword = (await async_client.get(f"{KEYWORDS}/{kid}")).json()["data"]
        assert keyword["added_to_title"] is True

        again = await async_client.post(f"{KEYWORDS}/{kid}/add-to-title")
        assert again.status_code == 400
        assert again.json()["error"] == "CONFLICT"

        response = await async_client.post(f"{KEYWORDS}/{kid}/remove-from-title")
        assert response.status_code == 200
        removal = response.json()["data"]
        assert removal["deleted_topic_ids"] == [topic["id"]]
        assert removal["keyword"]["added_to_title"] is False

        gone = await async_client.get(f"/api/v1/topics/{topic['id']}")
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_add_to_ideas_moves_keyword(self, async_client: AsyncClient) -> None:
        await upload(async_client, csv_file([("how tall is everest", 25, 77)]))
        kid = await keyword_id(async_client, "how tall is everest")

        response = await async_client.post(f"{KEYWORDS}/{kid}/add-to-ideas")

        assert response.status_code == 200
        idea = response.json()["data"]
        assert idea["title"] == "how tall is everest"
        assert idea["overall"] == 77
        assert idea["competition"] == 25

        missing = await async_client.get(f"{KEYWORDS}/{kid}")
        assert missing.status_code == 404
