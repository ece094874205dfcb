"""Unit tests for AssetStorage over a mocked S3 client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tubeflow.integrations.s3 import S3Error
from tubeflow.services.errors import StorageError
from tubeflow.services.storage import AssetStorage, object_key


@pytest.fixture
def s3() -> MagicMock:
    client = MagicMock()
    client.available = True
    client.put_object = AsyncMock(side_effect=lambda key, data, content_type: key)
    client.delete_object = AsyncMock()
    client.public_url.side_effect = lambda key: f"https://cdn.test/{key}"
    client.key_from_url.side_effect = lambda url: url.removeprefix("https://cdn.test/")
    return client


class TestObjectKey:
    def test_images_go_to_thumbnails(self) -> None:
        assert object_key("thumbnail_1.png", "image/png", now_ms=42) == "thumbnails/42_thumbnail_1.png"

    def test_audio_goes_to_audio(self) -> None:
        assert object_key("audio_x.mp3", "audio/mpeg", now_ms=42) == "audio/42_audio_x.mp3"


class TestAssetStorage:
    """Tests for store and delete."""

    @pytest.mark.asyncio
    async def test_store_returns_public_url(self, s3: MagicMock) -> None:
        url = await AssetStorage(s3).store(b"png", "thumbnail_1.png", "image/png")

        key = s3.put_object.await_args.args[0]
        assert key.startswith("thumbnails/") and key.endswith("_thumbnail_1.png")
        assert url == f"https://cdn.test/{key}"

    @pytest.mark.asyncio
    async def test_store_unconfigured(self, s3: MagicMock) -> None:
        s3.available = False

        with pytest.raises(StorageError):
            await AssetStorage(s3).store(b"png", "thumbnail_1.png")

    @pytest.mark.asyncio
    async def test_store_upload_failure(self, s3: MagicMock) -> None:
        s3.put_object.side_effect = S3Error("boom", operation="put_object")

        with pytest.raises(StorageError):
            await AssetStorage(s3).store(b"png", "thumbnail_1.png")

    @pytest.mark.asyncio
    async def test_delete(self, s3: MagicMock) -> None:
        await AssetStorage(s3).delete("https://cdn.test/audio/1_a.mp3")

        s3.delete_object.assert_awaited_once_with("audio/1_a.mp3")

    @pytest.mark.asyncio
    async def test_delete_failure_is_swallowed(self, s3: MagicMock) -> None:
        s3.delete_object.side_effect = S3Error("boom", operation="delete_object")

        await AssetStorage(s3).delete("https://cdn.test/audio/1_a.mp3")

    @pytest.mark.asyncio
    async def test_delete_nothing(self, s3: MagicMock) -> None:
        await AssetStorage(s3).delete(None)

        s3.delete_object.assert_not_awaited()
