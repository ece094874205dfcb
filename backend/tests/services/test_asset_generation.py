"""Unit tests for the asset generation façade.

Tests cover:
- Parsing of model output (titles, tags, timestamps)
- Narration script uses Google Search grounding
- Thumbnail designs: failed designs skipped, all failing raises
- Audio: speech → MP3 → storage
- Unsuccessful Gemini results and timeouts become GenerationError
"""

import asyncio

import pytest

from tubeflow.integrations.gemini import GeminiResult
from tubeflow.services.asset_generation import (
    MAX_TAGS,
    TTS_PREFIX,
    AssetGenerator,
    parse_tags,
    parse_timestamps,
    parse_titles,
)
from tubeflow.services.errors import GenerationError

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeGemini:
    def __init__(self, text: str = "Generated text") -> None:
        self.text = text
        self.text_calls: list[tuple[str, bool]] = []
        self.speech_calls: list[str] = []
        self.failing_designs: set[int] = set()
        self.image_calls = 0
        self.delay = 0.0

    async def generate_text(self, prompt: str, use_search: bool = False) -> GeminiResult:
        self.text_calls.append((prompt, use_search))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.text is None:
            return GeminiResult(success=False, error="Server error (500)")
        return GeminiResult(success=True, text=self.text)

    async def generate_image(self, prompt: str) -> GeminiResult:
        self.image_calls += 1
        if self.image_calls in self.failing_designs:
            return GeminiResult(success=False, error="No image returned")
        return GeminiResult(success=True, data=b"png-bytes", mime_type="image/png")

    async def generate_speech(self, text: str) -> GeminiResult:
        self.speech_calls.append(text)
        return GeminiResult(success=True, data=b"\x00\x00" * 8, mime_type="audio/L16")


class FakeStorage:
    def __init__(self) -> None:
        self.stored: list[tuple[str, str]] = []
        self.deleted: list[str | None] = []

    async def store(self, data: bytes, name: str, content_type: str = "image/png") -> str:
        self.stored.append((name, content_type))
        return f"https://cdn.test/{name}"

    async def delete(self, url: str | None) -> None:
        self.deleted.append(url)


class FakeTranscoder:
    async def pcm_to_mp3(self, pcm: bytes) -> bytes:
        return b"mp3:" + pcm


@pytest.fixture
def gemini() -> FakeGemini:
    return FakeGemini()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def generator(gemini: FakeGemini, storage: FakeStorage) -> AssetGenerator:
    return AssetGenerator(gemini, storage, FakeTranscoder())


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


class TestParsers:
    """Tests for model output parsing."""

    def test_parse_titles_strips_numbering(self) -> None:
        text = "1. First title\n2) Second title\n\n   3.Third title  \n"

        assert parse_titles(text) == ["First title", "Second title", "Third title"]

    def test_parse_titles_limit(self) -> None:
        text = "\n".join(f"{i}. Title {i}" for i in range(1, 15))

        assert len(parse_titles(text, limit=10)) == 10

    def test_parse_tags(self) -> None:
        assert parse_tags("#volcano\n  lava flow \n\n# magma") == ["volcano", "lava flow", "magma"]

    def test_parse_tags_capped(self) -> None:
        text = "\n".join(f"tag{i}" for i in range(30))

        assert len(parse_tags(text)) == MAX_TAGS

    def test_parse_timestamps_keeps_valid_lines(self) -> None:
        text = "0:00 - Introduction\nHere are your timestamps\n01:30 - The setup\n10:05 -  Wrap up"

        assert parse_timestamps(text) == [
            {"time": "0:00", "description": "Introduction"},
            {"time": "01:30", "description": "The setup"},
            {"time": "10:05", "description": "Wrap up"},
        ]


# ---------------------------------------------------------------------------
# Text assets
# ---------------------------------------------------------------------------


class TestTextAssets:
    """Tests for the text generation methods."""

    @pytest.mark.asyncio
    async def test_narration_script_uses_search(
        self, generator: AssetGenerator, gemini: FakeGemini
    ) -> None:
        result = await generator.generate_narration_script("Volcanoes", "For kids")

        assert result.script == "Generated text"
        prompt, use_search = gemini.text_calls[0]
        assert use_search is True
        assert "Volcanoes" in prompt
        assert "For kids" in prompt
        assert result.prompt == prompt

    @pytest.mark.asyncio
    async def test_titles(self, generator: AssetGenerator, gemini: FakeGemini) -> None:
        gemini.text = "1. Volcanoes 101\n2. Why Volcanoes Erupt"

        result = await generator.generate_titles("Volcanoes", "Script text")

        assert result.titles == ["Volcanoes 101", "Why Volcanoes Erupt"]
        assert gemini.text_calls[0][1] is False

    @pytest.mark.asyncio
    async def test_titles_empty_output(self, generator: AssetGenerator, gemini: FakeGemini) -> None:
        gemini.text = "\n\n1.  \n"

        with pytest.raises(GenerationError):
            await generator.generate_titles("Volcanoes", "Script text")

    @pytest.mark.asyncio
    async def test_unsuccessful_result_raises(
        self, generator: AssetGenerator, gemini: FakeGemini
    ) -> None:
        gemini.text = None

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate_seo_description("Volcanoes", "Script text")

        assert exc_info.value.operation == "generate_seo_description"
        assert "Server error (500)" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_raises(self, generator: AssetGenerator, gemini: FakeGemini) -> None:
        gemini.delay = 1.0
        generator._timeout = 0.01

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate_tags("Volcanoes", "Script", "Title")

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timestamps(self, generator: AssetGenerator, gemini: FakeGemini) -> None:
        gemini.text = "0:00 - Intro\n2:10 - Eruption"

        assert await generator.generate_timestamps("Script") == [
            {"time": "0:00", "description": "Intro"},
            {"time": "2:10", "description": "Eruption"},
        ]


# ---------------------------------------------------------------------------
# Binary assets
# ---------------------------------------------------------------------------


class TestThumbnails:
    """Tests for thumbnail generation."""

    @pytest.mark.asyncio
    async def test_failed_design_skipped(
        self, generator: AssetGenerator, gemini: FakeGemini, storage: FakeStorage
    ) -> None:
        gemini.failing_designs = {2}

        batch = await generator.generate_thumbnails("Volcanoes", "Volcanoes 101")

        assert [t.index for t in batch.thumbnails] == [1, 3]
        assert batch.failed_indexes == [2]
        assert [name for name, _ in storage.stored] == ["thumbnail_1.png", "thumbnail_3.png"]
        assert "Design #3" in batch.thumbnails[1].prompt

    @pytest.mark.asyncio
    async def test_all_designs_failing_raises(
        self, generator: AssetGenerator, gemini: FakeGemini
    ) -> None:
        gemini.failing_designs = {1, 2, 3}

        with pytest.raises(GenerationError):
            await generator.generate_thumbnails("Volcanoes", "Volcanoes 101")


class TestAudio:
    """Tests for narrated audio."""

    @pytest.mark.asyncio
    async def test_audio_stored_as_mp3(
        self, generator: AssetGenerator, gemini: FakeGemini, storage: FakeStorage
    ) -> None:
        url = await generator.generate_audio("Hello viewers.", "topic-1")

        assert gemini.speech_calls == [f"{TTS_PREFIX}Hello viewers."]
        name, content_type = storage.stored[0]
        assert name.startswith("audio_topic-1_") and name.endswith(".mp3")
        assert content_type == "audio/mpeg"
        assert url == f"https://cdn.test/{name}"

    @pytest.mark.asyncio
    async def test_discard_deletes_from_storage(
        self, generator: AssetGenerator, storage: FakeStorage
    ) -> None:
        await generator.discard("https://cdn.test/audio.mp3")

        assert storage.deleted == ["https://cdn.test/audio.mp3"]
