"""Asset generation façade used by the topic lifecycle.

Wraps the Gemini client, asset storage and audio transcoding behind one
method per asset: narration script, titles, thumbnails, SEO description,
tags, timestamps and narrated audio. Every call is bounded by
`generation_timeout`; unsuccessful Gemini results and timeouts surface as
GenerationError, failed uploads as StorageError.

ERROR LOGGING REQUIREMENTS:
- Log each generation step with topic context and timing
- Log skipped thumbnail designs at WARNING level
- Log timeouts at WARNING level before raising
"""

import asyncio
import re
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeVar

from fastapi import Depends

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger
from tubeflow.integrations.gemini import GeminiClient, GeminiResult, get_gemini
from tubeflow.integrations.s3 import S3Client, get_s3
from tubeflow.services.audio import AudioTranscoder
from tubeflow.services.errors import GenerationError, StorageError
from tubeflow.services.storage import AssetStorage

logger = get_logger(__name__)

T = TypeVar("T")

TITLE_NUMBERING = re.compile(r"^[\d]+[\.\)]\s*")
TIMESTAMP_LINE = re.compile(r"^(\d{1,2}:\d{2})\s*-\s*(.+)$")
MAX_TAGS = 15
TTS_PREFIX = "Read aloud in a warm, friendly, professional tone with no background noise: "


@dataclass
class ScriptResult:
    prompt: str
    script: str


@dataclass
class TitlesResult:
    prompt: str
    titles: list[str]


@dataclass
class Thumbnail:
    index: int
    url: str
    prompt: str


@dataclass
class ThumbnailBatch:
    thumbnails: list[Thumbnail] = field(default_factory=list)
    failed_indexes: list[int] = field(default_factory=list)


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _context(description: str | None) -> str:
    return f"\n\nAdditional context: {description}" if description else ""


def narration_prompt(topic_name: str, description: str | None = None) -> str:
    return (
        "You are a professional YouTube video scriptwriter. Create a comprehensive "
        f'narration script for a YouTube video about the topic: "{topic_name}".'
        f"{_context(description)}\n\n"
        'Generate a straightforward narration script for a YouTube video. Start with "in '
        'this video..." Say what the video is about, give a short intro and start '
        "explaining the steps. The steps should be precise and detailed. Keep the ending "
        "short, along the lines of: thank you for watching, like and subscribe if you "
        "liked it, comment if you want a video on a specific topic. Do not include any "
        "headings or subheadings in the output.\n\n"
        "Please provide only the script without any additional commentary."
    )


def titles_prompt(
    topic_name: str, script: str, description: str | None = None, count: int = 10
) -> str:
    return (
        f"You are a YouTube SEO expert. Generate exactly {count} highly optimized YouTube "
        "video titles based on the following information:\n\n"
        f'Topic: "{topic_name}"{_context(description)}\n\n'
        f"Script Summary: {script[:500]}...\n\n"
        "Requirements for the titles:\n"
        "- Each title should be 50-60 characters (optimal for YouTube)\n"
        "- Include relevant keywords for SEO\n"
        "- Be compelling and clickable\n"
        "- Start with power words when appropriate\n"
        "- Different angles and approaches (how-to, tips, guide, tutorial, etc.)\n"
        "- Make them engaging and curiosity-inducing\n\n"
        f"Return ONLY the {count} titles, one per line, numbered 1-{count}. "
        "No additional text or explanation."
    )


def thumbnail_prompt(topic_name: str, title: str, design: int, total: int) -> str:
    return (
        f"You are a YouTube thumbnail designer. Design #{design}.\n\n"
        "Create a YouTube thumbnail image for a video with:\n"
        f'- Topic: "{topic_name}"\n'
        f'- Title: "{title}"\n\n'
        "Requirements:\n"
        "- Eye-catching and attention-grabbing\n"
        "- High contrast colors\n"
        "- Bold, readable text overlay\n"
        "- Professional YouTube thumbnail style\n"
        "- Clear focal point\n"
        "- Vibrant and engaging\n\n"
        f"This is design variation {design} of {total}. "
        "Make it unique and different from typical thumbnails."
    )


def seo_description_prompt(topic_name: str, script: str) -> str:
    return (
        "You are a YouTube SEO expert. Generate a compelling and SEO-optimized YouTube "
        "video description based on the following:\n\n"
        f'Topic: "{topic_name}"\n\n'
        f"Script: {script[:1000]}...\n\n"
        "Requirements:\n"
        "- 300-500 words (optimal for YouTube)\n"
        "- Include main keywords naturally\n"
        "- Be compelling and encourage clicks\n"
        "- Include call-to-action (like, subscribe, comment)\n"
        "- Professional and informative tone\n"
        "- Front-load important information\n\n"
        "Return ONLY the description text, no additional formatting or explanation."
    )


def tags_prompt(topic_name: str, script: str, title: str) -> str:
    return (
        "You are a YouTube SEO expert. Generate 12-15 highly relevant tags for a YouTube "
        "video based on:\n\n"
        f'Topic: "{topic_name}"\n'
        f'Title: "{title}"\n'
        f"Script excerpt: {script[:500]}...\n\n"
        "Requirements:\n"
        "- Tags should be specific and relevant\n"
        "- Include short tags (1-3 words) and longer tags (2-4 words)\n"
        "- Cover main topic, subtopics, and related searches\n"
        "- Include trending keywords if relevant\n"
        "- Mix broad and specific terms\n\n"
        "Return ONLY the tags, one per line, WITHOUT the # symbol. No additional text."
    )


def timestamps_prompt(script: str) -> str:
    return (
        "You are a YouTube video editor. Analyze the following script and generate 5-7 "
        "important timestamps with descriptions for chapter markers.\n\n"
        f"Script: {script}\n\n"
        "Requirements:\n"
        "- Extract 5-7 key sections/moments from the script\n"
        "- Each timestamp should be in MM:SS format (assuming ~5-10 minute video)\n"
        "- Include brief description of what happens at that timestamp (5-10 words)\n"
        '- Start with "0:00" for introduction\n'
        "- Make timestamps progressively later\n"
        "- Descriptions should be clear and clickable\n\n"
        "Format ONLY as:\nMM:SS - Description\n\n"
        "One per line. No additional text or formatting."
    )


def parse_titles(text: str, limit: int = 10) -> list[str]:
    """One title per non-empty line, leading "1." / "2)" numbering removed."""
    titles = [TITLE_NUMBERING.sub("", line.strip()).strip() for line in text.splitlines()]
    return [title for title in titles if title][:limit]


def parse_tags(text: str) -> list[str]:
    tags = [line.strip().lstrip("#").strip() for line in text.splitlines()]
    return [tag for tag in tags if tag][:MAX_TAGS]


def parse_timestamps(text: str) -> list[dict[str, str]]:
    """Keep only `M:SS - description` / `MM:SS - description` lines."""
    timestamps = []
    for line in text.splitlines():
        match = TIMESTAMP_LINE.match(line.strip())
        if match:
            timestamps.append({"time": match.group(1), "description": match.group(2).strip()})
    return timestamps


class AssetGenerator:
    """Generation façade; one instance per request or poller pass."""

    def __init__(
        self,
        gemini: GeminiClient,
        storage: AssetStorage,
        transcoder: AudioTranscoder | None = None,
    ) -> None:
        settings = get_settings()
        self._gemini = gemini
        self._storage = storage
        self._transcoder = transcoder or AudioTranscoder()
        self._timeout = settings.generation_timeout
        self._title_count = settings.title_count
        self._thumbnail_count = settings.thumbnail_count
        self._thumbnail_delay = settings.thumbnail_request_delay

    async def _bounded(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await with the generation timeout; a timeout becomes GenerationError."""
        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(awaitable, timeout=self._timeout)
        except TimeoutError as e:
            logger.warning(
                "Generation step timed out",
                extra={"operation": operation, "timeout_seconds": self._timeout},
            )
            raise GenerationError(
                operation, f"{operation} timed out after {self._timeout}s"
            ) from e
        logger.debug(
            "Generation step finished",
            extra={
                "operation": operation,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result

    @staticmethod
    def _require_text(operation: str, result: GeminiResult) -> str:
        if not result.success or not result.text:
            raise GenerationError(
                operation, f"Failed to {operation.replace('_', ' ')}: {result.error}"
            )
        return result.text.strip()

    async def _text(self, operation: str, prompt: str, use_search: bool = False) -> str:
        result = await self._bounded(
            operation, self._gemini.generate_text(prompt, use_search=use_search)
        )
        return self._require_text(operation, result)

    async def generate_narration_script(
        self, topic_name: str, description: str | None = None
    ) -> ScriptResult:
        """Search-grounded narration script."""
        prompt = narration_prompt(topic_name, description)
        script = await self._text("generate_narration_script", prompt, use_search=True)
        return ScriptResult(prompt=prompt, script=script)

    async def generate_titles(
        self, topic_name: str, script: str, description: str | None = None
    ) -> TitlesResult:
        prompt = titles_prompt(topic_name, script, description, self._title_count)
        text = await self._text("generate_titles", prompt)
        titles = parse_titles(text, self._title_count)
        if not titles:
            raise GenerationError("generate_titles", "Model returned no titles")
        return TitlesResult(prompt=prompt, titles=titles)

    async def generate_thumbnails(self, topic_name: str, title: str) -> ThumbnailBatch:
        """Generate designs one after another, uploading each.

        A failed design is skipped; no design at all raises GenerationError.
        """
        batch = ThumbnailBatch()
        total = self._thumbnail_count
        for design in range(1, total + 1):
            prompt = thumbnail_prompt(topic_name, title, design, total)
            try:
                result = await self._bounded(
                    "generate_thumbnail", self._gemini.generate_image(prompt)
                )
                if not result.success or not result.data:
                    raise GenerationError("generate_thumbnail", result.error or "No image data")
                url = await self._storage.store(
                    result.data, f"thumbnail_{design}.png", result.mime_type or "image/png"
                )
                batch.thumbnails.append(Thumbnail(index=design, url=url, prompt=prompt))
            except (GenerationError, StorageError) as e:
                batch.failed_indexes.append(design)
                logger.warning(
                    "Thumbnail design skipped",
                    extra={"design": design, "error_type": type(e).__name__, "error_message": str(e)},
                )
            if design < total and self._thumbnail_delay > 0:
                await asyncio.sleep(self._thumbnail_delay)

        if not batch.thumbnails:
            raise GenerationError(
                "generate_thumbnails", "Failed to generate any thumbnails. Please try again."
            )
        return batch

    async def generate_seo_description(self, topic_name: str, script: str) -> str:
        return await self._text(
            "generate_seo_description", seo_description_prompt(topic_name, script)
        )

    async def generate_tags(self, topic_name: str, script: str, title: str) -> list[str]:
        text = await self._text("generate_tags", tags_prompt(topic_name, script, title))
        return parse_tags(text)

    async def generate_timestamps(self, script: str) -> list[dict[str, str]]:
        text = await self._text("generate_timestamps", timestamps_prompt(script))
        return parse_timestamps(text)

    async def generate_audio(self, script: str, topic_id: str) -> str:
        """Narrate the script, encode MP3 and upload; returns the public URL."""

        async def produce() -> str:
            result = await self._gemini.generate_speech(f"{TTS_PREFIX}{script}")
            if not result.success or not result.data:
                raise GenerationError(
                    "generate_audio", f"Failed to generate audio: {result.error}"
                )
            mp3 = await self._transcoder.pcm_to_mp3(result.data)
            return await self._storage.store(
                mp3, f"audio_{topic_id}_{int(time.time() * 1000)}.mp3", "audio/mpeg"
            )

        return await self._bounded("generate_audio", produce())

    async def discard(self, url: str | None) -> None:
        """Best-effort removal of an asset that will not be kept."""
        await self._storage.delete(url)


async def get_asset_generator(
    gemini: GeminiClient = Depends(get_gemini),
    s3: S3Client = Depends(get_s3),
) -> AssetGenerator:
    """Dependency for getting the asset generation façade."""
    return AssetGenerator(gemini, AssetStorage(s3))
