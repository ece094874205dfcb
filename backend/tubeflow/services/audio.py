"""Audio helpers: turn Gemini TTS PCM into an uploadable MP3.

Encoding goes through pydub, which drives ffmpeg; the binary and bitrate
come from settings.
"""

import asyncio
import io

from pydub import AudioSegment
from pydub.exceptions import CouldntEncodeError

from tubeflow.core.config import get_settings
from tubeflow.core.logging import get_logger
from tubeflow.services.errors import GenerationError

logger = get_logger(__name__)


class AudioTranscoder:
    """Turns Gemini TTS output into an uploadable MP3."""

    def __init__(self, ffmpeg_binary: str | None = None, bitrate: str | None = None) -> None:
        settings = get_settings()
        self._ffmpeg = ffmpeg_binary or settings.ffmpeg_binary
        self._bitrate = bitrate or settings.audio_bitrate
        self._channels = settings.audio_channels
        self._sample_rate = settings.audio_sample_rate
        self._sample_width = settings.audio_sample_width

    def to_segment(self, pcm: bytes) -> AudioSegment:
        """Wrap raw little-endian PCM samples in an AudioSegment."""
        try:
            segment = AudioSegment(
                data=pcm,
                sample_width=self._sample_width,
                frame_rate=self._sample_rate,
                channels=self._channels,
            )
        except ValueError as e:
            raise GenerationError("audio", f"Invalid PCM data: {e}") from e
        segment.converter = self._ffmpeg
        return segment

    def encode(self, pcm: bytes) -> bytes:
        """Blocking PCM to MP3 encode."""
        segment = self.to_segment(pcm)
        buffer = io.BytesIO()
        try:
            segment.export(buffer, format="mp3", bitrate=self._bitrate)
        except (CouldntEncodeError, OSError) as e:
            logger.error(
                "MP3 encoding failed",
                extra={
                    "converter": self._ffmpeg,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            raise GenerationError("audio", f"MP3 encoding failed: {e}") from e

        mp3_bytes = buffer.getvalue()
        logger.debug(
            "Audio transcoded",
            extra={"pcm_bytes": len(pcm), "mp3_bytes": len(mp3_bytes)},
        )
        return mp3_bytes

    async def pcm_to_mp3(self, pcm: bytes) -> bytes:
        """PCM -> MP3 off the event loop.

        Raises:
            GenerationError: If the PCM is malformed or encoding fails
        """
        return await asyncio.to_thread(self.encode, pcm)
