"""Unit tests for audio helpers."""

import asyncio
from typing import Any

import pytest
from pydub import AudioSegment

from tubeflow.services.audio import AudioTranscoder
from tubeflow.services.errors import GenerationError


class TestToSegment:
    def test_segment_matches_settings(self) -> None:
        pcm = b"\x01\x00" * 240

        segment = AudioTranscoder(ffmpeg_binary="ffmpeg-test").to_segment(pcm)

        assert segment.channels == 1
        assert segment.frame_rate == 24000
        assert segment.sample_width == 2
        assert segment.frame_count() == 240
        assert segment.raw_data == pcm
        assert segment.converter == "ffmpeg-test"

    def test_truncated_pcm(self) -> None:
        with pytest.raises(GenerationError) as exc_info:
            AudioTranscoder().to_segment(b"\x00\x00\x00")

        assert exc_info.value.operation == "audio"


class TestAudioTranscoder:
    @pytest.mark.asyncio
    async def test_exports_mp3_with_bitrate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        exported: list[dict[str, Any]] = []

        def fake_export(self: AudioSegment, out_f: Any, **kwargs: Any) -> Any:
            exported.append(kwargs)
            out_f.write(b"ID3-mp3")
            return out_f

        monkeypatch.setattr(AudioSegment, "export", fake_export)

        mp3 = await AudioTranscoder(bitrate="192k").pcm_to_mp3(b"\x00\x00" * 100)

        assert mp3 == b"ID3-mp3"
        assert exported == [{"format": "mp3", "bitrate": "192k"}]

    @pytest.mark.asyncio
    async def test_missing_ffmpeg(self) -> None:
        transcoder = AudioTranscoder(ffmpeg_binary="tubeflow-no-such-ffmpeg")

        with pytest.raises(GenerationError) as exc_info:
            await transcoder.pcm_to_mp3(b"\x00\x00" * 100)

        assert "MP3 encoding failed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_cancelled_encode_does_not_break_later_encodes(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def fake_export(self: AudioSegment, out_f: Any, **kwargs: Any) -> Any:
            out_f.write(b"late")
            return out_f

        monkeypatch.setattr(AudioSegment, "export", fake_export)
        transcoder = AudioTranscoder()

        task = asyncio.create_task(transcoder.pcm_to_mp3(b"\x00\x00" * 100))
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        # A later encode still works after a cancelled one
        assert await transcoder.pcm_to_mp3(b"\x00\x00" * 10) == b"late"
