"""Transcription stage of the recording pipeline.

Reads the stored audio, sends it to the speech-to-text provider and hands
the text and word timings to the speaker segmentation engine.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from careflow.services.storage import read_recording
from careflow.services.transcribe import TranscriptionError, TranscriptionResult

from .segmentation import SpeakerSegmentationEngine
from .types import Degraded, Ok, SpeechResult, StageResult, Transcription, WordTimestamp

logger = logging.getLogger("careflow.pipeline")
transcript_logger = logging.getLogger("careflow.logs.transcript")


class SpeechToTextService(Protocol):
    async def transcribe_audio(self, audio_bytes: bytes) -> TranscriptionResult:
        ...


def to_speech_result(result: TranscriptionResult) -> SpeechResult:
    return SpeechResult(
        text=(result.transcript or "").strip(),
        words=tuple(
            WordTimestamp(word=word.word, start=word.start, end=word.end) for word in result.words
        ),
        duration=result.duration_seconds,
    )


class TranscriptionAdapter:
    """Audio file path in, transcript text plus enhanced transcript out."""

    def __init__(self, speech: SpeechToTextService, segmentation: SpeakerSegmentationEngine) -> None:
        self._speech = speech
        self._segmentation = segmentation

    async def recognize(self, audio_file_path: str | Path) -> SpeechResult:
        """Run speech-to-text only. Raises ``TranscriptionError`` on any failure."""

        path = Path(audio_file_path)
        try:
            audio_bytes = await read_recording(path)
        except OSError as exc:
            raise TranscriptionError(f"Could not read audio file {path.name}: {exc}") from exc

        logger.info("Transcribing %s (%s bytes)", path.name, len(audio_bytes))
        try:
            result = await self._speech.transcribe_audio(audio_bytes)
        except TranscriptionError:
            raise
        except Exception as exc:
            raise TranscriptionError(f"Failed to transcribe audio: {exc}") from exc

        speech = to_speech_result(result)
        if not speech.text:
            raise TranscriptionError("Speech provider returned no transcript text.")

        transcript_logger.info("file=%s words=%s text=%s", path.name, len(speech.words), speech.text)
        return speech

    async def transcribe(self, audio_file_path: str | Path) -> StageResult[Transcription]:
        speech = await self.recognize(audio_file_path)
        segmented = await self._segmentation.segment(speech.text, speech.words, speech.duration)

        transcription = Transcription(
            text=speech.text,
            enhanced_transcript=segmented.value,
            duration=speech.duration,
        )
        if isinstance(segmented, Degraded):
            return Degraded(transcription, segmented.reason, segmented.detail)
        return Ok(transcription)


__all__ = ["SpeechToTextService", "TranscriptionAdapter", "to_speech_result"]
