"""Amazon Transcribe integration helpers using Streaming API."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass, field
from functools import lru_cache

from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.handlers import TranscriptResultStreamHandler
from amazon_transcribe.model import TranscriptEvent
from fastapi.concurrency import run_in_threadpool

from careflow.config.settings import settings

logger = logging.getLogger(__name__)

_BYTES_PER_SAMPLE = 2  # s16le


@dataclass(frozen=True)
class TranscribedWord:
    """One pronounced word with its offsets (seconds from the start of the audio)."""

    word: str
    start: float
    end: float


@dataclass(frozen=True)
class TranscriptionResult:
    """Structured transcription outcome returned to the pipeline."""

    transcript: str
    words: tuple[TranscribedWord, ...] = field(default_factory=tuple)
    duration_seconds: float | None = None
    language_code: str | None = None


class TranscriptionError(RuntimeError):
    """Raised when Amazon Transcribe fails to process audio successfully."""


class TranscribeService:
    """High-level facade for streaming audio to Amazon Transcribe."""

    def __init__(
        self,
        region: str,
        language_code: str = "en-GB",
        media_sample_rate_hz: int = 16000,
        media_encoding: str = "pcm",
    ) -> None:
        self._region = region
        self._language_code = language_code
        self._media_sample_rate_hz = media_sample_rate_hz
        self._media_encoding = media_encoding

        # Ensure credentials are available to the SDK
        if settings.aws.access_key:
            os.environ["AWS_ACCESS_KEY_ID"] = settings.aws.access_key
        if settings.aws.secret_key:
            os.environ["AWS_SECRET_ACCESS_KEY"] = settings.aws.secret_key

        self._client = TranscribeStreamingClient(region=region)

    async def transcribe_audio(self, audio_bytes: bytes) -> TranscriptionResult:
        """Stream audio to Transcribe and return the transcript with word timings."""

        if not audio_bytes:
            raise TranscriptionError("The uploaded audio file is empty.")

        try:
            pcm_data = await self._convert_to_pcm(audio_bytes)
        except TranscriptionError:
            raise
        except Exception as exc:
            raise TranscriptionError(f"Audio conversion failed: {exc}") from exc

        if not pcm_data:
            raise TranscriptionError("Audio conversion produced no samples.")

        bytes_per_sec = self._media_sample_rate_hz * _BYTES_PER_SAMPLE
        duration_seconds = len(pcm_data) / bytes_per_sec

        try:
            stream = await self._client.start_stream_transcription(
                language_code=self._language_code,
                media_sample_rate_hz=self._media_sample_rate_hz,
                media_encoding=self._media_encoding,
            )
        except Exception as exc:
            raise TranscriptionError(f"Could not start transcription stream: {exc}") from exc

        handler = _WordCollectingHandler(stream.output_stream)

        async def write_chunks() -> None:
            # 8 KiB of 16 kHz mono s16le is ~256 ms of audio.
            chunk_size = 8192
            sleep_time = chunk_size / bytes_per_sec

            logger.info(
                "Starting stream. Total bytes: %s. Chunk size: %s. Sleep: %.4fs",
                len(pcm_data),
                chunk_size,
                sleep_time,
            )

            total_sent = 0
            for i in range(0, len(pcm_data), chunk_size):
                chunk = pcm_data[i : i + chunk_size]
                await stream.input_stream.send_audio_event(audio_chunk=chunk)
                total_sent += len(chunk)
                # Transcribe rejects audio sent faster than real time.
                await asyncio.sleep(sleep_time)

                if i % (chunk_size * 50) == 0:
                    logger.debug("Streamed %s/%s bytes", total_sent, len(pcm_data))

            logger.info("Finished streaming audio bytes. Ending stream.")
            await stream.input_stream.end_stream()

        try:
            await asyncio.gather(write_chunks(), handler.handle_events())
        except Exception as exc:
            logger.error("Streaming loop failed: %s", exc)
            raise TranscriptionError(f"Streaming transcription failed: {exc}") from exc

        transcript = " ".join(handler.fragments).strip()
        logger.info(
            "Transcription complete. Length: %s words=%s duration=%.1fs",
            len(transcript),
            len(handler.words),
            duration_seconds,
        )
        return TranscriptionResult(
            transcript=transcript,
            words=tuple(handler.words),
            duration_seconds=duration_seconds,
            language_code=self._language_code,
        )

    async def _convert_to_pcm(self, audio_bytes: bytes) -> bytes:
        """Convert input audio to raw PCM s16le via ffmpeg using a thread."""
        return await run_in_threadpool(self._convert_to_pcm_sync, audio_bytes)

    def _convert_to_pcm_sync(self, audio_bytes: bytes) -> bytes:
        """Synchronous ffmpeg conversion using a temporary file to support seeking."""

        with tempfile.NamedTemporaryFile(delete=False, suffix=".tmp") as tmp_file:
            tmp_file.write(audio_bytes)
            tmp_path = tmp_file.name

        try:
            process = subprocess.run(
                [
                    "ffmpeg",
                    "-y",
                    "-i", tmp_path,
                    "-f", "s16le",
                    "-ac", "1",
                    "-ar", str(self._media_sample_rate_hz),
                    "pipe:1",
                ],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
            if not process.stdout:
                logger.warning(
                    "ffmpeg produced empty output. stderr: %s",
                    process.stderr.decode("utf-8", errors="replace"),
                )
            return process.stdout
        except FileNotFoundError as exc:
            raise TranscriptionError("ffmpeg is not installed or not on PATH.") from exc
        except subprocess.CalledProcessError as exc:
            error_msg = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            logger.error("ffmpeg failed. stderr: %s", error_msg)
            raise TranscriptionError(f"ffmpeg failed to convert audio to PCM: {error_msg}") from exc
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)


class _WordCollectingHandler(TranscriptResultStreamHandler):
    def __init__(self, transcript_result_stream):
        super().__init__(transcript_result_stream)
        self.fragments: list[str] = []
        self.words: list[TranscribedWord] = []

    async def handle_transcript_event(self, transcript_event: TranscriptEvent):
        results = transcript_event.transcript.results
        for result in results:
            if result.is_partial or not result.alternatives:
                continue
            best = result.alternatives[0]
            self.fragments.append(best.transcript)
            for item in best.items or []:
                if item.item_type != "pronunciation" or not item.content:
                    continue
                self.words.append(
                    TranscribedWord(
                        word=item.content,
                        start=float(item.start_time),
                        end=float(item.end_time),
                    )
                )


@lru_cache(maxsize=1)
def get_transcribe_service() -> TranscribeService:
    """Return a lazily-instantiated transcribe service singleton."""

    return TranscribeService(
        region=settings.transcribe.region,
        language_code=settings.transcribe.language_code,
        media_sample_rate_hz=settings.transcribe.sample_rate_hz,
    )


__all__ = [
    "TranscribeService",
    "TranscribedWord",
    "TranscriptionError",
    "TranscriptionResult",
    "get_transcribe_service",
]
