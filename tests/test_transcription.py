"""Transcription adapter: audio file in, transcript and speaker segments out."""

from __future__ import annotations

import asyncio

import pytest

from careflow.pipelines.recording import Degraded, Ok, SpeakerSegmentationEngine, TranscriptionAdapter
from careflow.services.transcribe import TranscriptionError

from tests.fakes import FakeLlm, FakeSpeech, turns_json, words_for

SPOKEN = "Morning Ellie how are you"


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "visit.mp3"
    path.write_bytes(b"ID3-fake-audio")
    return path


def adapter(speech, llm=None):
    return TranscriptionAdapter(speech, SpeakerSegmentationEngine(llm or FakeLlm()))


def test_transcribes_and_segments(audio_file):
    speech = FakeSpeech(SPOKEN, words=words_for(SPOKEN), duration=2.5)
    llm = FakeLlm(responses=[turns_json((SPOKEN, "David", "Social Worker"))])

    result = asyncio.run(adapter(speech, llm).transcribe(audio_file))

    assert isinstance(result, Ok)
    assert speech.received == [b"ID3-fake-audio"]
    assert result.value.text == SPOKEN
    assert result.value.duration == 2.5
    assert result.value.enhanced_transcript.speakers == ["David"]


def test_missing_word_timings_degrade_but_keep_text(audio_file):
    speech = FakeSpeech(SPOKEN, duration=2.5)

    result = asyncio.run(adapter(speech).transcribe(audio_file))

    assert isinstance(result, Degraded)
    assert result.value.text == SPOKEN
    assert result.value.enhanced_transcript.segments[0].end == 2.5


def test_missing_file_raises_transcription_error(tmp_path):
    speech = FakeSpeech(SPOKEN)

    with pytest.raises(TranscriptionError, match="Could not read audio file"):
        asyncio.run(adapter(speech).transcribe(tmp_path / "gone.mp3"))
    assert speech.received == []


def test_provider_failure_is_wrapped(audio_file):
    speech = FakeSpeech(error=ConnectionError("stream reset"))

    with pytest.raises(TranscriptionError, match="stream reset"):
        asyncio.run(adapter(speech).recognize(audio_file))


def test_empty_transcript_is_an_error(audio_file):
    speech = FakeSpeech("   ")

    with pytest.raises(TranscriptionError, match="no transcript"):
        asyncio.run(adapter(speech).recognize(audio_file))
