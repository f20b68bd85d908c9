"""Speaker segmentation and word alignment."""

from __future__ import annotations

import asyncio

import pytest

from careflow.pipelines.recording import (
    Degraded,
    GreedyWordAligner,
    Ok,
    SpeakerSegmentationEngine,
    SpeakerTurn,
)
from careflow.pipelines.recording.segmentation import chunk_segments, whole_text_segment
from careflow.pipelines.recording.types import GENERIC_SPEAKER, SEGMENTATION_DEGRADED

from tests.fakes import FakeLlm, turns_json, words_for

TRANSCRIPT = "Hello, I'm David Oh hi David, I'm Ellie"


def _turn(text: str, speaker: str = "A", role: str = "Client") -> SpeakerTurn:
    return SpeakerTurn(text=text, speaker=speaker, speaker_role=role)


def test_two_speakers_are_aligned_to_their_words():
    llm = FakeLlm(
        responses=[
            turns_json(
                ("Hello, I'm David", "David", "Social Worker"),
                ("Oh hi David, I'm Ellie", "Ellie", "Client"),
            )
        ]
    )
    engine = SpeakerSegmentationEngine(llm)

    result = asyncio.run(engine.segment(TRANSCRIPT, words_for(TRANSCRIPT), 4.0))

    assert isinstance(result, Ok)
    enhanced = result.value
    assert len(enhanced.segments) == 2
    assert enhanced.speakers == ["David", "Ellie"]
    assert enhanced.speaker_roles == {"David": "Social Worker", "Ellie": "Client"}
    first, second = enhanced.segments
    assert first.start == 0.0
    assert second.start == pytest.approx(1.5)
    assert first.end <= second.start


def test_remaining_turns_are_estimated_when_words_run_out():
    words = words_for("good morning")
    turns = [
        _turn("good morning"),
        _turn("how have you been sleeping", "B"),
        _turn("not well at all", "A"),
    ]

    alignment = GreedyWordAligner(lookahead=3, seconds_per_word=0.5).align(turns, words)

    assert alignment.estimated_turns == 2
    starts = [segment.start for segment in alignment.segments]
    assert starts == sorted(starts)
    for previous, current in zip(alignment.segments, alignment.segments[1:]):
        assert current.start >= previous.end
    assert alignment.segments[1].end - alignment.segments[1].start == pytest.approx(2.5)


@pytest.mark.parametrize(
    "turn_texts, spoken",
    [
        (["alpha beta", "gamma", "delta epsilon"], "alpha beta gamma delta epsilon"),
        (["nothing matches here", "still nothing", "zzz"], "alpha beta gamma"),
        (["alpha", "alpha", "alpha", "alpha", "alpha"], "alpha"),
        (["", "beta gamma", "beta"], "beta gamma beta"),
        (["one two three four five six"], "one"),
    ],
)
def test_cursor_never_moves_backwards_or_past_the_words(turn_texts, spoken):
    words = words_for(spoken)
    turns = [_turn(text or "um") for text in turn_texts]

    alignment = GreedyWordAligner(lookahead=2, seconds_per_word=0.4).align(turns, words)

    assert alignment.cursor_trace == sorted(alignment.cursor_trace)
    assert all(0 <= cursor <= len(words) for cursor in alignment.cursor_trace)
    assert [segment.text for segment in alignment.segments] == [turn.text for turn in turns]
    starts = [segment.start for segment in alignment.segments]
    assert starts == sorted(starts)


def test_unmatched_turn_is_estimated_from_the_cursor_word():
    words = words_for("alpha beta gamma delta", start=10.0, step=1.0)
    turns = [_turn("alpha beta"), _turn("completely different words")]

    alignment = GreedyWordAligner(lookahead=1, seconds_per_word=0.5).align(turns, words)

    assert alignment.cursor_trace == [2, 4]
    estimated = alignment.segments[1]
    assert estimated.start == pytest.approx(12.0)
    assert estimated.end == pytest.approx(13.5)


def test_malformed_turn_response_falls_back_to_single_turn():
    llm = FakeLlm(responses=["this is not json"])
    engine = SpeakerSegmentationEngine(llm)

    result = asyncio.run(engine.segment("hello there", words_for("hello there"), 1.0))

    assert isinstance(result, Degraded)
    assert result.reason == SEGMENTATION_DEGRADED
    assert [segment.speaker for segment in result.value.segments] == [GENERIC_SPEAKER]
    assert result.value.speakers == [GENERIC_SPEAKER]


def test_empty_turn_list_is_degraded():
    llm = FakeLlm(responses=['{"turns": [{"text": "   ", "speaker": "A"}]}'])
    engine = SpeakerSegmentationEngine(llm)

    result = asyncio.run(engine.identify_turns("hello there"))

    assert isinstance(result, Degraded)
    assert result.value[0].text == "hello there"


def test_blank_speaker_labels_become_generic():
    llm = FakeLlm(responses=['```json\n{"turns": [{"text": "hi", "speaker": "", "speakerRole": null}]}\n```'])
    engine = SpeakerSegmentationEngine(llm)

    result = asyncio.run(engine.identify_turns("hi"))

    assert isinstance(result, Ok)
    assert result.value[0].speaker == GENERIC_SPEAKER
    assert result.value[0].speaker_role == GENERIC_SPEAKER


def test_no_word_timestamps_gives_one_whole_text_segment():
    llm = FakeLlm()
    engine = SpeakerSegmentationEngine(llm, fallback_duration=60.0)

    result = asyncio.run(engine.segment("hello there", [], 12.5))

    assert isinstance(result, Degraded)
    assert llm.calls == []
    (segment,) = result.value.segments
    assert (segment.start, segment.end) == (0.0, 12.5)
    assert segment.text == "hello there"


class ExplodingAligner:
    def align(self, turns, words):
        raise ValueError("boom")


def test_alignment_failure_chunks_the_words():
    spoken = "one two three four five six seven"
    llm = FakeLlm(responses=[turns_json((spoken, "A", "Client"))])
    engine = SpeakerSegmentationEngine(llm, ExplodingAligner(), chunk_words=3)

    result = asyncio.run(engine.segment(spoken, words_for(spoken), None))

    assert isinstance(result, Degraded)
    assert [segment.text for segment in result.value.segments] == [
        "one two three",
        "four five six",
        "seven",
    ]


def test_chunk_and_whole_text_helpers():
    words = words_for("a b c d", step=1.0)

    chunks = chunk_segments(words, 2)
    assert [(chunk.start, chunk.text) for chunk in chunks] == [(0.0, "a b"), (2.0, "c d")]

    segment = whole_text_segment("abc", None, 60.0)
    assert segment.end == 60.0


def test_enhanced_transcript_serializes_with_camel_case_keys():
    llm = FakeLlm(responses=[turns_json(("hello there", "David", "Social Worker"))])
    engine = SpeakerSegmentationEngine(llm)

    result = asyncio.run(engine.segment("hello there", words_for("hello there"), 1.0))
    payload = result.value.to_json()

    assert payload["speakerRoles"] == {"David": "Social Worker"}
    assert payload["segments"][0]["speakerRole"] == "Social Worker"
    assert "conversationFormat" not in payload
