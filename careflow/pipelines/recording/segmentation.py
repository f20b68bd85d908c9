"""Speaker segmentation stage of the recording pipeline.

Two steps:

1. ``identify_turns`` asks the LLM to split the transcript into speaker
   turns (who said what, and in which role).
2. A ``WordAligner`` maps each turn onto the word timestamps returned by the
   speech provider, estimating timings where the words cannot be matched.

Every failure path degrades to a coarser segmentation instead of raising.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from careflow.config.settings import settings
from careflow.services.response_contract import ResponseContractError, SpeakerTurnsResponse

from .prompts import build_speaker_turns_prompt
from .types import (
    GENERIC_SPEAKER,
    SEGMENTATION_DEGRADED,
    Degraded,
    EnhancedTranscript,
    Ok,
    Segment,
    SpeakerTurn,
    StageResult,
    WordTimestamp,
)

logger = logging.getLogger("careflow.pipeline")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _normalize(token: str) -> str:
    return _NON_ALNUM.sub("", token.lower())


def _tokens(text: str) -> List[str]:
    return [token for token in (_normalize(part) for part in text.split()) if token]


def _token_matches(token: str, word: str) -> bool:
    """Loose predicate: the token's first three characters occur in the spoken word."""

    normalized = _normalize(word)
    return bool(normalized) and token[:3] in normalized


@dataclass(frozen=True)
class AlignmentResult:
    segments: List[Segment]
    cursor_trace: List[int] = field(default_factory=list)
    estimated_turns: int = 0

    @property
    def estimated(self) -> bool:
        return self.estimated_turns > 0


class WordAligner(Protocol):
    def align(self, turns: Sequence[SpeakerTurn], words: Sequence[WordTimestamp]) -> AlignmentResult:
        ...


class GreedyWordAligner:
    """Match turns against word timestamps left to right with a consumption cursor.

    For each turn, its tokens are looked up in order among the unconsumed words,
    each within ``lookahead`` words of the previous hit. A turn matches when at
    least half of its tokens (minimum one) are found. Unmatched turns get an
    estimated span of ``seconds_per_word`` per word and push the cursor forward
    by their word count, so the cursor never moves backwards and never passes
    the end of the word list.
    """

    def __init__(self, *, lookahead: Optional[int] = None, seconds_per_word: Optional[float] = None) -> None:
        self._lookahead = settings.pipeline.alignment_lookahead if lookahead is None else lookahead
        self._seconds_per_word = (
            settings.pipeline.seconds_per_word if seconds_per_word is None else seconds_per_word
        )

    def align(self, turns: Sequence[SpeakerTurn], words: Sequence[WordTimestamp]) -> AlignmentResult:
        segments: List[Segment] = []
        trace: List[int] = []
        cursor = 0
        estimated = 0

        for turn in turns:
            tokens = _tokens(turn.text)
            span = self._match(tokens, words, cursor)
            previous_start = segments[-1].start if segments else 0.0

            if span is not None:
                first, last = span
                start = words[first].start
                end = words[last].end
                cursor = last + 1
            else:
                previous_end = segments[-1].end if segments else 0.0
                start = words[cursor].start if cursor < len(words) else previous_end
                word_count = max(turn.word_count, 1)
                end = start + word_count * self._seconds_per_word
                cursor = min(cursor + word_count, len(words))
                estimated += 1

            start = max(start, previous_start)
            end = max(end, start)
            segments.append(
                Segment(
                    start=start,
                    end=end,
                    text=turn.text,
                    speaker=turn.speaker,
                    speaker_role=turn.speaker_role,
                )
            )
            trace.append(cursor)

        return AlignmentResult(segments=segments, cursor_trace=trace, estimated_turns=estimated)

    def _match(
        self,
        tokens: Sequence[str],
        words: Sequence[WordTimestamp],
        cursor: int,
    ) -> Optional[tuple[int, int]]:
        if not tokens or cursor >= len(words):
            return None

        matched: List[int] = []
        position = cursor
        for token in tokens:
            window_end = min(position + self._lookahead + 1, len(words))
            for index in range(position, window_end):
                if _token_matches(token, words[index].word):
                    matched.append(index)
                    position = index + 1
                    break
            if position >= len(words):
                break

        required = max(1, math.ceil(len(tokens) / 2))
        if len(matched) < required:
            return None
        return matched[0], matched[-1]


def chunk_segments(words: Sequence[WordTimestamp], chunk_size: int) -> List[Segment]:
    """Fallback segmentation: fixed-size word chunks attributed to a generic speaker."""

    segments: List[Segment] = []
    for offset in range(0, len(words), chunk_size):
        chunk = words[offset : offset + chunk_size]
        segments.append(
            Segment(
                start=chunk[0].start,
                end=chunk[-1].end,
                text=" ".join(word.word for word in chunk),
                speaker=GENERIC_SPEAKER,
                speaker_role=GENERIC_SPEAKER,
            )
        )
    return segments


def whole_text_segment(text: str, duration: Optional[float], default_duration: float) -> Segment:
    return Segment(
        start=0.0,
        end=duration if duration else default_duration,
        text=text,
        speaker=GENERIC_SPEAKER,
        speaker_role=GENERIC_SPEAKER,
    )


class SpeakerSegmentationEngine:
    """Turn raw transcript text plus word timings into an ``EnhancedTranscript``."""

    def __init__(
        self,
        llm,
        aligner: Optional[WordAligner] = None,
        *,
        chunk_words: Optional[int] = None,
        fallback_duration: Optional[float] = None,
    ) -> None:
        self._llm = llm
        self._aligner = aligner or GreedyWordAligner()
        self._chunk_words = chunk_words or settings.pipeline.fallback_chunk_words
        self._fallback_duration = fallback_duration or settings.pipeline.fallback_duration_seconds

    async def identify_turns(self, text: str) -> StageResult[List[SpeakerTurn]]:
        single_turn = [SpeakerTurn(text=text, speaker=GENERIC_SPEAKER, speaker_role=GENERIC_SPEAKER)]
        prompts = build_speaker_turns_prompt(text)
        try:
            raw = await self._llm.invoke(
                system_prompt=prompts.system_prompt,
                user_prompt=prompts.user_prompt,
                max_tokens=settings.pipeline.llm_max_tokens,
            )
            if not raw:
                raise ResponseContractError("LLM returned an empty speaker-turn response.")
            parsed = SpeakerTurnsResponse.from_json(raw)
        except Exception as exc:
            logger.warning("Speaker turn identification failed, using a single turn: %s", exc)
            return Degraded(single_turn, SEGMENTATION_DEGRADED, f"speaker turns unavailable: {exc}")

        if not parsed.turns:
            logger.warning("Speaker turn identification returned no turns, using a single turn")
            return Degraded(single_turn, SEGMENTATION_DEGRADED, "speaker turns empty")

        turns = [
            SpeakerTurn(text=turn.text.strip(), speaker=turn.speaker, speaker_role=turn.speaker_role)
            for turn in parsed.turns
        ]
        logger.info("Identified %s speaker turns", len(turns))
        return Ok(turns)

    async def segment(
        self,
        text: str,
        words: Sequence[WordTimestamp],
        duration: Optional[float] = None,
    ) -> StageResult[EnhancedTranscript]:
        if not words:
            logger.warning("No word timestamps available, emitting one whole-text segment")
            segment = whole_text_segment(text, duration, self._fallback_duration)
            return Degraded(
                EnhancedTranscript.from_segments(text, [segment]),
                SEGMENTATION_DEGRADED,
                "no word timestamps",
            )

        turns_result = await self.identify_turns(text)

        try:
            alignment = self._aligner.align(turns_result.value, words)
        except Exception as exc:
            logger.warning("Timestamp alignment failed, chunking words: %s", exc, exc_info=True)
            segments = chunk_segments(words, self._chunk_words)
            return Degraded(
                EnhancedTranscript.from_segments(text, segments),
                SEGMENTATION_DEGRADED,
                f"alignment failed: {exc}",
            )

        enhanced = EnhancedTranscript.from_segments(text, alignment.segments)
        logger.info(
            "Created %s speaker-turn segments with %s speakers (%s estimated)",
            len(enhanced.segments),
            len(enhanced.speakers),
            alignment.estimated_turns,
        )

        if isinstance(turns_result, Degraded):
            return Degraded(enhanced, turns_result.reason, turns_result.detail)
        if alignment.estimated:
            return Degraded(
                enhanced,
                SEGMENTATION_DEGRADED,
                f"{alignment.estimated_turns} of {len(alignment.segments)} turns estimated",
            )
        return Ok(enhanced)


__all__ = [
    "AlignmentResult",
    "GreedyWordAligner",
    "SpeakerSegmentationEngine",
    "WordAligner",
    "chunk_segments",
    "whole_text_segment",
]
