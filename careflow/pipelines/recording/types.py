"""Typed containers shared across the recording processing pipeline.

Transcript shapes are pydantic models because they are persisted as JSON on
the ``transcripts`` table (camelCase keys on the wire). Stage results are
plain frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

GENERIC_SPEAKER = "Speaker"

# Reason tags carried by ``Degraded`` results.
SEGMENTATION_DEGRADED = "SegmentationDegraded"
FORMATTING_DEGRADED = "FormattingDegraded"
GENERATION_DEGRADED = "GenerationDegraded"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class WordTimestamp(_CamelModel):
    word: str
    start: float
    end: float


class SpeakerTurn(_CamelModel):
    text: str
    speaker: str = GENERIC_SPEAKER
    speaker_role: str = Field(default=GENERIC_SPEAKER, alias="speakerRole")

    @property
    def word_count(self) -> int:
        return len(self.text.split())


class Segment(_CamelModel):
    start: float
    end: float
    text: str
    speaker: Optional[str] = None
    speaker_role: Optional[str] = Field(default=None, alias="speakerRole")


class EnhancedTranscript(_CamelModel):
    text: str
    segments: List[Segment] = Field(default_factory=list)
    speakers: List[str] = Field(default_factory=list)
    speaker_roles: Dict[str, str] = Field(default_factory=dict, alias="speakerRoles")
    conversation_format: Optional[str] = Field(default=None, alias="conversationFormat")

    @classmethod
    def from_segments(cls, text: str, segments: List[Segment]) -> "EnhancedTranscript":
        """Derive the speaker list (first-seen order) and role map (last write wins)."""

        speakers: List[str] = []
        roles: Dict[str, str] = {}
        for segment in segments:
            if not segment.speaker:
                continue
            if segment.speaker not in speakers:
                speakers.append(segment.speaker)
            if segment.speaker_role:
                roles[segment.speaker] = segment.speaker_role
        return cls(text=text, segments=segments, speakers=speakers, speaker_roles=roles)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class SpeechResult:
    """Raw speech-to-text output: full text, word timings and audio length."""

    text: str
    words: tuple[WordTimestamp, ...] = ()
    duration: Optional[float] = None


@dataclass(frozen=True)
class Transcription:
    """Output of the transcription stage."""

    text: str
    enhanced_transcript: EnhancedTranscript
    duration: Optional[float] = None


@dataclass(frozen=True)
class AssessmentDraft:
    """Generated section texts keyed by section key, plus action items."""

    sections: Dict[str, str]
    action_items: List[str] = field(default_factory=list)

    def as_mapping(self) -> Dict[str, Any]:
        mapping: Dict[str, Any] = dict(self.sections)
        mapping["actionItems"] = list(self.action_items)
        return mapping


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded(Generic[T]):
    """A usable result produced by a fallback path; ``reason`` names the degradation."""

    value: T
    reason: str
    detail: str = ""

    @property
    def degraded(self) -> bool:
        return True


StageResult = Union[Ok[T], Degraded[T]]


__all__ = [
    "AssessmentDraft",
    "Degraded",
    "EnhancedTranscript",
    "FORMATTING_DEGRADED",
    "GENERATION_DEGRADED",
    "GENERIC_SPEAKER",
    "Ok",
    "SEGMENTATION_DEGRADED",
    "Segment",
    "SpeakerTurn",
    "SpeechResult",
    "StageResult",
    "Transcription",
    "WordTimestamp",
]
