"""In-memory stand-ins for the speech provider, Bedrock and the database."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from careflow.models import AssessmentStatus, RecordingStatus
from careflow.pipelines.recording import AssessmentSnapshot, PipelineRepository, WordTimestamp
from careflow.services.llm_client import LlmInvocationError
from careflow.services.transcribe import TranscribedWord, TranscriptionResult


def words_for(text: str, *, start: float = 0.0, step: float = 0.5) -> List[WordTimestamp]:
    """Evenly spaced word timings for ``text``."""

    words = []
    for index, word in enumerate(text.split()):
        begin = start + index * step
        words.append(WordTimestamp(word=word, start=begin, end=begin + step * 0.8))
    return words


def turns_json(*turns: tuple[str, str, str]) -> str:
    return json.dumps(
        {"turns": [{"text": text, "speaker": speaker, "speakerRole": role} for text, speaker, role in turns]}
    )


class FakeLlm:
    """Replays scripted answers; an exception instance in the script is raised instead."""

    def __init__(self, responses: Optional[list] = None, structured: Optional[list] = None) -> None:
        self.responses = list(responses or [])
        self.structured = list(structured or [])
        self.calls: List[Dict[str, Any]] = []
        self.structured_calls: List[Dict[str, Any]] = []

    async def invoke(self, *, system_prompt, user_prompt, max_tokens=None, temperature=None):
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt})
        return self._next(self.responses)

    async def invoke_structured(
        self,
        *,
        system_prompt,
        user_prompt,
        tool_name,
        tool_description,
        input_schema,
        max_tokens=None,
        temperature=None,
    ):
        self.structured_calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "tool_name": tool_name,
                "input_schema": input_schema,
            }
        )
        return self._next(self.structured)

    @staticmethod
    def _next(queue: list):
        if not queue:
            raise LlmInvocationError("no scripted response left")
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class FakeSpeech:
    def __init__(self, text: str = "", *, words=(), duration: Optional[float] = None, error=None) -> None:
        self.text = text
        self.words = tuple(words)
        self.duration = duration
        self.error = error
        self.received: List[bytes] = []

    async def transcribe_audio(self, audio_bytes: bytes) -> TranscriptionResult:
        self.received.append(audio_bytes)
        if self.error is not None:
            raise self.error
        return TranscriptionResult(
            transcript=self.text,
            words=tuple(TranscribedWord(word.word, word.start, word.end) for word in self.words),
            duration_seconds=self.duration,
            language_code="en-GB",
        )


class FakeRepository(PipelineRepository):
    """Single-assessment repository that records every status write."""

    def __init__(
        self,
        *,
        template: Optional[str] = "Home Visit",
        client_name: str = "Ellie",
        dynamic_sections: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.assessment_id: UUID = uuid4()
        self.recording_id: UUID = uuid4()
        self.case_id: UUID = uuid4()
        self.snapshot = AssessmentSnapshot(
            id=self.assessment_id,
            case_id=self.case_id,
            template=template,
            client_name=client_name,
            dynamic_sections=dict(dynamic_sections or {}),
        )
        self.recording_statuses: List[RecordingStatus] = []
        self.assessment_status = AssessmentStatus.PROCESSING
        self.duration: Optional[float] = None
        self.transcripts: Dict[UUID, Dict[str, Any]] = {}
        self.action_items: List[str] = []

    @property
    def recording_status(self) -> Optional[RecordingStatus]:
        return self.recording_statuses[-1] if self.recording_statuses else None

    @property
    def dynamic_sections(self) -> Dict[str, Any]:
        return self.snapshot.dynamic_sections

    async def get_assessment(self, assessment_id):
        if assessment_id != self.assessment_id:
            return None
        return replace(self.snapshot, dynamic_sections=dict(self.snapshot.dynamic_sections))

    async def set_recording_status(self, recording_id, status, *, duration=None):
        self.recording_statuses.append(status)
        if duration is not None:
            self.duration = duration

    async def create_transcript(self, *, case_id, assessment_id, recording_id, raw_transcript, enhanced_transcript):
        transcript_id = uuid4()
        self.transcripts[transcript_id] = {
            "recording_id": recording_id,
            "raw_transcript": raw_transcript,
            "enhanced_transcript": enhanced_transcript,
            "complete": False,
        }
        return transcript_id

    async def complete_transcript(self, transcript_id, enhanced_transcript):
        self.transcripts[transcript_id]["enhanced_transcript"] = enhanced_transcript
        self.transcripts[transcript_id]["complete"] = True

    async def finalize_assessment(self, assessment_id, *, dynamic_sections, action_items):
        self.snapshot = replace(self.snapshot, dynamic_sections=dict(dynamic_sections))
        self.action_items = list(action_items)
        self.assessment_status = AssessmentStatus.COMPLETED

    async def set_assessment_status(self, assessment_id, status):
        self.assessment_status = status
