"""Persistence contract used by the recording pipeline.

Each write opens its own short-lived session so no connection is held while
the pipeline waits on the speech or text-generation providers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import selectinload
from sqlalchemy import select

from careflow.database import session_scope
from careflow.models import (
    Assessment,
    AssessmentStatus,
    Recording,
    RecordingStatus,
    Transcript,
    TranscriptStatus,
)


@dataclass(frozen=True)
class AssessmentSnapshot:
    """The parts of an assessment the pipeline needs to read."""

    id: UUID
    case_id: UUID
    template: Optional[str]
    client_name: str
    dynamic_sections: Dict[str, Any] = field(default_factory=dict)


class PipelineRepository(ABC):
    """Persistence contract for recording pipeline runs."""

    @abstractmethod
    async def get_assessment(self, assessment_id: UUID) -> Optional[AssessmentSnapshot]:
        ...

    @abstractmethod
    async def set_recording_status(
        self,
        recording_id: UUID,
        status: RecordingStatus,
        *,
        duration: Optional[float] = None,
    ) -> None:
        ...

    @abstractmethod
    async def create_transcript(
        self,
        *,
        case_id: UUID,
        assessment_id: UUID,
        recording_id: UUID,
        raw_transcript: str,
        enhanced_transcript: Dict[str, Any],
    ) -> UUID:
        ...

    @abstractmethod
    async def complete_transcript(self, transcript_id: UUID, enhanced_transcript: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def finalize_assessment(
        self,
        assessment_id: UUID,
        *,
        dynamic_sections: Dict[str, Any],
        action_items: List[str],
    ) -> None:
        ...

    @abstractmethod
    async def set_assessment_status(self, assessment_id: UUID, status: AssessmentStatus) -> None:
        ...


class SQLAlchemyPipelineRepository(PipelineRepository):
    """SQLAlchemy implementation of the pipeline repository"""

    async def get_assessment(self, assessment_id: UUID) -> Optional[AssessmentSnapshot]:
        async with session_scope() as session:
            result = await session.execute(
                select(Assessment)
                .options(selectinload(Assessment.case))
                .where(Assessment.id == assessment_id)
            )
            assessment = result.scalar_one_or_none()
            if assessment is None:
                return None
            return AssessmentSnapshot(
                id=assessment.id,
                case_id=assessment.case_id,
                template=assessment.template,
                client_name=assessment.case.client_name if assessment.case else "the client",
                dynamic_sections=dict(assessment.dynamic_sections or {}),
            )

    async def set_recording_status(
        self,
        recording_id: UUID,
        status: RecordingStatus,
        *,
        duration: Optional[float] = None,
    ) -> None:
        async with session_scope() as session:
            recording = await session.get(Recording, recording_id)
            if recording is None:
                raise LookupError(f"Recording {recording_id} not found")
            recording.processing_status = status
            if duration is not None:
                recording.duration = duration
            await session.commit()

    async def create_transcript(
        self,
        *,
        case_id: UUID,
        assessment_id: UUID,
        recording_id: UUID,
        raw_transcript: str,
        enhanced_transcript: Dict[str, Any],
    ) -> UUID:
        async with session_scope() as session:
            transcript = Transcript(
                case_id=case_id,
                assessment_id=assessment_id,
                recording_id=recording_id,
                raw_transcript=raw_transcript,
                enhanced_transcript=enhanced_transcript,
                processing_status=TranscriptStatus.PROCESSING,
            )
            session.add(transcript)
            await session.commit()
            await session.refresh(transcript)
            return transcript.id

    async def complete_transcript(self, transcript_id: UUID, enhanced_transcript: Dict[str, Any]) -> None:
        async with session_scope() as session:
            transcript = await session.get(Transcript, transcript_id)
            if transcript is None:
                raise LookupError(f"Transcript {transcript_id} not found")
            transcript.enhanced_transcript = enhanced_transcript
            transcript.processing_status = TranscriptStatus.TRANSCRIPTION_COMPLETE
            await session.commit()

    async def finalize_assessment(
        self,
        assessment_id: UUID,
        *,
        dynamic_sections: Dict[str, Any],
        action_items: List[str],
    ) -> None:
        async with session_scope() as session:
            assessment = await session.get(Assessment, assessment_id)
            if assessment is None:
                raise LookupError(f"Assessment {assessment_id} not found")
            assessment.dynamic_sections = dict(dynamic_sections)
            assessment.action_items = list(action_items)
            assessment.processing_status = AssessmentStatus.COMPLETED
            await session.commit()

    async def set_assessment_status(self, assessment_id: UUID, status: AssessmentStatus) -> None:
        async with session_scope() as session:
            assessment = await session.get(Assessment, assessment_id)
            if assessment is None:
                raise LookupError(f"Assessment {assessment_id} not found")
            assessment.processing_status = status
            await session.commit()


__all__ = ["AssessmentSnapshot", "PipelineRepository", "SQLAlchemyPipelineRepository"]
