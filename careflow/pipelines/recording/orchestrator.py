"""Pipeline orchestrator: runs the recording stages in order and tracks status.

Recording status walks ``pending -> transcribing -> generating_conversation ->
generating_assessment -> finalizing -> completed``; any exception escaping a
stage ends the run with the recording and its assessment marked ``failed``.
Degraded stage results are logged and counted but never stop the run.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional
from uuid import UUID

from careflow.config.settings import settings
from careflow.models import AssessmentStatus, RecordingStatus
from careflow.telemetry.metrics import (
    observe_pipeline_stage,
    record_pipeline_degraded,
    record_pipeline_outcome,
)

from .assessment import AssessmentGenerator
from .conversation import ConversationFormatter
from .repository import PipelineRepository
from .transcription import TranscriptionAdapter
from .types import Degraded, StageResult

logger = logging.getLogger("careflow.pipeline")


class PipelineFailure(RuntimeError):
    """Terminal failure of one pipeline run; ``stage`` names where it happened."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage} stage failed: {cause}")
        self.stage = stage
        self.cause = cause


@dataclass(frozen=True)
class PipelineOutcome:
    recording_id: UUID
    assessment_id: UUID
    status: RecordingStatus
    degraded: tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    failed_stage: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RecordingStatus.COMPLETED


def merge_sections(existing: Optional[Mapping[str, Any]], generated: Mapping[str, Any]) -> Dict[str, Any]:
    """Additive merge: generated keys overwrite or extend, other existing keys are kept."""

    merged = dict(existing or {})
    merged.update(generated)
    return merged


class RecordingPipeline:
    def __init__(
        self,
        repository: PipelineRepository,
        transcription: TranscriptionAdapter,
        formatter: ConversationFormatter,
        generator: AssessmentGenerator,
    ) -> None:
        self._repository = repository
        self._transcription = transcription
        self._formatter = formatter
        self._generator = generator

    async def run(
        self,
        assessment_id: UUID,
        recording_id: UUID,
        audio_file_path: str | Path,
        template_name_fallback: Optional[str] = None,
    ) -> PipelineOutcome:
        """Process one recording end to end. Never raises."""

        started = time.perf_counter()
        degraded: List[str] = []
        logger.info("Pipeline start recording=%s assessment=%s", recording_id, assessment_id)

        try:
            await self._execute(
                assessment_id,
                recording_id,
                Path(audio_file_path),
                template_name_fallback,
                degraded,
            )
        except Exception as exc:
            failure = exc if isinstance(exc, PipelineFailure) else PipelineFailure("pipeline", exc)
            logger.error(
                "Pipeline failed recording=%s assessment=%s stage=%s: %s",
                recording_id,
                assessment_id,
                failure.stage,
                failure.cause,
                exc_info=failure.cause,
            )
            await self._mark_failed(assessment_id, recording_id)
            record_pipeline_outcome("failed")
            return PipelineOutcome(
                recording_id=recording_id,
                assessment_id=assessment_id,
                status=RecordingStatus.FAILED,
                degraded=tuple(degraded),
                error=str(failure.cause),
                failed_stage=failure.stage,
            )

        record_pipeline_outcome("degraded" if degraded else "completed")
        logger.info(
            "Pipeline completed recording=%s assessment=%s in %.1fs degraded=%s",
            recording_id,
            assessment_id,
            time.perf_counter() - started,
            ",".join(degraded) or "none",
        )
        return PipelineOutcome(
            recording_id=recording_id,
            assessment_id=assessment_id,
            status=RecordingStatus.COMPLETED,
            degraded=tuple(degraded),
        )

    async def _execute(
        self,
        assessment_id: UUID,
        recording_id: UUID,
        audio_file_path: Path,
        template_name_fallback: Optional[str],
        degraded: List[str],
    ) -> None:
        repo = self._repository

        with self._stage("load"):
            snapshot = await repo.get_assessment(assessment_id)
            if snapshot is None:
                raise LookupError(f"Assessment {assessment_id} not found")

        with self._stage("transcription"):
            await repo.set_recording_status(recording_id, RecordingStatus.TRANSCRIBING)
            transcribed = await self._transcription.transcribe(audio_file_path)
            self._note("transcription", transcribed, degraded)
        transcription = transcribed.value

        with self._stage("conversation"):
            transcript_id = await repo.create_transcript(
                case_id=snapshot.case_id,
                assessment_id=assessment_id,
                recording_id=recording_id,
                raw_transcript=transcription.text,
                enhanced_transcript=transcription.enhanced_transcript.to_json(),
            )
            await repo.set_recording_status(
                recording_id,
                RecordingStatus.GENERATING_CONVERSATION,
                duration=transcription.duration,
            )
            formatted = await self._formatter.format(transcription.text, transcription.enhanced_transcript)
            self._note("conversation", formatted, degraded)
            enhanced = transcription.enhanced_transcript.model_copy(
                update={"conversation_format": formatted.value}
            )
            await repo.complete_transcript(transcript_id, enhanced.to_json())

        with self._stage("assessment"):
            await repo.set_recording_status(recording_id, RecordingStatus.GENERATING_ASSESSMENT)
            template_name = (
                snapshot.template
                or template_name_fallback
                or settings.pipeline.default_template
            )
            generated = await self._generator.generate(
                formatted.value,
                snapshot.client_name,
                template_name,
            )
            self._note("assessment", generated, degraded)
        draft = generated.value

        with self._stage("finalize"):
            await repo.set_recording_status(recording_id, RecordingStatus.FINALIZING)
            current = await repo.get_assessment(assessment_id)
            existing = current.dynamic_sections if current is not None else snapshot.dynamic_sections
            await repo.finalize_assessment(
                assessment_id,
                dynamic_sections=merge_sections(existing, draft.sections),
                action_items=draft.action_items,
            )
            await repo.set_recording_status(recording_id, RecordingStatus.COMPLETED)

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        except PipelineFailure:
            raise
        except Exception as exc:
            raise PipelineFailure(name, exc) from exc
        finally:
            observe_pipeline_stage(name, time.perf_counter() - started)

    @staticmethod
    def _note(stage: str, result: StageResult, degraded: List[str]) -> None:
        if isinstance(result, Degraded):
            logger.warning("Stage %s degraded (%s): %s", stage, result.reason, result.detail)
            record_pipeline_degraded(stage)
            degraded.append(result.reason)

    async def _mark_failed(self, assessment_id: UUID, recording_id: UUID) -> None:
        try:
            await self._repository.set_recording_status(recording_id, RecordingStatus.FAILED)
        except Exception:
            logger.exception("Could not mark recording %s as failed", recording_id)
        try:
            await self._repository.set_assessment_status(assessment_id, AssessmentStatus.FAILED)
        except Exception:
            logger.exception("Could not mark assessment %s as failed", assessment_id)


__all__ = ["PipelineFailure", "PipelineOutcome", "RecordingPipeline", "merge_sections"]
