"""Background job registry for pipeline runs.

Uploads return before the pipeline finishes. Each run is an ``asyncio.Task``
registered under its recording id so status endpoints can tell whether it is
still in flight and shutdown can wait for outstanding work.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional
from uuid import UUID

from careflow.services.llm_client import get_llm_client
from careflow.services.transcribe import get_transcribe_service
from careflow.telemetry.metrics import PIPELINE_ACTIVE_JOBS

from .assessment import AssessmentGenerator, TemplateSectionResolver
from .conversation import ConversationFormatter
from .orchestrator import PipelineOutcome, RecordingPipeline
from .repository import SQLAlchemyPipelineRepository
from .segmentation import SpeakerSegmentationEngine
from .transcription import TranscriptionAdapter

logger = logging.getLogger("careflow.pipeline")


class JobAlreadyRunningError(RuntimeError):
    """Raised when a recording already has a pipeline run in flight."""


def build_default_pipeline() -> RecordingPipeline:
    """Wire the pipeline against Amazon Transcribe, Bedrock and the database."""

    llm = get_llm_client()
    return RecordingPipeline(
        repository=SQLAlchemyPipelineRepository(),
        transcription=TranscriptionAdapter(
            get_transcribe_service(),
            SpeakerSegmentationEngine(llm),
        ),
        formatter=ConversationFormatter(llm),
        generator=AssessmentGenerator(llm, TemplateSectionResolver()),
    )


class PipelineJobRunner:
    def __init__(self, pipeline_factory: Callable[[], RecordingPipeline]) -> None:
        self._pipeline_factory = pipeline_factory
        self._pipeline: Optional[RecordingPipeline] = None
        self._jobs: Dict[UUID, asyncio.Task] = {}

    @property
    def pipeline(self) -> RecordingPipeline:
        if self._pipeline is None:
            self._pipeline = self._pipeline_factory()
        return self._pipeline

    def submit(
        self,
        *,
        assessment_id: UUID,
        recording_id: UUID,
        audio_file_path: str | Path,
        template_name_fallback: Optional[str] = None,
    ) -> "asyncio.Task[PipelineOutcome]":
        """Start a pipeline run without waiting for it. Must be called from the event loop."""

        if self.is_running(recording_id):
            raise JobAlreadyRunningError(f"Recording {recording_id} is already being processed")

        task = asyncio.create_task(
            self.pipeline.run(
                assessment_id,
                recording_id,
                audio_file_path,
                template_name_fallback,
            ),
            name=f"pipeline-{recording_id}",
        )
        self._jobs[recording_id] = task
        PIPELINE_ACTIVE_JOBS.inc()
        task.add_done_callback(lambda done, key=recording_id: self._on_done(key, done))
        logger.info("Submitted pipeline job recording=%s", recording_id)
        return task

    def _on_done(self, recording_id: UUID, task: asyncio.Task) -> None:
        if self._jobs.get(recording_id) is task:
            del self._jobs[recording_id]
        PIPELINE_ACTIVE_JOBS.dec()
        if task.cancelled():
            logger.warning("Pipeline job recording=%s was cancelled", recording_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Pipeline job recording=%s crashed: %s", recording_id, exc, exc_info=exc)

    def is_running(self, recording_id: UUID) -> bool:
        task = self._jobs.get(recording_id)
        return task is not None and not task.done()

    def active_jobs(self) -> List[UUID]:
        return [key for key, task in self._jobs.items() if not task.done()]

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight runs, e.g. on application shutdown."""

        pending = [task for task in self._jobs.values() if not task.done()]
        if not pending:
            return
        logger.info("Waiting for %s pipeline job(s) to finish", len(pending))
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning("%s pipeline job(s) still running at shutdown", len(still_pending))


pipeline_jobs = PipelineJobRunner(build_default_pipeline)


__all__ = [
    "JobAlreadyRunningError",
    "PipelineJobRunner",
    "build_default_pipeline",
    "pipeline_jobs",
]
