"""High-level orchestration map for the recording processing pipeline.

``orchestrator.RecordingPipeline`` runs the stages; this module documents the
canonical execution order and the recording status each stage sets, so
contributors can navigate the package without reading the orchestrator first:

1. ``transcription`` - read the stored audio and call Amazon Transcribe.
2. ``segmentation`` - split the text into speaker turns and align timings.
3. ``conversation`` - render a ``Speaker: "utterance"`` transcript.
4. ``assessment`` - fill the template's sections plus action items.
5. ``orchestrator`` - persist the transcript and merge sections into the assessment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from careflow.models import RecordingStatus


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the recording pipeline."""

    order: int
    name: str
    module: str
    status: RecordingStatus
    summary: str


class RecordingPipelineMap:
    """Ordered stage descriptions, exposed for debugging and documentation."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Transcription",
            "careflow.pipelines.recording.transcription",
            RecordingStatus.TRANSCRIBING,
            "Stream the recording to Amazon Transcribe and collect word timings.",
        ),
        PipelineStage(
            2,
            "Speaker Segmentation",
            "careflow.pipelines.recording.segmentation",
            RecordingStatus.TRANSCRIBING,
            "Ask Bedrock for speaker turns and align them to word timestamps.",
        ),
        PipelineStage(
            3,
            "Conversation Format",
            "careflow.pipelines.recording.conversation",
            RecordingStatus.GENERATING_CONVERSATION,
            "Store the transcript, then render it as attributed dialogue.",
        ),
        PipelineStage(
            4,
            "Assessment Generation",
            "careflow.pipelines.recording.assessment",
            RecordingStatus.GENERATING_ASSESSMENT,
            "Fill every template section and the action items via a forced tool call.",
        ),
        PipelineStage(
            5,
            "Finalize",
            "careflow.pipelines.recording.orchestrator",
            RecordingStatus.FINALIZING,
            "Merge sections into the assessment and mark it completed.",
        ),
    ]

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        return tuple(cls._STAGES)


__all__ = ["PipelineStage", "RecordingPipelineMap"]
