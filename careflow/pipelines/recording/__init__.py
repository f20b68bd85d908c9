"""Recording processing pipeline package.

Modules follow the order in which a recording is processed:

1. `transcription` - speech-to-text over the stored audio file.
2. `segmentation` - speaker turns plus word-timestamp alignment.
3. `conversation` - attributed dialogue rendering.
4. `assessment` - template-driven section generation.
5. `orchestrator` - status tracking and persistence around the stages.
6. `jobs` - background task registry used by the upload endpoint.

`flow` documents the stages; `types` holds the shared containers.
"""

from .assessment import AssessmentGenerator, TemplateSectionResolver, section_key
from .conversation import ConversationFormatter
from .flow import PipelineStage, RecordingPipelineMap
from .jobs import JobAlreadyRunningError, PipelineJobRunner, build_default_pipeline, pipeline_jobs
from .orchestrator import PipelineFailure, PipelineOutcome, RecordingPipeline, merge_sections
from .repository import AssessmentSnapshot, PipelineRepository, SQLAlchemyPipelineRepository
from .segmentation import AlignmentResult, GreedyWordAligner, SpeakerSegmentationEngine, WordAligner
from .transcription import SpeechToTextService, TranscriptionAdapter
from .types import (
    AssessmentDraft,
    Degraded,
    EnhancedTranscript,
    Ok,
    Segment,
    SpeakerTurn,
    SpeechResult,
    StageResult,
    Transcription,
    WordTimestamp,
)

__all__ = [
    "AlignmentResult",
    "AssessmentDraft",
    "AssessmentGenerator",
    "AssessmentSnapshot",
    "ConversationFormatter",
    "Degraded",
    "EnhancedTranscript",
    "GreedyWordAligner",
    "JobAlreadyRunningError",
    "Ok",
    "PipelineFailure",
    "PipelineJobRunner",
    "PipelineOutcome",
    "PipelineRepository",
    "PipelineStage",
    "RecordingPipeline",
    "RecordingPipelineMap",
    "SQLAlchemyPipelineRepository",
    "Segment",
    "SpeakerSegmentationEngine",
    "SpeakerTurn",
    "SpeechResult",
    "SpeechToTextService",
    "StageResult",
    "TemplateSectionResolver",
    "Transcription",
    "TranscriptionAdapter",
    "WordAligner",
    "WordTimestamp",
    "build_default_pipeline",
    "merge_sections",
    "pipeline_jobs",
    "section_key",
]
