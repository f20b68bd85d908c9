"""SQLAlchemy models for the case-management backend."""

from .base import Base
from .assessment import Assessment, AssessmentStatus  # noqa: F401
from .case import Case, CaseStatus  # noqa: F401
from .recording import Recording, RecordingStatus  # noqa: F401
from .template import Template, TemplatePriority, TemplateStatus  # noqa: F401
from .transcript import Transcript, TranscriptStatus  # noqa: F401
from .user import User, UserRole  # noqa: F401

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Case",
    "CaseStatus",
    "Template",
    "TemplateStatus",
    "TemplatePriority",
    "Assessment",
    "AssessmentStatus",
    "Recording",
    "RecordingStatus",
    "Transcript",
    "TranscriptStatus",
]
