"""SQLAlchemy model for transcripts produced by the recording pipeline."""

from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from careflow.models.base import Base, JsonType, enum_column_type, utcnow


class TranscriptStatus(str, Enum):
    PROCESSING = "processing"
    TRANSCRIPTION_COMPLETE = "transcription_complete"
    FAILED = "failed"


class Transcript(Base):
    __tablename__ = "transcripts"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    case_id = Column(
        ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assessment_id = Column(
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    recording_id = Column(
        ForeignKey("recordings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    raw_transcript = Column(Text, nullable=False)
    # Stored with camelCase keys: text, segments, speakers, speakerRoles, conversationFormat.
    enhanced_transcript = Column(JsonType, nullable=True)
    processing_status = Column(
        enum_column_type(TranscriptStatus, "transcript_status"),
        nullable=False,
        default=TranscriptStatus.PROCESSING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    # relationships
    assessment = relationship("Assessment", back_populates="transcripts")


__all__ = ["Transcript", "TranscriptStatus"]
