"""SQLAlchemy model for uploaded audio recordings."""

from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from careflow.models.base import Base, enum_column_type, utcnow


class RecordingStatus(str, Enum):
    """Processing stages a recording moves through, in order."""

    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    GENERATING_CONVERSATION = "generating_conversation"
    GENERATING_ASSESSMENT = "generating_assessment"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RecordingStatus.COMPLETED, RecordingStatus.FAILED)


class Recording(Base):
    __tablename__ = "recordings"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    assessment_id = Column(
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = Column(String(512), nullable=False)
    file_path = Column(Text, nullable=False)
    content_type = Column(String(100), nullable=True)
    duration = Column(Float, nullable=True)
    processing_status = Column(
        enum_column_type(RecordingStatus, "recording_status"),
        nullable=False,
        default=RecordingStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    # relationships
    assessment = relationship("Assessment", back_populates="recordings")


__all__ = ["Recording", "RecordingStatus"]
