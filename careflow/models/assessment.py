"""SQLAlchemy model for assessments (the document built from a recording)."""

from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from careflow.models.base import Base, JsonType, enum_column_type, utcnow

DEFAULT_TEMPLATE_NAME = "General Care Assessments"


class AssessmentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Assessment(Base):
    __tablename__ = "assessments"

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
    title = Column(String(255), nullable=False)
    template = Column(String(255), nullable=False, default=DEFAULT_TEMPLATE_NAME)
    dynamic_sections = Column(JsonType, nullable=False, default=dict)
    action_items = Column(JsonType, nullable=False, default=list)
    processing_status = Column(
        enum_column_type(AssessmentStatus, "assessment_status"),
        nullable=False,
        default=AssessmentStatus.PENDING,
    )
    assigned_to = Column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_by = Column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    # relationships
    case = relationship("Case", back_populates="assessments")
    recordings = relationship(
        "Recording",
        back_populates="assessment",
        cascade="all, delete-orphan",
    )
    transcripts = relationship(
        "Transcript",
        back_populates="assessment",
        cascade="all, delete-orphan",
    )


__all__ = ["Assessment", "AssessmentStatus", "DEFAULT_TEMPLATE_NAME"]
