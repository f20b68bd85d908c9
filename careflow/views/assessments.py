"""Pydantic schemas for assessments and their transcripts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from careflow.models import AssessmentStatus, TranscriptStatus


class AssessmentResponse(BaseModel):
    """Serialized assessment. Sections are empty while the assessment is processing."""

    id: UUID
    case_id: UUID = Field(serialization_alias="caseId")
    title: str
    template: str
    dynamic_sections: Dict[str, Any] = Field(default_factory=dict, serialization_alias="dynamicSections")
    action_items: List[str] = Field(default_factory=list, serialization_alias="actionItems")
    processing_status: AssessmentStatus = Field(serialization_alias="processingStatus")
    assigned_to: Optional[int] = Field(None, serialization_alias="assignedTo")
    assigned_by: Optional[int] = Field(None, serialization_alias="assignedBy")
    assigned_at: Optional[datetime] = Field(None, serialization_alias="assignedAt")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class AssessmentUpdateRequest(BaseModel):
    """Partial update. Any key other than the system fields is a dynamic section."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    template: Optional[str] = Field(None, min_length=1, max_length=255)
    action_items: Optional[List[str]] = Field(
        None,
        validation_alias=AliasChoices("actionItems", "action_items"),
    )

    model_config = ConfigDict(extra="allow")

    def section_updates(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class AssessmentAssignRequest(BaseModel):
    """Assign (or reassign) an assessment to an active team member."""

    assigned_to: int = Field(
        ...,
        ge=1,
        validation_alias=AliasChoices("assignedTo", "assigned_to"),
    )


class TranscriptResponse(BaseModel):
    id: UUID
    case_id: UUID = Field(serialization_alias="caseId")
    assessment_id: Optional[UUID] = Field(None, serialization_alias="assessmentId")
    recording_id: Optional[UUID] = Field(None, serialization_alias="recordingId")
    raw_transcript: str = Field(serialization_alias="rawTranscript")
    enhanced_transcript: Optional[Dict[str, Any]] = Field(None, serialization_alias="enhancedTranscript")
    processing_status: TranscriptStatus = Field(serialization_alias="processingStatus")
    created_at: datetime = Field(serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = [
    "AssessmentAssignRequest",
    "AssessmentResponse",
    "AssessmentUpdateRequest",
    "TranscriptResponse",
]
