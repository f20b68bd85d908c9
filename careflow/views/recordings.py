"""Pydantic schemas for recordings and their processing status."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from careflow.models import AssessmentStatus, RecordingStatus


class RecordingUploadResponse(BaseModel):
    """Returned as soon as the upload is stored and processing has been queued."""

    recording_id: UUID = Field(serialization_alias="recordingId")
    assessment_id: UUID = Field(serialization_alias="assessmentId")
    case_id: UUID = Field(serialization_alias="caseId")
    status: RecordingStatus
    message: str = "Recording uploaded, processing started"


class RecordingResponse(BaseModel):
    id: UUID
    assessment_id: UUID = Field(serialization_alias="assessmentId")
    file_name: str = Field(serialization_alias="fileName")
    content_type: Optional[str] = Field(None, serialization_alias="contentType")
    duration: Optional[float] = None
    processing_status: RecordingStatus = Field(serialization_alias="processingStatus")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class RecordingStatusResponse(BaseModel):
    """Polling view of a pipeline run."""

    recording_id: UUID = Field(serialization_alias="recordingId")
    status: RecordingStatus
    stage: Optional[str] = None
    step: int = 0
    total_steps: int = Field(serialization_alias="totalSteps")
    assessment_id: UUID = Field(serialization_alias="assessmentId")
    assessment_status: AssessmentStatus = Field(serialization_alias="assessmentStatus")
    job_active: bool = Field(serialization_alias="jobActive")


__all__ = ["RecordingResponse", "RecordingStatusResponse", "RecordingUploadResponse"]
