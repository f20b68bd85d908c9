"""Pydantic schemas used as views in the MVC architecture."""

from .assessments import (
    AssessmentAssignRequest,
    AssessmentResponse,
    AssessmentUpdateRequest,
    TranscriptResponse,
)
from .auth import LoginRequest, TokenResponse
from .cases import CaseAssignRequest, CaseCreateRequest, CaseResponse, CaseUpdateRequest
from .common import ErrorResponse
from .recordings import RecordingResponse, RecordingStatusResponse, RecordingUploadResponse
from .templates import TemplateCreateRequest, TemplateResponse, TemplateUpdateRequest
from .users import PasswordChangeRequest, UserCreateRequest, UserProfileUpdateRequest, UserResponse

__all__ = [
    "AssessmentAssignRequest",
    "AssessmentResponse",
    "AssessmentUpdateRequest",
    "TranscriptResponse",
    "CaseAssignRequest",
    "CaseCreateRequest",
    "CaseResponse",
    "CaseUpdateRequest",
    "RecordingResponse",
    "RecordingStatusResponse",
    "RecordingUploadResponse",
    "TemplateCreateRequest",
    "TemplateResponse",
    "TemplateUpdateRequest",
    "PasswordChangeRequest",
    "UserCreateRequest",
    "UserProfileUpdateRequest",
    "UserResponse",
    "ErrorResponse",
    "LoginRequest",
    "TokenResponse",
]
