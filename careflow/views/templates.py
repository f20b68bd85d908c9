"""Pydantic schemas for assessment templates."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from careflow.models import TemplatePriority, TemplateStatus


def _clean_sections(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    cleaned = [section.strip() for section in value if section and section.strip()]
    if not cleaned:
        raise ValueError("A template needs at least one section")
    return cleaned


class TemplateCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    sections: List[str] = Field(..., min_length=1)
    status: TemplateStatus = TemplateStatus.ACTIVE
    priority: TemplatePriority = TemplatePriority.STANDARD

    @field_validator("sections")
    @classmethod
    def validate_sections(cls, value: List[str]) -> List[str]:
        return _clean_sections(value)


class TemplateUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    sections: Optional[List[str]] = None
    status: Optional[TemplateStatus] = None
    priority: Optional[TemplatePriority] = None

    @field_validator("sections")
    @classmethod
    def validate_sections(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_sections(value)


class TemplateResponse(BaseModel):
    id: UUID
    name: str
    description: str
    sections: List[str]
    status: TemplateStatus
    priority: TemplatePriority
    created_by: Optional[int] = Field(None, serialization_alias="createdBy")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = ["TemplateCreateRequest", "TemplateResponse", "TemplateUpdateRequest"]
