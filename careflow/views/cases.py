"""Pydantic schemas for client cases."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from careflow.models import CaseStatus


class CaseCreateRequest(BaseModel):
    """Payload for opening a new case."""

    client_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("clientName", "client_name"),
    )
    address: Optional[str] = None
    case_details: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("caseDetails", "case_details"),
    )
    assigned_to: Optional[int] = Field(
        None,
        ge=1,
        validation_alias=AliasChoices("assignedTo", "assigned_to"),
    )


class CaseAssignRequest(BaseModel):
    """Assign a case to a team member, or clear the assignment with ``null``."""

    assigned_to: Optional[int] = Field(
        None,
        ge=1,
        validation_alias=AliasChoices("assignedTo", "assigned_to"),
    )


class CaseUpdateRequest(BaseModel):
    """Partial case edit. Omitted fields keep their value; ``address`` and ``caseDetails`` accept ``null``."""

    client_name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("clientName", "client_name"),
    )
    address: Optional[str] = None
    case_details: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("caseDetails", "case_details"),
    )
    status: Optional[CaseStatus] = None


class CaseResponse(BaseModel):
    """Serialized representation of a case."""

    id: UUID
    client_name: str = Field(serialization_alias="clientName")
    address: Optional[str] = None
    case_details: Optional[str] = Field(None, serialization_alias="caseDetails")
    status: CaseStatus
    assigned_to: Optional[int] = Field(None, serialization_alias="assignedTo")
    assigned_at: Optional[datetime] = Field(None, serialization_alias="assignedAt")
    created_by: Optional[int] = Field(None, serialization_alias="createdBy")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = ["CaseAssignRequest", "CaseCreateRequest", "CaseResponse", "CaseUpdateRequest"]
