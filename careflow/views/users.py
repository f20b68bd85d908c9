"""Pydantic schemas for user interactions."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from careflow.models.user import UserRole


def check_password_strength(value: str) -> str:
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one digit")
    return value


class UserCreateRequest(BaseModel):
    """Payload an administrator submits to add a team member."""

    username: str = Field(..., min_length=3, max_length=100)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(
        None,
        max_length=50,
        validation_alias=AliasChoices("firstName", "first_name"),
    )
    last_name: Optional[str] = Field(
        None,
        max_length=50,
        validation_alias=AliasChoices("lastName", "last_name"),
    )
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.TEAM_MEMBER

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        if not re.match(r"^[A-Za-z0-9_.\-]+$", value):
            raise ValueError(
                "Username can only contain letters, digits, dots, hyphens and underscores"
            )
        return value.strip()


class UserProfileUpdateRequest(BaseModel):
    """Self-service profile edit."""

    first_name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        validation_alias=AliasChoices("firstName", "first_name"),
    )
    last_name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        validation_alias=AliasChoices("lastName", "last_name"),
    )
    email: EmailStr


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("currentPassword", "current_password"),
    )
    new_password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        validation_alias=AliasChoices("newPassword", "new_password"),
    )

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserResponse(BaseModel):
    """Serialized representation of a user."""

    id: int
    username: str
    email: Optional[str] = None
    first_name: Optional[str] = Field(None, serialization_alias="firstName")
    last_name: Optional[str] = Field(None, serialization_alias="lastName")
    role: UserRole
    is_active: bool = Field(serialization_alias="isActive")
    created_at: datetime = Field(serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


__all__ = [
    "PasswordChangeRequest",
    "UserCreateRequest",
    "UserProfileUpdateRequest",
    "UserResponse",
    "check_password_strength",
]
