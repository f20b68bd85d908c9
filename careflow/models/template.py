"""SQLAlchemy model for assessment templates."""

from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid

from careflow.models.base import Base, JsonType, enum_column_type, utcnow


class TemplateStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class TemplatePriority(str, Enum):
    STANDARD = "standard"
    HIGH = "high"
    LOW = "low"


class Template(Base):
    """Ordered list of section names an assessment is generated against."""

    __tablename__ = "templates"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    sections = Column(JsonType, nullable=False, default=list)
    status = Column(
        enum_column_type(TemplateStatus, "template_status"),
        nullable=False,
        default=TemplateStatus.ACTIVE,
    )
    priority = Column(
        enum_column_type(TemplatePriority, "template_priority"),
        nullable=False,
        default=TemplatePriority.STANDARD,
    )
    created_by = Column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


__all__ = ["Template", "TemplateStatus", "TemplatePriority"]
