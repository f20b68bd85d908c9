"""SQLAlchemy model for client cases."""

from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from careflow.models.base import Base, enum_column_type, utcnow


class CaseStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Case(Base):
    __tablename__ = "cases"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    client_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    case_details = Column(Text, nullable=True)
    status = Column(
        enum_column_type(CaseStatus, "case_status"),
        nullable=False,
        default=CaseStatus.ACTIVE,
    )
    assigned_to = Column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_at = Column(DateTime(timezone=True), nullable=True)
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

    # relationships
    assignee = relationship("User", foreign_keys=[assigned_to])
    assessments = relationship(
        "Assessment",
        back_populates="case",
        cascade="all, delete-orphan",
    )


__all__ = ["Case", "CaseStatus"]
