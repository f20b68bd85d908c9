"""SQLAlchemy model for application users."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from careflow.models.base import Base, enum_column_type, utcnow


class UserRole(str, Enum):
    """Enumeration of supported user roles."""

    ADMIN = "admin"
    TEAM_MEMBER = "team_member"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    password_hash = Column(String(256), nullable=False)
    role = Column(
        enum_column_type(UserRole, "user_role"),
        nullable=False,
        default=UserRole.TEAM_MEMBER,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.username


__all__ = ["User", "UserRole"]
