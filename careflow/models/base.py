"""Declarative base and column helpers shared by all models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Type

from sqlalchemy import JSON
from sqlalchemy import Enum as SqlEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for created/updated columns."""
    return datetime.now(timezone.utc)


def enum_column_type(enum_cls: Type[Enum], name: str) -> SqlEnum:
    """Store enum *values* in a portable VARCHAR column."""

    return SqlEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )


__all__ = ["Base", "JsonType", "utcnow", "enum_column_type"]
