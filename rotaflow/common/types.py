"""Database-agnostic column types shared by all models.

Models run against PostgreSQL in production and SQLite in the test suite, so
enum and JSON columns avoid dialect-only constructs.
"""

from __future__ import annotations

import enum
from typing import Type

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

# UUID primary / foreign keys (CHAR on SQLite, native uuid on PostgreSQL)
UUIDType = PG_UUID

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


def enum_column(enum_cls: Type[enum.Enum], name: str) -> sa.Enum:
    """A VARCHAR-backed enum that persists member *values* (``"in-progress"``)."""
    return sa.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
