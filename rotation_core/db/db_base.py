"""
Column types and the shared record mixin for the rotation tables.

Each column type resolves to a PostgreSQL-native type when one exists and
to a portable type on SQLite, so the same models serve tests and deployments.
"""

import json
import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import Column, DateTime, LargeBinary, String, Text
from sqlalchemy.dialects.postgresql import BYTEA, JSONB
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    return datetime.now(UTC)


class _DialectType(TypeDecorator):
    """Resolve to ``postgresql_type`` on PostgreSQL and ``portable_type`` elsewhere."""

    impl = Text
    cache_ok = True
    postgresql_type: Any = Text
    portable_type: Any = Text

    def load_dialect_impl(self, dialect):
        chosen = self.postgresql_type if dialect.name == "postgresql" else self.portable_type
        return dialect.type_descriptor(chosen())


class JSON(_DialectType):
    """JSONB on PostgreSQL, serialized text on SQLite. Accepts pydantic-dumpable values."""

    cache_ok = True
    postgresql_type = JSONB

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = to_jsonable_python(value)
        return value if dialect.name == "postgresql" else json.dumps(value)

    def process_result_value(self, value, dialect):
        if value is None or dialect.name == "postgresql":
            return value
        return json.loads(value)


class EncryptedBinary(_DialectType):
    """
    Ciphertext column: BYTEA for pgcrypto output on PostgreSQL, a blob on SQLite.

    Encryption happens in utils.encryption_utils before values reach the column.
    """

    impl = LargeBinary
    cache_ok = True
    postgresql_type = BYTEA
    portable_type = LargeBinary

    def process_bind_param(self, value, dialect):
        if isinstance(value, str):
            return value.encode("utf-8")
        return value


class RecordMixin:
    """UUID primary key with created/updated timestamps."""

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
