"""
Module: ledger_kernel.db.types
Responsibility: Column types for arbitrary-precision credit amounts, UTC
    timestamps and UUIDs shared by every model.
Architecture position: Kernel > DB.  MUST NOT import from models/,
    services/ or domain/.

Invariants enforced:
    - No floats anywhere: credit/unit columns round-trip Python ``int``
      exactly, including values wider than 64 bits.  PostgreSQL stores
      NUMERIC(78, 0); SQLite, whose NUMERIC affinity degrades wide values
      to REAL, stores the decimal text instead.
    - Timestamps are always timezone-aware on read, whichever backend
      stored them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

# 78 digits covers any unsigned 256-bit value
CREDIT_PRECISION = 78


class CreditAmount(TypeDecorator):
    """Arbitrary-precision non-negative integer column."""

    impl = Numeric(CREDIT_PRECISION, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(CREDIT_PRECISION))
        return dialect.type_descriptor(Numeric(CREDIT_PRECISION, 0))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Credit amounts must be int, got {type(value).__name__}")
        if dialect.name == "sqlite":
            return str(value)
        return Decimal(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp; naive values read back are taken as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetimes are not accepted; attach a timezone")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class UUIDString(TypeDecorator):
    """UUID stored as String(36) for cross-database portability."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None

