"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
Architecture position: Kernel > DB.  The lowest-level import target within
    the kernel; MUST NOT import from models/, services/ or domain/.

Invariants enforced:
    - type_annotation_map routes ``int`` to BigInteger, ``datetime`` to
      timezone-aware UTC timestamps and ``UUID`` to String(36).
    - Credit columns declare the
      ``CreditAmount`` column type; plain ``int`` is for counters and ids.
    - UUIDRowBase supplies a uuid4 primary key; epochs use a monotonic
      integer id instead.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ledger_kernel.db.types import UTCDateTime, UUIDString

# SQLite only autoincrements an INTEGER PRIMARY KEY
MonotonicId = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Declarative base for all ledger models."""

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: BigInteger,
    }


class UUIDRowBase(Base):
    """Abstract base with a uuid4 primary key."""

    __abstract__ = True

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )
