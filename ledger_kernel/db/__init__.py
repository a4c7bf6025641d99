"""Database layer - engine, base classes and column types."""

from ledger_kernel.db.base import Base, MonotonicId, UUIDRowBase
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from ledger_kernel.db.types import CreditAmount, UTCDateTime, UUIDString

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "UUIDRowBase",
    "MonotonicId",
    "CreditAmount",
    "UTCDateTime",
    "UUIDString",
]
