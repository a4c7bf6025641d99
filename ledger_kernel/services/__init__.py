"""Kernel services -- the SQLAlchemy implementation of the Store Port."""

from ledger_kernel.services.base import BaseService
from ledger_kernel.services.ledger_store import SqlAlchemyLedgerStore

__all__ = [
    "BaseService",
    "SqlAlchemyLedgerStore",
]
