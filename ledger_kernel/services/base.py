"""
BaseService -- session-bound base for the kernel's persistence services.

Subclasses receive a SQLAlchemy ``Session`` and write with ``flush()``
only.  The caller (``session_scope()``, a web request, the test harness)
owns commit and rollback, so a close that fails after inserting its
statement leaves nothing behind.
"""

from abc import ABC
from typing import Any, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

RowT = TypeVar("RowT")


class BaseService(ABC):
    """
    Abstract base class for session-bound kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session

    def _persist(self, row: RowT) -> RowT:
        """Add ``row`` and flush so server defaults and ids are populated."""
        self.session.add(row)
        self.session.flush()
        return row

    def _one_or_none(self, stmt: Select[Any]) -> Any:
        return self.session.execute(stmt).scalar_one_or_none()

    def _all(self, stmt: Select[Any]) -> list[Any]:
        return list(self.session.execute(stmt).scalars())
