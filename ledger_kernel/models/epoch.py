"""
Module: ledger_kernel.models.epoch
Responsibility: ORM persistence for epochs -- the payout rounds whose
    status gates every write in the ledger.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One open epoch per scope (partial unique index uq_epochs_one_open).
    - One epoch per (scope, window) (uq_epochs_window).
    - status in {'open', 'closed'}; period_start < period_end.
    - closed_at / pool_total_credits / closing_statement_id are written once,
      by the close.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, Index, String, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, MonotonicId
from ledger_kernel.db.types import CreditAmount, UTCDateTime, UUIDString
from ledger_kernel.domain.model import EpochStatus


class EpochRecord(Base):
    """Epoch row.  ``status`` holds the EpochStatus value."""

    __tablename__ = "epochs"

    __table_args__ = (
        UniqueConstraint("scope_id", "period_start", "period_end", name="uq_epochs_window"),
        Index(
            "uq_epochs_one_open",
            "scope_id",
            unique=True,
            postgresql_where=text("status = 'open'"),
            sqlite_where=text("status = 'open'"),
        ),
        CheckConstraint("status IN ('open', 'closed')", name="ck_epochs_status"),
        CheckConstraint("period_start < period_end", name="ck_epochs_window"),
    )

    id: Mapped[int] = mapped_column(MonotonicId, primary_key=True, autoincrement=True)

    scope_id: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=EpochStatus.OPEN.value,
        nullable=False,
    )

    period_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    period_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    # Pinned at creation: event type -> weight in milli-units
    weight_config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Null while the pool is still accruing
    pool_total_credits: Mapped[int | None] = mapped_column(CreditAmount(), nullable=True)

    opened_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # No FK: payout_statements already references epochs
    closing_statement_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<EpochRecord {self.id} {self.scope_id}: {self.status}>"
