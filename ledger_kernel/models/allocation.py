"""
Module: ledger_kernel.models.allocation
Responsibility: ORM persistence for per-(epoch, user) allocations -- the
    proposed unit count and any approver override.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One allocation per (epoch, user) (uq_allocation_epoch_user).
    - Units are non-negative arbitrary-precision integers.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import MonotonicId, UUIDRowBase
from ledger_kernel.db.types import CreditAmount, UTCDateTime


class AllocationRecord(UUIDRowBase):
    __tablename__ = "epoch_allocations"

    __table_args__ = (
        UniqueConstraint("epoch_id", "user_id", name="uq_allocation_epoch_user"),
    )

    epoch_id: Mapped[int] = mapped_column(
        MonotonicId, ForeignKey("epochs.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    proposed_units: Mapped[int] = mapped_column(CreditAmount(), nullable=False)

    # Approver override; null means the proposal stands
    final_units: Mapped[int | None] = mapped_column(CreditAmount(), nullable=True)
    override_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    activity_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<AllocationRecord epoch={self.epoch_id} user={self.user_id}>"
