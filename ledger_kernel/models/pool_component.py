"""
Module: ledger_kernel.models.pool_component
Responsibility: ORM persistence for named contributions to an epoch's
    credit pool (e.g. subscription revenue, treasury allocation).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only; one row per (epoch, component_id)
      (uq_pool_component_epoch_component).
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import MonotonicId, UUIDRowBase
from ledger_kernel.db.types import CreditAmount, UTCDateTime


class PoolComponentRecord(UUIDRowBase):
    __tablename__ = "epoch_pool_components"

    __table_args__ = (
        UniqueConstraint(
            "epoch_id", "component_id", name="uq_pool_component_epoch_component"
        ),
    )

    epoch_id: Mapped[int] = mapped_column(
        MonotonicId, ForeignKey("epochs.id"), nullable=False
    )
    component_id: Mapped[str] = mapped_column(String(100), nullable=False)
    algorithm_version: Mapped[str] = mapped_column(String(50), nullable=False)

    # Inputs the component was computed from, for audit replay
    inputs_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    amount_credits: Mapped[int] = mapped_column(CreditAmount(), nullable=False)
    evidence_ref: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    computed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
