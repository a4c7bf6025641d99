"""
Module: ledger_kernel.models.activity
Responsibility: ORM persistence for raw activity events and their per-epoch
    curation decisions.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - activity_events is append-only and keyed by the producer's event id,
      so re-ingesting the same event is a no-op.
    - One curation row per (epoch, event) (uq_curation_epoch_event).
    - Curation rows are frozen once their epoch closes (enforced by the
      store adapter).
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, MonotonicId, UUIDRowBase
from ledger_kernel.db.types import CreditAmount, UTCDateTime


class ActivityEventRecord(Base):
    """One attributable unit of work, as ingested from a source."""

    __tablename__ = "activity_events"

    __table_args__ = (
        Index("idx_activity_scope_time", "scope_id", "event_time"),
    )

    # e.g. "github:pr:org/repo:42"
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    scope_id: Mapped[str] = mapped_column(String(100), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    platform_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platform_login: Mapped[str | None] = mapped_column(String(255), nullable=True)
    artifact_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    producer: Mapped[str] = mapped_column(String(100), nullable=False)
    producer_version: Mapped[str] = mapped_column(String(50), nullable=False)
    event_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    retrieved_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    ingested_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )


class CurationRecord(UUIDRowBase):
    """Approver decision for one event within one epoch."""

    __tablename__ = "activity_curation"

    __table_args__ = (
        UniqueConstraint("epoch_id", "event_id", name="uq_curation_epoch_event"),
    )

    epoch_id: Mapped[int] = mapped_column(
        MonotonicId, ForeignKey("epochs.id"), nullable=False
    )
    event_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("activity_events.id"), nullable=False
    )

    # Null until the platform identity resolves to a user
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    included: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    weight_override_milli: Mapped[int | None] = mapped_column(CreditAmount(), nullable=True)

    note: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
