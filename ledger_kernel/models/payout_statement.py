"""
Module: ledger_kernel.models.payout_statement
Responsibility: ORM persistence for payout statements and the wallet
    signatures collected over them.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Statements are append-only.  A correction is a new row whose
      supersedes_statement_id points at the prior head; each statement can
      be superseded at most once (uq_statement_supersedes), so the chain
      per epoch is singly linked.
    - payouts_json holds the wire shape: every integer as a decimal string.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import MonotonicId, UUIDRowBase
from ledger_kernel.db.types import CreditAmount, UTCDateTime, UUIDString


class PayoutStatementRecord(UUIDRowBase):
    __tablename__ = "payout_statements"

    __table_args__ = (
        UniqueConstraint("supersedes_statement_id", name="uq_statement_supersedes"),
        Index("idx_statement_epoch", "epoch_id"),
    )

    epoch_id: Mapped[int] = mapped_column(
        MonotonicId, ForeignKey("epochs.id"), nullable=False
    )
    allocation_set_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    pool_total_credits: Mapped[int] = mapped_column(CreditAmount(), nullable=False)

    # [{"user_id", "total_units", "share", "amount_credits"}], all strings
    payouts_json: Mapped[list[dict[str, str]]] = mapped_column(JSON, nullable=False)

    supersedes_statement_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("payout_statements.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class StatementSignatureRecord(UUIDRowBase):
    __tablename__ = "statement_signatures"

    __table_args__ = (
        UniqueConstraint(
            "statement_id", "signer_wallet", name="uq_signature_statement_signer"
        ),
    )

    statement_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payout_statements.id"), nullable=False
    )
    signer_wallet: Mapped[str] = mapped_column(String(64), nullable=False)
    signature: Mapped[str] = mapped_column(String(1000), nullable=False)
    signed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
