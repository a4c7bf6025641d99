"""
Module: ledger_kernel.models.issuer
Responsibility: ORM persistence for the issuer allowlist -- which wallet
    addresses may author, review or approve receipts.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - address is the primary key, stored lowercase.
"""

from datetime import datetime

from sqlalchemy import Boolean, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.db.types import UTCDateTime


class LedgerIssuerRecord(Base):
    __tablename__ = "ledger_issuers"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    can_author: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_approve: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    added_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
