"""ORM models for the epoch ledger."""

from ledger_kernel.models.activity import ActivityEventRecord, CurationRecord
from ledger_kernel.models.allocation import AllocationRecord
from ledger_kernel.models.epoch import EpochRecord
from ledger_kernel.models.issuer import LedgerIssuerRecord
from ledger_kernel.models.payout_statement import (
    PayoutStatementRecord,
    StatementSignatureRecord,
)
from ledger_kernel.models.pool_component import PoolComponentRecord

__all__ = [
    "ActivityEventRecord",
    "AllocationRecord",
    "CurationRecord",
    "EpochRecord",
    "LedgerIssuerRecord",
    "PayoutStatementRecord",
    "PoolComponentRecord",
    "StatementSignatureRecord",
]
