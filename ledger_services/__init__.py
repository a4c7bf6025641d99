"""
ledger_services -- orchestration over the Store Port and the pure engines.

    EpochAllocationService   open epochs, curate, propose and adjust allocations
    EpochCloseOrchestrator   close, idempotent replay, supersession, signatures
    ReceiptAuthority         issuer roles and receipt signature verification
"""

from ledger_services.allocation_service import EpochAllocationService
from ledger_services.epoch_close import EpochCloseOrchestrator, EpochCloseResult
from ledger_services.receipt_authority import (
    ACTION_REQUIRED_ROLE,
    ReceiptAction,
    ReceiptAuthority,
    get_required_role,
)

__all__ = [
    "ACTION_REQUIRED_ROLE",
    "EpochAllocationService",
    "EpochCloseOrchestrator",
    "EpochCloseResult",
    "ReceiptAction",
    "ReceiptAuthority",
    "get_required_role",
]
