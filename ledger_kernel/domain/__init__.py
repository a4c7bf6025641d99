"""
Ledger domain -- pure types and lifecycle checks, zero I/O.

Usage:
    from ledger_kernel.domain.model import ApprovedReceipt, Epoch, EpochStatus
    from ledger_kernel.domain.lifecycle import require_open
    from ledger_kernel.domain.wire import payout_to_wire
"""
