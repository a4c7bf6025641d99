"""
Ledger Kernel

An append-only epoch ledger that turns approved work into proportional
credit payouts:
- Integer-only payout arithmetic (largest-remainder rounding)
- Tamper-evident allocation-set fingerprints
- Domain-bound receipt signing messages
- One-way epoch lifecycle (open -> closed)
"""

__version__ = "0.1.0"
