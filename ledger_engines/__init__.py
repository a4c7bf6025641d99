"""
Module: ledger_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: payouts,
    allocation proposal and finalization, set hashing and receipt signing
    messages.  This is the import surface for ``ledger_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ``ledger_kernel.domain`` (and sibling engine modules).
    MUST NOT import ``ledger_services``.

Invariants enforced:
    - Purity: engines never read the clock or touch the database.
    - Integer-only arithmetic: credit and unit values are ``int``; floats
      are forbidden.
    - Determinism: identical inputs always produce identical outputs,
      whatever their order.

Audit relevance:
    ``compute_payouts`` and ``compute_proposed_allocations`` are traced via
    ``@traced_engine``, emitting LEDGER_ENGINE_TRACE records.
"""

from ledger_engines.allocations import (
    ProposedAllocation,
    compute_proposed_allocations,
    finalize_allocations,
)
from ledger_engines.hashing import (
    canonical_allocation_lines,
    compute_allocation_set_hash,
    compute_receipt_set_hash,
)
from ledger_engines.payouts import compute_payouts, format_share, group_units
from ledger_engines.signing import build_receipt_message, hash_receipt_message
from ledger_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "ProposedAllocation",
    "compute_proposed_allocations",
    "finalize_allocations",
    "canonical_allocation_lines",
    "compute_allocation_set_hash",
    "compute_receipt_set_hash",
    "compute_payouts",
    "format_share",
    "group_units",
    "build_receipt_message",
    "hash_receipt_message",
    "compute_input_fingerprint",
    "traced_engine",
]
