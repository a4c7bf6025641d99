"""
Set fingerprints for allocations and receipt ids.

Both hashes are SHA-256 over a canonical UTF-8 serialization, returned as
lowercase hex, and are independent of input order:

    allocation set:  "alice:10\\nbob:20"   (sorted by user_id, units summed)
    receipt ids:     "r1,r1,r2"            (sorted, duplicates kept)

A PayoutStatement's ``allocation_set_hash`` is the allocation-set hash of
the receipts it was computed from, so any holder of the same data can
recompute and compare it.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from ledger_engines.payouts import group_units
from ledger_kernel.domain.model import ApprovedReceipt


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def canonical_allocation_lines(allocations: Iterable[ApprovedReceipt]) -> str:
    """The exact string hashed by ``compute_allocation_set_hash``."""
    grouped = sorted(group_units(allocations).items())
    return "\n".join(f"{user_id}:{units}" for user_id, units in grouped)


def compute_allocation_set_hash(allocations: Iterable[ApprovedReceipt]) -> str:
    return _sha256_hex(canonical_allocation_lines(allocations))


def compute_receipt_set_hash(receipt_ids: Iterable[str]) -> str:
    return _sha256_hex(",".join(sorted(receipt_ids)))
