"""
Allocation engine -- from curated activity to per-user units.

Responsibility:
    Aggregate an epoch's curated activity into proposed per-user unit
    counts, and turn persisted allocations into the approved receipts the
    payout engine consumes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    EpochAllocationService (proposal) and EpochCloseOrchestrator
    (finalization).

Invariants enforced:
    - An event contributes only when its curation row is ``included`` and
      carries a resolved ``user_id``.  Uncurated events contribute nothing.
    - Units per event are the curation's ``weight_override_milli`` when
      set, else ``weight_config[event_type]``, else 0.
    - Output is sorted by ``user_id``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.model import (
    ActivityEvent,
    Allocation,
    ApprovedReceipt,
    Curation,
)


@dataclass(frozen=True)
class ProposedAllocation:
    user_id: str
    proposed_units: int
    activity_count: int


def event_units(
    event: ActivityEvent,
    curation: Curation,
    weight_config: Mapping[str, int],
) -> int:
    if curation.weight_override_milli is not None:
        return curation.weight_override_milli
    return weight_config.get(event.event_type, 0)


@traced_engine(
    "allocations",
    "1.0",
    fingerprint_fields=("events", "curations", "weight_config"),
)
def compute_proposed_allocations(
    events: Iterable[ActivityEvent],
    curations: Iterable[Curation],
    weight_config: Mapping[str, int],
) -> list[ProposedAllocation]:
    """
    Sum curated event weights per user.

    Args:
        events: Activity in the epoch window.
        curations: The epoch's curation rows, at most one per event.
        weight_config: The epoch's pinned event-type weights (milli-units).

    Returns:
        One ProposedAllocation per user with at least one counted event,
        sorted by user_id.
    """
    by_event = {c.event_id: c for c in curations}
    units: dict[str, int] = {}
    counts: dict[str, int] = {}

    for event in events:
        curation = by_event.get(event.id)
        if curation is None or not curation.included or curation.user_id is None:
            continue
        user_id = curation.user_id
        units[user_id] = units.get(user_id, 0) + event_units(event, curation, weight_config)
        counts[user_id] = counts.get(user_id, 0) + 1

    return [
        ProposedAllocation(
            user_id=user_id,
            proposed_units=units[user_id],
            activity_count=counts[user_id],
        )
        for user_id in sorted(units)
    ]


def finalize_allocations(allocations: Iterable[Allocation]) -> list[ApprovedReceipt]:
    """Approved receipts from persisted allocations, overrides applied."""
    return sorted(
        (a.to_receipt() for a in allocations),
        key=lambda r: r.user_id,
    )
