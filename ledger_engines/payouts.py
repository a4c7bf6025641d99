"""
Payout engine -- proportional credit distribution by largest remainder.

Responsibility:
    Turn a set of approved receipts and a pool total into per-user payout
    line items whose amounts sum to the pool exactly.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    EpochCloseOrchestrator at close, on verification and on supersession.

Invariants enforced:
    - Integer-only arithmetic: products, floors and remainders are Python
      ``int`` (arbitrary precision); no float is ever created.
    - Conservation: ``sum(amount_credits) == pool_total_credits`` whenever
      the result is non-empty.
    - Determinism: users are processed and returned in ``user_id``
      ascending order; residual credits go to the largest remainders,
      exact ties broken by ``user_id`` ascending.  Changing the tie-break
      would change previously issued statements.

Failure modes:
    - None for valid input.  Empty receipts, a non-positive pool or zero
      total units return ``[]``.  Negative units are rejected earlier, by
      ``ApprovedReceipt``.
"""

from __future__ import annotations

from collections.abc import Iterable

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.model import ApprovedReceipt, PayoutLineItem

SHARE_DIGITS = 6
_SHARE_SCALE = 10**18
_SHARE_TRUNCATE = 10 ** (18 - SHARE_DIGITS)


def group_units(receipts: Iterable[ApprovedReceipt]) -> dict[str, int]:
    """Sum ``valuation_units`` per user.  Key order is not meaningful."""
    totals: dict[str, int] = {}
    for receipt in receipts:
        totals[receipt.user_id] = totals.get(receipt.user_id, 0) + receipt.valuation_units
    return totals


def format_share(units: int, grand_total_units: int) -> str:
    """
    Render ``units / grand_total_units`` as ``W.FFFFFF``.

    Scaled by 10**18, then truncated to six fractional digits.  Descriptive
    only; never feeds back into amounts.
    """
    if grand_total_units <= 0:
        raise ValueError("grand_total_units must be positive")
    scaled = (units * _SHARE_SCALE) // grand_total_units
    micro = scaled // _SHARE_TRUNCATE
    whole, frac = divmod(micro, 10**SHARE_DIGITS)
    return f"{whole}.{frac:0{SHARE_DIGITS}d}"


@traced_engine("payouts", "1.0", fingerprint_fields=("receipts", "pool_total_credits"))
def compute_payouts(
    receipts: Iterable[ApprovedReceipt],
    pool_total_credits: int,
) -> list[PayoutLineItem]:
    """
    Distribute ``pool_total_credits`` across receipts (Hamilton method).

    1. Group by user and sum units; sort users by ``user_id``.
    2. ``floor, remainder = divmod(units * pool, grand_total)`` per user.
    3. Award +1 to the ``pool - sum(floors)`` users with the largest
       remainders (ties: ``user_id`` ascending).

    Returns:
        Line items in ``user_id`` ascending order, or ``[]`` when there is
        nothing to distribute.
    """
    receipts = list(receipts)
    if not receipts or pool_total_credits <= 0:
        return []

    per_user = sorted(group_units(receipts).items())
    grand_total = sum(units for _, units in per_user)
    if grand_total == 0:
        return []

    floors: dict[str, int] = {}
    remainders: list[tuple[int, str]] = []
    for user_id, units in per_user:
        floor, remainder = divmod(units * pool_total_credits, grand_total)
        floors[user_id] = floor
        remainders.append((remainder, user_id))

    residual = pool_total_credits - sum(floors.values())

    # Largest remainder first; equal remainders fall back to user_id order
    ranked = sorted(remainders, key=lambda item: (-item[0], item[1]))
    bonus = {user_id for _, user_id in ranked[:residual]}

    return [
        PayoutLineItem(
            user_id=user_id,
            total_units=units,
            share=format_share(units, grand_total),
            amount_credits=floors[user_id] + (1 if user_id in bonus else 0),
        )
        for user_id, units in per_user
    ]
