"""
Epoch lifecycle checks.

States: OPEN (initial) -> CLOSED (terminal).  No reverse transition exists.

    require_open           -- writes: allocations, final-unit overrides,
                              curation, pool components
    require_closable       -- close: epoch must still be open
    require_closed         -- statement corrections and signatures
    require_pool_components -- close: every configured component recorded

The checks are pure; the orchestrator consults the Store Port and passes
what it read.
"""

from __future__ import annotations

from collections.abc import Iterable

from ledger_kernel.domain.model import Epoch
from ledger_kernel.exceptions import (
    EpochAlreadyClosedError,
    EpochNotClosedError,
    EpochNotOpenError,
    PoolComponentMissingError,
)


def require_open(epoch: Epoch) -> None:
    """Raise EpochNotOpenError unless ``epoch`` accepts writes."""
    if not epoch.is_open:
        raise EpochNotOpenError(epoch.id)


def require_closable(epoch: Epoch) -> None:
    """Raise EpochAlreadyClosedError if ``epoch`` has already been closed."""
    if epoch.is_closed:
        raise EpochAlreadyClosedError(epoch.id)


def require_closed(epoch: Epoch) -> None:
    if not epoch.is_closed:
        raise EpochNotClosedError(epoch.id)


def find_missing_components(
    required: Iterable[str],
    present: Iterable[str],
) -> list[str]:
    """Required component ids absent from ``present``, sorted."""
    have = set(present)
    return sorted(set(required) - have)


def require_pool_components(
    epoch_id: int,
    required: Iterable[str],
    present: Iterable[str],
) -> None:
    """
    Block a close until every required pool component is recorded.

    Raises:
        PoolComponentMissingError: for the lexicographically first
            missing component, so repeated attempts report the same one.
    """
    missing = find_missing_components(required, present)
    if missing:
        raise PoolComponentMissingError(epoch_id, missing[0])
