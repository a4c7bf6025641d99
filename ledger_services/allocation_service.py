"""
ledger_services.allocation_service -- Epoch opening, curation and allocation.

Responsibility:
    Drive an open epoch up to the point of close: open it with pinned
    weights, record curation decisions and pool components, propose
    per-user allocations from curated activity and apply approver
    overrides.

Architecture position:
    Services -- orchestration over the Store Port and the pure engines.
    Holds no state beyond its injected store.

Invariants enforced:
    - Every write targets an open epoch; a closed epoch raises
      EpochNotOpenError (logged once here at WARNING, then re-raised).
    - propose_allocations is additive: users that already have an
      allocation keep it, including any final_units override.

Failure modes:
    - EpochNotFoundError: unknown epoch id.
    - EpochNotOpenError: write against a closed epoch.
    - AllocationNotFoundError: override for a user with no allocation.
    - DuplicateEpochError: opening a second epoch in a scope.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from ledger_config import LedgerConfig
from ledger_engines.allocations import compute_proposed_allocations
from ledger_kernel.domain.lifecycle import require_open
from ledger_kernel.domain.model import Allocation, Curation, Epoch, PoolComponent
from ledger_kernel.exceptions import EpochNotFoundError, EpochNotOpenError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.store import (
    CreateEpochParams,
    InsertAllocationParams,
    InsertPoolComponentParams,
    LedgerStore,
    UpsertCurationParams,
)

logger = get_logger("services.allocation")


@contextmanager
def _rejecting_closed_writes(epoch_id: int, operation: str) -> Iterator[None]:
    with LogContext.bind(epoch_id=epoch_id):
        try:
            yield
        except EpochNotOpenError:
            logger.warning(
                "epoch_write_rejected",
                extra={"operation": operation, "reason": "epoch_not_open"},
            )
            raise


class EpochAllocationService:
    """
    Open-epoch workflow over a LedgerStore.

    Contract:
        Flushes through the store within the caller's transaction; the
        caller commits.
    """

    def __init__(self, store: LedgerStore):
        self._store = store

    def open_epoch(
        self,
        scope_id: str,
        period_start: datetime,
        period_end: datetime,
        weight_config: Mapping[str, int],
    ) -> Epoch:
        """Create an open epoch with ``weight_config`` pinned into it."""
        epoch = self._store.create_epoch(
            CreateEpochParams(
                scope_id=scope_id,
                period_start=period_start,
                period_end=period_end,
                weight_config=dict(weight_config),
            )
        )
        logger.info(
            "epoch_opened",
            extra={"epoch_id": str(epoch.id), "scope_id": scope_id},
        )
        return epoch

    def open_epoch_from_config(
        self,
        config: LedgerConfig,
        period_start: datetime,
        period_end: datetime,
    ) -> Epoch:
        return self.open_epoch(
            config.scope_id, period_start, period_end, config.weight_config
        )

    def _load_open_epoch(self, epoch_id: int) -> Epoch:
        epoch = self._store.get_epoch(epoch_id)
        if epoch is None:
            raise EpochNotFoundError(epoch_id)
        require_open(epoch)
        return epoch

    def curate(
        self,
        epoch_id: int,
        event_id: str,
        user_id: str | None = None,
        included: bool = True,
        weight_override_milli: int | None = None,
        note: str | None = None,
    ) -> Curation:
        with _rejecting_closed_writes(epoch_id, "curate"):
            return self._store.upsert_curation(
                UpsertCurationParams(
                    epoch_id=epoch_id,
                    event_id=event_id,
                    user_id=user_id,
                    included=included,
                    weight_override_milli=weight_override_milli,
                    note=note,
                )
            )

    def record_pool_component(
        self,
        epoch_id: int,
        component_id: str,
        algorithm_version: str,
        amount_credits: int,
        inputs: Mapping[str, Any] | None = None,
        evidence_ref: str | None = None,
    ) -> PoolComponent:
        with _rejecting_closed_writes(epoch_id, "record_pool_component"):
            component = self._store.insert_pool_component(
                InsertPoolComponentParams(
                    epoch_id=epoch_id,
                    component_id=component_id,
                    algorithm_version=algorithm_version,
                    amount_credits=amount_credits,
                    inputs=dict(inputs or {}),
                    evidence_ref=evidence_ref,
                )
            )
        logger.info(
            "pool_component_recorded",
            extra={
                "epoch_id": str(epoch_id),
                "component_id": component_id,
                "amount_credits": str(amount_credits),
            },
        )
        return component

    def propose_allocations(self, epoch_id: int) -> list[Allocation]:
        """
        Aggregate curated activity in the epoch window into allocations.

        Users without an allocation row get one; existing rows are left
        alone so approver overrides survive a re-run.

        Returns:
            Every allocation of the epoch, sorted by user_id.
        """
        with _rejecting_closed_writes(epoch_id, "propose_allocations"):
            epoch = self._load_open_epoch(epoch_id)

            events = self._store.get_activity_for_window(
                epoch.scope_id, epoch.period_start, epoch.period_end
            )
            curations = self._store.get_curation_for_epoch(epoch_id)
            proposals = compute_proposed_allocations(
                events, curations, epoch.weight_config
            )

            existing = {a.user_id for a in self._store.get_allocations_for_epoch(epoch_id)}
            inserted = 0
            for proposal in proposals:
                if proposal.user_id in existing:
                    continue
                self._store.insert_allocation(
                    InsertAllocationParams(
                        epoch_id=epoch_id,
                        user_id=proposal.user_id,
                        proposed_units=proposal.proposed_units,
                        activity_count=proposal.activity_count,
                    )
                )
                inserted += 1

        unresolved = len(self._store.get_unresolved_curation(epoch_id))
        logger.info(
            "allocations_proposed",
            extra={
                "epoch_id": str(epoch_id),
                "event_count": len(events),
                "proposal_count": len(proposals),
                "inserted_count": inserted,
                "unresolved_curation_count": unresolved,
            },
        )
        return self._store.get_allocations_for_epoch(epoch_id)

    def adjust_final_units(
        self,
        epoch_id: int,
        user_id: str,
        final_units: int,
        override_reason: str | None = None,
    ) -> Allocation:
        with _rejecting_closed_writes(epoch_id, "adjust_final_units"):
            allocation = self._store.update_allocation_final_units(
                epoch_id, user_id, final_units, override_reason
            )
        logger.info(
            "allocation_final_units_set",
            extra={
                "epoch_id": str(epoch_id),
                "user_id": user_id,
                "proposed_units": str(allocation.proposed_units),
                "final_units": str(final_units),
            },
        )
        return allocation
