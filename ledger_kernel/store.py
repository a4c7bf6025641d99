"""
Store Port -- the only I/O boundary of the epoch ledger.

Responsibility:
    Declares the narrow interface through which the orchestrator reads and
    writes epochs, activity, curation, allocations, pool components,
    payout statements, signatures and issuers.  Type definitions only.

Invariants (implementations must honor):
    - Activity events are append-only; re-inserting an existing id is a no-op.
    - Curation, allocation and pool-component writes against a closed
      epoch raise EpochNotOpenError (curation freezes on close).
    - At most one open epoch per scope, and one epoch per window.
    - Payout statements are never updated or deleted; a correction is a
      new statement that supersedes the chain head.
    - Flush-only: the caller owns commit/rollback.

Concurrency:
    ``get_epoch_for_update`` takes a row lock held until the caller's
    transaction ends; the close sequence runs under it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from ledger_kernel.domain.model import (
    ActivityEvent,
    Allocation,
    Curation,
    Epoch,
    LedgerIssuer,
    PayoutLineItem,
    PayoutStatement,
    PoolComponent,
    ReceiptRole,
    StatementSignature,
)

# ---------------------------------------------------------------------------
# Write-side parameter types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateEpochParams:
    scope_id: str
    period_start: datetime
    period_end: datetime
    weight_config: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class InsertActivityEventParams:
    id: str
    scope_id: str
    source: str
    event_type: str
    platform_user_id: str
    payload_hash: str
    producer: str
    producer_version: str
    event_time: datetime
    retrieved_at: datetime
    platform_login: str | None = None
    artifact_url: str | None = None
    metadata: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class UpsertCurationParams:
    epoch_id: int
    event_id: str
    user_id: str | None = None
    included: bool = True
    weight_override_milli: int | None = None
    note: str | None = None


@dataclass(frozen=True)
class InsertAllocationParams:
    epoch_id: int
    user_id: str
    proposed_units: int
    activity_count: int
    final_units: int | None = None
    override_reason: str | None = None


@dataclass(frozen=True)
class InsertPoolComponentParams:
    epoch_id: int
    component_id: str
    algorithm_version: str
    amount_credits: int
    inputs: Mapping[str, Any] = field(default_factory=dict)
    evidence_ref: str | None = None


@dataclass(frozen=True)
class InsertPayoutStatementParams:
    epoch_id: int
    allocation_set_hash: str
    pool_total_credits: int
    payouts: Sequence[PayoutLineItem]
    supersedes_statement_id: UUID | None = None


@dataclass(frozen=True)
class InsertSignatureParams:
    statement_id: UUID
    signer_wallet: str
    signature: str
    signed_at: datetime


@dataclass(frozen=True)
class InsertIssuerParams:
    address: str
    user_id: str
    roles: frozenset[ReceiptRole]
    added_by: str


# ---------------------------------------------------------------------------
# Port interface
# ---------------------------------------------------------------------------


class LedgerStore(ABC):
    """
    Abstract Store Port.

    Contract:
        Accepts and returns domain dataclasses from
        ``ledger_kernel.domain.model``; never exposes persistence rows.
    """

    # Epochs

    @abstractmethod
    def create_epoch(self, params: CreateEpochParams) -> Epoch:
        """Create an OPEN epoch; DuplicateEpochError on scope/window conflict."""

    @abstractmethod
    def get_epoch(self, epoch_id: int) -> Epoch | None: ...

    @abstractmethod
    def get_epoch_for_update(self, epoch_id: int) -> Epoch | None:
        """Load an epoch holding its row lock until the transaction ends."""

    @abstractmethod
    def get_open_epoch(self, scope_id: str) -> Epoch | None: ...

    @abstractmethod
    def get_epoch_by_window(
        self, scope_id: str, period_start: datetime, period_end: datetime
    ) -> Epoch | None: ...

    @abstractmethod
    def list_epochs(self, scope_id: str) -> list[Epoch]: ...

    @abstractmethod
    def close_epoch(
        self,
        epoch_id: int,
        pool_total_credits: int,
        closing_statement_id: UUID | None = None,
    ) -> Epoch:
        """Close an open epoch; an already-closed epoch is returned unchanged."""

    # Activity events

    @abstractmethod
    def insert_activity_event(self, params: InsertActivityEventParams) -> None: ...

    @abstractmethod
    def get_activity_for_window(
        self, scope_id: str, since: datetime, until: datetime
    ) -> list[ActivityEvent]: ...

    # Curation

    @abstractmethod
    def upsert_curation(self, params: UpsertCurationParams) -> Curation: ...

    @abstractmethod
    def get_curation_for_epoch(self, epoch_id: int) -> list[Curation]: ...

    @abstractmethod
    def get_unresolved_curation(self, epoch_id: int) -> list[Curation]: ...

    # Allocations

    @abstractmethod
    def insert_allocation(self, params: InsertAllocationParams) -> Allocation: ...

    @abstractmethod
    def update_allocation_final_units(
        self,
        epoch_id: int,
        user_id: str,
        final_units: int,
        override_reason: str | None = None,
    ) -> Allocation: ...

    @abstractmethod
    def get_allocations_for_epoch(self, epoch_id: int) -> list[Allocation]: ...

    # Pool components

    @abstractmethod
    def insert_pool_component(self, params: InsertPoolComponentParams) -> PoolComponent: ...

    @abstractmethod
    def get_pool_components_for_epoch(self, epoch_id: int) -> list[PoolComponent]: ...

    # Payout statements

    @abstractmethod
    def insert_payout_statement(
        self, params: InsertPayoutStatementParams
    ) -> PayoutStatement: ...

    @abstractmethod
    def get_statement(self, statement_id: UUID) -> PayoutStatement | None: ...

    @abstractmethod
    def get_statement_for_epoch(self, epoch_id: int) -> PayoutStatement | None:
        """Head of the epoch's statement chain (the one nothing supersedes)."""

    @abstractmethod
    def list_statements_for_epoch(self, epoch_id: int) -> list[PayoutStatement]:
        """The whole chain, oldest first."""

    # Signatures

    @abstractmethod
    def insert_signature(self, params: InsertSignatureParams) -> StatementSignature: ...

    @abstractmethod
    def get_signatures_for_statement(
        self, statement_id: UUID
    ) -> list[StatementSignature]: ...

    # Issuers

    @abstractmethod
    def insert_issuer(self, params: InsertIssuerParams) -> LedgerIssuer: ...

    @abstractmethod
    def get_issuer(self, address: str) -> LedgerIssuer | None: ...
