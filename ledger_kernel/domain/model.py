"""
Domain model -- the shapes the orchestrator passes in and receives out.

Responsibility:
    Entity and value types for epochs, activity, curation, allocations,
    pool components, payout statements, issuers and receipt signing.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Free of ORM dependencies; the
    SQLAlchemy store maps rows to these types at the boundary.

Invariants enforced:
    - Credit and unit fields are Python ``int`` (arbitrary precision).
      ``bool`` and ``float`` are rejected.
    - Epoch: ``period_start < period_end``; ``closed_at`` is set iff the
      epoch is closed.
    - ApprovedReceipt: ``valuation_units >= 0`` (the caller-contract check
      that keeps ``compute_payouts`` total).
    - Mapping-valued fields are frozen with ``MappingProxyType``.

Failure modes:
    - ValueError / TypeError on construction with out-of-range or
      mistyped values.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID


class EpochStatus(str, Enum):
    """Lifecycle status of an epoch.  OPEN -> CLOSED, never back."""

    OPEN = "open"
    CLOSED = "closed"


class ReceiptRole(str, Enum):
    """Role attributed on a receipt and held by issuers."""

    AUTHOR = "author"
    REVIEWER = "reviewer"
    APPROVER = "approver"


def require_int(name: str, value: Any, *, allow_negative: bool = False) -> int:
    """Validate an integer credit/unit field and return it unchanged."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if not allow_negative and value < 0:
        raise ValueError(f"{name} cannot be negative: {value}")
    return value


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Epoch:
    """
    A payout round over a closed time window.

    Guarantees:
        - ``closed_at`` is non-None iff ``status`` is CLOSED.
        - ``weight_config`` maps event type to an integer weight in
          milli-units and is read-only.
    """

    id: int
    scope_id: str
    status: EpochStatus
    period_start: datetime
    period_end: datetime
    weight_config: Mapping[str, int]
    pool_total_credits: int | None
    opened_at: datetime
    closed_at: datetime | None = None
    created_at: datetime | None = None
    # Statement written by the close; later corrections chain after it
    closing_statement_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.period_start >= self.period_end:
            raise ValueError(
                f"Epoch {self.id}: period_start must precede period_end"
            )
        if (self.closed_at is not None) != (self.status == EpochStatus.CLOSED):
            raise ValueError(
                f"Epoch {self.id}: closed_at must be set iff status is closed"
            )
        if self.closing_statement_id is not None and self.status != EpochStatus.CLOSED:
            raise ValueError(
                f"Epoch {self.id}: only a closed epoch has a closing statement"
            )
        if self.pool_total_credits is not None:
            require_int("pool_total_credits", self.pool_total_credits)
        for key, weight in self.weight_config.items():
            require_int(f"weight_config[{key!r}]", weight)
        object.__setattr__(self, "weight_config", _freeze(self.weight_config))

    @property
    def is_open(self) -> bool:
        return self.status == EpochStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == EpochStatus.CLOSED


@dataclass(frozen=True)
class ActivityEvent:
    """Append-only record of attributable work, owned by ingestion."""

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
    ingested_at: datetime | None = None


@dataclass(frozen=True)
class Curation:
    """
    A per-event inclusion / weight-override decision by a human approver.

    ``user_id`` is None while the platform identity is unresolved;
    ``weight_override_milli`` is None for "use default weighting".
    """

    epoch_id: int
    event_id: str
    user_id: str | None = None
    included: bool = True
    weight_override_milli: int | None = None
    note: str | None = None
    id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.weight_override_milli is not None:
            require_int("weight_override_milli", self.weight_override_milli)


@dataclass(frozen=True)
class ApprovedReceipt:
    """The unit the payout engine consumes: one user's approved units."""

    user_id: str
    valuation_units: int

    def __post_init__(self) -> None:
        require_int("valuation_units", self.valuation_units)


@dataclass(frozen=True)
class Allocation:
    """
    Persisted per-(epoch, user) allocation.

    ``final_units`` is set by an approver override; until then the
    proposed figure stands.
    """

    epoch_id: int
    user_id: str
    proposed_units: int
    activity_count: int
    final_units: int | None = None
    override_reason: str | None = None
    id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        require_int("proposed_units", self.proposed_units)
        require_int("activity_count", self.activity_count)
        if self.final_units is not None:
            require_int("final_units", self.final_units)

    @property
    def effective_units(self) -> int:
        return self.final_units if self.final_units is not None else self.proposed_units

    def to_receipt(self) -> ApprovedReceipt:
        return ApprovedReceipt(user_id=self.user_id, valuation_units=self.effective_units)


@dataclass(frozen=True)
class PayoutLineItem:
    """One user's computed payout.  ``share`` is descriptive only."""

    user_id: str
    total_units: int
    share: str
    amount_credits: int


@dataclass(frozen=True)
class PoolComponent:
    """A named contribution to an epoch's credit pool."""

    epoch_id: int
    component_id: str
    algorithm_version: str
    amount_credits: int
    computed_at: datetime
    inputs: Mapping[str, Any] = field(default_factory=dict)
    evidence_ref: str | None = None
    id: UUID | None = None

    def __post_init__(self) -> None:
        require_int("amount_credits", self.amount_credits)
        object.__setattr__(self, "inputs", _freeze(self.inputs))


@dataclass(frozen=True)
class PayoutStatement:
    """
    Durable record of one epoch payout computation.

    A statement may supersede a prior one, forming a singly linked,
    append-only chain per epoch.
    """

    id: UUID
    epoch_id: int
    allocation_set_hash: str
    pool_total_credits: int
    payouts: tuple[PayoutLineItem, ...]
    created_at: datetime
    supersedes_statement_id: UUID | None = None

    @property
    def total_paid(self) -> int:
        return sum(item.amount_credits for item in self.payouts)


@dataclass(frozen=True)
class StatementSignature:
    """A wallet signature collected over a payout statement."""

    statement_id: UUID
    signer_wallet: str
    signature: str
    signed_at: datetime
    id: UUID | None = None


@dataclass(frozen=True)
class LedgerIssuer:
    """An address allowed to author, review or approve receipts."""

    address: str
    user_id: str
    roles: frozenset[ReceiptRole]
    added_by: str
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address))
        object.__setattr__(self, "roles", frozenset(ReceiptRole(r) for r in self.roles))

    def has_role(self, role: ReceiptRole) -> bool:
        return role in self.roles


def normalize_address(address: str) -> str:
    """Lowercase a hex wallet address so lookups are case-insensitive."""
    return address.strip().lower()


@dataclass(frozen=True)
class SigningContext:
    """Deployment binding embedded in every signable receipt message."""

    chain_id: str
    app_domain: str
    spec_version: str


@dataclass(frozen=True)
class ReceiptMessageFields:
    """Receipt fields rendered into the canonical signing message."""

    epoch_id: str
    user_id: str
    work_item_id: str
    role: str
    valuation_units: str
    artifact_ref: str
    rationale_ref: str
