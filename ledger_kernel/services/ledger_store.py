"""
SqlAlchemyLedgerStore -- the relational implementation of the Store Port.

Responsibility:
    Reads and writes epochs, activity, curation, allocations, pool
    components, payout statements, signatures and issuers, translating
    between ORM rows and the frozen domain dataclasses at the boundary.

Architecture position:
    Kernel > Services -- imperative shell.  Constructed per session by the
    caller and handed to the orchestrators in ``ledger_services``.

Invariants enforced:
    - Flush-only: never commits or rolls back the session.
    - Returns domain dataclasses, never ORM rows.
    - Curation, allocation, final-unit and pool-component writes against a
      closed epoch raise EpochNotOpenError; curation is frozen on close.
    - One open epoch per scope and one epoch per window (pre-checked here,
      backstopped by uq_epochs_one_open / uq_epochs_window).
    - Activity events are idempotent by id.
    - close_epoch is idempotent at this level: an already-closed epoch is
      returned unchanged and its closed_at / pool total are never touched.
    - Timestamps come from the injected clock.

Failure modes:
    - EpochNotFoundError: epoch id does not exist.
    - EpochNotOpenError: write against a closed epoch.
    - DuplicateEpochError: second open epoch, or a repeated window.
    - AllocationNotFoundError: final-unit override for a missing row.
    - StatementNotFoundError: supersession / signature target missing.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.lifecycle import require_open
from ledger_kernel.domain.model import (
    ActivityEvent,
    Allocation,
    Curation,
    Epoch,
    EpochStatus,
    LedgerIssuer,
    PayoutStatement,
    PoolComponent,
    ReceiptRole,
    StatementSignature,
    normalize_address,
    require_int,
)
from ledger_kernel.domain.wire import payout_from_wire, payout_to_wire
from ledger_kernel.exceptions import (
    AllocationNotFoundError,
    DuplicateEpochError,
    EpochNotFoundError,
    StatementNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.activity import ActivityEventRecord, CurationRecord
from ledger_kernel.models.allocation import AllocationRecord
from ledger_kernel.models.epoch import EpochRecord
from ledger_kernel.models.issuer import LedgerIssuerRecord
from ledger_kernel.models.payout_statement import (
    PayoutStatementRecord,
    StatementSignatureRecord,
)
from ledger_kernel.models.pool_component import PoolComponentRecord
from ledger_kernel.services.base import BaseService
from ledger_kernel.store import (
    CreateEpochParams,
    InsertActivityEventParams,
    InsertAllocationParams,
    InsertIssuerParams,
    InsertPayoutStatementParams,
    InsertPoolComponentParams,
    InsertSignatureParams,
    LedgerStore,
    UpsertCurationParams,
)

logger = get_logger("services.ledger_store")


class SqlAlchemyLedgerStore(BaseService, LedgerStore):
    """
    Store Port over a SQLAlchemy session.

    Contract:
        Every write flushes within the caller's transaction.  Lookups that
        miss return None (``get_*``) or an empty list (``list_*`` and
        ``*_for_epoch``).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Row -> domain mappers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_epoch(row: EpochRecord) -> Epoch:
        return Epoch(
            id=row.id,
            scope_id=row.scope_id,
            status=EpochStatus(row.status),
            period_start=row.period_start,
            period_end=row.period_end,
            weight_config=dict(row.weight_config or {}),
            pool_total_credits=row.pool_total_credits,
            opened_at=row.opened_at,
            closed_at=row.closed_at,
            created_at=row.created_at,
            closing_statement_id=row.closing_statement_id,
        )

    @staticmethod
    def _to_activity(row: ActivityEventRecord) -> ActivityEvent:
        return ActivityEvent(
            id=row.id,
            scope_id=row.scope_id,
            source=row.source,
            event_type=row.event_type,
            platform_user_id=row.platform_user_id,
            payload_hash=row.payload_hash,
            producer=row.producer,
            producer_version=row.producer_version,
            event_time=row.event_time,
            retrieved_at=row.retrieved_at,
            platform_login=row.platform_login,
            artifact_url=row.artifact_url,
            metadata=row.metadata_json,
            ingested_at=row.ingested_at,
        )

    @staticmethod
    def _to_curation(row: CurationRecord) -> Curation:
        return Curation(
            epoch_id=row.epoch_id,
            event_id=row.event_id,
            user_id=row.user_id,
            included=row.included,
            weight_override_milli=row.weight_override_milli,
            note=row.note,
            id=row.id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_allocation(row: AllocationRecord) -> Allocation:
        return Allocation(
            epoch_id=row.epoch_id,
            user_id=row.user_id,
            proposed_units=row.proposed_units,
            activity_count=row.activity_count,
            final_units=row.final_units,
            override_reason=row.override_reason,
            id=row.id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_pool_component(row: PoolComponentRecord) -> PoolComponent:
        return PoolComponent(
            epoch_id=row.epoch_id,
            component_id=row.component_id,
            algorithm_version=row.algorithm_version,
            amount_credits=row.amount_credits,
            computed_at=row.computed_at,
            inputs=dict(row.inputs_json or {}),
            evidence_ref=row.evidence_ref,
            id=row.id,
        )

    @staticmethod
    def _to_statement(row: PayoutStatementRecord) -> PayoutStatement:
        return PayoutStatement(
            id=row.id,
            epoch_id=row.epoch_id,
            allocation_set_hash=row.allocation_set_hash,
            pool_total_credits=row.pool_total_credits,
            payouts=tuple(payout_from_wire(p) for p in row.payouts_json),
            created_at=row.created_at,
            supersedes_statement_id=row.supersedes_statement_id,
        )

    @staticmethod
    def _to_signature(row: StatementSignatureRecord) -> StatementSignature:
        return StatementSignature(
            statement_id=row.statement_id,
            signer_wallet=row.signer_wallet,
            signature=row.signature,
            signed_at=row.signed_at,
            id=row.id,
        )

    @staticmethod
    def _to_issuer(row: LedgerIssuerRecord) -> LedgerIssuer:
        roles = set()
        if row.can_author:
            roles.add(ReceiptRole.AUTHOR)
        if row.can_review:
            roles.add(ReceiptRole.REVIEWER)
        if row.can_approve:
            roles.add(ReceiptRole.APPROVER)
        return LedgerIssuer(
            address=row.address,
            user_id=row.user_id,
            roles=frozenset(roles),
            added_by=row.added_by,
            created_at=row.created_at,
        )

    # ------------------------------------------------------------------
    # Internal lookups
    # ------------------------------------------------------------------

    def _get_epoch_row(self, epoch_id: int) -> EpochRecord:
        row = self.session.get(EpochRecord, epoch_id)
        if row is None:
            raise EpochNotFoundError(epoch_id)
        return row

    def _require_open_epoch(self, epoch_id: int) -> EpochRecord:
        row = self._get_epoch_row(epoch_id)
        require_open(self._to_epoch(row))
        return row

    def _get_statement_row(self, statement_id: UUID) -> PayoutStatementRecord:
        row = self.session.get(PayoutStatementRecord, statement_id)
        if row is None:
            raise StatementNotFoundError(str(statement_id))
        return row

    # ------------------------------------------------------------------
    # Epochs
    # ------------------------------------------------------------------

    def create_epoch(self, params: CreateEpochParams) -> Epoch:
        """
        Create an OPEN epoch for ``params.scope_id``.

        Raises:
            ValueError: If period_start does not precede period_end.
            DuplicateEpochError: If the scope already has an open epoch or
                an epoch with the same window.
        """
        if params.period_start >= params.period_end:
            raise ValueError(
                f"period_start ({params.period_start}) must precede "
                f"period_end ({params.period_end})"
            )
        for key, weight in params.weight_config.items():
            require_int(f"weight_config[{key!r}]", weight)

        if self.get_open_epoch(params.scope_id) is not None:
            raise DuplicateEpochError(params.scope_id, "an open epoch already exists")
        if self.get_epoch_by_window(
            params.scope_id, params.period_start, params.period_end
        ) is not None:
            raise DuplicateEpochError(
                params.scope_id, "an epoch for this window already exists"
            )

        now = self._clock.now()
        row = EpochRecord(
            scope_id=params.scope_id,
            status=EpochStatus.OPEN.value,
            period_start=params.period_start,
            period_end=params.period_end,
            weight_config=dict(params.weight_config),
            pool_total_credits=None,
            opened_at=now,
            closed_at=None,
            created_at=now,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as exc:
            # A concurrent writer won the race past the pre-check
            logger.warning(
                "concurrent_epoch_create_conflict",
                extra={"scope_id": params.scope_id},
            )
            raise DuplicateEpochError(params.scope_id, "constraint violation") from exc

        logger.info(
            "epoch_created",
            extra={
                "epoch_id": str(row.id),
                "scope_id": params.scope_id,
                "period_start": params.period_start,
                "period_end": params.period_end,
            },
        )
        return self._to_epoch(row)

    def get_epoch(self, epoch_id: int) -> Epoch | None:
        row = self.session.get(EpochRecord, epoch_id)
        return self._to_epoch(row) if row is not None else None

    def get_epoch_for_update(self, epoch_id: int) -> Epoch | None:
        """
        Load an epoch with SELECT ... FOR UPDATE.

        The lock is held until the caller's transaction ends, serializing
        concurrent closes of the same epoch.  populate_existing makes a
        waiter see the winner's committed status rather than a stale
        identity-map copy.
        """
        row = self._one_or_none(
            select(EpochRecord)
            .where(EpochRecord.id == epoch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._to_epoch(row) if row is not None else None

    def get_open_epoch(self, scope_id: str) -> Epoch | None:
        row = self._one_or_none(
            select(EpochRecord).where(
                EpochRecord.scope_id == scope_id,
                EpochRecord.status == EpochStatus.OPEN.value,
            )
        )
        return self._to_epoch(row) if row is not None else None

    def get_epoch_by_window(
        self, scope_id: str, period_start: datetime, period_end: datetime
    ) -> Epoch | None:
        row = self._one_or_none(
            select(EpochRecord).where(
                EpochRecord.scope_id == scope_id,
                EpochRecord.period_start == period_start,
                EpochRecord.period_end == period_end,
            )
        )
        return self._to_epoch(row) if row is not None else None

    def list_epochs(self, scope_id: str) -> list[Epoch]:
        rows = self._all(
            select(EpochRecord)
            .where(EpochRecord.scope_id == scope_id)
            .order_by(EpochRecord.id)
        )
        return [self._to_epoch(r) for r in rows]

    def close_epoch(
        self,
        epoch_id: int,
        pool_total_credits: int,
        closing_statement_id: UUID | None = None,
    ) -> Epoch:
        """
        Mark an open epoch closed and pin its pool total.

        ``closing_statement_id`` names the statement this close produced;
        replays of the close compare against it.  An epoch that is already
        closed is returned as-is; the caller decides whether that is an
        idempotent success.

        Raises:
            EpochNotFoundError: If the epoch does not exist.
            StatementNotFoundError: If ``closing_statement_id`` does not
                name a statement of this epoch.
        """
        require_int("pool_total_credits", pool_total_credits)
        row = self._one_or_none(
            select(EpochRecord).where(EpochRecord.id == epoch_id).with_for_update()
        )
        if row is None:
            raise EpochNotFoundError(epoch_id)

        if row.status == EpochStatus.CLOSED.value:
            logger.info("epoch_already_closed", extra={"epoch_id": str(epoch_id)})
            return self._to_epoch(row)

        if closing_statement_id is not None:
            statement = self._get_statement_row(closing_statement_id)
            if statement.epoch_id != epoch_id:
                raise StatementNotFoundError(f"{closing_statement_id} (epoch {epoch_id})")

        row.status = EpochStatus.CLOSED.value
        row.pool_total_credits = pool_total_credits
        row.closed_at = self._clock.now()
        row.closing_statement_id = closing_statement_id
        self.session.flush()

        logger.info(
            "epoch_closed",
            extra={"epoch_id": str(epoch_id), "pool_total_credits": str(pool_total_credits)},
        )
        return self._to_epoch(row)

    # ------------------------------------------------------------------
    # Activity events
    # ------------------------------------------------------------------

    def insert_activity_event(self, params: InsertActivityEventParams) -> None:
        if self.session.get(ActivityEventRecord, params.id) is not None:
            logger.debug("activity_event_duplicate", extra={"event_id": params.id})
            return

        self._persist(
            ActivityEventRecord(
                id=params.id,
                scope_id=params.scope_id,
                source=params.source,
                event_type=params.event_type,
                platform_user_id=params.platform_user_id,
                platform_login=params.platform_login,
                artifact_url=params.artifact_url,
                metadata_json=dict(params.metadata) if params.metadata is not None else None,
                payload_hash=params.payload_hash,
                producer=params.producer,
                producer_version=params.producer_version,
                event_time=params.event_time,
                retrieved_at=params.retrieved_at,
                ingested_at=self._clock.now(),
            )
        )

    def get_activity_for_window(
        self, scope_id: str, since: datetime, until: datetime
    ) -> list[ActivityEvent]:
        """Events with ``since <= event_time < until``, oldest first."""
        rows = self._all(
            select(ActivityEventRecord)
            .where(
                ActivityEventRecord.scope_id == scope_id,
                ActivityEventRecord.event_time >= since,
                ActivityEventRecord.event_time < until,
            )
            .order_by(ActivityEventRecord.event_time, ActivityEventRecord.id)
        )
        return [self._to_activity(r) for r in rows]

    # ------------------------------------------------------------------
    # Curation
    # ------------------------------------------------------------------

    def upsert_curation(self, params: UpsertCurationParams) -> Curation:
        self._require_open_epoch(params.epoch_id)
        if params.weight_override_milli is not None:
            require_int("weight_override_milli", params.weight_override_milli)

        now = self._clock.now()
        row = self._one_or_none(
            select(CurationRecord).where(
                CurationRecord.epoch_id == params.epoch_id,
                CurationRecord.event_id == params.event_id,
            )
        )

        if row is None:
            row = CurationRecord(
                epoch_id=params.epoch_id,
                event_id=params.event_id,
                created_at=now,
            )
            self.session.add(row)

        row.user_id = params.user_id
        row.included = params.included
        row.weight_override_milli = params.weight_override_milli
        row.note = params.note
        row.updated_at = now
        self.session.flush()
        return self._to_curation(row)

    def get_curation_for_epoch(self, epoch_id: int) -> list[Curation]:
        rows = self._all(
            select(CurationRecord)
            .where(CurationRecord.epoch_id == epoch_id)
            .order_by(CurationRecord.event_id)
        )
        return [self._to_curation(r) for r in rows]

    def get_unresolved_curation(self, epoch_id: int) -> list[Curation]:
        rows = self._all(
            select(CurationRecord)
            .where(
                CurationRecord.epoch_id == epoch_id,
                CurationRecord.user_id.is_(None),
            )
            .order_by(CurationRecord.event_id)
        )
        return [self._to_curation(r) for r in rows]

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def insert_allocation(self, params: InsertAllocationParams) -> Allocation:
        self._require_open_epoch(params.epoch_id)
        require_int("proposed_units", params.proposed_units)
        if params.final_units is not None:
            require_int("final_units", params.final_units)

        now = self._clock.now()
        row = AllocationRecord(
            epoch_id=params.epoch_id,
            user_id=params.user_id,
            proposed_units=params.proposed_units,
            final_units=params.final_units,
            override_reason=params.override_reason,
            activity_count=params.activity_count,
            created_at=now,
            updated_at=now,
        )
        self._persist(row)
        return self._to_allocation(row)

    def update_allocation_final_units(
        self,
        epoch_id: int,
        user_id: str,
        final_units: int,
        override_reason: str | None = None,
    ) -> Allocation:
        """
        Record an approver override for one user's allocation.

        Raises:
            EpochNotOpenError: If the epoch is closed.
            AllocationNotFoundError: If no allocation exists for the user.
        """
        self._require_open_epoch(epoch_id)
        require_int("final_units", final_units)

        row = self._one_or_none(
            select(AllocationRecord).where(
                AllocationRecord.epoch_id == epoch_id,
                AllocationRecord.user_id == user_id,
            )
        )
        if row is None:
            raise AllocationNotFoundError(epoch_id, user_id)

        row.final_units = final_units
        row.override_reason = override_reason
        row.updated_at = self._clock.now()
        self.session.flush()
        return self._to_allocation(row)

    def get_allocations_for_epoch(self, epoch_id: int) -> list[Allocation]:
        rows = self._all(
            select(AllocationRecord)
            .where(AllocationRecord.epoch_id == epoch_id)
            .order_by(AllocationRecord.user_id)
        )
        return [self._to_allocation(r) for r in rows]

    # ------------------------------------------------------------------
    # Pool components
    # ------------------------------------------------------------------

    def insert_pool_component(self, params: InsertPoolComponentParams) -> PoolComponent:
        self._require_open_epoch(params.epoch_id)
        require_int("amount_credits", params.amount_credits)

        row = PoolComponentRecord(
            epoch_id=params.epoch_id,
            component_id=params.component_id,
            algorithm_version=params.algorithm_version,
            inputs_json=dict(params.inputs),
            amount_credits=params.amount_credits,
            evidence_ref=params.evidence_ref,
            computed_at=self._clock.now(),
        )
        self._persist(row)
        return self._to_pool_component(row)

    def get_pool_components_for_epoch(self, epoch_id: int) -> list[PoolComponent]:
        rows = self._all(
            select(PoolComponentRecord)
            .where(PoolComponentRecord.epoch_id == epoch_id)
            .order_by(PoolComponentRecord.component_id)
        )
        return [self._to_pool_component(r) for r in rows]

    # ------------------------------------------------------------------
    # Payout statements
    # ------------------------------------------------------------------

    def insert_payout_statement(
        self, params: InsertPayoutStatementParams
    ) -> PayoutStatement:
        """
        Append a payout statement.

        Raises:
            EpochNotFoundError: If the epoch does not exist.
            StatementNotFoundError: If ``supersedes_statement_id`` does not
                name a statement of the same epoch.
        """
        self._get_epoch_row(params.epoch_id)
        require_int("pool_total_credits", params.pool_total_credits)

        if params.supersedes_statement_id is not None:
            prior = self._get_statement_row(params.supersedes_statement_id)
            if prior.epoch_id != params.epoch_id:
                raise StatementNotFoundError(
                    f"{params.supersedes_statement_id} (epoch {params.epoch_id})"
                )

        row = PayoutStatementRecord(
            epoch_id=params.epoch_id,
            allocation_set_hash=params.allocation_set_hash,
            pool_total_credits=params.pool_total_credits,
            payouts_json=[payout_to_wire(p) for p in params.payouts],
            supersedes_statement_id=params.supersedes_statement_id,
            created_at=self._clock.now(),
        )
        self._persist(row)

        logger.info(
            "payout_statement_inserted",
            extra={
                "statement_id": row.id,
                "epoch_id": str(params.epoch_id),
                "allocation_set_hash": params.allocation_set_hash,
                "supersedes_statement_id": params.supersedes_statement_id,
                "line_count": len(params.payouts),
            },
        )
        return self._to_statement(row)

    def get_statement(self, statement_id: UUID) -> PayoutStatement | None:
        row = self.session.get(PayoutStatementRecord, statement_id)
        return self._to_statement(row) if row is not None else None

    def get_statement_for_epoch(self, epoch_id: int) -> PayoutStatement | None:
        successor = aliased(PayoutStatementRecord)
        row = self.session.execute(
            select(PayoutStatementRecord)
            .where(
                PayoutStatementRecord.epoch_id == epoch_id,
                ~exists().where(
                    successor.supersedes_statement_id == PayoutStatementRecord.id
                ),
            )
            .order_by(PayoutStatementRecord.created_at.desc())
        ).scalars().first()
        return self._to_statement(row) if row is not None else None

    def list_statements_for_epoch(self, epoch_id: int) -> list[PayoutStatement]:
        rows = self._all(
            select(PayoutStatementRecord).where(
                PayoutStatementRecord.epoch_id == epoch_id
            )
        )

        by_predecessor = {r.supersedes_statement_id: r for r in rows}
        chain: list[PayoutStatement] = []
        current = by_predecessor.get(None)
        while current is not None:
            chain.append(self._to_statement(current))
            current = by_predecessor.get(current.id)
        return chain

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def insert_signature(self, params: InsertSignatureParams) -> StatementSignature:
        self._get_statement_row(params.statement_id)

        row = StatementSignatureRecord(
            statement_id=params.statement_id,
            signer_wallet=normalize_address(params.signer_wallet),
            signature=params.signature,
            signed_at=params.signed_at,
        )
        self._persist(row)
        return self._to_signature(row)

    def get_signatures_for_statement(
        self, statement_id: UUID
    ) -> list[StatementSignature]:
        rows = self._all(
            select(StatementSignatureRecord)
            .where(StatementSignatureRecord.statement_id == statement_id)
            .order_by(StatementSignatureRecord.signed_at, StatementSignatureRecord.signer_wallet)
        )
        return [self._to_signature(r) for r in rows]

    # ------------------------------------------------------------------
    # Issuers
    # ------------------------------------------------------------------

    def insert_issuer(self, params: InsertIssuerParams) -> LedgerIssuer:
        roles = {ReceiptRole(r) for r in params.roles}
        row = LedgerIssuerRecord(
            address=normalize_address(params.address),
            user_id=params.user_id,
            can_author=ReceiptRole.AUTHOR in roles,
            can_review=ReceiptRole.REVIEWER in roles,
            can_approve=ReceiptRole.APPROVER in roles,
            added_by=params.added_by,
            created_at=self._clock.now(),
        )
        self._persist(row)

        logger.info(
            "issuer_added",
            extra={"address": row.address, "roles": roles, "added_by": params.added_by},
        )
        return self._to_issuer(row)

    def get_issuer(self, address: str) -> LedgerIssuer | None:
        row = self.session.get(LedgerIssuerRecord, normalize_address(address))
        return self._to_issuer(row) if row is not None else None
