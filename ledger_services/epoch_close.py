"""
ledger_services.epoch_close -- Epoch close, statement chain and signatures.

Responsibility:
    Run the close sequence for one epoch (lock, check, compute, persist,
    close), make retried closes safe, verify statements against receipts,
    append corrections to an epoch's statement chain and record wallet
    signatures over statements.

Architecture position:
    Services -- orchestration over the Store Port and the pure engines.

Invariants enforced:
    - At most one close per epoch: the sequence runs under the epoch row
      lock (``get_epoch_for_update``), and the statement is inserted
      before the epoch is marked closed, inside the caller's transaction.
    - Every required pool component is recorded before a close proceeds.
    - A statement is never mutated; a correction is a new statement that
      supersedes the chain head.
    - Retried closes recompute from the same allocations; a mismatch with
      the stored statement is surfaced, never overwritten.

Failure modes:
    - EpochNotFoundError: unknown epoch id.
    - EpochAlreadyClosedError: close of a closed epoch
      (``close_epoch_idempotent`` resolves the benign case).
    - PoolComponentMissingError: a required component is not recorded.
    - StatementHashMismatchError: retried close disagrees with the record.
    - EpochNotClosedError: supersede or sign against an open epoch.
    - StatementNotFoundError: no statement to supersede or sign.

Audit relevance:
    The close emits ``epoch_close_completed`` with the statement id,
    allocation-set hash, pool total and amount paid.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from ledger_config import LedgerConfig
from ledger_engines.allocations import finalize_allocations
from ledger_engines.hashing import compute_allocation_set_hash
from ledger_engines.payouts import compute_payouts
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.lifecycle import (
    require_closable,
    require_closed,
    require_pool_components,
)
from ledger_kernel.domain.model import (
    ApprovedReceipt,
    Epoch,
    PayoutStatement,
    StatementSignature,
    require_int,
)
from ledger_kernel.exceptions import (
    EpochAlreadyClosedError,
    EpochNotClosedError,
    EpochNotFoundError,
    PoolComponentMissingError,
    StatementHashMismatchError,
    StatementNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.store import (
    InsertPayoutStatementParams,
    InsertSignatureParams,
    LedgerStore,
)

logger = get_logger("services.epoch_close")


@dataclass(frozen=True)
class EpochCloseResult:
    """Outcome of a close.  ``already_closed`` marks an idempotent replay."""

    epoch: Epoch
    statement: PayoutStatement
    already_closed: bool = False


class EpochCloseOrchestrator:
    """
    Closes epochs and maintains their payout statement chains.

    Contract:
        Receives the store, the required pool-component ids and a clock by
        constructor injection.  All writes flush through the store within
        the caller's transaction.
    """

    def __init__(
        self,
        store: LedgerStore,
        required_components: Iterable[str] = (),
        clock: Clock | None = None,
    ):
        self._store = store
        self._required_components = tuple(required_components)
        self._clock = clock or SystemClock()

    @classmethod
    def from_config(
        cls,
        store: LedgerStore,
        config: LedgerConfig,
        clock: Clock | None = None,
    ) -> EpochCloseOrchestrator:
        return cls(store, config.required_pool_components, clock)

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def close_epoch(
        self,
        epoch_id: int,
        pool_total_credits: int | None = None,
    ) -> EpochCloseResult:
        """
        Close an open epoch and persist its payout statement.

        Sequence: lock epoch row -> require open -> require pool
        components -> resolve pool total -> finalize allocations ->
        compute payouts + allocation-set hash -> insert statement ->
        mark epoch closed.

        Args:
            epoch_id: Epoch to close.
            pool_total_credits: Pool to distribute.  Defaults to the sum of
                the recorded pool components.

        Raises:
            EpochNotFoundError, EpochAlreadyClosedError,
            PoolComponentMissingError.
        """
        with LogContext.bind(epoch_id=epoch_id):
            epoch = self._store.get_epoch_for_update(epoch_id)
            if epoch is None:
                raise EpochNotFoundError(epoch_id)

            try:
                require_closable(epoch)
                components = self._store.get_pool_components_for_epoch(epoch_id)
                require_pool_components(
                    epoch_id,
                    self._required_components,
                    (c.component_id for c in components),
                )
            except (EpochAlreadyClosedError, PoolComponentMissingError) as exc:
                logger.warning(
                    "epoch_close_rejected",
                    extra={"error_code": exc.code, "retryable": exc.retryable},
                )
                raise

            if pool_total_credits is None:
                pool_total_credits = sum(c.amount_credits for c in components)
            require_int("pool_total_credits", pool_total_credits)

            receipts = finalize_allocations(self._store.get_allocations_for_epoch(epoch_id))
            payouts = compute_payouts(receipts, pool_total_credits)
            allocation_set_hash = compute_allocation_set_hash(receipts)

            # A statement left on an open epoch by an earlier attempt stays
            # in the chain; the new one supersedes it
            prior = self._store.get_statement_for_epoch(epoch_id)

            statement = self._store.insert_payout_statement(
                InsertPayoutStatementParams(
                    epoch_id=epoch_id,
                    allocation_set_hash=allocation_set_hash,
                    pool_total_credits=pool_total_credits,
                    payouts=payouts,
                    supersedes_statement_id=prior.id if prior is not None else None,
                )
            )
            closed = self._store.close_epoch(epoch_id, pool_total_credits, statement.id)

            logger.info(
                "epoch_close_completed",
                extra={
                    "statement_id": statement.id,
                    "allocation_set_hash": allocation_set_hash,
                    "pool_total_credits": str(pool_total_credits),
                    "total_paid": str(statement.total_paid),
                    "payee_count": len(payouts),
                    "component_count": len(components),
                },
            )
            return EpochCloseResult(epoch=closed, statement=statement)

    def close_epoch_idempotent(
        self,
        epoch_id: int,
        pool_total_credits: int | None = None,
    ) -> EpochCloseResult:
        """
        Close, treating a replay against a closed epoch as success.

        When the epoch is already closed, the allocations are re-finalized
        and hashed; if that matches the statement the close produced
        (``epoch.closing_statement_id``, wherever it sits in the chain),
        that statement is returned with ``already_closed=True``.

        Raises:
            StatementHashMismatchError: If the recomputation (or an explicit
                ``pool_total_credits``) disagrees with the stored statement.
            StatementNotFoundError: If the closed epoch records no closing
                statement.
        """
        try:
            return self.close_epoch(epoch_id, pool_total_credits)
        except EpochAlreadyClosedError:
            pass

        with LogContext.bind(epoch_id=epoch_id):
            epoch = self._store.get_epoch(epoch_id)
            original = None
            if epoch is not None and epoch.closing_statement_id is not None:
                original = self._store.get_statement(epoch.closing_statement_id)
            if original is None:
                raise StatementNotFoundError(f"epoch {epoch_id}")

            receipts = finalize_allocations(self._store.get_allocations_for_epoch(epoch_id))
            computed_hash = compute_allocation_set_hash(receipts)
            pool_differs = (
                pool_total_credits is not None
                and pool_total_credits != original.pool_total_credits
            )
            if computed_hash != original.allocation_set_hash or pool_differs:
                logger.warning(
                    "epoch_close_replay_mismatch",
                    extra={
                        "statement_id": original.id,
                        "stored_hash": original.allocation_set_hash,
                        "computed_hash": computed_hash,
                        "pool_differs": pool_differs,
                    },
                )
                raise StatementHashMismatchError(
                    epoch_id, original.allocation_set_hash, computed_hash
                )

            logger.info(
                "epoch_close_replayed",
                extra={"statement_id": original.id},
            )
            return EpochCloseResult(epoch=epoch, statement=original, already_closed=True)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_statement(
        self,
        statement: PayoutStatement,
        receipts: Iterable[ApprovedReceipt],
    ) -> bool:
        """
        Recompute hash and payouts from ``receipts`` and compare.

        Returns:
            True iff both the allocation-set hash and every line item match.
        """
        receipts = list(receipts)
        computed_hash = compute_allocation_set_hash(receipts)
        computed_payouts = tuple(compute_payouts(receipts, statement.pool_total_credits))

        hash_ok = computed_hash == statement.allocation_set_hash
        payouts_ok = computed_payouts == statement.payouts
        if not (hash_ok and payouts_ok):
            logger.warning(
                "statement_verification_failed",
                extra={
                    "statement_id": statement.id,
                    "epoch_id": str(statement.epoch_id),
                    "hash_ok": hash_ok,
                    "payouts_ok": payouts_ok,
                },
            )
        return hash_ok and payouts_ok

    # ------------------------------------------------------------------
    # Corrections and signatures
    # ------------------------------------------------------------------

    def _require_closed_epoch(self, epoch: Epoch | None, epoch_id: int) -> Epoch:
        if epoch is None:
            raise EpochNotFoundError(epoch_id)
        try:
            require_closed(epoch)
        except EpochNotClosedError:
            logger.warning("statement_write_rejected", extra={"reason": "epoch_not_closed"})
            raise
        return epoch

    def supersede_statement(
        self,
        epoch_id: int,
        receipts: Iterable[ApprovedReceipt],
        pool_total_credits: int,
        reason: str | None = None,
    ) -> PayoutStatement:
        """
        Append a corrected statement to a closed epoch's chain.

        The prior head is left untouched; the new statement points at it.
        The epoch's own pool total and close timestamp do not change.
        """
        require_int("pool_total_credits", pool_total_credits)
        with LogContext.bind(epoch_id=epoch_id):
            self._require_closed_epoch(self._store.get_epoch_for_update(epoch_id), epoch_id)

            head = self._store.get_statement_for_epoch(epoch_id)
            if head is None:
                raise StatementNotFoundError(f"epoch {epoch_id}")

            receipts = list(receipts)
            statement = self._store.insert_payout_statement(
                InsertPayoutStatementParams(
                    epoch_id=epoch_id,
                    allocation_set_hash=compute_allocation_set_hash(receipts),
                    pool_total_credits=pool_total_credits,
                    payouts=compute_payouts(receipts, pool_total_credits),
                    supersedes_statement_id=head.id,
                )
            )
            logger.info(
                "payout_statement_superseded",
                extra={
                    "statement_id": statement.id,
                    "supersedes_statement_id": head.id,
                    "reason": reason,
                },
            )
            return statement

    def sign_statement(
        self,
        statement_id: UUID,
        signer_wallet: str,
        signature: str,
    ) -> StatementSignature:
        """Record a wallet signature over a statement of a closed epoch."""
        statement = self._store.get_statement(statement_id)
        if statement is None:
            raise StatementNotFoundError(str(statement_id))

        with LogContext.bind(epoch_id=statement.epoch_id, statement_id=statement_id):
            self._require_closed_epoch(
                self._store.get_epoch(statement.epoch_id), statement.epoch_id
            )
            recorded = self._store.insert_signature(
                InsertSignatureParams(
                    statement_id=statement_id,
                    signer_wallet=signer_wallet,
                    signature=signature,
                    signed_at=self._clock.now(),
                )
            )
            logger.info(
                "statement_signed",
                extra={"signer_wallet": recorded.signer_wallet},
            )
            return recorded
