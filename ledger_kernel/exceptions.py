"""
Typed Exception Hierarchy for the Epoch Ledger.

===============================================================================
TWO FAMILIES
===============================================================================

1. EpochLedgerError -- the CLOSED lifecycle taxonomy.

   Exactly five variants exist.  Each carries a stable ``code``, an
   ``ErrorKind`` discriminant, a ``retryable`` flag and its structured
   context as attributes.  The family cannot be extended: defining a
   subclass outside this module raises ``TypeError`` at class-creation
   time, so ``match`` statements over ``LedgerErrorVariant`` stay
   exhaustive.

    EpochLedgerError (base, closed)
    |
    +-- EpochNotOpenError              EPOCH_NOT_OPEN
    +-- EpochAlreadyClosedError        EPOCH_ALREADY_CLOSED
    +-- PoolComponentMissingError      POOL_COMPONENT_MISSING
    +-- IssuerNotAuthorizedError       ISSUER_NOT_AUTHORIZED
    +-- ReceiptSignatureInvalidError   RECEIPT_SIGNATURE_INVALID

2. LedgerStoreError -- lookup and integrity failures at the Store Port.

    LedgerStoreError (base, open)
    |
    +-- EpochNotFoundError
    +-- AllocationNotFoundError
    +-- StatementNotFoundError
    +-- EpochNotClosedError
    +-- DuplicateEpochError
    +-- StatementHashMismatchError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                        | When Raised                                | Retry
----------------------------|--------------------------------------------|------
EPOCH_NOT_OPEN              | Write against a closed epoch               | no
EPOCH_ALREADY_CLOSED        | Close attempted on a closed epoch          | no (*)
POOL_COMPONENT_MISSING      | Close before a required component exists   | yes
ISSUER_NOT_AUTHORIZED       | Signer lacks the role for a receipt action | no
RECEIPT_SIGNATURE_INVALID   | Signature does not match canonical message | no
----------------------------|--------------------------------------------|------
EPOCH_NOT_FOUND             | Epoch id does not exist                    | no
ALLOCATION_NOT_FOUND        | No allocation row for (epoch, user)        | no
STATEMENT_NOT_FOUND         | No payout statement for id / epoch         | no
EPOCH_NOT_CLOSED            | Operation needs a closed epoch             | no
DUPLICATE_EPOCH             | Second open epoch / same window in scope   | no
STATEMENT_HASH_MISMATCH     | Retried close disagrees with stored record | no

(*) Callers treat EPOCH_ALREADY_CLOSED as success when the persisted
    statement matches a recomputation (see EpochCloseOrchestrator).

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        orchestrator.close_epoch(epoch_id)
    except PoolComponentMissingError as e:
        request_component(e.epoch_id, e.component_id)

    match err:
        case EpochNotOpenError(epoch_id=eid):
            ...
        case PoolComponentMissingError(epoch_id=eid, component_id=cid):
            ...
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminant for the closed lifecycle error family."""

    EPOCH_NOT_OPEN = "EPOCH_NOT_OPEN"
    EPOCH_ALREADY_CLOSED = "EPOCH_ALREADY_CLOSED"
    POOL_COMPONENT_MISSING = "POOL_COMPONENT_MISSING"
    ISSUER_NOT_AUTHORIZED = "ISSUER_NOT_AUTHORIZED"
    RECEIPT_SIGNATURE_INVALID = "RECEIPT_SIGNATURE_INVALID"


class EpochLedgerError(Exception):
    """
    Base of the closed lifecycle error family.

    Contract:
        Every variant defines ``kind`` (an ``ErrorKind``), ``code`` (its
        string value) and ``retryable``.  Variants are declared only in
        this module.
    """

    kind: ErrorKind
    code: str = "EPOCH_LEDGER_ERROR"
    retryable: bool = False

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.__module__ != __name__:
            raise TypeError(
                f"{cls.__qualname__} cannot extend the closed EpochLedgerError "
                f"family; add a new ErrorKind in {__name__} instead"
            )


class EpochNotOpenError(EpochLedgerError):
    """A write that requires an open epoch targeted a closed one."""

    kind = ErrorKind.EPOCH_NOT_OPEN
    code: str = ErrorKind.EPOCH_NOT_OPEN.value
    __match_args__ = ("epoch_id",)

    def __init__(self, epoch_id: int):
        self.epoch_id = epoch_id
        super().__init__(f"Epoch {epoch_id} is not open")


class EpochAlreadyClosedError(EpochLedgerError):
    """Close attempted on an epoch that is already closed."""

    kind = ErrorKind.EPOCH_ALREADY_CLOSED
    code: str = ErrorKind.EPOCH_ALREADY_CLOSED.value
    __match_args__ = ("epoch_id",)

    def __init__(self, epoch_id: int):
        self.epoch_id = epoch_id
        super().__init__(f"Epoch {epoch_id} is already closed")


class PoolComponentMissingError(EpochLedgerError):
    """
    A configured pool component has not been recorded for the epoch.

    Retryable once the caller supplies the missing component.
    """

    kind = ErrorKind.POOL_COMPONENT_MISSING
    code: str = ErrorKind.POOL_COMPONENT_MISSING.value
    retryable: bool = True
    __match_args__ = ("epoch_id", "component_id")

    def __init__(self, epoch_id: int, component_id: str):
        self.epoch_id = epoch_id
        self.component_id = component_id
        super().__init__(
            f"Epoch {epoch_id} cannot close: pool component "
            f"'{component_id}' is missing"
        )


class IssuerNotAuthorizedError(EpochLedgerError):
    """The signer does not hold the role the receipt action requires."""

    kind = ErrorKind.ISSUER_NOT_AUTHORIZED
    code: str = ErrorKind.ISSUER_NOT_AUTHORIZED.value
    __match_args__ = ("address", "required_role")

    def __init__(self, address: str, required_role: str):
        self.address = address
        self.required_role = required_role
        super().__init__(
            f"Issuer {address} lacks required role '{required_role}'"
        )


class ReceiptSignatureInvalidError(EpochLedgerError):
    """The receipt signature does not verify against its canonical message."""

    kind = ErrorKind.RECEIPT_SIGNATURE_INVALID
    code: str = ErrorKind.RECEIPT_SIGNATURE_INVALID.value
    __match_args__ = ("receipt_id", "reason")

    def __init__(self, receipt_id: str, reason: str):
        self.receipt_id = receipt_id
        self.reason = reason
        super().__init__(f"Invalid signature on receipt {receipt_id}: {reason}")


LedgerErrorVariant = (
    EpochNotOpenError
    | EpochAlreadyClosedError
    | PoolComponentMissingError
    | IssuerNotAuthorizedError
    | ReceiptSignatureInvalidError
)

LEDGER_ERROR_VARIANTS: tuple[type[EpochLedgerError], ...] = (
    EpochNotOpenError,
    EpochAlreadyClosedError,
    PoolComponentMissingError,
    IssuerNotAuthorizedError,
    ReceiptSignatureInvalidError,
)


# Store Port errors


class LedgerStoreError(Exception):
    """Base exception for Store Port lookup and integrity failures."""

    code: str = "LEDGER_STORE_ERROR"


class EpochNotFoundError(LedgerStoreError):
    """Epoch with the given id does not exist."""

    code: str = "EPOCH_NOT_FOUND"

    def __init__(self, epoch_id: int):
        self.epoch_id = epoch_id
        super().__init__(f"Epoch not found: {epoch_id}")


class AllocationNotFoundError(LedgerStoreError):
    """No allocation row exists for the (epoch, user) pair."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, epoch_id: int, user_id: str):
        self.epoch_id = epoch_id
        self.user_id = user_id
        super().__init__(f"Allocation not found for user {user_id} in epoch {epoch_id}")


class StatementNotFoundError(LedgerStoreError):
    """No payout statement matches the lookup."""

    code: str = "STATEMENT_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Payout statement not found: {reference}")


class EpochNotClosedError(LedgerStoreError):
    """The operation requires a closed epoch but the epoch is still open."""

    code: str = "EPOCH_NOT_CLOSED"

    def __init__(self, epoch_id: int):
        self.epoch_id = epoch_id
        super().__init__(f"Epoch {epoch_id} is still open")


class DuplicateEpochError(LedgerStoreError):
    """
    Epoch creation conflicts with an existing epoch.

    Raised when the scope already has an open epoch, or an epoch with the
    same window exists.
    """

    code: str = "DUPLICATE_EPOCH"

    def __init__(self, scope_id: str, reason: str):
        self.scope_id = scope_id
        self.reason = reason
        super().__init__(f"Cannot create epoch in scope {scope_id}: {reason}")


class StatementHashMismatchError(LedgerStoreError):
    """
    A persisted statement disagrees with a recomputation from the same epoch.

    Seen on retried closes; the stored statement is left untouched.
    """

    code: str = "STATEMENT_HASH_MISMATCH"

    def __init__(self, epoch_id: int, stored_hash: str, computed_hash: str):
        self.epoch_id = epoch_id
        self.stored_hash = stored_hash
        self.computed_hash = computed_hash
        super().__init__(
            f"Statement for epoch {epoch_id} does not match recomputation: "
            f"stored {stored_hash[:16]}..., computed {computed_hash[:16]}..."
        )
