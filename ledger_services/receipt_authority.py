"""
ledger_services.receipt_authority -- Issuer roles and receipt signatures.

Responsibility:
    Check that a signer holds the role a receipt action requires, and that
    a receipt signature recovers to its claimed signer over the canonical
    receipt message.

Architecture position:
    Services layer.  Reads the issuer allowlist through the Store Port.
    Signature recovery is injected (``recover``); this module holds no
    keys and links no crypto library.

Invariants:
    - Action -> role is fixed: propose -> author, review -> reviewer,
      approve -> approver.
    - Addresses compare case-insensitively.
    - The verified message is rebuilt from fields, never taken from the
      caller, so a signature over any other text cannot pass.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from ledger_engines.signing import build_receipt_message, hash_receipt_message
from ledger_kernel.domain.model import (
    LedgerIssuer,
    ReceiptMessageFields,
    ReceiptRole,
    SigningContext,
    normalize_address,
)
from ledger_kernel.exceptions import (
    IssuerNotAuthorizedError,
    ReceiptSignatureInvalidError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.store import LedgerStore

logger = get_logger("services.receipt_authority")

# (message, signature) -> recovered signer address
RecoverFn = Callable[[str, str], str]


class ReceiptAction(str, Enum):
    PROPOSE = "propose"
    REVIEW = "review"
    APPROVE = "approve"


ACTION_REQUIRED_ROLE: dict[ReceiptAction, ReceiptRole] = {
    ReceiptAction.PROPOSE: ReceiptRole.AUTHOR,
    ReceiptAction.REVIEW: ReceiptRole.REVIEWER,
    ReceiptAction.APPROVE: ReceiptRole.APPROVER,
}


def get_required_role(action: ReceiptAction | str) -> ReceiptRole:
    """Role an issuer must hold to perform ``action``."""
    return ACTION_REQUIRED_ROLE[ReceiptAction(action)]


class ReceiptAuthority:
    """Role and signature checks for receipt actions."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def check_issuer_role(
        self,
        address: str,
        action: ReceiptAction | str,
    ) -> tuple[bool, str]:
        """
        Returns:
            (allowed, reason).  ``reason`` is empty when allowed, or a short
            message when denied.
        """
        role = get_required_role(action)
        issuer = self._store.get_issuer(address)
        if issuer is None:
            return (False, f"{normalize_address(address)} is not a registered issuer")
        if not issuer.has_role(role):
            return (False, f"issuer {issuer.address} lacks role '{role.value}'")
        return (True, "")

    def require_role(
        self,
        address: str,
        action: ReceiptAction | str,
    ) -> LedgerIssuer:
        """
        Return the issuer if it may perform ``action``.

        Raises:
            IssuerNotAuthorizedError: If the address is unknown or lacks the
                required role.
        """
        role = get_required_role(action)
        allowed, reason = self.check_issuer_role(address, action)
        if not allowed:
            logger.warning(
                "issuer_not_authorized",
                extra={
                    "address": normalize_address(address),
                    "required_role": role.value,
                    "reason": reason,
                },
            )
            raise IssuerNotAuthorizedError(normalize_address(address), role.value)
        return self._store.get_issuer(address)

    def verify_receipt(
        self,
        receipt_id: str,
        context: SigningContext,
        fields: ReceiptMessageFields,
        signature: str,
        signer_address: str,
        recover: RecoverFn,
    ) -> str:
        """
        Verify that ``signature`` was made by ``signer_address``.

        Returns:
            The SHA-256 hash of the canonical message that was verified.

        Raises:
            ReceiptSignatureInvalidError: If recovery fails or recovers a
                different address.
        """
        message = build_receipt_message(context, fields)
        try:
            recovered = recover(message, signature)
        except Exception as exc:
            self._reject(receipt_id, f"signature recovery failed: {exc}")
            raise ReceiptSignatureInvalidError(
                receipt_id, f"signature recovery failed: {exc}"
            ) from exc

        if normalize_address(recovered) != normalize_address(signer_address):
            reason = "recovered address does not match signer"
            self._reject(receipt_id, reason)
            raise ReceiptSignatureInvalidError(receipt_id, reason)

        return hash_receipt_message(message)

    def authorize_receipt(
        self,
        receipt_id: str,
        action: ReceiptAction | str,
        context: SigningContext,
        fields: ReceiptMessageFields,
        signature: str,
        signer_address: str,
        recover: RecoverFn,
    ) -> LedgerIssuer:
        """Verify the signature, then require the signer's role for ``action``."""
        self.verify_receipt(receipt_id, context, fields, signature, signer_address, recover)
        issuer = self.require_role(signer_address, action)
        logger.info(
            "receipt_authorized",
            extra={
                "receipt_id": receipt_id,
                "action": ReceiptAction(action).value,
                "address": issuer.address,
            },
        )
        return issuer

    @staticmethod
    def _reject(receipt_id: str, reason: str) -> None:
        logger.warning(
            "receipt_signature_rejected",
            extra={"receipt_id": receipt_id, "reason": reason},
        )
