"""
Receipt signing message builder.

Builds the canonical, domain-bound message an external wallet signs when a
receipt is proposed, reviewed or approved:

    {app_domain}:{spec_version}:{chain_id}
    epoch:{epoch_id}
    receipt:{user_id}:{work_item_id}:{role}
    units:{valuation_units}
    artifact:{artifact_ref}
    rationale:{rationale_ref}

Lines are joined with a single newline and there is no trailing newline.
The first line binds the signature to one deployment, so a signature from
staging never verifies in production.  The format is a cross-system
contract; changing it requires a new ``spec_version``.

This module never holds keys and never verifies signatures.
"""

from __future__ import annotations

import dataclasses
import hashlib

from ledger_kernel.domain.model import ReceiptMessageFields, SigningContext

_LINE_BREAKS = ("\n", "\r")


def _reject_line_breaks(owner: object) -> None:
    for f in dataclasses.fields(owner):
        value = getattr(owner, f.name)
        if any(ch in value for ch in _LINE_BREAKS):
            raise ValueError(
                f"{type(owner).__name__}.{f.name} must not contain line breaks"
            )


def build_receipt_message(
    context: SigningContext,
    fields: ReceiptMessageFields,
) -> str:
    """
    Render the six-line canonical receipt message.

    Raises:
        ValueError: If any field contains a line break, which would let a
            caller forge additional message lines.
    """
    _reject_line_breaks(context)
    _reject_line_breaks(fields)

    return "\n".join(
        (
            f"{context.app_domain}:{context.spec_version}:{context.chain_id}",
            f"epoch:{fields.epoch_id}",
            f"receipt:{fields.user_id}:{fields.work_item_id}:{fields.role}",
            f"units:{fields.valuation_units}",
            f"artifact:{fields.artifact_ref}",
            f"rationale:{fields.rationale_ref}",
        )
    )


def hash_receipt_message(message: str) -> str:
    """SHA-256 of the UTF-8 message bytes, lowercase hex."""
    return hashlib.sha256(message.encode("utf-8")).hexdigest()
