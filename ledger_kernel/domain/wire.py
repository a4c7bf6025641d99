"""
Wire format for epochs and payouts.

Every integer credit/unit field (``pool_total_credits``, ``total_units``,
``amount_credits``, ``valuation_units``) crosses the wire as a decimal
string so float-based transports cannot lose precision.  Timestamps are
ISO-8601 strings.  ``share`` is already a string.

The payout shape (snake_case keys, all strings) is also what the store
persists in ``payout_statements.payouts_json``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ledger_kernel.domain.model import (
    Epoch,
    PayoutLineItem,
    PayoutStatement,
    require_int,
)

_UNITS_RE = re.compile(r"^(0|[1-9][0-9]*)$")
_SHARE_RE = re.compile(r"^[0-9]+\.[0-9]{6}$")


def format_units(value: int) -> str:
    """Render a non-negative integer as a plain decimal string."""
    return str(require_int("value", value))


def parse_units(text: str) -> int:
    """
    Parse a wire decimal string back to ``int``.

    Accepts only ``0`` or digits without a leading zero: no sign, no
    separators, no whitespace, no exponent.

    Raises:
        ValueError: if ``text`` is not a canonical decimal string.
    """
    if not isinstance(text, str) or not _UNITS_RE.fullmatch(text):
        raise ValueError(f"Not a canonical decimal integer string: {text!r}")
    return int(text)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def payout_to_wire(item: PayoutLineItem) -> dict[str, str]:
    return {
        "user_id": item.user_id,
        "total_units": format_units(item.total_units),
        "share": item.share,
        "amount_credits": format_units(item.amount_credits),
    }


def payout_from_wire(data: Mapping[str, Any]) -> PayoutLineItem:
    """Parse one wire payout; raises KeyError / ValueError on bad input."""
    share = data["share"]
    if not isinstance(share, str) or not _SHARE_RE.fullmatch(share):
        raise ValueError(f"Malformed share string: {share!r}")
    return PayoutLineItem(
        user_id=data["user_id"],
        total_units=parse_units(data["total_units"]),
        share=share,
        amount_credits=parse_units(data["amount_credits"]),
    )


def epoch_to_wire(epoch: Epoch) -> dict[str, Any]:
    return {
        "id": str(epoch.id),
        "scope_id": epoch.scope_id,
        "status": epoch.status.value,
        "period_start": _iso(epoch.period_start),
        "period_end": _iso(epoch.period_end),
        "weight_config": {k: format_units(v) for k, v in sorted(epoch.weight_config.items())},
        "pool_total_credits": (
            format_units(epoch.pool_total_credits)
            if epoch.pool_total_credits is not None
            else None
        ),
        "opened_at": _iso(epoch.opened_at),
        "closed_at": _iso(epoch.closed_at),
        "closing_statement_id": (
            str(epoch.closing_statement_id)
            if epoch.closing_statement_id is not None
            else None
        ),
    }


def statement_to_wire(statement: PayoutStatement) -> dict[str, Any]:
    return {
        "id": str(statement.id),
        "epoch_id": str(statement.epoch_id),
        "allocation_set_hash": statement.allocation_set_hash,
        "pool_total_credits": format_units(statement.pool_total_credits),
        "payouts": [payout_to_wire(p) for p in statement.payouts],
        "supersedes_statement_id": (
            str(statement.supersedes_statement_id)
            if statement.supersedes_statement_id is not None
            else None
        ),
        "created_at": _iso(statement.created_at),
    }
