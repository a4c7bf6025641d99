"""Tests for the ledger domain types."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from ledger_kernel.domain.model import (
    Allocation,
    ApprovedReceipt,
    Curation,
    Epoch,
    EpochStatus,
    LedgerIssuer,
    PayoutLineItem,
    PayoutStatement,
    PoolComponent,
    ReceiptRole,
    normalize_address,
    require_int,
)

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
END = START + timedelta(days=7)


def _epoch(**overrides) -> Epoch:
    values = dict(
        id=1,
        scope_id="s",
        status=EpochStatus.OPEN,
        period_start=START,
        period_end=END,
        weight_config={"pr_merged": 1000},
        pool_total_credits=None,
        opened_at=START,
    )
    values.update(overrides)
    return Epoch(**values)


class TestRequireInt:

    def test_accepts_int(self):
        assert require_int("x", 5) == 5

    def test_rejects_float(self):
        with pytest.raises(TypeError, match="x must be an int"):
            require_int("x", 1.0)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            require_int("x", True)

    def test_rejects_string(self):
        with pytest.raises(TypeError):
            require_int("x", "5")

    def test_rejects_negative(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            require_int("x", -1)

    def test_negative_allowed_when_asked(self):
        assert require_int("x", -1, allow_negative=True) == -1


class TestEpoch:

    def test_open_epoch(self):
        epoch = _epoch()

        assert epoch.is_open
        assert not epoch.is_closed

    def test_closed_epoch(self):
        epoch = _epoch(status=EpochStatus.CLOSED, closed_at=END, pool_total_credits=100)

        assert epoch.is_closed

    def test_period_must_be_ordered(self):
        with pytest.raises(ValueError, match="period_start must precede"):
            _epoch(period_start=END, period_end=START)

    def test_empty_period_rejected(self):
        with pytest.raises(ValueError):
            _epoch(period_end=START)

    def test_closed_without_closed_at_rejected(self):
        with pytest.raises(ValueError, match="closed_at"):
            _epoch(status=EpochStatus.CLOSED)

    def test_open_with_closed_at_rejected(self):
        with pytest.raises(ValueError, match="closed_at"):
            _epoch(closed_at=END)

    def test_open_with_closing_statement_rejected(self):
        with pytest.raises(ValueError, match="closing statement"):
            _epoch(closing_statement_id=uuid4())

    def test_float_weight_rejected(self):
        with pytest.raises(TypeError):
            _epoch(weight_config={"pr_merged": 1.5})

    def test_weight_config_is_read_only(self):
        epoch = _epoch()

        with pytest.raises(TypeError):
            epoch.weight_config["pr_merged"] = 1

    def test_weight_config_detached_from_source(self):
        source = {"pr_merged": 1000}
        epoch = _epoch(weight_config=source)
        source["pr_merged"] = 1

        assert epoch.weight_config["pr_merged"] == 1000


class TestApprovedReceipt:

    def test_negative_units_rejected(self):
        with pytest.raises(ValueError):
            ApprovedReceipt("a", -1)

    def test_float_units_rejected(self):
        with pytest.raises(TypeError):
            ApprovedReceipt("a", 1.0)

    def test_big_units_accepted(self):
        assert ApprovedReceipt("a", 2**255).valuation_units == 2**255


class TestAllocation:

    def test_effective_units_defaults_to_proposed(self):
        allocation = Allocation(epoch_id=1, user_id="a", proposed_units=10, activity_count=2)

        assert allocation.effective_units == 10
        assert allocation.to_receipt() == ApprovedReceipt("a", 10)

    def test_effective_units_prefers_final(self):
        allocation = Allocation(
            epoch_id=1, user_id="a", proposed_units=10, activity_count=2, final_units=4
        )

        assert allocation.effective_units == 4

    def test_negative_final_units_rejected(self):
        with pytest.raises(ValueError):
            Allocation(epoch_id=1, user_id="a", proposed_units=10, activity_count=1, final_units=-1)


class TestCuration:

    def test_defaults(self):
        curation = Curation(epoch_id=1, event_id="e1")

        assert curation.included
        assert curation.user_id is None
        assert curation.weight_override_milli is None

    def test_negative_override_rejected(self):
        with pytest.raises(ValueError):
            Curation(epoch_id=1, event_id="e1", weight_override_milli=-5)


class TestPoolComponent:

    def test_inputs_frozen(self):
        component = PoolComponent(
            epoch_id=1,
            component_id="base_issuance",
            algorithm_version="v1",
            amount_credits=100,
            computed_at=START,
            inputs={"rate": "1"},
        )

        with pytest.raises(TypeError):
            component.inputs["rate"] = "2"

    def test_float_amount_rejected(self):
        with pytest.raises(TypeError):
            PoolComponent(
                epoch_id=1,
                component_id="c",
                algorithm_version="v1",
                amount_credits=1.5,
                computed_at=START,
            )


class TestPayoutStatement:

    def test_total_paid(self):
        statement = PayoutStatement(
            id=uuid4(),
            epoch_id=1,
            allocation_set_hash="h",
            pool_total_credits=10,
            payouts=(
                PayoutLineItem("a", 1, "0.500000", 5),
                PayoutLineItem("b", 1, "0.500000", 5),
            ),
            created_at=END,
        )

        assert statement.total_paid == 10


class TestLedgerIssuer:

    def test_address_normalized(self):
        issuer = LedgerIssuer(
            address="  0xABCdef  ",
            user_id="u1",
            roles=frozenset({ReceiptRole.AUTHOR}),
            added_by="admin",
        )

        assert issuer.address == "0xabcdef"

    def test_roles_coerced_from_strings(self):
        issuer = LedgerIssuer(
            address="0x1", user_id="u1", roles=frozenset({"approver"}), added_by="admin"
        )

        assert issuer.has_role(ReceiptRole.APPROVER)
        assert not issuer.has_role(ReceiptRole.AUTHOR)

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            LedgerIssuer(address="0x1", user_id="u1", roles=frozenset({"admin"}), added_by="x")

    def test_normalize_address(self):
        assert normalize_address("0xAbC") == "0xabc"
