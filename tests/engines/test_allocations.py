"""
Tests for the allocation engine.

Covers:
- Curated events sum into per-user units
- Excluded, unresolved and uncurated events contribute nothing
- Weight overrides and unknown event types
- Finalization applies approver overrides
"""

from datetime import datetime, timezone

from ledger_engines.allocations import (
    ProposedAllocation,
    compute_proposed_allocations,
    event_units,
    finalize_allocations,
)
from ledger_kernel.domain.model import (
    ActivityEvent,
    Allocation,
    ApprovedReceipt,
    Curation,
)

WEIGHTS = {"pr_merged": 1000, "review_submitted": 500}
T0 = datetime(2026, 1, 2, tzinfo=timezone.utc)


def _event(event_id: str, event_type: str = "pr_merged") -> ActivityEvent:
    return ActivityEvent(
        id=event_id,
        scope_id="s",
        source="github",
        event_type=event_type,
        platform_user_id="gh-" + event_id,
        payload_hash="0" * 64,
        producer="collector",
        producer_version="1",
        event_time=T0,
        retrieved_at=T0,
    )


def _curation(event_id: str, user_id: str | None, **kwargs) -> Curation:
    return Curation(epoch_id=1, event_id=event_id, user_id=user_id, **kwargs)


class TestComputeProposedAllocations:

    def test_sums_weights_per_user(self):
        events = [_event("e1"), _event("e2", "review_submitted"), _event("e3")]
        curations = [
            _curation("e1", "alice"),
            _curation("e2", "alice"),
            _curation("e3", "bob"),
        ]

        result = compute_proposed_allocations(events, curations, WEIGHTS)

        assert result == [
            ProposedAllocation(user_id="alice", proposed_units=1500, activity_count=2),
            ProposedAllocation(user_id="bob", proposed_units=1000, activity_count=1),
        ]

    def test_uncurated_event_ignored(self):
        result = compute_proposed_allocations([_event("e1")], [], WEIGHTS)

        assert result == []

    def test_excluded_event_ignored(self):
        result = compute_proposed_allocations(
            [_event("e1")], [_curation("e1", "alice", included=False)], WEIGHTS
        )

        assert result == []

    def test_unresolved_identity_ignored(self):
        result = compute_proposed_allocations(
            [_event("e1")], [_curation("e1", None)], WEIGHTS
        )

        assert result == []

    def test_weight_override_takes_precedence(self):
        result = compute_proposed_allocations(
            [_event("e1")], [_curation("e1", "alice", weight_override_milli=42)], WEIGHTS
        )

        assert result[0].proposed_units == 42

    def test_zero_override_counts_activity(self):
        result = compute_proposed_allocations(
            [_event("e1")], [_curation("e1", "alice", weight_override_milli=0)], WEIGHTS
        )

        assert result == [ProposedAllocation("alice", 0, 1)]

    def test_unknown_event_type_weighs_zero(self):
        result = compute_proposed_allocations(
            [_event("e1", "mystery")], [_curation("e1", "alice")], WEIGHTS
        )

        assert result == [ProposedAllocation("alice", 0, 1)]

    def test_curation_for_event_outside_window_ignored(self):
        # Curation exists but the event was not passed in
        result = compute_proposed_allocations(
            [_event("e1")],
            [_curation("e1", "alice"), _curation("e9", "bob")],
            WEIGHTS,
        )

        assert [p.user_id for p in result] == ["alice"]

    def test_output_sorted_by_user_id(self):
        events = [_event("e1"), _event("e2"), _event("e3")]
        curations = [
            _curation("e1", "zoe"),
            _curation("e2", "adam"),
            _curation("e3", "mia"),
        ]

        result = compute_proposed_allocations(events, curations, WEIGHTS)

        assert [p.user_id for p in result] == ["adam", "mia", "zoe"]


class TestEventUnits:

    def test_default_weight(self):
        assert event_units(_event("e1"), _curation("e1", "a"), WEIGHTS) == 1000

    def test_override(self):
        curation = _curation("e1", "a", weight_override_milli=7)
        assert event_units(_event("e1"), curation, WEIGHTS) == 7


class TestFinalizeAllocations:

    def test_proposed_units_used_without_override(self):
        allocations = [Allocation(epoch_id=1, user_id="a", proposed_units=10, activity_count=1)]

        assert finalize_allocations(allocations) == [ApprovedReceipt("a", 10)]

    def test_final_units_override_applied(self):
        allocations = [
            Allocation(epoch_id=1, user_id="a", proposed_units=10, activity_count=1, final_units=3),
        ]

        assert finalize_allocations(allocations) == [ApprovedReceipt("a", 3)]

    def test_zero_override_is_not_ignored(self):
        allocations = [
            Allocation(epoch_id=1, user_id="a", proposed_units=10, activity_count=1, final_units=0),
        ]

        assert finalize_allocations(allocations) == [ApprovedReceipt("a", 0)]

    def test_sorted_by_user_id(self):
        allocations = [
            Allocation(epoch_id=1, user_id="b", proposed_units=1, activity_count=1),
            Allocation(epoch_id=1, user_id="a", proposed_units=2, activity_count=1),
        ]

        assert [r.user_id for r in finalize_allocations(allocations)] == ["a", "b"]

    def test_empty(self):
        assert finalize_allocations([]) == []
