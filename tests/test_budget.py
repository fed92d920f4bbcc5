"""Tests for the Grail budget tracker."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.dynatrace.budget import (
    BYTES_PER_GB,
    create_grail_budget_tracker,
    format_bytes_as_gb,
    generate_budget_warning,
    get_grail_budget_tracker,
    reset_grail_budget_tracker,
    GrailBudgetTracker,
)


class TestGrailBudgetTracker:
    def test_initial_state(self):
        state = GrailBudgetTracker(5).get_state()

        assert state.total_bytes_scanned == 0
        assert state.budget_limit_bytes == 5 * BYTES_PER_GB
        assert state.budget_limit_gb == 5
        assert state.is_budget_exceeded is False
        assert state.remaining_budget_bytes == 5 * BYTES_PER_GB
        assert state.remaining_budget_gb == 5

    def test_add_bytes_scanned_accumulates(self):
        tracker = GrailBudgetTracker(1)

        tracker.add_bytes_scanned(300_000_000)
        state = tracker.add_bytes_scanned(200_000_000)

        assert state.total_bytes_scanned == 500_000_000
        assert state.remaining_budget_bytes == 500_000_000
        assert state.remaining_budget_gb == 0.5
        assert state.is_budget_exceeded is False

    def test_exceeded_when_total_reaches_limit(self):
        tracker = GrailBudgetTracker(1)

        state = tracker.add_bytes_scanned(BYTES_PER_GB)

        assert state.is_budget_exceeded is True
        assert state.remaining_budget_bytes == 0

    def test_remaining_never_negative(self):
        tracker = GrailBudgetTracker(1)

        state = tracker.add_bytes_scanned(3 * BYTES_PER_GB)

        assert state.total_bytes_scanned == 3 * BYTES_PER_GB
        assert state.remaining_budget_bytes == 0
        assert state.remaining_budget_gb == 0

    def test_zero_bytes_is_valid(self):
        tracker = GrailBudgetTracker(1)

        assert tracker.add_bytes_scanned(0).total_bytes_scanned == 0

    def test_negative_bytes_rejected(self):
        tracker = GrailBudgetTracker(1)

        with pytest.raises(ValueError):
            tracker.add_bytes_scanned(-1)
        assert tracker.total_bytes_scanned == 0

    def test_reset_keeps_limit(self):
        tracker = GrailBudgetTracker(2)
        tracker.add_bytes_scanned(3 * BYTES_PER_GB)

        tracker.reset()
        state = tracker.get_state()

        assert state.total_bytes_scanned == 0
        assert state.is_budget_exceeded is False
        assert state.budget_limit_gb == 2

    def test_fractional_limit(self):
        state = GrailBudgetTracker(0.5).get_state()

        assert state.budget_limit_bytes == 500_000_000

    def test_unlimited_budget(self):
        tracker = GrailBudgetTracker(-1)

        state = tracker.add_bytes_scanned(10**15)

        assert state.is_unlimited
        assert state.is_budget_exceeded is False
        assert state.budget_limit_bytes == -1
        assert state.remaining_budget_bytes == -1
        assert state.remaining_budget_gb == -1
        assert state.total_bytes_scanned == 10**15

    def test_concurrent_adds_are_not_lost(self):
        tracker = GrailBudgetTracker(-1)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: tracker.add_bytes_scanned(1000), range(500)))

        assert tracker.total_bytes_scanned == 500 * 1000


class TestGlobalTracker:
    def test_first_caller_wins(self):
        first = get_grail_budget_tracker(5)
        second = get_grail_budget_tracker(10)

        assert first is second
        assert second.budget_limit_gb == 5

    def test_default_limit(self):
        assert get_grail_budget_tracker().budget_limit_gb == 1000

    def test_state_is_shared(self):
        get_grail_budget_tracker(1).add_bytes_scanned(100)

        assert get_grail_budget_tracker().total_bytes_scanned == 100

    def test_reset_creates_new_tracker(self):
        first = get_grail_budget_tracker(5)
        reset_grail_budget_tracker()

        second = get_grail_budget_tracker(10)

        assert first is not second
        assert second.budget_limit_gb == 10

    def test_created_trackers_are_independent(self):
        shared = get_grail_budget_tracker(1)
        own = create_grail_budget_tracker(1)

        own.add_bytes_scanned(BYTES_PER_GB)

        assert shared.total_bytes_scanned == 0
        assert own.get_state().is_budget_exceeded


class TestFormatBytesAsGb:
    @pytest.mark.parametrize("num_bytes, expected", [
        (0, "0.0000"),
        (50_000_000, "0.0500"),
        (150_000_000, "0.150"),
        (1_500_000_000, "1.50"),
        (15_000_000_000, "15.0"),
    ])
    def test_precision_depends_on_size(self, num_bytes, expected):
        assert format_bytes_as_gb(num_bytes) == expected


class TestGenerateBudgetWarning:
    def test_no_warning_below_threshold(self):
        tracker = GrailBudgetTracker(1)
        state = tracker.add_bytes_scanned(790_000_000)

        assert generate_budget_warning(state, 790_000_000) is None

    def test_approaching_warning_at_80_percent(self):
        tracker = GrailBudgetTracker(1)
        state = tracker.add_bytes_scanned(800_000_000)

        warning = generate_budget_warning(state, 800_000_000)

        assert warning == (
            "⚠️ **Grail Budget Warning:** Session usage: 0.800 GB / 1 GB (80.0%). Remaining: 0.200 GB."
        )

    def test_exceeded_warning(self):
        tracker = GrailBudgetTracker(1)
        tracker.add_bytes_scanned(1_000_000_000)
        state = tracker.add_bytes_scanned(200_000_000)

        warning = generate_budget_warning(state, 200_000_000)

        assert warning == (
            "🚨 **Grail Budget Exceeded:** This query scanned 0.200 GB. "
            "Total session usage: 1.20 GB / 1 GB budget limit. "
            "You will not be able to perform any more queries in this session."
        )

    def test_exceeded_takes_priority(self):
        tracker = GrailBudgetTracker(1)
        state = tracker.add_bytes_scanned(BYTES_PER_GB)

        warning = generate_budget_warning(state, BYTES_PER_GB)

        assert "Exceeded" in warning
        assert "Warning" not in warning

    def test_unlimited_never_warns(self):
        tracker = GrailBudgetTracker(-1)
        state = tracker.add_bytes_scanned(10**15)

        assert generate_budget_warning(state, 10**15) is None
