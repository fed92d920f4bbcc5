"""
Grail budget tracking

Tracks the bytes scanned by Grail queries (DQL) during a server session and
blocks further queries once the configured budget is used up. Budgets are
given in GB with base 1000 (1 GB = 1,000,000,000 bytes); a budget of -1
means unlimited.

Construct one tracker per session (the MCP server does so at start-up) and
pass it to every query execution. get_grail_budget_tracker() remains as a
module-wide accessor: the first call fixes the limit, the limit argument of
any later call is ignored.
"""

import threading
from dataclasses import dataclass
from typing import Optional

from src.logging import get_logger

logger = get_logger('BUDGET')

BYTES_PER_GB = 1000 * 1000 * 1000
UNLIMITED = -1
DEFAULT_BUDGET_GB = 1000
WARNING_THRESHOLD_PERCENT = 80


class BudgetExceededError(Exception):
    """Raised before submitting a query when the session budget is used up."""

    def __init__(self, message: str, budget_state: "BudgetState"):
        super().__init__(message)
        self.budget_state = budget_state


@dataclass(frozen=True)
class BudgetState:
    """Snapshot of a tracker; unlimited trackers report -1 for limit and remaining values."""
    total_bytes_scanned: int
    budget_limit_bytes: int
    budget_limit_gb: float
    is_budget_exceeded: bool
    remaining_budget_bytes: int
    remaining_budget_gb: float

    @property
    def is_unlimited(self) -> bool:
        return self.budget_limit_bytes == UNLIMITED


class GrailBudgetTracker:
    """In-memory ledger of bytes scanned by Grail queries."""

    def __init__(self, budget_limit_gb: float):
        self._budget_limit_gb = budget_limit_gb
        self._unlimited = budget_limit_gb == UNLIMITED
        self._budget_limit_bytes = None if self._unlimited else round(budget_limit_gb * BYTES_PER_GB)
        self._total_bytes_scanned = 0
        self._lock = threading.Lock()

    @property
    def budget_limit_gb(self) -> float:
        return self._budget_limit_gb

    @property
    def total_bytes_scanned(self) -> int:
        return self._total_bytes_scanned

    def _snapshot(self) -> BudgetState:
        total = self._total_bytes_scanned
        if self._unlimited:
            return BudgetState(
                total_bytes_scanned=total,
                budget_limit_bytes=UNLIMITED,
                budget_limit_gb=self._budget_limit_gb,
                is_budget_exceeded=False,
                remaining_budget_bytes=UNLIMITED,
                remaining_budget_gb=UNLIMITED,
            )

        remaining = max(0, self._budget_limit_bytes - total)
        return BudgetState(
            total_bytes_scanned=total,
            budget_limit_bytes=self._budget_limit_bytes,
            budget_limit_gb=self._budget_limit_gb,
            is_budget_exceeded=total >= self._budget_limit_bytes,
            remaining_budget_bytes=remaining,
            remaining_budget_gb=remaining / BYTES_PER_GB,
        )

    def get_state(self) -> BudgetState:
        """Current state of the tracker."""
        with self._lock:
            return self._snapshot()

    def add_bytes_scanned(self, bytes_scanned: int) -> BudgetState:
        """
        Add the bytes scanned by one Grail query.

        Args:
            bytes_scanned: Non-negative number of bytes

        Returns:
            Updated tracker state

        Raises:
            ValueError: If bytes_scanned is negative
        """
        if bytes_scanned < 0:
            raise ValueError(f"bytes_scanned must not be negative, got {bytes_scanned}")

        with self._lock:
            self._total_bytes_scanned += int(bytes_scanned)
            state = self._snapshot()

        logger.debug(
            f"bytes added | query:{bytes_scanned} | total:{state.total_bytes_scanned} | "
            f"exceeded:{state.is_budget_exceeded}"
        )
        return state

    def reset(self) -> None:
        """Set the running total back to zero; the limit stays."""
        with self._lock:
            self._total_bytes_scanned = 0


# Session-wide instance, see get_grail_budget_tracker()
_global_budget_tracker: Optional[GrailBudgetTracker] = None
_global_lock = threading.Lock()


def get_grail_budget_tracker(budget_limit_gb: Optional[float] = None) -> GrailBudgetTracker:
    """
    Initialize or get the session-wide Grail budget tracker.

    Only the first call decides the limit (default 1000 GB); the
    budget_limit_gb of every later call is ignored and the original
    limit persists until reset_grail_budget_tracker().
    """
    global _global_budget_tracker

    with _global_lock:
        if _global_budget_tracker is None:
            limit = DEFAULT_BUDGET_GB if budget_limit_gb is None else budget_limit_gb
            _global_budget_tracker = GrailBudgetTracker(limit)
            logger.info(f"session budget initialized | limit_gb:{limit}")
        return _global_budget_tracker


def reset_grail_budget_tracker() -> None:
    """Drop the session-wide tracker (test isolation, explicit session restarts)."""
    global _global_budget_tracker

    with _global_lock:
        _global_budget_tracker = None


def create_grail_budget_tracker(budget_limit_gb: float) -> GrailBudgetTracker:
    """Create an independent tracker, not shared with get_grail_budget_tracker()."""
    return GrailBudgetTracker(budget_limit_gb)


def format_bytes_as_gb(num_bytes: float) -> str:
    """
    Format bytes as GB, with more decimals for smaller values.

    >>> format_bytes_as_gb(15_000_000_000)
    '15.0'
    >>> format_bytes_as_gb(150_000_000)
    '0.150'
    """
    gb = num_bytes / BYTES_PER_GB
    if gb >= 10:
        return f"{gb:.1f}"
    if gb >= 1:
        return f"{gb:.2f}"
    if gb >= 0.1:
        return f"{gb:.3f}"
    return f"{gb:.4f}"


def _format_limit_gb(budget_limit_gb: float) -> str:
    # 1.0 -> "1", 0.5 -> "0.5"
    if float(budget_limit_gb).is_integer():
        return str(int(budget_limit_gb))
    return str(budget_limit_gb)


def generate_budget_warning(budget_state: BudgetState, current_query_bytes: int) -> Optional[str]:
    """
    Build a budget message for the current state.

    Args:
        budget_state: State after the current query was added
        current_query_bytes: Bytes scanned by the current query

    Returns:
        An "exceeded" message, else an "approaching" message at >= 80% usage,
        else None. Never both.
    """
    if budget_state.is_budget_exceeded:
        return (
            f"🚨 **Grail Budget Exceeded:** This query scanned {format_bytes_as_gb(current_query_bytes)} GB. "
            f"Total session usage: {format_bytes_as_gb(budget_state.total_bytes_scanned)} GB / "
            f"{_format_limit_gb(budget_state.budget_limit_gb)} GB budget limit. "
            "You will not be able to perform any more queries in this session."
        )

    if budget_state.is_unlimited or budget_state.budget_limit_bytes <= 0:
        return None

    usage_percentage = budget_state.total_bytes_scanned * 100 / budget_state.budget_limit_bytes
    if usage_percentage >= WARNING_THRESHOLD_PERCENT:
        return (
            f"⚠️ **Grail Budget Warning:** Session usage: "
            f"{format_bytes_as_gb(budget_state.total_bytes_scanned)} GB / "
            f"{_format_limit_gb(budget_state.budget_limit_gb)} GB ({usage_percentage:.1f}%). "
            f"Remaining: {format_bytes_as_gb(budget_state.remaining_budget_bytes)} GB."
        )

    return None
