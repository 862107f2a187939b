"""Struggle metrics - derived signals of how hard a learner is finding a cell."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional, Sequence

from pedagogy.curriculum.cells import Attempt
from pedagogy.models import CellStatus, ErrorCategory

# (upper bound in minutes, label)
TIME_BUCKETS = [
    (1.0, "<1"),
    (5.0, "1-5"),
    (15.0, "5-15"),
]
LONGEST_BUCKET = "15+"


def time_bucket(minutes: float) -> str:
    """Bucket minutes spent into a coarse label."""
    for upper, label in TIME_BUCKETS:
        if minutes < upper:
            return label
    return LONGEST_BUCKET


def _times(count: int) -> str:
    return {1: "once", 2: "twice"}.get(count, f"{count} times")


def _article(word: str) -> str:
    return "an" if word[:1].lower() in "aeiou" else "a"


@dataclass(frozen=True)
class StruggleMetrics:
    """Frozen snapshot of struggle on one cell since its last pass."""

    attempts: int = 0
    minutes: float = 0.0
    error_counts: Counter = field(default_factory=Counter)
    last_error: Optional[ErrorCategory] = None

    @property
    def time_bucket(self) -> str:
        """Coarse time-spent label."""
        return time_bucket(self.minutes)

    @property
    def failed_runs(self) -> int:
        """Runs in the streak that raised an error."""
        return sum(self.error_counts.values())

    def describe(self) -> str:
        """Human phrase for prompts, e.g. "you've hit an IndentationError twice"."""
        if self.attempts == 0:
            return "This is the learner's first try at this cell."

        parts = [f"{self.attempts} attempt{'s' if self.attempts != 1 else ''} on this cell"]
        if self.time_bucket != "<1":
            parts.append(f"over {self.time_bucket} minutes")
        sentence = "The learner has made " + " ".join(parts) + "."

        repeated = [
            f"{_article(category.value)} {category.value} {_times(count)}"
            for category, count in self.error_counts.most_common()
            if category is not ErrorCategory.UNCLASSIFIED
        ]
        if repeated:
            sentence += " They've hit " + " and ".join(repeated[:2]) + "."
        return sentence

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "attempts": self.attempts,
            "minutes": round(self.minutes, 2),
            "time_bucket": self.time_bucket,
            "error_counts": {category.value: count for category, count in self.error_counts.items()},
            "last_error": self.last_error.value if self.last_error else None,
        }


def current_streak(attempts: Sequence[Attempt]) -> list[Attempt]:
    """Attempts after the most recent passed verdict."""
    for position in range(len(attempts) - 1, -1, -1):
        if attempts[position].verdict is CellStatus.PASSED:
            return list(attempts[position + 1:])
    return list(attempts)


def compute_metrics(attempts: Sequence[Attempt]) -> StruggleMetrics:
    """
    Derive struggle metrics from a cell's attempt history.

    Minutes run from the first to the latest attempt of the current streak.

    Args:
        attempts: The cell's attempts, oldest first.

    Returns:
        A StruggleMetrics snapshot. Never persisted; recompute on demand.
    """
    streak = current_streak(attempts)
    if not streak:
        return StruggleMetrics()

    minutes = (streak[-1].timestamp - streak[0].timestamp).total_seconds() / 60.0
    errors = [a.output.error_category for a in streak if a.output.is_error and a.output.error_category]

    return StruggleMetrics(
        attempts=len(streak),
        minutes=max(minutes, 0.0),
        error_counts=Counter(errors),
        last_error=errors[-1] if errors else None,
    )
