"""Tests for struggle metrics and hint tier selection."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta

from pedagogy.assessment.struggle import StruggleMetrics, compute_metrics, time_bucket
from pedagogy.assistance.tiers import TierController
from pedagogy.curriculum.cells import Attempt, Output
from pedagogy.models import CellStatus, ErrorCategory, HintTier

START = datetime(2026, 1, 10, 14, 0, 0)


def attempt(number: int, minute: float, error=None, verdict=CellStatus.FAILED) -> Attempt:
    output = Output(text=error.value if error else "out", is_error=error is not None, error_category=error)
    return Attempt(
        number=number,
        code="x",
        output=output,
        verdict=verdict,
        timestamp=START + timedelta(minutes=minute),
    )


class TestStruggleMetrics:
    """Tests for metrics derived from attempt history."""

    def test_time_buckets(self):
        """Minutes map onto coarse labels."""
        assert time_bucket(0.5) == "<1"
        assert time_bucket(1) == "1-5"
        assert time_bucket(14.9) == "5-15"
        assert time_bucket(40) == "15+"

    def test_no_attempts(self):
        """A fresh cell has empty metrics."""
        metrics = compute_metrics([])

        assert metrics.attempts == 0
        assert metrics.last_error is None
        assert "first try" in metrics.describe()

    def test_counts_errors_and_time(self):
        """Attempts, minutes and error counts come from the history."""
        metrics = compute_metrics([
            attempt(1, 0, ErrorCategory.INDENTATION_ERROR),
            attempt(2, 3, ErrorCategory.INDENTATION_ERROR),
            attempt(3, 7, ErrorCategory.NAME_ERROR),
        ])

        assert metrics.attempts == 3
        assert metrics.minutes == 7
        assert metrics.time_bucket == "5-15"
        assert metrics.error_counts[ErrorCategory.INDENTATION_ERROR] == 2
        assert metrics.last_error is ErrorCategory.NAME_ERROR
        assert metrics.failed_runs == 3

    def test_streak_restarts_after_pass(self):
        """Only attempts after the latest pass count."""
        metrics = compute_metrics([
            attempt(1, 0, ErrorCategory.SYNTAX_ERROR),
            attempt(2, 1, verdict=CellStatus.PASSED),
            attempt(3, 10, ErrorCategory.TYPE_ERROR),
        ])

        assert metrics.attempts == 1
        assert metrics.error_counts == Counter({ErrorCategory.TYPE_ERROR: 1})

    def test_describe_repeated_errors(self):
        """Repeated errors are described in plain words."""
        metrics = StruggleMetrics(
            attempts=3,
            minutes=2,
            error_counts=Counter({ErrorCategory.INDENTATION_ERROR: 2}),
        )
        description = metrics.describe()

        assert "3 attempts" in description
        assert "over 1-5 minutes" in description
        assert "an IndentationError twice" in description

    def test_to_dict(self):
        """Metrics serialize with category names."""
        data = compute_metrics([attempt(1, 0, ErrorCategory.NAME_ERROR)]).to_dict()

        assert data["attempts"] == 1
        assert data["error_counts"] == {"NameError": 1}
        assert data["time_bucket"] == "<1"


class TestTierController:
    """Tests for tier selection."""

    def test_thresholds(self):
        """Attempt counts unlock higher tiers."""
        tiers = TierController(structural_after=2, scaffold_after=4)

        assert tiers.tier_for_attempts(0) is HintTier.CONCEPTUAL
        assert tiers.tier_for_attempts(2) is HintTier.STRUCTURAL
        assert tiers.tier_for_attempts(4) is HintTier.SCAFFOLD

    def test_monotonic_per_cell(self):
        """A cell never drops below a tier it was granted."""
        tiers = TierController()
        tiers.select_tier(StruggleMetrics(attempts=4), cell_index=0)

        assert tiers.select_tier(StruggleMetrics(attempts=0), cell_index=0) is HintTier.SCAFFOLD
        assert tiers.select_tier(StruggleMetrics(attempts=0), cell_index=1) is HintTier.CONCEPTUAL

    def test_explicit_escalation(self):
        """Asking for more help moves up one tier, capped at scaffold."""
        tiers = TierController()

        assert tiers.select_tier(StruggleMetrics(), explicit_escalation=True) is HintTier.STRUCTURAL
        assert tiers.select_tier(StruggleMetrics(), explicit_escalation=True) is HintTier.SCAFFOLD
        assert tiers.select_tier(StruggleMetrics(), explicit_escalation=True) is HintTier.SCAFFOLD

    def test_reset_on_pass(self):
        """Passing a cell forgets its granted tier."""
        tiers = TierController()
        tiers.select_tier(StruggleMetrics(attempts=5), cell_index=2)
        tiers.reset(2)

        assert tiers.granted(2) is None
        assert tiers.select_tier(StruggleMetrics(), cell_index=2) is HintTier.CONCEPTUAL

    def test_tier_ordering(self):
        """Tiers compare by specificity."""
        assert HintTier.CONCEPTUAL < HintTier.STRUCTURAL < HintTier.SCAFFOLD
        assert HintTier.from_string("Scaffold") is HintTier.SCAFFOLD
