"""Hint tier controller - escalates assistance specificity with struggle."""

from __future__ import annotations

import logging
from typing import Optional

from pedagogy.assessment.struggle import StruggleMetrics
from pedagogy.models import HintTier

logger = logging.getLogger(__name__)


class TierController:
    """
    Select the hint tier for a cell.

    Selection is monotonic: for a given cell the tier never drops below one
    already granted, until that cell passes.
    """

    def __init__(self, structural_after: int = 2, scaffold_after: int = 4):
        """
        Initialize the controller.

        Args:
            structural_after: Attempts at which structural hints unlock.
            scaffold_after: Attempts at which scaffold hints unlock.
        """
        self.structural_after = structural_after
        self.scaffold_after = scaffold_after
        self._granted: dict[int, HintTier] = {}

    def tier_for_attempts(self, attempts: int) -> HintTier:
        """Tier implied by attempt count alone."""
        if attempts >= self.scaffold_after:
            return HintTier.SCAFFOLD
        if attempts >= self.structural_after:
            return HintTier.STRUCTURAL
        return HintTier.CONCEPTUAL

    def granted(self, cell_index: int) -> Optional[HintTier]:
        """Highest tier already granted for a cell."""
        return self._granted.get(cell_index)

    def select_tier(
        self,
        metrics: StruggleMetrics,
        explicit_escalation: bool = False,
        cell_index: int = 0,
    ) -> HintTier:
        """
        Select and record the tier for a hint request.

        Args:
            metrics: Frozen struggle snapshot for the cell.
            explicit_escalation: Learner asked for more help.
            cell_index: Cell the request is about.

        Returns:
            The selected HintTier.
        """
        tier = self.tier_for_attempts(metrics.attempts)
        previous = self._granted.get(cell_index)
        if previous is not None and previous > tier:
            tier = previous

        if explicit_escalation:
            tier = tier.next_tier()

        self._granted[cell_index] = tier
        logger.debug(
            f"Cell {cell_index}: tier {tier.value} "
            f"(attempts={metrics.attempts}, escalation={explicit_escalation})"
        )
        return tier

    def reset(self, cell_index: int) -> None:
        """Forget the granted tier once a cell passes."""
        self._granted.pop(cell_index, None)

    def reset_all(self) -> None:
        """Forget every granted tier."""
        self._granted.clear()
