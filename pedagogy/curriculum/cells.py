"""Cell state tracker - per-cell code, output, status and attempt history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from pedagogy.exceptions import InvalidCellIndexError
from pedagogy.models import CellSpec, CellStatus, ErrorCategory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Output:
    """Last execution output of a cell."""

    text: str = ""
    is_error: bool = False
    error_category: Optional[ErrorCategory] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "text": self.text,
            "is_error": self.is_error,
            "error_category": self.error_category.value if self.error_category else None,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class Attempt:
    """Record of a single run of a cell. Immutable once its verdict is stamped."""

    number: int
    code: str
    output: Output
    verdict: Optional[CellStatus] = None
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def passed(self) -> bool:
        """Check success."""
        return self.verdict is CellStatus.PASSED

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "number": self.number,
            "code": self.code,
            "output": self.output.to_dict(),
            "verdict": self.verdict.value if self.verdict else None,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Cell:
    """Live state of one cell within the loaded stage."""

    index: int
    code: str = ""
    last_output: Optional[Output] = None
    status: CellStatus = CellStatus.PENDING
    attempts: list[Attempt] = field(default_factory=list)
    # Code frozen at the most recent pass; what later cells see.
    passed_code: Optional[str] = None

    @property
    def total_attempts(self) -> int:
        """Total attempts."""
        return len(self.attempts)

    def to_dict(self) -> dict:
        """Dictionary representation."""
        return {
            "index": self.index,
            "code": self.code,
            "status": self.status.value,
            "last_output": self.last_output.to_dict() if self.last_output else None,
            "attempts": [a.to_dict() for a in self.attempts],
        }


class CellStateTracker:
    """
    Track the cells of one stage.

    Models a notebook-like cumulative namespace: code from passed cells is
    visible to the cells after them. When a cell stops being passed, every
    later cell goes back to PENDING because its context may now be stale.
    """

    def __init__(self, specs: tuple[CellSpec, ...] | list[CellSpec]):
        """
        Initialize the tracker with starter code from the stage definition.

        Args:
            specs: Static cell definitions of the stage, in index order.
        """
        self.cells: list[Cell] = [
            Cell(index=i, code=spec.starter_code) for i, spec in enumerate(specs)
        ]

    def __len__(self) -> int:
        return len(self.cells)

    def _require(self, cell_index: int) -> Cell:
        """Get a cell or raise InvalidCellIndexError."""
        if not 0 <= cell_index < len(self.cells):
            raise InvalidCellIndexError(cell_index, len(self.cells))
        return self.cells[cell_index]

    def get_cell(self, cell_index: int) -> Optional[Cell]:
        """Get a cell, or None if the index is out of range."""
        try:
            return self._require(cell_index)
        except InvalidCellIndexError:
            return None

    def set_code(self, cell_index: int, code: str) -> bool:
        """Edit a cell's code without running it."""
        cell = self.get_cell(cell_index)
        if cell is None:
            return False
        cell.code = code
        return True

    def record_attempt(self, cell_index: int, code: str, output: Output) -> Optional[Attempt]:
        """
        Append an attempt and invalidate the cell's verdict until re-evaluated.

        Args:
            cell_index: Index of the cell that was run.
            code: Code snapshot that was executed.
            output: Resulting output.

        Returns:
            The new Attempt, or None for an out-of-range index.
        """
        try:
            cell = self._require(cell_index)
        except InvalidCellIndexError as e:
            logger.warning(e.message)
            return None

        if cell.passed_code is not None and code != cell.passed_code:
            self._leave_passed(cell)

        attempt = Attempt(number=cell.total_attempts + 1, code=code, output=output)
        cell.attempts.append(attempt)
        cell.code = code
        cell.last_output = output
        cell.status = CellStatus.PENDING
        return attempt

    def mark_passed(self, cell_index: int) -> bool:
        """Transition a cell to PASSED and freeze its code into the accumulated view."""
        cell = self.get_cell(cell_index)
        if cell is None:
            return False

        if cell.passed_code is None:
            logger.debug(f"Cell {cell_index} passed; freezing code into accumulated view")
        cell.status = CellStatus.PASSED
        cell.passed_code = cell.code
        self._stamp_verdict(cell, CellStatus.PASSED, None)
        return True

    def mark_failed(self, cell_index: int, reason: str = "") -> bool:
        """Transition a cell to FAILED, invalidating later cells if it had passed."""
        cell = self.get_cell(cell_index)
        if cell is None:
            return False

        if cell.passed_code is not None:
            self._leave_passed(cell)
        cell.status = CellStatus.FAILED
        self._stamp_verdict(cell, CellStatus.FAILED, reason or None)
        return True

    def _stamp_verdict(self, cell: Cell, verdict: CellStatus, reason: Optional[str]) -> None:
        """Seal the latest attempt with its verdict (only once)."""
        if cell.attempts and cell.attempts[-1].verdict is None:
            cell.attempts[-1] = replace(cell.attempts[-1], verdict=verdict, reason=reason)

    def _leave_passed(self, cell: Cell) -> None:
        """Drop a cell's pass and reset every later cell to PENDING."""
        cell.passed_code = None
        for later in self.cells[cell.index + 1:]:
            if later.status is not CellStatus.PENDING or later.passed_code is not None:
                logger.info(f"Cell {later.index} reset to pending (cell {cell.index} changed)")
            later.status = CellStatus.PENDING
            later.passed_code = None

    def accumulated_code(self, upto_index: int) -> str:
        """
        Concatenate the code of passed cells before `upto_index`, in order.

        Computed on every call from current statuses; nothing is cached.
        """
        parts = [
            cell.passed_code
            for cell in self.cells[:max(upto_index, 0)]
            if cell.status is CellStatus.PASSED and cell.passed_code is not None
        ]
        return "\n\n".join(parts)

    def statuses(self) -> list[CellStatus]:
        """Status of every cell, in index order."""
        return [cell.status for cell in self.cells]

    @property
    def all_passed(self) -> bool:
        """Check if every cell in the stage has passed."""
        return bool(self.cells) and all(c.status is CellStatus.PASSED for c in self.cells)

    def restart(self) -> None:
        """Restart the runtime: clear outputs and verdicts, keep code and attempts."""
        for cell in self.cells:
            cell.status = CellStatus.PENDING
            cell.passed_code = None
            cell.last_output = None
