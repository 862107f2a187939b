"""Progress store - persists the learner's place in the curriculum."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class GameProgress:
    """Saved position: current stage, finished stages and code per cell."""

    current_stage: int = 1
    completed_stages: list[int] = field(default_factory=list)
    # stage id -> code of each cell
    cell_code: dict[int, list[str]] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    def mark_completed(self, stage_id: int) -> bool:
        """Record a completed stage. Returns False if it already was."""
        if stage_id in self.completed_stages:
            return False
        self.completed_stages.append(stage_id)
        self.completed_stages.sort()
        return True

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "current_stage": self.current_stage,
            "completed_stages": self.completed_stages,
            "cell_code": {str(stage): code for stage, code in self.cell_code.items()},
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ProgressStore:
    """Persist GameProgress as JSON. Without a path, progress lives in memory only."""

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize the progress store.

        Args:
            path: JSON file for progress. None disables persistence.
        """
        self.path = Path(path) if path else None

    def save(self, progress: GameProgress) -> None:
        """
        Persist progress to storage.

        Args:
            progress: The GameProgress to save.
        """
        progress.updated_at = datetime.now()
        if self.path is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(progress.to_dict(), f, indent=2)
        logger.debug(f"Saved progress to {self.path}")

    def load(self) -> Optional[GameProgress]:
        """
        Load progress from storage.

        Returns:
            GameProgress or None if nothing usable is stored.
        """
        if self.path is None or not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)

            progress = GameProgress(
                current_stage=int(data.get("current_stage", 1)),
                completed_stages=sorted(int(s) for s in data.get("completed_stages", [])),
                cell_code={
                    int(stage): [str(code) for code in codes]
                    for stage, codes in data.get("cell_code", {}).items()
                },
            )
            if data.get("updated_at"):
                progress.updated_at = datetime.fromisoformat(data["updated_at"])
            return progress

        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable progress file {self.path}: {e}")
            return None

    def clear(self) -> None:
        """Delete stored progress."""
        if self.path is not None and self.path.exists():
            self.path.unlink()
            logger.info(f"Cleared progress at {self.path}")
