"""Stage loader - loads stage definitions from YAML files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml  # type: ignore

from pedagogy.exceptions import CurriculumError, StageNotFoundError
from pedagogy.models import CellSpec, Stage, ValidationRuleSet

logger = logging.getLogger(__name__)

DEFAULT_STAGES_FILE = Path(__file__).parent / "stages.yaml"


class StageLoader:
    """Load the ordered stage curriculum from a YAML content file."""

    def __init__(self, stages_file: Optional[Path] = None):
        """
        Initialize the stage loader.

        Args:
            stages_file: Path to the stages YAML. If None, uses the bundled curriculum.
        """
        self.stages_file = Path(stages_file) if stages_file else DEFAULT_STAGES_FILE
        self._stages: Optional[list[Stage]] = None
        self.game_info: dict = {}

    def _parse_cells(self, data: dict) -> tuple[CellSpec, ...]:
        """Parse the cells of a stage; single-cell stages use stage-level fields."""
        cells_data = data.get("cells")
        if not cells_data:
            return (
                CellSpec(
                    index=0,
                    instruction=data.get("challenge", ""),
                    starter_code=data.get("starter_code", data.get("starterCode", "")),
                    solution=data.get("solution", ""),
                    rules=ValidationRuleSet.from_dict(data.get("validation")),
                ),
            )

        return tuple(
            CellSpec(
                index=i,
                instruction=cell.get("instruction", cell.get("title", "")),
                starter_code=cell.get("starter_code", cell.get("starterCode", "")),
                solution=cell.get("solution", ""),
                rules=ValidationRuleSet.from_dict(cell.get("validation")),
            )
            for i, cell in enumerate(cells_data)
        )

    def _parse_stage(self, data: dict, position: int) -> Stage:
        """Parse a stage dictionary into a Stage object."""
        try:
            stage_id = int(data.get("id", position))
            if stage_id != position:
                raise CurriculumError(
                    f"Stage ids must be sequential from 1: expected {position}, found {stage_id}",
                    file_path=str(self.stages_file),
                )

            return Stage(
                id=stage_id,
                title=data["title"],
                challenge=data["challenge"],
                cells=self._parse_cells(data),
                story=data.get("story", ""),
                data=data.get("data", ""),
                hints=tuple(data.get("hints", [])),
                concepts=tuple(data.get("concepts", [])),
            )

        except KeyError as e:
            raise CurriculumError(
                f"Missing required field in stage {position}: {e}",
                file_path=str(self.stages_file),
            )

    def load(self) -> list[Stage]:
        """
        Load all stages, in order.

        Returns:
            List of Stage objects; stage N is at position N - 1.

        Raises:
            CurriculumError: If the stages file cannot be loaded.
        """
        if self._stages is not None:
            return self._stages

        if not self.stages_file.exists():
            raise CurriculumError("Stages file not found", file_path=str(self.stages_file))

        try:
            with open(self.stages_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CurriculumError(
                f"Invalid YAML in stages file: {e}",
                file_path=str(self.stages_file),
                cause=e,
            )

        if not data or not data.get("stages"):
            raise CurriculumError("Stages file defines no stages", file_path=str(self.stages_file))

        self.game_info = data.get("game_info", {})
        self._stages = [
            self._parse_stage(stage_data, position)
            for position, stage_data in enumerate(data["stages"], start=1)
        ]
        logger.debug(f"Loaded {len(self._stages)} stages from {self.stages_file}")
        return self._stages

    @property
    def total_stages(self) -> int:
        """Number of stages in the curriculum."""
        return len(self.load())

    def get_stage(self, stage_id: int) -> Stage:
        """
        Get a stage by its 1-based id.

        Raises:
            StageNotFoundError: If the id is out of range.
        """
        stages = self.load()
        if not 1 <= stage_id <= len(stages):
            raise StageNotFoundError(stage_id, len(stages))
        return stages[stage_id - 1]

    def clear_cache(self) -> None:
        """Force the next access to re-read the stages file."""
        self._stages = None
