"""Pytest fixtures for pedagogy engine tests."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from assistant.llm_client import MockClient
from pedagogy.assessment.struggle import StruggleMetrics
from pedagogy.assistance.requests import AssistanceRequest
from pedagogy.config import PedagogyConfig
from pedagogy.curriculum.cells import Output
from pedagogy.curriculum.loader import StageLoader
from pedagogy.models import CellSpec, HintTier, QueryType, Stage, ValidationRuleSet
from pedagogy.progress import ProgressStore
from pedagogy.session import Game


@pytest.fixture
def loader() -> StageLoader:
    """Loader for the bundled curriculum."""
    return StageLoader()


@pytest.fixture
def list_stage() -> Stage:
    """A single-cell stage whose rules check a sum without exposing it in the data."""
    return Stage(
        id=3,
        title="Cataloguing the Finds",
        challenge="Print the total depth of the finds.",
        cells=(
            CellSpec(
                index=0,
                instruction="Print the total depth.",
                solution="depths = [12, 7, 15, 9, 22]\nprint(sum(depths))",
                rules=ValidationRuleSet(
                    flexible=True,
                    code_patterns=(r"sum\s*\(",),
                    required_numbers=(65,),
                    required_text=("Total",),
                ),
            ),
        ),
        hints=(
            "Think about which built-in function adds things up.",
            "Check your calculation: sum() takes the whole list.",
            "Format the output so it starts with the word Total.",
        ),
    )


@pytest.fixture
def multi_stage() -> Stage:
    """A three-cell stage where each cell builds on the previous one."""
    return Stage(
        id=8,
        title="Mapping the Chamber",
        challenge="Record, average, filter.",
        cells=(
            CellSpec(index=0, instruction="Record", starter_code="# one",
                     rules=ValidationRuleSet(required_numbers=(4,))),
            CellSpec(index=1, instruction="Average", starter_code="# two",
                     rules=ValidationRuleSet(required_text=("Average",))),
            CellSpec(index=2, instruction="Filter", starter_code="# three",
                     rules=ValidationRuleSet(required_numbers=(5.5,))),
        ),
    )


@pytest.fixture
def mock_client() -> MockClient:
    """Mock assistance generator."""
    return MockClient()


@pytest.fixture
def config() -> PedagogyConfig:
    """Default configuration with assistance on and no persistence."""
    return PedagogyConfig(assistance_enabled=True)


@pytest.fixture
def game(config: PedagogyConfig, mock_client: MockClient) -> Game:
    """Game on the bundled curriculum with a mock mentor and in-memory progress."""
    return Game(config=config, generator=mock_client, progress_store=ProgressStore())


@pytest.fixture
def write_stages(tmp_path: Path):
    """Write a stages YAML file and return its path."""

    def _write(content: str, name: str = "stages.yaml") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


def _make_request(
    stage: Stage,
    query_type: QueryType = QueryType.HINT,
    tier: Optional[HintTier] = HintTier.CONCEPTUAL,
    code: str = "",
    output: Optional[Output] = None,
    metrics: Optional[StruggleMetrics] = None,
    **kwargs,
) -> AssistanceRequest:
    """Build an assistance request for the first cell of a stage."""
    return AssistanceRequest(
        query_type=query_type,
        stage=stage,
        cell_index=kwargs.pop("cell_index", 0),
        code=code,
        rules=stage.cells[0].rules,
        metrics=metrics or StruggleMetrics(),
        output=output,
        tier=tier,
        **kwargs,
    )


@pytest.fixture
def make_request():
    """Factory for assistance requests about the first cell of a stage."""
    return _make_request
