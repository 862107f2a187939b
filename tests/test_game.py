"""Tests for the game facade and stage session."""

from __future__ import annotations

import asyncio

import pytest

from assistant.prompts import RETRY_MESSAGE
from pedagogy.assistance.requests import RequestState
from pedagogy.config import PedagogyConfig
from pedagogy.curriculum.interpreter import PythonInterpreter
from pedagogy.curriculum.loader import StageLoader
from pedagogy.models import HintTier, QueryType
from pedagogy.progress import ProgressStore
from pedagogy.session import ASSISTANCE_DISABLED_MESSAGE, Game, StageSession

STAGE_ONE = 'name = "Scroll of Alexandria"\nage = 2200\nprint(name)\nprint("Age:", age)'


class BrokenGenerator:
    def generate(self, prompt, system_prompt=None):
        raise TimeoutError("provider did not answer")


def complete_stage_one(game: Game) -> dict:
    game.set_code(STAGE_ONE)
    return game.run_code()


class TestState:
    """Tests for state queries."""

    def test_initial_state(self, game):
        """A new game starts at stage 1."""
        state = game.get_state()

        assert state["current_stage"] == 1
        assert state["total_stages"] == 9
        assert state["stage_type"] == "single-cell"
        assert state["is_stage_complete"] is False
        assert state["completed_stages"] == []
        assert len(state["hints"]) == 3

    def test_code_round_trip(self, game):
        """Code set on a cell is returned unchanged."""
        assert game.set_code("print('hi')") is True
        assert game.get_code() == "print('hi')"

    def test_invalid_cell_index(self, game):
        """Invalid indices are reported as None/False, not raised."""
        assert game.get_code(3) is None
        assert game.set_code("x", 3) is False
        assert game.run_code(3) is None
        assert game.get_cell_status(3) is None
        assert game.get_output(3) == ""


class TestRunning:
    """Tests for running and validating code."""

    def test_pass_completes_stage(self, game):
        """A correct solution passes and completes the stage."""
        result = complete_stage_one(game)

        assert result["passed"] is True
        assert result["is_complete"] is True
        assert result["has_error"] is False
        assert result["cell_status"] == "passed"
        assert "Scroll of Alexandria" in result["output"]
        assert game.get_state()["completed_stages"] == [1]

    def test_wrong_numbers(self, game):
        """Missing numbers fail with feedback."""
        game.set_code('print("Scroll of Alexandria")\nname = "x"')
        result = game.run_code()

        assert result["passed"] is False
        assert result["is_complete"] is False
        assert result["cell_status"] == "failed"
        assert result["feedback"]["status_text"] == "Wrong Numbers"
        assert result["validation"]["missing_numbers"] == [2200]

    def test_syntax_error(self, game):
        """Errors are reported with their category."""
        game.set_code('print("Scroll of Alexandria)')
        result = game.run_code()

        assert result["passed"] is False
        assert result["has_error"] is True
        assert result["feedback"]["status_text"] == "SyntaxError"
        assert "SyntaxError" in game.get_output()

    def test_starter_code_has_no_output(self, game):
        """Running untouched starter code reports missing output."""
        result = game.run_code()
        assert result["feedback"]["status_text"] == "No Output"

    def test_run_async(self, game):
        """Cells can be run off the event loop."""
        game.set_code(STAGE_ONE)
        result = asyncio.run(game.run_code_async())
        assert result["passed"] is True


class TestNavigation:
    """Tests for moving between stages."""

    def test_next_stage_requires_completion(self, game):
        """A stage must be complete before moving on."""
        assert game.next_stage() is False

        complete_stage_one(game)

        assert game.next_stage() is True
        assert game.get_state()["current_stage"] == 2

    def test_load_stage_out_of_range(self, game):
        """Out-of-range stages are rejected without changing state."""
        game.set_code("kept")

        assert game.load_stage(0) is False
        assert game.load_stage(10) is False
        assert game.get_state()["current_stage"] == 1
        assert game.get_code() == "kept"

    def test_code_remembered_per_stage(self, game):
        """Leaving a stage and coming back restores its code."""
        game.set_code("draft = 1")
        game.load_stage(3)
        game.load_stage(1)

        assert game.get_code() == "draft = 1"

    def test_progress_persisted(self, tmp_path, mock_client):
        """Completed stages and the current stage survive a restart."""
        store = ProgressStore(tmp_path / "progress.json")
        game = Game(config=PedagogyConfig(), generator=mock_client, progress_store=store)
        complete_stage_one(game)
        game.next_stage()

        restored = Game(config=PedagogyConfig(), generator=mock_client, progress_store=store)

        assert restored.get_state()["current_stage"] == 2
        assert restored.get_state()["completed_stages"] == [1]

    def test_reset_progress(self, game):
        """Resetting returns to stage 1 with nothing completed."""
        complete_stage_one(game)
        game.next_stage()

        game.reset_progress()

        state = game.get_state()
        assert state["current_stage"] == 1
        assert state["completed_stages"] == []
        assert game.get_cell_status() == "pending"


class TestMultiCell:
    """Tests for multi-cell stages."""

    @pytest.fixture
    def chamber(self, game) -> Game:
        game.load_stage(8)
        return game

    def test_code_for_all_cells(self, chamber):
        """Without an index, every cell's code is returned."""
        codes = chamber.get_code()

        assert [entry["cell"] for entry in codes] == [0, 1, 2]
        assert chamber.get_state()["stage_type"] == "multi-cell"

    def test_later_cells_see_earlier_variables(self, chamber):
        """Cells build on the variables of earlier passed cells."""
        chamber.set_code("measurements = [3.5, 4.25, 2.75, 5.5]\nprint(len(measurements))", 0)
        chamber.set_code('average = sum(measurements) / len(measurements)\nprint(f"Average: {average}")', 1)
        chamber.set_code("print([m for m in measurements if m > average])", 2)

        assert chamber.run_code(0)["passed"]
        assert chamber.run_code(1)["passed"]
        result = chamber.run_code(2)

        assert result["passed"]
        assert result["is_complete"] is True
        assert chamber.get_all_cell_statuses() == [
            {"cell": 0, "status": "passed"},
            {"cell": 1, "status": "passed"},
            {"cell": 2, "status": "passed"},
        ]

    def test_cell_before_dependencies_fails(self, chamber):
        """Running a cell whose dependencies have not passed raises NameError."""
        chamber.set_code("print(sum(measurements))", 1)
        result = chamber.run_code(1)

        assert result["has_error"] is True
        assert result["feedback"]["status_text"] == "NameError"

    def test_breaking_earlier_cell_resets_later(self, chamber):
        """When an earlier cell stops passing, later cells return to pending."""
        chamber.set_code("measurements = [3.5, 4.25, 2.75, 5.5]\nprint(len(measurements))", 0)
        chamber.set_code('average = sum(measurements) / 4\nprint("Average:", average)', 1)
        chamber.run_code(0)
        chamber.run_code(1)

        chamber.set_code("measurements = []", 0)
        chamber.run_code(0)

        assert chamber.get_cell_status(0) == "failed"
        assert chamber.get_cell_status(1) == "pending"

    def test_restart_runtime(self, chamber):
        """Restarting sets every cell back to pending."""
        chamber.set_code("measurements = [3.5, 4.25, 2.75, 5.5]\nprint(len(measurements))", 0)
        chamber.run_code(0)

        chamber.restart_runtime()

        assert chamber.get_cell_status(0) == "pending"
        assert chamber.get_output(0) == ""

    def test_solution_per_cell(self, chamber):
        """Multi-cell solutions are returned per cell."""
        solution = chamber.get_solution()

        assert isinstance(solution, list)
        assert len(solution) == 3


class TestHintsAndContext:
    """Tests for static hints, solutions and the full context."""

    def test_static_hints(self, game):
        """Hints are addressed by index or tier."""
        hints = game.stage.hints

        assert game.get_hint() == hints[0]
        assert game.get_hint(HintTier.SCAFFOLD) == hints[2]
        assert game.get_hint(7) is None

    def test_full_context(self, game):
        """The full context includes code, outputs, attempts and solution."""
        game.set_code("print(1)")
        game.run_code()
        context = game.get_full_context()

        assert context["current_code"] == "print(1)"
        assert context["outputs"] == [{"cell": 0, "output": "1\n"}]
        assert len(context["attempts"][0]) == 1
        assert context["metrics"][0]["attempts"] == 1
        assert context["solution"] == game.get_solution()
        assert context["validation"][0]["required_numbers"] == [2200]

    def test_wait_for(self, game):
        """wait_for resolves once the predicate holds and times out otherwise."""
        assert asyncio.run(game.wait_for(lambda: True)) is True

        with pytest.raises(TimeoutError):
            asyncio.run(game.wait_for(lambda: False, timeout_ms=100))


class TestAssistance:
    """Tests for mentor requests through the game."""

    def test_hint_tier_escalates_with_attempts(self, game):
        """Failed attempts unlock more specific hints."""
        first = asyncio.run(game.request_assistance("hint"))
        assert first.state is RequestState.FULFILLED
        assert first.tier is HintTier.CONCEPTUAL

        game.set_code("print(1)")
        game.run_code()
        game.run_code()

        second = asyncio.run(game.request_assistance("hint"))
        assert second.tier is HintTier.STRUCTURAL

    def test_explicit_escalation(self, game):
        """Asking for more moves up one tier."""
        response = asyncio.run(game.request_assistance(QueryType.HINT, explicit_escalation=True))
        assert response.tier is HintTier.STRUCTURAL

    def test_passing_resets_tier(self, game):
        """A passed cell starts again from conceptual hints."""
        asyncio.run(game.request_assistance("hint", explicit_escalation=True))
        complete_stage_one(game)

        response = asyncio.run(game.request_assistance("hint"))
        assert response.tier is HintTier.CONCEPTUAL

    def test_debug_prompt_has_error(self, game, mock_client):
        """Debug requests carry the classified error."""
        game.set_code("print(undefined_name)")
        game.run_code()

        response = asyncio.run(game.request_assistance("debug"))

        assert response.ok
        assert response.tier is None
        prompt, _ = mock_client.calls[-1]
        assert "[ERROR] type=NameError" in prompt

    def test_unterminated_string_is_syntax_error(self, game, mock_client):
        """An unclosed quote is reported and explained as a SyntaxError."""
        game.set_code('artifact_name = "Golden Scarab\nprint(artifact_name)')
        result = game.run_code()

        assert result["has_error"] is True
        assert result["feedback"]["status_text"] == "SyntaxError"
        assert "unterminated string literal" in result["output"]

        response = asyncio.run(game.request_assistance("debug"))

        assert response.ok
        prompt, _ = mock_client.calls[-1]
        assert "[ERROR] type=SyntaxError" in prompt
        assert "type=IndentationError" not in prompt

    def test_stage_change_clears_history(self, game):
        """Loading another stage forgets the conversation."""
        asyncio.run(game.request_assistance("chat", message="Hello"))
        assert len(game.coordinator.history) == 2

        game.load_stage(2)

        assert len(game.coordinator.history) == 0

    def test_invalid_cell(self, game):
        """Requests about a missing cell return None."""
        assert asyncio.run(game.request_assistance("hint", cell_index=4)) is None

    def test_disabled_without_generator(self):
        """With assistance off and no generator, a neutral message comes back."""
        game = Game(config=PedagogyConfig(assistance_enabled=False), progress_store=ProgressStore())

        response = asyncio.run(game.request_assistance("hint"))

        assert response.state is RequestState.FAILED
        assert response.text == ASSISTANCE_DISABLED_MESSAGE

    def test_disabled_flag_gates_injected_generator(self, mock_client):
        """Turning assistance off silences a supplied generator too."""
        game = Game(
            config=PedagogyConfig(assistance_enabled=False),
            generator=mock_client,
            progress_store=ProgressStore(),
        )

        response = asyncio.run(game.request_assistance("hint"))

        assert response.state is RequestState.FAILED
        assert response.text == ASSISTANCE_DISABLED_MESSAGE
        assert mock_client.calls == []

    def test_generator_failure_does_not_affect_running(self):
        """A failing mentor returns a retry message and running still works."""
        game = Game(
            config=PedagogyConfig(assistance_enabled=True),
            generator=BrokenGenerator(),
            progress_store=ProgressStore(),
        )

        response = asyncio.run(game.request_assistance("hint"))

        assert response.state is RequestState.FAILED
        assert response.text == RETRY_MESSAGE
        assert complete_stage_one(game)["passed"] is True


class TestStageSession:
    """Tests for the per-stage session."""

    def test_stale_run_discarded_after_close(self, loader):
        """A closed session ignores runs."""
        session = StageSession(loader.get_stage(1), PythonInterpreter())
        session.close()

        assert session.run_cell(0, "print(2200)") is None
        assert session.is_current(0) is False

    def test_build_request_snapshots_metrics(self, loader):
        """Requests carry the cell's code, metrics and tier."""
        session = StageSession(loader.get_stage(1), PythonInterpreter())
        session.run_cell(0, "print(1)")

        request = session.build_request(QueryType.HINT, 0)

        assert request.code == "print(1)"
        assert request.metrics.attempts == 1
        assert request.tier is HintTier.CONCEPTUAL
        assert session.build_request(QueryType.HINT, 5) is None

    def test_function_definition_with_call(self, write_stages):
        """A stage checking a function's printed result passes when the function is called."""
        path = write_stages(
            "stages:\n"
            "  - id: 1\n"
            "    title: Functions\n"
            "    challenge: Define a function that prints 42.\n"
            "    validation:\n"
            "      code_patterns: ['def\\s+\\w+']\n"
            "      required_numbers: [42]\n"
        )
        session = StageSession(StageLoader(path).get_stage(1), PythonInterpreter())

        outcome = session.run_cell(0, "def f():\n  print(42)\n\nf()")

        assert outcome.result.passed
        assert outcome.stage_complete
