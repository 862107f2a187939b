"""Stage session and game facade - the engine's external interface."""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from pedagogy.assessment.feedback import Feedback, FeedbackBuilder
from pedagogy.assessment.struggle import StruggleMetrics, compute_metrics
from pedagogy.assessment.validator import ValidationResult, Validator
from pedagogy.assistance.assistant import AssistanceCoordinator, AssistanceGenerator
from pedagogy.assistance.requests import AssistanceRequest, AssistanceResponse, RequestState
from pedagogy.assistance.tiers import TierController
from pedagogy.config import PedagogyConfig, get_config
from pedagogy.curriculum.cells import CellStateTracker, Output
from pedagogy.curriculum.error_extractor import ErrorExtractor
from pedagogy.curriculum.interpreter import Interpreter, InterpreterResult, PythonInterpreter
from pedagogy.curriculum.loader import StageLoader
from pedagogy.exceptions import AssistanceError, StageNotFoundError
from pedagogy.models import HintTier, QueryType, Stage
from pedagogy.progress import GameProgress, ProgressStore

logger = logging.getLogger(__name__)

ASSISTANCE_DISABLED_MESSAGE = "AI assistance is turned off. The static hints are still available."


@dataclass
class RunOutcome:
    """Result of running one cell."""

    cell_index: int
    output: Output
    result: ValidationResult
    feedback: Feedback
    attempt_number: int
    stage_complete: bool

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "cell_index": self.cell_index,
            "output": self.output.text,
            "has_error": self.output.is_error,
            "passed": self.result.passed,
            "is_complete": self.stage_complete,
            "attempt": self.attempt_number,
            "validation": self.result.to_dict(),
            "feedback": self.feedback.to_dict(),
            "feedback_text": self.feedback.format(),
        }


class StageSession:
    """
    All mutable state of one loaded stage.

    Created when a stage loads and closed when the learner navigates away.
    Attempt recording and tier selection are serialized by one lock.
    """

    def __init__(
        self,
        stage: Stage,
        interpreter: Interpreter,
        validator: Optional[Validator] = None,
        tier_controller: Optional[TierController] = None,
        feedback_builder: Optional[FeedbackBuilder] = None,
    ):
        self.stage = stage
        self.interpreter = interpreter
        self.validator = validator or Validator()
        self.tiers = tier_controller or TierController()
        self.feedback_builder = feedback_builder or FeedbackBuilder()
        self.tracker = CellStateTracker(stage.cells)
        self.active_cell = 0
        self.closed = False
        self.last_reaction: Optional[str] = None
        self._lock = threading.RLock()
        self._tickets: dict[int, int] = {}
        self._ticket_counter = itertools.count(1)
        self._error_extractor = ErrorExtractor()

    @property
    def is_complete(self) -> bool:
        """Check if every cell has passed."""
        return self.tracker.all_passed

    def close(self) -> None:
        """Discard the session; late results are ignored from now on."""
        with self._lock:
            self.closed = True

    def activate(self, cell_index: int) -> bool:
        """Make a cell the one the learner is working on."""
        with self._lock:
            if self.tracker.get_cell(cell_index) is None:
                return False
            self.active_cell = cell_index
            return True

    def is_current(self, cell_index: int) -> bool:
        """True while the session is open and the cell is active."""
        with self._lock:
            return not self.closed and self.active_cell == cell_index

    def _to_output(self, result: InterpreterResult) -> Output:
        if result.success:
            return Output(text=result.text)
        return Output(
            text=result.text,
            is_error=True,
            error_category=result.error_category,
            error_message=self._error_extractor.extract(result.error).error_message,
        )

    def run_cell(self, cell_index: int, code: Optional[str] = None) -> Optional[RunOutcome]:
        """
        Execute, record and validate one cell.

        Execution happens outside the lock. If a newer run of the same cell
        was started meanwhile, this result is discarded.

        Args:
            cell_index: Cell to run.
            code: Code to run. Defaults to the cell's current code.

        Returns:
            RunOutcome, or None for an invalid index, a stale result or a
            closed session.
        """
        with self._lock:
            cell = self.tracker.get_cell(cell_index)
            if cell is None or self.closed:
                return None
            ticket = next(self._ticket_counter)
            self._tickets[cell_index] = ticket
            code = cell.code if code is None else code
            cell.code = code
            self.active_cell = cell_index
            context = self.tracker.accumulated_code(cell_index)

        result = self.interpreter.execute(code, context)

        with self._lock:
            if self.closed or self._tickets.get(cell_index) != ticket:
                logger.info(f"Discarding stale result for cell {cell_index}")
                return None

            output = self._to_output(result)
            attempt = self.tracker.record_attempt(cell_index, code, output)
            rules = self.stage.cells[cell_index].rules
            verdict = self.validator.check(code, output, rules)

            if verdict.passed:
                self.tracker.mark_passed(cell_index)
                self.tiers.reset(cell_index)
            else:
                self.tracker.mark_failed(cell_index, verdict.reason)

            feedback = self.feedback_builder.build(verdict, output.text, rules, self.stage)
            logger.debug(f"Stage {self.stage.id} cell {cell_index}: {verdict.reason}")

            return RunOutcome(
                cell_index=cell_index,
                output=output,
                result=verdict,
                feedback=feedback,
                attempt_number=attempt.number if attempt else 0,
                stage_complete=self.tracker.all_passed,
            )

    async def run_cell_async(self, cell_index: int, code: Optional[str] = None) -> Optional[RunOutcome]:
        """Run a cell off the event loop."""
        return await asyncio.to_thread(self.run_cell, cell_index, code)

    def metrics(self, cell_index: int) -> Optional[StruggleMetrics]:
        """Struggle snapshot for a cell."""
        with self._lock:
            cell = self.tracker.get_cell(cell_index)
            return compute_metrics(cell.attempts) if cell else None

    def build_request(
        self,
        query_type: QueryType,
        cell_index: int,
        explicit_escalation: bool = False,
        message: Optional[str] = None,
        history: tuple = (),
    ) -> Optional[AssistanceRequest]:
        """
        Snapshot metrics, select the tier and assemble a request atomically.

        Returns:
            The request, or None for an invalid index or a closed session.
        """
        with self._lock:
            cell = self.tracker.get_cell(cell_index)
            if cell is None or self.closed:
                return None

            metrics = compute_metrics(cell.attempts)
            tier = None
            if query_type is QueryType.HINT:
                tier = self.tiers.select_tier(metrics, explicit_escalation, cell_index)

            return AssistanceRequest(
                query_type=query_type,
                stage=self.stage,
                cell_index=cell_index,
                code=cell.code,
                rules=self.stage.cells[cell_index].rules,
                metrics=metrics,
                output=cell.last_output,
                context_code=self.tracker.accumulated_code(cell_index),
                tier=tier,
                history=history,
                message=message,
            )


class Game:
    """
    Programmatic control of the game, for the UI and automated tests.

    Holds the progress record and one StageSession for the loaded stage.
    """

    def __init__(
        self,
        config: Optional[PedagogyConfig] = None,
        loader: Optional[StageLoader] = None,
        interpreter: Optional[Interpreter] = None,
        generator: Optional[AssistanceGenerator] = None,
        progress_store: Optional[ProgressStore] = None,
    ):
        """
        Initialize the game and load the saved (or first) stage.

        Args:
            config: Engine configuration. Defaults to the global config.
            loader: Stage content store.
            interpreter: Code runner.
            generator: Assistance generator. Created from config on first use if None.
            progress_store: Progress persistence.
        """
        self.config = config or get_config()
        self.loader = loader or StageLoader(self.config.curriculum_path)
        self.interpreter = interpreter or PythonInterpreter(timeout=self.config.execution_timeout)
        self.validator = Validator()
        self.feedback_builder = FeedbackBuilder()
        self.progress_store = progress_store or ProgressStore(self.config.progress_path)
        self.progress = self.progress_store.load() or GameProgress()
        self._generator = generator
        self._coordinator: Optional[AssistanceCoordinator] = None
        self.session: Optional[StageSession] = None

        start = self.progress.current_stage
        if not self.load_stage(start):
            logger.warning(f"Saved stage {start} is not in the curriculum; starting at stage 1")
            self.load_stage(1)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def stage(self) -> Stage:
        """The loaded stage."""
        return self._session.stage

    @property
    def _session(self) -> StageSession:
        if self.session is None:
            raise StageNotFoundError(self.progress.current_stage)
        return self.session

    @property
    def total_stages(self) -> int:
        """Number of stages in the curriculum."""
        return self.loader.total_stages

    def _resolve(self, cell_index: Optional[int]) -> int:
        return self._session.active_cell if cell_index is None else cell_index

    def get_state(self) -> dict:
        """Current game state."""
        stage = self.stage
        return {
            "current_stage": stage.id,
            "total_stages": self.total_stages,
            "stage_title": stage.title,
            "stage_type": stage.stage_type,
            "challenge": stage.challenge,
            "data": stage.data,
            "hints": list(stage.hints),
            "cells": [cell.instruction for cell in stage.cells] if stage.is_multi_cell else None,
            "active_cell": self._session.active_cell,
            "completed_stages": list(self.progress.completed_stages),
            "is_stage_complete": stage.id in self.progress.completed_stages,
            "llm_enabled": self.config.assistance_enabled,
        }

    # ------------------------------------------------------------------
    # Code and execution
    # ------------------------------------------------------------------

    def get_code(self, cell_index: Optional[int] = None) -> Union[str, list[dict], None]:
        """
        Get code from the editor(s).

        Multi-cell stages return every cell's code when no index is given.
        """
        tracker = self._session.tracker
        if cell_index is None and self.stage.is_multi_cell:
            return [{"cell": cell.index, "code": cell.code} for cell in tracker.cells]
        cell = tracker.get_cell(0 if cell_index is None else cell_index)
        return cell.code if cell else None

    def set_code(self, code: str, cell_index: Optional[int] = None) -> bool:
        """Replace a cell's code without running it."""
        index = self._resolve(cell_index)
        if not self._session.tracker.set_code(index, code):
            return False
        self._session.activate(index)
        return True

    def run_code(self, cell_index: Optional[int] = None) -> Optional[dict]:
        """
        Run a cell and validate it.

        Returns:
            Dict with output, is_complete, passed and feedback; None for an
            invalid cell index.
        """
        index = self._resolve(cell_index)
        if self._session.tracker.get_cell(index) is None:
            return None
        outcome = self._session.run_cell(index)
        return self._after_run(index, outcome)

    async def run_code_async(self, cell_index: Optional[int] = None) -> Optional[dict]:
        """Run a cell off the event loop."""
        session = self._session
        index = self._resolve(cell_index)
        if session.tracker.get_cell(index) is None:
            return None
        outcome = await session.run_cell_async(index)
        if session is not self.session:
            return None
        return self._after_run(index, outcome)

    def _after_run(self, index: int, outcome: Optional[RunOutcome]) -> dict:
        if outcome is None:
            return {
                "output": self.get_output(index),
                "is_complete": self.get_state()["is_stage_complete"],
                "discarded": True,
            }

        if outcome.stage_complete and self.progress.mark_completed(self.stage.id):
            logger.info(f"Stage {self.stage.id} complete")
        self._save_progress()

        data = outcome.to_dict()
        data["is_complete"] = self.stage.id in self.progress.completed_stages
        data["cell_status"] = self._session.tracker.cells[index].status.value
        data["cell_statuses"] = self.get_all_cell_statuses()
        return data

    def get_output(self, cell_index: Optional[int] = None) -> str:
        """Last output of a cell, or an empty string."""
        cell = self._session.tracker.get_cell(self._resolve(cell_index))
        if cell is None or cell.last_output is None:
            return ""
        return cell.last_output.text

    def get_all_outputs(self) -> list[dict]:
        """Outputs of every cell."""
        return [{"cell": cell.index, "output": self.get_output(cell.index)} for cell in self._session.tracker.cells]

    def get_cell_status(self, cell_index: Optional[int] = None) -> Optional[str]:
        """Status of a cell: pending, passed or failed."""
        cell = self._session.tracker.get_cell(self._resolve(cell_index))
        return cell.status.value if cell else None

    def get_all_cell_statuses(self) -> list[dict]:
        """Status of every cell."""
        return [
            {"cell": cell.index, "status": cell.status.value}
            for cell in self._session.tracker.cells
        ]

    def restart_runtime(self) -> None:
        """Restart the interpreter state: every cell must be re-run."""
        self._session.tracker.restart()
        logger.info("Runtime restarted")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def load_stage(self, stage_id: int) -> bool:
        """
        Load a stage, discarding the current session.

        Returns:
            False for an out-of-range id, leaving the current state untouched.
        """
        try:
            stage = self.loader.get_stage(stage_id)
        except StageNotFoundError as e:
            logger.info(e.message)
            return False

        if self.session is not None:
            self._remember_code()
            self.session.close()
        if self._coordinator is not None:
            self._coordinator.cancel_pending()
            self._coordinator.clear_history()

        self.session = StageSession(
            stage,
            self.interpreter,
            validator=self.validator,
            tier_controller=TierController(self.config.structural_after, self.config.scaffold_after),
            feedback_builder=self.feedback_builder,
        )
        for index, code in enumerate(self.progress.cell_code.get(stage_id, [])):
            self.session.tracker.set_code(index, code)

        self.progress.current_stage = stage_id
        self._save_progress()
        logger.debug(f"Loaded stage {stage_id}: {stage.title}")
        return True

    def next_stage(self) -> bool:
        """Advance once the current stage is complete."""
        if self.stage.id not in self.progress.completed_stages:
            return False
        return self.load_stage(self.stage.id + 1)

    def reset_progress(self) -> None:
        """Clear all saved progress and attempts and return to stage 1."""
        if self.session is not None:
            self.session.close()
            self.session = None
        self.progress_store.clear()
        self.progress = GameProgress()
        self.load_stage(1)

    def _remember_code(self) -> None:
        session = self._session
        self.progress.cell_code[session.stage.id] = [cell.code for cell in session.tracker.cells]

    def _save_progress(self) -> None:
        self._remember_code()
        self.progress_store.save(self.progress)

    # ------------------------------------------------------------------
    # Hints and solutions
    # ------------------------------------------------------------------

    def get_hint(self, tier: Union[int, HintTier] = 0) -> Optional[str]:
        """Static hint at a tier's position, or None."""
        index = tier.order if isinstance(tier, HintTier) else tier
        hints = self.stage.hints
        if 0 <= index < len(hints):
            return hints[index]
        return None

    def get_solution(self) -> Union[str, list[str]]:
        """Reference solution: a string, or one string per cell."""
        return self.stage.solution

    def get_full_context(self) -> dict:
        """Complete state for automated agents and tests."""
        session = self._session
        context = self.get_state()
        context.update({
            "current_code": self.get_code(),
            "outputs": self.get_all_outputs(),
            "cell_statuses": self.get_all_cell_statuses(),
            "validation": [cell.rules.to_dict() for cell in self.stage.cells],
            "attempts": [
                [attempt.to_dict() for attempt in cell.attempts]
                for cell in session.tracker.cells
            ],
            "metrics": [
                compute_metrics(cell.attempts).to_dict() for cell in session.tracker.cells
            ],
            "last_reaction": session.last_reaction,
            "solution": self.get_solution(),
        })
        return context

    async def wait_for(self, predicate: Callable[[], Any], timeout_ms: int = 5000) -> bool:
        """
        Poll a predicate until it is truthy.

        Raises:
            TimeoutError: If the predicate stays falsy for timeout_ms.
        """
        deadline = time.monotonic() + timeout_ms / 1000.0
        while True:
            if predicate():
                return True
            if time.monotonic() > deadline:
                raise TimeoutError(f"Condition not met within {timeout_ms} ms")
            await asyncio.sleep(0.05)

    # ------------------------------------------------------------------
    # Assistance
    # ------------------------------------------------------------------

    @property
    def coordinator(self) -> AssistanceCoordinator:
        """The assistance coordinator, creating the generator on first use."""
        if self._coordinator is None:
            generator = self._generator
            if generator is None:
                from assistant.llm_client import LLMClient

                try:
                    generator = LLMClient.create(
                        self.config.llm_provider,
                        self.config.llm_model,
                        timeout=self.config.assistance_timeout,
                    )
                except ValueError as e:
                    raise AssistanceError(str(e), provider=self.config.llm_provider, cause=e)

            self._coordinator = AssistanceCoordinator(
                generator,
                timeout=self.config.assistance_timeout,
                history_window=self.config.history_window,
                policy=self.config.request_policy,
            )
        return self._coordinator

    async def request_assistance(
        self,
        query_type: Union[str, QueryType] = QueryType.HINT,
        cell_index: Optional[int] = None,
        explicit_escalation: bool = False,
        message: Optional[str] = None,
    ) -> Optional[AssistanceResponse]:
        """
        Ask the mentor for help on a cell.

        Generation failures come back as a neutral response; they never
        affect running or validating code.

        Returns:
            AssistanceResponse, or None for an invalid cell index.
        """
        if isinstance(query_type, str):
            query_type = QueryType.from_string(query_type)

        if not self.config.assistance_enabled:
            return AssistanceResponse(
                state=RequestState.FAILED,
                text=ASSISTANCE_DISABLED_MESSAGE,
                query_type=query_type,
            )

        session = self._session
        index = self._resolve(cell_index)
        if not session.activate(index):
            return None

        try:
            coordinator = self.coordinator
        except AssistanceError as e:
            logger.warning(e.message)
            return AssistanceResponse(state=RequestState.FAILED, text=ASSISTANCE_DISABLED_MESSAGE, query_type=query_type)

        request = session.build_request(
            query_type,
            index,
            explicit_escalation=explicit_escalation,
            message=message,
            history=coordinator.history_snapshot(),
        )
        if request is None:
            return None

        response = await coordinator.submit(request, is_current=lambda: session.is_current(index))
        if response.ok and query_type is QueryType.DISCOVERY:
            session.last_reaction = response.text
        return response
