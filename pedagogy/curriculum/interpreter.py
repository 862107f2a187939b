"""Interpreter - executes learner Python code and captures its output."""

from __future__ import annotations

import builtins
import io
import logging
import sys
import threading
import time
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from pedagogy.curriculum.error_extractor import ErrorExtractor
from pedagogy.models import ErrorCategory

logger = logging.getLogger(__name__)

CELL_FILENAME = "<cell>"
CONTEXT_FILENAME = "<context>"
WORKER_NAME = "pedagogy-cell"

# Seconds a timed-out worker gets to unwind after being told to stop.
STOP_GRACE = 2.0


@dataclass
class InterpreterResult:
    """Result of executing a cell's code."""

    stdout: str
    error: Optional[str] = None
    error_category: Optional[ErrorCategory] = None
    duration: float = 0.0

    @property
    def success(self) -> bool:
        """True when the code ran without raising."""
        return self.error is None

    @property
    def text(self) -> str:
        """Everything the learner should see: printed output then the error."""
        if self.error is None:
            return self.stdout
        if self.stdout:
            return f"{self.stdout.rstrip()}\n{self.error}"
        return self.error

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "stdout": self.stdout,
            "error": self.error,
            "error_category": self.error_category.value if self.error_category else None,
            "duration": self.duration,
        }


class Interpreter(Protocol):
    """Protocol for the embedded interpreter."""

    def execute(self, code: str, context: str = "") -> InterpreterResult:
        """Run `code` after silently running the accumulated `context`."""
        ...


class _StopExecution(BaseException):
    """Raised inside a timed-out run; learner `except Exception` blocks let it through."""


def _make_stop_tracer(stop: threading.Event) -> Callable:
    """Trace function that aborts learner frames once stop is set."""

    def trace_lines(frame: Any, event: str, arg: Any) -> Callable:
        if stop.is_set():
            raise _StopExecution()
        return trace_lines

    def trace_calls(frame: Any, event: str, arg: Any) -> Optional[Callable]:
        if frame.f_code.co_filename not in (CELL_FILENAME, CONTEXT_FILENAME):
            return None
        return trace_lines(frame, event, arg)

    return trace_calls


def _make_print(buffer: io.StringIO, stop: Optional[threading.Event] = None) -> Callable[..., None]:
    """print() replacement that writes to buffer unless a file is given."""

    def captured_print(*args: Any, sep: str = " ", end: str = "\n", file: Any = None, flush: bool = False) -> None:
        if stop is not None and stop.is_set():
            raise _StopExecution()
        builtins.print(*args, sep=sep, end=end, file=file or buffer)

    return captured_print


class PythonInterpreter:
    """
    In-process interpreter for learner code.

    Each execution gets a fresh namespace. The accumulated code of earlier
    passed cells runs first with its output discarded, so later cells see the
    same variables a notebook kernel would hold.
    """

    def __init__(self, timeout: float = 10.0, error_extractor: Optional[ErrorExtractor] = None):
        """
        Initialize the interpreter.

        Args:
            timeout: Seconds before a run is reported as timed out.
            error_extractor: Classifier for error output.
        """
        self.timeout = timeout
        self.error_extractor = error_extractor or ErrorExtractor()

    def _run(self, code: str, context: str, outcome: Dict[str, Any], stop: threading.Event) -> None:
        """Execute context then code, recording output and error text."""
        buffer = io.StringIO()
        learner_builtins = dict(vars(builtins))
        learner_builtins["print"] = _make_print(io.StringIO(), stop)
        learner_builtins["input"] = lambda prompt="": ""
        namespace: Dict[str, Any] = {"__builtins__": learner_builtins, "__name__": "__main__"}

        try:
            if context.strip():
                exec(compile(context, CONTEXT_FILENAME, "exec"), namespace)
            # Functions defined in earlier cells print into this cell's output too.
            learner_builtins["print"] = _make_print(buffer, stop)
            exec(compile(code, CELL_FILENAME, "exec"), namespace)
        except _StopExecution:
            outcome["stopped"] = True
        except SyntaxError as e:
            outcome["error"] = "".join(traceback.format_exception_only(type(e), e)).rstrip()
        except Exception as e:
            outcome["error"] = self._format_runtime_error(e)
        finally:
            sys.settrace(None)

        outcome["stdout"] = buffer.getvalue()

    def _traced_run(self, code: str, context: str, outcome: Dict[str, Any], stop: threading.Event) -> None:
        """Run with a per-thread tracer so a timed-out run can be stopped."""
        sys.settrace(_make_stop_tracer(stop))
        self._run(code, context, outcome, stop)

    def _format_runtime_error(self, error: Exception) -> str:
        """Short traceback limited to frames in learner code."""
        frames = [
            frame for frame in traceback.extract_tb(error.__traceback__)
            if frame.filename in (CELL_FILENAME, CONTEXT_FILENAME)
        ]
        lines = []
        if frames:
            lines.append("Traceback (most recent call last):")
            for frame in frames:
                lines.append(f'  File "{frame.filename}", line {frame.lineno}')
        lines.append("".join(traceback.format_exception_only(type(error), error)).rstrip())
        return "\n".join(lines)

    def execute(self, code: str, context: str = "") -> InterpreterResult:
        """
        Execute learner code and capture its output.

        Args:
            code: The cell's source code.
            context: Accumulated code from earlier passed cells.

        Returns:
            InterpreterResult with stdout and classified error, if any.
        """
        outcome: Dict[str, Any] = {"stdout": "", "error": None}
        start_time = time.time()
        stop = threading.Event()

        worker = threading.Thread(
            target=self._traced_run,
            args=(code, context, outcome, stop),
            name=WORKER_NAME,
            daemon=True,
        )
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            logger.warning(f"Execution exceeded {self.timeout}s; stopping run")
            stop.set()
            worker.join(STOP_GRACE)
            if worker.is_alive():
                logger.warning("Timed-out run did not stop; leaving it to finish in the background")
            return InterpreterResult(
                stdout="",
                error=f"TimeoutError: execution took longer than {self.timeout:g} seconds (is there an endless loop?)",
                error_category=ErrorCategory.UNCLASSIFIED,
                duration=time.time() - start_time,
            )

        error = outcome["error"]
        return InterpreterResult(
            stdout=outcome["stdout"],
            error=error,
            error_category=self.error_extractor.classify(error) if error else None,
            duration=time.time() - start_time,
        )
