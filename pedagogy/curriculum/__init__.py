"""
Pedagogy Curriculum Module

Handles stage loading, cell state, code execution and error classification.
"""

from pedagogy.curriculum.cells import Attempt, Cell, CellStateTracker, Output
from pedagogy.curriculum.error_extractor import ErrorContext, ErrorExtractor
from pedagogy.curriculum.interpreter import Interpreter, InterpreterResult, PythonInterpreter
from pedagogy.curriculum.loader import StageLoader

__all__ = [
    # Loader
    "StageLoader",
    # Cell state
    "CellStateTracker",
    "Cell",
    "Output",
    "Attempt",
    # Interpreter
    "Interpreter",
    "InterpreterResult",
    "PythonInterpreter",
    # Error handling
    "ErrorExtractor",
    "ErrorContext",
]
