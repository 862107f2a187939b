"""
Alexandria Pedagogy Engine

Adaptive validation and hint safety for a narrative Python-teaching game:
stages are checked with layered rules, and mentor responses are kept from
revealing solutions.
"""

from pedagogy.config import PedagogyConfig, get_config, set_config

# Curriculum
from pedagogy.curriculum import (
    Attempt,
    Cell,
    CellStateTracker,
    ErrorContext,
    ErrorExtractor,
    Interpreter,
    InterpreterResult,
    Output,
    PythonInterpreter,
    StageLoader,
)

# Assessment
from pedagogy.assessment import (
    Feedback,
    FeedbackBuilder,
    StruggleMetrics,
    ValidationResult,
    Validator,
    compute_metrics,
)

# Assistance
from pedagogy.assistance import (
    AssistanceCoordinator,
    AssistanceRequest,
    AssistanceResponse,
    ContextInjector,
    RequestState,
    TierController,
    sanitize,
)
from pedagogy.exceptions import (
    AssistanceError,
    ConfigurationError,
    CurriculumError,
    InvalidCellIndexError,
    PedagogyError,
    StageNotFoundError,
)
from pedagogy.models import (
    CellSpec,
    CellStatus,
    ErrorCategory,
    HintTier,
    QueryType,
    Stage,
    ValidationRuleSet,
)
from pedagogy.progress import GameProgress, ProgressStore
from pedagogy.session import Game, RunOutcome, StageSession

__version__ = "0.1.0"

__all__ = [
    # Config
    "PedagogyConfig",
    "get_config",
    "set_config",
    # Models
    "Stage",
    "CellSpec",
    "CellStatus",
    "ValidationRuleSet",
    "HintTier",
    "QueryType",
    "ErrorCategory",
    # Curriculum
    "StageLoader",
    "CellStateTracker",
    "Cell",
    "Output",
    "Attempt",
    "Interpreter",
    "InterpreterResult",
    "PythonInterpreter",
    "ErrorExtractor",
    "ErrorContext",
    # Assessment
    "Validator",
    "ValidationResult",
    "Feedback",
    "FeedbackBuilder",
    "StruggleMetrics",
    "compute_metrics",
    # Assistance
    "AssistanceCoordinator",
    "AssistanceRequest",
    "AssistanceResponse",
    "ContextInjector",
    "RequestState",
    "TierController",
    "sanitize",
    # Session
    "Game",
    "StageSession",
    "RunOutcome",
    # Progress
    "GameProgress",
    "ProgressStore",
    # Exceptions
    "PedagogyError",
    "StageNotFoundError",
    "InvalidCellIndexError",
    "CurriculumError",
    "AssistanceError",
    "ConfigurationError",
]
