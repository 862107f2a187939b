"""Assistance request/response types and the cancellation token."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pedagogy.assessment.struggle import StruggleMetrics
from pedagogy.curriculum.cells import Output
from pedagogy.models import HintTier, QueryType, Stage, ValidationRuleSet


class RequestState(Enum):
    """Lifecycle of one assistance request."""

    IDLE = "idle"
    AWAITING = "awaiting"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class CancellationToken:
    """Thread-safe flag threaded through a generator call."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Mark the request as abandoned."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Check if the request was abandoned."""
        return self._event.is_set()


@dataclass(frozen=True)
class Turn:
    """One message in the conversation history."""

    role: str  # "learner" or "mentor"
    content: str


@dataclass
class AssistanceRequest:
    """Everything the generator is told about one request."""

    query_type: QueryType
    stage: Stage
    cell_index: int
    code: str
    rules: ValidationRuleSet
    metrics: StruggleMetrics
    output: Optional[Output] = None
    context_code: str = ""
    tier: Optional[HintTier] = None
    history: tuple[Turn, ...] = ()
    message: Optional[str] = None
    token: CancellationToken = field(default_factory=CancellationToken)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "query_type": self.query_type.value,
            "stage": self.stage.id,
            "cell_index": self.cell_index,
            "tier": self.tier.value if self.tier else None,
            "metrics": self.metrics.to_dict(),
            "message": self.message,
            "history_turns": len(self.history),
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AssistanceResponse:
    """Result of one request, after filtering."""

    state: RequestState
    text: str
    query_type: QueryType
    tier: Optional[HintTier] = None
    cell_index: Optional[int] = None

    @property
    def ok(self) -> bool:
        """True when generated text was delivered."""
        return self.state is RequestState.FULFILLED

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "text": self.text,
            "query_type": self.query_type.value,
            "tier": self.tier.value if self.tier else None,
            "cell_index": self.cell_index,
        }
