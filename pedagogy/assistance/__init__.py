"""
Pedagogy Assistance Module

Hint tiers, prompt assembly, the response safety filter and the request
coordinator.
"""

from pedagogy.assistance.assistant import AssistanceCoordinator, AssistanceGenerator
from pedagogy.assistance.context_injector import BlockType, ContextBlock, ContextInjector
from pedagogy.assistance.requests import (
    AssistanceRequest,
    AssistanceResponse,
    CancellationToken,
    RequestState,
    Turn,
)
from pedagogy.assistance.safety_filter import (
    looks_like_inline_solution,
    looks_like_solution,
    sanitize,
)
from pedagogy.assistance.tiers import TierController

__all__ = [
    # Coordinator
    "AssistanceCoordinator",
    "AssistanceGenerator",
    "AssistanceRequest",
    "AssistanceResponse",
    "CancellationToken",
    "RequestState",
    "Turn",
    # Prompt assembly
    "ContextInjector",
    "BlockType",
    "ContextBlock",
    # Safety filter
    "sanitize",
    "looks_like_solution",
    "looks_like_inline_solution",
    # Tiers
    "TierController",
]
