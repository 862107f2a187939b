"""
Prompt Templates for the Alexandria mentor

This package contains all prompt text:
- system_prompts.py: Persona, query instructions, hint tier instructions
"""

from .system_prompts import (
    DEFAULT_PERSONA,
    RETRY_MESSAGE,
    UNAVAILABLE_MESSAGE,
    MentorPersona,
    get_core_system_prompt,
    get_query_instruction,
    get_tier_instruction,
)

__all__ = [
    "MentorPersona",
    "DEFAULT_PERSONA",
    "get_core_system_prompt",
    "get_query_instruction",
    "get_tier_instruction",
    "UNAVAILABLE_MESSAGE",
    "RETRY_MESSAGE",
]
