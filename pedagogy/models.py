"""Core data models for the pedagogy engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class CellStatus(Enum):
    """Lifecycle of a single code cell."""

    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def display(self) -> str:
        """Status with an indicator glyph."""
        icons = {
            "pending": "○",
            "passed": "✓",
            "failed": "✗",
        }
        return f"{icons[self.value]} {self.value.title()}"


class HintTier(Enum):
    """Escalating levels of assistance specificity."""

    CONCEPTUAL = "conceptual"
    STRUCTURAL = "structural"
    SCAFFOLD = "scaffold"

    @property
    def order(self) -> int:
        """Numeric order for comparison."""
        return list(HintTier).index(self)

    def __lt__(self, other: HintTier) -> bool:
        if not isinstance(other, HintTier):
            return NotImplemented
        return self.order < other.order

    def __le__(self, other: HintTier) -> bool:
        if not isinstance(other, HintTier):
            return NotImplemented
        return self.order <= other.order

    def __gt__(self, other: HintTier) -> bool:
        if not isinstance(other, HintTier):
            return NotImplemented
        return self.order > other.order

    def __ge__(self, other: HintTier) -> bool:
        if not isinstance(other, HintTier):
            return NotImplemented
        return self.order >= other.order

    @classmethod
    def from_string(cls, value: str) -> HintTier:
        """Create HintTier from string value."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid hint tier: {value}")

    def next_tier(self) -> HintTier:
        """Get the next tier up, capped at SCAFFOLD."""
        tiers = list(HintTier)
        return tiers[min(self.order + 1, len(tiers) - 1)]


class QueryType(Enum):
    """Kinds of assistance a learner can ask for."""

    HINT = "hint"
    DEBUG = "debug"
    EXPLAIN = "explain"
    DISCOVERY = "discovery"
    CHAT = "chat"

    @classmethod
    def from_string(cls, value: str) -> QueryType:
        """Create QueryType from string value."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid query type: {value}")


class ErrorCategory(Enum):
    """Taxonomy of interpreter errors used for struggle tracking and debug prompts."""

    SYNTAX_ERROR = "SyntaxError"
    INDENTATION_ERROR = "IndentationError"
    NAME_ERROR = "NameError"
    TYPE_ERROR = "TypeError"
    ZERO_DIVISION_ERROR = "ZeroDivisionError"
    INDEX_ERROR = "IndexError"
    UNCLASSIFIED = "Unclassified"

    @classmethod
    def from_exception_name(cls, name: str) -> ErrorCategory:
        """Map an exception class name onto the taxonomy."""
        aliases = {
            "TabError": cls.INDENTATION_ERROR,
            "UnboundLocalError": cls.NAME_ERROR,
        }
        if name in aliases:
            return aliases[name]
        for category in cls:
            if category.value == name:
                return category
        return cls.UNCLASSIFIED


@dataclass(frozen=True)
class ValidationRuleSet:
    """Author-written correctness criteria for a cell's code and output."""

    flexible: bool = True
    code_patterns: tuple[str, ...] = ()
    output_patterns: tuple[str, ...] = ()
    required_numbers: tuple[float, ...] = ()
    required_text: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        """True when no category constrains the cell."""
        return not (
            self.code_patterns
            or self.output_patterns
            or self.required_numbers
            or self.required_text
        )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> ValidationRuleSet:
        """Build a rule set from content-store data (snake or camel case keys)."""
        data = data or {}

        def pick(snake: str, camel: str) -> list:
            value = data.get(snake, data.get(camel)) or []
            if isinstance(value, (str, int, float)):
                value = [value]
            return list(value)

        return cls(
            flexible=bool(data.get("flexible", True)),
            code_patterns=tuple(str(p) for p in pick("code_patterns", "codePatterns")),
            output_patterns=tuple(str(p) for p in pick("output_patterns", "outputPatterns")),
            required_numbers=tuple(float(n) for n in pick("required_numbers", "requiredNumbers")),
            required_text=tuple(str(t) for t in pick("required_text", "requiredText")),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "flexible": self.flexible,
            "code_patterns": list(self.code_patterns),
            "output_patterns": list(self.output_patterns),
            "required_numbers": [_format_number(n) for n in self.required_numbers],
            "required_text": list(self.required_text),
        }


@dataclass(frozen=True)
class CellSpec:
    """Static definition of one runnable cell within a stage."""

    index: int
    instruction: str = ""
    starter_code: str = ""
    solution: str = ""
    rules: ValidationRuleSet = field(default_factory=ValidationRuleSet)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "index": self.index,
            "instruction": self.instruction,
            "starter_code": self.starter_code,
            "solution": self.solution,
            "validation": self.rules.to_dict(),
        }


@dataclass(frozen=True)
class Stage:
    """One narrative + exercise unit containing one or more cells."""

    id: int
    title: str
    challenge: str
    cells: tuple[CellSpec, ...]
    story: str = ""
    data: str = ""
    hints: tuple[str, ...] = ()
    concepts: tuple[str, ...] = ()

    @property
    def is_multi_cell(self) -> bool:
        """Check if the stage has more than one cell."""
        return len(self.cells) > 1

    @property
    def stage_type(self) -> str:
        """'multi-cell' or 'single-cell'."""
        return "multi-cell" if self.is_multi_cell else "single-cell"

    @property
    def solution(self) -> Union[str, list[str]]:
        """Reference solution: a string for single-cell stages, a list otherwise."""
        if self.is_multi_cell:
            return [cell.solution for cell in self.cells]
        return self.cells[0].solution if self.cells else ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "type": self.stage_type,
            "story": self.story,
            "challenge": self.challenge,
            "data": self.data,
            "hints": list(self.hints),
            "concepts": list(self.concepts),
            "cells": [cell.to_dict() for cell in self.cells],
        }


def _format_number(value: float) -> Union[int, float]:
    """Render whole floats as ints for display."""
    return int(value) if float(value).is_integer() else value
