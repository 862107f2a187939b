"""Validation engine - judges a cell's code and output against its rule set."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from pedagogy.curriculum.cells import Cell, Output
from pedagogy.models import ErrorCategory, ValidationRuleSet

logger = logging.getLogger(__name__)

NUMBER_TOLERANCE = 1e-3

# Numeric tokens: integers and decimals, optionally negative. Digits glued to
# letters ("Depth150", "AD2200") still count.
NUMBER_PATTERN = re.compile(r"(?<![\d.])-?\d+(?:\.\d+)?")

_WHITESPACE = re.compile(r"\s+")


def compile_pattern(pattern: str, flags: int = 0) -> re.Pattern:
    """
    Compile an author-written pattern.

    Invalid regular expressions degrade to literal matching of the pattern
    text instead of raising.
    """
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        logger.warning(f"Invalid validation pattern {pattern!r} ({e}); matching it literally")
        return re.compile(re.escape(pattern), flags)


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def extract_numbers(text: str) -> list[float]:
    """All numeric tokens in the text, in order."""
    return [float(token) for token in NUMBER_PATTERN.findall(text or "")]


@dataclass(frozen=True)
class CheckOutcome:
    """Outcome of one check category."""

    kind: str
    passed: bool
    matched: tuple[str, ...] = ()
    missing: tuple[Union[str, float], ...] = ()


@dataclass(frozen=True)
class CodePatternCheck:
    """Regex patterns that the source code must contain."""

    patterns: tuple[str, ...]
    flexible: bool = True

    kind = "code_patterns"

    def evaluate(self, code: str, output: str) -> CheckOutcome:
        return _match_patterns(self.kind, self.patterns, [code], self.flexible)


@dataclass(frozen=True)
class OutputPatternCheck:
    """Regex patterns that the output must contain."""

    patterns: tuple[str, ...]
    flexible: bool = True

    kind = "output_patterns"

    def evaluate(self, code: str, output: str) -> CheckOutcome:
        # Whitespace differences in printed output are not the learner's concern.
        return _match_patterns(
            self.kind, self.patterns, [output, normalize_whitespace(output)], self.flexible
        )


@dataclass(frozen=True)
class NumberCheck:
    """Numbers that must all appear in the output, in any order."""

    numbers: tuple[float, ...]
    tolerance: float = NUMBER_TOLERANCE

    kind = "required_numbers"

    def evaluate(self, code: str, output: str) -> CheckOutcome:
        found = set(extract_numbers(output))
        missing = tuple(
            number for number in dict.fromkeys(self.numbers)
            if not any(abs(number - value) <= self.tolerance for value in found)
        )
        return CheckOutcome(
            kind=self.kind,
            passed=not missing,
            matched=tuple(_display(n) for n in self.numbers if n not in missing),
            missing=missing,
        )


@dataclass(frozen=True)
class TextCheck:
    """Substrings that must all appear in the output, ignoring case."""

    texts: tuple[str, ...]

    kind = "required_text"

    def evaluate(self, code: str, output: str) -> CheckOutcome:
        lowered = output.lower()
        missing = tuple(text for text in self.texts if text.lower() not in lowered)
        return CheckOutcome(
            kind=self.kind,
            passed=not missing,
            matched=tuple(text for text in self.texts if text not in missing),
            missing=missing,
        )


Check = Union[CodePatternCheck, OutputPatternCheck, NumberCheck, TextCheck]


def _match_patterns(
    kind: str,
    patterns: tuple[str, ...],
    subjects: list[str],
    flexible: bool,
) -> CheckOutcome:
    """Any-match (flexible, case-insensitive) or all-match (strict, case-sensitive)."""
    flags = re.IGNORECASE if flexible else 0
    matched: list[str] = []
    missing: list[str] = []

    for pattern in patterns:
        compiled = compile_pattern(pattern, flags)
        if any(compiled.search(subject) for subject in subjects):
            matched.append(pattern)
        else:
            missing.append(pattern)

    passed = bool(matched) if flexible else not missing
    return CheckOutcome(kind=kind, passed=passed, matched=tuple(matched), missing=tuple(missing))


def _display(number: float) -> Union[int, float]:
    return int(number) if float(number).is_integer() else number


def build_checks(rules: ValidationRuleSet) -> list[Check]:
    """Translate a rule set into its non-empty checks. Empty categories are vacuous."""
    checks: list[Check] = []
    if rules.code_patterns:
        checks.append(CodePatternCheck(rules.code_patterns, rules.flexible))
    if rules.output_patterns:
        checks.append(OutputPatternCheck(rules.output_patterns, rules.flexible))
    if rules.required_numbers:
        checks.append(NumberCheck(rules.required_numbers))
    if rules.required_text:
        checks.append(TextCheck(rules.required_text))
    return checks


@dataclass
class ValidationResult:
    """Verdict for one run of a cell, with diagnostics."""

    passed: bool
    matched_patterns: list[str] = field(default_factory=list)
    missing_patterns: list[str] = field(default_factory=list)
    missing_numbers: list[float] = field(default_factory=list)
    missing_text: list[str] = field(default_factory=list)
    failed_checks: list[str] = field(default_factory=list)
    error_category: Optional[ErrorCategory] = None
    error_message: Optional[str] = None
    no_output: bool = False

    @property
    def is_error(self) -> bool:
        """True when the run raised instead of producing output."""
        return self.error_category is not None

    @property
    def reason(self) -> str:
        """One-line summary of why the verdict was reached."""
        if self.passed:
            return "All validations passed"
        if self.is_error:
            message = self.error_message or "the code raised an error"
            if message.startswith(self.error_category.value):
                return message
            return f"{self.error_category.value}: {message}"
        if self.no_output:
            return "The code produced no output"

        parts = []
        if self.missing_numbers:
            parts.append("missing numbers " + ", ".join(str(_display(n)) for n in self.missing_numbers))
        if self.missing_text:
            parts.append("missing text " + ", ".join(self.missing_text))
        if "code_patterns" in self.failed_checks:
            parts.append("code structure does not match")
        if "output_patterns" in self.failed_checks:
            parts.append("output format does not match")
        return "; ".join(parts) or "Validation failed"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "passed": self.passed,
            "reason": self.reason,
            "matched_patterns": self.matched_patterns,
            "missing_patterns": self.missing_patterns,
            "missing_numbers": [_display(n) for n in self.missing_numbers],
            "missing_text": self.missing_text,
            "failed_checks": self.failed_checks,
            "error_category": self.error_category.value if self.error_category else None,
            "error_message": self.error_message,
        }


class Validator:
    """
    Evaluate cells against their rule sets.

    A verdict is the AND of every non-empty check category. Within a
    category, flexible rules accept any matching pattern while strict rules
    require all of them. Output that is an error always fails.
    """

    def evaluate(self, cell: Cell, rules: ValidationRuleSet) -> ValidationResult:
        """
        Judge a cell's current code and last output.

        Args:
            cell: The cell whose code and last_output are judged.
            rules: The cell's validation rule set.

        Returns:
            ValidationResult with the verdict and diagnostics.
        """
        return self.check(cell.code, cell.last_output or Output(), rules)

    def check(self, code: str, output: Output, rules: ValidationRuleSet) -> ValidationResult:
        """Judge code and output directly."""
        if output.is_error:
            category = output.error_category or ErrorCategory.UNCLASSIFIED
            logger.debug(f"Run raised {category.value}; verdict is failed")
            lines = output.text.strip().splitlines()
            return ValidationResult(
                passed=False,
                error_category=category,
                error_message=output.error_message or (lines[-1] if lines else None),
            )

        result = ValidationResult(passed=True)
        for check in build_checks(rules):
            outcome = check.evaluate(code, output.text)
            logger.debug(f"{outcome.kind}: passed={outcome.passed} missing={list(outcome.missing)}")

            if isinstance(check, (CodePatternCheck, OutputPatternCheck)):
                result.matched_patterns.extend(outcome.matched)
                if not outcome.passed:
                    result.missing_patterns.extend(outcome.missing)
            elif isinstance(check, NumberCheck):
                result.missing_numbers.extend(outcome.missing)
            elif isinstance(check, TextCheck):
                result.missing_text.extend(outcome.missing)

            if not outcome.passed:
                result.passed = False
                result.failed_checks.append(outcome.kind)

        if not result.passed and not output.text.strip():
            result.no_output = True

        return result
