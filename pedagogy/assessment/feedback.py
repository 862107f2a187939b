"""Failure feedback - explains a failed verdict to the learner."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from pedagogy.assessment.validator import ValidationResult, extract_numbers
from pedagogy.curriculum.error_extractor import ErrorExtractor
from pedagogy.models import Stage, ValidationRuleSet


@dataclass
class Feedback:
    """Learner-facing explanation of a verdict."""

    status_text: str
    message: str
    suggested_hints: list[str] = field(default_factory=list)
    pattern_explanations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "status_text": self.status_text,
            "message": self.message,
            "suggested_hints": self.suggested_hints,
            "pattern_explanations": self.pattern_explanations,
        }

    def format(self) -> str:
        """Plain-text rendering for terminals and logs."""
        lines = [f"[{self.status_text}] {self.message}"]
        for explanation in self.pattern_explanations:
            lines.append(f"  - {explanation}")
        if self.suggested_hints:
            lines.append("Hints:")
            for hint in self.suggested_hints:
                lines.append(f"  * {hint}")
        return "\n".join(lines)


def explain_code_pattern(pattern: str) -> str:
    """Describe a code pattern in plain words."""
    if re.search(r"for\\s[+*]", pattern):
        return "Your code needs a for loop to go through the data (e.g. for item in items:)"

    func = re.search(r"def\\s[+*]([A-Za-z_]\w*)", pattern)
    if func:
        return f'Define a function named "{func.group(1)}" (e.g. def {func.group(1)}(...):)'
    if pattern.startswith("def"):
        return "Define a function with def"

    if pattern.startswith("if"):
        return "Your code needs an if statement to make a decision"

    var = re.search(r"(?<!\\)\b([A-Za-z_]\w*)\\s\*=", pattern)
    if var:
        return f'Create or use a variable named "{var.group(1)}"'

    method = re.search(r"\\\.([A-Za-z_]\w*)", pattern)
    if method:
        return f"Use the .{method.group(1)}() method"

    call = re.match(r"([A-Za-z_]\w*)\\s\*\\\(", pattern)
    if call:
        return f"Call {call.group(1)}() in your code"

    return f"Expected code structure: {_readable(pattern)}"


def explain_output_pattern(pattern: str) -> str:
    """Describe an output pattern in plain words."""
    return f"Expected output like: {_readable(pattern)}"


def _readable(pattern: str) -> str:
    """Make a regex roughly readable."""
    readable = pattern
    for token, replacement in (
        (".*", " <any text> "),
        (".+", " <some text> "),
        (r"\d+", "<number>"),
        (r"\w+", "<name>"),
        (r"\s*", " "),
        (r"\s+", " "),
        ("|", " OR "),
    ):
        readable = readable.replace(token, replacement)
    readable = re.sub(r"[()\[\]^$]", "", readable).replace("\\", "")
    return re.sub(r"\s+", " ", readable).strip()


class FeedbackBuilder:
    """Build feedback for failed verdicts."""

    # Keywords that make a static hint relevant to a failure kind
    HINT_KEYWORDS = {
        "required_numbers": ("calculat", "math", "number", "sum", "count"),
        "required_text": ("format", "print", "output", "text"),
        "output_patterns": ("format", "structure", "shape", "print"),
        "code_patterns": ("code", "syntax", "structure", "shape"),
    }

    # Status precedence when several categories fail
    STATUS_ORDER = [
        ("output_patterns", "Pattern Mismatch"),
        ("required_text", "Missing Text"),
        ("required_numbers", "Wrong Numbers"),
        ("code_patterns", "Missing Structure"),
    ]

    def __init__(self, error_extractor: Optional[ErrorExtractor] = None):
        self.error_extractor = error_extractor or ErrorExtractor()

    def build(
        self,
        result: ValidationResult,
        output_text: str,
        rules: ValidationRuleSet,
        stage: Optional[Stage] = None,
    ) -> Feedback:
        """
        Explain a validation result.

        Args:
            result: The verdict being explained.
            output_text: The output the learner's code produced.
            rules: The rule set the cell was judged against.
            stage: Stage providing static hints.

        Returns:
            Feedback; passing results get a short success message.
        """
        hints = list(stage.hints) if stage else []

        if result.passed:
            return Feedback(status_text="Passed", message="All validations passed")

        if result.is_error:
            context = self.error_extractor.extract(output_text)
            return Feedback(
                status_text=result.error_category.value,
                message=context.error_message,
                suggested_hints=context.suggestions[:2],
            )

        if result.no_output:
            return Feedback(
                status_text="No Output",
                message=(
                    "Your code ran but didn't print anything. Use print() to show "
                    "results and check that the printing lines are actually reached."
                ),
                suggested_hints=hints[:1],
            )

        status_text = "Validation Failed"
        for kind, text in self.STATUS_ORDER:
            if kind in result.failed_checks:
                status_text = text
                break

        message_parts = []
        if result.missing_numbers:
            found = ", ".join(_number(n) for n in extract_numbers(output_text)) or "none"
            message_parts.append(
                f"Expected numbers: {', '.join(_number(n) for n in rules.required_numbers)}. "
                f"Your output contains: {found}. "
                f"Missing: {', '.join(_number(n) for n in result.missing_numbers)}."
            )
        if result.missing_text:
            message_parts.append(f"Missing required text: {', '.join(result.missing_text)}.")
        if "output_patterns" in result.failed_checks:
            message_parts.append("Your output format doesn't match what the challenge asks for.")
        if "code_patterns" in result.failed_checks:
            message_parts.append("Your code is missing a structure the challenge asks for.")

        explanations = []
        for pattern in result.missing_patterns:
            if pattern in rules.code_patterns:
                explanations.append(explain_code_pattern(pattern))
            else:
                explanations.append(explain_output_pattern(pattern))

        return Feedback(
            status_text=status_text,
            message=" ".join(message_parts) or result.reason,
            suggested_hints=self.relevant_hints(hints, result.failed_checks),
            pattern_explanations=explanations,
        )

    def relevant_hints(self, hints: list[str], failed_checks: list[str], limit: int = 2) -> list[str]:
        """Pick static hints mentioning keywords of the failed categories."""
        keywords = [kw for kind in failed_checks for kw in self.HINT_KEYWORDS.get(kind, ())]
        chosen = [hint for hint in hints if any(kw in hint.lower() for kw in keywords)]
        if not chosen:
            chosen = hints[:1]
        return chosen[:limit]


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
