"""Error extractor - classifies interpreter failures into structured context."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from pedagogy.models import ErrorCategory


@dataclass
class ErrorContext:
    """Structured error information for feedback and debug prompts."""

    category: ErrorCategory
    error_message: str
    failed_line: Optional[int] = None
    suggestions: list[str] = field(default_factory=list)
    raw_output: str = ""

    @property
    def error_type(self) -> str:
        """Taxonomy name of the error."""
        return self.category.value

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "error_type": self.error_type,
            "error_message": self.error_message,
            "failed_line": self.failed_line,
            "suggestions": self.suggestions,
        }

    def format_for_prompt(self) -> str:
        """Format error context for inclusion in a debug prompt."""
        if self.category is ErrorCategory.UNCLASSIFIED:
            # Unknown errors go to the generator verbatim.
            return f"Error Output:\n{self.raw_output.strip() or self.error_message}"

        lines = [
            f"Error Type: {self.error_type}",
            f"Error Message: {self.error_message}",
        ]

        if self.failed_line:
            lines.append(f"Failed Line: {self.failed_line}")

        if self.suggestions:
            lines.append("\nSuggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")

        return "\n".join(lines)


class ErrorExtractor:
    """Classify interpreter output against the error taxonomy."""

    # Explicit exception names, e.g. "SyntaxError: invalid syntax"
    EXCEPTION_NAME_PATTERN = re.compile(
        r"^\s*(?:\w+\.)*(?P<name>[A-Z]\w*(?:Error|Exception))\b\s*:?", re.MULTILINE
    )

    # Fallback message heuristics, checked in order when no exception name is present
    MESSAGE_PATTERNS = [
        (ErrorCategory.SYNTAX_ERROR, [
            r"unterminated string literal",
            r"EOL while scanning",
            r"EOF while scanning",
            r"unexpected EOF",
            r"was never closed",
            r"invalid syntax",
        ]),
        (ErrorCategory.INDENTATION_ERROR, [
            r"expected an indented block",
            r"unindent does not match",
            r"unexpected indent",
            r"inconsistent use of tabs",
        ]),
        (ErrorCategory.NAME_ERROR, [
            r"name '[^']+' is not defined",
            r"is not defined",
        ]),
        (ErrorCategory.TYPE_ERROR, [
            r"can only concatenate",
            r"unsupported operand",
            r"object is not callable",
            r"object is not subscriptable",
        ]),
        (ErrorCategory.ZERO_DIVISION_ERROR, [
            r"division by zero",
            r"modulo by zero",
        ]),
        (ErrorCategory.INDEX_ERROR, [
            r"index out of range",
        ]),
    ]

    LINE_PATTERN = re.compile(r"line (\d+)")

    # Suggestion rules based on error category
    SUGGESTIONS = {
        ErrorCategory.SYNTAX_ERROR: [
            "Check that every opening quote has a matching closing quote",
            "Make sure every ( [ { is closed",
            "Statements like if, for, while and def end with a colon",
        ],
        ErrorCategory.INDENTATION_ERROR: [
            "Lines inside a block (after a colon) must be indented",
            "Use the same number of spaces for every line in a block",
            "Avoid mixing tabs and spaces",
        ],
        ErrorCategory.NAME_ERROR: [
            "Check the spelling of the variable or function name",
            "Make sure the variable is assigned before it is used",
            "Variables from earlier cells only exist once those cells pass",
        ],
        ErrorCategory.TYPE_ERROR: [
            "Text and numbers can't be joined with + directly; try str() or an f-string",
            "Check that you're calling something that is actually a function",
            "Look at which values the operator is being applied to",
        ],
        ErrorCategory.ZERO_DIVISION_ERROR: [
            "A value you're dividing by is zero",
            "Check how the divisor is calculated",
        ],
        ErrorCategory.INDEX_ERROR: [
            "Lists start at index 0; the last index is len(list) - 1",
            "Check the length of the list before indexing",
        ],
        ErrorCategory.UNCLASSIFIED: [
            "Read the last line of the error message carefully",
            "Try running a smaller part of the code first",
        ],
    }

    def classify(self, error_text: str) -> ErrorCategory:
        """
        Classify error text into the taxonomy.

        An explicit exception name always wins over message heuristics, so an
        unterminated string literal reported as SyntaxError is never mistaken
        for an IndentationError.

        Args:
            error_text: Error output from the interpreter.

        Returns:
            The matching ErrorCategory, or UNCLASSIFIED.
        """
        if not error_text or not error_text.strip():
            return ErrorCategory.UNCLASSIFIED

        names = [m.group("name") for m in self.EXCEPTION_NAME_PATTERN.finditer(error_text)]
        if names:
            # The final exception line of a traceback is the one that was raised.
            return ErrorCategory.from_exception_name(names[-1])

        for category, patterns in self.MESSAGE_PATTERNS:
            for pattern in patterns:
                if re.search(pattern, error_text, re.IGNORECASE):
                    return category

        return ErrorCategory.UNCLASSIFIED

    def extract(self, error_text: str) -> ErrorContext:
        """
        Extract structured error context from interpreter error output.

        Args:
            error_text: Error output from the interpreter.

        Returns:
            ErrorContext with classified error information.
        """
        category = self.classify(error_text)
        return ErrorContext(
            category=category,
            error_message=self._extract_error_message(error_text),
            failed_line=self._extract_failed_line(error_text),
            suggestions=self.get_suggestions(category, error_text),
            raw_output=error_text,
        )

    def _extract_error_message(self, error_text: str) -> str:
        """Extract the most relevant line of the error output."""
        lines = [line.strip() for line in (error_text or "").strip().split("\n") if line.strip()]
        if not lines:
            return "The code raised an error"

        for line in reversed(lines):
            if self.EXCEPTION_NAME_PATTERN.match(line):
                return line

        return lines[-1][:200]

    def _extract_failed_line(self, error_text: str) -> Optional[int]:
        """Find the reported line number, if any."""
        matches = self.LINE_PATTERN.findall(error_text or "")
        if matches:
            return int(matches[-1])
        return None

    def get_suggestions(self, category: ErrorCategory, error_text: str = "") -> list[str]:
        """Get fix suggestions for an error category."""
        suggestions = self.SUGGESTIONS.get(category, self.SUGGESTIONS[ErrorCategory.UNCLASSIFIED]).copy()

        lowered = (error_text or "").lower()
        if "string literal" in lowered or "eol while scanning" in lowered:
            suggestions.insert(0, "A string is missing its closing quote")
        if "can only concatenate str" in lowered:
            suggestions.insert(0, "Convert the number with str() before joining it to text")

        return suggestions[:4]
