"""Tests for the validation engine."""

from __future__ import annotations

from pedagogy.assessment.validator import (
    NumberCheck,
    TextCheck,
    Validator,
    build_checks,
    extract_numbers,
)
from pedagogy.curriculum.cells import Cell, Output
from pedagogy.curriculum.interpreter import PythonInterpreter
from pedagogy.models import ErrorCategory, ValidationRuleSet


def check(code: str, output: str, **rules):
    return Validator().check(code, Output(text=output), ValidationRuleSet(**rules))


class TestNumbers:
    """Tests for number extraction and matching."""

    def test_extract_numbers(self):
        """Integers, decimals and negatives are found."""
        assert extract_numbers("Total: 65, mean -3.5 and 4.0") == [65.0, -3.5, 4.0]

    def test_numbers_glued_to_words(self):
        """Digits right after letters or underscores are still numbers."""
        assert extract_numbers("Depth150 metres") == [150.0]
        assert extract_numbers("AD2200") == [2200.0]
        assert extract_numbers("item_150 and 1,500") == [150.0, 1.0, 500.0]

    def test_concatenated_output_passes(self):
        """Output built with string concatenation satisfies required numbers."""
        interpreter = PythonInterpreter()
        result = interpreter.execute('depth = 150\nprint("Depth" + str(depth) + " metres")')

        verdict = Validator().check(
            'print("Depth" + str(depth))',
            Output(text=result.text),
            ValidationRuleSet(required_numbers=(150,)),
        )

        assert result.text == "Depth150 metres\n"
        assert verdict.passed
        assert verdict.missing_numbers == []

    def test_tolerance(self):
        """Numbers within 1e-3 count as equal."""
        assert NumberCheck((4.0,)).evaluate("", "4.0005").passed
        assert not NumberCheck((4.0,)).evaluate("", "4.01").passed

    def test_any_order(self):
        """Required numbers may appear in any order."""
        result = check("", "22 then 65 then 5", required_numbers=(5, 22, 65))
        assert result.passed

    def test_missing_numbers_reported(self):
        """Missing numbers are listed in the result."""
        result = check("", "Count: 5", required_numbers=(5, 65))

        assert not result.passed
        assert result.missing_numbers == [65.0]
        assert result.failed_checks == ["required_numbers"]


class TestText:
    """Tests for required text."""

    def test_case_insensitive(self):
        """Required text matches regardless of case."""
        assert TextCheck(("Alexandria",)).evaluate("", "SCROLL OF ALEXANDRIA").passed

    def test_all_required(self):
        """Every required string must appear."""
        result = check("", "Roman layer", required_text=("Roman", "Pharaonic"))

        assert not result.passed
        assert result.missing_text == ["Pharaonic"]


class TestPatterns:
    """Tests for flexible and strict pattern categories."""

    def test_flexible_accepts_any_match(self):
        """Flexible rules pass when one pattern matches, ignoring case."""
        result = check(
            "FOR layer in layers:\n    print(layer)",
            "x",
            code_patterns=(r"for\s+\w+\s+in", r"while\s"),
        )
        assert result.passed
        assert result.missing_patterns == []

    def test_strict_requires_all(self):
        """Strict rules need every pattern, case-sensitively."""
        rules = dict(flexible=False, code_patterns=(r"\.strip\(\)", r"\.upper\(\)"))

        assert check("s.strip().upper()", "x", **rules).passed

        result = check("s.strip().lower()", "x", **rules)
        assert not result.passed
        assert result.missing_patterns == [r"\.upper\(\)"]

    def test_strict_is_case_sensitive(self):
        """Strict output patterns respect case."""
        result = check("", "the library", flexible=False, output_patterns=("THE LIBRARY",))
        assert not result.passed

    def test_output_whitespace_is_normalized(self):
        """Output patterns also match with whitespace collapsed."""
        result = check("", "Layer 1:\n   Pharaonic", output_patterns=(r"Layer 1: Pharaonic",))
        assert result.passed

    def test_invalid_regex_matches_literally(self):
        """A malformed pattern is matched as plain text instead of raising."""
        result = check("print(len(x))", "3", code_patterns=("len(",))
        assert result.passed

    def test_missing_patterns_only_from_failed_categories(self):
        """Unmatched patterns of a passing flexible category are not reported."""
        result = check(
            "total = sum(depths)",
            "no numbers here",
            code_patterns=(r"sum\s*\(", r"for\s"),
            output_patterns=(r"Total:\s*\d+",),
        )

        assert not result.passed
        assert result.failed_checks == ["output_patterns"]
        assert result.missing_patterns == [r"Total:\s*\d+"]
        assert r"sum\s*\(" in result.matched_patterns


class TestVerdict:
    """Tests for the combined verdict."""

    def test_all_categories_must_pass(self):
        """The verdict is the AND of every non-empty category."""
        rules = dict(code_patterns=(r"sum\s*\(",), required_numbers=(65,))

        assert check("print(sum(d))", "65", **rules).passed
        assert not check("print(65)", "65", **rules).passed
        assert not check("print(sum(d))", "64", **rules).passed

    def test_empty_rules_pass(self):
        """A cell without rules passes whenever it runs cleanly."""
        assert check("x = 1", "").passed
        assert ValidationRuleSet().is_empty

    def test_error_output_fails(self):
        """Output that is an error fails regardless of rules."""
        output = Output(
            text="NameError: name 'depths' is not defined",
            is_error=True,
            error_category=ErrorCategory.NAME_ERROR,
        )
        result = Validator().check("print(depths)", output, ValidationRuleSet())

        assert not result.passed
        assert result.is_error
        assert result.error_category is ErrorCategory.NAME_ERROR
        assert result.error_message == "NameError: name 'depths' is not defined"
        assert result.reason.startswith("NameError")

    def test_no_output(self):
        """A failing run with empty output is flagged."""
        result = check("x = 65", "", required_numbers=(65,))

        assert not result.passed
        assert result.no_output
        assert result.reason == "The code produced no output"

    def test_function_definition_and_call(self):
        """A defined and called function printing the answer passes."""
        result = check(
            "def f():\n  print(42)\n\nf()",
            "42\n",
            code_patterns=(r"def\s+\w+",),
            required_numbers=(42,),
        )
        assert result.passed

    def test_evaluate_uses_last_output(self):
        """evaluate() judges a cell's code and last output."""
        cell = Cell(index=0, code="print(sum(d))", last_output=Output(text="Total 65"))
        rules = ValidationRuleSet(code_patterns=(r"sum",), required_numbers=(65,))

        assert Validator().evaluate(cell, rules).passed

    def test_build_checks_skips_empty_categories(self):
        """Only constrained categories become checks."""
        checks = build_checks(ValidationRuleSet(required_text=("a",)))
        assert [c.kind for c in checks] == ["required_text"]

    def test_to_dict(self):
        """Results serialize with whole numbers shown as ints."""
        data = check("", "1", required_numbers=(65,)).to_dict()

        assert data["passed"] is False
        assert data["missing_numbers"] == [65]
        assert data["error_category"] is None
