"""
Pedagogy Assessment Module

Validation verdicts, failure feedback and struggle metrics.
"""

from pedagogy.assessment.feedback import Feedback, FeedbackBuilder, explain_code_pattern
from pedagogy.assessment.struggle import StruggleMetrics, compute_metrics, time_bucket
from pedagogy.assessment.validator import (
    Check,
    CodePatternCheck,
    NumberCheck,
    OutputPatternCheck,
    TextCheck,
    ValidationResult,
    Validator,
    build_checks,
    extract_numbers,
)

__all__ = [
    # Validation
    "Validator",
    "ValidationResult",
    "Check",
    "CodePatternCheck",
    "OutputPatternCheck",
    "NumberCheck",
    "TextCheck",
    "build_checks",
    "extract_numbers",
    # Feedback
    "Feedback",
    "FeedbackBuilder",
    "explain_code_pattern",
    # Struggle
    "StruggleMetrics",
    "compute_metrics",
    "time_bucket",
]
