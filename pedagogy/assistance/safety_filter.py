"""
Response safety filter - keeps hints from handing over working solutions.

The classifier functions (looks_like_solution, looks_like_inline_solution)
are pure and independent of how prompts are built. When a span cannot be
confidently classified it is left alone.
"""

from __future__ import annotations

import logging
import re

from pedagogy.models import HintTier, QueryType

logger = logging.getLogger(__name__)

BLOCK_ENCOURAGEMENT = (
    "I'll hold back the full code here. You have the pieces now, "
    "so try writing this part yourself and run it to see what happens!"
)
INLINE_ENCOURAGEMENT = "try putting that step into code yourself"

# Closed fenced blocks: ```lang\n ... ```
FENCED_BLOCK = re.compile(r"```[\w+-]*[ \t]*\n(?P<body>.*?)```", re.DOTALL)
# Any fenced region, used to keep the inline pass out of code blocks
ANY_FENCE = re.compile(r"```.*?```", re.DOTALL)

LEAD_IN_SPAN = re.compile(
    r"\b(?:try this|try|write|use|type|add|do this)(?:\s+something like)?\s*:\s*`(?P<code>[^`\n]+)`",
    re.IGNORECASE,
)

CALL = re.compile(r"(?<![\w.])(?P<name>[A-Za-z_][\w.]*)\s*\((?P<args>[^()]*)\)")
LOOP_HEADER = re.compile(r"^(?P<indent>[ \t]*)(?:for\s+.+?\s+in\s+.+?|while\s+.+?):(?P<body>.*)$")
DEF_HEADER = re.compile(r"^(?P<indent>[ \t]*)def\s+\w+\s*\(.*\)\s*(?:->.*?)?:(?P<body>.*)$")

INLINE_LOOP = re.compile(r"^\s*(?:for\s+\w[\w\s,]*?\s+in\s+\S|while\s+\S)")
INLINE_DEF = re.compile(r"^\s*def\s+\w+\s*\(")

PLACEHOLDER_ARG = re.compile(r"^(?:\.\.\.|_+|\?+|<[^>]*>)$")
PLACEHOLDER_LINE = re.compile(r"^\s*(?:\.\.\.|pass|_{2,}|#.*)?\s*$")
NOT_CALLS = {"if", "elif", "while", "for", "return", "and", "or", "not", "in", "def", "class", "lambda"}


def _is_concrete_call(match: re.Match, line_prefix: str) -> bool:
    """A call whose arguments are real values, not placeholders."""
    if match.group("name") in NOT_CALLS:
        return False
    if re.search(r"\b(?:def|class)\s+$", line_prefix):
        return False
    args = [arg.strip() for arg in match.group("args").split(",")]
    return any(arg and not PLACEHOLDER_ARG.match(arg) for arg in args)


def _has_concrete_call(code: str) -> bool:
    for line in code.splitlines():
        for match in CALL.finditer(line):
            if _is_concrete_call(match, line[:match.start()]):
                return True
    return False


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _has_indented_body(lines: list[str], header_index: int) -> bool:
    """True when the header is followed by an indented, non-placeholder statement."""
    header_indent = _indent_width(lines[header_index])
    for line in lines[header_index + 1:]:
        if not line.strip():
            continue
        if _indent_width(line) <= header_indent:
            return False
        if not PLACEHOLDER_LINE.match(line):
            return True
    return False


def _has_block_construct(code: str, header: re.Pattern) -> bool:
    lines = code.splitlines()
    for i, line in enumerate(lines):
        match = header.match(line)
        if not match:
            continue
        if not PLACEHOLDER_LINE.match(match.group("body")):
            return True
        if _has_indented_body(lines, i):
            return True
    return False


def looks_like_solution(code: str) -> bool:
    """
    Check whether a code block holds a complete solution construct.

    Constructs: a call with concrete arguments, a loop header with an
    indented body, or a function definition with a body.

    Args:
        code: Contents of a fenced code block.

    Returns:
        True if the block should be withheld from a hint.
    """
    return (
        _has_concrete_call(code)
        or _has_block_construct(code, LOOP_HEADER)
        or _has_block_construct(code, DEF_HEADER)
    )


def looks_like_inline_solution(span: str) -> bool:
    """Check whether an inline code span holds a call, loop header or def signature."""
    span = span.strip()
    if INLINE_DEF.match(span) or INLINE_LOOP.match(span):
        return True
    return any(
        match.group("name") not in NOT_CALLS
        for match in CALL.finditer(span)
    )


def _sanitize_blocks(text: str) -> str:
    def replace(match: re.Match) -> str:
        body = match.group("body")
        lines = [line for line in body.splitlines() if line.strip()]
        if len(lines) > 1 and looks_like_solution(body):
            logger.info("Withheld a solution-shaped code block from a hint")
            return BLOCK_ENCOURAGEMENT
        return match.group(0)

    return FENCED_BLOCK.sub(replace, text)


def _sanitize_prose(text: str) -> str:
    def replace(match: re.Match) -> str:
        if not looks_like_inline_solution(match.group("code")):
            return match.group(0)
        logger.info("Withheld an inline code instruction from a hint")
        phrase = match.group(0)
        if phrase[:1].isupper():
            return INLINE_ENCOURAGEMENT[0].upper() + INLINE_ENCOURAGEMENT[1:]
        return INLINE_ENCOURAGEMENT

    pieces = []
    position = 0
    for fence in ANY_FENCE.finditer(text):
        pieces.append(LEAD_IN_SPAN.sub(replace, text[position:fence.start()]))
        pieces.append(fence.group(0))
        position = fence.end()
    pieces.append(LEAD_IN_SPAN.sub(replace, text[position:]))
    return "".join(pieces)


def sanitize(text: str, query_type: QueryType, tier: HintTier) -> str:
    """
    Remove solution-revealing code from a hint response.

    Only hints below the scaffold tier are filtered; every other query type
    and scaffold hints pass through unchanged. Applying the filter to its own
    output returns the same text.

    Args:
        text: Generated response text.
        query_type: Kind of request that produced the text.
        tier: Hint tier the request was made at.

    Returns:
        The filtered text.
    """
    if not text or query_type is not QueryType.HINT or tier is HintTier.SCAFFOLD:
        return text
    return _sanitize_prose(_sanitize_blocks(text))
