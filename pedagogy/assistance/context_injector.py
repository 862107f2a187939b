"""Context injector - builds assistance prompts with structured context blocks.

Block Types:
    [TASK] - Stage title, challenge and cell instruction
    [DATA] - The narrative data the learner works with
    [EARLIER_CELLS] - Code of passed cells this cell builds on
    [CODE] - The learner's current code
    [OUTPUT] - Output of the last run
    [ERROR] - Classified error information with type and message
    [GOAL] - What the checker looks for, without answer values
    [STRUGGLE] - Attempts, time spent and repeated errors
    [HISTORY] - Recent conversation turns
    [MESSAGE] - The learner's own words (chat)
    [INSTRUCTIONS] - Query and tier instructions
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from assistant.prompts import (
    MentorPersona,
    get_core_system_prompt,
    get_query_instruction,
    get_tier_instruction,
)
from pedagogy.assistance.requests import AssistanceRequest
from pedagogy.curriculum.error_extractor import ErrorExtractor
from pedagogy.models import QueryType


class BlockType(Enum):
    """Enumeration of structured context block types."""

    TASK = "TASK"
    DATA = "DATA"
    EARLIER_CELLS = "EARLIER_CELLS"
    CODE = "CODE"
    OUTPUT = "OUTPUT"
    ERROR = "ERROR"
    GOAL = "GOAL"
    STRUGGLE = "STRUGGLE"
    HISTORY = "HISTORY"
    MESSAGE = "MESSAGE"
    INSTRUCTIONS = "INSTRUCTIONS"


@dataclass
class ContextBlock:
    """A structured context block with type and content."""

    block_type: BlockType
    content: str
    metadata: Optional[Dict[str, str]] = None

    def render(self) -> str:
        """Render the block with delimiters."""
        tag = self.block_type.value

        if self.metadata and self.block_type == BlockType.ERROR:
            attrs = "; ".join(f"{k}={v}" for k, v in self.metadata.items())
            return f"[{tag}] {attrs}\n{self.content}\n[/{tag}]"

        return f"[{tag}]\n{self.content}\n[/{tag}]"


class ContextInjector:
    """Assemble the prompt for an assistance request.

    The answer values a rule set checks for (numbers, exact patterns) never
    enter the prompt; only the kind of requirement does.
    """

    MAX_OUTPUT_CHARS = 800

    def __init__(self, persona: Optional[MentorPersona] = None, error_extractor: Optional[ErrorExtractor] = None):
        """
        Initialize context injector.

        Args:
            persona: Mentor persona for the system prompt.
            error_extractor: Classifier for error output.
        """
        self.persona = persona
        self.error_extractor = error_extractor or ErrorExtractor()

    def build_block(
        self,
        block_type: BlockType,
        content: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ContextBlock:
        """Create a structured context block."""
        return ContextBlock(block_type=block_type, content=content, metadata=metadata)

    def render_blocks(self, blocks: List[ContextBlock]) -> str:
        """Render multiple blocks into a single prompt string."""
        return "\n\n".join(block.render() for block in blocks)

    def build_system_prompt(self) -> str:
        """Build the persona system prompt."""
        return get_core_system_prompt(self.persona)

    def _task_content(self, request: AssistanceRequest) -> str:
        stage = request.stage
        lines = [f"Stage {stage.id}: {stage.title}", stage.challenge.strip()]
        if stage.is_multi_cell and 0 <= request.cell_index < len(stage.cells):
            instruction = stage.cells[request.cell_index].instruction
            lines.append(f"Current cell ({request.cell_index + 1} of {len(stage.cells)}): {instruction}")
        return "\n".join(lines)

    def _goal_content(self, request: AssistanceRequest) -> Optional[str]:
        rules = request.rules
        if rules.is_empty:
            return None
        lines = []
        if rules.code_patterns:
            lines.append("- The code must use specific Python constructs")
        if rules.output_patterns:
            lines.append("- The printed output must follow a particular format")
        if rules.required_numbers:
            lines.append("- The output must contain the correct calculated numbers")
        if rules.required_text:
            lines.append("- The output must include the words: " + ", ".join(rules.required_text))
        return "\n".join(lines)

    def _instructions(self, request: AssistanceRequest) -> str:
        instruction = get_query_instruction(request.query_type.value)
        if request.query_type is QueryType.HINT and request.tier is not None:
            instruction = f"{instruction}\n\n{get_tier_instruction(request.tier.value)}"
        return instruction

    def build_prompt(self, request: AssistanceRequest) -> str:
        """
        Build the user prompt for a request.

        Args:
            request: The assistance request.

        Returns:
            Prompt string with structured blocks.
        """
        blocks: List[ContextBlock] = []

        blocks.append(self.build_block(BlockType.TASK, self._task_content(request)))

        if request.stage.data:
            blocks.append(self.build_block(BlockType.DATA, request.stage.data.strip()))

        if request.context_code:
            blocks.append(self.build_block(BlockType.EARLIER_CELLS, request.context_code.strip()))

        blocks.append(self.build_block(BlockType.CODE, request.code.strip() or "[No code yet]"))

        output = request.output
        if output is not None and output.is_error:
            error_context = self.error_extractor.extract(output.text)
            blocks.append(
                self.build_block(
                    BlockType.ERROR,
                    error_context.format_for_prompt(),
                    metadata={
                        "type": error_context.error_type,
                        "message": error_context.error_message[:100],
                    },
                )
            )
        elif output is not None:
            text = output.text.strip() or "[No output]"
            if len(text) > self.MAX_OUTPUT_CHARS:
                text = text[:self.MAX_OUTPUT_CHARS] + "\n... [truncated]"
            blocks.append(self.build_block(BlockType.OUTPUT, text))

        if request.query_type in (QueryType.HINT, QueryType.DEBUG):
            goal = self._goal_content(request)
            if goal:
                blocks.append(self.build_block(BlockType.GOAL, goal))
            blocks.append(self.build_block(BlockType.STRUGGLE, request.metrics.describe()))

        if request.history:
            history = "\n".join(f"{turn.role}: {turn.content}" for turn in request.history)
            blocks.append(self.build_block(BlockType.HISTORY, history))

        if request.message:
            blocks.append(self.build_block(BlockType.MESSAGE, request.message.strip()))

        blocks.append(self.build_block(BlockType.INSTRUCTIONS, self._instructions(request)))

        return self.render_blocks(blocks)
