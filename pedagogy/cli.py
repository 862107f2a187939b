"""
Command line entry point for checking solutions against the curriculum.

Usage:
    python -m pedagogy stages
    python -m pedagogy run 3 my_solution.py
    python -m pedagogy run 8 notebook.py          # cells separated by "# %%"
    python -m pedagogy hint 3 my_solution.py --type debug --provider mock
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Optional

from pedagogy.config import PedagogyConfig
from pedagogy.exceptions import PedagogyError
from pedagogy.models import QueryType
from pedagogy.session import Game

logger = logging.getLogger(__name__)

CELL_MARKER = re.compile(r"^#\s*%%.*$", re.MULTILINE)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def split_cells(source: str) -> list[str]:
    """Split a file into cells on "# %%" marker lines."""
    parts = [part.strip("\n") for part in CELL_MARKER.split(source)]
    cells = [part for part in parts if part.strip()]
    return cells or [source]


def load_cells(game: Game, stage_id: int, path: Path) -> list[str]:
    """Load a stage and put the file's code into its cells."""
    if not game.load_stage(stage_id):
        raise SystemExit(f"Stage {stage_id} not found (1-{game.total_stages})")

    cells = split_cells(path.read_text(encoding="utf-8"))
    expected = len(game.stage.cells)
    if len(cells) != expected:
        raise SystemExit(f"Stage {stage_id} has {expected} cell(s), {path} has {len(cells)}")

    for index, code in enumerate(cells):
        game.set_code(code, index)
    return cells


def run_all(game: Game, upto: Optional[int] = None, quiet: bool = False) -> bool:
    """Run cells in order, stopping at the first failure. Returns True if all passed."""
    last = len(game.stage.cells) - 1 if upto is None else upto
    for index in range(last + 1):
        result = game.run_code(index)
        if result is None:
            raise SystemExit(f"Invalid cell index: {index}")
        if not quiet:
            print_result(game, index, result)
        if not result["passed"]:
            return False
    return True


def print_result(game: Game, index: int, result: dict) -> None:
    """Print one cell's output and feedback."""
    label = f"Cell {index + 1}" if game.stage.is_multi_cell else "Output"
    print(f"--- {label} ---")
    print(result["output"].rstrip() or "(no output)")
    print()
    print(result["feedback_text"])
    print()


def cmd_stages(game: Game, args: argparse.Namespace) -> int:
    completed = set(game.progress.completed_stages)
    stages = game.loader.load()
    print(game.loader.game_info.get("title", "Stages"))
    print("-" * 50)
    for stage in stages:
        mark = "x" if stage.id in completed else " "
        kind = f"{len(stage.cells)} cells" if stage.is_multi_cell else "single"
        print(f"[{mark}] {stage.id:>2}. {stage.title:<32} {kind}")
    return 0


def cmd_run(game: Game, args: argparse.Namespace) -> int:
    load_cells(game, args.stage, args.file)
    passed = run_all(game, upto=args.cell)
    if game.get_state()["is_stage_complete"]:
        print(f"Stage {args.stage} complete!")
    return 0 if passed else 1


def cmd_hint(game: Game, args: argparse.Namespace) -> int:
    load_cells(game, args.stage, args.file)
    cell = args.cell if args.cell is not None else len(game.stage.cells) - 1
    run_all(game, upto=cell, quiet=True)

    response = asyncio.run(
        game.request_assistance(
            args.type,
            cell_index=cell,
            explicit_escalation=args.more,
            message=args.message,
        )
    )
    if response is None:
        print(f"Invalid cell index: {cell}")
        return 2

    if response.tier is not None:
        print(f"[{response.tier.value} hint]")
    print(response.text)
    return 0 if response.ok else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate Python solutions against the Alexandria curriculum"
    )
    parser.add_argument(
        "--curriculum",
        type=Path,
        help="Path to a stages YAML file",
    )
    parser.add_argument(
        "--progress",
        type=Path,
        help="Path to a progress JSON file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stages", help="List the stages")

    run = sub.add_parser("run", help="Run and validate a solution file")
    run.add_argument("stage", type=int, help="Stage number")
    run.add_argument("file", type=Path, help="Solution file")
    run.add_argument("--cell", type=int, help="Stop after this cell (0-based)")

    hint = sub.add_parser("hint", help="Ask the mentor about a solution file")
    hint.add_argument("stage", type=int, help="Stage number")
    hint.add_argument("file", type=Path, help="Solution file")
    hint.add_argument("--cell", type=int, help="Cell to ask about (0-based, default: last)")
    hint.add_argument(
        "--type",
        choices=[q.value for q in QueryType],
        default=QueryType.HINT.value,
        help="Kind of help",
    )
    hint.add_argument("--more", action="store_true", help="Ask for a more detailed hint")
    hint.add_argument("--message", help="Question for the mentor")
    hint.add_argument("--provider", help="LLM provider (ollama, openai, anthropic, mock)")
    hint.add_argument("--model", help="LLM model name")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    config = PedagogyConfig.from_env()
    if args.curriculum:
        config.curriculum_path = args.curriculum
    if args.progress:
        config.progress_path = args.progress
    if args.command == "hint":
        config.assistance_enabled = True
        if args.provider:
            config.llm_provider = args.provider
        if args.model:
            config.llm_model = args.model

    commands = {"stages": cmd_stages, "run": cmd_run, "hint": cmd_hint}
    try:
        game = Game(config=config)
        return commands[args.command](game, args)
    except PedagogyError as e:
        logger.debug(f"{type(e).__name__}: {e.details}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
