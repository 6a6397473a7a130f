"""CLI entry point for mmgen.

Generates Mermaid diagrams from Go source code and validates, repairs or
explains existing diagrams.

Usage:
    python -m mmgen file sequence cmd/main.go
    python -m mmgen component class service orders --out-dir diagrams
    python -m mmgen map class --split --out-dir diagrams
    python -m mmgen validate diagram.mmd --fix
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from mmgen.config import load_settings
from mmgen.core import get_logger, setup_logging
from mmgen.diagram import DiagramKind
from mmgen.llm.backend import LLMError
from mmgen.llm.generator import PartialBatchFailure
from mmgen.output import FileTrainingLogger, OutputWriter, diagram_filename
from mmgen.service import DiagramService
from mmgen.source import InvalidUnitError, SourceNotFoundError
from mmgen.validation import format_linter_output, validate

logger = get_logger("cli")

KIND_CHOICES = [kind.value for kind in DiagramKind]


# =============================================================================
# Helpers
# =============================================================================


def _create_service(args: argparse.Namespace) -> DiagramService:
    """Build a DiagramService from command line options and the environment."""
    settings = load_settings(max_fix_retries=getattr(args, "retries", None))
    training_logger = FileTrainingLogger.from_environment(getattr(args, "log_dir", None))
    if training_logger is not None:
        logger.info(f"Training logs: {training_logger.session_dir}")
    return DiagramService.from_backend(
        model=args.model,
        source_root=args.root,
        settings=settings,
        training_logger=training_logger,
    )


def _emit(args: argparse.Namespace, name: str, diagram: str) -> None:
    """Save the diagram under --out-dir, or print it."""
    if args.out_dir:
        OutputWriter(args.out_dir).save(name, diagram)
    else:
        print(diagram)


# =============================================================================
# Generate Commands
# =============================================================================


async def cmd_file(args: argparse.Namespace) -> int:
    """Handle the file command."""
    service = _create_service(args)
    logger.info(f"Generating {args.kind} diagram for {args.path}")
    diagram = await service.generate_file_diagram(args.path, args.kind)
    _emit(args, diagram_filename(Path(args.path).name, args.kind), diagram)
    return 0


async def cmd_component(args: argparse.Namespace) -> int:
    """Handle the component command."""
    service = _create_service(args)
    logger.info(f"Generating {args.kind} diagram for {args.type} {args.name}")
    diagram = await service.generate_component_diagram(f"{args.type}:{args.name}", args.kind)
    _emit(args, diagram_filename(args.type, args.name, args.kind), diagram)
    return 0


async def cmd_map(args: argparse.Namespace) -> int:
    """Handle the map command."""
    service = _create_service(args)
    logger.info(f"Generating project {args.kind} diagram")
    diagram = await service.generate_project_diagram(args.kind)

    if args.split and args.out_dir:
        outputs = OutputWriter(args.out_dir).save_split(diagram, args.kind)
        logger.info(f"Saved {len(outputs)} diagram file(s) to {args.out_dir}")
        return 0
    if args.split:
        logger.warning("--split has no effect without --out-dir")

    _emit(args, diagram_filename("project", args.kind), diagram)
    return 0


# =============================================================================
# Validate Command
# =============================================================================


async def cmd_validate(args: argparse.Namespace) -> int:
    """Handle the validate command.

    Exit status is 0 when the (possibly repaired) diagram is valid.
    """
    if args.file:
        content = args.file.read_text(encoding="utf-8")
        name = args.file.stem
    else:
        content = sys.stdin.read()
        name = "stdin"

    validation = validate(content)
    print(format_linter_output(validation))

    if validation.is_valid or not (args.fix or args.explain):
        return 0 if validation.is_valid else 1

    service = _create_service(args)

    if args.explain:
        print(await service.explain(validation))

    if not args.fix:
        return 1

    outcome = await service.fix(content, args.retries)
    if outcome.error is not None:
        logger.error(f"Diagram still invalid after {len(outcome.attempts)} fix attempt(s)")
        print(outcome.error.report())
        return 1

    logger.info(f"Diagram fixed after {len(outcome.attempts)} attempt(s)")
    _emit(args, diagram_filename(name, "fixed"), outcome.artifact)
    return 0


# =============================================================================
# Parser
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all commands."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--out-dir",
        "-o",
        type=Path,
        default=None,
        help="Write .mmd files to this directory (prints to stdout if not specified)",
    )
    common.add_argument(
        "--model",
        "-m",
        type=str,
        default=None,
        help="LLM model name (e.g. claude-sonnet-4-5, gpt-4.1-mini)",
    )
    common.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Source root (default: MMGEN_SOURCE_ROOT or current directory)",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    parser = argparse.ArgumentParser(
        prog="python -m mmgen",
        description="Generate and repair Mermaid diagrams from source code",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    file_parser = subparsers.add_parser(
        "file", parents=[common], help="Generate a diagram for one source file"
    )
    file_parser.add_argument("kind", choices=KIND_CHOICES, help="Diagram type")
    file_parser.add_argument("path", type=Path, help="Source file, relative to the root")
    file_parser.set_defaults(func=cmd_file)

    component_parser = subparsers.add_parser(
        "component", parents=[common], help="Generate a diagram for one component"
    )
    component_parser.add_argument("kind", choices=KIND_CHOICES, help="Diagram type")
    component_parser.add_argument(
        "type", help="Component type (service, repository, adapter, model, config)"
    )
    component_parser.add_argument("name", help="Component name")
    component_parser.set_defaults(func=cmd_component)

    map_parser = subparsers.add_parser(
        "map", parents=[common], help="Generate a project-wide diagram"
    )
    map_parser.add_argument(
        "kind",
        choices=sorted(kind.value for kind in DiagramKind if kind.is_project_kind),
        help="Project diagram type",
    )
    map_parser.add_argument(
        "--split",
        action="store_true",
        help="Also save one file per component section (requires --out-dir)",
    )
    map_parser.set_defaults(func=cmd_map)

    validate_parser = subparsers.add_parser(
        "validate", parents=[common], help="Validate an existing diagram"
    )
    validate_parser.add_argument(
        "file",
        type=Path,
        nargs="?",
        default=None,
        help="Diagram file (reads stdin if not specified)",
    )
    validate_parser.add_argument("--fix", action="store_true", help="Repair with the LLM")
    validate_parser.add_argument(
        "--explain", action="store_true", help="Ask the LLM to explain the errors"
    )
    validate_parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Max fix attempts (default: MERMAID_FIX_RETRIES or 3)",
    )
    validate_parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Write training logs here (default: MERMAID_LOG_DIR, off if unset)",
    )
    validate_parser.set_defaults(func=cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        return asyncio.run(args.func(args))
    except (SourceNotFoundError, InvalidUnitError, ValueError) as e:
        logger.error(str(e))
        return 1
    except PartialBatchFailure as e:
        for unit_id, result in e.failed.items():
            logger.error(f"{unit_id}: {result.error}")
        return 1
    except LLMError as e:
        logger.error(f"LLM request failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
