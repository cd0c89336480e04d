"""Main CLI entry point for repomigrate.

Provides commands: extract, validate, publish, run-phase, status,
acknowledge, accept-phase, check, push
"""

import argparse
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from repomigrate.cli.acknowledge import accept_phase_command, acknowledge_command
from repomigrate.cli.check import check_command
from repomigrate.cli.modules import extract_command, publish_command, push_command, validate_command
from repomigrate.cli.run_phase import run_phase_command
from repomigrate.cli.status import status_command
from repomigrate.errors import ExitCode

logger = logging.getLogger("repomigrate.cli")


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """Setup logging configuration with Rich integration.

    Args:
        verbose: Enable verbose logging.
        log_file: Also write plain log lines to this file (optional).
        console: Rich Console instance for coordinated output (optional).
    """
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    handlers: list = [
        RichHandler(
            console=console or Console(stderr=True),
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=verbose,
            log_time_format="[%H:%M:%S]",
        )
    ]
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(name)s] [%(levelname)s] %(message)s")
        )
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if log_file else level,
        format="[%(name)s] [%(levelname)s] %(message)s",
        handlers=handlers,
    )
    handlers[0].setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repomigrate",
        description="Repomigrate - split a multi-module tree into published standalone repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-c",
        "--config",
        help=(
            "Optional migration configuration. Can be a path to a TOML/JSON "
            "file or an inline TOML/JSON string. When omitted, built-in "
            "defaults are used."
        ),
    )
    parser.add_argument(
        "--catalog",
        help="Module catalog file (TOML/JSON with a 'modules' list); overrides the configured catalog",
    )
    parser.add_argument(
        "--log-file",
        help="Output log to file (optional). When specified, logs are written to this file in addition to console.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (
        ("extract", "Extract one module into its standalone repository"),
        ("validate", "Run the readiness rules against an extracted module"),
        ("push", "Push an extracted module to its hosting repository"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("module", help="Module name as listed in the catalog")

    publish_parser = subparsers.add_parser(
        "publish",
        help="Deploy a validated module to the artifact repository (irreversible)",
    )
    publish_parser.add_argument("module", help="Module name as listed in the catalog")
    publish_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before publishing",
    )

    run_parser = subparsers.add_parser(
        "run-phase",
        help="Extract, validate and publish every module of a phase",
    )
    run_parser.add_argument(
        "phase",
        help="Phase number, or 'all' to run every phase in order",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log every step without executing or persisting anything",
    )
    run_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before publishing",
    )

    status_parser = subparsers.add_parser(
        "status",
        help="Show the lifecycle state of every module",
    )
    status_parser.add_argument(
        "--phase",
        type=int,
        help="Only show modules of this phase",
    )

    ack_parser = subparsers.add_parser(
        "acknowledge",
        help="Clear a failed module so the next run retries its failed stage",
    )
    ack_parser.add_argument("module", help="Module name as listed in the catalog")
    ack_parser.add_argument(
        "--mark-published",
        action="store_true",
        help="Record a publication verified by hand in the remote staging area",
    )

    accept_parser = subparsers.add_parser(
        "accept-phase",
        help="Accept a partially published phase so the next phase may start",
    )
    accept_parser.add_argument("phase", type=int, help="Phase number")
    accept_parser.add_argument("--note", help="Reason recorded with the acceptance")

    subparsers.add_parser(
        "check",
        help="Verify external tools, credentials and the source repository",
    )

    return parser


def main() -> int:
    """Main CLI entry point.

    Returns:
        int: Exit code.
    """
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.verbose, getattr(args, "log_file", None))

    if not args.command:
        parser.print_help()
        return int(ExitCode.ERROR)

    # Dispatch to subcommand
    if args.command == "extract":
        return extract_command(args)
    elif args.command == "validate":
        return validate_command(args)
    elif args.command == "publish":
        return publish_command(args)
    elif args.command == "push":
        return push_command(args)
    elif args.command == "run-phase":
        return run_phase_command(args)
    elif args.command == "status":
        return status_command(args)
    elif args.command == "acknowledge":
        return acknowledge_command(args)
    elif args.command == "accept-phase":
        return accept_phase_command(args)
    elif args.command == "check":
        return check_command(args)
    parser.print_help()
    return int(ExitCode.ERROR)


if __name__ == "__main__":
    sys.exit(main())
