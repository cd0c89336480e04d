"""Helpers shared by the CLI commands."""

from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from rich.console import Console
from rich.prompt import Confirm

from repomigrate.runtime.config_loader import load_migration_config
from repomigrate.runtime.context import MigrationContext
from repomigrate.runtime.orchestrator import PhaseOrchestrator

logger = logging.getLogger("repomigrate.cli")

console = Console()


def build_context(args) -> MigrationContext:
    """Load configuration and catalog named on the command line.

    Raises:
        ConfigError: If the configuration is invalid.
        RegistryError: If the catalog is invalid.
    """
    config = load_migration_config(getattr(args, "config", None))
    catalog = getattr(args, "catalog", None)
    return MigrationContext.build(config, catalog=Path(catalog) if catalog else None)


@contextmanager
def cancel_on_interrupt(orchestrator: PhaseOrchestrator) -> Iterator[None]:
    """Turn Ctrl-C into an orchestrator cancellation while the block runs.

    Running subprocesses are terminated and their modules marked failed;
    a second Ctrl-C falls back to the default KeyboardInterrupt.
    """

    def _handler(signum, frame):
        logger.warning("Interrupted; cancelling running modules (Ctrl-C again to abort)")
        signal.signal(signal.SIGINT, previous)
        orchestrator.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def confirm_publication(description: str, assume_yes: bool) -> bool:
    """Ask before an irreversible upload unless ``--yes`` was given."""
    if assume_yes:
        return True
    return Confirm.ask(
        f"[bold]{description}[/bold]\nPublication cannot be undone. Continue?",
        console=console,
        default=False,
    )


__all__ = ["build_context", "cancel_on_interrupt", "confirm_publication", "console"]
