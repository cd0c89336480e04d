"""CLI command printing the persisted lifecycle state of every module."""

from __future__ import annotations

import logging

from repomigrate.cli.common import build_context, console
from repomigrate.errors import ExitCode, MigrationError
from repomigrate.runtime.display import status_table

logger = logging.getLogger("repomigrate.cli.status")


def status_command(args) -> int:
    """Execute the status command.

    Read-only: modules absent from the state store are shown as Pending.
    """
    try:
        context = build_context(args)
    except MigrationError as e:
        logger.error("status failed: %s", e)
        return int(e.exit_code)

    try:
        phase = getattr(args, "phase", None)
        if phase is not None and phase not in context.registry.phases():
            logger.error("Unknown phase %d", phase)
            return int(ExitCode.ERROR)
        console.print(
            status_table(
                context.registry,
                context.store.all_records(),
                phase=phase,
                accepted=context.store.accepted_phases(),
            )
        )
    finally:
        context.close()
    return int(ExitCode.OK)


__all__ = ["status_command"]
