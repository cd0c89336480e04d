"""Operator overrides: acknowledge a failed module, accept a partial phase."""

from __future__ import annotations

import logging

from repomigrate.cli.common import build_context, console
from repomigrate.errors import ExitCode, MigrationError
from repomigrate.runtime.display import state_text
from repomigrate.runtime.lifecycle import ModuleState

logger = logging.getLogger("repomigrate.cli.acknowledge")


def acknowledge_command(args) -> int:
    """Move a failed module back to the start of its failed stage.

    With ``--mark-published`` the module is recorded as published instead,
    for uploads the operator verified in the remote staging area.
    """
    try:
        context = build_context(args)
    except MigrationError as e:
        logger.error("acknowledge failed: %s", e)
        return int(e.exit_code)

    try:
        module = context.registry.get(args.module)
        before = context.store.get(module.name)
        record = context.store.acknowledge(
            module.name, mark_published=getattr(args, "mark_published", False)
        )
    except MigrationError as e:
        logger.error("acknowledge failed: %s", e)
        return int(e.exit_code)
    finally:
        context.close()

    line = state_text(record.state)
    line.append(f"  {record.name} (was failed at {before.failed_stage}: {before.last_error})")
    console.print(line)
    return int(ExitCode.OK)


def accept_phase_command(args) -> int:
    """Accept a phase as partial so the next phase passes the gate."""
    try:
        context = build_context(args)
    except MigrationError as e:
        logger.error("accept-phase failed: %s", e)
        return int(e.exit_code)

    try:
        if args.phase not in context.registry.phases():
            logger.error("Unknown phase %d", args.phase)
            return int(ExitCode.ERROR)
        unpublished = [
            module.name
            for module in context.registry.list_modules(args.phase)
            if context.store.get(module.name).state is not ModuleState.PUBLISHED
        ]
        context.store.accept_phase(args.phase, getattr(args, "note", None))
    finally:
        context.close()

    if unpublished:
        logger.warning(
            "Phase %d accepted with unpublished modules: %s",
            args.phase,
            ", ".join(unpublished),
        )
    console.print(f"Phase {args.phase} accepted")
    return int(ExitCode.OK)


__all__ = ["accept_phase_command", "acknowledge_command"]
