"""CLI command running whole phases through the pipeline."""

from __future__ import annotations

import logging

from repomigrate.cli.common import build_context, cancel_on_interrupt, confirm_publication, console
from repomigrate.errors import ExitCode, MigrationError
from repomigrate.runtime.display import summary_panel
from repomigrate.runtime.lifecycle import ModuleState, RunMode
from repomigrate.runtime.orchestrator import PhaseOrchestrator

logger = logging.getLogger("repomigrate.cli.run_phase")


def run_phase_command(args) -> int:
    """Execute the run-phase command.

    Args:
        args: Parsed command-line arguments (``phase``, ``dry_run``, ``yes``).

    Returns:
        int: Exit code of the run summary, or of the error that stopped it.
    """
    mode = RunMode.DRY_RUN if getattr(args, "dry_run", False) else RunMode.EXECUTE
    try:
        context = build_context(args)
    except MigrationError as e:
        logger.error("run-phase failed: %s", e)
        return int(e.exit_code)

    try:
        orchestrator = PhaseOrchestrator.from_context(context)
        phases = orchestrator.select_phases(args.phase)

        if mode is RunMode.EXECUTE:
            unpublished = [
                module.name
                for phase in phases
                for module in context.registry.list_modules(phase)
                if context.store.get(module.name).state is not ModuleState.PUBLISHED
            ]
            if unpublished and not confirm_publication(
                f"Up to {len(unpublished)} module(s) of phase(s) "
                f"{', '.join(str(p) for p in phases)} will be published to "
                f"{context.config.descriptor.nexus_url}",
                getattr(args, "yes", False),
            ):
                logger.warning("Run declined")
                return int(ExitCode.CANCELLED)

        with cancel_on_interrupt(orchestrator):
            summary = orchestrator.run(args.phase, mode)
    except MigrationError as e:
        logger.error("run-phase failed: %s", e)
        return int(e.exit_code)
    finally:
        context.close()

    console.print(summary_panel(summary))
    return int(summary.exit_code)


__all__ = ["run_phase_command"]
