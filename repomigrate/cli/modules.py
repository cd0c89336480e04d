"""Single-module CLI commands: extract, validate, publish, push.

Each command runs exactly one stage for one module and reports the
module's persisted state afterwards. Failures are persisted by the stage
itself; the command only maps them to an exit code.
"""

from __future__ import annotations

import logging

from repomigrate.cli.common import build_context, cancel_on_interrupt, confirm_publication, console
from repomigrate.errors import (
    CommandCancelled,
    ConfigError,
    ExitCode,
    MigrationError,
    RegistryError,
    StateError,
    ValidationError,
)
from repomigrate.integrations.hosting import GitHubHosting
from repomigrate.runtime.display import report_table, state_text
from repomigrate.runtime.lifecycle import Stage
from repomigrate.runtime.orchestrator import STAGE_EXIT_CODES, PhaseOrchestrator

logger = logging.getLogger("repomigrate.cli.modules")


def _run_stage(args, stage: Stage) -> int:
    context = build_context(args)
    try:
        orchestrator = PhaseOrchestrator.from_context(context)
        if stage is Stage.PUBLISH:
            module = context.registry.get(args.module)
            if not confirm_publication(
                f"Publish {module.coordinate}:{context.config.descriptor.version}?",
                getattr(args, "yes", False),
            ):
                logger.warning("Publication of %s declined", module.name)
                return int(ExitCode.CANCELLED)
        with cancel_on_interrupt(orchestrator):
            record = orchestrator.run_stage(args.module, stage)
    except ValidationError as e:
        console.print(report_table(e.report))
        return int(e.exit_code)
    finally:
        context.close()

    line = state_text(record.state)
    line.append(f"  {record.name}")
    console.print(line)
    if stage is Stage.VALIDATE and record.validation is not None:
        console.print(report_table(record.validation))
    return int(ExitCode.OK)


def _command(args, stage: Stage) -> int:
    try:
        return _run_stage(args, stage)
    except CommandCancelled as e:
        logger.error("%s", e)
        return int(ExitCode.CANCELLED)
    except (ConfigError, RegistryError, StateError) as e:
        logger.error("%s refused: %s", stage, e)
        return int(e.exit_code)
    except MigrationError as e:
        logger.error("%s failed: %s", stage, e)
        if e.exit_code is ExitCode.ERROR:
            return int(STAGE_EXIT_CODES[stage])
        return int(e.exit_code)


def extract_command(args) -> int:
    """Execute the extract command.

    Args:
        args: Parsed command-line arguments (``module``).

    Returns:
        int: Exit code.
    """
    return _command(args, Stage.EXTRACT)


def validate_command(args) -> int:
    """Execute the validate command; prints the full rule report."""
    return _command(args, Stage.VALIDATE)


def publish_command(args) -> int:
    """Execute the publish command after confirmation (``--yes`` skips it)."""
    return _command(args, Stage.PUBLISH)


def push_command(args) -> int:
    """Push an extracted module to its hosting repository.

    The hosting repository is created first when missing. Only modules
    holding an extraction record can be pushed.
    """
    try:
        context = build_context(args)
    except MigrationError as e:
        logger.error("push failed: %s", e)
        return int(e.exit_code)
    try:
        module = context.registry.get(args.module)
        record = context.store.get(module.name)
        if record.extraction is None:
            raise StateError(f"{module.name} is {record.state}; extract it before pushing")
        hosting = context.hosting or GitHubHosting(context.config.hosting)
        hosting.ensure_repository(module)
        hosting.push(
            context.git,
            record.extraction.destination,
            module,
            context.config.history.branch,
        )
    except MigrationError as e:
        logger.error("push failed: %s", e)
        return int(e.exit_code)
    finally:
        context.close()

    console.print(f"Pushed {module.name} to {hosting.remote_url(module)}")
    return int(ExitCode.OK)


__all__ = ["extract_command", "publish_command", "push_command", "validate_command"]
