"""CLI command verifying prerequisites before a migration."""

from __future__ import annotations

import logging

from repomigrate.cli.common import console
from repomigrate.errors import ExitCode, MigrationError
from repomigrate.graph.registry import load_registry
from repomigrate.integrations.preflight import run_preflight
from repomigrate.runtime.config_loader import load_migration_config
from repomigrate.runtime.display import preflight_table

logger = logging.getLogger("repomigrate.cli.check")


def check_command(args) -> int:
    """Execute the check command.

    Loads configuration and catalog (so registry errors surface here too),
    then runs every prerequisite check. Nothing is modified.

    Returns:
        int: 0 when every required check passed, 8 otherwise.
    """
    try:
        config = load_migration_config(getattr(args, "config", None))
        registry = load_registry(getattr(args, "catalog", None) or config.catalog)
    except MigrationError as e:
        logger.error("check failed: %s", e)
        return int(e.exit_code)

    logger.info("Catalog valid: %d modules in %d phases",
                len(registry), len(registry.phases()))
    results = run_preflight(config)
    console.print(preflight_table(results))

    missing = [result.name for result in results if result.required and not result.ok]
    if missing:
        logger.error("Prerequisites missing: %s", ", ".join(missing))
        return int(ExitCode.PREFLIGHT)
    return int(ExitCode.OK)


__all__ = ["check_command"]
