"""Wiring of collaborators for one migration session.

``MigrationContext`` owns everything a command needs: the registry, the
state store, the external adapters and the three pipeline stages, all
sharing one cancellation event.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from repomigrate.config.schema import MigrationConfig
from repomigrate.extraction.engine import ExtractionEngine
from repomigrate.graph.registry import ModuleRegistry, load_registry
from repomigrate.integrations.git import GitClient, GitFilterRepoIsolator
from repomigrate.integrations.hosting import GitHubHosting
from repomigrate.integrations.maven import MavenBuildTool
from repomigrate.publishing.coordinator import PublishCoordinator
from repomigrate.runtime.lifecycle import Stage
from repomigrate.runtime.process import CommandRunner
from repomigrate.runtime.stages import BaseStage, ExtractStage, PublishStage, ValidateStage
from repomigrate.runtime.state_store import StateStore
from repomigrate.templates.pom import DescriptorTemplater
from repomigrate.validation.validator import ReadinessValidator

logger = logging.getLogger("repomigrate.runtime.context")


@dataclass
class MigrationContext:
    """Collaborators of one session."""

    config: MigrationConfig
    registry: ModuleRegistry
    store: StateStore
    templater: DescriptorTemplater
    engine: ExtractionEngine
    stages: Dict[Stage, BaseStage]
    cancel_event: threading.Event
    git: GitClient
    hosting: Optional[GitHubHosting] = None

    @classmethod
    def build(
        cls,
        config: MigrationConfig,
        catalog: Optional[Path] = None,
        registry: Optional[ModuleRegistry] = None,
    ) -> "MigrationContext":
        """Build the default (subprocess/HTTP backed) collaborators.

        Args:
            config: Validated configuration.
            catalog: Catalog file overriding ``config.catalog``.
            registry: Pre-loaded registry (skips catalog loading).
        """
        registry = registry or load_registry(catalog or config.catalog)
        cancel_event = threading.Event()
        runner = CommandRunner(cancel_event)
        store = StateStore(config.state_db)
        templater = DescriptorTemplater(registry, config.descriptor)
        git = GitClient(runner, config.history.git_executable, config.history.timeout)
        engine = ExtractionEngine(
            templater=templater,
            store=store,
            isolator=GitFilterRepoIsolator(git, config.history.branch),
            git=git,
            source_root=config.source_root,
            migration_dir=config.migration_dir,
            history=config.history,
        )
        build_tool = MavenBuildTool(
            runner,
            config.build,
            config.signing,
            release_profile=config.descriptor.release_profile,
        )
        validator = ReadinessValidator(
            build_tool,
            release_profile=config.descriptor.release_profile,
            run_tests=config.build.run_tests,
        )
        coordinator = PublishCoordinator(
            build_tool,
            version=config.descriptor.version,
            config=config.publish,
            cancel_event=cancel_event,
        )
        hosting = GitHubHosting(config.hosting) if config.hosting.enabled else None

        stages: Dict[Stage, BaseStage] = {
            Stage.EXTRACT: ExtractStage(
                store,
                registry,
                engine,
                hosting=hosting,
                git=git,
                push=config.hosting.push_after_extract,
                branch=config.history.branch,
            ),
            Stage.VALIDATE: ValidateStage(store, validator),
            Stage.PUBLISH: PublishStage(store, coordinator),
        }
        logger.debug(
            "Context built: %d modules, state at %s", len(registry), config.state_db
        )
        return cls(
            config=config,
            registry=registry,
            store=store,
            templater=templater,
            engine=engine,
            stages=stages,
            cancel_event=cancel_event,
            git=git,
            hosting=hosting,
        )

    def close(self) -> None:
        self.store.close_all()


__all__ = ["MigrationContext"]
