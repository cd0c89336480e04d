"""Extract stage: hosting repository, history isolation, optional push."""

from __future__ import annotations

import logging
from typing import Optional

from repomigrate.errors import HostingError, StateError
from repomigrate.extraction.engine import ExtractionEngine
from repomigrate.graph.models import Module
from repomigrate.graph.registry import ModuleRegistry
from repomigrate.integrations.git import GitClient
from repomigrate.integrations.hosting import GitHubHosting
from repomigrate.runtime.lifecycle import ModuleState, Stage
from repomigrate.runtime.records import ModuleRecord
from repomigrate.runtime.stages.base import BaseStage
from repomigrate.runtime.state_store import StateStore

logger = logging.getLogger("repomigrate.runtime.stage.extract")


class ExtractStage(BaseStage):
    """Brings a module from Pending to Extracted.

    Re-running it on an Extracted module is a no-op returning the stored
    record, as long as the destination still matches the template.
    """

    STAGE = Stage.EXTRACT
    START_STATES = frozenset({ModuleState.PENDING, ModuleState.EXTRACTED})
    RUNNING_STATE = ModuleState.EXTRACTING

    def __init__(
        self,
        store: StateStore,
        registry: ModuleRegistry,
        engine: ExtractionEngine,
        hosting: Optional[GitHubHosting] = None,
        git: Optional[GitClient] = None,
        push: bool = False,
        branch: str = "main",
    ) -> None:
        super().__init__(store)
        self.registry = registry
        self.engine = engine
        self.hosting = hosting
        self.git = git
        self.push = push
        self.branch = branch

    def stage_for(self, error: BaseException) -> Stage:
        if isinstance(error, HostingError):
            return Stage.HOSTING
        return self.STAGE

    def _check_start(self, module: Module, record: ModuleRecord) -> None:
        super()._check_start(module, record)
        unpublished = sorted(
            dep.name
            for dep in self.registry.dependencies_of(module.name)
            if self.store.get(dep.name).state is not ModuleState.PUBLISHED
        )
        if unpublished:
            raise StateError(
                f"{module.name} cannot be extracted before its dependencies are "
                f"published: {', '.join(unpublished)}"
            )

    def prepare(self, module: Module, record: ModuleRecord) -> None:
        if self.hosting is not None:
            self.hosting.ensure_repository(module)

    def execute(self, module: Module, record: ModuleRecord) -> ModuleRecord:
        extraction = self.engine.extract(module)
        if self.push and self.hosting is not None and self.git is not None:
            self.hosting.push(self.git, extraction.destination, module, self.branch)
        return self.store.transition(
            module.name, ModuleState.EXTRACTED, extraction=extraction
        )


__all__ = ["ExtractStage"]
