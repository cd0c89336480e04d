"""Publish stage: irreversible upload and propagation wait."""

from __future__ import annotations

from repomigrate.errors import StateError
from repomigrate.graph.models import Module
from repomigrate.publishing.coordinator import PublishCoordinator
from repomigrate.runtime.lifecycle import ModuleState, Stage
from repomigrate.runtime.records import ModuleRecord
from repomigrate.runtime.stages.base import BaseStage
from repomigrate.runtime.state_store import StateStore


class PublishStage(BaseStage):
    """Brings a module from Validated to Published."""

    STAGE = Stage.PUBLISH
    START_STATES = frozenset({ModuleState.VALIDATED})
    RUNNING_STATE = ModuleState.PUBLISHING

    def __init__(self, store: StateStore, coordinator: PublishCoordinator) -> None:
        super().__init__(store)
        self.coordinator = coordinator

    def _check_start(self, module: Module, record: ModuleRecord) -> None:
        super()._check_start(module, record)
        if record.extraction is None or record.validation is None or not record.validation.passed:
            raise StateError(f"{module.name} has no passing validation report")

    def execute(self, module: Module, record: ModuleRecord) -> ModuleRecord:
        self.coordinator.publish(module, record.extraction)
        return self.store.transition(module.name, ModuleState.PUBLISHED)


__all__ = ["PublishStage"]
