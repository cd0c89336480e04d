"""Validate stage: readiness rules, all-or-nothing."""

from __future__ import annotations

import logging

from repomigrate.errors import StateError, ValidationError
from repomigrate.graph.models import Module
from repomigrate.runtime.lifecycle import ModuleState, Stage
from repomigrate.runtime.records import ModuleRecord
from repomigrate.runtime.stages.base import BaseStage
from repomigrate.runtime.state_store import StateStore
from repomigrate.validation.validator import ReadinessValidator

logger = logging.getLogger("repomigrate.runtime.stage.validate")


class ValidateStage(BaseStage):
    """Brings a module from Extracted to Validated.

    A rejected report sends the module back to Extracted with the report
    attached; it is never moved to Validated.
    """

    STAGE = Stage.VALIDATE
    START_STATES = frozenset({ModuleState.EXTRACTED, ModuleState.VALIDATED})
    RUNNING_STATE = ModuleState.VALIDATING

    def __init__(self, store: StateStore, validator: ReadinessValidator) -> None:
        super().__init__(store)
        self.validator = validator

    def _check_start(self, module: Module, record: ModuleRecord) -> None:
        super()._check_start(module, record)
        if record.extraction is None:
            raise StateError(f"{module.name} has no extraction record")

    def execute(self, module: Module, record: ModuleRecord) -> ModuleRecord:
        report = self.validator.validate(module, record.extraction)
        if not report.passed:
            raise ValidationError(report)
        return self.store.transition(module.name, ModuleState.VALIDATED, validation=report)

    def _handle_error(self, module: Module, error: BaseException) -> None:
        if isinstance(error, ValidationError):
            logger.error("%s rejected: %s", module.name, error)
            self.store.transition(
                module.name, ModuleState.EXTRACTED, validation=error.report
            )
            return
        super()._handle_error(module, error)


__all__ = ["ValidateStage"]
