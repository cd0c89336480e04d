"""
Base stage class implementing the template method pattern.

Every pipeline stage follows the same flow for one module:
- Check the persisted state allows the stage to start
- Run preparation that happens before the module's state changes
- Move the module into the stage's transient state
- Execute the stage's work (implemented by subclasses)
- Persist the stage's outcome

Expected failures are converted into a persisted ``FAILED`` record
attributed to the stage, then re-raised so the orchestrator can halt
the enclosing phase.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, Optional

from repomigrate.errors import (
    CommandCancelled,
    CommandFailed,
    CommandTimeout,
    ExtractionError,
    HostingError,
    MigrationError,
    PublishError,
    StateError,
    ValidationError,
)
from repomigrate.graph.models import Module
from repomigrate.runtime.lifecycle import ModuleState, Stage
from repomigrate.runtime.records import ModuleRecord
from repomigrate.runtime.state_store import StateStore

# Failures that end in a persisted FAILED record
_STAGE_ERRORS = (
    HostingError,
    ExtractionError,
    ValidationError,
    PublishError,
    CommandFailed,
    CommandTimeout,
    OSError,
)

CANCELLED_REASON = "cancelled"

logger = logging.getLogger("repomigrate.runtime.stage")


class BaseStage(ABC):
    """
    Abstract base class for pipeline stages.

    Attributes:
        STAGE: Stage failures are attributed to.
        START_STATES: Persisted states the stage may start from.
        RUNNING_STATE: Transient state while ``execute`` runs.
        store: Shared state store.
    """

    STAGE: Stage
    START_STATES: FrozenSet[ModuleState] = frozenset()
    RUNNING_STATE: ModuleState

    def __init__(self, store: StateStore) -> None:
        self.store = store

    @property
    def name(self) -> str:
        return self.STAGE.value

    def run(self, module: Module) -> ModuleRecord:
        """
        Template method: run this stage for ``module``.

        Args:
            module: Module to process.

        Returns:
            ModuleRecord: Persisted record after the stage completed.

        Raises:
            StateError: If the persisted state does not allow the stage.
            MigrationError: The stage's failure, after it was persisted.
            CommandCancelled: If the operator aborted the run.
        """
        record = self.store.get(module.name)
        self._check_start(module, record)

        try:
            self.prepare(module, record)
            record = self.store.transition(module.name, self.RUNNING_STATE)
            logger.info("%s: %s started", module.name, self.name)
            record = self.execute(module, record)
        except CommandCancelled:
            self._fail(module, CANCELLED_REASON)
            raise
        except _STAGE_ERRORS as error:
            self._handle_error(module, error)
            raise

        logger.info("%s: %s completed (%s)", module.name, self.name, record.state)
        return record

    def _check_start(self, module: Module, record: ModuleRecord) -> None:
        if record.state not in self.START_STATES:
            allowed = ", ".join(sorted(str(state) for state in self.START_STATES))
            raise StateError(
                f"{module.name} is {record.state}; {self.name} needs one of: {allowed}"
            )

    def prepare(self, module: Module, record: ModuleRecord) -> None:
        """Work done before the module enters the running state (optional)."""

    @abstractmethod
    def execute(self, module: Module, record: ModuleRecord) -> ModuleRecord:
        """
        Execute the stage and persist its successful outcome.

        Args:
            module: Module to process.
            record: Persisted record in ``RUNNING_STATE``.

        Returns:
            ModuleRecord: Persisted record after the stage.
        """
        raise NotImplementedError(f"{self.__class__.__name__} must implement execute()")

    def stage_for(self, error: BaseException) -> Stage:
        """Stage a failure is attributed to."""
        return self.STAGE

    def _handle_error(self, module: Module, error: BaseException) -> None:
        stage = self.stage_for(error)
        logger.error("%s failed at %s: %s", module.name, stage, error)
        if isinstance(error, PublishError):
            logger.error("%s: %s", module.name, error.guidance)
        self._fail(module, str(error), stage)

    def _fail(self, module: Module, reason: str, stage: Optional[Stage] = None) -> None:
        stage = stage or self.STAGE
        current = self.store.get(module.name)
        if current.state.is_terminal:
            return
        try:
            self.store.transition(module.name, ModuleState.FAILED, stage=stage, error=reason)
        except MigrationError as exc:
            logger.error("%s: cannot record failure: %s", module.name, exc)
            raise


__all__ = ["BaseStage", "CANCELLED_REASON"]
