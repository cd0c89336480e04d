"""
Phase orchestrator for the migration lifecycle.

This module provides the PhaseOrchestrator class that walks the module
registry phase by phase and drives every module of a phase through the
extract, validate and publish stages.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from repomigrate.errors import (
    CommandCancelled,
    ConfigError,
    ExitCode,
    MigrationError,
    PhaseBlocked,
    StateError,
    ValidationError,
)
from repomigrate.graph.models import Module
from repomigrate.graph.registry import ModuleRegistry
from repomigrate.runtime.lifecycle import ModuleState, RunMode, Stage
from repomigrate.runtime.records import ModuleRecord, ValidationReport
from repomigrate.runtime.stages import BaseStage
from repomigrate.runtime.state_store import StateStore
from repomigrate.runtime.worker import Task, TaskResult, TaskStatus, Worker
from repomigrate.templates.pom import DescriptorTemplater

logger = logging.getLogger("repomigrate.runtime.orchestrator")

INTERRUPTED_REASON = "interrupted"

# Stage that moves a module out of each resting state.
NEXT_STAGE: Dict[ModuleState, Stage] = {
    ModuleState.PENDING: Stage.EXTRACT,
    ModuleState.EXTRACTED: Stage.VALIDATE,
    ModuleState.VALIDATED: Stage.PUBLISH,
}

# Where an interrupted run leaves each transient state.
_RECOVERY: Dict[ModuleState, ModuleState] = {
    ModuleState.EXTRACTING: ModuleState.PENDING,
    ModuleState.VALIDATING: ModuleState.EXTRACTED,
    ModuleState.PUBLISHING: ModuleState.FAILED,
}

STAGE_EXIT_CODES: Dict[Stage, ExitCode] = {
    Stage.HOSTING: ExitCode.HOSTING,
    Stage.EXTRACT: ExitCode.EXTRACTION,
    Stage.VALIDATE: ExitCode.VALIDATION,
    Stage.PUBLISH: ExitCode.PUBLISH,
}

# Most severe first; the run's exit code is the first one present.
_SEVERITY = (
    ExitCode.CANCELLED,
    ExitCode.PUBLISH,
    ExitCode.VALIDATION,
    ExitCode.EXTRACTION,
    ExitCode.HOSTING,
    ExitCode.PHASE_BLOCKED,
)

PhaseSelector = Union[int, str, None]


class Action:
    """What the run did with a module."""

    PUBLISHED = "published"
    ALREADY_PUBLISHED = "already-published"
    FAILED = "failed"
    REJECTED = "rejected"
    REFUSED = "refused"
    BLOCKED = "blocked"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    PLANNED = "planned"


@dataclass(frozen=True)
class ModuleOutcome:
    """Final state of one module at the end of a run."""

    name: str
    phase: int
    state: ModuleState
    action: str
    failed_stage: Optional[Stage] = None
    reason: Optional[str] = None
    validation: Optional[ValidationReport] = None

    @property
    def exit_code(self) -> ExitCode:
        if self.action == Action.CANCELLED:
            return ExitCode.CANCELLED
        if self.action == Action.FAILED and self.failed_stage is not None:
            return STAGE_EXIT_CODES[self.failed_stage]
        if self.action == Action.REJECTED:
            return ExitCode.VALIDATION
        if self.action in (Action.REFUSED, Action.BLOCKED):
            return ExitCode.PHASE_BLOCKED
        return ExitCode.OK


@dataclass(frozen=True)
class RunSummary:
    """
    Result of one orchestrator run.

    Attributes:
        mode: Execute or dry run.
        phases: Phases the run was asked to process.
        outcomes: One entry per module visited, in processing order.
        halted_phase: Phase whose failure stopped the run, if any.
        cancelled: True when the operator aborted the run.
        duration: Wall-clock seconds.
    """

    mode: RunMode
    phases: Tuple[int, ...]
    outcomes: Tuple[ModuleOutcome, ...] = field(default_factory=tuple)
    halted_phase: Optional[int] = None
    cancelled: bool = False
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code is ExitCode.OK

    @property
    def exit_code(self) -> ExitCode:
        if self.cancelled:
            return ExitCode.CANCELLED
        codes = {outcome.exit_code for outcome in self.outcomes}
        for code in _SEVERITY:
            if code in codes:
                return code
        if self.halted_phase is not None:
            return ExitCode.PHASE_BLOCKED
        return ExitCode.OK

    def outcome(self, name: str) -> Optional[ModuleOutcome]:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

    def with_action(self, action: str) -> Tuple[ModuleOutcome, ...]:
        return tuple(o for o in self.outcomes if o.action == action)


class PhaseOrchestrator:
    """
    Orchestrator driving modules through the migration pipeline.

    Phases run strictly one after another. Inside a phase a bounded
    Worker runs modules concurrently; a module starts only once its
    intra-phase dependencies have been published. The first failure halts
    the phase and no later phase is started.

    Attributes:
        registry: Immutable module registry.
        store: Persisted per-module state.
        stages: Pipeline stages keyed by Stage.
        templater: Used by dry runs to report descriptor hashes.
        max_workers: Worker pool size per phase.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        store: StateStore,
        stages: Dict[Stage, BaseStage],
        templater: Optional[DescriptorTemplater] = None,
        max_workers: int = 4,
        cancel_event: Optional[threading.Event] = None,
        hosting_enabled: bool = False,
    ) -> None:
        self.registry = registry
        self.store = store
        self.stages = stages
        self.templater = templater
        self.max_workers = max_workers
        self.hosting_enabled = hosting_enabled
        self._cancel = cancel_event or threading.Event()
        self._worker: Optional[Worker] = None

    @classmethod
    def from_context(cls, context) -> "PhaseOrchestrator":
        """Create an orchestrator sharing a MigrationContext's collaborators."""
        return cls(
            registry=context.registry,
            store=context.store,
            stages=context.stages,
            templater=context.templater,
            max_workers=context.config.max_workers,
            cancel_event=context.cancel_event,
            hosting_enabled=context.hosting is not None,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Abort the run: running subprocesses are terminated, nothing new starts."""
        logger.warning("Cancellation requested")
        self._cancel.set()
        worker = self._worker
        if worker is not None:
            worker.halt()

    def select_phases(self, selector: PhaseSelector) -> Tuple[int, ...]:
        """Resolve ``N``, ``"N"``, ``"all"`` or None to registry phases.

        Raises:
            ConfigError: If the selector names no known phase.
        """
        phases = self.registry.phases()
        if selector is None or (isinstance(selector, str) and selector.lower() == "all"):
            return tuple(phases)
        try:
            phase = int(selector)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid phase selector: {selector!r}") from e
        if phase not in phases:
            known = ", ".join(str(p) for p in phases)
            raise ConfigError(f"Unknown phase {phase}; known phases: {known}")
        return (phase,)

    def run(self, phase_selector: PhaseSelector = None, mode: RunMode = RunMode.EXECUTE) -> RunSummary:
        """
        Run the selected phases.

        Args:
            phase_selector: Phase number, ``"all"`` or None for every phase.
            mode: EXECUTE performs the migration, DRY_RUN only logs it.

        Returns:
            RunSummary: Final state of every visited module.

        Raises:
            PhaseBlocked: If the first selected phase has unpublished
                predecessors in earlier, unaccepted phases.
            ConfigError: If the selector is invalid.
        """
        phases = self.select_phases(phase_selector)
        start = time.time()
        if mode is RunMode.DRY_RUN:
            outcomes, halted = self._dry_run(phases)
        else:
            self.recover()
            outcomes, halted = self._execute(phases)
        summary = RunSummary(
            mode=mode,
            phases=phases,
            outcomes=tuple(outcomes),
            halted_phase=halted,
            cancelled=self.cancelled,
            duration=time.time() - start,
        )
        logger.info(
            "Run finished in %.1fs: exit code %d (%s)",
            summary.duration,
            int(summary.exit_code),
            summary.exit_code.name,
        )
        return summary

    def run_stage(self, name: str, stage: Stage) -> ModuleRecord:
        """
        Run one stage for one module (single-module commands).

        Raises:
            UnknownModule: If ``name`` is not registered.
            StateError: If the module's state does not allow the stage.
            MigrationError: The stage's failure, after it was persisted.
        """
        module = self.registry.get(name)
        if stage not in self.stages:
            raise ValueError(f"{stage} cannot be run on its own")
        self._recover_module(name)
        record = self.store.get(name)
        if record.is_failed:
            raise StateError(
                f"{name} failed at {record.failed_stage}: {record.last_error}; "
                "acknowledge it before retrying"
            )
        return self.stages[stage].run(module)

    def check_gate(self, phase: int, published: Optional[Set[str]] = None) -> None:
        """
        Raise PhaseBlocked unless every earlier phase is resolved.

        An earlier phase is resolved when all its modules are published or
        the operator accepted it as partial.
        """
        accepted = self.store.accepted_phases()
        if published is None:
            published = self._published_names()
        pending = [
            module.name
            for module in self.registry.list_modules()
            if module.phase < phase
            and module.phase not in accepted
            and module.name not in published
        ]
        if pending:
            raise PhaseBlocked(phase, pending)

    def recover(self, names: Optional[Iterable[str]] = None) -> List[str]:
        """
        Resolve transient states left behind by an interrupted run.

        Extracting falls back to Pending and Validating to Extracted.
        Publishing becomes Failed because the upload status is unknown.

        Returns:
            List[str]: Names of recovered modules.
        """
        if names is None:
            names = [module.name for module in self.registry]
        return [name for name in names if self._recover_module(name)]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _recover_module(self, name: str) -> bool:
        record = self.store.get(name)
        target = _RECOVERY.get(record.state)
        if target is None:
            return False
        if target is ModuleState.FAILED:
            logger.warning(
                "%s was interrupted while publishing; upload status unknown", name
            )
            self.store.transition(
                name, target, stage=Stage.PUBLISH, error=INTERRUPTED_REASON
            )
        else:
            logger.warning("%s was interrupted while %s; resuming from %s",
                           name, record.state, target)
            self.store.transition(name, target)
        return True

    def _published_names(self) -> Set[str]:
        return {
            name
            for name, record in self.store.all_records().items()
            if record.state is ModuleState.PUBLISHED
        }

    def _execute(self, phases: Tuple[int, ...]) -> Tuple[List[ModuleOutcome], Optional[int]]:
        outcomes: List[ModuleOutcome] = []
        for index, phase in enumerate(phases):
            if self.cancelled:
                break
            if index == 0:
                self.check_gate(phase)
            else:
                try:
                    self.check_gate(phase)
                except PhaseBlocked as e:
                    logger.error("%s", e)
                    return outcomes, phases[index - 1]
            phase_outcomes = self._run_phase(phase)
            outcomes.extend(phase_outcomes)
            if any(o.exit_code is not ExitCode.OK for o in phase_outcomes):
                logger.error("Phase %d halted; later phases will not start", phase)
                outcomes.extend(self._unstarted(phases[index + 1:], phase))
                return outcomes, phase
        return outcomes, None

    def _unstarted(self, phases: Tuple[int, ...], halted: int) -> List[ModuleOutcome]:
        reason = f"phase {halted} did not complete"
        return [
            self._outcome(module, self.store.get(module.name), Action.BLOCKED, reason=reason)
            for phase in phases
            for module in self.registry.list_modules(phase)
        ]

    def _run_phase(self, phase: int) -> List[ModuleOutcome]:
        modules = self.registry.list_modules(phase)
        logger.info("Phase %d: %d modules", phase, len(modules))

        preset: Dict[str, ModuleOutcome] = {}
        runnable: List[Module] = []
        for module in modules:
            record = self.store.get(module.name)
            if record.state is ModuleState.PUBLISHED:
                logger.info("%s already published; skipping", module.name)
                preset[module.name] = self._outcome(module, record, Action.ALREADY_PUBLISHED)
            elif record.is_failed:
                logger.error(
                    "%s failed at %s (%s); acknowledge it before retrying",
                    module.name, record.failed_stage, record.last_error,
                )
                preset[module.name] = self._outcome(
                    module, record, Action.REFUSED, reason=record.last_error
                )
            else:
                blocked_by = self._blocking_dependencies(module, phase, preset)
                if blocked_by:
                    reason = "unpublished dependencies: " + ", ".join(blocked_by)
                    logger.warning("%s blocked: %s", module.name, reason)
                    preset[module.name] = self._outcome(
                        module, record, Action.BLOCKED, reason=reason
                    )
                else:
                    runnable.append(module)

        if any(o.action == Action.REFUSED for o in preset.values()):
            for module in runnable:
                preset[module.name] = self._outcome(
                    module,
                    self.store.get(module.name),
                    Action.SKIPPED,
                    reason="phase has failed modules awaiting acknowledgement",
                )
            runnable = []

        results = self._run_worker(phase, runnable)
        return [
            preset[module.name]
            if module.name in preset
            else self._result_outcome(module, results[module.name])
            for module in modules
        ]

    def _blocking_dependencies(
        self, module: Module, phase: int, preset: Dict[str, ModuleOutcome]
    ) -> List[str]:
        blocking = []
        for dep in self.registry.dependencies_of(module.name):
            if dep.phase != phase:
                if self.store.get(dep.name).state is not ModuleState.PUBLISHED:
                    blocking.append(dep.name)
            elif dep.name in preset and preset[dep.name].action != Action.ALREADY_PUBLISHED:
                blocking.append(dep.name)
        return sorted(blocking)

    def _run_worker(self, phase: int, modules: List[Module]) -> Dict[str, TaskResult]:
        if not modules:
            return {}
        names = {module.name for module in modules}
        worker = Worker(max_workers=self.max_workers, halt_on_failure=True)
        worker.enqueue_many([
            Task(
                task_id=module.name,
                func=partial(self._pipeline, module),
                depends_on=frozenset(
                    dep.name for dep in self.registry.dependencies_of(module.name)
                    if dep.name in names
                ),
                metadata={"phase": phase},
            )
            for module in modules
        ])
        self._worker = worker
        if self.cancelled:
            worker.halt()
        try:
            results = worker.run_all()
        finally:
            self._worker = None

        for result in results.values():
            if result.error is not None and not isinstance(result.error, MigrationError):
                raise result.error
        return results

    def _pipeline(self, module: Module) -> ModuleRecord:
        """Drive one module from its persisted state to Published."""
        record = self.store.get(module.name)
        while record.state is not ModuleState.PUBLISHED:
            if self.cancelled:
                raise CommandCancelled(f"{module.name}: run cancelled")
            stage = NEXT_STAGE.get(record.state)
            if stage is None:
                raise StateError(f"{module.name} is {record.state}; nothing to run")
            record = self.stages[stage].run(module)
        return record

    def _result_outcome(self, module: Module, result: TaskResult) -> ModuleOutcome:
        record = self.store.get(module.name)
        if result.status is TaskStatus.SUCCEEDED:
            return self._outcome(module, record, Action.PUBLISHED)
        if result.status is TaskStatus.BLOCKED:
            return self._outcome(module, record, Action.BLOCKED, reason=result.detail)
        if result.status is TaskStatus.SKIPPED:
            action = Action.CANCELLED if self.cancelled else Action.SKIPPED
            return self._outcome(module, record, action, reason=result.detail)

        error = result.error
        if isinstance(error, CommandCancelled) or (
            record.is_failed and self.cancelled
        ):
            return self._outcome(module, record, Action.CANCELLED, reason=str(error))
        if record.is_failed:
            return self._outcome(module, record, Action.FAILED, reason=record.last_error)
        if isinstance(error, ValidationError):
            return self._outcome(module, record, Action.REJECTED, reason=str(error))
        return self._outcome(module, record, Action.REFUSED, reason=str(error))

    @staticmethod
    def _outcome(
        module: Module,
        record: ModuleRecord,
        action: str,
        reason: Optional[str] = None,
    ) -> ModuleOutcome:
        return ModuleOutcome(
            name=module.name,
            phase=module.phase,
            state=record.state,
            action=action,
            failed_stage=record.failed_stage if record.is_failed else None,
            reason=reason,
            validation=record.validation,
        )

    # ------------------------------------------------------------------
    # Dry run
    # ------------------------------------------------------------------

    def _dry_run(self, phases: Tuple[int, ...]) -> Tuple[List[ModuleOutcome], Optional[int]]:
        """Log every step the run would take; persist and execute nothing."""
        outcomes: List[ModuleOutcome] = []
        published = self._published_names()
        for phase in phases:
            try:
                self.check_gate(phase, published)
            except PhaseBlocked as e:
                logger.warning("DRY RUN: would stop: %s", e)
                return outcomes, phase
            logger.warning("DRY RUN: would start phase %d", phase)
            refused = False
            for module in self.registry.list_modules(phase):
                record = self.store.get(module.name)
                if record.state is ModuleState.PUBLISHED:
                    logger.warning("DRY RUN: would skip %s (already published)", module.name)
                    outcomes.append(self._outcome(module, record, Action.ALREADY_PUBLISHED))
                    continue
                if record.is_failed:
                    logger.warning(
                        "DRY RUN: would refuse %s (failed at %s: %s)",
                        module.name, record.failed_stage, record.last_error,
                    )
                    outcomes.append(
                        self._outcome(module, record, Action.REFUSED, reason=record.last_error)
                    )
                    refused = True
                    continue
                for step in self._planned_steps(module, record.state):
                    logger.warning("DRY RUN: would %s", step)
                published.add(module.name)
                outcomes.append(self._outcome(module, record, Action.PLANNED))
            if refused:
                return outcomes, phase
        return outcomes, None

    def _planned_steps(self, module: Module, state: ModuleState) -> List[str]:
        if state is ModuleState.PUBLISHING:
            return [f"mark {module.name} failed: publish was interrupted"]
        state = _RECOVERY.get(state, state)
        steps: List[str] = []
        if state is ModuleState.PENDING:
            if self.hosting_enabled:
                steps.append(f"ensure hosting repository {module.slug}")
            steps.append(
                f"isolate history of {module.source_path} into {module.slug}"
            )
            if self.templater is not None:
                rendered = self.templater.render(module)
                steps.append(
                    f"write {module.name} descriptor ({rendered.profile}, "
                    f"sha256 {rendered.sha256[:12]})"
                )
        if state in (ModuleState.PENDING, ModuleState.EXTRACTED):
            steps.append(f"validate {module.name}")
        if state in (ModuleState.PENDING, ModuleState.EXTRACTED, ModuleState.VALIDATED):
            steps.append(f"publish {module.coordinate}")
        return steps


__all__ = [
    "Action",
    "ModuleOutcome",
    "NEXT_STAGE",
    "STAGE_EXIT_CODES",
    "PhaseOrchestrator",
    "RunSummary",
]
