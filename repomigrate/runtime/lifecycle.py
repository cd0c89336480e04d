"""Module lifecycle definitions.

Every module follows the same lifecycle:
Pending→Extracting→Extracted→Validating→Validated→Publishing→Published,
with Failed reachable from any non-terminal state.
"""

from enum import Enum
from typing import Dict, FrozenSet


class ModuleState(Enum):
    """Persisted lifecycle state of a module.

    - PENDING: Registered, nothing done yet
    - EXTRACTING: History isolation / scaffolding in progress
    - EXTRACTED: Standalone repository exists
    - VALIDATING: Readiness rules running
    - VALIDATED: All readiness rules passed
    - PUBLISHING: Release deploy in progress
    - PUBLISHED: Uploaded and propagated
    - FAILED: Stopped at a stage; requires operator acknowledgement
    """

    PENDING = "pending"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    VALIDATING = "validating"
    VALIDATED = "validated"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.name.title()

    @property
    def is_terminal(self) -> bool:
        """Published and Failed end a module's run."""
        return self in (ModuleState.PUBLISHED, ModuleState.FAILED)

    @property
    def is_transient(self) -> bool:
        """States that only exist while a stage is running."""
        return self in _TRANSIENT


class Stage(Enum):
    """Pipeline stage a failure is attributed to."""

    HOSTING = "hosting"
    EXTRACT = "extract"
    VALIDATE = "validate"
    PUBLISH = "publish"

    def __str__(self) -> str:
        return self.value


class RunMode(Enum):
    """How the orchestrator treats external side effects."""

    EXECUTE = "execute"
    DRY_RUN = "dry-run"


_TRANSIENT = frozenset(
    {ModuleState.EXTRACTING, ModuleState.VALIDATING, ModuleState.PUBLISHING}
)

_NON_TERMINAL = frozenset(state for state in ModuleState if not state.is_terminal)

# Orchestrated transitions. Failed is reachable from every non-terminal state.
ALLOWED_TRANSITIONS: Dict[ModuleState, FrozenSet[ModuleState]] = {
    ModuleState.PENDING: frozenset({ModuleState.EXTRACTING}),
    ModuleState.EXTRACTING: frozenset({ModuleState.EXTRACTED, ModuleState.PENDING}),
    ModuleState.EXTRACTED: frozenset({ModuleState.VALIDATING, ModuleState.EXTRACTING}),
    ModuleState.VALIDATING: frozenset({ModuleState.VALIDATED, ModuleState.EXTRACTED}),
    ModuleState.VALIDATED: frozenset({ModuleState.PUBLISHING, ModuleState.VALIDATING}),
    ModuleState.PUBLISHING: frozenset({ModuleState.PUBLISHED}),
    ModuleState.PUBLISHED: frozenset(),
    ModuleState.FAILED: frozenset(),
}

for _state in _NON_TERMINAL:
    ALLOWED_TRANSITIONS[_state] = ALLOWED_TRANSITIONS[_state] | {ModuleState.FAILED}

# Where an acknowledged failure re-enters the pipeline.
RESUME_STATE: Dict[Stage, ModuleState] = {
    Stage.HOSTING: ModuleState.PENDING,
    Stage.EXTRACT: ModuleState.PENDING,
    Stage.VALIDATE: ModuleState.EXTRACTED,
    Stage.PUBLISH: ModuleState.VALIDATED,
}


def can_transition(current: ModuleState, target: ModuleState) -> bool:
    """Return True when ``current -> target`` is an orchestrated transition."""
    return target in ALLOWED_TRANSITIONS[current]


__all__ = [
    "ModuleState",
    "Stage",
    "RunMode",
    "ALLOWED_TRANSITIONS",
    "RESUME_STATE",
    "can_transition",
]
