"""Error taxonomy for repository migration.

Every failure raised by repomigrate derives from ``MigrationError`` so the
CLI can map it onto a stage-identifying exit code. Registry errors are fatal
and raised before any module is touched; the remaining errors are scoped to
a single module and end up persisted as that module's ``FAILED`` record.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from repomigrate.runtime.records import ValidationReport


class ExitCode(IntEnum):
    """Process exit codes returned by the command surface."""

    OK = 0
    ERROR = 1
    REGISTRY = 2
    HOSTING = 3
    EXTRACTION = 4
    VALIDATION = 5
    PUBLISH = 6
    PHASE_BLOCKED = 7
    PREFLIGHT = 8
    CANCELLED = 130


class MigrationError(Exception):
    """Base class for all repomigrate errors."""

    exit_code: ExitCode = ExitCode.ERROR


class ConfigError(MigrationError):
    """Raised when configuration cannot be loaded or validated."""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class RegistryError(MigrationError):
    """Raised when the module catalog is inconsistent."""

    exit_code = ExitCode.REGISTRY


class DuplicateModule(RegistryError):
    """Two catalog entries share the same canonical name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Module '{name}' is declared more than once")
        self.name = name


class UnknownDependency(RegistryError):
    """A module depends on a name that is not in the catalog."""

    def __init__(self, module: str, dependency: str) -> None:
        super().__init__(
            f"Module '{module}' depends on unknown module '{dependency}'"
        )
        self.module = module
        self.dependency = dependency


class CycleDetected(RegistryError):
    """Dependency edges form a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        loop = self.cycle + self.cycle[:1]
        super().__init__(f"Dependency cycle detected: {' -> '.join(loop)}")


class PhaseOrderViolation(RegistryError):
    """A module depends on a module scheduled in a later phase."""

    def __init__(self, module: str, phase: int, dependency: str, dep_phase: int) -> None:
        super().__init__(
            f"Module '{module}' (phase {phase}) depends on '{dependency}' "
            f"which is scheduled in later phase {dep_phase}"
        )
        self.module = module
        self.dependency = dependency


class UnknownModule(RegistryError):
    """A command referenced a module that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown module '{name}'")
        self.name = name


# ---------------------------------------------------------------------------
# External processes
# ---------------------------------------------------------------------------


class CommandCancelled(MigrationError):
    """An external process was terminated on operator request."""

    exit_code = ExitCode.CANCELLED


class CommandFailed(MigrationError):
    """An external process exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, output: str = "") -> None:
        detail = output.strip().splitlines()[-1] if output.strip() else "no output"
        super().__init__(
            f"Command failed with exit code {returncode}: {' '.join(args)}: {detail}"
        )
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output


class CommandTimeout(MigrationError):
    """An external process exceeded its time budget and was killed."""

    def __init__(self, args: Sequence[str], timeout: float) -> None:
        super().__init__(f"Command timed out after {timeout:.0f}s: {' '.join(args)}")
        self.args_list = list(args)
        self.timeout = timeout


# ---------------------------------------------------------------------------
# Module-scoped stage errors
# ---------------------------------------------------------------------------


class HostingError(MigrationError):
    """The hosting platform could not provide the destination repository."""

    exit_code = ExitCode.HOSTING


class ExtractionFailure(Enum):
    """Reasons an extraction can fail."""

    SOURCE_MISSING = "source-missing"
    HISTORY_ISOLATION_FAILED = "history-isolation-failed"
    DESCRIPTOR_WRITE_FAILED = "descriptor-write-failed"
    DESTINATION_CONFLICT = "destination-conflict"


class ExtractionError(MigrationError):
    """Extraction of a module into its standalone repository failed."""

    exit_code = ExitCode.EXTRACTION

    def __init__(self, kind: ExtractionFailure, module: str, detail: str) -> None:
        super().__init__(f"{kind.value}: {module}: {detail}")
        self.kind = kind
        self.module = module
        self.detail = detail


class ValidationError(MigrationError):
    """A module failed readiness validation.

    Carries the complete report so callers can enumerate every failing
    rule instead of only the first one.
    """

    exit_code = ExitCode.VALIDATION

    def __init__(self, report: "ValidationReport") -> None:
        failures = report.failures()
        super().__init__(
            f"{report.module}: {len(failures)} readiness rule(s) failed: "
            + ", ".join(result.rule for result in failures)
        )
        self.report = report


class PublishFailure(Enum):
    """Reasons a publication can fail."""

    SIGNING_FAILED = "signing-failed"
    UPLOAD_FAILED = "upload-failed"
    TIMEOUT = "timeout"


class PublishError(MigrationError):
    """Publication failed, possibly after an irreversible upload."""

    exit_code = ExitCode.PUBLISH

    def __init__(
        self,
        kind: PublishFailure,
        module: str,
        detail: str,
        uploaded: bool = False,
    ) -> None:
        super().__init__(f"{kind.value}: {module}: {detail}")
        self.kind = kind
        self.module = module
        self.detail = detail
        self.uploaded = uploaded

    @property
    def guidance(self) -> str:
        """Operator guidance for inspecting the remote staging area."""
        if self.uploaded:
            return (
                "Artifacts were uploaded but not confirmed. Inspect the remote "
                "staging repository before retrying; the upload is not rolled back. "
                "Use 'acknowledge --mark-published' once the release is visible."
            )
        return (
            "The upload may have partially reached the remote staging area. "
            "Inspect and drop any open staging repository before acknowledging "
            "the failure and retrying."
        )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class StateError(MigrationError):
    """Persisted module state does not allow the requested operation."""

    exit_code = ExitCode.PHASE_BLOCKED


class InvalidTransition(StateError):
    """A lifecycle transition outside the allowed table was requested."""

    def __init__(self, module: str, current: object, target: object) -> None:
        super().__init__(f"{module}: cannot move from {current} to {target}")
        self.module = module


class PhaseBlocked(StateError):
    """A phase cannot start because an earlier phase is unresolved."""

    def __init__(self, phase: int, pending: Sequence[str], detail: Optional[str] = None) -> None:
        message = detail or (
            f"Phase {phase} is blocked: earlier modules not published: "
            + ", ".join(pending)
        )
        super().__init__(message)
        self.phase = phase
        self.pending = list(pending)


__all__ = [
    "ExitCode",
    "MigrationError",
    "ConfigError",
    "RegistryError",
    "DuplicateModule",
    "UnknownDependency",
    "CycleDetected",
    "PhaseOrderViolation",
    "UnknownModule",
    "CommandCancelled",
    "CommandFailed",
    "CommandTimeout",
    "HostingError",
    "ExtractionFailure",
    "ExtractionError",
    "ValidationError",
    "PublishFailure",
    "PublishError",
    "StateError",
    "InvalidTransition",
    "PhaseBlocked",
]
