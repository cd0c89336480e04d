"""Immutable records produced by the extraction and validation stages.

Records are JSON-serialisable so the state store can keep them next to
each module's lifecycle state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from repomigrate.runtime.lifecycle import ModuleState, Stage


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class ExtractionRecord:
    """Outcome of isolating one module into its standalone repository.

    Attributes:
        module: Canonical module name.
        revision_range: ``<root>..<head>`` of the isolated history.
        source_revision: HEAD of the combined repository at extraction time.
        destination: Path of the standalone repository.
        descriptor_hash: sha256 of the rendered build descriptor.
        created_at: ISO-8601 UTC timestamp.
    """

    module: str
    revision_range: str
    source_revision: str
    destination: Path
    descriptor_hash: str
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "revision_range": self.revision_range,
            "source_revision": self.source_revision,
            "destination": str(self.destination),
            "descriptor_hash": self.descriptor_hash,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionRecord":
        return cls(
            module=data["module"],
            revision_range=data.get("revision_range", ""),
            source_revision=data.get("source_revision", ""),
            destination=Path(data["destination"]),
            descriptor_hash=data["descriptor_hash"],
            created_at=data.get("created_at", ""),
        )


@dataclass(frozen=True)
class RuleResult:
    """Single readiness rule outcome."""

    rule: str
    passed: bool
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"rule": self.rule, "passed": self.passed, "detail": self.detail}


@dataclass(frozen=True)
class ValidationReport:
    """All readiness rule outcomes for one validation attempt.

    The verdict is all-or-nothing: a single failing rule makes the module
    ineligible for publication.
    """

    module: str
    results: Tuple[RuleResult, ...]
    created_at: str = field(default_factory=utc_now)

    @property
    def passed(self) -> bool:
        return bool(self.results) and all(result.passed for result in self.results)

    def failures(self) -> Tuple[RuleResult, ...]:
        return tuple(result for result in self.results if not result.passed)

    def result_for(self, rule: str) -> Optional[RuleResult]:
        for result in self.results:
            if result.rule == rule:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "passed": self.passed,
            "created_at": self.created_at,
            "results": [result.to_dict() for result in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationReport":
        return cls(
            module=data["module"],
            results=tuple(
                RuleResult(
                    rule=item["rule"],
                    passed=bool(item["passed"]),
                    detail=item.get("detail", ""),
                )
                for item in data.get("results", [])
            ),
            created_at=data.get("created_at", ""),
        )


@dataclass(frozen=True)
class ModuleRecord:
    """Persisted per-module row of the state store."""

    name: str
    state: ModuleState = ModuleState.PENDING
    failed_stage: Optional[Stage] = None
    last_error: Optional[str] = None
    extraction: Optional[ExtractionRecord] = None
    validation: Optional[ValidationReport] = None
    updated_at: Optional[str] = None

    @property
    def is_failed(self) -> bool:
        return self.state is ModuleState.FAILED


__all__ = [
    "utc_now",
    "ExtractionRecord",
    "RuleResult",
    "ValidationReport",
    "ModuleRecord",
]
