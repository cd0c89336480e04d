"""Module catalog data models.

``CatalogEntry`` validates raw catalog input (built-in or loaded from a
TOML/JSON file); ``Module`` is the immutable value the rest of the
system works with once the registry has accepted the catalog.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator


class ModuleType(Enum):
    """Classification that selects a module's descriptor template profile.

    - FOUNDATION: Base utility library with a broad third-party set
    - FOUNDATION_INFRASTRUCTURE: Configuration/serialisation support library
    - DOMAIN: Domain layer with minimal dependencies
    - PLUGIN: Application layers, adapters and plugins
    """

    FOUNDATION = "foundation"
    FOUNDATION_INFRASTRUCTURE = "foundation-infrastructure"
    DOMAIN = "domain"
    PLUGIN = "plugin"

    def __str__(self) -> str:
        return self.value


class CatalogEntry(BaseModel):
    """One raw catalog entry, as declared by the operator."""

    name: str = Field(min_length=1)
    phase: int = Field(ge=1)
    source_path: str = ""
    organization: str = Field(min_length=1)
    repository: str = Field(min_length=1)
    group_id: str = Field(min_length=1)
    artifact_id: str = Field(min_length=1)
    module_type: ModuleType = ModuleType.PLUGIN
    depends_on: List[str] = Field(default_factory=list)
    description: str = ""

    model_config = {"extra": "forbid"}

    @field_validator("source_path")
    @classmethod
    def validate_source_path(cls, v: str) -> str:
        """Reject subtree paths that escape the combined repository."""
        stripped = v.strip("/")
        if stripped.startswith(".") or ".." in stripped.split("/"):
            raise ValueError(f"Invalid source path '{v}'")
        return stripped

    def to_module(self) -> "Module":
        return Module(
            name=self.name,
            phase=self.phase,
            source_path=self.source_path or self.name,
            organization=self.organization,
            repository=self.repository,
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            module_type=self.module_type,
            depends_on=tuple(self.depends_on),
            description=self.description,
        )


@dataclass(frozen=True)
class Module:
    """Independently releasable unit of the combined source tree.

    Attributes:
        name: Canonical module name (unique within the catalog).
        phase: Dependency tier, 1-based.
        source_path: Subtree path inside the combined repository.
        organization: Hosting organization of the standalone repository.
        repository: Hosting repository name.
        group_id: Publication namespace.
        artifact_id: Publication artifact name.
        module_type: Template profile classification.
        depends_on: Declared dependency module names, in declaration order.
        description: One-line human description.
    """

    name: str
    phase: int
    source_path: str
    organization: str
    repository: str
    group_id: str
    artifact_id: str
    module_type: ModuleType
    depends_on: Tuple[str, ...] = ()
    description: str = ""

    @property
    def coordinate(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def slug(self) -> str:
        """``organization/repository`` on the hosting platform."""
        return f"{self.organization}/{self.repository}"

    @property
    def display_name(self) -> str:
        """Title-cased artifact name, e.g. ``Javaeda Domain``."""
        return " ".join(part.capitalize() for part in self.artifact_id.split("-"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "phase": self.phase,
            "source_path": self.source_path,
            "organization": self.organization,
            "repository": self.repository,
            "group_id": self.group_id,
            "artifact_id": self.artifact_id,
            "module_type": self.module_type.value,
            "depends_on": list(self.depends_on),
            "description": self.description,
        }


__all__ = ["ModuleType", "CatalogEntry", "Module"]
