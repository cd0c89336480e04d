"""Built-in module catalog and catalog file loading.

The built-in catalog follows the four-phase extraction plan of the
ByteHot combined repository: foundation libraries, the event-driven
framework, the core modules and finally the plugins.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from repomigrate.errors import ConfigError
from repomigrate.graph.models import CatalogEntry
from repomigrate.runtime.config_loader import read_structured_source

logger = logging.getLogger("repomigrate.graph.catalog")

COMMONS_GROUP = "org.acmsl.commons"
JAVAEDA_GROUP = "org.acmsl.javaeda"
BYTEHOT_GROUP = "org.acmsl.bytehot"
PLUGINS_GROUP = "org.acmsl.bytehot.plugins"


def _plugin(name: str, repository: str, description: str) -> Dict[str, Any]:
    return {
        "name": name,
        "phase": 4,
        "organization": "bytehot",
        "repository": repository,
        "group_id": PLUGINS_GROUP,
        "artifact_id": repository,
        "module_type": "plugin",
        "depends_on": ["bytehot-plugin-commons"],
        "description": description,
    }


DEFAULT_CATALOG: List[Dict[str, Any]] = [
    # Phase 1: foundation libraries
    {
        "name": "java-commons",
        "phase": 1,
        "organization": "rydnr",
        "repository": "java-commons",
        "group_id": COMMONS_GROUP,
        "artifact_id": "java-commons",
        "module_type": "foundation",
        "description": "Java Commons - Foundation utilities and patterns",
    },
    {
        "name": "java-commons-infrastructure",
        "phase": 1,
        "organization": "rydnr",
        "repository": "java-commons-infrastructure",
        "group_id": COMMONS_GROUP,
        "artifact_id": "java-commons-infrastructure",
        "module_type": "foundation-infrastructure",
        "depends_on": ["java-commons"],
        "description": (
            "Java Commons Infrastructure - Infrastructure support for "
            "foundation utilities"
        ),
    },
    # Phase 2: event-driven architecture framework
    {
        "name": "javaeda-domain",
        "phase": 2,
        "organization": "java-eda",
        "repository": "domain",
        "group_id": JAVAEDA_GROUP,
        "artifact_id": "javaeda-domain",
        "module_type": "domain",
        "depends_on": ["java-commons"],
        "description": "JavaEDA Domain - Domain-driven design framework domain layer",
    },
    {
        "name": "javaeda-infrastructure",
        "phase": 2,
        "organization": "java-eda",
        "repository": "infrastructure",
        "group_id": JAVAEDA_GROUP,
        "artifact_id": "javaeda-infrastructure",
        "module_type": "plugin",
        "depends_on": ["javaeda-domain", "java-commons-infrastructure"],
        "description": "JavaEDA Infrastructure - Infrastructure adapters for JavaEDA framework",
    },
    {
        "name": "javaeda-application",
        "phase": 2,
        "organization": "java-eda",
        "repository": "application",
        "group_id": JAVAEDA_GROUP,
        "artifact_id": "javaeda-application",
        "module_type": "plugin",
        "depends_on": ["javaeda-domain", "javaeda-infrastructure"],
        "description": "JavaEDA Application - Application layer for JavaEDA framework",
    },
    # Phase 3: core modules
    {
        "name": "bytehot-domain",
        "phase": 3,
        "organization": "bytehot",
        "repository": "domain",
        "group_id": BYTEHOT_GROUP,
        "artifact_id": "bytehot-domain",
        "module_type": "domain",
        "depends_on": ["javaeda-domain", "java-commons"],
        "description": "ByteHot Domain - Core business logic for JVM bytecode hot-swapping",
    },
    {
        "name": "bytehot-infrastructure",
        "phase": 3,
        "organization": "bytehot",
        "repository": "infrastructure",
        "group_id": BYTEHOT_GROUP,
        "artifact_id": "bytehot-infrastructure",
        "module_type": "plugin",
        "depends_on": ["bytehot-domain", "javaeda-infrastructure"],
        "description": "ByteHot Infrastructure - Infrastructure adapters for ByteHot",
    },
    {
        "name": "bytehot-application",
        "phase": 3,
        "organization": "bytehot",
        "repository": "application",
        "group_id": BYTEHOT_GROUP,
        "artifact_id": "bytehot-application",
        "module_type": "plugin",
        "depends_on": [
            "bytehot-domain",
            "bytehot-infrastructure",
            "javaeda-application",
        ],
        "description": "ByteHot Application - Application layer and JVM agent for ByteHot",
    },
    # Phase 4: plugins
    {
        "name": "bytehot-plugin-commons",
        "phase": 4,
        "organization": "bytehot",
        "repository": "plugin-commons",
        "group_id": PLUGINS_GROUP,
        "artifact_id": "plugin-commons",
        "module_type": "plugin",
        "depends_on": ["bytehot-application"],
        "description": "ByteHot Plugin Commons - Shared utilities for ByteHot plugins",
    },
    _plugin(
        "bytehot-spring-plugin",
        "spring-plugin",
        "ByteHot Spring Plugin - Spring Framework integration for ByteHot",
    ),
    _plugin(
        "bytehot-maven-plugin",
        "maven-plugin",
        "ByteHot Maven Plugin - Maven build integration for ByteHot",
    ),
    _plugin(
        "bytehot-gradle-plugin",
        "gradle-plugin",
        "ByteHot Gradle Plugin - Gradle build integration for ByteHot",
    ),
    _plugin(
        "bytehot-intellij-plugin",
        "intellij-plugin",
        "ByteHot IntelliJ Plugin - IntelliJ IDEA integration for ByteHot",
    ),
    _plugin(
        "bytehot-eclipse-plugin",
        "eclipse-plugin",
        "ByteHot Eclipse Plugin - Eclipse IDE integration for ByteHot",
    ),
    _plugin(
        "bytehot-vscode-extension",
        "vscode-plugin",
        "ByteHot VSCode Plugin - Visual Studio Code extension for ByteHot",
    ),
]


def parse_entries(raw: Sequence[Dict[str, Any]]) -> List[CatalogEntry]:
    """Validate raw catalog mappings.

    Raises:
        ConfigError: If an entry is malformed.
    """
    entries: List[CatalogEntry] = []
    for index, item in enumerate(raw):
        try:
            entries.append(CatalogEntry.model_validate(item))
        except PydanticValidationError as exc:
            name = item.get("name", f"#{index}") if isinstance(item, dict) else f"#{index}"
            raise ConfigError(f"Invalid catalog entry {name}: {exc}") from exc
    return entries


def load_catalog(source: Union[str, Path, None] = None) -> List[CatalogEntry]:
    """Load catalog entries from a file (``[[modules]]`` tables) or the built-in plan.

    Args:
        source: Path to a TOML/JSON catalog, or None for DEFAULT_CATALOG.

    Returns:
        List[CatalogEntry]: Validated entries in declaration order.
    """
    if source is None:
        logger.debug("Using built-in catalog (%d modules)", len(DEFAULT_CATALOG))
        return parse_entries(DEFAULT_CATALOG)

    data = read_structured_source(source)
    modules = data.get("modules")
    if not isinstance(modules, list):
        raise ConfigError("Catalog must define a 'modules' list")
    logger.info("Loaded %d catalog entries from %s", len(modules), source)
    return parse_entries(modules)


__all__ = ["DEFAULT_CATALOG", "load_catalog", "parse_entries"]
