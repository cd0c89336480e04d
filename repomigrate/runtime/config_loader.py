"""Helpers for loading migration configuration from TOML/JSON sources.

This module provides a single entry point `load_migration_config`
that accepts various configuration sources:

* None -> default MigrationConfig
* dict -> MigrationConfig.from_dict
* Path / path-like string -> load .toml/.json from filesystem
* Inline JSON/TOML strings
"""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from repomigrate.config.schema import MigrationConfig
from repomigrate.errors import ConfigError

logger = logging.getLogger("repomigrate.runtime.config_loader")

ConfigSource = Union[str, Path, Dict[str, Any], None]


def _guess_format(text: str) -> str:
    stripped = text.lstrip()
    return "json" if stripped.startswith(("{", "[")) else "toml"


def read_structured_source(source: Union[str, Path]) -> Dict[str, Any]:
    """Read a TOML/JSON file or inline string into a mapping.

    Raises:
        ConfigError: If the text cannot be parsed or is not a mapping.
    """
    path = Path(source)
    text: Optional[str] = None
    fmt: Optional[str] = None

    if path.exists():
        text = path.read_text(encoding="utf-8")
        suffix = path.suffix.lower()
        if suffix in {".toml", ".tml"}:
            fmt = "toml"
        elif suffix == ".json":
            fmt = "json"
        else:
            fmt = _guess_format(text)
        logger.info("Loading configuration from file: %s (fmt=%s)", path, fmt)
    else:
        text = str(source)
        fmt = _guess_format(text)
        logger.info("Loading configuration from inline %s string", fmt)

    try:
        data = json.loads(text) if fmt == "json" else tomllib.loads(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot parse {fmt} configuration: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Top-level configuration must be a mapping/dict")
    return data


def load_migration_config(source: ConfigSource) -> MigrationConfig:
    """Load MigrationConfig from various configuration sources.

    Args:
        source: One of:
            * None: returns MigrationConfig.default()
            * dict: treated as already-parsed configuration mapping
            * str/Path: either a filesystem path to a .toml/.json file,
              or an inline TOML/JSON string (auto-detected)

    Returns:
        MigrationConfig instance.

    Raises:
        ConfigError: If the source cannot be parsed or fails validation.
    """
    if source is None:
        logger.debug("No config source provided; using default MigrationConfig")
        return MigrationConfig.default()

    if isinstance(source, dict):
        data = source
    elif isinstance(source, (str, Path)):
        data = read_structured_source(source)
    else:
        raise TypeError(f"Unsupported config source type: {type(source)!r}")

    try:
        return MigrationConfig.from_dict(data)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


__all__ = ["load_migration_config", "read_structured_source"]
