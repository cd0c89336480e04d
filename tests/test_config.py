"""Tests for configuration loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from repomigrate.config.schema import MigrationConfig
from repomigrate.errors import ConfigError
from repomigrate.runtime.config_loader import load_migration_config


def test_none_gives_defaults() -> None:
    config = load_migration_config(None)

    assert config == MigrationConfig.default()
    assert config.max_workers == 4
    assert config.hosting.enabled
    assert "LICENSE" in config.history.allow_list


def test_toml_file(tmp_path: Path) -> None:
    path = tmp_path / "repomigrate.toml"
    path.write_text(
        """
source_root = "/src/bytehot"
max_workers = 2

[hosting]
enabled = false

[publish]
propagation_wait = 5
""",
        encoding="utf-8",
    )

    config = load_migration_config(path)

    assert config.source_root == Path("/src/bytehot")
    assert config.max_workers == 2
    assert not config.hosting.enabled
    assert config.publish.propagation_wait == 5.0


def test_json_file_and_inline_strings(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"descriptor": {"version": "2.1.0"}}), encoding="utf-8")

    assert load_migration_config(path).descriptor.version == "2.1.0"
    assert load_migration_config('{"max_workers": 8}').max_workers == 8
    assert load_migration_config("max_workers = 3").max_workers == 3


def test_dict_source() -> None:
    config = load_migration_config({"build": {"run_tests": True}})

    assert config.build.run_tests


@pytest.mark.parametrize(
    "source",
    [
        {"max_workers": 0},
        {"hosting": {"visibility": "secret"}},
        {"history": {"allow_list": ["../etc/passwd"]}},
        "max_workers = ",
        "[1, 2]",
    ],
)
def test_invalid_configuration_is_a_config_error(source) -> None:
    with pytest.raises(ConfigError):
        load_migration_config(source)


def test_descriptor_settings_are_frozen() -> None:
    config = MigrationConfig()

    with pytest.raises(PydanticValidationError):
        config.descriptor.version = "9.9.9"
