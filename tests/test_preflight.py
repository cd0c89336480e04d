"""Tests for prerequisite checks."""

from __future__ import annotations

from pathlib import Path

from repomigrate.config.schema import MigrationConfig
from repomigrate.integrations import preflight

SETTINGS = """<settings xmlns="http://maven.apache.org/SETTINGS/1.0.0">
  <servers>
    <server>
      <id>ossrh</id>
      <username>deployer</username>
    </server>
  </servers>
</settings>
"""


def _config(tmp_path: Path, **overrides) -> MigrationConfig:
    source = tmp_path / "source"
    (source / ".git").mkdir(parents=True)
    settings = tmp_path / "settings.xml"
    settings.write_text(SETTINGS, encoding="utf-8")
    data = {
        "source_root": str(source),
        "build": {"settings_file": str(settings)},
    }
    data.update(overrides)
    return MigrationConfig.from_dict(data)


def _by_name(results):
    return {result.name: result for result in results}


def test_all_checks_pass(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(preflight.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setenv("GITHUB_TOKEN", "t0k")
    monkeypatch.setenv("MAVEN_GPG_PASSPHRASE", "s3cret")

    results = preflight.run_preflight(_config(tmp_path))

    assert all(result.ok for result in results)
    assert _by_name(results)["git"].detail == "/usr/bin/git"


def test_missing_tools_and_credentials(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(
        preflight.shutil, "which", lambda name: None if name == "git-filter-repo" else name
    )
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("MAVEN_GPG_PASSPHRASE", raising=False)

    results = _by_name(preflight.run_preflight(_config(tmp_path)))

    assert not results["git-filter-repo"].ok
    assert "pip install git-filter-repo" in results["git-filter-repo"].detail
    assert not results["hosting token"].ok
    assert not results["signing passphrase"].ok
    assert not results["signing passphrase"].required


def test_hosting_check_is_skipped_when_disabled(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(preflight.shutil, "which", lambda name: name)

    results = _by_name(preflight.run_preflight(_config(tmp_path, hosting={"enabled": False})))

    assert "hosting token" not in results


def test_settings_must_declare_the_staging_server(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(preflight.shutil, "which", lambda name: name)
    config = _config(tmp_path, descriptor={"staging_server_id": "central"})

    results = _by_name(preflight.run_preflight(config))

    assert not results["build settings"].ok
    assert "central" in results["build settings"].detail


def test_source_root_must_be_a_repository(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(preflight.shutil, "which", lambda name: name)
    plain = tmp_path / "plain"
    plain.mkdir()

    results = _by_name(preflight.run_preflight(_config(tmp_path, source_root=str(plain))))

    assert not results["source repository"].ok
