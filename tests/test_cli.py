"""Tests for repomigrate CLI entrypoints."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

import repomigrate.main as main
from repomigrate.cli import modules as modules_cli
from repomigrate.cli import run_phase as run_phase_cli
from repomigrate.integrations import preflight
from repomigrate.runtime.lifecycle import ModuleState, Stage
from repomigrate.runtime.state_store import StateStore

CATALOG = """
[[modules]]
name = "a"
phase = 1
organization = "acme"
repository = "a"
group_id = "org.acme"
artifact_id = "a"

[[modules]]
name = "b"
phase = 1
organization = "acme"
repository = "b"
group_id = "org.acme"
artifact_id = "b"

[[modules]]
name = "c"
phase = 2
organization = "acme"
repository = "c"
group_id = "org.acme"
artifact_id = "c"
depends_on = ["a", "b"]
"""


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Config file with hosting disabled and all state under tmp_path."""
    (tmp_path / "catalog.toml").write_text(CATALOG, encoding="utf-8")
    (tmp_path / "source" / ".git").mkdir(parents=True)
    config = tmp_path / "repomigrate.toml"
    config.write_text(
        f"""
source_root = '{tmp_path / "source"}'
migration_dir = '{tmp_path / "migration"}'
state_db = '{tmp_path / "state" / "state.db"}'
catalog = '{tmp_path / "catalog.toml"}'

[hosting]
enabled = false
""",
        encoding="utf-8",
    )
    return tmp_path


def _run(monkeypatch: pytest.MonkeyPatch, workspace: Path, *argv: str) -> int:
    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)
    monkeypatch.setattr(
        sys, "argv", ["repomigrate", "-c", str(workspace / "repomigrate.toml"), *argv]
    )
    return main.main()


def _store(workspace: Path) -> StateStore:
    return StateStore(workspace / "state" / "state.db")


def test_main_dispatches_run_phase(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify that `main` parses args and dispatches run_phase_command."""

    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)
    captured = {}

    def fake_run_phase_command(args) -> int:
        captured["args"] = args
        return 0

    monkeypatch.setattr(main, "run_phase_command", fake_run_phase_command)
    monkeypatch.setattr(sys, "argv", ["repomigrate", "run-phase", "all", "--dry-run"])

    assert main.main() == 0
    parsed = captured["args"]
    assert parsed.phase == "all"
    assert parsed.dry_run
    assert not parsed.yes


@pytest.mark.parametrize(
    "argv, handler",
    [
        (["extract", "a"], "extract_command"),
        (["push", "a"], "push_command"),
        (["status"], "status_command"),
        (["acknowledge", "a"], "acknowledge_command"),
        (["accept-phase", "1"], "accept_phase_command"),
        (["check"], "check_command"),
    ],
)
def test_main_dispatches_each_command(
    monkeypatch: pytest.MonkeyPatch, argv, handler
) -> None:
    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)
    monkeypatch.setattr(main, handler, lambda args: 42)
    monkeypatch.setattr(sys, "argv", ["repomigrate", *argv])

    assert main.main() == 42


def test_main_requires_command(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """Ensure missing subcommands make the CLI print help and fail."""

    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)
    monkeypatch.setattr(sys, "argv", ["repomigrate"])

    assert main.main() == 1
    assert "Repomigrate" in capsys.readouterr().out


def test_status(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    assert _run(monkeypatch, workspace, "status") == 0
    assert _run(monkeypatch, workspace, "status", "--phase", "2") == 0
    assert _run(monkeypatch, workspace, "status", "--phase", "9") == 1


def test_dry_run_persists_nothing(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    assert _run(monkeypatch, workspace, "run-phase", "all", "--dry-run") == 0

    store = _store(workspace)
    try:
        assert store.all_records() == {}
    finally:
        store.close_all()
    assert not (workspace / "migration").exists()


def test_run_phase_blocked_by_earlier_phase(
    monkeypatch: pytest.MonkeyPatch, workspace: Path
) -> None:
    assert _run(monkeypatch, workspace, "run-phase", "2", "--yes") == 7


def test_run_phase_declined(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    monkeypatch.setattr(run_phase_cli, "confirm_publication", lambda *a: False)

    assert _run(monkeypatch, workspace, "run-phase", "1") == 130


def test_invalid_phase_selector(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    assert _run(monkeypatch, workspace, "run-phase", "first", "--dry-run") == 1


def test_acknowledge(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    assert _run(monkeypatch, workspace, "acknowledge", "a") == 7

    store = _store(workspace)
    store.transition("a", ModuleState.FAILED, stage=Stage.PUBLISH, error="timeout")
    assert _run(monkeypatch, workspace, "acknowledge", "a", "--mark-published") == 0
    try:
        assert store.get("a").state is ModuleState.PUBLISHED
    finally:
        store.close_all()


def test_accept_phase(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    assert _run(monkeypatch, workspace, "accept-phase", "1", "--note", "manual") == 0
    assert _run(monkeypatch, workspace, "accept-phase", "9") == 1

    store = _store(workspace)
    try:
        assert store.accepted_phases() == {1}
    finally:
        store.close_all()


def test_single_module_commands_check_state(
    monkeypatch: pytest.MonkeyPatch, workspace: Path
) -> None:
    assert _run(monkeypatch, workspace, "extract", "missing") == 2
    assert _run(monkeypatch, workspace, "extract", "c") == 7
    assert _run(monkeypatch, workspace, "validate", "a") == 7
    assert _run(monkeypatch, workspace, "push", "a") == 7


def test_publish_declined(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    monkeypatch.setattr(modules_cli, "confirm_publication", lambda *a: False)

    assert _run(monkeypatch, workspace, "publish", "a") == 130


def test_check_reports_missing_tools(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    monkeypatch.setattr(preflight.shutil, "which", lambda name: None)

    assert _run(monkeypatch, workspace, "check") == 8


def test_invalid_config_is_reported(monkeypatch: pytest.MonkeyPatch, workspace: Path) -> None:
    (workspace / "repomigrate.toml").write_text("max_workers = 0\n", encoding="utf-8")

    assert _run(monkeypatch, workspace, "status") == 1
