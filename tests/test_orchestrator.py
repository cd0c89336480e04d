"""Tests for phase orchestration across the whole pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from conftest import FakeBuildTool, Pipeline, abc_registry, make_module, result
from repomigrate.errors import (
    CommandCancelled,
    ConfigError,
    ExitCode,
    HostingError,
    PhaseBlocked,
    StateError,
)
from repomigrate.graph.registry import ModuleRegistry
from repomigrate.runtime.lifecycle import ModuleState, RunMode, Stage
from repomigrate.runtime.orchestrator import INTERRUPTED_REASON, Action
from repomigrate.runtime.stages import CANCELLED_REASON


def _deploy_fails_for(name: str):
    def deploy(repo: Path):
        if repo.name == name:
            return result(1, stdout="[ERROR] Failed to deploy artifacts: Could not transfer artifact")
        return result(stdout="[INFO] BUILD SUCCESS")

    return deploy


class FailingHosting:
    def ensure_repository(self, module):
        raise HostingError(f"{module.slug}: HTTP 403 Forbidden")


class RejectingPushHosting:
    """Repository exists; the first push is rejected."""

    def __init__(self) -> None:
        self.rejections = 1
        self.pushed = []

    def ensure_repository(self, module):
        return False

    def push(self, git, repo, module, branch):
        if self.rejections:
            self.rejections -= 1
            raise HostingError(f"{module.slug}: push rejected")
        self.pushed.append(module.name)


def test_phases_publish_dependencies_before_dependents(tmp_path: Path, store) -> None:
    pipeline = Pipeline(tmp_path, abc_registry(), store)

    summary = pipeline.orchestrator.run()

    assert summary.exit_code is ExitCode.OK
    assert [o.action for o in summary.outcomes] == [Action.PUBLISHED] * 3
    log = pipeline.log
    assert log.index("deploy", "a") < log.index("isolate", "c")
    assert log.index("deploy", "b") < log.index("isolate", "c")
    assert all(r.state is ModuleState.PUBLISHED for r in store.all_records().values())


def test_publish_failure_halts_later_phases(tmp_path: Path, store) -> None:
    pipeline = Pipeline(
        tmp_path, abc_registry(), store, build_tool=FakeBuildTool(deploy=_deploy_fails_for("a"))
    )

    summary = pipeline.orchestrator.run()

    assert summary.exit_code is ExitCode.PUBLISH
    assert summary.halted_phase == 1
    failed = summary.outcome("a")
    assert failed.action == Action.FAILED
    assert failed.failed_stage is Stage.PUBLISH
    assert "upload-failed" in failed.reason
    assert summary.outcome("c").action == Action.BLOCKED
    assert "phase 1 did not complete" in summary.outcome("c").reason
    assert "c" not in pipeline.log.subjects("isolate")
    assert store.get("c").state is ModuleState.PENDING

    with pytest.raises(PhaseBlocked) as excinfo:
        pipeline.orchestrator.run(2)
    assert "a" in excinfo.value.pending


def test_resume_never_redoes_completed_work(tmp_path: Path, store) -> None:
    build_tool = FakeBuildTool(deploy=_deploy_fails_for("a"))
    pipeline = Pipeline(tmp_path, abc_registry(), store, build_tool=build_tool)
    pipeline.orchestrator.run()
    assert store.get("b").state is ModuleState.PUBLISHED

    store.acknowledge("a")
    build_tool.deploy = None
    summary = pipeline.orchestrator.run()

    assert summary.ok
    assert summary.outcome("b").action == Action.ALREADY_PUBLISHED
    assert summary.outcome("a").action == Action.PUBLISHED
    assert pipeline.log.subjects("deploy").count("b") == 1
    assert pipeline.log.subjects("isolate").count("a") == 1
    assert pipeline.log.subjects("deploy").count("a") == 2


def test_second_run_is_a_no_op(tmp_path: Path, store) -> None:
    pipeline = Pipeline(tmp_path, abc_registry(), store)
    pipeline.orchestrator.run()
    calls = pipeline.log.count()

    summary = pipeline.orchestrator.run()

    assert summary.ok
    assert summary.with_action(Action.ALREADY_PUBLISHED) == summary.outcomes
    assert pipeline.log.count() == calls


def test_failed_module_is_refused_until_acknowledged(tmp_path: Path, store) -> None:
    pipeline = Pipeline(tmp_path, abc_registry(), store)
    store.transition("a", ModuleState.FAILED, stage=Stage.EXTRACT, error="source-missing")

    refused = pipeline.orchestrator.run(1)

    assert refused.exit_code is ExitCode.PHASE_BLOCKED
    assert refused.outcome("a").action == Action.REFUSED
    assert refused.outcome("b").action == Action.SKIPPED
    assert pipeline.log.count() == 0

    store.acknowledge("a")
    summary = pipeline.orchestrator.run(1)

    assert summary.ok
    assert store.get("a").state is ModuleState.PUBLISHED


def test_rejected_module_returns_to_extracted(tmp_path: Path, store) -> None:
    build_tool = FakeBuildTool(compile_ok=False)
    pipeline = Pipeline(tmp_path, abc_registry(), store, build_tool=build_tool, max_workers=1)

    summary = pipeline.orchestrator.run()

    assert summary.exit_code is ExitCode.VALIDATION
    assert summary.outcome("a").action == Action.REJECTED
    assert summary.outcome("b").action == Action.SKIPPED
    record = store.get("a")
    assert record.state is ModuleState.EXTRACTED
    assert not record.validation.passed
    assert not record.validation.result_for("build").passed
    assert pipeline.log.count("deploy") == 0

    build_tool.compile_ok = True
    retry = pipeline.orchestrator.run()

    assert retry.ok
    assert pipeline.log.subjects("isolate").count("a") == 1


def test_dry_run_persists_nothing(tmp_path: Path, store, caplog) -> None:
    caplog.set_level(logging.WARNING, logger="repomigrate")
    pipeline = Pipeline(tmp_path, abc_registry(), store)

    summary = pipeline.orchestrator.run(mode=RunMode.DRY_RUN)

    assert summary.mode is RunMode.DRY_RUN
    assert [o.action for o in summary.outcomes] == [Action.PLANNED] * 3
    assert store.all_records() == {}
    assert pipeline.log.count() == 0
    assert not pipeline.migration_dir.exists()
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("DRY RUN: would isolate history of c") for m in messages)
    assert any("DRY RUN: would publish org.acme:a" in m for m in messages)


def test_dry_run_reports_the_blocking_gate(tmp_path: Path, store, caplog) -> None:
    caplog.set_level(logging.WARNING, logger="repomigrate")
    pipeline = Pipeline(tmp_path, abc_registry(), store)

    summary = pipeline.orchestrator.run(2, mode=RunMode.DRY_RUN)

    assert summary.outcomes == ()
    assert summary.halted_phase == 2
    assert summary.exit_code is ExitCode.PHASE_BLOCKED
    assert any("DRY RUN: would stop" in r.getMessage() for r in caplog.records)


def test_interrupted_states_are_recovered(tmp_path: Path, store) -> None:
    pipeline = Pipeline(tmp_path, abc_registry(), store)
    store.transition("a", ModuleState.EXTRACTING)
    for state in (
        ModuleState.EXTRACTING,
        ModuleState.EXTRACTED,
        ModuleState.VALIDATING,
        ModuleState.VALIDATED,
        ModuleState.PUBLISHING,
    ):
        store.transition("b", state)
    for state in (ModuleState.EXTRACTING, ModuleState.EXTRACTED, ModuleState.VALIDATING):
        store.transition("c", state)

    recovered = pipeline.orchestrator.recover()

    assert sorted(recovered) == ["a", "b", "c"]
    assert store.get("a").state is ModuleState.PENDING
    assert store.get("c").state is ModuleState.EXTRACTED
    b = store.get("b")
    assert b.state is ModuleState.FAILED
    assert b.failed_stage is Stage.PUBLISH
    assert b.last_error == INTERRUPTED_REASON
    assert pipeline.orchestrator.recover() == []


def test_cancellation_stops_the_run(tmp_path: Path, store) -> None:
    def cancel_during_compile(repo: Path) -> None:
        pipeline.orchestrator.cancel()
        raise CommandCancelled("mvn compile terminated")

    build_tool = FakeBuildTool(on_compile=cancel_during_compile)
    pipeline = Pipeline(tmp_path, abc_registry(), store, build_tool=build_tool, max_workers=1)

    summary = pipeline.orchestrator.run()

    assert summary.cancelled
    assert summary.exit_code is ExitCode.CANCELLED
    assert summary.outcome("a").action == Action.CANCELLED
    assert summary.outcome("b").action == Action.CANCELLED
    record = store.get("a")
    assert record.state is ModuleState.FAILED
    assert record.failed_stage is Stage.VALIDATE
    assert record.last_error == CANCELLED_REASON
    assert store.get("b").state is ModuleState.PENDING


def test_intra_phase_dependency_published_first(tmp_path: Path, store) -> None:
    registry = ModuleRegistry([make_module("y", depends_on=("x",)), make_module("x")])
    pipeline = Pipeline(tmp_path, registry, store, max_workers=4)

    summary = pipeline.orchestrator.run()

    assert summary.ok
    assert pipeline.log.index("deploy", "x") < pipeline.log.index("isolate", "y")


def test_accepted_phase_lets_independent_work_continue(tmp_path: Path, store) -> None:
    registry = ModuleRegistry(
        [
            make_module("a"),
            make_module("b"),
            make_module("c", phase=2, depends_on=("a",)),
            make_module("d", phase=2, depends_on=("b",)),
        ]
    )
    pipeline = Pipeline(
        tmp_path, registry, store, build_tool=FakeBuildTool(deploy=_deploy_fails_for("a"))
    )
    pipeline.orchestrator.run(1)
    store.accept_phase(1, note="a published by hand later")

    summary = pipeline.orchestrator.run(2)

    blocked = summary.outcome("c")
    assert blocked.action == Action.BLOCKED
    assert "a" in blocked.reason
    assert summary.outcome("d").action == Action.PUBLISHED
    assert summary.exit_code is ExitCode.PHASE_BLOCKED


def test_hosting_failure_is_attributed_to_hosting(tmp_path: Path, store) -> None:
    pipeline = Pipeline(tmp_path, abc_registry(), store, hosting=FailingHosting(), max_workers=1)

    summary = pipeline.orchestrator.run(1)

    assert summary.exit_code is ExitCode.HOSTING
    assert summary.outcome("a").failed_stage is Stage.HOSTING
    assert store.get("a").failed_stage is Stage.HOSTING
    assert pipeline.log.count("isolate") == 0


def test_failed_push_resumes_without_isolating_again(tmp_path: Path, store) -> None:
    hosting = RejectingPushHosting()
    registry = ModuleRegistry([make_module("a")])
    pipeline = Pipeline(tmp_path, registry, store, hosting=hosting, push=True)

    failed = pipeline.orchestrator.run(1)

    assert failed.exit_code is ExitCode.HOSTING
    record = store.get("a")
    assert record.failed_stage is Stage.HOSTING
    assert record.extraction.destination == tmp_path / "migration" / "acme" / "a"

    store.acknowledge("a")
    summary = pipeline.orchestrator.run(1)

    assert summary.ok
    assert store.get("a").state is ModuleState.PUBLISHED
    assert pipeline.isolator.calls == ["a"]
    assert hosting.pushed == ["a"]


def test_run_stage_checks_state(tmp_path: Path, store) -> None:
    pipeline = Pipeline(tmp_path, abc_registry(), store)
    orchestrator = pipeline.orchestrator

    with pytest.raises(StateError, match="dependencies"):
        orchestrator.run_stage("c", Stage.EXTRACT)
    assert store.get("c").state is ModuleState.PENDING

    with pytest.raises(StateError):
        orchestrator.run_stage("a", Stage.VALIDATE)

    record = orchestrator.run_stage("a", Stage.EXTRACT)
    assert record.state is ModuleState.EXTRACTED

    with pytest.raises(ValueError):
        orchestrator.run_stage("a", Stage.HOSTING)

    store.transition("b", ModuleState.FAILED, stage=Stage.EXTRACT, error="boom")
    with pytest.raises(StateError, match="acknowledge"):
        orchestrator.run_stage("b", Stage.EXTRACT)


def test_phase_selector(tmp_path: Path, store) -> None:
    orchestrator = Pipeline(tmp_path, abc_registry(), store).orchestrator

    assert orchestrator.select_phases(None) == (1, 2)
    assert orchestrator.select_phases("all") == (1, 2)
    assert orchestrator.select_phases("2") == (2,)
    with pytest.raises(ConfigError):
        orchestrator.select_phases("first")
    with pytest.raises(ConfigError):
        orchestrator.select_phases(9)
