"""Tests for the readiness validator."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from conftest import VERSION, FakeBuildTool, Pipeline, abc_registry
from repomigrate.errors import CommandTimeout, ValidationError
from repomigrate.extraction.engine import DESCRIPTOR_NAME
from repomigrate.runtime.lifecycle import ModuleState, Stage
from repomigrate.runtime.records import ExtractionRecord
from repomigrate.validation.rules import ALL_RULES, RELEASE_BUILD_RULE
from repomigrate.validation.validator import ReadinessValidator


def _extracted(tmp_path: Path, store, build_tool=None):
    pipeline = Pipeline(tmp_path, abc_registry(), store, build_tool=build_tool)
    module = pipeline.registry.get("a")
    return pipeline, module, pipeline.engine.extract(module)


def test_generated_repository_passes_every_rule(tmp_path: Path, store) -> None:
    pipeline, module, record = _extracted(tmp_path, store)

    report = pipeline.validator.validate(module, record)

    assert report.passed
    assert [r.rule for r in report.results] == list(ALL_RULES)
    assert pipeline.log.subjects("compile") == ["a"]
    assert pipeline.log.subjects("package") == ["a"]


def test_two_of_three_artifacts_fails_release_build(tmp_path: Path, store) -> None:
    pipeline, module, record = _extracted(
        tmp_path, store, build_tool=FakeBuildTool(missing=["-javadoc.jar"])
    )

    report = pipeline.validator.validate(module, record)

    assert not report.passed
    failed = report.result_for(RELEASE_BUILD_RULE)
    assert not failed.passed
    assert "produced 2 of 3" in failed.detail
    assert f"a-{VERSION}-javadoc.jar" in failed.detail
    assert [r.rule for r in report.failures()] == [RELEASE_BUILD_RULE]


def test_every_rule_is_evaluated_after_a_failure(tmp_path: Path, store) -> None:
    pipeline, module, record = _extracted(tmp_path, store)
    pom = record.destination / DESCRIPTOR_NAME
    content = pom.read_text(encoding="utf-8")
    content = content.replace(f"<version>{VERSION}</version>", "<version>1.0.0-SNAPSHOT</version>", 1)
    content = content.replace("<scm>", "<scmX>").replace("</scm>", "</scmX>")
    pom.write_text(content, encoding="utf-8")

    report = ReadinessValidator(FakeBuildTool(compile_ok=False)).validate(module, record)

    failed = {r.rule for r in report.failures()}
    assert len(report.results) == len(ALL_RULES)
    assert {"metadata:scm", "version", "build"} <= failed
    assert "SNAPSHOT" in report.result_for("version").detail
    assert "cannot find symbol" in report.result_for("build").detail


def test_missing_release_profile_fails_each_profile_rule(tmp_path: Path, store) -> None:
    pipeline, module, record = _extracted(tmp_path, store)

    report = ReadinessValidator(pipeline.build_tool, release_profile="central").validate(
        module, record
    )

    profile_failures = [r for r in report.failures() if r.rule.startswith("publish-profile:")]
    assert len(profile_failures) == 5
    assert all("no 'central' profile" in r.detail for r in profile_failures)


def test_unreadable_descriptor_still_runs_build_rules(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / DESCRIPTOR_NAME).write_text("<project>", encoding="utf-8")
    record = ExtractionRecord(
        module="a",
        revision_range="r..h",
        source_revision="s",
        destination=repo,
        descriptor_hash="0" * 64,
    )
    build_tool = FakeBuildTool()

    report = ReadinessValidator(build_tool).validate(abc_registry().get("a"), record)

    assert not report.passed
    assert len(report.results) == len(ALL_RULES)
    assert report.result_for("build").passed
    assert "coordinates unknown" in report.result_for(RELEASE_BUILD_RULE).detail


def test_build_timeout_is_a_failed_rule(tmp_path: Path, store) -> None:
    pipeline, module, record = _extracted(tmp_path, store)

    class SlowBuild(FakeBuildTool):
        def compile(self, repo):
            raise CommandTimeout(["mvn", "compile"], 10)

    report = ReadinessValidator(SlowBuild()).validate(module, record)

    assert not report.result_for("build").passed
    assert "timed out" in report.result_for("build").detail


def test_two_missing_metadata_fields_are_reported_separately(tmp_path: Path, store) -> None:
    pipeline, module, record = _extracted(tmp_path, store)
    pom = record.destination / DESCRIPTOR_NAME
    content = pom.read_text(encoding="utf-8")
    content = re.sub(r"<description>.*?</description>", "", content, flags=re.S)
    content = re.sub(r"<developers>.*?</developers>", "", content, flags=re.S)
    pom.write_text(content, encoding="utf-8")

    report = pipeline.validator.validate(module, record)

    assert [r.rule for r in report.failures()] == ["metadata:description", "metadata:developer"]
    assert report.result_for("metadata:developer").detail == "missing maintainer"


def test_rejected_module_stays_extracted(tmp_path: Path, store) -> None:
    pipeline = Pipeline(
        tmp_path, abc_registry(), store, build_tool=FakeBuildTool(missing=["-javadoc.jar"])
    )
    pipeline.orchestrator.run_stage("a", Stage.EXTRACT)

    with pytest.raises(ValidationError) as excinfo:
        pipeline.orchestrator.run_stage("a", Stage.VALIDATE)

    record = store.get("a")
    assert record.state is ModuleState.EXTRACTED
    assert record.validation == excinfo.value.report
    assert "-javadoc.jar" in record.validation.result_for(RELEASE_BUILD_RULE).detail
