"""Readiness validation of extracted repositories.

The validator only reports; it never changes module state. The verdict
is all-or-nothing: one failing rule makes the module ineligible for
publication.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from repomigrate.extraction.engine import DESCRIPTOR_NAME
from repomigrate.graph.models import Module
from repomigrate.integrations.maven import BuildTool
from repomigrate.runtime.records import ExtractionRecord, RuleResult, ValidationReport
from repomigrate.validation import rules
from repomigrate.validation.descriptor import DescriptorUnreadable, parse_descriptor

logger = logging.getLogger("repomigrate.validation.validator")


class ReadinessValidator:
    """Runs every readiness rule against one extracted repository."""

    def __init__(
        self,
        build_tool: BuildTool,
        release_profile: str = "release",
        run_tests: bool = False,
    ) -> None:
        self.build_tool = build_tool
        self.release_profile = release_profile
        self.run_tests = run_tests

    def validate(self, module: Module, record: ExtractionRecord) -> ValidationReport:
        """Evaluate all rules; never stops at the first failure.

        Args:
            module: Registered module.
            record: Its Extraction Record (locates the repository).

        Returns:
            ValidationReport: Fresh report for this attempt.
        """
        repo = Path(record.destination)
        results: List[RuleResult] = []
        artifact_id: Optional[str] = None
        version: Optional[str] = None

        try:
            facts = parse_descriptor(repo / DESCRIPTOR_NAME)
        except DescriptorUnreadable as exc:
            results.extend(rules.unreadable_descriptor(str(exc)))
        else:
            artifact_id = facts.artifact_id
            version = facts.version
            results.extend(rules.check_metadata(facts))
            results.append(rules.check_version(facts))
            results.extend(rules.check_publish_profile(facts, self.release_profile))

        results.append(rules.check_build(self.build_tool, repo, self.run_tests))
        results.append(
            rules.check_release_build(self.build_tool, repo, artifact_id, version)
        )

        report = ValidationReport(module=module.name, results=tuple(results))
        failures = report.failures()
        if failures:
            logger.warning(
                "%s failed %d of %d readiness rules: %s",
                module.name,
                len(failures),
                len(results),
                ", ".join(result.rule for result in failures),
            )
        else:
            logger.info("%s passed all %d readiness rules", module.name, len(results))
        return report


__all__ = ["ReadinessValidator"]
