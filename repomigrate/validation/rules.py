"""Readiness rules evaluated against an extracted repository.

Every rule produces one ``RuleResult`` per sub-check so a report names
each missing field instead of stopping at the first one.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from repomigrate.errors import CommandTimeout
from repomigrate.integrations.maven import BuildTool, release_artifacts
from repomigrate.runtime.process import CommandResult
from repomigrate.runtime.records import RuleResult
from repomigrate.validation.descriptor import DescriptorFacts

logger = logging.getLogger("repomigrate.validation.rules")

METADATA_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("name", "name"),
    ("description", "description"),
    ("url", "public URL"),
    ("license", "license"),
    ("developer", "maintainer"),
    ("scm", "source-control locator"),
)

SNAPSHOT_MARKER = "SNAPSHOT"

GPG_PLUGIN = "maven-gpg-plugin"
SOURCE_PLUGIN = "maven-source-plugin"
JAVADOC_PLUGIN = "maven-javadoc-plugin"
STAGING_PLUGIN = "nexus-staging-maven-plugin"

METADATA_RULES = tuple(f"metadata:{key}" for key, _ in METADATA_FIELDS)
VERSION_RULE = "version"
PROFILE_RULES = (
    "publish-profile:release-profile",
    "publish-profile:signing",
    "publish-profile:sources",
    "publish-profile:javadoc",
    "publish-profile:staging",
)
BUILD_RULE = "build"
RELEASE_BUILD_RULE = "release-build"

DESCRIPTOR_RULES = METADATA_RULES + (VERSION_RULE,) + PROFILE_RULES
ALL_RULES = DESCRIPTOR_RULES + (BUILD_RULE, RELEASE_BUILD_RULE)


def unreadable_descriptor(reason: str) -> List[RuleResult]:
    """Fail every descriptor rule when the descriptor cannot be parsed."""
    return [RuleResult(rule, False, f"descriptor unreadable: {reason}") for rule in DESCRIPTOR_RULES]


def check_metadata(facts: DescriptorFacts) -> List[RuleResult]:
    results = []
    for key, label in METADATA_FIELDS:
        value = getattr(facts, key)
        if value:
            results.append(RuleResult(f"metadata:{key}", True, value))
        else:
            results.append(RuleResult(f"metadata:{key}", False, f"missing {label}"))
    return results


def check_version(facts: DescriptorFacts) -> RuleResult:
    if not facts.version:
        return RuleResult(VERSION_RULE, False, "missing version")
    if SNAPSHOT_MARKER in facts.version.upper():
        return RuleResult(VERSION_RULE, False, f"pre-release version {facts.version}")
    return RuleResult(VERSION_RULE, True, facts.version)


def check_publish_profile(facts: DescriptorFacts, release_profile: str) -> List[RuleResult]:
    profile = facts.profiles.get(release_profile)
    if profile is None:
        detail = f"no '{release_profile}' profile"
        return [RuleResult(rule, False, detail) for rule in PROFILE_RULES]

    declared = facts.build_plugins | profile.plugins

    def plugin_rule(rule: str, plugin: str, plugins=declared) -> RuleResult:
        if plugin in plugins:
            return RuleResult(rule, True, plugin)
        return RuleResult(rule, False, f"{plugin} not declared")

    staging_ok = (
        STAGING_PLUGIN in declared or profile.has_distribution or facts.has_distribution
    )
    return [
        RuleResult(PROFILE_RULES[0], True, release_profile),
        plugin_rule(PROFILE_RULES[1], GPG_PLUGIN, profile.plugins),
        plugin_rule(PROFILE_RULES[2], SOURCE_PLUGIN),
        plugin_rule(PROFILE_RULES[3], JAVADOC_PLUGIN),
        RuleResult(
            PROFILE_RULES[4],
            staging_ok,
            "staging repository declared" if staging_ok else "no staging repository or plugin",
        ),
    ]


def _failure_detail(result: CommandResult) -> str:
    tail = result.tail(5)
    if tail:
        return f"exit code {result.returncode}: {tail}"
    return f"exit code {result.returncode}"


def check_build(build_tool: BuildTool, repo: Path, run_tests: bool = False) -> RuleResult:
    operation = "test" if run_tests else "compile"
    try:
        result = build_tool.test(repo) if run_tests else build_tool.compile(repo)
    except (CommandTimeout, OSError) as exc:
        return RuleResult(BUILD_RULE, False, str(exc))
    if result.ok:
        return RuleResult(BUILD_RULE, True, f"{operation} succeeded")
    return RuleResult(BUILD_RULE, False, f"{operation} failed: {_failure_detail(result)}")


def check_release_build(
    build_tool: BuildTool,
    repo: Path,
    artifact_id: Optional[str],
    version: Optional[str],
) -> RuleResult:
    """Package under the release profile and check the three release artifacts."""
    try:
        result = build_tool.package_release(repo)
    except (CommandTimeout, OSError) as exc:
        return RuleResult(RELEASE_BUILD_RULE, False, str(exc))
    if not result.ok:
        return RuleResult(
            RELEASE_BUILD_RULE, False, f"package failed: {_failure_detail(result)}"
        )
    if not artifact_id or not version:
        return RuleResult(
            RELEASE_BUILD_RULE, False, "artifact coordinates unknown; cannot locate outputs"
        )
    expected = release_artifacts(repo, artifact_id, version)
    missing = [path.name for path in expected if not path.is_file()]
    if missing:
        return RuleResult(
            RELEASE_BUILD_RULE,
            False,
            f"produced {len(expected) - len(missing)} of {len(expected)} artifacts; "
            f"missing: {', '.join(missing)}",
        )
    return RuleResult(
        RELEASE_BUILD_RULE, True, ", ".join(path.name for path in expected)
    )


__all__ = [
    "ALL_RULES",
    "BUILD_RULE",
    "DESCRIPTOR_RULES",
    "METADATA_RULES",
    "PROFILE_RULES",
    "RELEASE_BUILD_RULE",
    "VERSION_RULE",
    "check_build",
    "check_metadata",
    "check_publish_profile",
    "check_release_build",
    "check_version",
    "unreadable_descriptor",
]
