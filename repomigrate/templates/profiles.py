"""Descriptor template profiles.

Each module type maps to a ``TemplateProfile``: a frozen description of
the third-party dependencies and build plugins its standalone descriptor
declares. Profiles are plain data; rendering lives in ``templates.pom``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from repomigrate.graph.models import ModuleType

# Environment variable the release profile reads the signing passphrase from.
GPG_PASSPHRASE_ENV = "MAVEN_GPG_PASSPHRASE"

PLUGIN_VERSIONS: Tuple[Tuple[str, str], ...] = (
    ("maven-compiler-plugin.version", "3.11.0"),
    ("maven-surefire-plugin.version", "3.0.0"),
    ("maven-source-plugin.version", "3.3.0"),
    ("maven-javadoc-plugin.version", "3.5.0"),
    ("maven-gpg-plugin.version", "3.1.0"),
    ("nexus-staging-maven-plugin.version", "1.6.13"),
)

DEPENDENCY_VERSIONS: Tuple[Tuple[str, str], ...] = (
    ("lombok.version", "1.18.30"),
    ("checker-qual.version", "3.39.0"),
    ("junit.version", "5.10.1"),
    ("assertj.version", "3.24.2"),
)

JACKSON_VERSION = "2.15.2"


@dataclass(frozen=True)
class Artifact:
    """A dependency declaration."""

    group_id: str
    artifact_id: str
    version: str
    scope: Optional[str] = None
    optional: bool = False


@dataclass(frozen=True)
class Execution:
    id: str
    goals: Tuple[str, ...]
    phase: Optional[str] = None


@dataclass(frozen=True)
class BuildPlugin:
    """A build plugin declaration.

    ``configuration`` holds (element, value) pairs; a tuple value renders
    as a list of ``<arg>`` children.
    """

    group_id: str
    artifact_id: str
    version: str
    executions: Tuple[Execution, ...] = ()
    configuration: Tuple[Tuple[str, object], ...] = ()
    extensions: bool = False


@dataclass(frozen=True)
class TemplateProfile:
    """Fixed dependency and plugin set for one module type."""

    name: str
    dependencies: Tuple[Artifact, ...]
    plugins: Tuple[BuildPlugin, ...]
    release_plugins: Tuple[BuildPlugin, ...]


_COMMON = (
    Artifact("org.projectlombok", "lombok", "${lombok.version}", scope="provided"),
    Artifact("org.checkerframework", "checker-qual", "${checker-qual.version}"),
)

_TESTING = (
    Artifact("org.junit.jupiter", "junit-jupiter", "${junit.version}", scope="test"),
    Artifact("org.assertj", "assertj-core", "${assertj.version}", scope="test"),
    Artifact("junit", "junit", "4.13.2", scope="test"),
    Artifact("org.junit.vintage", "junit-vintage-engine", "${junit.version}", scope="test"),
)

_FOUNDATION = (
    Artifact("commons-logging", "commons-logging", "1.2"),
    Artifact("commons-beanutils", "commons-beanutils", "1.9.4"),
    Artifact("gnu-regexp", "gnu-regexp", "1.1.4", optional=True),
    Artifact("jakarta-regexp", "jakarta-regexp", "1.4", optional=True),
    Artifact("oro", "oro", "2.0.8", optional=True),
    Artifact("org.antlr", "ST4", "4.3.4"),
    Artifact("com.fasterxml.jackson.core", "jackson-core", JACKSON_VERSION),
    Artifact("com.fasterxml.jackson.core", "jackson-databind", JACKSON_VERSION),
    Artifact("com.fasterxml.jackson.datatype", "jackson-datatype-jsr310", JACKSON_VERSION),
    Artifact("javax.servlet", "javax.servlet-api", "4.0.1", optional=True),
    Artifact("mx4j", "mx4j", "3.0.2", optional=True),
)

_FOUNDATION_INFRASTRUCTURE = (
    Artifact("org.yaml", "snakeyaml", "2.0"),
    Artifact("com.fasterxml.jackson.core", "jackson-core", JACKSON_VERSION),
    Artifact("com.fasterxml.jackson.core", "jackson-databind", JACKSON_VERSION),
    Artifact("com.fasterxml.jackson.core", "jackson-annotations", JACKSON_VERSION),
    Artifact("com.fasterxml.jackson.dataformat", "jackson-dataformat-yaml", JACKSON_VERSION),
    Artifact("org.slf4j", "slf4j-api", "2.0.7"),
)

_MOCKITO = (Artifact("org.mockito", "mockito-core", "5.4.0", scope="test"),)

_APACHE = "org.apache.maven.plugins"

_BUILD_PLUGINS = (
    BuildPlugin(
        _APACHE,
        "maven-compiler-plugin",
        "${maven-compiler-plugin.version}",
        configuration=(
            ("release", "${maven.compiler.release}"),
            ("compilerArgs", ("-parameters",)),
        ),
    ),
    BuildPlugin(_APACHE, "maven-surefire-plugin", "${maven-surefire-plugin.version}"),
    BuildPlugin(
        _APACHE,
        "maven-source-plugin",
        "${maven-source-plugin.version}",
        executions=(Execution("attach-sources", ("jar-no-fork",)),),
    ),
    BuildPlugin(
        _APACHE,
        "maven-javadoc-plugin",
        "${maven-javadoc-plugin.version}",
        executions=(Execution("attach-javadocs", ("jar",)),),
        configuration=(("doclint", "none"),),
    ),
)

_RELEASE_PLUGINS = (
    BuildPlugin(
        _APACHE,
        "maven-gpg-plugin",
        "${maven-gpg-plugin.version}",
        executions=(Execution("sign-artifacts", ("sign",), phase="verify"),),
        configuration=(
            ("passphrase", "${env.%s}" % GPG_PASSPHRASE_ENV),
            ("gpgArguments", ("--pinentry-mode", "loopback")),
        ),
    ),
    BuildPlugin(
        "org.sonatype.plugins",
        "nexus-staging-maven-plugin",
        "${nexus-staging-maven-plugin.version}",
        extensions=True,
        configuration=(
            ("serverId", "${release.serverId}"),
            ("nexusUrl", "${release.nexusUrl}"),
            ("autoReleaseAfterClose", "true"),
        ),
    ),
)

PROFILES: Dict[ModuleType, TemplateProfile] = {
    ModuleType.FOUNDATION: TemplateProfile(
        name="foundation",
        dependencies=_FOUNDATION + _COMMON + _TESTING,
        plugins=_BUILD_PLUGINS,
        release_plugins=_RELEASE_PLUGINS,
    ),
    ModuleType.FOUNDATION_INFRASTRUCTURE: TemplateProfile(
        name="foundation-infrastructure",
        dependencies=_FOUNDATION_INFRASTRUCTURE + _COMMON + _TESTING + _MOCKITO,
        plugins=_BUILD_PLUGINS,
        release_plugins=_RELEASE_PLUGINS,
    ),
    ModuleType.DOMAIN: TemplateProfile(
        name="domain",
        dependencies=_COMMON + _TESTING,
        plugins=_BUILD_PLUGINS,
        release_plugins=_RELEASE_PLUGINS,
    ),
    ModuleType.PLUGIN: TemplateProfile(
        name="plugin",
        dependencies=_COMMON + _TESTING,
        plugins=_BUILD_PLUGINS,
        release_plugins=_RELEASE_PLUGINS,
    ),
}


def profile_for(module_type: ModuleType) -> TemplateProfile:
    return PROFILES[module_type]


__all__ = [
    "GPG_PASSPHRASE_ENV",
    "PLUGIN_VERSIONS",
    "DEPENDENCY_VERSIONS",
    "Artifact",
    "Execution",
    "BuildPlugin",
    "TemplateProfile",
    "PROFILES",
    "profile_for",
]
