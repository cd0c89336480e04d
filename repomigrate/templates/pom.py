"""Standalone build descriptor (pom.xml) rendering.

``DescriptorTemplater.render`` is a pure function of the module, its
dependencies' publication coordinates, the module's template profile and
the fixed descriptor configuration: identical inputs always produce
byte-identical output, so the sha256 of the result can be used to detect
whether an extracted repository still matches the current template.
"""

from __future__ import annotations

import hashlib
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from repomigrate.config.schema import DescriptorConfig
from repomigrate.graph.models import Module
from repomigrate.graph.registry import ModuleRegistry
from repomigrate.templates.profiles import (
    DEPENDENCY_VERSIONS,
    PLUGIN_VERSIONS,
    Artifact,
    BuildPlugin,
    TemplateProfile,
    profile_for,
)
from repomigrate.templates.scaffold import render_scaffold

logger = logging.getLogger("repomigrate.templates.pom")

POM_NS = "http://maven.apache.org/POM/4.0.0"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SCHEMA_LOCATION = f"{POM_NS} http://maven.apache.org/xsd/maven-4.0.0.xsd"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

ET.register_namespace("", POM_NS)
ET.register_namespace("xsi", XSI_NS)


def descriptor_hash(content: str) -> str:
    """sha256 hex digest of descriptor text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RenderedDescriptor:
    """Rendered descriptor text with its content hash."""

    content: str
    sha256: str
    profile: str


def _q(tag: str) -> str:
    return f"{{{POM_NS}}}{tag}"


def _sub(parent: ET.Element, tag: str, text: Optional[str] = None) -> ET.Element:
    elem = ET.SubElement(parent, _q(tag))
    if text is not None:
        elem.text = text
    return elem


def _append_dependency(parent: ET.Element, artifact: Artifact) -> None:
    dep = _sub(parent, "dependency")
    _sub(dep, "groupId", artifact.group_id)
    _sub(dep, "artifactId", artifact.artifact_id)
    _sub(dep, "version", artifact.version)
    if artifact.scope:
        _sub(dep, "scope", artifact.scope)
    if artifact.optional:
        _sub(dep, "optional", "true")


def _append_plugins(parent: ET.Element, plugins: Iterable[BuildPlugin]) -> None:
    plugins_elem = _sub(parent, "plugins")
    for plugin in plugins:
        elem = _sub(plugins_elem, "plugin")
        _sub(elem, "groupId", plugin.group_id)
        _sub(elem, "artifactId", plugin.artifact_id)
        _sub(elem, "version", plugin.version)
        if plugin.extensions:
            _sub(elem, "extensions", "true")
        if plugin.executions:
            executions = _sub(elem, "executions")
            for execution in plugin.executions:
                exe = _sub(executions, "execution")
                _sub(exe, "id", execution.id)
                if execution.phase:
                    _sub(exe, "phase", execution.phase)
                goals = _sub(exe, "goals")
                for goal in execution.goals:
                    _sub(goals, "goal", goal)
        if plugin.configuration:
            config = _sub(elem, "configuration")
            for key, value in plugin.configuration:
                if isinstance(value, tuple):
                    holder = _sub(config, key)
                    for item in value:
                        _sub(holder, "arg", str(item))
                else:
                    _sub(config, key, str(value))


class DescriptorTemplater:
    """Renders standalone descriptors and scaffold files for modules."""

    def __init__(self, registry: ModuleRegistry, config: Optional[DescriptorConfig] = None):
        self.registry = registry
        self.config = config or DescriptorConfig()

    def render(self, module: Module) -> RenderedDescriptor:
        """Render the standalone pom.xml of ``module``.

        Args:
            module: Registered module.

        Returns:
            RenderedDescriptor: Descriptor text, its sha256 and profile name.
        """
        profile = profile_for(module.module_type)
        root = self._build(module, profile)
        ET.indent(root, space="  ")
        content = XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"
        digest = descriptor_hash(content)
        logger.debug(
            "Rendered descriptor for %s (profile=%s, sha256=%s)",
            module.name,
            profile.name,
            digest[:12],
        )
        return RenderedDescriptor(content=content, sha256=digest, profile=profile.name)

    def scaffold(self, module: Module) -> Dict[str, str]:
        """Return scaffold file name -> content for ``module``."""
        return render_scaffold(module, self.config)

    def _internal_dependencies(self, module: Module) -> Iterable[Artifact]:
        for name in module.depends_on:
            dependency = self.registry.get(name)
            yield Artifact(dependency.group_id, dependency.artifact_id, self.config.version)

    def _build(self, module: Module, profile: TemplateProfile) -> ET.Element:
        cfg = self.config
        url = f"https://{cfg.host}/{module.slug}"
        root = ET.Element(_q("project"), {f"{{{XSI_NS}}}schemaLocation": SCHEMA_LOCATION})
        _sub(root, "modelVersion", "4.0.0")
        _sub(root, "groupId", module.group_id)
        _sub(root, "artifactId", module.artifact_id)
        _sub(root, "version", cfg.version)
        _sub(root, "packaging", "jar")
        _sub(root, "name", module.display_name)
        _sub(
            root,
            "description",
            module.description
            or f"Extracted from {cfg.monorepo_name} monorepo - "
            + module.source_path.replace("-", " "),
        )
        _sub(root, "url", url)
        _sub(root, "inceptionYear", cfg.inception_year)

        organization = _sub(root, "organization")
        _sub(organization, "name", cfg.organization_name)
        _sub(organization, "url", cfg.organization_url)

        licenses = _sub(root, "licenses")
        license_elem = _sub(licenses, "license")
        _sub(license_elem, "name", cfg.license_name)
        _sub(license_elem, "url", cfg.license_url)
        _sub(license_elem, "distribution", "repo")

        developers = _sub(root, "developers")
        developer = _sub(developers, "developer")
        _sub(developer, "name", cfg.developer_name)
        _sub(developer, "email", cfg.developer_email)
        _sub(developer, "url", cfg.developer_url)

        scm = _sub(root, "scm")
        _sub(scm, "connection", f"scm:git:{url}.git")
        _sub(scm, "developerConnection", f"scm:git:git@{cfg.host}:{module.slug}.git")
        _sub(scm, "url", url)

        issues = _sub(root, "issueManagement")
        _sub(issues, "system", "github")
        _sub(issues, "url", f"{url}/issues")

        properties = _sub(root, "properties")
        _sub(properties, "maven.compiler.release", cfg.java_release)
        _sub(properties, "project.build.sourceEncoding", "UTF-8")
        _sub(properties, "project.reporting.outputEncoding", "UTF-8")
        for key, value in PLUGIN_VERSIONS + DEPENDENCY_VERSIONS:
            _sub(properties, key, value)
        _sub(properties, "release.serverId", cfg.staging_server_id)
        _sub(properties, "release.nexusUrl", cfg.nexus_url)

        dependencies = _sub(root, "dependencies")
        for artifact in self._internal_dependencies(module):
            _append_dependency(dependencies, artifact)
        for artifact in profile.dependencies:
            _append_dependency(dependencies, artifact)

        build = _sub(root, "build")
        _append_plugins(build, profile.plugins)

        profiles = _sub(root, "profiles")
        release = _sub(profiles, "profile")
        _sub(release, "id", cfg.release_profile)
        release_build = _sub(release, "build")
        _append_plugins(release_build, profile.release_plugins)
        distribution = _sub(release, "distributionManagement")
        snapshots = _sub(distribution, "snapshotRepository")
        _sub(snapshots, "id", cfg.staging_server_id)
        _sub(snapshots, "url", cfg.snapshot_repository_url)
        releases = _sub(distribution, "repository")
        _sub(releases, "id", cfg.staging_server_id)
        _sub(releases, "url", cfg.release_repository_url)
        return root


__all__ = ["DescriptorTemplater", "RenderedDescriptor", "descriptor_hash", "POM_NS"]
