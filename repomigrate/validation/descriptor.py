"""Read the publication-relevant facts out of an extracted pom.xml."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional

logger = logging.getLogger("repomigrate.validation.descriptor")


class DescriptorUnreadable(Exception):
    """The descriptor is missing or is not well-formed XML."""


@dataclass(frozen=True)
class ProfileFacts:
    plugins: FrozenSet[str] = frozenset()
    has_distribution: bool = False


@dataclass(frozen=True)
class DescriptorFacts:
    """Top-level descriptor values; None where the element is absent or empty."""

    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    license: Optional[str] = None
    developer: Optional[str] = None
    scm: Optional[str] = None
    build_plugins: FrozenSet[str] = frozenset()
    has_distribution: bool = False
    profiles: Dict[str, ProfileFacts] = field(default_factory=dict)


def _detect_namespace(root: ET.Element) -> str:
    if root.tag.startswith("{"):
        return root.tag.split("}")[0][1:]
    return ""


def _path(tag: str, ns: str) -> str:
    if not ns:
        return tag
    return "/".join(f"{{{ns}}}{part}" for part in tag.split("/"))


def _child_text(elem: ET.Element, tag: str, ns: str) -> Optional[str]:
    """Text of a direct (or slash-separated) child, never a deeper descendant."""
    target = elem.find(_path(tag, ns))
    if target is not None and target.text and target.text.strip():
        return target.text.strip()
    return None


def _plugin_ids(build: Optional[ET.Element], ns: str) -> FrozenSet[str]:
    if build is None:
        return frozenset()
    ids = set()
    for plugin in build.findall(_path("plugins/plugin", ns)):
        artifact_id = _child_text(plugin, "artifactId", ns)
        if artifact_id:
            ids.add(artifact_id)
    return frozenset(ids)


def parse_descriptor(path: Path) -> DescriptorFacts:
    """Parse ``path`` into DescriptorFacts.

    Raises:
        DescriptorUnreadable: If the file cannot be read or parsed.
    """
    try:
        tree = ET.parse(path)
    except (OSError, ET.ParseError) as exc:
        logger.debug("Failed to parse %s: %s", path, exc)
        raise DescriptorUnreadable(f"{path}: {exc}") from exc

    root = tree.getroot()
    ns = _detect_namespace(root)

    profiles: Dict[str, ProfileFacts] = {}
    for profile in root.findall(_path("profiles/profile", ns)):
        profile_id = _child_text(profile, "id", ns)
        if not profile_id:
            continue
        profiles[profile_id] = ProfileFacts(
            plugins=_plugin_ids(profile.find(_path("build", ns)), ns),
            has_distribution=profile.find(_path("distributionManagement", ns)) is not None,
        )

    developer = _child_text(root, "developers/developer/name", ns) or _child_text(
        root, "developers/developer/email", ns
    )
    scm = _child_text(root, "scm/connection", ns) or _child_text(root, "scm/url", ns)

    return DescriptorFacts(
        group_id=_child_text(root, "groupId", ns)
        or _child_text(root, "parent/groupId", ns),
        artifact_id=_child_text(root, "artifactId", ns),
        version=_child_text(root, "version", ns),
        name=_child_text(root, "name", ns),
        description=_child_text(root, "description", ns),
        url=_child_text(root, "url", ns),
        license=_child_text(root, "licenses/license/name", ns),
        developer=developer,
        scm=scm,
        build_plugins=_plugin_ids(root.find(_path("build", ns)), ns),
        has_distribution=root.find(_path("distributionManagement", ns)) is not None,
        profiles=profiles,
    )


__all__ = ["DescriptorFacts", "DescriptorUnreadable", "ProfileFacts", "parse_descriptor"]
