"""Descriptor templating: profiles, pom.xml rendering and scaffold files."""

from .pom import DescriptorTemplater, RenderedDescriptor, descriptor_hash
from .profiles import PROFILES, TemplateProfile, profile_for

__all__ = [
    "PROFILES",
    "DescriptorTemplater",
    "RenderedDescriptor",
    "TemplateProfile",
    "descriptor_hash",
    "profile_for",
]
