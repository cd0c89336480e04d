"""Configuration schema and validation for repomigrate."""

from .schema import (
    BuildConfig,
    DescriptorConfig,
    HistoryConfig,
    HostingConfig,
    MigrationConfig,
    PublishConfig,
    SigningConfig,
)

__all__ = [
    "BuildConfig",
    "DescriptorConfig",
    "HistoryConfig",
    "HostingConfig",
    "MigrationConfig",
    "PublishConfig",
    "SigningConfig",
]
