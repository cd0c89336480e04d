"""Configuration schema definitions using Pydantic for validation.

This module provides strongly-typed configuration classes for every
collaborator the migration drives. Using Pydantic ensures configuration
errors are caught before any module is touched.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class HistoryConfig(BaseModel):
    """Configuration for history isolation.

    Attributes:
        allow_list: Root-level paths kept next to the module subtree.
        branch: Branch name of the extracted repository.
        git_executable: Git binary used for all repository operations.
        committer_name: Optional committer name for the scaffold commit.
        committer_email: Optional committer email for the scaffold commit.
        timeout: Timeout for a single history isolation run (seconds).
    """

    allow_list: List[str] = Field(
        default_factory=lambda: [
            "pom.xml",
            "LICENSE",
            "README.md",
            ".github/workflows/",
            ".gitignore",
        ]
    )
    branch: str = "main"
    git_executable: str = "git"
    committer_name: Optional[str] = None
    committer_email: Optional[str] = None
    timeout: float = Field(default=1800.0, ge=10.0)

    @field_validator("allow_list")
    @classmethod
    def validate_allow_list(cls, v: List[str]) -> List[str]:
        """Reject absolute paths and parent traversal in the allow-list."""
        for entry in v:
            if not entry or entry.startswith("/") or ".." in Path(entry).parts:
                raise ValueError(f"Invalid allow-list entry '{entry}'")
        return v


class DescriptorConfig(BaseModel):
    """Fixed metadata written into every generated build descriptor."""

    version: str = "1.0.0"
    java_release: str = "17"
    inception_year: str = "2025"
    host: str = "github.com"
    monorepo_name: str = "ByteHot"
    organization_name: str = "ACM-SL"
    organization_url: str = "http://www.acm-sl.org"
    license_name: str = "GNU General Public License v3.0"
    license_url: str = "https://www.gnu.org/licenses/gpl-3.0.txt"
    developer_name: str = "José San Leandro"
    developer_email: str = "rydnr@acm-sl.org"
    developer_url: str = "https://github.com/rydnr"
    release_profile: str = "release"
    staging_server_id: str = "ossrh"
    nexus_url: str = "https://s01.oss.sonatype.org/"
    snapshot_repository_url: str = (
        "https://s01.oss.sonatype.org/content/repositories/snapshots"
    )
    release_repository_url: str = (
        "https://s01.oss.sonatype.org/service/local/staging/deploy/maven2/"
    )
    ci_workflows: bool = True
    ci_java_versions: Tuple[str, ...] = ("17", "21")

    model_config = {"frozen": True}


class BuildConfig(BaseModel):
    """Configuration for the build collaborator.

    Attributes:
        executable: Build tool binary.
        extra_args: Arguments appended to every invocation.
        run_tests: Run the test suite instead of a plain compile for the
            build readiness rule.
        compile_timeout: Timeout for compile/test runs (seconds).
        package_timeout: Timeout for release packaging (seconds).
        deploy_timeout: Timeout for release deploys (seconds).
    """

    executable: str = "mvn"
    extra_args: List[str] = Field(default_factory=lambda: ["-B"])
    run_tests: bool = False
    compile_timeout: float = Field(default=1800.0, ge=10.0)
    package_timeout: float = Field(default=1800.0, ge=10.0)
    deploy_timeout: float = Field(default=3600.0, ge=10.0)
    settings_file: Path = Field(default_factory=lambda: Path("~/.m2/settings.xml"))


class SigningConfig(BaseModel):
    """Credential handles passed to the release profile for signing."""

    passphrase_env: str = "MAVEN_GPG_PASSPHRASE"
    key_id: Optional[str] = None
    gpg_executable: str = "gpg"


class PublishConfig(BaseModel):
    """Propagation settings for publication.

    Attributes:
        propagation_wait: Fixed wait after a successful upload (seconds).
        probe_url_template: Optional URL polled until the new coordinate
            resolves. Placeholders: group_path, group_id, artifact_id, version.
        probe_timeout: Give up probing after this many seconds.
        probe_interval: Delay between probes (seconds).
    """

    propagation_wait: float = Field(default=30.0, ge=0.0)
    probe_url_template: Optional[str] = None
    probe_timeout: float = Field(default=900.0, ge=0.0)
    probe_interval: float = Field(default=30.0, gt=0.0)
    request_timeout: float = Field(default=30.0, gt=0.0)


class HostingConfig(BaseModel):
    """Configuration for the repository hosting platform.

    Attributes:
        license_template: License template applied on creation. Templates
            create an initial commit, so pushing the isolated history then
            needs a manual merge; left unset by default.
        gitignore_template: Same caveat as license_template.
    """

    enabled: bool = True
    api_url: str = "https://api.github.com"
    web_url: str = "https://github.com"
    token_env: str = "GITHUB_TOKEN"
    visibility: str = "public"
    license_template: Optional[str] = None
    gitignore_template: Optional[str] = None
    push_after_extract: bool = False
    remote_name: str = "origin"
    request_timeout: float = Field(default=30.0, gt=0.0)

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, v: str) -> str:
        """Validate that visibility is one the hosting API accepts."""
        valid = {"public", "private", "internal"}
        if v not in valid:
            raise ValueError(f"Invalid visibility '{v}'. Valid values: {valid}")
        return v


class MigrationConfig(BaseModel):
    """Top-level configuration for a migration run.

    Attributes:
        source_root: Combined (multi-module) repository.
        migration_dir: Where standalone repositories are created.
        state_db: SQLite file holding per-module state.
        catalog: Optional module catalog file (built-in catalog when omitted).
        max_workers: Maximum concurrent modules within a phase.
    """

    source_root: Path = Field(default_factory=lambda: Path("."))
    migration_dir: Path = Field(default_factory=lambda: Path("migration"))
    state_db: Path = Field(default_factory=lambda: Path(".repomigrate/state.db"))
    catalog: Optional[Path] = None
    max_workers: int = Field(default=4, ge=1, le=32)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    descriptor: DescriptorConfig = Field(default_factory=DescriptorConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    hosting: HostingConfig = Field(default_factory=HostingConfig)

    @classmethod
    def default(cls) -> "MigrationConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create configuration from dictionary.

        Raises:
            pydantic.ValidationError: If configuration is invalid.
        """
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
