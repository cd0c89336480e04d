"""Maven build collaborator.

Exposes the four build operations the migration relies on: compile,
test, package under the release profile and deploy under the release
profile. Signing happens inside the release profile; this adapter only
hands the passphrase over through the environment.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from repomigrate.config.schema import BuildConfig, SigningConfig
from repomigrate.runtime.process import CommandResult, CommandRunner
from repomigrate.templates.profiles import GPG_PASSPHRASE_ENV

logger = logging.getLogger("repomigrate.integrations.maven")


def release_artifacts(repo: Path, artifact_id: str, version: str) -> Tuple[Path, ...]:
    """Expected outputs of a release package: binary, sources, javadoc."""
    target = Path(repo) / "target"
    base = f"{artifact_id}-{version}"
    return (
        target / f"{base}.jar",
        target / f"{base}-sources.jar",
        target / f"{base}-javadoc.jar",
    )


class BuildTool(Protocol):
    """Operations of the external build collaborator."""

    def compile(self, repo: Path) -> CommandResult:
        ...

    def test(self, repo: Path) -> CommandResult:
        ...

    def package_release(self, repo: Path) -> CommandResult:
        ...

    def deploy_release(self, repo: Path) -> CommandResult:
        ...


class MavenBuildTool:
    """``mvn`` invocations used by validation and publication."""

    def __init__(
        self,
        runner: CommandRunner,
        config: Optional[BuildConfig] = None,
        signing: Optional[SigningConfig] = None,
        release_profile: str = "release",
    ) -> None:
        self.runner = runner
        self.config = config or BuildConfig()
        self.signing = signing or SigningConfig()
        self.release_profile = release_profile

    def _invoke(
        self,
        repo: Path,
        goals: Sequence[str],
        timeout: float,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        argv: List[str] = [self.config.executable, *self.config.extra_args, *goals]
        logger.info("mvn %s (in %s)", " ".join(goals), repo)
        return self.runner.run(argv, cwd=repo, env=env, timeout=timeout)

    def compile(self, repo: Path) -> CommandResult:
        return self._invoke(repo, ["clean", "compile"], self.config.compile_timeout)

    def test(self, repo: Path) -> CommandResult:
        return self._invoke(repo, ["clean", "test"], self.config.compile_timeout)

    def package_release(self, repo: Path) -> CommandResult:
        return self._invoke(
            repo,
            ["clean", "package", "-P", self.release_profile, "-DskipTests"],
            self.config.package_timeout,
        )

    def deploy_release(self, repo: Path) -> CommandResult:
        """Sign and upload through the release profile."""
        goals = ["clean", "deploy", "-P", self.release_profile, "-DskipTests"]
        if self.signing.key_id:
            goals.append(f"-Dgpg.keyname={self.signing.key_id}")
        env: Dict[str, str] = {}
        passphrase = os.environ.get(self.signing.passphrase_env)
        if passphrase:
            env[GPG_PASSPHRASE_ENV] = passphrase
        else:
            logger.warning(
                "Signing passphrase variable %s is not set; relying on gpg-agent",
                self.signing.passphrase_env,
            )
        return self._invoke(repo, goals, self.config.deploy_timeout, env=env or None)


__all__ = ["BuildTool", "MavenBuildTool", "release_artifacts"]
