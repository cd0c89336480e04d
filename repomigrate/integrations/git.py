"""Git and git-filter-repo collaborators.

Only the handful of plumbing calls the extraction needs are wrapped
here; every call goes through ``CommandRunner`` so it can be cancelled.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from repomigrate.errors import CommandFailed
from repomigrate.runtime.process import CommandResult, CommandRunner

logger = logging.getLogger("repomigrate.integrations.git")


class GitClient:
    """Thin wrapper over the git executable."""

    def __init__(
        self,
        runner: CommandRunner,
        executable: str = "git",
        timeout: Optional[float] = None,
    ) -> None:
        self.runner = runner
        self.executable = executable
        self.timeout = timeout

    def run(self, args: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        """Run ``git <args>`` and raise on a non-zero exit status.

        Raises:
            CommandFailed: If git exits non-zero.
        """
        argv = [self.executable, *args]
        result = self.runner.run(argv, cwd=cwd, timeout=self.timeout)
        if not result.ok:
            raise CommandFailed(argv, result.returncode, result.output)
        return result

    def head(self, repo: Path) -> str:
        return self.run(["rev-parse", "HEAD"], cwd=repo).stdout.strip()

    def root_commit(self, repo: Path) -> str:
        """First parentless commit reachable from HEAD."""
        output = self.run(["rev-list", "--max-parents=0", "HEAD"], cwd=repo).stdout
        roots = output.split()
        return roots[-1] if roots else ""

    def clone(self, source: Path, destination: Path) -> None:
        # --no-local forces a real object copy, which git filter-repo requires
        self.run(["clone", "--no-local", str(source), str(destination)])

    def checkout_branch(self, repo: Path, branch: str) -> None:
        self.run(["checkout", "-B", branch], cwd=repo)

    def commit_all(
        self,
        repo: Path,
        message: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> str:
        """Stage everything and create a single commit; return its revision."""
        identity: List[str] = []
        if name:
            identity += ["-c", f"user.name={name}"]
        if email:
            identity += ["-c", f"user.email={email}"]
        self.run(["add", "--all"], cwd=repo)
        self.run([*identity, "commit", "--quiet", "-m", message], cwd=repo)
        return self.head(repo)

    def remotes(self, repo: Path) -> List[str]:
        return self.run(["remote"], cwd=repo).stdout.split()

    def set_remote(self, repo: Path, name: str, url: str) -> None:
        if name in self.remotes(repo):
            self.run(["remote", "set-url", name, url], cwd=repo)
        else:
            self.run(["remote", "add", name, url], cwd=repo)

    def push(self, repo: Path, remote: str, branch: str) -> None:
        self.run(["push", "-u", remote, branch], cwd=repo)


class HistoryIsolator(Protocol):
    """Produces a repository holding only history touching the given paths."""

    def isolate(
        self,
        source_root: Path,
        subtree: str,
        workdir: Path,
        allow_list: Sequence[str],
    ) -> None:
        ...


class GitFilterRepoIsolator:
    """History isolation through ``git clone`` + ``git filter-repo``."""

    def __init__(self, git: GitClient, branch: str = "main") -> None:
        self.git = git
        self.branch = branch

    def isolate(
        self,
        source_root: Path,
        subtree: str,
        workdir: Path,
        allow_list: Sequence[str],
    ) -> None:
        """Clone ``source_root`` into ``workdir`` and keep only ``subtree`` + allow-list.

        Raises:
            CommandFailed: If cloning or filtering fails.
        """
        logger.info("Isolating history of %s into %s", subtree, workdir)
        self.git.clone(source_root, workdir)
        self.git.checkout_branch(workdir, self.branch)
        args: List[str] = ["filter-repo", "--path", f"{subtree.rstrip('/')}/"]
        for entry in allow_list:
            args += ["--path", entry]
        args.append("--force")
        self.git.run(args, cwd=workdir)


__all__ = ["GitClient", "HistoryIsolator", "GitFilterRepoIsolator"]
