"""Cancellable subprocess execution for external collaborators.

Every external tool (git, git-filter-repo, mvn) is invoked through
``CommandRunner`` so that an operator abort terminates in-flight
processes and a hung tool is killed after its time budget.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

from repomigrate.errors import CommandCancelled, CommandTimeout

logger = logging.getLogger("repomigrate.runtime.process")

_POLL_INTERVAL = 0.5
_TERMINATE_GRACE = 10.0


@dataclass(frozen=True)
class CommandResult:
    """Completed external process."""

    args: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for failure classification."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def tail(self, lines: int = 20) -> str:
        return "\n".join(self.output.splitlines()[-lines:])


class CommandRunner:
    """Runs external commands, honouring a shared cancellation event."""

    def __init__(self, cancel_event: Optional[threading.Event] = None) -> None:
        self.cancel_event = cancel_event or threading.Event()

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run ``args`` to completion.

        Args:
            args: Command and arguments.
            cwd: Working directory.
            env: Extra environment variables merged over ``os.environ``.
            timeout: Wall-clock budget in seconds (None for no limit).

        Returns:
            CommandResult: Exit status and captured output. A non-zero exit
            status is returned, not raised.

        Raises:
            CommandCancelled: If the cancellation event was set.
            CommandTimeout: If the process exceeded ``timeout``.
            OSError: If the executable cannot be started.
        """
        argv = tuple(str(arg) for arg in args)
        if self.cancel_event.is_set():
            raise CommandCancelled(f"Cancelled before start: {' '.join(argv)}")

        merged_env: Optional[Dict[str, str]] = None
        if env:
            merged_env = dict(os.environ)
            merged_env.update(env)

        logger.debug("Running: %s (cwd=%s)", " ".join(argv), cwd)
        start = time.monotonic()
        deadline = start + timeout if timeout else None

        proc = subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=_POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if self.cancel_event.is_set():
                    self._stop(proc)
                    logger.warning("Cancelled: %s", " ".join(argv))
                    raise CommandCancelled(f"Cancelled: {' '.join(argv)}") from None
                if deadline is not None and time.monotonic() >= deadline:
                    self._stop(proc)
                    logger.error("Timed out after %.0fs: %s", timeout, " ".join(argv))
                    raise CommandTimeout(argv, timeout or 0.0) from None

        duration = time.monotonic() - start
        logger.debug("Exit %d after %.2fs: %s", proc.returncode, duration, argv[0])
        return CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            duration=duration,
        )

    @staticmethod
    def _stop(proc: subprocess.Popen) -> None:
        proc.terminate()
        try:
            proc.communicate(timeout=_TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()


__all__ = ["CommandResult", "CommandRunner"]
