"""Publication of validated modules to the artifact repository.

Publication is one-way: once ``deploy`` has uploaded the artifacts no
rollback is attempted. Failures detected after the upload (propagation
timeout) are reported with ``uploaded=True`` so the operator knows to
inspect the remote staging area rather than simply retry.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from pathlib import Path
from typing import Optional

import requests

from repomigrate.config.schema import PublishConfig
from repomigrate.errors import (
    CommandCancelled,
    CommandTimeout,
    PublishError,
    PublishFailure,
)
from repomigrate.graph.models import Module
from repomigrate.integrations.maven import BuildTool
from repomigrate.runtime.records import ExtractionRecord

logger = logging.getLogger("repomigrate.publishing.coordinator")

_SIGNING_MARKERS = re.compile(
    r"maven-gpg-plugin|gpg: |signing failed|bad passphrase|no secret key|"
    r"sign-artifacts|inappropriate ioctl",
    re.IGNORECASE,
)


def classify_deploy_failure(output: str) -> PublishFailure:
    """Tell signing failures apart from upload failures by the build output."""
    if _SIGNING_MARKERS.search(output):
        return PublishFailure.SIGNING_FAILED
    return PublishFailure.UPLOAD_FAILED


class PublishCoordinator:
    """Deploys one module and waits for it to propagate."""

    def __init__(
        self,
        build_tool: BuildTool,
        version: str,
        config: Optional[PublishConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.build_tool = build_tool
        self.version = version
        self.config = config or PublishConfig()
        self.cancel_event = cancel_event or threading.Event()
        self.session = session or requests.Session()

    def publish(self, module: Module, record: ExtractionRecord) -> None:
        """Deploy ``module`` under the release profile and wait for propagation.

        Raises:
            PublishError: SIGNING_FAILED, UPLOAD_FAILED or TIMEOUT.
            CommandCancelled: If the operator aborted the run.
        """
        repo = Path(record.destination)
        logger.info("Publishing %s:%s from %s", module.coordinate, self.version, repo)
        try:
            result = self.build_tool.deploy_release(repo)
        except CommandTimeout as exc:
            raise PublishError(PublishFailure.TIMEOUT, module.name, str(exc)) from exc
        except OSError as exc:
            raise PublishError(PublishFailure.UPLOAD_FAILED, module.name, str(exc)) from exc

        if not result.ok:
            kind = classify_deploy_failure(result.output)
            raise PublishError(
                kind,
                module.name,
                f"deploy exited with {result.returncode}: {result.tail(5)}",
            )

        logger.info("%s uploaded; waiting for propagation", module.name)
        self._wait(module, self.config.propagation_wait)
        if self.config.probe_url_template:
            self._probe(module)
        logger.info("%s published", module.name)

    def _wait(self, module: Module, seconds: float) -> None:
        if seconds <= 0:
            return
        if self.cancel_event.wait(seconds):
            logger.warning(
                "%s was uploaded but the propagation wait was cancelled", module.name
            )
            raise CommandCancelled(f"{module.name}: cancelled during propagation wait")

    def probe_url(self, module: Module) -> str:
        template = self.config.probe_url_template or ""
        return template.format(
            group_path=module.group_id.replace(".", "/"),
            group_id=module.group_id,
            artifact_id=module.artifact_id,
            version=self.version,
        )

    def _probe(self, module: Module) -> None:
        """Poll the probe URL until the new coordinate resolves."""
        url = self.probe_url(module)
        deadline = time.monotonic() + self.config.probe_timeout
        while True:
            try:
                response = self.session.head(
                    url, timeout=self.config.request_timeout, allow_redirects=True
                )
                if response.status_code == 200:
                    logger.info("%s resolvable at %s", module.coordinate, url)
                    return
                logger.debug("Probe %s returned HTTP %d", url, response.status_code)
            except requests.RequestException as exc:
                logger.debug("Probe %s failed: %s", url, exc)
            if time.monotonic() >= deadline:
                raise PublishError(
                    PublishFailure.TIMEOUT,
                    module.name,
                    f"not resolvable at {url} after {self.config.probe_timeout:.0f}s",
                    uploaded=True,
                )
            self._wait(module, self.config.probe_interval)


__all__ = ["PublishCoordinator", "classify_deploy_failure"]
