"""Repository hosting platform (GitHub REST API).

Creation is idempotent: an existing destination repository is left
untouched. Pushing an extracted repository goes through git.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from repomigrate.config.schema import HostingConfig
from repomigrate.errors import CommandFailed, CommandTimeout, HostingError
from repomigrate.graph.models import Module
from repomigrate.integrations.git import GitClient

logger = logging.getLogger("repomigrate.integrations.hosting")


class GitHubHosting:
    """Ensures destination repositories exist and receives pushes."""

    def __init__(
        self,
        config: Optional[HostingConfig] = None,
        session: Optional[requests.Session] = None,
        token: Optional[str] = None,
    ) -> None:
        self.config = config or HostingConfig()
        self.session = session or requests.Session()
        self._token = token if token is not None else os.environ.get(self.config.token_env)
        self._login: Optional[str] = None

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            raise HostingError(
                f"Hosting token not set; export {self.config.token_env}"
            )
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self.config.api_url.rstrip("/") + path
        try:
            return self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.config.request_timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise HostingError(f"{method} {url} failed: {exc}") from exc

    def login(self) -> str:
        """Login of the authenticated account."""
        if self._login is None:
            response = self._request("GET", "/user")
            if response.status_code != 200:
                raise HostingError(
                    f"Cannot resolve authenticated user: HTTP {response.status_code}"
                )
            self._login = response.json()["login"]
        return self._login

    def exists(self, module: Module) -> bool:
        response = self._request("GET", f"/repos/{module.slug}")
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise HostingError(
            f"Cannot query {module.slug}: HTTP {response.status_code} {response.text[:200]}"
        )

    def ensure_repository(self, module: Module) -> bool:
        """Create the destination repository when absent.

        Returns:
            bool: True if a repository was created, False if it already existed.

        Raises:
            HostingError: On API or authentication failure.
        """
        if self.exists(module):
            logger.info("Repository %s already exists; leaving it untouched", module.slug)
            return False

        payload: Dict[str, Any] = {
            "name": module.repository,
            "description": module.description,
            "private": self.config.visibility != "public",
            "has_issues": True,
            "has_projects": True,
            "has_wiki": True,
        }
        if self.config.visibility == "internal":
            payload["visibility"] = "internal"
        if self.config.license_template:
            payload["license_template"] = self.config.license_template
        if self.config.gitignore_template:
            payload["gitignore_template"] = self.config.gitignore_template

        if module.organization == self.login():
            path = "/user/repos"
        else:
            path = f"/orgs/{module.organization}/repos"
        response = self._request("POST", path, json=payload)
        if response.status_code == 422 and self.exists(module):
            logger.info("Repository %s was created concurrently", module.slug)
            return False
        if response.status_code != 201:
            raise HostingError(
                f"Cannot create {module.slug}: HTTP {response.status_code} "
                f"{response.text[:200]}"
            )
        logger.info("Created repository %s", module.slug)
        return True

    def remote_url(self, module: Module) -> str:
        return f"{self.config.web_url.rstrip('/')}/{module.slug}.git"

    def push(self, git: GitClient, repo: Path, module: Module, branch: str) -> None:
        """Point the hosting remote at ``module``'s repository and push ``branch``.

        Raises:
            HostingError: If git cannot configure the remote or push.
        """
        try:
            git.set_remote(repo, self.config.remote_name, self.remote_url(module))
            git.push(repo, self.config.remote_name, branch)
        except (CommandFailed, CommandTimeout) as exc:
            raise HostingError(f"Cannot push {module.slug}: {exc}") from exc
        logger.info("Pushed %s to %s", branch, module.slug)


__all__ = ["GitHubHosting"]
