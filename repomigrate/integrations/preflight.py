"""Prerequisite checks run before a migration touches anything."""

from __future__ import annotations

import logging
import os
import shutil
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import List

from repomigrate.config.schema import MigrationConfig

logger = logging.getLogger("repomigrate.integrations.preflight")


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str
    required: bool = True


def _tool(name: str, executable: str, hint: str) -> CheckResult:
    path = shutil.which(executable)
    if path:
        return CheckResult(name, True, path)
    return CheckResult(name, False, f"{executable} not found on PATH ({hint})")


def _settings_declares_server(settings: Path, server_id: str) -> CheckResult:
    name = "build settings"
    if not settings.is_file():
        return CheckResult(name, False, f"{settings} not found; configure staging credentials")
    try:
        root = ET.parse(settings).getroot()
    except (OSError, ET.ParseError) as exc:
        return CheckResult(name, False, f"{settings}: {exc}")
    ns = root.tag.split("}")[0][1:] if root.tag.startswith("{") else ""
    prefix = f"{{{ns}}}" if ns else ""
    for server in root.iter(f"{prefix}server"):
        server_elem = server.find(f"{prefix}id")
        if server_elem is not None and (server_elem.text or "").strip() == server_id:
            return CheckResult(name, True, f"server '{server_id}' declared in {settings}")
    return CheckResult(name, False, f"server '{server_id}' not declared in {settings}")


def run_preflight(config: MigrationConfig) -> List[CheckResult]:
    """Evaluate every prerequisite; nothing is modified."""
    results = [
        _tool("git", config.history.git_executable, "install git"),
        _tool("git-filter-repo", "git-filter-repo", "pip install git-filter-repo"),
        _tool("build tool", config.build.executable, "install Apache Maven"),
        _tool("gpg", config.signing.gpg_executable, "install GnuPG and create a signing key"),
    ]

    source_root = Path(config.source_root)
    if (source_root / ".git").exists():
        results.append(CheckResult("source repository", True, str(source_root.resolve())))
    else:
        results.append(
            CheckResult("source repository", False, f"{source_root} is not a git repository")
        )

    if config.hosting.enabled:
        token_set = bool(os.environ.get(config.hosting.token_env))
        results.append(
            CheckResult(
                "hosting token",
                token_set,
                f"{config.hosting.token_env} is set"
                if token_set
                else f"{config.hosting.token_env} is not set",
            )
        )

    passphrase_set = bool(os.environ.get(config.signing.passphrase_env))
    results.append(
        CheckResult(
            "signing passphrase",
            passphrase_set,
            f"{config.signing.passphrase_env} is set"
            if passphrase_set
            else f"{config.signing.passphrase_env} is not set; gpg-agent must supply it",
            required=False,
        )
    )

    results.append(
        _settings_declares_server(
            config.build.settings_file.expanduser(), config.descriptor.staging_server_id
        )
    )

    for result in results:
        log = logger.info if result.ok else logger.warning
        log("Preflight %s: %s", result.name, result.detail)
    return results


__all__ = ["CheckResult", "run_preflight"]
