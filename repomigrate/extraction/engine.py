"""Extraction of a module into its standalone repository.

The engine isolates the module's history, moves the subtree to the
repository root, writes the rendered descriptor and scaffold files as a
single commit and moves the result into place. History isolation is
expensive and not idempotent, so an existing destination is either
recognised as a completed extraction (and returned as is) or rejected
as a conflict; it is never re-isolated in place.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from repomigrate.config.schema import HistoryConfig
from repomigrate.errors import (
    CommandFailed,
    CommandTimeout,
    ExtractionError,
    ExtractionFailure,
)
from repomigrate.graph.models import Module
from repomigrate.integrations.git import GitClient, HistoryIsolator
from repomigrate.runtime.records import ExtractionRecord
from repomigrate.runtime.state_store import StateStore
from repomigrate.templates.pom import DescriptorTemplater, RenderedDescriptor

logger = logging.getLogger("repomigrate.extraction.engine")

DESCRIPTOR_NAME = "pom.xml"
WORK_DIR_NAME = ".work"
_RELOCATE_DIR = ".repomigrate-subtree"


def file_hash(path: Path) -> Optional[str]:
    """sha256 of a file's bytes, or None when it cannot be read."""
    try:
        return hashlib.sha256(path.read_bytes()).hexdigest()
    except OSError:
        return None


class ExtractionEngine:
    """Turns registered modules into standalone repositories."""

    def __init__(
        self,
        templater: DescriptorTemplater,
        store: StateStore,
        isolator: HistoryIsolator,
        git: GitClient,
        source_root: Path,
        migration_dir: Path,
        history: Optional[HistoryConfig] = None,
    ) -> None:
        self.templater = templater
        self.store = store
        self.isolator = isolator
        self.git = git
        self.source_root = Path(source_root)
        self.migration_dir = Path(migration_dir)
        self.history = history or HistoryConfig()

    def destination_for(self, module: Module) -> Path:
        return self.migration_dir / module.organization / module.repository

    def extract(self, module: Module) -> ExtractionRecord:
        """Extract ``module`` and return its Extraction Record.

        Returns the previously stored record without isolating again when
        the destination still matches the current template output.

        Raises:
            ExtractionError: SOURCE_MISSING, HISTORY_ISOLATION_FAILED,
                DESCRIPTOR_WRITE_FAILED or DESTINATION_CONFLICT.
            CommandCancelled: If the operator aborted the run.
        """
        source = self.source_root / module.source_path
        if not source.is_dir():
            raise ExtractionError(
                ExtractionFailure.SOURCE_MISSING,
                module.name,
                f"{source} does not exist",
            )

        rendered = self.templater.render(module)
        destination = self.destination_for(module)
        if destination.exists():
            return self._existing(module, destination, rendered)

        try:
            source_revision = self.git.head(self.source_root)
        except (CommandFailed, CommandTimeout) as exc:
            raise ExtractionError(
                ExtractionFailure.HISTORY_ISOLATION_FAILED, module.name, str(exc)
            ) from exc

        workdir = self.migration_dir / WORK_DIR_NAME / module.name
        if workdir.exists():
            logger.debug("Removing stale work directory %s", workdir)
            shutil.rmtree(workdir)
        workdir.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.isolator.isolate(
                self.source_root, module.source_path, workdir, self.history.allow_list
            )
        except (CommandFailed, CommandTimeout, OSError) as exc:
            raise ExtractionError(
                ExtractionFailure.HISTORY_ISOLATION_FAILED, module.name, str(exc)
            ) from exc

        try:
            self._relocate(module, workdir)
        except OSError as exc:
            raise ExtractionError(
                ExtractionFailure.HISTORY_ISOLATION_FAILED, module.name, str(exc)
            ) from exc
        head = self._write_scaffold(module, workdir, rendered)

        try:
            root = self.git.root_commit(workdir)
        except CommandFailed as exc:
            raise ExtractionError(
                ExtractionFailure.HISTORY_ISOLATION_FAILED, module.name, str(exc)
            ) from exc

        record = ExtractionRecord(
            module=module.name,
            revision_range=f"{root}..{head}",
            source_revision=source_revision,
            destination=destination,
            descriptor_hash=rendered.sha256,
        )
        # The record must exist before the destination does.
        self.store.record_extraction(module.name, record)
        destination.parent.mkdir(parents=True, exist_ok=True)
        os.replace(workdir, destination)

        logger.info(
            "Extracted %s into %s (%s)", module.name, destination, record.revision_range
        )
        return record

    def _existing(
        self, module: Module, destination: Path, rendered: RenderedDescriptor
    ) -> ExtractionRecord:
        prior = self.store.get(module.name).extraction
        on_disk = file_hash(destination / DESCRIPTOR_NAME)
        if (
            prior is not None
            and Path(prior.destination) == destination
            and prior.descriptor_hash == rendered.sha256
            and on_disk == rendered.sha256
        ):
            logger.info("%s already extracted at %s; skipping", module.name, destination)
            return prior

        if prior is None:
            reason = "no extraction record for existing destination"
        elif on_disk != prior.descriptor_hash:
            reason = "descriptor on disk was modified after extraction"
        else:
            reason = "descriptor template changed since extraction"
        raise ExtractionError(
            ExtractionFailure.DESTINATION_CONFLICT,
            module.name,
            f"{destination}: {reason}; remove it or restore it before retrying",
        )

    def _relocate(self, module: Module, workdir: Path) -> None:
        """Move the subtree's contents to the repository root.

        Subtree entries replace allow-listed root files of the same name.
        """
        subtree = workdir / module.source_path
        if not subtree.is_dir():
            raise ExtractionError(
                ExtractionFailure.HISTORY_ISOLATION_FAILED,
                module.name,
                f"subtree {module.source_path} missing after isolation",
            )
        staging = workdir / _RELOCATE_DIR
        subtree.rename(staging)

        # Drop now-empty parents of a nested subtree path.
        parent = (workdir / module.source_path).parent
        while parent != workdir:
            if parent.is_dir() and not any(parent.iterdir()):
                parent.rmdir()
            parent = parent.parent

        for entry in sorted(staging.iterdir()):
            if entry.name == ".git":
                continue
            target = workdir / entry.name
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
            entry.rename(target)
        shutil.rmtree(staging)

    def _write_scaffold(
        self, module: Module, workdir: Path, rendered: RenderedDescriptor
    ) -> str:
        try:
            (workdir / DESCRIPTOR_NAME).write_bytes(rendered.content.encode("utf-8"))
            for name, content in self.templater.scaffold(module).items():
                target = workdir / name
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content.encode("utf-8"))
            return self.git.commit_all(
                workdir,
                f"Extract {module.name} as a standalone repository\n\n"
                f"Descriptor profile: {rendered.profile}\n"
                f"Coordinate: {module.coordinate}:{self.templater.config.version}",
                name=self.history.committer_name,
                email=self.history.committer_email,
            )
        except (OSError, CommandFailed, CommandTimeout) as exc:
            raise ExtractionError(
                ExtractionFailure.DESCRIPTOR_WRITE_FAILED, module.name, str(exc)
            ) from exc


__all__ = ["ExtractionEngine", "DESCRIPTOR_NAME", "file_hash"]
