"""Shared fixtures and in-process fakes for the external collaborators."""

from __future__ import annotations

import shutil
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from repomigrate.config.schema import DescriptorConfig, HistoryConfig, PublishConfig
from repomigrate.errors import CommandFailed
from repomigrate.extraction.engine import ExtractionEngine
from repomigrate.graph.models import Module, ModuleType
from repomigrate.graph.registry import ModuleRegistry
from repomigrate.integrations.maven import release_artifacts
from repomigrate.publishing.coordinator import PublishCoordinator
from repomigrate.runtime.lifecycle import Stage
from repomigrate.runtime.orchestrator import PhaseOrchestrator
from repomigrate.runtime.process import CommandResult
from repomigrate.runtime.stages import ExtractStage, PublishStage, ValidateStage
from repomigrate.runtime.state_store import StateStore
from repomigrate.templates.pom import DescriptorTemplater
from repomigrate.validation.validator import ReadinessValidator

VERSION = DescriptorConfig().version


def make_module(
    name: str,
    phase: int = 1,
    depends_on: Sequence[str] = (),
    module_type: ModuleType = ModuleType.DOMAIN,
    source_path: Optional[str] = None,
    organization: str = "acme",
) -> Module:
    return Module(
        name=name,
        phase=phase,
        source_path=source_path or name,
        organization=organization,
        repository=name,
        group_id="org.acme",
        artifact_id=name,
        module_type=module_type,
        depends_on=tuple(depends_on),
        description=f"{name} module",
    )


def abc_registry() -> ModuleRegistry:
    """A and B in phase 1, C in phase 2 depending on both."""
    return ModuleRegistry(
        [
            make_module("a"),
            make_module("b"),
            make_module("c", phase=2, depends_on=("a", "b")),
        ]
    )


def result(returncode: int = 0, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(args=("fake",), returncode=returncode, stdout=stdout, stderr=stderr)


class EventLog:
    """Thread-safe ordered record of collaborator calls."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: List[Tuple[str, str]] = []

    def add(self, operation: str, subject: str) -> None:
        with self._lock:
            self.events.append((operation, subject))

    def index(self, operation: str, subject: str) -> int:
        return self.events.index((operation, subject))

    def count(self, operation: Optional[str] = None) -> int:
        return sum(1 for op, _ in self.events if operation is None or op == operation)

    def subjects(self, operation: str) -> List[str]:
        return [subject for op, subject in self.events if op == operation]


class FakeGit:
    """Stands in for GitClient; records remote operations."""

    SOURCE_HEAD = "abc123"
    ROOT = "root789"
    HEAD = "head456"

    def __init__(self) -> None:
        self.commits: List[Tuple[Path, str]] = []
        self.remotes_set: List[Tuple[Path, str, str]] = []
        self.pushes: List[Tuple[Path, str, str]] = []
        self.fail_push = False

    def head(self, repo: Path) -> str:
        return self.SOURCE_HEAD

    def root_commit(self, repo: Path) -> str:
        return self.ROOT

    def commit_all(self, repo: Path, message: str, name=None, email=None) -> str:
        self.commits.append((Path(repo), message))
        return self.HEAD

    def set_remote(self, repo: Path, name: str, url: str) -> None:
        self.remotes_set.append((Path(repo), name, url))

    def push(self, repo: Path, remote: str, branch: str) -> None:
        if self.fail_push:
            raise CommandFailed(["git", "push"], 128, "remote: Repository not found.")
        self.pushes.append((Path(repo), remote, branch))


class FakeIsolator:
    """Copies the subtree and allow-listed root files, like a filtered clone."""

    def __init__(self, log: Optional[EventLog] = None, fail: bool = False) -> None:
        self.log = log or EventLog()
        self.fail = fail
        self.calls: List[str] = []

    def isolate(
        self, source_root: Path, subtree: str, workdir: Path, allow_list: Sequence[str]
    ) -> None:
        self.calls.append(subtree)
        self.log.add("isolate", subtree)
        if self.fail:
            raise CommandFailed(["git", "filter-repo"], 2, "fatal: not a fresh clone")
        shutil.copytree(Path(source_root) / subtree, Path(workdir) / subtree)
        (Path(workdir) / ".git").mkdir()
        for entry in allow_list:
            path = Path(source_root) / entry
            if path.is_file():
                shutil.copy2(path, Path(workdir) / entry)


class FakeBuildTool:
    """BuildTool fake; release packaging writes the expected artifacts.

    The artifact id is the repository directory name, matching
    ``make_module`` where repository and artifact id are equal.
    """

    def __init__(
        self,
        log: Optional[EventLog] = None,
        compile_ok: bool = True,
        missing: Iterable[str] = (),
        deploy: Optional[Callable[[Path], CommandResult]] = None,
        on_compile: Optional[Callable[[Path], None]] = None,
    ) -> None:
        self.log = log or EventLog()
        self.compile_ok = compile_ok
        self.missing = tuple(missing)
        self.deploy = deploy
        self.on_compile = on_compile

    def compile(self, repo: Path) -> CommandResult:
        self.log.add("compile", Path(repo).name)
        if self.on_compile is not None:
            self.on_compile(Path(repo))
        if self.compile_ok:
            return result()
        return result(1, stdout="[ERROR] COMPILATION ERROR\n[ERROR] cannot find symbol")

    def test(self, repo: Path) -> CommandResult:
        self.log.add("test", Path(repo).name)
        return result()

    def package_release(self, repo: Path) -> CommandResult:
        self.log.add("package", Path(repo).name)
        for path in release_artifacts(repo, Path(repo).name, VERSION):
            if any(path.name.endswith(suffix) for suffix in self.missing):
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"PK")
        return result()

    def deploy_release(self, repo: Path) -> CommandResult:
        self.log.add("deploy", Path(repo).name)
        if self.deploy is not None:
            return self.deploy(Path(repo))
        return result(stdout="[INFO] BUILD SUCCESS")


def make_source_tree(root: Path, modules: Iterable[Module]) -> Path:
    """Combined repository with one subtree per module plus root files."""
    root.mkdir(parents=True, exist_ok=True)
    (root / ".git").mkdir(exist_ok=True)
    (root / "pom.xml").write_text("<project/>\n", encoding="utf-8")
    (root / "LICENSE").write_text("root license\n", encoding="utf-8")
    for module in modules:
        package = root / module.source_path / "src" / "main" / "java" / "org" / "acme"
        package.mkdir(parents=True, exist_ok=True)
        (package / "Main.java").write_text(
            f"package org.acme; // {module.name}\n", encoding="utf-8"
        )
    return root


class Pipeline:
    """Real engine, stages and orchestrator wired to the fakes."""

    def __init__(
        self,
        root: Path,
        registry: ModuleRegistry,
        store: StateStore,
        build_tool: Optional[FakeBuildTool] = None,
        isolator: Optional[FakeIsolator] = None,
        max_workers: int = 2,
        hosting=None,
        push: bool = False,
    ) -> None:
        self.log = EventLog()
        self.registry = registry
        self.store = store
        self.git = FakeGit()
        self.isolator = isolator or FakeIsolator()
        self.isolator.log = self.log
        self.build_tool = build_tool or FakeBuildTool()
        self.build_tool.log = self.log
        self.cancel_event = threading.Event()
        self.source_root = make_source_tree(root / "source", registry)
        self.migration_dir = root / "migration"
        self.templater = DescriptorTemplater(registry, DescriptorConfig())
        self.engine = ExtractionEngine(
            templater=self.templater,
            store=store,
            isolator=self.isolator,
            git=self.git,
            source_root=self.source_root,
            migration_dir=self.migration_dir,
            history=HistoryConfig(allow_list=["LICENSE"]),
        )
        self.validator = ReadinessValidator(self.build_tool)
        self.coordinator = PublishCoordinator(
            self.build_tool,
            version=VERSION,
            config=PublishConfig(propagation_wait=0.0),
            cancel_event=self.cancel_event,
        )
        self.stages: Dict[Stage, object] = {
            Stage.EXTRACT: ExtractStage(
                store, registry, self.engine, hosting=hosting, git=self.git, push=push
            ),
            Stage.VALIDATE: ValidateStage(store, self.validator),
            Stage.PUBLISH: PublishStage(store, self.coordinator),
        }
        self.orchestrator = PhaseOrchestrator(
            registry,
            store,
            self.stages,
            templater=self.templater,
            max_workers=max_workers,
            cancel_event=self.cancel_event,
            hosting_enabled=hosting is not None,
        )


@pytest.fixture
def store(tmp_path: Path):
    state = StateStore(tmp_path / "state" / "state.db")
    yield state
    state.close_all()
