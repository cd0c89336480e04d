"""Tests for the hosting, git and build adapters."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import List

import pytest
import requests

from conftest import FakeGit, make_module, result
from repomigrate.config.schema import BuildConfig, HostingConfig, SigningConfig
from repomigrate.errors import CommandFailed, HostingError
from repomigrate.integrations.git import GitClient, GitFilterRepoIsolator
from repomigrate.integrations.hosting import GitHubHosting
from repomigrate.integrations.maven import MavenBuildTool
from repomigrate.templates.profiles import GPG_PASSPHRASE_ENV


class FakeSession:
    """Routes (method, path) to scripted (status, json) responses."""

    def __init__(self, routes):
        self.routes = routes
        self.calls: List[tuple] = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        path = url.split("api.github.com", 1)[1]
        self.calls.append((method, path, kwargs.get("json")))
        answer = self.routes.get((method, path))
        if isinstance(answer, list):
            answer = answer.pop(0)
        if isinstance(answer, Exception):
            raise answer
        status, body = answer or (404, {})
        return SimpleNamespace(status_code=status, text=str(body), json=lambda: body)


class FakeRunner:
    """CommandRunner stand-in recording argv."""

    def __init__(self, outputs=None, returncode=0):
        self.outputs = outputs or {}
        self.returncode = returncode
        self.calls = []

    def run(self, args, cwd=None, env=None, timeout=None):
        self.calls.append(SimpleNamespace(args=list(args), cwd=cwd, env=env, timeout=timeout))
        stdout = self.outputs.get(args[1], "") if len(args) > 1 else ""
        return result(self.returncode, stdout=stdout, stderr="fatal: boom" if self.returncode else "")


def _hosting(routes, **settings) -> tuple:
    session = FakeSession(routes)
    return GitHubHosting(HostingConfig(**settings), session=session, token="t0k"), session


def test_existing_repository_is_left_untouched() -> None:
    hosting, session = _hosting({("GET", "/repos/acme/core"): (200, {})})

    assert hosting.ensure_repository(make_module("core")) is False
    assert [call[0] for call in session.calls] == ["GET"]


def test_missing_repository_is_created_under_the_organization() -> None:
    hosting, session = _hosting(
        {
            ("GET", "/user"): (200, {"login": "someone"}),
            ("POST", "/orgs/acme/repos"): (201, {}),
        },
        gitignore_template="Java",
    )

    assert hosting.ensure_repository(make_module("core")) is True
    method, path, payload = session.calls[-1]
    assert (method, path) == ("POST", "/orgs/acme/repos")
    assert payload["name"] == "core"
    assert payload["private"] is False
    assert payload["gitignore_template"] == "Java"
    assert "license_template" not in payload


def test_personal_account_repository() -> None:
    hosting, session = _hosting(
        {
            ("GET", "/user"): (200, {"login": "acme"}),
            ("POST", "/user/repos"): (201, {}),
        }
    )

    assert hosting.ensure_repository(make_module("core"))
    assert session.calls[-1][1] == "/user/repos"


def test_concurrent_creation_counts_as_existing() -> None:
    hosting, _ = _hosting(
        {
            ("GET", "/repos/acme/core"): [(404, {}), (200, {})],
            ("GET", "/user"): (200, {"login": "someone"}),
            ("POST", "/orgs/acme/repos"): (422, {"message": "name already exists"}),
        }
    )

    assert hosting.ensure_repository(make_module("core")) is False


@pytest.mark.parametrize(
    "routes",
    [
        {("GET", "/repos/acme/core"): (401, {"message": "Bad credentials"})},
        {("GET", "/repos/acme/core"): requests.ConnectionError("offline")},
        {
            ("GET", "/user"): (200, {"login": "someone"}),
            ("POST", "/orgs/acme/repos"): (403, {"message": "forbidden"}),
        },
    ],
)
def test_hosting_failures(routes) -> None:
    hosting, _ = _hosting(routes)

    with pytest.raises(HostingError):
        hosting.ensure_repository(make_module("core"))


def test_missing_token_is_a_hosting_error(monkeypatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    hosting = GitHubHosting(HostingConfig(), session=FakeSession({}))

    with pytest.raises(HostingError, match="GITHUB_TOKEN"):
        hosting.exists(make_module("core"))


def test_push_sets_remote_and_pushes(tmp_path: Path) -> None:
    hosting, _ = _hosting({})
    git = FakeGit()

    hosting.push(git, tmp_path, make_module("core"), "main")

    assert git.remotes_set == [(tmp_path, "origin", "https://github.com/acme/core.git")]
    assert git.pushes == [(tmp_path, "origin", "main")]

    git.fail_push = True
    with pytest.raises(HostingError, match="acme/core"):
        hosting.push(git, tmp_path, make_module("core"), "main")


def test_git_client_raises_on_failure(tmp_path: Path) -> None:
    git = GitClient(FakeRunner(returncode=128))

    with pytest.raises(CommandFailed) as excinfo:
        git.head(tmp_path)

    assert excinfo.value.returncode == 128
    assert "boom" in str(excinfo.value)


def test_root_commit_and_remote_handling(tmp_path: Path) -> None:
    runner = FakeRunner(outputs={"rev-list": "aaa\nbbb\n", "remote": "origin\n"})
    git = GitClient(runner, executable="git")

    assert git.root_commit(tmp_path) == "bbb"
    git.set_remote(tmp_path, "origin", "https://example.org/x.git")
    git.set_remote(tmp_path, "mirror", "https://example.org/y.git")

    argv = [call.args for call in runner.calls]
    assert ["git", "remote", "set-url", "origin", "https://example.org/x.git"] in argv
    assert ["git", "remote", "add", "mirror", "https://example.org/y.git"] in argv


def test_filter_repo_keeps_subtree_and_allow_list(tmp_path: Path) -> None:
    runner = FakeRunner()
    isolator = GitFilterRepoIsolator(GitClient(runner), branch="main")

    isolator.isolate(tmp_path / "src", "bytehot-core/", tmp_path / "work", ["LICENSE", "pom.xml"])

    clone, checkout, filter_repo = [call.args for call in runner.calls]
    assert clone[:3] == ["git", "clone", "--no-local"]
    assert checkout == ["git", "checkout", "-B", "main"]
    assert filter_repo == [
        "git", "filter-repo",
        "--path", "bytehot-core/",
        "--path", "LICENSE",
        "--path", "pom.xml",
        "--force",
    ]


def test_maven_release_goals(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("MAVEN_GPG_PASSPHRASE", "s3cret")
    runner = FakeRunner()
    maven = MavenBuildTool(
        runner,
        BuildConfig(extra_args=["-B", "-q"]),
        SigningConfig(key_id="ABCD1234"),
        release_profile="release",
    )

    maven.package_release(tmp_path)
    maven.deploy_release(tmp_path)

    package, deploy = runner.calls
    assert package.args == ["mvn", "-B", "-q", "clean", "package", "-P", "release", "-DskipTests"]
    assert package.env is None
    assert deploy.args[-1] == "-Dgpg.keyname=ABCD1234"
    assert "deploy" in deploy.args
    assert deploy.env == {GPG_PASSPHRASE_ENV: "s3cret"}
    assert deploy.cwd == tmp_path
