"""Tests for the built-in plugins."""

from __future__ import annotations

import asyncio
import json
import subprocess
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest
from conftest import FakeGit, make_commits, write_pyproject

from calver_release.commits import classify_commits
from calver_release.context import ReleaseContext
from calver_release.errors import PublishError, VerificationError
from calver_release.models import (
    MultiRelease,
    Package,
    ReleaseRecord,
    ReleaseType,
    SingleRelease,
)
from calver_release.plugins.changelog import ChangelogPlugin
from calver_release.plugins.commit_analyzer import CommitAnalyzerPlugin
from calver_release.plugins.git import GitPlugin, commit_message
from calver_release.plugins.github import GitHubPlugin, parse_remote
from calver_release.plugins.gitlab import GitLabPlugin
from calver_release.plugins.pypi import PyPIPlugin
from calver_release.plugins.release_notes import MULTI_SEPARATOR, ReleaseNotesPlugin
from calver_release.versions import tag_name_for

ROOT = Package(name="widgets", path=".")
CORE = Package(name="core", path="packages/core")
UI = Package(name="ui", path="packages/ui")

CtxFactory = Callable[..., ReleaseContext]


def record(package: Package, version: str, message: str = "fix: x") -> ReleaseRecord:
    analysis = classify_commits(make_commits(message))
    assert analysis is not None
    return ReleaseRecord(
        package=package,
        version=version,
        analysis=analysis,
        release_notes=f"## {package.name} [{version}]",
        tag_name=tag_name_for(package, version),
    )


class TestCommitAnalyzerPlugin:
    """Tests for CommitAnalyzerPlugin."""

    def test_monorepo_scoping(self, make_ctx: CtxFactory) -> None:
        ctx = make_ctx()
        ctx.packages = [CORE, UI]
        ctx.commits = make_commits("feat(core): x")
        plugin = CommitAnalyzerPlugin()

        core = plugin.analyze_commits(ctx, CORE)

        assert core is not None
        assert core.release_type is ReleaseType.MINOR
        assert plugin.analyze_commits(ctx, UI) is None

    def test_single_package_counts_scoped_commits(self, make_ctx: CtxFactory) -> None:
        ctx = make_ctx()
        ctx.packages = [ROOT]
        ctx.commits = make_commits("fix(parser): x")

        analysis = CommitAnalyzerPlugin().analyze_commits(ctx, ROOT)

        assert analysis is not None
        assert analysis.release_type is ReleaseType.PATCH


class TestReleaseNotesPlugin:
    """Tests for ReleaseNotesPlugin."""

    def test_single(self, make_ctx: CtxFactory) -> None:
        ctx = make_ctx()
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        assert ReleaseNotesPlugin().generate_notes(ctx) == "## widgets [25.08.1]"

    def test_multi_joined_with_separator(self, make_ctx: CtxFactory) -> None:
        ctx = make_ctx()
        ctx.next_release = MultiRelease(
            releases=[record(CORE, "25.08.1"), record(UI, "25.08.3")]
        )

        notes = ReleaseNotesPlugin().generate_notes(ctx)

        assert notes == f"## core [25.08.1]{MULTI_SEPARATOR}## ui [25.08.3]"

    def test_nothing_to_release(self, make_ctx: CtxFactory) -> None:
        assert ReleaseNotesPlugin().generate_notes(make_ctx()) == ""


class TestChangelogPlugin:
    """Tests for ChangelogPlugin."""

    def test_writes_per_package(self, tmp_path: Path, make_ctx: CtxFactory) -> None:
        (tmp_path / "packages" / "core").mkdir(parents=True)
        ctx = make_ctx()
        ctx.next_release = SingleRelease(release=record(CORE, "25.08.1"))

        ChangelogPlugin().prepare(ctx)

        text = (tmp_path / "packages" / "core" / "CHANGELOG.md").read_text()
        assert "## core [25.08.1]" in text

    def test_dry_run_writes_nothing(self, tmp_path: Path, make_ctx: CtxFactory) -> None:
        ctx = make_ctx(dry_run=True)
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        ChangelogPlugin().prepare(ctx)

        assert not (tmp_path / "CHANGELOG.md").exists()


class TestPyPIPlugin:
    """Tests for PyPIPlugin."""

    def test_token_required(self, make_ctx: CtxFactory) -> None:
        with pytest.raises(VerificationError, match="UV_PUBLISH_TOKEN"):
            PyPIPlugin().verify_conditions(make_ctx())

    @pytest.mark.parametrize(
        "env,options,ctx_options",
        [
            ({"PYPI_TOKEN": "t"}, {}, {}),
            ({}, {}, {"dry_run": True}),
            ({}, {"publish": False}, {}),
        ],
    )
    def test_token_check_passes(
        self,
        make_ctx: CtxFactory,
        env: dict[str, str],
        options: dict[str, object],
        ctx_options: dict[str, object],
    ) -> None:
        PyPIPlugin(options).verify_conditions(make_ctx(env=env, **ctx_options))

    def test_prepare_writes_versions(
        self, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        write_pyproject(tmp_path, name="widgets", version="25.07.3")
        ctx = make_ctx()
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        PyPIPlugin().prepare(ctx)

        assert 'version = "25.08.1"' in (tmp_path / "pyproject.toml").read_text()

    @patch("calver_release.plugins.pypi.run")
    def test_publish_builds_and_uploads(
        self, mock_run: MagicMock, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        mock_run.return_value = MagicMock(returncode=0)
        write_pyproject(
            tmp_path,
            name="widgets",
            version="25.08.1",
            extra='\n[build-system]\nbuild-backend = "hatchling.build"\n',
        )
        ctx = make_ctx(env={"PYPI_TOKEN": "secret"})
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        results = asyncio.run(PyPIPlugin().publish(ctx))

        assert mock_run.call_count == 2
        build_args = mock_run.call_args_list[0].args
        publish_call = mock_run.call_args_list[1]
        assert build_args[:2] == ("uv", "build")
        assert publish_call.args[:2] == ("uv", "publish")
        assert publish_call.kwargs["env"]["UV_PUBLISH_TOKEN"] == "secret"
        assert results[0].type == "pypi"
        assert results[0].url == "https://pypi.org/project/widgets/25.08.1/"

    @patch("calver_release.plugins.pypi.run")
    def test_publish_without_build_system_skips_build(
        self, mock_run: MagicMock, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        mock_run.return_value = MagicMock(returncode=0)
        write_pyproject(tmp_path, name="widgets", version="25.08.1")
        ctx = make_ctx(env={"PYPI_TOKEN": "secret"})
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        plugin = PyPIPlugin({"repository_url": "https://test.pypi.org/legacy/"})
        asyncio.run(plugin.publish(ctx))

        mock_run.assert_called_once()
        assert "--publish-url" in mock_run.call_args.args

    @patch("calver_release.plugins.pypi.run")
    def test_publish_failure_raises(
        self, mock_run: MagicMock, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        mock_run.return_value = MagicMock(returncode=1)
        write_pyproject(tmp_path, name="widgets", version="25.08.1")
        ctx = make_ctx(env={"PYPI_TOKEN": "secret"})
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        with pytest.raises(PublishError, match="Failed to publish"):
            asyncio.run(PyPIPlugin().publish(ctx))

    @patch("calver_release.plugins.pypi.run")
    def test_non_python_package_is_skipped(
        self, mock_run: MagicMock, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        (tmp_path / "package.json").write_text(json.dumps({"name": "w"}))
        ctx = make_ctx(env={"PYPI_TOKEN": "secret"})
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        assert asyncio.run(PyPIPlugin().publish(ctx)) == []
        mock_run.assert_not_called()


class TestGitPlugin:
    """Tests for GitPlugin."""

    def test_branch_must_be_allowed(self, make_ctx: CtxFactory) -> None:
        ctx = make_ctx(vcs=FakeGit(branch="feature/x"))

        with pytest.raises(VerificationError, match="feature/x"):
            GitPlugin().verify_conditions(ctx)

    def test_ci_branch_variable_wins(self, make_ctx: CtxFactory) -> None:
        ctx = make_ctx(
            vcs=FakeGit(branch="feature/x"), env={"CI_COMMIT_REF_NAME": "main"}
        )

        GitPlugin().verify_conditions(ctx)

    @pytest.mark.parametrize("branch,dry_run", [("", False), ("feature/x", True)])
    def test_detached_head_or_dry_run_skip_check(
        self, make_ctx: CtxFactory, branch: str, dry_run: bool
    ) -> None:
        ctx = make_ctx(vcs=FakeGit(branch=branch), dry_run=dry_run)

        GitPlugin().verify_conditions(ctx)

    def test_prepare_configures_identity_and_tags(self, make_ctx: CtxFactory) -> None:
        vcs = FakeGit(email="")
        ctx = make_ctx(vcs=vcs, env={"GITLAB_USER_EMAIL": "ci@example.com"})
        ctx.next_release = MultiRelease(
            releases=[record(CORE, "25.08.1"), record(UI, "25.08.2")]
        )

        GitPlugin().prepare(ctx)

        assert vcs.config["user.email"] == "ci@example.com"
        assert vcs.config["user.name"] == "Release Bot"
        assert vcs.created_tags == [
            "v-25.08.1-core-release",
            "v-25.08.2-ui-release",
        ]

    def test_prepare_keeps_existing_identity(self, make_ctx: CtxFactory) -> None:
        vcs = FakeGit(email="dev@example.com")
        ctx = make_ctx(vcs=vcs)
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        GitPlugin().prepare(ctx)

        assert "user.name" not in vcs.config

    def test_publish_commits_and_pushes(
        self, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        write_pyproject(tmp_path, name="widgets", version="25.08.1")
        (tmp_path / "CHANGELOG.md").write_text("# Changelog\n")
        vcs = FakeGit()
        ctx = make_ctx(vcs=vcs, ci=False)
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        result = GitPlugin().publish(ctx)

        assert vcs.added == ["CHANGELOG.md", "pyproject.toml"]
        assert vcs.commit_messages == ["chore(release): root@25.08.1 [skip ci]"]
        assert vcs.pushed == [("origin", "main"), ("origin", "v-25.08.1")]
        assert result is not None
        assert result.model_extra == {"gitTag": "v-25.08.1"}

    def test_publish_in_ci_pushes_head(
        self, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        vcs = FakeGit(branch="")
        ctx = make_ctx(vcs=vcs, env={"CI_COMMIT_REF_NAME": "master"})
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        GitPlugin().publish(ctx)

        assert vcs.commit_messages == []
        assert vcs.pushed[0] == ("origin", "HEAD:master")

    def test_push_failures_are_logged(
        self, tmp_path: Path, make_ctx: CtxFactory
    ) -> None:
        vcs = FakeGit()
        vcs.push = MagicMock(  # type: ignore[method-assign]
            side_effect=subprocess.CalledProcessError(1, "git", stderr="rejected")
        )
        ctx = make_ctx(vcs=vcs)
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        GitPlugin().publish(ctx)

        assert vcs.push.call_count == 2
        ctx.logger.error.assert_called()

    def test_multi_release_commit_message(self) -> None:
        release = MultiRelease(
            releases=[record(CORE, "25.08.1"), record(UI, "25.08.1")]
        )

        assert commit_message(release) == "chore(release): 2 packages [skip ci]"


def github_transport(
    status: int, body: dict[str, object], seen: list[httpx.Request]
) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


class TestGitHubPlugin:
    """Tests for GitHubPlugin."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/acme/widgets.git",
            "https://github.com/acme/widgets",
            "git@github.com:acme/widgets.git",
            "ssh://git@github.com/acme/widgets.git",
        ],
    )
    def test_parse_remote(self, url: str) -> None:
        assert parse_remote(url) == ("acme", "widgets")

    def test_parse_non_github_remote(self) -> None:
        assert parse_remote("https://gitlab.com/acme/widgets.git") is None

    def test_token_required(self, make_ctx: CtxFactory) -> None:
        with pytest.raises(VerificationError, match="GITHUB_TOKEN"):
            GitHubPlugin().verify_conditions(make_ctx())

    def test_dry_run_skips_token_check(self, make_ctx: CtxFactory) -> None:
        GitHubPlugin().verify_conditions(make_ctx(dry_run=True))

    def test_creates_release_per_package(self, make_ctx: CtxFactory) -> None:
        seen: list[httpx.Request] = []
        transport = github_transport(
            201,
            {"html_url": "https://github.com/acme/widgets/releases/1", "id": 1},
            seen,
        )
        ctx = make_ctx(env={"GITHUB_TOKEN": "ghp"})
        ctx.next_release = MultiRelease(
            releases=[record(CORE, "25.08.1", "feat!: x"), record(UI, "25.08.2")],
            notes="notes",
        )

        results = asyncio.run(GitHubPlugin({"transport": transport}).publish(ctx))

        assert [r.type for r in results] == ["github", "github"]
        assert results[0].id == "1"
        assert str(seen[0].url) == "https://api.github.com/repos/acme/widgets/releases"
        assert seen[0].headers["Authorization"] == "token ghp"
        payload = json.loads(seen[0].content)
        assert payload["tag_name"] == "v-25.08.1-core-release"
        assert payload["name"] == "core v-25.08.1-core-release"
        assert payload["body"] == "notes"
        assert payload["prerelease"] is True
        assert json.loads(seen[1].content)["prerelease"] is False

    def test_api_error_raises(self, make_ctx: CtxFactory) -> None:
        transport = github_transport(422, {"message": "Validation Failed"}, [])
        ctx = make_ctx(env={"GITHUB_TOKEN": "ghp"})
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        with pytest.raises(PublishError, match="422 - Validation Failed"):
            asyncio.run(GitHubPlugin({"transport": transport}).publish(ctx))

    @pytest.mark.parametrize(
        "env,remote",
        [
            ({}, "https://github.com/acme/widgets.git"),
            ({"GITHUB_TOKEN": "ghp"}, "https://gitlab.com/acme/widgets.git"),
        ],
    )
    def test_skips_without_token_or_repository(
        self, make_ctx: CtxFactory, env: dict[str, str], remote: str
    ) -> None:
        seen: list[httpx.Request] = []
        ctx = make_ctx(vcs=FakeGit(remote=remote), env=env)
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        plugin = GitHubPlugin({"transport": github_transport(201, {}, seen)})

        assert asyncio.run(plugin.publish(ctx)) == []
        assert seen == []


class TestGitLabPlugin:
    """Tests for GitLabPlugin."""

    ENV = {
        "CI_JOB_TOKEN": "job",
        "CI_PROJECT_ID": "42",
        "CI_SERVER_HOST": "gitlab.example.com",
    }

    def test_creates_release(self, make_ctx: CtxFactory) -> None:
        seen: list[httpx.Request] = []
        transport = github_transport(201, {}, seen)
        ctx = make_ctx(env=self.ENV)
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"), notes="n")

        results = asyncio.run(GitLabPlugin({"transport": transport}).publish(ctx))

        assert str(seen[0].url) == (
            "https://gitlab.example.com/api/v4/projects/42/releases"
        )
        assert seen[0].headers["PRIVATE-TOKEN"] == "job"
        assert json.loads(seen[0].content)["description"] == "n"
        assert results[0].url == "https://gitlab.example.com/42/-/releases/v-25.08.1"

    def test_skips_without_project(self, make_ctx: CtxFactory) -> None:
        ctx = make_ctx(env={"GITLAB_ACCESS_TOKEN": "t"})
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        assert asyncio.run(GitLabPlugin().publish(ctx)) == []

    def test_api_error_raises(self, make_ctx: CtxFactory) -> None:
        transport = github_transport(500, {"message": "boom"}, [])
        ctx = make_ctx(env=self.ENV)
        ctx.next_release = SingleRelease(release=record(ROOT, "25.08.1"))

        with pytest.raises(PublishError, match="GitLab release failed: 500"):
            asyncio.run(GitLabPlugin({"transport": transport}).publish(ctx))
