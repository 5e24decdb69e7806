"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from calver_release.config import ReleaseConfig
from calver_release.context import ReleaseContext
from calver_release.models import CommitRecord

TODAY = date(2025, 8, 14)


def make_commits(*messages: str) -> list[CommitRecord]:
    """Build a newest-first commit list from messages."""
    return [
        CommitRecord(sha=f"{i:040x}", message=message)
        for i, message in enumerate(messages, start=1)
    ]


def write_pyproject(
    directory: Path,
    name: str | None = None,
    version: str | None = None,
    extra: str = "",
) -> Path:
    """Write a minimal pyproject.toml into directory."""
    directory.mkdir(parents=True, exist_ok=True)
    lines = ["[project]"]
    if name is not None:
        lines.append(f'name = "{name}"')
    if version is not None:
        lines.append(f'version = "{version}"')
    path = directory / "pyproject.toml"
    path.write_text("\n".join(lines) + "\n" + extra)
    return path


class FakeGit:
    """In-memory stand-in for calver_release.vcs.Git."""

    def __init__(
        self,
        commits: Iterable[CommitRecord] = (),
        tags: Iterable[str] = (),
        changed: Iterable[str] = (),
        latest: str | None = None,
        branch: str = "main",
        remote: str = "https://github.com/acme/widgets.git",
        email: str = "dev@example.com",
    ) -> None:
        self.commits = list(commits)
        self._tags = list(tags)
        self.changed = list(changed)
        self.latest = latest
        self.branch = branch
        self.remote = remote
        self.config = {"user.email": email} if email else {}
        self.created_tags: list[str] = []
        self.added: list[str] = []
        self.commit_messages: list[str] = []
        self.pushed: list[tuple[str, str]] = []

    def latest_tag(self) -> str | None:
        return self.latest

    def commits_since(self, ref: str | None) -> list[CommitRecord]:
        return list(self.commits)

    def tags(self) -> list[str]:
        return list(self._tags)

    def changed_files(self, since: str | None) -> list[str]:
        return list(self.changed)

    def current_branch(self) -> str:
        return self.branch

    def remote_url(self, remote: str = "origin") -> str:
        return self.remote

    def config_get(self, key: str) -> str:
        return self.config.get(key, "")

    def config_set(self, key: str, value: str) -> None:
        self.config[key] = value

    def tag(self, name: str) -> None:
        self.created_tags.append(name)

    def add(self, *paths: str) -> None:
        self.added.extend(paths)

    def staged_files(self) -> list[str]:
        return list(self.added)

    def commit(self, message: str) -> None:
        self.commit_messages.append(message)

    def push(self, remote: str, refspec: str) -> None:
        self.pushed.append((remote, refspec))


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def make_ctx(tmp_path: Path) -> Callable[..., ReleaseContext]:
    """Factory for a ReleaseContext rooted in tmp_path."""

    def factory(
        vcs: Any = None,
        env: dict[str, str] | None = None,
        root: Path | None = None,
        **options: Any,
    ) -> ReleaseContext:
        return ReleaseContext(
            root=root or tmp_path,
            options=ReleaseConfig(**options),
            logger=MagicMock(),
            vcs=vcs or FakeGit(),
            today=TODAY,
            env=env or {},
        )

    return factory


@pytest.fixture
def single_repo(tmp_path: Path) -> Path:
    """A single-package repository declaring version 25.07.3."""
    write_pyproject(tmp_path, name="widgets", version="25.07.3")
    return tmp_path


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    """A uv workspace with packages/core and packages/ui."""
    write_pyproject(
        tmp_path,
        name="workspace-root",
        extra='\n[tool.uv.workspace]\nmembers = ["packages/*"]\n',
    )
    write_pyproject(tmp_path / "packages" / "core", name="core", version="25.07.1")
    write_pyproject(tmp_path / "packages" / "ui", name="ui", version="25.07.1")
    return tmp_path
