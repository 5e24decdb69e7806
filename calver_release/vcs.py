"""Git queries and operations used by the release pipeline."""

from __future__ import annotations

from pathlib import Path

from .models import CommitRecord
from .shell import git

# Separators for `git log --format`; they never occur in commit messages.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


class Git:
    """Thin wrapper around the git CLI for one repository.

    Query methods raise subprocess.CalledProcessError when git fails, except
    latest_tag(), which returns None for repositories without tags.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or Path.cwd()

    def _git(self, *args: str, check: bool = True) -> str:
        return git(*args, cwd=self.root, check=check)

    def latest_tag(self) -> str | None:
        """Most recent tag reachable from HEAD, or None."""
        return self._git("describe", "--tags", "--abbrev=0", check=False) or None

    def commits_since(self, ref: str | None) -> list[CommitRecord]:
        """Commits after ref (all commits if ref is None), newest first."""
        revision = [f"{ref}..HEAD"] if ref else []
        output = self._git(
            "log", f"--format=%H{_FIELD_SEP}%B{_RECORD_SEP}", *revision
        )
        commits: list[CommitRecord] = []
        for record in output.split(_RECORD_SEP):
            sha, sep, message = record.strip().partition(_FIELD_SEP)
            if sep and sha:
                commits.append(CommitRecord(sha=sha, message=message.strip()))
        return commits

    def tags(self) -> list[str]:
        """All tags, highest version first."""
        output = self._git("tag", "--list", "--sort=-version:refname", check=False)
        return [t for t in output.splitlines() if t.strip()]

    def changed_files(self, since: str | None) -> list[str]:
        """Files changed after a ref, or every tracked file if ref is None."""
        if since:
            output = self._git("diff", "--name-only", f"{since}..HEAD")
        else:
            output = self._git("ls-files")
        return [f for f in output.splitlines() if f.strip()]

    def current_branch(self) -> str:
        return self._git("branch", "--show-current", check=False)

    def remote_url(self, remote: str = "origin") -> str:
        return self._git("config", "--get", f"remote.{remote}.url", check=False)

    def config_get(self, key: str) -> str:
        return self._git("config", key, check=False)

    def config_set(self, key: str, value: str) -> None:
        self._git("config", key, value)

    def tag(self, name: str) -> None:
        self._git("tag", name)

    def add(self, *paths: str) -> None:
        self._git("add", "--", *paths)

    def staged_files(self) -> list[str]:
        output = self._git("diff", "--cached", "--name-only", check=False)
        return [f for f in output.splitlines() if f.strip()]

    def commit(self, message: str) -> None:
        self._git("commit", "-m", message)

    def push(self, remote: str, refspec: str) -> None:
        self._git("push", remote, refspec)
