"""Subprocess helpers for git and the uv build/publish commands.

Also home to step(), which prints the stage headers of a release run.
"""

from __future__ import annotations

import subprocess
from pathlib import Path


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Invoke git in ``cwd`` and hand back its trimmed stdout.

    Args:
        *args: git subcommand and flags, e.g. ("describe", "--tags").
        cwd: Repository to operate on; the process cwd when None.
        check: Raise on a non-zero exit. Callers probing for optional
               state (a first release has no tags) pass False.

    Raises:
        subprocess.CalledProcessError: git exited non-zero and check is set.
    """
    completed = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return completed.stdout.strip()


def run(
    *args: str,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[bytes]:
    """Run a build or publish command with output going to the terminal.

    ``env`` replaces the child's environment entirely, so publish tokens
    can be passed without touching os.environ.
    """
    return subprocess.run(args, cwd=cwd, env=env, check=check)


def step(msg: str) -> None:
    """Print a release stage header between two rules."""
    rule = "─" * 60
    print(f"\n{rule}\n{msg}\n{rule}")
