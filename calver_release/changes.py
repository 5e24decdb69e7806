"""Change detection: which packages are affected by recent history.

A package is affected when:
1. A file under its directory changed since the latest tag, or
2. A commit since the latest tag names it as its conventional-commit scope
   (this catches changes with an empty diff, such as metadata-only edits).

Detection fails open: if nothing is detected, or detection itself fails,
every package is treated as changed so a release is never skipped silently.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePosixPath
from typing import Protocol

import structlog

from .commits import parse_commit
from .models import CommitRecord, Package

logger = structlog.get_logger(__name__)


class ChangeSource(Protocol):
    def latest_tag(self) -> str | None: ...

    def changed_files(self, since: str | None) -> list[str]: ...


def is_single_package(packages: Sequence[Package]) -> bool:
    return len(packages) == 1 and packages[0].is_root


def package_for_file(path: str, packages: Sequence[Package]) -> Package | None:
    """Return the package whose directory contains the file."""
    for pkg in packages:
        prefix = pkg.path.rstrip("/") + "/"
        if path.startswith(prefix):
            return pkg
    return None


def package_for_scope(scope: str, packages: Sequence[Package]) -> Package | None:
    """Return the first package named by a commit scope."""
    for pkg in packages:
        if (
            scope in pkg.name
            or scope in pkg.path
            or PurePosixPath(pkg.path).name == scope
        ):
            return pkg
    return None


def _detect(
    packages: Sequence[Package],
    commits: Sequence[CommitRecord],
    vcs: ChangeSource,
) -> set[str]:
    changed: set[str] = set()

    latest_tag = vcs.latest_tag()
    for path in vcs.changed_files(latest_tag):
        pkg = package_for_file(path.strip(), packages)
        if pkg is not None:
            changed.add(pkg.path)

    for commit in commits:
        scope = parse_commit(commit).scope
        if scope is None:
            continue
        pkg = package_for_scope(scope, packages)
        if pkg is not None and pkg.path not in changed:
            logger.debug("Package named by commit scope", package=pkg.name, scope=scope)
            changed.add(pkg.path)

    return changed


def find_changed_packages(
    packages: Sequence[Package],
    commits: Sequence[CommitRecord],
    vcs: ChangeSource,
) -> list[Package]:
    """Narrow the package list to those affected since the latest tag.

    Args:
        packages: All workspace packages.
        commits: Commits since the latest tag, newest first.
        vcs: Source of the latest tag and the changed file list.

    Returns:
        Affected packages, in workspace order. All packages when nothing
        was detected or detection failed.
    """
    if is_single_package(packages):
        return list(packages)

    # Change sources other than git raise their own error types; any of
    # them means the change set is unknown, so every package is released.
    try:
        changed = _detect(packages, commits, vcs)
    except Exception as exc:
        logger.warning(
            "Error detecting changed packages, releasing all", error=str(exc)
        )
        return list(packages)

    result = [pkg for pkg in packages if pkg.path in changed]
    if not result:
        logger.info("No package changes detected, considering all packages")
        return list(packages)

    logger.info("Changed packages", packages=[p.name for p in result])
    return result
