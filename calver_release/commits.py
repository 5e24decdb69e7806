"""Conventional commit classification.

Turns a package's commit history into a CommitAnalysis: whether to release
at all, and whether the release is a patch, minor or major one. Commits are
matched against an ordered rule table; the first matching rule decides the
commit's category.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from pathlib import PurePosixPath
from typing import NamedTuple

import structlog

from .models import (
    AnnotatedCommit,
    CommitAnalysis,
    CommitCategory,
    CommitRecord,
    Package,
    ReleaseType,
)

logger = structlog.get_logger(__name__)

HEADER_RE = re.compile(
    r"^(?P<type>\w+)(?:\((?P<scope>[^)]+)\))?(?P<bang>!)?:\s*(?P<description>.*)$"
)
BREAKING_TOKENS = ("BREAKING CHANGE", "BREAKING-CHANGE")
MAINTENANCE_TYPES = frozenset(
    {"chore", "docs", "style", "refactor", "test", "ci", "build"}
)


class ParsedCommit(NamedTuple):
    subject: str
    message: str
    type: str | None
    scope: str | None
    bang: bool

    @property
    def has_breaking_footer(self) -> bool:
        return any(f"{token}:" in self.message for token in BREAKING_TOKENS)


def parse_commit(commit: CommitRecord) -> ParsedCommit:
    """Split a commit's subject into conventional-commit parts.

    Non-conventional subjects parse with type and scope set to None.
    """
    subject = commit.subject
    match = HEADER_RE.match(subject)
    if not match:
        return ParsedCommit(subject, commit.message, None, None, False)
    return ParsedCommit(
        subject=subject,
        message=commit.message,
        type=match.group("type"),
        scope=match.group("scope"),
        bang=bool(match.group("bang")),
    )


def scope_matches_package(scope: str, package: Package) -> bool:
    """Whether a commit scope refers to the package.

    The scope matches when it equals, or contains, the package name or the
    basename of its path.
    """
    candidates = {package.name, PurePosixPath(package.path).name}
    return any(c and (scope == c or c in scope) for c in candidates)


def commit_applies_to(parsed: ParsedCommit, package: Package | None) -> bool:
    """Attribute a commit to a package.

    Unscoped commits count toward every package. Without a package filter
    (single-package mode) every commit applies.
    """
    if package is None or package.is_root or parsed.scope is None:
        return True
    return scope_matches_package(parsed.scope, package)


class Rule(NamedTuple):
    name: str
    predicate: Callable[[ParsedCommit], bool]
    category: CommitCategory | None


def _typed(*types: str) -> Callable[[ParsedCommit], bool]:
    return lambda c: c.type in types and not c.bang


def _breaking(c: ParsedCommit) -> bool:
    return c.bang or any(token in c.message for token in BREAKING_TOKENS)


# Evaluated top to bottom, first match wins. A None category excludes the
# commit from the release without vetoing releases triggered by others.
RULES: tuple[Rule, ...] = (
    Rule("feature", _typed("feat"), CommitCategory.FEATURE),
    Rule("fix", _typed("fix"), CommitCategory.FIX),
    Rule("performance", _typed("perf"), CommitCategory.PERFORMANCE),
    Rule("breaking", _breaking, CommitCategory.BREAKING),
    Rule("maintenance", lambda c: c.type in MAINTENANCE_TYPES, None),
)


def match_rule(parsed: ParsedCommit) -> Rule | None:
    """Return the first rule matching the commit, if any."""
    for rule in RULES:
        if rule.predicate(parsed):
            return rule
    return None


def classify_commits(
    commits: Sequence[CommitRecord],
    package: Package | None = None,
) -> CommitAnalysis | None:
    """Classify a commit log into a release decision.

    Args:
        commits: Commit history, newest first.
        package: In monorepo mode, the package being analysed; scoped
                 commits for other packages are ignored.

    Returns:
        The analysis, or None when no commit warrants a release.
    """
    has_feature = has_fix = has_breaking = False
    release_commits: list[AnnotatedCommit] = []

    for commit in commits:
        parsed = parse_commit(commit)
        if not commit_applies_to(parsed, package):
            continue

        rule = match_rule(parsed)
        if rule is None:
            continue
        if rule.category is None:
            logger.debug("Skipping commit", subject=parsed.subject, rule=rule.name)
            continue

        if rule.category is CommitCategory.FEATURE:
            has_feature = True
        elif rule.category in (CommitCategory.FIX, CommitCategory.PERFORMANCE):
            has_fix = True
        else:
            has_breaking = True

        # A footer marks a feat/fix as breaking without changing its section.
        if parsed.has_breaking_footer:
            has_breaking = True

        release_commits.append(
            AnnotatedCommit(category=rule.category, subject=parsed.subject)
        )

    if not release_commits:
        return None

    if has_breaking:
        release_type = ReleaseType.MAJOR
    elif has_feature:
        release_type = ReleaseType.MINOR
    else:
        release_type = ReleaseType.PATCH

    return CommitAnalysis(
        should_release=True,
        release_type=release_type,
        has_breaking_change=has_breaking,
        has_feature=has_feature,
        has_fix=has_fix,
        release_commits=tuple(release_commits),
    )
