"""Data models for calver-release.

These Pydantic models represent the core data structures passed between the
decision engine and the plugins of a release run.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ReleaseType(str, Enum):
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


class VersionFormat(str, Enum):
    """The two supported CalVer shapes."""

    THREE_PART = "YY.MM.PATCH"
    FOUR_PART = "YY.MM.MINOR.PATCH"

    @property
    def part_count(self) -> int:
        return 3 if self is VersionFormat.THREE_PART else 4


class CommitCategory(str, Enum):
    """Release-worthy commit categories and their annotation prefixes."""

    BREAKING = "💥"
    FEATURE = "✨"
    FIX = "🐛"
    PERFORMANCE = "⚡"


class Package(BaseModel):
    """A releasable package in the workspace.

    Attributes:
        name: Declared package name (or directory name when undeclared).
        path: Path relative to the repository root; "." in single-package mode.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str

    @property
    def is_root(self) -> bool:
        """Root packages are unscoped: their tags carry no package suffix."""
        return self.path == "."


class PackageDescriptor(BaseModel):
    """What a package declares about itself in pyproject.toml or package.json."""

    name: str | None = None
    version: str | None = None
    workspaces: list[str] = Field(default_factory=list)
    can_build: bool = False
    file: str | None = None


class CommitRecord(BaseModel):
    """A single commit; lists of these are ordered newest-first."""

    model_config = ConfigDict(frozen=True)

    sha: str
    message: str

    @property
    def subject(self) -> str:
        return self.message.strip().splitlines()[0] if self.message.strip() else ""


class AnnotatedCommit(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: CommitCategory
    subject: str

    def __str__(self) -> str:
        return f"{self.category.value} {self.subject}"


class CommitAnalysis(BaseModel):
    """Release decision derived from a package's commit history.

    A missing analysis (no release-worthy commits) is represented by None,
    never by an instance with should_release=False.
    """

    model_config = ConfigDict(frozen=True)

    should_release: bool = True
    release_type: ReleaseType
    has_breaking_change: bool = False
    has_feature: bool = False
    has_fix: bool = False
    release_commits: tuple[AnnotatedCommit, ...] = ()

    def commits_in(self, category: CommitCategory) -> list[str]:
        """Subjects of the release commits annotated with category."""
        return [c.subject for c in self.release_commits if c.category is category]


class ReleaseRecord(BaseModel):
    """The computed release of one package."""

    model_config = ConfigDict(frozen=True)

    package: Package
    version: str
    analysis: CommitAnalysis
    release_notes: str
    tag_name: str

    @property
    def package_name(self) -> str | None:
        return None if self.package.is_root else self.package.name

    @property
    def name(self) -> str:
        return self.package_name or "root"


class SingleRelease(BaseModel):
    """NextRelease for exactly one package; notes are attached later."""

    type: Literal["single"] = "single"
    release: ReleaseRecord
    notes: str = ""

    @property
    def releases(self) -> list[ReleaseRecord]:
        return [self.release]

    @property
    def version(self) -> str:
        return self.release.version


class MultiRelease(BaseModel):
    """NextRelease for several packages released together."""

    type: Literal["multi"] = "multi"
    releases: list[ReleaseRecord]
    notes: str = ""

    @property
    def version(self) -> str:
        return ", ".join(f"{r.name}@{r.version}" for r in self.releases)


NextRelease = SingleRelease | MultiRelease


class PublishResult(BaseModel):
    """What a publish hook reports back (registry URL, hosting release id)."""

    model_config = ConfigDict(extra="allow")

    type: str
    url: str | None = None
    id: str | None = None


class ReleaseResult(BaseModel):
    """Outcome of a complete run of the release pipeline."""

    released: bool
    dry_run: bool = False
    next_release: NextRelease | None = None
    publish_results: list[PublishResult] = Field(default_factory=list)

    @property
    def releases(self) -> list[ReleaseRecord]:
        return self.next_release.releases if self.next_release else []


def as_publish_results(value: Any) -> list[PublishResult]:
    """Normalise whatever a publish hook returned into a flat list."""
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    results: list[PublishResult] = []
    for item in items:
        if isinstance(item, PublishResult):
            results.append(item)
        elif isinstance(item, dict):
            results.append(PublishResult.model_validate(item))
    return results
