"""The per-run context shared with every plugin hook."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .config import ReleaseConfig
from .models import CommitRecord, NextRelease, Package


class ReleaseContext(BaseModel):
    """State of one release run.

    Owned by the pipeline and passed to hooks by reference. Hooks may add
    notes, but the computed package, version and tag fields of
    next_release are frozen.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path
    options: ReleaseConfig
    logger: Any
    vcs: Any
    today: date
    env: dict[str, str] = Field(default_factory=dict)
    commits: list[CommitRecord] = Field(default_factory=list)
    packages: list[Package] = Field(default_factory=list)
    next_release: NextRelease | None = None

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run
