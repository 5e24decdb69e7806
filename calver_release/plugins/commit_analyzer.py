"""Built-in commit analyzer: conventional commits per package."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..changes import is_single_package
from ..commits import classify_commits
from ..models import CommitAnalysis, Package
from .base import Plugin

if TYPE_CHECKING:
    from ..context import ReleaseContext


class CommitAnalyzerPlugin(Plugin):
    name = "commit-analyzer"

    def analyze_commits(
        self, ctx: ReleaseContext, package: Package
    ) -> CommitAnalysis | None:
        # In monorepos, scoped commits only count for the package they name.
        scoped = None if is_single_package(ctx.packages) else package
        analysis = classify_commits(ctx.commits, scoped)
        if analysis is None:
            ctx.logger.info("No release-worthy commits", package=package.name)
        else:
            ctx.logger.info(
                "Release commits found",
                package=package.name,
                release_type=analysis.release_type.value,
                commits=[str(c) for c in analysis.release_commits],
            )
        return analysis
