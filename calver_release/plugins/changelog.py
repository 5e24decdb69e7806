"""Built-in changelog plugin: prepends release notes to CHANGELOG.md."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..notes import update_changelog
from .base import Plugin

if TYPE_CHECKING:
    from ..context import ReleaseContext


class ChangelogPlugin(Plugin):
    name = "changelog"

    def prepare(self, ctx: ReleaseContext) -> None:
        if ctx.dry_run:
            ctx.logger.info("Dry run: skipping changelog update")
            return

        for release in ctx.next_release.releases if ctx.next_release else []:
            pkg_dir = ctx.root / release.package.path
            path = update_changelog(release.release_notes, pkg_dir)
            ctx.logger.info("Updated changelog", path=str(path.relative_to(ctx.root)))
