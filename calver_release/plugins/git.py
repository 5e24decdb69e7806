"""Built-in git plugin: tags, release commit and push."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

from ..descriptor import find_descriptor
from ..errors import VerificationError
from ..models import PublishResult
from ..notes import CHANGELOG
from .base import Plugin

if TYPE_CHECKING:
    from ..context import ReleaseContext
    from ..models import NextRelease

DEFAULT_EMAIL = "release-bot@example.com"
DEFAULT_NAME = "Release Bot"


def release_branch(ctx: ReleaseContext) -> str:
    """Branch being released; CI variables win over the local checkout."""
    return (
        ctx.env.get("CI_COMMIT_REF_NAME")
        or ctx.env.get("GITHUB_REF_NAME")
        or ctx.vcs.current_branch()
    )


def commit_message(next_release: NextRelease) -> str:
    if next_release.type == "multi":
        count = len(next_release.releases)
        return f"chore(release): {count} packages [skip ci]"
    release = next_release.release
    return f"chore(release): {release.name}@{release.version} [skip ci]"


class GitPlugin(Plugin):
    name = "git"

    def verify_conditions(self, ctx: ReleaseContext) -> None:
        if ctx.dry_run:
            return
        branch = release_branch(ctx)
        if not branch:
            ctx.logger.warning("Could not determine the current branch")
            return
        if branch not in ctx.options.branches:
            raise VerificationError(
                f"Branch {branch!r} is not configured for releases "
                f"(allowed: {', '.join(ctx.options.branches)})"
            )

    def _configure_user(self, ctx: ReleaseContext) -> None:
        if ctx.vcs.config_get("user.email"):
            return
        email = (
            ctx.env.get("GITLAB_USER_EMAIL")
            or ctx.env.get("CI_COMMIT_AUTHOR_EMAIL")
            or DEFAULT_EMAIL
        )
        name = (
            ctx.env.get("GITLAB_USER_NAME")
            or ctx.env.get("CI_COMMIT_AUTHOR")
            or DEFAULT_NAME
        )
        ctx.vcs.config_set("user.email", email)
        ctx.vcs.config_set("user.name", name)

    def prepare(self, ctx: ReleaseContext) -> None:
        if ctx.next_release is None:
            return
        self._configure_user(ctx)
        for release in ctx.next_release.releases:
            ctx.vcs.tag(release.tag_name)
            ctx.logger.info("Created tag", tag=release.tag_name)

    def _files_to_commit(self, ctx: ReleaseContext) -> list[str]:
        files: list[str] = []
        for release in ctx.next_release.releases if ctx.next_release else []:
            pkg_dir = ctx.root / release.package.path
            descriptor = find_descriptor(pkg_dir)
            for path in (pkg_dir / CHANGELOG, descriptor):
                if path is not None and path.exists():
                    files.append(path.relative_to(ctx.root).as_posix())
        return files

    def _push(self, ctx: ReleaseContext, refspec: str) -> None:
        try:
            ctx.vcs.push("origin", refspec)
            ctx.logger.info("Pushed", ref=refspec)
        except subprocess.CalledProcessError as exc:
            ctx.logger.error("Push failed", ref=refspec, error=exc.stderr or str(exc))

    def publish(self, ctx: ReleaseContext) -> PublishResult | None:
        if ctx.next_release is None:
            return None

        files = self._files_to_commit(ctx)
        if files:
            ctx.vcs.add(*files)
            if ctx.vcs.staged_files():
                ctx.vcs.commit(commit_message(ctx.next_release))
                ctx.logger.info("Committed release files", files=files)

        branch = release_branch(ctx)
        self._push(ctx, f"HEAD:{branch}" if ctx.options.ci else branch)

        for release in ctx.next_release.releases:
            self._push(ctx, release.tag_name)

        first = ctx.next_release.releases[0]
        return PublishResult(type="git", id=first.tag_name, gitTag=first.tag_name)
