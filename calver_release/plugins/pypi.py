"""Built-in PyPI plugin: writes versions and publishes with uv.

Options:
    publish: Set to False to only update versions (default True).
    repository_url: Upload endpoint for a private index.
"""

from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING

from ..descriptor import PYPROJECT, read_descriptor, write_version
from ..errors import PublishError, VerificationError
from ..models import PublishResult, ReleaseRecord
from ..shell import run
from .base import Plugin

if TYPE_CHECKING:
    from ..context import ReleaseContext

TOKEN_VARS = ("UV_PUBLISH_TOKEN", "PYPI_TOKEN")


def _token(env: dict[str, str]) -> str | None:
    for var in TOKEN_VARS:
        if env.get(var):
            return env[var]
    return None


class PyPIPlugin(Plugin):
    name = "pypi"

    @property
    def enabled(self) -> bool:
        return bool(self.options.get("publish", True))

    def verify_conditions(self, ctx: ReleaseContext) -> None:
        if ctx.dry_run or not self.enabled:
            ctx.logger.info(
                "Dry run: PyPI token check skipped"
                if ctx.dry_run
                else "PyPI publishing disabled"
            )
            return
        if not _token(ctx.env):
            raise VerificationError(
                "UV_PUBLISH_TOKEN or PYPI_TOKEN environment variable is required "
                "for publishing"
            )
        ctx.logger.info("PyPI publishing enabled and token found")

    def prepare(self, ctx: ReleaseContext) -> None:
        for release in ctx.next_release.releases if ctx.next_release else []:
            path = write_version(ctx.root / release.package.path, release.version)
            if path is not None:
                ctx.logger.info(
                    "Updated package version",
                    package=release.name,
                    version=release.version,
                    file=str(path.relative_to(ctx.root)),
                )

    async def publish(self, ctx: ReleaseContext) -> list[PublishResult]:
        if ctx.dry_run or not self.enabled:
            ctx.logger.info("PyPI publishing skipped")
            return []

        results: list[PublishResult] = []
        for release in ctx.next_release.releases if ctx.next_release else []:
            result = await self._publish_package(ctx, release)
            if result is not None:
                results.append(result)
        return results

    async def _publish_package(
        self, ctx: ReleaseContext, release: ReleaseRecord
    ) -> PublishResult | None:
        pkg_dir = ctx.root / release.package.path
        descriptor = read_descriptor(pkg_dir)
        if descriptor is None or descriptor.file != PYPROJECT:
            ctx.logger.info("Not a Python package, skipping", package=release.name)
            return None

        out_dir = ctx.root / "dist" / release.name
        if descriptor.can_build:
            ctx.logger.info("Building package", package=release.name)
            built = await asyncio.to_thread(
                run,
                "uv",
                "build",
                str(pkg_dir),
                "--out-dir",
                str(out_dir),
                check=False,
            )
            if built.returncode != 0:
                raise PublishError(f"Failed to build {release.name}")

        args = ["uv", "publish"]
        if self.options.get("repository_url"):
            args += ["--publish-url", str(self.options["repository_url"])]
        args.append(str(out_dir / "*"))

        env = {**os.environ, **ctx.env}
        token = _token(ctx.env)
        if token:
            env["UV_PUBLISH_TOKEN"] = token

        ctx.logger.info(
            "Publishing to PyPI", package=release.name, version=release.version
        )
        published = await asyncio.to_thread(run, *args, env=env, check=False)
        if published.returncode != 0:
            raise PublishError(
                f"Failed to publish {release.name}@{release.version} to PyPI"
            )

        project = descriptor.name or release.name
        url = f"https://pypi.org/project/{project}/{release.version}/"
        ctx.logger.info("Published", package=project, url=url)
        return PublishResult(type="pypi", url=url, id=f"{project}@{release.version}")
