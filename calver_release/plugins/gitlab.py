"""Built-in GitLab plugin: creates a GitLab release per released package."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from ..errors import PublishError
from ..models import PublishResult
from .base import Plugin
from .github import USER_AGENT, http_client

if TYPE_CHECKING:
    from ..context import ReleaseContext


class GitLabPlugin(Plugin):
    name = "gitlab"

    async def publish(self, ctx: ReleaseContext) -> list[PublishResult]:
        if ctx.dry_run or ctx.next_release is None:
            return []

        token = ctx.env.get("GITLAB_ACCESS_TOKEN") or ctx.env.get("CI_JOB_TOKEN")
        project_id = ctx.env.get("CI_PROJECT_ID")
        host = ctx.env.get("CI_SERVER_HOST") or "gitlab.com"
        if not token or not project_id:
            ctx.logger.info("Skipping GitLab release: missing token or project ID")
            return []

        url = f"https://{host}/api/v4/projects/{project_id}/releases"
        headers = {"PRIVATE-TOKEN": token, "User-Agent": USER_AGENT}
        results: list[PublishResult] = []
        async with http_client(self.options, headers=headers) as client:
            for release in ctx.next_release.releases:
                payload = {
                    "tag_name": release.tag_name,
                    "name": f"{release.name} {release.tag_name}",
                    "description": ctx.next_release.notes,
                }
                try:
                    response = await client.post(url, json=payload)
                except httpx.HTTPError as exc:
                    raise PublishError(f"GitLab release error: {exc}") from exc
                if response.status_code != 201:
                    raise PublishError(
                        f"GitLab release failed: {response.status_code} "
                        f"{response.text}"
                    )
                release_url = (
                    f"https://{host}/{project_id}/-/releases/{release.tag_name}"
                )
                ctx.logger.info(
                    "Created GitLab release", package=release.name, url=release_url
                )
                results.append(
                    PublishResult(type="gitlab", url=release_url, id=release.tag_name)
                )
        return results
