"""Built-in GitHub plugin: creates a GitHub release per released package.

Options:
    api_url: REST API base URL (GitHub Enterprise Server).
    transport: httpx transport to send requests through.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, NamedTuple

import httpx

from ..errors import PublishError, VerificationError
from ..models import PublishResult, ReleaseRecord
from .base import Plugin

if TYPE_CHECKING:
    from ..context import ReleaseContext

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "calver-release"
TIMEOUT = 30.0

_REMOTE_PATTERNS = (
    re.compile(r"^https://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^git@github\.com:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?$"),
    re.compile(r"^ssh://git@github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?$"),
)


class Repository(NamedTuple):
    owner: str
    repo: str


def parse_remote(url: str) -> Repository | None:
    """Extract owner and repository from a GitHub https or ssh remote URL."""
    for pattern in _REMOTE_PATTERNS:
        match = pattern.match(url.strip())
        if match:
            return Repository(match.group("owner"), match.group("repo"))
    return None


def http_client(options: dict[str, Any], **kwargs: Any) -> httpx.AsyncClient:
    """AsyncClient honouring a plugin's optional ``transport`` option."""
    return httpx.AsyncClient(
        transport=options.get("transport"), timeout=TIMEOUT, **kwargs
    )


def error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text


class GitHubPlugin(Plugin):
    name = "github"

    def verify_conditions(self, ctx: ReleaseContext) -> None:
        if ctx.dry_run:
            ctx.logger.info("Dry run: GitHub token check skipped")
            return
        if not ctx.env.get("GITHUB_TOKEN"):
            raise VerificationError(
                "GitHub token is required. Set GITHUB_TOKEN environment variable."
            )
        if "github.com" not in ctx.vcs.remote_url():
            ctx.logger.info("Not a GitHub repository, releases will be skipped")

    async def publish(self, ctx: ReleaseContext) -> list[PublishResult]:
        if ctx.dry_run or ctx.next_release is None:
            return []

        token = ctx.env.get("GITHUB_TOKEN")
        if not token:
            ctx.logger.info("Skipping GitHub release: missing GITHUB_TOKEN")
            return []
        repository = parse_remote(ctx.vcs.remote_url())
        if repository is None:
            ctx.logger.info("Skipping GitHub release: no GitHub remote")
            return []

        api_url = str(self.options.get("api_url", DEFAULT_API_URL)).rstrip("/")
        headers = {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        results: list[PublishResult] = []
        async with http_client(self.options, headers=headers) as client:
            for release in ctx.next_release.releases:
                result = await self._create_release(
                    client,
                    f"{api_url}/repos/{repository.owner}/{repository.repo}/releases",
                    release,
                    ctx.next_release.notes,
                )
                ctx.logger.info(
                    "Created GitHub release", package=release.name, url=result.url
                )
                results.append(result)
        return results

    async def _create_release(
        self,
        client: httpx.AsyncClient,
        url: str,
        release: ReleaseRecord,
        notes: str,
    ) -> PublishResult:
        payload = {
            "tag_name": release.tag_name,
            "name": f"{release.name} {release.tag_name}",
            "body": notes,
            "draft": False,
            "prerelease": release.analysis.has_breaking_change,
            "generate_release_notes": False,
        }
        try:
            response = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise PublishError(f"GitHub release error: {exc}") from exc
        if response.status_code != 201:
            raise PublishError(
                f"GitHub release failed: {response.status_code} - "
                f"{error_message(response)}"
            )
        data = response.json()
        return PublishResult(
            type="github",
            url=data.get("html_url"),
            id=str(data.get("id")),
            tagName=data.get("tag_name", release.tag_name),
        )
