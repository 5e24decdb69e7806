"""Release pipeline: verify → analyze → notes → prepare → publish → success.

This module orchestrates a calver-release run:
1. Load configuration and plugins
2. Let plugins verify their preconditions (tokens, branch)
3. Analyze commits since the latest tag, per changed package
4. Compute the next CalVer version, notes and tag of each package
5. Collect release notes from the plugins
6. Prepare (write versions, changelogs, tags) and publish
7. Notify plugins of success, or of failure

Hooks run strictly one after another, in plugin registration order. A dry
run stops after notes are generated, before anything is written.
"""

from __future__ import annotations

import inspect
import os
from collections.abc import Callable, Mapping, Sequence
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

from .changes import find_changed_packages, is_single_package
from .commits import classify_commits
from .config import load_config
from .context import ReleaseContext
from .descriptor import read_descriptor
from .formats import plugin_identifier, resolve_version_format
from .log import configure_logging, get_run_logger
from .models import (
    CommitAnalysis,
    MultiRelease,
    NextRelease,
    Package,
    PublishResult,
    ReleaseRecord,
    ReleaseResult,
    SingleRelease,
    as_publish_results,
)
from .notes import generate_release_notes
from .plugins.base import PluginCollection, get_plugins
from .shell import step
from .vcs import Git
from .versions import resolve_next_version, tag_name_for, tags_for_package
from .workspace import discover_packages


class Stage(str, Enum):
    INIT = "init"
    VERIFY_CONDITIONS = "verify_conditions"
    ANALYZE = "analyze"
    NO_RELEASE = "no_release"
    VERIFY_RELEASE = "verify_release"
    GENERATE_NOTES = "generate_notes"
    DRY_RUN_COMPLETE = "dry_run_complete"
    PREPARE = "prepare"
    PUBLISH = "publish"
    SUCCESS = "success"
    FAIL = "fail"


def hook_name(hook: Callable[..., Any]) -> str:
    return getattr(hook, "__qualname__", None) or repr(hook)


async def call_hook(hook: Callable[..., Any], *args: Any) -> Any:
    """Call a hook and await its result if it returned an awaitable."""
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def run_hooks(hooks: Sequence[Callable[..., Any]], *args: Any) -> list[Any]:
    """Run hooks one at a time, in order, collecting their results."""
    results = []
    for hook in hooks:
        results.append(await call_hook(hook, *args))
    return results


async def run_fail_hooks(
    hooks: Sequence[Callable[..., Any]],
    ctx: ReleaseContext,
    error: BaseException,
) -> None:
    """Give every failure hook a chance to run.

    An error raised by a failure hook is logged and recorded as a note on
    the original error; the remaining hooks still run.
    """
    for hook in hooks:
        try:
            await call_hook(hook, ctx, error)
        except Exception as hook_error:
            ctx.logger.error(
                "Failure hook raised", hook=hook_name(hook), error=str(hook_error)
            )
            error.add_note(f"fail hook {hook_name(hook)} raised: {hook_error!r}")


async def analyze_package(
    ctx: ReleaseContext, plugins: PluginCollection, package: Package
) -> CommitAnalysis | None:
    """Ask the analyze_commits hooks about a package; the first answer wins.

    Falls back to the built-in classifier when no hook answers.
    """
    for hook in plugins.hooks("analyze_commits"):
        analysis = await call_hook(hook, ctx, package)
        if analysis is not None:
            return analysis
    scoped = None if is_single_package(ctx.packages) else package
    return classify_commits(ctx.commits, scoped)


def declared_version(ctx: ReleaseContext, package: Package) -> str | None:
    try:
        descriptor = read_descriptor(ctx.root / package.path)
    except (OSError, ValueError) as exc:
        ctx.logger.warning(
            "Unreadable package descriptor, ignoring declared version",
            package=package.name,
            error=str(exc),
        )
        return None
    return descriptor.version if descriptor else None


async def analyze(
    ctx: ReleaseContext,
    plugins: PluginCollection,
    plugin_names: Sequence[str],
) -> NextRelease | None:
    """Decide what to release.

    Returns:
        A SingleRelease or MultiRelease, or None when nothing qualifies.
    """
    _, ctx.packages = discover_packages(ctx.root)

    latest_tag = ctx.vcs.latest_tag()
    ctx.commits = ctx.vcs.commits_since(latest_tag)
    if not ctx.commits:
        ctx.logger.info("No commits since last release", latest_tag=latest_tag)
        return None
    ctx.logger.info("Commits since last release", count=len(ctx.commits))

    candidates = find_changed_packages(ctx.packages, ctx.commits, ctx.vcs)
    version_format = resolve_version_format(ctx.options.version_format, plugin_names)
    ctx.logger.debug("Version format", version_format=version_format.value)
    tags = ctx.vcs.tags()

    releases: list[ReleaseRecord] = []
    for package in candidates:
        analysis = await analyze_package(ctx, plugins, package)
        if analysis is None or not analysis.should_release:
            continue

        version = resolve_next_version(
            analysis.release_type,
            declared_version(ctx, package),
            tags_for_package(tags, package),
            version_format=version_format,
            today=ctx.today,
            auto_update_month=ctx.options.auto_update_month,
        )
        package_name = None if package.is_root else package.name
        releases.append(
            ReleaseRecord(
                package=package,
                version=version,
                analysis=analysis,
                release_notes=generate_release_notes(
                    analysis, version, package_name, ctx.today
                ),
                tag_name=tag_name_for(package, version),
            )
        )
        print(f"  {package.name} → {version} ({analysis.release_type.value})")

    if not releases:
        return None
    if len(releases) == 1:
        return SingleRelease(release=releases[0])
    return MultiRelease(releases=releases)


def _plugin_names(
    definitions: Sequence[Any], plugins: Sequence[Any] | None
) -> list[str]:
    if plugins is None:
        return [plugin_identifier(d) for d in definitions]
    return [str(getattr(p, "name", "")) for p in plugins]


async def run_release(
    options: Mapping[str, Any] | None = None,
    *,
    root: Path | None = None,
    env: Mapping[str, str] | None = None,
    today: date | None = None,
    vcs: Any = None,
    plugins: Sequence[Any] | None = None,
    logger: Any = None,
) -> ReleaseResult:
    """Run one release.

    Args:
        options: Explicit settings; override config files and descriptors.
        root: Repository root. Defaults to the current directory.
        env: Environment variables. Defaults to os.environ.
        today: Date used for the year-month of new versions.
        vcs: Git access object. Defaults to Git(root).
        plugins: Plugin objects to use instead of the configured ones.
        logger: Logger handed to plugins. Defaults to a structlog logger.

    Returns:
        The outcome; released is False for "no release" and dry runs.

    Raises:
        Exception: Whatever a hook raised, after the failure hooks ran.
    """
    root = root or Path.cwd()
    environment = dict(os.environ if env is None else env)
    config = load_config(root, options, environment)
    if config.debug:
        configure_logging(debug=True)
    collection = (
        get_plugins(config.plugins)
        if plugins is None
        else PluginCollection.from_plugins(plugins)
    )

    ctx = ReleaseContext(
        root=root,
        options=config,
        logger=logger or get_run_logger(dry_run=config.dry_run),
        vcs=vcs or Git(root),
        today=today or date.today(),
        env=environment,
    )
    ctx.logger.info("Starting calver-release", plugins=len(collection.plugins))

    stage = Stage.INIT
    try:
        stage = Stage.VERIFY_CONDITIONS
        step("Verifying release conditions")
        await run_hooks(collection.hooks("verify_conditions"), ctx)

        stage = Stage.ANALYZE
        step("Analyzing commits")
        ctx.next_release = await analyze(
            ctx, collection, _plugin_names(config.plugins, plugins)
        )
        if ctx.next_release is None:
            stage = Stage.NO_RELEASE
            ctx.logger.info("No release necessary")
            return ReleaseResult(released=False, dry_run=ctx.dry_run)

        stage = Stage.VERIFY_RELEASE
        step("Verifying release")
        await run_hooks(collection.hooks("verify_release"), ctx)

        stage = Stage.GENERATE_NOTES
        step("Generating release notes")
        notes = await run_hooks(collection.hooks("generate_notes"), ctx)
        ctx.next_release.notes = "\n\n".join(str(n) for n in notes if n)

        if ctx.dry_run:
            stage = Stage.DRY_RUN_COMPLETE
            ctx.logger.info("Dry run complete", version=ctx.next_release.version)
            return ReleaseResult(
                released=False, dry_run=True, next_release=ctx.next_release
            )

        stage = Stage.PREPARE
        step("Preparing release")
        await run_hooks(collection.hooks("prepare"), ctx)

        stage = Stage.PUBLISH
        step("Publishing release")
        published: list[PublishResult] = []
        for result in await run_hooks(collection.hooks("publish"), ctx):
            published.extend(as_publish_results(result))

        stage = Stage.SUCCESS
        step("Release successful")
        await run_hooks(collection.hooks("success"), ctx)

        ctx.logger.info("Released", version=ctx.next_release.version)
        return ReleaseResult(
            released=True, next_release=ctx.next_release, publish_results=published
        )
    except Exception as error:
        ctx.logger.error("Release failed", stage=stage.value, error=str(error))
        await run_fail_hooks(collection.hooks("fail"), ctx, error)
        raise
