"""CLI entry point for calver-release."""

from __future__ import annotations

import asyncio
import os
import traceback
from typing import Any

import click

from calver_release.log import configure_logging
from calver_release.models import ReleaseResult, VersionFormat
from calver_release.pipeline import run_release

VERSION_FORMAT_CHOICES = ["auto", *(f.value for f in VersionFormat)]


def _collect_options(
    dry_run: bool,
    branches: str | None,
    no_ci: bool,
    version_format: str | None,
    auto_update_month: bool,
    debug: bool,
) -> dict[str, Any]:
    """Keep only the flags that were given, so config files still apply."""
    options: dict[str, Any] = {}
    if dry_run:
        options["dry_run"] = True
    if branches:
        options["branches"] = [b.strip() for b in branches.split(",") if b.strip()]
    if no_ci:
        options["ci"] = False
    if version_format:
        options["version_format"] = version_format
    if auto_update_month:
        options["auto_update_month"] = True
    if debug:
        options["debug"] = True
    return options


def _report(result: ReleaseResult) -> None:
    if result.dry_run and result.next_release is not None:
        click.echo("Dry run: the following would be released")
        for release in result.releases:
            click.echo(f"  {release.name} {release.version} ({release.tag_name})")
        if result.next_release.notes:
            click.echo()
            click.echo(result.next_release.notes)
        return

    if not result.released:
        click.echo("No release necessary")
        return

    for release in result.releases:
        click.echo(
            f"✓ Released {release.name} {release.version} ({release.tag_name})"
        )
    for published in result.publish_results:
        if published.url:
            click.echo(f"  {published.type}: {published.url}")


@click.command()
@click.version_option(package_name="calver-release")
@click.option("-d", "--dry-run", is_flag=True, help="Preview without writing.")
@click.option(
    "-b",
    "--branches",
    default=None,
    help="Comma-separated release branches.  [default: main,master]",
)
@click.option("--debug", is_flag=True, help="Verbose logging and tracebacks.")
@click.option("--no-ci", is_flag=True, help="Run outside of CI mode.")
@click.option(
    "--version-format",
    type=click.Choice(VERSION_FORMAT_CHOICES),
    default=None,
    help="Version shape; auto picks from the configured plugins.",
)
@click.option(
    "--auto-update-month",
    is_flag=True,
    help="Move to the current month when the declared version is older.",
)
def cli(
    dry_run: bool,
    branches: str | None,
    debug: bool,
    no_ci: bool,
    version_format: str | None,
    auto_update_month: bool,
) -> None:
    """Automated CalVer releases from conventional commits."""
    debug = debug or os.environ.get("DEBUG") == "true"
    configure_logging(debug)
    click.echo("calver-release: automated CalVer releases")

    options = _collect_options(
        dry_run, branches, no_ci, version_format, auto_update_month, debug
    )
    try:
        result = asyncio.run(run_release(options))
    except Exception as exc:
        if debug:
            traceback.print_exc()
        raise click.ClickException(f"Release failed: {exc}") from exc

    _report(result)
