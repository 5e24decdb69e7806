"""CalVer version parsing and resolution.

Versions take one of two shapes, both starting with a zero-padded two-digit
year and month:

- YY.MM.PATCH        e.g. "25.08.3"
- YY.MM.MINOR.PATCH  e.g. "25.08.1.2"

The resolver is pure: the current date and the existing tags are passed in.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import date

import structlog

from .models import Package, ReleaseType, VersionFormat

logger = structlog.get_logger(__name__)

CALVER_RE = re.compile(r"^\d{2}\.\d{2}\.\d+(?:\.\d+)?$")
_VERSION_PATTERN = r"\d{2}\.\d{2}\.\d+(?:\.\d+)?"
UNSCOPED_TAG_RE = re.compile(rf"^v-(?P<version>{_VERSION_PATTERN})$")


def is_calver(version: str | None) -> bool:
    """Whether a version string has one of the CalVer shapes."""
    return bool(version and CALVER_RE.match(version))


def year_month(version: str) -> str:
    """Return the "YY.MM" prefix of a CalVer version."""
    yy, mm, *_ = version.split(".")
    return f"{yy}.{mm}"


def current_year_month(today: date) -> str:
    """Format a date as "YY.MM", both fields zero-padded."""
    return f"{today.year % 100:02d}.{today.month:02d}"


def version_key(version: str) -> tuple[int, ...]:
    """Integer tuple used to order CalVer versions."""
    return tuple(int(part) for part in version.split("."))


def tag_name_for(package: Package, version: str) -> str:
    """Tag for a released version.

    Examples:
        root package, "25.08.1"  → "v-25.08.1"
        package "ui", "25.08.1"  → "v-25.08.1-ui-release"
    """
    if package.is_root:
        return f"v-{version}"
    return f"v-{version}-{package.name}-release"


def tags_for_package(tags: Iterable[str], package: Package) -> list[str]:
    """Extract the CalVer versions of a package's tags, highest first.

    Only tags produced by tag_name_for() for this exact package are
    recognised; tags of other packages and non-CalVer tags are dropped.
    """
    if package.is_root:
        pattern = UNSCOPED_TAG_RE
    else:
        pattern = re.compile(
            rf"^v-(?P<version>{_VERSION_PATTERN})-{re.escape(package.name)}-release$"
        )

    versions: list[str] = []
    for tag in tags:
        match = pattern.match(tag.strip())
        if match:
            versions.append(match.group("version"))
    return sorted(set(versions), key=version_key, reverse=True)


def first_of_month(target: str, version_format: VersionFormat) -> str:
    if version_format is VersionFormat.THREE_PART:
        return f"{target}.1"
    return f"{target}.0.1"


def increment(
    latest: str, release_type: ReleaseType, version_format: VersionFormat
) -> str:
    """Compute the version following latest within the same month.

    Three-part versions bump their single counter. Four-part versions bump
    the minor counter (and reset patch to 1) for minor and major releases,
    otherwise the patch counter.
    """
    target = year_month(latest)
    parts = version_key(latest)
    if version_format is VersionFormat.THREE_PART:
        return f"{target}.{parts[2] + 1}"

    minor, patch = parts[2], parts[3]
    if release_type in (ReleaseType.MINOR, ReleaseType.MAJOR):
        minor, patch = minor + 1, 1
    else:
        patch += 1
    return f"{target}.{minor}.{patch}"


def resolve_next_version(
    release_type: ReleaseType,
    declared_version: str | None,
    existing_versions: Sequence[str],
    *,
    version_format: VersionFormat,
    today: date,
    auto_update_month: bool = False,
) -> str:
    """Compute the next CalVer version of a package.

    Args:
        release_type: Patch, minor or major, from the commit analysis.
        declared_version: Version in the package descriptor, if any.
        existing_versions: Versions already tagged for this package
                           (see tags_for_package()), in any order.
        version_format: Shape of the version to produce.
        today: Current date; supplies the year-month for new months.
        auto_update_month: Move to the current month when the declared
                           version is from an earlier one.

    Returns:
        The next version string.
    """
    current = current_year_month(today)
    ordered = sorted(existing_versions, key=version_key, reverse=True)

    manual_bump = False
    auto_rolled = False
    if declared_version and is_calver(declared_version):
        target = year_month(declared_version)
        if auto_update_month and current > target:
            logger.debug("Auto month update", previous=target, target=current)
            target = current
            auto_rolled = True
        elif not auto_update_month and ordered and year_month(ordered[0]) != target:
            logger.debug(
                "Manual month bump", latest=year_month(ordered[0]), target=target
            )
            manual_bump = True
    else:
        target = current

    same_month = [v for v in ordered if year_month(v) == target]
    candidates = [
        v for v in same_month if len(v.split(".")) == version_format.part_count
    ]
    if len(candidates) != len(same_month):
        logger.warning(
            "Tags of both version formats exist for the target month; "
            "only the active format is considered",
            month=target,
            version_format=version_format.value,
            ignored=[v for v in same_month if v not in candidates],
        )

    if not candidates:
        return first_of_month(target, version_format)

    # A month that already has tags keeps counting up, even right after a
    # manual bump or auto roll into it.
    if manual_bump or auto_rolled:
        logger.debug("Target month already tagged", month=target, latest=candidates[0])
    return increment(candidates[0], release_type, version_format)
