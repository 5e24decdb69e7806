"""Choosing between the three-part and four-part CalVer shapes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .models import VersionFormat

# Plugins that push to a package registry need a flat, semver-shaped version.
REGISTRY_MARKER = "pypi"


def plugin_identifier(definition: Any) -> str:
    """Return the name part of a plugin definition.

    Definitions may be a bare name, a ``[name, options]`` pair or a
    ``{"path": name, "options": {...}}`` mapping. Anything else yields "".
    """
    if isinstance(definition, str):
        return definition
    if isinstance(definition, (list, tuple)) and definition:
        return str(definition[0])
    if isinstance(definition, dict) and definition.get("path"):
        return str(definition["path"])
    return ""


def resolve_version_format(
    version_format: str | VersionFormat | None,
    plugins: Sequence[Any] = (),
) -> VersionFormat:
    """Pick the version shape for this run.

    An explicit setting other than "auto" always wins. Otherwise the
    three-part shape is used when a registry-publishing plugin is
    configured, and the four-part shape in every other case. Unrecognised
    settings are treated like "auto".
    """
    if isinstance(version_format, VersionFormat):
        return version_format
    if version_format in {f.value for f in VersionFormat}:
        return VersionFormat(version_format)

    if any(REGISTRY_MARKER in plugin_identifier(p) for p in plugins):
        return VersionFormat.THREE_PART

    return VersionFormat.FOUR_PART
