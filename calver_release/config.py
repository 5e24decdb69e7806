"""Configuration loading.

Settings are merged from four sources, later ones winning:

1. Built-in defaults
2. A config file in the repository root (.calver-releaserc, ...)
3. The root package descriptor ([tool.calver-release] or package.json)
4. Explicit options (CLI flags or keyword arguments)

Environment variables then force dry-run/debug on and gate the CI flag.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .descriptor import read_release_config
from .errors import ConfigError

CONFIG_FILES = (
    ".calver-releaserc",
    ".calver-releaserc.json",
    ".calver-releaserc.toml",
    "calver-release.toml",
)

DEFAULT_PLUGINS: list[Any] = [
    "commit-analyzer",
    "release-notes-generator",
    "changelog",
    "pypi",
    "git",
    "gitlab",
    "github",
]


class ReleaseConfig(BaseModel):
    """Validated release configuration.

    Accepts snake_case or camelCase keys (``auto_update_month`` or
    ``autoUpdateMonth``).
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    branches: list[str] = Field(default_factory=lambda: ["main", "master"])
    dry_run: bool = False
    debug: bool = False
    ci: bool = True
    auto_update_month: bool = False
    version_format: Literal["auto", "YY.MM.PATCH", "YY.MM.MINOR.PATCH"] = "auto"
    plugins: list[Any] = Field(default_factory=lambda: list(DEFAULT_PLUGINS))


def _normalise(source: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase keys onto field names and drop unset (None) values."""
    aliases = {
        field.alias: name
        for name, field in ReleaseConfig.model_fields.items()
        if field.alias
    }
    return {aliases.get(k, k): v for k, v in source.items() if v is not None}


def merge_config(
    defaults: Mapping[str, Any],
    file_config: Mapping[str, Any],
    descriptor_config: Mapping[str, Any],
    options: Mapping[str, Any],
) -> ReleaseConfig:
    """Merge the four configuration sources, later ones winning.

    Pure: reads nothing from disk or the environment.

    Raises:
        ConfigError: If the merged settings are invalid.
    """
    merged: dict[str, Any] = {}
    for source in (defaults, file_config, descriptor_config, options):
        merged.update(_normalise(source))
    try:
        return ReleaseConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config_file(root: Path) -> dict[str, Any]:
    """Load the first config file present in the repository root.

    Raises:
        ConfigError: If the file exists but cannot be parsed.
    """
    for filename in CONFIG_FILES:
        path = root / filename
        if not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
            if filename.endswith(".toml"):
                data: Any = tomlkit.parse(text).unwrap()
            else:
                data = json.loads(text)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Failed to load config from {filename}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Failed to load config from {filename}: not a mapping")
        return data
    return {}


def apply_environment(config: ReleaseConfig, env: Mapping[str, str]) -> ReleaseConfig:
    """Let DRY_RUN/DEBUG force their flags on; CI requires a CI environment."""
    in_ci = env.get("CI") == "true" or env.get("GITLAB_CI") == "true"
    return config.model_copy(
        update={
            "dry_run": config.dry_run or env.get("DRY_RUN") == "true",
            "debug": config.debug or env.get("DEBUG") == "true",
            "ci": config.ci and in_ci,
        }
    )


def load_config(
    root: Path,
    options: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> ReleaseConfig:
    """Build the configuration for a run from every source."""
    config = merge_config(
        ReleaseConfig().model_dump(),
        load_config_file(root),
        read_release_config(root),
        options or {},
    )
    return apply_environment(config, os.environ if env is None else env)
