"""Workspace discovery.

Detects whether the repository is a monorepo, and which tool manages it,
then expands the tool's package patterns into Package records. Any problem
reading monorepo configuration degrades to single-package mode.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import BaseModel, Field

from .descriptor import has_descriptor, read_descriptor
from .models import Package

logger = structlog.get_logger(__name__)

MonorepoType = Literal["single", "lerna", "nx", "pnpmWorkspace", "workspaces"]

# Checked in this order; the first file present decides the tool.
MARKER_FILES: tuple[tuple[MonorepoType, str], ...] = (
    ("lerna", "lerna.json"),
    ("nx", "nx.json"),
    ("pnpmWorkspace", "pnpm-workspace.yaml"),
)
NX_FALLBACK_PATTERNS = ["packages/*", "apps/*", "libs/*"]
ROOT_PACKAGE_NAME = "root"


class MonorepoConfig(BaseModel):
    """Which monorepo tool manages the repository, if any."""

    type: MonorepoType
    config_file: str | None = None
    workspaces: list[str] = Field(default_factory=list)

    @property
    def is_single(self) -> bool:
        return self.type == "single"


def detect_monorepo_config(root: Path) -> MonorepoConfig:
    """Detect the monorepo tool from marker files and the root descriptor."""
    for kind, filename in MARKER_FILES:
        if (root / filename).exists():
            logger.info("Detected monorepo configuration", tool=kind, file=filename)
            return MonorepoConfig(type=kind, config_file=filename)

    try:
        descriptor = read_descriptor(root)
    except (OSError, ValueError) as exc:
        logger.warning("Could not read root package descriptor", error=str(exc))
        descriptor = None

    if descriptor and descriptor.workspaces:
        logger.info("Detected workspaces in root descriptor", file=descriptor.file)
        return MonorepoConfig(
            type="workspaces",
            config_file=descriptor.file,
            workspaces=descriptor.workspaces,
        )

    logger.info("No monorepo configuration detected, using single-package mode")
    return MonorepoConfig(type="single")


def single_package(root: Path) -> list[Package]:
    """The one package of a single-package repository."""
    try:
        descriptor = read_descriptor(root)
    except (OSError, ValueError):
        descriptor = None
    name = descriptor.name if descriptor and descriptor.name else ROOT_PACKAGE_NAME
    return [Package(name=name, path=".")]


def _read_json(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def _pattern_list(value: Any, source: str) -> list[str]:
    if not isinstance(value, list):
        raise ValueError(f"{source}: packages must be a list of patterns")
    return [str(p) for p in value]


def workspace_patterns(root: Path, config: MonorepoConfig) -> list[str]:
    """Return the package path patterns declared for the detected tool.

    Raises:
        OSError, ValueError, yaml.YAMLError: If the tool config is unreadable
            or its package settings have the wrong shape.
    """
    if config.type == "lerna":
        data = _read_json(root / "lerna.json")
        return _pattern_list(data.get("packages") or ["packages/*"], "lerna.json")

    if config.type == "nx":
        layout = _read_json(root / "nx.json").get("workspaceLayout") or {}
        if not isinstance(layout, dict):
            raise ValueError("nx.json: workspaceLayout must be an object")
        patterns = [
            f"{str(layout[key]).rstrip('/')}/*"
            for key in ("libsDir", "appsDir")
            if layout.get(key)
        ]
        return patterns or list(NX_FALLBACK_PATTERNS)

    if config.type == "pnpmWorkspace":
        data = yaml.safe_load((root / "pnpm-workspace.yaml").read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError("pnpm-workspace.yaml is not a mapping")
        return _pattern_list(data.get("packages") or [], "pnpm-workspace.yaml")

    return list(config.workspaces)


def expand_patterns(root: Path, patterns: list[str]) -> list[Package]:
    """Expand path patterns into packages.

    A pattern containing "*" lists the immediate subdirectories of the part
    before the wildcard; other patterns name a single directory. Only
    directories holding a package descriptor become packages.
    """
    dirs: list[Path] = []
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern or pattern.startswith("!"):
            continue
        if "*" in pattern:
            base = root / pattern.split("*", 1)[0]
            if base.is_dir():
                dirs.extend(sorted(p for p in base.iterdir() if p.is_dir()))
        else:
            dirs.append(root / pattern)

    packages: list[Package] = []
    seen: set[str] = set()
    for d in dirs:
        if not has_descriptor(d):
            continue
        try:
            rel = d.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            logger.warning("Skipping package outside the repository", path=str(d))
            continue
        if rel in seen:
            continue
        try:
            descriptor = read_descriptor(d)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Skipping package with unreadable descriptor", path=rel, error=str(exc)
            )
            continue
        name = descriptor.name if descriptor and descriptor.name else d.name
        packages.append(Package(name=name, path=rel))
        seen.add(rel)
    return packages


def discover_workspaces(root: Path, config: MonorepoConfig) -> list[Package]:
    """Enumerate the packages of the repository.

    Never raises: unreadable monorepo configuration falls back to
    single-package mode.
    """
    if config.is_single:
        return single_package(root)

    try:
        patterns = workspace_patterns(root, config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning(
            "Error reading monorepo config, using single-package mode",
            tool=config.type,
            error=str(exc),
        )
        return single_package(root)

    packages = expand_patterns(root, patterns)
    if not packages:
        logger.warning(
            "No packages matched the workspace patterns, using single-package mode",
            tool=config.type,
            patterns=patterns,
        )
        return single_package(root)

    logger.info(
        "Found workspace packages",
        count=len(packages),
        packages=[p.name for p in packages],
    )
    return packages


def discover_packages(root: Path) -> tuple[MonorepoConfig, list[Package]]:
    """Detect the workspace layout and list its packages."""
    config = detect_monorepo_config(root)
    return config, discover_workspaces(root, config)
