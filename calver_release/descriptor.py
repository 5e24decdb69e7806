"""Package descriptor access.

A package directory is recognised by its descriptor file. pyproject.toml is
read with tomlkit (so writes keep formatting); package.json is supported for
JavaScript packages living in the same monorepo.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .models import PackageDescriptor
from .toml import (
    get_project_name,
    get_project_version,
    get_tool_config,
    get_workspace_member_globs,
    has_build_system,
    load_pyproject,
    save_pyproject,
    set_project_version,
)

PYPROJECT = "pyproject.toml"
PACKAGE_JSON = "package.json"
DESCRIPTOR_FILES = (PYPROJECT, PACKAGE_JSON)


def find_descriptor(pkg_dir: Path) -> Path | None:
    """Return the descriptor file of a package directory, if it has one."""
    for filename in DESCRIPTOR_FILES:
        candidate = pkg_dir / filename
        if candidate.is_file():
            return candidate
    return None


def has_descriptor(pkg_dir: Path) -> bool:
    return find_descriptor(pkg_dir) is not None


def _load_package_json(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data


def _json_workspaces(data: dict[str, Any]) -> list[str]:
    workspaces = data.get("workspaces") or []
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages") or []
    if not isinstance(workspaces, list):
        return []
    return [str(w) for w in workspaces]


def read_descriptor(pkg_dir: Path) -> PackageDescriptor | None:
    """Read name, version, workspace globs and build capability.

    Returns None when the directory has no descriptor. Parse errors
    propagate; callers decide how to degrade.
    """
    path = find_descriptor(pkg_dir)
    if path is None:
        return None

    if path.name == PYPROJECT:
        doc = load_pyproject(path)
        name = get_project_name(doc, "")
        return PackageDescriptor(
            name=name or None,
            version=get_project_version(doc),
            workspaces=get_workspace_member_globs(doc),
            can_build=has_build_system(doc),
            file=path.name,
        )

    data = _load_package_json(path)
    scripts = data.get("scripts") or {}
    version = data.get("version")
    return PackageDescriptor(
        name=data.get("name") or None,
        version=str(version) if version is not None else None,
        workspaces=_json_workspaces(data),
        can_build=isinstance(scripts, dict) and "build" in scripts,
        file=path.name,
    )


def read_release_config(pkg_dir: Path) -> dict[str, Any]:
    """Return calver-release settings embedded in the root descriptor.

    [tool.calver-release] in pyproject.toml, or the "calver-release" (or
    "release") key of package.json. Unreadable descriptors contribute
    nothing.
    """
    path = find_descriptor(pkg_dir)
    if path is None:
        return {}
    try:
        if path.name == PYPROJECT:
            return get_tool_config(load_pyproject(path))
        data = _load_package_json(path)
    except (OSError, ValueError):
        return {}
    config = data.get("calver-release") or data.get("release") or {}
    return config if isinstance(config, dict) else {}


def write_version(pkg_dir: Path, version: str) -> Path | None:
    """Write the released version into the package's descriptor.

    Returns the path written, or None when there is no descriptor.
    """
    path = find_descriptor(pkg_dir)
    if path is None:
        return None

    if path.name == PYPROJECT:
        doc = load_pyproject(path)
        set_project_version(doc, version)
        save_pyproject(path, doc)
    else:
        data = _load_package_json(path)
        data["version"] = version
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path
