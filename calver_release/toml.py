"""pyproject.toml access through tomlkit.

Documents are edited in place and written back with tomlkit.dumps so a
version bump leaves comments and key order alone. Readers treat a key
holding the wrong kind of value (``project = "x"``) as absent.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Parse a pyproject.toml into an editable document."""
    return tomlkit.parse(path.read_text())


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Write ``doc`` to ``path``."""
    path.write_text(tomlkit.dumps(doc))


def get_table(doc: Mapping[str, Any], *keys: str) -> Mapping[str, Any]:
    """Follow nested tables by key; {} when one is missing or not a table."""
    node: Any = doc
    for key in keys:
        if not isinstance(node, Mapping):
            return {}
        node = node.get(key)
    return node if isinstance(node, Mapping) else {}


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """[project].name in PEP 503 form, or ``fallback`` when it is unset.

    Normalising lets "Acme_Core" match a commit scope written as acme-core.
    """
    name = get_table(doc, "project").get("name")
    if not name or not isinstance(name, str):
        return fallback
    return canonicalize_name(str(name))


def get_project_version(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract version from [project].version, or None when undeclared."""
    version = get_table(doc, "project").get("version")
    return str(version) if version is not None else None


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Member globs of [tool.uv.workspace]; empty outside a uv workspace."""
    members = get_table(doc, "tool", "uv", "workspace").get("members")
    return [str(m) for m in members] if isinstance(members, list) else []


def has_build_system(doc: tomlkit.TOMLDocument) -> bool:
    """Whether the document declares a [build-system] backend."""
    return bool(get_table(doc, "build-system").get("build-backend"))


def get_tool_config(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the [tool.calver-release] table as plain Python data."""
    table = get_table(doc, "tool", "calver-release")
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)


def set_project_version(doc: tomlkit.TOMLDocument, version: str) -> None:
    """Set [project].version in place, creating the table if needed.

    Raises:
        ValueError: If [project] exists but is not a table.
    """
    if "project" not in doc:
        doc["project"] = tomlkit.table()
    project = doc["project"]
    if not isinstance(project, Mapping):
        raise ValueError("[project] in pyproject.toml is not a table")
    project["version"] = version  # type: ignore[index]
