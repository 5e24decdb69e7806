"""Release notes and CHANGELOG.md maintenance."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from .models import CommitAnalysis, CommitCategory

CHANGELOG = "CHANGELOG.md"
CHANGELOG_HEADER = (
    "# Changelog\n\n"
    "All notable changes to this project will be documented in this file.\n\n"
)

SECTIONS: tuple[tuple[CommitCategory, str], ...] = (
    (CommitCategory.BREAKING, "💥 BREAKING CHANGES"),
    (CommitCategory.FEATURE, "✨ Features"),
    (CommitCategory.FIX, "🐛 Bug Fixes"),
    (CommitCategory.PERFORMANCE, "⚡ Performance Improvements"),
)


def generate_release_notes(
    analysis: CommitAnalysis,
    version: str,
    package_name: str | None = None,
    today: date | None = None,
) -> str:
    """Render markdown notes for one package release.

    Sections are emitted in a fixed order and only when they have entries.
    """
    day = (today or date.today()).isoformat()
    title = f"{package_name} [{version}]" if package_name else f"[{version}]"
    blocks = [f"## {title} - {day}"]

    for category, heading in SECTIONS:
        if category is CommitCategory.BREAKING and not analysis.has_breaking_change:
            continue
        subjects = analysis.commits_in(category)
        if subjects:
            blocks.append(
                "\n".join([f"### {heading}", *(f"- {s}" for s in subjects)])
            )

    return "\n\n".join(blocks).strip()


def insert_release_notes(changelog: str, notes: str) -> str:
    """Insert notes above the newest release section of a changelog.

    Without any "## " section the notes go after the header paragraph.
    """
    lines = changelog.split("\n")
    insert_at = len(lines)
    for i, line in enumerate(lines):
        if line.startswith("## "):
            insert_at = i
            break
        if i > 0 and lines[i - 1].strip() and not line.strip():
            insert_at = i + 1

    return "\n".join([*lines[:insert_at], notes, "", *lines[insert_at:]])


def update_changelog(notes: str, package_dir: Path) -> Path:
    """Prepend release notes to the package's CHANGELOG.md, creating it."""
    path = package_dir / CHANGELOG
    existing = path.read_text(encoding="utf-8") if path.exists() else CHANGELOG_HEADER
    path.write_text(insert_release_notes(existing, notes), encoding="utf-8")
    return path
