"""Built-in release notes generator."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Plugin

if TYPE_CHECKING:
    from ..context import ReleaseContext

MULTI_SEPARATOR = "\n\n---\n\n"


class ReleaseNotesPlugin(Plugin):
    """Collects the notes computed for each package into one document."""

    name = "release-notes-generator"

    def generate_notes(self, ctx: ReleaseContext) -> str:
        if ctx.next_release is None:
            return ""
        return MULTI_SEPARATOR.join(
            r.release_notes for r in ctx.next_release.releases if r.release_notes
        )
