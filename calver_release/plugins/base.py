"""Plugin interface and loading.

A plugin contributes hooks to the lifecycle stages of a release. Every hook
is optional: subclass Plugin and override only the stages you need. Hooks
may be plain methods or coroutines; the pipeline awaits each one before
calling the next.

Plugins are configured by definition, which is one of:

- "name"                                  built-in name or import path
- ["name", {"option": "value"}]           with options
- {"path": "name", "options": {...}}      with options

Import paths take the form "package.module" or "package.module:attribute".
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import PluginLoadError
from ..models import CommitAnalysis, Package

if TYPE_CHECKING:
    from ..context import ReleaseContext

STAGES = (
    "verify_conditions",
    "analyze_commits",
    "verify_release",
    "generate_notes",
    "prepare",
    "publish",
    "success",
    "fail",
)

BUILTIN_PLUGINS: dict[str, str] = {
    "commit-analyzer": "calver_release.plugins.commit_analyzer:CommitAnalyzerPlugin",
    "release-notes-generator": (
        "calver_release.plugins.release_notes:ReleaseNotesPlugin"
    ),
    "changelog": "calver_release.plugins.changelog:ChangelogPlugin",
    "pypi": "calver_release.plugins.pypi:PyPIPlugin",
    "git": "calver_release.plugins.git:GitPlugin",
    "github": "calver_release.plugins.github:GitHubPlugin",
    "gitlab": "calver_release.plugins.gitlab:GitLabPlugin",
}


class Plugin:
    """Base class for release plugins.

    The default hook bodies do nothing; a hook is only registered for a
    stage when a subclass overrides it.
    """

    name = "plugin"

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.options = dict(options or {})

    def verify_conditions(self, ctx: ReleaseContext) -> Any:
        """Check preconditions (tokens, branch) before anything is analysed."""

    def analyze_commits(
        self, ctx: ReleaseContext, package: Package
    ) -> CommitAnalysis | None:
        """Classify ctx.commits for package; None defers to the next plugin."""
        return None

    def verify_release(self, ctx: ReleaseContext) -> Any:
        """Inspect ctx.next_release before notes are generated."""

    def generate_notes(self, ctx: ReleaseContext) -> Any:
        """Return release notes text; empty results are dropped."""
        return ""

    def prepare(self, ctx: ReleaseContext) -> Any:
        """Write files (versions, changelogs) and create tags."""

    def publish(self, ctx: ReleaseContext) -> Any:
        """Publish the release; return PublishResult(s) or None."""

    def success(self, ctx: ReleaseContext) -> Any:
        """Notify about a completed release."""

    def fail(self, ctx: ReleaseContext, error: BaseException) -> Any:
        """React to a failed run."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


def hook_for(plugin: Any, stage: str) -> Callable[..., Any] | None:
    """Return the plugin's hook for a stage, or None if it has none.

    Plugin subclasses register only overridden methods. Other objects
    (modules, namespaces) register any callable attribute named after a
    stage.
    """
    if isinstance(plugin, Plugin):
        if getattr(type(plugin), stage, None) is getattr(Plugin, stage):
            return None
    hook = getattr(plugin, stage, None)
    return hook if callable(hook) else None


class PluginCollection(BaseModel):
    """Hooks per lifecycle stage, in plugin registration order."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    plugins: list[Any] = Field(default_factory=list)
    verify_conditions: list[Callable[..., Any]] = Field(default_factory=list)
    analyze_commits: list[Callable[..., Any]] = Field(default_factory=list)
    verify_release: list[Callable[..., Any]] = Field(default_factory=list)
    generate_notes: list[Callable[..., Any]] = Field(default_factory=list)
    prepare: list[Callable[..., Any]] = Field(default_factory=list)
    publish: list[Callable[..., Any]] = Field(default_factory=list)
    success: list[Callable[..., Any]] = Field(default_factory=list)
    fail: list[Callable[..., Any]] = Field(default_factory=list)

    def register(self, plugin: Any) -> None:
        self.plugins.append(plugin)
        for stage in STAGES:
            hook = hook_for(plugin, stage)
            if hook is not None:
                getattr(self, stage).append(hook)

    def hooks(self, stage: str) -> list[Callable[..., Any]]:
        return list(getattr(self, stage))

    @classmethod
    def from_plugins(cls, plugins: Sequence[Any]) -> PluginCollection:
        collection = cls()
        for plugin in plugins:
            collection.register(plugin)
        return collection


def parse_definition(definition: Any) -> tuple[str, dict[str, Any]]:
    """Split a plugin definition into its name and options.

    Raises:
        PluginLoadError: If the definition has none of the accepted shapes.
    """
    if isinstance(definition, str):
        return definition, {}
    if isinstance(definition, (list, tuple)) and definition and isinstance(
        definition[0], str
    ):
        options = definition[1] if len(definition) > 1 else {}
        return definition[0], dict(options or {})
    if isinstance(definition, dict) and isinstance(definition.get("path"), str):
        return definition["path"], dict(definition.get("options") or {})
    raise PluginLoadError(f"Invalid plugin configuration: {definition!r}")


def _import_target(target: str) -> Any:
    module_name, _, attribute = target.partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attribute) if attribute else module


def load_plugin(definition: Any) -> Any:
    """Resolve a plugin definition to a plugin object.

    Built-in names are looked up first. The resolved target may be a Plugin
    subclass (instantiated with the options), another callable (called
    with the options as a factory), or an object used as-is.

    Raises:
        PluginLoadError: If the plugin cannot be imported or built.
    """
    name, options = parse_definition(definition)
    target = BUILTIN_PLUGINS.get(name, name)
    try:
        obj = _import_target(target)
        return obj(options) if callable(obj) else obj
    except Exception as exc:
        raise PluginLoadError(f'Failed to load plugin "{name}": {exc}') from exc


def get_plugins(definitions: Sequence[Any]) -> PluginCollection:
    """Load every configured plugin and sort its hooks by stage."""
    return PluginCollection.from_plugins([load_plugin(d) for d in definitions])
