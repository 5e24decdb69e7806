"""Exceptions raised by calver-release.

Degradations inside the decision engine (unreadable monorepo config, failed
change detection) are recovered where they happen and never raised. The
errors below are the ones that abort a run.
"""

from __future__ import annotations


class ReleaseError(Exception):
    """Base class for calver-release errors."""


class ConfigError(ReleaseError):
    """Configuration could not be loaded or is invalid."""


class PluginLoadError(ReleaseError):
    """A plugin definition could not be resolved to a plugin."""


class VerificationError(ReleaseError):
    """A plugin's precondition for releasing is not met."""


class PublishError(ReleaseError):
    """Publishing to a registry or hosting provider failed."""
