"""
Plugins Manager Errors.

This module defines the error taxonomy shared by every component.

Each error carries the plugin key and the attempted constraint or version
(when known) so callers can report actionable context. Informational
outcomes such as "nothing to remove" or "already up to date" are not errors,
see OperationStatus in plugpm.plugin.installer.
"""


class PluginsManagerError(Exception):
    """Base exception for plugins manager errors."""

    code = "error"

    def __init__(
        self,
        message: str,
        plugin_key: str | None = None,
        constraint: str | None = None,
    ):
        super().__init__(message)
        self.plugin_key = plugin_key
        self.constraint = constraint

    def context(self) -> dict[str, str | None]:
        """Context mapping used in log records."""
        return {"pluginKey": self.plugin_key, "constraint": self.constraint}


class InvalidPluginKey(PluginsManagerError):
    """Raised when a plugin key is not of the form vendor/name."""

    code = "invalidPluginKey"


class InvalidConstraint(PluginsManagerError):
    """Raised when a version constraint cannot be parsed."""

    code = "invalidConstraint"


class NoSatisfyingVersion(PluginsManagerError):
    """Raised when no candidate version satisfies a constraint."""

    code = "noVersionForConstraint"


class PluginNotDeclared(PluginsManagerError):
    """Raised when a plugin is missing from the manifest."""

    code = "pluginNotDeclared"


class PluginNotInstalled(PluginsManagerError):
    """Raised when a declared plugin has no lockfile entry."""

    code = "pluginNotInstalled"


class RegistryUnavailable(PluginsManagerError):
    """Raised when the registry cannot be reached or answers garbage."""

    code = "registryUnavailable"


class VersionNotFound(PluginsManagerError):
    """Raised when the registry does not know the plugin or version."""

    code = "versionNotFound"


class FetchFailed(PluginsManagerError):
    """Raised when no fetch strategy could materialize an artifact."""

    code = "fetchFailed"


class CorruptArtifact(PluginsManagerError):
    """Raised when a fetched artifact does not match its declared checksum."""

    code = "corruptArtifact"

    def __init__(
        self,
        message: str,
        expected: str,
        actual: str,
        plugin_key: str | None = None,
        constraint: str | None = None,
    ):
        super().__init__(message, plugin_key, constraint)
        self.expected = expected
        self.actual = actual

    def context(self) -> dict[str, str | None]:
        context = super().context()
        context["expected"] = self.expected
        context["actual"] = self.actual
        return context


class DirectoryNotFound(PluginsManagerError):
    """Raised when a directory to inspect does not exist."""

    code = "directoryNotFound"


class InstallWriteFailed(PluginsManagerError):
    """Raised when plugin content cannot be written to or removed from disk."""

    code = "installWriteFailed"


class UnexpectedError(PluginsManagerError):
    """Wraps an unforeseen exception that aborted a single plugin operation."""

    code = "unexpectedError"


__all__ = [
    "PluginsManagerError",
    "InvalidPluginKey",
    "InvalidConstraint",
    "NoSatisfyingVersion",
    "PluginNotDeclared",
    "PluginNotInstalled",
    "RegistryUnavailable",
    "VersionNotFound",
    "FetchFailed",
    "CorruptArtifact",
    "DirectoryNotFound",
    "InstallWriteFailed",
    "UnexpectedError",
]
