"""
Plugins Manifest.

This module manages plugins.json, the declared install intent.

Key features:
- Plugin key validation (vendor/name)
- Idempotent add/remove with a dirty flag
- Constraints stored verbatim (null means latest), never resolved refs
- Unknown "repositories" entries preserved across read/write
"""

import re
from collections.abc import Iterator
from typing import Any

from plugpm.errors import InvalidPluginKey
from plugpm.plugin.jsonfile import JsonFile

PLUGIN_KEY_RE = re.compile(r"^[a-z0-9]([_.-]?[a-z0-9]+)*/[a-z0-9]([_.-]?[a-z0-9]+)*$")


def validate_plugin_key(plugin_key: str) -> str:
    """
    Validate a plugin key.

    Args:
        plugin_key: Key of the form vendor/name

    Returns:
        The key, unchanged

    Raises:
        InvalidPluginKey: If the key is malformed
    """
    if not isinstance(plugin_key, str) or not PLUGIN_KEY_RE.match(plugin_key):
        raise InvalidPluginKey(
            f"Invalid plugin key: {plugin_key!r}. "
            f"Expected vendor/name in lowercase alphanumeric with . _ - separators.",
            plugin_key=plugin_key if isinstance(plugin_key, str) else None,
        )
    return plugin_key


class Manifest(JsonFile):
    """
    Declared plugins: plugin key -> version constraint.

    Example file:
        {
            "plugins": {"acme/seo": "^1.2.0", "acme/stats": null},
            "repositories": []
        }
    """

    label = "jsonFile"

    def _reset(self) -> None:
        self._plugins: dict[str, str | None] = {}
        self.repositories: list[Any] = []

    def _load(self, data: dict[str, Any]) -> None:
        plugins = data.get("plugins", {})
        if not isinstance(plugins, dict):
            self.logger.warning(
                "jsonFile.readInvalidPlugins",
                "'plugins' field must be an object, ignoring it.",
            )
            plugins = {}

        for plugin_key, constraint in plugins.items():
            if constraint is not None and not isinstance(constraint, str):
                self.logger.warning(
                    "jsonFile.readInvalidConstraint",
                    "Ignoring plugin with a non-string constraint.",
                    pluginKey=plugin_key,
                )
                continue
            self._plugins[plugin_key] = constraint

        repositories = data.get("repositories", [])
        self.repositories = repositories if isinstance(repositories, list) else []

    def _dump(self) -> dict[str, Any]:
        return {
            "plugins": dict(sorted(self._plugins.items())),
            "repositories": self.repositories,
        }

    @property
    def plugins(self) -> dict[str, str | None]:
        """Copy of the declared plugins, sorted by key."""
        return dict(sorted(self._plugins.items()))

    def has_plugin(self, plugin_key: str) -> bool:
        return plugin_key in self._plugins

    def get_constraint(self, plugin_key: str) -> str | None:
        """
        Get the declared constraint of a plugin.

        Returns None both for "latest" declarations and for undeclared
        plugins; use has_plugin() to tell them apart.
        """
        return self._plugins.get(plugin_key)

    def add_plugin(self, plugin_key: str, constraint: str | None) -> None:
        """
        Declare a plugin, or change its constraint.

        Args:
            plugin_key: Plugin key
            constraint: Version constraint, None for latest
        """
        if plugin_key in self._plugins and self._plugins[plugin_key] == constraint:
            return

        self._plugins[plugin_key] = constraint
        self.has_changed = True

        self.logger.info(
            "jsonFile.pluginAdded",
            f"Added plugin to {self.file_path.name} file.",
            pluginKey=plugin_key,
            constraint=constraint,
        )

    def remove_plugin(self, plugin_key: str) -> None:
        if plugin_key not in self._plugins:
            return

        del self._plugins[plugin_key]
        self.has_changed = True

        self.logger.info(
            "jsonFile.pluginRemoved",
            f"Removed plugin from {self.file_path.name} file.",
            pluginKey=plugin_key,
        )

    def __contains__(self, plugin_key: object) -> bool:
        return plugin_key in self._plugins

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._plugins))

    def __len__(self) -> int:
        return len(self._plugins)
