"""
Plugins Lockfile.

This module manages plugins-lock.json, the record of what is installed.

A lock entry exists if and only if the plugin is materialized in the plugins
directory. Entries are replaced whole, never partially updated.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from plugpm.plugin.jsonfile import JsonFile

LOCKFILE_VERSION = "1.0"


@dataclass(frozen=True)
class LockEntry:
    """
    Resolved state of one installed plugin.

    Attributes:
        version: Installed tag
        source_url: Repository URL of the plugin
        source_reference: Commit hash or ref the tag points to
        dist_url: Archive URL, when installed from an archive
        dist_checksum: Verified content checksum, when installed from an archive
    """

    version: str
    source_url: str
    source_reference: str
    dist_url: str | None = None
    dist_checksum: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "LockEntry | None":
        """
        Build an entry from its JSON form.

        Returns:
            LockEntry, or None if required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            return None

        version = data.get("version")
        source = data.get("source")
        if not isinstance(version, str) or not isinstance(source, dict):
            return None

        url = source.get("url")
        reference = source.get("reference")
        if not isinstance(url, str) or not isinstance(reference, str):
            return None

        dist_url = dist_checksum = None
        dist = data.get("dist")
        if isinstance(dist, dict):
            if isinstance(dist.get("url"), str):
                dist_url = dist["url"]
            if isinstance(dist.get("checksum"), str):
                dist_checksum = dist["checksum"]

        return cls(
            version=version,
            source_url=url,
            source_reference=reference,
            dist_url=dist_url,
            dist_checksum=dist_checksum,
        )

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "source": {"url": self.source_url, "reference": self.source_reference},
        }
        if self.dist_url is not None or self.dist_checksum is not None:
            data["dist"] = {"url": self.dist_url, "checksum": self.dist_checksum}
        return data

    def same_source(self, version: str, reference: str) -> bool:
        """
        Check whether this entry already pins a given tag and reference.

        The optional dist block is deliberately not compared.
        """
        return self.version == version and self.source_reference == reference


class Lockfile(JsonFile):
    """Installed plugins: plugin key -> LockEntry."""

    label = "lockfile"
    sort_keys = False

    def _reset(self) -> None:
        self.version = LOCKFILE_VERSION
        self._plugins: dict[str, LockEntry] = {}

    def _load(self, data: dict[str, Any]) -> None:
        plugins = data.get("plugins", {})
        if not isinstance(plugins, dict):
            self.logger.warning(
                "lockfile.readInvalidPlugins",
                "'plugins' field must be an object, ignoring it.",
            )
            return

        for plugin_key, value in plugins.items():
            entry = LockEntry.from_json(value)
            if entry is None:
                self.logger.warning(
                    "lockfile.readInvalidEntry",
                    "Ignoring malformed lockfile entry.",
                    pluginKey=plugin_key,
                )
                continue
            self._plugins[plugin_key] = entry

    def _dump(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "plugins": {key: self._plugins[key].to_json() for key in sorted(self._plugins)},
        }

    @property
    def plugins(self) -> dict[str, LockEntry]:
        """Copy of the locked plugins, sorted by key."""
        return dict(sorted(self._plugins.items()))

    def has_plugin(self, plugin_key: str) -> bool:
        return plugin_key in self._plugins

    def get_plugin(self, plugin_key: str) -> LockEntry | None:
        return self._plugins.get(plugin_key)

    def add_plugin(self, plugin_key: str, entry: LockEntry) -> None:
        """
        Record an installed plugin, replacing any previous entry.

        Args:
            plugin_key: Plugin key
            entry: Complete lock entry
        """
        if self._plugins.get(plugin_key) == entry:
            return

        self._plugins[plugin_key] = entry
        self.has_changed = True

        self.logger.info(
            "lockfile.pluginAdded",
            f"Added plugin to {self.file_path.name} file.",
            pluginKey=plugin_key,
            version=entry.version,
        )

    def remove_plugin(self, plugin_key: str) -> None:
        if plugin_key not in self._plugins:
            return

        del self._plugins[plugin_key]
        self.has_changed = True

        self.logger.info(
            "lockfile.pluginRemoved",
            f"Removed plugin from {self.file_path.name} file.",
            pluginKey=plugin_key,
        )

    def __contains__(self, plugin_key: object) -> bool:
        return plugin_key in self._plugins

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._plugins))

    def __len__(self) -> int:
        return len(self._plugins)
