"""
Registry Entities.

Immutable snapshots of what the plugin registry returns: plugins, authors,
versions and version lists. Each entity is built through from_json(), which
validates required fields before constructing the object.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class EntityError(ValueError):
    """Raised when a registry payload is missing or mistypes a field."""

    pass


def _require(data: dict[str, Any], key: str, type_: type | tuple[type, ...], entity: str) -> Any:
    if key not in data:
        raise EntityError(f"{entity}: missing required field '{key}'")
    value = data[key]
    if not isinstance(value, type_):
        raise EntityError(f"{entity}: field '{key}' has unexpected type {type(value).__name__}")
    return value


def _optional(data: dict[str, Any], key: str, type_: type | tuple[type, ...], entity: str, default: Any = None) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, type_):
        raise EntityError(f"{entity}: field '{key}' has unexpected type {type(value).__name__}")
    return value


def _datetime(data: dict[str, Any], key: str, entity: str) -> datetime | None:
    value = _optional(data, key, str, entity)
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise EntityError(f"{entity}: field '{key}' is not an ISO 8601 date: {value!r}") from e


def _object(data: Any, entity: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise EntityError(f"{entity}: expected a JSON object, got {type(data).__name__}")
    return data


@dataclass(frozen=True)
class Author:
    """Plugin author."""

    name: str
    email: str | None = None
    url: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "Author":
        data = _object(data, "Author")
        return cls(
            name=_require(data, "name", str, "Author"),
            email=_optional(data, "email", str, "Author"),
            url=_optional(data, "url", str, "Author"),
        )


@dataclass(frozen=True)
class Plugin:
    """
    A plugin as described by the registry.

    Attributes:
        key: Plugin key (vendor/name)
        vendor: Vendor part of the key
        name: Name part of the key
        repository_url: Source repository URL
        manifest_root: Subfolder of the repository holding the plugin
    """

    key: str
    vendor: str
    name: str
    repository_url: str
    manifest_root: str = ""
    description: str = ""
    homepage_url: str | None = None
    categories: tuple[str, ...] = ()
    authors: tuple[Author, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_json(cls, data: Any) -> "Plugin":
        data = _object(data, "Plugin")
        key = _require(data, "key", str, "Plugin")
        vendor, _, name = key.partition("/")
        authors = _optional(data, "authors", list, "Plugin", [])
        categories = _optional(data, "categories", list, "Plugin", [])

        return cls(
            key=key,
            vendor=_optional(data, "vendor", str, "Plugin", vendor),
            name=_optional(data, "name", str, "Plugin", name),
            repository_url=_require(data, "repository_url", str, "Plugin"),
            manifest_root=_optional(data, "manifest_root", str, "Plugin", "").strip("/"),
            description=_optional(data, "description", str, "Plugin", ""),
            homepage_url=_optional(data, "homepage_url", str, "Plugin"),
            categories=tuple(str(category) for category in categories),
            authors=tuple(Author.from_json(author) for author in authors),
            created_at=_datetime(data, "created_at", "Plugin"),
            updated_at=_datetime(data, "updated_at", "Plugin"),
        )


def _plugin_or_key(data: dict[str, Any], entity: str) -> "Plugin | str":
    plugin = _require(data, "plugin", (dict, str), entity)
    return Plugin.from_json(plugin) if isinstance(plugin, dict) else plugin


@dataclass(frozen=True)
class Version:
    """
    One published release of a plugin.

    The canonical string form of a version is its tag.

    Attributes:
        plugin: Expanded Plugin, or only its key when not expanded
        tag: Release tag as published (e.g. "1.3.0", "dev-main")
        commit_hash: Source reference the tag points to
        archive_url: Downloadable archive of the plugin, if any
        archive_checksum: Declared checksum of the archive content
        size: Declared total size in bytes
        file_count: Declared number of files
        published_at: Publication date
        hooks: Host application hooks implemented by this release
    """

    plugin: Plugin | str
    tag: str
    commit_hash: str
    archive_url: str | None = None
    archive_checksum: str | None = None
    size: int = 0
    file_count: int = 0
    published_at: datetime | None = None
    hooks: tuple[str, ...] = field(default_factory=tuple)
    readme: str | None = None
    license: str | None = None

    @classmethod
    def from_json(cls, data: Any) -> "Version":
        data = _object(data, "Version")
        hooks = _optional(data, "hooks", list, "Version", [])

        return cls(
            plugin=_plugin_or_key(data, "Version"),
            tag=_require(data, "tag", str, "Version"),
            commit_hash=_require(data, "commit_hash", str, "Version"),
            archive_url=_optional(data, "archive_url", str, "Version"),
            archive_checksum=_optional(data, "archive_checksum", str, "Version"),
            size=_optional(data, "size", int, "Version", 0),
            file_count=_optional(data, "file_count", int, "Version", 0),
            published_at=_datetime(data, "published_at", "Version"),
            hooks=tuple(str(hook) for hook in hooks),
            readme=_optional(data, "readme", str, "Version"),
            license=_optional(data, "license", str, "Version"),
        )

    @property
    def plugin_key(self) -> str:
        return self.plugin.key if isinstance(self.plugin, Plugin) else self.plugin

    @property
    def repository_url(self) -> str | None:
        return self.plugin.repository_url if isinstance(self.plugin, Plugin) else None

    @property
    def manifest_root(self) -> str:
        return self.plugin.manifest_root if isinstance(self.plugin, Plugin) else ""

    def __str__(self) -> str:
        return self.tag


@dataclass(frozen=True)
class VersionList:
    """
    All published tags of a plugin.

    Attributes:
        plugin: Expanded Plugin, or only its key
        latest: Tag the registry considers the latest release
        all_tags: Every published tag, including dev-* refs
    """

    plugin: Plugin | str
    latest: str
    all_tags: tuple[str, ...]

    @classmethod
    def from_json(cls, data: Any) -> "VersionList":
        data = _object(data, "VersionList")
        all_tags = _require(data, "all_tags", list, "VersionList")
        if not all(isinstance(tag, str) for tag in all_tags):
            raise EntityError("VersionList: 'all_tags' must only contain strings")

        return cls(
            plugin=_plugin_or_key(data, "VersionList"),
            latest=_require(data, "latest", str, "VersionList"),
            all_tags=tuple(all_tags),
        )


__all__ = ["EntityError", "Author", "Plugin", "Version", "VersionList"]
