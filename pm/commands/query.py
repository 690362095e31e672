"""
pm query commands (-Q, -Ql, -Si).

Inspect installed plugins and registry releases.
"""

import asyncio
import sys
from typing import Any

from plugpm.config import Settings
from plugpm.errors import PluginsManagerError
from plugpm.logger import PluginsLogger
from plugpm.plugin.lockfile import Lockfile
from plugpm.plugin.manifest import Manifest, validate_plugin_key
from plugpm.registry.entities import Plugin, Version
from pm.commands.session import create_registry, parse_target


def query_command(args: Any, settings: Settings) -> int:
    """
    Execute query command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args.list:
        if len(args.targets) != 1:
            print("Usage: pm -Ql <plugin>", file=sys.stderr)
            return 1
        return list_files(args.targets[0], settings)

    return list_installed(settings)


def list_installed(settings: Settings) -> int:
    """Print locked plugins; declared but missing ones are flagged."""
    logger = PluginsLogger()
    lockfile = Lockfile(settings.lockfile_path, logger)
    manifest = Manifest(settings.manifest_path, logger)

    for key, entry in lockfile.plugins.items():
        print(f"{key} {entry.version}")

    for key in manifest:
        if key not in lockfile:
            print(f"{key} (not installed)")

    return 0


def list_files(target: str, settings: Settings) -> int:
    """Print the files of an installed plugin, relative to the plugins directory."""
    key, _ = parse_target(target)
    try:
        validate_plugin_key(key)
    except PluginsManagerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    plugin_dir = settings.plugins_dir.joinpath(*key.split("/"))
    if not plugin_dir.is_dir():
        print(f"Error: plugin {key} is not installed", file=sys.stderr)
        return 1

    for path in sorted(plugin_dir.rglob("*")):
        if path.is_file():
            print(f"{key} {path.relative_to(settings.plugins_dir).as_posix()}")

    return 0


def format_version(version: Version) -> str:
    """Render registry information about a release."""
    rows = [("Name", version.plugin_key), ("Version", version.tag)]

    if isinstance(version.plugin, Plugin):
        plugin = version.plugin
        rows.append(("Description", plugin.description or "None"))
        rows.append(("Repository", plugin.repository_url))
        if plugin.authors:
            rows.append(("Authors", ", ".join(author.name for author in plugin.authors)))

    rows.append(("Commit", version.commit_hash))
    rows.append(("License", version.license or "None"))
    rows.append(("Hooks", " ".join(version.hooks) or "None"))
    rows.append(("Archive", version.archive_url or "None"))
    if version.published_at is not None:
        rows.append(("Published", version.published_at.isoformat()))

    return "\n".join(f"{label:<12}: {value}" for label, value in rows)


def info_command(args: Any, settings: Settings) -> int:
    """
    Execute registry info command (-Si).

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if len(args.targets) != 1:
        print("Usage: pm -Si <plugin>[@version]", file=sys.stderr)
        return 1

    return asyncio.run(info_async(args.targets[0], settings))


async def info_async(target: str, settings: Settings) -> int:
    """Async registry info implementation."""
    key, version = parse_target(target)
    logger = PluginsLogger()

    try:
        validate_plugin_key(key)
        async with create_registry(settings, logger) as registry:
            release = await registry.get_version(key, version)
    except PluginsManagerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if release is None:
        print(f"Error: {target} was not found in the registry", file=sys.stderr)
        return 1

    print(format_version(release))
    return 0
