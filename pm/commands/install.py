"""
pm install command (-S).

Install plugins from the registry.
"""

import asyncio
from typing import Any

from plugpm.config import Settings
from pm.commands.session import open_installer, parse_target, report


def install_command(args: Any, settings: Settings) -> int:
    """
    Execute install command.

    Without targets, every plugin declared in plugins.json is installed.

    Args:
        args: Parsed command-line arguments
        settings: Resolved settings

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    return asyncio.run(install_async(args.targets, settings))


async def install_async(targets: list[str], settings: Settings) -> int:
    """Async install implementation."""
    plugins = dict(parse_target(target) for target in targets)

    async with open_installer(settings) as installer:
        if plugins:
            batch = await installer.install(plugins)
        else:
            batch = await installer.install_from_manifest()

    return report(batch.results)
