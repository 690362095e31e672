"""
pm remove command (-R).

Remove installed plugins.
"""

import asyncio
import sys
from typing import Any

from plugpm.config import Settings
from pm.commands.session import open_installer, parse_target, report


def remove_command(args: Any, settings: Settings) -> int:
    """
    Execute remove command.

    Args:
        args: Parsed command-line arguments
        settings: Resolved settings

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -R <plugin> ...", file=sys.stderr)
        return 1

    return asyncio.run(remove_async(args.targets, settings))


async def remove_async(targets: list[str], settings: Settings) -> int:
    """Async remove implementation."""
    results = []

    async with open_installer(settings) as installer:
        for target in targets:
            key, _ = parse_target(target)
            results.append(await installer.remove(key))

    return report(results)
