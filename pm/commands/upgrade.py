"""
pm upgrade command (-U).

Update declared plugins to the best release matching their constraint.
"""

import asyncio
from typing import Any

from plugpm.config import Settings
from pm.commands.session import open_installer, parse_target, report


def upgrade_command(args: Any, settings: Settings) -> int:
    """
    Execute upgrade command.

    Without targets, every plugin declared in plugins.json is updated.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    keys = [parse_target(target)[0] for target in args.targets]
    return asyncio.run(upgrade_async(keys or None, settings))


async def upgrade_async(keys: list[str] | None, settings: Settings) -> int:
    """Async upgrade implementation."""
    async with open_installer(settings) as installer:
        batch = await installer.update_all(keys)

    return report(batch.results)
