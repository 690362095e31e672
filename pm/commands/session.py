"""
Shared helpers for pm commands.

Builds the registry client, fetcher and installer for one command run and
prints operation results.
"""

import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from plugpm.config import Settings
from plugpm.logger import PluginsLogger
from plugpm.plugin.fetcher import Fetcher
from plugpm.plugin.installer import Installer, OperationResult, OperationStatus
from plugpm.registry.client import RegistryClient

_STATUS_LABELS = {
    OperationStatus.INSTALLED: "installed",
    OperationStatus.UPDATED: "updated",
    OperationStatus.REMOVED: "removed",
    OperationStatus.ALREADY_UP_TO_DATE: "up to date",
    OperationStatus.NOTHING_TO_REMOVE: "not installed",
}


def parse_target(target: str) -> tuple[str, str | None]:
    """
    Parse plugin target.

    Args:
        target: Plugin key or key@constraint

    Returns:
        Tuple of (plugin key, constraint)
    """
    if "@" in target:
        key, constraint = target.split("@", 1)
        return key, constraint or None
    return target, None


def create_registry(settings: Settings, logger: PluginsLogger) -> RegistryClient:
    return RegistryClient(
        settings.registry_url,
        api_version=settings.api_version,
        timeout=settings.timeout,
        user_agent=settings.user_agent,
        logger=logger,
    )


@asynccontextmanager
async def open_installer(
    settings: Settings, logger: PluginsLogger | None = None
) -> AsyncIterator[Installer]:
    """
    Open an installer session.

    The manifest and lockfile are saved when the session ends without error.
    """
    logger = logger or PluginsLogger()
    async with create_registry(settings, logger) as registry:
        fetcher = Fetcher.default(registry.http_client, settings.timeout, logger)
        async with Installer(settings, registry, fetcher, logger) as installer:
            yield installer


def report(results: list[OperationResult]) -> int:
    """
    Print one line per operation result.

    Returns:
        Exit code (0 if every operation succeeded)
    """
    failed = 0

    for result in results:
        if not result.ok:
            failed += 1
            print(f"error: {result.plugin_key}: {result.error}", file=sys.stderr)
            continue

        line = f"{result.plugin_key}: {_STATUS_LABELS[result.status]}"
        if result.version:
            line += f" ({result.version})"
        print(line)

    return 0 if failed == 0 else 1
