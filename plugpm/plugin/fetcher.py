"""
Plugin Fetcher.

This module materializes a plugin release into a local directory.

Key features:
- Archive strategy: stream the release archive over HTTP, extract zip or tar
- Git strategy: sparse checkout of the release commit
- Strategies tried in order, first success wins
- Everything happens inside a caller-provided workspace directory
"""

import asyncio
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from plugpm.errors import FetchFailed
from plugpm.logger import PluginsLogger
from plugpm.plugin.git_ops import GitError, checkout_plugin
from plugpm.registry.entities import Version

ARCHIVE = "archive"
GIT = "git"


@dataclass(frozen=True)
class FetchResult:
    """
    A fetched plugin release.

    Attributes:
        path: Directory holding the plugin files
        strategy: Strategy that produced it ("archive" or "git")
    """

    path: Path
    strategy: str


def _is_within(root: Path, target: Path) -> bool:
    try:
        target.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def extract_archive(archive_path: Path, destination: Path) -> None:
    """
    Extract a zip or tar archive, rejecting members escaping the destination.

    Args:
        archive_path: Archive file
        destination: Extraction directory

    Raises:
        FetchFailed: If the archive is unreadable, unsupported or unsafe
    """
    destination.mkdir(parents=True, exist_ok=True)

    try:
        if zipfile.is_zipfile(archive_path):
            with zipfile.ZipFile(archive_path) as archive:
                for name in archive.namelist():
                    if not _is_within(destination, destination / name):
                        raise FetchFailed(f"Archive member escapes destination: {name}")
                archive.extractall(destination)
        elif tarfile.is_tarfile(archive_path):
            with tarfile.open(archive_path) as archive:
                archive.extractall(destination, filter="data")
        else:
            raise FetchFailed(f"Unsupported archive format: {archive_path.name}")
    except (zipfile.BadZipFile, tarfile.TarError, OSError) as e:
        raise FetchFailed(f"Could not extract archive: {e}") from e


def locate_plugin_root(extracted: Path, manifest_root: str = "") -> Path:
    """
    Find the plugin files inside an extracted archive.

    A single wrapping top-level directory is unwrapped, then the plugin
    subfolder is entered when the archive contains it.
    """
    root = extracted
    children = list(root.iterdir())
    if len(children) == 1 and children[0].is_dir():
        root = children[0]

    if manifest_root and (root / manifest_root).is_dir():
        root = root / manifest_root

    return root


class ArchiveFetcher:
    """Download and extract a release archive."""

    strategy = ARCHIVE

    def __init__(self, client: httpx.AsyncClient, timeout: float = 60.0):
        self.client = client
        self.timeout = timeout

    def supports(self, version: Version) -> bool:
        return bool(version.archive_url)

    async def fetch(self, version: Version, workspace: Path) -> Path:
        """
        Download the archive of a release and extract it.

        Args:
            version: Release to fetch
            workspace: Private temporary directory

        Returns:
            Directory holding the plugin files

        Raises:
            FetchFailed: If download or extraction fails
        """
        archive_path = workspace / "archive"
        extract_dir = workspace / "extracted"

        try:
            async with self.client.stream(
                "GET", version.archive_url, timeout=self.timeout
            ) as response:
                response.raise_for_status()
                with open(archive_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, OSError) as e:
            raise FetchFailed(f"Could not download archive {version.archive_url}: {e}") from e

        await asyncio.to_thread(extract_archive, archive_path, extract_dir)
        return locate_plugin_root(extract_dir, version.manifest_root)


class GitFetcher:
    """Check out a release from its source repository."""

    strategy = GIT

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    def supports(self, version: Version) -> bool:
        return bool(version.repository_url and version.commit_hash)

    async def fetch(self, version: Version, workspace: Path) -> Path:
        """
        Sparse-checkout the release commit.

        Raises:
            FetchFailed: If any git step fails
        """
        try:
            return await asyncio.to_thread(
                checkout_plugin,
                version.repository_url,
                workspace / "checkout",
                version.commit_hash,
                version.manifest_root,
                self.timeout,
            )
        except GitError as e:
            raise FetchFailed(f"Could not check out {version.repository_url}: {e}") from e


class Fetcher:
    """
    Try fetch strategies in order until one succeeds.

    The default order is archive first, git checkout as fallback.
    """

    def __init__(
        self,
        strategies: list[ArchiveFetcher | GitFetcher],
        logger: PluginsLogger | None = None,
    ):
        self.strategies = strategies
        self.logger = logger or PluginsLogger()

    @classmethod
    def default(
        cls, client: httpx.AsyncClient, timeout: float, logger: PluginsLogger | None = None
    ) -> "Fetcher":
        return cls([ArchiveFetcher(client, timeout), GitFetcher(timeout)], logger)

    async def fetch(self, version: Version, workspace: Path) -> FetchResult:
        """
        Materialize a release inside a workspace.

        Args:
            version: Release to fetch
            workspace: Private temporary directory, cleaned up by the caller

        Any exception raised by a strategy counts as a failed attempt.

        Returns:
            FetchResult of the first successful strategy

        Raises:
            FetchFailed: If every applicable strategy fails
        """
        failures = []

        for index, fetcher in enumerate(self.strategies):
            if not fetcher.supports(version):
                continue

            attempt_dir = workspace / f"{index}-{fetcher.strategy}"

            try:
                attempt_dir.mkdir(parents=True, exist_ok=True)
                path = await fetcher.fetch(version, attempt_dir)
            except Exception as e:
                failures.append(f"{fetcher.strategy}: {e}")
                self.logger.warning(
                    "fetch.strategyFailed",
                    "Fetch strategy failed, trying the next one.",
                    pluginKey=version.plugin_key,
                    version=version.tag,
                    strategy=fetcher.strategy,
                    error=str(e),
                )
                continue

            return FetchResult(path=path, strategy=fetcher.strategy)

        detail = "; ".join(failures) if failures else "no source available for this release"
        raise FetchFailed(
            f"Could not fetch {version.plugin_key}@{version.tag}: {detail}",
            plugin_key=version.plugin_key,
            constraint=version.tag,
        )


__all__ = [
    "ARCHIVE",
    "GIT",
    "FetchResult",
    "ArchiveFetcher",
    "GitFetcher",
    "Fetcher",
    "extract_archive",
    "locate_plugin_root",
]
