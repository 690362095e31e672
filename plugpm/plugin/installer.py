"""
Plugin Installer.

This module orchestrates plugin add, update and remove operations.

Key features:
- Per-plugin state machine: resolving, fetching, verifying, installing, reconciled
- Isolated temporary workspace per operation, removed on every exit path
- Staged swap into the plugins directory (old content restored on failure)
- Manifest and lockfile mutated only after a fully successful operation
- Batch operations run concurrently and report per-plugin results
- Manifest and lockfile persisted once, at the end of the session
"""

import asyncio
import os
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from plugpm.config.settings import Settings
from plugpm.errors import (
    InstallWriteFailed,
    InvalidConstraint,
    PluginNotDeclared,
    PluginNotInstalled,
    PluginsManagerError,
    UnexpectedError,
    VersionNotFound,
)
from plugpm.logger import PluginsLogger
from plugpm.plugin.fetcher import ARCHIVE, FetchResult
from plugpm.plugin.lockfile import LockEntry, Lockfile
from plugpm.plugin.manifest import Manifest, validate_plugin_key
from plugpm.plugin.semver import Constraint, is_registry_ref, resolve
from plugpm.plugin.verifier import DirectoryMetadata, compute_metadata, verify_checksum
from plugpm.registry.entities import Version


class InstallState(Enum):
    """Stages of a plugin operation."""

    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    VERIFYING = "verifying"
    INSTALLING = "installing"
    RECONCILED = "reconciled"
    FAILED = "failed"


class OperationStatus(Enum):
    """Outcome of a plugin operation."""

    INSTALLED = "installed"
    UPDATED = "updated"
    REMOVED = "removed"
    ALREADY_UP_TO_DATE = "already_up_to_date"
    NOTHING_TO_REMOVE = "nothing_to_remove"
    FAILED = "failed"


@dataclass
class OperationResult:
    """
    Result of one plugin operation.

    Attributes:
        plugin_key: Plugin key
        status: Outcome
        version: Resolved tag, when resolution got that far
        constraint: Requested constraint or version
        states: States visited, in order
        error: Error that aborted the operation (status FAILED only)
    """

    plugin_key: str
    status: OperationStatus
    version: str | None = None
    constraint: str | None = None
    states: list[InstallState] = field(default_factory=list)
    error: PluginsManagerError | None = None

    @property
    def ok(self) -> bool:
        return self.status is not OperationStatus.FAILED


@dataclass
class BatchResult:
    """Per-plugin results of a batch operation."""

    results: list[OperationResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[OperationResult]:
        return [result for result in self.results if result.ok]

    @property
    def failed(self) -> list[OperationResult]:
        return [result for result in self.results if not result.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


class _Operation:
    """State tracker for one plugin operation."""

    def __init__(self, plugin_key: str):
        self.plugin_key = plugin_key
        self.states = [InstallState.IDLE]

    def enter(self, state: InstallState) -> None:
        self.states.append(state)

    def result(self, status: OperationStatus, **kwargs: Any) -> OperationResult:
        return OperationResult(
            plugin_key=self.plugin_key, status=status, states=list(self.states), **kwargs
        )


class Installer:
    """
    Plugin install/update/remove orchestrator.

    Usage:
        async with Installer(settings, registry, fetcher) as installer:
            await installer.add("acme/seo", "^1.2.0")

    The registry must provide get_version(), get_version_list() and
    increment_download() coroutines (see RegistryClient); the fetcher must
    provide a fetch(version, workspace) coroutine returning a FetchResult
    (see Fetcher).
    """

    def __init__(
        self,
        settings: Settings,
        registry: Any,
        fetcher: Any,
        logger: PluginsLogger | None = None,
    ):
        """
        Initialize Installer.

        Creates the plugins and temp directories when missing, then loads
        the manifest and lockfile.

        Args:
            settings: Resolved settings
            registry: Registry client
            fetcher: Artifact fetcher
            logger: Injected logger
        """
        self.settings = settings
        self.registry = registry
        self.fetcher = fetcher
        self.logger = logger or PluginsLogger()

        self.logger.info("start", "Plugins manager is starting.")

        self.plugins_dir = settings.plugins_dir
        self.temp_dir = settings.temp_dir
        self._ensure_directory(self.plugins_dir, "PluginsDir", "Plugins")
        if self.temp_dir is not None:
            self._ensure_directory(self.temp_dir, "TempDir", "Temp")

        self.manifest = Manifest(settings.manifest_path, self.logger)
        self.lockfile = Lockfile(settings.lockfile_path, self.logger)

        # Serializes manifest/lockfile mutations across concurrent operations
        self._state_lock = asyncio.Lock()
        self._notifications: set[asyncio.Task] = set()

    def _ensure_directory(self, path: Path, code: str, label: str) -> None:
        if path.exists():
            return

        self.logger.info(
            f"construct.create{code}",
            f"{label} directory does not exist, creating it.",
            path=str(path),
        )
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error(
                f"construct.create{code}Error",
                f"Could not create {label.lower()} directory.",
                path=str(path),
                error=str(e),
            )
            return

        self.logger.success(
            f"construct.create{code}Success",
            f"{label} directory has been created.",
            path=str(path),
        )

    async def __aenter__(self) -> "Installer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
        if exc_type is None:
            self.save()
        self.logger.info("end", "Plugins manager is done.")

    async def aclose(self) -> None:
        """Wait for pending download notifications."""
        if self._notifications:
            await asyncio.gather(*self._notifications, return_exceptions=True)

    def save(self) -> bool:
        """
        Persist the manifest and lockfile if they changed.

        Returns:
            False if a file could not be written
        """
        ok = True

        if self.manifest.has_changed:
            self.logger.info("destruct.saveJsonFile", "Saving state to plugins.json file.")
            ok = self.manifest.write() and ok

        if self.lockfile.has_changed:
            self.logger.info("destruct.saveLockFile", "Saving state to plugins-lock.json file.")
            ok = self.lockfile.write() and ok

        return ok

    def plugin_dir(self, plugin_key: str) -> Path:
        """Installation directory of a plugin (plugins_dir/vendor/name)."""
        return self.plugins_dir.joinpath(*plugin_key.split("/"))

    # Resolution

    async def resolve_version(self, plugin_key: str, constraint: str | None = None) -> Version:
        """
        Resolve a constraint to a concrete release.

        None, "latest" and "dev-*" are asked to the registry directly; ranges
        are resolved against the registry's tag list.

        Args:
            plugin_key: Plugin key
            constraint: Version constraint

        Returns:
            Resolved Version

        Raises:
            InvalidConstraint: If the range cannot be parsed
            NoSatisfyingVersion: If no published tag satisfies the range
            VersionNotFound: If the registry does not know the plugin or version
            RegistryUnavailable: If the registry cannot be reached
        """
        if is_registry_ref(constraint):
            return await self._get_version(plugin_key, constraint)

        try:
            parsed = Constraint.parse(constraint)
        except InvalidConstraint as e:
            e.plugin_key = plugin_key
            raise

        version_list = await self.registry.get_version_list(plugin_key)
        if version_list is None:
            raise VersionNotFound(
                f"Plugin {plugin_key} was not found in the registry.",
                plugin_key=plugin_key,
                constraint=constraint,
            )

        tag = resolve(parsed, version_list.all_tags, plugin_key=plugin_key)
        return await self._get_version(plugin_key, tag)

    async def _get_version(self, plugin_key: str, version: str | None) -> Version:
        resolved = await self.registry.get_version(plugin_key, version)
        if resolved is None:
            raise VersionNotFound(
                f"Version {version or 'latest'} of {plugin_key} was not found in the registry.",
                plugin_key=plugin_key,
                constraint=version,
            )
        return resolved

    # Fetch, verify, install

    def _create_workspace(self, plugin_key: str) -> Path:
        try:
            return Path(
                tempfile.mkdtemp(
                    prefix=f"plugpm-{plugin_key.replace('/', '-')}_", dir=self.temp_dir
                )
            )
        except OSError as e:
            raise InstallWriteFailed(
                f"Could not create temp directory for plugin {plugin_key}: {e}",
                plugin_key=plugin_key,
            ) from e

    def _remove_workspace(self, workspace: Path) -> None:
        shutil.rmtree(workspace, ignore_errors=True)
        if workspace.exists():
            self.logger.warning(
                "temp.removeError",
                "Could not fully remove temporary directory.",
                path=str(workspace),
            )

    def _verify(
        self, plugin_key: str, version: Version, fetched: FetchResult
    ) -> DirectoryMetadata:
        if fetched.strategy != ARCHIVE:
            return compute_metadata(fetched.path)

        if not version.archive_checksum:
            self.logger.warning(
                "verify.missingChecksum",
                "Registry declares no checksum for this archive, skipping verification.",
                pluginKey=plugin_key,
                version=version.tag,
            )
            return compute_metadata(fetched.path)

        metadata = verify_checksum(fetched.path, version.archive_checksum, plugin_key)

        self.logger.info(
            "verify.success",
            "Archive checksum verified.",
            pluginKey=plugin_key,
            version=version.tag,
            totalBytes=metadata.total_bytes,
            fileCount=metadata.file_count,
        )
        return metadata

    def _replace_plugin_dir(self, plugin_key: str, source: Path) -> None:
        """
        Replace the installed content of a plugin with a fetched tree.

        The new content is copied into a staging directory next to the
        destination, then swapped in. Files of a previous version are not
        kept. If the swap fails, the previous content is put back.
        """
        destination = self.plugin_dir(plugin_key)
        parent = destination.parent

        try:
            parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{destination.name}.staging-", dir=parent))
        except OSError as e:
            raise InstallWriteFailed(
                f"Could not prepare plugin directory {destination}: {e}", plugin_key=plugin_key
            ) from e

        backup = None
        try:
            shutil.copytree(
                source, staging, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git")
            )
            if destination.exists():
                backup = parent / f".{destination.name}.previous-{uuid.uuid4().hex[:8]}"
                os.replace(destination, backup)
            os.replace(staging, destination)
        except OSError as e:
            if backup is not None and backup.exists() and not destination.exists():
                os.replace(backup, destination)
            shutil.rmtree(staging, ignore_errors=True)
            raise InstallWriteFailed(
                f"Could not copy plugin files to {destination}: {e}", plugin_key=plugin_key
            ) from e

        if backup is not None:
            self._remove_workspace(backup)

    async def _install_version(
        self, operation: _Operation, plugin_key: str, version: Version
    ) -> LockEntry:
        """Fetch, verify and install a release; returns its lock entry."""
        workspace = await asyncio.to_thread(self._create_workspace, plugin_key)

        try:
            operation.enter(InstallState.FETCHING)
            fetched = await self.fetcher.fetch(version, workspace)

            operation.enter(InstallState.VERIFYING)
            try:
                metadata = await asyncio.to_thread(self._verify, plugin_key, version, fetched)
            except OSError as e:
                raise InstallWriteFailed(
                    f"Could not read fetched files of {plugin_key}: {e}", plugin_key=plugin_key
                ) from e

            operation.enter(InstallState.INSTALLING)
            await asyncio.to_thread(self._replace_plugin_dir, plugin_key, fetched.path)
        finally:
            await asyncio.to_thread(self._remove_workspace, workspace)

        from_archive = fetched.strategy == ARCHIVE
        return LockEntry(
            version=version.tag,
            source_url=version.repository_url or "",
            source_reference=version.commit_hash,
            dist_url=version.archive_url if from_archive else None,
            dist_checksum=metadata.checksum if from_archive else None,
        )

    def _fail(
        self,
        operation: _Operation,
        action: str,
        error: PluginsManagerError,
        constraint: str | None = None,
        version: str | None = None,
    ) -> OperationResult:
        operation.enter(InstallState.FAILED)
        if error.plugin_key is None:
            error.plugin_key = operation.plugin_key
        if error.constraint is None:
            error.constraint = constraint

        self.logger.error(f"{action}.{error.code}", str(error), **error.context())
        return operation.result(
            OperationStatus.FAILED, version=version, constraint=constraint, error=error
        )

    def _notify_download(self, plugin_key: str, tag: str) -> None:
        task = asyncio.create_task(self._increment_download(plugin_key, tag))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _increment_download(self, plugin_key: str, tag: str) -> None:
        try:
            # Bounded by the client's own request timeout and retry
            await self.registry.increment_download(plugin_key, tag)
        except Exception as e:
            # Download counts are informative only
            self.logger.warning(
                "add.incrementDownloadError",
                "Could not notify the registry of the download.",
                pluginKey=plugin_key,
                version=tag,
                error=str(e) or type(e).__name__,
            )

    # Operations

    async def add(
        self,
        plugin_key: str,
        version_or_constraint: Version | str | None = None,
        add_to_manifest: bool = True,
    ) -> OperationResult:
        """
        Install a plugin into the plugins directory.

        Args:
            plugin_key: Plugin key
            version_or_constraint: Resolved Version, constraint (e.g. "^1.0.0"),
                "dev-*" ref, or None for the latest release
            add_to_manifest: Declare the plugin in the manifest

        Returns:
            OperationResult with status INSTALLED or FAILED
        """
        operation = _Operation(plugin_key)
        if isinstance(version_or_constraint, Version):
            constraint = version_or_constraint.tag
        else:
            constraint = version_or_constraint

        self.logger.info("add.start", "Adding plugin.", pluginKey=plugin_key, constraint=constraint)

        version = None
        try:
            validate_plugin_key(plugin_key)

            if isinstance(version_or_constraint, Version):
                version = version_or_constraint
            else:
                operation.enter(InstallState.RESOLVING)
                version = await self.resolve_version(plugin_key, constraint)

            entry = await self._install_version(operation, plugin_key, version)
        except PluginsManagerError as e:
            return self._fail(
                operation, "add", e, constraint, version.tag if version else None
            )

        async with self._state_lock:
            self.lockfile.add_plugin(plugin_key, entry)
            if add_to_manifest:
                self.manifest.add_plugin(plugin_key, constraint)
        operation.enter(InstallState.RECONCILED)

        self._notify_download(plugin_key, version.tag)

        self.logger.success(
            "add.end", "Plugin installed.", pluginKey=plugin_key, version=version.tag
        )
        return operation.result(
            OperationStatus.INSTALLED, version=version.tag, constraint=constraint
        )

    async def update(self, plugin_key: str) -> OperationResult:
        """
        Update a declared plugin to the best release for its constraint.

        The manifest constraint is kept. Nothing is fetched when the lockfile
        already pins the resolved tag and source reference.

        Args:
            plugin_key: Plugin key

        Returns:
            OperationResult with status UPDATED, ALREADY_UP_TO_DATE or FAILED
        """
        operation = _Operation(plugin_key)
        self.logger.info("update.start", "Updating plugin.", pluginKey=plugin_key)

        constraint = None
        version = None
        try:
            validate_plugin_key(plugin_key)

            if not self.manifest.has_plugin(plugin_key):
                raise PluginNotDeclared(
                    f"Could not find plugin in {self.manifest.file_path.name} file. "
                    f"Have you added it?",
                    plugin_key=plugin_key,
                )
            constraint = self.manifest.get_constraint(plugin_key)

            locked = self.lockfile.get_plugin(plugin_key)
            if locked is None:
                raise PluginNotInstalled(
                    f"Plugin is not in {self.lockfile.file_path.name} file. Install it first.",
                    plugin_key=plugin_key,
                    constraint=constraint,
                )

            operation.enter(InstallState.RESOLVING)
            version = await self.resolve_version(plugin_key, constraint)

            if locked.same_source(version.tag, version.commit_hash):
                if self.plugin_dir(plugin_key).is_dir():
                    self.logger.warning(
                        "update.alreadyUpToDate",
                        "Plugin is already up to date.",
                        pluginKey=plugin_key,
                        version=version.tag,
                    )
                    return operation.result(
                        OperationStatus.ALREADY_UP_TO_DATE,
                        version=version.tag,
                        constraint=constraint,
                    )

                self.logger.warning(
                    "update.missingDirectory",
                    "Plugin is locked but its directory is missing, reinstalling it.",
                    pluginKey=plugin_key,
                )

            entry = await self._install_version(operation, plugin_key, version)
        except PluginsManagerError as e:
            return self._fail(
                operation, "update", e, constraint, version.tag if version else None
            )

        async with self._state_lock:
            self.lockfile.add_plugin(plugin_key, entry)
        operation.enter(InstallState.RECONCILED)

        self._notify_download(plugin_key, version.tag)

        self.logger.success(
            "update.end", "Plugin was updated.", pluginKey=plugin_key, version=version.tag
        )
        return operation.result(
            OperationStatus.UPDATED, version=version.tag, constraint=constraint
        )

    def _remove_plugin_dir(self, plugin_dir: Path) -> OSError | None:
        try:
            if plugin_dir.is_dir() and not plugin_dir.is_symlink():
                shutil.rmtree(plugin_dir)
            else:
                plugin_dir.unlink()
        except OSError as e:
            return e
        return None

    def _prune_vendor_dir(self, vendor_dir: Path) -> None:
        try:
            if vendor_dir != self.plugins_dir and not any(vendor_dir.iterdir()):
                vendor_dir.rmdir()
        except OSError:
            # Left in place: another plugin of the vendor may be installing
            pass

    async def remove(self, plugin_key: str) -> OperationResult:
        """
        Remove an installed plugin and its manifest and lockfile entries.

        Args:
            plugin_key: Plugin key

        Returns:
            OperationResult with status REMOVED, NOTHING_TO_REMOVE or FAILED
        """
        operation = _Operation(plugin_key)
        self.logger.info("remove.start", "Removing plugin.", pluginKey=plugin_key)

        try:
            validate_plugin_key(plugin_key)
        except PluginsManagerError as e:
            return self._fail(operation, "remove", e)

        plugin_dir = self.plugin_dir(plugin_key)
        if not plugin_dir.exists() and not plugin_dir.is_symlink():
            self.logger.warning(
                "remove.nothingToRemove", "Nothing to remove.", pluginKey=plugin_key
            )
            return operation.result(OperationStatus.NOTHING_TO_REMOVE)

        error = await asyncio.to_thread(self._remove_plugin_dir, plugin_dir)
        if error is not None:
            self.logger.error(
                "remove.removeDirError",
                "Could not remove plugin directory.",
                pluginKey=plugin_key,
                pluginDir=str(plugin_dir),
                error=str(error),
            )
            still_present = (
                any(plugin_dir.iterdir()) if plugin_dir.is_dir() else plugin_dir.exists()
            )
            if still_present:
                return self._fail(
                    operation,
                    "remove",
                    InstallWriteFailed(
                        f"Could not remove plugin directory {plugin_dir}: {error}",
                        plugin_key=plugin_key,
                    ),
                )

        async with self._state_lock:
            self.manifest.remove_plugin(plugin_key)
            self.lockfile.remove_plugin(plugin_key)
        operation.enter(InstallState.RECONCILED)

        self._prune_vendor_dir(plugin_dir.parent)

        self.logger.success("remove.end", "Plugin removed.", pluginKey=plugin_key)
        return operation.result(OperationStatus.REMOVED)

    # Batch operations

    async def _run_batch(
        self, action: str, calls: list[tuple[str, Callable[[], Awaitable[OperationResult]]]]
    ) -> BatchResult:
        semaphore = asyncio.Semaphore(self.settings.concurrency)

        async def bounded(plugin_key, call):
            async with semaphore:
                try:
                    return await call()
                except Exception as e:
                    error = UnexpectedError(
                        f"Unexpected error: {str(e) or type(e).__name__}", plugin_key=plugin_key
                    )
                    error.__cause__ = e
                    return self._fail(_Operation(plugin_key), action, error)

        results = await asyncio.gather(*(bounded(key, call) for key, call in calls))
        return BatchResult(list(results))

    async def install(
        self, plugins: dict[str, str | None], add_to_manifest: bool = True
    ) -> BatchResult:
        """
        Add several plugins; a failure does not stop the others.

        Args:
            plugins: Plugin key -> constraint (None for latest)
            add_to_manifest: Declare the plugins in the manifest

        Returns:
            BatchResult with one result per plugin
        """
        if not plugins:
            self.logger.warning("install.nothingToInstall", "Nothing to install.")
            return BatchResult()

        return await self._run_batch(
            "add",
            [
                (key, lambda key=key, constraint=constraint: self.add(key, constraint, add_to_manifest))
                for key, constraint in plugins.items()
            ],
        )

    async def install_from_manifest(self) -> BatchResult:
        """Install every plugin declared in the manifest."""
        return await self.install(self.manifest.plugins, add_to_manifest=False)

    async def update_all(self, plugin_keys: list[str] | None = None) -> BatchResult:
        """
        Update several plugins (all declared plugins by default).

        Returns:
            BatchResult with one result per plugin
        """
        keys = list(self.manifest) if plugin_keys is None else plugin_keys
        if not keys:
            self.logger.warning("update.nothingToUpdate", "Nothing to update.")
            return BatchResult()

        return await self._run_batch(
            "update", [(key, lambda key=key: self.update(key)) for key in keys]
        )


__all__ = [
    "InstallState",
    "OperationStatus",
    "OperationResult",
    "BatchResult",
    "Installer",
]
