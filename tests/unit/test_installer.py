"""
Tests for the plugin installer.

This test suite covers:
1. Add (resolution, fetch, verification, install, reconciliation)
2. Update (up-to-date short circuit, replacement, missing declarations)
3. Remove (present and absent plugins)
4. Batch install with partial failures
5. Session persistence and download notifications

The registry and fetcher are in-memory fakes; nothing touches the network.
"""

import asyncio
import dataclasses
import json
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from plugpm.config.settings import Settings
from plugpm.errors import (
    CorruptArtifact,
    InstallWriteFailed,
    InvalidConstraint,
    InvalidPluginKey,
    NoSatisfyingVersion,
    PluginNotDeclared,
    PluginNotInstalled,
    UnexpectedError,
    VersionNotFound,
)
from plugpm.logger import PluginsLogger
from plugpm.plugin.fetcher import ARCHIVE, GIT, FetchResult
from plugpm.plugin.installer import Installer, InstallState, OperationStatus
from plugpm.plugin.verifier import compute_metadata
from plugpm.registry.entities import Plugin, Version, VersionList

FULL_STATES = [
    InstallState.IDLE,
    InstallState.RESOLVING,
    InstallState.FETCHING,
    InstallState.VERIFYING,
    InstallState.INSTALLING,
    InstallState.RECONCILED,
]


def files_for(key: str, tag: str) -> dict[str, bytes]:
    return {"index.php": f"<?php // {key} {tag}".encode(), "src/main.php": b"<?php"}


def checksum_of(files: dict[str, bytes]) -> str:
    with tempfile.TemporaryDirectory() as tmpdir:
        write_tree(Path(tmpdir), files)
        return compute_metadata(tmpdir).checksum


def write_tree(root: Path, files: dict[str, bytes]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


def release(key: str, tag: str, checksum: str | None = "auto", archive: bool = True) -> Version:
    vendor, name = key.split("/")
    if checksum == "auto":
        checksum = checksum_of(files_for(key, tag))
    return Version(
        plugin=Plugin(
            key=key,
            vendor=vendor,
            name=name,
            repository_url=f"https://git.example.org/{key}.git",
        ),
        tag=tag,
        commit_hash=f"commit-{tag}",
        archive_url=f"https://cdn.example.org/{key}/{tag}.zip" if archive else None,
        archive_checksum=checksum,
    )


class FakeRegistry:
    """In-memory registry: plugin key -> releases in ascending order."""

    def __init__(self, releases: dict[str, list[Version]]):
        self.releases = releases
        self.downloads: list[tuple[str, str]] = []
        self.requests: list[tuple[str, str | None]] = []

    async def get_version(self, plugin_key, version=None):
        self.requests.append((plugin_key, version))
        releases = self.releases.get(plugin_key)
        if not releases:
            return None
        if version in (None, "latest"):
            return releases[-1]
        for candidate in releases:
            if candidate.tag == version:
                return candidate
        return None

    async def get_version_list(self, plugin_key):
        self.requests.append((plugin_key, "list"))
        releases = self.releases.get(plugin_key)
        if not releases:
            return None
        return VersionList(
            plugin=plugin_key,
            latest=releases[-1].tag,
            all_tags=tuple(candidate.tag for candidate in releases),
        )

    async def increment_download(self, plugin_key, tag):
        self.downloads.append((plugin_key, tag))
        return True


class FakeFetcher:
    """Writes the files of a release into the workspace."""

    def __init__(self, strategy: str = ARCHIVE):
        self.strategy = strategy
        self.calls: list[tuple[str, str]] = []

    async def fetch(self, version: Version, workspace: Path) -> FetchResult:
        self.calls.append((version.plugin_key, version.tag))
        target = workspace / f"0-{self.strategy}"
        write_tree(target, files_for(version.plugin_key, version.tag))
        return FetchResult(path=target, strategy=self.strategy)


class BrokenFetcher(FakeFetcher):
    """Fails with a foreign exception for the given plugins."""

    def __init__(self, broken: set[str]):
        super().__init__()
        self.broken = broken

    async def fetch(self, version: Version, workspace: Path) -> FetchResult:
        if version.plugin_key in self.broken:
            raise ValueError("malformed release")
        return await super().fetch(version, workspace)


REGISTRY_RELEASES = {
    "acme/seo": [release("acme/seo", tag) for tag in ("1.0.0", "1.2.0", "1.2.5", "1.3.0", "2.0.0")],
    "acme/stats": [release("acme/stats", "0.9.0"), release("acme/stats", "dev-main")],
    "acme/corrupt": [release("acme/corrupt", "1.0.0", checksum="0" * 64)],
    "acme/unsigned": [release("acme/unsigned", "1.0.0", checksum=None)],
}


class Workspace:
    """Temporary project root with settings, fakes and helpers."""

    def __init__(self, root: Path, fetcher_strategy: str = ARCHIVE):
        self.root = root
        self.settings = Settings(
            registry_url="https://registry.example.org",
            plugins_dir=root / "plugins",
            state_dir=root,
            temp_dir=root / "tmp",
            concurrency=2,
        )
        self.registry = FakeRegistry(REGISTRY_RELEASES)
        self.fetcher = FakeFetcher(fetcher_strategy)
        self.logger = PluginsLogger()

    def installer(self) -> Installer:
        return Installer(self.settings, self.registry, self.fetcher, self.logger)

    def declare(self, plugins: dict, locked: dict | None = None) -> None:
        (self.root / "plugins.json").write_text(json.dumps({"plugins": plugins}))
        if locked is not None:
            (self.root / "plugins-lock.json").write_text(
                json.dumps({"version": "1.0", "plugins": locked})
            )

    def install_files(self, key: str, files: dict[str, bytes]) -> None:
        write_tree(self.settings.plugins_dir.joinpath(*key.split("/")), files)

    def temp_entries(self) -> list[Path]:
        return list(self.settings.temp_dir.iterdir())

    def read_json(self, name: str) -> dict:
        return json.loads((self.root / name).read_text())


@pytest.fixture
def workspace():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Workspace(Path(tmpdir))


def lock_entry(tag: str, key: str = "acme/seo") -> dict:
    return {
        "version": tag,
        "source": {"url": f"https://git.example.org/{key}.git", "reference": f"commit-{tag}"},
    }


class TestInstallerSetup:
    """Test installer construction."""

    def test_creates_directories(self, workspace):
        """Should create missing plugins and temp directories."""
        workspace.installer()

        assert workspace.settings.plugins_dir.is_dir()
        assert workspace.settings.temp_dir.is_dir()
        assert "construct.createPluginsDirSuccess" in workspace.logger.codes()
        assert "construct.createTempDirSuccess" in workspace.logger.codes()

    def test_plugin_dir(self, workspace):
        """Should place plugins under vendor/name."""
        installer = workspace.installer()

        assert installer.plugin_dir("acme/seo") == workspace.settings.plugins_dir / "acme" / "seo"


class TestAdd:
    """Test plugin installation."""

    @pytest.mark.asyncio
    async def test_add_resolves_and_installs(self, workspace):
        """Should install the highest matching release and record it."""
        async with workspace.installer() as installer:
            result = await installer.add("acme/seo", "^1.2.0")

            assert result.status is OperationStatus.INSTALLED
            assert result.version == "1.3.0"
            assert result.states == FULL_STATES
            assert result.ok

        plugin_dir = workspace.settings.plugins_dir / "acme" / "seo"
        assert (plugin_dir / "index.php").read_bytes() == files_for("acme/seo", "1.3.0")["index.php"]

        assert workspace.read_json("plugins.json")["plugins"] == {"acme/seo": "^1.2.0"}
        locked = workspace.read_json("plugins-lock.json")["plugins"]["acme/seo"]
        assert locked["version"] == "1.3.0"
        assert locked["source"]["reference"] == "commit-1.3.0"
        assert locked["dist"]["checksum"] == checksum_of(files_for("acme/seo", "1.3.0"))

        assert workspace.temp_entries() == []
        assert workspace.registry.downloads == [("acme/seo", "1.3.0")]
        assert "add.end" in workspace.logger.codes()

    @pytest.mark.asyncio
    async def test_add_latest(self, workspace):
        """Should ask the registry for the latest release when no constraint is given."""
        async with workspace.installer() as installer:
            result = await installer.add("acme/seo")

        assert result.version == "2.0.0"
        assert ("acme/seo", None) in workspace.registry.requests
        assert workspace.read_json("plugins.json")["plugins"] == {"acme/seo": None}

    @pytest.mark.asyncio
    async def test_add_dev_ref(self, workspace):
        """Should fetch dev refs directly, without range resolution."""
        async with workspace.installer() as installer:
            result = await installer.add("acme/stats", "dev-main")

        assert result.version == "dev-main"
        assert ("acme/stats", "list") not in workspace.registry.requests

    @pytest.mark.asyncio
    async def test_add_resolved_version(self, workspace):
        """Should skip resolution for a resolved Version and store its tag."""
        version = REGISTRY_RELEASES["acme/seo"][1]

        async with workspace.installer() as installer:
            result = await installer.add("acme/seo", version)

        assert InstallState.RESOLVING not in result.states
        assert workspace.registry.requests == []
        assert workspace.read_json("plugins.json")["plugins"] == {"acme/seo": "1.2.0"}

    @pytest.mark.asyncio
    async def test_add_without_manifest(self, workspace):
        """Should leave the manifest alone when asked to."""
        async with workspace.installer() as installer:
            await installer.add("acme/seo", "^1.0.0", add_to_manifest=False)

            assert not installer.manifest.has_changed
            assert installer.lockfile.has_plugin("acme/seo")

    @pytest.mark.asyncio
    async def test_add_from_git(self):
        """Should lock no dist block for git checkouts."""
        with tempfile.TemporaryDirectory() as tmpdir:
            workspace = Workspace(Path(tmpdir), fetcher_strategy=GIT)

            async with workspace.installer() as installer:
                await installer.add("acme/seo", "1.0.0")

            locked = workspace.read_json("plugins-lock.json")["plugins"]["acme/seo"]
            assert "dist" not in locked
            assert locked["source"]["url"] == "https://git.example.org/acme/seo.git"

    @pytest.mark.asyncio
    async def test_add_corrupt_artifact(self, workspace):
        """Should abort on checksum mismatch without touching any state."""
        installer = workspace.installer()

        result = await installer.add("acme/corrupt", "^1.0.0")

        assert result.status is OperationStatus.FAILED
        assert isinstance(result.error, CorruptArtifact)
        assert result.error.plugin_key == "acme/corrupt"
        assert result.states[-2:] == [InstallState.VERIFYING, InstallState.FAILED]

        assert not (workspace.settings.plugins_dir / "acme" / "corrupt").exists()
        assert not installer.manifest.has_changed
        assert not installer.lockfile.has_changed
        assert workspace.temp_entries() == []
        assert "add.corruptArtifact" in workspace.logger.codes()

        await installer.aclose()
        assert workspace.registry.downloads == []

    @pytest.mark.asyncio
    async def test_add_missing_checksum(self, workspace):
        """Should warn and install when the registry declares no checksum."""
        async with workspace.installer() as installer:
            result = await installer.add("acme/unsigned", "1.0.0")

        assert result.status is OperationStatus.INSTALLED
        assert "verify.missingChecksum" in workspace.logger.codes()
        locked = workspace.read_json("plugins-lock.json")["plugins"]["acme/unsigned"]
        assert locked["dist"]["checksum"] == checksum_of(files_for("acme/unsigned", "1.0.0"))

    @pytest.mark.asyncio
    async def test_add_invalid_key(self, workspace):
        """Should reject malformed keys before any network access."""
        async with workspace.installer() as installer:
            result = await installer.add("not-a-key", "^1.0.0")

        assert isinstance(result.error, InvalidPluginKey)
        assert workspace.registry.requests == []

    @pytest.mark.asyncio
    async def test_add_invalid_constraint(self, workspace):
        """Should fail on unparsable constraints before listing versions."""
        async with workspace.installer() as installer:
            result = await installer.add("acme/seo", "one point two")

        assert isinstance(result.error, InvalidConstraint)
        assert result.error.plugin_key == "acme/seo"
        assert workspace.registry.requests == []
        assert workspace.fetcher.calls == []

    @pytest.mark.asyncio
    async def test_add_no_satisfying_version(self, workspace):
        """Should fail when no release matches."""
        async with workspace.installer() as installer:
            result = await installer.add("acme/seo", "^5.0.0")

        assert isinstance(result.error, NoSatisfyingVersion)
        assert result.error.constraint == "^5.0.0"
        assert not (workspace.root / "plugins.json").exists()

    @pytest.mark.asyncio
    async def test_add_unknown_plugin(self, workspace):
        """Should fail with VersionNotFound for unknown plugins."""
        async with workspace.installer() as installer:
            result = await installer.add("acme/missing", "^1.0.0")

        assert isinstance(result.error, VersionNotFound)

    @pytest.mark.asyncio
    async def test_download_notification_failure_is_ignored(self, workspace):
        """Should complete the add when the download counter fails."""
        workspace.registry.increment_download = AsyncMock(side_effect=RuntimeError("boom"))

        async with workspace.installer() as installer:
            result = await installer.add("acme/seo", "1.0.0")

        assert result.status is OperationStatus.INSTALLED
        assert "add.incrementDownloadError" in workspace.logger.codes()

    @pytest.mark.asyncio
    async def test_download_notification_retry_not_cancelled(self, workspace):
        """Should let a slow download counter finish past the request timeout."""
        workspace.settings = dataclasses.replace(workspace.settings, timeout=0.01)

        async def slow_increment(plugin_key, tag):
            await asyncio.sleep(0.05)
            workspace.registry.downloads.append((plugin_key, tag))
            return True

        workspace.registry.increment_download = slow_increment

        async with workspace.installer() as installer:
            await installer.add("acme/seo", "1.0.0")

        assert workspace.registry.downloads == [("acme/seo", "1.0.0")]
        assert "add.incrementDownloadError" not in workspace.logger.codes()

    @pytest.mark.asyncio
    async def test_add_unreadable_content(self, workspace):
        """Should fail cleanly when fetched files cannot be read."""
        installer = workspace.installer()

        with patch(
            "plugpm.plugin.installer.compute_metadata", side_effect=PermissionError("denied")
        ):
            result = await installer.add("acme/unsigned", "1.0.0")

        assert result.status is OperationStatus.FAILED
        assert isinstance(result.error, InstallWriteFailed)
        assert result.states[-2:] == [InstallState.VERIFYING, InstallState.FAILED]
        assert not (workspace.settings.plugins_dir / "acme" / "unsigned").exists()
        assert not installer.lockfile.has_changed
        assert workspace.temp_entries() == []


class TestUpdate:
    """Test plugin updates."""

    @pytest.mark.asyncio
    async def test_already_up_to_date(self, workspace):
        """Should not fetch when the lockfile pins the resolved release."""
        workspace.declare({"acme/seo": "^1.2.0"}, {"acme/seo": lock_entry("1.3.0")})
        workspace.install_files("acme/seo", files_for("acme/seo", "1.3.0"))

        async with workspace.installer() as installer:
            result = await installer.update("acme/seo")

            assert result.status is OperationStatus.ALREADY_UP_TO_DATE
            assert result.version == "1.3.0"
            assert not installer.lockfile.has_changed

        assert workspace.fetcher.calls == []
        assert "update.alreadyUpToDate" in workspace.logger.codes()

    @pytest.mark.asyncio
    async def test_update_replaces_content(self, workspace):
        """Should install the newer release and drop stale files."""
        workspace.declare({"acme/seo": "^1.2.0"}, {"acme/seo": lock_entry("1.2.0")})
        workspace.install_files("acme/seo", {"index.php": b"old", "old.php": b"stale"})

        async with workspace.installer() as installer:
            result = await installer.update("acme/seo")

        assert result.status is OperationStatus.UPDATED
        assert result.version == "1.3.0"
        assert result.states == FULL_STATES

        plugin_dir = workspace.settings.plugins_dir / "acme" / "seo"
        assert not (plugin_dir / "old.php").exists()
        assert (plugin_dir / "src" / "main.php").exists()
        assert [p.name for p in plugin_dir.parent.iterdir()] == ["seo"]

        assert workspace.read_json("plugins.json")["plugins"] == {"acme/seo": "^1.2.0"}
        assert workspace.read_json("plugins-lock.json")["plugins"]["acme/seo"]["version"] == "1.3.0"

    @pytest.mark.asyncio
    async def test_update_reinstalls_missing_directory(self, workspace):
        """Should reinstall a locked plugin whose directory disappeared."""
        workspace.declare({"acme/seo": "^1.2.0"}, {"acme/seo": lock_entry("1.3.0")})

        async with workspace.installer() as installer:
            result = await installer.update("acme/seo")

        assert result.status is OperationStatus.UPDATED
        assert workspace.fetcher.calls == [("acme/seo", "1.3.0")]

    @pytest.mark.asyncio
    async def test_update_corrupt_keeps_previous_content(self, workspace):
        """Should keep the installed version when the new artifact is corrupt."""
        corrupt = release("acme/seo", "1.4.0", checksum="0" * 64)
        workspace.registry.releases = {"acme/seo": REGISTRY_RELEASES["acme/seo"][:4] + [corrupt]}
        workspace.declare({"acme/seo": "^1.2.0"}, {"acme/seo": lock_entry("1.3.0")})
        workspace.install_files("acme/seo", {"index.php": b"current"})

        installer = workspace.installer()
        result = await installer.update("acme/seo")

        assert isinstance(result.error, CorruptArtifact)
        assert (workspace.settings.plugins_dir / "acme" / "seo" / "index.php").read_bytes() == b"current"
        assert installer.lockfile.get_plugin("acme/seo").version == "1.3.0"
        assert not installer.lockfile.has_changed
        assert workspace.temp_entries() == []

    @pytest.mark.asyncio
    async def test_update_undeclared(self, workspace):
        """Should fail for plugins missing from the manifest."""
        async with workspace.installer() as installer:
            result = await installer.update("acme/seo")

        assert isinstance(result.error, PluginNotDeclared)
        assert workspace.registry.requests == []

    @pytest.mark.asyncio
    async def test_update_not_installed(self, workspace):
        """Should fail for declared plugins without a lock entry."""
        workspace.declare({"acme/seo": "^1.2.0"})

        async with workspace.installer() as installer:
            result = await installer.update("acme/seo")

        assert isinstance(result.error, PluginNotInstalled)
        assert result.error.constraint == "^1.2.0"

    @pytest.mark.asyncio
    async def test_update_all(self, workspace):
        """Should update every declared plugin."""
        workspace.declare(
            {"acme/seo": "^1.2.0", "acme/stats": None},
            {"acme/seo": lock_entry("1.2.0"), "acme/stats": lock_entry("dev-main", "acme/stats")},
        )
        workspace.install_files("acme/seo", {"index.php": b"old"})
        workspace.install_files("acme/stats", {"index.php": b"old"})

        async with workspace.installer() as installer:
            batch = await installer.update_all()

        statuses = {result.plugin_key: result.status for result in batch.results}
        assert statuses == {
            "acme/seo": OperationStatus.UPDATED,
            "acme/stats": OperationStatus.ALREADY_UP_TO_DATE,
        }
        assert batch.ok


class TestRemove:
    """Test plugin removal."""

    @pytest.mark.asyncio
    async def test_remove_missing(self, workspace):
        """Should report nothing to remove and change nothing."""
        workspace.declare({"vendor/missing": "^1.0.0"})

        async with workspace.installer() as installer:
            result = await installer.remove("vendor/missing")

            assert result.status is OperationStatus.NOTHING_TO_REMOVE
            assert result.ok
            assert not installer.manifest.has_changed
            assert not installer.lockfile.has_changed

        assert "remove.nothingToRemove" in workspace.logger.codes()

    @pytest.mark.asyncio
    async def test_remove_installed(self, workspace):
        """Should delete the directory and both state entries."""
        workspace.declare(
            {"acme/seo": "^1.2.0", "acme/stats": None},
            {"acme/seo": lock_entry("1.3.0"), "acme/stats": lock_entry("0.9.0", "acme/stats")},
        )
        workspace.install_files("acme/seo", files_for("acme/seo", "1.3.0"))

        async with workspace.installer() as installer:
            result = await installer.remove("acme/seo")

        assert result.status is OperationStatus.REMOVED
        assert result.states[-1] is InstallState.RECONCILED
        assert not (workspace.settings.plugins_dir / "acme").exists()
        assert workspace.read_json("plugins.json")["plugins"] == {"acme/stats": None}
        assert list(workspace.read_json("plugins-lock.json")["plugins"]) == ["acme/stats"]

    @pytest.mark.asyncio
    async def test_remove_keeps_vendor_with_other_plugins(self, workspace):
        """Should keep the vendor directory while it holds other plugins."""
        workspace.install_files("acme/seo", {"index.php": b""})
        workspace.install_files("acme/stats", {"index.php": b""})

        async with workspace.installer() as installer:
            await installer.remove("acme/seo")

        assert (workspace.settings.plugins_dir / "acme" / "stats").is_dir()

    @pytest.mark.asyncio
    async def test_remove_invalid_key(self, workspace):
        """Should fail on malformed keys."""
        async with workspace.installer() as installer:
            result = await installer.remove("../etc")

        assert isinstance(result.error, InvalidPluginKey)


class TestBatchInstall:
    """Test batch installation."""

    @pytest.mark.asyncio
    async def test_unexpected_error_is_isolated(self, workspace):
        """Should keep installing and persist siblings when one plugin raises."""
        workspace.fetcher = BrokenFetcher({"acme/stats"})

        async with workspace.installer() as installer:
            batch = await installer.install({"acme/seo": "1.0.0", "acme/stats": "0.9.0"})

        assert [result.plugin_key for result in batch.succeeded] == ["acme/seo"]
        failed = batch.failed[0]
        assert failed.plugin_key == "acme/stats"
        assert isinstance(failed.error, UnexpectedError)
        assert isinstance(failed.error.__cause__, ValueError)
        assert "add.unexpectedError" in workspace.logger.codes()

        assert list(workspace.read_json("plugins-lock.json")["plugins"]) == ["acme/seo"]
        assert (workspace.settings.plugins_dir / "acme" / "seo").is_dir()
        assert not (workspace.settings.plugins_dir / "acme" / "stats").exists()
        assert workspace.temp_entries() == []

    @pytest.mark.asyncio
    async def test_partial_failure(self, workspace):
        """Should install what it can and report each failure."""
        async with workspace.installer() as installer:
            batch = await installer.install(
                {"acme/seo": "^1.2.0", "acme/missing": "^1.0.0", "acme/stats": None}
            )

        assert not batch.ok
        assert sorted(result.plugin_key for result in batch.succeeded) == ["acme/seo", "acme/stats"]
        assert [result.plugin_key for result in batch.failed] == ["acme/missing"]
        assert isinstance(batch.failed[0].error, VersionNotFound)

        assert list(workspace.read_json("plugins-lock.json")["plugins"]) == ["acme/seo", "acme/stats"]
        assert workspace.read_json("plugins.json")["plugins"] == {
            "acme/seo": "^1.2.0",
            "acme/stats": None,
        }

    @pytest.mark.asyncio
    async def test_install_from_manifest(self, workspace):
        """Should install declared plugins without rewriting the manifest."""
        workspace.declare({"acme/seo": "~1.2.0", "acme/stats": "dev-main"})

        async with workspace.installer() as installer:
            batch = await installer.install_from_manifest()

            assert batch.ok
            assert not installer.manifest.has_changed

        versions = {result.plugin_key: result.version for result in batch.results}
        assert versions == {"acme/seo": "1.2.5", "acme/stats": "dev-main"}

    @pytest.mark.asyncio
    async def test_nothing_to_install(self, workspace):
        """Should log and return an empty batch."""
        async with workspace.installer() as installer:
            batch = await installer.install({})

        assert batch.results == []
        assert "install.nothingToInstall" in workspace.logger.codes()


class TestSession:
    """Test session persistence."""

    @pytest.mark.asyncio
    async def test_no_write_without_changes(self, workspace):
        """Should not create state files when nothing changed."""
        async with workspace.installer() as installer:
            await installer.remove("acme/seo")

        assert not (workspace.root / "plugins.json").exists()
        assert not (workspace.root / "plugins-lock.json").exists()

    @pytest.mark.asyncio
    async def test_no_write_on_exception(self, workspace):
        """Should not save state when the session fails."""
        with pytest.raises(RuntimeError):
            async with workspace.installer() as installer:
                await installer.add("acme/seo", "1.0.0")
                raise RuntimeError("interrupted")

        assert not (workspace.root / "plugins-lock.json").exists()

    @pytest.mark.asyncio
    async def test_state_survives_new_session(self, workspace):
        """Should read back what a previous session saved."""
        async with workspace.installer() as installer:
            await installer.add("acme/seo", "^1.2.0")

        async with workspace.installer() as installer:
            result = await installer.update("acme/seo")

        assert result.status is OperationStatus.ALREADY_UP_TO_DATE
        assert workspace.fetcher.calls == [("acme/seo", "1.3.0")]
