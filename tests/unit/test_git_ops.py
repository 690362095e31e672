"""
Tests for git checkout operations.

subprocess.run is mocked; git itself is never invoked.
"""

import subprocess
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from plugpm.plugin.git_ops import GitError, _run_git, checkout_plugin, fetch_reference


def completed(args, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr=stderr)


class FakeGit:
    """Records git invocations; fails the commands listed in failing."""

    def __init__(self, failing: tuple[str, ...] = (), on_checkout=None):
        self.commands: list[list[str]] = []
        self.failing = failing
        self.on_checkout = on_checkout

    def __call__(self, command, cwd=None, **kwargs):
        args = command[1:]
        self.commands.append(args)
        if self.failing and " ".join(args).startswith(self.failing):
            return completed(command, 128, stderr="fatal: not our ref")
        if args[0] == "checkout" and self.on_checkout:
            self.on_checkout(Path(cwd))
        return completed(command)


class TestRunGit:
    """Test git command execution."""

    def test_failure_raises(self):
        """Should raise GitError with git's message."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch(
                "subprocess.run",
                return_value=completed(["git"], 1, stderr="fatal: bad object\n"),
            ):
                with pytest.raises(GitError, match="git fetch failed: fatal: bad object"):
                    _run_git(["fetch", "origin"], Path(tmpdir))

    def test_missing_git(self):
        """Should explain that git is not installed."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("subprocess.run", side_effect=FileNotFoundError):
                with pytest.raises(GitError, match="not found"):
                    _run_git(["init"], Path(tmpdir))

    def test_timeout(self):
        """Should convert timeouts into GitError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch(
                "subprocess.run", side_effect=subprocess.TimeoutExpired(["git"], 5)
            ):
                with pytest.raises(GitError, match="timed out"):
                    _run_git(["fetch"], Path(tmpdir), timeout=5)


class TestFetchReference:
    """Test shallow fetch with fallback."""

    def test_shallow_fetch(self):
        """Should fetch the exact reference shallowly."""
        fake = FakeGit()
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("subprocess.run", fake):
                assert fetch_reference(Path(tmpdir), "abc123") == "FETCH_HEAD"

        assert fake.commands == [["fetch", "--quiet", "--depth", "1", "origin", "abc123"]]

    def test_fallback_to_full_fetch(self):
        """Should fetch everything when the server refuses a bare commit."""
        fake = FakeGit(failing=("fetch --quiet --depth",))
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("subprocess.run", fake):
                assert fetch_reference(Path(tmpdir), "abc123") == "abc123"

        assert fake.commands[-1] == ["fetch", "--quiet", "--tags", "origin"]


class TestCheckoutPlugin:
    """Test full plugin checkout."""

    def test_sparse_checkout_of_subfolder(self):
        """Should restrict the checkout to the plugin folder and return it."""
        fake = FakeGit(on_checkout=lambda repo: (repo / "plugin").mkdir())

        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "checkout"
            with patch("subprocess.run", fake):
                path = checkout_plugin(
                    "https://git.example.org/acme/seo.git", target, "abc123", "plugin"
                )

            assert path == target / "plugin"
            sparse = (target / ".git" / "info" / "sparse-checkout").read_text()
            assert sparse == "/plugin/\n"

        assert fake.commands[0] == ["init", "--quiet"]
        assert ["remote", "add", "origin", "https://git.example.org/acme/seo.git"] in fake.commands
        assert ["config", "core.sparseCheckout", "true"] in fake.commands
        assert fake.commands[-1] == ["checkout", "--quiet", "--detach", "FETCH_HEAD"]

    def test_missing_subfolder(self):
        """Should fail when the release has no plugin folder."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("subprocess.run", FakeGit()):
                with pytest.raises(GitError, match="not found"):
                    checkout_plugin(
                        "https://git.example.org/acme/seo.git", Path(tmpdir) / "c", "abc", "plugin"
                    )

    def test_repository_root(self):
        """Should return the checkout itself without a subfolder."""
        fake = FakeGit()
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "checkout"
            with patch("subprocess.run", fake):
                assert checkout_plugin("https://git.example.org/acme/seo.git", target, "abc") == target

        assert ["config", "core.sparseCheckout", "true"] not in fake.commands

    def test_rejects_option_like_values(self):
        """Should refuse URLs and references git would read as options."""
        fake = FakeGit()
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("subprocess.run", fake):
                with pytest.raises(GitError, match="reference"):
                    checkout_plugin(
                        "https://git.example.org/acme/seo.git",
                        Path(tmpdir) / "c",
                        "--upload-pack=touch pwned",
                    )
                with pytest.raises(GitError, match="repository URL"):
                    checkout_plugin("--upload-pack=touch pwned", Path(tmpdir) / "d", "abc")

        assert fake.commands == []
