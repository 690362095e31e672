"""
Git Operations for Plugin Fetching.

This module checks out one plugin release from its source repository.

Key features:
- Fresh repository per checkout (git init + remote add)
- Sparse checkout restricted to the plugin subfolder
- Shallow fetch of the exact commit, full fetch as fallback
- Detached checkout of the requested reference
"""

import subprocess
from pathlib import Path


class GitError(Exception):
    """Base exception for git-related errors."""

    pass


def _reject_option(value: str, name: str) -> None:
    """Refuse positional values git would parse as options."""
    if value.startswith("-"):
        raise GitError(f"Invalid {name} {value!r}: must not start with '-'")


def _run_git(args: list[str], cwd: Path, timeout: float | None = None) -> str:
    """
    Run a git command.

    Args:
        args: Arguments after "git"
        cwd: Working directory
        timeout: Timeout in seconds

    Returns:
        Standard output of the command

    Raises:
        GitError: If git is missing, times out or exits non-zero
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitError("git command not found. Please install git.") from e
    except subprocess.TimeoutExpired as e:
        raise GitError(f"git {args[0]} timed out after {timeout} seconds") from e

    if result.returncode != 0:
        raise GitError(f"git {args[0]} failed: {(result.stderr or result.stdout).strip()}")

    return result.stdout


def init_repository(repo_dir: Path, repo_url: str) -> None:
    """
    Create an empty repository pointing at a remote.

    Args:
        repo_dir: Directory to initialize (created if missing)
        repo_url: Remote repository URL

    Raises:
        GitError: If initialization fails
    """
    repo_dir.mkdir(parents=True, exist_ok=True)
    _run_git(["init", "--quiet"], repo_dir)
    _run_git(["remote", "add", "origin", repo_url], repo_dir)


def enable_sparse_checkout(repo_dir: Path, subfolder: str) -> None:
    """
    Restrict the working tree to one subfolder.

    Args:
        repo_dir: Initialized repository
        subfolder: Repository-relative folder to keep

    Raises:
        GitError: If configuration fails
    """
    _run_git(["config", "core.sparseCheckout", "true"], repo_dir)

    sparse_file = repo_dir / ".git" / "info" / "sparse-checkout"
    try:
        sparse_file.parent.mkdir(parents=True, exist_ok=True)
        sparse_file.write_text(f"/{subfolder.strip('/')}/\n", encoding="utf-8")
    except OSError as e:
        raise GitError(f"Failed to write sparse-checkout file: {e}") from e


def fetch_reference(repo_dir: Path, ref: str, timeout: float | None = None) -> str:
    """
    Fetch a reference from origin.

    Tries a shallow fetch of the reference first, then falls back to
    fetching the whole history (servers may refuse to serve a bare commit).

    Args:
        repo_dir: Initialized repository
        ref: Commit hash, tag or branch
        timeout: Timeout in seconds per git command

    Returns:
        Revision to check out

    Raises:
        GitError: If the reference cannot be fetched
    """
    try:
        _run_git(["fetch", "--quiet", "--depth", "1", "origin", ref], repo_dir, timeout)
        return "FETCH_HEAD"
    except GitError:
        _run_git(["fetch", "--quiet", "--tags", "origin"], repo_dir, timeout)
        return ref


def checkout_detached(repo_dir: Path, revision: str) -> None:
    """
    Check out a revision in detached HEAD mode.

    Raises:
        GitError: If checkout fails
    """
    _run_git(["checkout", "--quiet", "--detach", revision], repo_dir)


def checkout_plugin(
    repo_url: str,
    target_dir: Path,
    ref: str,
    subfolder: str = "",
    timeout: float | None = None,
) -> Path:
    """
    Check out one plugin release into a directory.

    Args:
        repo_url: Git repository URL
        target_dir: Directory for the checkout (should be empty)
        ref: Commit hash or ref of the release
        subfolder: Repository folder holding the plugin ("" for the root)
        timeout: Timeout in seconds for network commands

    Returns:
        Path of the plugin files inside the checkout

    Raises:
        GitError: If any git step fails or the subfolder is missing
    """
    _reject_option(repo_url, "repository URL")
    _reject_option(ref, "reference")

    init_repository(target_dir, repo_url)

    if subfolder:
        enable_sparse_checkout(target_dir, subfolder)

    revision = fetch_reference(target_dir, ref, timeout)
    checkout_detached(target_dir, revision)

    plugin_dir = target_dir / subfolder if subfolder else target_dir
    if not plugin_dir.is_dir():
        raise GitError(f"Plugin folder '{subfolder}' not found in {repo_url}@{ref}")

    return plugin_dir
