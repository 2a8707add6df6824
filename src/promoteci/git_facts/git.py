# git.py
# Small, focused wrapper around the Git CLI.
# The rest of the codebase never calls subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["rev-parse", "HEAD"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero
        FileNotFoundError: git is not installed
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def head_sha(cwd: Optional[str] = None) -> str:
    """
    Full SHA of HEAD.

    Commit statuses are attached to this sha when the CI system does not
    provide one.
    """
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_branch(cwd: Optional[str] = None) -> Optional[str]:
    """
    Name of the checked-out branch, or None on a detached HEAD.

    CI systems usually check out a detached commit, so the branch name
    should come from the trigger first; this is the local fallback.
    """
    name = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    if not name or name == "HEAD":
        return None
    return name


def get_remote_url(remote: str = "origin", cwd: Optional[str] = None) -> str:
    return _git(["remote", "get-url", remote], cwd=cwd)


def repo_name(cwd: Optional[str] = None) -> str:
    """Short repository name for headers: remote name if any, else directory name."""
    try:
        url = get_remote_url("origin", cwd=cwd)
        return url.rstrip("/").split("/")[-1].replace(".git", "")
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Path(cwd or ".").resolve().name
