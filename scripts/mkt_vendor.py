#!/usr/bin/env python3
"""Git and filesystem primitives used to vendor external skills.

Wraps `git clone --depth 1` / `git rev-parse HEAD` and the copy/remove
operations of add-external and sync-external. Every failure is raised as
VendorError so that callers can decide whether it is fatal (add-external)
or isolated to one source (sync-external).
"""

from __future__ import annotations

import re
import shutil
import subprocess
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from mkt_common import VendorError

# https://host/org/repo(.git) and git@host:org/repo(.git)
HTTPS_URL_PATTERN = re.compile(r"^https?://[^/]+/([^/]+)/([^/]+?)(?:\.git)?/?$")
SSH_URL_PATTERN = re.compile(r"^[\w.-]+@[^:]+:([^/]+)/([^/]+?)(?:\.git)?/?$")


@dataclass(frozen=True)
class RepoRef:
    """Owner and repository name parsed from a git URL."""

    org: str
    repo: str


def parse_repo_url(url: str) -> RepoRef | None:
    """Extract org/repo from an HTTPS or SSH git URL."""
    for pattern in (HTTPS_URL_PATTERN, SSH_URL_PATTERN):
        match = pattern.match(url.strip())
        if match:
            return RepoRef(org=match.group(1), repo=match.group(2))
    return None


def run_git(args: list[str], cwd: Path | None = None) -> str:
    """Run a git command and return its stripped stdout.

    Raises:
        VendorError: If git is missing or exits non-zero
    """
    cmd = ["git", *args]
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        raise VendorError("git executable not found on PATH") from e
    if result.returncode != 0:
        raise VendorError(f"Command failed: {' '.join(cmd)}\n{result.stderr.strip()}")
    return result.stdout.strip()


def clone_shallow(url: str, dest: Path) -> None:
    run_git(["clone", "--depth", "1", "--", url, str(dest)])


def head_sha(repo_dir: Path) -> str:
    return run_git(["rev-parse", "HEAD"], cwd=repo_dir)


@contextmanager
def fetched_repo(url: str) -> Iterator[tuple[Path, str]]:
    """Shallow-clone url into a temporary directory.

    Yields:
        (checkout directory, HEAD sha); the checkout is removed on exit
    """
    with tempfile.TemporaryDirectory(prefix="mkt-vendor-") as tmp:
        repo_dir = Path(tmp) / "repo"
        clone_shallow(url, repo_dir)
        yield repo_dir, head_sha(repo_dir)


def resolve_in_repo(repo_dir: Path, path_in_repo: str) -> Path:
    """Locate path_in_repo inside a checkout.

    Raises:
        VendorError: If the path escapes the checkout or does not exist
    """
    root = repo_dir.resolve()
    target = (repo_dir / path_in_repo).resolve()
    if target != root and root not in target.parents:
        raise VendorError(f"Path escapes the repository: {path_in_repo}")
    if not target.exists():
        raise VendorError(f"Path not found in repository: {path_in_repo}")
    return target


def replace_tree(src: Path, dest: Path) -> None:
    """Replace dest wholesale with a copy of src.

    Raises:
        VendorError: If removing or copying fails
    """
    try:
        if dest.is_symlink() or dest.is_file():
            dest.unlink()
        elif dest.exists():
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if src.is_dir():
            shutil.copytree(src, dest, symlinks=True, ignore=shutil.ignore_patterns(".git"))
        else:
            shutil.copy2(src, dest)
    except (OSError, shutil.Error) as e:
        raise VendorError(f"Failed to copy {src} to {dest}: {e}", dest) from e
