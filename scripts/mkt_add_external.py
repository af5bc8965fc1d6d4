#!/usr/bin/env python3
"""
Add an external skill to the marketplace by vendoring it from a git repository.

Usage:
    uv run python scripts/mkt_add_external.py <repo-url> <path-in-repo> [--name <custom-name>]

Examples:
    uv run python scripts/mkt_add_external.py https://github.com/org/skills skills/code-review
    uv run python scripts/mkt_add_external.py git@github.com:org/repo.git skills/lint --name strict-lint

This will:
    1. Shallow-clone the repository to a temporary directory
    2. Copy the path to plugins/external/<org>/<repo>/skills/<name>/
    3. Create or update plugins/external/<org>/<repo>/.source.json
       (a path already tracked is not added twice; a --name is remembered
       so that mkt-sync-external updates the same directory)

Run mkt-generate-lock afterwards to update the lockfile.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from mkt_common import (
    EXIT_FAILURE,
    EXIT_OK,
    SKILLS_DIRNAME,
    SOURCE_FILENAME,
    MarketplaceError,
    MarketplacePaths,
    VendorError,
    error,
    get_marketplace_paths,
    info,
    is_valid_kebab_case,
    short_sha,
    success,
    utc_now_iso,
)
from mkt_provenance import (
    ProvenanceRecord,
    default_dir_name,
    load_provenance,
    merge_names,
    merge_paths,
    write_provenance,
)
from mkt_vendor import fetched_repo, parse_repo_url, replace_tree, resolve_in_repo


def skill_name_for(path_in_repo: str, custom_name: str | None = None) -> str:
    """Destination directory name: --name, else the last path component."""
    if custom_name:
        return custom_name
    return default_dir_name(path_in_repo)


def add_external(
    paths: MarketplacePaths, repo_url: str, path_in_repo: str, custom_name: str | None = None
) -> tuple[Path, ProvenanceRecord]:
    """Vendor path_in_repo from repo_url into plugins/external/.

    Returns:
        (destination skill directory, record written)

    Raises:
        VendorError: On invalid arguments, git failures or copy failures
    """
    repo = parse_repo_url(repo_url)
    if repo is None:
        raise VendorError(f"Invalid repository URL: {repo_url}")

    skill_name = skill_name_for(path_in_repo, custom_name)
    if not is_valid_kebab_case(skill_name):
        raise VendorError(f'Invalid skill name: "{skill_name}" (must be kebab-case, use --name)')

    dest_dir = paths.external_dir / repo.org / repo.repo
    dest_skill_dir = dest_dir / SKILLS_DIRNAME / skill_name
    record_path = dest_dir / SOURCE_FILENAME

    info(f"Cloning {repo_url}...")
    with fetched_repo(repo_url) as (repo_dir, sha):
        info(f"SHA: {short_sha(sha)}")
        src = resolve_in_repo(repo_dir, path_in_repo)
        info(f"Copying to {paths.relative(dest_skill_dir)}...")
        replace_tree(src, dest_skill_dir)

    existing = load_provenance(record_path)
    tracked = merge_paths(existing.paths if existing else [], path_in_repo)
    names = merge_names(existing.names if existing else {}, path_in_repo, skill_name)
    record = ProvenanceRecord(url=repo_url, sha=sha, synced_at=utc_now_iso(), paths=tracked, names=names)
    write_provenance(record_path, record)
    return dest_skill_dir, record


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Vendor an external skill from a git repository")
    parser.add_argument("repo_url", help="Repository URL (https://host/org/repo or git@host:org/repo.git)")
    parser.add_argument("path_in_repo", help="Skill directory inside the repository")
    parser.add_argument("--name", help="Skill directory name (default: last component of path_in_repo)")
    parser.add_argument("--root", help="Marketplace root (default: $MARKETPLACE_ROOT or current directory)")
    args = parser.parse_args(argv)

    paths = get_marketplace_paths(args.root)
    print(f"Adding external skill from {args.repo_url}")
    print(f"  Path: {args.path_in_repo}\n")

    try:
        dest_skill_dir, record = add_external(paths, args.repo_url, args.path_in_repo, args.name)
    except MarketplaceError as e:
        error(f"Failed to add external skill: {e}")
        return EXIT_FAILURE

    print()
    success(f"Added external skill: {paths.relative(dest_skill_dir)}")
    print(f"  Source: {record.url}")
    print(f"  SHA: {short_sha(record.sha)}")
    print("\nRun mkt-generate-lock to update the lockfile.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
