#!/usr/bin/env python3
"""
Sync vendored external skills with their source repositories.

Usage:
    uv run python scripts/mkt_sync_external.py [--dry-run]

Reads every .source.json under plugins/external/ and, one source at a time:
    1. Shallow-clones the source repository
    2. Compares HEAD with the recorded SHA
    3. Replaces each tracked skill directory (skills/<name> as recorded when
       it was added) with the upstream copy
    4. Rewrites .source.json with the new SHA and sync time

A failure for one source (clone error, unreadable record) is reported and
skipped; the remaining sources are still processed.
Use --dry-run to preview updates without changing anything.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path

from mkt_common import (
    EXIT_FAILURE,
    EXIT_OK,
    SKILLS_DIRNAME,
    MarketplaceError,
    MarketplacePaths,
    VendorError,
    error,
    get_marketplace_paths,
    info,
    short_sha,
    success,
    warn,
)
from mkt_discover import find_source_records
from mkt_provenance import read_provenance, write_provenance
from mkt_vendor import fetched_repo, replace_tree, resolve_in_repo


@dataclass
class SyncResult:
    """Outcome for one provenance record."""

    path: str
    old_sha: str
    new_sha: str
    updated: bool


def sync_source(record_path: Path, paths: MarketplacePaths, dry_run: bool = False) -> SyncResult:
    """Bring one vendored source up to date with its origin.

    Raises:
        VendorError: If the record is unusable or the origin cannot be fetched
    """
    source = read_provenance(record_path)
    source_dir = record_path.parent
    rel_path = paths.relative(source_dir)

    print(f"\nChecking {rel_path}...")
    print(f"  Source: {source.url}")
    print(f"  Current SHA: {short_sha(source.sha)}")

    with fetched_repo(source.url) as (repo_dir, new_sha):
        print(f"  Latest SHA: {short_sha(new_sha)}")

        if new_sha == source.sha:
            success("Already up to date")
            return SyncResult(rel_path, source.sha, new_sha, updated=False)

        info("Update available")
        if dry_run:
            print(f"  [dry-run] Would update to {short_sha(new_sha)}")
            return SyncResult(rel_path, source.sha, new_sha, updated=False)

        for tracked_path in source.paths:
            try:
                src = resolve_in_repo(repo_dir, tracked_path)
            except VendorError as e:
                warn(f"  {e}")
                continue
            skill_name = source.dir_name_for(tracked_path)
            replace_tree(src, source_dir / SKILLS_DIRNAME / skill_name)
            print(f"  Updated: {skill_name}")

    write_provenance(record_path, source.with_sync(new_sha))
    success(f"Updated to {short_sha(new_sha)}")
    return SyncResult(rel_path, source.sha, new_sha, updated=True)


def sync_all(paths: MarketplacePaths, dry_run: bool = False) -> tuple[list[SyncResult], list[str]]:
    """Sync every record under plugins/external/, isolating failures.

    Returns:
        (results for sources that could be checked, relative paths that failed)
    """
    results: list[SyncResult] = []
    failures: list[str] = []
    for record_path in find_source_records(paths.external_dir):
        try:
            results.append(sync_source(record_path, paths, dry_run))
        except MarketplaceError as e:
            warn(f"Skipping {paths.relative(record_path.parent)}: {e}")
            failures.append(paths.relative(record_path.parent))
    return results, failures


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Sync vendored external skills with their source repositories")
    parser.add_argument("--dry-run", action="store_true", help="Show available updates without applying them")
    parser.add_argument("--root", help="Marketplace root (default: $MARKETPLACE_ROOT or current directory)")
    args = parser.parse_args(argv)

    paths = get_marketplace_paths(args.root)
    print(f"Syncing external skills{' (dry-run)' if args.dry_run else ''}...")

    if not paths.external_dir.is_dir():
        print(f"\nNo external skills found in {paths.relative(paths.external_dir)}/")
        print("Use mkt-add-external to add external skills.")
        return EXIT_OK

    try:
        results, failures = sync_all(paths, args.dry_run)
    except MarketplaceError as e:
        error(f"Sync failed: {e}")
        return EXIT_FAILURE

    if not results and not failures:
        print(f"\nNo external sources found in {paths.relative(paths.external_dir)}/")
        return EXIT_OK

    updated = [r for r in results if r.updated]
    pending = [r for r in results if not r.updated and r.new_sha != r.old_sha]
    up_to_date = [r for r in results if r.new_sha == r.old_sha]

    print("\n" + "-" * 40)
    summary = f"Summary: {len(updated)} updated, {len(up_to_date)} up-to-date"
    if args.dry_run:
        summary += f", {len(pending)} pending"
    if failures:
        summary += f", {len(failures)} failed"
    print(summary)

    if updated:
        print("\nRun mkt-generate-lock to update the lockfile.")
    if pending and args.dry_run:
        print("\nRun without --dry-run to apply updates.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
