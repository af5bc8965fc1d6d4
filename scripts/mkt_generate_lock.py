#!/usr/bin/env python3
"""
Generate marketplace.lock from the plugins directory.

Usage:
    uv run python scripts/mkt_generate_lock.py
    uv run python scripts/mkt_generate_lock.py --root /path/to/marketplace

Scans plugins/ and writes marketplace.lock tracking every skill. Internal
skills are marked "internal"; vendored skills record the origin and sha of
the nearest .source.json above them. The lockfile is rewritten from scratch
on every run.
"""

from __future__ import annotations

import argparse
import sys

from mkt_common import (
    EXIT_FAILURE,
    EXIT_OK,
    INTERNAL_ENTRY,
    LOCK_FILENAME,
    MarketplaceError,
    error,
    get_marketplace_paths,
    short_sha,
    success,
    warn,
)
from mkt_lock import generate_lock, write_lock


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description=f"Generate {LOCK_FILENAME} from the plugins directory")
    parser.add_argument("--root", help="Marketplace root (default: $MARKETPLACE_ROOT or current directory)")
    args = parser.parse_args(argv)

    paths = get_marketplace_paths(args.root)
    print(f"Generating {LOCK_FILENAME}...\n")

    try:
        lock = generate_lock(paths)
        if not lock.skills:
            warn(f"No skills found in {paths.relative(paths.plugins_dir)}/")
        else:
            print(f"Found {len(lock.skills)} skill(s)\n")
            for rel_path, entry in lock.skills.items():
                if entry == INTERNAL_ENTRY:
                    print(f"  {rel_path} (internal)")
                else:
                    print(f"  {rel_path} (external: {short_sha(entry.sha)})")
        write_lock(lock, paths.lock_path)
    except MarketplaceError as e:
        error(f"Lockfile generation failed: {e}")
        return EXIT_FAILURE

    print()
    success(f"Generated {LOCK_FILENAME}")
    print(f"  {lock.internal_count} internal, {lock.external_count} external")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
