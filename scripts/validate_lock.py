#!/usr/bin/env python3
"""
Validate marketplace.lock consistency with the plugins directory.

Usage:
    uv run python scripts/validate_lock.py
    uv run python scripts/validate_lock.py --strict
    uv run python scripts/validate_lock.py --json

Checks:
    - All skills in plugins/ are tracked in the lockfile
    - All skills in the lockfile exist in plugins/
    - Vendored skills have the locked SHA (when a .source.json resolves)

Exit codes:
    0 - Lockfile consistent, or issues found in warn mode (default)
    1 - Issues found in --strict mode, or the lockfile/plugins could not be read
"""

from __future__ import annotations

import argparse
import json
import sys

from mkt_common import (
    EXIT_FAILURE,
    EXIT_OK,
    LOCK_FILENAME,
    RED,
    YELLOW,
    MarketplaceError,
    colorize,
    error,
    get_marketplace_paths,
    success,
)
from mkt_lock import LockManifest, ReconciliationIssue, check_lock


def print_results(lock: LockManifest, skill_count: int, issues: list[ReconciliationIssue], strict: bool) -> None:
    if not issues:
        success("Lockfile is consistent")
        print(f"  {skill_count} skill(s) tracked")
        print(f"  Generated: {lock.generated}")
        return

    print(f"Found {len(issues)} issue(s):\n")
    icon = colorize("✗", RED) if strict else colorize("⚠", YELLOW)
    for issue in issues:
        print(f"{icon} {issue.describe()}")

    if strict:
        print(f"\n{len(issues)} error(s) found. Run mkt-generate-lock to update.")
    else:
        print(f"\n{len(issues)} warning(s). Use --strict to enforce.")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description=f"Validate {LOCK_FILENAME} against the plugins directory")
    parser.add_argument("--strict", action="store_true", help="Exit with an error if any issue is found")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--root", help="Marketplace root (default: $MARKETPLACE_ROOT or current directory)")
    args = parser.parse_args(argv)

    paths = get_marketplace_paths(args.root)

    if not args.json:
        print(f"Validating {LOCK_FILENAME}{' (strict mode)' if args.strict else ''}...\n")

    try:
        lock, skill_paths, issues = check_lock(paths)
    except MarketplaceError as e:
        error(f"Lockfile validation failed: {e}")
        return EXIT_FAILURE

    exit_code = EXIT_FAILURE if args.strict and issues else EXIT_OK

    if args.json:
        output = {
            "strict": args.strict,
            "exit_code": exit_code,
            "skill_count": len(skill_paths),
            "generated": lock.generated,
            "issues": [issue.to_dict() for issue in issues],
        }
        print(json.dumps(output, indent=2))
    else:
        print_results(lock, len(skill_paths), issues, args.strict)

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
