#!/usr/bin/env python3
"""
Regenerate the plugins list of .claude-plugin/marketplace.json.

Usage:
    uv run python scripts/mkt_generate_index.py

Discovers every plugin under plugins/ (a directory with
.claude-plugin/plugin.json) and rewrites the "plugins" array of
marketplace.json from their manifests, sorted by name. Every other key of
marketplace.json (owner, categories, metadata) is preserved.

Exit codes:
    0 - marketplace.json regenerated
    1 - marketplace.json missing/invalid, plugins/ unreadable, or no plugins found
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from mkt_common import (
    EXIT_FAILURE,
    EXIT_OK,
    MARKETPLACE_FILENAME,
    MarketplaceError,
    MarketplaceIndexError,
    MarketplacePaths,
    SafetyCheckError,
    dump_json,
    error,
    get_marketplace_paths,
    success,
    warn,
)
from mkt_discover import find_plugins, manifest_path

# Optional manifest keys copied into the index when present
OPTIONAL_INDEX_FIELDS = ("category", "homepage", "repository", "license")


def load_marketplace(marketplace_path: Path) -> dict[str, Any]:
    """Read marketplace.json.

    Raises:
        MarketplaceIndexError: If the file is missing, unreadable or not an object
    """
    if not marketplace_path.exists():
        raise MarketplaceIndexError(f"{MARKETPLACE_FILENAME} not found", marketplace_path)
    try:
        data = json.loads(marketplace_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise MarketplaceIndexError(f"Cannot read {MARKETPLACE_FILENAME}: {e}", marketplace_path) from e
    except json.JSONDecodeError as e:
        raise MarketplaceIndexError(f"Invalid JSON in {MARKETPLACE_FILENAME}: {e}", marketplace_path) from e
    if not isinstance(data, dict):
        raise MarketplaceIndexError(f"Invalid {MARKETPLACE_FILENAME}: expected an object", marketplace_path)
    return data


def read_plugin_manifest(plugin_dir: Path) -> dict[str, Any] | None:
    """Parsed plugin.json, or None (with a warning) if it cannot be used."""
    path = manifest_path(plugin_dir)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        warn(f"Skipping {plugin_dir.name}: cannot read plugin.json ({e})")
        return None
    if not isinstance(data, dict):
        warn(f"Skipping {plugin_dir.name}: plugin.json is not an object")
        return None
    return data


def build_index_entry(plugin_dir: Path, manifest: dict[str, Any], paths: MarketplacePaths) -> dict[str, Any]:
    """Index entry for one plugin."""
    entry: dict[str, Any] = {
        "name": manifest.get("name", plugin_dir.name),
        "source": f"./{paths.relative(plugin_dir)}",
        "description": manifest.get("description", ""),
        "version": manifest.get("version", ""),
    }
    if "author" in manifest:
        entry["author"] = manifest["author"]
    for key in OPTIONAL_INDEX_FIELDS:
        if manifest.get(key):
            entry[key] = manifest[key]
    keywords = manifest.get("keywords")
    if isinstance(keywords, list) and keywords:
        entry["keywords"] = keywords
    return entry


def build_index(paths: MarketplacePaths) -> list[dict[str, Any]]:
    """Index entries for every usable plugin, sorted by name.

    Raises:
        DirectoryReadError: If plugins/ cannot be read
    """
    entries = []
    for plugin_dir in find_plugins(paths.plugins_dir):
        manifest = read_plugin_manifest(plugin_dir)
        if manifest is not None:
            entries.append(build_index_entry(plugin_dir, manifest, paths))
    return sorted(entries, key=lambda entry: str(entry["name"]))


def generate_index(paths: MarketplacePaths) -> dict[str, Any]:
    """Rebuild the plugins array of marketplace.json and write it back.

    Returns:
        The marketplace data that was written

    Raises:
        MarketplaceIndexError: If marketplace.json is missing, invalid or unwritable
        SafetyCheckError: If no plugins were found
    """
    marketplace = load_marketplace(paths.marketplace_path)
    entries = build_index(paths)
    if not entries:
        raise SafetyCheckError(
            f"No plugins found in {paths.relative(paths.plugins_dir)}/, refusing to write an empty index",
            paths.plugins_dir,
        )
    marketplace["plugins"] = entries
    try:
        paths.marketplace_path.write_text(dump_json(marketplace), encoding="utf-8")
    except OSError as e:
        raise MarketplaceIndexError(f"Failed to write {MARKETPLACE_FILENAME}: {e}", paths.marketplace_path) from e
    return marketplace


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Regenerate the plugins list in marketplace.json")
    parser.add_argument("--root", help="Marketplace root (default: $MARKETPLACE_ROOT or current directory)")
    args = parser.parse_args(argv)

    paths = get_marketplace_paths(args.root)
    print(f"Generating {MARKETPLACE_FILENAME}...\n")

    try:
        marketplace = generate_index(paths)
    except MarketplaceError as e:
        error(f"Failed to generate {MARKETPLACE_FILENAME}: {e}")
        return EXIT_FAILURE

    for entry in marketplace["plugins"]:
        print(f"  {entry['name']} ({entry['source']})")
    print()
    success(f"Generated {paths.relative(paths.marketplace_path)} with {len(marketplace['plugins'])} plugins")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
