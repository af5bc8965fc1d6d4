#!/usr/bin/env python3
"""Recursive, fault-tolerant discovery of plugins, skills and provenance records.

Every discovery operation is an instance of one walk: descend from a root,
skip hidden entries, and stop at any directory that satisfies a marker
predicate. Only the root itself must be readable; nested directories that
cannot be listed simply contribute nothing.

Usage:
    plugins = find_plugins(paths.plugins_dir)
    skills = find_skills(paths.plugins_dir)
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from pathlib import Path

from mkt_common import (
    MANIFEST_DIR,
    MANIFEST_FILENAME,
    SKILL_FILENAME,
    SOURCE_FILENAME,
    DirectoryReadError,
)

MarkerPredicate = Callable[[Path], bool]


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def _real(path: Path) -> str:
    return os.path.realpath(path)


def _list_dir(directory: Path) -> list[Path] | None:
    """List a directory in name order, or None if it cannot be read."""
    try:
        return sorted(directory.iterdir())
    except OSError:
        return None


def _is_dir(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


def _safe_marker(is_marker: MarkerPredicate, directory: Path) -> bool:
    try:
        return is_marker(directory)
    except OSError:
        return False


def _walk(
    entries: Iterable[Path],
    is_marker: MarkerPredicate,
    visited: set[str],
    found: list[Path],
) -> None:
    for entry in entries:
        if is_hidden(entry) or not _is_dir(entry):
            continue

        # Symlinked aliases and cycles resolve to an already visited directory
        real = _real(entry)
        if real in visited:
            continue
        visited.add(real)

        if _safe_marker(is_marker, entry):
            found.append(entry)
            continue

        children = _list_dir(entry)
        if children is None:
            continue
        _walk(children, is_marker, visited, found)


def walk_tree(root: Path, is_marker: MarkerPredicate) -> list[Path]:
    """Find every directory below root that satisfies is_marker.

    Marker directories are leaves: nothing inside them is examined.
    The root itself is never reported, only its descendants.

    Args:
        root: Directory to search
        is_marker: Predicate deciding whether a directory ends the descent

    Returns:
        Matching directories in walk order

    Raises:
        DirectoryReadError: If root does not exist or cannot be listed
    """
    if not _is_dir(root):
        raise DirectoryReadError("Directory does not exist", root)
    try:
        entries = sorted(root.iterdir())
    except OSError as e:
        raise DirectoryReadError(f"Cannot read directory: {e.strerror or e}", root) from e

    found: list[Path] = []
    _walk(entries, is_marker, {_real(root)}, found)
    return found


# =============================================================================
# Markers
# =============================================================================


def manifest_path(plugin_dir: Path) -> Path:
    return plugin_dir / MANIFEST_DIR / MANIFEST_FILENAME


def has_plugin_manifest(directory: Path) -> bool:
    return manifest_path(directory).is_file()


def has_skill_descriptor(directory: Path) -> bool:
    return (directory / SKILL_FILENAME).is_file()


def has_source_record(directory: Path) -> bool:
    return (directory / SOURCE_FILENAME).is_file()


# =============================================================================
# Discovery
# =============================================================================


def find_plugins(root: Path) -> list[Path]:
    """Find plugin directories (those containing .claude-plugin/plugin.json)."""
    return walk_tree(root, has_plugin_manifest)


def find_skills(root: Path) -> list[Path]:
    """Find skill directories (those containing SKILL.md)."""
    return walk_tree(root, has_skill_descriptor)


def find_source_records(root: Path) -> list[Path]:
    """Find .source.json provenance files below root.

    A directory holding a record is not searched further.
    """
    return [directory / SOURCE_FILENAME for directory in walk_tree(root, has_source_record)]


def find_script_files(directory: Path, extensions: Iterable[str]) -> list[Path]:
    """Find every file below directory whose suffix is in extensions.

    Hidden files and directories are skipped, unreadable subdirectories
    are ignored.
    """
    suffixes = {ext.lower() for ext in extensions}
    results: list[Path] = []
    visited: set[str] = set()

    def _scan(current: Path) -> None:
        real = _real(current)
        if real in visited:
            return
        visited.add(real)

        entries = _list_dir(current)
        if entries is None:
            return
        for entry in entries:
            if is_hidden(entry):
                continue
            if _is_dir(entry):
                _scan(entry)
            elif entry.suffix.lower() in suffixes:
                results.append(entry)

    _scan(directory)
    return results
