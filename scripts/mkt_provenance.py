#!/usr/bin/env python3
"""Provenance records (.source.json) for vendored external skills.

A record ties a vendored package to its upstream repository and commit:

    {
      "url": "https://github.com/org/repo",
      "sha": "<full commit sha>",
      "syncedAt": "2026-01-01T00:00:00.000Z",
      "paths": ["skills/code-review", "skills/lint"],
      "names": {"skills/lint": "strict-lint"}
    }

"names" is present only when a path was vendored under a directory name
other than its last component.

Records are optional metadata. Lookups for validation and lock handling
never raise: a missing, unreadable or malformed record is simply absent.
Only the vendoring scripts write them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from mkt_common import SOURCE_FILENAME, VendorError, dump_json, utc_now_iso


@dataclass
class ProvenanceRecord:
    """Upstream origin of a vendored package."""

    url: str
    sha: str
    synced_at: str = ""
    paths: list[str] = field(default_factory=list)
    names: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> ProvenanceRecord | None:
        """Build a record from parsed JSON, or None if the shape is wrong."""
        if not isinstance(data, dict):
            return None
        url = data.get("url")
        sha = data.get("sha")
        if not isinstance(url, str) or not url or not isinstance(sha, str) or not sha:
            return None
        synced_at = data.get("syncedAt")
        raw_paths = data.get("paths")
        paths = [p for p in raw_paths if isinstance(p, str)] if isinstance(raw_paths, list) else []
        raw_names = data.get("names")
        names = (
            {k: v for k, v in raw_names.items() if isinstance(k, str) and isinstance(v, str) and v}
            if isinstance(raw_names, dict)
            else {}
        )
        return cls(
            url=url,
            sha=sha,
            synced_at=synced_at if isinstance(synced_at, str) else "",
            paths=paths,
            names=names,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk JSON shape."""
        data: dict[str, Any] = {
            "url": self.url,
            "sha": self.sha,
            "syncedAt": self.synced_at,
            "paths": list(self.paths),
        }
        if self.names:
            data["names"] = dict(self.names)
        return data

    def dir_name_for(self, tracked_path: str) -> str:
        """Directory under skills/ that holds the vendored copy of tracked_path."""
        return self.names.get(tracked_path) or default_dir_name(tracked_path)

    def with_sync(self, sha: str, synced_at: str | None = None) -> ProvenanceRecord:
        """Copy of this record pointing at a new commit."""
        return ProvenanceRecord(
            url=self.url,
            sha=sha,
            synced_at=synced_at or utc_now_iso(),
            paths=list(self.paths),
            names=dict(self.names),
        )


def default_dir_name(tracked_path: str) -> str:
    return PurePosixPath(tracked_path.strip("/")).name


def merge_paths(existing: list[str], new_path: str) -> list[str]:
    """Append new_path unless already tracked, keeping insertion order."""
    if new_path in existing:
        return list(existing)
    return [*existing, new_path]


def merge_names(existing: dict[str, str], tracked_path: str, dir_name: str) -> dict[str, str]:
    """Record dir_name for tracked_path, dropping entries that match the default."""
    names = dict(existing)
    if dir_name == default_dir_name(tracked_path):
        names.pop(tracked_path, None)
    else:
        names[tracked_path] = dir_name
    return names


def load_provenance(record_path: Path) -> ProvenanceRecord | None:
    """Load a record, treating every failure as "no record"."""
    try:
        data = json.loads(record_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return ProvenanceRecord.from_dict(data)


def read_provenance(record_path: Path) -> ProvenanceRecord:
    """Load a record that the caller requires to be valid.

    Raises:
        VendorError: If the record cannot be read, parsed or is malformed
    """
    try:
        content = record_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise VendorError(f"Cannot read {SOURCE_FILENAME}: {e}", record_path) from e
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise VendorError(f"Invalid JSON in {SOURCE_FILENAME}: {e}", record_path) from e
    record = ProvenanceRecord.from_dict(data)
    if record is None:
        raise VendorError(f"{SOURCE_FILENAME} is missing 'url' or 'sha'", record_path)
    return record


def write_provenance(record_path: Path, record: ProvenanceRecord) -> None:
    """Write a record, replacing any previous content.

    Raises:
        VendorError: If the file cannot be written
    """
    try:
        record_path.parent.mkdir(parents=True, exist_ok=True)
        record_path.write_text(dump_json(record.to_dict()), encoding="utf-8")
    except OSError as e:
        raise VendorError(f"Failed to write {SOURCE_FILENAME}: {e}", record_path) from e


def _within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


def resolve_provenance(skill_path: Path, plugins_root: Path) -> ProvenanceRecord | None:
    """Find the nearest provenance record at or above skill_path.

    The search starts at skill_path and climbs one directory at a time,
    stopping after plugins_root. Unusable records are skipped and the
    search continues upward.

    Args:
        skill_path: Skill directory to resolve
        plugins_root: Upper bound of the search (inclusive)

    Returns:
        The first parseable record, or None
    """
    current = skill_path
    if not _within(current, plugins_root):
        return None

    while True:
        record = load_provenance(current / SOURCE_FILENAME)
        if record is not None:
            return record
        if current == plugins_root or current.parent == current:
            return None
        current = current.parent
