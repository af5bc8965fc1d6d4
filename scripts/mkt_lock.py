#!/usr/bin/env python3
"""
Marketplace lockfile (marketplace.lock): generation and reconciliation.

The lockfile asserts the expected state of every skill under plugins/:

    {
      "version": 1,
      "generated": "2026-01-01T00:00:00.000Z",
      "skills": {
        "plugins/core/skills/review": "internal",
        "plugins/external/org/repo/skills/lint": {"origin": "https://...", "sha": "abc123..."}
      }
    }

A skill is "internal" unless a provenance record (.source.json) resolves at
or above its directory, in which case the record's origin and sha are locked.
The file is always regenerated from scratch and never patched in place.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from mkt_common import (
    INTERNAL_ENTRY,
    LOCK_FILENAME,
    LOCK_VERSION,
    LockfileError,
    MarketplacePaths,
    dump_json,
    short_sha,
    utc_now_iso,
)
from mkt_discover import find_skills
from mkt_provenance import resolve_provenance

IssueKind = Literal["missing_in_lock", "missing_in_plugins", "sha_mismatch"]

MISSING_IN_LOCK: IssueKind = "missing_in_lock"
MISSING_IN_PLUGINS: IssueKind = "missing_in_plugins"
SHA_MISMATCH: IssueKind = "sha_mismatch"


@dataclass(frozen=True)
class ExternalLockEntry:
    """Lock entry for a vendored skill."""

    origin: str
    sha: str

    def to_dict(self) -> dict[str, str]:
        return {"origin": self.origin, "sha": self.sha}


LockEntry = str | ExternalLockEntry


@dataclass(frozen=True)
class ReconciliationIssue:
    """Difference between the lockfile and the plugins tree."""

    kind: IssueKind
    path: str
    details: str | None = None

    def describe(self) -> str:
        """Human-readable one-line description."""
        if self.kind == MISSING_IN_LOCK:
            return f"{self.path}: not in lockfile (run mkt-generate-lock)"
        if self.kind == MISSING_IN_PLUGINS:
            return f"{self.path}: in lockfile but skill not found"
        return f"{self.path}: SHA mismatch ({self.details})"

    def to_dict(self) -> dict[str, str]:
        result = {"type": self.kind, "path": self.path}
        if self.details is not None:
            result["details"] = self.details
        return result


@dataclass
class LockManifest:
    """In-memory form of marketplace.lock."""

    skills: dict[str, LockEntry] = field(default_factory=dict)
    version: int = LOCK_VERSION
    generated: str = field(default_factory=utc_now_iso)

    @property
    def internal_count(self) -> int:
        return sum(1 for entry in self.skills.values() if entry == INTERNAL_ENTRY)

    @property
    def external_count(self) -> int:
        return sum(1 for entry in self.skills.values() if isinstance(entry, ExternalLockEntry))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk shape with skills sorted by path."""
        skills: dict[str, Any] = {}
        for key in sorted(self.skills):
            entry = self.skills[key]
            skills[key] = entry.to_dict() if isinstance(entry, ExternalLockEntry) else entry
        return {"version": self.version, "generated": self.generated, "skills": skills}

    @classmethod
    def from_dict(cls, data: Any, source: Path | None = None) -> LockManifest:
        """Build a manifest from parsed JSON.

        Raises:
            LockfileError: If the structure is not a valid lockfile
        """
        if not isinstance(data, dict):
            raise LockfileError("Invalid lockfile: expected an object", source)

        version = data.get("version")
        if not isinstance(version, int) or isinstance(version, bool):
            raise LockfileError("Invalid lockfile: 'version' must be an integer", source)

        raw_skills = data.get("skills")
        if not isinstance(raw_skills, dict):
            raise LockfileError("Invalid lockfile: 'skills' must be an object", source)

        skills: dict[str, LockEntry] = {}
        for key, value in raw_skills.items():
            if value == INTERNAL_ENTRY:
                skills[key] = INTERNAL_ENTRY
            elif (
                isinstance(value, dict)
                and isinstance(value.get("origin"), str)
                and isinstance(value.get("sha"), str)
            ):
                skills[key] = ExternalLockEntry(origin=value["origin"], sha=value["sha"])
            else:
                raise LockfileError(f"Invalid lockfile entry for '{key}'", source)

        generated = data.get("generated")
        return cls(skills=skills, version=version, generated=generated if isinstance(generated, str) else "")


# =============================================================================
# Generation
# =============================================================================


def classify_skill(skill_path: Path, paths: MarketplacePaths) -> LockEntry:
    """Lock entry for one skill directory."""
    record = resolve_provenance(skill_path, paths.plugins_dir)
    if record is None:
        return INTERNAL_ENTRY
    return ExternalLockEntry(origin=record.url, sha=record.sha)


def build_lock(skill_paths: list[Path], paths: MarketplacePaths) -> LockManifest:
    """Build a fresh lock from discovered skill directories."""
    entries = {paths.relative(skill_path): classify_skill(skill_path, paths) for skill_path in skill_paths}
    return LockManifest(skills={key: entries[key] for key in sorted(entries)})


def generate_lock(paths: MarketplacePaths) -> LockManifest:
    """Discover every skill under plugins/ and build a lock for it.

    Raises:
        DirectoryReadError: If plugins/ cannot be read
    """
    return build_lock(find_skills(paths.plugins_dir), paths)


def write_lock(lock: LockManifest, lock_path: Path) -> None:
    """Write the lock, replacing any previous content.

    Raises:
        LockfileError: If the file cannot be written
    """
    try:
        lock_path.write_text(dump_json(lock.to_dict()), encoding="utf-8")
    except OSError as e:
        raise LockfileError(f"Failed to write {LOCK_FILENAME}: {e}", lock_path) from e


def load_lock(lock_path: Path) -> LockManifest:
    """Read and parse marketplace.lock.

    Raises:
        LockfileError: If the file is missing, unreadable or malformed
    """
    if not lock_path.exists():
        raise LockfileError(f"{LOCK_FILENAME} not found. Run mkt-generate-lock first.", lock_path)
    try:
        content = lock_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LockfileError(f"Cannot read lockfile: {e}", lock_path) from e
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise LockfileError(f"Invalid lockfile JSON: {e}", lock_path) from e
    return LockManifest.from_dict(data, lock_path)


# =============================================================================
# Reconciliation
# =============================================================================


def reconcile(lock: LockManifest, skill_paths: list[Path], paths: MarketplacePaths) -> list[ReconciliationIssue]:
    """Compare the lock with the live skill tree.

    Reports every difference: skills missing from the lock, locked skills
    missing from disk, and external skills whose provenance sha differs from
    the locked sha.

    Returns:
        Issues ordered by kind, then path
    """
    live = {paths.relative(skill_path): skill_path for skill_path in skill_paths}
    locked = set(lock.skills)

    issues: list[ReconciliationIssue] = []
    issues.extend(ReconciliationIssue(MISSING_IN_LOCK, rel) for rel in sorted(live.keys() - locked))
    issues.extend(ReconciliationIssue(MISSING_IN_PLUGINS, rel) for rel in sorted(locked - live.keys()))

    for rel in sorted(live.keys() & locked):
        entry = lock.skills[rel]
        if not isinstance(entry, ExternalLockEntry):
            continue
        record = resolve_provenance(live[rel], paths.plugins_dir)
        if record is not None and record.sha != entry.sha:
            issues.append(
                ReconciliationIssue(
                    SHA_MISMATCH,
                    rel,
                    f"lockfile: {short_sha(entry.sha)}, actual: {short_sha(record.sha)}",
                )
            )

    return issues


def check_lock(paths: MarketplacePaths) -> tuple[LockManifest, list[Path], list[ReconciliationIssue]]:
    """Load the lock, discover live skills and reconcile them.

    Raises:
        LockfileError: If the lock cannot be loaded
        DirectoryReadError: If plugins/ cannot be read
    """
    lock = load_lock(paths.lock_path)
    skill_paths = find_skills(paths.plugins_dir)
    return lock, skill_paths, reconcile(lock, skill_paths, paths)
