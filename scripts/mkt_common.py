#!/usr/bin/env python3
"""
Skill Marketplace Tools - Common Module

Shared infrastructure for every marketplace script.
This module contains:
- Layout constants (manifest, descriptor, provenance and lock file names)
- Error types for hard failures (unreadable roots, broken lockfiles, ...)
- Configuration (MarketplacePaths, ValidationProfile)
- Issue accumulation (ValidationIssue, ValidationReport)
- Console helpers (coloured info/success/warn/error output)

All marketplace scripts import from this module to ensure consistency.
"""

from __future__ import annotations

import json
import os
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_OK = 0  # Success (warn-mode issues do not count)
EXIT_FAILURE = 1  # Hard failure, or outstanding issues in blocking mode

# =============================================================================
# Marketplace Layout
# =============================================================================

MANIFEST_DIR = ".claude-plugin"
MANIFEST_FILENAME = "plugin.json"
SKILL_FILENAME = "SKILL.md"
SOURCE_FILENAME = ".source.json"
LOCK_FILENAME = "marketplace.lock"
MARKETPLACE_FILENAME = "marketplace.json"

PLUGINS_DIRNAME = "plugins"
TEMPLATES_DIRNAME = "templates"
EXTERNAL_DIRNAME = "external"

SKILLS_DIRNAME = "skills"
COMMANDS_DIRNAME = "commands"
AGENTS_DIRNAME = "agents"
ROOT_HOOKS_FILENAME = "hooks.json"
DEFAULT_HOOKS_PATH = Path("hooks") / "hooks.json"

# Lockfile format
LOCK_VERSION = 1
INTERNAL_ENTRY = "internal"

# Number of sha characters shown in console output
SHORT_SHA_LENGTH = 7

# Kebab-case names: lowercase words joined by single hyphens
NAME_PATTERN = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$")

# Strict x.y.z versions, no pre-release or build suffixes
SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

# Files that must carry an execute bit
DEFAULT_SCRIPT_EXTENSIONS = frozenset({".sh", ".bash", ".zsh"})

# Fallback allow-list when marketplace.json declares no categories
DEFAULT_CATEGORIES = frozenset(
    {
        "development",
        "productivity",
        "testing",
        "documentation",
        "devops",
        "security",
        "data",
        "design",
        "other",
    }
)

# Root override for every script (--root wins over this)
ROOT_ENV_VAR = "MARKETPLACE_ROOT"


# =============================================================================
# Errors
# =============================================================================


class MarketplaceError(Exception):
    """Hard failure that aborts the current command."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.message} ({self.path})"


class DirectoryReadError(MarketplaceError):
    """A top-level directory is missing or unreadable."""


class LockfileError(MarketplaceError):
    """marketplace.lock cannot be read, parsed or written."""


class MarketplaceIndexError(MarketplaceError):
    """marketplace.json cannot be read, parsed or written."""


class SafetyCheckError(MarketplaceError):
    """Refusing to perform a destructive write."""


class VendorError(MarketplaceError):
    """A git or copy operation used for vendoring failed."""


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class MarketplacePaths:
    """Every location the scripts read or write, derived from one root."""

    root: Path

    @property
    def plugins_dir(self) -> Path:
        return self.root / PLUGINS_DIRNAME

    @property
    def templates_dir(self) -> Path:
        return self.root / TEMPLATES_DIRNAME

    @property
    def external_dir(self) -> Path:
        return self.plugins_dir / EXTERNAL_DIRNAME

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_FILENAME

    @property
    def marketplace_path(self) -> Path:
        return self.root / MANIFEST_DIR / MARKETPLACE_FILENAME

    def relative(self, path: Path) -> str:
        """Return path relative to the root with forward slashes.

        Paths outside the root are returned unchanged (as posix strings).
        """
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()


def resolve_root(cli_root: str | None = None) -> Path:
    """Resolve the marketplace root.

    Order: explicit --root, then $MARKETPLACE_ROOT, then the current directory.
    """
    if cli_root:
        return Path(cli_root).resolve()
    env_root = os.environ.get(ROOT_ENV_VAR, "").strip()
    if env_root:
        return Path(env_root).resolve()
    return Path.cwd().resolve()


def get_marketplace_paths(cli_root: str | None = None) -> MarketplacePaths:
    """Build MarketplacePaths for the resolved root."""
    return MarketplacePaths(resolve_root(cli_root))


@dataclass(frozen=True)
class ValidationProfile:
    """Rule-set injected into the validator.

    Attributes:
        allowed_categories: When set, manifests must declare a category from this set
        allow_hooks_field: Whether manifests may point at a hooks file
        script_extensions: File suffixes that must be executable
    """

    allowed_categories: frozenset[str] | None = None
    allow_hooks_field: bool = True
    script_extensions: frozenset[str] = DEFAULT_SCRIPT_EXTENSIONS


DEFAULT_PROFILE = ValidationProfile()


def restricted_profile(categories: set[str] | frozenset[str] | None = None) -> ValidationProfile:
    """Profile that enforces a category allow-list."""
    allowed = frozenset(categories) if categories else DEFAULT_CATEGORIES
    return ValidationProfile(allowed_categories=allowed)


# =============================================================================
# Issue Accumulation
# =============================================================================


@dataclass
class ValidationIssue:
    """A single structural problem found during a run."""

    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"path": self.path, "message": self.message}


@dataclass
class ValidationReport:
    """Ordered, append-only collection of issues for one run.

    Supports:
    - Error accumulation (collect all issues before reporting)
    - Per-item outcome (track which plugins passed and which failed)
    """

    issues: list[ValidationIssue] = field(default_factory=list)
    valid_items: list[Any] = field(default_factory=list)
    failed_items: list[Any] = field(default_factory=list)

    def add(self, path: Path | str, message: str) -> None:
        """Record an issue."""
        self.issues.append(ValidationIssue(str(path), message))

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE if self.issues else EXIT_OK

    def add_valid_item(self, item: Any) -> None:
        self.valid_items.append(item)

    def add_failed_item(self, item: Any) -> None:
        self.failed_items.append(item)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "exit_code": self.exit_code,
            "issue_count": len(self.issues),
            "issues": [i.to_dict() for i in self.issues],
            "valid_items_count": len(self.valid_items),
            "failed_items_count": len(self.failed_items),
        }


# =============================================================================
# Utility Functions
# =============================================================================


def is_valid_kebab_case(name: str) -> bool:
    """Check if name follows kebab-case convention."""
    return bool(NAME_PATTERN.match(name))


def is_valid_semver(version: str) -> bool:
    """Check if version is a plain x.y.z triple."""
    return bool(SEMVER_PATTERN.match(version))


def short_sha(sha: str) -> str:
    return sha[:SHORT_SHA_LENGTH]


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def dump_json(data: Any) -> str:
    """Serialize data the way every file this project writes is formatted."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


# =============================================================================
# Console Output
# =============================================================================

GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
BOLD = "\033[1m"
RESET = "\033[0m"


def colors_enabled() -> bool:
    return "NO_COLOR" not in os.environ


def colorize(text: str, color: str) -> str:
    """Wrap text in an ANSI color unless NO_COLOR is set."""
    if not colors_enabled():
        return text
    return f"{color}{text}{RESET}"


def info(msg: str) -> None:
    print(f"{colorize('[INFO]', CYAN)} {msg}")


def success(msg: str) -> None:
    print(f"{colorize('[OK]', GREEN)}   {msg}")


def warn(msg: str) -> None:
    print(f"{colorize('[WARN]', YELLOW)} {msg}", file=sys.stderr)


def error(msg: str) -> None:
    print(f"{colorize('[ERR]', RED)}  {msg}", file=sys.stderr)


def print_issues(report: ValidationReport, title: str = "Errors", paths: MarketplacePaths | None = None) -> None:
    """Print every accumulated issue, one per line.

    When paths is given, issue locations are shown relative to the marketplace root.
    """
    if not report.issues:
        return
    print(f"\n{colorize(f'--- {title} ({len(report.issues)}) ---', BOLD)}")
    for issue in report.issues:
        location = paths.relative(Path(issue.path)) if paths else issue.path
        print(f"  {colorize(location, RED)}: {issue.message}")
