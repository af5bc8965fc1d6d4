#!/usr/bin/env python3
"""
Marketplace Plugin Validator

Validates plugin structure, plugin.json manifests and SKILL.md frontmatter
for every plugin in the marketplace (plugins/ and templates/), or for a
single plugin directory.

Usage:
    uv run python scripts/validate_plugins.py
    uv run python scripts/validate_plugins.py plugins/my-plugin
    uv run python scripts/validate_plugins.py --restrict-categories
    uv run python scripts/validate_plugins.py --json

Checks:
    - plugin.json exists, parses, and has name/version/description/author.name
    - name is kebab-case, version is x.y.z, category is allowed (restricted mode)
    - the plugin ships at least one of skills/, commands/, agents/, hooks
    - every skill directory has a SKILL.md with valid frontmatter
    - skill names are unique across the whole run
    - shell scripts are executable
    - hooks files are discoverable

Exit codes:
    0 - All plugins valid
    1 - Issues found, or a plugin root could not be read
"""

from __future__ import annotations

import argparse
import json
import re
import stat
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from mkt_common import (
    AGENTS_DIRNAME,
    COMMANDS_DIRNAME,
    DEFAULT_HOOKS_PATH,
    DEFAULT_PROFILE,
    EXIT_FAILURE,
    EXIT_OK,
    GREEN,
    MANIFEST_DIR,
    MANIFEST_FILENAME,
    RED,
    ROOT_HOOKS_FILENAME,
    SKILL_FILENAME,
    SKILLS_DIRNAME,
    DirectoryReadError,
    MarketplaceError,
    MarketplacePaths,
    ValidationProfile,
    ValidationReport,
    colorize,
    error,
    get_marketplace_paths,
    info,
    is_valid_kebab_case,
    is_valid_semver,
    print_issues,
    restricted_profile,
    warn,
)
from mkt_discover import find_plugins, find_script_files, manifest_path

# Leading "---" block of a SKILL.md
FRONTMATTER_PATTERN = re.compile(r"^---\r?\n(.*?)\r?\n---", re.DOTALL)


@dataclass
class ValidationContext:
    """State owned by one validation run.

    Created at run start and passed to every check, so that separate runs in
    the same process never share issues or registered skill names.
    """

    report: ValidationReport = field(default_factory=ValidationReport)
    skill_names: set[str] = field(default_factory=set)
    profile: ValidationProfile = DEFAULT_PROFILE

    def add(self, path: Path | str, message: str) -> None:
        self.report.add(path, message)


@dataclass
class PluginInfo:
    """A plugin directory and the kinds of content it exposes."""

    path: Path
    manifest: dict[str, Any] | None
    has_skills: bool = False
    has_commands: bool = False
    has_agents: bool = False
    has_hooks: bool = False

    @property
    def has_content(self) -> bool:
        return self.has_skills or self.has_commands or self.has_agents or self.has_hooks


# =============================================================================
# Parsing
# =============================================================================


def parse_frontmatter(content: str) -> dict[str, Any] | None:
    """Parse the YAML frontmatter block at the top of a SKILL.md.

    Returns:
        The frontmatter mapping, or None if absent, unparseable or not a mapping
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return None
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return None
    return data if isinstance(data, dict) else None


def load_manifest(manifest_file: Path, ctx: ValidationContext) -> dict[str, Any] | None:
    """Load plugin.json, recording one issue if it is missing or broken."""
    if not manifest_file.exists():
        ctx.add(manifest_file, f"Missing {MANIFEST_DIR}/{MANIFEST_FILENAME}")
        return None

    try:
        content = manifest_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        ctx.add(manifest_file, f"Cannot read file: {e}")
        return None

    try:
        manifest = json.loads(content)
    except json.JSONDecodeError as e:
        ctx.add(manifest_file, f"Invalid JSON: {e}")
        return None

    if not isinstance(manifest, dict):
        ctx.add(manifest_file, "Invalid JSON: expected an object")
        return None
    return manifest


# =============================================================================
# Manifest / Descriptor Checks
# =============================================================================


def validate_manifest_fields(manifest: dict[str, Any], manifest_file: Path, ctx: ValidationContext) -> None:
    """Check required fields and formats. Every failed check adds its own issue."""
    name = manifest.get("name")
    if not name:
        ctx.add(manifest_file, "Missing required field: name")
    elif not isinstance(name, str) or not is_valid_kebab_case(name):
        ctx.add(manifest_file, f'Invalid name format: "{name}" (must be kebab-case)')

    version = manifest.get("version")
    if not version:
        ctx.add(manifest_file, "Missing required field: version")
    elif not is_valid_semver(str(version)):
        ctx.add(manifest_file, f'Invalid version format: "{version}" (must be x.y.z)')

    if not manifest.get("description"):
        ctx.add(manifest_file, "Missing required field: description")

    author = manifest.get("author")
    if not author:
        ctx.add(manifest_file, "Missing required field: author")
    elif not isinstance(author, dict) or not author.get("name"):
        ctx.add(manifest_file, "Missing required field: author.name")

    profile = ctx.profile
    if profile.allowed_categories is not None:
        category = manifest.get("category")
        if not category:
            ctx.add(manifest_file, "Missing required field: category")
        elif not isinstance(category, str) or category not in profile.allowed_categories:
            allowed = ", ".join(sorted(profile.allowed_categories))
            ctx.add(manifest_file, f'Invalid category: "{category}" (must be one of: {allowed})')

    if not profile.allow_hooks_field and "hooks" in manifest:
        ctx.add(manifest_file, 'Field "hooks" is not allowed in this marketplace')


def validate_manifest(plugin_dir: Path, ctx: ValidationContext) -> dict[str, Any] | None:
    """Validate plugin.json. Returns the manifest if it could be loaded."""
    manifest_file = manifest_path(plugin_dir)
    manifest = load_manifest(manifest_file, ctx)
    if manifest is not None:
        validate_manifest_fields(manifest, manifest_file, ctx)
    return manifest


def validate_skill_md(skill_md: Path, ctx: ValidationContext) -> bool:
    """Validate a SKILL.md and register its name in the run's name set.

    Returns:
        True if no issue was recorded for this descriptor
    """
    before = len(ctx.report.issues)

    try:
        content = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        ctx.add(skill_md, f"Cannot read file: {e}")
        return False

    frontmatter = parse_frontmatter(content)
    if frontmatter is None:
        ctx.add(skill_md, "Missing or invalid YAML frontmatter")
        return False

    name = frontmatter.get("name")
    if not name:
        ctx.add(skill_md, "Missing required frontmatter field: name")
    else:
        if not isinstance(name, str) or not is_valid_kebab_case(name):
            ctx.add(skill_md, f'Invalid name format: "{name}" (must be kebab-case)')

        key = str(name)
        if key in ctx.skill_names:
            ctx.add(skill_md, f'Duplicate skill name: "{key}"')
        else:
            ctx.skill_names.add(key)

    if not frontmatter.get("description"):
        ctx.add(skill_md, "Missing required frontmatter field: description")

    version = frontmatter.get("version")
    if not version:
        ctx.add(skill_md, "Missing required frontmatter field: version")
    elif not is_valid_semver(str(version)):
        ctx.add(skill_md, f'Invalid version format: "{version}" (must be x.y.z)')

    return len(ctx.report.issues) == before


# =============================================================================
# Package-Level Checks
# =============================================================================


def declared_hooks_path(plugin_dir: Path, manifest: dict[str, Any] | None) -> Path | None:
    """Path named by the manifest's "hooks" field, if it is a string."""
    if not manifest:
        return None
    hooks = manifest.get("hooks")
    if not isinstance(hooks, str) or not hooks:
        return None
    return plugin_dir / hooks


def detect_content(plugin_dir: Path, manifest: dict[str, Any] | None) -> PluginInfo:
    """Work out which content kinds a plugin ships."""
    declared = declared_hooks_path(plugin_dir, manifest)
    inline_hooks = bool(manifest) and isinstance(manifest.get("hooks"), dict)
    has_hooks = (
        (plugin_dir / ROOT_HOOKS_FILENAME).exists()
        or (plugin_dir / DEFAULT_HOOKS_PATH).exists()
        or (declared is not None and declared.is_file())
        or inline_hooks
    )
    return PluginInfo(
        path=plugin_dir,
        manifest=manifest,
        has_skills=(plugin_dir / SKILLS_DIRNAME).exists(),
        has_commands=(plugin_dir / COMMANDS_DIRNAME).exists(),
        has_agents=(plugin_dir / AGENTS_DIRNAME).exists(),
        has_hooks=has_hooks,
    )


def validate_script_permissions(plugin_dir: Path, ctx: ValidationContext) -> bool:
    """Every script file must carry at least one execute bit."""
    valid = True
    for script in find_script_files(plugin_dir, ctx.profile.script_extensions):
        try:
            mode = script.stat().st_mode
        except OSError:
            continue
        if not stat.S_ISREG(mode):
            continue
        if mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH) == 0:
            ctx.add(script, "Shell script is not executable (missing +x permission)")
            valid = False
    return valid


def validate_hooks_discoverability(
    plugin_dir: Path, manifest: dict[str, Any] | None, ctx: ValidationContext
) -> bool:
    """Hooks files must be reachable.

    1. hooks.json at the plugin root without hooks/hooks.json and without a
       "hooks" declaration is silently ignored at install time.
    2. A declared "hooks" path must point at an existing file inside the plugin.
    """
    if manifest is None:
        # Already reported by validate_manifest
        return True

    valid = True
    manifest_file = manifest_path(plugin_dir)
    root_hooks = plugin_dir / ROOT_HOOKS_FILENAME
    hooks_field = manifest.get("hooks")

    if root_hooks.exists() and not (plugin_dir / DEFAULT_HOOKS_PATH).exists() and not hooks_field:
        ctx.add(
            root_hooks,
            f"{ROOT_HOOKS_FILENAME} exists at plugin root but is not declared in {MANIFEST_FILENAME}. "
            f'Add "hooks": "./{ROOT_HOOKS_FILENAME}" to make it discoverable.',
        )
        valid = False

    if hooks_field is None or isinstance(hooks_field, dict):
        return valid

    if not isinstance(hooks_field, str) or not hooks_field:
        ctx.add(manifest_file, "hooks field must be a relative path to a hooks file")
        return False

    declared = plugin_dir / hooks_field
    try:
        declared.resolve().relative_to(plugin_dir.resolve())
    except ValueError:
        ctx.add(manifest_file, f'hooks field references "{hooks_field}" outside the plugin directory')
        return False

    if not declared.is_file():
        ctx.add(manifest_file, f'hooks field references "{hooks_field}" but file does not exist')
        valid = False
    return valid


def validate_skills_dir(plugin_dir: Path, ctx: ValidationContext) -> bool:
    """Validate the skills/ area and every skill directly inside it."""
    skills_dir = plugin_dir / SKILLS_DIRNAME
    if not skills_dir.is_dir():
        ctx.add(plugin_dir, f"{SKILLS_DIRNAME} is not a directory")
        return False

    try:
        entries = sorted(skills_dir.iterdir())
    except OSError as e:
        ctx.add(skills_dir, f"Cannot read directory: {e}")
        return False

    valid = True
    has_skills = False
    for skill_dir in entries:
        if not skill_dir.is_dir():
            continue

        skill_md = skill_dir / SKILL_FILENAME
        if not skill_md.is_file():
            ctx.add(skill_dir, f"Missing {SKILL_FILENAME}")
            valid = False
            continue

        has_skills = True
        if not validate_skill_md(skill_md, ctx):
            valid = False

    if not has_skills:
        ctx.add(skills_dir, f"{SKILLS_DIRNAME}/ directory exists but contains no skills")
        valid = False
    return valid


def validate_plugin(plugin_dir: Path, ctx: ValidationContext) -> bool:
    """Run every check against one plugin directory.

    All checks run even after earlier failures so that one pass surfaces as
    much as possible. Missing content only short-circuits skill validation.

    Returns:
        True if the plugin contributed no issues
    """
    before = len(ctx.report.issues)

    manifest = validate_manifest(plugin_dir, ctx)
    plugin = detect_content(plugin_dir, manifest)

    if not plugin.has_content:
        ctx.add(
            plugin_dir,
            f"Plugin must have at least one of: {SKILLS_DIRNAME}/, {COMMANDS_DIRNAME}/, "
            f"{AGENTS_DIRNAME}/, or {ROOT_HOOKS_FILENAME}",
        )
    elif plugin.has_skills:
        validate_skills_dir(plugin_dir, ctx)

    validate_script_permissions(plugin_dir, ctx)
    validate_hooks_discoverability(plugin_dir, manifest, ctx)

    return len(ctx.report.issues) == before


def run_validation(plugin_dirs: list[Path], profile: ValidationProfile = DEFAULT_PROFILE) -> ValidationContext:
    """Validate every plugin with a fresh run context."""
    ctx = ValidationContext(profile=profile)
    for plugin_dir in plugin_dirs:
        if validate_plugin(plugin_dir, ctx):
            ctx.report.add_valid_item(plugin_dir)
        else:
            ctx.report.add_failed_item(plugin_dir)
    return ctx


# =============================================================================
# Plugin Selection
# =============================================================================


def collect_plugins(paths: MarketplacePaths, plugin_path: str | None = None) -> list[Path]:
    """Plugins to validate: one explicit directory, or everything discoverable.

    Raises:
        DirectoryReadError: If the explicit path or plugins/ cannot be read
    """
    if plugin_path:
        target = Path(plugin_path)
        if not target.is_absolute():
            target = paths.root / target
        if not target.is_dir():
            raise DirectoryReadError("Plugin directory does not exist", target)
        return [target]

    plugins = find_plugins(paths.plugins_dir)
    if paths.templates_dir.exists():
        plugins.extend(find_plugins(paths.templates_dir))
    return plugins


def load_category_allow_list(paths: MarketplacePaths) -> set[str]:
    """Category ids declared in marketplace.json, or an empty set."""
    try:
        marketplace = json.loads(paths.marketplace_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return set()
    if not isinstance(marketplace, dict) or not isinstance(marketplace.get("categories"), list):
        return set()
    return {c["id"] for c in marketplace["categories"] if isinstance(c, dict) and isinstance(c.get("id"), str)}


# =============================================================================
# Output
# =============================================================================


def print_results(ctx: ValidationContext, paths: MarketplacePaths, verbose: bool = False) -> None:
    report = ctx.report
    for plugin_dir in report.valid_items:
        print(f"{colorize('✓', GREEN)} {paths.relative(plugin_dir)}")
    for plugin_dir in report.failed_items:
        print(f"{colorize('✗', RED)} {paths.relative(plugin_dir)}")

    if verbose:
        info(f"{len(ctx.skill_names)} unique skill name(s) registered")

    print_issues(report, "Errors", paths)

    total = len(report.valid_items) + len(report.failed_items)
    print(f"\n{len(report.valid_items)}/{total} plugins valid")


def print_json(ctx: ValidationContext, paths: MarketplacePaths) -> None:
    data = ctx.report.to_dict()
    data["issues"] = [{"path": paths.relative(Path(i.path)), "message": i.message} for i in ctx.report.issues]
    data["valid"] = [paths.relative(p) for p in ctx.report.valid_items]
    data["failed"] = [paths.relative(p) for p in ctx.report.failed_items]
    print(json.dumps(data, indent=2))


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate marketplace plugins and their skills")
    parser.add_argument("path", nargs="?", help="Plugin directory to validate (default: all plugins and templates)")
    parser.add_argument("--root", help="Marketplace root (default: $MARKETPLACE_ROOT or current directory)")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show extra progress information")
    parser.add_argument(
        "--restrict-categories",
        action="store_true",
        help="Require a category from marketplace.json (or the built-in list)",
    )
    args = parser.parse_args(argv)

    paths = get_marketplace_paths(args.root)

    try:
        plugin_dirs = collect_plugins(paths, args.path)
    except MarketplaceError as e:
        error(f"Cannot read plugins: {e}")
        return EXIT_FAILURE

    if not plugin_dirs:
        if args.json:
            print(json.dumps({"exit_code": EXIT_OK, "issue_count": 0, "issues": []}, indent=2))
        else:
            print("No plugins found to validate.")
        return EXIT_OK

    profile = DEFAULT_PROFILE
    if args.restrict_categories:
        categories = load_category_allow_list(paths)
        if not categories:
            warn("No categories declared in marketplace.json, using the built-in list")
        profile = restricted_profile(categories)

    if not args.json:
        print(f"Validating {len(plugin_dirs)} plugin(s)...\n")

    ctx = run_validation(plugin_dirs, profile)

    if args.json:
        print_json(ctx, paths)
    else:
        print_results(ctx, paths, args.verbose)

    return ctx.report.exit_code


if __name__ == "__main__":
    sys.exit(main())
