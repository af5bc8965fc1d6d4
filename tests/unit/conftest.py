"""Shared fixtures: build throwaway marketplace trees under tmp_path."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from mkt_common import MarketplacePaths


class MarketplaceBuilder:
    """Creates plugins, skills and provenance records below one root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.paths = MarketplacePaths(root)
        self.paths.plugins_dir.mkdir(parents=True, exist_ok=True)

    def plugin(self, rel: str, manifest: dict[str, Any] | None = None, **overrides: Any) -> Path:
        """Create <root>/<rel> with a valid plugin.json (fields overridable)."""
        plugin_dir = self.root / rel
        data: dict[str, Any] = (
            manifest
            if manifest is not None
            else {
                "name": plugin_dir.name,
                "version": "1.0.0",
                "description": f"The {plugin_dir.name} plugin",
                "author": {"name": "Marketplace Team"},
            }
        )
        data.update(overrides)
        manifest_dir = plugin_dir / ".claude-plugin"
        manifest_dir.mkdir(parents=True, exist_ok=True)
        (manifest_dir / "plugin.json").write_text(json.dumps(data, indent=2), encoding="utf-8")
        return plugin_dir

    def skill(
        self,
        parent: Path,
        name: str,
        frontmatter: dict[str, Any] | None = None,
        content: str | None = None,
    ) -> Path:
        """Create parent/skills/<name>/SKILL.md with valid frontmatter."""
        skill_dir = parent / "skills" / name
        skill_dir.mkdir(parents=True, exist_ok=True)
        if content is None:
            fields = frontmatter if frontmatter is not None else {
                "name": name,
                "description": f"Use {name}",
                "version": "1.0.0",
            }
            lines = [f"{key}: {value}" for key, value in fields.items()]
            content = "---\n" + "\n".join(lines) + "\n---\n\n# " + name + "\n"
        (skill_dir / "SKILL.md").write_text(content, encoding="utf-8")
        return skill_dir

    def source(
        self,
        directory: Path,
        url: str = "https://github.com/org/repo",
        sha: str = "a" * 40,
        paths: list[str] | None = None,
    ) -> Path:
        """Write directory/.source.json."""
        directory.mkdir(parents=True, exist_ok=True)
        record = {
            "url": url,
            "sha": sha,
            "syncedAt": "2026-01-01T00:00:00.000Z",
            "paths": paths if paths is not None else [],
        }
        record_path = directory / ".source.json"
        record_path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        return record_path

    def marketplace(self, **data: Any) -> Path:
        """Write .claude-plugin/marketplace.json at the root."""
        content = {"name": "test-marketplace", "owner": {"name": "Marketplace Team"}, "plugins": []}
        content.update(data)
        path = self.paths.marketplace_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content, indent=2), encoding="utf-8")
        return path


@pytest.fixture
def market(tmp_path: Path) -> MarketplaceBuilder:
    """An empty marketplace with a plugins/ directory."""
    return MarketplaceBuilder(tmp_path.resolve())


@pytest.fixture(autouse=True)
def _no_color(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep console output free of ANSI codes and isolate the root variable."""
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("MARKETPLACE_ROOT", raising=False)
