#!/usr/bin/env python3
"""Tests for validate_plugins.py - plugin, manifest and SKILL.md validation."""

import json
from pathlib import Path

import pytest
from mkt_common import ValidationProfile, restricted_profile
from validate_plugins import (
    ValidationContext,
    collect_plugins,
    main,
    parse_frontmatter,
    run_validation,
    validate_plugin,
)


def messages(ctx: ValidationContext) -> list[str]:
    return [issue.message for issue in ctx.report.issues]


class TestParseFrontmatter:
    def test_parses_mapping(self) -> None:
        """A YAML mapping between --- fences is returned as a dict."""
        assert parse_frontmatter("---\nname: lint\nversion: 1.0.0\n---\nbody") == {"name": "lint", "version": "1.0.0"}

    def test_crlf_line_endings(self) -> None:
        """Windows line endings are accepted."""
        assert parse_frontmatter("---\r\nname: lint\r\n---\r\n") == {"name": "lint"}

    @pytest.mark.parametrize("content", ["# No frontmatter", "---\n- a\n- b\n---\n", "---\nkey: [unclosed\n---\n"])
    def test_rejects_missing_or_non_mapping(self, content: str) -> None:
        """Absent, non-mapping or unparseable frontmatter yields None."""
        assert parse_frontmatter(content) is None


class TestManifest:
    """plugin.json checks; every failed check is its own issue."""

    def test_valid_plugin_has_no_issues(self, market) -> None:
        """A complete plugin passes and is listed as valid."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        ctx = run_validation([plugin])
        assert messages(ctx) == []
        assert ctx.report.valid_items == [plugin]

    def test_missing_manifest(self, market) -> None:
        """A plugin without plugin.json gets one issue."""
        plugin = market.paths.plugins_dir / "bare"
        (plugin / "commands").mkdir(parents=True)
        ctx = run_validation([plugin])
        assert "Missing .claude-plugin/plugin.json" in messages(ctx)

    def test_invalid_json(self, market) -> None:
        """An unparseable manifest is reported with the parser error."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        (plugin / ".claude-plugin" / "plugin.json").write_text("{oops")
        ctx = run_validation([plugin])
        assert any(m.startswith("Invalid JSON:") for m in messages(ctx))

    def test_each_missing_field_reported(self, market) -> None:
        """Every missing required field is its own issue."""
        plugin = market.plugin("plugins/core", manifest={})
        market.skill(plugin, "lint")
        ctx = run_validation([plugin])
        assert messages(ctx) == [
            "Missing required field: name",
            "Missing required field: version",
            "Missing required field: description",
            "Missing required field: author",
        ]

    def test_author_without_name(self, market) -> None:
        """An author object must carry a name."""
        plugin = market.plugin("plugins/core", author={"email": "a@b.c"})
        market.skill(plugin, "lint")
        assert messages(run_validation([plugin])) == ["Missing required field: author.name"]

    def test_bad_name_and_version(self, market) -> None:
        """Non-kebab names and non x.y.z versions are reported."""
        plugin = market.plugin("plugins/core", name="Core_Plugin", version="1.0")
        market.skill(plugin, "lint")
        assert messages(run_validation([plugin])) == [
            'Invalid name format: "Core_Plugin" (must be kebab-case)',
            'Invalid version format: "1.0" (must be x.y.z)',
        ]

    def test_category_only_checked_when_restricted(self, market) -> None:
        """category is required only under a restricted profile."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        assert messages(run_validation([plugin])) == []
        assert messages(run_validation([plugin], restricted_profile())) == ["Missing required field: category"]

    def test_unknown_category(self, market) -> None:
        """Categories outside the allowed list are rejected."""
        plugin = market.plugin("plugins/core", category="gaming")
        market.skill(plugin, "lint")
        ctx = run_validation([plugin], restricted_profile({"development", "testing"}))
        assert messages(ctx) == ['Invalid category: "gaming" (must be one of: development, testing)']

    def test_hooks_field_forbidden_by_profile(self, market) -> None:
        """A profile can forbid manifest fields."""
        plugin = market.plugin("plugins/core", hooks={"PreToolUse": []})
        market.skill(plugin, "lint")
        ctx = run_validation([plugin], ValidationProfile(allow_hooks_field=False))
        assert 'Field "hooks" is not allowed in this marketplace' in messages(ctx)


class TestContent:
    """A plugin must ship something; skills/ must hold valid skills."""

    def test_plugin_without_content(self, market) -> None:
        """A plugin with nothing to offer is reported."""
        plugin = market.plugin("plugins/empty")
        ctx = run_validation([plugin])
        assert messages(ctx) == ["Plugin must have at least one of: skills/, commands/, agents/, or hooks.json"]
        assert ctx.report.failed_items == [plugin]

    @pytest.mark.parametrize("kind", ["commands", "agents"])
    def test_commands_or_agents_count_as_content(self, market, kind: str) -> None:
        """commands/ or agents/ alone satisfy the content rule."""
        plugin = market.plugin("plugins/core")
        (plugin / kind).mkdir()
        assert messages(run_validation([plugin])) == []

    def test_inline_hooks_count_as_content(self, market) -> None:
        """Hooks declared inline in plugin.json count as content."""
        plugin = market.plugin("plugins/core", hooks={"PreToolUse": []})
        assert messages(run_validation([plugin])) == []

    def test_skill_dir_without_descriptor(self, market) -> None:
        """A skill directory without SKILL.md is reported at its path."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        (plugin / "skills" / "draft").mkdir()
        ctx = run_validation([plugin])
        assert messages(ctx) == ["Missing SKILL.md"]
        assert ctx.report.issues[0].path == str(plugin / "skills" / "draft")

    def test_empty_skills_dir(self, market) -> None:
        """An empty skills/ area is reported."""
        plugin = market.plugin("plugins/core")
        (plugin / "skills").mkdir()
        assert messages(run_validation([plugin])) == ["skills/ directory exists but contains no skills"]

    def test_skills_is_a_file(self, market) -> None:
        """skills must be a directory."""
        plugin = market.plugin("plugins/core")
        (plugin / "skills").write_text("not a directory")
        assert messages(run_validation([plugin])) == ["skills is not a directory"]

    def test_hidden_skill_directory_without_descriptor(self, market) -> None:
        """Hidden children of skills/ need SKILL.md too."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        (plugin / "skills" / ".scratch").mkdir()
        ctx = run_validation([plugin])
        assert messages(ctx) == ["Missing SKILL.md"]
        assert ctx.report.issues[0].path == str(plugin / "skills" / ".scratch")

    def test_hidden_skill_directory_with_descriptor(self, market) -> None:
        """A hidden child with a valid SKILL.md passes."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, ".draft", {"name": "draft", "description": "Draft skill", "version": "1.0.0"})
        assert messages(run_validation([plugin])) == []


class TestSkillDescriptor:
    def test_missing_frontmatter(self, market) -> None:
        """SKILL.md without frontmatter is reported once."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint", content="# Lint\n")
        assert messages(run_validation([plugin])) == ["Missing or invalid YAML frontmatter"]

    def test_missing_frontmatter_fields(self, market) -> None:
        """Each missing frontmatter field is reported."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint", frontmatter={"author": "someone"})
        assert messages(run_validation([plugin])) == [
            "Missing required frontmatter field: name",
            "Missing required frontmatter field: description",
            "Missing required frontmatter field: version",
        ]

    def test_invalid_skill_version(self, market) -> None:
        """Skill versions follow x.y.z."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint", frontmatter={"name": "lint", "description": "d", "version": "v1"})
        assert messages(run_validation([plugin])) == ['Invalid version format: "v1" (must be x.y.z)']


class TestDuplicateSkillNames:
    """A name used N times yields exactly N-1 duplicate issues."""

    def test_duplicates_across_plugins(self, market) -> None:
        """The same skill name in two plugins is reported once."""
        plugins = [market.plugin(f"plugins/p{i}") for i in range(3)]
        for plugin in plugins:
            market.skill(plugin, "shared")
        ctx = run_validation(plugins)
        duplicates = [m for m in messages(ctx) if m.startswith("Duplicate skill name")]
        assert duplicates == ['Duplicate skill name: "shared"'] * 2
        assert ctx.report.valid_items == [plugins[0]]

    def test_duplicates_by_frontmatter_name(self, market) -> None:
        """Duplicates are detected by frontmatter name, not directory."""
        plugin = market.plugin("plugins/core")
        fields = {"name": "same", "description": "d", "version": "1.0.0"}
        market.skill(plugin, "one", frontmatter=fields)
        market.skill(plugin, "two", frontmatter=fields)
        assert messages(run_validation([plugin])) == ['Duplicate skill name: "same"']

    def test_runs_do_not_share_names(self, market) -> None:
        """Each run starts with an empty name set."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        assert messages(run_validation([plugin])) == []
        assert messages(run_validation([plugin])) == []


class TestScriptPermissions:
    def test_non_executable_script(self, market) -> None:
        """Shell scripts without +x are reported."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        script = plugin / "skills" / "lint" / "scripts" / "run.sh"
        script.parent.mkdir()
        script.write_text("#!/bin/sh\n")
        script.chmod(0o644)
        ctx = run_validation([plugin])
        assert messages(ctx) == ["Shell script is not executable (missing +x permission)"]
        assert ctx.report.issues[0].path == str(script)

    def test_executable_script(self, market) -> None:
        """Executable shell scripts pass."""
        plugin = market.plugin("plugins/core")
        market.skill(plugin, "lint")
        script = plugin / "run.sh"
        script.write_text("#!/bin/sh\n")
        script.chmod(0o755)
        assert messages(run_validation([plugin])) == []

    def test_permissions_checked_even_without_content(self, market) -> None:
        """Script permissions are checked alongside the content issue."""
        plugin = market.plugin("plugins/empty")
        script = plugin / "setup.bash"
        script.write_text("#!/bin/bash\n")
        script.chmod(0o600)
        assert len(messages(run_validation([plugin]))) == 2


class TestHooksDiscoverability:
    def test_undeclared_root_hooks_file(self, market) -> None:
        """A root hooks.json must be declared in the manifest."""
        plugin = market.plugin("plugins/core")
        (plugin / "hooks.json").write_text("{}")
        ctx = run_validation([plugin])
        assert len(ctx.report.issues) == 1
        assert "hooks.json exists at plugin root but is not declared" in messages(ctx)[0]

    def test_declared_root_hooks_file(self, market) -> None:
        """A declared root hooks.json passes."""
        plugin = market.plugin("plugins/core", hooks="./hooks.json")
        (plugin / "hooks.json").write_text("{}")
        assert messages(run_validation([plugin])) == []

    def test_default_hooks_location(self, market) -> None:
        """hooks/hooks.json is found without declaration."""
        plugin = market.plugin("plugins/core")
        (plugin / "hooks").mkdir()
        (plugin / "hooks" / "hooks.json").write_text("{}")
        assert messages(run_validation([plugin])) == []

    def test_declared_hooks_file_missing(self, market) -> None:
        """A declared hooks path must exist."""
        plugin = market.plugin("plugins/core", hooks="./config/hooks.json")
        market.skill(plugin, "lint")
        assert messages(run_validation([plugin])) == ['hooks field references "./config/hooks.json" but file does not exist']

    def test_declared_hooks_outside_plugin(self, market) -> None:
        """A declared hooks path may not leave the plugin."""
        plugin = market.plugin("plugins/core", hooks="../shared/hooks.json")
        market.skill(plugin, "lint")
        (market.paths.plugins_dir / "shared").mkdir()
        (market.paths.plugins_dir / "shared" / "hooks.json").write_text("{}")
        assert messages(run_validation([plugin])) == [
            'hooks field references "../shared/hooks.json" outside the plugin directory'
        ]

    def test_hooks_field_wrong_type(self, market) -> None:
        """The hooks field must be a string path or an inline object."""
        plugin = market.plugin("plugins/core", hooks=["a"])
        market.skill(plugin, "lint")
        assert messages(run_validation([plugin])) == ["hooks field must be a relative path to a hooks file"]


class TestCollectPlugins:
    def test_includes_templates_when_present(self, market) -> None:
        """templates/ is validated when it exists."""
        core = market.plugin("plugins/core")
        template = market.plugin("templates/starter")
        assert collect_plugins(market.paths) == [core, template]

    def test_templates_optional(self, market) -> None:
        """A missing templates/ is not an error."""
        core = market.plugin("plugins/core")
        assert collect_plugins(market.paths) == [core]

    def test_explicit_path_relative_to_root(self, market) -> None:
        """Explicit plugin paths resolve against the root."""
        core = market.plugin("plugins/core")
        market.plugin("plugins/other")
        assert collect_plugins(market.paths, "plugins/core") == [core]


class TestMain:
    """CLI behaviour: exit codes and output formats."""

    def test_all_valid_exits_zero(self, market, capsys: pytest.CaptureFixture[str]) -> None:
        """A clean tree exits 0 with a success line."""
        market.skill(market.plugin("plugins/core"), "lint")
        assert main(["--root", str(market.root)]) == 0
        assert "1/1 plugins valid" in capsys.readouterr().out

    def test_issues_exit_one(self, market, capsys: pytest.CaptureFixture[str]) -> None:
        """Any issue makes the run exit 1."""
        market.plugin("plugins/empty")
        assert main(["--root", str(market.root)]) == 1
        out = capsys.readouterr().out
        assert "plugins/empty: Plugin must have at least one of" in out
        assert "0/1 plugins valid" in out

    def test_missing_plugins_dir_exits_one(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A missing plugins/ is a hard failure."""
        assert main(["--root", str(tmp_path)]) == 1
        assert "Directory does not exist" in capsys.readouterr().err

    def test_no_plugins(self, market, capsys: pytest.CaptureFixture[str]) -> None:
        """An empty plugins/ is reported and exits 0."""
        assert main(["--root", str(market.root)]) == 0
        assert "No plugins found to validate." in capsys.readouterr().out

    def test_json_output(self, market, capsys: pytest.CaptureFixture[str]) -> None:
        """--json prints the report as JSON."""
        market.plugin("plugins/empty")
        assert main(["--root", str(market.root), "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["issue_count"] == 1
        assert data["failed"] == ["plugins/empty"]
        assert data["issues"][0]["path"] == "plugins/empty"

    def test_restrict_categories_uses_marketplace_list(self, market, capsys: pytest.CaptureFixture[str]) -> None:
        """--restrict-categories reads the allowed ids from marketplace.json."""
        market.marketplace(categories=[{"id": "tools"}])
        market.skill(market.plugin("plugins/core", category="tools"), "lint")
        market.skill(market.plugin("plugins/other", category="development"), "fmt")
        assert main(["--root", str(market.root), "--restrict-categories"]) == 1
        assert 'Invalid category: "development" (must be one of: tools)' in capsys.readouterr().out

    def test_root_from_environment(self, market, monkeypatch: pytest.MonkeyPatch) -> None:
        """MARKETPLACE_ROOT is used when --root is absent."""
        market.skill(market.plugin("plugins/core"), "lint")
        monkeypatch.setenv("MARKETPLACE_ROOT", str(market.root))
        assert main([]) == 0
