#!/usr/bin/env python3
"""Tests for mkt_generate_index.py - marketplace.json plugin index."""

import json
from pathlib import Path

import pytest
from mkt_common import MarketplaceIndexError, SafetyCheckError
from mkt_generate_index import generate_index, main


class TestGenerateIndex:
    def test_entries_sorted_by_name(self, market) -> None:
        """Index entries are sorted by plugin name."""
        market.marketplace()
        market.plugin("plugins/zeta")
        market.plugin("plugins/external/org/repo/alpha")
        data = generate_index(market.paths)
        assert [(p["name"], p["source"]) for p in data["plugins"]] == [
            ("alpha", "./plugins/external/org/repo/alpha"),
            ("zeta", "./plugins/zeta"),
        ]

    def test_entry_fields(self, market) -> None:
        """Each entry carries the manifest fields and its source path."""
        market.marketplace()
        market.plugin(
            "plugins/core",
            category="development",
            homepage="https://example.com",
            license="MIT",
            keywords=["lint"],
        )
        market.plugin("plugins/plain", keywords=[])
        data = generate_index(market.paths)
        core, plain = data["plugins"]
        assert core == {
            "name": "core",
            "source": "./plugins/core",
            "description": "The core plugin",
            "version": "1.0.0",
            "author": {"name": "Marketplace Team"},
            "category": "development",
            "homepage": "https://example.com",
            "license": "MIT",
            "keywords": ["lint"],
        }
        assert "keywords" not in plain
        assert "category" not in plain

    def test_other_keys_preserved(self, market) -> None:
        """Keys other than plugins are left untouched."""
        market.marketplace(categories=[{"id": "tools"}], plugins=[{"name": "stale"}])
        market.plugin("plugins/core")
        generate_index(market.paths)
        data = json.loads(market.paths.marketplace_path.read_text())
        assert data["categories"] == [{"id": "tools"}]
        assert data["owner"] == {"name": "Marketplace Team"}
        assert [p["name"] for p in data["plugins"]] == ["core"]

    def test_unreadable_manifest_skipped(self, market, capsys: pytest.CaptureFixture[str]) -> None:
        """Plugins with broken manifests are left out of the index."""
        market.marketplace()
        market.plugin("plugins/good")
        broken = market.plugin("plugins/broken")
        (broken / ".claude-plugin" / "plugin.json").write_text("{oops")
        data = generate_index(market.paths)
        assert [p["name"] for p in data["plugins"]] == ["good"]
        assert "Skipping broken" in capsys.readouterr().err

    def test_missing_marketplace_json(self, market) -> None:
        """A missing marketplace.json is an error."""
        market.plugin("plugins/core")
        with pytest.raises(MarketplaceIndexError, match="marketplace.json not found"):
            generate_index(market.paths)

    def test_invalid_marketplace_json(self, market) -> None:
        """An unparseable marketplace.json is an error."""
        path = market.marketplace()
        path.write_text("[1, 2]")
        market.plugin("plugins/core")
        with pytest.raises(MarketplaceIndexError, match="expected an object"):
            generate_index(market.paths)

    def test_refuses_to_write_empty_index(self, market) -> None:
        """An index without plugins is not written."""
        path = market.marketplace(plugins=[{"name": "keep-me"}])
        before = path.read_text()
        with pytest.raises(SafetyCheckError):
            generate_index(market.paths)
        assert path.read_text() == before


class TestMain:
    def test_success(self, market, capsys: pytest.CaptureFixture[str]) -> None:
        """The command line rewrites the index and exits 0."""
        market.marketplace()
        market.plugin("plugins/core")
        assert main(["--root", str(market.root)]) == 0
        assert "with 1 plugins" in capsys.readouterr().out

    def test_failure_exits_one(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Errors exit 1."""
        assert main(["--root", str(tmp_path)]) == 1
        assert "Failed to generate marketplace.json" in capsys.readouterr().err
