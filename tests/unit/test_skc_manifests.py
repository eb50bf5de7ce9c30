#!/usr/bin/env python3
"""Tests for skc_manifests.py - typed readers for the cross-source listings."""

import json
from pathlib import Path

import pytest
from skc_manifests import (
    ManifestError,
    load_bundle_manifest,
    load_discovery_table,
    load_install_config,
    load_wizard_defaults,
    parse_discovery_table,
    parse_wizard_defaults,
    same_names,
)


class TestBundleManifest:
    """Tests for bundles.json reading."""

    def test_essential_names_use_last_path_segment(self, tmp_path: Path) -> None:
        path = tmp_path / "bundles.json"
        path.write_text(
            json.dumps({"bundles": {"essential": {"skills": ["core/git", "backend/api-patterns"]}}}),
            encoding="utf-8",
        )
        manifest = load_bundle_manifest(path)
        assert manifest.essential_refs == ["core/git", "backend/api-patterns"]
        assert manifest.essential_names == ["git", "api-patterns"]
        assert manifest.agent_skills == []

    def test_agent_category_skills(self, tmp_path: Path) -> None:
        path = tmp_path / "bundles.json"
        path.write_text(json.dumps({"categories": {"agent": {"skills": ["find-skills"]}}}), encoding="utf-8")
        assert load_bundle_manifest(path).agent_skills == ["find-skills"]

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="file not found"):
            load_bundle_manifest(tmp_path / "bundles.json")

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bundles.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ManifestError, match="invalid JSON"):
            load_bundle_manifest(path)

    def test_non_list_group_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bundles.json"
        path.write_text(json.dumps({"bundles": {"essential": {"skills": "core/git"}}}), encoding="utf-8")
        with pytest.raises(ManifestError, match="list of strings"):
            load_bundle_manifest(path)


class TestInstallConfig:
    """Tests for skills.config.json reading."""

    def test_reads_mandatory(self, tmp_path: Path) -> None:
        path = tmp_path / "skills.config.json"
        path.write_text(json.dumps({"mandatory": ["git", "errors"]}), encoding="utf-8")
        assert load_install_config(path).mandatory == ["git", "errors"]

    def test_top_level_array_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "skills.config.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ManifestError, match="object"):
            load_install_config(path)


class TestWizardDefaults:
    """Tests for the textual mandatory-list declaration."""

    def test_parses_single_and_double_quotes(self) -> None:
        text = "const x = 1;\nconst mandatory = ['git', \"errors\" , 'api-patterns'];\n"
        assert parse_wizard_defaults(text) == ["git", "errors", "api-patterns"]

    def test_absent_declaration_returns_none(self) -> None:
        assert parse_wizard_defaults("const optional = ['git'];") is None

    def test_load_raises_when_unparsable(self, tmp_path: Path) -> None:
        path = tmp_path / "skills-wizard.js"
        path.write_text("console.log('no list here');\n", encoding="utf-8")
        with pytest.raises(ManifestError, match="unable to parse mandatory skills"):
            load_wizard_defaults(path)

    def test_load_returns_names(self, tmp_path: Path) -> None:
        path = tmp_path / "skills-wizard.js"
        path.write_text("const mandatory = ['git'];\n", encoding="utf-8")
        assert load_wizard_defaults(path).mandatory == ["git"]


class TestDiscoveryTable:
    """Tests for the Agent Skills table extraction."""

    HEADING = "### Agent Skills"

    def test_reads_first_column_and_skips_header_row(self) -> None:
        text = (
            "# Find\n\n### Agent Skills\n\n| Skill | Purpose |\n|-------|---------|\n"
            "| find-skills | x |\n| planner | y |\n"
        )
        assert parse_discovery_table(text, self.HEADING) == ["find-skills", "planner"]

    def test_section_ends_at_next_level_two_heading(self) -> None:
        text = "### Agent Skills\n| find-skills | x |\n\n## Later\n| other | y |\n"
        assert parse_discovery_table(text, self.HEADING) == ["find-skills"]

    def test_level_three_heading_does_not_end_section(self) -> None:
        text = "### Agent Skills\n| find-skills | x |\n### More\n| planner | y |\n"
        assert parse_discovery_table(text, self.HEADING) == ["find-skills", "planner"]

    def test_missing_heading_returns_none(self) -> None:
        assert parse_discovery_table("# Nothing here\n", self.HEADING) is None

    def test_load_raises_when_heading_missing(self, tmp_path: Path) -> None:
        path = tmp_path / "SKILL.md"
        path.write_text("# Nothing here\n", encoding="utf-8")
        with pytest.raises(ManifestError, match="Agent Skills"):
            load_discovery_table(path, self.HEADING)

    def test_load_from_fixture(self, catalog_root: Path) -> None:
        table = load_discovery_table(catalog_root / "agent" / "find-skills" / "SKILL.md", self.HEADING)
        assert table.names == ["find-skills"]


class TestSameNames:
    def test_order_insensitive(self) -> None:
        assert same_names(["git", "errors"], ["errors", "git"])

    def test_different_members(self) -> None:
        assert not same_names(["git", "errors"], ["git"])

    def test_both_empty(self) -> None:
        assert same_names([], [])
