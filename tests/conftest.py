"""Shared fixtures: an on-disk skill catalog that passes every validator check."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

CATEGORIES = ("agent", "arch", "backend", "core", "frontend", "infra", "perf")

DISCOVERY_BODY = """
# Find Skills

Lists every skill by category.

### Agent Skills

| Skill | Purpose |
|-------|---------|
| find-skills | Discover which skill to load |

## Other Sections

| not-an-agent-skill | ignored |
"""

WriteSkill = Callable[..., Path]


def title_case(name: str) -> str:
    return " ".join(part[0].upper() + part[1:] for part in name.replace("_", "-").split("-") if part)


def write_skill(
    root: Path,
    category: str,
    name: str,
    description: str = "Use this skill for testing.",
    body: str = "\n# Heading\n\nSome guidance.\n",
    *,
    header: str | None = None,
    display_name: str | None = None,
    short_description: str | None = None,
    companion: bool = True,
) -> Path:
    """Write <root>/<category>/<name>/SKILL.md plus its agents/openai.yaml.

    Returns:
        The skill directory
    """
    skill_dir = root / category / name
    skill_dir.mkdir(parents=True, exist_ok=True)
    if header is None:
        header = f"---\nname: {name}\ndescription: {description}\n---\n"
    (skill_dir / "SKILL.md").write_text(header + body, encoding="utf-8")

    if companion:
        agents_dir = skill_dir / "agents"
        agents_dir.mkdir(exist_ok=True)
        lines = [
            "version: 1",
            f"display_name: {json.dumps(display_name or title_case(name))}",
            f"short_description: {json.dumps(short_description or description)}",
            f"default_prompt: {json.dumps('Use this skill when: ' + description)}",
        ]
        (agents_dir / "openai.yaml").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return skill_dir


def write_manifests(
    root: Path,
    essential: list[str],
    mandatory: list[str],
    wizard: list[str],
    agent_skills: list[str],
) -> None:
    bundles = {
        "bundles": {"essential": {"skills": essential}},
        "categories": {"agent": {"skills": agent_skills}},
    }
    (root / "bundles.json").write_text(json.dumps(bundles, indent=2), encoding="utf-8")
    (root / "skills.config.json").write_text(json.dumps({"mandatory": mandatory}, indent=2), encoding="utf-8")
    scripts = root / "scripts"
    scripts.mkdir(exist_ok=True)
    quoted = ", ".join(f"'{name}'" for name in wizard)
    (scripts / "skills-wizard.js").write_text(
        f"const fs = require('fs');\n\nconst mandatory = [{quoted}];\n\nconsole.log(mandatory);\n",
        encoding="utf-8",
    )


@pytest.fixture
def make_skill() -> WriteSkill:
    """Return the write_skill helper."""
    return write_skill


@pytest.fixture
def catalog_root(tmp_path: Path) -> Path:
    """A complete, valid catalog with four skills and consistent manifests."""
    root = tmp_path / "catalog"
    root.mkdir()
    for category in CATEGORIES:
        (root / category).mkdir()

    write_skill(root, "agent", "find-skills", "Use this skill when choosing which skill to load.", DISCOVERY_BODY)
    write_skill(root, "backend", "api-patterns", "Use this skill when designing REST APIs and error handling")
    write_skill(root, "core", "git", "Commit, branch and rebase workflows with git")
    write_skill(root, "core", "errors", "Error handling conventions and exception hierarchies")

    write_manifests(
        root,
        essential=["core/git", "core/errors"],
        mandatory=["git", "errors"],
        wizard=["errors", "git"],
        agent_skills=["find-skills"],
    )

    evals = root / "evals"
    evals.mkdir()
    suite = {
        "pass_threshold": 0.85,
        "none_score_threshold": 4,
        "cases": [
            {"id": "rest-api", "prompt": "help me design REST APIs", "expected": "api-patterns"},
            {"id": "git-rebase", "prompt": "rebase my git branch", "expected": "git"},
            {"id": "weather", "prompt": "what is the weather tomorrow", "expected": None},
        ],
    }
    (evals / "trigger-evals.json").write_text(json.dumps(suite, indent=2), encoding="utf-8")
    return root
