#!/usr/bin/env python3
"""
Skill Catalog Gate - Cross-Source Manifests

Typed readers for the four listings that enumerate skill names outside
the catalog itself. Each reader documents the contract it expects from
its source and raises ManifestError when the source breaks it.

Sources:
1. Bundle manifest (bundles.json)
   {"bundles": {"essential": {"skills": ["core/git", ...]}},
    "categories": {"agent": {"skills": ["find-skills", ...]}}}
   Essential entries are path-like; the last segment is the skill name.
2. Install config (skills.config.json)
   {"mandatory": ["git", ...]}
3. Wizard defaults (scripts/skills-wizard.js)
   One literal declaration ``const mandatory = ['git', ...];``.
   The script is read as text, never executed.
4. Discovery table (agent/find-skills/SKILL.md)
   A ``### Agent Skills`` section, ending at the next ``## `` heading,
   holding a pipe table whose first column lists skill names. The header
   row literal ``skill`` is not a name.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from skc_common import read_utf8

WIZARD_MANDATORY_PATTERN = re.compile(r"const mandatory = \[([^\]]+)\];")
TABLE_FIRST_CELL_PATTERN = re.compile(r"^\|\s*([a-z0-9][a-z0-9-]*)\s*\|", re.IGNORECASE | re.MULTILINE)
TABLE_HEADER_LITERAL = "skill"
NEXT_SECTION_MARKER = "\n## "


class ManifestError(Exception):
    """A cross-source manifest is missing, unparsable, or off-contract."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


@dataclass
class BundleManifest:
    """Bundle definition: the essential group and the agent category."""

    essential_refs: list[str] = field(default_factory=list)
    agent_skills: list[str] = field(default_factory=list)

    @property
    def essential_names(self) -> list[str]:
        """Skill names of the essential group (last path segment of each ref)."""
        return [ref.split("/")[-1] for ref in self.essential_refs]


@dataclass
class InstallConfig:
    mandatory: list[str] = field(default_factory=list)


@dataclass
class WizardDefaults:
    mandatory: list[str] = field(default_factory=list)


@dataclass
class DiscoveryTable:
    names: list[str] = field(default_factory=list)


def _read_text(path: Path) -> str:
    try:
        return read_utf8(path)
    except FileNotFoundError:
        raise ManifestError(path, "file not found") from None
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(path, f"cannot read file ({e})") from e


def _read_json(path: Path) -> dict[str, Any]:
    text = _read_text(path)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(path, f"invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise ManifestError(path, "top-level value must be an object")
    return data


def _dig(data: dict[str, Any], *keys: str) -> Any:
    """Follow nested keys, returning None as soon as one is missing."""
    current: Any = data
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _string_list(path: Path, value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestError(path, f"'{where}' must be a list of strings")
    return list(value)


def load_bundle_manifest(path: Path) -> BundleManifest:
    """Read the bundle manifest. Missing groups read as empty lists."""
    data = _read_json(path)
    return BundleManifest(
        essential_refs=_string_list(path, _dig(data, "bundles", "essential", "skills"), "bundles.essential.skills"),
        agent_skills=_string_list(path, _dig(data, "categories", "agent", "skills"), "categories.agent.skills"),
    )


def load_install_config(path: Path) -> InstallConfig:
    """Read the install config's mandatory list."""
    data = _read_json(path)
    return InstallConfig(mandatory=_string_list(path, data.get("mandatory"), "mandatory"))


def parse_wizard_defaults(text: str) -> list[str] | None:
    """Extract the literal mandatory array from wizard source text.

    Returns:
        List of names, or None when no declaration is present
    """
    match = WIZARD_MANDATORY_PATTERN.search(text)
    if not match:
        return None
    values = []
    for raw in match.group(1).split(","):
        value = raw.strip()
        value = re.sub(r"^['\"]|['\"]$", "", value)
        if value:
            values.append(value)
    return values


def load_wizard_defaults(path: Path) -> WizardDefaults:
    """Read the wizard's declared mandatory list."""
    values = parse_wizard_defaults(_read_text(path))
    if values is None:
        raise ManifestError(path, "unable to parse mandatory skills")
    return WizardDefaults(mandatory=values)


def parse_discovery_table(text: str, heading: str) -> list[str] | None:
    """Extract first-column names from the table under ``heading``.

    Returns:
        Names in document order, or None when the heading is absent
    """
    index = text.find(heading)
    if index < 0:
        return None
    section = text[index + len(heading) :]
    next_section = section.find(NEXT_SECTION_MARKER)
    if next_section >= 0:
        section = section[:next_section]
    return [
        value
        for value in TABLE_FIRST_CELL_PATTERN.findall(section)
        if value.lower() != TABLE_HEADER_LITERAL
    ]


def load_discovery_table(path: Path, heading: str) -> DiscoveryTable:
    """Read the discovery document's designated table."""
    names = parse_discovery_table(_read_text(path), heading)
    if names is None:
        raise ManifestError(path, f'unable to find "{heading}" section')
    return DiscoveryTable(names=names)


def same_names(left: list[str], right: list[str]) -> bool:
    """Order-insensitive comparison of two name lists (sorted-and-joined)."""
    return "|".join(sorted(left)) == "|".join(sorted(right))
