#!/usr/bin/env python3
"""
Skill Catalog Gate - Catalog Loader

Discovers skill records under the category directories of a catalog
checkout, parses each SKILL.md header block and body, and builds an
in-memory Catalog ordered by name.

Header block format:
    ---
    name: kebab-case-name
    description: When to use the skill.
    ---
    body...

Only ``name`` and ``description`` are allowed in the header.

Load modes:
    strict   - the first record that cannot be loaded raises CatalogLoadError
    lenient  - unloadable records are skipped and listed on Catalog.skipped
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from skc_common import CatalogLayout, read_utf8

LoadMode = Literal["strict", "lenient"]

HEADER_DELIMITER = "---"
REQUIRED_FIELDS = ("name", "description")
ALLOWED_FIELDS = frozenset(REQUIRED_FIELDS)

HEADER_LINE_PATTERN = re.compile(r"^([A-Za-z0-9_-]+):\s*(.*)$")
LINE_SPLIT_PATTERN = re.compile(r"\r?\n")


# =============================================================================
# Exceptions
# =============================================================================


class CatalogError(Exception):
    """Base class for catalog loading failures."""


class HeaderError(CatalogError):
    """A record's header block is unusable."""


class MalformedHeader(HeaderError):
    """The opening or closing ``---`` delimiter is missing."""


class MissingRequiredField(HeaderError):
    """``name`` or ``description`` is absent from the header."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Header must include name and description (missing: {', '.join(missing)})")


class UnsupportedField(HeaderError):
    """The header declares keys other than ``name`` and ``description``."""

    def __init__(self, extra: list[str]) -> None:
        self.extra = extra
        super().__init__(f"Unsupported header keys: {', '.join(extra)}")


class CatalogLoadError(CatalogError):
    """Strict-mode failure to load one record."""

    def __init__(self, path: Path, cause: Exception | str) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"{path}: {cause}")


# =============================================================================
# Data Model
# =============================================================================


@dataclass(frozen=True)
class SkillRecord:
    """One catalog entry, built once per load pass and never mutated."""

    name: str
    category: str
    description: str
    body: str
    path: Path


@dataclass(frozen=True)
class Catalog:
    """All records of one run, ordered by name. Names are unique."""

    records: tuple[SkillRecord, ...] = ()
    skipped: tuple[Path, ...] = ()

    def __iter__(self) -> Iterator[SkillRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def names(self) -> list[str]:
        return [record.name for record in self.records]

    def get(self, name: str) -> SkillRecord | None:
        for record in self.records:
            if record.name == name:
                return record
        return None


@dataclass
class ParsedHeader:
    """Raw header mapping plus the body text that follows it."""

    fields: dict[str, str] = field(default_factory=dict)
    body: str = ""


# =============================================================================
# Parsing
# =============================================================================


def split_lines(text: str) -> list[str]:
    """Split on LF or CRLF line breaks."""
    return LINE_SPLIT_PATTERN.split(text)


def parse_header(text: str) -> ParsedHeader:
    """Split a record into its header mapping and body.

    Raises:
        MalformedHeader: if the file does not start with a ``---`` line
            or no closing ``---`` line follows it.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = split_lines(text)
    if not lines or lines[0] != HEADER_DELIMITER:
        raise MalformedHeader("Missing frontmatter opening separator")

    closing = next((i for i, line in enumerate(lines) if i > 0 and line.strip() == HEADER_DELIMITER), None)
    if closing is None:
        raise MalformedHeader("Missing frontmatter closing separator")

    fields: dict[str, str] = {}
    for line in lines[1:closing]:
        match = HEADER_LINE_PATTERN.match(line)
        if match:
            fields[match.group(1)] = match.group(2).strip()
    return ParsedHeader(fields=fields, body="\n".join(lines[closing + 1 :]))


def header_problems(fields: dict[str, str]) -> list[HeaderError]:
    """Return every field-level problem of a parsed header (empty when valid)."""
    problems: list[HeaderError] = []
    missing = [name for name in REQUIRED_FIELDS if name not in fields]
    if missing:
        problems.append(MissingRequiredField(missing))
    extra = [key for key in fields if key not in ALLOWED_FIELDS]
    if extra:
        problems.append(UnsupportedField(extra))
    return problems


def parse_record(text: str, category: str, path: Path, allow_extra_fields: bool = False) -> SkillRecord:
    """Parse one record's text into a SkillRecord.

    Args:
        text: Raw record text
        category: Category directory the record was found in
        path: Path of the record file
        allow_extra_fields: Keep records whose header carries unsupported keys

    Raises:
        MalformedHeader, MissingRequiredField, UnsupportedField
    """
    header = parse_header(text)
    problems = header_problems(header.fields)
    if allow_extra_fields:
        problems = [p for p in problems if not isinstance(p, UnsupportedField)]
    if problems:
        raise problems[0]
    return SkillRecord(
        name=header.fields["name"],
        category=category,
        description=header.fields["description"],
        body=header.body,
        path=path,
    )


# =============================================================================
# Discovery
# =============================================================================


def iter_skill_dirs(layout: CatalogLayout) -> Iterator[tuple[str, Path]]:
    """Yield (category, skill_directory) for every immediate child directory
    of each existing category directory, in category then name order."""
    for category in layout.categories:
        category_path = layout.root / category
        if not category_path.is_dir():
            continue
        for entry in sorted(category_path.iterdir()):
            if entry.is_dir():
                yield category, entry


def load_catalog(layout: CatalogLayout, mode: LoadMode = "lenient") -> Catalog:
    """Load every skill record of the catalog.

    Args:
        layout: Catalog layout (root, categories, record file name)
        mode: "strict" raises on the first unloadable or duplicate record,
            "lenient" skips it and lists its path on ``Catalog.skipped``;
            lenient mode keeps records whose only problem is an
            unsupported header key

    Returns:
        Catalog ordered by name
    """
    if mode not in ("strict", "lenient"):
        raise ValueError(f"Unknown load mode: {mode!r}")

    records: dict[str, SkillRecord] = {}
    skipped: list[Path] = []

    for category, skill_dir in iter_skill_dirs(layout):
        record_path = skill_dir / layout.record_filename
        if not record_path.is_file():
            if mode == "strict":
                raise CatalogLoadError(record_path, f"Missing {layout.record_filename}")
            skipped.append(record_path)
            continue

        try:
            record = parse_record(
                read_utf8(record_path),
                category,
                record_path,
                allow_extra_fields=(mode == "lenient"),
            )
        except (HeaderError, OSError, UnicodeDecodeError) as exc:
            if mode == "strict":
                raise CatalogLoadError(record_path, exc) from exc
            skipped.append(record_path)
            continue

        if record.name in records:
            if mode == "strict":
                raise CatalogLoadError(record_path, f"Duplicate skill name '{record.name}'")
            skipped.append(record_path)
            continue
        records[record.name] = record

    ordered = tuple(sorted(records.values(), key=lambda r: r.name))
    return Catalog(records=ordered, skipped=tuple(skipped))
