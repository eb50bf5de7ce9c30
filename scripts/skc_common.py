#!/usr/bin/env python3
"""
Skill Catalog Gate - Common Module

Shared infrastructure for the catalog validator, trigger matcher and
evaluation runner. This module contains:
- Type definitions (Level, ValidationResult, ValidationReport)
- Catalog layout configuration (CatalogLayout)
- Utility functions (tree walk, formatting, exit codes)

All individual tools should import from this module to ensure consistency.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# Type Definitions
# =============================================================================

# Validation result severity levels
# - ERROR: always blocks validation (non-zero exit code)
# - WARNING: blocks only in --strict mode, always reported
# - INFO: informational only, shown in verbose mode
# - PASSED: check passed, shown in verbose mode
Level = Literal["ERROR", "WARNING", "INFO", "PASSED"]

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_OK = 0  # All checks passed (or only WARNING/INFO/PASSED)
EXIT_FAILED = 1  # Errors found, eval below threshold, or unusable input

# =============================================================================
# Catalog Defaults
# =============================================================================

SKILL_CATEGORIES = ("agent", "arch", "backend", "core", "frontend", "infra", "perf")
RECORD_FILENAME = "SKILL.md"
COMPANION_RELPATH = "agents/openai.yaml"
REFERENCES_DIRNAME = "references"

SOFT_LINE_BUDGET = 300
HARD_LINE_LIMIT = 500
SOFT_WORD_BUDGET = 900
HARD_WORD_LIMIT = 1400
MAX_SHORT_DESCRIPTION = 160

# Directories never descended into by the encoding scan
SKIP_DIRS = {".git", "node_modules"}

# Environment variable consulted when no --root flag is given
ROOT_ENV_VAR = "SKC_CATALOG_ROOT"


@dataclass(frozen=True)
class CatalogLayout:
    """Where things live in a catalog checkout and the limits applied to them.

    Every path attribute except ``root`` is relative to ``root``.
    """

    root: Path
    categories: tuple[str, ...] = SKILL_CATEGORIES
    record_filename: str = RECORD_FILENAME
    companion_relpath: str = COMPANION_RELPATH
    references_dirname: str = REFERENCES_DIRNAME
    soft_line_budget: int = SOFT_LINE_BUDGET
    hard_line_limit: int = HARD_LINE_LIMIT
    soft_word_budget: int = SOFT_WORD_BUDGET
    hard_word_limit: int = HARD_WORD_LIMIT
    max_short_description: int = MAX_SHORT_DESCRIPTION
    bundles_relpath: str = "bundles.json"
    install_config_relpath: str = "skills.config.json"
    wizard_relpath: str = "scripts/skills-wizard.js"
    discovery_relpath: str = "agent/find-skills/SKILL.md"
    discovery_heading: str = "### Agent Skills"
    skip_dirs: frozenset[str] = frozenset(SKIP_DIRS)

    def rel(self, path: Path) -> str:
        """Return ``path`` relative to the catalog root, POSIX-style when possible."""
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)


def resolve_root(cli_root: str | Path | None = None) -> Path:
    """Resolve the catalog root: CLI flag, then SKC_CATALOG_ROOT, then cwd."""
    if cli_root:
        return Path(cli_root).resolve()
    env_root = os.environ.get(ROOT_ENV_VAR)
    if env_root:
        return Path(env_root).resolve()
    return Path.cwd().resolve()


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ValidationResult:
    """Single validation check result.

    Attributes:
        level: Severity level (ERROR, WARNING, INFO, PASSED)
        message: Human-readable description of the result
        file: Optional file path related to the result
        code: Optional finding kind (NameMismatch, CrossSourceDrift, ...)
    """

    level: Level
    message: str
    file: str | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, str | None] = {"level": self.level, "message": self.message}
        if self.file is not None:
            result["file"] = self.file
        if self.code is not None:
            result["code"] = self.code
        return result


@dataclass
class ValidationReport:
    """Validation report that accumulates every finding before reporting.

    Check functions receive the report and add to it; none of them stop
    at the first failure.
    """

    results: list[ValidationResult] = field(default_factory=list)

    def add(self, level: Level, message: str, file: str | None = None, code: str | None = None) -> None:
        """Add a validation result."""
        self.results.append(ValidationResult(level, message, file, code))

    def passed(self, message: str, file: str | None = None) -> None:
        """Add a passed check."""
        self.add("PASSED", message, file)

    def info(self, message: str, file: str | None = None) -> None:
        """Add an info message."""
        self.add("INFO", message, file)

    def warning(self, message: str, file: str | None = None, code: str | None = None) -> None:
        """Add a warning. Never blocks validation unless --strict."""
        self.add("WARNING", message, file, code)

    def error(self, message: str, file: str | None = None, code: str | None = None) -> None:
        """Add an error."""
        self.add("ERROR", message, file, code)

    @property
    def errors(self) -> list[ValidationResult]:
        return [r for r in self.results if r.level == "ERROR"]

    @property
    def warnings(self) -> list[ValidationResult]:
        return [r for r in self.results if r.level == "WARNING"]

    @property
    def has_errors(self) -> bool:
        """Check if any ERROR results exist."""
        return any(r.level == "ERROR" for r in self.results)

    @property
    def exit_code(self) -> int:
        """Exit code for normal mode: only errors fail."""
        return EXIT_FAILED if self.has_errors else EXIT_OK

    def exit_code_strict(self) -> int:
        """Exit code for --strict mode: warnings fail as well."""
        if self.has_errors or self.warnings:
            return EXIT_FAILED
        return EXIT_OK

    def by_code(self, code: str) -> list[ValidationResult]:
        """Get all results carrying a given finding code."""
        return [r for r in self.results if r.code == code]

    def count_by_level(self) -> dict[str, int]:
        """Get count of results by level."""
        counts: dict[str, int] = {"ERROR": 0, "WARNING": 0, "INFO": 0, "PASSED": 0}
        for r in self.results:
            counts[r.level] = counts.get(r.level, 0) + 1
        return counts

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "exit_code": self.exit_code,
            "counts": self.count_by_level(),
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert report to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# =============================================================================
# Filesystem Helpers
# =============================================================================


def read_utf8(path: Path) -> str:
    """Read a text file as UTF-8 with a leading byte-order mark removed."""
    text = path.read_text(encoding="utf-8")
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


def walk_files(root: Path, skip_dirs: set[str] | frozenset[str] = frozenset()) -> Iterator[Path]:
    """Yield every file under ``root`` depth-first using an explicit stack.

    Directories whose name is in ``skip_dirs`` and symlinked directories
    are not descended into.
    Files are yielded in sorted order within each directory.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            entries = sorted(current.iterdir())
        except (NotADirectoryError, PermissionError, FileNotFoundError):
            continue
        subdirs: list[Path] = []
        for entry in entries:
            if entry.is_dir():
                if entry.name not in skip_dirs and not entry.is_symlink():
                    subdirs.append(entry)
            elif entry.is_file():
                yield entry
        # Reverse so the alphabetically first subdirectory is popped first
        stack.extend(reversed(subdirs))


# =============================================================================
# Color Formatting (for terminal output)
# =============================================================================

COLORS = {
    "ERROR": "\033[91m",  # Red
    "WARNING": "\033[93m",  # Yellow
    "INFO": "\033[90m",  # Gray
    "PASSED": "\033[92m",  # Green
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
}


def colorize(text: str, level: str) -> str:
    """Apply color to text based on level."""
    color = COLORS.get(level, "")
    return f"{color}{text}{COLORS['RESET']}"


def format_result(result: ValidationResult, show_code: bool = False) -> str:
    """Format a single validation result as a bullet line."""
    line = f"- {result.message}"
    if show_code and result.code:
        line += f" [{result.code}]"
    return line


def print_report(report: ValidationReport, verbose: bool = False) -> None:
    """Print warnings first, then errors (stderr), then the final status."""
    if verbose:
        for result in report.results:
            if result.level in ("INFO", "PASSED"):
                print(colorize(f"[{result.level}] {result.message}", result.level))

    warnings = report.warnings
    if warnings:
        print(colorize("Warnings:", "WARNING"))
        for result in warnings:
            print(format_result(result, show_code=verbose))

    errors = report.errors
    if errors:
        print(colorize("\nValidation failed with errors:", "ERROR"), file=sys.stderr)
        for result in errors:
            print(format_result(result, show_code=verbose), file=sys.stderr)
        return

    print(colorize("Validation passed.", "PASSED"))


def print_report_summary(report: ValidationReport, title: str = "Validation Report") -> None:
    """Print per-level counts for a report."""
    counts = report.count_by_level()
    print(f"\n{'=' * 60}")
    print(f"{COLORS['BOLD']}{title}{COLORS['RESET']}")
    print(f"{'=' * 60}")
    for level in ("ERROR", "WARNING", "INFO", "PASSED"):
        print(colorize(f"{level + ':':<9}{counts[level]}", level))


def print_skipped(layout: CatalogLayout, skipped: tuple[Path, ...] | list[Path]) -> None:
    """Report records a lenient load left out, on stderr."""
    if not skipped:
        return
    listed = ", ".join(layout.rel(path) for path in skipped)
    print(colorize(f"Skipped {len(skipped)} unloadable record(s): {listed}", "WARNING"), file=sys.stderr)
