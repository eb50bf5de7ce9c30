#!/usr/bin/env python3
"""
Skill Catalog Gate - Catalog Validator

Validates every skill record of a catalog checkout and checks that the
listings maintained outside the catalog have not drifted from it.

Per-record checks:
1. Line and word count against soft (warning) and hard (error) limits
2. Header delimiters, required fields and unsupported fields
3. Declared name equals the directory name
4. Local markdown links resolve (fenced code blocks excluded)
5. Companion metadata (agents/openai.yaml) present with its four keys
6. references/ directory mentioned, non-empty, with resolving links

Catalog-wide checks:
7. Skill names unique across categories
8. Mandatory set agrees across bundles.json, skills.config.json and the wizard
9. Discovery table lists every agent-category skill
10. No file in the tree contains a NUL byte

Usage:
    uv run python scripts/skc_validate.py
    uv run python scripts/skc_validate.py --root path/to/catalog --verbose
    uv run python scripts/skc_validate.py --json

Exit codes:
    0 - No errors (warnings allowed unless --strict)
    1 - Errors found
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

from skc_catalog import (
    HEADER_LINE_PATTERN,
    MalformedHeader,
    MissingRequiredField,
    UnsupportedField,
    header_problems,
    parse_header,
    split_lines,
)
from skc_common import (
    EXIT_FAILED,
    CatalogLayout,
    ValidationReport,
    print_report,
    print_report_summary,
    read_utf8,
    resolve_root,
    walk_files,
)
from skc_manifests import (
    BundleManifest,
    DiscoveryTable,
    InstallConfig,
    ManifestError,
    WizardDefaults,
    load_bundle_manifest,
    load_discovery_table,
    load_install_config,
    load_wizard_defaults,
    same_names,
)

# =============================================================================
# Markdown Link Patterns
# =============================================================================

FENCED_CODE_PATTERN = re.compile(r"```[\s\S]*?```")
MARKDOWN_LINK_PATTERN = re.compile(r"\[[^\]]*]\(([^)]+)\)")
EXTERNAL_LINK_PREFIXES = ("http://", "https://", "mailto:", "tel:", "#")
URL_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://")

COMPANION_REQUIRED_KEYS = ("version", "display_name", "short_description", "default_prompt")
QUOTE_CHARS = ('"', "'")


# =============================================================================
# Helper Functions
# =============================================================================


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def title_case(value: str) -> str:
    """Display form of a skill name: words split on - _ or space, each capitalized."""
    parts = [part for part in re.split(r"[-_ ]+", value) if part]
    return " ".join(part[0].upper() + part[1:] for part in parts)


def extract_markdown_links(markdown: str) -> list[str]:
    """Return raw link targets, ignoring anything inside fenced code blocks."""
    text = FENCED_CODE_PATTERN.sub("", markdown)
    return [match.strip() for match in MARKDOWN_LINK_PATTERN.findall(text)]


def is_external_link(link: str) -> bool:
    normalized = link.lower()
    return normalized.startswith(EXTERNAL_LINK_PREFIXES) or bool(URL_SCHEME_PATTERN.match(normalized))


def normalize_link_target(raw_link: str) -> str:
    """Strip <...> wrapping, link titles, fragments and query strings."""
    link = raw_link
    if link.startswith("<") and link.endswith(">"):
        link = link[1:-1]
    if " " in link:
        link = link.split(" ")[0]
    link = link.split("#")[0]
    link = link.split("?")[0]
    return link.strip()


# =============================================================================
# Per-Record Checks
# =============================================================================


def validate_size(layout: CatalogLayout, rel: str, content: str, report: ValidationReport) -> tuple[int, int]:
    """Check line and word counts against the soft and hard limits.

    Returns:
        Tuple of (line_count, word_count)
    """
    lines = len(split_lines(content))
    words = count_words(content)

    if lines > layout.hard_line_limit:
        report.error(
            f"SKILL.md exceeds hard line limit ({layout.hard_line_limit}): {rel} ({lines})", rel, "SizeLimit"
        )
    elif lines > layout.soft_line_budget:
        report.warning(
            f"SKILL.md exceeds soft line budget ({layout.soft_line_budget}): {rel} ({lines})", rel, "SizeLimit"
        )

    if words > layout.hard_word_limit:
        report.error(
            f"SKILL.md exceeds hard word limit ({layout.hard_word_limit}): {rel} ({words})", rel, "SizeLimit"
        )
    elif words > layout.soft_word_budget:
        report.warning(
            f"SKILL.md exceeds soft word budget ({layout.soft_word_budget}): {rel} ({words})", rel, "SizeLimit"
        )

    return lines, words


def validate_header(rel: str, content: str, dir_name: str, report: ValidationReport) -> str | None:
    """Check the header block and the declared name.

    Returns:
        The declared name, or None when the header has no usable name
    """
    try:
        header = parse_header(content)
    except MalformedHeader as e:
        report.error(f"{e}: {rel}", rel, "MalformedHeader")
        return None

    for problem in header_problems(header.fields):
        if isinstance(problem, MissingRequiredField):
            report.error(f"Frontmatter must include name and description: {rel}", rel, "MissingRequiredField")
        elif isinstance(problem, UnsupportedField):
            report.error(
                f"Unsupported frontmatter keys in {rel}: {', '.join(problem.extra)}", rel, "UnsupportedField"
            )

    declared = header.fields.get("name")
    if declared is None:
        return None
    if declared != dir_name:
        report.error(f'Skill name mismatch in {rel}: expected "{dir_name}", got "{declared}"', rel, "NameMismatch")
    else:
        report.passed(f"Skill name matches directory: {declared}", rel)
    return declared


def validate_markdown_links(layout: CatalogLayout, file_path: Path, content: str, report: ValidationReport) -> None:
    """Every local link target must exist relative to the linking file."""
    rel = layout.rel(file_path)
    for raw_link in extract_markdown_links(content):
        target = normalize_link_target(raw_link)
        if not target or is_external_link(target):
            continue
        if not (file_path.parent / target).exists():
            report.error(f"Broken local markdown link in {rel}: {raw_link}", rel, "BrokenLocalLink")


def parse_companion_fields(text: str) -> dict[str, str]:
    """Parse plain ``key: value`` lines; one pair of matching quotes is stripped from each value."""
    fields: dict[str, str] = {}
    for line in split_lines(text):
        match = HEADER_LINE_PATTERN.match(line)
        if not match:
            continue
        value = match.group(2).strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in QUOTE_CHARS:
            value = value[1:-1]
        fields[match.group(1)] = value
    return fields


def validate_companion(layout: CatalogLayout, skill_dir: Path, skill_name: str, report: ValidationReport) -> None:
    """Check the generated companion metadata file."""
    companion = skill_dir / layout.companion_relpath
    rel = layout.rel(companion)

    if not companion.is_file():
        report.error(
            f"Missing {layout.companion_relpath}: {layout.rel(skill_dir)}", rel, "MissingCompanionMetadata"
        )
        return

    try:
        fields = parse_companion_fields(read_utf8(companion))
    except UnicodeDecodeError as e:
        report.error(f"Companion metadata is not valid UTF-8: {rel} ({e.reason})", rel, "EncodingViolation")
        return

    for key in COMPANION_REQUIRED_KEYS:
        if key not in fields:
            report.error(f'Missing key "{key}" in {rel}', rel, "MissingCompanionMetadata")

    display_name = fields.get("display_name", "")
    expected_display = title_case(skill_name)
    if display_name and display_name != expected_display:
        report.warning(
            f'display_name mismatch in {rel}: expected "{expected_display}", got "{display_name}"',
            rel,
            "MissingCompanionMetadata",
        )

    if len(fields.get("short_description", "")) > layout.max_short_description:
        report.warning(
            f"short_description too long (>{layout.max_short_description}) in {rel}", rel, "MissingCompanionMetadata"
        )


def validate_references(
    layout: CatalogLayout,
    skill_dir: Path,
    content: str,
    lines: int,
    words: int,
    report: ValidationReport,
) -> None:
    """Check the optional references/ directory, or recommend one for large records."""
    record_rel = layout.rel(skill_dir / layout.record_filename)
    references_dir = skill_dir / layout.references_dirname

    if not references_dir.is_dir():
        if lines > layout.soft_line_budget or words > layout.soft_word_budget:
            report.warning(f"Large skill without references directory: {record_rel}", record_rel, "ReferencesLayout")
        return

    mention = re.compile(re.escape(layout.references_dirname + "/"), re.IGNORECASE)
    if not mention.search(content):
        report.warning(
            f"Skill has references directory but no references mention in SKILL.md: {record_rel}",
            record_rel,
            "ReferencesLayout",
        )

    reference_files = [p for p in walk_files(references_dir) if p.name.lower().endswith(".md")]
    if not reference_files:
        report.warning(
            f"Empty references directory: {layout.rel(references_dir)}", layout.rel(references_dir), "ReferencesLayout"
        )
    for ref_file in reference_files:
        try:
            ref_content = read_utf8(ref_file)
        except UnicodeDecodeError as e:
            report.error(
                f"Reference file is not valid UTF-8: {layout.rel(ref_file)} ({e.reason})",
                layout.rel(ref_file),
                "EncodingViolation",
            )
            continue
        validate_markdown_links(layout, ref_file, ref_content, report)


def validate_skill_dir(layout: CatalogLayout, skill_dir: Path, report: ValidationReport) -> str | None:
    """Run every per-record check for one skill directory.

    Returns:
        Declared skill name, or None if the record has none
    """
    record_path = skill_dir / layout.record_filename
    if not record_path.is_file():
        where = layout.rel(skill_dir)
        report.error(f"Missing {layout.record_filename}: {where}", where, "MissingRecord")
        return None

    rel = layout.rel(record_path)
    try:
        content = read_utf8(record_path)
    except UnicodeDecodeError as e:
        report.error(f"SKILL.md is not valid UTF-8: {rel} ({e.reason})", rel, "EncodingViolation")
        return None

    lines, words = validate_size(layout, rel, content, report)
    declared = validate_header(rel, content, skill_dir.name, report)
    validate_markdown_links(layout, record_path, content, report)
    validate_companion(layout, skill_dir, declared or skill_dir.name, report)
    validate_references(layout, skill_dir, content, lines, words, report)
    return declared


def validate_skill_files(layout: CatalogLayout, report: ValidationReport) -> None:
    """Validate every record of every category and name uniqueness."""
    seen: dict[str, str] = {}

    for category in layout.categories:
        category_path = layout.root / category
        if not category_path.is_dir():
            report.error(f"Missing skill category directory: {category}", category, "MissingCategory")
            continue

        for skill_dir in sorted(p for p in category_path.iterdir() if p.is_dir()):
            declared = validate_skill_dir(layout, skill_dir, report)
            if declared is None:
                continue
            where = layout.rel(skill_dir)
            if declared in seen:
                report.error(
                    f'Duplicate skill name "{declared}" in {where} (already declared in {seen[declared]})',
                    where,
                    "DuplicateName",
                )
            else:
                seen[declared] = where

    report.info(f"Validated {len(seen)} skill record(s)")


# =============================================================================
# Catalog-Wide Checks
# =============================================================================


def _report_mandatory_drift(
    layout: CatalogLayout, expected: list[str], actual: list[str], source: str, report: ValidationReport
) -> None:
    if same_names(expected, actual):
        report.passed(f"{source} mandatory list matches essential bundle", source)
        return
    report.error(
        f"Mandatory skills drift between {layout.bundles_relpath} and {source}: "
        f"expected [{', '.join(expected)}], got [{', '.join(sorted(actual))}]",
        source,
        "CrossSourceDrift",
    )


def validate_catalog_drift(layout: CatalogLayout, report: ValidationReport) -> None:
    """Compare the mandatory set and agent-category listing across sources.

    Every manifest is read even when the bundle manifest is unusable, so
    each unreadable source is reported; only the comparisons against the
    bundle are skipped then.
    """
    root = layout.root

    bundles: BundleManifest | None = None
    try:
        bundles = load_bundle_manifest(root / layout.bundles_relpath)
    except ManifestError as e:
        report.error(f"Unable to read bundle manifest: {e}", layout.bundles_relpath, "ManifestUnreadable")

    config: InstallConfig | None = None
    try:
        config = load_install_config(root / layout.install_config_relpath)
    except ManifestError as e:
        report.error(f"Unable to read install config: {e}", layout.install_config_relpath, "ManifestUnreadable")

    wizard: WizardDefaults | None = None
    try:
        wizard = load_wizard_defaults(root / layout.wizard_relpath)
    except ManifestError as e:
        report.error(
            f"Unable to parse mandatory skills from {layout.wizard_relpath}: {e}",
            layout.wizard_relpath,
            "ManifestUnreadable",
        )

    table: DiscoveryTable | None = None
    try:
        table = load_discovery_table(root / layout.discovery_relpath, layout.discovery_heading)
    except ManifestError as e:
        report.error(
            f'Unable to find "{layout.discovery_heading}" section in {layout.discovery_relpath}: {e}',
            layout.discovery_relpath,
            "ManifestUnreadable",
        )

    if bundles is None:
        return

    expected = sorted(bundles.essential_names)
    if config is not None:
        _report_mandatory_drift(layout, expected, config.mandatory, layout.install_config_relpath, report)
    if wizard is not None:
        _report_mandatory_drift(layout, expected, wizard.mandatory, layout.wizard_relpath, report)

    if table is None:
        return
    listed = set(table.names)
    missing = [name for name in sorted(bundles.agent_skills) if name not in listed]
    if missing:
        report.error(
            f"{layout.discovery_relpath} is missing agent skill rows: {', '.join(missing)}",
            layout.discovery_relpath,
            "CrossSourceDrift",
        )
    else:
        report.passed("Discovery table lists every agent skill", layout.discovery_relpath)


def validate_encoding(layout: CatalogLayout, report: ValidationReport) -> None:
    """Flag every file whose raw bytes contain a NUL byte."""
    scanned = 0
    for file_path in walk_files(layout.root, layout.skip_dirs):
        rel = layout.rel(file_path)
        try:
            content = file_path.read_bytes()
        except OSError as e:
            report.warning(f"Cannot read file: {rel} ({e})", rel, "EncodingViolation")
            continue
        scanned += 1
        if b"\x00" in content:
            report.error(f"NUL byte detected: {rel}", rel, "EncodingViolation")
    report.info(f"Scanned {scanned} file(s) for NUL bytes")


def validate_catalog(layout: CatalogLayout) -> ValidationReport:
    """Run every check over the whole catalog.

    Args:
        layout: Catalog layout to validate

    Returns:
        ValidationReport holding every error and warning found
    """
    report = ValidationReport()
    validate_skill_files(layout, report)
    validate_catalog_drift(layout, report)
    validate_encoding(layout, report)
    return report


# =============================================================================
# CLI Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate the skill catalog and its cross-source listings")
    parser.add_argument("--root", help="Catalog root (default: $SKC_CATALOG_ROOT or the current directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show INFO and PASSED results and a summary")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    parser.add_argument("--strict", action="store_true", help="Strict mode: warnings also fail validation")
    args = parser.parse_args(argv)

    root = resolve_root(args.root)
    if not root.is_dir():
        print(f"Error: {root} is not a directory", file=sys.stderr)
        return EXIT_FAILED

    report = validate_catalog(CatalogLayout(root=root))

    if args.json:
        print(report.to_json())
    else:
        print_report(report, verbose=args.verbose)
        if args.verbose:
            print_report_summary(report, title=f"Catalog Validation: {root.name}")

    if args.strict:
        return report.exit_code_strict()
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
