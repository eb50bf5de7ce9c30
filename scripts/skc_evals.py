#!/usr/bin/env python3
"""
Skill Catalog Gate - Trigger Evaluation Runner

Replays a labeled suite of prompts through the trigger matcher and
checks the aggregate pass rate against the suite's threshold.

Suite file (JSON, or YAML with a .yaml/.yml suffix):
    {
      "pass_threshold": 0.85,          # optional, 0-1
      "none_score_threshold": 4,       # optional
      "cases": [
        {"id": "rest-api", "prompt": "help me design REST APIs", "expected": "api-patterns"},
        {"id": "weather", "prompt": "what's the weather", "expected": null}
      ]
    }

``expected: null`` means no skill should be selected: the case passes
when the best score is at or below ``none_score_threshold``.

Usage:
    uv run python scripts/skc_evals.py
    uv run python scripts/skc_evals.py --suite evals/trigger-evals.json --verbose

Exit codes:
    0 - Pass rate at or above threshold
    1 - Pass rate below threshold, or suite/catalog unusable
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from skc_catalog import Catalog, CatalogLoadError, LoadMode, load_catalog
from skc_common import COLORS, EXIT_FAILED, EXIT_OK, CatalogLayout, colorize, print_skipped, resolve_root
from skc_matcher import NO_MATCH, TriggerMatcher, Verdict

DEFAULT_SUITE_RELPATH = "evals/trigger-evals.json"
DEFAULT_PASS_THRESHOLD = 0.85
DEFAULT_NONE_SCORE_THRESHOLD = 4
YAML_SUFFIXES = {".yaml", ".yml"}


# =============================================================================
# Exceptions
# =============================================================================


class EvalError(Exception):
    """Fatal precondition failure: no meaningful scoring is possible."""


class SuiteNotFound(EvalError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Eval file not found: {path}")


class SuiteUnparsable(EvalError):
    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Eval file is unparsable: {path} ({reason})")


class EmptyCatalog(EvalError):
    def __init__(self) -> None:
        super().__init__("No skills loaded.")


# =============================================================================
# Data Model
# =============================================================================


@dataclass(frozen=True)
class EvalCase:
    id: str
    prompt: str
    expected: str | None


@dataclass
class EvalSuite:
    """Ordered cases plus the pass-rate and none-score thresholds."""

    cases: list[EvalCase] = field(default_factory=list)
    pass_threshold: float = DEFAULT_PASS_THRESHOLD
    none_score_threshold: float = DEFAULT_NONE_SCORE_THRESHOLD


@dataclass(frozen=True)
class CaseResult:
    case: EvalCase
    verdict: Verdict


@dataclass
class EvalRun:
    """Per-case verdicts and the aggregate outcome of one suite run."""

    results: list[CaseResult]
    pass_threshold: float
    skipped: tuple[Path, ...] = ()

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.verdict.passed)

    @property
    def accuracy(self) -> float:
        """Pass rate in [0, 1]; an empty suite scores 0."""
        return self.passed / self.total if self.total else 0.0

    @property
    def succeeded(self) -> bool:
        return self.accuracy >= self.pass_threshold

    @property
    def failures(self) -> list[CaseResult]:
        return [r for r in self.results if not r.verdict.passed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "total": self.total,
            "accuracy": self.accuracy,
            "pass_threshold": self.pass_threshold,
            "succeeded": self.succeeded,
            "skipped": [str(path) for path in self.skipped],
            "cases": [
                {
                    "id": r.case.id,
                    "prompt": r.case.prompt,
                    "expected": r.verdict.expected,
                    "actual": r.verdict.actual,
                    "score": r.verdict.score,
                    "pass": r.verdict.passed,
                }
                for r in self.results
            ],
        }


# =============================================================================
# Suite Loading
# =============================================================================


def _number_or(value: Any, default: float) -> float:
    """Return ``value`` when it is a real number (not a bool), else ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return value


def _parse_case(path: Path, index: int, raw: Any) -> EvalCase:
    if not isinstance(raw, dict):
        raise SuiteUnparsable(path, f"case #{index} must be an object")
    prompt = raw.get("prompt")
    if not isinstance(prompt, str):
        raise SuiteUnparsable(path, f"case #{index} has no string 'prompt'")
    expected = raw.get("expected")
    if expected is not NO_MATCH and not isinstance(expected, str):
        raise SuiteUnparsable(path, f"case #{index} 'expected' must be a skill name or null")
    case_id = raw.get("id")
    return EvalCase(id=str(case_id) if case_id is not None else f"case-{index}", prompt=prompt, expected=expected)


def load_suite(path: Path) -> EvalSuite:
    """Load an evaluation suite from JSON or YAML.

    Raises:
        SuiteNotFound: the file does not exist
        SuiteUnparsable: the file is not valid JSON/YAML or breaks the schema
    """
    if not path.is_file():
        raise SuiteNotFound(path)

    try:
        text = path.read_text(encoding="utf-8-sig")
        if path.suffix.lower() in YAML_SUFFIXES:
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (OSError, UnicodeDecodeError) as e:
        raise SuiteUnparsable(path, str(e)) from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SuiteUnparsable(path, str(e)) from e

    if not isinstance(raw, dict):
        raise SuiteUnparsable(path, "top-level value must be an object")
    raw_cases = raw.get("cases")
    if not isinstance(raw_cases, list):
        raise SuiteUnparsable(path, "'cases' must be a list")

    return EvalSuite(
        cases=[_parse_case(path, i, c) for i, c in enumerate(raw_cases)],
        pass_threshold=_number_or(raw.get("pass_threshold"), DEFAULT_PASS_THRESHOLD),
        none_score_threshold=_number_or(raw.get("none_score_threshold"), DEFAULT_NONE_SCORE_THRESHOLD),
    )


# =============================================================================
# Running
# =============================================================================


def run_suite(suite: EvalSuite, catalog: Catalog) -> EvalRun:
    """Judge every case of the suite against the catalog.

    Raises:
        EmptyCatalog: the catalog holds no records
    """
    if len(catalog) == 0:
        raise EmptyCatalog()

    matcher = TriggerMatcher(catalog)
    results = [
        CaseResult(case=case, verdict=matcher.judge(case.prompt, case.expected, suite.none_score_threshold))
        for case in suite.cases
    ]
    return EvalRun(results=results, pass_threshold=suite.pass_threshold, skipped=catalog.skipped)


def evaluate(layout: CatalogLayout, suite_path: Path, catalog_mode: LoadMode = "lenient") -> EvalRun:
    """Load the suite, then the catalog, then run every case."""
    suite = load_suite(suite_path)
    catalog = load_catalog(layout, mode=catalog_mode)
    return run_suite(suite, catalog)


# =============================================================================
# Reporting
# =============================================================================


def _label(name: str | None) -> str:
    return "none" if name is None else name


def print_run(run: EvalRun, verbose: bool = False) -> None:
    """Print the aggregate line, the threshold when missed, and failing cases."""
    if verbose:
        for r in run.results:
            status = colorize("PASS", "PASSED") if r.verdict.passed else colorize("FAIL", "ERROR")
            print(
                f"  [{status}] {r.case.id}: expected={_label(r.verdict.expected)}, "
                f"actual={_label(r.verdict.actual)}, score={r.verdict.score}"
            )

    print(f"Trigger evals: {run.passed}/{run.total} passed ({run.accuracy * 100:.1f}%)")
    if not run.succeeded:
        print(f"{COLORS['ERROR']}Required threshold: {run.pass_threshold * 100:.1f}%{COLORS['RESET']}", file=sys.stderr)

    failures = run.failures
    if failures:
        print("\nFailed cases:", file=sys.stderr)
        for r in failures:
            print(
                f"- {r.case.id}: expected={_label(r.verdict.expected)}, "
                f"actual={_label(r.verdict.actual)}, score={r.verdict.score}",
                file=sys.stderr,
            )


# =============================================================================
# CLI Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run trigger-matching evaluations against the skill catalog")
    parser.add_argument("--root", help="Catalog root (default: $SKC_CATALOG_ROOT or the current directory)")
    parser.add_argument("--suite", help=f"Suite file (default: <root>/{DEFAULT_SUITE_RELPATH})")
    parser.add_argument(
        "--strict-catalog",
        action="store_true",
        help="Abort on the first unloadable skill record instead of skipping it",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print every case, not only failures")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    args = parser.parse_args(argv)

    root = resolve_root(args.root)
    suite_path = Path(args.suite) if args.suite else root / DEFAULT_SUITE_RELPATH
    mode: LoadMode = "strict" if args.strict_catalog else "lenient"

    layout = CatalogLayout(root=root)
    try:
        run = evaluate(layout, suite_path, catalog_mode=mode)
    except (EvalError, CatalogLoadError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED
    print_skipped(layout, run.skipped)

    if args.json:
        print(json.dumps(run.to_dict(), indent=2))
    else:
        print_run(run, verbose=args.verbose)

    return EXIT_OK if run.succeeded else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
