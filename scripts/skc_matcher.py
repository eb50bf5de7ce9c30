#!/usr/bin/env python3
"""
Skill Catalog Gate - Trigger Matcher

Maps a natural-language prompt to the single most relevant skill with a
transparent bag-of-tokens scorer:

    score = 4 * (name tokens found in the prompt)
          + 1 * (description tokens found in the prompt)

Records are ranked by descending score, then ascending name, and the
first one wins. Scores and ties are exactly reproducible so evaluation
results can be audited and regression-tested.

Usage:
    uv run python scripts/skc_matcher.py "help me design REST APIs"
    uv run python scripts/skc_matcher.py "set up nextjs routing" --top 10 --json
"""

from __future__ import annotations

import argparse
import json
import re
import sys
from dataclasses import dataclass

from skc_catalog import Catalog, SkillRecord, load_catalog
from skc_common import EXIT_FAILED, EXIT_OK, CatalogLayout, print_skipped, resolve_root

NAME_TOKEN_WEIGHT = 4
DESCRIPTION_TOKEN_WEIGHT = 1
MIN_TOKEN_LENGTH = 3

# Sentinel for "no skill should be selected"
NO_MATCH = None

# Multi-word technical terms kept together as one hyphenated token.
# Applied after lower-casing, before punctuation is stripped.
TERM_SUBSTITUTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"next\.js"), "nextjs"),
    (re.compile(r"rtk query"), "rtk-query"),
    (re.compile(r"tanstack query"), "tanstack-query"),
]

STOPWORDS = frozenset(
    {
        "the", "and", "for", "with", "from", "that", "this", "when", "need", "use", "using",
        "into", "about", "your", "have", "has", "are", "was", "were", "how", "what", "which",
        "will", "would", "could", "should", "can", "but", "not", "only", "also", "very",
        "best", "more", "less", "mode", "rules", "patterns", "skill",
    }
)

NON_TOKEN_CHARS = re.compile(r"[^a-z0-9-]+")
WHITESPACE_RUN = re.compile(r"\s+")


# =============================================================================
# Normalization and Tokenization
# =============================================================================


def normalize_text(value: str) -> str:
    """Lower-case, join known multi-word terms, strip punctuation, collapse spaces.

    Idempotent: normalizing normalized text returns it unchanged. The
    substitution table runs again after whitespace collapsing so that a
    term split by punctuation or repeated spaces ("rtk,  query") is joined
    on the first pass rather than the second.
    """
    text = _substitute_terms(value.lower())
    text = NON_TOKEN_CHARS.sub(" ", text)
    text = WHITESPACE_RUN.sub(" ", text).strip()
    return _substitute_terms(text)


def _substitute_terms(text: str) -> str:
    for pattern, replacement in TERM_SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return text


def tokenize(value: str) -> list[str]:
    """Normalized tokens of at least three characters that are not stop words."""
    return [
        token
        for token in normalize_text(value).split(" ")
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS
    ]


# =============================================================================
# Scoring
# =============================================================================


@dataclass(frozen=True)
class SkillTokens:
    """Precomputed token lists for one record. Duplicates are kept."""

    name: str
    name_tokens: tuple[str, ...]
    description_tokens: tuple[str, ...]

    @classmethod
    def from_record(cls, record: SkillRecord) -> SkillTokens:
        return cls(
            name=record.name,
            name_tokens=tuple(tokenize(record.name.replace("-", " "))),
            description_tokens=tuple(tokenize(record.description)),
        )


@dataclass(frozen=True)
class ScoredSkill:
    name: str
    score: int


@dataclass(frozen=True)
class Verdict:
    """Outcome of judging one prompt against its expected skill."""

    expected: str | None
    actual: str | None
    score: int
    passed: bool


def score_tokens(prompt_tokens: set[str], skill: SkillTokens) -> int:
    """Sum the weight of every record token (duplicates included) found in the prompt."""
    score = 0
    for token in skill.name_tokens:
        if token in prompt_tokens:
            score += NAME_TOKEN_WEIGHT
    for token in skill.description_tokens:
        if token in prompt_tokens:
            score += DESCRIPTION_TOKEN_WEIGHT
    return score


def score_skill(prompt: str, skill: SkillTokens) -> int:
    return score_tokens(set(tokenize(prompt)), skill)


class TriggerMatcher:
    """Scores every catalog record against a prompt and selects the winner."""

    def __init__(self, catalog: Catalog) -> None:
        self.skills = [SkillTokens.from_record(record) for record in catalog]

    def rank(self, prompt: str) -> list[ScoredSkill]:
        """Every record scored, by descending score then ascending name."""
        prompt_tokens = set(tokenize(prompt))
        scored = [ScoredSkill(skill.name, score_tokens(prompt_tokens, skill)) for skill in self.skills]
        scored.sort(key=lambda s: (-s.score, s.name))
        return scored

    def best(self, prompt: str) -> ScoredSkill | None:
        """The winning record, or None for an empty catalog."""
        ranked = self.rank(prompt)
        return ranked[0] if ranked else None

    def judge(self, prompt: str, expected: str | None, none_threshold: float) -> Verdict:
        """Judge one prompt against its expected skill name or NO_MATCH.

        A NO_MATCH expectation passes when the winner scores at or below
        ``none_threshold``; the reported actual is then NO_MATCH too.
        """
        winner = self.best(prompt)
        if winner is None:
            return Verdict(expected=expected, actual=NO_MATCH, score=0, passed=expected is NO_MATCH)

        if expected is NO_MATCH:
            passed = winner.score <= none_threshold
            return Verdict(
                expected=expected,
                actual=NO_MATCH if passed else winner.name,
                score=winner.score,
                passed=passed,
            )

        return Verdict(expected=expected, actual=winner.name, score=winner.score, passed=winner.name == expected)


# =============================================================================
# CLI Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Print the ranked scores of the catalog for one prompt."""
    parser = argparse.ArgumentParser(description="Rank catalog skills against a prompt")
    parser.add_argument("prompt", help="Prompt text to match")
    parser.add_argument("--root", help="Catalog root (default: $SKC_CATALOG_ROOT or the current directory)")
    parser.add_argument("--top", type=int, default=5, help="Number of ranked skills to show (default: 5)")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args(argv)

    layout = CatalogLayout(root=resolve_root(args.root))
    catalog = load_catalog(layout, mode="lenient")
    print_skipped(layout, catalog.skipped)
    if len(catalog) == 0:
        print("Error: No skills loaded.", file=sys.stderr)
        return EXIT_FAILED

    ranked = TriggerMatcher(catalog).rank(args.prompt)[: max(args.top, 0)]

    if args.json:
        output = {
            "prompt": args.prompt,
            "tokens": tokenize(args.prompt),
            "ranked": [{"name": s.name, "score": s.score} for s in ranked],
        }
        print(json.dumps(output, indent=2))
        return EXIT_OK

    print(f"Prompt tokens: {' '.join(tokenize(args.prompt)) or '(none)'}")
    for position, scored in enumerate(ranked, 1):
        print(f"  {position:>2}. {scored.name} ({scored.score})")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
