"""Context-match scorer for (slot context, extracted field) pairs.

Scores are additive:
- +100 per rule whose pattern matches the context and whose keys cover the field name;
- +20 per field-name token longer than two characters found in the context;
- +15 for a boolean value next to a negative-result keyword;
- +10 for a numeric value next to a digit or percent sign;
- +25 for a date-like string value next to a date keyword.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from coafill.family.models import DocumentFamily
from coafill.matching.models import FieldValue

PATTERN_SCORE = 100
TOKEN_SCORE = 20
NEGATIVE_SCORE = 15
NUMERIC_SCORE = 10
DATE_SCORE = 25

_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"
_DATE_TOKEN_RE = re.compile(
    r"\b\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}\b"
    rf"|\b\d{{1,2}}[-\s]?{_MONTH}[-\s,]*\d{{2,4}}\b"
    rf"|\b{_MONTH}\s*\d{{1,2}},?\s*\d{{4}}\b"
    rf"|\b{_MONTH}[-\s]?\d{{4}}\b",
    re.IGNORECASE,
)
_DIGIT_OR_PERCENT_RE = re.compile(r"[\d%]")
_NON_TOKEN_RE = re.compile(r"[^a-z0-9 ]")


@dataclass(frozen=True)
class ScoringRule:
    """Context pattern pointing at a set of canonical keys."""

    pattern: re.Pattern[str]
    keys: frozenset[str]

    def covers(self, field_name: str) -> bool:
        """True when a key equals the field name or either contains the other.

        Containment is checked on whole underscore-separated tokens so that ``ph`` does
        not cover ``staphylococcus_aureus``.
        """

        if not field_name:
            return False
        if field_name in self.keys:
            return True
        wrapped_field = f"_{field_name}_"
        return any(
            f"_{key}_" in wrapped_field or wrapped_field in f"_{key}_" for key in self.keys
        )


def build_rules(family: DocumentFamily) -> list[ScoringRule]:
    rules: list[ScoringRule] = []
    for kind in family.field_kinds:
        for regex in kind.context_regexes():
            rules.append(ScoringRule(pattern=regex, keys=frozenset({kind.key})))
    for shared in family.shared_rules:
        rules.append(
            ScoringRule(
                pattern=re.compile(shared.pattern, re.IGNORECASE), keys=frozenset(shared.keys)
            )
        )
    return rules


class ContextScorer:
    """Scores extracted fields against a slot's local context."""

    def __init__(
        self,
        rules: Iterable[ScoringRule],
        *,
        negative_keywords: Iterable[str] = (),
        date_keywords: Iterable[str] = (),
    ) -> None:
        self._rules = list(rules)
        self._negative_keywords = [keyword.lower() for keyword in negative_keywords]
        self._date_keywords = [keyword.lower() for keyword in date_keywords]

    @classmethod
    def from_family(cls, family: DocumentFamily) -> ContextScorer:
        return cls(
            build_rules(family),
            negative_keywords=family.negative_keywords,
            date_keywords=family.date_keywords,
        )

    def score(self, context: str, field_name: str, value: FieldValue) -> int:
        lowered = context.lower()
        total = 0

        for rule in self._rules:
            if rule.covers(field_name) and rule.pattern.search(context):
                total += PATTERN_SCORE

        for token in _field_tokens(field_name):
            if len(token) > 2 and token in lowered:
                total += TOKEN_SCORE

        if isinstance(value, bool):
            if any(keyword in lowered for keyword in self._negative_keywords):
                total += NEGATIVE_SCORE
        elif isinstance(value, (int, float)):
            if _DIGIT_OR_PERCENT_RE.search(context):
                total += NUMERIC_SCORE
        elif isinstance(value, str) and _DATE_TOKEN_RE.search(value):
            if any(keyword in lowered for keyword in self._date_keywords):
                total += DATE_SCORE

        return total

    def best_match(
        self, context: str, candidates: Mapping[str, FieldValue]
    ) -> tuple[str | None, int]:
        """Highest-scoring candidate; the first one wins exact ties, zero means no match."""

        best_name: str | None = None
        best_score = 0
        for field_name, value in candidates.items():
            current = self.score(context, field_name, value)
            if current > best_score:
                best_name, best_score = field_name, current
        return best_name, best_score


def _field_tokens(field_name: str) -> list[str]:
    cleaned = _NON_TOKEN_RE.sub("", field_name.replace("_", " ").lower())
    return cleaned.split()
