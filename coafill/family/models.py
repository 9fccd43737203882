"""Document family models: one config entry per known field kind."""

from __future__ import annotations

import re
from collections.abc import Collection

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BooleanLabels(BaseModel):
    """Descriptive labels substituted for boolean results of one field kind."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    positive: str
    negative: str


class FieldKind(BaseModel):
    """Known field of a document family.

    ``aliases`` are the corrupted keys an earlier extraction pass produces for this field
    (``_<label>__<specification>_``). ``label_patterns`` locate the field's row label in a
    flattened template; ``context_patterns`` only feed the context scorer.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str
    label: str
    specification: str | None = None
    fallback: bool = True
    aliases: list[str] = Field(default_factory=list)
    label_patterns: list[str] = Field(default_factory=list)
    context_patterns: list[str] = Field(default_factory=list)
    boolean_labels: BooleanLabels | None = None
    backfill_pattern: str | None = None

    @field_validator("label_patterns", "context_patterns")
    @classmethod
    def _check_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            _compile(pattern)
        return value

    @field_validator("backfill_pattern")
    @classmethod
    def _check_backfill(cls, value: str | None) -> str | None:
        if value is not None:
            _compile(value)
        return value

    def label_regexes(self) -> list[re.Pattern[str]]:
        return [_compile(pattern) for pattern in self.label_patterns]

    def context_regexes(self) -> list[re.Pattern[str]]:
        return [_compile(pattern) for pattern in (*self.label_patterns, *self.context_patterns)]

    def backfill_regex(self) -> re.Pattern[str] | None:
        return _compile(self.backfill_pattern) if self.backfill_pattern is not None else None


class SharedRule(BaseModel):
    """Context rule that points at several field kinds at once."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    pattern: str
    keys: list[str]

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        _compile(value)
        return value


class DocumentFamily(BaseModel):
    """Fixed structure of a known certificate type."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    title: str
    field_kinds: list[FieldKind]
    shared_rules: list[SharedRule] = Field(default_factory=list)
    negative_keywords: list[str] = Field(default_factory=list)
    date_keywords: list[str] = Field(default_factory=list)

    def kind(self, key: str) -> FieldKind | None:
        for kind in self.field_kinds:
            if kind.key == key:
                return kind
        return None

    def fallback_fields(self) -> list[FieldKind]:
        return [kind for kind in self.field_kinds if kind.fallback]

    def alias_table(self) -> dict[str, str]:
        """Corrupted key -> canonical key."""

        table: dict[str, str] = {}
        for kind in self.field_kinds:
            for alias in kind.aliases:
                table[alias] = kind.key
        return table

    def match_label(
        self, text: str, exclude: Collection[str] = frozenset()
    ) -> FieldKind | None:
        """Return the field kind whose label pattern matches earliest in ``text``."""

        best: tuple[int, FieldKind] | None = None
        for kind in self.field_kinds:
            if kind.key in exclude:
                continue
            for regex in kind.label_regexes():
                match = regex.search(text)
                if match is None:
                    continue
                if best is None or match.start() < best[0]:
                    best = (match.start(), kind)
        return best[1] if best is not None else None


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise ValueError(f"Invalid pattern {pattern!r}: {exc}") from exc
