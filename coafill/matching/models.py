"""Match and fill report models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from coafill.templates.models import PlaceholderSlot

FieldValue = str | int | float | bool | None
MatchPolicy = Literal["consuming", "non_consuming"]
RenderMode = Literal["preview", "render"]
BooleanMode = Literal["label", "specification"]
MatchMethod = Literal["direct", "scored", "positional", "none"]


class MatchResult(BaseModel):
    """Chosen field for one slot and the score that justified it."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    slot_index: int
    field_name: str | None = None
    score: int = 0
    method: MatchMethod = "none"


class ReplaceLogEntry(BaseModel):
    """Single substitution log item."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["replaced", "empty"]
    slot_index: int
    slot_name: str
    slot_kind: str
    field_name: str | None = None
    method: MatchMethod
    score: int
    start: int
    end: int
    original_text: str
    new_text: str


class ReplaceSummary(BaseModel):
    """Aggregate substitution summary for observability."""

    model_config = ConfigDict(extra="forbid")

    total_slots: int
    replaced_count: int
    empty_count: int
    strategy: str
    policy: MatchPolicy
    mode: RenderMode
    boolean_mode: BooleanMode
    degraded: bool


class ReplaceReport(BaseModel):
    """Full substitution report."""

    model_config = ConfigDict(extra="forbid")

    entries: list[ReplaceLogEntry] = Field(default_factory=list)
    summary: ReplaceSummary


class FillOutput(BaseModel):
    """In-memory fill output: substituted text plus the evidence behind it."""

    model_config = ConfigDict(extra="forbid")

    text: str
    strategy: str
    slots: list[PlaceholderSlot]
    matches: list[MatchResult]
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    replace_report: ReplaceReport
