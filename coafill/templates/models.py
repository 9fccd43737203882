"""Data models for template flattening and placeholder location."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

SlotKind = Literal["marker", "alternate", "label", "fallback"]


@dataclass(frozen=True)
class Template:
    """Flattened template content keyed by an opaque id."""

    template_id: str
    content: str
    name: str | None = None


@dataclass(frozen=True)
class PlaceholderSlot:
    """A fill-in position in flattened template text.

    ``start``/``end`` span the marker token; implied and fallback slots are zero-width.
    """

    index: int
    start: int
    end: int
    kind: SlotKind
    token: str
    local_context: str
    candidate_name: str | None = None

    @property
    def is_implied(self) -> bool:
        return self.start == self.end


@dataclass
class LocateResult:
    """Placeholder location output."""

    strategy: str
    slots: list[PlaceholderSlot] = field(default_factory=list)
    yields: dict[str, int] = field(default_factory=dict)

    @property
    def names(self) -> list[str]:
        return [slot.candidate_name or "" for slot in self.slots]
