"""Placeholder locator over flattened template text.

Detection strategies run independently; the strategy that finds the most slots wins and
ties go to the earlier strategy in priority order. When no strategy finds anything, the
family's canonical field list is returned so that matching always has targets.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import replace
from typing import Protocol

from coafill.family.loader import load_family
from coafill.family.models import DocumentFamily
from coafill.templates.models import LocateResult, PlaceholderSlot, SlotKind
from coafill.templates.namer import MARKER_RE, name_slots
from coafill.utils.events import log_event

logger = logging.getLogger("coafill.locator")

CONTEXT_WINDOW = 200

_DOUBLE_BRACE_RE = re.compile(r"\{\{\s*([A-Za-z][\w .-]*?)\s*\}\}")
_DOLLAR_BRACE_RE = re.compile(r"\$\{\s*([A-Za-z][\w .-]*?)\s*\}")
_BRACKET_RE = re.compile(r"\[\s*([A-Za-z][\w .-]*?)\s*\]")
_UNDERSCORE_RE = re.compile(r"(?<!\w)__([A-Za-z][A-Za-z0-9 ]*?(?:_[A-Za-z0-9 ]+?)*)__(?!\w)")
_ANGLE_RE = re.compile(r"<\s*([A-Za-z][\w .-]*?)\s*>")
_MARKUP_TAGS = frozenset(
    ["b", "br", "div", "em", "i", "li", "ol", "p", "span", "strong", "table", "tbody"]
    + ["td", "th", "thead", "tr", "u", "ul"]
)
_LETTER_RE = re.compile(r"[A-Za-z]")
_HEADING_CELL_RE = re.compile(
    r"(?:test\s*items?|items?|tests?|specifications?|standards?|(?:test\s*)?results?|methods?|units?)",
    re.IGNORECASE,
)


class DetectionStrategy(Protocol):
    """Finds candidate placeholder positions in flattened text."""

    name: str

    def detect(self, text: str) -> list[PlaceholderSlot]:
        """Return slots in document order; names may be left for the namer."""


class BareMarkerStrategy:
    """Literal empty-brace markers such as ``{}``."""

    name = "bare_marker"

    def detect(self, text: str) -> list[PlaceholderSlot]:
        return [
            _make_slot(text, match.start(), match.end(), "marker")
            for match in MARKER_RE.finditer(text)
        ]


class AlternateSyntaxStrategy:
    """Named placeholders: ``{{x}}``, ``${x}``, ``[x]``, ``__x__`` and ``<x>``."""

    name = "alternate_syntax"

    def detect(self, text: str) -> list[PlaceholderSlot]:
        found: list[tuple[int, int, str]] = []
        for regex in (_DOUBLE_BRACE_RE, _DOLLAR_BRACE_RE, _BRACKET_RE, _UNDERSCORE_RE):
            for match in regex.finditer(text):
                found.append((match.start(), match.end(), match.group(1).strip()))
        for match in _ANGLE_RE.finditer(text):
            inner = match.group(1).strip()
            if inner.lower() not in _MARKUP_TAGS:
                found.append((match.start(), match.end(), inner))

        slots: list[PlaceholderSlot] = []
        last_end = -1
        for start, end, inner in sorted(found, key=lambda item: (item[0], -item[1])):
            if start < last_end:
                continue
            slots.append(_make_slot(text, start, end, "alternate", candidate_name=inner))
            last_end = end
        return slots


class StructuralStrategy:
    """Implied slots for known test-panel row labels.

    Flattening may drop marker glyphs, so a matched label line counts as a slot even
    without a marker. The slot sits on the line's first marker when there is one and at
    the end of the line otherwise. Each line and each field kind yield at most one slot.
    Table heading rows such as ``Test Items | Specification | Test Result`` are skipped.
    """

    name = "structural"

    def __init__(self, family: DocumentFamily) -> None:
        self._family = family

    def detect(self, text: str) -> list[PlaceholderSlot]:
        slots: list[PlaceholderSlot] = []
        used: set[str] = set()
        line_start = 0

        for line in text.split("\n"):
            line_end = line_start + len(line)
            kind = None if _is_heading_row(line) else self._family.match_label(line, exclude=used)
            if kind is not None:
                used.add(kind.key)
                marker = MARKER_RE.search(line)
                if marker is not None:
                    start, end = line_start + marker.start(), line_start + marker.end()
                else:
                    start = end = line_end
                slots.append(_make_slot(text, start, end, "label", candidate_name=kind.key))
            line_start = line_end + 1

        return slots


def default_strategies(family: DocumentFamily) -> list[DetectionStrategy]:
    """Strategies in priority order."""

    return [BareMarkerStrategy(), AlternateSyntaxStrategy(), StructuralStrategy(family)]


def locate_placeholders(
    text: str,
    family: DocumentFamily | None = None,
    strategies: Sequence[DetectionStrategy] | None = None,
) -> LocateResult:
    """Locate and name placeholder slots in flattened template text."""

    family = family or load_family()
    strategies = list(strategies) if strategies is not None else default_strategies(family)

    yields: dict[str, int] = {}
    winner: tuple[str, list[PlaceholderSlot]] | None = None
    for strategy in strategies:
        found = strategy.detect(text)
        yields[strategy.name] = len(found)
        if found and (winner is None or len(found) > len(winner[1])):
            winner = (strategy.name, found)

    if winner is None:
        log_event(
            logger,
            logging.WARNING,
            "locator_empty",
            text_length=len(text),
            fallback_count=len(family.fallback_fields()),
        )
        return LocateResult(strategy="fallback", slots=fallback_slots(text, family), yields=yields)

    strategy_name, found = winner
    ordered = sorted(found, key=lambda slot: (slot.start, slot.end))
    indexed = [replace(slot, index=index) for index, slot in enumerate(ordered)]
    slots = name_slots(text, indexed, family)
    log_event(
        logger,
        logging.INFO,
        "located",
        strategy=strategy_name,
        slot_count=len(slots),
        yields=yields,
    )
    return LocateResult(strategy=strategy_name, slots=slots, yields=yields)


def fallback_slots(text: str, family: DocumentFamily) -> list[PlaceholderSlot]:
    """Canonical family fields as zero-width slots at the end of the text."""

    end = len(text)
    return [
        PlaceholderSlot(
            index=index,
            start=end,
            end=end,
            kind="fallback",
            token="",
            local_context=kind.label,
            candidate_name=kind.key,
        )
        for index, kind in enumerate(family.fallback_fields())
    ]


def local_context(text: str, start: int, end: int) -> str:
    """Line-bounded text around a slot, at most ``CONTEXT_WINDOW`` characters each side.

    A slot whose own line carries no label text borrows the previous non-empty line.
    """

    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", end)
    if line_end == -1:
        line_end = len(text)

    before = text[max(line_start, start - CONTEXT_WINDOW) : start]
    after = text[end : min(line_end, end + CONTEXT_WINDOW)]
    context = f"{before} {after}".strip()

    if not _LETTER_RE.search(MARKER_RE.sub("", context)):
        previous = _previous_non_empty_line(text, line_start)
        if previous:
            context = f"{previous[-CONTEXT_WINDOW:]} {context}".strip()
    return context


def _make_slot(
    text: str,
    start: int,
    end: int,
    kind: SlotKind,
    *,
    candidate_name: str | None = None,
) -> PlaceholderSlot:
    return PlaceholderSlot(
        index=-1,
        start=start,
        end=end,
        kind=kind,
        token=text[start:end],
        local_context=local_context(text, start, end),
        candidate_name=candidate_name,
    )


def _is_heading_row(line: str) -> bool:
    if "|" not in line:
        return False
    cells = [cell.strip() for cell in line.split("|") if cell.strip()]
    headings = sum(1 for cell in cells if _HEADING_CELL_RE.fullmatch(cell))
    return headings >= 2


def _previous_non_empty_line(text: str, line_start: int) -> str | None:
    if line_start == 0:
        return None
    for line in reversed(text[: line_start - 1].split("\n")):
        if MARKER_RE.sub("", line).strip():
            return line.strip()
    return None
