"""Snake-case naming of located placeholders.

Naming order for a bare marker:
- the label preceding the marker on its own line;
- the previous non-empty line, then the next non-empty line;
- a synthetic ``field_<n>`` name.

Inside table rows a cell matching a known family label wins over the nearest cell, since
the nearest cell of a test-panel row usually holds the specification, not the label.
"""

from __future__ import annotations

import re
from dataclasses import replace

from coafill.family.models import DocumentFamily
from coafill.templates.models import PlaceholderSlot

NAMING_WINDOW = 200

MARKER_RE = re.compile(r"(?<!\{)\{\s*\}(?!\})")
_DELIMITER_RE = re.compile(r":|\||\t| {2,}")
_TABLE_CELL_RE = re.compile(r"\||\t")
_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_CHARS_RE = re.compile(r"[^a-z0-9_]")
_UNDERSCORES_RE = re.compile(r"_+")


def to_snake_case(text: str) -> str:
    lowered = _WHITESPACE_RE.sub("_", text.strip().lower())
    cleaned = _INVALID_CHARS_RE.sub("", lowered)
    return _UNDERSCORES_RE.sub("_", cleaned).strip("_")


def derive_name(before: str, after: str, family: DocumentFamily) -> str | None:
    """Derive a name from the text around a marker, or ``None`` when nothing fits."""

    lines_before = before.split("\n")
    name = _name_from_line(lines_before[-1], family, nearest_last=True)
    if name:
        return name

    previous = _first_non_empty(reversed(lines_before[:-1]))
    if previous is not None:
        name = _name_from_line(previous, family, nearest_last=True)
        if name:
            return name

    following = _first_non_empty(after.split("\n")[1:])
    if following is not None:
        name = _name_from_line(following, family, nearest_last=False)
        if name:
            return name

    return None


def name_slots(
    text: str, slots: list[PlaceholderSlot], family: DocumentFamily
) -> list[PlaceholderSlot]:
    """Give every slot a non-empty snake_case name."""

    named: list[PlaceholderSlot] = []
    unnamed_count = 0

    for slot in slots:
        name = to_snake_case(slot.candidate_name) if slot.candidate_name else ""
        if not name and slot.kind != "fallback":
            before = text[max(0, slot.start - NAMING_WINDOW) : slot.start]
            after = text[slot.end : slot.end + NAMING_WINDOW]
            name = derive_name(before, after, family) or ""
        if not name:
            unnamed_count += 1
            name = f"field_{unnamed_count}"
        named.append(replace(slot, candidate_name=name))

    return named


def _name_from_line(line: str, family: DocumentFamily, *, nearest_last: bool) -> str:
    stripped = MARKER_RE.sub("", line)
    if _TABLE_CELL_RE.search(stripped):
        for cell in _TABLE_CELL_RE.split(stripped):
            kind = family.match_label(cell)
            if kind is not None:
                return kind.key

    segments = [segment.strip() for segment in _DELIMITER_RE.split(stripped)]
    ordered = reversed(segments) if nearest_last else iter(segments)
    for segment in ordered:
        name = to_snake_case(segment)
        if name:
            return name
    return ""


def _first_non_empty(lines) -> str | None:
    for line in lines:
        if MARKER_RE.sub("", line).strip():
            return line
    return None
