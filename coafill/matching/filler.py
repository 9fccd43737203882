"""Sequential filler: document-order substitution of matched values."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from coafill.family.models import DocumentFamily
from coafill.matching.models import (
    BooleanMode,
    FieldValue,
    MatchPolicy,
    MatchResult,
    RenderMode,
    ReplaceLogEntry,
)
from coafill.matching.scorer import ContextScorer
from coafill.templates.models import PlaceholderSlot
from coafill.utils.events import log_event

logger = logging.getLogger("coafill.filler")

EMPTY_RENDER = "—"
BOOLEAN_LABELS = {True: "Complies", False: "Non-compliant"}


@dataclass(frozen=True)
class FillResult:
    """Substituted text with the per-slot matches and log entries."""

    text: str
    matches: list[MatchResult]
    entries: list[ReplaceLogEntry]
    degraded: bool


def format_value(
    value: FieldValue,
    *,
    boolean_mode: BooleanMode = "label",
    specification: str | None = None,
) -> str | None:
    """Render one value; ``None`` means the slot stays empty.

    Strings pass through verbatim so that units, comparison signs and scientific notation
    reach the output untouched.
    """

    if value is None or value == "":
        return None
    if isinstance(value, bool):
        if boolean_mode == "specification" and value and specification:
            return specification
        return BOOLEAN_LABELS[value]
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        # repr keeps the shortest round-trip digits; "f" drops the exponent.
        return format(Decimal(repr(value)), "f")
    return value


def empty_marker(slot_name: str, mode: RenderMode) -> str:
    return "{" + slot_name + "}" if mode == "preview" else EMPTY_RENDER


def match_slots(
    slots: list[PlaceholderSlot],
    fields: Mapping[str, FieldValue],
    scorer: ContextScorer,
    *,
    policy: MatchPolicy = "non_consuming",
) -> list[MatchResult]:
    """Pick a field per slot.

    A non-empty field named like the slot wins outright; otherwise the scorer picks the
    best remaining candidate.
    """

    pool = dict(fields)
    results: list[MatchResult] = []

    for slot in slots:
        name = slot.candidate_name or ""
        if name in pool and pool[name] not in (None, ""):
            result = MatchResult(
                slot_index=slot.index,
                field_name=name,
                score=scorer.score(slot.local_context, name, pool[name]),
                method="direct",
            )
        else:
            field_name, score = scorer.best_match(slot.local_context, pool)
            if field_name is None:
                result = MatchResult(slot_index=slot.index, method="none")
            else:
                result = MatchResult(
                    slot_index=slot.index, field_name=field_name, score=score, method="scored"
                )

        if policy == "consuming" and result.field_name is not None:
            pool.pop(result.field_name, None)
        results.append(result)

    return results


def match_positionally(
    slots: list[PlaceholderSlot], fields: Mapping[str, FieldValue]
) -> list[MatchResult]:
    """Degraded mode: the n-th slot takes the n-th field, each field used once."""

    available = list(fields)
    results: list[MatchResult] = []
    for position, slot in enumerate(slots):
        if position < len(available):
            results.append(
                MatchResult(slot_index=slot.index, field_name=available[position], method="positional")
            )
        else:
            results.append(MatchResult(slot_index=slot.index, method="none"))
    return results


def fill_slots(
    text: str,
    slots: list[PlaceholderSlot],
    fields: Mapping[str, FieldValue],
    scorer: ContextScorer,
    family: DocumentFamily,
    *,
    policy: MatchPolicy = "non_consuming",
    mode: RenderMode = "preview",
    boolean_mode: BooleanMode = "label",
    use_scorer: bool = True,
) -> FillResult:
    """Substitute every slot in document order.

    The scorer is skipped when ``use_scorer`` is false or no slot carries context; the
    positional fallback then runs and the result is flagged as degraded.
    """

    degraded = not use_scorer or not any(slot.local_context.strip() for slot in slots)
    if degraded and slots:
        log_event(
            logger,
            logging.WARNING,
            "positional_fallback",
            slot_count=len(slots),
            field_count=len(fields),
            reason="scorer_disabled" if not use_scorer else "no_context",
        )
        matches = match_positionally(slots, fields)
    else:
        matches = match_slots(slots, fields, scorer, policy=policy)

    entries: list[ReplaceLogEntry] = []
    replacements: dict[int, str] = {}
    for slot, match in zip(slots, matches, strict=True):
        slot_name = slot.candidate_name or f"field_{slot.index + 1}"
        value = fields.get(match.field_name) if match.field_name is not None else None
        kind = family.kind(match.field_name) if match.field_name is not None else None
        rendered = format_value(
            value,
            boolean_mode=boolean_mode,
            specification=kind.specification if kind is not None else None,
        )
        new_text = rendered if rendered is not None else empty_marker(slot_name, mode)
        replacements[slot.index] = new_text
        entries.append(
            ReplaceLogEntry(
                status="replaced" if rendered is not None else "empty",
                slot_index=slot.index,
                slot_name=slot_name,
                slot_kind=slot.kind,
                field_name=match.field_name,
                method=match.method,
                score=match.score,
                start=slot.start,
                end=slot.end,
                original_text=slot.token,
                new_text=new_text,
            )
        )

    filled = _substitute(text, slots, replacements, family)
    log_event(
        logger,
        logging.INFO,
        "filled",
        slot_count=len(slots),
        replaced_count=sum(1 for entry in entries if entry.status == "replaced"),
        policy=policy,
        mode=mode,
        degraded=degraded,
    )
    return FillResult(text=filled, matches=matches, entries=entries, degraded=degraded)


def _substitute(
    text: str,
    slots: list[PlaceholderSlot],
    replacements: Mapping[int, str],
    family: DocumentFamily,
) -> str:
    output = text
    appended: list[str] = []

    for slot in sorted(slots, key=lambda item: (item.start, item.index), reverse=True):
        new_text = replacements[slot.index]
        if slot.kind == "fallback":
            kind = family.kind(slot.candidate_name or "")
            label = kind.label if kind is not None else (slot.candidate_name or "").replace("_", " ")
            appended.append(f"{label}: {new_text}")
        elif slot.is_implied:
            output = output[: slot.start] + " " + new_text + output[slot.end :]
        else:
            output = output[: slot.start] + new_text + output[slot.end :]

    if appended:
        lines = list(reversed(appended))
        separator = "\n" if output and not output.endswith("\n") else ""
        output = output + separator + "\n".join(lines)
    return output
