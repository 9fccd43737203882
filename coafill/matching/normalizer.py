"""Field normalizer: corrupted extraction keys to canonical family keys."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from coafill.family.loader import load_family
from coafill.family.models import DocumentFamily
from coafill.matching.models import FieldValue
from coafill.utils.events import log_event

logger = logging.getLogger("coafill.normalizer")

CORRUPTION_SENTINEL = "_"


def normalize_fields(
    raw: Mapping[str, FieldValue],
    family: DocumentFamily | None = None,
    *,
    ocr_text: str | None = None,
) -> dict[str, FieldValue]:
    """Convert an extracted field set into its canonical form.

    Rules, in order:
    - keys that do not start with ``_`` are copied through unchanged;
    - corrupted keys are mapped through the family alias table, and unmapped ones are
      dropped; a mapped value never overwrites a canonical key already holding a value;
    - boolean values of fields with boolean labels become those labels;
    - absent derivable fields are backfilled from ``ocr_text``.

    Normalizing an already canonical set returns an equal set.
    """

    family = family or load_family()
    aliases = family.alias_table()
    canonical: dict[str, FieldValue] = {}

    for key, value in raw.items():
        if not key.startswith(CORRUPTION_SENTINEL):
            canonical[key] = value

    for key, value in raw.items():
        if not key.startswith(CORRUPTION_SENTINEL):
            continue
        target = aliases.get(key)
        if target is None:
            log_event(logger, logging.DEBUG, "normalization_miss", key=key)
            continue
        if canonical.get(target) is None:
            canonical[target] = value

    _coerce_booleans(canonical, family)
    if ocr_text:
        _backfill_derived(canonical, family, ocr_text)

    return canonical


def _coerce_booleans(fields: dict[str, FieldValue], family: DocumentFamily) -> None:
    for kind in family.field_kinds:
        if kind.boolean_labels is None:
            continue
        value = fields.get(kind.key)
        if isinstance(value, bool):
            fields[kind.key] = kind.boolean_labels.positive if value else kind.boolean_labels.negative


def _backfill_derived(fields: dict[str, FieldValue], family: DocumentFamily, ocr_text: str) -> None:
    for kind in family.field_kinds:
        regex = kind.backfill_regex()
        if regex is None or fields.get(kind.key) not in (None, ""):
            continue
        match = regex.search(ocr_text)
        if match is None:
            continue
        fields[kind.key] = match.group(0)
        log_event(logger, logging.DEBUG, "backfilled", key=kind.key)
