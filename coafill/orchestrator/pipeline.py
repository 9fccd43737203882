"""Orchestration pipeline: locate -> name -> normalize -> match -> substitute."""

from __future__ import annotations

from collections.abc import Mapping

from coafill.family.loader import load_family
from coafill.family.models import DocumentFamily
from coafill.matching.filler import fill_slots
from coafill.matching.models import (
    BooleanMode,
    FieldValue,
    FillOutput,
    MatchPolicy,
    RenderMode,
    ReplaceReport,
    ReplaceSummary,
)
from coafill.matching.normalizer import normalize_fields
from coafill.matching.scorer import ContextScorer
from coafill.templates.locator import locate_placeholders


def fill_template(
    template_text: str,
    fields: Mapping[str, FieldValue],
    family: DocumentFamily | None = None,
    policy: MatchPolicy = "non_consuming",
    mode: RenderMode = "render",
    boolean_mode: BooleanMode = "label",
    use_scorer: bool = True,
    ocr_text: str | None = None,
) -> FillOutput:
    """Fill a flattened template with an extracted field set.

    Fields are normalized before matching. Unmatched or empty slots never raise; they are
    rendered as the empty marker for ``mode``.
    """

    if policy not in {"consuming", "non_consuming"}:
        raise ValueError(f"Unsupported match policy: {policy}")
    if mode not in {"preview", "render"}:
        raise ValueError(f"Unsupported render mode: {mode}")
    if boolean_mode not in {"label", "specification"}:
        raise ValueError(f"Unsupported boolean mode: {boolean_mode}")

    family = family or load_family()
    located = locate_placeholders(template_text, family)
    canonical = normalize_fields(fields, family, ocr_text=ocr_text)
    scorer = ContextScorer.from_family(family)

    result = fill_slots(
        template_text,
        located.slots,
        canonical,
        scorer,
        family,
        policy=policy,
        mode=mode,
        boolean_mode=boolean_mode,
        use_scorer=use_scorer,
    )

    replaced_count = sum(1 for entry in result.entries if entry.status == "replaced")
    summary = ReplaceSummary(
        total_slots=len(result.entries),
        replaced_count=replaced_count,
        empty_count=len(result.entries) - replaced_count,
        strategy=located.strategy,
        policy=policy,
        mode=mode,
        boolean_mode=boolean_mode,
        degraded=result.degraded,
    )
    return FillOutput(
        text=result.text,
        strategy=located.strategy,
        slots=located.slots,
        matches=result.matches,
        fields=canonical,
        replace_report=ReplaceReport(entries=result.entries, summary=summary),
    )


def preview_template(
    template_text: str,
    fields: Mapping[str, FieldValue],
    family: DocumentFamily | None = None,
    policy: MatchPolicy = "non_consuming",
    boolean_mode: BooleanMode = "label",
    use_scorer: bool = True,
    ocr_text: str | None = None,
) -> FillOutput:
    """Preview fill: empty slots show ``{slot_name}`` instead of an em-dash."""

    return fill_template(
        template_text,
        fields,
        family=family,
        policy=policy,
        mode="preview",
        boolean_mode=boolean_mode,
        use_scorer=use_scorer,
        ocr_text=ocr_text,
    )
