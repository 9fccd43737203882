"""OCR and field-extraction collaborator contracts.

The core never talks to a model or OCR service directly; callers plug in objects that
satisfy these protocols and the job pipeline handles their failures.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from coafill.matching.models import FieldValue
from coafill.utils.errors import CollaboratorError, ExtractionParseError

FALLBACK_OCR_TEXT = (
    "Extracted text from document. This would contain the full OCR results from the "
    "chemical document including product names, batch numbers, test results, and other "
    "technical data."
)

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


@dataclass(frozen=True)
class OcrResult:
    text: str
    token_count: int

    @classmethod
    def from_text(cls, text: str) -> OcrResult:
        return cls(text=text, token_count=count_tokens(text))


class TextExtractor(Protocol):
    """Turns a source document into plain text."""

    def extract_text(self, path: Path) -> OcrResult:
        """Return OCR text; raise ``CollaboratorError`` or ``OSError`` on failure."""


class FieldExtractor(Protocol):
    """Asks a language model for the requested fields and returns its raw answer."""

    def extract_fields(self, text: str, field_names: Sequence[str]) -> str:
        """Return the raw model response for ``field_names`` found in ``text``."""


def count_tokens(text: str) -> int:
    return len(text.split())


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""

    match = _FENCE_RE.match(raw)
    if match is None:
        return raw.strip()
    return match.group(1).strip()


def parse_field_set(raw: str) -> dict[str, FieldValue]:
    """Parse a JSON object of scalar field values, tolerating a surrounding code fence."""

    body = strip_code_fences(raw)
    if not body:
        raise ExtractionParseError("Extractor returned an empty response", raw_response=raw)

    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ExtractionParseError(
            f"Extractor response is not valid JSON: {exc.msg}", raw_response=raw
        ) from exc

    if not isinstance(parsed, dict):
        raise ExtractionParseError(
            f"Extractor response must be a JSON object, got {type(parsed).__name__}",
            raw_response=raw,
        )

    for name, value in parsed.items():
        if isinstance(value, (dict, list)):
            raise CollaboratorError(
                f"Field '{name}' has a non-scalar value",
                stage="parse_extraction",
                detail={"field": name},
            )
    return parsed


def parse_extractor_response(raw: str, field_names: Sequence[str]) -> dict[str, FieldValue]:
    """Parse an extractor response into a field set restricted to ``field_names``.

    Requested names missing from the response map to ``None``; extra keys are dropped,
    except corrupted ``_``-prefixed keys, which are kept for the normalizer.
    """

    parsed = parse_field_set(raw)
    fields: dict[str, FieldValue] = {name: parsed.get(name) for name in field_names}
    for name, value in parsed.items():
        if name.startswith("_") and name not in fields:
            fields[name] = value
    return fields
