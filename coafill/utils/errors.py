"""Exceptions raised by the template, matching and job layers."""

from __future__ import annotations

from pathlib import Path
from typing import Any


class TemplateError(Exception):
    """Raised when a template file cannot be read or flattened."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class CollaboratorError(Exception):
    """Raised when an OCR or extraction collaborator fails or answers malformed data."""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.detail = detail or {}


class ExtractionParseError(CollaboratorError):
    """Raised when an extractor response is not a JSON object."""

    def __init__(self, message: str, *, raw_response: str) -> None:
        super().__init__(message, stage="parse_extraction", detail={"raw_length": len(raw_response)})
        self.raw_response = raw_response
