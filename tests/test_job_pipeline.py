from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

import pytest

from coafill.extraction.collaborators import FALLBACK_OCR_TEXT, OcrResult
from coafill.jobs.job_store import JobStore
from coafill.jobs.pipeline import run_job
from coafill.utils.errors import CollaboratorError


class FakeOcr:
    def __init__(self, text: str | None = None, error: Exception | None = None) -> None:
        self._text = text
        self._error = error
        self.calls: list[Path] = []

    def extract_text(self, path: Path) -> OcrResult:
        self.calls.append(path)
        if self._error is not None:
            raise self._error
        return OcrResult.from_text(self._text or "")


class FakeExtractor:
    def __init__(self, response: str | None = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.requests: list[tuple[str, list[str]]] = []

    def extract_fields(self, text: str, field_names: Sequence[str]) -> str:
        self.requests.append((text, list(field_names)))
        if self._error is not None:
            raise self._error
        return self._response or "{}"


def _store_with_job(tmp_path: Path) -> tuple[JobStore, str]:
    store = JobStore(tmp_path / "jobs.json")
    job = store.create(document_id="doc-1", template_id="tpl-1")
    return store, job.id


def test_run_job_completes_with_normalized_fields(tmp_path: Path) -> None:
    store, job_id = _store_with_job(tmp_path)
    ocr = FakeOcr(text="Batch 25042211 pH 6.8 Molecular weight 1.70 x 10^6")
    extractor = FakeExtractor(
        response='```json\n{"batch_number": "25042211", "_ph__5085_": "6.8"}\n```'
    )

    job = run_job(
        store,
        job_id,
        tmp_path / "coa.pdf",
        ocr=ocr,
        extractor=extractor,
        field_names=["batch_number", "ph", "molecular_weight"],
    )

    assert job.status == "completed"
    assert job.extracted_data == {
        "batch_number": "25042211",
        "ph": "6.8",
        "molecular_weight": "1.70 x 10^6",
    }
    assert job.tokens_extracted == 9
    assert job.completed_at is not None
    assert job.error_message is None
    assert store.get(job_id) == job


def test_run_job_uses_fallback_text_when_ocr_fails(tmp_path: Path) -> None:
    store, job_id = _store_with_job(tmp_path)
    extractor = FakeExtractor(response='{"batch_number": "B1"}')

    job = run_job(
        store,
        job_id,
        tmp_path / "coa.pdf",
        ocr=FakeOcr(error=OSError("unsupported format")),
        extractor=extractor,
        field_names=["batch_number"],
    )

    assert job.status == "completed"
    assert job.ocr_text == FALLBACK_OCR_TEXT
    assert job.tokens_extracted == len(FALLBACK_OCR_TEXT.split())
    assert extractor.requests[0][0] == FALLBACK_OCR_TEXT


def test_run_job_marks_failure_when_extractor_fails(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.ERROR, logger="coafill.jobs")
    store, job_id = _store_with_job(tmp_path)

    job = run_job(
        store,
        job_id,
        tmp_path / "coa.pdf",
        ocr=FakeOcr(text="some text"),
        extractor=FakeExtractor(
            error=CollaboratorError("LLM API error: 500", stage="extract_fields")
        ),
        field_names=["batch_number"],
    )

    assert job.status == "failed"
    assert job.error_message == "LLM API error: 500"
    assert job.extracted_data is None
    stored = store.get(job_id)
    assert stored is not None and stored.status == "failed"
    event = json.loads(caplog.records[-1].getMessage())
    assert event["event"] == "job_failed"
    assert event["stage"] == "extract_fields"


def test_run_job_marks_failure_for_malformed_response(tmp_path: Path) -> None:
    store, job_id = _store_with_job(tmp_path)

    job = run_job(
        store,
        job_id,
        tmp_path / "coa.pdf",
        ocr=FakeOcr(text="some text"),
        extractor=FakeExtractor(response="I could not find any fields."),
        field_names=["batch_number"],
    )

    assert job.status == "failed"
    assert job.error_message is not None
    assert "not valid JSON" in job.error_message


def test_run_job_marks_failure_when_extractor_is_unreachable(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.ERROR, logger="coafill.jobs")
    store, job_id = _store_with_job(tmp_path)

    job = run_job(
        store,
        job_id,
        tmp_path / "coa.pdf",
        ocr=FakeOcr(text="some text"),
        extractor=FakeExtractor(error=ConnectionError("LLM unreachable")),
        field_names=["batch_number"],
    )

    assert job.status == "failed"
    assert job.error_message is not None
    assert "LLM unreachable" in job.error_message
    stored = store.get(job_id)
    assert stored is not None and stored.status == "failed"
    assert stored.completed_at is not None
    event = json.loads(caplog.records[-1].getMessage())
    assert event["event"] == "job_failed"
    assert event["stage"] == "extract_fields"


def test_run_job_requests_canonical_fields_by_default(tmp_path: Path) -> None:
    store, job_id = _store_with_job(tmp_path)
    extractor = FakeExtractor(response="{}")

    job = run_job(store, job_id, tmp_path / "coa.pdf", ocr=FakeOcr(text="x"), extractor=extractor)

    assert job.status == "completed"
    requested = extractor.requests[0][1]
    assert len(requested) == 16
    assert requested[0] == "batch_number"


def test_run_job_raises_for_unknown_job(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "jobs.json")

    with pytest.raises(ValueError, match="Processing job not found"):
        run_job(
            store,
            "missing",
            tmp_path / "coa.pdf",
            ocr=FakeOcr(text="x"),
            extractor=FakeExtractor(),
        )
