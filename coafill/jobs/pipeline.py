"""Job pipeline: OCR, field extraction and normalization for one processing job."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from pathlib import Path

from coafill.extraction.collaborators import (
    FALLBACK_OCR_TEXT,
    FieldExtractor,
    OcrResult,
    TextExtractor,
    parse_extractor_response,
)
from coafill.family.loader import load_family
from coafill.family.models import DocumentFamily
from coafill.jobs.job_store import JobStore
from coafill.jobs.models import ProcessingJob, utc_now
from coafill.matching.models import FieldValue
from coafill.matching.normalizer import normalize_fields
from coafill.utils.errors import CollaboratorError
from coafill.utils.events import log_event

logger = logging.getLogger("coafill.jobs")


def run_job(
    store: JobStore,
    job_id: str,
    document_path: Path,
    *,
    ocr: TextExtractor,
    extractor: FieldExtractor,
    field_names: Sequence[str] | None = None,
    family: DocumentFamily | None = None,
) -> ProcessingJob:
    """Run a stored job to ``completed`` or ``failed`` and return the persisted job.

    An OCR failure is not fatal: the fallback text is used and the run continues. An
    extractor failure, including an unreachable extractor, marks the job ``failed`` with
    the error message. Neither is retried.
    """

    family = family or load_family()
    job = store.get(job_id)
    if job is None:
        raise ValueError(f"Processing job not found: {job_id}")

    names = list(field_names) if field_names else [kind.key for kind in family.fallback_fields()]
    _update(store, job_id, status="processing")
    log_event(logger, logging.INFO, "job_started", job_id=job_id, field_count=len(names))
    started = time.monotonic()

    ocr_result = _extract_text(ocr, document_path, job_id)

    try:
        extracted = _extract_fields(extractor, ocr_result.text, names)
    except CollaboratorError as exc:
        log_event(
            logger,
            logging.ERROR,
            "job_failed",
            job_id=job_id,
            stage=exc.stage,
            error=str(exc),
        )
        return _update(
            store,
            job_id,
            status="failed",
            ocr_text=ocr_result.text,
            tokens_extracted=ocr_result.token_count,
            processing_time=int(time.monotonic() - started),
            error_message=str(exc),
            completed_at=utc_now(),
        )

    normalized = normalize_fields(extracted, family, ocr_text=ocr_result.text)
    elapsed = int(time.monotonic() - started)
    log_event(
        logger,
        logging.INFO,
        "job_completed",
        job_id=job_id,
        field_count=len(normalized),
        processing_time=elapsed,
    )
    return _update(
        store,
        job_id,
        status="completed",
        ocr_text=ocr_result.text,
        extracted_data=normalized,
        tokens_extracted=ocr_result.token_count,
        processing_time=elapsed,
        error_message=None,
        completed_at=utc_now(),
    )


def _extract_text(ocr: TextExtractor, document_path: Path, job_id: str) -> OcrResult:
    try:
        return ocr.extract_text(document_path)
    except (CollaboratorError, OSError) as exc:
        log_event(
            logger,
            logging.WARNING,
            "ocr_fallback",
            job_id=job_id,
            document=str(document_path),
            error=str(exc),
        )
        return OcrResult.from_text(FALLBACK_OCR_TEXT)


def _extract_fields(
    extractor: FieldExtractor, text: str, names: list[str]
) -> dict[str, FieldValue]:
    try:
        raw = extractor.extract_fields(text, names)
    except CollaboratorError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise CollaboratorError(
            f"Field extractor unavailable: {type(exc).__name__}: {exc}",
            stage="extract_fields",
            detail={"error_type": type(exc).__name__},
        ) from exc
    return parse_extractor_response(raw, names)


def _update(store: JobStore, job_id: str, **changes) -> ProcessingJob:
    job = store.update(job_id, **changes)
    if job is None:
        raise ValueError(f"Processing job disappeared during run: {job_id}")
    return job
