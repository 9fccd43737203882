"""Processing job models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from coafill.matching.models import FieldValue

JobStatus = Literal["pending", "processing", "completed", "failed"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingJob(BaseModel):
    """One document run through OCR, extraction and normalization."""

    model_config = ConfigDict(extra="forbid")

    id: str
    document_id: str
    template_id: str
    status: JobStatus = "pending"
    ocr_text: str | None = None
    extracted_data: dict[str, FieldValue] | None = None
    tokens_extracted: int | None = None
    processing_time: int | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None


class JobStoreData(BaseModel):
    """On-disk layout of the job store file."""

    model_config = ConfigDict(extra="forbid")

    version: int
    jobs: dict[str, ProcessingJob] = Field(default_factory=dict)
