"""Local JSON store for processing jobs."""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from coafill.jobs.models import JobStoreData, ProcessingJob

_STORE_VERSION = 1


class JobStore:
    """Persist processing jobs keyed by opaque id in a JSON file."""

    def __init__(self, store_path: Path) -> None:
        self._store_path = store_path

    def create(self, document_id: str, template_id: str) -> ProcessingJob:
        data = self._read_data()
        job = ProcessingJob(id=uuid.uuid4().hex, document_id=document_id, template_id=template_id)
        data.jobs[job.id] = job
        self._write_data(data)
        return job

    def get(self, job_id: str) -> ProcessingJob | None:
        data = self._read_data()
        return data.jobs.get(job_id)

    def update(self, job_id: str, **changes: Any) -> ProcessingJob | None:
        """Apply field changes to a stored job; unknown fields raise ``ValueError``."""

        data = self._read_data()
        current = data.jobs.get(job_id)
        if current is None:
            return None
        if "id" in changes:
            raise ValueError("Job id cannot be changed")

        try:
            updated = ProcessingJob.model_validate({**current.model_dump(), **changes})
        except ValidationError as exc:
            raise ValueError(f"Invalid job update for {job_id}: {exc}") from exc

        data.jobs[job_id] = updated
        self._write_data(data)
        return updated

    def list_all(self) -> list[ProcessingJob]:
        data = self._read_data()
        return sorted(data.jobs.values(), key=lambda job: (job.created_at, job.id))

    def delete(self, job_id: str) -> bool:
        data = self._read_data()
        if job_id not in data.jobs:
            return False
        del data.jobs[job_id]
        self._write_data(data)
        return True

    def _read_data(self) -> JobStoreData:
        if not self._store_path.exists():
            return JobStoreData(version=_STORE_VERSION)

        try:
            raw = json.loads(self._store_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid job store JSON: {self._store_path}") from exc

        try:
            return JobStoreData.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Invalid job store schema: {self._store_path}") from exc

    def _write_data(self, data: JobStoreData) -> None:
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._store_path.with_suffix(f"{self._store_path.suffix}.tmp")

        payload = data.model_dump(mode="json")
        temp_path.write_text(
            json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False),
            encoding="utf-8",
        )
        temp_path.replace(self._store_path)
