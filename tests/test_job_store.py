from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from coafill.jobs.job_store import JobStore


def test_job_store_initializes_empty_data(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "jobs.json")

    assert store.list_all() == []
    assert store.get("missing") is None


def test_job_store_create_and_get_round_trip(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "jobs.json")

    job = store.create(document_id="doc-1", template_id="tpl-1")

    assert len(job.id) == 32
    assert job.status == "pending"
    assert JobStore(tmp_path / "jobs.json").get(job.id) == job


def test_job_store_update_persists_changes(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "jobs.json")
    job = store.create(document_id="doc-1", template_id="tpl-1")

    updated = store.update(job.id, status="completed", extracted_data={"ph": "6.8"})

    assert updated is not None
    assert updated.status == "completed"
    loaded = store.get(job.id)
    assert loaded is not None
    assert loaded.extracted_data == {"ph": "6.8"}
    assert store.update("missing", status="failed") is None


def test_job_store_update_rejects_unknown_fields_and_status(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "jobs.json")
    job = store.create(document_id="doc-1", template_id="tpl-1")

    with pytest.raises(ValueError, match="Invalid job update"):
        store.update(job.id, accuracy=99)
    with pytest.raises(ValueError, match="Invalid job update"):
        store.update(job.id, status="archived")
    with pytest.raises(ValueError, match="cannot be changed"):
        store.update(job.id, id="other")


def test_job_store_delete_existing_and_missing(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "jobs.json")
    job = store.create(document_id="doc-1", template_id="tpl-1")

    assert store.delete(job.id) is True
    assert store.delete(job.id) is False
    assert store.list_all() == []


def test_job_store_list_all_is_sorted_by_creation_time(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "jobs.json")
    first = store.create(document_id="doc-1", template_id="tpl-1")
    second = store.create(document_id="doc-2", template_id="tpl-1")
    store.update(first.id, created_at=datetime(2024, 1, 2, tzinfo=timezone.utc))
    store.update(second.id, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert [job.id for job in store.list_all()] == [second.id, first.id]


def test_job_store_writes_without_leaving_temp_files(tmp_path: Path) -> None:
    store = JobStore(tmp_path / "nested" / "jobs.json")
    store.create(document_id="doc-1", template_id="tpl-1")

    assert (tmp_path / "nested" / "jobs.json").exists()
    assert list((tmp_path / "nested").glob("*.tmp")) == []


def test_job_store_raises_for_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "jobs.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid job store JSON"):
        JobStore(path).list_all()
