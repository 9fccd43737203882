"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from coafill.matching.models import FillOutput


@dataclass(frozen=True)
class OutputPaths:
    """Fixed output artifact paths for a preview or fill run."""

    text: Path
    match_report: Path


def build_output_paths(out_dir: Path) -> OutputPaths:
    """Build fixed output file paths under out_dir."""

    return OutputPaths(
        text=out_dir / "out.txt",
        match_report=out_dir / "out.match_report.json",
    )


def existing_output_files(paths: OutputPaths) -> list[Path]:
    """Return existing output files among fixed artifact paths."""

    return [path for path in (paths.text, paths.match_report) if path.exists()]


def build_match_report(output: FillOutput) -> dict[str, Any]:
    payload = output.replace_report.model_dump(mode="json")
    payload["matches"] = [match.model_dump(mode="json") for match in output.matches]
    payload["fields"] = output.fields
    return payload


def write_fill_output_atomic(paths: OutputPaths, output: FillOutput) -> None:
    """Write the filled text and its match report atomically."""

    paths.text.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_text(paths.text, output.text)
    write_json_atomic(paths.match_report, build_match_report(output))


def write_error_report_atomic(
    paths: OutputPaths, *, error_type: str, error_message: str, stage: str
) -> None:
    """Write a match report that only carries error metadata."""

    paths.match_report.parent.mkdir(parents=True, exist_ok=True)
    write_json_atomic(
        paths.match_report,
        {
            "entries": [],
            "summary": None,
            "error": {"error_type": error_type, "error_message": error_message, "stage": stage},
        },
    )


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_text(
        path, json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    )


def _atomic_write_text(path: Path, content: str) -> None:
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
        newline="",
    ) as tmp:
        tmp_path = Path(tmp.name)
        tmp.write(content)

    tmp_path.replace(path)
