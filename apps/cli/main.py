"""Typer CLI entrypoint for coafill."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any, cast

import typer

from apps.cli.io import (
    OutputPaths,
    build_output_paths,
    existing_output_files,
    write_error_report_atomic,
    write_fill_output_atomic,
    write_json_atomic,
)
from coafill.extraction.collaborators import parse_field_set
from coafill.family.loader import load_family
from coafill.matching.models import BooleanMode, FieldValue, MatchPolicy, RenderMode
from coafill.matching.normalizer import normalize_fields
from coafill.orchestrator.pipeline import fill_template
from coafill.templates.flatten import load_template
from coafill.templates.locator import locate_placeholders
from coafill.utils.errors import CollaboratorError, TemplateError

app = typer.Typer(help="Certificate-of-Analysis template filler", rich_markup_mode=None)


@app.callback()
def cli_callback(
    verbose: Annotated[bool, typer.Option("--verbose", help="Emit JSON log events.")] = False,
) -> None:
    """Locate, normalize, preview and fill CoA templates."""

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s %(message)s")


@app.command("locate")
def locate_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    family: Annotated[Path | None, typer.Option()] = None,
    out: Annotated[Path | None, typer.Option(help="Write the slot list as JSON.")] = None,
) -> None:
    """Locate and name the placeholder slots of a template."""

    try:
        family_model = load_family(family)
        loaded = load_template(template)
        located = locate_placeholders(loaded.content, family_model)
    except (TemplateError, ValueError) as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=1) from exc

    payload = {
        "strategy": located.strategy,
        "yields": located.yields,
        "slots": [asdict(slot) for slot in located.slots],
    }
    _emit_json(payload, out)


@app.command("normalize")
def normalize_command(
    fields: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    ocr_text: Annotated[Path | None, typer.Option(exists=True, dir_okay=False)] = None,
    family: Annotated[Path | None, typer.Option()] = None,
    out: Annotated[Path | None, typer.Option(help="Write the canonical fields as JSON.")] = None,
) -> None:
    """Convert an extracted field set to canonical keys."""

    try:
        family_model = load_family(family)
        raw_fields = _load_fields(fields)
        auxiliary = ocr_text.read_text(encoding="utf-8") if ocr_text is not None else None
    except CollaboratorError as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=2) from exc
    except (OSError, ValueError) as exc:
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        raise typer.Exit(code=1) from exc

    _emit_json(normalize_fields(raw_fields, family_model, ocr_text=auxiliary), out)


@app.command("preview")
def preview_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    fields: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    family: Annotated[Path | None, typer.Option()] = None,
    policy: Annotated[str, typer.Option()] = "non_consuming",
    boolean_mode: Annotated[str, typer.Option()] = "label",
    ocr_text: Annotated[Path | None, typer.Option(exists=True, dir_okay=False)] = None,
    no_scorer: Annotated[
        bool, typer.Option("--no-scorer", help="Fill slots positionally without scoring.")
    ] = False,
    no_overwrite: Annotated[
        bool, typer.Option("--no-overwrite", help="Fail when outputs already exist.")
    ] = False,
) -> None:
    """Preview a fill; empty slots keep a visible {slot_name} marker."""

    _run_fill(
        mode="preview",
        template=template,
        fields=fields,
        out_dir=out_dir,
        family=family,
        policy=policy,
        boolean_mode=boolean_mode,
        ocr_text=ocr_text,
        use_scorer=not no_scorer,
        no_overwrite=no_overwrite,
    )


@app.command("fill")
def fill_command(
    template: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    fields: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    family: Annotated[Path | None, typer.Option()] = None,
    policy: Annotated[str, typer.Option()] = "non_consuming",
    boolean_mode: Annotated[str, typer.Option()] = "label",
    ocr_text: Annotated[Path | None, typer.Option(exists=True, dir_okay=False)] = None,
    no_scorer: Annotated[
        bool, typer.Option("--no-scorer", help="Fill slots positionally without scoring.")
    ] = False,
    no_overwrite: Annotated[
        bool, typer.Option("--no-overwrite", help="Fail when outputs already exist.")
    ] = False,
) -> None:
    """Fill a template; empty slots are rendered as an em-dash."""

    _run_fill(
        mode="render",
        template=template,
        fields=fields,
        out_dir=out_dir,
        family=family,
        policy=policy,
        boolean_mode=boolean_mode,
        ocr_text=ocr_text,
        use_scorer=not no_scorer,
        no_overwrite=no_overwrite,
    )


def _run_fill(
    *,
    mode: RenderMode,
    template: Path,
    fields: Path,
    out_dir: Path,
    family: Path | None,
    policy: str,
    boolean_mode: str,
    ocr_text: Path | None,
    use_scorer: bool,
    no_overwrite: bool,
) -> None:
    paths = build_output_paths(out_dir)

    normalized_policy = policy.lower().strip()
    if normalized_policy not in {"consuming", "non_consuming"}:
        typer.echo("ERROR: --policy must be one of: consuming, non_consuming.")
        _safe_write_error_report(paths, "ArgumentValidationError", "invalid policy", "args")
        raise typer.Exit(code=1)

    normalized_boolean_mode = boolean_mode.lower().strip()
    if normalized_boolean_mode not in {"label", "specification"}:
        typer.echo("ERROR: --boolean-mode must be one of: label, specification.")
        _safe_write_error_report(paths, "ArgumentValidationError", "invalid boolean_mode", "args")
        raise typer.Exit(code=1)

    existing = existing_output_files(paths)
    if existing and no_overwrite:
        typer.echo("ERROR: outputs already exist and --no-overwrite is enabled.")
        raise typer.Exit(code=1)
    if existing:
        names = ", ".join(path.name for path in existing)
        typer.echo(f"INFO: overwriting existing outputs: {names}")

    failure_stage = "unknown"
    try:
        failure_stage = "load_family"
        family_model = load_family(family)
        failure_stage = "load_template"
        loaded = load_template(template)
        failure_stage = "load_fields"
        raw_fields = _load_fields(fields)
        auxiliary = ocr_text.read_text(encoding="utf-8") if ocr_text is not None else None
        failure_stage = "pipeline"
        output = fill_template(
            loaded.content,
            raw_fields,
            family=family_model,
            policy=cast(MatchPolicy, normalized_policy),
            mode=mode,
            boolean_mode=cast(BooleanMode, normalized_boolean_mode),
            use_scorer=use_scorer,
            ocr_text=auxiliary,
        )
    except CollaboratorError as exc:
        typer.echo(f"ERROR: fields could not be parsed: {exc}")
        _safe_write_error_report(paths, type(exc).__name__, str(exc), failure_stage)
        raise typer.Exit(code=2) from exc
    except Exception as exc:  # noqa: BLE001
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        _safe_write_error_report(paths, type(exc).__name__, str(exc), failure_stage)
        raise typer.Exit(code=1) from exc

    try:
        write_fill_output_atomic(paths, output)
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=1) from exc

    summary = output.replace_report.summary
    if summary.degraded:
        typer.echo("WARNING(match): positional fallback used, matches are not scored.")
    typer.echo(
        f"INFO: strategy={summary.strategy} replaced={summary.replaced_count} "
        f"empty={summary.empty_count}"
    )
    typer.echo("INFO: success")


def _load_fields(path: Path) -> dict[str, FieldValue]:
    return parse_field_set(path.read_text(encoding="utf-8"))


def _emit_json(payload: Any, out: Path | None) -> None:
    if out is None:
        typer.echo(json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2))
        return
    write_json_atomic(out, payload)
    typer.echo(f"INFO: wrote {out}")


def _safe_write_error_report(
    paths: OutputPaths, error_type: str, error_message: str, stage: str
) -> None:
    try:
        write_error_report_atomic(
            paths, error_type=error_type, error_message=error_message, stage=stage
        )
    except OSError:
        pass


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
