"""Document family loading utilities."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from coafill.family.models import DocumentFamily

DEFAULT_FAMILY_PATH = Path(__file__).with_name("coa.yaml")


def load_family(path: Path | None = None) -> DocumentFamily:
    """Load and validate a document family definition from YAML."""

    family_path = path or DEFAULT_FAMILY_PATH
    if family_path == DEFAULT_FAMILY_PATH:
        return _load_default_family()
    return _load_family_file(family_path)


@lru_cache(maxsize=1)
def _load_default_family() -> DocumentFamily:
    return _load_family_file(DEFAULT_FAMILY_PATH)


def _load_family_file(family_path: Path) -> DocumentFamily:
    try:
        raw = yaml.safe_load(family_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Family file not found: {family_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in family file: {family_path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Family file must contain a mapping: {family_path}")

    try:
        family = DocumentFamily.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid family schema: {family_path}") from exc

    _check_references(family, family_path)
    return family


def _check_references(family: DocumentFamily, family_path: Path) -> None:
    known = [kind.key for kind in family.field_kinds]
    duplicates = sorted({key for key in known if known.count(key) > 1})
    if duplicates:
        raise ValueError(f"Duplicate field kinds {duplicates} in {family_path}")

    aliases = [alias for kind in family.field_kinds for alias in kind.aliases]
    for alias in aliases:
        if not alias.startswith("_"):
            raise ValueError(
                f"Alias '{alias}' in {family_path} must start with '_' to be treated as corrupted."
            )

    for rule in family.shared_rules:
        unknown = sorted(set(rule.keys) - set(known))
        if unknown:
            raise ValueError(
                f"Shared rule '{rule.pattern}' in {family_path} references unknown fields "
                f"{unknown}."
            )
