from __future__ import annotations

from pathlib import Path

import pytest

from coafill.family.loader import load_family

CANONICAL_FIELDS = [
    "batch_number",
    "manufacturing_date",
    "expiry_date",
    "appearance",
    "molecular_weight",
    "sodium_hyaluronate_content",
    "protein",
    "loss_on_drying",
    "ph",
    "staphylococcus_aureus",
    "pseudomonas_aeruginosa",
    "heavy_metal",
    "total_bacteria",
    "yeast_and_molds",
    "issued_date",
    "test_result",
]


def test_load_default_family() -> None:
    family = load_family()

    assert family.name == "coa"
    assert [kind.key for kind in family.fallback_fields()] == CANONICAL_FIELDS
    assert family.kind("product_name") is not None
    assert family.kind("missing") is None


def test_default_family_is_cached() -> None:
    assert load_family() is load_family()


def test_alias_table_maps_sixteen_corrupted_keys() -> None:
    table = load_family().alias_table()

    assert len(table) == 16
    assert table["_ph__5085_"] == "ph"
    assert table["_appearance__white_solid_powder_"] == "appearance"
    assert table["_heavy_metal__20_ppm_"] == "heavy_metal"
    assert all(alias.startswith("_") for alias in table)


def test_match_label_prefers_earliest_match_and_honours_exclude() -> None:
    family = load_family()

    kind = family.match_label("Loss on drying | ≤ 10% | pH")
    assert kind is not None and kind.key == "loss_on_drying"

    excluded = family.match_label("Loss on drying | pH", exclude={"loss_on_drying"})
    assert excluded is not None and excluded.key == "ph"


def test_ph_label_does_not_match_inside_words() -> None:
    assert load_family().match_label("Phosphate buffer") is None


def test_load_family_raises_for_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Family file not found"):
        load_family(tmp_path / "missing.yaml")


def test_load_family_raises_for_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "family.yaml"
    path.write_text("name: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML in family file"):
        load_family(path)


def test_load_family_raises_for_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "family.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a mapping"):
        load_family(path)


def test_load_family_raises_for_unknown_option(tmp_path: Path) -> None:
    path = tmp_path / "family.yaml"
    path.write_text(
        """
name: custom
title: CUSTOM
field_kinds:
  - key: ph
    label: pH
    colour: red
""",
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="Invalid family schema"):
        load_family(path)


def test_load_family_raises_for_bad_pattern(tmp_path: Path) -> None:
    path = tmp_path / "family.yaml"
    path.write_text(
        """
name: custom
title: CUSTOM
field_kinds:
  - key: ph
    label: pH
    label_patterns: ['(unclosed']
""",
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="Invalid family schema"):
        load_family(path)


def test_load_family_rejects_shared_rule_with_unknown_key(tmp_path: Path) -> None:
    path = tmp_path / "family.yaml"
    path.write_text(
        """
name: custom
title: CUSTOM
field_kinds:
  - key: ph
    label: pH
shared_rules:
  - pattern: 'acid'
    keys: [ph, acidity]
""",
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="unknown fields"):
        load_family(path)


def test_load_family_rejects_alias_without_sentinel(tmp_path: Path) -> None:
    path = tmp_path / "family.yaml"
    path.write_text(
        """
name: custom
title: CUSTOM
field_kinds:
  - key: ph
    label: pH
    aliases: ['ph_value']
""",
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="must start with '_'"):
        load_family(path)
