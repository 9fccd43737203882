from __future__ import annotations

from coafill.family.loader import load_family
from coafill.templates.namer import derive_name, to_snake_case


def test_to_snake_case_strips_punctuation_and_collapses_underscores() -> None:
    assert to_snake_case("Loss on Drying (%)") == "loss_on_drying"
    assert to_snake_case("  Batch   Number ") == "batch_number"
    assert to_snake_case("Yeast & Molds") == "yeast_molds"
    assert to_snake_case("≥ ≤") == ""


def test_derive_name_uses_label_before_marker() -> None:
    family = load_family()

    assert derive_name("Batch Number: ", "", family) == "batch_number"
    assert derive_name("Customer  Issued Date ", "", family) == "issued_date"


def test_derive_name_falls_back_to_previous_line() -> None:
    assert derive_name("Appearance\n", "", load_family()) == "appearance"


def test_derive_name_falls_back_to_next_line() -> None:
    assert derive_name("", "\nTotal Bacteria", load_family()) == "total_bacteria"


def test_derive_name_returns_none_without_any_label() -> None:
    assert derive_name("{}\n", "\n{}", load_family()) is None


def test_table_row_prefers_known_label_cell_over_nearest_cell() -> None:
    name = derive_name("Protein | ≤ 0.1% | ", "", load_family())

    assert name == "protein"


def test_table_row_without_known_label_uses_nearest_cell() -> None:
    name = derive_name("Odour | Characteristic | ", "", load_family())

    assert name == "characteristic"
