from decimal import Decimal

import pytest

from chitalishta.values import cell, parse_code, parse_decimal, parse_float, parse_int, parse_text, parse_value


def test_parse_text_trims_and_blanks_to_none():
    assert parse_text("  Читалище  ") == "Читалище"
    assert parse_text("\xa0Town\xa0") == "Town"
    assert parse_text("   ") is None
    assert parse_text("") is None
    assert parse_text(None) is None
    assert parse_text(42) == "42"


def test_parse_code_drops_float_suffix():
    assert parse_code(12345.0) == "12345"
    assert parse_code("00151.0") == "00151"
    assert parse_code(" BLG52 ") == "BLG52"
    assert parse_code("12.5") == "12.5"
    assert parse_code(None) is None


def test_parse_int_accepts_float_text_and_truncates():
    assert parse_int("12.0") == 12
    assert parse_int(" 7 ") == 7
    assert parse_int(12.9) == 12
    assert parse_int(5) == 5


@pytest.mark.parametrize("raw", [None, "", "  ", "abc", "=SUM(A1:A3)", True, float("nan"), "1e999"])
def test_parse_int_degrades_to_none(raw):
    assert parse_int(raw) is None


def test_parse_decimal_keeps_written_precision():
    assert parse_decimal("1234.50") == Decimal("1234.50")
    assert parse_decimal(0.1) == Decimal("0.1")
    assert parse_decimal(7) == Decimal("7")
    assert parse_decimal("1 250.5") == Decimal("1250.5")


@pytest.mark.parametrize("raw", [None, "", "n/a", "NaN", "Infinity", False])
def test_parse_decimal_degrades_to_none(raw):
    assert parse_decimal(raw) is None


def test_parse_float():
    assert parse_float("3.5") == 3.5
    assert parse_float(2) == 2.0
    assert parse_float("1e999") is None
    assert parse_float("x") is None


def test_parse_value_dispatches_and_rejects_unknown_kind():
    assert parse_value("12.0", "int") == 12
    assert parse_value(" a ", "text") == "a"
    with pytest.raises(ValueError):
        parse_value("1", "date")


def test_cell_tolerates_short_rows():
    assert cell(("a", "b"), 1) == "b"
    assert cell(("a", "b"), 5) is None
