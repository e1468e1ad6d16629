import pytest

from utils.ptbr_number import format_ptbr_number, format_sheet_number, parse_ptbr_number


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("6,56", 6.56),
        ("6.566,90", 6566.9),
        ("1.234,56", 1234.56),
        ("1234.56", 1234.56),
        ("1,234.56", 1234.56),
        ("5.127", 5127.0),
        ("180.072", 180072.0),
        ("1.234.567", 1234567.0),
        ("89.00", 89.0),
        ("120,5", 120.5),
        ("  42 ", 42.0),
        ("-3,5", -3.5),
    ],
)
def test_parse_ptbr_number(raw, expected):
    assert parse_ptbr_number(raw) == pytest.approx(expected)


def test_comma_and_dot_styles_agree():
    assert parse_ptbr_number("1.234,56") == parse_ptbr_number("1234.56") == pytest.approx(1234.56)


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", True, float("nan")])
def test_parse_ptbr_number_blank_or_garbage_is_zero(raw):
    assert parse_ptbr_number(raw) == 0.0


def test_numbers_pass_through():
    assert parse_ptbr_number(1234.5) == 1234.5
    assert parse_ptbr_number(7) == 7.0


def test_format_ptbr_number():
    assert format_ptbr_number(1234.56) == "1.234,56"
    assert format_ptbr_number(1500) == "1.500"
    assert format_ptbr_number(2.5, decimals=2) == "2,50"
    assert format_ptbr_number(None) == "-"


def test_format_sheet_number_blanks_non_positive():
    assert format_sheet_number(120.5) == "120,50"
    assert format_sheet_number("1.234,5") == "1.234,50"
    assert format_sheet_number(0) == ""
    assert format_sheet_number(None) == ""
