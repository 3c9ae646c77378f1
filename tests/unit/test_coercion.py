from __future__ import annotations

from decimal import Decimal

import pytest

from common.coercion import normalize_address, optional_int, same_address, to_non_negative_int


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("25", 25),
        (" 10 ", 10),
        ("25.0", 25),
        (25, 25),
        (7.9, 7),
        (Decimal("12"), 12),
        (b"3", 3),
    ],
)
def test_numeric_inputs(raw, expected):
    assert to_non_negative_int(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", None, True, False, -5, "-3", float("nan"), float("inf"), object()])
def test_non_numeric_or_negative_inputs_fall_back_to_zero(raw):
    assert to_non_negative_int(raw) == 0


def test_optional_int_keeps_absence():
    assert optional_int(None) is None
    assert optional_int("42") == 42


def test_address_matching_is_case_insensitive():
    assert normalize_address("  0xABC ") == "0xabc"
    assert same_address("0xAbC", "0xabc")
    assert not same_address("", "")
    assert not same_address(None, "0xabc")
