from __future__ import annotations

import math
from typing import Any, Optional


def to_non_negative_int(value: Any) -> int:
    """Coerce user or ledger input to a non-negative integer.

    - bool is rejected (0) so True/False never becomes 1/0.
    - int and integral-looking floats/strings are accepted ("25", "25.0", 25.9 -> 25).
    - Negative, non-finite, empty or non-numeric input yields 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        return max(int(value), 0)
    if isinstance(value, (bytes, bytearray)):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            return 0
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return 0
        try:
            return max(int(s, 10), 0)
        except ValueError:
            pass
        try:
            f = float(s)
        except ValueError:
            return 0
        return to_non_negative_int(f)
    # Ledger clients may hand back numeric wrappers (e.g. Decimal)
    try:
        return to_non_negative_int(int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return to_non_negative_int(value)


def normalize_address(address: Optional[str]) -> str:
    if not address or not isinstance(address, str):
        return ""
    return address.strip().lower()


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    na = normalize_address(a)
    return bool(na) and na == normalize_address(b)


__all__ = [
    "to_non_negative_int",
    "optional_int",
    "normalize_address",
    "same_address",
]
