"""Integer/text conversions used by the console and status displays."""

from __future__ import annotations

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_UINT32_MASK = 0xFFFFFFFF


def _check_base(base: int) -> None:
    if not 2 <= base <= len(_DIGITS):
        raise ValueError(f"base must be between 2 and {len(_DIGITS)}, got {base}")


def _to_base(value: int, base: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, base)
        digits.append(_DIGITS[rem])
    return "".join(reversed(digits))


def itoa(value: int, base: int = 10) -> str:
    """Render a signed integer in ``base`` with lowercase digits.

    Only base 10 uses a minus sign; negative values in other bases are shown
    as their 32-bit two's complement.
    """
    _check_base(base)
    if value < 0:
        if base == 10:
            return "-" + _to_base(-value, base)
        return _to_base(value & _UINT32_MASK, base)
    return _to_base(value, base)


def utoa(value: int, base: int = 10) -> str:
    """Render ``value`` as an unsigned 32-bit integer in ``base``."""
    _check_base(base)
    return _to_base(value & _UINT32_MASK, base)


def atoi(text: str) -> int:
    """Parse an optionally negative decimal integer; empty text gives 0."""
    if not text:
        return 0
    negative = text.startswith("-")
    digits = text[1:] if negative else text
    if not digits or not all("0" <= ch <= "9" for ch in digits):
        raise ValueError(f"not a decimal integer: {text!r}")
    result = 0
    for ch in digits:
        result = result * 10 + (ord(ch) - ord("0"))
    return -result if negative else result