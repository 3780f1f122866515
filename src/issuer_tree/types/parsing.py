"""Parsing of unsigned integers from registry and CLI inputs."""

from __future__ import annotations

from .exceptions import MalformedInputError

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def parse_unsigned(value: int | str) -> int:
    """
    Parse an unsigned integer from an int, a `0x`-prefixed hex string or a decimal string.

    Registries distribute moduli in either notation, and YAML loaders may
    already have turned hex literals into integers.

    Raises:
        MalformedInputError: If the value is negative, empty, of the wrong type,
            or contains characters outside its notation.
    """
    # bool is an int subclass but never a meaningful modulus.
    if isinstance(value, bool):
        raise MalformedInputError(value, "booleans are not integers")

    if isinstance(value, int):
        if value < 0:
            raise MalformedInputError(value, "value must be unsigned")
        return value

    if not isinstance(value, str):
        raise MalformedInputError(value, f"unsupported type {type(value).__name__}")

    text = value.strip()
    if text[:2] in ("0x", "0X"):
        digits = text[2:]
        if not digits or not set(digits) <= _HEX_DIGITS:
            raise MalformedInputError(value, "invalid hexadecimal digits")
        return int(digits, 16)

    # str.isdigit accepts unicode digits; restrict to ASCII decimal.
    if not text or not text.isascii() or not text.isdigit():
        raise MalformedInputError(value, "expected 0x-prefixed hex or decimal digits")
    return int(text, 10)
