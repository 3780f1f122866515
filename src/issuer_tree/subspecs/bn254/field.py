"""Core definition of the BN254 scalar field Fr."""

from typing import Self

from pydantic import Field, field_validator

from issuer_tree.types import MalformedInputError, StrictBaseModel
from issuer_tree.types.parsing import parse_unsigned

# =================================================================
# Field Constants
#
# The scalar field of the BN254 (alt_bn128) curve. Circom circuits and
# the Groth16 tooling built on them compute over this field.
# =================================================================

P: int = 21888242871839275222246405745257275088548364400416034343698204186575808495617
"""The BN254 scalar field prime."""

P_BITS: int = 254
"""The number of bits in the prime P."""

P_BYTES: int = (P_BITS + 7) // 8
"""The size of a field element in bytes."""


# =================================================================
# Scalar Field Fr
# =================================================================


class Fr(StrictBaseModel):
    """An element in the BN254 scalar field."""

    value: int = Field(ge=0, lt=P, description="Field element value in the range [0, P)")

    @field_validator("value", mode="before")
    @classmethod
    def reduce_modulo_p(cls, v: int) -> int:
        """Reduces an integer input modulo P before validation."""
        return v % P

    @classmethod
    def zero(cls) -> Self:
        """The additive identity, used as the default padding leaf."""
        return cls(value=0)

    def __add__(self, other: Self) -> Self:
        """Field addition."""
        return self.__class__(value=self.value + other.value)

    def __sub__(self, other: Self) -> Self:
        """Field subtraction."""
        return self.__class__(value=self.value - other.value)

    def __neg__(self) -> Self:
        """Field negation."""
        return self.__class__(value=-self.value)

    def __mul__(self, other: Self) -> Self:
        """Field multiplication."""
        return self.__class__(value=self.value * other.value)

    def __pow__(self, exponent: int) -> Self:
        """Field exponentiation."""
        return self.__class__(value=pow(self.value, exponent, P))

    def inverse(self) -> Self:
        """Computes the multiplicative inverse."""
        if self.value == 0:
            raise ZeroDivisionError("Cannot invert the zero element.")
        return self ** (P - 2)

    def __truediv__(self, other: Self) -> Self:
        """Field division."""
        return self * other.inverse()

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        """Decimal representation, the wire format of every cache and proof input."""
        return str(self.value)

    def __bytes__(self) -> bytes:
        """32-byte big-endian representation."""
        return self.value.to_bytes(P_BYTES, byteorder="big")

    @classmethod
    def from_decimal(cls, text: str) -> Self:
        """
        Parse a canonical decimal string as produced by `str(fr)`.

        Unlike the constructor, out-of-range values are rejected instead of
        reduced: a stored element at or above P means the data is corrupt.

        Raises:
            MalformedInputError: If `text` is not a decimal string below P.
        """
        if not isinstance(text, str) or not text.isascii() or not text.isdigit():
            raise MalformedInputError(text, "expected a decimal field element")
        return cls.from_canonical(int(text, 10))

    @classmethod
    def parse(cls, value: int | str) -> Self:
        """
        Parse a field element given in hex (`0x`) or decimal notation.

        Raises:
            MalformedInputError: If the value is not an unsigned integer below P.
        """
        return cls.from_canonical(parse_unsigned(value))

    @classmethod
    def from_canonical(cls, value: int) -> Self:
        """Wrap an integer that must already lie in `[0, P)`."""
        if not 0 <= value < P:
            raise MalformedInputError(value, f"not a field element (must be below {P})")
        return cls(value=value)
