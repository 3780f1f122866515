"""
Limb packing of large unsigned integers into field-sized limbs.

An RSA modulus does not fit a single BN254 field element, so before it can be
hashed into a leaf it is cut into a fixed number of limbs. The cut must agree
exactly with the decomposition the circuit performs on its own copy of the
key: both sides hash the limbs, and any disagreement yields a leaf the circuit
cannot reproduce.

### Reference grouping

1.  Render the value in hexadecimal, without padding, and cut the string
    into 8-digit (32-bit) groups starting from the most significant digit.
    Only the final group can be shorter than 8 digits; its value is read as
    written, so it is not shifted up.
2.  Each of the first `L - 1` limbs combines three consecutive groups as
    `g0 * w^2 + g1 * w + g2`.
3.  The last limb holds group `3 * (L - 1)`, scaled as `g * w^2`.

The value must yield at least `3 * (L - 1) + 1` groups: a shorter value leaves
limbs without a group and is rejected. A longer value overflows the budget.
By default that is an error. A truncating scheme instead keeps the leading
`3 * (L - 1) + 1` groups and drops the rest, which is how the deployed tooling
hashes 2048-bit keys.

The multiplier `w` observed in the deployed packer is the literal `64`, not
`2^64`. It is kept as the reference value and isolated in `LimbScheme` so a
corrected scheme can be selected once the circuit's decomposition is
confirmed.
"""

from __future__ import annotations

from typing import List, Sequence

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Final

from issuer_tree.types import EncodingOverflowError, MalformedInputError
from issuer_tree.types.parsing import parse_unsigned

GROUP_HEX_DIGITS = 8
"""Hex digits per group (32 bits)."""

GROUP_BITS = 4 * GROUP_HEX_DIGITS
"""Bits per group."""

GROUPS_PER_LIMB = 3
"""Number of consecutive groups folded into one full limb."""


class LimbScheme(BaseModel):
    """The fixed limb count, inter-group weight and overflow policy of a packing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    limb_count: int = Field(ge=2, description="Number of limbs produced (L).")
    weight: int = Field(ge=2, description="Multiplier between consecutive groups (w).")
    truncate: bool = Field(
        default=False,
        description="Keep only the leading groups of a value that has too many.",
    )

    @property
    def group_count(self) -> int:
        """Groups consumed by the scheme: three per full limb plus one."""
        return GROUPS_PER_LIMB * (self.limb_count - 1) + 1

    @property
    def min_hex_digits(self) -> int:
        """Shortest hex rendering that still fills every group."""
        return GROUP_HEX_DIGITS * (self.group_count - 1) + 1

    @property
    def max_bits(self) -> int:
        """Largest bit length the scheme accepts without truncating."""
        return self.group_count * GROUP_BITS

    @property
    def invertible(self) -> bool:
        """Whether every in-budget value can be recovered from its limbs."""
        return self.weight >= 1 << GROUP_BITS and not self.truncate


REFERENCE_SCHEME: Final = LimbScheme(limb_count=11, weight=64)
"""The grouping and weight of the deployed issuer tooling, rejecting oversized values."""

TRUNCATING_SCHEME: Final = LimbScheme(limb_count=11, weight=64, truncate=True)
"""The deployed tooling exactly: oversized values keep their leading 31 groups."""

WIDE_SCHEME: Final = LimbScheme(limb_count=11, weight=1 << GROUP_BITS)
"""Same grouping with a group-width weight; exact on values with a fixed hex length."""


def _groups(value: int, scheme: LimbScheme) -> List[int]:
    """Cut `value` into the scheme's groups, most significant first."""
    digits = format(value, "x")
    groups = [
        int(digits[i : i + GROUP_HEX_DIGITS], 16)
        for i in range(0, len(digits), GROUP_HEX_DIGITS)
    ]

    if len(groups) < scheme.group_count:
        raise MalformedInputError(
            value,
            f"{value.bit_length()}-bit value fills {len(groups)} groups, "
            f"encoding needs {scheme.group_count}",
        )
    if len(groups) > scheme.group_count:
        if not scheme.truncate:
            raise EncodingOverflowError(
                bit_length=value.bit_length(),
                needed=len(groups),
                available=scheme.group_count,
            )
        groups = groups[: scheme.group_count]
    return groups


def pack(value: int | str, scheme: LimbScheme = REFERENCE_SCHEME) -> List[int]:
    """
    Pack an unsigned integer into `scheme.limb_count` limbs.

    Args:
        value: The integer, or its `0x`-hex or decimal string form.
        scheme: The limb count, weight and overflow policy to pack with.

    Returns:
        The limbs, in circuit order.

    Raises:
        MalformedInputError: If `value` is not an unsigned integer, or too
            short to fill every group.
        EncodingOverflowError: If `value` needs more groups than a
            non-truncating scheme holds.
    """
    groups = _groups(parse_unsigned(value), scheme)
    w = scheme.weight

    limbs = []
    for i in range(scheme.limb_count - 1):
        g0, g1, g2 = groups[GROUPS_PER_LIMB * i : GROUPS_PER_LIMB * (i + 1)]
        limbs.append(g0 * w * w + g1 * w + g2)

    # The last limb carries a single group in the high position.
    limbs.append(groups[-1] * w * w)
    return limbs


def unpack(
    limbs: Sequence[int],
    scheme: LimbScheme = REFERENCE_SCHEME,
    hex_digits: int | None = None,
) -> int:
    """
    Reconstruct the integer from its limbs by reversing the weighted sums.

    The limbs do not record how many digits the final group had, so the
    caller passes the hex length of the packed value; by default the final
    group is taken as a full 8 digits. Exact for every value whose groups are
    each below `scheme.weight`. Under a truncating scheme the result is the
    value of the leading groups only.

    Raises:
        MalformedInputError: If the limbs are not a valid encoding under the
            scheme, or `hex_digits` does not fit its group count.
    """
    if len(limbs) != scheme.limb_count:
        raise MalformedInputError(
            list(limbs), f"expected {scheme.limb_count} limbs, got {len(limbs)}"
        )

    full_digits = GROUP_HEX_DIGITS * scheme.group_count
    if hex_digits is None:
        hex_digits = full_digits
    if not scheme.min_hex_digits <= hex_digits <= full_digits:
        raise MalformedInputError(
            hex_digits,
            f"hex length must be {scheme.min_hex_digits}..{full_digits} digits",
        )
    last_bits = 4 * (hex_digits - GROUP_HEX_DIGITS * (scheme.group_count - 1))

    w = scheme.weight
    groups: List[int] = []
    for limb in limbs[:-1]:
        high, low = divmod(limb, w)
        g0, g1 = divmod(high, w)
        if g0 >= w or limb < 0:
            raise MalformedInputError(limb, f"limb is not three groups of weight {w}")
        groups.extend((g0, g1, low))

    last_group, remainder = divmod(limbs[-1], w * w)
    if remainder or last_group >= w or limbs[-1] < 0:
        raise MalformedInputError(limbs[-1], "final limb must be a single group scaled by w^2")
    if last_group >= 1 << last_bits:
        raise MalformedInputError(last_group, f"final group exceeds {last_bits} bits")

    value = 0
    for group in groups:
        if group >= 1 << GROUP_BITS:
            raise MalformedInputError(group, f"group exceeds {GROUP_BITS} bits")
        value = (value << GROUP_BITS) | group
    return (value << last_bits) | last_group


def split_to_words(value: int | str, word_bits: int, word_count: int) -> List[int]:
    """
    Split an unsigned integer into fixed-width words, least significant first.

    This is the register layout the circuit takes RSA keys and signatures in.

    Raises:
        MalformedInputError: If `value` is not an unsigned integer.
        EncodingOverflowError: If `value` does not fit `word_count` words.
    """
    number = parse_unsigned(value)
    if number.bit_length() > word_bits * word_count:
        raise EncodingOverflowError(
            bit_length=number.bit_length(),
            needed=-(-number.bit_length() // word_bits),
            available=word_count,
        )

    mask = (1 << word_bits) - 1
    return [(number >> (word_bits * i)) & mask for i in range(word_count)]
