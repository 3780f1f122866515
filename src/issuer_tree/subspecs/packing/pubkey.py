"""Leaf hashing of RSA public keys."""

from __future__ import annotations

from ..bn254 import Fr
from ..poseidon import FieldHasher
from .limbs import REFERENCE_SCHEME, LimbScheme, pack


def hash_pubkey(
    modulus: int | str,
    hasher: FieldHasher,
    scheme: LimbScheme = REFERENCE_SCHEME,
) -> Fr:
    """
    Compute the tree leaf of an RSA modulus: `Hash(Pack(modulus))`.

    Args:
        modulus: The key modulus, as an integer or a hex/decimal string.
        hasher: The field hasher shared with the tree.
        scheme: The limb packing to apply.

    Raises:
        MalformedInputError: If the modulus is not an unsigned integer.
        EncodingOverflowError: If the modulus exceeds the limb budget.
    """
    limbs = [Fr.from_canonical(limb) for limb in pack(modulus, scheme)]
    return hasher.hash(limbs)
