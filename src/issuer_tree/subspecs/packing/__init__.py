"""Limb packing of RSA public keys for circuit-compatible hashing."""

from .limbs import (
    REFERENCE_SCHEME,
    TRUNCATING_SCHEME,
    WIDE_SCHEME,
    LimbScheme,
    pack,
    split_to_words,
    unpack,
)
from .pubkey import hash_pubkey

__all__ = [
    "LimbScheme",
    "REFERENCE_SCHEME",
    "TRUNCATING_SCHEME",
    "WIDE_SCHEME",
    "hash_pubkey",
    "pack",
    "split_to_words",
    "unpack",
]
