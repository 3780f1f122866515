"""The circomlib Poseidon hash over BN254."""

from .hasher import DEFAULT_ARITIES, FieldHasher, PoseidonFactory, PoseidonHasher
from .permutation import PoseidonParams, params_for_width, permute

__all__ = [
    "DEFAULT_ARITIES",
    "FieldHasher",
    "PoseidonFactory",
    "PoseidonHasher",
    "PoseidonParams",
    "params_for_width",
    "permute",
]
