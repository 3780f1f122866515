"""Fixed-depth Poseidon Merkle tree over issuer key hashes."""

from .accumulator import MerkleAccumulator
from .proof import MerkleProof, compute_root, verify_proof
from .tree import PrecomputedBinaryMerkleTree

__all__ = [
    "MerkleAccumulator",
    "MerkleProof",
    "PrecomputedBinaryMerkleTree",
    "compute_root",
    "verify_proof",
]
