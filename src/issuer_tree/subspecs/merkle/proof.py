"""Inclusion proofs for the issuer tree."""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, model_validator

from issuer_tree.types import StrictBaseModel

from ..bn254 import Fr
from ..poseidon import FieldHasher

PathBit = Annotated[int, Field(ge=0, le=1)]
"""0 if the path node is a left child, 1 if it is a right child."""

Sibling = Annotated[list[Fr], Field(min_length=1, max_length=1)]
"""A sibling wrapped in a one-element list, the shape the circuit declares."""


class MerkleProof(StrictBaseModel):
    """
    An inclusion proof for a single leaf of a binary tree.

    Siblings and path bits are ordered bottom to top. Serialized with
    camelCase keys (`pathIndices`).
    """

    leaf: Fr = Field(..., description="The leaf being proven.")

    siblings: list[Sibling] = Field(..., description="One sibling per level, bottom to top.")

    path_indices: list[PathBit] = Field(..., description="Left/right position per level.")

    @model_validator(mode="after")
    def check_lengths(self) -> MerkleProof:
        """Ensures there is one path bit per sibling."""
        if len(self.siblings) != len(self.path_indices):
            raise ValueError("The number of siblings must match the number of path indices.")
        return self

    @property
    def depth(self) -> int:
        """Number of levels the proof climbs."""
        return len(self.path_indices)

    @property
    def index(self) -> int:
        """The leaf index encoded by the path bits."""
        return sum(bit << level for level, bit in enumerate(self.path_indices))


def compute_root(proof: MerkleProof, hasher: FieldHasher) -> Fr:
    """
    Fold a proof from its leaf up to the root.

    At each level a path bit of 0 hashes `(current, sibling)`, a bit of 1
    hashes `(sibling, current)`. This is the same fold the circuit performs.
    """
    current = proof.leaf
    for (sibling,), bit in zip(proof.siblings, proof.path_indices, strict=True):
        if bit:
            current = hasher.hash([sibling, current])
        else:
            current = hasher.hash([current, sibling])
    return current


def verify_proof(proof: MerkleProof, root: Fr, hasher: FieldHasher) -> bool:
    """Check that a proof folds to `root`."""
    return compute_root(proof, hasher) == root
