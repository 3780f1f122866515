"""
The fully materialized issuer tree.

Every level is stored, not just the root, so an inclusion proof is a walk of
`depth` lookups and never requires rehashing. Loading the levels from a cache
is therefore enough to serve proofs without rebuilding the tree.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from issuer_tree.types import IndexOutOfRangeError, MalformedInputError

from ..bn254 import Fr
from .proof import MerkleProof

Level = tuple[Fr, ...]
"""One level of the tree, left to right."""


@dataclass(frozen=True, slots=True)
class PrecomputedBinaryMerkleTree:
    """
    An immutable binary tree with all levels precomputed.

    `levels[0]` holds the `2^depth` leaves (real leaves first, then padding)
    and `levels[depth]` holds only the root.
    """

    levels: tuple[Level, ...]
    """Tree levels, bottom to top."""

    leaf_count: int
    """Number of real (non-padding) leaves at the start of level 0."""

    def __post_init__(self) -> None:
        """Checks the level shape: each level halves the one below, ending at one node."""
        if not self.levels:
            raise MalformedInputError(self.levels, "a tree needs at least one level")

        depth = len(self.levels) - 1
        for height, level in enumerate(self.levels):
            expected = 1 << (depth - height)
            if len(level) != expected:
                raise MalformedInputError(
                    len(level),
                    f"level {height} of a depth-{depth} tree must hold {expected} nodes",
                )

        if not 0 <= self.leaf_count <= 1 << depth:
            raise MalformedInputError(self.leaf_count, f"leaf count out of range for depth {depth}")

    @property
    def depth(self) -> int:
        """Number of levels above the leaves."""
        return len(self.levels) - 1

    @property
    def capacity(self) -> int:
        """Number of leaf slots."""
        return len(self.levels[0])

    @property
    def root(self) -> Fr:
        """The commitment to the whole leaf sequence."""
        return self.levels[-1][0]

    @property
    def leaves(self) -> Level:
        """The real leaves, without padding."""
        return self.levels[0][: self.leaf_count]

    def create_proof(self, index: int) -> MerkleProof:
        """
        Create the inclusion proof of the leaf at `index`.

        ### Path Generation Algorithm

        Starting from the leaf, at every level:

        1.  An even position is a left child: record bit 0 and take the right
            neighbour as sibling.
        2.  An odd position is a right child: record bit 1 and take the left
            neighbour as sibling.
        3.  Halve the position to move to the parent.

        Padding slots are valid targets; their proofs fold to the root too.

        Raises:
            IndexOutOfRangeError: If `index` is outside `[0, 2^depth)`.
        """
        if not 0 <= index < self.capacity:
            raise IndexOutOfRangeError(index, self.capacity)

        current = index
        path_indices: list[int] = []
        siblings: list[list[Fr]] = []
        for level in self.levels[:-1]:
            if current % 2 == 0:
                path_indices.append(0)
                siblings.append([level[current + 1]])
            else:
                path_indices.append(1)
                siblings.append([level[current - 1]])
            current //= 2

        return MerkleProof(
            leaf=self.levels[0][index],
            siblings=siblings,
            path_indices=path_indices,
        )

    def to_json_levels(self) -> list[list[str]]:
        """All levels as decimal strings, the on-disk tree format."""
        return [[str(node) for node in level] for level in self.levels]

    @classmethod
    def from_json_levels(
        cls, levels: Sequence[Sequence[str]], leaf_count: int
    ) -> PrecomputedBinaryMerkleTree:
        """
        Rebuild a tree from its on-disk levels.

        Raises:
            MalformedInputError: If a node is not a canonical decimal field
                element or the levels do not form a complete binary tree.
        """
        if not isinstance(levels, Sequence) or isinstance(levels, str):
            raise MalformedInputError(levels, "tree must be a list of levels")

        parsed = []
        for level in levels:
            if not isinstance(level, Sequence) or isinstance(level, str):
                raise MalformedInputError(level, "tree level must be a list of nodes")
            parsed.append(tuple(Fr.from_decimal(node) for node in level))

        return cls(levels=tuple(parsed), leaf_count=leaf_count)
