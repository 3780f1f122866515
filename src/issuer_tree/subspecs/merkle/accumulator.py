"""
Builds the fixed-depth issuer tree from an ordered list of leaf hashes.

### Padding

A tree of depth `d` always has `2^d` leaf slots. Slots past the last real
leaf hold a default element (zero). A subtree made only of padding has a root
that depends on nothing but its height, so those roots are computed once per
accumulator and reused: building a depth-15 tree over a few hundred keys
hashes only the few hundred paths that touch real leaves.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from issuer_tree.types import CapacityExceededError

from ..bn254 import Fr
from ..poseidon import FieldHasher
from .tree import PrecomputedBinaryMerkleTree

logger = logging.getLogger(__name__)


class MerkleAccumulator:
    """Builds complete binary trees with a given hasher and padding element."""

    def __init__(self, hasher: FieldHasher, default: Fr | None = None) -> None:
        """Initializes with a binary hasher and the padding leaf (zero by default)."""
        self.hasher = hasher
        self.default = default if default is not None else Fr.zero()
        self._padding_roots: List[Fr] = [self.default]

    def padding_root(self, height: int) -> Fr:
        """
        Root of a subtree of the given height whose leaves are all padding.

        Height 0 is the padding leaf itself.
        """
        while len(self._padding_roots) <= height:
            below = self._padding_roots[-1]
            self._padding_roots.append(self.hasher.hash([below, below]))
        return self._padding_roots[height]

    def build(self, leaves: Sequence[Fr], depth: int) -> PrecomputedBinaryMerkleTree:
        """
        Build a tree of exactly `depth` levels above `leaves`.

        ### Construction Algorithm

        1.  Level 0 is the leaves followed by padding up to `2^depth` slots.
        2.  Each parent is `Hash(left, right)` of its two children.
        3.  At every level, parents to the right of the last one covering a
            real leaf are padding roots and are taken from the cache.

        Args:
            leaves: Leaf hashes in registry order.
            depth: The fixed tree depth.

        Returns:
            The materialized tree.

        Raises:
            ValueError: If `depth` is negative.
            CapacityExceededError: If there are more leaves than slots.
        """
        if depth < 0:
            raise ValueError(f"depth must be non-negative, got {depth}")

        capacity = 1 << depth
        if len(leaves) > capacity:
            raise CapacityExceededError(depth=depth, leaf_count=len(leaves))

        level = list(leaves) + [self.default] * (capacity - len(leaves))
        levels = [tuple(level)]

        # Number of nodes at the current level that cover at least one real leaf.
        occupied = len(leaves)
        for height in range(1, depth + 1):
            occupied = (occupied + 1) // 2
            width = len(level) // 2

            parents = [self.hasher.hash([level[2 * j], level[2 * j + 1]]) for j in range(occupied)]
            parents.extend([self.padding_root(height)] * (width - occupied))

            level = parents
            levels.append(tuple(level))

        tree = PrecomputedBinaryMerkleTree(levels=tuple(levels), leaf_count=len(leaves))
        logger.debug(
            "Built depth-%d tree over %d leaves, root=%s", depth, len(leaves), tree.root
        )
        return tree
