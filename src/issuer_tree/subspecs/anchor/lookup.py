"""Issuer lookup: from a candidate key hash to its leaf index."""

from __future__ import annotations

from issuer_tree.types import UnknownIssuerError

from ..bn254 import Fr
from ..merkle import PrecomputedBinaryMerkleTree


class IssuerLookup:
    """
    Leaf index map of one tree.

    Built once per tree and read-only afterwards, so it can be shared by
    concurrent readers. Only real leaves are indexed: a padding slot holds the
    default element, and a key that happens to hash to it must still be
    reported as unknown.
    """

    def __init__(self, tree: PrecomputedBinaryMerkleTree) -> None:
        """Indexes the real leaves of `tree`; the first occurrence of a repeated leaf wins."""
        self.tree = tree
        self._index: dict[Fr, int] = {}
        for i, leaf in enumerate(tree.leaves):
            self._index.setdefault(leaf, i)

    def __contains__(self, leaf: Fr) -> bool:
        return leaf in self._index

    def __len__(self) -> int:
        return len(self._index)

    def find_index(self, leaf: Fr) -> int:
        """
        Return the leaf index of a key hash.

        Raises:
            UnknownIssuerError: If the hash is not a committed leaf.
        """
        try:
            return self._index[leaf]
        except KeyError:
            raise UnknownIssuerError(str(leaf)) from None


def find_index(tree: PrecomputedBinaryMerkleTree, leaf: Fr) -> int:
    """
    One-off lookup by scanning the real leaves.

    Prefer `IssuerLookup` when the same tree answers many lookups.

    Raises:
        UnknownIssuerError: If the hash is not a committed leaf.
    """
    for i, candidate in enumerate(tree.leaves):
        if candidate == leaf:
            return i
    raise UnknownIssuerError(str(leaf))
