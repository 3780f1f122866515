"""Comparison of a locally built root with the published root."""

from __future__ import annotations

import logging

from issuer_tree.types import RootMismatchError

from ..bn254 import Fr
from ..merkle import PrecomputedBinaryMerkleTree

logger = logging.getLogger(__name__)


def parse_published_root(value: Fr | int | str) -> Fr:
    """
    Normalize a published root given as a field element, integer, hex or decimal string.

    Raises:
        MalformedInputError: If the value is not an unsigned integer below P.
    """
    if isinstance(value, Fr):
        return value
    return Fr.parse(value)


def check_root(tree: PrecomputedBinaryMerkleTree, published_root: Fr | int | str) -> Fr:
    """
    Require the tree root to equal the externally published root.

    Neither value is ever substituted for the other: a registry that does not
    reproduce the published commitment is not accepted.

    Returns:
        The verified root.

    Raises:
        MalformedInputError: If the published root does not parse.
        RootMismatchError: If the roots differ.
    """
    expected = parse_published_root(published_root)
    if tree.root != expected:
        logger.error("Issuer tree root %s does not match published root %s", tree.root, expected)
        raise RootMismatchError(expected=str(expected), actual=str(tree.root))

    logger.info("Issuer tree root matches published root %s", expected)
    return expected
