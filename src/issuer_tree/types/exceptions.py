"""Exception hierarchy for the issuer tree."""

from __future__ import annotations

from typing import Any


class IssuerTreeError(Exception):
    """
    Base exception for all issuer tree errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class MalformedInputError(IssuerTreeError, ValueError):
    """
    Raised when a value cannot be parsed as an unsigned integer or field data,
    or is too short to fill the limb encoding.

    Attributes:
        value: The offending input (truncated for display).
        detail: What was wrong with it.
    """

    def __init__(self, value: Any, detail: str) -> None:
        self.value = value
        self.detail = detail

        value_repr = repr(value)
        if len(value_repr) > 50:
            value_repr = value_repr[:47] + "..."

        super().__init__(f"Malformed input {value_repr}: {detail}")


class EncodingOverflowError(IssuerTreeError, ValueError):
    """
    Raised when a value does not fit the fixed limb or word budget.

    Attributes:
        bit_length: Bit length of the value that overflowed.
        needed: Number of groups or words the value requires.
        available: Number of groups or words the encoding provides.
    """

    def __init__(self, *, bit_length: int, needed: int, available: int) -> None:
        self.bit_length = bit_length
        self.needed = needed
        self.available = available

        super().__init__(
            f"{bit_length}-bit value needs {needed} groups, encoding holds {available}"
        )


class CapacityExceededError(IssuerTreeError):
    """
    Raised when more leaves are supplied than a tree of the given depth holds.

    Attributes:
        depth: The fixed tree depth.
        leaf_count: The number of leaves supplied.
    """

    def __init__(self, *, depth: int, leaf_count: int) -> None:
        self.depth = depth
        self.leaf_count = leaf_count

        super().__init__(
            f"Tree of depth {depth} holds at most {1 << depth} leaves, got {leaf_count}"
        )


class IndexOutOfRangeError(IssuerTreeError, IndexError):
    """
    Raised when a proof is requested for a leaf outside the tree.

    Attributes:
        index: The requested leaf index.
        capacity: Number of leaf slots in the tree.
    """

    def __init__(self, index: int, capacity: int) -> None:
        self.index = index
        self.capacity = capacity

        super().__init__(f"Leaf index {index} out of range [0, {capacity})")


class UnknownIssuerError(IssuerTreeError, LookupError):
    """
    Raised when a key hash is not among the committed leaves.

    This is a trust verdict, not a parse failure.

    Attributes:
        leaf: Decimal string of the key hash that was looked up.
    """

    def __init__(self, leaf: str) -> None:
        self.leaf = leaf

        super().__init__(f"Issuer key hash {leaf} is not in the trusted set")


class CacheMissError(IssuerTreeError):
    """
    Raised when a cache file is absent or unreadable.

    Attributes:
        path: The cache file path.
        detail: Why the cache could not be used.
    """

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail

        super().__init__(f"Cache {path} unusable: {detail}")


class RootMismatchError(IssuerTreeError):
    """
    Raised when the locally built root differs from the published root.

    Attributes:
        expected: Decimal string of the published root.
        actual: Decimal string of the locally computed root.
    """

    def __init__(self, *, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual

        super().__init__(f"Root mismatch: published {expected}, computed {actual}")
