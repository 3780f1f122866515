"""
Storage module for the cached issuer hash list and tree levels.

Uses plain JSON files written atomically.
"""

from .cache import HASHES_FILENAME, TREE_FILENAME, IssuerCache, atomic_write_json

__all__ = [
    "HASHES_FILENAME",
    "TREE_FILENAME",
    "IssuerCache",
    "atomic_write_json",
]
