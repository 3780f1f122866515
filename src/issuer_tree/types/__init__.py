"""Reusable type definitions for the issuer tree."""

from .base import CamelModel, StrictBaseModel
from .exceptions import (
    CacheMissError,
    CapacityExceededError,
    EncodingOverflowError,
    IndexOutOfRangeError,
    IssuerTreeError,
    MalformedInputError,
    RootMismatchError,
    UnknownIssuerError,
)

__all__ = [
    # Models
    "CamelModel",
    "StrictBaseModel",
    # Exceptions
    "IssuerTreeError",
    "MalformedInputError",
    "EncodingOverflowError",
    "CapacityExceededError",
    "IndexOutOfRangeError",
    "UnknownIssuerError",
    "CacheMissError",
    "RootMismatchError",
]
