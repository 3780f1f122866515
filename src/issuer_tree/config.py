"""
Global configuration for the issuer tree.

This module contains environment-specific settings that apply across all subspecs.
"""

import os
from pathlib import Path

_SUPPORTED_ISSUER_ENVS: list[str] = ["prod", "test"]

ISSUER_ENV = os.environ.get("ISSUER_ENV", "prod").lower()
"""The environment flag ('prod' or 'test'). Selects the tree preset; defaults to 'prod'."""

if ISSUER_ENV not in _SUPPORTED_ISSUER_ENVS:
    raise ValueError(
        f"Invalid ISSUER_ENV environment variable: '{ISSUER_ENV}'. "
        f"Supported values: {_SUPPORTED_ISSUER_ENVS}"
    )

ISSUER_TREE_CACHE_DIR = Path(os.environ.get("ISSUER_TREE_CACHE_DIR", ".issuer_tree_cache"))
"""Directory holding the cached hash list and tree levels."""
