"""
JSON file cache for the modulus hash list and the tree levels.

Hashing a full registry and building a depth-15 tree are the slow steps of
startup, so both results are kept on disk:

- `modulusHashes.json`: the registry fingerprint and the leaf hashes as
  decimal strings, one per committed registry entry. A list whose fingerprint
  differs from the current registry's belongs to another snapshot.
- `issuerTree.json`: one array of decimal strings per tree level.

Writes go to a temporary file in the same directory and are moved into place
with `os.replace`, so readers see either the previous file or the complete new
one. Any file that is absent or does not parse surfaces as `CacheMissError`,
which callers answer with a full rebuild.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Sequence

from issuer_tree.types import CacheMissError, MalformedInputError

from ..bn254 import Fr
from ..merkle import PrecomputedBinaryMerkleTree

logger = logging.getLogger(__name__)

HASHES_FILENAME = "modulusHashes.json"
"""Cached leaf hashes, in registry order."""

TREE_FILENAME = "issuerTree.json"
"""Cached tree levels, bottom to top."""


def _read_json(path: Path) -> Any:
    try:
        with path.open(encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise CacheMissError(str(path), "file not found") from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CacheMissError(str(path), f"unreadable: {e}") from e


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Write `data` as JSON to `path` atomically.

    The temporary file is removed on every failure path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class IssuerCache:
    """The on-disk cache of one issuer tree."""

    def __init__(self, directory: Path | str) -> None:
        """Initializes the cache rooted at `directory`; nothing is read or created yet."""
        self.directory = Path(directory)

    @property
    def hashes_path(self) -> Path:
        """Location of the hash list."""
        return self.directory / HASHES_FILENAME

    @property
    def tree_path(self) -> Path:
        """Location of the tree levels."""
        return self.directory / TREE_FILENAME

    def load_hashes(self, fingerprint: str) -> list[Fr]:
        """
        Read the cached leaf hashes of the registry with the given fingerprint.

        Raises:
            CacheMissError: If the file is absent, unreadable, malformed or
                was written for a different registry.
        """
        path = str(self.hashes_path)
        data = _read_json(self.hashes_path)
        if not isinstance(data, dict) or not isinstance(data.get("hashes"), list):
            raise CacheMissError(path, "expected an object with a list of decimal strings")
        if data.get("fingerprint") != fingerprint:
            raise CacheMissError(path, "stale: written for a different registry")
        try:
            hashes = [Fr.from_decimal(item) for item in data["hashes"]]
        except MalformedInputError as e:
            raise CacheMissError(path, e.message) from e

        logger.debug("Loaded %d cached modulus hashes from %s", len(hashes), self.hashes_path)
        return hashes

    def save_hashes(self, hashes: Sequence[Fr], fingerprint: str) -> None:
        """Persist the leaf hashes of the registry with the given fingerprint."""
        data = {"fingerprint": fingerprint, "hashes": [str(h) for h in hashes]}
        atomic_write_json(self.hashes_path, data)
        logger.debug("Saved %d modulus hashes to %s", len(hashes), self.hashes_path)

    def load_tree(self, leaf_count: int) -> PrecomputedBinaryMerkleTree:
        """
        Read the cached tree levels.

        The level files do not record how many leaves are real, so the caller
        supplies it (the length of the hash list).

        Raises:
            CacheMissError: If the file is absent, unreadable or not a complete tree.
        """
        data = _read_json(self.tree_path)
        try:
            tree = PrecomputedBinaryMerkleTree.from_json_levels(data, leaf_count)
        except MalformedInputError as e:
            raise CacheMissError(str(self.tree_path), e.message) from e

        logger.debug("Loaded depth-%d tree from %s", tree.depth, self.tree_path)
        return tree

    def save_tree(self, tree: PrecomputedBinaryMerkleTree) -> None:
        """Persist every level of the tree."""
        atomic_write_json(self.tree_path, tree.to_json_levels())
        logger.debug("Saved depth-%d tree to %s", tree.depth, self.tree_path)

    def clear(self) -> None:
        """Delete both cache files if present."""
        self.hashes_path.unlink(missing_ok=True)
        self.tree_path.unlink(missing_ok=True)
