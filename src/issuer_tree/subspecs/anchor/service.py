"""
The issuer trust anchor service.

Turns a registry snapshot into an immutable, integrity-checked tree and serves
lookups and proofs from it.

### Lifecycle

1.  **Hash**: the committed moduli are packed and hashed into leaves, or the
    leaves are read from the cache if it holds them for the same registry
    fingerprint.
2.  **Build**: the leaves are accumulated into the fixed-depth tree, or the
    levels are read from the cache.
3.  **Check**: if a published root is configured, the new root must equal it.
4.  **Persist**: whatever was recomputed is written back to the cache.
5.  **Swap**: the new tree and its lookup index replace the served snapshot
    in one reference assignment.

Proofs already handed out keep reading the snapshot they started from: a
snapshot is never modified after it is built. A failed rebuild leaves the
previous snapshot in service.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from issuer_tree.types import CacheMissError

from ..bn254 import Fr
from ..merkle import MerkleAccumulator, MerkleProof, PrecomputedBinaryMerkleTree
from ..packing import REFERENCE_SCHEME, LimbScheme, hash_pubkey
from ..poseidon import FieldHasher
from ..registry import IssuerRegistry, generate_modulus_hashes
from ..storage import IssuerCache
from .constants import AnchorConfig, active_config
from .integrity import check_root, parse_published_root
from .lookup import IssuerLookup

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrustSnapshot:
    """An immutable tree together with its lookup index."""

    tree: PrecomputedBinaryMerkleTree
    """The committed tree."""

    lookup: IssuerLookup
    """Leaf index map of `tree`."""

    @property
    def root(self) -> Fr:
        """The tree's root."""
        return self.tree.root


def _committed_count(registry: IssuerRegistry) -> int:
    return sum(1 for record in registry.issuers if record.has_modulus)


def _read_cached_hashes(
    registry: IssuerRegistry, fingerprint: str, cache: IssuerCache
) -> list[Fr] | None:
    """The cached hash list if it was written for this registry, else None."""
    expected = _committed_count(registry)
    try:
        hashes = cache.load_hashes(fingerprint)
        if len(hashes) != expected:
            raise CacheMissError(
                str(cache.hashes_path),
                f"stale: {len(hashes)} hashes for {expected} registry entries",
            )
        return hashes
    except CacheMissError as e:
        logger.warning("%s; rehashing registry", e)
        return None


def _hash_registry(registry: IssuerRegistry, hasher: FieldHasher, scheme: LimbScheme) -> list[Fr]:
    logger.info("Hashing %d issuer moduli", _committed_count(registry))
    return generate_modulus_hashes(registry, hasher, scheme)


def load_modulus_hashes(
    registry: IssuerRegistry,
    hasher: FieldHasher,
    scheme: LimbScheme = REFERENCE_SCHEME,
    cache: IssuerCache | None = None,
) -> list[Fr]:
    """
    Return the leaf hashes of a registry, from the cache when it is usable.

    The cached list is usable only if its fingerprint matches the registry's
    committed moduli and the packing scheme; any other list is stale and
    treated like a miss. After a miss the hashes are recomputed and written
    back.
    """
    fingerprint = registry.fingerprint(scheme)
    if cache is not None:
        hashes = _read_cached_hashes(registry, fingerprint, cache)
        if hashes is not None:
            return hashes

    hashes = _hash_registry(registry, hasher, scheme)
    if cache is not None:
        cache.save_hashes(hashes, fingerprint)
    return hashes


def _check_cached_tree(
    tree: PrecomputedBinaryMerkleTree,
    hashes: Sequence[Fr],
    depth: int,
    default: Fr,
    cache: IssuerCache,
) -> None:
    """Reject a cached tree that was not built from `hashes` at `depth`."""
    path = str(cache.tree_path)
    if tree.depth != depth:
        raise CacheMissError(path, f"depth {tree.depth}, expected {depth}")
    if list(tree.leaves) != list(hashes):
        raise CacheMissError(path, "leaves differ from the modulus hashes")
    if any(node != default for node in tree.levels[0][tree.leaf_count :]):
        raise CacheMissError(path, "padding slots hold non-default values")


def _read_cached_tree(
    hashes: Sequence[Fr], depth: int, default: Fr, cache: IssuerCache
) -> PrecomputedBinaryMerkleTree | None:
    """The cached tree if it was built over `hashes` at `depth`, else None."""
    try:
        tree = cache.load_tree(len(hashes))
        _check_cached_tree(tree, hashes, depth, default, cache)
        return tree
    except CacheMissError as e:
        logger.warning("%s; rebuilding tree", e)
        return None


def _build_tree(
    hashes: Sequence[Fr], accumulator: MerkleAccumulator, depth: int
) -> PrecomputedBinaryMerkleTree:
    logger.info("Building depth-%d issuer tree over %d leaves", depth, len(hashes))
    return accumulator.build(hashes, depth)


def load_issuer_tree(
    hashes: Sequence[Fr],
    accumulator: MerkleAccumulator,
    depth: int,
    cache: IssuerCache | None = None,
) -> PrecomputedBinaryMerkleTree:
    """
    Return the tree over `hashes`, from the cache when it is usable.

    After a miss the tree is rebuilt and written back.

    Raises:
        CapacityExceededError: If there are more hashes than leaf slots.
    """
    if cache is not None:
        tree = _read_cached_tree(hashes, depth, accumulator.default, cache)
        if tree is not None:
            return tree

    tree = _build_tree(hashes, accumulator, depth)
    if cache is not None:
        cache.save_tree(tree)
    return tree


class TrustAnchor:
    """Serves lookups and proofs from the current issuer tree snapshot."""

    def __init__(
        self,
        hasher: FieldHasher,
        *,
        config: AnchorConfig | None = None,
        cache: IssuerCache | None = None,
        published_root: Fr | int | str | None = None,
    ) -> None:
        """
        Initializes an empty anchor; call `load` before serving.

        Args:
            hasher: The shared field hasher.
            config: Tree preset, defaults to the one selected by `ISSUER_ENV`.
            cache: Optional on-disk cache for hashes and levels.
            published_root: Root every rebuild must reproduce, if known.
        """
        self.hasher = hasher
        self.config = config or active_config()
        self.cache = cache
        self.published_root = (
            parse_published_root(published_root) if published_root is not None else None
        )
        self.accumulator = MerkleAccumulator(hasher)
        self._snapshot: TrustSnapshot | None = None
        self._rebuild_lock = asyncio.Lock()

    @property
    def snapshot(self) -> TrustSnapshot:
        """
        The snapshot currently served.

        Raises:
            RuntimeError: If no registry has been loaded yet.
        """
        if self._snapshot is None:
            raise RuntimeError("Trust anchor has no tree loaded")
        return self._snapshot

    def build_snapshot(self, registry: IssuerRegistry) -> TrustSnapshot:
        """
        Hash, build and check a registry snapshot without publishing it.

        Cache files are written only once the root check has passed, so a
        rejected snapshot never replaces a cached good one.

        Raises:
            MalformedInputError | EncodingOverflowError: If a modulus is unusable.
            CapacityExceededError: If the registry outgrows the tree.
            RootMismatchError: If the root differs from the published root.
        """
        scheme = self.config.LIMB_SCHEME
        depth = self.config.TREE_DEPTH
        cache = self.cache
        fingerprint = registry.fingerprint(scheme)

        hashes = None
        tree = None
        if cache is not None:
            hashes = _read_cached_hashes(registry, fingerprint, cache)
        hashes_missed = hashes is None
        if hashes is None:
            hashes = _hash_registry(registry, self.hasher, scheme)

        if cache is not None:
            tree = _read_cached_tree(hashes, depth, self.accumulator.default, cache)
        tree_missed = tree is None
        if tree is None:
            tree = _build_tree(hashes, self.accumulator, depth)

        if self.published_root is not None:
            check_root(tree, self.published_root)

        if cache is not None:
            if hashes_missed:
                cache.save_hashes(hashes, fingerprint)
            if tree_missed:
                cache.save_tree(tree)

        return TrustSnapshot(tree=tree, lookup=IssuerLookup(tree))

    async def load(self, registry: IssuerRegistry) -> TrustSnapshot:
        """
        Build a snapshot off the event loop and start serving it.

        Rebuilds are serialized; readers are never blocked.
        """
        async with self._rebuild_lock:
            snapshot = await asyncio.to_thread(self.build_snapshot, registry)
            self._snapshot = snapshot
            logger.info(
                "Serving issuer tree with %d issuers, root=%s",
                snapshot.tree.leaf_count,
                snapshot.root,
            )
        return snapshot

    def find_index(self, leaf: Fr) -> int:
        """
        Leaf index of a key hash in the served tree.

        Raises:
            UnknownIssuerError: If the hash is not committed.
        """
        return self.snapshot.lookup.find_index(leaf)

    def index_of_key(self, modulus: int | str) -> int:
        """
        Leaf index of an RSA modulus in the served tree.

        Raises:
            MalformedInputError | EncodingOverflowError: If the modulus is unusable.
            UnknownIssuerError: If the key is not committed.
        """
        return self.find_index(hash_pubkey(modulus, self.hasher, self.config.LIMB_SCHEME))

    def create_proof(self, index: int) -> MerkleProof:
        """
        Inclusion proof of a leaf in the served tree.

        Raises:
            IndexOutOfRangeError: If the index is outside the tree.
        """
        return self.snapshot.tree.create_proof(index)
