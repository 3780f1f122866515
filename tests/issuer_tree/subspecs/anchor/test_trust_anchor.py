"""
Tests for the trust anchor service: cache-backed loading and snapshot serving.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from pathlib import Path

import pytest

from issuer_tree.subspecs.anchor import (
    DEPLOYED_CONFIG,
    PROD_CONFIG,
    TEST_CONFIG,
    TrustAnchor,
    active_config,
    load_issuer_tree,
    load_modulus_hashes,
)
from issuer_tree.subspecs.bn254 import Fr
from issuer_tree.subspecs.merkle import MerkleAccumulator, verify_proof
from issuer_tree.subspecs.packing import (
    REFERENCE_SCHEME,
    TRUNCATING_SCHEME,
    WIDE_SCHEME,
    hash_pubkey,
)
from issuer_tree.subspecs.poseidon import PoseidonHasher
from issuer_tree.subspecs.registry import IssuerRegistry, generate_modulus_hashes
from issuer_tree.subspecs.storage import IssuerCache
from issuer_tree.types import (
    CapacityExceededError,
    IndexOutOfRangeError,
    RootMismatchError,
    UnknownIssuerError,
)


def _registry(moduli: list[int]) -> IssuerRegistry:
    return IssuerRegistry.model_validate({"issuers": [{"modulus": hex(m)} for m in moduli]})


def test_active_config_follows_env() -> None:
    """The test suite runs with the shallow preset."""
    assert active_config() is TEST_CONFIG
    assert TEST_CONFIG.CAPACITY == 16
    assert PROD_CONFIG.TREE_DEPTH == 15
    assert PROD_CONFIG.CAPACITY == 32768


def test_deployed_config_truncates_keys() -> None:
    """The deployed preset differs from production only in its overflow policy."""
    assert DEPLOYED_CONFIG.LIMB_SCHEME is TRUNCATING_SCHEME
    assert PROD_CONFIG.LIMB_SCHEME is REFERENCE_SCHEME
    assert DEPLOYED_CONFIG.model_dump(exclude={"LIMB_SCHEME"}) == PROD_CONFIG.model_dump(
        exclude={"LIMB_SCHEME"}
    )


class TestLoadModulusHashes:
    """Hash list loading with and without a cache."""

    def test_without_cache(self, registry: IssuerRegistry, hasher: PoseidonHasher) -> None:
        """Without a cache the hashes are computed directly."""
        assert load_modulus_hashes(registry, hasher) == generate_modulus_hashes(registry, hasher)

    def test_miss_writes_cache(
        self, registry: IssuerRegistry, hasher: PoseidonHasher, tmp_path: Path
    ) -> None:
        """A cold cache is filled after hashing."""
        cache = IssuerCache(tmp_path)
        hashes = load_modulus_hashes(registry, hasher, cache=cache)

        assert cache.hashes_path.exists()
        assert cache.load_hashes(registry.fingerprint()) == hashes

    def test_hit_skips_hashing(self, registry: IssuerRegistry, tmp_path: Path) -> None:
        """A usable cache is returned without touching the hasher."""
        cache = IssuerCache(tmp_path)
        cached = [Fr(value=i) for i in range(len(registry.moduli()))]
        cache.save_hashes(cached, registry.fingerprint())

        class NoHasher:
            def hash(self, elements: Sequence[Fr]) -> Fr:
                raise AssertionError("cache hit must not hash")

        assert load_modulus_hashes(registry, NoHasher(), cache=cache) == cached

    def test_stale_cache_is_rebuilt(
        self, registry: IssuerRegistry, hasher: PoseidonHasher, tmp_path: Path
    ) -> None:
        """A cached list of the wrong length is replaced."""
        cache = IssuerCache(tmp_path)
        cache.save_hashes([Fr(value=1)], registry.fingerprint())

        hashes = load_modulus_hashes(registry, hasher, cache=cache)

        assert len(hashes) == len(registry.moduli())
        assert cache.load_hashes(registry.fingerprint()) == hashes

    def test_same_length_update_is_rehashed(
        self, hasher: PoseidonHasher, sample_moduli: list[int], tmp_path: Path
    ) -> None:
        """Replacing a key without changing the entry count invalidates the cached list."""
        cache = IssuerCache(tmp_path)
        old = _registry(sample_moduli[:3])
        load_modulus_hashes(old, hasher, cache=cache)

        rotated = _registry(sample_moduli[:2] + [sample_moduli[4]])
        hashes = load_modulus_hashes(rotated, hasher, cache=cache)

        assert hashes == generate_modulus_hashes(rotated, hasher)
        assert cache.load_hashes(rotated.fingerprint()) == hashes

    def test_scheme_change_is_rehashed(
        self, registry: IssuerRegistry, hasher: PoseidonHasher, tmp_path: Path
    ) -> None:
        """Hashes cached under one packing scheme are not served for another."""
        cache = IssuerCache(tmp_path)
        load_modulus_hashes(registry, hasher, REFERENCE_SCHEME, cache)

        hashes = load_modulus_hashes(registry, hasher, WIDE_SCHEME, cache)
        assert hashes == generate_modulus_hashes(registry, hasher, WIDE_SCHEME)

    def test_corrupt_cache_is_rebuilt(
        self, registry: IssuerRegistry, hasher: PoseidonHasher, tmp_path: Path
    ) -> None:
        """A cache file that does not parse is treated as a miss."""
        cache = IssuerCache(tmp_path)
        cache.hashes_path.write_text("{not json")

        hashes = load_modulus_hashes(registry, hasher, cache=cache)
        assert hashes == generate_modulus_hashes(registry, hasher)


class TestLoadIssuerTree:
    """Tree loading with and without a cache."""

    def test_cache_round_trip(self, hasher: PoseidonHasher, tmp_path: Path) -> None:
        """A tree written on a miss is read back on the next call."""
        cache = IssuerCache(tmp_path)
        accumulator = MerkleAccumulator(hasher)
        hashes = [Fr(value=i + 1) for i in range(3)]

        built = load_issuer_tree(hashes, accumulator, 3, cache)
        assert cache.tree_path.exists()
        assert load_issuer_tree(hashes, accumulator, 3, cache) == built

    def test_cached_tree_for_other_leaves_is_rebuilt(
        self, hasher: PoseidonHasher, tmp_path: Path
    ) -> None:
        """A cached tree over different leaves is not served."""
        cache = IssuerCache(tmp_path)
        accumulator = MerkleAccumulator(hasher)
        load_issuer_tree([Fr(value=1), Fr(value=2)], accumulator, 3, cache)

        hashes = [Fr(value=3), Fr(value=4)]
        tree = load_issuer_tree(hashes, accumulator, 3, cache)
        assert tree.leaves == tuple(hashes)
        assert tree == accumulator.build(hashes, 3)

    def test_cached_tree_of_other_depth_is_rebuilt(
        self, hasher: PoseidonHasher, tmp_path: Path
    ) -> None:
        """A cached tree of the wrong depth is not served."""
        cache = IssuerCache(tmp_path)
        accumulator = MerkleAccumulator(hasher)
        hashes = [Fr(value=1)]
        load_issuer_tree(hashes, accumulator, 2, cache)

        assert load_issuer_tree(hashes, accumulator, 3, cache).depth == 3

    def test_truncated_tree_file_is_rebuilt(self, hasher: PoseidonHasher, tmp_path: Path) -> None:
        """A tree file missing a level is treated as a miss."""
        cache = IssuerCache(tmp_path)
        accumulator = MerkleAccumulator(hasher)
        hashes = [Fr(value=1), Fr(value=2)]
        built = load_issuer_tree(hashes, accumulator, 2, cache)

        levels = json.loads(cache.tree_path.read_text())
        cache.tree_path.write_text(json.dumps(levels[:-1]))

        assert load_issuer_tree(hashes, accumulator, 2, cache) == built

    def test_capacity(self, hasher: PoseidonHasher) -> None:
        """Too many hashes for the depth fail."""
        with pytest.raises(CapacityExceededError):
            load_issuer_tree([Fr(value=i) for i in range(5)], MerkleAccumulator(hasher), 2)


class TestTrustAnchor:
    """The served snapshot and its operations."""

    def test_not_loaded(self, anchor: TrustAnchor) -> None:
        """Serving before the first load is an error."""
        with pytest.raises(RuntimeError):
            anchor.snapshot

    @pytest.mark.asyncio
    async def test_load_and_serve(
        self,
        anchor: TrustAnchor,
        registry: IssuerRegistry,
        hasher: PoseidonHasher,
        sample_moduli: list[int],
    ) -> None:
        """Every committed key has a proof that folds to the served root."""
        snapshot = await anchor.load(registry)

        assert snapshot is anchor.snapshot
        assert snapshot.tree.depth == TEST_CONFIG.TREE_DEPTH
        assert snapshot.tree.leaf_count == len(sample_moduli)

        for i, modulus in enumerate(sample_moduli):
            assert anchor.index_of_key(modulus) == i
            assert anchor.find_index(hash_pubkey(modulus, hasher)) == i
            proof = anchor.create_proof(i)
            assert verify_proof(proof, snapshot.root, hasher)

    @pytest.mark.asyncio
    async def test_unknown_key(
        self, anchor: TrustAnchor, registry: IssuerRegistry, untrusted_modulus: int
    ) -> None:
        """Untrusted keys are rejected."""
        await anchor.load(registry)
        with pytest.raises(UnknownIssuerError):
            anchor.index_of_key(untrusted_modulus)

    @pytest.mark.asyncio
    async def test_index_out_of_range(self, anchor: TrustAnchor, registry: IssuerRegistry) -> None:
        """Proof indices are bounded by the capacity."""
        await anchor.load(registry)
        with pytest.raises(IndexOutOfRangeError):
            anchor.create_proof(TEST_CONFIG.CAPACITY)

    @pytest.mark.asyncio
    async def test_published_root_accepted(
        self, hasher: PoseidonHasher, registry: IssuerRegistry
    ) -> None:
        """A registry that reproduces the published root is served."""
        expected = TrustAnchor(hasher, config=TEST_CONFIG).build_snapshot(registry).root

        anchor = TrustAnchor(hasher, config=TEST_CONFIG, published_root=str(expected))
        snapshot = await anchor.load(registry)
        assert snapshot.root == expected

    @pytest.mark.asyncio
    async def test_root_mismatch_keeps_previous_snapshot(
        self, hasher: PoseidonHasher, registry: IssuerRegistry, sample_moduli: list[int]
    ) -> None:
        """A tampered rebuild is refused and the trusted snapshot stays in service."""
        expected = TrustAnchor(hasher, config=TEST_CONFIG).build_snapshot(registry).root
        anchor = TrustAnchor(hasher, config=TEST_CONFIG, published_root=expected)
        trusted = await anchor.load(registry)

        tampered = IssuerRegistry.model_validate(
            {"issuers": [{"modulus": hex(m)} for m in sample_moduli[::-1]]}
        )
        with pytest.raises(RootMismatchError):
            await anchor.load(tampered)

        assert anchor.snapshot is trusted

    @pytest.mark.asyncio
    async def test_concurrent_loads_serialize(
        self, anchor: TrustAnchor, registry: IssuerRegistry
    ) -> None:
        """Concurrent rebuilds each produce a complete, identical snapshot."""
        first, second = await asyncio.gather(anchor.load(registry), anchor.load(registry))

        assert first.root == second.root
        assert anchor.snapshot in (first, second)

    @pytest.mark.asyncio
    async def test_proof_from_old_snapshot_stays_valid(
        self,
        anchor: TrustAnchor,
        registry: IssuerRegistry,
        hasher: PoseidonHasher,
        sample_moduli: list[int],
    ) -> None:
        """A proof taken before a swap still verifies against its own snapshot."""
        old = await anchor.load(registry)
        proof = anchor.create_proof(0)

        grown = IssuerRegistry.model_validate(
            {"issuers": [{"modulus": hex(m)} for m in sample_moduli + [(0xEE << 960) | 1]]}
        )
        new = await anchor.load(grown)

        assert new.root != old.root
        assert verify_proof(proof, old.root, hasher)
        assert not verify_proof(proof, new.root, hasher)

    @pytest.mark.asyncio
    async def test_cached_reload(
        self, hasher: PoseidonHasher, registry: IssuerRegistry, tmp_path: Path
    ) -> None:
        """A second anchor over the same cache serves the same root."""
        cache = IssuerCache(tmp_path)
        first = await TrustAnchor(hasher, config=TEST_CONFIG, cache=cache).load(registry)
        second = await TrustAnchor(hasher, config=TEST_CONFIG, cache=cache).load(registry)

        assert first.root == second.root
        assert first.tree == second.tree

    @pytest.mark.asyncio
    async def test_cached_reload_after_key_rotation(
        self, hasher: PoseidonHasher, sample_moduli: list[int], tmp_path: Path
    ) -> None:
        """A same-size registry with a replaced key serves the new tree, not the cached one."""
        cache = IssuerCache(tmp_path)
        await TrustAnchor(hasher, config=TEST_CONFIG, cache=cache).load(
            _registry(sample_moduli[:3])
        )

        rotated = _registry(sample_moduli[:2] + [sample_moduli[4]])
        anchor = TrustAnchor(hasher, config=TEST_CONFIG, cache=cache)
        snapshot = await anchor.load(rotated)

        fresh = TrustAnchor(hasher, config=TEST_CONFIG).build_snapshot(rotated)
        assert snapshot.root == fresh.root
        assert anchor.index_of_key(sample_moduli[4]) == 2
        with pytest.raises(UnknownIssuerError):
            anchor.index_of_key(sample_moduli[2])

    @pytest.mark.asyncio
    async def test_warm_cache_does_not_hide_tampering(
        self, hasher: PoseidonHasher, sample_moduli: list[int], tmp_path: Path
    ) -> None:
        """A same-size tampered registry is checked on its own hashes, not the cached ones."""
        cache = IssuerCache(tmp_path)
        genuine = _registry(sample_moduli[:3])
        trusted = await TrustAnchor(hasher, config=TEST_CONFIG, cache=cache).load(genuine)

        tampered = _registry(sample_moduli[:2] + [sample_moduli[3]])
        anchor = TrustAnchor(hasher, config=TEST_CONFIG, cache=cache, published_root=trusted.root)
        with pytest.raises(RootMismatchError):
            await anchor.load(tampered)

    def test_rejected_snapshot_is_not_cached(
        self, hasher: PoseidonHasher, registry: IssuerRegistry, tmp_path: Path
    ) -> None:
        """A root mismatch on a cold cache leaves no cache files behind."""
        cache = IssuerCache(tmp_path)
        anchor = TrustAnchor(hasher, config=TEST_CONFIG, cache=cache, published_root=1)

        with pytest.raises(RootMismatchError):
            anchor.build_snapshot(registry)

        assert not cache.hashes_path.exists()
        assert not cache.tree_path.exists()

    def test_rejected_snapshot_keeps_cached_one(
        self, hasher: PoseidonHasher, sample_moduli: list[int], tmp_path: Path
    ) -> None:
        """A root mismatch does not overwrite the cache of the last accepted snapshot."""
        cache = IssuerCache(tmp_path)
        genuine = _registry(sample_moduli[:3])
        root = TrustAnchor(hasher, config=TEST_CONFIG, cache=cache).build_snapshot(genuine).root
        hashes_before = cache.hashes_path.read_bytes()
        tree_before = cache.tree_path.read_bytes()

        anchor = TrustAnchor(hasher, config=TEST_CONFIG, cache=cache, published_root=root)
        with pytest.raises(RootMismatchError):
            anchor.build_snapshot(_registry(sample_moduli[1:4]))

        assert cache.hashes_path.read_bytes() == hashes_before
        assert cache.tree_path.read_bytes() == tree_before
        assert anchor.build_snapshot(genuine).root == root
