"""
Shared pytest fixtures for all issuer_tree tests.

Real RSA moduli are 2048 bits and do not fit the reference 11-limb packing,
so the sample issuers here are 968-bit odd integers that do.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from issuer_tree.subspecs.anchor import TEST_CONFIG, TrustAnchor
from issuer_tree.subspecs.poseidon import PoseidonHasher
from issuer_tree.subspecs.registry import IssuerRegistry

SAMPLE_MODULI: list[int] = [((0xA5 + i) << 960) | (0x10001 * (2 * i + 1)) for i in range(5)]
"""Five distinct moduli that fit the reference packing."""

UNTRUSTED_MODULUS: int = (0x5A << 960) | 0xFFFF
"""A modulus absent from every sample registry."""


@pytest.fixture(scope="session")
def hasher() -> PoseidonHasher:
    """One Poseidon hasher for the whole session; parameters are derived once per width."""
    return PoseidonHasher()


@pytest.fixture
def registry() -> IssuerRegistry:
    """A registry of the sample moduli in hex, with one entry lacking a modulus."""
    entries = [{"country": f"C{i}", "modulus": hex(m)} for i, m in enumerate(SAMPLE_MODULI)]
    entries.insert(2, {"country": "XXX"})
    return IssuerRegistry.model_validate({"issuers": entries})


@pytest.fixture
def write_registry(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a JSON registry of the given moduli to a temporary file."""

    def _write(moduli: list[int], name: str = "issuers.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps({"issuers": [{"modulus": hex(m)} for m in moduli]}))
        return path

    return _write


@pytest.fixture
def anchor(hasher: PoseidonHasher) -> TrustAnchor:
    """An uncached anchor using the test preset."""
    return TrustAnchor(hasher, config=TEST_CONFIG)


@pytest.fixture
def sample_moduli() -> list[int]:
    """The moduli committed by the `registry` fixture, in leaf order."""
    return list(SAMPLE_MODULI)


@pytest.fixture
def untrusted_modulus() -> int:
    """A well-formed modulus no sample registry commits."""
    return UNTRUSTED_MODULUS
