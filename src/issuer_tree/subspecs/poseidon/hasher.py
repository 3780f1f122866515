"""
The field hasher capability and its Poseidon implementation.

Every component that hashes (the limb packer's leaf hash, the Merkle
accumulator, proof folding) receives a `FieldHasher` explicitly. The concrete
Poseidon instance is produced once per process by `PoseidonFactory`, whose
initialization is asynchronous because deriving the round constants is
expensive and must not block the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping, Protocol, Sequence

from ..bn254.field import Fr
from .permutation import MAX_WIDTH, PoseidonParams, params_for_width, permute

logger = logging.getLogger(__name__)

DEFAULT_ARITIES: tuple[int, ...] = (2, 11)
"""Arities prepared at startup: tree nodes and packed public keys."""


class FieldHasher(Protocol):
    """
    Protocol for a hash over field elements.

    Implementations must be deterministic and bit-compatible with the
    circuit's hash gadget; the arity is whatever the caller passes.
    """

    def hash(self, elements: Sequence[Fr]) -> Fr:
        """
        Hash one or more field elements to a single field element.

        Args:
            elements: The inputs, in order.

        Returns:
            The digest.
        """
        ...


class PoseidonHasher:
    """Circomlib-compatible Poseidon over the BN254 scalar field."""

    def __init__(self, params: Mapping[int, PoseidonParams] | None = None) -> None:
        """
        Initializes the hasher with prepared parameters keyed by state width.

        Widths missing from `params` are derived on first use.
        """
        self._params: dict[int, PoseidonParams] = dict(params or {})

    @property
    def widths(self) -> tuple[int, ...]:
        """State widths whose parameters are already prepared."""
        return tuple(sorted(self._params))

    def _params_for(self, width: int) -> PoseidonParams:
        params = self._params.get(width)
        if params is None:
            logger.debug("Deriving Poseidon parameters for width %d on demand", width)
            params = params_for_width(width)
            self._params[width] = params
        return params

    def hash(self, elements: Sequence[Fr]) -> Fr:
        """
        Hash `1..16` field elements.

        The state is `[0, *inputs]` and the digest is the first state element
        after the permutation, as in circomlib's `Poseidon(nInputs)`.

        Raises:
            ValueError: If no inputs or more than sixteen are given.
        """
        if not 1 <= len(elements) <= MAX_WIDTH - 1:
            raise ValueError(f"Poseidon takes 1 to {MAX_WIDTH - 1} inputs, got {len(elements)}")

        params = self._params_for(len(elements) + 1)
        state = [0] + [element.value for element in elements]
        return Fr(value=permute(state, params)[0])


class PoseidonFactory:
    """
    Lazily builds a single shared `PoseidonHasher`.

    The first awaiting caller triggers parameter derivation in a worker
    thread; concurrent callers wait on the same lock and all of them receive
    the same instance. Once built, the hasher is never rebuilt.
    """

    def __init__(self, arities: Iterable[int] = DEFAULT_ARITIES) -> None:
        """Records which arities to prepare eagerly."""
        self._arities = tuple(sorted(set(arities)))
        self._hasher: PoseidonHasher | None = None
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        """Whether the hasher has been built."""
        return self._hasher is not None

    async def get(self) -> PoseidonHasher:
        """Return the shared hasher, building it on first use."""
        if self._hasher is not None:
            return self._hasher

        async with self._lock:
            # Another caller may have finished while we waited for the lock.
            if self._hasher is None:
                logger.info("Preparing Poseidon parameters for arities %s", self._arities)
                params = await asyncio.to_thread(_prepare, self._arities)
                self._hasher = PoseidonHasher(params)
                logger.info("Poseidon hasher ready")

        return self._hasher


def _prepare(arities: tuple[int, ...]) -> dict[int, PoseidonParams]:
    return {arity + 1: params_for_width(arity + 1) for arity in arities}
