"""
A minimal Python implementation of the circomlib Poseidon permutation.

The design is based on the paper "Poseidon: A New Hash Function for
Zero-Knowledge Proof Systems" (https://eprint.iacr.org/2019/458), instantiated
exactly as circomlib's `Poseidon` template over the BN254 scalar field.

The permutation works on plain integers modulo P. A tree of depth 15 needs
tens of thousands of permutations; wrapping every intermediate value in a
validated model would dominate the build time.
"""

from functools import cache
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..bn254.field import P, P_BITS
from .grain import generate_constants

# =================================================================
# Poseidon Parameter Definitions
# =================================================================

S_BOX_DEGREE = 5
"""
The S-box exponent `alpha`.

For BN254, `gcd(5, P - 1) = 1`, so `x -> x^5` is a permutation.
"""

ROUNDS_F = 8
"""Number of full rounds, split evenly before and after the partial rounds."""

ROUNDS_P: Tuple[int, ...] = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)
"""Partial round counts for widths 2 through 17, as fixed by circomlib."""

MIN_WIDTH = 2
"""Smallest supported state width (one input)."""

MAX_WIDTH = MIN_WIDTH + len(ROUNDS_P) - 1
"""Largest supported state width (sixteen inputs)."""


class PoseidonParams(BaseModel):
    """Parameters for a specific Poseidon instance."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(ge=MIN_WIDTH, le=MAX_WIDTH, description="The size of the state (t).")
    rounds_f: int = Field(gt=0, description="Total number of 'full' rounds.")
    rounds_p: int = Field(ge=0, description="Total number of 'partial' rounds.")
    round_constants: Tuple[int, ...] = Field(
        min_length=1,
        description="One constant per state element per round, round-major.",
    )
    mds: Tuple[Tuple[int, ...], ...] = Field(
        min_length=1,
        description="The MDS matrix of the linear layer, row-major.",
    )

    @model_validator(mode="after")
    def check_lengths(self) -> "PoseidonParams":
        """Ensures vector lengths match the configuration."""
        expected_constants = (self.rounds_f + self.rounds_p) * self.width
        if len(self.round_constants) != expected_constants:
            raise ValueError("Incorrect number of round constants provided.")

        if len(self.mds) != self.width or any(len(row) != self.width for row in self.mds):
            raise ValueError("MDS matrix must be width x width.")

        return self


@cache
def params_for_width(width: int) -> PoseidonParams:
    """
    Derive the circomlib parameters for a state width.

    Derivation clocks the Grain LFSR several hundred thousand times for the
    larger widths, so results are memoized per width.

    Raises:
        ValueError: If the width is outside [MIN_WIDTH, MAX_WIDTH].
    """
    if not MIN_WIDTH <= width <= MAX_WIDTH:
        raise ValueError(f"width must be between {MIN_WIDTH} and {MAX_WIDTH}, got {width}")

    rounds_p = ROUNDS_P[width - MIN_WIDTH]
    round_constants, mds = generate_constants(
        prime=P,
        field_bits=P_BITS,
        width=width,
        rounds_f=ROUNDS_F,
        rounds_p=rounds_p,
    )
    return PoseidonParams(
        width=width,
        rounds_f=ROUNDS_F,
        rounds_p=rounds_p,
        round_constants=tuple(round_constants),
        mds=tuple(tuple(row) for row in mds),
    )


def _mix(state: List[int], mds: Tuple[Tuple[int, ...], ...]) -> List[int]:
    """Multiply the state by the MDS matrix."""
    return [sum(m * s for m, s in zip(row, state, strict=True)) % P for row in mds]


def permute(state: List[int], params: PoseidonParams) -> List[int]:
    """
    Performs the full Poseidon permutation on the given state.

    Every round is `AddRoundConstants -> S-box -> Mix`. The S-box covers the
    whole state in the first and last `R_F / 2` rounds and only the first
    element in the `R_P` rounds between them.

    Args:
        state: A list of integers in [0, P) of length `params.width`.
        params: The object defining the permutation's configuration.

    Returns:
        The new state after applying the permutation.
    """
    if len(state) != params.width:
        raise ValueError(f"Input state must have length {params.width}")

    width = params.width
    constants = params.round_constants
    half_rounds_f = params.rounds_f // 2
    partial_end = half_rounds_f + params.rounds_p

    state = list(state)
    for r in range(params.rounds_f + params.rounds_p):
        offset = r * width
        state = [(s + constants[offset + i]) % P for i, s in enumerate(state)]

        if r < half_rounds_f or r >= partial_end:
            state = [pow(s, S_BOX_DEGREE, P) for s in state]
        else:
            state[0] = pow(state[0], S_BOX_DEGREE, P)

        state = _mix(state, params.mds)

    return state
