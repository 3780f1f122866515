"""
Deterministic derivation of Poseidon round constants and MDS matrices.

Poseidon does not ship its constants as opaque tables: they are the output of
an 80-bit Grain LFSR seeded with the instance description (field type, S-box,
field size, width and round counts). Circomlib's tables were produced by this
procedure for the BN254 scalar field, so regenerating them here yields the
same hash as the circuit's gadget.

The procedure, from the Poseidon reference parameter generator:

1.  Seed the register with the 80-bit instance description.
2.  Clock it 160 times, discarding the output.
3.  Draw bits in pairs: if the first bit is 1, emit the second; otherwise
    discard both (self-shrinking).
4.  Round constants: draw `(R_F + R_P) * t` field-size integers, rejecting any
    value at or above the prime.
5.  MDS matrix: draw `2t` integers reduced modulo the prime, redrawing while
    any repeat; use them as `x_0..x_{t-1}, y_0..y_{t-1}` of the Cauchy matrix
    `M[i][j] = 1 / (x_i + y_j)`.
"""

from __future__ import annotations

from typing import List, Tuple

STATE_BITS = 80
"""Width of the Grain shift register."""

WARMUP_CLOCKS = 160
"""Number of initial clocks whose output is discarded."""

# Feedback taps, as positions in the register (0 is the oldest bit).
_TAPS = (62, 51, 38, 23, 13, 0)

FIELD_PRIME = 1
"""Instance field type: 1 selects a prime field."""

SBOX_POWER = 0
"""Instance S-box type: 0 selects `x -> x^alpha`."""


def _encode(value: int, width: int) -> List[int]:
    """Big-endian bit list of `value`, zero-padded to `width` bits."""
    return [int(b) for b in format(value, f"0{width}b")]


class GrainLFSR:
    """Self-shrinking Grain LFSR seeded with a Poseidon instance description."""

    def __init__(self, *, field_bits: int, width: int, rounds_f: int, rounds_p: int) -> None:
        """Seeds the register and runs the warm-up clocks."""
        seed = (
            _encode(FIELD_PRIME, 2)
            + _encode(SBOX_POWER, 4)
            + _encode(field_bits, 12)
            + _encode(width, 12)
            + _encode(rounds_f, 10)
            + _encode(rounds_p, 10)
            + [1] * 30
        )
        assert len(seed) == STATE_BITS

        # Bit k of the integer holds register position k.
        self._state = 0
        for position, bit in enumerate(seed):
            self._state |= bit << position

        for _ in range(WARMUP_CLOCKS):
            self._clock()

    def _clock(self) -> int:
        """Shift the register by one position and return the new bit."""
        s = self._state
        new_bit = 0
        for tap in _TAPS:
            new_bit ^= (s >> tap) & 1
        self._state = (s >> 1) | (new_bit << (STATE_BITS - 1))
        return new_bit

    def next_bit(self) -> int:
        """Return the next output bit after self-shrinking."""
        bit = self._clock()
        while bit == 0:
            self._clock()
            bit = self._clock()
        return self._clock()

    def random_bits(self, num_bits: int) -> int:
        """Draw `num_bits` output bits as a big-endian integer."""
        acc = 0
        for _ in range(num_bits):
            acc = (acc << 1) | self.next_bit()
        return acc

    def below(self, num_bits: int, bound: int) -> int:
        """Draw `num_bits`-bit integers until one is below `bound`."""
        value = self.random_bits(num_bits)
        while value >= bound:
            value = self.random_bits(num_bits)
        return value


def generate_constants(
    *, prime: int, field_bits: int, width: int, rounds_f: int, rounds_p: int
) -> Tuple[List[int], List[List[int]]]:
    """
    Derive the round constants and MDS matrix of a Poseidon instance.

    Args:
        prime: The field modulus.
        field_bits: Bit size of the field (254 for BN254).
        width: State width `t` (number of inputs plus one).
        rounds_f: Number of full rounds.
        rounds_p: Number of partial rounds.

    Returns:
        A flat list of `(rounds_f + rounds_p) * width` round constants and the
        `width x width` MDS matrix, row-major.
    """
    grain = GrainLFSR(field_bits=field_bits, width=width, rounds_f=rounds_f, rounds_p=rounds_p)

    # Round constants come first in the stream.
    round_constants = [
        grain.below(field_bits, prime) for _ in range((rounds_f + rounds_p) * width)
    ]

    # The matrix sampling continues from the same register state.
    while True:
        points = [grain.random_bits(field_bits) % prime for _ in range(2 * width)]
        while len(set(points)) != len(points):
            points = [grain.random_bits(field_bits) % prime for _ in range(2 * width)]

        xs, ys = points[:width], points[width:]
        if any((x + y) % prime == 0 for x in xs for y in ys):
            continue

        mds = [[pow(x + y, prime - 2, prime) for y in ys] for x in xs]
        return round_constants, mds
