"""
Poseidon hash over the BN254 scalar field, compatible with circomlib.

The permutation is written once, against a tiny arithmetic interface
(``+ int``, ``int *``, an S-box callback and a reduction callback), and is
shared by the native hash and the in-circuit gadget in :mod:`zkpsbt.r1cs`.
Both sides therefore agree on round order, constant layout and MDS mixing
by construction.

Parameters follow the Grain-LFSR procedure circomlib's constants were
generated with (prime field, x^5 S-box, n = 254, t, R_F = 8, R_P by width):
    - round constants: (R_F + R_P) * t field elements, rejection sampled
    - MDS: Cauchy matrix M[i][j] = 1 / (x_i + y_j) where x_0..x_{t-1},
      y_0..y_{t-1} are the next 2t LFSR draws reduced into the field

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Iterator, List, Sequence, Tuple

from zkpsbt.hardening import FIELD_MODULUS

FIELD_BITS = 254
ALPHA = 5
FULL_ROUNDS = 8

# Partial rounds indexed by width t (t = arity + 1)
PARTIAL_ROUNDS = dict(zip(
    range(2, 18),
    (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68),
))

MAX_ARITY = max(PARTIAL_ROUNDS) - 1


@dataclass(frozen=True)
class PoseidonParams:
    """Complete parameter set for one permutation width."""
    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Tuple[Tuple[int, ...], ...]

    @property
    def arity(self) -> int:
        return self.t - 1

    @property
    def total_rounds(self) -> int:
        return self.full_rounds + self.partial_rounds

    def is_full_round(self, r: int) -> bool:
        half = self.full_rounds // 2
        return r < half or r >= half + self.partial_rounds


# =============================================================================
# GRAIN LFSR
# =============================================================================

class GrainLFSR:
    """
    80-bit Grain LFSR in self-shrinking mode.

    Taps at 62, 51, 38, 23, 13, 0; the first 160 outputs are discarded.
    """

    def __init__(self, t: int, full_rounds: int, partial_rounds: int):
        seed = (
            _bits(1, 2)             # prime field
            + _bits(0, 4)           # x^alpha S-box
            + _bits(FIELD_BITS, 12)
            + _bits(t, 12)
            + _bits(full_rounds, 10)
            + _bits(partial_rounds, 10)
            + [1] * 30
        )
        self._state = seed
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(bit)
        return bit

    def bits(self) -> Iterator[int]:
        while True:
            bit = self._clock()
            while bit == 0:
                self._clock()
                bit = self._clock()
            yield self._clock()

    def _word(self, stream: Iterator[int]) -> int:
        value = 0
        for _ in range(FIELD_BITS):
            value = (value << 1) | next(stream)
        return value

    def field_elements(self, count: int) -> List[int]:
        """Draw ``count`` uniformly random field elements by rejection sampling."""
        stream = self.bits()
        out = []
        while len(out) < count:
            value = self._word(stream)
            if value < FIELD_MODULUS:
                out.append(value)
        return out

    def reduced_elements(self, count: int) -> List[int]:
        """Draw ``count`` words reduced modulo the field (no rejection)."""
        stream = self.bits()
        return [self._word(stream) % FIELD_MODULUS for _ in range(count)]


def _bits(value: int, width: int) -> List[int]:
    return [int(b) for b in format(value, f"0{width}b")]


# =============================================================================
# PARAMETERS
# =============================================================================

@lru_cache(maxsize=None)
def params_for(arity: int) -> PoseidonParams:
    """Parameters for hashing ``arity`` inputs (cached, process-wide)."""
    t = arity + 1
    if t not in PARTIAL_ROUNDS:
        raise ValueError(f"Unsupported Poseidon arity {arity}; expected 1..{MAX_ARITY}")

    partial = PARTIAL_ROUNDS[t]
    grain = GrainLFSR(t, FULL_ROUNDS, partial)
    constants = grain.field_elements((FULL_ROUNDS + partial) * t)

    mds = _cauchy_mds(grain, t)

    return PoseidonParams(
        t=t,
        full_rounds=FULL_ROUNDS,
        partial_rounds=partial,
        round_constants=tuple(constants),
        mds=mds,
    )


def _cauchy_mds(grain: GrainLFSR, t: int) -> Tuple[Tuple[int, ...], ...]:
    """Cauchy matrix from 2t distinct LFSR draws with every x_i + y_j non-zero."""
    while True:
        draws = grain.reduced_elements(2 * t)
        while len(set(draws)) != len(draws):
            draws = grain.reduced_elements(2 * t)
        xs, ys = draws[:t], draws[t:]
        if all((x + y) % FIELD_MODULUS for x in xs for y in ys):
            return tuple(
                tuple(pow(x + y, FIELD_MODULUS - 2, FIELD_MODULUS) for y in ys)
                for x in xs
            )


# =============================================================================
# PERMUTATION
# =============================================================================

def permute(
    state: Sequence[Any],
    params: PoseidonParams,
    sbox: Callable[[Any], Any],
    reduce: Callable[[Any], Any],
) -> List[Any]:
    """
    Run the Poseidon permutation over any value type.

    ``state`` elements must support ``value + int`` and ``int * value``.
    Native hashing passes ints with ``reduce = x % p``; the circuit passes
    linear combinations and an S-box that allocates constrained wires.
    """
    t = params.t
    rc = params.round_constants
    mds = params.mds
    state = list(state)

    for r in range(params.total_rounds):
        state = [reduce(s + rc[r * t + i]) for i, s in enumerate(state)]

        if params.is_full_round(r):
            state = [sbox(s) for s in state]
        else:
            state = [sbox(state[0])] + state[1:]

        mixed = []
        for i in range(t):
            acc = mds[i][0] * state[0]
            for j in range(1, t):
                acc = acc + mds[i][j] * state[j]
            mixed.append(reduce(acc))
        state = mixed

    return state


def _sbox(x: int) -> int:
    return pow(x, ALPHA, FIELD_MODULUS)


def _reduce(x: int) -> int:
    return x % FIELD_MODULUS


def poseidon_hash(inputs: Sequence[int]) -> int:
    """
    Hash 1..16 field elements to one field element.

    Inputs are taken modulo the field; range checks are the caller's job.
    """
    params = params_for(len(inputs))
    state = [0] + [int(x) % FIELD_MODULUS for x in inputs]
    return permute(state, params, _sbox, _reduce)[0]
