"""Base uniform generators.

Everything in ``sampling.py`` is built on the small ``UniformSource``
capability defined here. Two implementations ship:

- ``PCG32``: the PCG-XSH-RR variant (32-bit output, 64-bit state).
  Reference: https://www.pcg-random.org/
- ``RandomSource``: an adapter over the stdlib Mersenne Twister, mostly to
  show that the synthesis layer does not care which algorithm sits below it.

Neither class is safe to share between threads; ``holder.py`` gives each
thread its own instance.
"""

from __future__ import annotations

import random
from typing import Protocol


class UniformSource(Protocol):
    def next_u32(self) -> int:
        """Uniform integer in [0, 2**32)."""
        ...

    def next_float(self) -> float:
        """Uniform float in [0, 1)."""
        ...

    def next_below(self, bound: int) -> int:
        """Integer in [0, bound). Raises ValueError if bound <= 0."""
        ...

    def next_range(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi). Raises ValueError if lo > hi."""
        ...


class PCG32:
    _MASK32 = 0xFFFFFFFF
    _MASK64 = 0xFFFFFFFFFFFFFFFF
    _MUL = 6364136223846793005

    def __init__(self, seed: int, seq: int = 0) -> None:
        self._state: int = 0
        self._inc: int = ((seq << 1) | 1) & self._MASK64
        self._advance()
        self._state = (self._state + seed) & self._MASK64
        self._advance()

    def __repr__(self) -> str:
        return f"PCG32(state={self._state:#018x}, inc={self._inc:#018x})"

    def _advance(self) -> None:
        self._state = (self._state * self._MUL + self._inc) & self._MASK64

    def next_u32(self) -> int:
        old = self._state
        self._advance()
        xorshifted = (((old >> 18) ^ old) >> 27) & self._MASK32
        rot = (old >> 59) & 31
        return (
            (xorshifted >> rot) | (xorshifted << ((-rot) & 31))
        ) & self._MASK32

    def next_float(self) -> float:
        """Uniform float in [0, 1)."""
        return self.next_u32() / (self._MASK32 + 1)

    def next_below(self, bound: int) -> int:
        """Integer in [0, bound), modulo-reduced (slightly biased)."""
        if bound <= 0:
            raise ValueError(f"bound must be positive, got {bound}")
        return self.next_u32() % bound

    def next_range(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi), modulo-reduced (slightly biased).

        An empty range (lo == hi) returns lo after consuming one draw.
        """
        if lo > hi:
            raise ValueError(f"lo must not exceed hi, got [{lo}, {hi})")
        if lo == hi:
            self.next_u32()
            return lo
        return lo + self.next_u32() % (hi - lo)


class RandomSource:
    """``UniformSource`` backed by ``random.Random``."""

    def __init__(self, seed: int | None = None) -> None:
        self._random = random.Random(seed)

    def next_u32(self) -> int:
        return self._random.getrandbits(32)

    def next_float(self) -> float:
        return self._random.random()

    def next_below(self, bound: int) -> int:
        return self._random.randrange(bound)

    def next_range(self, lo: int, hi: int) -> int:
        return self._random.randrange(lo, hi)
