"""Derived distributions over a minimal uniform generator.

Every function here takes a ``UniformSource`` (see ``prng.py``) as its first
argument and returns one sample. Nothing in this module holds state: the
generator is borrowed for the duration of the call and advanced by however
many draws the operation needs. ``static_random.py`` wraps these functions
around the calling thread's generator for callers that don't want to pass
one around.

Ranged forms follow ``random.randrange``: ``f(rng, hi)`` samples [0, hi) and
``f(rng, lo, hi)`` samples [lo, hi). Lower bounds are inclusive, upper bounds
exclusive.

Several methods are slightly biased for the sake of performance:

- ``int_in`` defers to the generator's bounded primitives. ``PCG32`` reduces
  with a modulo, so spans that don't divide 2**32 favour small residues.
- ``long_in`` reduces a 64-bit draw modulo the span. The bias is on the order
  of span / 2**64, negligible unless the span is close to 2**64.
- ``double_in`` / ``float32_in`` scale a [0, 1) draw linearly, so they are
  only as uniform as the grid of the underlying draw.

Bounds are not validated here. Malformed integer bounds raise whatever the
base generator raises (``ValueError`` for ``PCG32``); empty or inverted long
and float ranges, NaN and infinite bounds give whatever the arithmetic
gives. Callers own ``lo < hi``.

Draw counts per call, relevant when replaying a seed:

- ``int_value``, ``int_in``, ``double``, ``double_in``, ``float32``,
  ``float32_in``, ``sign``, ``discretise``: one draw.
- ``long_value``, ``long_in``, ``normal``, ``normal_float32``: two draws.
- ``boolean``: one draw, or none when the probability is <= 0 or >= 1.
"""

from __future__ import annotations

import math

import numpy as np

from .config import DEFAULT_PROBABILITY
from .prng import UniformSource

_INT32_MAX = 0x7FFFFFFF
_UINT64_RANGE = 1 << 64
_INT64_SIGN_BIT = 1 << 63
# float32 has a 24-bit significand
_FLOAT32_UNIT = 2.0**-24


# -- Integers ----------------------------------------------------------


def int_value(rng: UniformSource) -> int:
    """Integer in [0, 2**31 - 1).

    Like .NET's ``Random.Next()``, the largest 32-bit signed value is
    excluded.
    """
    return rng.next_below(_INT32_MAX)


def int_in(rng: UniformSource, lo: int, hi: int | None = None) -> int:
    """Integer in [0, lo) or, with two bounds, in [lo, hi).

    Passes straight through to ``next_below`` / ``next_range``; a
    non-positive bound or inverted range raises from the generator.
    """
    if hi is None:
        return rng.next_below(lo)
    return rng.next_range(lo, hi)


def _next_u64(rng: UniformSource) -> int:
    # High word first.
    high = rng.next_u32()
    low = rng.next_u32()
    return (high << 32) | low


def long_value(rng: UniformSource) -> int:
    """Signed 64-bit integer over the full range [-2**63, 2**63)."""
    value = _next_u64(rng)
    if value & _INT64_SIGN_BIT:
        return value - _UINT64_RANGE
    return value


def long_in(rng: UniformSource, lo: int, hi: int | None = None) -> int:
    """Integer in [0, lo) or [lo, hi) from a 64-bit draw (slightly biased).

    The span is reduced from the unsigned draw, never from the signed one,
    so the offset is always non-negative for a positive span. A zero span
    raises ``ZeroDivisionError``; a negative span returns a value on the
    wrong side of ``lo``.
    """
    if hi is None:
        lo, hi = 0, lo
    return lo + _next_u64(rng) % (hi - lo)


# -- Floating point ----------------------------------------------------


def double(rng: UniformSource) -> float:
    """Float in [0, 1)."""
    return rng.next_float()


def double_in(
    rng: UniformSource, lo: float, hi: float | None = None
) -> float:
    """Float in [0, lo) or [lo, hi) by linear scaling of a [0, 1) draw.

    Finite bounds whose span overflows (e.g. -1e308, 1e308) are interpolated
    as ``lo * (1 - u) + hi * u`` instead, which stays finite.
    """
    if hi is None:
        lo, hi = 0.0, lo
    u = rng.next_float()
    span = hi - lo
    if math.isinf(span) and math.isfinite(lo) and math.isfinite(hi):
        value = lo * (1.0 - u) + hi * u
    else:
        value = lo + u * span
    # lo + u * (hi - lo) can round up to hi.
    if lo < hi and value >= hi:
        return math.nextafter(hi, lo)
    return value


def float32(rng: UniformSource) -> float:
    """Single-precision float in [0, 1).

    Built from the top 24 bits of a draw so the result is exact in single
    precision and never rounds to 1.0.
    """
    return (rng.next_u32() >> 8) * _FLOAT32_UNIT


def _float32_below(x: float) -> np.float32:
    """Largest float32 strictly below ``x``."""
    x32 = np.float32(x)
    if float(x32) < x:
        return x32
    return np.nextafter(x32, np.float32(-np.inf))


def _float32_at_or_above(x: float) -> np.float32:
    """Smallest float32 not below ``x``."""
    x32 = np.float32(x)
    if float(x32) >= x:
        return x32
    return np.nextafter(x32, np.float32(np.inf))


def float32_in(
    rng: UniformSource, lo: float, hi: float | None = None
) -> float:
    """Single-precision float in [0, lo) or [lo, hi).

    Same algorithm as ``double_in`` carried out in ``numpy.float32``. The
    bounds are rounded to single precision for the arithmetic, and results
    that rounding pushes outside the caller's [lo, hi) are moved to the
    nearest float32 inside it. The returned Python float is always exactly
    representable as a float32. A range holding no float32 at all cannot be
    honoured.
    """
    if hi is None:
        lo, hi = 0.0, lo
    lo32 = np.float32(lo)
    hi32 = np.float32(hi)
    u = np.float32(float32(rng))
    with np.errstate(over="ignore"):
        span = hi32 - lo32
        if np.isinf(span) and np.isfinite(lo32) and np.isfinite(hi32):
            value = lo32 * (np.float32(1.0) - u) + hi32 * u
        else:
            value = lo32 + u * span
    if lo < hi:
        if float(value) >= hi:
            value = _float32_below(hi)
        elif float(value) < lo:
            value = _float32_at_or_above(lo)
    return float(value)


# -- Normal distribution -----------------------------------------------


def normal(
    rng: UniformSource, mean: float = 0.0, deviation: float = 1.0
) -> float:
    """Normally distributed float (Box-Muller, basic form).

    Consumes two uniform draws per sample; the second Box-Muller output is
    discarded rather than cached, so reseeding needs no extra reset.
    """
    # 1 - [0, 1) is (0, 1]: log() never sees zero.
    u1 = 1.0 - double(rng)
    u2 = double(rng)
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + deviation * z


def normal_float32(
    rng: UniformSource, mean: float = 0.0, deviation: float = 1.0
) -> float:
    """``normal`` rounded to single precision."""
    return float(np.float32(normal(rng, mean, deviation)))


# -- Various -----------------------------------------------------------


def boolean(
    rng: UniformSource, probability: float = DEFAULT_PROBABILITY
) -> bool:
    """True with the given probability.

    Always True for probability >= 1 and always False for probability <= 0;
    neither case consumes a draw. A NaN probability yields False.
    """
    if probability >= 1.0:
        return True
    if probability <= 0.0:
        return False
    return double(rng) < probability


def sign(rng: UniformSource) -> int:
    """-1 or 1 with equal probability."""
    return 1 if boolean(rng, 0.5) else -1


def discretise(rng: UniformSource, value: float) -> int:
    """Integer with expected value ``value``.

    Always returns ``floor(value)`` or ``ceil(value)``: the ceiling with
    probability equal to the fractional part. Integral input returns itself
    (after one draw). Non-finite input raises from ``math.floor``.
    """
    floor = math.floor(value)
    if double(rng) < value - floor:
        return floor + 1
    return floor
