"""Module-level sampling on the calling thread's generator.

Convenience wrappers over ``sampling.py`` for code that doesn't want to pass
a generator around. Each thread draws from its own generator (see
``holder.py``); call ``seed_with()`` for a reproducible sequence on the
current thread.
"""

from __future__ import annotations

from . import sampling
from .holder import default_probability, get_random, seed_with

__all__ = [
    "boolean",
    "discretise",
    "double",
    "double_in",
    "float32",
    "float32_in",
    "int_in",
    "int_value",
    "long_in",
    "long_value",
    "normal",
    "normal_float32",
    "seed_with",
    "sign",
]


def int_value() -> int:
    return sampling.int_value(get_random())


def int_in(lo: int, hi: int | None = None) -> int:
    return sampling.int_in(get_random(), lo, hi)


def long_value() -> int:
    return sampling.long_value(get_random())


def long_in(lo: int, hi: int | None = None) -> int:
    return sampling.long_in(get_random(), lo, hi)


def double() -> float:
    return sampling.double(get_random())


def double_in(lo: float, hi: float | None = None) -> float:
    return sampling.double_in(get_random(), lo, hi)


def float32() -> float:
    return sampling.float32(get_random())


def float32_in(lo: float, hi: float | None = None) -> float:
    return sampling.float32_in(get_random(), lo, hi)


def normal(mean: float = 0.0, deviation: float = 1.0) -> float:
    return sampling.normal(get_random(), mean, deviation)


def normal_float32(mean: float = 0.0, deviation: float = 1.0) -> float:
    return sampling.normal_float32(get_random(), mean, deviation)


def sign() -> int:
    return sampling.sign(get_random())


def boolean(probability: float | None = None) -> bool:
    """True with ``probability``, defaulting to the thread's configured
    default (0.5 unless ``holder.configure()`` said otherwise)."""
    if probability is None:
        probability = default_probability()
    return sampling.boolean(get_random(), probability)


def discretise(value: float) -> int:
    return sampling.discretise(get_random(), value)
