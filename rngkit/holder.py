"""Per-thread generator ownership.

Each thread lazily gets its own ``PCG32`` seeded from OS entropy, so sequences
differ between threads and between runs unless a thread seeds itself.
Reseeding replaces the calling thread's generator only; other threads keep
theirs. Nothing here is shared across threads, so there are no locks.
"""

from __future__ import annotations

import logging
import threading

from .config import DEFAULT_PROBABILITY, SamplingConfig, entropy_seed
from .prng import PCG32, UniformSource

logger = logging.getLogger(__name__)

_local = threading.local()


def get_random() -> UniformSource:
    """The calling thread's generator, created on first use."""
    source = getattr(_local, "source", None)
    if source is None:
        seed = entropy_seed()
        source = PCG32(seed)
        _local.source = source
        logger.debug(
            "Created generator for thread %s from entropy seed %#x",
            threading.current_thread().name,
            seed,
        )
    return source


def set_random(source: UniformSource) -> None:
    """Install an arbitrary generator for the calling thread."""
    _local.source = source
    logger.debug(
        "Installed %s for thread %s",
        type(source).__name__,
        threading.current_thread().name,
    )


def seed_with(seed: int, seq: int = 0) -> None:
    """Replace the calling thread's generator by ``PCG32(seed, seq)``."""
    _local.source = PCG32(seed, seq=seq)
    logger.debug(
        "Seeded thread %s with seed=%d seq=%d",
        threading.current_thread().name,
        seed,
        seq,
    )


def default_probability() -> float:
    """Default for ``static_random.boolean()`` on the calling thread."""
    return getattr(_local, "default_probability", DEFAULT_PROBABILITY)


def configure(config: SamplingConfig) -> None:
    """Apply a config to the calling thread.

    A config without a seed installs a fresh entropy-seeded generator.
    """
    if config.seed is None:
        set_random(config.make_source())
    else:
        seed_with(config.seed, config.seq)
    _local.default_probability = config.default_probability
