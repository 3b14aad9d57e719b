"""Sampling configuration and its JSON form.

``SamplingConfig`` is what the CLI and ``holder.configure()`` consume: the
seed and stream for a thread's generator plus the default probability used
by ``sampling.boolean()``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .prng import PCG32

DEFAULT_PROBABILITY = 0.5


def entropy_seed() -> int:
    """64-bit seed from the operating system's entropy pool."""
    return int.from_bytes(os.urandom(8), "little")


@dataclass
class SamplingConfig:
    seed: int | None = None
    seq: int = 0
    default_probability: float = DEFAULT_PROBABILITY

    @staticmethod
    def from_dict(d: dict | None) -> SamplingConfig:
        if not d:
            return SamplingConfig()
        seed = d.get("seed")
        seq = d.get("seq", 0)
        probability = d.get("default_probability", DEFAULT_PROBABILITY)
        if seed is not None and (
            isinstance(seed, bool) or not isinstance(seed, int)
        ):
            raise ValueError(f"seed must be an integer or null, got {seed!r}")
        if isinstance(seq, bool) or not isinstance(seq, int) or seq < 0:
            raise ValueError(
                f"seq must be a non-negative integer, got {seq!r}"
            )
        if (
            isinstance(probability, bool)
            or not isinstance(probability, (int, float))
            or not 0.0 <= probability <= 1.0
        ):
            raise ValueError(
                f"default_probability must be in [0, 1], got {probability!r}"
            )
        return SamplingConfig(
            seed=seed, seq=seq, default_probability=float(probability)
        )

    def to_dict(self) -> dict:
        return {
            "seed": self.seed,
            "seq": self.seq,
            "default_probability": self.default_probability,
        }

    def make_source(self) -> PCG32:
        """Fresh generator for this config. A seed of None draws OS entropy."""
        seed = self.seed if self.seed is not None else entropy_seed()
        return PCG32(seed, seq=self.seq)


def load_config(path: Path) -> SamplingConfig:
    """Load a JSON config file into a ``SamplingConfig``."""
    with open(path) as f:
        data = json.load(f)
    return SamplingConfig.from_dict(data)


def save_config(config: SamplingConfig, path: Path) -> None:
    """Write a config to a JSON file.

    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
        f.write("\n")
