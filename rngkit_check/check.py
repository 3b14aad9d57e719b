"""Statistical self-checks for the sampling layer.

Each ``CheckScenario`` draws a batch of samples from a freshly seeded
generator and validates a distributional property of the batch: bounds,
support, balance, mean, deviation or a chi-square goodness of fit. Used by
``check_test.py`` under pytest and by ``scripts/sample.py check``.

Tolerances are five standard errors (chi-square at the 0.9999 quantile, from
scipy), so a correct implementation fails a given seed only with negligible
probability.
"""

import copy
import math
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import numpy as np
from scipy import stats

from rngkit import sampling
from rngkit.prng import PCG32, RandomSource, UniformSource

DEFAULT_SEED = 20240611
SIGMAS = 5.0

CHI_SQUARE_QUANTILE = 0.9999


def chi_square_statistic(counts: np.ndarray, expected: np.ndarray) -> float:
    """Pearson's chi-square statistic for observed vs expected counts."""
    counts = np.asarray(counts, dtype=np.float64)
    expected = np.asarray(expected, dtype=np.float64)
    return float(np.sum((counts - expected) ** 2 / expected))


def chi_square_critical(
    df: int, quantile: float = CHI_SQUARE_QUANTILE
) -> float:
    """Critical chi-square value for ``df`` degrees of freedom."""
    return float(stats.chi2.ppf(quantile, df))


def proportion_within(
    hits: int, n: int, p: float, sigmas: float = SIGMAS
) -> bool:
    """Whether hits/n lies within ``sigmas`` standard errors of p."""
    tolerance = sigmas * math.sqrt(p * (1.0 - p) / n)
    return abs(hits / n - p) <= tolerance


# -- Validators --------------------------------------------------------


def _validate_uniform_ints(
    lo: int, hi: int
) -> Callable[[np.ndarray], list[str]]:
    def validate(samples: np.ndarray) -> list[str]:
        failures = []
        if samples.min() < lo or samples.max() >= hi:
            failures.append(
                f"out of range [{lo}, {hi}): "
                f"min {samples.min()}, max {samples.max()}"
            )
            return failures
        bins = hi - lo
        counts = np.bincount(samples - lo, minlength=bins)
        expected = np.full(bins, len(samples) / bins)
        stat = chi_square_statistic(counts, expected)
        critical = chi_square_critical(bins - 1)
        if stat > critical:
            failures.append(
                f"chi-square {stat:.2f} exceeds {critical:.2f} "
                f"(df={bins - 1})"
            )
        return failures

    return validate


def _validate_half_open(
    lo: float, hi: float
) -> Callable[[np.ndarray], list[str]]:
    def validate(samples: np.ndarray) -> list[str]:
        failures = []
        below = int(np.count_nonzero(samples < lo))
        at_or_above = int(np.count_nonzero(samples >= hi))
        if below:
            failures.append(f"{below} samples below {lo}")
        if at_or_above:
            failures.append(f"{at_or_above} samples at or above {hi}")
        return failures

    return validate


def _validate_float32_exact(samples: np.ndarray) -> list[str]:
    failures = _validate_half_open(0.0, 1.0)(samples)
    rounded = samples.astype(np.float32).astype(np.float64)
    inexact = int(np.count_nonzero(rounded != samples))
    if inexact:
        failures.append(f"{inexact} samples not representable as float32")
    return failures


def _validate_sign_balance(samples: np.ndarray) -> list[str]:
    n = len(samples)
    negative = int(np.count_nonzero(samples < 0))
    if not proportion_within(negative, n, 0.5):
        return [f"negative fraction {negative / n:.4f} (expected ~0.5)"]
    return []


def _validate_long_range(samples: np.ndarray) -> list[str]:
    return _validate_half_open(-(10**12), 10**12)(samples)


def _validate_boolean_clamps(samples: np.ndarray) -> list[str]:
    failures = []
    never, always = samples[:, 0], samples[:, 1]
    if never.any():
        failures.append(
            f"boolean(0.0) returned True {int(never.sum())} times"
        )
    if not always.all():
        failures.append(
            f"boolean(1.0) returned False {int((~always).sum())} times"
        )
    return failures


def _validate_boolean_half(samples: np.ndarray) -> list[str]:
    n = len(samples)
    hits = int(samples.sum())
    if not proportion_within(hits, n, 0.5):
        return [f"true fraction {hits / n:.4f} (expected ~0.5)"]
    return []


def _validate_discretise(value: float) -> Callable[[np.ndarray], list[str]]:
    floor = math.floor(value)
    frac = value - floor

    def validate(samples: np.ndarray) -> list[str]:
        failures = []
        support = set(np.unique(samples).tolist())
        if not support <= {floor, floor + 1}:
            failures.append(
                f"values outside {{{floor}, {floor + 1}}}: "
                f"{sorted(support - {floor, floor + 1})}"
            )
        n = len(samples)
        ceil_hits = int(np.count_nonzero(samples == floor + 1))
        if not proportion_within(ceil_hits, n, frac):
            failures.append(
                f"ceil fraction {ceil_hits / n:.4f} (expected ~{frac:.4f})"
            )
        return failures

    return validate


def _validate_normal(
    mean: float, deviation: float
) -> Callable[[np.ndarray], list[str]]:
    def validate(samples: np.ndarray) -> list[str]:
        failures = []
        n = len(samples)
        if not np.all(np.isfinite(samples)):
            failures.append("non-finite sample")
            return failures
        mean_tol = SIGMAS * deviation / math.sqrt(n)
        std_tol = SIGMAS * deviation / math.sqrt(2 * n)
        sample_mean = float(samples.mean())
        sample_std = float(samples.std(ddof=1))
        if abs(sample_mean - mean) > mean_tol:
            failures.append(
                f"mean {sample_mean:.4f} (expected {mean} +/- {mean_tol:.4f})"
            )
        if abs(sample_std - deviation) > std_tol:
            failures.append(
                f"std {sample_std:.4f} "
                f"(expected {deviation} +/- {std_tol:.4f})"
            )
        return failures

    return validate


def _validate_sign(samples: np.ndarray) -> list[str]:
    failures = []
    support = set(np.unique(samples).tolist())
    if not support <= {-1, 1}:
        failures.append(f"values outside {{-1, 1}}: {sorted(support)}")
    n = len(samples)
    positive = int(np.count_nonzero(samples == 1))
    if not proportion_within(positive, n, 0.5):
        failures.append(f"+1 fraction {positive / n:.4f} (expected ~0.5)")
    return failures


# -- Scenarios ---------------------------------------------------------


@dataclass
class CheckScenario:
    """One sampling property to check."""

    name: str
    num_samples: int
    draw: Callable[[UniformSource], Any]
    validate: Callable[[np.ndarray], list[str]]
    description: str = ""
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "num_samples": self.num_samples,
            "description": self.description,
            "tags": list(self.tags),
        }


CHECK_SCENARIOS = [
    CheckScenario(
        "int_in_uniform",
        num_samples=100_000,
        draw=lambda rng: sampling.int_in(rng, 10),
        validate=_validate_uniform_ints(0, 10),
        description="int_in(10) stays in [0, 10) and passes chi-square",
        tags=["int"],
    ),
    CheckScenario(
        "int_in_ranged_uniform",
        num_samples=50_000,
        draw=lambda rng: sampling.int_in(rng, -3, 4),
        validate=_validate_uniform_ints(-3, 4),
        description="int_in(-3, 4) stays in [-3, 4) and passes chi-square",
        tags=["int"],
    ),
    CheckScenario(
        "int_in_wide_uniform",
        num_samples=200_000,
        draw=lambda rng: sampling.int_in(rng, 100),
        validate=_validate_uniform_ints(0, 100),
        description="int_in(100) stays in [0, 100) and passes chi-square",
        tags=["int"],
    ),
    CheckScenario(
        "long_value_sign_balance",
        num_samples=20_000,
        draw=sampling.long_value,
        validate=_validate_sign_balance,
        description="long_value() is negative about half the time",
        tags=["long"],
    ),
    CheckScenario(
        "long_in_range",
        num_samples=20_000,
        draw=lambda rng: sampling.long_in(rng, -(10**12), 10**12),
        validate=_validate_long_range,
        description="long_in(-1e12, 1e12) stays in range",
        tags=["long"],
    ),
    CheckScenario(
        "double_in_open_bound",
        num_samples=100_000,
        draw=lambda rng: sampling.double_in(rng, 1.0, 2.0),
        validate=_validate_half_open(1.0, 2.0),
        description="double_in(1, 2) never reaches 2",
        tags=["float"],
    ),
    CheckScenario(
        "double_in_negative_range",
        num_samples=20_000,
        draw=lambda rng: sampling.double_in(rng, -7.5, -2.5),
        validate=_validate_half_open(-7.5, -2.5),
        description="double_in(-7.5, -2.5) stays in range",
        tags=["float"],
    ),
    CheckScenario(
        "float32_exact",
        num_samples=50_000,
        draw=sampling.float32,
        validate=_validate_float32_exact,
        description="float32() is in [0, 1) and exact in single precision",
        tags=["float"],
    ),
    CheckScenario(
        "float32_in_open_bound",
        num_samples=50_000,
        draw=lambda rng: sampling.float32_in(rng, 0.25, 0.75),
        validate=_validate_half_open(0.25, 0.75),
        description="float32_in(0.25, 0.75) never reaches 0.75",
        tags=["float"],
    ),
    CheckScenario(
        "float32_in_inexact_bounds",
        num_samples=50_000,
        draw=lambda rng: sampling.float32_in(rng, 0.7, 0.9),
        validate=_validate_half_open(0.7, 0.9),
        description="float32_in(0.7, 0.9) stays in range though 0.7 and "
        "0.9 are not single-precision values",
        tags=["float"],
    ),
    CheckScenario(
        "boolean_clamps",
        num_samples=10_000,
        draw=lambda rng: (
            sampling.boolean(rng, 0.0),
            sampling.boolean(rng, 1.0),
        ),
        validate=_validate_boolean_clamps,
        description="boolean(0) is never true, boolean(1) always",
        tags=["bool"],
    ),
    CheckScenario(
        "boolean_half",
        num_samples=10_000,
        draw=sampling.boolean,
        validate=_validate_boolean_half,
        description="boolean() is true about half the time",
        tags=["bool"],
    ),
    CheckScenario(
        "discretise_2_3",
        num_samples=100_000,
        draw=lambda rng: sampling.discretise(rng, 2.3),
        validate=_validate_discretise(2.3),
        description="discretise(2.3) returns 3 about 30% of the time, else 2",
        tags=["discretise"],
    ),
    CheckScenario(
        "discretise_negative",
        num_samples=20_000,
        draw=lambda rng: sampling.discretise(rng, -1.75),
        validate=_validate_discretise(-1.75),
        description="discretise(-1.75) returns -1 about 25% of the time",
        tags=["discretise"],
    ),
    CheckScenario(
        "normal_standard",
        num_samples=50_000,
        draw=sampling.normal,
        validate=_validate_normal(0.0, 1.0),
        description="normal() has mean ~0 and std ~1",
        tags=["normal"],
    ),
    CheckScenario(
        "normal_shifted",
        num_samples=50_000,
        draw=lambda rng: sampling.normal(rng, 10.0, 3.0),
        validate=_validate_normal(10.0, 3.0),
        description="normal(10, 3) has mean ~10 and std ~3",
        tags=["normal"],
    ),
    CheckScenario(
        "normal_float32",
        num_samples=20_000,
        draw=lambda rng: sampling.normal_float32(rng, -2.0, 0.5),
        validate=_validate_normal(-2.0, 0.5),
        description="normal_float32(-2, 0.5) has mean ~-2 and std ~0.5",
        tags=["normal"],
    ),
    CheckScenario(
        "sign_balance",
        num_samples=10_000,
        draw=sampling.sign,
        validate=_validate_sign,
        description="sign() returns -1 and 1 equally often",
        tags=["sign"],
    ),
]


def get_scenario(name: str) -> Optional[CheckScenario]:
    for scenario in CHECK_SCENARIOS:
        if scenario.name == name:
            return scenario
    return None


# -- Determinism -------------------------------------------------------


def _replay(rng: UniformSource) -> list:
    """A fixed mix of operations, one of each."""
    return [
        sampling.int_value(rng),
        sampling.int_in(rng, 100),
        sampling.int_in(rng, -50, 50),
        sampling.long_value(rng),
        sampling.long_in(rng, 10**15),
        sampling.long_in(rng, -(10**15), 10**15),
        sampling.double(rng),
        sampling.double_in(rng, 5.0),
        sampling.double_in(rng, -1.0, 1.0),
        sampling.float32(rng),
        sampling.float32_in(rng, 3.0),
        sampling.float32_in(rng, -3.0, 3.0),
        sampling.normal(rng),
        sampling.normal(rng, 4.0, 2.0),
        sampling.normal_float32(rng),
        sampling.sign(rng),
        sampling.boolean(rng),
        sampling.boolean(rng, 0.9),
        sampling.discretise(rng, 7.6),
    ]


def determinism_failures(
    seed: int = DEFAULT_SEED, rounds: int = 50
) -> list[str]:
    """Replay the same operations on two fresh generators per source type.

    Returns one message per round whose outputs differ.
    """
    failures = []
    for make in (
        lambda: PCG32(seed),
        lambda: PCG32(seed, seq=7),
        lambda: RandomSource(seed),
    ):
        a, b = make(), make()
        name = type(a).__name__
        for i in range(rounds):
            out_a, out_b = _replay(a), _replay(b)
            if out_a != out_b:
                failures.append(f"{name} round {i}: {out_a} != {out_b}")
    return failures


# -- Running -----------------------------------------------------------


@dataclass
class CheckTiming:
    """Timing breakdown for a single check run."""

    draw_secs: float
    validate_secs: float

    @property
    def total_secs(self) -> float:
        return self.draw_secs + self.validate_secs


def run_check(
    scenario: CheckScenario,
    seed: int = DEFAULT_SEED,
    verbose: bool = False,
    make_source: Callable[[int], UniformSource] = PCG32,
) -> tuple[bool, list[str], CheckTiming | None]:
    """Draw a scenario's samples from a fresh generator and validate them.

    Args:
        scenario: The property to check.
        seed: Seed for the fresh generator.
        verbose: Print failures as they are found.
        make_source: Generator factory, called with ``seed``.

    Returns:
        (success: bool, failures: list of messages, timing or None on error)
    """
    failures = []
    rng = make_source(seed)

    try:
        t0 = time.perf_counter()
        samples = np.asarray(
            [scenario.draw(rng) for _ in range(scenario.num_samples)]
        )
        draw_secs = time.perf_counter() - t0
    except Exception as e:
        failures.append(f"sampling failed: {e!r}")
        return False, failures, None

    t0 = time.perf_counter()
    try:
        failures.extend(scenario.validate(samples))
    except Exception as e:
        failures.append(f"validation failed: {e!r}")
        return False, failures, None
    timing = CheckTiming(
        draw_secs=draw_secs, validate_secs=time.perf_counter() - t0
    )

    if verbose and failures:
        print(f"\n{scenario.name} failed:")
        for failure in failures:
            print(f"  - {failure}")

    return len(failures) == 0, failures, timing


def run_all(
    seed: int = DEFAULT_SEED, verbose: bool = False
) -> dict[str, tuple[bool, list[str], CheckTiming | None]]:
    """Run every scenario. Returns results keyed by scenario name."""
    return {
        scenario.name: run_check(scenario, seed=seed, verbose=verbose)
        for scenario in CHECK_SCENARIOS
    }


def format_result(
    name: str,
    success: bool,
    failures: list[str],
    timing: Optional[CheckTiming],
    verbose: bool,
) -> str:
    """Format a single scenario result as a printable string."""
    time_str = f"  ({timing.total_secs:.2f}s)" if timing else ""
    if success:
        return f"✓ {name}{time_str}"
    lines = [f"✗ {name}{time_str}"]
    if verbose:
        for failure in failures:
            lines.append(f"    {failure}")
    return "\n".join(lines)


def main():
    """CLI entry point with pytest-compatible exit codes."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Check sampling distributions against their contracts"
    )
    parser.add_argument("--scenario", type=str, help="Run one scenario")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument(
        "--sample-multiplier",
        type=int,
        default=1,
        metavar="N",
        help="Multiply num_samples for each scenario by N",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    parser.add_argument(
        "--fail-fast", action="store_true", help="Stop on first failure"
    )
    args = parser.parse_args()

    scenarios = [copy.copy(s) for s in CHECK_SCENARIOS]
    if args.sample_multiplier > 1:
        for s in scenarios:
            s.num_samples *= args.sample_multiplier
    if args.scenario:
        scenarios = [s for s in scenarios if s.name == args.scenario]
        if not scenarios:
            print(f"Scenario '{args.scenario}' not found")
            return 1

    passed = 0
    failed = 0
    for scenario in scenarios:
        success, failures, timing = run_check(
            scenario, seed=args.seed, verbose=args.verbose
        )
        print(
            format_result(
                scenario.name, success, failures, timing, args.verbose
            )
        )
        if success:
            passed += 1
        else:
            failed += 1
            if args.fail_fast:
                print(f"\n{passed} passed, {failed} failed (stopped early)")
                return 1

    replay = determinism_failures(args.seed)
    if replay:
        failed += 1
        print("✗ determinism")
        if args.verbose:
            for failure in replay:
                print(f"    {failure}")
    else:
        passed += 1
        print("✓ determinism")

    print(f"\n{passed} passed, {failed} failed")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
