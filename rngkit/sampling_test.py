"""Tests for the distribution synthesis layer.

Edge cases use ``ScriptedSource``, which replays fixed draws so rounding and
bit-layout behaviour can be pinned exactly. Distributional properties are
covered by ``rngkit_check``.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from rngkit import sampling
from rngkit.prng import PCG32, RandomSource


class ScriptedSource:
    """UniformSource that replays the given draws and fails when exhausted."""

    def __init__(self, u32s=(), floats=()):
        self.u32s = list(u32s)
        self.floats = list(floats)

    def next_u32(self) -> int:
        return self.u32s.pop(0)

    def next_float(self) -> float:
        return self.floats.pop(0)

    def next_below(self, bound: int) -> int:
        return self.next_u32() % bound

    def next_range(self, lo: int, hi: int) -> int:
        return lo + self.next_u32() % (hi - lo)

    @property
    def exhausted(self) -> bool:
        return not self.u32s and not self.floats


# -- Integers ----------------------------------------------------------


class TestIntValue:
    def test_excludes_int32_max(self):
        assert sampling.int_value(ScriptedSource(u32s=[0x7FFFFFFE])) == (
            2**31 - 2
        )
        assert sampling.int_value(ScriptedSource(u32s=[0x7FFFFFFF])) == 0

    def test_range(self):
        rng = PCG32(seed=4)
        for _ in range(1000):
            assert 0 <= sampling.int_value(rng) < 2**31 - 1


class TestIntIn:
    def test_single_bound(self):
        rng = PCG32(seed=1)
        for _ in range(1000):
            assert 0 <= sampling.int_in(rng, 13) < 13

    def test_two_bounds(self):
        rng = PCG32(seed=1)
        for _ in range(1000):
            assert -4 <= sampling.int_in(rng, -4, 9) < 9

    def test_passes_through_to_generator(self):
        rng = PCG32(seed=8)
        twin = PCG32(seed=8)
        assert sampling.int_in(rng, 10) == twin.next_below(10)
        assert sampling.int_in(rng, 2, 20) == twin.next_range(2, 20)

    @pytest.mark.parametrize("source", [PCG32(seed=1), RandomSource(seed=1)])
    def test_generator_errors_propagate(self, source):
        with pytest.raises(ValueError):
            sampling.int_in(source, 0)
        with pytest.raises(ValueError):
            sampling.int_in(source, 10, 3)


class TestLongValue:
    @pytest.mark.parametrize(
        "high, low, expected",
        [
            (0, 0, 0),
            (0, 1, 1),
            (1, 0, 2**32),
            (0x7FFFFFFF, 0xFFFFFFFF, 2**63 - 1),
            (0x80000000, 0, -(2**63)),
            (0xFFFFFFFF, 0xFFFFFFFF, -1),
        ],
    )
    def test_high_word_then_low_word(self, high, low, expected):
        rng = ScriptedSource(u32s=[high, low])
        assert sampling.long_value(rng) == expected
        assert rng.exhausted

    def test_full_signed_range(self):
        rng = PCG32(seed=11)
        values = [sampling.long_value(rng) for _ in range(2000)]
        assert all(-(2**63) <= v < 2**63 for v in values)
        assert any(v < 0 for v in values)
        assert any(v >= 0 for v in values)
        # Most draws need more than 32 bits.
        assert sum(abs(v) >= 2**32 for v in values) > 1900


class TestLongIn:
    def test_modulo_of_unsigned_draw(self):
        rng = ScriptedSource(u32s=[0, 7])
        assert sampling.long_in(rng, 5) == 2

    def test_never_negative_offset(self):
        # 2**64 - 1 is -1 as a signed value; the offset must still be >= 0.
        rng = ScriptedSource(u32s=[0xFFFFFFFF, 0xFFFFFFFF])
        assert sampling.long_in(rng, -10, 10) == 5

    def test_ranges(self):
        rng = PCG32(seed=12)
        for _ in range(1000):
            assert 0 <= sampling.long_in(rng, 10**17) < 10**17
            assert -(2**40) <= sampling.long_in(rng, -(2**40), 2**40) < 2**40

    def test_full_width_span(self):
        rng = PCG32(seed=13)
        for _ in range(200):
            v = sampling.long_in(rng, -(2**63), 2**63 - 1)
            assert -(2**63) <= v < 2**63 - 1

    def test_zero_span_not_defended(self):
        with pytest.raises(ZeroDivisionError):
            sampling.long_in(ScriptedSource(u32s=[1, 2]), 0)


# -- Floating point ----------------------------------------------------


class TestDouble:
    def test_pass_through(self):
        assert sampling.double(ScriptedSource(floats=[0.625])) == 0.625

    def test_scaled(self):
        assert sampling.double_in(ScriptedSource(floats=[0.5]), 4.0) == 2.0

    def test_ranged(self):
        rng = ScriptedSource(floats=[0.25])
        assert sampling.double_in(rng, -2.0, 6.0) == 0.0

    def test_rounding_up_to_hi_is_pulled_back(self):
        # 1 + (1 - 2**-53) rounds to 2.0 in double precision.
        rng = ScriptedSource(floats=[1.0 - 2.0**-53])
        value = sampling.double_in(rng, 1.0, 2.0)
        assert value < 2.0
        assert value == math.nextafter(2.0, 1.0)

    def test_open_upper_bound(self):
        rng = PCG32(seed=21)
        for _ in range(5000):
            assert 3.0 <= sampling.double_in(rng, 3.0, 3.5) < 3.5

    def test_overflowing_span_interpolates(self):
        assert sampling.double_in(
            ScriptedSource(floats=[0.0]), -1e308, 1e308
        ) == -1e308
        assert sampling.double_in(
            ScriptedSource(floats=[0.5]), -1e308, 1e308
        ) == 0.0

    def test_overflowing_span_spreads_samples(self):
        rng = PCG32(seed=24)
        values = [sampling.double_in(rng, -1e308, 1e308) for _ in range(100)]
        assert all(-1e308 <= v < 1e308 for v in values)
        assert len(set(values)) > 90

    def test_inverted_range_not_defended(self):
        rng = ScriptedSource(floats=[0.5])
        assert sampling.double_in(rng, 2.0, 1.0) == 1.5


class TestFloat32:
    def test_top_24_bits(self):
        assert sampling.float32(ScriptedSource(u32s=[0])) == 0.0
        assert sampling.float32(ScriptedSource(u32s=[0xFF])) == 0.0
        assert sampling.float32(ScriptedSource(u32s=[0xFFFFFFFF])) == (
            1.0 - 2.0**-24
        )

    def test_exact_in_single_precision(self):
        rng = PCG32(seed=22)
        for _ in range(1000):
            v = sampling.float32(rng)
            assert 0.0 <= v < 1.0
            assert float(np.float32(v)) == v

    def test_scaled(self):
        rng = ScriptedSource(u32s=[0x80000000])
        assert sampling.float32_in(rng, 3.0) == 1.5

    def test_ranged(self):
        rng = ScriptedSource(u32s=[0x40000000])
        assert sampling.float32_in(rng, 2.0, 6.0) == 3.0

    def test_rounding_up_to_hi_is_pulled_back(self):
        # 1 + (1 - 2**-24) rounds to 2.0 in single precision.
        rng = ScriptedSource(u32s=[0xFFFFFFFF])
        value = sampling.float32_in(rng, 1.0, 2.0)
        assert value == 2.0 - 2.0**-23

    def test_open_upper_bound(self):
        rng = PCG32(seed=23)
        for _ in range(5000):
            v = sampling.float32_in(rng, -1.0, 1.0)
            assert -1.0 <= v < 1.0
            assert float(np.float32(v)) == v

    def test_lower_bound_rounded_down_is_pushed_up(self):
        # float32(0.7) is just below 0.7.
        rng = ScriptedSource(u32s=[0])
        value = sampling.float32_in(rng, 0.7, 1.0)
        assert value >= 0.7
        assert value == float(
            np.nextafter(np.float32(0.7), np.float32(1.0))
        )

    def test_narrow_range_stays_inside_caller_bounds(self):
        rng = PCG32(seed=1)
        for _ in range(2000):
            v = sampling.float32_in(rng, 0.7, 0.7000001)
            assert 0.7 <= v < 0.7000001

    def test_overflowing_span_interpolates(self):
        rng = ScriptedSource(u32s=[0x80000000])
        assert sampling.float32_in(rng, -3e38, 3e38) == 0.0


# -- Normal distribution -----------------------------------------------


class TestNormal:
    def test_zero_uniform_never_reaches_log(self):
        # A zero draw maps to u1 = 1, so log(u1) is 0 and z is 0.
        rng = ScriptedSource(floats=[0.0, 0.0])
        assert sampling.normal(rng) == 0.0

    def test_box_muller_value(self):
        rng = ScriptedSource(floats=[0.5, 0.0])
        expected = math.sqrt(-2.0 * math.log(0.5))
        assert sampling.normal(rng) == pytest.approx(expected)

    def test_mean_and_deviation(self):
        rng = ScriptedSource(floats=[0.5, 0.5])
        expected = 3.0 + 2.0 * -math.sqrt(-2.0 * math.log(0.5))
        assert sampling.normal(rng, 3.0, 2.0) == pytest.approx(expected)

    def test_two_draws_per_sample(self):
        rng = ScriptedSource(floats=[0.1, 0.2])
        sampling.normal(rng)
        assert rng.exhausted

    def test_float32_variant(self):
        rng = ScriptedSource(floats=[0.3, 0.7])
        twin = ScriptedSource(floats=[0.3, 0.7])
        v = sampling.normal_float32(rng, 1.0, 0.5)
        assert v == float(np.float32(sampling.normal(twin, 1.0, 0.5)))

    def test_finite_over_many_draws(self):
        rng = PCG32(seed=31)
        samples = np.array([sampling.normal(rng) for _ in range(20_000)])
        assert np.all(np.isfinite(samples))
        assert abs(samples.mean()) < 0.05
        assert abs(samples.std() - 1.0) < 0.05


# -- Various -----------------------------------------------------------


class TestBoolean:
    @pytest.mark.parametrize("probability", [1.0, 1.5, float("inf")])
    def test_always_true_without_draw(self, probability):
        assert sampling.boolean(ScriptedSource(), probability) is True

    @pytest.mark.parametrize("probability", [0.0, -0.5, float("-inf")])
    def test_always_false_without_draw(self, probability):
        assert sampling.boolean(ScriptedSource(), probability) is False

    def test_compares_draw_against_probability(self):
        assert sampling.boolean(ScriptedSource(floats=[0.29]), 0.3) is True
        assert sampling.boolean(ScriptedSource(floats=[0.3]), 0.3) is False

    def test_default_is_half(self):
        assert sampling.boolean(ScriptedSource(floats=[0.49])) is True
        assert sampling.boolean(ScriptedSource(floats=[0.5])) is False

    def test_nan_is_false(self):
        rng = ScriptedSource(floats=[0.0])
        assert sampling.boolean(rng, float("nan")) is False

    def test_clamps_hold_for_many_trials(self):
        rng = PCG32(seed=41)
        assert not any(sampling.boolean(rng, 0.0) for _ in range(10_000))
        assert all(sampling.boolean(rng, 1.0) for _ in range(10_000))


class TestSign:
    def test_mapping(self):
        assert sampling.sign(ScriptedSource(floats=[0.49])) == 1
        assert sampling.sign(ScriptedSource(floats=[0.5])) == -1

    def test_values(self):
        rng = PCG32(seed=51)
        assert {sampling.sign(rng) for _ in range(1000)} == {-1, 1}


class TestDiscretise:
    def test_ceil_below_fraction(self):
        assert sampling.discretise(ScriptedSource(floats=[0.29]), 2.3) == 3

    def test_floor_above_fraction(self):
        assert sampling.discretise(ScriptedSource(floats=[0.31]), 2.3) == 2

    def test_negative_value(self):
        assert sampling.discretise(ScriptedSource(floats=[0.1]), -1.75) == -1
        assert sampling.discretise(ScriptedSource(floats=[0.9]), -1.75) == -2

    def test_integral_value(self):
        rng = ScriptedSource(floats=[0.0])
        assert sampling.discretise(rng, 5.0) == 5
        assert rng.exhausted

    def test_returns_int(self):
        assert isinstance(
            sampling.discretise(ScriptedSource(floats=[0.5]), 0.7), int
        )

    def test_expectation(self):
        rng = PCG32(seed=61)
        values = [sampling.discretise(rng, 2.3) for _ in range(100_000)]
        assert set(values) <= {2, 3}
        assert sum(values) / len(values) == pytest.approx(2.3, abs=0.01)

    @pytest.mark.parametrize(
        "value, error",
        [(float("inf"), OverflowError), (float("nan"), ValueError)],
    )
    def test_non_finite_raises(self, value, error):
        with pytest.raises(error):
            sampling.discretise(ScriptedSource(floats=[0.5]), value)


class TestDeterminism:
    def test_same_seed_same_samples(self):
        def run(rng):
            return [
                sampling.int_in(rng, 100),
                sampling.long_value(rng),
                sampling.double_in(rng, -1.0, 1.0),
                sampling.float32(rng),
                sampling.normal(rng),
                sampling.sign(rng),
                sampling.boolean(rng, 0.25),
                sampling.discretise(rng, 0.5),
            ]

        a = PCG32(seed=2024)
        b = PCG32(seed=2024)
        for _ in range(50):
            assert run(a) == run(b)
