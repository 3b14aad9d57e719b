#!/usr/bin/env python3
"""Draw, check, time and profile the sampling operations.

Usage (from the repo root):
    python scripts/sample.py draw normal -n 5 --seed 42          # five N(0, 1) samples
    python scripts/sample.py draw int_in 1 7 -n 10               # ints in [1, 7)
    python scripts/sample.py draw boolean 0.2 --config cfg.json  # seed from a config file
    python scripts/sample.py check                               # all self-checks
    python scripts/sample.py -v check --scenario discretise_2_3
    python scripts/sample.py time --ops normal long_in           # median ns per call
    python scripts/sample.py profile --top 20                    # cProfile the checks
    python scripts/sample.py dump-json                           # scenario metadata as JSON
"""

import argparse
import cProfile
import json
import logging
import pstats
import statistics
import sys
import time
from pathlib import Path

# Add the repo root to path so rngkit imports without installing
SCRIPT_DIR = Path(__file__).resolve().parent
ROOT_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(ROOT_DIR))

from rngkit import holder, sampling  # noqa: E402
from rngkit.config import SamplingConfig, load_config  # noqa: E402
from rngkit_check.check import (  # noqa: E402
    CHECK_SCENARIOS,
    DEFAULT_SEED,
    determinism_failures,
    format_result,
    run_check,
)

# name -> (function, argument type, default arguments for timing)
OPERATIONS = {
    "int_value": (sampling.int_value, int, ()),
    "int_in": (sampling.int_in, int, (0, 100)),
    "long_value": (sampling.long_value, int, ()),
    "long_in": (sampling.long_in, int, (-(10**15), 10**15)),
    "double": (sampling.double, float, ()),
    "double_in": (sampling.double_in, float, (-1.0, 1.0)),
    "float32": (sampling.float32, float, ()),
    "float32_in": (sampling.float32_in, float, (-1.0, 1.0)),
    "normal": (sampling.normal, float, ()),
    "normal_float32": (sampling.normal_float32, float, ()),
    "sign": (sampling.sign, float, ()),
    "boolean": (sampling.boolean, float, ()),
    "discretise": (sampling.discretise, float, (2.3,)),
}


def _make_config(args) -> SamplingConfig:
    config = SamplingConfig()
    if args.config:
        config = load_config(Path(args.config))
    if args.seed is not None:
        config.seed = args.seed
    return config


def _select_operations(names):
    if not names:
        return list(OPERATIONS)
    unknown = [n for n in names if n not in OPERATIONS]
    if unknown:
        print(f"Unknown operation: {', '.join(unknown)}")
        print(f"Available: {', '.join(OPERATIONS)}")
        sys.exit(1)
    return names


def _select_scenarios(args):
    scenarios = list(CHECK_SCENARIOS)
    if args.scenario:
        scenarios = [s for s in scenarios if s.name == args.scenario]
        if not scenarios:
            names = [s.name for s in CHECK_SCENARIOS]
            print(f"Unknown scenario: {args.scenario}")
            print(f"Available: {', '.join(names)}")
            sys.exit(1)
    return scenarios


def cmd_draw(args):
    """Print samples of one operation."""
    (name,) = _select_operations([args.operation])
    fn, arg_type, _ = OPERATIONS[name]
    try:
        op_args = [arg_type(a) for a in args.args]
    except ValueError as e:
        print(f"Bad argument for {name}: {e}")
        sys.exit(1)

    holder.configure(_make_config(args))
    rng = holder.get_random()
    if name == "boolean" and not op_args:
        op_args = [holder.default_probability()]
    for _ in range(args.count):
        print(fn(rng, *op_args))


def cmd_check(args):
    """Run the sampling self-checks."""
    scenarios = _select_scenarios(args)
    passed = 0
    failed = 0
    total_time = 0.0
    for scenario in scenarios:
        success, failures, timing = run_check(scenario, seed=args.seed)
        print(
            format_result(
                scenario.name, success, failures, timing, args.verbose
            )
        )
        if timing:
            total_time += timing.total_secs
        if success:
            passed += 1
        else:
            failed += 1

    if not args.scenario:
        replay = determinism_failures(args.seed)
        print(format_result("determinism", not replay, replay, None, True))
        if replay:
            failed += 1
        else:
            passed += 1

    print(f"\n{passed} passed, {failed} failed ({total_time:.2f}s total)")
    if failed:
        sys.exit(1)


def cmd_time(args):
    """Time each operation on a seeded generator."""
    names = _select_operations(args.ops)
    calls = args.calls
    iterations = args.iterations
    rng = SamplingConfig(seed=args.seed).make_source()

    print(f"{'Operation':<20} {'ns/call':>10}")
    print("-" * 31)
    for name in names:
        fn, _, op_args = OPERATIONS[name]
        times = []
        for _ in range(iterations):
            start = time.perf_counter()
            for _ in range(calls):
                fn(rng, *op_args)
            elapsed = time.perf_counter() - start
            times.append(elapsed * 1e9 / calls)
        print(f"{name:<20} {statistics.median(times):>10.0f}")

    print(f"\n({iterations} iterations of {calls} calls, median reported)")


def cmd_profile(args):
    """cProfile the self-check scenarios."""
    scenarios = _select_scenarios(args)
    top_n = args.top or 30

    profiler = cProfile.Profile()
    for scenario in scenarios:
        print(
            f"Profiling: {scenario.name} ({scenario.num_samples} samples)..."
        )
        profiler.enable()
        run_check(scenario, seed=args.seed)
        profiler.disable()

    print(f"\n{'=' * 70}")
    print(f"Top {top_n} functions by cumulative time")
    print(f"{'=' * 70}\n")

    stats = pstats.Stats(profiler)
    stats.sort_stats("cumulative")
    stats.print_stats(top_n)

    if args.output:
        profiler.dump_stats(args.output)
        print(f"\nProfile data written to {args.output}")


def cmd_dump_json(args):
    """Print scenario metadata as JSON."""
    scenarios = _select_scenarios(args)
    print(json.dumps([s.to_dict() for s in scenarios], indent=2))


def main():
    parser = argparse.ArgumentParser(
        description="Sample from and check rngkit distributions"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Debug logging"
    )
    sub = parser.add_subparsers(dest="command")

    def add_seed(p):
        p.add_argument("--seed", type=int, help="Generator seed")

    def add_scenario(p):
        p.add_argument("--scenario", help="Run only this scenario (by name)")

    p_draw = sub.add_parser("draw", help="Print samples of an operation")
    p_draw.add_argument("operation", help=", ".join(OPERATIONS))
    p_draw.add_argument("args", nargs="*", help="Operation arguments")
    p_draw.add_argument("-n", "--count", type=int, default=1)
    p_draw.add_argument("--config", help="SamplingConfig JSON file")
    add_seed(p_draw)

    p_check = sub.add_parser("check", help="Run the sampling self-checks")
    add_scenario(p_check)
    p_check.add_argument("--seed", type=int, default=DEFAULT_SEED)

    p_time = sub.add_parser("time", help="Time each operation")
    p_time.add_argument("--ops", nargs="*", help="Operations to time")
    p_time.add_argument("--calls", type=int, default=10_000)
    p_time.add_argument("--iterations", type=int, default=5)
    p_time.add_argument("--seed", type=int, default=1)

    p_profile = sub.add_parser("profile", help="cProfile the self-checks")
    add_scenario(p_profile)
    p_profile.add_argument("--seed", type=int, default=DEFAULT_SEED)
    p_profile.add_argument(
        "--top", type=int, help="Number of top functions to show (default: 30)"
    )
    p_profile.add_argument(
        "--output", "-o", help="Write cProfile binary data to file"
    )

    p_dump = sub.add_parser("dump-json", help="Print scenarios as JSON")
    add_scenario(p_dump)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if args.command == "draw":
        cmd_draw(args)
    elif args.command == "check":
        cmd_check(args)
    elif args.command == "time":
        cmd_time(args)
    elif args.command == "profile":
        cmd_profile(args)
    elif args.command == "dump-json":
        cmd_dump_json(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
