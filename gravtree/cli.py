"""
Headless benchmark runner.

Generates a scene from a preset, steps it, and reports per-step timing and
energy drift. Nothing is written to disk.

Usage:
    python -m gravtree                          # Default preset (galaxy)
    python -m gravtree --preset solar --steps 50
    python -m gravtree -n 50k --theta 0.7       # Override body count and theta
    python -m gravtree --error                  # Force error vs. theta table
    python -m gravtree --list                   # List presets
"""

import argparse
import sys
import time

from .config import PRESETS, SimulationConfig
from .diagnostics import force_error_by_theta, total_energy
from .errors import GravTreeError
from .scenes import generate
from .scheduler import StepScheduler


def parse_number(value: str) -> int:
    """Parse number with optional suffix (k, m, K, M)."""
    value = value.strip().lower()
    multipliers = {'k': 1_000, 'm': 1_000_000}

    for suffix, mult in multipliers.items():
        if value.endswith(suffix):
            return int(float(value[:-1]) * mult)

    return int(value)


def format_time(seconds: float) -> str:
    """Format a duration, in milliseconds below one second."""
    if seconds < 1.0:
        return f"{seconds * 1000:.1f}ms"
    if seconds < 90:
        return f"{seconds:.1f}s"
    return f"{seconds / 60:.1f}m"


def list_presets():
    print(f"\n[List] {len(PRESETS)} preset(s):\n")
    for key, preset in PRESETS.items():
        print(f"  {key:<10s} {preset['name']:<20s} {preset['num_bodies']:>8,} bodies  "
              f"{preset['description']}")
    print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Barnes-Hut N-body benchmark runner")
    parser.add_argument("--preset", "-p", type=str, default="galaxy", help="Preset name (see --list)")
    parser.add_argument("--list", action="store_true", help="List presets and exit")
    parser.add_argument("--bodies", "-n", type=str, help="Override number of bodies (e.g., 5000, 20k)")
    parser.add_argument("--steps", "-s", type=int, default=20, help="Number of steps to run")
    parser.add_argument("--theta", "-t", type=float, help="Override Barnes-Hut theta")
    parser.add_argument("--dt", type=float, help="Override time step")
    parser.add_argument("--integrator", choices=["leapfrog", "symplectic_euler", "euler"],
                        help="Override integration scheme")
    parser.add_argument("--threads", type=int, help="Cap numba threads for the force phase")
    parser.add_argument("--seed", type=int, default=0, help="Random seed for the scene")
    parser.add_argument("--error", action="store_true",
                        help="Print force error vs. direct summation for several theta values")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only print the summary")
    return parser


def run(args) -> int:
    if args.preset not in PRESETS:
        print(f"[Run] Unknown preset: {args.preset}")
        print("[Run] Available presets:")
        for key in sorted(PRESETS):
            print(f"  - {key}")
        return 2

    preset = dict(PRESETS[args.preset])
    overrides = {}
    if args.bodies:
        try:
            preset["num_bodies"] = parse_number(args.bodies)
        except ValueError:
            print(f"[Run] Invalid bodies value: {args.bodies}")
            return 2
    if args.theta is not None:
        overrides["theta"] = args.theta
    if args.dt is not None:
        preset["dt"] = args.dt
    if args.integrator:
        overrides["integrator"] = args.integrator
    if args.threads:
        overrides["num_threads"] = args.threads

    try:
        config = SimulationConfig.from_preset(args.preset, **overrides)
        system = generate(
            preset["distribution"],
            preset["num_bodies"],
            spawn_radius=preset.get("spawn_radius", 500.0),
            G=config.G,
            seed=args.seed,
        )
    except GravTreeError as e:
        print(f"[Run] Invalid configuration: {e}")
        return 2

    dt = preset["dt"]
    print(f"[Run] Preset: {preset['name']} ({args.preset})")
    print(f"[Run] Bodies: {len(system):,}, θ={config.theta}, dt={dt}, integrator={config.integrator}")

    scheduler = StepScheduler(config)
    start = time.perf_counter()
    scheduler.warmup()
    print(f"[Run] Kernels ready in {format_time(time.perf_counter() - start)}")

    if args.error:
        thetas = (0.3, 0.5, 0.7, 1.0)
        print("[Run] Force error vs. direct summation:")
        for theta, err in force_error_by_theta(system, config, thetas).items():
            print(f"  θ={theta:<4} relative error {err:.3e}")

    e0 = total_energy(system, config)
    start = time.perf_counter()
    try:
        for i in range(args.steps):
            stats = scheduler.step(system, dt)
            if not args.quiet:
                print(f"[Run] Step {i + 1:4d}/{args.steps} | nodes {stats.num_nodes:>8,} | "
                      f"depth {stats.tree_depth:2d} | build {format_time(stats.build_time):>7s} | "
                      f"force {format_time(stats.force_time):>7s} | "
                      f"integrate {format_time(stats.integrate_time):>7s}")
        scheduler.synchronize(system)
    except GravTreeError as e:
        print(f"[Run] Step failed: {e}")
        return 1
    except KeyboardInterrupt:
        print(f"\n[Run] Interrupted after {scheduler.steps_taken} steps")
        return 130

    elapsed = time.perf_counter() - start
    e1 = total_energy(system, config)
    drift = abs((e1 - e0) / e0) if e0 != 0 else abs(e1)
    print(f"[Run] ✓ {args.steps} steps in {format_time(elapsed)} "
          f"({format_time(elapsed / max(args.steps, 1))}/step)")
    print(f"[Run] Relative energy drift: {drift:.3e}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.list:
        list_presets()
        return 0
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
