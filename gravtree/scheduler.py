"""
Per-step orchestration: rebuild tree → parallel force phase → integrate.

The phases never overlap or reorder. Every force is computed against one
tree snapshot before any position moves, so a body's force does not depend
on the order bodies are evaluated in.
"""

import time
from dataclasses import dataclass
from typing import Optional

import numba
import numpy as np

from .body import BodySystem, check_masses
from .config import SimulationConfig
from .direct import potential_energy
from .errors import NumericalInstabilityError
from .forces import ForceEvaluator
from .integrator import (
    Integrator,
    euler_advance,
    leapfrog_advance,
    symplectic_euler_advance,
    validate_dt,
)
from .octree import SpatialTree


@dataclass
class StepStats:
    """Bookkeeping for the most recent step."""

    num_bodies: int = 0
    num_nodes: int = 0
    tree_depth: int = 0
    dt: float = 0.0
    build_time: float = 0.0
    force_time: float = 0.0
    integrate_time: float = 0.0

    @property
    def total_time(self) -> float:
        return self.build_time + self.force_time + self.integrate_time


class StepScheduler:
    """
    Owns the per-step tree and drives one simulation step at a time.

    Usage:
        scheduler = StepScheduler(SimulationConfig(G=1.0, theta=0.5))
        for _ in range(steps):
            scheduler.step(system, dt)
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config if config is not None else SimulationConfig()
        self.tree = SpatialTree(max_depth=self.config.max_depth)
        self.evaluator = ForceEvaluator(self.config)
        self.integrator = Integrator.from_config(self.config)
        self.last_stats = StepStats()
        self.steps_taken = 0
        self.elapsed = 0.0

        if self.config.verbose:
            threads = self.config.num_threads or numba.get_num_threads()
            print(f"[GravTree] Scheduler ready: θ={self.config.theta}, G={self.config.G}, "
                  f"integrator={self.config.integrator}, threads={threads}")

    def build_tree(self, system: BodySystem) -> SpatialTree:
        """Rebuild the octree from current positions (also usable on its own)."""
        return self.tree.build(system.positions, system.masses)

    def compute_forces(self, system: BodySystem) -> np.ndarray:
        """Rebuild the tree and fill `system.forces` without moving anything."""
        check_masses(system.masses)
        system.forces[:] = 0.0
        if self.config.method == "barnes_hut":
            self.build_tree(system)
        self.evaluator.accumulate_all(system, self.tree)
        return system.forces

    def step(self, system: BodySystem, dt: float) -> StepStats:
        """
        Advance every body by one step.

        Raises:
            InvalidTimeStepError: If dt is negative or non-finite (nothing is mutated)
            InvalidBodyError: If a mass was set to a non-positive or non-finite
                value since the bodies were added (nothing is mutated)
            NumericalInstabilityError: If body state or forces are non-finite
                (positions and velocities are left as they were)
        """
        return self._step(system, dt, count=True)

    def _step(self, system: BodySystem, dt: float, count: bool) -> StepStats:
        dt = validate_dt(dt)
        n = len(system)
        stats = StepStats(num_bodies=n, dt=dt)

        if n == 0:
            self.tree.build(system.positions, system.masses)
            if count:
                self.last_stats = stats
            return stats

        if not system.is_finite():
            raise NumericalInstabilityError("Body state contains NaN or Inf before step")
        check_masses(system.masses)

        # Phase 1: rebuild tree from current positions
        t0 = time.perf_counter()
        system.forces[:] = 0.0
        if self.config.method == "barnes_hut":
            self.build_tree(system)
        stats.num_nodes = self.tree.num_nodes
        stats.tree_depth = self.tree.depth
        t1 = time.perf_counter()

        # Phase 2: parallel force accumulation against the frozen tree (join on return)
        self.evaluator.accumulate_all(system, self.tree)
        t2 = time.perf_counter()

        if not np.all(np.isfinite(system.forces)):
            system.forces[:] = 0.0
            raise NumericalInstabilityError("Force accumulation produced NaN or Inf")

        # Phase 3: integrate
        stats.dt = self.integrator.advance(system, dt)
        t3 = time.perf_counter()

        stats.build_time = t1 - t0
        stats.force_time = t2 - t1
        stats.integrate_time = t3 - t2
        if not count:
            return stats

        self.last_stats = stats
        self.steps_taken += 1
        self.elapsed += stats.dt

        if self.config.verbose:
            print(f"[GravTree] Step {self.steps_taken}: {n:,} bodies, "
                  f"{stats.num_nodes:,} nodes (depth {stats.tree_depth}), "
                  f"{stats.total_time * 1000:.1f} ms")
        return stats

    def run(self, system: BodySystem, dt: float, steps: int) -> StepStats:
        """Take `steps` steps of size dt; returns the stats of the last one."""
        stats = self.last_stats
        for _ in range(steps):
            stats = self.step(system, dt)
        return stats

    def synchronize(self, system: BodySystem) -> StepStats:
        """
        Apply any pending leapfrog half-kick so velocities match positions.

        This is a zero-length step: forces at the current positions close
        the last kick and nothing moves. It is not counted in `steps_taken`
        and does not replace `last_stats`.
        """
        return self._step(system, 0.0, count=False)

    def warmup(self):
        """Compile every kernel on a tiny system so the first real step is fast."""
        start = time.perf_counter()
        rng = np.random.default_rng(0)
        n = 16
        system = BodySystem.from_arrays(
            rng.uniform(-10.0, 10.0, (n, 3)),
            rng.normal(0.0, 0.1, (n, 3)),
            np.ones(n),
        )
        scratch = StepScheduler(self.config.with_overrides(verbose=False))
        scratch.step(system, 0.01)
        ForceEvaluator(self.config.with_overrides(method="direct")).accumulate_all(system)
        kick = np.zeros(n)
        leapfrog_advance(system.positions, system.velocities, system.forces,
                         system.masses, kick, 0.0, 1.0)
        symplectic_euler_advance(system.positions, system.velocities, system.forces,
                                 system.masses, 0.0, 1.0)
        euler_advance(system.positions, system.velocities, system.forces,
                      system.masses, 0.0, 1.0)
        potential_energy(system.positions, system.masses, 1.0, 0.0, 0.0)

        if self.config.verbose:
            print(f"[GravTree] Kernels compiled in {time.perf_counter() - start:.2f}s")


__all__ = ["StepScheduler", "StepStats"]
