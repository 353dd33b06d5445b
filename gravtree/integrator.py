"""
Time integration of body state from accumulated forces.

Schemes:
- leapfrog: velocity Verlet in kick-drift-kick form. The closing half-kick
  of the previous step and the opening half-kick of this step both use the
  force at the current positions, so they are fused into one kick of
  (dt_prev + dt) / 2. Stored velocities run half a step ahead of positions;
  a zero-length step applies the pending half-kick and re-synchronizes them.
- symplectic_euler: velocity from the full-step acceleration, then position
  from the new velocity.
- euler: position from the old velocity, then velocity. Not symplectic;
  kept for energy-drift comparisons.

Every scheme applies damping and clears the force afterwards.
"""

import math
from typing import Optional

import numpy as np
from numba import njit, prange

from .config import INTEGRATORS, SimulationConfig
from .errors import InvalidConfigError, InvalidTimeStepError


@njit(parallel=True, fastmath=True, cache=True)
def leapfrog_advance(positions, velocities, forces, masses, kick_dt, dt, damping):
    """Fused half-kicks, then a full drift. `kick_dt[i]` is body i's previous dt."""
    for i in prange(positions.shape[0]):
        h = 0.5 * (kick_dt[i] + dt)
        inv_m = 1.0 / masses[i]
        for k in range(3):
            velocities[i, k] = (velocities[i, k] + forces[i, k] * inv_m * h) * damping
            positions[i, k] += velocities[i, k] * dt
            forces[i, k] = 0.0
        kick_dt[i] = dt


@njit(parallel=True, fastmath=True, cache=True)
def symplectic_euler_advance(positions, velocities, forces, masses, dt, damping):
    """Semi-implicit Euler: velocity first, then position."""
    for i in prange(positions.shape[0]):
        inv_m = 1.0 / masses[i]
        for k in range(3):
            velocities[i, k] = (velocities[i, k] + forces[i, k] * inv_m * dt) * damping
            positions[i, k] += velocities[i, k] * dt
            forces[i, k] = 0.0


@njit(parallel=True, fastmath=True, cache=True)
def euler_advance(positions, velocities, forces, masses, dt, damping):
    """Explicit Euler: position from the old velocity, then velocity."""
    for i in prange(positions.shape[0]):
        inv_m = 1.0 / masses[i]
        for k in range(3):
            positions[i, k] += velocities[i, k] * dt
            velocities[i, k] = (velocities[i, k] + forces[i, k] * inv_m * dt) * damping
            forces[i, k] = 0.0


def validate_dt(dt: float) -> float:
    """Reject negative or non-finite time deltas."""
    try:
        dt = float(dt)
    except (TypeError, ValueError):
        raise InvalidTimeStepError(f"Time step must be a number, got {dt!r}") from None
    if not math.isfinite(dt) or dt < 0:
        raise InvalidTimeStepError(f"Time step must be finite and non-negative, got {dt}")
    return dt


class Integrator:
    """Advances every body of a BodySystem by one time step."""

    def __init__(self, scheme: str = "leapfrog", damping: float = 1.0,
                 max_dt: Optional[float] = None):
        if scheme not in INTEGRATORS:
            raise InvalidConfigError(
                f"Unknown integrator: {scheme!r} (expected one of {INTEGRATORS})"
            )
        self.scheme = scheme
        self.damping = damping
        self.max_dt = max_dt
        # Previous dt per body for the fused leapfrog kick (0 = not yet kicked)
        self._kick_dt = np.zeros(0, dtype=np.float64)

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "Integrator":
        return cls(config.integrator, config.damping, config.max_dt)

    def clamp(self, dt: float) -> float:
        dt = validate_dt(dt)
        if self.max_dt is not None:
            dt = min(dt, self.max_dt)
        return dt

    def _sync_kick_state(self, n: int):
        # Bodies appended since the last step start unkicked
        if len(self._kick_dt) < n:
            grown = np.zeros(n, dtype=np.float64)
            grown[: len(self._kick_dt)] = self._kick_dt
            self._kick_dt = grown

    def advance(self, system, dt: float) -> float:
        """
        Update velocities and positions from `system.forces`, then zero the forces.

        Returns:
            The dt actually applied (after clamping to max_dt)
        """
        dt = self.clamp(dt)
        n = len(system)
        if n == 0:
            return dt
        self._advance_range(system, 0, n, dt)
        return dt

    def advance_body(self, system, index: int, dt: float) -> float:
        """Advance a single body; same update as `advance` restricted to one row."""
        dt = self.clamp(dt)
        if not 0 <= index < len(system):
            raise IndexError(f"Body index {index} out of range [0, {len(system)})")
        self._advance_range(system, index, index + 1, dt)
        return dt

    def _advance_range(self, system, start: int, end: int, dt: float):
        positions = system.positions[start:end]
        velocities = system.velocities[start:end]
        forces = system.forces[start:end]
        masses = system.masses[start:end]

        if self.scheme == "leapfrog":
            self._sync_kick_state(len(system))
            kick_dt = self._kick_dt[start:end]
            leapfrog_advance(positions, velocities, forces, masses, kick_dt, dt, self.damping)
        elif self.scheme == "symplectic_euler":
            symplectic_euler_advance(positions, velocities, forces, masses, dt, self.damping)
        else:
            euler_advance(positions, velocities, forces, masses, dt, self.damping)

    @property
    def synchronized(self) -> bool:
        """True when no leapfrog half-kick is pending (velocities match positions)."""
        return self.scheme != "leapfrog" or not np.any(self._kick_dt)

    def reset(self):
        """Forget pending half-kicks, e.g. after velocities were overwritten."""
        self._kick_dt = np.zeros(0, dtype=np.float64)


__all__ = [
    "Integrator",
    "euler_advance",
    "leapfrog_advance",
    "symplectic_euler_advance",
    "validate_dt",
]
