"""Configuration for the Barnes-Hut gravity core."""

import math
from dataclasses import dataclass, fields, replace
from typing import Dict, Optional

from .errors import InvalidConfigError

# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

GRAVITATIONAL_CONSTANT = 6.67430e-11  # m^3 kg^-1 s^-2

INTEGRATORS = ("leapfrog", "symplectic_euler", "euler")
METHODS = ("barnes_hut", "direct")

# =============================================================================
# DEFAULTS - SI units, one heavy star with planets (see scenes.solar_system)
# =============================================================================

NBODY = {
    # Physics parameters
    "G": GRAVITATIONAL_CONSTANT,   # Gravitational constant
    "theta": 0.5,                  # Barnes-Hut opening angle (0 = exact, 1+ = coarse)
    "min_distance": 1.0,           # Pairs closer than this exert no force
    "softening": 0.0,              # Plummer softening length (0 = pure Newtonian)
    "damping": 1.0,                # No damping - pure Newtonian physics

    # Octree
    "max_depth": 48,               # Leaves at this depth coalesce instead of splitting

    # Integration
    "integrator": "leapfrog",      # "leapfrog", "symplectic_euler" or "euler"
    "max_dt": None,                # Clamp for wall-clock deltas (None = no clamp)

    # Parallel force phase
    "chunk_size": 256,             # Bodies per parallel task
    "num_threads": None,           # None = numba default (all cores)
}

# =============================================================================
# PRESETS - visualization units follow the galaxy scenes (G tuned for display)
# =============================================================================

PRESETS: Dict[str, dict] = {}

PRESETS["solar"] = {
    "name": "Solar System",
    "description": "Heavy star with a hundred planets, SI units",
    "distribution": "solar",
    "num_bodies": 101,
    "dt": 10.0,
}

PRESETS["galaxy"] = {
    "name": "Disk Galaxy",
    "description": "Rotating exponential disk",
    "distribution": "galaxy",
    "num_bodies": 20_000,
    "spawn_radius": 500.0,
    "G": 0.1,
    "theta": 0.8,
    "min_distance": 1e-3,
    "softening": 2.0,
    "dt": 0.02,
}

PRESETS["collision"] = {
    "name": "Galactic Collision",
    "description": "Two disks on a collision course",
    "distribution": "collision",
    "num_bodies": 20_000,
    "spawn_radius": 700.0,
    "G": 0.12,
    "theta": 0.75,
    "min_distance": 1e-3,
    "softening": 2.0,
    "dt": 0.02,
}

PRESETS["sphere"] = {
    "name": "Uniform Sphere",
    "description": "Cold uniform sphere collapsing under its own gravity",
    "distribution": "sphere",
    "num_bodies": 10_000,
    "spawn_radius": 300.0,
    "G": 0.1,
    "theta": 0.7,
    "min_distance": 1e-3,
    "softening": 1.5,
    "dt": 0.02,
}

# PRESET: FAST - coarse opening angle, interactive frame rates
PRESETS["fast"] = {
    "name": "Fast",
    "description": "Coarse approximation for large body counts",
    "distribution": "galaxy",
    "num_bodies": 50_000,
    "spawn_radius": 500.0,
    "G": 0.1,
    "theta": 1.0,
    "min_distance": 1e-3,
    "softening": 2.0,
    "integrator": "symplectic_euler",
    "dt": 0.02,
}

# PRESET: ACCURATE - small opening angle, close to direct summation
PRESETS["accurate"] = {
    "name": "Accurate",
    "description": "Fine approximation for error studies",
    "distribution": "sphere",
    "num_bodies": 2_000,
    "spawn_radius": 100.0,
    "G": 1.0,
    "theta": 0.3,
    "min_distance": 1e-6,
    "softening": 0.05,
    "dt": 0.001,
}


@dataclass(frozen=True)
class SimulationConfig:
    """
    Tunables for one simulation, passed explicitly to the scheduler.

    Attributes:
        G: Gravitational constant
        theta: Opening angle; half_extent / distance below this approximates a node
        min_distance: Softening floor; closer nodes contribute nothing
        softening: Plummer softening length added in quadrature to the distance
        max_depth: Deepest octree level; leaves there coalesce extra bodies
        integrator: One of INTEGRATORS
        damping: Velocity multiplier applied every step (1.0 = none)
        max_dt: Upper clamp for dt, or None
        chunk_size: Bodies per parallel force task
        num_threads: Numba thread cap for the force phase, or None
        method: "barnes_hut" or "direct" (exact pairwise reference)
        verbose: Print [GravTree] progress lines
    """

    G: float = GRAVITATIONAL_CONSTANT
    theta: float = 0.5
    min_distance: float = 1.0
    softening: float = 0.0
    max_depth: int = 48
    integrator: str = "leapfrog"
    damping: float = 1.0
    max_dt: Optional[float] = None
    chunk_size: int = 256
    num_threads: Optional[int] = None
    method: str = "barnes_hut"
    verbose: bool = False

    def __post_init__(self):
        if not math.isfinite(self.G) or self.G <= 0:
            raise InvalidConfigError(f"G must be positive and finite, got {self.G}")
        if not math.isfinite(self.theta) or self.theta < 0:
            raise InvalidConfigError(f"theta must be non-negative, got {self.theta}")
        if not math.isfinite(self.min_distance) or self.min_distance < 0:
            raise InvalidConfigError(
                f"min_distance must be non-negative, got {self.min_distance}"
            )
        if not math.isfinite(self.softening) or self.softening < 0:
            raise InvalidConfigError(f"softening must be non-negative, got {self.softening}")
        if not 1 <= self.max_depth <= 1000:
            raise InvalidConfigError(f"max_depth must be in [1, 1000], got {self.max_depth}")
        if self.integrator not in INTEGRATORS:
            raise InvalidConfigError(
                f"Unknown integrator: {self.integrator!r} (expected one of {INTEGRATORS})"
            )
        if not 0 < self.damping <= 1:
            raise InvalidConfigError(f"damping must be in (0, 1], got {self.damping}")
        if self.max_dt is not None and not (math.isfinite(self.max_dt) and self.max_dt > 0):
            raise InvalidConfigError(f"max_dt must be positive, got {self.max_dt}")
        if self.chunk_size < 1:
            raise InvalidConfigError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.num_threads is not None and self.num_threads < 1:
            raise InvalidConfigError(f"num_threads must be >= 1, got {self.num_threads}")
        if self.method not in METHODS:
            raise InvalidConfigError(
                f"Unknown method: {self.method!r} (expected one of {METHODS})"
            )

    @classmethod
    def from_dict(cls, cfg: dict) -> "SimulationConfig":
        """Build a config from a parameter dict, ignoring unrelated keys."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in cfg.items() if k in names})

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "SimulationConfig":
        """Build a config from NBODY defaults, a named preset, then overrides."""
        if name not in PRESETS:
            raise InvalidConfigError(
                f"Unknown preset: {name!r} (available: {', '.join(sorted(PRESETS))})"
            )
        return cls.from_dict({**NBODY, **PRESETS[name], **overrides})

    def with_overrides(self, **overrides) -> "SimulationConfig":
        """Copy of this config with some fields replaced."""
        return replace(self, **overrides)


__all__ = [
    "GRAVITATIONAL_CONSTANT",
    "INTEGRATORS",
    "METHODS",
    "NBODY",
    "PRESETS",
    "SimulationConfig",
]
