"""Conserved quantities and approximation error measurements."""

from typing import Dict, Sequence

import numpy as np

from .body import BodySystem
from .config import SimulationConfig
from .direct import direct_forces, potential_energy as _pairwise_potential
from .forces import ForceEvaluator
from .octree import SpatialTree


def kinetic_energy(system: BodySystem) -> float:
    return system.kinetic_energy()


def potential_energy(system: BodySystem, config: SimulationConfig) -> float:
    """Exact pairwise potential energy with the config's floor and softening."""
    if len(system) < 2:
        return 0.0
    return float(_pairwise_potential(
        system.positions, system.masses, config.G,
        config.min_distance, config.softening * config.softening,
    ))


def total_energy(system: BodySystem, config: SimulationConfig) -> float:
    return kinetic_energy(system) + potential_energy(system, config)


def linear_momentum(system: BodySystem) -> np.ndarray:
    return (system.masses[:, None] * system.velocities).sum(axis=0)


def center_of_mass(system: BodySystem) -> np.ndarray:
    if len(system) == 0:
        return np.zeros(3)
    return (system.masses[:, None] * system.positions).sum(axis=0) / system.total_mass()


def exact_forces(system: BodySystem, config: SimulationConfig) -> np.ndarray:
    """Direct-summation forces, returned as a new (n, 3) array."""
    forces = np.zeros((len(system), 3), dtype=np.float64)
    if len(system):
        direct_forces(system.positions, system.masses, forces, config.G,
                      config.min_distance, config.softening * config.softening)
    return forces


def tree_forces(system: BodySystem, config: SimulationConfig) -> np.ndarray:
    """Barnes-Hut forces, returned as a new (n, 3) array; the system is untouched."""
    tree = SpatialTree(max_depth=config.max_depth).build(system.positions, system.masses)
    saved = system.forces.copy()
    system.forces[:] = 0.0
    try:
        ForceEvaluator(config.with_overrides(method="barnes_hut")).accumulate_all(system, tree)
        return system.forces.copy()
    finally:
        system.forces[:] = saved


def per_body_force_error(approx: np.ndarray, exact: np.ndarray) -> np.ndarray:
    """|approx - exact| / |exact| for every body (0 where the exact force is 0)."""
    diff = np.linalg.norm(approx - exact, axis=1)
    norm = np.linalg.norm(exact, axis=1)
    out = np.zeros_like(norm)
    nonzero = norm > 0
    out[nonzero] = diff[nonzero] / norm[nonzero]
    return out


def relative_force_error(approx: np.ndarray, exact: np.ndarray) -> float:
    """Global relative error ||approx - exact|| / ||exact|| over all bodies."""
    norm = np.linalg.norm(exact)
    if norm == 0:
        return float(np.linalg.norm(approx))
    return float(np.linalg.norm(approx - exact) / norm)


def force_error_by_theta(
    system: BodySystem,
    config: SimulationConfig,
    thetas: Sequence[float],
) -> Dict[float, float]:
    """Relative error of the tree forces against direct summation, per theta."""
    exact = exact_forces(system, config)
    return {
        theta: relative_force_error(tree_forces(system, config.with_overrides(theta=theta)), exact)
        for theta in thetas
    }


__all__ = [
    "center_of_mass",
    "exact_forces",
    "force_error_by_theta",
    "kinetic_energy",
    "linear_momentum",
    "per_body_force_error",
    "potential_energy",
    "relative_force_error",
    "total_energy",
    "tree_forces",
]
