"""
Initial-condition generators.

Each generator returns a fresh BodySystem. All accept a `seed` so runs are
reproducible.

Distributions:
- solar: one heavy star with randomly placed planets (SI units)
- galaxy: rotating exponential disk with a softened rotation curve
- sphere: cold uniform sphere
- uniform: bodies scattered through a cube
- collision: two disks on a collision course
- binary: light body on a circular orbit around a heavy one
"""

from typing import Optional

import numpy as np

from .body import BodySystem, color_for_body

STAR_COLOR = (1.0, 0.9, 0.2)


def compute_rotation_curve(r: np.ndarray, masses: np.ndarray, G: float, softening: float) -> np.ndarray:
    """
    Circular velocity for a softened self-gravitating disk.

    Uses the sorted enclosed mass with a Plummer-like curve
    v_c = sqrt(G * M_enc * r^2 / (r^2 + eps^2)^(3/2)), which goes to zero
    at r = 0 and approaches Keplerian at large r.
    """
    sort_idx = np.argsort(r)
    sorted_r = r[sort_idx]
    enclosed = np.cumsum(masses[sort_idx])

    eps_sq = (softening * 2) ** 2
    r_sq = sorted_r ** 2
    v_circular = np.sqrt(G * enclosed * r_sq / (r_sq + eps_sq) ** 1.5)

    inverse_idx = np.argsort(sort_idx)
    return v_circular[inverse_idx]


def solar_system(num_planets: int = 100, seed: Optional[int] = None) -> BodySystem:
    """Sun-like star at the origin plus planets with mass scaled by radius."""
    rng = np.random.default_rng(seed)
    system = BodySystem(capacity=num_planets + 1)
    system.add_body((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 1.989e30, radius=2.0, color=STAR_COLOR)

    for i in range(num_planets):
        position = rng.uniform(-5e7, 5e7, 3)
        velocity = rng.uniform(-1e4, 1e4, 3)
        radius = 1e8 + (i % 10) * 1e7
        mass = 5.97e24 * (radius / 1e8)
        system.add_body(position, velocity, mass, radius=radius,
                        color=color_for_body(mass, radius))
    return system


def _disk(rng, n: int, R: float, G: float, scale: float):
    """Positions, velocities and masses of one rotating disk centered at the origin."""
    softening = R * 0.03
    r = rng.exponential(R * scale, n)
    # Soft truncation instead of a hard clip
    r = r * (1 - np.exp(-R * 1.2 / (r + 0.01)))
    r = np.maximum(r, R * 0.001)
    theta = rng.uniform(0, 2 * np.pi, n)
    masses = np.ones(n, dtype=np.float64)

    positions = np.zeros((n, 3), dtype=np.float64)
    positions[:, 0] = r * np.cos(theta)
    positions[:, 1] = rng.normal(0, 1, n) * R * 0.012 * (1 + (r / R) ** 0.5 * 0.3)
    positions[:, 2] = r * np.sin(theta)

    speed = compute_rotation_curve(r, masses, G, softening)
    velocities = np.zeros((n, 3), dtype=np.float64)
    velocities[:, 0] = -speed * np.sin(theta)
    velocities[:, 2] = speed * np.cos(theta)

    # Velocity dispersion, small at the center
    sigma = speed * 0.10 * r / (r + softening * 2) + 1e-6
    velocities[:, 0] += rng.normal(0, sigma, n)
    velocities[:, 2] += rng.normal(0, sigma, n)
    velocities[:, 1] = rng.normal(0, sigma * 0.25, n)
    return positions, velocities, masses


def galaxy(n: int, spawn_radius: float = 500.0, G: float = 0.1,
           seed: Optional[int] = None) -> BodySystem:
    """Rotating exponential disk galaxy in the XZ plane."""
    rng = np.random.default_rng(seed)
    positions, velocities, masses = _disk(rng, n, spawn_radius, G, 0.3)
    return BodySystem.from_arrays(positions, velocities, masses)


def collision(n: int, spawn_radius: float = 700.0, G: float = 0.12,
              seed: Optional[int] = None) -> BodySystem:
    """Two disks approaching each other along x, slightly offset in y."""
    rng = np.random.default_rng(seed)
    half = n // 2
    R = spawn_radius

    pos1, vel1, m1 = _disk(rng, half, R * 0.5, G, 0.25)
    pos2, vel2, m2 = _disk(rng, n - half, R * 0.5, G, 0.25)
    pos1[:, 0] -= R * 0.7
    pos2[:, 0] += R * 0.7
    pos2[:, 1] += R * 0.12
    vel1[:, 0] += 1.2
    vel2[:, 0] -= 1.2

    return BodySystem.from_arrays(
        np.vstack([pos1, pos2]), np.vstack([vel1, vel2]), np.concatenate([m1, m2])
    )


def sphere(n: int, spawn_radius: float = 300.0, G: float = 0.1,
           seed: Optional[int] = None) -> BodySystem:
    """Uniform sphere with small random velocities."""
    rng = np.random.default_rng(seed)
    phi = rng.uniform(0, 2 * np.pi, n)
    cos_theta = rng.uniform(-1, 1, n)
    sin_theta = np.sqrt(1 - cos_theta ** 2)
    r = spawn_radius * 0.8 * np.cbrt(rng.uniform(0, 1, n))

    positions = np.zeros((n, 3), dtype=np.float64)
    positions[:, 0] = r * sin_theta * np.cos(phi)
    positions[:, 1] = r * sin_theta * np.sin(phi)
    positions[:, 2] = r * cos_theta
    velocities = rng.normal(0, 0.5, (n, 3))
    return BodySystem.from_arrays(positions, velocities, np.ones(n))


def uniform(n: int, spawn_radius: float = 500.0, G: float = 0.1,
            seed: Optional[int] = None) -> BodySystem:
    """Bodies uniformly distributed in a cube with unit-variance velocities."""
    rng = np.random.default_rng(seed)
    positions = (rng.random((n, 3)) - 0.5) * 2 * spawn_radius * 0.8
    velocities = rng.normal(0, 1.0, (n, 3))
    return BodySystem.from_arrays(positions, velocities, np.ones(n))


def circular_binary(central_mass: float = 1.0, orbiting_mass: float = 1e-3,
                    separation: float = 1.0, G: float = 1.0) -> BodySystem:
    """Two bodies on circular orbits about their common center of mass."""
    total = central_mass + orbiting_mass
    v_rel = np.sqrt(G * total / separation)

    system = BodySystem(capacity=2)
    system.add_body(
        (-separation * orbiting_mass / total, 0.0, 0.0),
        (0.0, -v_rel * orbiting_mass / total, 0.0),
        central_mass, radius=0.1, color=STAR_COLOR,
    )
    system.add_body(
        (separation * central_mass / total, 0.0, 0.0),
        (0.0, v_rel * central_mass / total, 0.0),
        orbiting_mass, radius=0.01,
    )
    return system


DISTRIBUTIONS = {
    "solar": "Heavy star with random planets (SI units)",
    "galaxy": "Rotating exponential disk",
    "collision": "Two galaxies colliding",
    "sphere": "Uniform spherical distribution",
    "uniform": "Uniform cube",
    "binary": "Circular two-body orbit",
}


def generate(distribution: str, n: int, spawn_radius: float = 500.0, G: float = 0.1,
             seed: Optional[int] = None) -> BodySystem:
    """Build a scene by distribution name."""
    if distribution == "solar":
        return solar_system(max(n - 1, 0), seed=seed)
    if distribution == "galaxy":
        return galaxy(n, spawn_radius, G, seed=seed)
    if distribution == "collision":
        return collision(n, spawn_radius, G, seed=seed)
    if distribution == "sphere":
        return sphere(n, spawn_radius, G, seed=seed)
    if distribution == "uniform":
        return uniform(n, spawn_radius, G, seed=seed)
    if distribution == "binary":
        return circular_binary(G=G)
    raise ValueError(
        f"Unknown distribution: {distribution!r} (available: {', '.join(DISTRIBUTIONS)})"
    )


__all__ = [
    "DISTRIBUTIONS",
    "circular_binary",
    "collision",
    "compute_rotation_curve",
    "galaxy",
    "generate",
    "solar_system",
    "sphere",
    "uniform",
]
