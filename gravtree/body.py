"""
Body state storage.

Bodies are kept as a structure of arrays (one float64 row per body) so the
compiled kernels can read and write them directly. The octree refers to
bodies only by their row index.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence

import numpy as np

from .errors import InvalidBodyError


def color_for_body(mass: float, radius: float) -> tuple:
    """
    Display color from mass and radius.

    Small, light bodies are blue, medium bodies cyan to yellow and heavy
    bodies red; larger radii wash the color toward white. Masses are
    assumed to span roughly 1e0..1e30 and radii 1e0..1e10.
    """
    mass_scale = min(max(math.log10(mass) / 30.0, 0.0), 1.0) if mass > 0 else 0.0
    radius_scale = min(max(math.log10(radius) / 10.0, 0.0), 1.0) if radius > 0 else 0.0

    if mass_scale < 0.3:
        color = _mix((0.0, 0.0, 1.0), (0.0, 1.0, 1.0), mass_scale / 0.3)
    elif mass_scale < 0.7:
        color = _mix((0.0, 1.0, 1.0), (1.0, 1.0, 0.0), (mass_scale - 0.3) / 0.4)
    else:
        color = _mix((1.0, 1.0, 0.0), (1.0, 0.0, 0.0), (mass_scale - 0.7) / 0.3)

    return _mix(color, (1.0, 1.0, 1.0), radius_scale)


def _mix(a, b, t):
    return tuple(x + (y - x) * t for x, y in zip(a, b))


@dataclass
class Body:
    """A point mass. `radius` and `color` are carried for rendering only."""

    position: np.ndarray
    velocity: np.ndarray
    mass: float
    radius: float = 1.0
    color: Optional[tuple] = None
    force: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.velocity = np.asarray(self.velocity, dtype=np.float64).reshape(3)
        self.force = np.asarray(self.force, dtype=np.float64).reshape(3)
        self.mass = float(self.mass)
        self.radius = float(self.radius)
        validate_body(self.position, self.velocity, self.mass, self.radius)
        if self.color is None:
            self.color = color_for_body(self.mass, self.radius)


def validate_body(position, velocity, mass: float, radius: float) -> None:
    """Reject a body that would poison the octree aggregates."""
    if not math.isfinite(mass) or mass <= 0:
        raise InvalidBodyError(f"Body mass must be positive and finite, got {mass}")
    if not math.isfinite(radius) or radius < 0:
        raise InvalidBodyError(f"Body radius must be non-negative, got {radius}")
    if not np.all(np.isfinite(position)):
        raise InvalidBodyError(f"Body position must be finite, got {position}")
    if not np.all(np.isfinite(velocity)):
        raise InvalidBodyError(f"Body velocity must be finite, got {velocity}")


def check_masses(masses: np.ndarray) -> None:
    """Raise InvalidBodyError naming the first non-positive or non-finite mass."""
    bad = ~np.isfinite(masses) | (masses <= 0)
    if np.any(bad):
        i = int(np.argmax(bad))
        raise InvalidBodyError(f"Body {i}: mass must be positive and finite, got {masses[i]}")


class BodySystem:
    """
    Ordered, growable collection of bodies.

    Arrays are over-allocated and the live rows are exposed as views, so
    appending a body is amortized O(1). Views returned by `positions` etc.
    are invalidated by `add_body`; fetch them again after adding.
    """

    def __init__(self, capacity: int = 16):
        capacity = max(int(capacity), 1)
        self._n = 0
        self._positions = np.zeros((capacity, 3), dtype=np.float64)
        self._velocities = np.zeros((capacity, 3), dtype=np.float64)
        self._forces = np.zeros((capacity, 3), dtype=np.float64)
        self._masses = np.zeros(capacity, dtype=np.float64)
        self._radii = np.zeros(capacity, dtype=np.float64)
        self._colors = np.zeros((capacity, 3), dtype=np.float32)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_arrays(
        cls,
        positions: np.ndarray,
        velocities: np.ndarray,
        masses: np.ndarray,
        radii: Optional[np.ndarray] = None,
        colors: Optional[np.ndarray] = None,
    ) -> "BodySystem":
        """Build a system from (n, 3) position/velocity and (n,) mass arrays."""
        positions = np.asarray(positions, dtype=np.float64)
        velocities = np.asarray(velocities, dtype=np.float64)
        masses = np.asarray(masses, dtype=np.float64)
        n = len(masses)
        if n == 0 and positions.size == 0 and velocities.size == 0:
            return cls()

        if positions.shape != (n, 3) or velocities.shape != (n, 3):
            raise InvalidBodyError(
                f"Expected positions and velocities of shape ({n}, 3), "
                f"got {positions.shape} and {velocities.shape}"
            )
        if masses.ndim != 1:
            raise InvalidBodyError(f"Expected masses of shape ({n},), got {masses.shape}")
        if radii is None:
            radii = np.ones(n, dtype=np.float64)
        radii = np.asarray(radii, dtype=np.float64)
        if radii.shape != (n,):
            raise InvalidBodyError(f"Expected radii of shape ({n},), got {radii.shape}")

        check_masses(masses)
        bad_radius = ~np.isfinite(radii) | (radii < 0)
        if np.any(bad_radius):
            i = int(np.argmax(bad_radius))
            raise InvalidBodyError(f"Body {i}: radius must be non-negative, got {radii[i]}")
        for name, arr in (("position", positions), ("velocity", velocities)):
            bad = ~np.all(np.isfinite(arr), axis=1)
            if np.any(bad):
                i = int(np.argmax(bad))
                raise InvalidBodyError(f"Body {i}: {name} must be finite, got {arr[i]}")

        system = cls(capacity=max(n, 16))
        system._positions[:n] = positions
        system._velocities[:n] = velocities
        system._masses[:n] = masses
        system._radii[:n] = radii
        if colors is None:
            for i in range(n):
                system._colors[i] = color_for_body(masses[i], radii[i])
        else:
            system._colors[:n] = np.asarray(colors, dtype=np.float32).reshape(n, 3)
        system._n = n
        return system

    @classmethod
    def from_bodies(cls, bodies: Iterable[Body]) -> "BodySystem":
        """Build a system from Body records (copied, not referenced)."""
        system = cls()
        for body in bodies:
            system.add(body)
        return system

    def add_body(
        self,
        position: Sequence[float],
        velocity: Sequence[float],
        mass: float,
        radius: float = 1.0,
        color: Optional[tuple] = None,
    ) -> int:
        """
        Append a new body with zero force.

        Returns:
            Index of the new body

        Raises:
            InvalidBodyError: If mass is not positive or state is not finite
        """
        position = np.asarray(position, dtype=np.float64).reshape(3)
        velocity = np.asarray(velocity, dtype=np.float64).reshape(3)
        mass = float(mass)
        radius = float(radius)
        validate_body(position, velocity, mass, radius)

        if self._n == len(self._masses):
            self._grow(2 * len(self._masses))

        i = self._n
        self._positions[i] = position
        self._velocities[i] = velocity
        self._forces[i] = 0.0
        self._masses[i] = mass
        self._radii[i] = radius
        self._colors[i] = color if color is not None else color_for_body(mass, radius)
        self._n += 1
        return i

    def add(self, body: Body) -> int:
        """Append a copy of a Body record."""
        return self.add_body(body.position, body.velocity, body.mass, body.radius, body.color)

    def _grow(self, capacity: int):
        for name in ("_positions", "_velocities", "_forces", "_masses", "_radii", "_colors"):
            old = getattr(self, name)
            new = np.zeros((capacity,) + old.shape[1:], dtype=old.dtype)
            new[: self._n] = old[: self._n]
            setattr(self, name, new)

    # -------------------------------------------------------------------------
    # Array views of the live bodies
    # -------------------------------------------------------------------------

    @property
    def positions(self) -> np.ndarray:
        return self._positions[: self._n]

    @property
    def velocities(self) -> np.ndarray:
        return self._velocities[: self._n]

    @property
    def forces(self) -> np.ndarray:
        return self._forces[: self._n]

    @property
    def masses(self) -> np.ndarray:
        return self._masses[: self._n]

    @property
    def radii(self) -> np.ndarray:
        return self._radii[: self._n]

    @property
    def colors(self) -> np.ndarray:
        return self._colors[: self._n]

    # -------------------------------------------------------------------------
    # Record access
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return self._n

    def __getitem__(self, i: int) -> Body:
        """Snapshot of body i (a copy; mutating it does not affect the system)."""
        if i < 0:
            i += self._n
        if not 0 <= i < self._n:
            raise IndexError(f"Body index {i} out of range [0, {self._n})")
        return Body(
            position=self._positions[i].copy(),
            velocity=self._velocities[i].copy(),
            mass=float(self._masses[i]),
            radius=float(self._radii[i]),
            color=tuple(float(c) for c in self._colors[i]),
            force=self._forces[i].copy(),
        )

    def __iter__(self) -> Iterator[Body]:
        for i in range(self._n):
            yield self[i]

    def total_mass(self) -> float:
        return float(np.sum(self.masses))

    def kinetic_energy(self) -> float:
        v2 = np.sum(self.velocities * self.velocities, axis=1)
        return float(0.5 * np.sum(self.masses * v2))

    def is_finite(self) -> bool:
        """True if every position and velocity is finite."""
        return bool(np.all(np.isfinite(self.positions)) and np.all(np.isfinite(self.velocities)))


__all__ = ["Body", "BodySystem", "check_masses", "color_for_body", "validate_body"]
