"""Shared fixtures for gravtree tests."""

import numpy as np
import pytest

from gravtree import BodySystem, SimulationConfig


@pytest.fixture
def unit_config():
    """Dimensionless config: G = 1, negligible floor, no softening."""
    return SimulationConfig(G=1.0, theta=0.5, min_distance=1e-9, softening=0.0)


@pytest.fixture
def random_system():
    """200 bodies with varied masses scattered through a cube."""
    rng = np.random.default_rng(42)
    n = 200
    return BodySystem.from_arrays(
        rng.uniform(-50.0, 50.0, (n, 3)),
        rng.normal(0.0, 0.5, (n, 3)),
        rng.uniform(0.5, 2.0, n),
    )


@pytest.fixture
def clustered_system():
    """Two tight clusters of 150 bodies, 100 units apart."""
    rng = np.random.default_rng(7)
    n = 150
    a = rng.normal(0.0, 1.0, (n, 3))
    b = rng.normal(0.0, 1.0, (n, 3)) + np.array([100.0, 0.0, 0.0])
    return BodySystem.from_arrays(
        np.vstack([a, b]),
        np.zeros((2 * n, 3)),
        rng.uniform(0.5, 1.5, 2 * n),
    )
