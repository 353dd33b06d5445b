"""
Exact O(n²) pairwise gravity.

Used as the reference the Barnes-Hut approximation is measured against and
for potential energy in diagnostics. The same softening floor and Plummer
length apply as in the tree walk, so theta = 0 matches it exactly.
"""

import math

import numpy as np
from numba import njit, prange


@njit(parallel=True, fastmath=True, cache=True)
def direct_forces(positions, masses, forces, G, min_distance, softening_sq):
    """
    Add the exact gravitational force on every body into `forces`.

    Parameters
    ----------
    positions : ndarray
        Body positions, shape (N, 3)
    masses : ndarray
        Body masses, shape (N,)
    forces : ndarray
        Accumulator, shape (N, 3); each parallel iteration writes only row i
    G : float
        Gravitational constant
    min_distance : float
        Pairs closer than this exert no force
    softening_sq : float
        Square of the Plummer softening length
    """
    N = positions.shape[0]

    for i in prange(N):
        fx, fy, fz = 0.0, 0.0, 0.0
        xi, yi, zi = positions[i, 0], positions[i, 1], positions[i, 2]
        mi = masses[i]

        for j in range(N):
            if i != j:
                dx = positions[j, 0] - xi
                dy = positions[j, 1] - yi
                dz = positions[j, 2] - zi
                dist = math.sqrt(dx * dx + dy * dy + dz * dz)
                if dist < min_distance or dist == 0.0:
                    continue

                r2 = dist * dist + softening_sq
                prefactor = G * mi * masses[j] / (r2 * math.sqrt(r2))
                fx += prefactor * dx
                fy += prefactor * dy
                fz += prefactor * dz

        forces[i, 0] += fx
        forces[i, 1] += fy
        forces[i, 2] += fz


@njit(fastmath=True, cache=True)
def potential_energy(positions, masses, G, min_distance, softening_sq):
    """Total pairwise potential energy, -G m_i m_j / sqrt(r² + eps²) per pair."""
    N = positions.shape[0]
    energy = 0.0
    for i in range(N):
        for j in range(i + 1, N):
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            dz = positions[j, 2] - positions[i, 2]
            dist = math.sqrt(dx * dx + dy * dy + dz * dz)
            if dist < min_distance or dist == 0.0:
                continue
            energy -= G * masses[i] * masses[j] / math.sqrt(dist * dist + softening_sq)
    return energy


__all__ = ["direct_forces", "potential_energy"]
