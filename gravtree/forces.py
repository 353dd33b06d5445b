"""
Barnes-Hut force accumulation.

Each body walks the octree with an explicit stack. A node is treated as a
single point mass when it is a leaf or when half_extent / distance < theta;
otherwise its children are visited. The tree is only read here, so every
body can be evaluated concurrently: the body range is cut into disjoint
chunks and each parallel task writes only the force rows of its own chunk.
"""

import math

import numba
import numpy as np
from numba import njit, prange

from .config import SimulationConfig
from .direct import direct_forces
from .errors import StaleTreeError


@njit(fastmath=True, cache=True)
def body_force(
    i: int,
    positions: np.ndarray,
    body_masses: np.ndarray,
    centers: np.ndarray,
    half_extents: np.ndarray,
    masses: np.ndarray,
    mass_centers: np.ndarray,
    children: np.ndarray,
    counts: np.ndarray,
    body_leaf: np.ndarray,
    theta: float,
    G: float,
    min_distance: float,
    softening_sq: float,
    stack: np.ndarray,
):
    """Approximate net gravitational force on body i from every other body."""
    px = positions[i, 0]
    py = positions[i, 1]
    pz = positions[i, 2]
    mi = body_masses[i]
    own_leaf = body_leaf[i]

    fx, fy, fz = 0.0, 0.0, 0.0

    stack[0] = 0  # Start at root
    stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr]

        # Empty leaf contributes nothing
        if counts[node] == 0:
            continue

        is_leaf = children[node, 0] == -1

        # Never approximate a cell the body sits inside: its aggregate includes the body
        if not is_leaf:
            h = half_extents[node]
            if (abs(px - centers[node, 0]) <= h and
                    abs(py - centers[node, 1]) <= h and
                    abs(pz - centers[node, 2]) <= h):
                for c in range(8):
                    stack[stack_ptr] = children[node, c]
                    stack_ptr += 1
                continue

        m = masses[node]
        cx = mass_centers[node, 0]
        cy = mass_centers[node, 1]
        cz = mass_centers[node, 2]

        if node == own_leaf:
            # Sole occupant is the body itself; a coalesced leaf loses the body's share
            if counts[node] <= 1:
                continue
            rest = m - mi
            if rest <= 0.0:
                continue
            cx = (cx * m - px * mi) / rest
            cy = (cy * m - py * mi) / rest
            cz = (cz * m - pz * mi) / rest
            m = rest

        dx = cx - px
        dy = cy - py
        dz = cz - pz
        dist = math.sqrt(dx * dx + dy * dy + dz * dz)

        # Softening floor: near-coincident mass exerts nothing
        if dist < min_distance or dist == 0.0:
            continue

        if is_leaf or half_extents[node] / dist < theta:
            # F = G * m1 * m2 * r / (r^2 + eps^2)^(3/2)
            r_sq = dist * dist + softening_sq
            prefactor = G * mi * m / (r_sq * math.sqrt(r_sq))
            fx += prefactor * dx
            fy += prefactor * dy
            fz += prefactor * dz
        else:
            # Node too close, examine children
            for c in range(8):
                stack[stack_ptr] = children[node, c]
                stack_ptr += 1

    return fx, fy, fz


@njit(parallel=True, fastmath=True, cache=True)
def accumulate_forces(
    positions: np.ndarray,
    body_masses: np.ndarray,
    forces: np.ndarray,
    centers: np.ndarray,
    half_extents: np.ndarray,
    masses: np.ndarray,
    mass_centers: np.ndarray,
    children: np.ndarray,
    counts: np.ndarray,
    body_leaf: np.ndarray,
    theta: float,
    G: float,
    min_distance: float,
    softening_sq: float,
    chunk_size: int,
    stack_size: int,
):
    """Add the Barnes-Hut force on every body into `forces`, one task per chunk."""
    n = positions.shape[0]
    num_chunks = (n + chunk_size - 1) // chunk_size

    for chunk in prange(num_chunks):
        stack = np.empty(stack_size, dtype=np.int64)
        start = chunk * chunk_size
        end = min(start + chunk_size, n)
        for i in range(start, end):
            fx, fy, fz = body_force(
                i, positions, body_masses,
                centers, half_extents, masses, mass_centers,
                children, counts, body_leaf,
                theta, G, min_distance, softening_sq, stack,
            )
            forces[i, 0] += fx
            forces[i, 1] += fy
            forces[i, 2] += fz


def stack_size_for(depth: int) -> int:
    """Traversal stack large enough for a tree of the given depth."""
    # Each pop pushes at most 8, so the stack holds at most 7 per level plus 8
    return 8 * (depth + 2)


class ForceEvaluator:
    """
    Accumulates gravitational forces into a BodySystem's force rows.

    With `method="barnes_hut"` the octree is walked; with `method="direct"`
    the exact pairwise sum is used and the tree is ignored.
    """

    def __init__(self, config: SimulationConfig):
        self.config = config
        self.softening_sq = config.softening * config.softening

    @staticmethod
    def _check_tree(system, tree):
        if tree.num_bodies != len(system):
            raise StaleTreeError(
                f"Tree was built for {tree.num_bodies} bodies but the system has {len(system)}; "
                f"rebuild it before evaluating forces"
            )

    def accumulate(self, system, index: int, tree) -> np.ndarray:
        """
        Add the force on one body into `system.forces[index]`.

        Returns:
            The force contribution that was added

        Raises:
            IndexError: If index is not a body of the system
            StaleTreeError: If the tree was built for a different body count
        """
        cfg = self.config
        if not 0 <= index < len(system):
            raise IndexError(f"Body index {index} out of range [0, {len(system)})")
        self._check_tree(system, tree)
        stack = np.empty(stack_size_for(tree.depth), dtype=np.int64)
        contribution = np.array(body_force(
            index, system.positions, system.masses,
            tree.centers, tree.half_extents, tree.masses, tree.mass_centers,
            tree.children, tree.counts, tree.body_leaf,
            cfg.theta, cfg.G, cfg.min_distance, self.softening_sq, stack,
        ))
        system.forces[index] += contribution
        return contribution

    def accumulate_all(self, system, tree=None):
        """
        Add the force on every body into `system.forces`, in parallel.

        Raises:
            StaleTreeError: If the tree was built for a different body count
        """
        cfg = self.config
        if len(system) == 0:
            return

        previous_threads = None
        if cfg.num_threads is not None:
            previous_threads = numba.get_num_threads()
            numba.set_num_threads(min(cfg.num_threads, numba.config.NUMBA_NUM_THREADS))
        try:
            if cfg.method == "direct":
                direct_forces(
                    system.positions, system.masses, system.forces,
                    cfg.G, cfg.min_distance, self.softening_sq,
                )
                return
            if tree is None:
                return
            self._check_tree(system, tree)
            accumulate_forces(
                system.positions, system.masses, system.forces,
                tree.centers, tree.half_extents, tree.masses, tree.mass_centers,
                tree.children, tree.counts, tree.body_leaf,
                cfg.theta, cfg.G, cfg.min_distance, self.softening_sq,
                cfg.chunk_size, stack_size_for(tree.depth),
            )
        finally:
            if previous_threads is not None:
                numba.set_num_threads(previous_threads)


__all__ = ["ForceEvaluator", "accumulate_forces", "body_force", "stack_size_for"]
