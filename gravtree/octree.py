"""
Barnes-Hut octree, rebuilt from scratch every step.

Nodes live in flat pre-allocated arrays (an arena) addressed by index:

- centers, half_extents: cubic region of the node
- masses, mass_centers: aggregate mass and center of mass beneath it
- children[8]: child node indices (-1 if none; all 8 exist or none do)
- occupants: body index held by a leaf (-1 if empty or internal)
- counts: number of bodies beneath the node
- depths: distance from the root

`body_leaf[i]` is the leaf body i ended up in. Leaves at `max_depth` never
split; extra bodies landing there are merged into the leaf's aggregate.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np
from numba import njit

DEFAULT_MAX_DEPTH = 48
MIN_CAPACITY = 64


@njit(cache=True)
def get_octant(px: float, py: float, pz: float,
               cx: float, cy: float, cz: float) -> int:
    """Octant of a point relative to a center; >= goes to the positive half."""
    octant = 0
    if px >= cx:
        octant |= 1
    if py >= cy:
        octant |= 2
    if pz >= cz:
        octant |= 4
    return octant


@njit(cache=True)
def _init_node(node, cx, cy, cz, half, depth,
               centers, half_extents, masses, mass_centers,
               children, occupants, counts, depths):
    centers[node, 0] = cx
    centers[node, 1] = cy
    centers[node, 2] = cz
    half_extents[node] = half
    masses[node] = 0.0
    mass_centers[node, 0] = 0.0
    mass_centers[node, 1] = 0.0
    mass_centers[node, 2] = 0.0
    for c in range(8):
        children[node, c] = -1
    occupants[node] = -1
    counts[node] = 0
    depths[node] = depth


@njit(cache=True)
def build_octree(
    positions: np.ndarray,
    body_masses: np.ndarray,
    center: np.ndarray,
    half_extent: float,
    max_depth: int,
    # Output arrays (pre-allocated)
    centers: np.ndarray,         # (capacity, 3)
    half_extents: np.ndarray,    # (capacity,)
    masses: np.ndarray,          # (capacity,)
    mass_centers: np.ndarray,    # (capacity, 3)
    children: np.ndarray,        # (capacity, 8)
    occupants: np.ndarray,       # (capacity,)
    counts: np.ndarray,          # (capacity,)
    depths: np.ndarray,          # (capacity,)
    body_leaf: np.ndarray,       # (num_bodies,)
) -> int:
    """
    Insert every body into a fresh tree rooted at node 0.

    Returns the number of nodes used, or -1 if the arena ran out of space.
    """
    capacity = half_extents.shape[0]
    _init_node(0, center[0], center[1], center[2], half_extent, 0,
               centers, half_extents, masses, mass_centers,
               children, occupants, counts, depths)
    num_nodes = 1

    for i in range(positions.shape[0]):
        px, py, pz = positions[i, 0], positions[i, 1], positions[i, 2]
        m = body_masses[i]
        current = 0

        while True:
            if children[current, 0] == -1:
                if counts[current] == 0:
                    # Empty leaf - body becomes the occupant
                    occupants[current] = i
                    counts[current] = 1
                    masses[current] = m
                    mass_centers[current, 0] = px
                    mass_centers[current, 1] = py
                    mass_centers[current, 2] = pz
                    body_leaf[i] = current
                    break

                if depths[current] >= max_depth:
                    # Depth cutoff - coalesce into this leaf's aggregate
                    total = masses[current] + m
                    mass_centers[current, 0] = (mass_centers[current, 0] * masses[current] + px * m) / total
                    mass_centers[current, 1] = (mass_centers[current, 1] * masses[current] + py * m) / total
                    mass_centers[current, 2] = (mass_centers[current, 2] * masses[current] + pz * m) / total
                    masses[current] = total
                    counts[current] += 1
                    body_leaf[i] = current
                    break

                # Occupied leaf - subdivide into 8 empty children
                if num_nodes + 8 > capacity:
                    return -1
                cx = centers[current, 0]
                cy = centers[current, 1]
                cz = centers[current, 2]
                quarter = half_extents[current] * 0.5
                for c in range(8):
                    child = num_nodes + c
                    _init_node(
                        child,
                        cx + quarter if (c & 1) else cx - quarter,
                        cy + quarter if (c & 2) else cy - quarter,
                        cz + quarter if (c & 4) else cz - quarter,
                        quarter, depths[current] + 1,
                        centers, half_extents, masses, mass_centers,
                        children, occupants, counts, depths,
                    )
                    children[current, c] = child
                num_nodes += 8

                # Re-insert the existing occupant one level down
                old = occupants[current]
                occupants[current] = -1
                octant = get_octant(positions[old, 0], positions[old, 1], positions[old, 2],
                                    cx, cy, cz)
                child = children[current, octant]
                occupants[child] = old
                counts[child] = 1
                masses[child] = body_masses[old]
                mass_centers[child, 0] = positions[old, 0]
                mass_centers[child, 1] = positions[old, 1]
                mass_centers[child, 2] = positions[old, 2]
                body_leaf[old] = child
                # Fall through: the node is internal now

            # Internal node - mass-weighted merge, then descend
            total = masses[current] + m
            mass_centers[current, 0] = (mass_centers[current, 0] * masses[current] + px * m) / total
            mass_centers[current, 1] = (mass_centers[current, 1] * masses[current] + py * m) / total
            mass_centers[current, 2] = (mass_centers[current, 2] * masses[current] + pz * m) / total
            masses[current] = total
            counts[current] += 1

            octant = get_octant(px, py, pz,
                                centers[current, 0], centers[current, 1], centers[current, 2])
            current = children[current, octant]

    return num_nodes


def compute_root_bounds(positions: np.ndarray) -> Tuple[np.ndarray, float]:
    """Root cube: midpoint of the min/max corners, half the diagonal as half-extent."""
    mins = positions.min(axis=0)
    maxs = positions.max(axis=0)
    center = (mins + maxs) * 0.5
    half_extent = float(np.linalg.norm(maxs - mins)) * 0.5
    return center, half_extent


@dataclass(frozen=True)
class SpatialNode:
    """Read-only view of one octree node."""

    index: int
    center: np.ndarray
    half_extent: float
    mass: float
    mass_center: np.ndarray
    occupant: Optional[int]
    children: Tuple[Optional[int], ...]
    count: int
    depth: int

    @property
    def is_leaf(self) -> bool:
        return all(c is None for c in self.children)


class SpatialTree:
    """
    Arena-backed octree over a body set.

    Usage:
        tree = SpatialTree()
        tree.build(system.positions, system.masses)
        root = tree.node(tree.root)

    The arena is kept between builds and doubled whenever a build runs out
    of nodes, so steady-state rebuilding does not allocate.
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH, capacity: int = MIN_CAPACITY):
        self.max_depth = max_depth
        self.num_nodes = 0
        self.num_bodies = 0
        self._allocate(max(capacity, MIN_CAPACITY))
        self.body_leaf = np.full(0, -1, dtype=np.int64)

    def _allocate(self, capacity: int):
        self.capacity = capacity
        self.centers = np.zeros((capacity, 3), dtype=np.float64)
        self.half_extents = np.zeros(capacity, dtype=np.float64)
        self.masses = np.zeros(capacity, dtype=np.float64)
        self.mass_centers = np.zeros((capacity, 3), dtype=np.float64)
        self.children = np.full((capacity, 8), -1, dtype=np.int64)
        self.occupants = np.full(capacity, -1, dtype=np.int64)
        self.counts = np.zeros(capacity, dtype=np.int64)
        self.depths = np.zeros(capacity, dtype=np.int64)

    def build(self, positions: np.ndarray, masses: np.ndarray) -> "SpatialTree":
        """
        Replace the tree with one over the given bodies.

        An empty body set leaves the tree empty (`root is None`).
        """
        n = len(masses)
        self.num_bodies = n
        if len(self.body_leaf) != n:
            self.body_leaf = np.full(n, -1, dtype=np.int64)
        else:
            self.body_leaf.fill(-1)

        if n == 0:
            self.num_nodes = 0
            return self

        positions = np.ascontiguousarray(positions, dtype=np.float64)
        masses = np.ascontiguousarray(masses, dtype=np.float64)
        center, half_extent = compute_root_bounds(positions)

        # Every split adds 8 nodes; scattered bodies need a few nodes each
        if self.capacity < 4 * n:
            self._allocate(max(MIN_CAPACITY, 8 * n))

        while True:
            num_nodes = build_octree(
                positions, masses, center, half_extent, self.max_depth,
                self.centers, self.half_extents, self.masses, self.mass_centers,
                self.children, self.occupants, self.counts, self.depths,
                self.body_leaf,
            )
            if num_nodes >= 0:
                break
            self._allocate(self.capacity * 2)

        self.num_nodes = num_nodes
        return self

    @property
    def root(self) -> Optional[int]:
        """Index of the root node, or None for an empty tree."""
        return 0 if self.num_nodes > 0 else None

    @property
    def is_empty(self) -> bool:
        return self.num_nodes == 0

    @property
    def depth(self) -> int:
        """Deepest level reached by the last build (0 for a root-only tree)."""
        if self.num_nodes == 0:
            return 0
        return int(self.depths[: self.num_nodes].max())

    def node(self, index: int) -> SpatialNode:
        if not 0 <= index < self.num_nodes:
            raise IndexError(f"Node index {index} out of range [0, {self.num_nodes})")
        occupant = int(self.occupants[index])
        return SpatialNode(
            index=index,
            center=self.centers[index].copy(),
            half_extent=float(self.half_extents[index]),
            mass=float(self.masses[index]),
            mass_center=self.mass_centers[index].copy(),
            occupant=occupant if occupant >= 0 else None,
            children=tuple(int(c) if c >= 0 else None for c in self.children[index]),
            count=int(self.counts[index]),
            depth=int(self.depths[index]),
        )

    def walk(self) -> Iterator[SpatialNode]:
        """Depth-first iteration over every node, root first."""
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            node = self.node(stack.pop())
            yield node
            stack.extend(c for c in reversed(node.children) if c is not None)

    def leaves(self) -> List[SpatialNode]:
        return [node for node in self.walk() if node.is_leaf]

    def bodies_under(self, index: int) -> List[int]:
        """Indices of the bodies whose leaf lies in the subtree of `index`."""
        below = set()
        stack = [index]
        while stack:
            node = stack.pop()
            below.add(node)
            stack.extend(int(c) for c in self.children[node] if c >= 0)
        return [i for i in range(self.num_bodies) if int(self.body_leaf[i]) in below]


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "SpatialNode",
    "SpatialTree",
    "build_octree",
    "compute_root_bounds",
    "get_octant",
]
