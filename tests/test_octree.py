"""Tests for the arena octree and its construction."""

import math

import numpy as np
import pytest

from gravtree.octree import SpatialTree, compute_root_bounds, get_octant


def build(positions, masses, **kwargs):
    tree = SpatialTree(**kwargs)
    return tree.build(np.asarray(positions, dtype=np.float64), np.asarray(masses, dtype=np.float64))


class TestGetOctant:
    """Tests for octant indexing."""

    def test_negative_corner(self):
        assert get_octant(-1.0, -1.0, -1.0, 0.0, 0.0, 0.0) == 0

    def test_positive_corner(self):
        assert get_octant(1.0, 1.0, 1.0, 0.0, 0.0, 0.0) == 7

    def test_axis_bits(self):
        assert get_octant(1.0, -1.0, -1.0, 0.0, 0.0, 0.0) == 1
        assert get_octant(-1.0, 1.0, -1.0, 0.0, 0.0, 0.0) == 2
        assert get_octant(-1.0, -1.0, 1.0, 0.0, 0.0, 0.0) == 4

    def test_on_midplane_goes_positive(self):
        """Coordinates equal to the center belong to the positive half."""
        assert get_octant(0.0, 0.0, 0.0, 0.0, 0.0, 0.0) == 7
        assert get_octant(5.0, 2.0, -1.0, 5.0, 3.0, -1.0) == 5


class TestRootBounds:
    """Tests for the root cube computation."""

    def test_midpoint_and_half_diagonal(self):
        center, half = compute_root_bounds(np.array([[0.0, 0.0, 0.0], [2.0, 4.0, 4.0]]))
        np.testing.assert_allclose(center, [1.0, 2.0, 2.0])
        assert half == pytest.approx(3.0)

    def test_cube_contains_all_bodies(self, random_system):
        tree = SpatialTree().build(random_system.positions, random_system.masses)
        root = tree.node(tree.root)
        offsets = np.abs(random_system.positions - root.center)
        assert np.all(offsets <= root.half_extent)


class TestBuild:
    """Tests for tree construction."""

    def test_empty_build(self):
        tree = build(np.zeros((0, 3)), np.zeros(0))
        assert tree.root is None
        assert tree.is_empty
        assert tree.num_nodes == 0
        assert list(tree.walk()) == []
        assert tree.leaves() == []

    def test_rebuild_to_empty(self, random_system):
        tree = SpatialTree().build(random_system.positions, random_system.masses)
        assert not tree.is_empty
        tree.build(np.zeros((0, 3)), np.zeros(0))
        assert tree.root is None

    def test_single_body(self):
        tree = build([[1.0, 2.0, 3.0]], [5.0])
        root = tree.node(tree.root)
        assert root.is_leaf
        assert root.occupant == 0
        assert root.mass == 5.0
        np.testing.assert_array_equal(root.mass_center, [1.0, 2.0, 3.0])
        assert tree.num_nodes == 1

    def test_two_bodies_subdivide(self):
        tree = build([[0.0, 0.0, 0.0], [4.0, 0.0, 0.0]], [3.0, 1.0])
        root = tree.node(tree.root)
        assert not root.is_leaf
        assert root.occupant is None
        assert all(c is not None for c in root.children)
        assert tree.num_nodes == 9
        assert root.mass == pytest.approx(4.0)
        # (3*0 + 1*4) / 4 = 1
        np.testing.assert_allclose(root.mass_center, [1.0, 0.0, 0.0])

    def test_children_are_octants(self):
        tree = build([[0.0, 0.0, 0.0], [2.0, 2.0, 2.0]], [1.0, 1.0])
        root = tree.node(tree.root)
        for octant, child_index in enumerate(root.children):
            child = tree.node(child_index)
            assert child.half_extent == pytest.approx(root.half_extent / 2)
            assert child.depth == 1
            for axis in range(3):
                positive = bool(octant & (1 << axis))
                expected = root.center[axis] + (1 if positive else -1) * root.half_extent / 2
                assert child.center[axis] == pytest.approx(expected)

    def test_leaf_invariant(self, random_system):
        """Leaves hold at most one body; internal nodes have 8 children and summed mass."""
        tree = SpatialTree().build(random_system.positions, random_system.masses)
        for node in tree.walk():
            if node.is_leaf:
                assert node.count <= 1
                assert (node.occupant is not None) == (node.count == 1)
            else:
                assert all(c is not None for c in node.children)
                assert node.occupant is None
                child_mass = sum(tree.node(c).mass for c in node.children)
                assert node.mass == pytest.approx(child_mass, rel=1e-12)

    def test_aggregates_match_contained_bodies(self, random_system):
        tree = SpatialTree().build(random_system.positions, random_system.masses)
        masses = random_system.masses
        positions = random_system.positions
        internal = [node for node in tree.walk() if not node.is_leaf][:25]
        for node in internal:
            inside = tree.bodies_under(node.index)
            assert node.count == len(inside)
            assert node.mass == pytest.approx(masses[inside].sum(), rel=1e-12)
            expected = (masses[inside, None] * positions[inside]).sum(axis=0) / masses[inside].sum()
            np.testing.assert_allclose(node.mass_center, expected, rtol=1e-10, atol=1e-10)

    def test_root_holds_everything(self, random_system):
        tree = SpatialTree().build(random_system.positions, random_system.masses)
        root = tree.node(tree.root)
        assert root.count == len(random_system)
        assert root.mass == pytest.approx(random_system.total_mass())

    def test_every_body_has_its_own_leaf(self, random_system):
        tree = SpatialTree().build(random_system.positions, random_system.masses)
        leaves = tree.body_leaf
        assert len(set(leaves.tolist())) == len(random_system)
        for i, leaf in enumerate(leaves):
            node = tree.node(int(leaf))
            assert node.is_leaf
            assert node.occupant == i

    def test_idempotent_rebuild(self, random_system):
        tree = SpatialTree().build(random_system.positions, random_system.masses)
        first = [(n.mass, n.mass_center.copy(), n.children) for n in tree.walk()]
        tree.build(random_system.positions, random_system.masses)
        second = [(n.mass, n.mass_center.copy(), n.children) for n in tree.walk()]

        assert len(first) == len(second)
        for (m1, c1, ch1), (m2, c2, ch2) in zip(first, second):
            assert m1 == m2
            np.testing.assert_array_equal(c1, c2)
            assert ch1 == ch2

    def test_node_index_out_of_range(self):
        tree = build([[0.0, 0.0, 0.0]], [1.0])
        with pytest.raises(IndexError):
            tree.node(1)


class TestDegenerateGeometry:
    """Tests for coincident bodies and the depth cutoff."""

    def test_coincident_bodies_coalesce_at_max_depth(self):
        positions = [[1.0, 1.0, 1.0]] * 3 + [[-5.0, 2.0, 0.0]]
        masses = [1.0, 2.0, 3.0, 4.0]
        tree = build(positions, masses, max_depth=8)

        assert tree.depth <= 8
        leaf = tree.node(int(tree.body_leaf[0]))
        assert leaf.is_leaf
        assert leaf.depth == 8
        assert leaf.count == 3
        assert leaf.mass == pytest.approx(6.0)
        np.testing.assert_allclose(leaf.mass_center, [1.0, 1.0, 1.0])
        assert tree.body_leaf[1] == tree.body_leaf[0] == tree.body_leaf[2]
        assert tree.node(tree.root).mass == pytest.approx(10.0)

    def test_all_bodies_coincident(self):
        """A zero-size bounding box still builds and terminates."""
        tree = build([[2.0, 2.0, 2.0]] * 4, [1.0] * 4, max_depth=5)
        root = tree.node(tree.root)
        assert root.half_extent == 0.0
        assert root.mass == pytest.approx(4.0)
        np.testing.assert_allclose(root.mass_center, [2.0, 2.0, 2.0])
        assert tree.depth == 5

    def test_arena_grows_on_overflow(self):
        """Deep coincident pairs exhaust the initial arena and force a regrow."""
        rng = np.random.default_rng(3)
        base = rng.uniform(-100.0, 100.0, (50, 3))
        positions = np.repeat(base, 2, axis=0)
        masses = np.ones(100)

        tree = SpatialTree(max_depth=48)
        tree.build(positions, masses)

        assert tree.num_nodes > 8 * len(masses)
        assert tree.capacity >= tree.num_nodes
        assert tree.node(tree.root).mass == pytest.approx(100.0)
        assert math.isclose(sum(leaf.mass for leaf in tree.leaves()), 100.0)
