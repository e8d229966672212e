"""
Unit tests for adaptive surface tessellation.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_allclose

from nurbskit.discretization.knot_vector import make_open_knot_vector
from nurbskit.geometry.surface import NURBSSurface
from nurbskit.geometry.primitives import (
    make_nurbs_unit_square, make_nurbs_rectangle, make_nurbs_circle
)
from nurbskit.construction.extrude import extrude
from nurbskit.tessellation import (
    AdaptiveTessellationOptions, AdaptiveTessellator, Mesh, tessellate_surface
)


@pytest.fixture
def bump_surface():
    """Flat square with the (0, 0) corner control point raised."""
    kv = make_open_knot_vector(6, 2)
    g = kv.greville_abscissae()
    gu, gv = np.meshgrid(g, g, indexing="ij")
    control_points = np.stack([gu, gv, np.zeros_like(gu)], axis=-1)
    control_points[0, 0, 2] = 0.5
    return NURBSSurface(kv, kv, control_points)


@pytest.fixture
def cylinder():
    circle = make_nurbs_circle(radius=1.0, center=(0.0, 0.0, 0.0))
    return extrude(circle, [0.0, 0.0, 1.0])


def _assert_crack_free(mesh):
    """Interior edges are shared by two faces, the rest lie on the uv boundary."""
    counts = mesh.edge_counts()
    assert max(counts.values()) == 2

    uvs = mesh.uvs
    lo = uvs.min(axis=0)
    hi = uvs.max(axis=0)
    for a, b in mesh.boundary_edges():
        on_boundary = [
            np.any(np.isclose(uvs[k], lo)) or np.any(np.isclose(uvs[k], hi)) for k in (a, b)
        ]
        assert all(on_boundary), f"Open edge ({a}, {b}) inside the domain"

    # The parameter domain is a disk: V - E + F = 1
    assert mesh.n_vertices - len(counts) + mesh.n_faces == 1


def _signed_areas(mesh):
    a, b, c = (mesh.uvs[mesh.faces[:, k]] for k in range(3))
    ab, ac = b - a, c - a
    return ab[:, 0] * ac[:, 1] - ab[:, 1] * ac[:, 0]


class TestTessellationOptions:
    """Tests for option validation."""

    def test_defaults(self):
        options = AdaptiveTessellationOptions()
        assert options.norm_tolerance > 0
        assert options.min_depth <= options.max_depth

    @pytest.mark.parametrize("kwargs", [
        dict(norm_tolerance=0.0),
        dict(norm_tolerance=float("nan")),
        dict(min_depth=-1),
        dict(min_depth=1.5),
        dict(min_depth=4, max_depth=3),
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            AdaptiveTessellationOptions(**kwargs)

    def test_frozen(self):
        options = AdaptiveTessellationOptions()
        with pytest.raises(AttributeError):
            options.min_depth = 3


class TestPlanarTessellation:
    """A plane never needs refinement beyond min_depth."""

    @pytest.mark.parametrize("tolerance", [1e-1, 1e-3, 1e-9])
    @pytest.mark.parametrize("min_depth", [0, 1, 3])
    def test_stops_at_min_depth(self, tolerance, min_depth):
        surface = make_nurbs_rectangle(x_range=(-1.0, 2.0), y_range=(0.0, 4.0))
        options = AdaptiveTessellationOptions(tolerance, min_depth=min_depth, max_depth=6)

        tessellator = AdaptiveTessellator(surface, options)
        mesh = tessellator.run()

        assert all(leaf.depth == min_depth for leaf in tessellator.leaves())
        assert mesh.n_faces == 2 * 4 ** min_depth
        assert mesh.n_vertices == (2 ** min_depth + 1) ** 2
        assert_allclose(mesh.normals, np.tile([0.0, 0.0, 1.0], (mesh.n_vertices, 1)), atol=1e-12)

    def test_2d_surface(self):
        surface = make_nurbs_unit_square(p=2, physical_dim=2)
        mesh = tessellate_surface(surface, AdaptiveTessellationOptions(min_depth=2))

        assert mesh.positions.shape == (25, 3)
        assert_array_almost_equal(mesh.positions[:, 2], np.zeros(25))
        assert_array_almost_equal(mesh.positions[:, :2], mesh.uvs)

    def test_counter_clockwise_faces(self):
        surface = make_nurbs_unit_square(p=1, n_elem_u=1, n_elem_v=1)
        mesh = surface.tessellate(AdaptiveTessellationOptions(min_depth=2))

        assert np.all(_signed_areas(mesh) > 0)


class TestAdaptiveTessellation:
    """Tests on curved surfaces."""

    def test_local_refinement(self, bump_surface):
        options = AdaptiveTessellationOptions(norm_tolerance=0.05, min_depth=0, max_depth=5)
        tessellator = AdaptiveTessellator(bump_surface, options)
        mesh = tessellator.run()

        depths = {leaf.depth for leaf in tessellator.leaves()}
        assert min(depths) == 1
        assert max(depths) > 1
        assert max(depths) <= options.max_depth
        _assert_crack_free(mesh)
        assert np.all(_signed_areas(mesh) > 0)

    def test_vertices_lie_on_surface(self, bump_surface):
        mesh = tessellate_surface(bump_surface, AdaptiveTessellationOptions(0.05, 0, 4))

        for vertex in mesh.vertices:
            u, v = vertex.uv
            assert_allclose(vertex.position, bump_surface.evaluate(u, v), atol=1e-12)
            assert_allclose(vertex.normal, bump_surface.normal(u, v), atol=1e-12)

    def test_cylinder(self, cylinder):
        options = AdaptiveTessellationOptions(norm_tolerance=0.1, min_depth=1, max_depth=6)
        mesh = tessellate_surface(cylinder, options)

        assert mesh.n_faces > 2 * 4 ** options.min_depth
        radii = np.hypot(mesh.positions[:, 0], mesh.positions[:, 1])
        assert_allclose(radii, 1.0)
        assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0)
        _assert_crack_free(mesh)

    def test_tighter_tolerance_gives_more_faces(self, cylinder):
        coarse = tessellate_surface(cylinder, AdaptiveTessellationOptions(0.5, 0, 6))
        fine = tessellate_surface(cylinder, AdaptiveTessellationOptions(0.05, 0, 6))

        assert fine.n_faces > coarse.n_faces

    def test_max_depth_caps_refinement(self, cylinder):
        options = AdaptiveTessellationOptions(norm_tolerance=1e-6, min_depth=0, max_depth=2)
        tessellator = AdaptiveTessellator(cylinder, options)
        mesh = tessellator.run()

        assert all(leaf.depth <= 2 for leaf in tessellator.leaves())
        assert mesh.n_faces <= 2 * 4 ** 2

    def test_arena(self, bump_surface):
        tessellator = AdaptiveTessellator(bump_surface, AdaptiveTessellationOptions(0.05, 0, 3))
        nodes = tessellator.build_tree()

        assert nodes[0].depth == 0
        assert nodes[0].size == 2 ** 3
        for node in nodes:
            if not node.is_leaf:
                assert len(node.children) == 4
                assert all(nodes[c].depth == node.depth + 1 for c in node.children)


class TestMesh:
    """Tests for the mesh container."""

    def test_read_only(self):
        mesh = tessellate_surface(make_nurbs_unit_square(p=1, n_elem_u=1, n_elem_v=1))
        with pytest.raises(ValueError):
            mesh.positions[0, 0] = 1.0

    def test_face_index_out_of_range(self):
        positions = np.zeros((3, 3))
        with pytest.raises(ValueError):
            Mesh(positions, positions, np.zeros((3, 2)), [(0, 1, 3)])

    def test_boundary_of_two_triangles(self):
        positions = np.zeros((4, 3))
        mesh = Mesh(positions, positions, np.zeros((4, 2)), [(0, 1, 2), (0, 2, 3)])

        assert mesh.edge_counts()[(0, 2)] == 2
        assert sorted(mesh.boundary_edges()) == [(0, 1), (0, 3), (1, 2), (2, 3)]


class TestVertexWelding:
    """Tests for merging vertices that coincide in space."""

    @pytest.fixture
    def apex_surface(self):
        """Planar triangle: the u = 0 edge collapses to one point."""
        kv = make_open_knot_vector(2, 1)
        control_points = np.array([
            [[0.0, 0.0, 1.0], [0.0, 0.0, 1.0]],
            [[-1.0, -1.0, 0.0], [1.0, -1.0, 0.0]],
        ])
        return NURBSSurface(kv, kv, control_points)

    def test_collapsed_edge(self, apex_surface):
        plain = tessellate_surface(apex_surface, AdaptiveTessellationOptions(min_depth=2, max_depth=2))
        welded = tessellate_surface(
            apex_surface, AdaptiveTessellationOptions(min_depth=2, max_depth=2, weld_vertices=True)
        )

        assert plain.n_vertices == 25
        assert plain.n_faces == 32
        # Five apex vertices become one, one triangle per apex cell degenerates
        assert welded.n_vertices == 21
        assert welded.n_faces == 28
        assert max(welded.edge_counts().values()) == 2
        assert welded.n_vertices - len(welded.edge_counts()) + welded.n_faces == 1
        assert np.sum(np.all(np.isclose(welded.positions, [0.0, 0.0, 1.0]), axis=1)) == 1

    def test_cylinder_seam(self, cylinder):
        options = AdaptiveTessellationOptions(norm_tolerance=0.1, min_depth=1, max_depth=5)
        mesh = tessellate_surface(cylinder, options)
        welded = tessellate_surface(
            cylinder, AdaptiveTessellationOptions(0.1, 1, 5, weld_vertices=True)
        )

        assert welded.n_vertices < mesh.n_vertices
        assert welded.n_faces == mesh.n_faces
        assert_allclose(np.hypot(welded.positions[:, 0], welded.positions[:, 1]), 1.0)
        assert_allclose(np.linalg.norm(welded.normals, axis=1), 1.0)

    def test_weld_mesh(self):
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0],
                              [1.0, 1e-12, 0.0], [0.0, 1.0, 0.0]])
        normals = np.tile([0.0, 0.0, 1.0], (5, 1))
        uvs = positions[:, :2]
        mesh = Mesh(positions, normals, uvs, [(0, 1, 2), (3, 2, 4), (1, 3, 2)])
        welded = mesh.weld(1e-9)

        assert welded.n_vertices == 4
        assert_array_almost_equal(welded.faces, [(0, 1, 2), (1, 2, 3)])
        assert_array_almost_equal(welded.uvs[1], [1.0, 0.0])
