"""
Unit tests for NURBS curves.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_almost_equal

from nurbskit.errors import InvalidDegree, ParameterOutOfDomain
from nurbskit.numeric import NumericBackend, DomainPolicy
from nurbskit.discretization.knot_vector import KnotVector, make_open_knot_vector
from nurbskit.geometry.curve import NURBSCurve
from nurbskit.geometry.primitives import make_nurbs_circle, make_nurbs_arc


@pytest.fixture
def cubic_curve():
    """Non-uniform cubic B-spline in 3D."""
    kv = KnotVector([0, 0, 0, 0, 0.3, 0.6, 1, 1, 1, 1], 3)
    control_points = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 2.0, 0.5],
        [2.0, -1.0, 1.0],
        [3.0, 1.0, 0.0],
        [4.0, 3.0, -1.0],
        [5.0, 0.0, 0.0],
    ])
    return NURBSCurve(kv, control_points)


@pytest.fixture
def rational_curve():
    """Rational quadratic curve with unequal weights."""
    kv = KnotVector([0, 0, 0, 0.5, 1, 1, 1], 2)
    control_points = np.array([[0.0, 0.0], [1.0, 2.0], [3.0, 2.0], [4.0, 0.0]])
    return NURBSCurve(kv, control_points, weights=[1.0, 2.0, 0.5, 1.0])


class TestNURBSCurve:
    """Tests for construction and evaluation."""

    def test_bspline_curve_endpoints(self):
        """Test that B-spline curve interpolates endpoints."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        control_points = np.array([
            [0.0, 0.0],
            [0.5, 1.0],
            [1.0, 1.0],
            [1.5, 0.0]
        ])
        curve = NURBSCurve(kv, control_points)

        assert_array_almost_equal(curve.evaluate(0.0), [0.0, 0.0])
        assert_array_almost_equal(curve.evaluate(1.0), [1.5, 0.0])
        assert not curve.is_rational

    def test_bspline_line(self):
        """Collinear control points give a line."""
        kv = make_open_knot_vector(n_basis=3, degree=2, domain=(0.0, 1.0))
        curve = NURBSCurve(kv, [[0.0, 0.0], [0.5, 0.5], [1.0, 1.0]])

        for u in [0.0, 0.25, 0.5, 0.75, 1.0]:
            point = curve.evaluate(u)
            assert_almost_equal(point[0], point[1])

    def test_circle_exact(self):
        """Rational circle points lie exactly on the circle."""
        circle = make_nurbs_circle(radius=2.0, center=(1.0, -1.0))

        assert circle.is_rational
        for u in np.linspace(0, 1, 33):
            point = circle.evaluate(u)
            assert_almost_equal(np.linalg.norm(point - [1.0, -1.0]), 2.0, decimal=12)

    def test_arc_midpoint(self):
        arc = make_nurbs_arc(radius=1.0, start_angle=0.0, end_angle=np.pi / 2)
        mid = arc.evaluate(0.5)
        assert_array_almost_equal(mid, [np.sqrt(0.5), np.sqrt(0.5)])

    def test_constructor_validation(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        with pytest.raises(ValueError):
            NURBSCurve(kv, np.zeros((3, 2)))
        with pytest.raises(ValueError):
            NURBSCurve(kv, np.zeros((4, 2)), weights=[1.0, -1.0, 1.0, 1.0])
        with pytest.raises(ValueError):
            NURBSCurve(kv, np.zeros(4))

    def test_control_arrays_are_copies_or_read_only(self, cubic_curve):
        points = cubic_curve.control_points
        points[0] = 100.0
        assert_array_almost_equal(cubic_curve.evaluate(0.0), [0.0, 0.0, 0.0])

        with pytest.raises(ValueError):
            cubic_curve.homogeneous_control_points[0, 0] = 1.0

    def test_input_is_copied(self):
        kv = make_open_knot_vector(n_basis=3, degree=2)
        points = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 0.0]])
        curve = NURBSCurve(kv, points)
        points[0] = [9.0, 9.0]
        assert_array_almost_equal(curve.evaluate(0.0), [0.0, 0.0])

    def test_out_of_domain_clamped_by_default(self, cubic_curve):
        assert_array_almost_equal(cubic_curve.evaluate(-1.0), cubic_curve.evaluate(0.0))
        assert_array_almost_equal(cubic_curve.evaluate(2.0), cubic_curve.evaluate(1.0))

    def test_out_of_domain_strict(self, cubic_curve):
        strict = NumericBackend(domain_policy=DomainPolicy.STRICT)
        curve = NURBSCurve(cubic_curve.knot_vector, cubic_curve.control_points, backend=strict)

        with pytest.raises(ParameterOutOfDomain):
            curve.evaluate(1.5)
        assert_array_almost_equal(curve.evaluate(1.0), cubic_curve.evaluate(1.0))


class TestCurveDerivatives:
    """Tests for curve derivatives."""

    def test_zeroth_derivative_is_point(self, rational_curve):
        ders = rational_curve.derivatives(0.3, 2)
        assert ders.shape == (3, 2)
        assert_array_almost_equal(ders[0], rational_curve.evaluate(0.3))

    @pytest.mark.parametrize("u", [0.1, 0.45, 0.8])
    def test_first_derivative_finite_difference(self, rational_curve, u):
        h = 1e-6
        fd = (rational_curve.evaluate(u + h) - rational_curve.evaluate(u - h)) / (2 * h)
        assert_array_almost_equal(rational_curve.tangent(u), fd, decimal=6)

    def test_second_derivative_finite_difference(self, rational_curve):
        u, h = 0.7, 1e-5
        d1 = rational_curve.derivatives
        fd = (d1(u + h, 1)[1] - d1(u - h, 1)[1]) / (2 * h)
        assert_array_almost_equal(rational_curve.derivatives(u, 2)[2], fd, decimal=4)

    def test_circle_derivative_is_tangent(self):
        circle = make_nurbs_circle(radius=1.0)
        for u in [0.1, 0.3, 0.6, 0.9]:
            ders = circle.derivatives(u, 1)
            assert_almost_equal(np.dot(ders[0], ders[1]), 0.0, decimal=10)

    def test_orders_above_degree_vanish_for_polynomials(self, cubic_curve):
        ders = cubic_curve.derivatives(0.5, 5)
        assert_array_almost_equal(ders[4:], np.zeros((2, 3)))


class TestCurveModification:
    """Tests for shape-preserving operations."""

    def test_transformed(self, cubic_curve):
        matrix = np.eye(4)
        matrix[:3, 3] = [1.0, 2.0, 3.0]
        moved = cubic_curve.transformed(matrix)

        for u in [0.0, 0.4, 1.0]:
            assert_array_almost_equal(moved.evaluate(u), cubic_curve.evaluate(u) + [1.0, 2.0, 3.0])
        assert moved.knot_vector == cubic_curve.knot_vector

    def test_transformed_keeps_weights(self, rational_curve):
        rotation = np.array([[0.0, -1.0], [1.0, 0.0]])
        rotated = rational_curve.transformed(rotation)

        assert_array_almost_equal(rotated.weights, rational_curve.weights)
        for u in [0.2, 0.5, 0.9]:
            assert_array_almost_equal(rotated.evaluate(u), rotation @ rational_curve.evaluate(u))

    def test_transformed_bad_matrix(self, cubic_curve):
        with pytest.raises(ValueError):
            cubic_curve.transformed(np.eye(2))

    def test_insert_knot_preserves_shape(self, rational_curve):
        refined = rational_curve.insert_knot(0.3, times=2)

        assert refined.n_control_points == rational_curve.n_control_points + 2
        for u in np.linspace(0, 1, 11):
            assert_array_almost_equal(refined.evaluate(u), rational_curve.evaluate(u))

    def test_refine_preserves_shape(self, cubic_curve):
        refined = cubic_curve.refine([0.1, 0.5, 0.5, 0.9])
        for u in np.linspace(0, 1, 11):
            assert_array_almost_equal(refined.evaluate(u), cubic_curve.evaluate(u))

    @pytest.mark.parametrize("t", [1, 2])
    def test_elevate_degree_preserves_shape(self, cubic_curve, t):
        elevated = cubic_curve.elevate_degree(t)

        assert elevated.degree == 3 + t
        for u in np.linspace(0, 1, 21):
            assert_array_almost_equal(elevated.evaluate(u), cubic_curve.evaluate(u))

    def test_elevate_degree_rational(self):
        circle = make_nurbs_circle(radius=1.5)
        elevated = circle.elevate_degree(1)

        assert elevated.degree == 3
        for u in np.linspace(0, 1, 17):
            assert_almost_equal(np.linalg.norm(elevated.evaluate(u)), 1.5, decimal=10)

    def test_elevate_degree_bezier_count(self):
        kv = make_open_knot_vector(n_basis=3, degree=2)
        curve = NURBSCurve(kv, [[0.0, 0.0], [1.0, 1.0], [2.0, 0.0]])
        elevated = curve.elevate_degree(1)

        assert elevated.n_control_points == 4
        assert_array_almost_equal(elevated.knot_vector.knots, [0, 0, 0, 0, 1, 1, 1, 1])
        assert_array_almost_equal(elevated.control_points,
                                  [[0.0, 0.0], [2 / 3, 2 / 3], [4 / 3, 2 / 3], [2.0, 0.0]])

    def test_elevate_degree_unclamped_rejected(self):
        kv = KnotVector([0, 1, 2, 3, 4, 5, 6], 2)
        curve = NURBSCurve(kv, np.random.default_rng(0).random((4, 2)))
        with pytest.raises(ValueError):
            curve.elevate_degree(1)

    def test_reversed(self, rational_curve):
        rev = rational_curve.reversed()
        a, b = rational_curve.domain
        for u in np.linspace(a, b, 9):
            assert_array_almost_equal(rev.evaluate(a + b - u), rational_curve.evaluate(u))

    def test_cast(self, cubic_curve):
        single = cubic_curve.cast(np.float32)

        assert single.dtype == np.float32
        assert single.control_points.dtype == np.float32
        assert single.knot_vector.dtype == np.float32
        assert_array_almost_equal(single.evaluate(0.4), cubic_curve.evaluate(0.4), decimal=5)
        assert cubic_curve.dtype == np.float64

    def test_elevate_dimension(self, rational_curve):
        lifted = rational_curve.elevate_dimension()

        assert lifted.dimension == 3
        point = lifted.evaluate(0.6)
        assert_array_almost_equal(point[:2], rational_curve.evaluate(0.6))
        assert_almost_equal(point[2], 0.0)

    def test_knot_multiplicities(self, cubic_curve):
        mults = cubic_curve.knot_multiplicities()
        assert [m.multiplicity for m in mults] == [4, 1, 1, 4]

    def test_invalid_degree(self):
        with pytest.raises(InvalidDegree):
            NURBSCurve(KnotVector([0, 0, 1, 1], 0), np.zeros((3, 2)))

        line = NURBSCurve(KnotVector([0, 0, 1, 1], 1), np.zeros((2, 2)))
        with pytest.raises(ValueError):
            line.elevate_degree(-1)
        assert line.elevate_degree(0) is line


class TestCurveMeasures:
    """Tests for Frenet frames, length and tessellation."""

    def test_circle_length(self):
        circle = make_nurbs_circle(radius=2.0)
        assert circle.length() == pytest.approx(4.0 * np.pi, abs=1e-6)

    def test_line_length(self):
        kv = make_open_knot_vector(n_basis=2, degree=1)
        line = NURBSCurve(kv, [[0.0, 0.0, 0.0], [3.0, 4.0, 0.0]])
        assert line.length() == pytest.approx(5.0)

    def test_frenet_frame_circle(self):
        circle = make_nurbs_circle(radius=1.0)
        frames = circle.frenet_frames([0.1, 0.5, 0.8])

        for frame in frames:
            # Normal points to the center, binormal is +z
            assert_array_almost_equal(frame.normal, -frame.position / np.linalg.norm(frame.position))
            assert_array_almost_equal(frame.binormal, [0.0, 0.0, 1.0])
            assert_almost_equal(np.dot(frame.tangent, frame.normal), 0.0)
            assert_almost_equal(np.linalg.norm(frame.tangent), 1.0)

    def test_frenet_frame_straight_line_is_orthonormal(self):
        kv = make_open_knot_vector(n_basis=2, degree=1)
        line = NURBSCurve(kv, [[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]])
        frame = line.frenet_frames([0.5])[0]

        basis = np.array([frame.tangent, frame.normal, frame.binormal])
        assert_array_almost_equal(basis @ basis.T, np.eye(3))

    def test_tessellate_within_tolerance(self):
        circle = make_nurbs_circle(radius=1.0)
        polyline = circle.tessellate(1e-3)

        assert_array_almost_equal(polyline[0], circle.evaluate(0.0))
        assert_array_almost_equal(polyline[-1], circle.evaluate(1.0))
        assert_array_almost_equal(np.linalg.norm(polyline, axis=1), np.ones(len(polyline)))

        # Sagitta of every chord below the tolerance
        chords = np.linalg.norm(np.diff(polyline, axis=0), axis=1)
        sagitta = 1.0 - np.sqrt(1.0 - (chords / 2) ** 2)
        assert np.all(sagitta <= 2e-3)

    def test_tessellate_line_uses_knots_only(self):
        kv = KnotVector([0, 0, 0.5, 1, 1], 1)
        line = NURBSCurve(kv, [[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        assert len(line.tessellate()) == 3
