"""
Unit tests for knot vector utilities.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_equal, assert_array_almost_equal

from nurbskit.errors import InvalidDegree, ParameterOutOfDomain
from nurbskit.discretization.knot_vector import (
    KnotVector, KnotMultiplicity, make_open_knot_vector, make_periodic_knot_vector
)
from nurbskit.geometry.bspline import BSplineBasis


class TestKnotVector:
    """Tests for KnotVector class."""

    def test_open_knot_vector_creation(self):
        """Test creating an open (clamped) uniform knot vector."""
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))

        assert kv.degree == 2
        assert kv.n_basis == 5
        assert len(kv.knots) == 5 + 2 + 1  # n + p + 1
        assert kv.is_clamped

        assert_array_equal(kv.knots[:3], [0.0, 0.0, 0.0])
        assert_array_equal(kv.knots[-3:], [1.0, 1.0, 1.0])

    def test_knot_vector_domain(self):
        """Test that domain is correctly computed."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        assert kv.domain == (0.0, 1.0)

        kv2 = make_open_knot_vector(n_basis=4, degree=2, domain=(-1.0, 2.0))
        assert kv2.domain == (-1.0, 2.0)

    def test_elements_list(self):
        """Test that element intervals are correct."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))

        assert kv.n_elements == 2
        assert kv.elements == [(0.0, 0.5), (0.5, 1.0)]
        assert_array_equal(kv.unique_knots, [0.0, 0.5, 1.0])

    def test_knots_are_read_only(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        with pytest.raises(ValueError):
            kv.knots[0] = 5.0

    def test_validation(self):
        """Invalid knot vectors are rejected."""
        with pytest.raises(InvalidDegree):
            KnotVector([0, 0, 1, 1], 0)
        with pytest.raises(ValueError):
            KnotVector([0, 0, 1], 1)  # too short
        with pytest.raises(ValueError):
            KnotVector([0, 0, 1, 0.5, 1, 1], 1)  # decreasing
        with pytest.raises(ValueError):
            KnotVector([0, 0, 0.5, 0.5, 0.5, 1, 1], 1)  # interior multiplicity > p
        with pytest.raises(ValueError):
            KnotVector([0, 0, 0, 0], 1)  # empty domain

    def test_unclamped_knot_vector_accepted(self):
        kv = KnotVector([0, 1, 2, 3, 4, 5, 6, 7], 3)
        assert not kv.is_clamped
        assert kv.domain == (3.0, 4.0)
        assert kv.n_basis == 4

    def test_dtype(self):
        kv = make_open_knot_vector(4, 2, dtype=np.float32)
        assert kv.dtype == np.float32
        assert kv.astype(np.float64).dtype == np.float64
        with pytest.raises(ValueError):
            KnotVector([0, 0, 1, 1], 1, dtype=np.int32)


class TestFindSpan:
    """Tests for span lookup and the domain policy."""

    def test_find_span_interior(self):
        # knots = [0, 0, 0, 0.5, 1, 1, 1]
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))

        assert kv.find_span(0.0) == 2
        assert kv.find_span(0.25) == 2
        assert kv.find_span(0.5) == 3
        assert kv.find_span(0.75) == 3

    def test_find_span_end_is_last_valid_span(self):
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        assert kv.find_span(1.0) == 3

    def test_find_span_with_repeated_interior_knot(self):
        kv = KnotVector([0, 0, 0, 0.5, 0.5, 1, 1, 1], 2)
        assert kv.find_span(0.5) == 4
        assert kv.find_span(0.49) == 2

    def test_span_brackets_parameter(self):
        kv = KnotVector([0, 0, 0, 0, 0.1, 0.3, 0.35, 0.8, 1, 1, 1, 1], 3)
        for u in np.linspace(0.0, 0.999, 37):
            span = kv.find_span(u)
            assert kv.knots[span] <= u < kv.knots[span + 1]

    def test_out_of_domain_is_clamped(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        assert kv.find_span(-0.5) == kv.find_span(0.0)
        assert kv.find_span(1.5) == kv.find_span(1.0)
        assert kv.clamp_parameter(1.5) == 1.0

    def test_out_of_domain_strict(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        with pytest.raises(ParameterOutOfDomain) as info:
            kv.find_span(1.5, strict=True)
        assert info.value.parameter == 1.5
        assert info.value.domain == (0.0, 1.0)

        # Within tolerance is still accepted
        assert kv.find_span(1.0 + 1e-14, strict=True) == 3

    def test_nan_parameter_rejected(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        with pytest.raises(ParameterOutOfDomain):
            kv.find_span(float("nan"))


class TestKnotInsertion:
    """Tests for insertion, refinement and unification."""

    def test_insert_knot_matrix(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        new_kv, A = kv.insert_knot(0.25)

        assert_array_almost_equal(new_kv.knots, [0, 0, 0, 0.25, 0.5, 1, 1, 1])
        assert A.shape == (5, 4)
        # Rows are convex combinations
        assert_array_almost_equal(A.sum(axis=1), np.ones(5))

    def test_insert_knot_capped_at_degree(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        new_kv, A = kv.insert_knot(0.5, times=5)

        assert new_kv.multiplicity(0.5) == 2
        assert A.shape == (new_kv.n_basis, kv.n_basis)

    def test_insert_outside_domain_rejected(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        with pytest.raises(ParameterOutOfDomain):
            kv.insert_knot(2.0)

    def test_refine(self):
        kv = make_open_knot_vector(n_basis=3, degree=2)
        new_kv, A = kv.refine([0.75, 0.25, 0.5])

        assert_array_almost_equal(new_kv.knots, [0, 0, 0, 0.25, 0.5, 0.75, 1, 1, 1])
        assert A.shape == (6, 3)

    def test_multiplicities(self):
        kv = KnotVector([0, 0, 0, 0.5, 0.5, 1, 1, 1], 2)
        assert kv.multiplicities() == [
            KnotMultiplicity(0.0, 3), KnotMultiplicity(0.5, 2), KnotMultiplicity(1.0, 3)
        ]
        assert kv.multiplicity(0.5) == 2
        assert kv.multiplicity(0.3) == 0

    def test_unify(self):
        a = KnotVector([0, 0, 0, 0.5, 1, 1, 1], 2)
        b = KnotVector([0, 0, 0, 0.25, 0.5, 0.5, 1, 1, 1], 2)
        u = a.unify(b)

        assert_array_almost_equal(u.knots, [0, 0, 0, 0.25, 0.5, 0.5, 1, 1, 1])
        assert a.missing_knots(u) == [0.25, 0.5]
        assert b.missing_knots(u) == []

    def test_unify_requires_same_degree_and_domain(self):
        a = make_open_knot_vector(4, 2)
        with pytest.raises(ValueError):
            a.unify(make_open_knot_vector(4, 3))
        with pytest.raises(ValueError):
            a.unify(make_open_knot_vector(4, 2, domain=(0.0, 2.0)))

    def test_reversed_and_normalized(self):
        kv = KnotVector([0, 0, 0, 0.2, 1, 1, 1], 2)
        assert_array_almost_equal(kv.reversed().knots, [0, 0, 0, 0.8, 1, 1, 1])

        nk = kv.normalized((2.0, 4.0))
        assert nk.domain == (2.0, 4.0)
        assert_array_almost_equal(nk.knots, [2, 2, 2, 2.4, 4, 4, 4])

    def test_greville_abscissae(self):
        kv = make_open_knot_vector(n_basis=4, degree=2)
        assert_array_almost_equal(kv.greville_abscissae(), [0.0, 0.25, 0.75, 1.0])


class TestPeriodicKnotVector:
    """Tests for unclamped periodic knot vectors."""

    def test_structure(self):
        t = [0.0, 0.2, 0.5, 0.7, 1.0]
        kv = make_periodic_knot_vector(t, 2)

        assert_array_almost_equal(kv.knots, [-0.5, -0.3, 0.0, 0.2, 0.5, 0.7, 1.0, 1.2, 1.5])
        assert kv.domain == (0.0, 1.0)
        assert kv.n_basis == 4 + 2
        assert not kv.is_clamped

    def test_knot_differences_repeat_with_period(self):
        t = np.array([0.0, 0.1, 0.4, 0.6, 0.9, 1.0])
        kv = make_periodic_knot_vector(t, 3)
        N = len(t) - 1
        knots = kv.knots
        for i in range(len(knots) - N):
            assert knots[i + N] == pytest.approx(knots[i] + 1.0)

    def test_too_few_parameters(self):
        with pytest.raises(InvalidDegree):
            make_periodic_knot_vector([0.0, 0.5, 1.0], 3)

    @pytest.mark.parametrize("degree", [2, 3])
    def test_clamped(self, degree):
        t = [0.0, 0.2, 0.5, 0.7, 1.0]
        kv = make_periodic_knot_vector(t, degree)
        clamped, A = kv.clamped()

        p = degree
        assert clamped.is_clamped
        assert clamped.domain == (0.0, 1.0)
        assert_array_almost_equal(clamped.knots, [0.0] * (p + 1) + [0.2, 0.5, 0.7] + [1.0] * (p + 1))
        assert A.shape == (clamped.n_basis, kv.n_basis)

        # Old basis functions are combinations of the new ones on the domain
        old, new = BSplineBasis(kv), BSplineBasis(clamped)
        for u in np.linspace(0.0, 1.0, 11):
            assert_array_almost_equal(A.T @ new.eval_all(u), old.eval_all(u))

    def test_clamped_is_identity_on_open_vector(self):
        kv = make_open_knot_vector(5, 2)
        clamped, A = kv.clamped()

        assert clamped is kv
        assert_array_equal(A, np.eye(5))
