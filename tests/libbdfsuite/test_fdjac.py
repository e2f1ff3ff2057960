"""
Tests for bdfsuite.libbdfsuite.fdjac: forward-difference Jacobians.
"""

import numpy as np
import pytest

from bdfsuite.libbdfsuite import fdjac as F
from bdfsuite.libbdfsuite.bdfstate import bdf_ts_build

RNG = np.random.default_rng(3)


class TestNumericalJacobian:
    def test_linear_is_exact(self):
        """For f = A y forward differences recover A to rounding."""
        A = RNG.standard_normal((4, 4))
        f = lambda y, t: A @ y
        J = F.numerical_jacobian(f, RNG.standard_normal(4), 0.0)
        np.testing.assert_allclose(J, A, rtol=1e-6, atol=1e-6)

    def test_nonlinear(self):
        f = lambda y, t: np.array([y[0] ** 2, y[0] * y[1]])
        y = np.array([1.5, -2.0])
        J = F.numerical_jacobian(f, y, 0.0)
        expected = np.array([[2 * y[0], 0.0], [y[1], y[0]]])
        np.testing.assert_allclose(J, expected, rtol=1e-6, atol=1e-6)

    def test_time_is_passed_through(self):
        f = lambda y, t: t * y
        J = F.numerical_jacobian(f, np.array([1.0, 2.0]), 3.0)
        np.testing.assert_allclose(J, 3.0 * np.eye(2), rtol=1e-6, atol=1e-6)

    @pytest.mark.parametrize("given, calls", [(False, 4), (True, 3)])
    def test_known_value_saves_evaluation(self, given, calls):
        count = [0]

        def f(y, t):
            count[0] += 1
            return -y

        y = np.ones(3)
        fy = -y if given else None
        F.numerical_jacobian(f, y, 0.0, fy=fy)
        assert count[0] == calls

    def test_input_untouched(self):
        y = np.array([1.0, 2.0])
        F.numerical_jacobian(lambda y, t: y ** 2, y, 0.0)
        np.testing.assert_array_equal(y, [1.0, 2.0])

    def test_error_weights_set_floor(self):
        """Small components use 1/ewt as the increment floor."""
        f = lambda y, t: np.array([y[0] ** 3])
        J = F.numerical_jacobian(f, np.array([1e-8]), 0.0, ewt=np.array([1e8]))
        assert J[0, 0] == pytest.approx(3e-16, abs=1e-20)


class TestMakeFdJacobian:
    def test_callback(self):
        jac = F.make_fd_jacobian(lambda y, t: -2.0 * y)
        np.testing.assert_allclose(jac(np.ones(2), 0.0), -2.0 * np.eye(2), rtol=1e-6)

    def test_evaluations_counted_on_stepper(self):
        ts = bdf_ts_build(2, 1e-6, 1e-6)
        jac = F.make_fd_jacobian(lambda y, t: -y, ts)
        jac(np.ones(2), 0.0)
        jac(np.ones(2), 0.0)
        assert ts.nfe == 6
