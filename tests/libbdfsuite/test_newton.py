"""
Tests for bdfsuite.libbdfsuite.newton: modified-Newton solve and the
Jacobian / iteration-matrix reuse policy.
"""

import numpy as np
import pytest

from bdfsuite.libbdfsuite import newton as N
from bdfsuite.libbdfsuite.bdfcoeffs import bdf_update
from bdfsuite.libbdfsuite.bdfstate import bdf_reset, bdf_ts_build
from bdfsuite.libbdfsuite.bdfstep import bdf_predict


# ─── helper ODEs ─────────────────────────────────────────────────────

def _decay(y, t):
    return -y


def _decay_jac(y, t):
    return -np.eye(y.size)


def _riccati(y, t):
    """dy/dt = -y**2"""
    return -y * y


def _riccati_jac(y, t):
    return np.diag(-2.0 * y)


def _prepared(dt=0.1, f=_decay, rtol=1e-6, atol=1e-6, **kw):
    ts = bdf_ts_build(1, rtol, atol, **kw)
    bdf_reset(ts, f, [1.0], dt, t=0.0)
    bdf_update(ts)
    bdf_predict(ts)
    return ts


# ═════════════════════════════════════════════════════════════════════
#  Convergence
# ═════════════════════════════════════════════════════════════════════

class TestSolve:
    def test_linear_converges_fast(self):
        ts = _prepared()
        assert N.bdf_solve(ts, _decay, _decay_jac)
        assert 1 <= ts.nit <= 2
        assert ts.nje == 1
        assert ts.nlu == 1
        assert ts.dt_nwt == pytest.approx(ts.dt / ts.l[1])

    def test_linear_solution_is_backward_euler(self):
        ts = _prepared(rtol=1e-10, atol=1e-10)
        assert N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.z0[0, 0] + ts.e[0] == pytest.approx(1.0 / 1.1, rel=1e-10)

    def test_nonlinear_solution(self):
        """Backward Euler for y' = -y**2: 0.1 y**2 + y - 1 = 0."""
        ts = _prepared(f=_riccati, rtol=1e-10, atol=1e-10)
        assert N.bdf_solve(ts, _riccati, _riccati_jac)
        expected = (-1.0 + np.sqrt(1.4)) / 0.2
        assert ts.z0[0, 0] + ts.e[0] == pytest.approx(expected, rel=1e-8)
        assert ts.nit >= 2

    def test_ages_advance(self):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.j_age == 1
        assert ts.p_age == 1

    def test_singular_matrix_is_failure(self):
        ts = _prepared()
        nan_jac = lambda y, t: np.array([[np.nan]])
        assert not N.bdf_solve(ts, _decay, nan_jac)
        assert ts.refactor
        assert ts.nit == 0

    def test_non_finite_derivative_is_failure(self):
        f = lambda y, t: -y if t == 0.0 else np.full_like(y, np.nan)
        ts = _prepared(f=f)
        assert not N.bdf_solve(ts, f, _decay_jac)
        assert ts.nit == 1


# ═════════════════════════════════════════════════════════════════════
#  Reuse policy
# ═════════════════════════════════════════════════════════════════════

class TestReuse:
    def test_same_step_reuses_everything(self):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nje == 1
        assert ts.nlu == 1

    def test_small_step_change_reuses_matrix(self):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        ts.dt *= 1.2
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nlu == 1

    @pytest.mark.parametrize("ratio", [0.5, 2.0])
    def test_large_step_change_refactors_only(self, ratio):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        ts.dt *= ratio
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nlu == 2
        assert ts.nje == 1

    def test_old_matrix_refactored(self):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        ts.p_age = ts.max_p_age + 1
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nlu == 2
        assert ts.nje == 1

    def test_old_jacobian_rebuilt(self):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        ts.j_age = ts.max_j_age + 1
        ts.refactor = True
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nje == 2

    @pytest.mark.parametrize("ratio", [0.25, 4.0])
    def test_retry_inside_window_refactors_only(self, ratio):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        ts.refactor = True
        ts.ncse = 1
        ts.dt *= ratio
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nje == 1
        assert ts.nlu == 2

    @pytest.mark.parametrize("ratio", [0.1, 8.0])
    def test_retry_outside_window_rebuilds_jacobian(self, ratio):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        ts.refactor = True
        ts.ncse = 1
        ts.dt *= ratio
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nje == 2
        assert ts.nlu == 2
        assert ts.j_age == 1

    def test_large_step_change_without_failure_keeps_jacobian(self):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        ts.dt *= 8.0
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nje == 1
        assert ts.nlu == 2

    def test_reuse_reset_keeps_cached_matrix(self):
        ts = _prepared()
        N.bdf_solve(ts, _decay, _decay_jac)
        bdf_reset(ts, _decay, [1.0], ts.dt, reuse=True, t=0.0)
        bdf_update(ts)
        bdf_predict(ts)
        N.bdf_solve(ts, _decay, _decay_jac)
        assert ts.nje == 0
        assert ts.nlu == 0
