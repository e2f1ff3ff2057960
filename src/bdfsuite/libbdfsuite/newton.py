"""
Modified-Newton (chord) iteration for one implicit BDF step.

Solves

    y_n - dt_adj * f(y_n, t_n) = rhs,    rhs = z0[:,0] - z0[:,1]/l[1],

with ``dt_adj = dt/l[1]``.  The general iteration is

    solve:   P x = -c G(y(k))  for x
    update:  y(k+1) = y(k) + x

where ``G(y) = y - dt_adj*f(y, t_n) - rhs`` and ``P = I - dt_adj*J``.
Factorizing P dominates the cost, so P is reused across iterations and
across steps until the effective step drifts too far from the one it was
built for; ``c`` compensates for that drift.
"""

import numpy as np

from .bdfstate import BdfTs, jac_eval, rhs_eval
from .linalg import eye, lubksb, ludcmp
from .logger import get_logger
from .nrutils import wrmsNorm

log = get_logger(__name__)

# refactor outside this window of dt_adj/dt_nwt
DT_RAT_LO = 0.7
DT_RAT_HI = 1.429

# after a Newton failure, re-evaluate J outside this window of dt_adj/dt_nwt
JAC_RAT_LO = 0.2
JAC_RAT_HI = 5.0


def _needs_refactor(ts: BdfTs, dt_rat: float) -> bool:
    if ts.refactor or ts.dt_nwt == 0.0:
        return True
    if ts.p_age > ts.max_p_age:
        return True
    return dt_rat < DT_RAT_LO or dt_rat > DT_RAT_HI


def _needs_rebuild(ts: BdfTs, dt_rat: float) -> bool:
    if ts.dt_nwt == 0.0 or ts.j_age > ts.max_j_age:
        return True
    return ts.ncse > 0 and (dt_rat < JAC_RAT_LO or dt_rat > JAC_RAT_HI)


def build_iteration_matrix(ts: BdfTs, jac, y, t, dt_adj, rebuild: bool) -> None:
    """
    Form ``P = I - dt_adj*J`` and LU-factor it in place.

    Re-evaluates the Jacobian first when ``rebuild`` is set.  Raises
    ``numpy.linalg.LinAlgError`` if P is singular.
    """
    if rebuild:
        jac_eval(ts, jac, y, t)
        log.debug3("jacobian rebuilt at t=%.6e", t)

    ts.P[:, :] = eye(ts.neq) - dt_adj * ts.J
    ts.nlu += 1
    ludcmp(ts.P, ts.ipvt)
    ts.dt_nwt = dt_adj
    ts.p_age = 0
    ts.refactor = False


def bdf_solve(ts: BdfTs, f, jac) -> bool:
    """
    Newton solve for the current step.

    On return ``ts.e`` holds the accumulated correction to the predicted
    solution ``z0[:,0]``.  Returns True when the weighted norm of the last
    correction fell below one within ``max_iters`` iterations.
    """
    inv_l1 = 1.0 / ts.l[1]
    ts.e[:] = 0.0
    ts.rhs[:] = ts.z0[:, 0] - ts.z0[:, 1] * inv_l1
    ts.y[:] = ts.z0[:, 0]
    dt_adj = ts.dt * inv_l1
    tn = ts.t + ts.dt

    dt_rat = dt_adj / ts.dt_nwt if ts.dt_nwt > 0.0 else np.inf
    if _needs_refactor(ts, dt_rat):
        ts.refactor = True

    converged = False
    try:
        for _ in range(ts.max_iters):
            if ts.refactor:
                build_iteration_matrix(ts, jac, ts.y, tn, dt_adj,
                                       rebuild=_needs_rebuild(ts, dt_rat))

            ts.yd[:] = rhs_eval(ts, f, ts.y, tn)

            c = 2.0 * ts.dt_nwt / (dt_adj + ts.dt_nwt)
            ts.b[:] = c * (ts.rhs - ts.y + dt_adj * ts.yd)
            lubksb(ts.P, ts.ipvt, ts.b)
            ts.nit += 1

            ts.e += ts.b
            if not np.all(np.isfinite(ts.b)):
                break
            if wrmsNorm(ts.b, ts.ewt) < 1.0:
                converged = True
                break
            ts.y[:] = ts.z0[:, 0] + ts.e
    except np.linalg.LinAlgError as err:
        log.debug("singular iteration matrix at t=%.6e, dt=%.6e: %s", tn, ts.dt, err)
        ts.refactor = True

    ts.p_age += 1
    ts.j_age += 1
    return converged
