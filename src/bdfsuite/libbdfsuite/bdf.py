"""
BDF (backward differentiation formula) time-stepping driver.

``bdf_advance`` advances one stiff system from ``t0`` to ``t1``:

    ts = bdf_ts_build(neq, rtol, atol, max_order=5)
    y1, status = bdf_advance(ts, f, jac, y0, t0, t1, dt0, reset=True)

``f(y, t) -> ydot`` and ``jac(y, t) -> (neq, neq)`` are plain callables.
There is no built-in finite-difference fallback; wrap ``f`` with
``fdjac.make_fd_jacobian`` when no analytic Jacobian is available.

The status is a ``BdfStatus``; fatal conditions are returned, not raised.
With ``reset=False`` the history, order and step size carried by ``ts``
continue from the previous call; with ``reuse=True`` a reset keeps the
cached Jacobian and iteration matrix.
"""

import numpy as np

from .bdfstate import BDF_MAX_ITERS, ERRORS, BdfStatus, BdfTs, bdf_reset
from .bdfstep import StepResult, bdf_adjust, bdf_step, land_on
from .logger import get_logger

log = get_logger(__name__)

# arrival tolerance on t1, in units of machine epsilon
_T_ULPS = 16.0


def _reached(t, t1):
    return t >= t1 - _T_ULPS * np.finfo(np.float64).eps * max(1.0, abs(t1))


def bdf_advance(ts: BdfTs, f, jac, y0, t0, t1, dt0,
                reset: bool = True, reuse: bool = False):
    """
    Advance system from t0 to t1.

    Parameters
    ----------
    ts : BdfTs
        Stepper from ``bdf_ts_build``.
    f : callable(y, t) -> ndarray (neq,)
    jac : callable(y, t) -> ndarray (neq, neq)
    y0 : array_like (neq,)
        Initial condition; only read when ``reset`` is set.
    t0, t1 : float
        Start and target times, ``t1 >= t0``.
    dt0 : float
        Initial step size; only read when ``reset`` is set.
    reset : bool
        Re-seed the history from ``y0`` (order 1, counters zeroed).
    reuse : bool
        On reset, keep the Jacobian and iteration matrix ages.

    Returns
    -------
    y1 : ndarray (neq,)
        Solution at t1 (order-0 history column), or at the time reached
        when the status is fatal.
    status : BdfStatus
    """
    if ts.z is None:
        raise RuntimeError("BDF stepper has been destroyed")
    if t1 < t0:
        raise ValueError(f"t1 ({t1}) must not precede t0 ({t0})")
    if jac is None:
        raise TypeError("a Jacobian callback is required; "
                        "use fdjac.make_fd_jacobian(f) for forward differences")

    ts.t = float(t0)
    if reset:
        bdf_reset(ts, f, y0, dt0, reuse)
    elif not ts.ready:
        raise RuntimeError("bdf_advance called with reset=False before any reset")

    ts.ncse = 0
    status = BdfStatus.SUCCESS

    if _reached(ts.t, t1):
        return ts.z[:, 0].copy(), status
    land_on(ts, t1)

    for _ in range(BDF_MAX_ITERS):
        if ts.n > ts.max_steps:
            status = BdfStatus.MAX_STEPS_EXCEEDED
            break

        result = bdf_step(ts, f, jac)

        if result is StepResult.FAILED:
            status = BdfStatus.SOLVER_FAILURE
            break
        if result is not StepResult.ACCEPTED:
            continue

        if ts.verbose > 1:
            log.debug(ts.summary())

        if _reached(ts.t, t1):
            ts.t = float(t1)
            break

        bdf_adjust(ts, t1)
    else:
        status = BdfStatus.MAX_STEPS_EXCEEDED

    if status is not BdfStatus.SUCCESS:
        log.warning("BDF: %s (t=%.8e, n=%d)", ERRORS[status], ts.t, ts.n)
    if ts.verbose > 0:
        log.info(ts.summary())

    return ts.z[:, 0].copy(), status


# short alias
advance = bdf_advance
