"""
BDF step controller: predict, correct, error test, order and step-size
adjustment.

One call to ``bdf_step`` is one attempt at the current step:

    PREDICT -> SOLVE -> REJECT   (t and history untouched, dt shrunk)
                     -> RETRY    (Newton failed, dt shrunk, matrix rebuilt)
                     -> FAILED   (Newton failed too many times in a row)
                     -> ACCEPTED (history corrected, t advanced)

After an accepted step the driver calls ``bdf_adjust`` to pick the order
and step size of the next one.  Order and step size never change in the
middle of a Newton iteration.
"""

from enum import Enum

import numpy as np

from .bdfcoeffs import bdf_update, xi_j
from .bdfstate import TQ0, BdfTs
from .logger import get_logger
from .newton import bdf_solve
from .nrutils import eoshift, wrmsNorm

log = get_logger(__name__)

MAX_CONSECUTIVE_FAILURES = 7
NEWTON_SHRINK = 0.25
ETA_GUARD = 1.0e-6


class StepResult(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    RETRY = "retry"
    FAILED = "failed"


# ═════════════════════════════════════════════════════════════════════
#  Predict / correct
# ═════════════════════════════════════════════════════════════════════

def bdf_predict(ts: BdfTs) -> None:
    """Predict by applying the Pascal matrix to the history."""
    k = ts.k
    ts.z0[:, :] = 0.0
    ts.z0[:, :k + 1] = ts.z[:, :k + 1] @ ts.A[:k + 1, :k + 1].T


def bdf_correct(ts: BdfTs) -> None:
    """Correct the history with the ``l`` coefficients and advance one step."""
    k = ts.k
    ts.z[:, :k + 1] = ts.z0[:, :k + 1] + np.outer(ts.e, ts.l[:k + 1])

    ts.h[:] = eoshift(ts.h, -1)
    ts.h[0] = ts.dt
    ts.t = ts.t + ts.dt
    ts.n += 1
    ts.k_age += 1


# ═════════════════════════════════════════════════════════════════════
#  Step size and order changes
# ═════════════════════════════════════════════════════════════════════

def rescale_timestep(ts: BdfTs, eta_in: float, exact: bool = False) -> None:
    """
    Rescale the time step by ``eta_in``.

    This consists of:
      1. bound eta to honour eta_min, eta_max and dt_min
      2. scale dt and h[0]
      3. rescale the Nordsieck history, ``z[:,i] *= eta**i``

    With ``exact`` the lower bounds are skipped; used to land a step
    exactly on the target time.  A landing step may be shorter than
    dt_min; the dt_min bound is then dropped so that a shrink never
    lengthens the step past the target.
    """
    eta = eta_in
    if not exact:
        floor = ts.eta_min
        if ts.dt >= ts.dt_min:
            floor = max(floor, ts.dt_min / ts.dt)
        eta = max(eta, floor)
    eta = min(eta, ts.eta_max)

    ts.dt = eta * ts.dt
    ts.h[0] = ts.dt

    for i in range(1, ts.k + 1):
        ts.z[:, i] *= eta ** i


def land_on(ts: BdfTs, t1: float) -> None:
    """Shorten the next step so that it ends exactly on ``t1``."""
    if ts.t + ts.dt > t1:
        rescale_timestep(ts, (t1 - ts.t) / ts.dt, exact=True)


def _order_change_coeffs(ts: BdfTs) -> np.ndarray:
    c = np.zeros(ts.max_order + 2)
    c[2] = 1.0
    for j in range(1, ts.k - 1):
        c = eoshift(c, -1) + c * xi_j(ts.h, j)
    return c


def decrease_order(ts: BdfTs) -> None:
    """Drop the top history column; no-op at order one."""
    if ts.k <= 1:
        return
    k = ts.k
    if k > 2:
        c = _order_change_coeffs(ts)
        for j in range(2, k):
            ts.z[:, j] -= c[j] * ts.z[:, k]

    ts.z[:, k] = 0.0
    ts.k = k - 1
    ts.ndec += 1


def increase_order(ts: BdfTs) -> None:
    """Add a history column built from the last correction; no-op at max_order."""
    if ts.k >= ts.max_order:
        return
    k = ts.k
    c = _order_change_coeffs(ts)

    ts.z[:, k + 1] = 0.0
    for j in range(2, k + 2):
        ts.z[:, j] += c[j] * ts.e

    ts.k = k + 1
    ts.ninc += 1


def _eta(error: float, q: float, safety: float) -> float:
    return 1.0 / ((safety * error) ** (1.0 / q) + ETA_GUARD)


def bdf_adjust(ts: BdfTs, t1: float) -> None:
    """
    Adjust step size and order to maximize the next step.

    Candidates are eta(k-1), eta(k) and eta(k+1); the lower and higher
    orders are only considered once ``k_age > k`` steps have been taken at
    the current order.  The winner is applied only if it exceeds
    ``eta_thresh``.  A step that would pass ``t1`` is shortened to land
    on it.
    """
    k = ts.k
    eta = np.zeros(3)              # eta(k-1), eta(k), eta(k+1)

    error = ts.tq[TQ0] * wrmsNorm(ts.e, ts.ewt)
    eta[1] = _eta(error, k, 6.0)
    if ts.k_age > k:
        if k > 1:
            error = ts.tq[TQ0 - 1] * wrmsNorm(np.ascontiguousarray(ts.z[:, k]), ts.ewt)
            eta[0] = _eta(error, k, 6.0)
        if k < ts.max_order and ts.tq2save > 0.0:
            c = (ts.tq[TQ0 + 2] / ts.tq2save) * (ts.h[0] / ts.h[2]) ** (k + 1)
            error = ts.tq[TQ0 + 1] * wrmsNorm(ts.e - c * ts.e1, ts.ewt)
            eta[2] = _eta(error, k + 2, 10.0)
        ts.k_age = 0

    rescale = 0.0
    etamax = eta.max()
    if etamax > ts.eta_thresh:
        if etamax == eta[0]:
            decrease_order(ts)
        elif etamax == eta[2]:
            increase_order(ts)
        rescale = etamax

    if rescale != 0.0:
        rescale_timestep(ts, rescale)
    land_on(ts, t1)

    # save for next step (needed to compute eta(k+1))
    ts.e1[:] = ts.e
    ts.tq2save = ts.tq[TQ0 + 2]


# ═════════════════════════════════════════════════════════════════════
#  One step attempt
# ═════════════════════════════════════════════════════════════════════

def local_error(ts: BdfTs) -> float:
    """Weighted local error estimate of the last Newton solve."""
    return ts.tq[TQ0] * wrmsNorm(ts.e, ts.ewt)


def bdf_step(ts: BdfTs, f, jac) -> StepResult:
    """
    Attempt one BDF step of size ``ts.dt`` from ``ts.t``.

    Returns the outcome; only ``ACCEPTED`` moves ``t`` and the history.
    """
    bdf_update(ts)
    bdf_predict(ts)

    if not bdf_solve(ts, f, jac):
        ts.refactor = True
        ts.nse += 1
        ts.ncse += 1
        if ts.ncse > MAX_CONSECUTIVE_FAILURES:
            log.debug2("newton failed %d times in a row at t=%.6e", ts.ncse, ts.t)
            return StepResult.FAILED
        log.debug2("newton failed at t=%.6e, dt=%.6e; shrinking", ts.t, ts.dt)
        rescale_timestep(ts, NEWTON_SHRINK)
        return StepResult.RETRY
    ts.ncse = 0

    error = local_error(ts)
    if not error <= 1.0:
        ts.net += 1
        eta = _eta(error, ts.k, 6.0) if np.isfinite(error) else 0.0
        log.debug2("error test failed at t=%.6e, dt=%.6e, err=%.3e", ts.t, ts.dt, error)
        rescale_timestep(ts, eta)
        return StepResult.REJECTED

    bdf_correct(ts)
    ts.refactor = False
    return StepResult.ACCEPTED
