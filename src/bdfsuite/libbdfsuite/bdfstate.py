"""
BDF time-stepper state.

``BdfTs`` owns every per-problem array of the integrator: the Nordsieck
history, tolerances, coefficients, the cached Jacobian and iteration
matrix, and the counters.  It has no behaviour beyond its lifecycle:

    ts = bdf_ts_build(neq, rtol, atol, max_order=5)   # allocate
    bdf_reset(ts, f, y0, dt0, reuse=False)            # seed history
    ...                                               # bdf_advance calls
    bdf_ts_destroy(ts)                                # release

Distinct ``BdfTs`` objects share no mutable state, so independent
problems (one per spatial cell, say) may be advanced concurrently by the
caller as long as each object is used by one thread at a time.

References
----------
1. VODE: A variable-coefficient ODE solver; Brown, Byrne and Hindmarsh;
   SIAM J. Sci. Stat. Comput. 10(5), 1989.
2. An alternative implementation of variable step-size multistep
   formulas for stiff ODEs; Jackson and Sacks-Davis; ACM TOMS 6(3), 1980.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

import numpy as np

from .linalg import pascal
from .logger import get_logger
from .nrutils import assertEq

log = get_logger(__name__)

dp = np.float64

# ─── Defaults ────────────────────────────────────────────────────────
MAX_ORDER = 5
MAX_ORDER_LIMIT = 6
MAX_STEPS = 1_000_000
MAX_ITERS = 10
DT_MIN = float(np.finfo(dp).eps)
ETA_MIN = 0.2
ETA_MAX = 2.25
ETA_THRESH = 1.50
MAX_J_AGE = 50
MAX_P_AGE = 20

# total number of step attempts allowed in one advance call
BDF_MAX_ITERS = 666_666_666
STALE_AGE = 666_666_666

# offset of tq(0) inside the 4-element tq array holding tq(-1..2)
TQ0 = 1


class BdfStatus(IntEnum):
    SUCCESS = 0
    SOLVER_FAILURE = 1
    MAX_STEPS_EXCEEDED = 2


ERRORS = {
    BdfStatus.SUCCESS: "Success.",
    BdfStatus.SOLVER_FAILURE: "Newton solver failed to converge several times in a row.",
    BdfStatus.MAX_STEPS_EXCEEDED: "Too many steps were taken.",
}


@dataclass(slots=True)
class BdfTs:
    """BDF time-stepper: options, Nordsieck state, caches and counters."""

    # options
    neq: int
    max_order: int
    rtol: np.ndarray
    atol: np.ndarray
    max_steps: int = MAX_STEPS
    max_iters: int = MAX_ITERS
    verbose: int = 0
    dt_min: float = DT_MIN
    eta_min: float = ETA_MIN
    eta_max: float = ETA_MAX
    eta_thresh: float = ETA_THRESH
    max_j_age: int = MAX_J_AGE
    max_p_age: int = MAX_P_AGE

    # state
    t: float = 0.0
    dt: float = 0.0
    dt_nwt: float = 0.0          # dt used when building the iteration matrix
    k: int = -1                  # current order (-1 until first reset)
    n: int = 0                   # current step
    j_age: int = STALE_AGE
    p_age: int = STALE_AGE
    k_age: int = 0               # steps taken at current order
    tq2save: float = 0.0
    refactor: bool = False

    # arrays (allocated in __post_init__)
    tq: np.ndarray = field(init=False)   # tq(-1..2) stored at tq[TQ0-1 .. TQ0+2]
    J: np.ndarray = field(init=False)
    P: np.ndarray = field(init=False)
    ipvt: np.ndarray = field(init=False)
    z: np.ndarray = field(init=False)    # Nordsieck history, (neq, max_order+1)
    z0: np.ndarray = field(init=False)   # Nordsieck predictor
    h: np.ndarray = field(init=False)    # h = [h_n, h_{n-1}, ..., h_{n-max_order}]
    l: np.ndarray = field(init=False)
    y: np.ndarray = field(init=False)
    yd: np.ndarray = field(init=False)
    rhs: np.ndarray = field(init=False)
    e: np.ndarray = field(init=False)    # accumulated correction
    e1: np.ndarray = field(init=False)   # accumulated correction, previous step
    ewt: np.ndarray = field(init=False)
    b: np.ndarray = field(init=False)
    A: np.ndarray = field(init=False)    # Pascal matrix

    # counters
    nfe: int = 0
    nje: int = 0
    nlu: int = 0
    nit: int = 0
    nse: int = 0
    ncse: int = 0
    net: int = 0                 # local error test failures
    ninc: int = 0                # order increases
    ndec: int = 0                # order decreases

    def __post_init__(self):
        neq, mo = self.neq, self.max_order
        self.tq = np.zeros(4, dtype=dp)
        self.J = np.zeros((neq, neq), dtype=dp)
        self.P = np.zeros((neq, neq), dtype=dp)
        self.ipvt = np.zeros(neq, dtype=np.intp)
        self.z = np.zeros((neq, mo + 1), dtype=dp, order='F')
        self.z0 = np.zeros((neq, mo + 1), dtype=dp, order='F')
        self.h = np.zeros(mo + 1, dtype=dp)
        self.l = np.zeros(mo + 1, dtype=dp)
        self.y = np.zeros(neq, dtype=dp)
        self.yd = np.zeros(neq, dtype=dp)
        self.rhs = np.zeros(neq, dtype=dp)
        self.e = np.zeros(neq, dtype=dp)
        self.e1 = np.zeros(neq, dtype=dp)
        self.ewt = np.zeros(neq, dtype=dp)
        self.b = np.zeros(neq, dtype=dp)
        self.A = pascal(mo)

    @property
    def ready(self) -> bool:
        """True once the history has been seeded by ``bdf_reset``."""
        return self.z is not None and self.k >= 1

    def counters(self) -> dict:
        return dict(n=self.n, nfe=self.nfe, nje=self.nje, nlu=self.nlu,
                    nit=self.nit, nse=self.nse, ncse=self.ncse, net=self.net,
                    ninc=self.ninc, ndec=self.ndec)

    def summary(self) -> str:
        return (f"BDF: n:{self.n:6d}, fe:{self.nfe:6d}, je:{self.nje:4d}, "
                f"lu:{self.nlu:4d}, it:{self.nit:5d}, se:{self.nse:3d}, "
                f"dt:{self.dt:15.8e}, k:{self.k:2d}")


# ═════════════════════════════════════════════════════════════════════
#  Build / destroy
# ═════════════════════════════════════════════════════════════════════

def _tolerance(tol, neq, name):
    arr = np.asarray(tol, dtype=dp)
    if arr.ndim == 0:
        arr = np.full(neq, float(arr))
    arr = arr.ravel().copy()
    assertEq(arr.size, neq, msg=f'{name} length')
    if np.any(arr < 0.0):
        raise ValueError(f"{name} must be non-negative")
    return arr


def bdf_ts_build(neq, rtol, atol, max_order=MAX_ORDER, **options) -> BdfTs:
    """
    Allocate a BDF time-stepper for a system of ``neq`` equations.

    Parameters
    ----------
    neq : int
        Number of coupled unknowns.
    rtol, atol : float or array_like of length neq
        Relative and absolute tolerances.
    max_order : int
        Maximum BDF order, 1 to 6.
    **options
        Any of ``max_steps, max_iters, verbose, dt_min, eta_min, eta_max,
        eta_thresh, max_j_age, max_p_age``.

    Returns
    -------
    BdfTs
        Jacobian and iteration matrix are marked maximally stale; the
        history is seeded by the first ``bdf_reset``.
    """
    known = {'max_steps', 'max_iters', 'verbose', 'dt_min', 'eta_min',
             'eta_max', 'eta_thresh', 'max_j_age', 'max_p_age'}
    unknown = set(options) - known
    if unknown:
        raise TypeError(f"unknown BDF options: {sorted(unknown)}")
    if int(neq) < 1:
        raise ValueError(f"neq must be positive, got {neq}")
    if not 1 <= int(max_order) <= MAX_ORDER_LIMIT:
        raise ValueError(f"max_order must be in [1, {MAX_ORDER_LIMIT}], got {max_order}")
    if options.get('max_iters', MAX_ITERS) < 1:
        raise ValueError("max_iters must be at least 1")
    if not 0.0 < options.get('eta_min', ETA_MIN) <= 1.0 <= options.get('eta_max', ETA_MAX):
        raise ValueError("expected 0 < eta_min <= 1 <= eta_max")

    neq = int(neq)
    ts = BdfTs(neq=neq, max_order=int(max_order),
               rtol=_tolerance(rtol, neq, 'rtol'),
               atol=_tolerance(atol, neq, 'atol'),
               **options)
    log.debug3("built BDF stepper: neq=%d, max_order=%d", neq, ts.max_order)
    return ts


def bdf_ts_destroy(ts: BdfTs) -> None:
    """Release the arrays owned by *ts*; the stepper cannot be used again."""
    for name in ('tq', 'J', 'P', 'ipvt', 'z', 'z0', 'h', 'l', 'y', 'yd',
                 'rhs', 'e', 'e1', 'ewt', 'b', 'A', 'rtol', 'atol'):
        setattr(ts, name, None)
    ts.k = -1


# ═════════════════════════════════════════════════════════════════════
#  Callback evaluation
# ═════════════════════════════════════════════════════════════════════

def rhs_eval(ts: BdfTs, f, y, t) -> np.ndarray:
    """Evaluate ``f(y, t)``, check its shape and count the evaluation."""
    yd = np.asarray(f(y, t), dtype=dp)
    if yd.shape != (ts.neq,):
        yd = yd.reshape(-1)
        if yd.size != ts.neq:
            raise ValueError(f"derivative callback returned {yd.size} values, expected {ts.neq}")
    ts.nfe += 1
    return yd


def jac_eval(ts: BdfTs, jac, y, t) -> None:
    """Evaluate ``jac(y, t)`` into ``ts.J`` and reset the Jacobian age."""
    J = np.asarray(jac(y, t), dtype=dp)
    if J.shape != (ts.neq, ts.neq):
        if J.size != ts.neq * ts.neq:
            raise ValueError(f"jacobian callback returned shape {J.shape}, "
                             f"expected {(ts.neq, ts.neq)}")
        J = J.reshape(ts.neq, ts.neq)
    ts.J[:, :] = J
    ts.nje += 1
    ts.j_age = 0


# ═════════════════════════════════════════════════════════════════════
#  Reset
# ═════════════════════════════════════════════════════════════════════

def bdf_reset(ts: BdfTs, f, y0, dt, reuse: bool = False,
              t: Optional[float] = None) -> None:
    """
    Reset counters, set order to one and seed the history from ``y0``.

    ``z[:,0] = y0`` and ``z[:,1] = dt*f(y0, t)``.  Unless ``reuse`` is set
    the Jacobian and iteration matrix are marked stale so that the first
    step rebuilds both; with ``reuse`` the cached ones are kept.
    """
    if ts.z is None:
        raise RuntimeError("BDF stepper has been destroyed")
    if not dt > 0.0:
        raise ValueError(f"initial time step must be positive, got {dt}")
    if t is not None:
        ts.t = float(t)

    y0 = np.asarray(y0, dtype=dp).ravel()
    assertEq(y0.size, ts.neq, msg='bdf_reset y0')

    ts.y[:] = y0
    ts.dt = float(dt)
    ts.yd[:] = rhs_eval(ts, f, ts.y, ts.t)

    # counters start from zero after the seeding evaluation
    ts.nfe = 0
    ts.nje = 0
    ts.nlu = 0
    ts.nit = 0
    ts.nse = 0
    ts.ncse = 0
    ts.net = 0
    ts.ninc = 0
    ts.ndec = 0

    ts.n = 1
    ts.k = 1
    ts.h[:] = ts.dt

    ts.z[:, :] = 0.0
    ts.z[:, 0] = ts.y
    ts.z[:, 1] = ts.dt * ts.yd
    ts.e1[:] = 0.0
    ts.tq2save = 0.0

    ts.k_age = 0
    ts.refactor = False
    if not reuse:
        ts.j_age = ts.max_j_age + 1
        ts.p_age = ts.max_p_age + 1
    else:
        ts.j_age = 0
        ts.p_age = 0
