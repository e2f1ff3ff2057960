"""
Advance many independent systems, one ``BdfTs`` per cell.

Each cell of a reacting-flow grid carries its own small kinetics system.
The cells share no integrator state, so the caller may pass any
``executor`` with a ``map`` method (a ``concurrent.futures``
``ThreadPoolExecutor``, say) to spread them over workers; by default they
run one after another.  Process pools do not send the updated steppers
back, so ``reset=False`` continuation needs threads or serial runs.
"""

from functools import partial

import numpy as np

from .bdf import bdf_advance
from .bdfstate import BdfStatus, bdf_ts_build
from .fdjac import make_fd_jacobian
from .logger import get_logger

log = get_logger(__name__)


def build_cells(ncell, neq, rtol, atol, max_order=5, **options):
    """Allocate one stepper per cell with identical options."""
    return [bdf_ts_build(neq, rtol, atol, max_order=max_order, **options)
            for _ in range(ncell)]


def _cell_callbacks(ts, f, jac, i):
    fi = partial(f, i=i)
    ji = make_fd_jacobian(fi, ts) if jac is None else partial(jac, i=i)
    return fi, ji


def _advance_cell(args, f, jac, t0, t1, dt0, reset, reuse):
    i, ts, y0 = args
    fi, ji = _cell_callbacks(ts, f, jac, i)
    return bdf_advance(ts, fi, ji, y0, t0, t1, dt0, reset=reset, reuse=reuse)


def advance_cells(states, f, jac, y0, t0, t1, dt0,
                  reset=True, reuse=False, executor=None):
    """
    Advance every cell from t0 to t1.

    Parameters
    ----------
    states : sequence of BdfTs
        One stepper per cell, all with the same ``neq``.
    f : callable(y, t, i) -> ydot
        Derivative of cell ``i`` (``i`` is passed by keyword).
    jac : callable(y, t, i) -> (neq, neq), or None
        ``None`` selects forward differences (``fdjac.make_fd_jacobian``),
        counted in each cell's ``nfe``.
    y0 : array_like, shape (ncell, neq)
    t0, t1, dt0, reset, reuse
        As for ``bdf_advance``.
    executor : object with ``map``, optional

    Returns
    -------
    y1 : ndarray, shape (ncell, neq)
    statuses : list of BdfStatus
    """
    y0 = np.atleast_2d(np.asarray(y0, dtype=np.float64))
    if y0.shape[0] != len(states):
        raise ValueError(f"{y0.shape[0]} initial states for {len(states)} cells")

    work = partial(_advance_cell, f=f, jac=jac, t0=t0, t1=t1, dt0=dt0,
                   reset=reset, reuse=reuse)
    items = [(i, ts, y0[i]) for i, ts in enumerate(states)]
    mapper = map if executor is None else executor.map
    results = list(mapper(work, items))

    y1 = np.vstack([r[0] for r in results])
    statuses = [r[1] for r in results]
    nfail = sum(s is not BdfStatus.SUCCESS for s in statuses)
    if nfail:
        log.warning("%d of %d cells failed to reach t=%.6e", nfail, len(states), t1)
    return y1, statuses
