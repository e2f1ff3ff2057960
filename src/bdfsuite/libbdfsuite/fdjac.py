"""
Forward-difference Jacobian.

The integrator itself has no built-in finite-difference fallback; this
module is the collaborator a caller substitutes when no analytic
Jacobian is available:

>>> jac = make_fd_jacobian(f, ts)
>>> y1, status = bdf_advance(ts, f, jac, y0, t0, t1, dt0)
"""

import numpy as np

SQRT_EPS = float(np.sqrt(np.finfo(np.float64).eps))


def numerical_jacobian(f, y, t, fy=None, ewt=None):
    """
    Forward-difference approximation of ``df/dy`` at ``(y, t)``.

    Parameters
    ----------
    f : callable(y, t) -> ydot
    y : ndarray, shape (n,)
    t : float
    fy : ndarray, optional
        ``f(y, t)`` if already known; saves one evaluation.
    ewt : ndarray, optional
        Error weights; ``1/ewt`` sets the increment floor for components
        near zero.  Without it the floor is one.

    Returns
    -------
    ndarray, shape (n, n)
    """
    y = np.asarray(y, dtype=np.float64)
    n = y.size
    if fy is None:
        fy = np.asarray(f(y, t), dtype=np.float64)
    floor = np.ones(n) if ewt is None else 1.0 / np.asarray(ewt, dtype=np.float64)

    J = np.empty((n, n), dtype=np.float64)
    yj = y.copy()
    for j in range(n):
        temp = yj[j]
        h = SQRT_EPS * max(abs(temp), floor[j])
        yj[j] = temp + h
        h = yj[j] - temp       # exactly representable increment
        J[:, j] = (np.asarray(f(yj, t), dtype=np.float64) - fy) / h
        yj[j] = temp
    return J


def make_fd_jacobian(f, ts=None):
    """
    Wrap ``f`` into a ``jac(y, t)`` callback using forward differences.

    Each Jacobian costs ``neq + 1`` evaluations of ``f``; when the stepper
    ``ts`` is given they are added to its ``nfe`` counter.
    """
    def jac(y, t):
        J = numerical_jacobian(f, y, t)
        if ts is not None:
            ts.nfe += J.shape[0] + 1
        return J
    return jac
