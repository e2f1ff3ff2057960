"""
Nordsieck update coefficients and error coefficients for variable-step BDF.

Regarding the ``l`` coefficients see section 5, eqn. 5.2, of Jackson and
Sacks-Davis (1980).  The error coefficients ``tq`` are adapted from CVODE
and are stored with an offset (``tq[TQ0 + i]`` holds ``tq(i)``):

    tq(-1)  coeff. for order k-1 error estimate
    tq(0)   coeff. for order k error estimate
    tq(1)   coeff. for order k+1 error estimate
    tq(2)   coeff. for order k+1 error estimate (used for second derivative)

The step array is ``h = [h_n, h_{n-1}, ..., h_{n-k}]`` where we are
advancing from step n-1 to step n.
"""

import numpy as np

from .bdfstate import TQ0, BdfTs
from .nrutils import eoshift


def alpha0(k):
    """Return alpha_0 = -sum_{j=1}^{k} 1/j."""
    a0 = -1.0
    for j in range(2, k + 1):
        a0 -= 1.0 / j
    return a0


def alphahat0(k, h):
    """Return the variable-step analogue of alpha_0."""
    a0 = -1.0
    for j in range(2, k + 1):
        a0 -= h[0] / np.sum(h[:j])
    return a0


def xi_j(h, j):
    """Return xi_j = (h_n + ... + h_{n-j+1}) / h_n."""
    return np.sum(h[:j]) / h[0]


def xi_star_inv(k, h):
    """Return 1/xi*_k."""
    hs = 0.0
    xii = -alpha0(k)
    for j in range(k - 1):
        hs += h[j]
        xii -= h[0] / hs
    return xii


def ewts(ts: BdfTs, y, ewt):
    """Error weights ``ewt = 1/(rtol*|y| + atol)`` (in-place)."""
    ewt[:] = 1.0 / (ts.rtol * np.abs(y) + ts.atol)


def bdf_update(ts: BdfTs) -> None:
    """
    Compute Nordsieck update coefficients ``l`` and error coefficients ``tq``
    for the current order and step history, and refresh the error weights
    from the current solution.
    """
    k, h = ts.k, ts.h

    l = np.zeros_like(ts.l)
    l[0] = 1.0
    l[1] = xi_j(h, 1)
    if k > 1:
        for j in range(2, k):
            l = l + eoshift(l, -1) / xi_j(h, j)
        l = l + eoshift(l, -1) * xi_star_inv(k, h)
    ts.l[:] = l

    a0hat = alphahat0(k, h)
    a0 = alpha0(k)

    xi_inv = 1.0
    xistar_inv = 1.0
    if k > 1:
        xi_inv = 1.0 / xi_j(h, k)
        xistar_inv = xi_star_inv(k, h)

    tq = np.zeros(4)
    a1 = 1.0 - a0hat + a0
    a2 = 1.0 + k * a1
    tq[TQ0] = abs(a1 / (a0 * a2))
    tq[TQ0 + 2] = abs(a2 * xistar_inv / (l[k] * xi_inv))
    if k > 1:
        c = xistar_inv / l[k]
        a3 = a0 + 1.0 / k
        a4 = a0hat + xi_inv
        tq[TQ0 - 1] = abs(c * (1.0 - a4 + a3) / a3)
    else:
        tq[TQ0 - 1] = 1.0

    xi_inv = h[0] / np.sum(h[:k + 1])
    a5 = a0 - 1.0 / (k + 1)
    a6 = a0hat - xi_inv
    tq[TQ0 + 1] = abs((1.0 - a6 + a5) / a2 / (xi_inv * (k + 2) * a5))
    ts.tq[:] = tq

    ewts(ts, ts.z[:, 0], ts.ewt)
