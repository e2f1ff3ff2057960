"""
Dense linear algebra for the BDF Newton iteration.

Implements:
    - LU decomposition with scaled partial pivoting (ludcmp)
    - LU forward/back substitution (lubksb)
    - Pascal (binomial) matrix for Nordsieck prediction (pascal)
    - Identity helper (eye)

The iteration matrix is factored once and reused for many solves, so
``ludcmp`` works in place on the matrix and ``lubksb`` is a compiled
kernel working in place on the right-hand side.
"""

import numpy as np
from numba import jit
from scipy.linalg import expm

from .nrutils import assertEq, outerprod


# ═════════════════════════════════════════════════════════════════════
#  LU decomposition with partial pivoting  (ludcmp)
# ═════════════════════════════════════════════════════════════════════

def ludcmp(a, indx):
    """
    LU decomposition with scaled partial pivoting (Crout's algorithm).

    Modifies a in-place (overwritten with L and U factors).
    Fills indx with pivot indices (0-based).
    Returns d (+1.0 or -1.0 for even/odd row exchanges).

    Raises
    ------
    numpy.linalg.LinAlgError
        If a row is identically zero or a pivot vanishes.
    """
    n = assertEq(a.shape[0], a.shape[1], indx.size, msg='ludcmp')

    d = 1.0
    vv = np.max(np.abs(a), axis=1)
    if np.any(vv == 0.0) or not np.all(np.isfinite(vv)):
        raise np.linalg.LinAlgError('singular matrix in ludcmp')
    vv = 1.0 / vv

    for j in range(n):
        imax = j + int(np.argmax(vv[j:] * np.abs(a[j:, j])))

        if j != imax:
            a[[imax, j], :] = a[[j, imax], :]
            d = -d
            vv[imax] = vv[j]

        indx[j] = imax

        if a[j, j] == 0.0:
            raise np.linalg.LinAlgError(f'zero pivot in ludcmp at column {j}')

        a[j + 1:, j] /= a[j, j]
        a[j + 1:, j + 1:] -= outerprod(a[j + 1:, j], a[j, j + 1:])

    return d


# ═════════════════════════════════════════════════════════════════════
#  LU back-substitution  (lubksb)
# ═════════════════════════════════════════════════════════════════════

@jit(nopython=True, cache=True)
def _lubksb(a, indx, b):
    n = b.size
    ii = -1
    for i in range(n):
        ll = indx[i]
        summ = b[ll]
        b[ll] = b[i]
        if ii >= 0:
            for j in range(ii, i):
                summ -= a[i, j] * b[j]
        elif summ != 0.0:
            ii = i
        b[i] = summ

    for i in range(n - 1, -1, -1):
        summ = b[i]
        for j in range(i + 1, n):
            summ -= a[i, j] * b[j]
        b[i] = summ / a[i, i]


def lubksb(a, indx, b):
    """
    LU back-substitution.

    Solves A*x = b given the LU factors in a and pivot indices in indx.
    Modifies b in-place with the solution.
    """
    assertEq(a.shape[0], a.shape[1], indx.size, b.size, msg='lubksb')
    _lubksb(a, indx, b)


# ═════════════════════════════════════════════════════════════════════
#  Pascal matrix and identity
# ═════════════════════════════════════════════════════════════════════

def pascal(max_order):
    """
    Upper-triangular Pascal matrix ``A[i, j] = C(j, i)`` of size max_order+1.

    Built as ``A = exp(U)`` where ``U`` is nilpotent with
    ``U[i-1, i] = i``.  The series terminates, so rounding the matrix
    exponential recovers the exact integers.
    """
    m = max_order + 1
    U = np.zeros((m, m))
    for i in range(1, m):
        U[i - 1, i] = i
    return np.rint(expm(U)).astype(np.int64)


def eye(n):
    """n x n float64 identity."""
    return np.eye(n, dtype=np.float64)
