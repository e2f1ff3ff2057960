"""
Small numerical utilities shared by the BDF integrator.

End-off array shifting (``eoshift``), outer products,
shape assertions and the weighted root-mean-square norm
used for every convergence and error test.  Vectorised with NumPy; the
norm is a Numba kernel because it runs once per Newton iteration.
"""

from typing import Any

import numpy as np
from numba import jit

from .logger import get_logger

log = get_logger(__name__)


# ===================================================================
#  Assertion / error utilities
# ===================================================================

class NRError(ValueError):
    """Raised when an argument check in the numerical routines fails."""


def nrerror(msg: str) -> None:
    """
    Report a fatal argument error.

    Parameters
    ----------
    msg : str
        Error message, logged at ERROR before raising.

    Raises
    ------
    NRError
    """
    log.error("nrerror: %s", msg)
    raise NRError(msg)


def assertEq(*args: Any, msg: str = "Equality assertion failed") -> Any:
    """
    Assert all positional arguments are equal; return the common value.

    Typically used to check array dimensions agree before a kernel runs:
    ``n = assertEq(a.shape[0], a.shape[1], indx.size, msg='ludcmp')``.
    """
    if not args:
        nrerror(f"{msg}: no arguments")
    first = args[0]
    if any(a != first for a in args[1:]):
        nrerror(f"{msg}: {args}")
    return first


# ===================================================================
#  Shifts and outer operations
# ===================================================================

def eoshift(arr: np.ndarray, shift: int = -1) -> np.ndarray:
    """
    End-off shift of a 1-D array, filling vacated slots with zero.

    ``shift=-1`` moves every element one slot towards higher indices
    (``out[i] = arr[i-1]``, ``out[0] = 0``), which is how the Nordsieck
    recursions multiply a coefficient polynomial by ``x``.
    """
    out = np.zeros_like(arr)
    if shift == 0:
        out[:] = arr
    elif shift < 0:
        s = -shift
        if s < arr.size:
            out[s:] = arr[:-s]
    else:
        if shift < arr.size:
            out[:-shift] = arr[shift:]
    return out


def outerprod(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Outer product ``a[i]*b[j]``."""
    return np.outer(a, b)


# ===================================================================
#  Weighted norm
# ===================================================================

@jit(nopython=True, cache=True)
def wrmsNorm(v, ewt):
    """
    Weighted root-mean-square norm ``sqrt(mean((v*ewt)**2))``.

    Both arguments must be float64 vectors of the same length.
    """
    n = v.size
    r = 0.0
    for m in range(n):
        r += (v[m] * ewt[m]) ** 2
    return np.sqrt(r / n)
