"""
bdfsuite: variable-order BDF integration of stiff ODE systems.

Built for per-cell chemical-kinetics systems coupled to a reacting-flow
solver, but agnostic to the equations it integrates: it consumes a
derivative callback, an optional Jacobian callback and per-component
tolerances.
"""

from . import libbdfsuite
from .libbdfsuite import (
    BdfStatus,
    BdfTs,
    advance,
    bdf_advance,
    bdf_reset,
    bdf_ts_build,
    bdf_ts_destroy,
)

__all__ = [
    "libbdfsuite",
    "BdfStatus",
    "BdfTs",
    "advance",
    "bdf_advance",
    "bdf_reset",
    "bdf_ts_build",
    "bdf_ts_destroy",
]
