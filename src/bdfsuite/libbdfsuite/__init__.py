"""libbdfsuite sub-package: the BDF integrator and its numerical helpers."""

# Import modules themselves (allows: from bdfsuite.libbdfsuite import bdf)
from . import batch
from . import bdf
from . import bdfcoeffs
from . import bdfstate
from . import bdfstep
from . import fdjac
from . import linalg
from . import logger
from . import newton
from . import nrutils

from .bdf import advance, bdf_advance
from .bdfstate import BdfStatus, BdfTs, bdf_reset, bdf_ts_build, bdf_ts_destroy

__all__ = [
    "batch",
    "bdf",
    "bdfcoeffs",
    "bdfstate",
    "bdfstep",
    "fdjac",
    "linalg",
    "logger",
    "newton",
    "nrutils",
    "advance",
    "bdf_advance",
    "BdfStatus",
    "BdfTs",
    "bdf_reset",
    "bdf_ts_build",
    "bdf_ts_destroy",
]
