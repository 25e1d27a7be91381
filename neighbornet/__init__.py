"""
neighbornet
===========

Neighbor-Net split networks from pairwise distances.

Neighbor-Net agglomerates taxa into a circular ordering, then fits
non-negative least-squares weights to every split whose side is a
contiguous arc of that ordering.  The result is a weighted circular split
system, the input to a planar split-network drawing.

Main Classes
------------
NeighborNet : Full pipeline over one distance matrix
DistanceMatrix : Validated, read-only dissimilarity matrix
CircularOrdering : Cyclic permutation of the taxa
Split, WeightedSplitSystem : Weighted bipartitions of the taxa
Progress : Cancellation flag and progress sink

Pipeline Stages
---------------
compute_cycle : Circular ordering by Neighbor-Net agglomeration
circular_split_weights : Non-negative least-squares circular split weights
assemble_split_system : Cutoff, compatibility label and fit

Split Utilities
---------------
fit_statistics : Least-squares fit, absolute fit and stress
split_distances : Distances induced by a set of splits
are_compatible, are_weakly_compatible, is_compatible,
is_weakly_compatible, is_circular, classify_compatibility

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger
suppress_warnings : Suppress specific warnings
use_backend : Force specific computational backend
silent_benchmark : Combine quiet + backend selection + warning suppression

Backend Information
-------------------
get_available_backends : Query available computational backends
get_backend_info : Get comprehensive backend status
check_numba_available : Check if numba JIT compilation is active

Examples
--------
Basic usage:

>>> from neighbornet import NeighborNet
>>> D = [[0, 2, 2, 3], [2, 0, 3, 2], [2, 3, 0, 2], [3, 2, 2, 0]]
>>> net = NeighborNet(D)
>>> net.cycle.canonical()
(1, 2, 4, 3)
>>> len(net.splits), round(net.fit, 6)
(6, 100.0)

Stage by stage:

>>> from neighbornet import compute_cycle, circular_split_weights, assemble_split_system
>>> cycle = compute_cycle(D)
>>> weighted = circular_split_weights(cycle, D)
>>> system = assemble_split_system(weighted, D)

With context managers:

>>> from neighbornet import quiet, use_backend
>>> with quiet(), use_backend('python'):
...     net = NeighborNet(D)
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Main classes
from ._distances import DistanceMatrix
from ._ordering import CircularOrdering
from ._splits import Split, WeightedSplitSystem, split_distances
from ._progress import Progress
from ._network import NeighborNet

# Errors
from ._errors import NeighborNetError, InvalidInputError, CanceledError

# Pipeline stages
from ._cycle import compute_cycle
from ._weights import circular_split_weights
from ._assembler import (
    DEFAULT_CUTOFF,
    assemble_split_system,
    fit_statistics,
    are_compatible,
    are_weakly_compatible,
    is_compatible,
    is_weakly_compatible,
    is_circular,
    classify_compatibility,
)

# Context managers (user-facing utilities)
from ._context import (
    suppress_logger,
    quiet,
    suppress_warnings,
    use_backend,
    silent_benchmark,
)

# Utilities
from ._utils import pair_index, canonical_cycle, cycles_equivalent

# Backend information (useful for checking capabilities)
from ._backend import (
    get_available_backends,
    get_backend_info,
    check_numba_available,
)

from ._logging import (
    log_numba_status,
    log_backend_availability,
    install_numba_warning_filter,
)

# Log numba status and backend availability once per session
_NUMBA_AVAILABLE = check_numba_available()
log_numba_status(_NUMBA_AVAILABLE)
log_backend_availability(get_available_backends())
install_numba_warning_filter(_NUMBA_AVAILABLE)

# Public API
__all__ = [
    # Main classes
    "NeighborNet",
    "DistanceMatrix",
    "CircularOrdering",
    "Split",
    "WeightedSplitSystem",
    "Progress",
    # Errors
    "NeighborNetError",
    "InvalidInputError",
    "CanceledError",
    # Pipeline stages
    "compute_cycle",
    "circular_split_weights",
    "assemble_split_system",
    "DEFAULT_CUTOFF",
    # Split utilities
    "fit_statistics",
    "split_distances",
    "are_compatible",
    "are_weakly_compatible",
    "is_compatible",
    "is_weakly_compatible",
    "is_circular",
    "classify_compatibility",
    # Context managers
    "suppress_logger",
    "quiet",
    "suppress_warnings",
    "use_backend",
    "silent_benchmark",
    # Utilities
    "pair_index",
    "canonical_cycle",
    "cycles_equivalent",
    # Backend information
    "get_available_backends",
    "get_backend_info",
    "check_numba_available",
    # Version info
    "__version__",
]
