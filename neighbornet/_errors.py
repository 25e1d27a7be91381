"""
_errors.py
==========
Exception types raised by neighbornet.

Two failure modes exist.  Malformed input is rejected up front with
InvalidInputError, before any computation starts.  A caller-requested
cancellation surfaces as CanceledError from whichever stage was running;
no partial result is ever returned.
"""

from typing import Optional, Tuple


class NeighborNetError(Exception):
    """Base class for all errors raised by neighbornet."""


class InvalidInputError(NeighborNetError, ValueError):
    """
    Raised when a distance matrix, variance matrix, ordering or option
    value is malformed.

    Parameters
    ----------
    message : str
        Human-readable description of the problem.
    indices : tuple[int, int] or None
        1-based taxon pair at which the problem was found, when it can be
        pinned to a single matrix entry.

    Examples
    --------
    >>> from neighbornet import DistanceMatrix
    >>> try:
    ...     DistanceMatrix([[0, 1], [2, 0]])
    ... except InvalidInputError as e:
    ...     print(e.indices)
    (1, 2)
    """

    def __init__(self, message: str, indices: Optional[Tuple[int, int]] = None):
        super().__init__(message)
        self.indices = indices


class CanceledError(NeighborNetError):
    """Raised when a computation is canceled through its Progress object."""
