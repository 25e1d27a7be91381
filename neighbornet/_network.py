"""
_network.py
===========
End-to-end Neighbor-Net pipeline over one distance matrix.

Public API
----------
  NeighborNet(distances, variances=None, *, cutoff=1e-6, least_squares=None,
              regularization='nnls', lambda_fraction=1.0, progress=None,
              backend='best')
      Constructor.  Validates the input, computes the circular ordering,
      fits the circular split weights and assembles the final split system.

  .cycle          CircularOrdering
  .splits         WeightedSplitSystem (filtered, classified, with fit)
  .compatibility  'compatible' or 'cyclic'
  .fit            least-squares fit percentage
  .split_distances() / .residuals() / .fit_statistics()

Logging
-------
Every module logs through ``logging.getLogger(__name__)``, so all messages
sit below the 'neighbornet' logger:

  INFO level:    numba status at import, input summary, ordering, solver
                 iterations, split counts, compatibility and fit.
  WARNING level: fits below 80%, numba performance warnings, requests for an
                 unavailable backend.

Users can control logging in the standard way:

    import logging
    logging.getLogger('neighbornet').setLevel(logging.WARNING)

or temporarily with the quiet() and suppress_logger() context managers.

Pipeline
--------
The stages run strictly in sequence and keep no state between instances:

  DistanceMatrix -> compute_cycle -> circular_split_weights
                 -> assemble_split_system
"""

import logging
from typing import Dict, Optional

import numpy as np

from neighbornet._distances import DistanceMatrix
from neighbornet._progress import Progress, ensure_progress
from neighbornet._cycle import compute_cycle
from neighbornet._weights import circular_split_weights
from neighbornet._assembler import DEFAULT_CUTOFF, assemble_split_system, fit_statistics
from neighbornet._logging import log_input_summary


logger = logging.getLogger(__name__)


class NeighborNet:
    """
    Neighbor-Net split network of a distance matrix.

    Parameters
    ----------
    distances : DistanceMatrix or array_like, shape (n, n)
        Symmetric non-negative dissimilarities with zero diagonal.
    variances : array_like, shape (n, n), optional
        Per-pair variances; enables 'estimated' weighting.
    cutoff : float, default 1e-6
        Splits with weight at or below the cutoff are dropped.
    least_squares : {'ols', 'fm1', 'fm2', 'estimated'}, optional
        Variance model for the split-weight fit.
    regularization : {'nnls', 'lasso'}, default 'nnls'
    lambda_fraction : float, default 1.0
        Lasso strength control in [0, 1]; 1 means no penalty.
    progress : Progress, optional
        Cancellation flag and progress sink shared by both stages.
    backend : str, default 'best'
        'best', 'numba' or 'python'.

    Attributes (read-only after construction)
    -----------------------------------------
    distances     : DistanceMatrix
    n_taxa        : int
    cycle         : CircularOrdering
    all_splits    : WeightedSplitSystem   every circular split, unfiltered
    splits        : WeightedSplitSystem   retained splits
    compatibility : str
    fit           : float

    Raises
    ------
    InvalidInputError
        If the input fails validation.
    CanceledError
        If cancellation is requested through *progress*.

    Examples
    --------
    >>> D = [[0, 2, 2, 3], [2, 0, 3, 2], [2, 3, 0, 2], [3, 2, 2, 0]]
    >>> net = NeighborNet(D)
    >>> net.cycle.canonical()
    (1, 2, 4, 3)
    >>> round(net.fit, 6)
    100.0
    >>> net.compatibility
    'cyclic'
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(
        self,
        distances,
        variances=None,
        *,
        cutoff: float = DEFAULT_CUTOFF,
        least_squares: Optional[str] = None,
        regularization: str = "nnls",
        lambda_fraction: float = 1.0,
        progress: Optional[Progress] = None,
        backend: str = "best",
    ) -> None:
        self.distances = DistanceMatrix.coerce(distances, variances)
        self.n_taxa = self.distances.n_taxa
        progress = ensure_progress(progress)

        self._log_input_summary()

        logger.info("Computing circular ordering...")
        self.cycle = compute_cycle(self.distances, progress=progress, backend=backend)

        logger.info("Fitting circular split weights...")
        self.all_splits = circular_split_weights(
            self.cycle,
            self.distances,
            least_squares=least_squares,
            regularization=regularization,
            lambda_fraction=lambda_fraction,
            progress=progress,
            backend=backend,
        )

        self.splits = assemble_split_system(self.all_splits, self.distances, cutoff)
        self.compatibility = self.splits.compatibility
        self.fit = self.splits.fit

    def _log_input_summary(self) -> None:
        values = self.distances.values
        n = self.n_taxa
        rows, cols = np.triu_indices(n, k=1)
        upper = values[rows, cols]
        log_input_summary(
            n,
            float(upper.max()) if upper.size else 0.0,
            int(np.count_nonzero(upper == 0.0)),
            self.distances.has_variances,
        )

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def split_distances(self) -> np.ndarray:
        """Distances induced by the retained splits, as an (n, n) matrix."""
        return self.splits.split_distances()

    def residuals(self) -> np.ndarray:
        """Split-induced minus input distances, as an (n, n) matrix."""
        return self.split_distances() - self.distances.values

    def fit_statistics(self) -> Dict[str, float]:
        """Least-squares fit, absolute fit and stress of the retained splits."""
        return fit_statistics(self.distances, self.splits)

    def __repr__(self) -> str:
        return (
            f"NeighborNet(n_taxa={self.n_taxa}, n_splits={len(self.splits)}, "
            f"compatibility={self.compatibility!r}, fit={self.fit:.2f})"
        )
