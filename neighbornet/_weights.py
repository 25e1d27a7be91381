"""
_weights.py
===========
Non-negative least-squares weights for the circular splits of an ordering.

Public API
----------
  circular_split_weights(cycle, distances, variances=None, *,
                         least_squares=None, regularization='nnls',
                         lambda_fraction=1.0, progress=None,
                         backend='best') -> WeightedSplitSystem

Problem
-------
Relabel the taxa by their cycle positions 0..n-1.  The circular split
(i, j), i < j, has positions i+1..j on one side; pairs and splits share the
packed index of _utils.pair_index.  With A the 0/1 design matrix (A[pair,
split] = 1 when the split separates the pair) and W the diagonal matrix of
inverse variances, the weights minimise

    (A x - d)' W (A x - d)      subject to  x >= 0.

A is never formed: A b and A' d are computed in O(n^2) by the recurrences
in _kernels.py.

Method
------
An active-set method with conjugate gradients:

1. Start from the unconstrained optimum (closed form for uniform weights,
   refined by an unconstrained CG solve otherwise).  If it is non-negative
   it is also the constrained optimum.
2. Inner loop: clamp the worst 60% of negative weights to zero, re-solve the
   free weights by CG, then walk from the last feasible point towards the
   new solution until the first weight hits zero, clamp it, repeat until
   feasible.
3. Outer loop: if some clamped weight has gradient below -1e-4, release the
   most negative one and go back to 2; otherwise stop.
"""

import logging
import math
from typing import Optional

import numpy as np

from neighbornet._distances import DistanceMatrix
from neighbornet._errors import InvalidInputError
from neighbornet._ordering import CircularOrdering
from neighbornet._progress import Progress, ensure_progress
from neighbornet._splits import Split, WeightedSplitSystem
from neighbornet._context import select_kernels
from neighbornet._logging import log_solver_summary
from neighbornet._utils import pair_count


logger = logging.getLogger(__name__)


CG_EPSILON = 1e-4
ZERO_TOLERANCE = 1e-12
GRADIENT_TOLERANCE = -1e-4
COLLAPSE_FRACTION = 0.6
ZERO_VARIANCE_WEIGHT = 1e11

LEAST_SQUARES_MODES = ("ols", "fm1", "fm2", "estimated")
REGULARIZATIONS = ("nnls", "lasso")


# ======================================================================== #
# Public entry point                                                        #
# ======================================================================== #


def circular_split_weights(
    cycle,
    distances,
    variances=None,
    *,
    least_squares: Optional[str] = None,
    regularization: str = "nnls",
    lambda_fraction: float = 1.0,
    progress: Optional[Progress] = None,
    backend: str = "best",
) -> WeightedSplitSystem:
    """
    Fit non-negative weights to every circular split of *cycle*.

    Parameters
    ----------
    cycle : CircularOrdering or sequence of int
        Circular ordering of the taxa 1..n.
    distances : DistanceMatrix or array_like
        Dissimilarities; validated if not already a DistanceMatrix.
    variances : array_like, optional
        Variance matrix; overrides one carried by *distances*.
    least_squares : {'ols', 'fm1', 'fm2', 'estimated'}, optional
        Per-pair variance model: constant, proportional to d, proportional
        to d squared, or taken from the variance matrix.  Defaults to
        'estimated' when variances are available and 'ols' otherwise.
    regularization : {'nnls', 'lasso'}, default 'nnls'
        'lasso' adds the penalty lambda * sum(x) with
        lambda = max(A'Wd) * (1 - lambda_fraction).
    lambda_fraction : float, default 1.0
        In [0, 1]; 1 means no penalty.  Ignored for 'nnls'.
    progress : Progress, optional
        Checked at every active-set iteration.
    backend : str, default 'best'
        'best', 'numba' or 'python'.

    Returns
    -------
    WeightedSplitSystem
        Every circular split with its weight (weights at or below 1e-12 are
        exactly zero), in packed split order.  Compatibility and fit are
        left unset; see assemble_split_system().

    Raises
    ------
    InvalidInputError
        On malformed input or option values.
    CanceledError
        If cancellation is requested through *progress*.
    """
    dm = DistanceMatrix.coerce(distances, variances)
    n = dm.n_taxa
    if not isinstance(cycle, CircularOrdering):
        cycle = CircularOrdering(cycle)
    if len(cycle) != n:
        raise InvalidInputError(
            f"ordering covers {len(cycle)} taxa but the distance matrix has {n}"
        )

    mode = _resolve_least_squares(least_squares, dm)
    if regularization not in REGULARIZATIONS:
        raise InvalidInputError(
            f"regularization must be one of {REGULARIZATIONS}, got {regularization!r}"
        )
    if not 0.0 <= lambda_fraction <= 1.0:
        raise InvalidInputError(
            f"lambda_fraction must lie in [0, 1], got {lambda_fraction!r}"
        )
    progress = ensure_progress(progress)

    if n == 1:
        return WeightedSplitSystem(n, cycle)
    if n == 2:
        return WeightedSplitSystem(n, cycle, [Split([cycle[1]], n, dm.get(1, 2))])

    resolved, kernels = select_kernels(backend)
    progress.set_tasks("Neighbor-Net", "split weights")
    progress.check_for_cancel()

    positions = np.array(cycle.taxa, dtype=np.int64) - 1
    d = _packed_upper(dm.values[np.ix_(positions, positions)])
    W = _pair_weights(mode, d, dm, positions)

    solver = _ActiveSetSolver(n, d, W, kernels, progress)
    x = solver.solve(regularization, lambda_fraction)
    x[x <= ZERO_TOLERANCE] = 0.0

    log_solver_summary(
        n,
        int(np.count_nonzero(x)),
        mode,
        regularization,
        solver.outer_iterations,
        solver.feasible_start,
        resolved,
    )
    return _to_split_system(cycle, x)


def _resolve_least_squares(least_squares: Optional[str], dm: DistanceMatrix) -> str:
    if least_squares is None:
        return "estimated" if dm.has_variances else "ols"
    if least_squares not in LEAST_SQUARES_MODES:
        raise InvalidInputError(
            f"least_squares must be one of {LEAST_SQUARES_MODES}, got {least_squares!r}"
        )
    if least_squares == "estimated" and not dm.has_variances:
        raise InvalidInputError("least_squares='estimated' requires a variance matrix")
    return least_squares


def _packed_upper(matrix: np.ndarray) -> np.ndarray:
    """Upper triangle of *matrix* in packed pair order."""
    rows, cols = np.triu_indices(matrix.shape[0], k=1)
    return np.ascontiguousarray(matrix[rows, cols], dtype=np.float64)


def _pair_weights(mode: str, d: np.ndarray, dm: DistanceMatrix, positions) -> np.ndarray:
    if mode == "ols":
        v = np.ones_like(d)
    elif mode == "fm1":
        v = d.copy()
    elif mode == "fm2":
        v = d * d
    else:
        v = _packed_upper(dm.variances[np.ix_(positions, positions)])

    W = np.full_like(d, ZERO_VARIANCE_WEIGHT)
    nonzero = v != 0.0
    W[nonzero] = 1.0 / v[nonzero]
    return W


def _to_split_system(cycle: CircularOrdering, x: np.ndarray) -> WeightedSplitSystem:
    n = len(cycle)
    splits = []
    index = 0
    for i in range(n - 1):
        for j in range(i + 1, n):
            splits.append(
                Split([cycle[k] for k in range(i + 1, j + 1)], n, float(x[index]))
            )
            index += 1
    return WeightedSplitSystem(n, cycle, splits)


# ======================================================================== #
# Active-set solver                                                         #
# ======================================================================== #


class _ActiveSetSolver:
    """
    Constrained weighted least squares over the circular splits of the
    ordering 0..n-1.  One instance per solve; owns its scratch vectors.
    """

    def __init__(self, n: int, d: np.ndarray, W: np.ndarray, kernels, progress: Progress):
        self.n = n
        self.npairs = pair_count(n)
        self.d = d
        self.W = W
        self.kernels = kernels
        self.progress = progress
        self.uniform = bool(np.all(W == W[0]))
        self.outer_iterations = 0
        self.feasible_start = False
        self._y = np.zeros(self.npairs)
        self._z = np.zeros(self.npairs)

    def normal_product(self, x: np.ndarray, out: np.ndarray) -> np.ndarray:
        """out = A'WA x"""
        self.kernels.circular_design_product(self.n, x, self._y)
        self._y *= self.W
        self.kernels.circular_design_transpose_product(self.n, self._y, out)
        return out

    def solve(self, regularization: str, lambda_fraction: float) -> np.ndarray:
        n, npairs = self.n, self.npairs
        x = np.zeros(npairs)
        self.kernels.unconstrained_split_weights(n, self.d, x)

        AtWd = np.zeros(npairs)
        self.kernels.circular_design_transpose_product(n, self.W * self.d, AtWd)

        no_constraints = np.zeros(npairs, dtype=bool)
        if not self.uniform:
            # The closed form is only optimal for uniform weights
            self.conjugate_gradients(AtWd, no_constraints, x)

        if regularization == "lasso":
            lam = max(float(AtWd.max()), 0.0) * (1.0 - lambda_fraction)
            AtWd -= lam
            logger.debug(f"Lasso penalty lambda={lam:.6g}")

        if regularization == "nnls" and np.all(x >= 0.0):
            self.feasible_start = True
            return x

        old_x = np.ones(npairs)
        active = np.zeros(npairs, dtype=bool)
        r = np.zeros(npairs)
        # Without a penalty the starting point already solves the free problem
        first_pass = regularization == "nnls"

        while True:
            self.outer_iterations += 1
            self.progress.check_for_cancel()

            # Inner loop: find the next feasible optimum
            while True:
                self.progress.check_for_cancel()
                if not first_pass:
                    self.conjugate_gradients(AtWd, active, x)
                first_pass = False
                x[active] = 0.0

                worst = _worst_indices(x, COLLAPSE_FRACTION)
                if worst.size:
                    x[worst] = 0.0
                    active[worst] = True
                    self.conjugate_gradients(AtWd, active, x)

                negative = x < 0.0
                if not negative.any():
                    break
                with np.errstate(divide="ignore", invalid="ignore"):
                    steps = np.where(negative, old_x / (old_x - x), np.inf)
                min_i = int(np.argmin(steps))
                min_xi = steps[min_i]

                free = ~active
                old_x[free] += min_xi * (x[free] - old_x[free])
                active[min_i] = True
                x[min_i] = 0.0

            # Gradient of the objective; optimal when no clamped weight wants to grow
            self.normal_product(x, r)
            r -= AtWd
            if not active.any():
                return x
            grads = np.where(active, r, np.inf)
            min_i = int(np.argmin(grads))
            if grads[min_i] > GRADIENT_TOLERANCE:
                return x
            active[min_i] = False

    def conjugate_gradients(self, b: np.ndarray, active: np.ndarray, x: np.ndarray) -> None:
        """
        Solve A'WA x = b over the free entries of x (entries flagged in
        *active* are held at zero), starting from the current x.
        """
        kmax = self.npairs
        r = self.normal_product(x, np.zeros(self.npairs))
        r = np.where(active, 0.0, b - r)
        p = np.zeros(self.npairs)
        w = np.zeros(self.npairs)

        rho = float(r @ r)
        rho_old = 0.0
        e_0 = CG_EPSILON * math.sqrt(float(b @ b))
        k = 0
        while rho > e_0 * e_0 and k < kmax:
            k += 1
            if k == 1:
                p[:] = r
            else:
                p *= rho / rho_old
                p += r

            self.normal_product(p, w)
            w[active] = 0.0
            denom = float(p @ w)
            if denom <= 0.0:
                break
            alpha = rho / denom

            x += alpha * p
            r -= alpha * w
            rho_old = rho
            rho = float(r @ r)


def _worst_indices(x: np.ndarray, fraction: float) -> np.ndarray:
    """
    Indices of the ceil(fraction * k) most negative entries of x, where k
    is the number of negative entries.  Ties go to the earliest entries.
    """
    negative = np.flatnonzero(x < 0.0)
    if negative.size == 0:
        return negative
    n_kept = int(math.ceil(fraction * negative.size))
    order = np.argsort(x[negative], kind="stable")
    return negative[order[:n_kept]]
