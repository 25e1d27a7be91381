"""
_distances.py
=============
Validated, read-only pairwise dissimilarity matrix.

Taxa are identified by 1-based integer ids; row and column ``i - 1`` of the
input array belong to taxon ``i``.  The matrix is copied on construction and
the copy is marked read-only, so nothing downstream can mutate the caller's
data or the validated copy.  Algorithms that need scratch space allocate
their own.

Validation rules
----------------
- values must be a square 2-D array of finite numbers
- symmetric up to SYMMETRY_TOLERANCE (relative to the entry magnitude)
- no negative entries
- zero diagonal
- an optional variance matrix must have the same shape and strictly
  positive off-diagonal entries

Violations raise InvalidInputError carrying the 1-based taxon pair where
the problem was found.  The triangle inequality is not checked.
"""

from typing import Optional, Tuple

import numpy as np

from neighbornet._errors import InvalidInputError


SYMMETRY_TOLERANCE = 1e-9


def _first_offender(mask: np.ndarray) -> Tuple[int, int]:
    """1-based (row, column) of the first True entry in *mask*."""
    i, j = np.argwhere(mask)[0]
    return int(i) + 1, int(j) + 1


def _as_square_array(values, label: str, ignore_diagonal: bool = False) -> np.ndarray:
    try:
        arr = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{label} is not numeric: {e}") from e

    if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise InvalidInputError(
            f"{label} must be a square 2-D matrix, got shape {arr.shape}"
        )

    bad = ~np.isfinite(arr)
    if ignore_diagonal:
        np.fill_diagonal(bad, False)
    if bad.any():
        i, j = _first_offender(bad)
        raise InvalidInputError(
            f"{label} has a non-finite entry at ({i}, {j})", indices=(i, j)
        )
    return arr


class DistanceMatrix:
    """
    Symmetric non-negative dissimilarity matrix over taxa ``1..n``.

    Parameters
    ----------
    values : array_like, shape (n, n)
        Pairwise dissimilarities.
    variances : array_like, shape (n, n), optional
        Per-pair variances used for weighted least squares.  Diagonal
        entries are ignored and stored as zero.

    Attributes
    ----------
    n_taxa : int
    values : float64 (n, n), read-only
    variances : float64 (n, n) read-only, or None

    Examples
    --------
    >>> dm = DistanceMatrix([[0, 2, 3], [2, 0, 4], [3, 4, 0]])
    >>> dm.n_taxa
    3
    >>> dm.get(1, 3)
    3.0
    """

    def __init__(self, values, variances=None) -> None:
        arr = _as_square_array(values, "distance matrix")
        n = arr.shape[0]
        if n == 0:
            raise InvalidInputError("distance matrix must cover at least one taxon")

        asym = np.abs(arr - arr.T) > SYMMETRY_TOLERANCE * np.maximum(
            1.0, np.maximum(np.abs(arr), np.abs(arr.T))
        )
        if asym.any():
            i, j = _first_offender(np.triu(asym))
            raise InvalidInputError(
                f"distance matrix is not symmetric: D[{i}][{j}]={arr[i - 1, j - 1]!r} "
                f"but D[{j}][{i}]={arr[j - 1, i - 1]!r}",
                indices=(i, j),
            )

        neg = arr < 0.0
        if neg.any():
            i, j = _first_offender(neg)
            raise InvalidInputError(
                f"distance matrix has a negative entry D[{i}][{j}]={arr[i - 1, j - 1]!r}",
                indices=(i, j),
            )

        diag = np.diagonal(arr)
        if np.any(diag != 0.0):
            k = int(np.flatnonzero(diag != 0.0)[0]) + 1
            raise InvalidInputError(
                f"distance matrix has a non-zero diagonal entry D[{k}][{k}]={diag[k - 1]!r}",
                indices=(k, k),
            )

        # Average away round-off so downstream code sees an exactly symmetric matrix
        arr = (arr + arr.T) / 2.0
        arr.flags.writeable = False
        self.values = arr
        self.n_taxa = n

        if variances is None:
            self.variances = None
        else:
            var = _as_square_array(variances, "variance matrix", ignore_diagonal=True)
            if var.shape != arr.shape:
                raise InvalidInputError(
                    f"variance matrix shape {var.shape} does not match "
                    f"distance matrix shape {arr.shape}"
                )
            off_diagonal = ~np.eye(n, dtype=bool)
            bad = (var <= 0.0) & off_diagonal
            if bad.any():
                i, j = _first_offender(bad)
                raise InvalidInputError(
                    f"variance matrix has a non-positive entry V[{i}][{j}]={var[i - 1, j - 1]!r}",
                    indices=(i, j),
                )
            var = var.copy()
            np.fill_diagonal(var, 0.0)
            var.flags.writeable = False
            self.variances = var

    @classmethod
    def coerce(cls, distances, variances=None) -> "DistanceMatrix":
        """
        Return *distances* unchanged if it already is a DistanceMatrix,
        otherwise validate it as a new one.
        """
        if isinstance(distances, cls):
            if variances is None:
                return distances
            return cls(distances.values, variances)
        return cls(distances, variances)

    @property
    def has_variances(self) -> bool:
        return self.variances is not None

    def get(self, i: int, j: int) -> float:
        """Distance between taxa *i* and *j* (1-based)."""
        return float(self.values[i - 1, j - 1])

    def variance(self, i: int, j: int) -> float:
        """Variance for the pair of taxa *i*, *j* (1-based); 1.0 when absent."""
        if self.variances is None:
            return 1.0
        return float(self.variances[i - 1, j - 1])

    def __len__(self) -> int:
        return self.n_taxa

    def __repr__(self) -> str:
        extra = ", with variances" if self.has_variances else ""
        return f"DistanceMatrix(n_taxa={self.n_taxa}{extra})"
