"""
_assembler.py
=============
Final assembly of a Neighbor-Net split system: weight cutoff, compatibility
classification and goodness of fit.

Public API
----------
  assemble_split_system(weighted, distances, cutoff=DEFAULT_CUTOFF)
      Drop splits at or below the cutoff, classify the rest and attach the
      least-squares fit.

  fit_statistics(distances, splits) -> dict
      Least-squares fit, absolute fit, stress and the underlying sums.

  are_compatible, are_weakly_compatible, is_compatible,
  is_weakly_compatible, is_circular, classify_compatibility
      Pairwise, triple-wise and system-wide compatibility tests.

Compatibility labels
--------------------
  'compatible'        no two splits conflict (the splits form a tree)
  'cyclic'            every split is circular for one common ordering
  'weakly compatible' every triple of splits is weakly compatible
  'incompatible'      none of the above
"""

import logging
from itertools import combinations
from typing import Dict, Iterable, Optional, Sequence

import numpy as np

from neighbornet._distances import DistanceMatrix
from neighbornet._errors import InvalidInputError
from neighbornet._cycle import compute_cycle
from neighbornet._splits import Split, WeightedSplitSystem, split_distances
from neighbornet._utils import bits_to_taxa
from neighbornet._logging import log_split_system_summary


logger = logging.getLogger(__name__)


DEFAULT_CUTOFF = 1e-6

COMPATIBLE = "compatible"
CYCLIC = "cyclic"
WEAKLY_COMPATIBLE = "weakly compatible"
INCOMPATIBLE = "incompatible"

# Triple-wise weak compatibility is cubic in the number of splits
WEAK_COMPATIBILITY_MAX_TAXA = 100


# ======================================================================== #
# Assembly                                                                  #
# ======================================================================== #


def assemble_split_system(
    weighted: WeightedSplitSystem,
    distances,
    cutoff: float = DEFAULT_CUTOFF,
) -> WeightedSplitSystem:
    """
    Build the final split system from the solver output.

    Parameters
    ----------
    weighted : WeightedSplitSystem
        Every circular split of one ordering with its fitted weight.
    distances : DistanceMatrix or array_like
        The distances the weights were fitted to.
    cutoff : float, default 1e-6
        Splits with weight at or below the cutoff are dropped.

    Returns
    -------
    WeightedSplitSystem
        The retained splits in cycle order, labelled 'compatible' when they
        form a tree and 'cyclic' otherwise, with the least-squares fit as a
        percentage in [0, 100].
    """
    dm = DistanceMatrix.coerce(distances)
    if dm.n_taxa != weighted.n_taxa:
        raise InvalidInputError(
            f"split system covers {weighted.n_taxa} taxa but the distance "
            f"matrix has {dm.n_taxa}"
        )
    if cutoff < 0.0:
        raise InvalidInputError(f"cutoff must be non-negative, got {cutoff!r}")

    kept = [s for s in weighted if s.weight > cutoff]
    compatibility = COMPATIBLE if is_compatible(kept) else CYCLIC
    fit = fit_statistics(dm, kept)["ls_fit"]

    log_split_system_summary(len(kept), len(weighted) - len(kept), compatibility, fit)
    return WeightedSplitSystem(
        weighted.n_taxa, weighted.cycle, kept, compatibility=compatibility, fit=fit
    )


def fit_statistics(distances, splits: Iterable[Split]) -> Dict[str, float]:
    """
    Goodness-of-fit measures of a split system against a distance matrix.

    Parameters
    ----------
    distances : DistanceMatrix or array_like
    splits : iterable of Split

    Returns
    -------
    dict
        - 'ls_fit' : 100 (1 - SSR / SST), SST the sum of squared distances
        - 'fit'    : 100 (1 - sum |s - d| / sum d)
        - 'stress' : sqrt(SSR / sum s^2)
        - 'ssr', 'sst' : the residual and total sums of squares
        Sums run over distinct taxon pairs.  Both fit percentages are
        clamped into [0, 100]; when all distances are zero a perfect
        reproduction scores 100.
    """
    dm = DistanceMatrix.coerce(distances)
    n = dm.n_taxa
    rows, cols = np.triu_indices(n, k=1)
    d = dm.values[rows, cols]
    s = split_distances(n, splits)[rows, cols]

    residual = s - d
    ssr = float(residual @ residual)
    sst = float(d @ d)
    abs_residual = float(np.abs(residual).sum())
    d_sum = float(d.sum())
    s_sq = float(s @ s)

    return {
        "ls_fit": _percent_fit(ssr, sst),
        "fit": _percent_fit(abs_residual, d_sum),
        "stress": float(np.sqrt(ssr / s_sq)) if s_sq > 0.0 else 0.0,
        "ssr": ssr,
        "sst": sst,
    }


def _percent_fit(residual: float, total: float) -> float:
    if total <= 0.0:
        return 100.0 if residual <= 0.0 else 0.0
    return float(min(100.0, max(0.0, 100.0 * (1.0 - residual / total))))


# ======================================================================== #
# Compatibility                                                             #
# ======================================================================== #


def are_compatible(s1: Split, s2: Split) -> bool:
    """
    Two splits are compatible when one of the four intersections of their
    sides is empty.
    """
    a1, b1 = s1.bits, s1.complement_bits
    a2, b2 = s2.bits, s2.complement_bits
    return not (a1 & a2) or not (a1 & b2) or not (b1 & a2) or not (b1 & b2)


def are_weakly_compatible(s1: Split, s2: Split, s3: Split) -> bool:
    """
    Three splits are weakly compatible unless one of the two forbidden
    patterns of non-empty triple intersections occurs.
    """
    a1, b1 = s1.bits, s1.complement_bits
    a2, b2 = s2.bits, s2.complement_bits
    a3, b3 = s3.bits, s3.complement_bits
    return not (
        (a1 & a2 & a3 and a1 & b2 & b3 and b1 & a2 & b3 and b1 & b2 & a3)
        or (b1 & b2 & b3 and b1 & a2 & a3 and a1 & b2 & a3 and a1 & a2 & b3)
    )


def is_compatible(splits: Sequence[Split]) -> bool:
    """True if every pair of splits is compatible."""
    splits = list(splits)
    return all(are_compatible(s1, s2) for s1, s2 in combinations(splits, 2))


def is_weakly_compatible(splits: Sequence[Split]) -> bool:
    """True if every triple of splits is weakly compatible."""
    splits = list(splits)
    return all(
        are_weakly_compatible(s1, s2, s3) for s1, s2, s3 in combinations(splits, 3)
    )


def is_circular(splits: Iterable[Split], cycle: Sequence[int]) -> bool:
    """
    True if every split has one side occupying a contiguous arc of *cycle*.

    The side not containing the first taxon of the cycle is tested, which
    avoids arcs wrapping around the end of the sequence.
    """
    taxa = list(cycle)
    position = {t: k for k, t in enumerate(taxa)}
    first = taxa[0]
    for split in splits:
        side_bits = split.complement_bits if split.contains(first) else split.bits
        side = [position[t] for t in bits_to_taxa(side_bits)]
        if max(side) - min(side) + 1 != len(side):
            return False
    return True


def classify_compatibility(
    n_taxa: int, splits: Sequence[Split], cycle: Optional[Sequence[int]] = None
) -> str:
    """
    Strongest compatibility label that holds for *splits*.

    Parameters
    ----------
    n_taxa : int
    splits : sequence of Split
    cycle : sequence of int, optional
        Ordering to test circularity against.  When omitted, the
        Neighbor-Net ordering of the split-induced distances is used.

    Returns
    -------
    str
        'compatible', 'cyclic', 'weakly compatible' or 'incompatible'.
        Weak compatibility is only tested below 100 taxa.
    """
    splits = list(splits)
    if is_compatible(splits):
        return COMPATIBLE
    if cycle is None:
        cycle = compute_cycle(split_distances(n_taxa, splits)).taxa
    if is_circular(splits, cycle):
        return CYCLIC
    if n_taxa < WEAK_COMPATIBILITY_MAX_TAXA and is_weakly_compatible(splits):
        return WEAKLY_COMPATIBLE
    return INCOMPATIBLE
