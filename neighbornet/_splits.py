"""
_splits.py
==========
Splits and weighted split systems.

A split is a bipartition of the taxa ``1..n`` into two non-empty sides.  It
is stored as an integer bitset of one side (bit t set means taxon t is on
that side), called the A side.  Two Split objects are equal when they
describe the same bipartition, whichever side each calls A.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from neighbornet._errors import InvalidInputError
from neighbornet._ordering import CircularOrdering
from neighbornet._utils import bits_to_taxa, full_bits, taxa_to_bits


class Split:
    """
    Weighted bipartition of the taxa ``1..n_taxa``.

    Parameters
    ----------
    a_side : int or iterable of int
        Bitset of the A side, or the taxon ids on the A side.
    n_taxa : int
        Total number of taxa.
    weight : float, default 0.0
    confidence : float or None, default None
        Unset unless a caller supplies one.

    Examples
    --------
    >>> s = Split([2, 3], 4, weight=1.5)
    >>> s.a_taxa, s.b_taxa
    ([2, 3], [1, 4])
    >>> s == Split([1, 4], 4)
    True
    >>> s.separates(1, 2)
    True
    """

    __slots__ = ("bits", "n_taxa", "weight", "confidence")

    def __init__(
        self,
        a_side,
        n_taxa: int,
        weight: float = 0.0,
        confidence: Optional[float] = None,
    ) -> None:
        bits = int(a_side) if isinstance(a_side, (int, np.integer)) else taxa_to_bits(a_side)
        everything = full_bits(n_taxa)
        if bits & ~everything:
            raise InvalidInputError(f"split side {bits_to_taxa(bits)} has taxa outside 1..{n_taxa}")
        if bits == 0 or bits == everything:
            raise InvalidInputError("both sides of a split must be non-empty")
        self.bits = bits
        self.n_taxa = int(n_taxa)
        self.weight = float(weight)
        self.confidence = confidence

    @property
    def complement_bits(self) -> int:
        return full_bits(self.n_taxa) & ~self.bits

    @property
    def a_taxa(self) -> List[int]:
        return bits_to_taxa(self.bits)

    @property
    def b_taxa(self) -> List[int]:
        return bits_to_taxa(self.complement_bits)

    @property
    def size(self) -> int:
        """Number of taxa on the smaller side."""
        a = bin(self.bits).count("1")
        return min(a, self.n_taxa - a)

    @property
    def is_trivial(self) -> bool:
        return self.size == 1

    def normalized_bits(self) -> int:
        """The side that does not contain taxon 1."""
        return self.complement_bits if self.bits & 0b10 else self.bits

    def contains(self, taxon: int) -> bool:
        """True if *taxon* is on the A side."""
        return bool(self.bits >> taxon & 1)

    def separates(self, i: int, j: int) -> bool:
        return self.contains(i) != self.contains(j)

    def __eq__(self, other) -> bool:
        if isinstance(other, Split):
            return (
                self.n_taxa == other.n_taxa
                and self.normalized_bits() == other.normalized_bits()
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.n_taxa, self.normalized_bits()))

    def __repr__(self) -> str:
        return f"Split({self.a_taxa} | {self.b_taxa}, weight={self.weight:.6g})"


def circular_split(cycle: CircularOrdering, i: int, j: int, weight: float = 0.0) -> Split:
    """
    The circular split (i, j) of *cycle*: positions i+1..j form the A side.

    Parameters
    ----------
    cycle : CircularOrdering
    i, j : int
        0-based positions with ``0 <= i < j < n``.
    """
    return Split([cycle[k] for k in range(i + 1, j + 1)], len(cycle), weight)


class WeightedSplitSystem:
    """
    Circular splits of one ordering with non-negative weights.

    Parameters
    ----------
    n_taxa : int
    cycle : CircularOrdering
        The ordering every split is circular for.
    splits : iterable of Split
        Splits with their weights.  Duplicate bipartitions are not allowed.
    compatibility : str or None
        'compatible', 'cyclic', 'weakly compatible' or 'incompatible' once
        classified; None before.
    fit : float or None
        Least-squares fit percentage once computed; None before.

    Examples
    --------
    >>> cycle = CircularOrdering([1, 2, 3, 4])
    >>> system = WeightedSplitSystem(
    ...     4, cycle, [Split([2], 4, 0.75), Split([2, 3], 4, 0.5)]
    ... )
    >>> system.weight(Split([1, 3, 4], 4))
    0.75
    >>> system.weight(Split([4], 4))
    0.0
    """

    def __init__(
        self,
        n_taxa: int,
        cycle: CircularOrdering,
        splits: Iterable[Split] = (),
        compatibility: Optional[str] = None,
        fit: Optional[float] = None,
    ) -> None:
        self.n_taxa = int(n_taxa)
        self.cycle = cycle
        self.compatibility = compatibility
        self.fit = fit
        self._splits: Dict[int, Split] = {}
        for split in splits:
            self._add(split)

    def _add(self, split: Split) -> None:
        if split.n_taxa != self.n_taxa:
            raise InvalidInputError(
                f"split over {split.n_taxa} taxa added to a system over {self.n_taxa}"
            )
        key = split.normalized_bits()
        if key in self._splits:
            raise InvalidInputError(f"duplicate split {split!r}")
        self._splits[key] = split

    # ------------------------------------------------------------------ #
    # Collection protocol                                                  #
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self._splits)

    def __iter__(self) -> Iterator[Split]:
        return iter(self._splits.values())

    def __contains__(self, split) -> bool:
        return isinstance(split, Split) and split.normalized_bits() in self._splits

    def __repr__(self) -> str:
        parts = [f"n_taxa={self.n_taxa}", f"n_splits={len(self)}"]
        if self.compatibility is not None:
            parts.append(f"compatibility={self.compatibility!r}")
        if self.fit is not None:
            parts.append(f"fit={self.fit:.2f}")
        return f"WeightedSplitSystem({', '.join(parts)})"

    @property
    def splits(self) -> List[Split]:
        return list(self._splits.values())

    def weight(self, split: Split) -> float:
        """Weight of *split*, or 0.0 if it is not in the system."""
        found = self._splits.get(split.normalized_bits())
        return found.weight if found is not None else 0.0

    def weights(self) -> np.ndarray:
        return np.array([s.weight for s in self._splits.values()], dtype=np.float64)

    def total_weight(self) -> float:
        return float(sum(s.weight for s in self._splits.values()))

    def records(self) -> List[Tuple[int, float, Optional[float]]]:
        """Interchange form: ``(A-side bitset, weight, confidence)`` per split."""
        return [(s.bits, s.weight, s.confidence) for s in self._splits.values()]

    def split_distances(self) -> np.ndarray:
        """
        Pairwise distances induced by the splits: the total weight of the
        splits separating each pair of taxa, as an (n, n) matrix.
        """
        return split_distances(self.n_taxa, self._splits.values())


def split_distances(n_taxa: int, splits: Iterable[Split]) -> np.ndarray:
    """
    Distance matrix induced by a collection of weighted splits.

    Parameters
    ----------
    n_taxa : int
    splits : iterable of Split

    Returns
    -------
    float64 (n_taxa, n_taxa)
        Entry (i-1, j-1) is the summed weight of the splits separating
        taxa i and j.
    """
    out = np.zeros((n_taxa, n_taxa), dtype=np.float64)
    for split in splits:
        side = np.array(
            [split.contains(t) for t in range(1, n_taxa + 1)], dtype=bool
        )
        out += split.weight * (side[:, None] != side[None, :])
    return out
