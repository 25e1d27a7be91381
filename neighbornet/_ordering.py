"""
_ordering.py
============
Immutable circular ordering of taxa.
"""

from typing import Iterator, Sequence, Tuple

import numpy as np

from neighbornet._errors import InvalidInputError
from neighbornet._utils import canonical_cycle


class CircularOrdering:
    """
    A cyclic permutation of the taxa ``1..n``.

    The stored sequence is rotated to start at taxon 1; the reading
    direction is kept as given.  Two orderings that differ only by
    reflection are distinct objects but compare equivalent through
    is_equivalent().

    Parameters
    ----------
    taxa : sequence of int
        Each of the taxa ``1..n`` exactly once.

    Raises
    ------
    InvalidInputError
        If *taxa* is not a permutation of ``1..n``.

    Examples
    --------
    >>> cycle = CircularOrdering([3, 4, 2, 1])
    >>> cycle.taxa
    (1, 3, 4, 2)
    >>> cycle.position(4)
    2
    >>> cycle.as_one_based()
    array([0, 1, 3, 4, 2])
    """

    __slots__ = ("_taxa", "_positions")

    def __init__(self, taxa: Sequence[int]) -> None:
        items = [int(t) for t in taxa]
        n = len(items)
        if sorted(items) != list(range(1, n + 1)):
            raise InvalidInputError(
                f"ordering must be a permutation of 1..{n}, got {items}"
            )
        if n:
            k = items.index(1)
            items = items[k:] + items[:k]
        self._taxa = tuple(items)
        positions = np.empty(n + 1, dtype=np.int64)
        positions[0] = -1
        for pos, t in enumerate(items):
            positions[t] = pos
        self._positions = positions

    @classmethod
    def identity(cls, n: int) -> "CircularOrdering":
        return cls(range(1, n + 1))

    @classmethod
    def from_one_based(cls, cycle: Sequence[int]) -> "CircularOrdering":
        """Build from an array of length n+1 whose slot 0 is unused."""
        return cls(list(cycle)[1:])

    # ------------------------------------------------------------------ #
    # Sequence protocol                                                    #
    # ------------------------------------------------------------------ #

    @property
    def taxa(self) -> Tuple[int, ...]:
        return self._taxa

    @property
    def n_taxa(self) -> int:
        return len(self._taxa)

    def __len__(self) -> int:
        return len(self._taxa)

    def __iter__(self) -> Iterator[int]:
        return iter(self._taxa)

    def __getitem__(self, index):
        return self._taxa[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, CircularOrdering):
            return self._taxa == other._taxa
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._taxa)

    def __repr__(self) -> str:
        return f"CircularOrdering({list(self._taxa)})"

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def position(self, taxon: int) -> int:
        """0-based position of *taxon* in the ordering."""
        if not 1 <= taxon <= len(self._taxa):
            raise KeyError(taxon)
        return int(self._positions[taxon])

    def as_one_based(self) -> np.ndarray:
        """
        Interchange form: an int64 array of length n+1 whose slot 0 is
        unused (zero) and whose slots 1..n hold the taxa in cycle order.
        """
        return np.array((0,) + self._taxa, dtype=np.int64)

    def rotated(self, first: int) -> Tuple[int, ...]:
        """The taxa in cycle order, starting at *first*."""
        k = self.position(first)
        return self._taxa[k:] + self._taxa[:k]

    def canonical(self) -> Tuple[int, ...]:
        """Normal form up to rotation and reflection."""
        return canonical_cycle(self._taxa)

    def is_equivalent(self, other) -> bool:
        """True if *other* describes the same cycle up to rotation and reflection."""
        other_taxa = other.taxa if isinstance(other, CircularOrdering) else tuple(other)
        return len(other_taxa) == len(self._taxa) and canonical_cycle(
            other_taxa
        ) == self.canonical()
