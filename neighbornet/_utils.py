"""
_utils.py
=========
General-purpose utility functions for neighbornet.

These are standalone functions that don't depend on the main classes:
packed pair indexing, taxon bitsets and cyclic-sequence comparison.
"""

from typing import Iterable, List, Sequence, Tuple


def pair_index(n: int, i: int, j: int) -> int:
    """
    Position of the pair (i, j) in a packed upper-triangle vector.

    Pairs are stored row by row: (0,1), (0,2), ..., (0,n-1), (1,2), ...
    The same index addresses the circular split (i, j), whose arc side is
    the positions i+1..j.

    Parameters
    ----------
    n : int
        Number of taxa.
    i, j : int
        0-based positions with ``0 <= i < j < n``.

    Examples
    --------
    >>> pair_index(4, 0, 1)
    0
    >>> pair_index(4, 1, 2)
    3
    >>> pair_index(4, 2, 3)
    5
    """
    if not 0 <= i < j < n:
        raise ValueError(f"pair ({i}, {j}) out of range for n={n}")
    return (2 * n - i - 3) * i // 2 + j - 1


def pair_count(n: int) -> int:
    """
    Number of unordered pairs of n taxa.

    >>> pair_count(5)
    10
    """
    return n * (n - 1) // 2


# ============================================================================ #
# Taxon bitsets
# ============================================================================ #


def taxa_to_bits(taxa: Iterable[int]) -> int:
    """
    Encode a set of 1-based taxon ids as an integer bitset (bit t = taxon t).

    >>> taxa_to_bits([1, 3])
    10
    """
    bits = 0
    for t in taxa:
        bits |= 1 << int(t)
    return bits


def bits_to_taxa(bits: int) -> List[int]:
    """
    Decode an integer bitset into a sorted list of taxon ids.

    >>> bits_to_taxa(10)
    [1, 3]
    """
    taxa = []
    t = 0
    while bits:
        if bits & 1:
            taxa.append(t)
        bits >>= 1
        t += 1
    return taxa


def full_bits(n_taxa: int) -> int:
    """
    Bitset holding every taxon 1..n_taxa.

    >>> bits_to_taxa(full_bits(3))
    [1, 2, 3]
    """
    return ((1 << (n_taxa + 1)) - 1) & ~1


# ============================================================================ #
# Cyclic sequences
# ============================================================================ #


def canonical_cycle(cycle: Sequence[int]) -> Tuple[int, ...]:
    """
    Normal form of a cyclic sequence up to rotation and reflection.

    The result starts at the smallest element and runs in the direction
    whose second element is smaller.

    Examples
    --------
    >>> canonical_cycle([3, 1, 2, 4])
    (1, 2, 4, 3)
    >>> canonical_cycle([1, 3, 4, 2])
    (1, 2, 4, 3)
    """
    items = list(cycle)
    if len(items) < 3:
        return tuple(sorted(items))
    k = items.index(min(items))
    forward = items[k:] + items[:k]
    backward = [forward[0]] + forward[:0:-1]
    return tuple(min(forward, backward))


def cycles_equivalent(a: Sequence[int], b: Sequence[int]) -> bool:
    """
    True when two cyclic sequences are equal up to rotation and reflection.

    >>> cycles_equivalent([1, 2, 3, 4], [3, 2, 1, 4])
    True
    >>> cycles_equivalent([1, 2, 3, 4], [1, 3, 2, 4])
    False
    """
    return len(a) == len(b) and canonical_cycle(a) == canonical_cycle(b)
