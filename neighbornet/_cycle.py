"""
_cycle.py
=========
Neighbor-Net agglomeration: computes the circular ordering of the taxa.

Public API
----------
  compute_cycle(distances, progress=None, backend='best') -> CircularOrdering

Algorithm
---------
Phase A (agglomeration) repeatedly picks the closest pair of clusters under
the Neighbor-Net selection criterion and merges them.  A cluster holds one
node (open) or two linked nodes (closed).  Merging two open clusters just
links them; every merge involving a closed cluster replaces three nodes by
two freshly synthesized nodes and records the merge on a stack.  The loop
runs until three active nodes remain.

Phase B (expansion) closes those three nodes into a circle and pops the
stack, splicing each merge's three original nodes back in place of the two
synthesized ones.  When the stack is empty the circle holds exactly the
leaves, which are read off starting at taxon 1.

Node arena
----------
Nodes are integer ids: 1..n are the leaves, larger ids are synthesized.
Id 0 is the list-head sentinel.  All node fields live in flat numpy arrays
indexed by id (-1 means "none"), so the O(n^2) per-iteration scans in
_kernels.py can run compiled.  The working distance matrix is indexed the
same way and has room for the 2(n-3) nodes that can ever be synthesized.
"""

import logging
from typing import List, Optional

import numpy as np

from neighbornet._distances import DistanceMatrix
from neighbornet._ordering import CircularOrdering
from neighbornet._progress import Progress, ensure_progress
from neighbornet._context import select_kernels
from neighbornet._logging import log_agglomeration_summary


logger = logging.getLogger(__name__)

NONE = -1
HEAD = 0


class _NodeArena:
    """
    Working state of one agglomeration: node fields, the active list and
    the scratch distance matrix.
    """

    def __init__(self, distances: np.ndarray) -> None:
        n = distances.shape[0]
        size = 3 * n - 5
        self.n_taxa = n
        self.n_nodes = n
        self.nbr = np.full(size, NONE, dtype=np.int64)
        self.child1 = np.full(size, NONE, dtype=np.int64)
        self.child2 = np.full(size, NONE, dtype=np.int64)
        self.prev = np.full(size, NONE, dtype=np.int64)
        self.next = np.full(size, NONE, dtype=np.int64)
        self.sx = np.zeros(size, dtype=np.float64)
        self.rx = np.zeros(size, dtype=np.float64)

        self.D = np.zeros((size, size), dtype=np.float64)
        self.D[1 : n + 1, 1 : n + 1] = distances

        # Active list: HEAD -> 1 -> 2 -> ... -> n -> NONE
        ids = np.arange(1, n + 1)
        self.next[HEAD] = 1
        self.next[ids[:-1]] = ids[1:]
        self.prev[ids] = ids - 1

    def active(self) -> np.ndarray:
        """Ids of the active nodes in list order."""
        order = []
        p = self.next[HEAD]
        while p != NONE:
            order.append(p)
            p = self.next[p]
        return np.array(order, dtype=np.int64)

    def link(self, x: int, y: int) -> None:
        self.nbr[x] = y
        self.nbr[y] = x

    def _replace(self, old: int, new: int) -> None:
        self.next[new] = self.next[old]
        self.prev[new] = self.prev[old]
        if self.next[new] != NONE:
            self.prev[self.next[new]] = new
        if self.prev[new] != NONE:
            self.next[self.prev[new]] = new

    def _remove(self, y: int) -> None:
        if self.next[y] != NONE:
            self.prev[self.next[y]] = self.prev[y]
        if self.prev[y] != NONE:
            self.next[self.prev[y]] = self.next[y]

    def join3(self, x: int, y: int, z: int, stack: List[int]) -> int:
        """
        Replace x, y, z (y linked to z or x) by two new linked nodes u, v.

        u takes x's place in the active list and v takes z's; y leaves the
        list.  Distances to u and v are the 2:1 blends of x and z with y.
        Returns u after pushing it onto *stack*.
        """
        u = self.n_nodes + 1
        v = self.n_nodes + 2
        self.n_nodes += 2
        self.child1[u], self.child2[u] = x, y
        self.child1[v], self.child2[v] = y, z

        self._replace(x, u)
        self._replace(z, v)
        self._remove(y)
        self.link(u, v)

        D = self.D
        ids = self.active()
        du = (2.0 / 3.0) * D[x, ids] + D[y, ids] / 3.0
        dv = (2.0 / 3.0) * D[z, ids] + D[y, ids] / 3.0
        D[u, ids] = du
        D[ids, u] = du
        D[v, ids] = dv
        D[ids, v] = dv
        D[u, u] = 0.0
        D[v, v] = 0.0

        stack.append(u)
        return u


def compute_cycle(
    distances,
    progress: Optional[Progress] = None,
    backend: str = "best",
) -> CircularOrdering:
    """
    Compute the Neighbor-Net circular ordering of the taxa.

    Parameters
    ----------
    distances : DistanceMatrix or array_like
        Symmetric non-negative dissimilarities; validated if not already a
        DistanceMatrix.
    progress : Progress, optional
        Cancellation flag and progress sink.  Checked once per
        agglomeration step and once per expansion step.
    backend : str, default 'best'
        'best', 'numba' or 'python'.

    Returns
    -------
    CircularOrdering
        Every taxon exactly once, starting at taxon 1.  For three or fewer
        taxa this is the identity ordering.

    Raises
    ------
    InvalidInputError
        If *distances* fails validation.
    CanceledError
        If cancellation is requested through *progress*.

    Examples
    --------
    >>> D = [[0, 2, 2, 3], [2, 0, 3, 2], [2, 3, 0, 2], [3, 2, 2, 0]]
    >>> compute_cycle(D).canonical()
    (1, 2, 4, 3)
    """
    dm = DistanceMatrix.coerce(distances)
    progress = ensure_progress(progress)
    n = dm.n_taxa

    if n <= 3:
        return CircularOrdering.identity(n)

    resolved, kernels = select_kernels(backend)

    arena = _NodeArena(dm.values)
    progress.set_tasks("Neighbor-Net", "agglomeration")
    progress.set_maximum(n - 3)
    stack = _agglomerate(arena, kernels, progress)
    progress.set_progress(n - 3)

    progress.set_subtask("expansion")
    taxa = _expand(arena, stack, progress)

    cycle = CircularOrdering(taxa)
    log_agglomeration_summary(n, len(stack), cycle.taxa, resolved)
    return cycle


# ======================================================================== #
# Phase A: agglomeration                                                    #
# ======================================================================== #


def _agglomerate(arena: _NodeArena, kernels, progress: Progress) -> List[int]:
    n = arena.n_taxa
    nbr = arena.nbr
    D = arena.D
    stack: List[int] = []
    num_active = n
    num_clusters = n

    while num_active > 3:
        progress.set_progress(n - num_active)

        # Two cherries left: the selection criterion degenerates (m - 2 = 0)
        if num_active == 4 and num_clusters == 2:
            p = arena.next[HEAD]
            q = arena.next[p] if arena.next[p] != nbr[p] else arena.next[arena.next[p]]
            if D[p, q] + D[nbr[p], nbr[q]] < D[p, nbr[q]] + D[nbr[p], q]:
                arena.join3(p, q, nbr[q], stack)
            else:
                arena.join3(p, nbr[q], q, stack)
            break

        order = arena.active()
        kernels.cluster_sums(order, nbr, D, arena.sx)
        cx, cy = kernels.select_cluster_pair(order, nbr, D, arena.sx, num_clusters)
        if cx == NONE or cy == NONE:
            raise RuntimeError("Internal error: no pair of clusters selected")
        cx, cy = int(cx), int(cy)

        x, y = _closest_members(arena, kernels, order, cx, cy, num_clusters)

        if nbr[x] == NONE and nbr[y] == NONE:
            arena.link(x, y)
            num_clusters -= 1
        elif nbr[x] == NONE:
            arena.join3(x, y, int(nbr[y]), stack)
            num_active -= 1
            num_clusters -= 1
        elif nbr[y] == NONE or num_active == 4:
            arena.join3(y, x, int(nbr[x]), stack)
            num_active -= 1
            num_clusters -= 1
        else:
            x2, y2 = int(nbr[x]), int(nbr[y])
            u = arena.join3(x2, x, y, stack)
            arena.join3(u, int(nbr[u]), y2, stack)
            num_active -= 2
            num_clusters -= 1

    return stack


def _closest_members(arena: _NodeArena, kernels, order, cx: int, cy: int, num_clusters: int):
    """Pick the node of each chosen cluster that takes part in the merge."""
    nbr = arena.nbr
    D = arena.D
    rx = arena.rx
    cxn = int(nbr[cx])
    cyn = int(nbr[cy])

    if cxn != NONE or cyn != NONE:
        for z in (cx, cxn, cy, cyn):
            if z != NONE:
                rx[z] = kernels.reduced_row_sum(z, cx, cy, order, nbr, D)

    m = num_clusters
    if cxn != NONE:
        m += 1
    if cyn != NONE:
        m += 1

    x, y = cx, cy
    best = (m - 2.0) * D[cx, cy] - rx[cx] - rx[cy]
    if cxn != NONE:
        q = (m - 2.0) * D[cxn, cy] - rx[cxn] - rx[cy]
        if q < best:
            x, y, best = cxn, cy, q
    if cyn != NONE:
        q = (m - 2.0) * D[cx, cyn] - rx[cx] - rx[cyn]
        if q < best:
            x, y, best = cx, cyn, q
    if cxn != NONE and cyn != NONE:
        q = (m - 2.0) * D[cxn, cyn] - rx[cxn] - rx[cyn]
        if q < best:
            x, y = cxn, cyn
    return x, y


# ======================================================================== #
# Phase B: expansion                                                        #
# ======================================================================== #


def _expand(arena: _NodeArena, stack: List[int], progress: Progress) -> List[int]:
    nxt = arena.next
    prv = arena.prev

    x = int(nxt[HEAD])
    y = int(nxt[x])
    z = int(nxt[y])
    nxt[z] = x
    prv[x] = z

    while stack:
        u = stack.pop()
        v = int(arena.nbr[u])
        x = int(arena.child1[u])
        y = int(arena.child2[u])
        z = int(arena.child2[v])
        if v != nxt[u]:
            u, v = v, u
            x, z = z, x

        # Splice x, y, z in place of u, v
        prv[x] = prv[u]
        nxt[prv[x]] = x
        nxt[x] = y
        prv[y] = x
        nxt[y] = z
        prv[z] = y
        nxt[z] = nxt[v]
        prv[nxt[z]] = z
        progress.check_for_cancel()

    while x != 1:
        x = int(nxt[x])

    taxa = []
    a = x
    while True:
        taxa.append(a)
        a = int(nxt[a])
        if a == x:
            break
    return taxa
