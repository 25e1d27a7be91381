"""
_kernels.py
===========
Numba-compiled inner loops for the Neighbor-Net pipeline.

This module contains ONLY numba-accelerated code and does not import other
project modules.  Every kernel takes plain numpy arrays and scalars and
performs a single O(n^2) sweep; the surrounding iteration (list splicing,
active-set bookkeeping, cancellation checks, logging) lives in the Python
drivers in _cycle.py and _weights.py.

The uncompiled body of every kernel stays reachable as ``kernel.py_func``;
the 'python' backend runs those, the 'numba' backend runs the compiled
dispatchers.

Agglomeration kernels
---------------------
_cluster_sums : njit function
    Averaged distance sums S_x from every cluster to every other cluster.

_select_cluster_pair : njit function
    Pair of clusters minimising (m - 2) D(p, q) - S_p - S_q.

_reduced_row_sum : njit function
    Refined sum R_z used to pick the joining nodes inside two clusters.

Split-weight kernels
--------------------
_circular_design_product : njit function
    d = A b for the circular split design matrix A.

_circular_design_transpose_product : njit function
    p = A^T d for the circular split design matrix A.

_unconstrained_split_weights : njit function
    Closed-form unweighted least-squares split weights (Chepoi & Fichet).

Notes
-----
- Agglomeration kernels work on a node arena: ``order`` holds the ids of the
  active nodes in list order and ``nbr[id]`` is the neighbor of a node or -1.
- Split-weight kernels work on packed pair vectors of length n(n-1)/2 where
  pair (i, j), i < j, lives at ``(2n - i - 3) * i // 2 + j - 1``.  Split (i, j)
  has the cycle positions i+1..j on one side.
- cache=True persists compiled binaries to disk for faster subsequent runs.
"""

from numba import njit


# ======================================================================== #
# Agglomeration kernels                                                     #
# ======================================================================== #


@njit(cache=True)
def _cluster_sums(order, nbr, D, sx):
    """
    Accumulate averaged cluster-to-cluster distances into ``sx``.

    For each unordered pair of distinct clusters the averaged distance
    (1, 2 or 4 terms depending on how many nodes each cluster holds) is
    added to the sum of every node in both clusters.

    Parameters
    ----------
    order : int64[:]
        Ids of the active nodes in list order.
    nbr : int64[:]
        Neighbor id per node, -1 when the node is in an open cluster.
    D : float64[:, :]
        Working distance matrix indexed by node id.
    sx : float64[:]
        Output, indexed by node id.  Entries for active nodes are reset.
    """
    m = order.shape[0]
    for a in range(m):
        sx[order[a]] = 0.0

    for a in range(m):
        p = order[a]
        pn = nbr[p]
        if pn != -1 and pn < p:
            continue
        for b in range(a + 1, m):
            q = order[b]
            qn = nbr[q]
            if qn != -1 and (qn < q or qn == p):
                continue
            if pn == -1 and qn == -1:
                dpq = D[p, q]
            elif qn == -1:
                dpq = (D[p, q] + D[pn, q]) / 2.0
            elif pn == -1:
                dpq = (D[p, q] + D[p, qn]) / 2.0
            else:
                dpq = (D[p, q] + D[p, qn] + D[pn, q] + D[pn, qn]) / 4.0

            sx[p] += dpq
            if pn != -1:
                sx[pn] += dpq
            sx[q] += dpq
            if qn != -1:
                sx[qn] += dpq


@njit(cache=True)
def _select_cluster_pair(order, nbr, D, sx, num_clusters):
    """
    Find the pair of clusters minimising ``(m - 2) D(p, q) - S_p - S_q``.

    Each cluster is represented by its node with the smaller id.  The outer
    loop walks the list, the inner loop walks the nodes before the outer one;
    the first strict minimum wins, so ties go to the pair met first.

    Returns
    -------
    (cx, cy) : (int, int)
        Representative node ids of the two chosen clusters, or (-1, -1)
        when fewer than two clusters are active.
    """
    m = order.shape[0]
    cx = -1
    cy = -1
    best = 0.0
    for a in range(m):
        p = order[a]
        pn = nbr[p]
        if pn != -1 and pn < p:
            continue
        for b in range(a):
            q = order[b]
            qn = nbr[q]
            if qn != -1 and qn < q:
                continue
            if qn == p:
                continue
            if pn == -1 and qn == -1:
                dpq = D[p, q]
            elif qn == -1:
                dpq = (D[p, q] + D[pn, q]) / 2.0
            elif pn == -1:
                dpq = (D[p, q] + D[p, qn]) / 2.0
            else:
                dpq = (D[p, q] + D[p, qn] + D[pn, q] + D[pn, qn]) / 4.0
            qpq = (num_clusters - 2.0) * dpq - sx[p] - sx[q]
            if (cx == -1 or qpq < best) and pn != q:
                cx = p
                cy = q
                best = qpq
    return cx, cy


@njit(cache=True)
def _reduced_row_sum(z, cx, cy, order, nbr, D):
    """
    Sum of distances from node ``z`` to every active node.

    Nodes of the two chosen clusters and nodes of open clusters count in
    full; nodes of other closed clusters count half, which averages over
    the two members of each such cluster.
    """
    cxn = nbr[cx]
    cyn = nbr[cy]
    total = 0.0
    for a in range(order.shape[0]):
        p = order[a]
        if p == cx or p == cxn or p == cy or p == cyn or nbr[p] == -1:
            total += D[z, p]
        else:
            total += D[z, p] / 2.0
    return total


# ======================================================================== #
# Circular split design-matrix kernels                                      #
# ======================================================================== #


@njit(cache=True)
def _circular_design_product(n, b, d):
    """
    Compute ``d = A b`` where A is the design matrix of the circular splits
    of the ordering 0, 1, ..., n-1.

    Adjacent pairs are summed directly; every other pair follows from

        d[i][j] = d[i][j-1] + d[i+1][j] - d[i+1][j-1] - 2 b[i][j-1]

    so the whole product takes O(n^2) time without forming A.

    Parameters
    ----------
    n : int
        Number of taxa.
    b : float64[:]
        Packed split weights.
    d : float64[:]
        Output, packed pairwise distances.
    """
    # Pairs one apart: sum of splits with a boundary between i and i+1
    for i in range(n - 1):
        s = 0.0
        for k in range(i):
            s += b[(2 * n - k - 3) * k // 2 + i - 1]
        base = (2 * n - i - 3) * i // 2 - 1
        for k in range(i + 1, n):
            s += b[base + k]
        d[base + i + 1] = s

    # Pairs two apart
    for i in range(n - 2):
        row = (2 * n - i - 3) * i // 2 - 1
        nxt = (2 * n - i - 4) * (i + 1) // 2 - 1
        d[row + i + 2] = d[row + i + 1] + d[nxt + i + 2] - 2.0 * b[row + i + 1]

    # Remaining pairs by increasing separation
    for k in range(3, n):
        for i in range(n - k):
            j = i + k
            row = (2 * n - i - 3) * i // 2 - 1
            nxt = (2 * n - i - 4) * (i + 1) // 2 - 1
            d[row + j] = (
                d[row + j - 1] + d[nxt + j] - d[nxt + j - 1] - 2.0 * b[row + j - 1]
            )


@njit(cache=True)
def _circular_design_transpose_product(n, d, p):
    """
    Compute ``p = A^T d`` for the circular split design matrix A.

    Trivial splits are row sums of ``d``; every other split follows from

        p[i][j] = p[i][j-1] + p[i+1][j] - p[i+1][j-1] - 2 d[i+1][j]

    Parameters
    ----------
    n : int
        Number of taxa.
    d : float64[:]
        Packed pairwise values.
    p : float64[:]
        Output, packed per-split values.
    """
    # Trivial splits (i, i+1) separate position i+1 from everything else
    for i in range(n - 1):
        t = i + 1
        s = 0.0
        for k in range(t):
            s += d[(2 * n - k - 3) * k // 2 + t - 1]
        base = (2 * n - t - 3) * t // 2 - 1
        for j in range(t + 1, n):
            s += d[base + j]
        p[(2 * n - i - 3) * i // 2 + i] = s

    # Splits with two taxa on the arc side
    for i in range(n - 2):
        row = (2 * n - i - 3) * i // 2 - 1
        nxt = (2 * n - i - 4) * (i + 1) // 2 - 1
        p[row + i + 2] = p[row + i + 1] + p[nxt + i + 2] - 2.0 * d[nxt + i + 2]

    for k in range(3, n):
        for i in range(n - k):
            j = i + k
            row = (2 * n - i - 3) * i // 2 - 1
            nxt = (2 * n - i - 4) * (i + 1) // 2 - 1
            p[row + j] = (
                p[row + j - 1] + p[nxt + j] - p[nxt + j - 1] - 2.0 * d[nxt + j]
            )


@njit(cache=True)
def _unconstrained_split_weights(n, d, x):
    """
    Unweighted least-squares circular split weights in O(n^2) time, using
    the closed form of Chepoi and Fichet.  Requires ``n >= 3``.

    Parameters
    ----------
    n : int
        Number of taxa.
    d : float64[:]
        Packed pairwise distances in cycle order.
    x : float64[:]
        Output, packed split weights (may be negative).
    """
    for i in range(n - 2):
        row = (2 * n - i - 3) * i // 2 - 1
        nxt = (2 * n - i - 4) * (i + 1) // 2 - 1

        # x[i][i+1] = (d[i][i+1] + d[i+1][i+2] - d[i][i+2]) / 2
        x[row + i + 1] = (d[row + i + 1] + d[nxt + i + 2] - d[row + i + 2]) / 2.0

        # x[i][j] = (d[i][j] + d[i+1][j+1] - d[i][j+1] - d[i+1][j]) / 2
        for j in range(i + 2, n - 1):
            x[row + j] = (d[row + j] + d[nxt + j + 1] - d[row + j + 1] - d[nxt + j]) / 2.0

        if i == 0:
            # x[0][n-1] = (d[0][1] + d[0][n-1] - d[1][n-1]) / 2
            x[n - 2] = (d[0] + d[n - 2] - d[nxt + n - 1]) / 2.0
        else:
            # x[i][n-1] = (d[i][n-1] + d[0][i+1] - d[0][i] - d[i+1][n-1]) / 2
            x[row + n - 1] = (d[row + n - 1] + d[i] - d[i - 1] - d[nxt + n - 1]) / 2.0

    # x[n-2][n-1] = (d[n-2][n-1] + d[0][n-1] - d[0][n-2]) / 2
    last = n * (n - 1) // 2 - 1
    x[last] = (d[last] + d[n - 2] - d[n - 3]) / 2.0
