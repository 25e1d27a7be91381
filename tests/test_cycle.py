"""
tests/test_cycle.py
===================
Pytest test suite for compute_cycle() and CircularOrdering.

Properties checked
------------------
- the result is a permutation of 1..n starting at taxon 1, for every n
- n <= 3 gives the identity ordering
- Scenario A yields the 4-cycle (1,2,4,3) up to rotation and reflection
- circular metrics: the generating cycle is recovered
- relabelling taxa relabels the cycle (up to rotation and reflection)
- identical input gives an identical ordering
- the input matrix is not modified
"""

import os
import sys

import numpy as np
import pytest

_HERE = os.path.dirname(__file__)
sys.path.insert(0, os.path.dirname(_HERE))
sys.path.insert(0, _HERE)

from neighbornet import (
    CanceledError,
    CircularOrdering,
    DistanceMatrix,
    InvalidInputError,
    Progress,
    compute_cycle,
)
from metric_examples import (
    SCENARIO_A,
    SCENARIO_A_CYCLE,
    SCENARIO_B,
    circular_metric,
    euclidean_distances,
    relabel,
)


BACKENDS = ["python", "numba"]


# ======================================================================== #
# CircularOrdering                                                          #
# ======================================================================== #


class TestCircularOrdering:
    def test_rotated_to_start_at_one(self):
        cycle = CircularOrdering([3, 4, 2, 1])
        assert cycle.taxa == (1, 3, 4, 2)

    def test_sequence_protocol(self):
        cycle = CircularOrdering([1, 3, 2])
        assert len(cycle) == 3
        assert list(cycle) == [1, 3, 2]
        assert cycle[1] == 3

    def test_position(self):
        cycle = CircularOrdering([1, 3, 4, 2])
        assert [cycle.position(t) for t in (1, 2, 3, 4)] == [0, 3, 1, 2]

    def test_position_unknown_taxon(self):
        with pytest.raises(KeyError):
            CircularOrdering([1, 2, 3]).position(4)

    def test_as_one_based(self):
        arr = CircularOrdering([1, 3, 4, 2]).as_one_based()
        assert arr.tolist() == [0, 1, 3, 4, 2]

    def test_from_one_based_round_trip(self):
        cycle = CircularOrdering([1, 4, 2, 3])
        assert CircularOrdering.from_one_based(cycle.as_one_based()) == cycle

    def test_rotated(self):
        assert CircularOrdering([1, 3, 4, 2]).rotated(4) == (4, 2, 1, 3)

    def test_equivalence_under_reflection(self):
        a = CircularOrdering([1, 2, 3, 4, 5])
        b = CircularOrdering([1, 5, 4, 3, 2])
        assert a != b
        assert a.is_equivalent(b)
        assert a.canonical() == b.canonical() == (1, 2, 3, 4, 5)

    def test_non_equivalent(self):
        assert not CircularOrdering([1, 2, 3, 4]).is_equivalent([1, 3, 2, 4])

    @pytest.mark.parametrize("bad", [[1, 2, 2], [0, 1, 2], [1, 2, 4], [2, 3]])
    def test_rejects_non_permutations(self, bad):
        with pytest.raises(InvalidInputError):
            CircularOrdering(bad)

    def test_identity(self):
        assert CircularOrdering.identity(3).taxa == (1, 2, 3)

    def test_hashable(self):
        assert len({CircularOrdering([1, 2, 3]), CircularOrdering([2, 3, 1])}) == 1


# ======================================================================== #
# compute_cycle                                                             #
# ======================================================================== #


class TestTrivialCases:
    @pytest.mark.parametrize("n", [1, 2, 3])
    def test_identity_for_small_n(self, n):
        rng = np.random.default_rng(n)
        D = euclidean_distances(n, rng)
        assert compute_cycle(D).taxa == tuple(range(1, n + 1))

    def test_accepts_distance_matrix(self):
        cycle = compute_cycle(DistanceMatrix(SCENARIO_A))
        assert isinstance(cycle, CircularOrdering)

    def test_rejects_invalid_input(self):
        with pytest.raises(InvalidInputError):
            compute_cycle([[0, 1], [2, 0]])


@pytest.mark.parametrize("backend", BACKENDS)
class TestOrderingValidity:
    @pytest.mark.parametrize("n", list(range(1, 13)))
    def test_permutation(self, backend, n):
        rng = np.random.default_rng(100 + n)
        cycle = compute_cycle(euclidean_distances(n, rng), backend=backend)
        assert sorted(cycle.taxa) == list(range(1, n + 1))
        assert cycle[0] == 1

    def test_scenario_a(self, backend):
        cycle = compute_cycle(SCENARIO_A, backend=backend)
        assert cycle.is_equivalent(SCENARIO_A_CYCLE)

    def test_scenario_b_keeps_clades_adjacent(self, backend):
        cycle = compute_cycle(SCENARIO_B, backend=backend)
        assert abs(cycle.position(1) - cycle.position(2)) in (1, 3)
        assert abs(cycle.position(3) - cycle.position(4)) in (1, 3)

    def test_all_zero_matrix(self, backend):
        cycle = compute_cycle(np.zeros((6, 6)), backend=backend)
        assert sorted(cycle.taxa) == list(range(1, 7))

    def test_input_not_modified(self, backend):
        rng = np.random.default_rng(7)
        D = euclidean_distances(9, rng)
        before = D.copy()
        compute_cycle(D, backend=backend)
        np.testing.assert_array_equal(D, before)

    def test_deterministic(self, backend):
        rng = np.random.default_rng(11)
        D = euclidean_distances(15, rng)
        assert compute_cycle(D, backend=backend) == compute_cycle(D, backend=backend)


@pytest.mark.parametrize("backend", BACKENDS)
class TestCircularMetrics:
    @pytest.mark.parametrize("n, seed", [(4, 1), (5, 2), (6, 3), (7, 4), (8, 5), (10, 6)])
    def test_recovers_generating_cycle(self, backend, n, seed):
        rng = np.random.default_rng(seed)
        generating = list(rng.permutation(np.arange(1, n + 1)))
        D, _ = circular_metric(generating, rng)
        cycle = compute_cycle(D, backend=backend)
        assert cycle.is_equivalent(generating)

    @pytest.mark.parametrize("seed", [21, 22, 23])
    def test_relabelling_taxa_relabels_cycle(self, backend, seed):
        rng = np.random.default_rng(seed)
        n = 8
        D, _ = circular_metric(list(range(1, n + 1)), rng)
        permutation = rng.permutation(np.arange(1, n + 1))

        cycle = compute_cycle(D, backend=backend)
        relabelled = compute_cycle(relabel(D, permutation), backend=backend)

        expected = [int(permutation[t - 1]) for t in cycle]
        assert relabelled.is_equivalent(expected)

    def test_swapping_two_taxa(self, backend):
        rng = np.random.default_rng(31)
        n = 7
        D, _ = circular_metric(list(range(1, n + 1)), rng)
        permutation = list(range(1, n + 1))
        permutation[1], permutation[4] = permutation[4], permutation[1]

        cycle = compute_cycle(D, backend=backend)
        swapped = compute_cycle(relabel(D, permutation), backend=backend)
        assert swapped.is_equivalent([permutation[t - 1] for t in cycle])


# ======================================================================== #
# Cancellation and progress                                                 #
# ======================================================================== #


class TestCancellation:
    def test_canceled_before_start(self):
        progress = Progress()
        progress.cancel()
        with pytest.raises(CanceledError):
            compute_cycle(SCENARIO_A, progress=progress)

    def test_canceled_during_agglomeration(self):
        def callback(task, subtask, current, maximum):
            if subtask == "agglomeration" and current >= 2:
                progress.cancel()

        progress = Progress(callback)
        rng = np.random.default_rng(5)
        with pytest.raises(CanceledError):
            compute_cycle(euclidean_distances(12, rng), progress=progress)

    def test_small_n_never_checks(self):
        progress = Progress()
        progress.cancel()
        assert len(compute_cycle(np.zeros((3, 3)), progress=progress)) == 3

    def test_progress_reports(self):
        seen = []
        progress = Progress(lambda *args: seen.append(args))
        rng = np.random.default_rng(9)
        compute_cycle(euclidean_distances(8, rng), progress=progress)
        subtasks = {s for _, s, _, _ in seen}
        assert {"agglomeration", "expansion"} <= subtasks
        assert max(m for _, s, _, m in seen if s == "agglomeration") == 5

    def test_canceled_during_expansion(self):
        def callback(task, subtask, current, maximum):
            if subtask == "expansion":
                progress.cancel()

        progress = Progress(callback)
        rng = np.random.default_rng(9)
        with pytest.raises(CanceledError, match="expansion"):
            compute_cycle(euclidean_distances(8, rng), progress=progress)

    def test_agglomeration_progress_reaches_maximum(self):
        seen = []
        progress = Progress(lambda *args: seen.append(args))
        rng = np.random.default_rng(9)
        compute_cycle(euclidean_distances(8, rng), progress=progress)
        reports = [(c, m) for _, s, c, m in seen if s == "agglomeration"]
        assert reports[-1] == (5, 5)
