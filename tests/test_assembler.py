"""
tests/test_assembler.py
=======================
Tests for split-system assembly, fit statistics and the compatibility
utilities in _assembler.py.
"""

import logging
import os
import sys

import numpy as np
import pytest

_HERE = os.path.dirname(__file__)
sys.path.insert(0, os.path.dirname(_HERE))
sys.path.insert(0, _HERE)

from neighbornet import (
    CircularOrdering,
    InvalidInputError,
    Split,
    WeightedSplitSystem,
    are_compatible,
    are_weakly_compatible,
    assemble_split_system,
    circular_split_weights,
    classify_compatibility,
    compute_cycle,
    fit_statistics,
    is_circular,
    is_compatible,
    is_weakly_compatible,
)
from metric_examples import SCENARIO_A, SCENARIO_A_CYCLE, SCENARIO_B


THREE_TAXA = np.array([[0, 3, 4], [3, 0, 5], [4, 5, 0]], dtype=np.float64)


def _fitted(D):
    cycle = compute_cycle(D)
    return circular_split_weights(cycle, D)


# ======================================================================== #
# Assembly                                                                  #
# ======================================================================== #


class TestAssemble:
    def test_scenario_a_is_cyclic_with_perfect_fit(self):
        system = assemble_split_system(_fitted(SCENARIO_A), SCENARIO_A)
        assert len(system) == 6
        assert system.compatibility == "cyclic"
        assert system.fit == pytest.approx(100.0)
        assert system.weight(Split([2, 4], 4)) == pytest.approx(1.0)
        assert system.weight(Split([3, 4], 4)) == pytest.approx(1.0)
        for t in range(1, 5):
            assert system.weight(Split([t], 4)) == pytest.approx(0.5)

    def test_scenario_b_is_compatible(self):
        system = assemble_split_system(_fitted(SCENARIO_B), SCENARIO_B)
        assert len(system) == 5
        assert system.compatibility == "compatible"
        assert system.fit == pytest.approx(100.0)

    def test_all_zero_distances(self):
        D = np.zeros((5, 5))
        system = assemble_split_system(_fitted(D), D)
        assert len(system) == 0
        assert system.compatibility == "compatible"
        assert system.fit == 100.0

    def test_cutoff_drops_small_weights(self):
        cycle = CircularOrdering(SCENARIO_A_CYCLE)
        weighted = WeightedSplitSystem(
            4,
            cycle,
            [Split([1], 4, 1e-7), Split([2], 4, 1e-6), Split([3], 4, 2e-6)],
        )
        system = assemble_split_system(weighted, SCENARIO_A)
        assert [s.a_taxa for s in system] == [[3]]

    def test_custom_cutoff(self):
        weighted = _fitted(SCENARIO_A)
        system = assemble_split_system(weighted, SCENARIO_A, cutoff=0.75)
        assert len(system) == 2

    def test_keeps_cycle_order(self):
        weighted = _fitted(SCENARIO_A)
        system = assemble_split_system(weighted, SCENARIO_A)
        assert system.cycle == weighted.cycle
        assert [s for s in weighted if s.weight > 1e-6] == system.splits

    def test_retained_weights_above_cutoff(self):
        rng = np.random.default_rng(1)
        points = rng.uniform(size=(10, 2))
        D = np.sqrt(((points[:, None] - points[None]) ** 2).sum(-1))
        system = assemble_split_system(_fitted(D), D)
        assert all(s.weight > 1e-6 for s in system)
        assert 0.0 <= system.fit <= 100.0

    def test_taxon_count_mismatch(self):
        with pytest.raises(InvalidInputError):
            assemble_split_system(_fitted(SCENARIO_A), THREE_TAXA)

    def test_negative_cutoff(self):
        with pytest.raises(InvalidInputError):
            assemble_split_system(_fitted(SCENARIO_A), SCENARIO_A, cutoff=-1.0)

    def test_low_fit_is_logged_as_warning(self, caplog):
        weighted = WeightedSplitSystem(4, CircularOrdering(SCENARIO_A_CYCLE))
        with caplog.at_level(logging.WARNING, logger="neighbornet"):
            system = assemble_split_system(weighted, SCENARIO_A)
        assert system.fit == 0.0
        assert "Low least-squares fit (0.00%)" in caplog.text

    def test_summary_is_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="neighbornet"):
            assemble_split_system(_fitted(SCENARIO_A), SCENARIO_A)
        assert "Split system: 6 splits (0 below cutoff), cyclic, fit 100.00%" in caplog.text


# ======================================================================== #
# Fit statistics                                                            #
# ======================================================================== #


class TestFitStatistics:
    def test_perfect_fit(self):
        splits = [Split([1], 3, 1.0), Split([2], 3, 2.0), Split([3], 3, 3.0)]
        stats = fit_statistics(THREE_TAXA, splits)
        assert stats["ls_fit"] == pytest.approx(100.0)
        assert stats["fit"] == pytest.approx(100.0)
        assert stats["stress"] == pytest.approx(0.0)
        assert stats["ssr"] == pytest.approx(0.0)

    def test_partial_fit(self):
        # Induced distances (1, 1, 0) against (3, 4, 5)
        stats = fit_statistics(THREE_TAXA, [Split([1], 3, 1.0)])
        assert stats["ssr"] == pytest.approx(38.0)
        assert stats["sst"] == pytest.approx(50.0)
        assert stats["ls_fit"] == pytest.approx(24.0)
        assert stats["fit"] == pytest.approx(100.0 * (1 - 10 / 12))
        assert stats["stress"] == pytest.approx(np.sqrt(38.0 / 2.0))

    def test_no_splits_scores_zero(self):
        stats = fit_statistics(THREE_TAXA, [])
        assert stats["ls_fit"] == 0.0
        assert stats["stress"] == 0.0

    def test_overshoot_is_clamped(self):
        stats = fit_statistics(THREE_TAXA, [Split([1], 3, 100.0)])
        assert stats["ls_fit"] == 0.0
        assert stats["fit"] == 0.0

    def test_zero_distances(self):
        D = np.zeros((4, 4))
        assert fit_statistics(D, [])["ls_fit"] == 100.0
        assert fit_statistics(D, [Split([1], 4, 1.0)])["ls_fit"] == 0.0


# ======================================================================== #
# Compatibility                                                             #
# ======================================================================== #


# The three quartet splits of four taxa: pairwise incompatible and not
# weakly compatible as a triple
QUARTETS = [Split([1, 2], 4), Split([1, 3], 4), Split([1, 4], 4)]


class TestPairwise:
    def test_nested_splits_are_compatible(self):
        assert are_compatible(Split([1, 2], 5), Split([1, 2, 3], 5))

    def test_disjoint_splits_are_compatible(self):
        assert are_compatible(Split([1, 2], 5), Split([4, 5], 5))

    def test_trivial_split_compatible_with_everything(self):
        assert all(are_compatible(Split([3], 4), s) for s in QUARTETS)

    def test_crossing_splits_are_incompatible(self):
        assert not are_compatible(QUARTETS[0], QUARTETS[1])

    def test_side_choice_does_not_matter(self):
        assert are_compatible(Split([3, 4], 4), Split([1], 4))
        assert not are_compatible(Split([3, 4], 4), Split([2, 4], 4))


class TestWeakCompatibility:
    def test_quartet_triple_is_not_weakly_compatible(self):
        assert not are_weakly_compatible(*QUARTETS)
        assert not is_weakly_compatible(QUARTETS)

    def test_circular_splits_are_weakly_compatible(self):
        cycle = CircularOrdering(SCENARIO_A_CYCLE)
        splits = [Split([2, 4], 4), Split([3, 4], 4), Split([2], 4), Split([4], 4)]
        assert is_circular(splits, cycle)
        assert is_weakly_compatible(splits)

    def test_small_sets_are_trivially_weakly_compatible(self):
        assert is_weakly_compatible(QUARTETS[:2])


class TestCircularity:
    def test_wrapping_side_is_circular(self):
        # {5, 1, 2} wraps around the end; its complement {3, 4} does not
        assert is_circular([Split([5, 1, 2], 5)], [1, 2, 3, 4, 5])

    def test_non_contiguous_side(self):
        assert not is_circular([Split([1, 3], 5)], [1, 2, 3, 4, 5])

    def test_cycle_not_starting_at_taxon_one(self):
        assert is_circular([Split([3, 4], 5)], [3, 4, 5, 1, 2])
        assert is_circular([Split([5, 1], 5)], [3, 4, 5, 1, 2])

    def test_empty_system(self):
        assert is_circular([], [1, 2, 3])


class TestClassify:
    def test_tree_is_compatible(self):
        splits = [Split([1, 2], 5), Split([1, 2, 3], 5), Split([4], 5)]
        assert is_compatible(splits)
        assert classify_compatibility(5, splits) == "compatible"

    def test_circular_system_is_cyclic(self):
        splits = [Split([2, 4], 4, 1.0), Split([3, 4], 4, 1.0)]
        assert classify_compatibility(4, splits, SCENARIO_A_CYCLE) == "cyclic"

    def test_cycle_computed_when_omitted(self):
        # These splits induce exactly the Scenario A distances
        splits = [Split([2, 4], 4, 1.0), Split([3, 4], 4, 1.0)]
        splits += [Split([t], 4, 0.5) for t in range(1, 5)]
        assert classify_compatibility(4, splits) == "cyclic"

    def test_weakly_compatible_against_other_ordering(self):
        splits = [Split([2, 4], 4, 1.0), Split([3, 4], 4, 1.0)]
        assert classify_compatibility(4, splits, [1, 2, 3, 4]) == "weakly compatible"

    def test_incompatible(self):
        splits = [Split(s.bits, 4, 1.0) for s in QUARTETS]
        assert classify_compatibility(4, splits) == "incompatible"

    def test_weak_compatibility_skipped_for_many_taxa(self):
        splits = [Split([2, 4], 100, 1.0), Split([3, 4], 100, 1.0)]
        assert classify_compatibility(100, splits, range(1, 101)) == "incompatible"
