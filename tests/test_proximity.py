"""
Tests for out-of-bag and full-forest proximities.
"""

import numpy as np
import pytest
from loguru import logger

from rfprox import (InvalidInputError, UndefinedProximityError, UndefinedProximityWarning,
                    complete_cases, compute_proximity, cross_proximity)


def get_random_leaves(n_samples=20, n_trees=100, seed=0):
    """Random leaf ids and Poisson in-bag counts.

    With 100 trees every pair is jointly out-of-bag in some tree with
    overwhelming probability.
    """
    rng = np.random.RandomState(seed)
    leaves = rng.randint(0, 4, size=(n_samples, n_trees))
    in_bag = rng.poisson(1.0, size=(n_samples, n_trees))
    return leaves, in_bag


SMALL_LEAVES = np.array([[1, 1, 2],
                         [1, 2, 2],
                         [3, 3, 3]])


class TestFullForest:

    def test_known_values(self):
        prox = compute_proximity(SMALL_LEAVES, mode='full')
        expected = np.array([[1, 2 / 3, 0],
                             [2 / 3, 1, 0],
                             [0, 0, 1]])
        np.testing.assert_allclose(prox, expected)

    def test_in_bag_is_ignored(self):
        in_bag = np.ones_like(SMALL_LEAVES)
        np.testing.assert_array_equal(compute_proximity(SMALL_LEAVES, in_bag, mode='full'),
                                      compute_proximity(SMALL_LEAVES, mode='full'))

    def test_symmetry_range_and_identity(self):
        leaves, _ = get_random_leaves()
        prox = compute_proximity(leaves, mode='full')

        np.testing.assert_array_equal(prox, prox.T)
        assert np.all(prox >= 0) and np.all(prox <= 1)
        np.testing.assert_array_equal(np.diag(prox), 1.0)


class TestOutOfBag:

    def test_known_values(self):
        in_bag = np.array([[0, 0, 1],
                           [0, 1, 0],
                           [0, 0, 0]])
        prox = compute_proximity(SMALL_LEAVES, in_bag, mode='oob')
        expected = np.array([[1, 1, 0],
                             [1, 1, 0],
                             [0, 0, 1]])
        np.testing.assert_allclose(prox, expected)

    def test_symmetry_range_and_diagonal(self):
        leaves, in_bag = get_random_leaves()
        prox = compute_proximity(leaves, in_bag, mode='oob')

        assert not np.isnan(prox).any()
        np.testing.assert_array_equal(prox, prox.T)
        assert np.all(prox >= 0) and np.all(prox <= 1)
        np.testing.assert_array_equal(np.diag(prox), 1.0)

    def test_matches_full_forest_on_jointly_oob_trees(self):
        leaves, in_bag = get_random_leaves(n_samples=8)
        prox = compute_proximity(leaves, in_bag, mode='oob')

        for i, j in [(0, 1), (2, 5), (3, 7), (6, 4)]:
            trees = (in_bag[i] == 0) & (in_bag[j] == 0)
            subset = leaves[[i, j]][:, trees]
            assert prox[i, j] == compute_proximity(subset, mode='full')[0, 1]

    def test_all_trees_oob_equals_full_forest(self):
        leaves, _ = get_random_leaves()
        np.testing.assert_array_equal(compute_proximity(leaves, np.zeros_like(leaves), mode='oob'),
                                      compute_proximity(leaves, mode='full'))

    def test_parallel_matches_single_worker(self):
        leaves, in_bag = get_random_leaves(n_samples=31)
        single = compute_proximity(leaves, in_bag, mode='oob', n_jobs=1)
        parallel = compute_proximity(leaves, in_bag, mode='oob', n_jobs=3)
        np.testing.assert_array_equal(single, parallel)


class TestProgress:

    @pytest.fixture
    def messages(self):
        messages = []
        handler_id = logger.add(messages.append, format='{message}')
        yield messages
        logger.remove(handler_id)

    def test_logs_each_finished_block_in_order(self, messages):
        leaves, _ = get_random_leaves(n_samples=6)
        compute_proximity(leaves, mode='full', n_jobs=2, verbose=True)

        finished = [m.strip() for m in messages if m.startswith('Finished')]
        assert finished == ['Finished with 3 rows', 'Finished with 6 rows']

    def test_silent_by_default(self, messages):
        leaves, _ = get_random_leaves(n_samples=6)
        compute_proximity(leaves, mode='full', n_jobs=2)
        assert messages == []


class TestUndefinedPairs:
    """Samples 0 and 1 are never out-of-bag in the same tree."""

    leaves = np.array([[1, 2],
                       [1, 2],
                       [1, 3]])
    in_bag = np.array([[1, 0],
                       [0, 1],
                       [0, 0]])

    def test_nan_policy(self):
        with pytest.warns(UndefinedProximityWarning):
            prox = compute_proximity(self.leaves, self.in_bag, mode='oob')

        assert np.isnan(prox[0, 1]) and np.isnan(prox[1, 0])
        np.testing.assert_array_equal(np.diag(prox), 1.0)
        assert prox[0, 2] == 0.0
        assert prox[1, 2] == 1.0

    def test_raise_policy(self):
        with pytest.raises(UndefinedProximityError):
            compute_proximity(self.leaves, self.in_bag, mode='oob', undefined='raise')

    def test_full_forest_fallback(self):
        with pytest.warns(UndefinedProximityWarning):
            prox = compute_proximity(self.leaves, self.in_bag, mode='oob', undefined='full')

        assert prox[0, 1] == 1.0
        assert prox[1, 0] == 1.0

    def test_complete_cases_drops_undefined_samples(self):
        with pytest.warns(UndefinedProximityWarning):
            prox = compute_proximity(self.leaves, self.in_bag, mode='oob')

        keep = complete_cases(prox)
        assert len(keep) == 2
        assert not np.isnan(prox[np.ix_(keep, keep)]).any()


class TestValidation:

    def test_unknown_mode(self):
        with pytest.raises(InvalidInputError):
            compute_proximity(SMALL_LEAVES, mode='rfgap')

    def test_unknown_policy(self):
        with pytest.raises(InvalidInputError):
            compute_proximity(SMALL_LEAVES, np.zeros_like(SMALL_LEAVES), undefined='zero')

    def test_oob_needs_in_bag(self):
        with pytest.raises(InvalidInputError):
            compute_proximity(SMALL_LEAVES, mode='oob')

    def test_in_bag_shape_mismatch(self):
        with pytest.raises(InvalidInputError):
            compute_proximity(SMALL_LEAVES, np.zeros((3, 2)), mode='oob')

    def test_leaves_must_be_2d(self):
        with pytest.raises(InvalidInputError):
            compute_proximity(np.arange(5), mode='full')


class TestCrossProximity:

    def test_known_values(self):
        new = np.array([[1, 2, 2],
                        [3, 3, 3]])
        prox = cross_proximity(new, SMALL_LEAVES)
        expected = np.array([[2 / 3, 1, 0],
                             [0, 0, 1]])
        np.testing.assert_allclose(prox, expected)

    def test_self_matches_full_forest(self):
        leaves, _ = get_random_leaves(n_samples=10)
        np.testing.assert_allclose(cross_proximity(leaves, leaves), compute_proximity(leaves, mode='full'))

    def test_tree_count_mismatch(self):
        with pytest.raises(InvalidInputError):
            cross_proximity(SMALL_LEAVES[:, :2], SMALL_LEAVES)


class TestCompleteCases:

    def test_drops_sample_with_most_undefined_pairs(self):
        prox = np.ones((4, 4))
        prox[0, 1] = prox[1, 0] = np.nan
        prox[0, 2] = prox[2, 0] = np.nan

        np.testing.assert_array_equal(complete_cases(prox), [1, 2, 3])

    def test_everything_defined(self):
        np.testing.assert_array_equal(complete_cases(np.eye(3)), [0, 1, 2])
