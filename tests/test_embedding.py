"""
Tests for dissimilarities and classical MDS.
"""

import numpy as np
import pytest
from scipy.spatial.distance import pdist, squareform

from rfprox import InvalidInputError, compute_proximity, dissimilarity, embed, explained_variance


PLANAR_POINTS = np.array([[0.0, 0.0],
                          [3.0, 0.0],
                          [0.0, 4.0],
                          [3.0, 4.0],
                          [1.0, 1.5]])


class TestDissimilarity:

    def test_one_minus_proximity(self):
        rng = np.random.RandomState(0)
        leaves = rng.randint(0, 3, size=(12, 40))
        prox = compute_proximity(leaves, mode='full')
        diss = dissimilarity(prox)

        np.testing.assert_array_equal(diss, 1.0 - prox)
        np.testing.assert_array_equal(np.diag(diss), 0.0)

    def test_nan_is_kept(self):
        prox = np.array([[1.0, np.nan],
                         [np.nan, 1.0]])
        assert np.isnan(dissimilarity(prox)[0, 1])

    def test_not_square(self):
        with pytest.raises(InvalidInputError):
            dissimilarity(np.ones((2, 3)))


class TestEmbed:

    def test_recovers_planar_distances(self):
        D = squareform(pdist(PLANAR_POINTS))
        coords, eigenvalues = embed(D)

        assert coords.shape == (5, 2)
        np.testing.assert_allclose(pdist(coords), pdist(PLANAR_POINTS), atol=1e-6)

    def test_eigenvalues_sorted_and_rank_two(self):
        D = squareform(pdist(PLANAR_POINTS))
        _, eigenvalues = embed(D)

        assert eigenvalues.shape == (5,)
        assert np.all(np.diff(eigenvalues) <= 1e-12)
        np.testing.assert_allclose(eigenvalues[2:], 0.0, atol=1e-8)

    def test_deterministic(self):
        D = squareform(pdist(PLANAR_POINTS))
        np.testing.assert_array_equal(embed(D)[0], embed(D)[0])

    def test_negative_eigenvalues_are_clipped(self):
        # d(0, 3) > d(0, 1) + d(1, 3): not Euclidean
        D = np.array([[0.0, 1.0, 1.0, 3.0],
                      [1.0, 0.0, 1.0, 1.0],
                      [1.0, 1.0, 0.0, 1.0],
                      [3.0, 1.0, 1.0, 0.0]])
        coords, eigenvalues = embed(D, n_components=4)

        assert eigenvalues.min() < 0
        assert np.all(np.isfinite(coords))
        np.testing.assert_array_equal(coords[:, eigenvalues < 0], 0.0)

    def test_one_dimension(self):
        points = np.array([[0.0], [1.0], [3.0]])
        coords, _ = embed(squareform(pdist(points)), n_components=1)
        np.testing.assert_allclose(pdist(coords), pdist(points), atol=1e-8)


class TestEmbedValidation:

    def test_not_symmetric(self):
        D = np.array([[0.0, 1.0], [2.0, 0.0]])
        with pytest.raises(InvalidInputError):
            embed(D, n_components=1)

    def test_non_zero_diagonal(self):
        D = np.array([[1.0, 1.0], [1.0, 0.0]])
        with pytest.raises(InvalidInputError):
            embed(D, n_components=1)

    def test_nan(self):
        D = np.array([[0.0, np.nan], [np.nan, 0.0]])
        with pytest.raises(InvalidInputError):
            embed(D, n_components=1)

    def test_not_square(self):
        with pytest.raises(InvalidInputError):
            embed(np.zeros((3, 2)))

    def test_too_many_components(self):
        with pytest.raises(InvalidInputError):
            embed(np.zeros((2, 2)), n_components=3)


class TestExplainedVariance:

    def test_shares_of_positive_mass(self):
        np.testing.assert_allclose(explained_variance([3.0, 1.0, 0.0, -1.0]), [0.75, 0.25])

    def test_no_positive_eigenvalue(self):
        np.testing.assert_array_equal(explained_variance([0.0, -1.0]), [0.0, 0.0])
