# Imports
import numbers
import warnings

import numpy as np
import pandas as pd
from loguru import logger

# sklearn imports
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import silhouette_samples
from sklearn.utils import check_random_state

from .embedding import check_dissimilarity
from .exceptions import DegenerateClusterWarning, InvalidInputError


DEFAULT_MAX_ITER = 100
DEFAULT_K_RANGE = range(2, 11)


class ClusterAssignment:
    """
    Result of a medoid clustering.

    Attributes
    ----------
    labels : ndarray of shape (n_items,)
        Cluster label of every item, in 1..k. Cluster c is the cluster of medoids[c - 1].

    medoids : ndarray of shape (k,)
        Item index of each cluster's medoid.

    n_iter : int
        Number of assignment/update rounds run.

    inertia : float
        Sum of the dissimilarities of all items to their medoid.
    """

    def __init__(self, labels, medoids, n_iter, inertia):
        self.labels = labels
        self.medoids = medoids
        self.n_iter = n_iter
        self.inertia = inertia

    @property
    def k(self):
        return len(self.medoids)

    def __repr__(self):
        return f"ClusterAssignment(k={self.k}, medoids={self.medoids.tolist()}, inertia={self.inertia:.4f})"


def cluster(dissimilarity, k, init='build', random_state=None, max_iter=DEFAULT_MAX_ITER):
    """
    Partitions items into k clusters around medoids, from dissimilarities only.

    Starting from k initial medoids, every item is assigned to its nearest
    medoid (ties go to the medoid listed first) and every medoid is then
    replaced by the member of its cluster with the smallest total dissimilarity
    to the other members (the current medoid is kept on ties, otherwise the
    lowest index wins). This repeats until the medoids stop changing or
    max_iter rounds have run.

    Parameters
    ----------

    dissimilarity : array_like of shape (n_items, n_items)

    k : int
        Number of clusters, 2 <= k <= n_items - 1.

    init : str
        'build' (default) for the deterministic greedy seeding of PAM: the first
        medoid minimises the total dissimilarity, each further medoid reduces the
        total cost the most. 'random' draws k distinct items from random_state.

    random_state : int, RandomState instance or None
        Only used with init='random'.

    max_iter : int
        Maximum number of rounds. A ConvergenceWarning is issued when reached.

    Returns
    -------
    ClusterAssignment
    """
    D = check_dissimilarity(dissimilarity)
    n = D.shape[0]
    _check_k(k, n)

    if max_iter < 1:
        raise InvalidInputError(f"max_iter must be positive, got {max_iter}.")

    if init == 'build':
        medoids = _build_medoids(D, k)
    elif init == 'random':
        rng = check_random_state(random_state)
        medoids = rng.choice(n, size=k, replace=False)
    else:
        raise InvalidInputError(f"init must be 'build' or 'random', got {init!r}.")

    for n_iter in range(1, max_iter + 1):
        labels = _assign(D, medoids)
        new_medoids = _update_medoids(D, labels, medoids)

        if np.array_equal(new_medoids, medoids):
            break
        medoids = new_medoids

    else:
        warnings.warn(f"Medoids did not converge within {max_iter} iterations.",
                      category=ConvergenceWarning, stacklevel=2)
        labels = _assign(D, medoids)

    inertia = float(D[np.arange(n), medoids[labels]].sum())
    return ClusterAssignment(labels + 1, medoids, n_iter, inertia)


def _build_medoids(D, k):
    medoids = [int(np.argmin(D.sum(axis=1)))]
    nearest = D[:, medoids[0]].copy()

    for _ in range(1, k):
        # Cost reduction from adding each candidate column as a medoid
        gains = np.maximum(nearest[:, None] - D, 0).sum(axis=0)
        gains[medoids] = -np.inf
        candidate = int(np.argmax(gains))
        medoids.append(candidate)
        nearest = np.minimum(nearest, D[:, candidate])

    return np.array(medoids)


def _assign(D, medoids):
    labels = np.argmin(D[:, medoids], axis=1)
    labels[medoids] = np.arange(len(medoids))
    return labels


def _update_medoids(D, labels, medoids):
    new_medoids = medoids.copy()
    for c, medoid in enumerate(medoids):
        members = np.flatnonzero(labels == c)
        costs = D[np.ix_(members, members)].sum(axis=1)
        best = np.argmin(costs)
        if costs[best] < costs[np.flatnonzero(members == medoid)[0]]:
            new_medoids[c] = members[best]
    return new_medoids


def silhouette_widths(dissimilarity, labels):
    """
    Silhouette width of every item, (b - a) / max(a, b).

    a is the mean dissimilarity to the other members of the item's cluster and
    b the mean dissimilarity to the members of the nearest other cluster. Items
    in a cluster of size one have no a; their width is 0 and a
    DegenerateClusterWarning is issued.

    Parameters
    ----------

    dissimilarity : array_like of shape (n_items, n_items)

    labels : array_like of shape (n_items,)
        Must contain between 2 and n_items - 1 distinct labels.

    Returns
    -------
    widths : ndarray of shape (n_items,), values in [-1, 1]
    """
    D = check_dissimilarity(dissimilarity)
    n = D.shape[0]
    labels = np.asarray(labels)

    if labels.shape != (n,):
        raise InvalidInputError(f"Expected {n} labels, got array of shape {labels.shape}.")

    unique_labels, sizes = np.unique(labels, return_counts=True)
    if not 2 <= len(unique_labels) <= n - 1:
        raise InvalidInputError(
            f"Silhouettes need between 2 and {n - 1} clusters, got {len(unique_labels)}."
        )

    singletons = unique_labels[sizes == 1]
    if len(singletons) > 0:
        warnings.warn(f"Clusters {singletons.tolist()} have a single member; their silhouette width is 0.",
                      category=DegenerateClusterWarning, stacklevel=2)

    return silhouette_samples(D, labels, metric='precomputed')


def select_k(dissimilarity, k_range=None, verbose=False, **cluster_kwargs):
    """
    Picks the number of clusters with the largest mean silhouette width.

    Parameters
    ----------

    dissimilarity : array_like of shape (n_items, n_items)

    k_range : iterable of int, optional
        Candidate values, each in [2, n_items - 1]. Defaults to 2..10, cut to
        the values valid for n_items.

    verbose : bool
        Log the score of every k and the chosen k.

    **cluster_kwargs
        Passed to `cluster`.

    Returns
    -------
    best_k : int
        The first k (in increasing order) reaching the maximum mean silhouette.

    scores : pandas.Series
        Mean silhouette width indexed by k.
    """
    D = check_dissimilarity(dissimilarity)
    n = D.shape[0]

    if k_range is None:
        k_range = [k for k in DEFAULT_K_RANGE if k <= n - 1]
    else:
        k_range = sorted(set(k_range))
        for k in k_range:
            _check_k(k, n)

    if len(k_range) == 0:
        raise InvalidInputError(f"No valid number of clusters for {n} items.")

    scores = {}
    for k in k_range:
        assignment = cluster(D, k, **cluster_kwargs)
        scores[k] = float(np.mean(silhouette_widths(D, assignment.labels)))
        if verbose:
            logger.info(f"k = {k}: mean silhouette width {scores[k]:.4f}")

    scores = pd.Series(scores, name='silhouette')
    scores.index.name = 'k'
    best_k = int(scores.idxmax())

    if verbose:
        logger.info(f"Selected k = {best_k}")

    return best_k, scores


def _check_k(k, n):
    if not isinstance(k, numbers.Integral) or not 2 <= k <= n - 1:
        raise InvalidInputError(f"k must be an integer between 2 and {n - 1}, got {k!r}.")
