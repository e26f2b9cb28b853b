"""
The three proximity analyses of the multi-omics walkthrough.

Each function trains its own forest and returns it inside its result, so no
fitted model is shared between analyses:

- supervised_analysis: forest on the integrated (concatenated) omics blocks,
  out-of-bag proximities of the training samples and all-tree proximities of
  a held-out test set, each embedded with classical MDS.
- unsupervised_analysis: forest separating the samples from a synthetic
  contrast, out-of-bag proximities of the samples, embedded with classical MDS.
- feature_clustering: unsupervised forest on the transposed matrix, all-tree
  proximities between features and medoid clustering with k chosen by
  silhouette width.
"""

import numpy as np
import pandas as pd
from loguru import logger

# sklearn imports
from sklearn.utils import check_random_state

from .clustering import cluster, select_k
from .embedding import dissimilarity, embed, explained_variance
from .forest import (DEFAULT_N_ESTIMATORS, feature_importance, in_bag_counts, leaf_assignments,
                     predict, train_forest, train_unsupervised)
from .proximity import complete_cases, compute_proximity


class ProximityAnalysis:
    """
    Proximities of a set of samples and their MDS embedding.

    Attributes
    ----------
    ensemble : TrainedEnsemble

    proximity : ndarray of shape (n_samples, n_samples)
        May contain NaN for pairs no tree held out jointly.

    kept : ndarray of int
        Samples that entered the embedding (all samples unless NaN pairs had to be dropped).

    embedding : ndarray of shape (len(kept), 2) or None
        None when fewer than two samples are left to embed.

    eigenvalues : ndarray
    """

    def __init__(self, ensemble, proximity, kept, embedding, eigenvalues):
        self.ensemble = ensemble
        self.proximity = proximity
        self.kept = kept
        self.embedding = embedding
        self.eigenvalues = eigenvalues

    @property
    def explained_variance(self):
        if self.embedding is None:
            return None
        return explained_variance(self.eigenvalues, n_components=self.embedding.shape[1])


class SupervisedResult(ProximityAnalysis):
    """
    ProximityAnalysis of the training samples of a supervised forest.

    Additional attributes: `importance` (pandas.Series, sorted), `oob_error`
    and, when a test set was given, `test_proximity`, `test_embedding`,
    `test_eigenvalues` and `test_predictions` (None otherwise). A one-sample
    test set has no embedding.
    """

    def __init__(self, ensemble, proximity, kept, embedding, eigenvalues, importance):
        super().__init__(ensemble, proximity, kept, embedding, eigenvalues)
        self.importance = importance
        self.oob_error = ensemble.oob_error

        self.test_proximity = None
        self.test_embedding = None
        self.test_eigenvalues = None
        self.test_predictions = None


class FeatureClusteringResult:
    """
    Medoid clustering of features.

    Attributes
    ----------
    ensemble : TrainedEnsemble
        Unsupervised forest trained on the transposed data.

    proximity : ndarray of shape (n_features, n_features)

    labels : pandas.Series
        Cluster label (1..k) indexed by feature name.

    assignment : ClusterAssignment

    silhouette : pandas.Series
        Mean silhouette width for every k tried.
    """

    def __init__(self, ensemble, proximity, labels, assignment, silhouette):
        self.ensemble = ensemble
        self.proximity = proximity
        self.labels = labels
        self.assignment = assignment
        self.silhouette = silhouette

    @property
    def k(self):
        return self.assignment.k


def supervised_analysis(X_train, y_train, X_test=None, n_estimators=DEFAULT_N_ESTIMATORS, max_features='sqrt',
                        undefined='nan', random_state=None, n_jobs=1, verbose=False, **forest_kwargs):
    """
    Trains a classification forest and embeds its sample proximities.

    Parameters
    ----------

    X_train : {array-like, DataFrame} of shape (n_train, n_features)

    y_train : array-like of shape (n_train,)

    X_test : {array-like, DataFrame} of shape (n_test, n_features), optional
        Held-out samples; their proximities use all trees.

    n_estimators, max_features, random_state, **forest_kwargs
        Passed to `train_forest`.

    undefined : str
        Policy for training pairs without a joint out-of-bag tree, see `compute_proximity`.

    n_jobs : int
        Workers for the proximity computation.

    verbose : bool

    Returns
    -------
    SupervisedResult
    """
    ensemble = train_forest(X_train, y_train, n_estimators=n_estimators, max_features=max_features,
                            random_state=random_state, verbose=verbose, **forest_kwargs)

    leaves = leaf_assignments(ensemble, X_train)
    proximity = compute_proximity(leaves, in_bag_counts(ensemble), mode='oob', undefined=undefined,
                                  n_jobs=n_jobs, verbose=verbose)
    kept, embedding, eigenvalues = _embed_defined(proximity, verbose)

    result = SupervisedResult(ensemble, proximity, kept, embedding, eigenvalues, feature_importance(ensemble))

    if X_test is not None:
        test_leaves = leaf_assignments(ensemble, X_test)
        result.test_proximity = compute_proximity(test_leaves, mode='full', n_jobs=n_jobs, verbose=verbose)
        result.test_embedding, result.test_eigenvalues = _embed(result.test_proximity)
        result.test_predictions = predict(ensemble, X_test)

    return result


def unsupervised_analysis(X, n_estimators=DEFAULT_N_ESTIMATORS, max_features='sqrt', undefined='nan',
                          random_state=None, n_jobs=1, verbose=False, **forest_kwargs):
    """
    Trains a forest against a synthetic contrast and embeds the sample proximities.

    Parameters are as in `supervised_analysis`, without labels.

    Returns
    -------
    ProximityAnalysis
    """
    ensemble = train_unsupervised(X, n_estimators=n_estimators, max_features=max_features,
                                  random_state=random_state, verbose=verbose, **forest_kwargs)

    leaves = leaf_assignments(ensemble, X)
    proximity = compute_proximity(leaves, in_bag_counts(ensemble), mode='oob', undefined=undefined,
                                  n_jobs=n_jobs, verbose=verbose)
    kept, embedding, eigenvalues = _embed_defined(proximity, verbose)

    return ProximityAnalysis(ensemble, proximity, kept, embedding, eigenvalues)


def feature_clustering(X, k_range=None, n_estimators=DEFAULT_N_ESTIMATORS, max_features='sqrt',
                       init='build', random_state=None, n_jobs=1, verbose=False, **forest_kwargs):
    """
    Clusters the features of X by their proximity in an unsupervised forest.

    The forest is trained on the transposed matrix (features as rows, samples
    as columns). Feature proximities use all trees, k is chosen by the mean
    silhouette width over k_range.

    Parameters
    ----------

    X : {array-like, DataFrame} of shape (n_samples, n_features)

    k_range : iterable of int, optional
        Candidate numbers of clusters, see `select_k`.

    init : str
        Medoid initialisation, see `cluster`. random_state also seeds it.

    Returns
    -------
    FeatureClusteringResult
    """
    if isinstance(X, pd.DataFrame):
        features = X.T
        names = [str(col) for col in X.columns]
    else:
        features = np.asarray(X).T
        names = [f'x{j}' for j in range(features.shape[0])]

    # The final clustering repeats the scan run that scored best_k.
    seed = check_random_state(random_state).randint(np.iinfo(np.int32).max)

    ensemble = train_unsupervised(features, n_estimators=n_estimators, max_features=max_features,
                                  random_state=seed, verbose=verbose, **forest_kwargs)

    leaves = leaf_assignments(ensemble, features)
    proximity = compute_proximity(leaves, mode='full', n_jobs=n_jobs, verbose=verbose)
    D = dissimilarity(proximity)

    best_k, silhouette = select_k(D, k_range, verbose=verbose, init=init, random_state=seed)
    assignment = cluster(D, best_k, init=init, random_state=seed)

    labels = pd.Series(assignment.labels, index=names, name='cluster')
    return FeatureClusteringResult(ensemble, proximity, labels, assignment, silhouette)


def _embed_defined(proximity, verbose):
    kept = complete_cases(proximity)
    if verbose and len(kept) < proximity.shape[0]:
        logger.info(f"Dropped {proximity.shape[0] - len(kept)} samples with undefined proximities before embedding")

    embedding, eigenvalues = _embed(proximity[np.ix_(kept, kept)])
    return kept, embedding, eigenvalues


def _embed(proximity):
    # A single sample has no second axis to embed on.
    if proximity.shape[0] < 2:
        return None, None
    return embed(dissimilarity(proximity))
