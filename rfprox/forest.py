# Imports
import numpy as np
import pandas as pd
from loguru import logger

# sklearn imports
from sklearn.ensemble import RandomForestClassifier
from sklearn.utils import check_random_state
from sklearn.utils.validation import check_is_fitted

from .exceptions import InvalidInputError


DEFAULT_N_ESTIMATORS = 500


class TrainedEnsemble:
    """
    A fitted random forest together with the metadata proximities are built from.

    Instances are returned by `train_forest` and `train_unsupervised`; each analysis
    owns the ensemble it trained.

    Parameters
    ----------

    forest : RandomForestClassifier
        The fitted scikit-learn forest.

    feature_names : list of str or None
        Column names of the training data, or None if trained on a plain array.

    in_bag : array_like of shape (n_train_samples, n_trees)
        Bootstrap draw counts recorded right after fitting. 0 means the sample
        was out-of-bag for that tree.

    synthetic : bool
        Whether the forest was trained against a synthetic contrast class.
    """

    def __init__(self, forest, feature_names, in_bag, synthetic=False):
        check_is_fitted(forest)

        in_bag = np.asarray(in_bag, dtype=np.int64)
        if in_bag.ndim != 2 or in_bag.shape[1] != len(forest.estimators_):
            raise InvalidInputError(
                f"In-bag matrix of shape {in_bag.shape} does not match a forest of {len(forest.estimators_)} trees."
            )
        in_bag.setflags(write=False)

        self.forest = forest
        self.feature_names = None if feature_names is None else list(feature_names)
        self.in_bag = in_bag
        self.synthetic = synthetic

    @property
    def n_trees(self):
        return len(self.forest.estimators_)

    @property
    def n_features(self):
        return self.forest.n_features_in_

    @property
    def n_train_samples(self):
        return self.in_bag.shape[0]

    @property
    def oob_error(self):
        """Out-of-bag misclassification rate, or None if the forest was fit without `oob_score`."""
        if not hasattr(self.forest, 'oob_score_'):
            return None
        return 1.0 - self.forest.oob_score_

    def __repr__(self):
        kind = 'unsupervised' if self.synthetic else 'supervised'
        return (f"TrainedEnsemble({kind}, n_trees={self.n_trees}, "
                f"n_features={self.n_features}, n_train_samples={self.n_train_samples})")


#----------------------------------------------------------------------------------#
#<><><><><><><><><><><><><><><><><><> Training <><><><><><><><><><><><><><><><><><>#
#----------------------------------------------------------------------------------#

def train_forest(X, y, n_estimators=DEFAULT_N_ESTIMATORS, max_features='sqrt',
                 random_state=None, verbose=False, **kwargs):
    """
    Fits a random forest classifier and records its in-bag counts.

    Parameters
    ----------

    X : {array-like, DataFrame} of shape (n_samples, n_features)
        The training input samples. Column names of a DataFrame are kept and
        checked against every later query.

    y : array-like of shape (n_samples,)
        Class labels.

    n_estimators : int
        Number of trees (default is 500).

    max_features : {'sqrt', 'log2', int, float, None}
        Number of candidate features per split (default is 'sqrt').

    random_state : int, RandomState instance or None
        Seed for bootstrap draws and split selection.

    verbose : bool
        Log a training summary.

    **kwargs
        Keyword arguments passed to RandomForestClassifier. `oob_score` defaults
        to True when bootstrapping.

    Returns
    -------
    TrainedEnsemble
    """
    feature_names = _feature_names(X)
    X = _as_matrix(X)
    y = np.asarray(y)

    if y.ndim != 1 or y.shape[0] != X.shape[0]:
        raise InvalidInputError(f"Expected {X.shape[0]} labels, got array of shape {y.shape}.")

    forest = _fit_forest(X, y, n_estimators, max_features, random_state, kwargs)
    in_bag = get_in_bag_counts(forest, X.shape[0])

    if verbose:
        logger.info(f"Trained forest of {n_estimators} trees on {X.shape[0]} samples and {X.shape[1]} features")
        if hasattr(forest, 'oob_score_'):
            logger.info(f"OOB error rate: {1.0 - forest.oob_score_:.4f}")

    return TrainedEnsemble(forest, feature_names, in_bag)


def synthetic_contrast(X, random_state=None):
    """
    Builds the two-class problem behind an unsupervised random forest.

    The synthetic class samples every feature from its marginal distribution by
    permuting each column independently, which keeps the marginals and destroys
    the dependence between features.

    Parameters
    ----------

    X : {array-like, DataFrame} of shape (n_samples, n_features)

    random_state : int, RandomState instance or None

    Returns
    -------
    X_all : ndarray or DataFrame of shape (2 * n_samples, n_features)
        Observed rows first, followed by the synthetic rows.

    y_all : ndarray of shape (2 * n_samples,)
        0 for observed rows and 1 for synthetic rows.
    """
    rng = check_random_state(random_state)

    if isinstance(X, pd.DataFrame):
        if X.shape[1] == 0:
            raise InvalidInputError("Cannot build a synthetic contrast without features.")
        observed = X.reset_index(drop=True)
        synthetic = pd.DataFrame({col: rng.permutation(observed[col].to_numpy()) for col in observed.columns})
        X_all = pd.concat([observed, synthetic], ignore_index=True)
    else:
        observed = _as_matrix(X)
        synthetic = np.column_stack([rng.permutation(observed[:, j]) for j in range(observed.shape[1])])
        X_all = np.vstack([observed, synthetic])

    n = len(observed)
    y_all = np.concatenate([np.zeros(n, dtype=int), np.ones(n, dtype=int)])
    return X_all, y_all


def train_unsupervised(X, n_estimators=DEFAULT_N_ESTIMATORS, max_features='sqrt',
                       random_state=None, verbose=False, **kwargs):
    """
    Fits a random forest separating X from its synthetic contrast.

    The returned ensemble's in-bag matrix covers the observed rows only, so
    proximities of X can be computed exactly as for a supervised forest.

    Parameters
    ----------

    X : {array-like, DataFrame} of shape (n_samples, n_features)

    n_estimators, max_features, random_state, verbose, **kwargs
        As in `train_forest`.

    Returns
    -------
    TrainedEnsemble
    """
    rng = check_random_state(random_state)
    feature_names = _feature_names(X)
    X_all, y_all = synthetic_contrast(X, random_state=rng)
    X_all = _as_matrix(X_all)
    n = X_all.shape[0] // 2

    forest = _fit_forest(X_all, y_all, n_estimators, max_features, rng, kwargs)
    in_bag = get_in_bag_counts(forest, X_all.shape[0])[:n]

    if verbose:
        logger.info(f"Trained unsupervised forest of {n_estimators} trees on {n} observed "
                    f"and {n} synthetic samples")
        if hasattr(forest, 'oob_score_'):
            logger.info(f"Observed vs synthetic OOB error rate: {1.0 - forest.oob_score_:.4f}")

    return TrainedEnsemble(forest, feature_names, in_bag, synthetic=True)


def _fit_forest(X, y, n_estimators, max_features, random_state, kwargs):
    if kwargs.get('bootstrap', True):
        kwargs.setdefault('oob_score', True)

    forest = RandomForestClassifier(n_estimators=n_estimators, max_features=max_features,
                                    random_state=random_state, **kwargs)
    return forest.fit(X, y)


#----------------------------------------------------------------------------------#
#<><><><><><><><><><><><><><><><><><> Queries <><><><><><><><><><><><><><><><><><><>#
#----------------------------------------------------------------------------------#

def leaf_assignments(ensemble, X):
    """
    Returns the terminal node each sample reaches in each tree.

    Parameters
    ----------

    ensemble : TrainedEnsemble

    X : {array-like, DataFrame} of shape (n_samples, n_features)
        Must have the training feature set: same number of columns and, when
        both sides are named, the same names in the same order.

    Returns
    -------
    leaves : ndarray of shape (n_samples, n_trees)
        Read-only array of node ids (ids are local to each tree).
    """
    leaves = ensemble.forest.apply(_check_query(ensemble, X))
    leaves.setflags(write=False)
    return leaves


def predict(ensemble, X):
    """Class predictions of the ensemble, with the same feature checks as `leaf_assignments`."""
    return ensemble.forest.predict(_check_query(ensemble, X))


def _check_query(ensemble, X):
    names = _feature_names(X)
    X = _as_matrix(X)

    if X.shape[1] != ensemble.n_features:
        raise InvalidInputError(
            f"X has {X.shape[1]} features, but the ensemble was trained on {ensemble.n_features}."
        )

    if names is not None and ensemble.feature_names is not None and names != ensemble.feature_names:
        mismatched = [a for a, b in zip(names, ensemble.feature_names) if a != b]
        raise InvalidInputError(
            f"Feature names do not match the training features (first mismatch: {mismatched[0]!r})."
        )

    return X


def in_bag_counts(ensemble):
    """
    Returns the bootstrap draw counts of the ensemble's training samples.

    Returns
    -------
    in_bag_matrix : ndarray of shape (n_train_samples, n_trees)
    """
    return np.array(ensemble.in_bag)


def get_in_bag_counts(forest, n_samples):
    """
    This generates a matrix of in-bag counts for each decision tree in the forest

    Parameters
    ----------
    forest : fitted RandomForestClassifier

    n_samples : int
        Number of rows the forest was fit on.

    Returns
    -------
    in_bag_matrix : array_like (n_samples, n_estimators)
    """
    n_trees = len(forest.estimators_)
    in_bag_matrix = np.zeros((n_samples, n_trees), dtype=np.int64)
    in_bag_samples = _get_in_bag_samples(forest, n_samples)

    for t in range(n_trees):
        matches, n_repeats = np.unique(in_bag_samples[t], return_counts=True)
        in_bag_matrix[matches, t] += n_repeats

    return in_bag_matrix


def _get_in_bag_samples(forest, n_samples):
    """
    This is a helper function for get_in_bag_counts.

    Bootstrap draws per tree, as recorded by the forest (every sample once when
    bootstrap=False).
    """
    if not forest.bootstrap:
        return [np.arange(n_samples) for _ in forest.estimators_]

    return forest.estimators_samples_


#----------------------------------------------------------------------------------#
#<><><><><><><><><><><><><><><><><> Importance <><><><><><><><><><><><><><><><><><>#
#----------------------------------------------------------------------------------#

def feature_importance(ensemble, top=None):
    """
    Impurity-based importances, sorted from most to least important.

    Parameters
    ----------

    ensemble : TrainedEnsemble

    top : int or None
        Only return the `top` most important features.

    Returns
    -------
    pandas.Series
        Importances indexed by feature name.
    """
    names = ensemble.feature_names
    if names is None:
        names = [f'x{j}' for j in range(ensemble.n_features)]

    importance = pd.Series(ensemble.forest.feature_importances_, index=names, name='importance')
    importance = importance.sort_values(ascending=False, kind='mergesort')

    return importance if top is None else importance.head(top)


def block_importance(ensemble, blocks):
    """
    Aggregates feature importances per omics block.

    Parameters
    ----------

    ensemble : TrainedEnsemble

    blocks : pandas.Series or dict
        Maps every feature name to its block name.

    Returns
    -------
    pandas.DataFrame
        Columns `sum`, `mean` and `count`, one row per block, sorted by `sum`.
    """
    importance = feature_importance(ensemble)
    block_map = pd.Series(blocks)

    missing = importance.index.difference(block_map.index)
    if len(missing) > 0:
        raise InvalidInputError(f"No block given for {len(missing)} features, e.g. {missing[0]!r}.")

    frame = importance.to_frame()
    frame['block'] = block_map.reindex(importance.index).to_numpy()

    summary = frame.groupby('block')['importance'].agg(['sum', 'mean', 'count'])
    return summary.sort_values('sum', ascending=False)


def _feature_names(X):
    if isinstance(X, pd.DataFrame):
        return [str(col) for col in X.columns]
    return None


def _as_matrix(X):
    X = X.to_numpy() if isinstance(X, pd.DataFrame) else np.asarray(X)
    if X.ndim != 2:
        raise InvalidInputError(f"Expected a 2D array, got shape {X.shape}.")
    return X
