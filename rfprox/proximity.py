# Imports
import warnings

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs
from loguru import logger

from .exceptions import InvalidInputError, UndefinedProximityError, UndefinedProximityWarning


_MODES = ('oob', 'full')
_UNDEFINED_POLICIES = ('nan', 'raise', 'full')


def compute_proximity(leaves, in_bag=None, mode='oob', undefined='nan', n_jobs=1, verbose=False):
    """
    Computes the pair-wise proximity matrix from per-tree terminal nodes.

    The proximity of samples i and j is the fraction of eligible trees in which
    both land in the same terminal node:

        p(i, j) = #{t in T_ij : leaf(i, t) == leaf(j, t)} / |T_ij|

    In 'oob' mode T_ij holds the trees for which both i and j were out-of-bag.
    In 'full' mode T_ij holds every tree; use it for data the forest was not
    trained on (a held-out test set, or features of a transposed matrix).

    Only the upper triangle is computed and then mirrored, so the matrix is
    exactly symmetric. The diagonal is 1 in both modes. Cost is O(n^2 * T).

    Parameters
    ----------

    leaves : array_like of shape (n_samples, n_trees)
        Terminal node ids, as returned by `leaf_assignments`.

    in_bag : array_like of shape (n_samples, n_trees), optional
        Bootstrap draw counts (0 means out-of-bag). Required in 'oob' mode.

    mode : str
        'oob' (default) or 'full'.

    undefined : str
        What to do with a pair that no tree held out jointly ('oob' mode only).
        'nan' (default) stores NaN, 'full' falls back to the all-tree proximity
        for that pair, 'raise' raises UndefinedProximityError. The first two
        emit an UndefinedProximityWarning.

    n_jobs : int
        Number of joblib workers; rows are split into contiguous ranges. The
        result does not depend on n_jobs.

    verbose : bool
        Log progress after every block of rows.

    Returns
    -------
    proximity : ndarray of shape (n_samples, n_samples)
    """
    leaves = _check_leaves(leaves)
    n, n_trees = leaves.shape

    if mode not in _MODES:
        raise InvalidInputError(f"mode must be one of {_MODES}, got {mode!r}.")

    if undefined not in _UNDEFINED_POLICIES:
        raise InvalidInputError(f"undefined must be one of {_UNDEFINED_POLICIES}, got {undefined!r}.")

    if mode == 'oob':
        if in_bag is None:
            raise InvalidInputError("Out-of-bag proximities need the in-bag counts of the training samples.")
        in_bag = np.asarray(in_bag)
        if in_bag.shape != leaves.shape:
            raise InvalidInputError(
                f"In-bag matrix of shape {in_bag.shape} does not match leaf matrix of shape {leaves.shape}."
            )
        oob_indices = in_bag == 0
    else:
        oob_indices = np.ones(leaves.shape, dtype=bool)

    blocks = _row_blocks(n, n_jobs)
    results = Parallel(n_jobs=n_jobs)(
        delayed(_proximity_rows)(leaves, oob_indices, start, stop, undefined)
        for start, stop in blocks
    )

    proximity = np.empty((n, n), dtype=np.float64)
    n_undefined = 0
    for (start, stop), (rows, block_undefined) in zip(blocks, results):
        for i, prox_vec in zip(range(start, stop), rows):
            proximity[i, i + 1:] = prox_vec
            proximity[i + 1:, i] = prox_vec
        n_undefined += block_undefined
        if verbose:
            logger.info(f"Finished with {stop} rows")

    np.fill_diagonal(proximity, 1.0)

    if n_undefined > 0:
        if undefined == 'nan':
            message = f"{n_undefined} sample pairs share no out-of-bag tree; their proximity is NaN."
        else:
            message = f"{n_undefined} sample pairs share no out-of-bag tree; all trees were used instead."
        warnings.warn(message, category=UndefinedProximityWarning, stacklevel=2)

    if verbose:
        logger.info(f"Computed {mode} proximities for {n} samples over {n_trees} trees")

    return proximity


def _proximity_rows(leaves, oob_indices, start, stop, undefined):
    """
    Proximities of rows start..stop-1 against every later row.

    Returns the row vectors (row i has n - i - 1 entries) and the number of
    undefined pairs met.
    """
    n_trees = leaves.shape[1]
    rows = []
    n_undefined = 0

    for ind in range(start, stop):
        eligible = oob_indices[ind] & oob_indices[ind + 1:]
        matches = leaves[ind] == leaves[ind + 1:]

        tree_counts = eligible.sum(axis=1)
        prox_counts = (matches & eligible).sum(axis=1)

        prox_vec = np.full(len(tree_counts), np.nan)
        defined = tree_counts > 0
        prox_vec[defined] = prox_counts[defined] / tree_counts[defined]

        if not defined.all():
            if undefined == 'raise':
                other = ind + 1 + np.flatnonzero(~defined)[0]
                raise UndefinedProximityError(
                    f"Samples {ind} and {other} are not jointly out-of-bag in any tree."
                )
            if undefined == 'full':
                prox_vec[~defined] = matches[~defined].sum(axis=1) / n_trees
            n_undefined += int((~defined).sum())

        rows.append(prox_vec)

    return rows, n_undefined


def _row_blocks(n, n_jobs):
    n_blocks = max(1, min(n, effective_n_jobs(n_jobs)))
    bounds = np.linspace(0, n, n_blocks + 1).astype(int)
    return [(int(start), int(stop)) for start, stop in zip(bounds[:-1], bounds[1:]) if stop > start]


def cross_proximity(leaves_new, leaves_ref):
    """
    Method to compute proximities between new observations and a set of
    reference observations, using all trees.

    Parameters
    ----------

    leaves_new : array_like of shape (n_new, n_trees)

    leaves_ref : array_like of shape (n_ref, n_trees)

    Returns
    -------
    proximity : ndarray of shape (n_new, n_ref)
    """
    leaves_new = _check_leaves(leaves_new)
    leaves_ref = _check_leaves(leaves_ref)

    if leaves_new.shape[1] != leaves_ref.shape[1]:
        raise InvalidInputError(
            f"Leaf matrices come from forests of {leaves_new.shape[1]} and {leaves_ref.shape[1]} trees."
        )

    proximity = np.empty((leaves_new.shape[0], leaves_ref.shape[0]), dtype=np.float64)
    for ind, tree_inds in enumerate(leaves_new):
        proximity[ind] = np.mean(tree_inds == leaves_ref, axis=1)

    return proximity


def complete_cases(proximity):
    """
    Indices of a subset of samples whose pair-wise proximities are all defined.

    Samples are dropped one at a time, always the one with the most undefined
    (NaN) entries among those kept; ties drop the lowest index.

    Parameters
    ----------

    proximity : array_like of shape (n_samples, n_samples)

    Returns
    -------
    keep : ndarray of int
        Sorted indices of the kept samples.
    """
    proximity = np.asarray(proximity, dtype=np.float64)
    if proximity.ndim != 2 or proximity.shape[0] != proximity.shape[1]:
        raise InvalidInputError(f"Expected a square matrix, got shape {proximity.shape}.")

    undefined = np.isnan(proximity)
    keep = np.arange(proximity.shape[0])

    while len(keep) > 0:
        counts = undefined[np.ix_(keep, keep)].sum(axis=1)
        if counts.max() == 0:
            break
        keep = np.delete(keep, np.argmax(counts))

    return keep


def _check_leaves(leaves):
    leaves = np.asarray(leaves)
    if leaves.ndim != 2:
        raise InvalidInputError(f"Leaf matrix must be 2D, got shape {leaves.shape}.")
    if leaves.shape[1] == 0:
        raise InvalidInputError("Leaf matrix has no trees.")
    return leaves
