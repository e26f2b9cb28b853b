# Imports
import numpy as np
from scipy import linalg
from loguru import logger

from .exceptions import InvalidInputError


def dissimilarity(proximity):
    """Converts proximities to dissimilarities, 1 - p(i, j). NaN entries stay NaN."""
    proximity = np.asarray(proximity, dtype=np.float64)
    if proximity.ndim != 2 or proximity.shape[0] != proximity.shape[1]:
        raise InvalidInputError(f"Expected a square proximity matrix, got shape {proximity.shape}.")
    return 1.0 - proximity


def check_dissimilarity(dissimilarity, tol=1e-8):
    """
    Validates a dissimilarity matrix: square, finite, symmetric, zero diagonal.

    Returns
    -------
    ndarray of float64
    """
    D = np.array(dissimilarity, dtype=np.float64)

    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise InvalidInputError(f"Expected a square dissimilarity matrix, got shape {D.shape}.")

    if not np.all(np.isfinite(D)):
        raise InvalidInputError(
            "Dissimilarity matrix contains NaN or infinite entries; "
            "drop undefined pairs first (see rfprox.proximity.complete_cases)."
        )

    if not np.allclose(D, D.T, rtol=0, atol=tol):
        raise InvalidInputError("Dissimilarity matrix is not symmetric.")

    if np.any(np.abs(np.diag(D)) > tol):
        raise InvalidInputError("Dissimilarity matrix must have a zero diagonal.")

    np.fill_diagonal(D, 0.0)
    return D


def embed(dissimilarity, n_components=2, verbose=False):
    """
    Classical (metric) multidimensional scaling.

    The squared dissimilarities are double centered, B = -1/2 J D^2 J with
    J = I - 11'/n, and B is eigendecomposed. Coordinates are the leading
    eigenvectors scaled by the square root of their eigenvalues. Negative
    eigenvalues (a non-Euclidean dissimilarity) are clipped to zero for the
    coordinates, which loses the corresponding part of the distances.

    Each axis is oriented so that its largest absolute coordinate is positive.

    Parameters
    ----------

    dissimilarity : array_like of shape (n_samples, n_samples)
        Symmetric, zero diagonal, no NaN.

    n_components : int
        Dimension of the embedding (default is 2).

    verbose : bool
        Log when leading eigenvalues had to be clipped.

    Returns
    -------
    coordinates : ndarray of shape (n_samples, n_components)

    eigenvalues : ndarray of shape (n_samples,)
        All eigenvalues of B in decreasing order, unclipped.
    """
    D = check_dissimilarity(dissimilarity)
    n = D.shape[0]

    if not 1 <= n_components <= n:
        raise InvalidInputError(f"n_components must be between 1 and {n}, got {n_components}.")

    # Double centering
    J = np.eye(n) - np.full((n, n), 1.0 / n)
    B = -0.5 * J @ (D ** 2) @ J
    B = (B + B.T) / 2

    eigenvalues, eigenvectors = linalg.eigh(B)
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = eigenvalues[order]
    eigenvectors = eigenvectors[:, order[:n_components]]

    leading = eigenvalues[:n_components]
    if verbose and np.any(leading < 0):
        logger.info(f"Clipped {int(np.sum(leading < 0))} negative leading eigenvalues to zero")

    # Deterministic orientation
    signs = np.sign(eigenvectors[np.argmax(np.abs(eigenvectors), axis=0), range(n_components)])
    signs[signs == 0] = 1
    eigenvectors = eigenvectors * signs

    coordinates = eigenvectors * np.sqrt(np.clip(leading, 0, None))
    return coordinates, eigenvalues


def explained_variance(eigenvalues, n_components=2):
    """
    Share of the positive eigenvalue mass carried by each leading axis.

    Returns zeros if no eigenvalue is positive.
    """
    positive = np.clip(np.asarray(eigenvalues, dtype=np.float64), 0, None)
    total = positive.sum()
    if total == 0:
        return np.zeros(n_components)
    return positive[:n_components] / total
