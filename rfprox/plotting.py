# Imports
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from .embedding import explained_variance


def plot_embedding(embedding, labels=None, eigenvalues=None, ax=None, title=None, palette='deep'):
    """
    Scatterplot of a 2D proximity embedding.

    Parameters
    ----------
    embedding : array_like of shape (n_samples, 2)

    labels : array_like of shape (n_samples,), optional
        Class or cluster of every sample, used for colour.

    eigenvalues : array_like, optional
        MDS eigenvalues; adds the share of variance to the axis labels.

    ax : matplotlib Axes, optional

    Returns
    -------
    ax : matplotlib Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 5))

    embedding = np.asarray(embedding)

    if labels is None:
        sns.scatterplot(ax=ax, x=embedding[:, 0], y=embedding[:, 1], s=40)
    else:
        sns.scatterplot(ax=ax, x=embedding[:, 0], y=embedding[:, 1],
                        hue=np.asarray(labels), palette=palette, s=40)

    if eigenvalues is not None:
        variance = explained_variance(eigenvalues, n_components=2) * 100
        ax.set_xlabel(f'Dim 1 ({variance[0]:.1f}%)')
        ax.set_ylabel(f'Dim 2 ({variance[1]:.1f}%)')
    else:
        ax.set_xlabel('Dim 1')
        ax.set_ylabel('Dim 2')

    if title is not None:
        ax.set_title(title)

    return ax


def plot_silhouette_scan(scores, ax=None):
    """Mean silhouette width against k, with the best k marked."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))

    scores = pd.Series(scores)
    sns.lineplot(ax=ax, x=scores.index.to_numpy(), y=scores.to_numpy(), marker='o')
    ax.axvline(scores.idxmax(), color='grey', linestyle='--')

    ax.set_xlabel('Number of clusters k')
    ax.set_ylabel('Mean silhouette width')
    return ax


def plot_cluster_heatmap(x, labels, ax=None, cmap='vlag'):
    """
    Heatmap of features (rows) by samples (columns), rows grouped by cluster.

    Parameters
    ----------
    x : pd.DataFrame of shape (n_samples, n_features)

    labels : pd.Series
        Cluster of every feature, indexed by feature name.

    Returns
    -------
    ax : matplotlib Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 6))

    x = pd.DataFrame(x)
    labels = pd.Series(labels)
    order = labels.sort_values(kind='mergesort').index

    sns.heatmap(x.loc[:, order].T, ax=ax, cmap=cmap, center=0, xticklabels=False,
                yticklabels=len(order) <= 60)

    # Cluster boundaries
    boundaries = np.cumsum(labels.value_counts().sort_index().to_numpy())[:-1]
    for boundary in boundaries:
        ax.axhline(boundary, color='black', linewidth=1)

    ax.set_xlabel('Samples')
    ax.set_ylabel('Features')
    return ax


def plot_importance(importance, top=20, blocks=None, ax=None):
    """
    Horizontal bar plot of the `top` most important features.

    Parameters
    ----------
    importance : pd.Series
        Importances indexed by feature name.

    blocks : pd.Series or dict, optional
        Block of every feature, used for colour.

    Returns
    -------
    ax : matplotlib Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 0.3 * top + 1))

    importance = pd.Series(importance).sort_values(ascending=False).head(top)

    if blocks is None:
        sns.barplot(ax=ax, x=importance.to_numpy(), y=importance.index.to_numpy())
    else:
        hue = pd.Series(blocks).reindex(importance.index).to_numpy()
        sns.barplot(ax=ax, x=importance.to_numpy(), y=importance.index.to_numpy(), hue=hue, dodge=False)

    ax.set_xlabel('Mean decrease in impurity')
    ax.set_ylabel('')
    return ax
