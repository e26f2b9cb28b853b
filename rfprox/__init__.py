"""
rfprox package

Random forest proximities, classical MDS embeddings and medoid clustering.
"""

__version__ = "0.1.0"

from .exceptions import (InvalidInputError, UndefinedProximityError,
                         UndefinedProximityWarning, DegenerateClusterWarning)
from .forest import (TrainedEnsemble, train_forest, train_unsupervised, synthetic_contrast,
                     leaf_assignments, in_bag_counts, predict, feature_importance, block_importance)
from .proximity import compute_proximity, cross_proximity, complete_cases
from .embedding import dissimilarity, embed, explained_variance
from .clustering import ClusterAssignment, cluster, silhouette_widths, select_k
from .analysis import supervised_analysis, unsupervised_analysis, feature_clustering
from .dataset import dataprep, concat_blocks, make_multiomics


__all__ = [
    "__version__",
    "InvalidInputError",
    "UndefinedProximityError",
    "UndefinedProximityWarning",
    "DegenerateClusterWarning",
    "TrainedEnsemble",
    "train_forest",
    "train_unsupervised",
    "synthetic_contrast",
    "leaf_assignments",
    "in_bag_counts",
    "predict",
    "feature_importance",
    "block_importance",
    "compute_proximity",
    "cross_proximity",
    "complete_cases",
    "dissimilarity",
    "embed",
    "explained_variance",
    "ClusterAssignment",
    "cluster",
    "silhouette_widths",
    "select_k",
    "supervised_analysis",
    "unsupervised_analysis",
    "feature_clustering",
    "dataprep",
    "concat_blocks",
    "make_multiomics",
]
