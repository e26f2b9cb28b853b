# Imports
import os

import matplotlib.pyplot as plt
import seaborn as sns

from sklearn.model_selection import train_test_split

from rfprox import concat_blocks, make_multiomics, block_importance
from rfprox.analysis import supervised_analysis, unsupervised_analysis, feature_clustering
from rfprox.plotting import plot_embedding, plot_silhouette_scan, plot_cluster_heatmap, plot_importance


save_figs = True
random_state = 42

sns.set_theme()
os.makedirs('figures', exist_ok=True)


# Read in and prepare the data
blocks, y = make_multiomics(n_samples=150, random_state=random_state)
x, block_map = concat_blocks(blocks)

x_train, x_test, y_train, y_test = train_test_split(x, y, test_size=0.2, stratify=y,
                                                    random_state=random_state)


# Integrative supervised forest
supervised = supervised_analysis(x_train, y_train, x_test, n_estimators=500,
                                 random_state=random_state, verbose=True)

print('OOB error rate:', round(supervised.oob_error, 4))
print(block_importance(supervised.ensemble, block_map))

fig, axes = plt.subplots(1, 2, figsize=(11, 5))
plot_embedding(supervised.embedding, y_train.to_numpy()[supervised.kept], supervised.eigenvalues,
               ax=axes[0], title='Training samples (OOB proximity)')
plot_embedding(supervised.test_embedding, y_test.to_numpy(), supervised.test_eigenvalues,
               ax=axes[1], title='Test samples (all trees)')
plt.tight_layout()

if save_figs:
    plt.savefig('./figures/supervised_mds.pdf')

fig, ax = plt.subplots(figsize=(6, 7))
plot_importance(supervised.importance, top=20, blocks=block_map, ax=ax)
plt.tight_layout()

if save_figs:
    plt.savefig('./figures/importance.pdf')


# Unsupervised forest against a synthetic contrast
unsupervised = unsupervised_analysis(x, n_estimators=500, random_state=random_state, verbose=True)

fig, ax = plt.subplots(figsize=(6, 5))
plot_embedding(unsupervised.embedding, y.to_numpy()[unsupervised.kept], unsupervised.eigenvalues,
               ax=ax, title='Unsupervised proximity')
plt.tight_layout()

if save_figs:
    plt.savefig('./figures/unsupervised_mds.pdf')


# Feature clustering on the transposed data
features = feature_clustering(x, k_range=range(2, 9), n_estimators=500,
                              random_state=random_state, verbose=True)

print(features.labels.groupby(block_map).value_counts().unstack(fill_value=0))

fig, axes = plt.subplots(1, 2, figsize=(13, 6), gridspec_kw={'width_ratios': [1, 2]})
plot_silhouette_scan(features.silhouette, ax=axes[0])
plot_cluster_heatmap(x, features.labels, ax=axes[1])
plt.tight_layout()

if save_figs:
    plt.savefig('./figures/feature_clusters.pdf')
