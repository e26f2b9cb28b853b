# Imports
import pandas as pd
import numpy as np

# sklearn imports
from sklearn.datasets import make_classification

from .exceptions import InvalidInputError


DEFAULT_BLOCK_SIZES = {'mrna': 40, 'mirna': 20, 'methylation': 30}


def dataprep(data, label_col_idx=0, scale='normalize'):
    """
    Encodes categorical columns and scales the rest of a DataFrame.

    Parameters
    ----------
    data : pd.DataFrame

    label_col_idx : int or None
        Position of the label column, which is split off and returned. None if
        the frame has no label column.

    scale : str or None
        'normalize' (min-max to [0, 1], the default), 'standardize' (z-scores)
        or None. Constant columns are left untouched.

    Returns
    -------
    x : pd.DataFrame
        Returned alone when label_col_idx is None.

    y : pd.Series
    """
    data = data.copy()

    if label_col_idx is not None:
        label = data.columns[label_col_idx]
        y = data.pop(label)
    else:
        y = None

    categorical_cols = []
    for col in data.columns:
        if data[col].dtype == 'object' or data[col].dtype == 'category' or data[col].dtype == 'bool':
            categorical_cols.append(col)
            data[col] = pd.Categorical(data[col]).codes

    numeric_cols = [col for col in data.columns if col not in categorical_cols]

    if scale == 'standardize':
        for col in numeric_cols:
            if data[col].std() != 0:
                data[col] = (data[col] - data[col].mean()) / data[col].std()

    elif scale == 'normalize':
        for col in numeric_cols:
            if data[col].max() != data[col].min():
                data[col] = (data[col] - data[col].min()) / (data[col].max() - data[col].min())

    elif scale is not None:
        raise InvalidInputError(f"scale must be 'normalize', 'standardize' or None, got {scale!r}.")

    if y is None:
        return data
    return data, y


def concat_blocks(blocks, sep='_'):
    """
    Concatenates omics blocks measured on the same samples.

    Parameters
    ----------
    blocks : dict of str -> pd.DataFrame
        One frame per block, all with the same index (samples in the same order).

    sep : str
        Separator between the block name and the original column name.

    Returns
    -------
    x : pd.DataFrame
        All features, columns named '<block><sep><column>'.

    block_map : pd.Series
        Block name of every column of x.
    """
    if len(blocks) == 0:
        raise InvalidInputError("No blocks to concatenate.")

    frames = []
    block_map = {}
    index = next(iter(blocks.values())).index

    for name, frame in blocks.items():
        if not frame.index.equals(index):
            raise InvalidInputError(f"Block {name!r} does not share the sample index of the other blocks.")

        frame = frame.add_prefix(f'{name}{sep}')
        frames.append(frame)
        block_map.update({col: name for col in frame.columns})

    x = pd.concat(frames, axis=1)
    if x.columns.duplicated().any():
        raise InvalidInputError("Concatenated blocks have duplicated column names.")

    return x, pd.Series(block_map, name='block')


def make_multiomics(n_samples=120, block_sizes=None, n_informative=10, n_classes=2,
                    class_sep=1.0, random_state=None):
    """
    Synthetic multi-omics classification data.

    Features come from sklearn's make_classification, shuffled so informative
    features fall into every block, then split into blocks.

    Returns
    -------
    blocks : dict of str -> pd.DataFrame

    y : pd.Series
    """
    if block_sizes is None:
        block_sizes = DEFAULT_BLOCK_SIZES

    n_features = sum(block_sizes.values())
    x, y = make_classification(n_samples=n_samples, n_features=n_features,
                               n_informative=min(n_informative, n_features), n_redundant=0,
                               n_classes=n_classes, class_sep=class_sep,
                               shuffle=True, random_state=random_state)

    index = pd.Index([f'sample_{i:03d}' for i in range(n_samples)], name='sample')
    bounds = np.cumsum([0] + list(block_sizes.values()))

    blocks = {}
    for (name, size), start in zip(block_sizes.items(), bounds[:-1]):
        columns = [f'f{j:03d}' for j in range(size)]
        blocks[name] = pd.DataFrame(x[:, start:start + size], index=index, columns=columns)

    return blocks, pd.Series(y, index=index, name='label')
