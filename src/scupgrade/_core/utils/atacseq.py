"""
scATAC-seq Preprocessing: TF-IDF Normalization and LSI
======================================================

Core functions for turning peak count matrices into low-dimensional
embeddings for neighbor graphs and clustering.

Pipeline: raw peaks → TF-IDF normalization → Truncated SVD (LSI) → embeddings

Main Functions
--------------
tfidf_normalize : TF-IDF normalize a sparse peak count matrix
compute_lsi : Truncated SVD on TF-IDF matrix, producing LSI embeddings
depth_correlation : Pearson correlation of each component with sequencing depth
parse_peak_names : Split 'chr:start-end' / 'chr-start-end' peak names

Notes
-----
- First LSI component typically captures sequencing depth, not biology.
- scATAC-seq matrices are ~98% sparse; all operations preserve sparsity where possible.
"""

import re
import warnings

import numpy as np
import pandas as pd
import scipy.sparse as sp
from sklearn.decomposition import TruncatedSVD

_PEAK_PATTERN = re.compile(r"^(?P<chrom>[^:\-_]+)[:\-_](?P<start>\d+)[\-_](?P<end>\d+)$")


def tfidf_normalize(X, log_tf=True):
    """TF-IDF normalize a sparse peak count matrix.

    Parameters
    ----------
    X : scipy.sparse matrix or numpy.ndarray
        Peak count matrix [n_cells, n_peaks]. Can be binary or integer counts.
    log_tf : bool, default: True
        If True, use log(1 + TF) instead of raw TF.

    Returns
    -------
    scipy.sparse.csr_matrix
        TF-IDF normalized matrix [n_cells, n_peaks], sparse CSR format.
    """
    if not sp.issparse(X):
        X = sp.csr_matrix(X)
    else:
        X = X.tocsr()
    X = X.astype(np.float64)

    # Term frequency: normalize each cell by its total counts
    row_sums = np.asarray(X.sum(axis=1)).flatten()
    row_sums[row_sums == 0] = 1  # empty cells stay all-zero
    tf = sp.diags(1.0 / row_sums) @ X

    if log_tf:
        tf = tf.log1p()

    # Inverse document frequency: upweight peaks found in fewer cells
    n_cells = X.shape[0]
    col_sums = np.asarray(X.sum(axis=0)).flatten()
    col_sums[col_sums == 0] = 1  # empty peaks stay all-zero
    idf = np.log1p(n_cells / col_sums)

    return sp.csr_matrix(tf @ sp.diags(idf))


def compute_lsi(X_tfidf, n_components=50, drop_first=True, random_state=42):
    """Compute LSI (Latent Semantic Indexing) via Truncated SVD.

    Parameters
    ----------
    X_tfidf : scipy.sparse matrix or numpy.ndarray
        TF-IDF normalized matrix [n_cells, n_peaks].
    n_components : int, default: 50
        Number of LSI components to return. If drop_first=True, computes
        n_components+1 and drops the first.
    drop_first : bool, default: True
        Drop first SVD component.
    random_state : int, default: 42
        Random seed for reproducibility.

    Returns
    -------
    embeddings : numpy.ndarray
        LSI embeddings [n_cells, n_components].
    variance_ratio : numpy.ndarray
        Explained variance ratio for each returned component.
    components : numpy.ndarray
        Feature loadings [n_components, n_peaks].
    first : numpy.ndarray or None
        The dropped first component's embedding, None when drop_first=False.
    """
    n_compute = n_components + 1 if drop_first else n_components

    # Cap at matrix dimensions
    max_components = min(X_tfidf.shape) - 1
    if max_components < (2 if drop_first else 1):
        raise ValueError(f"Matrix of shape {X_tfidf.shape} is too small for LSI")
    if n_compute > max_components:
        warnings.warn(f"Capped LSI components at {max_components} (matrix rank limit, requested {n_compute})")
        n_compute = max_components

    svd = TruncatedSVD(n_components=n_compute, random_state=random_state)
    embeddings = svd.fit_transform(X_tfidf)
    variance_ratio = svd.explained_variance_ratio_
    components = svd.components_

    first = None
    if drop_first:
        first = embeddings[:, 0]
        embeddings = embeddings[:, 1:]
        variance_ratio = variance_ratio[1:]
        components = components[1:]

    return embeddings, variance_ratio, components, first


def depth_correlation(embeddings, depth):
    """Pearson correlation of each embedding column with log sequencing depth.

    Constant columns (or constant depth) give 0.0.
    """
    embeddings = np.asarray(embeddings, dtype=np.float64)
    if embeddings.ndim == 1:
        embeddings = embeddings[:, None]
    log_depth = np.log1p(np.asarray(depth, dtype=np.float64).ravel())

    centered = embeddings - embeddings.mean(axis=0)
    depth_centered = log_depth - log_depth.mean()
    denom = np.sqrt((centered**2).sum(axis=0) * (depth_centered**2).sum())
    with np.errstate(invalid="ignore", divide="ignore"):
        corr = (centered * depth_centered[:, None]).sum(axis=0) / denom
    return np.nan_to_num(corr, nan=0.0)


def parse_peak_names(names) -> pd.DataFrame:
    """Split peak names into chrom/start/end columns.

    Names not in ``chr:start-end`` (or ``chr-start-end``/``chr_start_end``)
    form get missing values.
    """
    rows = []
    for name in names:
        match = _PEAK_PATTERN.match(str(name))
        if match:
            rows.append((match["chrom"], int(match["start"]), int(match["end"])))
        else:
            rows.append((None, pd.NA, pd.NA))
    df = pd.DataFrame(rows, columns=["chrom", "start", "end"], index=pd.Index(names))
    df["start"] = df["start"].astype("Int64")
    df["end"] = df["end"].astype("Int64")
    return df
