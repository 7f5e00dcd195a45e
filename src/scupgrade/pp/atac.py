"""
Chromatin accessibility (scATAC-seq) preprocessing.

Peak count matrices are quality-filtered, TF-IDF normalized and reduced with
LSI (truncated SVD) instead of the log-normalization + PCA used for RNA.

Main Functions:
- peak_qc(): Per-cell and per-peak accessibility metrics, peak coordinates
- filter_peaks(): Apply a PeakQCConfig
- tfidf(): TF-IDF normalization into a layer
- prepare_atacseq(): TF-IDF + LSI embedding in ``adata.obsm['X_lsi']``
"""

import numpy as np
import scipy.sparse as sp
from anndata import AnnData

from .._core.types import AnnDataKeys, PeakQCConfig
from .._core.utils.atacseq import compute_lsi as _compute_lsi
from .._core.utils.atacseq import depth_correlation as _depth_correlation
from .._core.utils.atacseq import parse_peak_names as _parse_peak_names
from .._core.utils.atacseq import tfidf_normalize as _tfidf_normalize
from .._core.utils.validation import require_layer


def _row_col_stats(X):
    if sp.issparse(X):
        X = X.tocsr()
        total = np.asarray(X.sum(axis=1)).ravel()
        n_peaks = np.diff(X.indptr)
        n_cells = np.asarray((X != 0).sum(axis=0)).ravel()
    else:
        X = np.asarray(X)
        total = X.sum(axis=1)
        n_peaks = (X != 0).sum(axis=1)
        n_cells = (X != 0).sum(axis=0)
    return total, n_peaks, n_cells


def peak_qc(adata: AnnData, *, min_cells: int | None = None, layer: str | None = None) -> None:
    """Compute accessibility QC metrics.

    Parameters
    ----------
    adata : AnnData
        Cells × peaks count matrix.
    min_cells : int, optional
        Flag peaks accessible in at least this many cells in ``var['qc_pass']``.
    layer : str, optional
        Count layer to use instead of ``adata.X``.

    Returns
    -------
    None
        Modifies ``adata`` in place:

        - ``adata.obs['total_counts']``: fragments in peaks per cell
        - ``adata.obs['n_peaks_by_counts']``: accessible peaks per cell
        - ``adata.var['n_cells_by_counts']``: cells in which each peak is accessible
        - ``adata.var['qc_pass']``: peak passes ``min_cells`` (only when given)
        - ``adata.var['chrom']``, ``['start']``, ``['end']``, ``['width']`` when
          peak names encode coordinates
    """
    require_layer(adata, layer)
    X = adata.layers[layer] if layer is not None else adata.X
    total, n_peaks, n_cells = _row_col_stats(X)

    adata.obs[AnnDataKeys.TOTAL_COUNTS] = total.astype(np.float64)
    adata.obs[AnnDataKeys.N_PEAKS] = n_peaks.astype(np.int64)
    adata.var["n_cells_by_counts"] = n_cells.astype(np.int64)
    if min_cells is not None:
        if min_cells < 0:
            raise ValueError(f"min_cells must be >= 0, got {min_cells}")
        adata.var[AnnDataKeys.QC_PASS] = n_cells >= min_cells

    coords = _parse_peak_names(adata.var_names)
    if coords["chrom"].notna().any():
        adata.var["chrom"] = coords["chrom"].to_numpy()
        adata.var["start"] = coords["start"].array
        adata.var["end"] = coords["end"].array
        adata.var["width"] = (coords["end"] - coords["start"]).array


def filter_peaks(adata: AnnData, config: PeakQCConfig | None = None, *, verbose: bool = True, **overrides) -> AnnData:
    """Remove low-coverage cells and rarely accessible peaks.

    Cells are filtered first, then peaks are counted again on the kept cells.

    Parameters
    ----------
    adata : AnnData
        Peak count matrix.
    config : PeakQCConfig, optional
        Thresholds. Defaults to ``PeakQCConfig()``.
    **overrides
        Replace individual ``config`` fields.

    Returns
    -------
    AnnData
        Filtered copy with refreshed QC metrics.
    """
    config = (config or PeakQCConfig()).updated(**overrides)
    peak_qc(adata)

    obs = adata.obs
    keep_cells = np.ones(adata.n_obs, dtype=bool)
    if config.min_counts is not None:
        keep_cells &= (obs[AnnDataKeys.TOTAL_COUNTS] >= config.min_counts).to_numpy()
    if config.max_counts is not None:
        keep_cells &= (obs[AnnDataKeys.TOTAL_COUNTS] <= config.max_counts).to_numpy()
    if config.min_peaks is not None:
        keep_cells &= (obs[AnnDataKeys.N_PEAKS] >= config.min_peaks).to_numpy()
    if not keep_cells.any():
        raise ValueError(
            f"All {adata.n_obs} cells failed peak QC. Relax the thresholds: {config.model_dump(exclude_none=True)}"
        )

    filtered = adata[keep_cells].copy()
    _, _, n_cells = _row_col_stats(filtered.X)
    keep_peaks = n_cells >= config.min_cells
    if not keep_peaks.any():
        raise ValueError(f"No peak is accessible in at least {config.min_cells} cells")
    filtered = filtered[:, keep_peaks].copy()
    peak_qc(filtered)

    filtered.uns[AnnDataKeys.QC] = {
        "config": config.model_dump(mode="json", exclude_none=True),
        "n_cells_before": int(adata.n_obs),
        "n_cells_after": int(filtered.n_obs),
        "n_peaks_before": int(adata.n_vars),
        "n_peaks_after": int(filtered.n_vars),
    }

    if verbose:
        print(f"[STATS] Peak QC: keeping {filtered.n_obs:,} / {adata.n_obs:,} cells")
        print(f"   and {filtered.n_vars:,} / {adata.n_vars:,} peaks (min_cells={config.min_cells})")
    return filtered


def tfidf(adata: AnnData, *, log_tf: bool = True, layer: str | None = None, key_added: str = "tfidf") -> None:
    """TF-IDF normalize peak counts into ``adata.layers[key_added]``.

    Raw counts in ``adata.X`` (or ``layer``) are left untouched.
    """
    require_layer(adata, layer)
    X = adata.layers[layer] if layer is not None else adata.X
    adata.layers[key_added] = _tfidf_normalize(X, log_tf=log_tf)


def prepare_atacseq(
    adata: AnnData,
    *,
    n_components: int = 50,
    drop_first: bool = True,
    log_tf: bool = True,
    random_state: int = 42,
    layer: str | None = None,
    verbose: bool = True,
) -> None:
    """Run TF-IDF normalization and LSI on a peak count matrix.

    Parameters
    ----------
    adata : AnnData
        Peak count matrix [n_cells, n_peaks].
    n_components : int, default: 50
        Number of LSI components to keep (30-50 is standard).
    drop_first : bool, default: True
        Drop the first component, which usually tracks sequencing depth.
    log_tf : bool, default: True
        Use log(1 + TF).
    random_state : int, default: 42
        Seed for the SVD.
    layer : str, optional
        Layer holding peak counts, if not ``adata.X``.

    Returns
    -------
    None
        Modifies ``adata`` in place:

        - ``adata.layers['tfidf']``: TF-IDF matrix
        - ``adata.obsm['X_lsi']``: LSI embeddings [n_cells, n_components]
        - ``adata.varm['LSI']``: peak loadings
        - ``adata.uns['lsi']``: 'variance_ratio', 'depth_correlation' (kept components),
          'first_component_depth_correlation' (if dropped) and 'params'
    """
    require_layer(adata, layer)
    counts = adata.layers[layer] if layer is not None else adata.X

    tfidf(adata, log_tf=log_tf, layer=layer)
    embeddings, variance_ratio, components, first = _compute_lsi(
        adata.layers[AnnDataKeys.TFIDF],
        n_components=n_components,
        drop_first=drop_first,
        random_state=random_state,
    )

    depth = np.asarray(counts.sum(axis=1)).ravel()
    adata.obsm[AnnDataKeys.X_LSI] = embeddings.astype(np.float32)
    adata.varm["LSI"] = components.T.astype(np.float32)
    adata.uns[AnnDataKeys.LSI] = {
        "variance_ratio": variance_ratio,
        "depth_correlation": _depth_correlation(embeddings, depth),
        "params": {
            "n_components": int(embeddings.shape[1]),
            "drop_first": drop_first,
            "log_tf": log_tf,
            "random_state": random_state,
        },
    }
    if first is not None:
        adata.uns[AnnDataKeys.LSI]["first_component_depth_correlation"] = float(
            _depth_correlation(first, depth)[0]
        )

    if verbose:
        print(f"[OK] LSI: {embeddings.shape[1]} components stored in adata.obsm['X_lsi']")
        if first is not None:
            corr = adata.uns[AnnDataKeys.LSI]["first_component_depth_correlation"]
            print(f"   Dropped first component (depth correlation r={corr:.2f})")
