"""
Quality control for single-cell RNA data.

Metrics are computed with scanpy; this module adds the gene flags the
workshops use (mitochondrial, ribosomal, hemoglobin), fixed and MAD-based
thresholds, and doublet detection.

Main Functions:
- qc_metrics(): Flag gene groups and compute per-cell QC metrics
- mad_outliers(): Flag cells far from the median of a metric
- filter_cells(): Apply a QCConfig and return the passing cells
- filter_genes(): Drop rarely detected genes
- detect_doublets(): Scrublet doublet scores and calls
"""

import warnings

import numpy as np
import pandas as pd
import scanpy as sc
from anndata import AnnData

from .._core.types import AnnDataKeys, QCConfig
from .._core.utils.validation import require_obs


def qc_metrics(
    adata: AnnData,
    *,
    mt_prefix: str = "MT-",
    ribo_prefixes: tuple[str, ...] = ("RPS", "RPL"),
    hb_pattern: str | None = r"^HB[^(P)]",
    layer: str | None = None,
) -> None:
    """Compute per-cell QC metrics.

    Prefix and pattern matching is case-insensitive, so ``MT-`` also finds
    mouse ``mt-`` genes.

    Parameters
    ----------
    adata : AnnData
        Count matrix.
    mt_prefix : str, default: "MT-"
        Prefix of mitochondrial genes.
    ribo_prefixes : tuple[str, ...], default: ("RPS", "RPL")
        Prefixes of ribosomal protein genes.
    hb_pattern : str or None, default: r"^HB[^(P)]"
        Regex for hemoglobin genes (excludes HBP1). None skips the flag.
    layer : str, optional
        Layer holding counts, if not ``adata.X``.

    Returns
    -------
    None
        Modifies ``adata`` in place:

        - ``adata.var['mt']``, ``['ribo']``, ``['hb']``: gene flags
        - ``adata.obs['n_genes_by_counts']``, ``['total_counts']``,
          ``['pct_counts_mt']``, ``['pct_counts_ribo']``, ``['pct_counts_hb']``
        - ``adata.obs['log1p_total_counts']``, ``['log1p_n_genes_by_counts']``
    """
    names = adata.var_names.str.upper()
    adata.var["mt"] = names.str.startswith(mt_prefix.upper())
    adata.var["ribo"] = names.str.startswith(tuple(p.upper() for p in ribo_prefixes))
    qc_vars = ["mt", "ribo"]
    if hb_pattern is not None:
        adata.var["hb"] = names.str.contains(hb_pattern, case=False, regex=True)
        qc_vars.append("hb")

    if not adata.var["mt"].any():
        warnings.warn(f"No mitochondrial genes found with prefix '{mt_prefix}'. pct_counts_mt will be 0.")

    sc.pp.calculate_qc_metrics(adata, qc_vars=qc_vars, percent_top=None, log1p=True, layer=layer, inplace=True)


def mad_outliers(adata: AnnData, metric: str, *, nmads: float = 5.0, log: bool = False) -> pd.Series:
    """Flag cells more than ``nmads`` median absolute deviations from the median.

    Parameters
    ----------
    adata : AnnData
        Annotated data with ``adata.obs[metric]``.
    metric : str
        QC metric column, e.g. 'log1p_total_counts'.
    nmads : float, default: 5.0
        Number of MADs beyond which a cell is an outlier.
    log : bool, default: False
        Apply log1p to the metric first.

    Returns
    -------
    pd.Series
        Boolean Series indexed like ``adata.obs``, True for outliers.
    """
    require_obs(adata, metric, hint="Run su.pp.qc_metrics(adata) first.")
    values = adata.obs[metric].to_numpy(dtype=np.float64)
    if log:
        values = np.log1p(values)
    median = np.median(values)
    mad = np.median(np.abs(values - median))
    outlier = np.abs(values - median) > nmads * mad
    return pd.Series(outlier, index=adata.obs_names, name=f"{metric}_outlier")


def filter_cells(adata: AnnData, config: QCConfig | None = None, *, verbose: bool = True, **overrides) -> AnnData:
    """Remove low-quality cells.

    Parameters
    ----------
    adata : AnnData
        Count matrix. QC metrics are computed first if missing.
    config : QCConfig, optional
        Thresholds. Defaults to ``QCConfig()``.
    verbose : bool, default: True
        Print removal counts per criterion.
    **overrides
        Replace individual ``config`` fields, e.g. ``max_pct_mt=10``.

    Returns
    -------
    AnnData
        Filtered copy. ``obs['qc_pass']`` is True for every kept cell and the
        input gets the same column; ``uns['qc']`` records the thresholds and how
        many cells each criterion removed (criteria can overlap).
    """
    config = (config or QCConfig()).updated(**overrides)

    if AnnDataKeys.PCT_MT not in adata.obs.columns or AnnDataKeys.N_GENES not in adata.obs.columns:
        qc_metrics(
            adata,
            mt_prefix=config.mt_prefix,
            ribo_prefixes=config.ribo_prefixes,
            hb_pattern=config.hb_pattern,
        )

    obs = adata.obs
    failures = {}
    if config.min_genes is not None:
        failures["min_genes"] = obs[AnnDataKeys.N_GENES] < config.min_genes
    if config.max_genes is not None:
        failures["max_genes"] = obs[AnnDataKeys.N_GENES] > config.max_genes
    if config.min_counts is not None:
        failures["min_counts"] = obs[AnnDataKeys.TOTAL_COUNTS] < config.min_counts
    if config.max_counts is not None:
        failures["max_counts"] = obs[AnnDataKeys.TOTAL_COUNTS] > config.max_counts
    if config.max_pct_mt is not None:
        failures["max_pct_mt"] = obs[AnnDataKeys.PCT_MT] > config.max_pct_mt
    if config.max_pct_ribo is not None:
        require_obs(adata, AnnDataKeys.PCT_RIBO, hint="Run su.pp.qc_metrics(adata) first.")
        failures["max_pct_ribo"] = obs[AnnDataKeys.PCT_RIBO] > config.max_pct_ribo
    if config.nmads is not None:
        failures["mad_counts"] = mad_outliers(adata, "log1p_total_counts", nmads=config.nmads)
        failures["mad_genes"] = mad_outliers(adata, "log1p_n_genes_by_counts", nmads=config.nmads)

    fail = np.zeros(adata.n_obs, dtype=bool)
    for mask in failures.values():
        fail |= np.asarray(mask, dtype=bool)

    adata.obs[AnnDataKeys.QC_PASS] = ~fail
    n_keep = int((~fail).sum())
    if n_keep == 0:
        raise ValueError(
            f"All {adata.n_obs} cells failed QC. Relax the thresholds: {config.model_dump(exclude_none=True)}"
        )

    removed = {name: int(np.asarray(mask).sum()) for name, mask in failures.items()}
    if verbose:
        print(f"[STATS] Cell QC: keeping {n_keep:,} / {adata.n_obs:,} cells")
        for name, count in removed.items():
            if count:
                print(f"   {name}: {count:,} cells")

    filtered = adata[~fail].copy()
    filtered.uns[AnnDataKeys.QC] = {
        "config": config.model_dump(mode="json", exclude_none=True),
        "removed": removed,
        "n_cells_before": int(adata.n_obs),
        "n_cells_after": n_keep,
    }
    return filtered


def filter_genes(adata: AnnData, *, min_cells: int = 3, verbose: bool = True) -> AnnData:
    """Remove genes detected in fewer than ``min_cells`` cells.

    Returns
    -------
    AnnData
        Filtered copy.
    """
    keep, _ = sc.pp.filter_genes(adata, min_cells=min_cells, inplace=False)
    if not keep.any():
        raise ValueError(f"No gene is detected in at least {min_cells} cells")
    if verbose:
        print(f"[STATS] Gene QC: keeping {int(keep.sum()):,} / {adata.n_vars:,} genes (min_cells={min_cells})")
    return adata[:, keep].copy()


def detect_doublets(
    adata: AnnData,
    *,
    batch_key: str | None = None,
    expected_doublet_rate: float = 0.06,
    threshold: float | None = None,
    remove: bool = False,
    random_state: int = 0,
    verbose: bool = True,
) -> AnnData:
    """Score doublets with Scrublet (``scanpy.pp.scrublet``).

    Parameters
    ----------
    adata : AnnData
        Raw count matrix (before normalization).
    batch_key : str, optional
        Run Scrublet separately per batch.
    expected_doublet_rate : float, default: 0.06
        Expected fraction of doublets (depends on loading density).
    threshold : float, optional
        Doublet score cutoff. If None, Scrublet picks one automatically
        (requires scikit-image).
    remove : bool, default: False
        Return only cells not called doublets.
    random_state : int, default: 0
        Seed for simulated doublets.

    Returns
    -------
    AnnData
        ``adata`` itself with ``obs['doublet_score']`` and ``obs['predicted_doublet']``,
        or a filtered copy when ``remove=True``.
    """
    if batch_key is not None:
        require_obs(adata, batch_key)

    sc.pp.scrublet(
        adata,
        batch_key=batch_key,
        expected_doublet_rate=expected_doublet_rate,
        threshold=threshold,
        random_state=random_state,
        verbose=False,
    )
    doublets = adata.obs[AnnDataKeys.PREDICTED_DOUBLET].astype(bool).to_numpy()

    if verbose:
        print(f"[STATS] Doublets: {int(doublets.sum()):,} / {adata.n_obs:,} cells predicted")

    if remove:
        return adata[~doublets].copy()
    return adata
