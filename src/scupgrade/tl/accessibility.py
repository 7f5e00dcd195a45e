"""
Differential accessibility and motif enrichment for scATAC-seq.

Main Functions:
- differential_peaks(): Peaks ranked per group (scanpy rank_genes_groups on TF-IDF)
- motif_enrichment(): Hypergeometric motif over-representation in a peak set

Motif scanning is not done here: motif occurrences per peak are an input,
either as a peaks × motifs DataFrame or in ``adata.varm['motif_matches']``.
"""

import numpy as np
import pandas as pd
import scipy.sparse as sp
from anndata import AnnData

from .._core.types import AnnDataKeys
from .._core.utils.statistical_tests import apply_fdr_correction, hypergeometric_enrichment
from .clustering import find_markers


def differential_peaks(
    adata: AnnData,
    groupby: str,
    *,
    groups: list[str] | None = None,
    method: str = "t-test",
    layer: str | None = AnnDataKeys.TFIDF,
    n_peaks: int | None = None,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """Rank differentially accessible peaks for each group.

    Parameters
    ----------
    adata : AnnData
        Peak data, normally after ``su.pp.prepare_atacseq`` (which fills ``layers['tfidf']``).
    groupby : str
        Column in ``adata.obs`` with group labels.
    groups : list of str, optional
        Groups to test against all other cells (default: every group).
    method : str, default: "t-test"
        Test passed to ``scanpy.tl.rank_genes_groups``.
    layer : str or None, default: "tfidf"
        Matrix to test; None uses ``adata.X``.
    n_peaks : int, optional
        Peaks reported per group (default: all).

    Returns
    -------
    pd.DataFrame
        Columns: group, peak, score, log_fold_change, pvalue, fdr_pvalue, significant.
    """
    df = find_markers(
        adata,
        groupby,
        groups=groups,
        method=method,
        n_genes=n_peaks,
        layer=layer,
        use_raw=False,
        alpha=alpha,
        key_added="rank_peaks_groups",
    )
    return df.rename(columns={"gene": "peak"})


def _motif_hits(adata: AnnData, motifs: pd.DataFrame | None, varm_key: str):
    if motifs is not None:
        unknown = motifs.index.difference(adata.var_names)
        if len(unknown) == len(motifs.index) and len(motifs.index) > 0:
            raise ValueError("None of the motif table's peaks (index) match adata.var_names")
        table = motifs.reindex(adata.var_names, fill_value=0)
        return sp.csr_matrix(table.to_numpy(dtype=bool)), list(table.columns)

    if varm_key not in adata.varm:
        raise ValueError(
            f"No motif matches at adata.varm['{varm_key}']. Available: {list(adata.varm.keys())}. "
            "Pass a peaks x motifs DataFrame as motifs=..."
        )
    hits = adata.varm[varm_key]
    if isinstance(hits, pd.DataFrame):
        return sp.csr_matrix(hits.to_numpy(dtype=bool)), list(hits.columns)
    names = adata.uns.get("motif_names")
    if names is None:
        names = [f"motif_{i}" for i in range(hits.shape[1])]
    elif len(names) != hits.shape[1]:
        raise ValueError(f"adata.uns['motif_names'] has {len(names)} names for {hits.shape[1]} motifs")
    if not sp.issparse(hits):
        hits = sp.csr_matrix(np.asarray(hits) != 0)
    return hits.tocsr(), list(names)


def _peak_mask(adata: AnnData, peaks, label: str) -> np.ndarray:
    if isinstance(peaks, pd.DataFrame):
        if "peak" not in peaks.columns:
            raise ValueError(f"{label} DataFrame needs a 'peak' column")
        peaks = peaks["peak"]
    peaks = np.asarray(peaks)
    if peaks.dtype == bool:
        if peaks.shape != (adata.n_vars,):
            raise ValueError(f"{label} mask has shape {peaks.shape}, expected ({adata.n_vars},)")
        return peaks
    peaks = pd.Index(peaks.astype(str)).unique()
    unknown = peaks.difference(adata.var_names)
    if len(unknown):
        raise ValueError(f"{len(unknown)} {label} peaks not found in adata.var_names: {list(unknown[:5])}")
    return adata.var_names.isin(peaks)


def motif_enrichment(
    adata: AnnData,
    peaks,
    *,
    motifs: pd.DataFrame | None = None,
    varm_key: str = "motif_matches",
    background=None,
    min_hits: int = 1,
    fdr_method: str = "benjamini_hochberg",
    alpha: float = 0.05,
    verbose: bool = True,
) -> pd.DataFrame:
    """Test motifs for over-representation in a set of peaks.

    Parameters
    ----------
    adata : AnnData
        Peak data.
    peaks : list of str, boolean mask, or DataFrame with a 'peak' column
        Foreground peaks (e.g. significant rows of :func:`differential_peaks`).
    motifs : pd.DataFrame, optional
        Peaks × motifs boolean matrix indexed by peak name. Peaks absent from
        the table count as having no motif.
    varm_key : str, default: "motif_matches"
        Used when ``motifs`` is None: ``adata.varm[varm_key]`` holds the
        matches and ``adata.uns['motif_names']`` the motif names.
    background : same types as ``peaks``, optional
        Background peak set (default: all peaks). Foreground peaks are always included.
    min_hits : int, default: 1
        Skip motifs present in fewer background peaks.
    fdr_method : str, default: "benjamini_hochberg"
        Multiple testing correction.
    alpha : float, default: 0.05
        Significance threshold.

    Returns
    -------
    pd.DataFrame
        Columns: motif, observed, expected, n_foreground, n_background_hits,
        fold_enrichment, pvalue, fdr_pvalue, significant. Sorted by p-value.
    """
    hits, names = _motif_hits(adata, motifs, varm_key)
    foreground = _peak_mask(adata, peaks, "foreground")
    if not foreground.any():
        raise ValueError("Foreground peak set is empty")
    bg = None if background is None else _peak_mask(adata, background, "background")

    results = hypergeometric_enrichment(hits, foreground, background=bg, feature_names=names, min_hits=min_hits)
    results = results.rename(columns={"feature": "motif"})
    results = apply_fdr_correction(results, method=fdr_method, alpha=alpha)

    if verbose:
        n_sig = int(results["significant"].sum())
        print(f"[STATS] Motif enrichment: {int(foreground.sum()):,} foreground peaks, {len(results)} motifs tested")
        print(f"   Significant motifs: {n_sig}")
        for _, row in results[results["significant"]].head(5).iterrows():
            print(f"   {row['motif']}: {row['fold_enrichment']:.2f}x, FDR={row['fdr_pvalue']:.2e}")
    return results
