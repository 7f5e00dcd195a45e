"""
Statistical Testing Helpers
Multiple-testing correction and over-representation tests shared by the tools.

=== MODULE API INVENTORY ===

MAIN FUNCTIONS:
 apply_fdr_correction(results_df, pvalue_column='pvalue', method='benjamini_hochberg', alpha=0.05) -> pd.DataFrame
    Purpose: Add 'fdr_pvalue' and 'significant' columns to a results table
    Side Effects: Invalid p-values (NaN, <0, >1) are treated as 1.0

 hypergeometric_enrichment(hits, foreground, background=None, feature_names=None, min_hits=1) -> pd.DataFrame
    Purpose: Over-representation of boolean features (e.g. motifs) in a foreground set of rows (e.g. peaks)
    Outputs: DataFrame with feature, observed, expected, fold_enrichment, pvalue (FDR not applied)

EXTERNAL DEPENDENCIES:
 From scipy.stats: hypergeom (upper tail), false_discovery_control (BH)
 From scipy.sparse: sparse hit matrices are column-summed without densifying
"""

import numpy as np
import pandas as pd
import scipy.sparse as sp
from scipy.stats import false_discovery_control, hypergeom

from ..types import FDRMethod


def apply_fdr_correction(
    results_df: pd.DataFrame,
    pvalue_column: str = "pvalue",
    method: str | FDRMethod = FDRMethod.BENJAMINI_HOCHBERG,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """
    Apply false discovery rate correction to p-values.

    Args:
        results_df: DataFrame containing p-values
        pvalue_column: Name of column containing raw p-values
        method: FDR correction method ('benjamini_hochberg', 'bonferroni')
        alpha: Significance threshold

    Returns
    -------
        Copy of results_df with added 'fdr_pvalue' and 'significant' columns
    """
    if pvalue_column not in results_df.columns:
        raise ValueError(f"Column '{pvalue_column}' not found in results DataFrame")
    try:
        method = FDRMethod(method.lower() if isinstance(method, str) else method)
    except ValueError:
        raise ValueError(f"Unknown FDR method: {method}. Available: {[m.value for m in FDRMethod]}") from None

    results_df = results_df.copy()
    if len(results_df) == 0:
        results_df["fdr_pvalue"] = pd.Series(dtype=float)
        results_df["significant"] = pd.Series(dtype=bool)
        return results_df

    pvalues = results_df[pvalue_column].to_numpy(dtype=np.float64, copy=True)
    invalid = (pvalues < 0) | (pvalues > 1) | np.isnan(pvalues)
    pvalues[invalid] = 1.0

    if method is FDRMethod.BENJAMINI_HOCHBERG:
        corrected = false_discovery_control(pvalues, method="bh")
    else:
        corrected = np.minimum(pvalues * len(pvalues), 1.0)

    results_df["fdr_pvalue"] = corrected
    results_df["significant"] = corrected < alpha
    return results_df


def hypergeometric_enrichment(
    hits,
    foreground: np.ndarray,
    background: np.ndarray | None = None,
    feature_names=None,
    min_hits: int = 1,
) -> pd.DataFrame:
    """
    Test each column of a boolean hit matrix for over-representation in a foreground row set.

    P(X >= observed) where X ~ Hypergeom(N = background rows,
    K = background rows with the feature, n = foreground rows).

    Args:
        hits: [n_rows, n_features] boolean/0-1 matrix (dense or sparse)
        foreground: boolean mask or integer indices of foreground rows
        background: boolean mask or integer indices of background rows (default: all rows);
            foreground rows are always added to the background
        feature_names: names for the columns of ``hits``
        min_hits: features seen in fewer background rows are skipped

    Returns
    -------
        pd.DataFrame sorted by p-value with columns feature, observed, expected,
        n_foreground, n_background_hits, fold_enrichment, pvalue
    """
    n_rows, n_features = hits.shape
    fg_mask = _as_mask(foreground, n_rows)
    bg_mask = np.ones(n_rows, dtype=bool) if background is None else _as_mask(background, n_rows)
    bg_mask |= fg_mask

    n_fg = int(fg_mask.sum())
    n_bg = int(bg_mask.sum())
    if n_fg == 0:
        raise ValueError("Foreground set is empty")

    if feature_names is None:
        feature_names = [f"feature_{i}" for i in range(n_features)]

    observed = _column_hits(hits, fg_mask)
    bg_hits = _column_hits(hits, bg_mask)

    expected = bg_hits * n_fg / n_bg
    with np.errstate(divide="ignore", invalid="ignore"):
        fold = np.where(expected > 0, observed / expected, np.nan)
    pvalues = hypergeom.sf(observed - 1, n_bg, bg_hits, n_fg)

    df = pd.DataFrame(
        {
            "feature": np.asarray(feature_names),
            "observed": observed.astype(int),
            "expected": expected,
            "n_foreground": n_fg,
            "n_background_hits": bg_hits.astype(int),
            "fold_enrichment": fold,
            "pvalue": np.clip(pvalues, 0.0, 1.0),
        }
    )
    df = df[df["n_background_hits"] >= min_hits]
    return df.sort_values(["pvalue", "fold_enrichment"], ascending=[True, False]).reset_index(drop=True)


def _as_mask(rows, n_rows: int) -> np.ndarray:
    rows = np.asarray(rows)
    if rows.dtype == bool:
        if rows.shape != (n_rows,):
            raise ValueError(f"Boolean mask has shape {rows.shape}, expected ({n_rows},)")
        return rows.copy()
    mask = np.zeros(n_rows, dtype=bool)
    mask[rows.astype(int)] = True
    return mask


def _column_hits(hits, mask: np.ndarray) -> np.ndarray:
    subset = hits[mask]
    if sp.issparse(subset):
        return np.asarray((subset != 0).sum(axis=0)).ravel().astype(np.float64)
    return (np.asarray(subset) != 0).sum(axis=0).astype(np.float64)
