"""
Results visualization functions.

Main Functions:
- marker_dotplot(): Top marker genes per group from su.tl.find_markers()
- motif_barplot(): Most enriched motifs from su.tl.motif_enrichment()
"""

import warnings

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .._core.types import validate_results
from ._utils import empty_figure, save_figure


def _neg_log10(pvalues, max_log_p: float = 300.0) -> np.ndarray:
    p = np.clip(np.asarray(pvalues, dtype=np.float64), 10**-max_log_p, 1.0)
    return -np.log10(p)


def marker_dotplot(
    markers: pd.DataFrame,
    *,
    n_genes: int = 5,
    significant_only: bool = True,
    color_palette: str = "plasma",
    title: str = "Marker genes",
    figsize: tuple[float, float] | None = None,
    save_path: str | None = None,
) -> plt.Figure:
    """Dotplot of the top marker genes per group.

    Parameters
    ----------
    markers : pd.DataFrame
        Output of ``su.tl.find_markers``.
    n_genes : int, default: 5
        Genes shown per group.
    significant_only : bool, default: True
        Only show markers with ``significant == True``.
    color_palette : str, default: "plasma"
        Matplotlib colormap for -log10(FDR).

    Returns
    -------
    matplotlib.figure.Figure
        - X-axis: groups
        - Y-axis: genes, in group order
        - Dot size: log fold change (clipped at 0)
        - Dot color: -log10(FDR)
    """
    validate_results(markers, "markers")

    df = markers[markers["score"] > 0]
    if significant_only and "significant" in df.columns:
        df = df[df["significant"]]
    if df.empty:
        warnings.warn("No markers to plot after filtering")
        return empty_figure("No significant markers")

    top = df.sort_values(["group", "score"], ascending=[True, False]).groupby("group", sort=True).head(n_genes)
    groups = list(dict.fromkeys(top["group"]))
    genes = list(dict.fromkeys(top["gene"]))

    x = top["group"].map({g: i for i, g in enumerate(groups)}).to_numpy()
    y = top["gene"].map({g: i for i, g in enumerate(genes)}).to_numpy()
    lfc = np.nan_to_num(top["log_fold_change"].to_numpy(dtype=np.float64), nan=0.0).clip(min=0)
    sizes = 20 + 200 * lfc / (lfc.max() if lfc.max() > 0 else 1)

    fig, ax = plt.subplots(figsize=figsize or (1.0 + 0.6 * len(groups), 1.5 + 0.25 * len(genes)))
    points = ax.scatter(x, y, s=sizes, c=_neg_log10(top["fdr_pvalue"]), cmap=color_palette, edgecolors="black")
    fig.colorbar(points, ax=ax, label="-log10(FDR)", shrink=0.6)

    ax.set_xticks(range(len(groups)), groups, rotation=45, ha="right")
    ax.set_yticks(range(len(genes)), genes)
    ax.invert_yaxis()
    ax.set_xlim(-0.5, len(groups) - 0.5)
    ax.set_title(title)
    ax.grid(alpha=0.3)

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig


def motif_barplot(
    results: pd.DataFrame,
    *,
    n: int = 20,
    significant_only: bool = False,
    figsize: tuple[float, float] | None = None,
    save_path: str | None = None,
) -> plt.Figure:
    """Horizontal bars of fold enrichment for the most significant motifs.

    Bars are colored by -log10(FDR).

    Returns
    -------
    matplotlib.figure.Figure
    """
    validate_results(results, "motifs")

    df = results[results["significant"]] if significant_only else results
    if df.empty:
        warnings.warn("No motifs to plot after filtering")
        return empty_figure("No enriched motifs")
    df = df.sort_values(["pvalue", "fold_enrichment"], ascending=[True, False]).head(n).iloc[::-1]

    neg_log_fdr = _neg_log10(df["fdr_pvalue"])
    norm = plt.Normalize(vmin=0, vmax=max(neg_log_fdr.max(), 1e-12))
    cmap = plt.get_cmap("viridis")

    fig, ax = plt.subplots(figsize=figsize or (6, 1 + 0.3 * len(df)))
    ax.barh(df["motif"].astype(str), df["fold_enrichment"].fillna(0), color=cmap(norm(neg_log_fdr)))
    ax.axvline(1, color="black", linestyle="--", linewidth=0.8)
    fig.colorbar(plt.cm.ScalarMappable(norm=norm, cmap=cmap), ax=ax, label="-log10(FDR)")
    ax.set_xlabel("Fold enrichment")
    ax.set_title("Motif enrichment")

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig
