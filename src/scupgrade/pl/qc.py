"""Quality-control plots: metric distributions and metric-vs-metric scatter."""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from anndata import AnnData

from .._core.types import AnnDataKeys
from .._core.utils.validation import require_obs
from ._utils import save_figure

DEFAULT_QC_KEYS = (AnnDataKeys.N_GENES, AnnDataKeys.TOTAL_COUNTS, AnnDataKeys.PCT_MT)


def qc_violin(
    adata: AnnData,
    keys: list[str] | tuple[str, ...] = DEFAULT_QC_KEYS,
    *,
    groupby: str | None = None,
    thresholds: dict[str, float] | None = None,
    figsize: tuple[float, float] | None = None,
    save_path: str | None = None,
) -> plt.Figure:
    """Violin plot of QC metrics, one panel per metric.

    Parameters
    ----------
    adata : AnnData
        Data with QC metrics in ``adata.obs`` (run ``su.pp.qc_metrics`` first).
    keys : list of str
        ``adata.obs`` columns to plot.
    groupby : str, optional
        Split each violin by this ``adata.obs`` column (e.g. 'batch').
    thresholds : dict[str, float], optional
        Metric → cutoff, drawn as a dashed line.
    figsize : tuple, optional
        Defaults to 4 inches per panel.
    save_path : str, optional
        Path to save the figure.

    Returns
    -------
    matplotlib.figure.Figure
    """
    keys = list(keys)
    for key in keys:
        require_obs(adata, key, hint="Run su.pp.qc_metrics(adata) first.")
    if groupby is not None:
        require_obs(adata, groupby)

    fig, axes = plt.subplots(1, len(keys), figsize=figsize or (4 * len(keys), 4), squeeze=False)
    for ax, key in zip(axes[0], keys, strict=True):
        data = pd.DataFrame({key: adata.obs[key].to_numpy()})
        if groupby is not None:
            data[groupby] = adata.obs[groupby].astype(str).to_numpy()
            sns.violinplot(data=data, x=groupby, y=key, ax=ax, inner=None, cut=0)
            ax.tick_params(axis="x", rotation=45)
        else:
            sns.violinplot(data=data, y=key, ax=ax, inner=None, cut=0)
        sns.stripplot(data=data, x=groupby, y=key, ax=ax, size=1, color="black", alpha=0.3, jitter=0.3)
        if thresholds and key in thresholds:
            ax.axhline(thresholds[key], color="red", linestyle="--", linewidth=1)
        ax.set_title(key)
        ax.set_ylabel("")

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig


def qc_scatter(
    adata: AnnData,
    x: str = AnnDataKeys.TOTAL_COUNTS,
    y: str = AnnDataKeys.N_GENES,
    *,
    color: str | None = AnnDataKeys.PCT_MT,
    log: bool = False,
    figsize: tuple[float, float] = (6, 5),
    save_path: str | None = None,
) -> plt.Figure:
    """Scatter two QC metrics against each other, colored by a third.

    Returns
    -------
    matplotlib.figure.Figure
    """
    require_obs(adata, x)
    require_obs(adata, y)
    if color is not None:
        require_obs(adata, color)

    fig, ax = plt.subplots(figsize=figsize)
    c = adata.obs[color].to_numpy(dtype=np.float64) if color is not None else None
    points = ax.scatter(adata.obs[x], adata.obs[y], c=c, s=3, cmap="viridis", alpha=0.7)
    if color is not None:
        fig.colorbar(points, ax=ax, label=color)
    if log:
        ax.set_xscale("log")
        ax.set_yscale("log")
    ax.set_xlabel(x)
    ax.set_ylabel(y)

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig
