"""
Embedding and dimensionality-reduction plots.

Main Functions:
- embedding(): Cells in UMAP/PCA/LSI space colored by an obs column or gene
- pca_variance(): Elbow plot of PCA variance ratios
- lsi_depth(): Correlation of LSI components with sequencing depth
"""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from anndata import AnnData

from .._core.types import AnnDataKeys
from .._core.utils.validation import require_obsm
from ._utils import save_figure


def _color_values(adata: AnnData, color: str) -> pd.Series:
    if color in adata.obs.columns:
        return adata.obs[color]
    if color in adata.var_names:
        values = adata[:, color].X
        return pd.Series(np.asarray(values.todense() if hasattr(values, "todense") else values).ravel())
    if adata.raw is not None and color in adata.raw.var_names:
        values = adata.raw[:, color].X
        return pd.Series(np.asarray(values.todense() if hasattr(values, "todense") else values).ravel())
    raise ValueError(f"'{color}' not found in adata.obs columns or adata.var_names")


def embedding(
    adata: AnnData,
    basis: str = "umap",
    *,
    color: str | list[str] | None = None,
    components: tuple[int, int] = (0, 1),
    point_size: float | None = None,
    cmap: str = "viridis",
    legend_loc: str = "right",
    ncols: int = 3,
    figsize: tuple[float, float] = (5, 4.5),
    save_path: str | None = None,
) -> plt.Figure:
    """Scatter cells in an embedding, one panel per color key.

    Parameters
    ----------
    adata : AnnData
        Data with ``adata.obsm['X_<basis>']`` (or ``adata.obsm[basis]``).
    basis : str, default: "umap"
        Embedding name, e.g. 'umap', 'pca', 'lsi', 'pca_harmony'.
    color : str or list of str, optional
        ``adata.obs`` columns or gene names. Categorical columns get a legend,
        numeric values a colorbar.
    components : tuple[int, int], default: (0, 1)
        Embedding dimensions to plot.
    point_size : float, optional
        Marker size; defaults to a value scaled by the number of cells.
    legend_loc : str, default: "right"
        'right' for a legend beside the panel, 'on data' to label group centroids.
    ncols : int, default: 3
        Panels per row.

    Returns
    -------
    matplotlib.figure.Figure
    """
    key = basis if basis in adata.obsm else f"X_{basis}"
    require_obsm(adata, key, hint="Run su.tl.cluster(adata) for a UMAP.")
    coords = np.asarray(adata.obsm[key])
    if max(components) >= coords.shape[1]:
        raise ValueError(f"components {components} out of range for '{key}' with {coords.shape[1]} dimensions")
    xy = coords[:, list(components)]

    colors = [None] if color is None else ([color] if isinstance(color, str) else list(color))
    values = {c: _color_values(adata, c) for c in colors if c is not None}
    size = point_size or max(0.5, 120000 / max(adata.n_obs, 1) / 100)

    ncols = min(ncols, len(colors))
    nrows = int(np.ceil(len(colors) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(figsize[0] * ncols, figsize[1] * nrows), squeeze=False)

    label = basis.upper().removeprefix("X_")
    for ax, c in zip(axes.flat, colors):
        if c is None:
            ax.scatter(xy[:, 0], xy[:, 1], s=size, color="grey", linewidths=0)
        elif isinstance(values[c].dtype, pd.CategoricalDtype) or not pd.api.types.is_numeric_dtype(values[c]):
            _categorical_scatter(ax, xy, values[c], size, legend_loc)
        else:
            points = ax.scatter(xy[:, 0], xy[:, 1], c=values[c].to_numpy(dtype=np.float64), s=size, cmap=cmap)
            fig.colorbar(points, ax=ax, shrink=0.7)
        ax.set_title(c or label)
        ax.set_xlabel(f"{label}{components[0] + 1}")
        ax.set_ylabel(f"{label}{components[1] + 1}")
        ax.set_xticks([])
        ax.set_yticks([])
    for ax in list(axes.flat)[len(colors) :]:
        ax.axis("off")

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig


def _categorical_scatter(ax, xy: np.ndarray, values: pd.Series, size: float, legend_loc: str) -> None:
    labels = values.astype("category")
    categories = list(labels.cat.categories)
    cmap = plt.get_cmap("tab20" if len(categories) > 10 else "tab10")
    codes = labels.cat.codes.to_numpy()
    for i, category in enumerate(categories):
        mask = codes == i
        ax.scatter(xy[mask, 0], xy[mask, 1], s=size, color=cmap(i % cmap.N), label=str(category), linewidths=0)
        if legend_loc == "on data" and mask.any():
            cx, cy = np.median(xy[mask], axis=0)
            ax.text(cx, cy, str(category), ha="center", va="center", fontsize=9, weight="bold")
    if legend_loc == "right":
        ax.legend(loc="center left", bbox_to_anchor=(1, 0.5), frameon=False, markerscale=max(1, 6 / size**0.5))


def pca_variance(
    adata: AnnData,
    *,
    n_pcs: int | None = None,
    log: bool = False,
    figsize: tuple[float, float] = (6, 4),
    save_path: str | None = None,
) -> plt.Figure:
    """Elbow plot of PCA explained variance ratio.

    Returns
    -------
    matplotlib.figure.Figure
    """
    if "pca" not in adata.uns or "variance_ratio" not in adata.uns["pca"]:
        raise ValueError("No PCA results in adata.uns['pca']. Run su.pp.reduce_dimensions(adata) first.")
    ratio = np.asarray(adata.uns["pca"]["variance_ratio"])[:n_pcs]

    fig, ax = plt.subplots(figsize=figsize)
    ax.plot(np.arange(1, len(ratio) + 1), ratio, "o-", markersize=4)
    if log:
        ax.set_yscale("log")
    ax.set_xlabel("Principal component")
    ax.set_ylabel("Variance ratio")
    ax.set_title("PCA variance")

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig


def lsi_depth(
    adata: AnnData,
    *,
    figsize: tuple[float, float] = (6, 4),
    save_path: str | None = None,
) -> plt.Figure:
    """Correlation of each LSI component with sequencing depth.

    Components with |r| close to 1 mostly capture depth and are usually
    left out of the neighbor graph.

    Returns
    -------
    matplotlib.figure.Figure
    """
    if AnnDataKeys.LSI not in adata.uns:
        raise ValueError("No LSI results in adata.uns['lsi']. Run su.pp.prepare_atacseq(adata) first.")
    lsi = adata.uns[AnnDataKeys.LSI]
    corr = np.asarray(lsi["depth_correlation"])
    offset = 2 if lsi["params"]["drop_first"] else 1
    components = np.arange(offset, offset + len(corr))

    fig, ax = plt.subplots(figsize=figsize)
    ax.bar(components, corr, color=np.where(np.abs(corr) > 0.5, "tab:red", "tab:blue"))
    if "first_component_depth_correlation" in lsi:
        ax.bar([1], [lsi["first_component_depth_correlation"]], color="lightgrey", label="dropped")
        ax.legend(frameon=False)
    ax.axhline(0, color="black", linewidth=0.8)
    ax.set_ylim(-1, 1)
    ax.set_xlabel("LSI component")
    ax.set_ylabel("Correlation with log depth")
    ax.set_title("LSI depth correlation")

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig
