"""
Cell-cell communication visualization.

Main Functions:
- communication_heatmap(): Interactive heatmap of interaction counts between groups (plotly)
- interaction_dotplot(): Top ligand-receptor pairs per sender/receiver pair (matplotlib)
"""

from typing import Any

import matplotlib.pyplot as plt
import numpy as np
import plotly.graph_objects as go
from anndata import AnnData

from .._core.types import AnnDataKeys, validate_results
from ..tl.communication import _lower_is_better, communication_summary, top_interactions
from ._utils import empty_figure, save_figure


def communication_heatmap(
    adata: AnnData,
    *,
    key: str = AnnDataKeys.LIANA_RES,
    score: str = "magnitude_rank",
    cutoff: float = 0.05,
    title: str = "Ligand-receptor interactions",
    colorscale: str = "Reds",
    display: bool = True,
    save_path: str | None = None,
    **kwargs: Any,
) -> go.Figure:
    """Heatmap of the number of passing interactions for each sender → receiver pair.

    Parameters
    ----------
    adata : AnnData
        Data with liana results in ``adata.uns[key]``.
    key, score, cutoff
        Passed to ``su.tl.communication_summary``.
    title : str
        Plot title.
    colorscale : str, default: "Reds"
        Plotly colorscale.
    display : bool, default: True
        Call ``fig.show()``.
    save_path : str, optional
        Path to save the figure as HTML.

    Returns
    -------
    plotly.graph_objects.Figure
    """
    counts = communication_summary(adata, key=key, score=score, cutoff=cutoff, **kwargs)

    fig = go.Figure(
        data=go.Heatmap(
            z=counts.to_numpy(),
            x=list(counts.columns),
            y=list(counts.index),
            colorscale=colorscale,
            text=counts.to_numpy(),
            texttemplate="%{text}",
            colorbar=dict(title="interactions"),
        )
    )
    fig.update_layout(
        title=title,
        xaxis_title="Receiver (target)",
        yaxis_title="Sender (source)",
        yaxis=dict(autorange="reversed"),
        width=650,
        height=550,
        plot_bgcolor="white",
    )

    save_figure(fig, save_path)
    if display:
        fig.show()
    return fig


def interaction_dotplot(
    adata: AnnData,
    *,
    key: str = AnnDataKeys.LIANA_RES,
    color_col: str = "magnitude_rank",
    size_col: str = "specificity_rank",
    n: int = 20,
    source_labels: list[str] | None = None,
    target_labels: list[str] | None = None,
    cmap: str = "viridis_r",
    figsize: tuple[float, float] | None = None,
    save_path: str | None = None,
) -> plt.Figure:
    """Dotplot of the top ligand-receptor pairs.

    X-axis is the sender → receiver pair, y-axis the ligand → receptor pair.
    Rank and p-value columns are shown as -log10 so larger dots and brighter
    colors mean stronger evidence.

    Returns
    -------
    matplotlib.figure.Figure
    """
    results = adata.uns.get(key)
    if results is None:
        raise ValueError(f"No communication results at adata.uns['{key}']. Run su.tl.infer_communication(adata) first.")
    validate_results(results, "communication")
    for col in (color_col, size_col):
        if col not in results.columns:
            raise ValueError(f"Column '{col}' not in results. Available: {list(results.columns)}")

    top = top_interactions(
        adata, key=key, score=color_col, n=n, source_labels=source_labels, target_labels=target_labels
    )
    if top.empty:
        return empty_figure("No interactions for the selected groups")

    directions = adata.uns.get(f"{key}_scores")

    def transform(col):
        values = top[col].to_numpy(dtype=np.float64)
        if _lower_is_better(col, directions):
            return -np.log10(np.clip(values, 1e-300, 1.0))
        return values

    pairs = (top["source"].astype(str) + " → " + top["target"].astype(str)).to_numpy()
    lr = (top["ligand_complex"].astype(str) + " → " + top["receptor_complex"].astype(str)).to_numpy()
    pair_order = list(dict.fromkeys(pairs))
    lr_order = list(dict.fromkeys(lr))

    size_values = transform(size_col)
    span = size_values.max() - size_values.min()
    sizes = 30 + 170 * ((size_values - size_values.min()) / span if span > 0 else np.ones_like(size_values))

    fig, ax = plt.subplots(figsize=figsize or (2 + 0.6 * len(pair_order), 1.5 + 0.3 * len(lr_order)))
    points = ax.scatter(
        [pair_order.index(p) for p in pairs],
        [lr_order.index(p) for p in lr],
        s=sizes,
        c=transform(color_col),
        cmap=cmap,
        edgecolors="black",
    )
    color_label = f"-log10({color_col})" if _lower_is_better(color_col, directions) else color_col
    fig.colorbar(points, ax=ax, label=color_label, shrink=0.6)
    ax.set_xticks(range(len(pair_order)), pair_order, rotation=45, ha="right")
    ax.set_yticks(range(len(lr_order)), lr_order)
    ax.invert_yaxis()
    ax.set_title(f"Top {len(top)} interactions (size: {size_col})")
    ax.grid(alpha=0.3)

    fig.tight_layout()
    save_figure(fig, save_path)
    return fig
