"""Shared figure helpers."""

import warnings

import matplotlib.pyplot as plt


def save_figure(fig, save_path: str | None, dpi: int = 300) -> None:
    """Save a matplotlib or plotly figure; plotly figures are written as HTML."""
    if not save_path:
        return
    try:
        if hasattr(fig, "write_html"):
            fig.write_html(save_path)
        else:
            fig.savefig(save_path, dpi=dpi, bbox_inches="tight")
        print(f"  Saved to {save_path}")
    except OSError as e:
        warnings.warn(f"Failed to save figure: {e}")


def empty_figure(message: str, figsize: tuple[float, float] = (6, 4)) -> plt.Figure:
    """Placeholder figure carrying a message."""
    fig, ax = plt.subplots(figsize=figsize)
    ax.text(0.5, 0.5, message, ha="center", va="center", fontsize=14)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1)
    ax.axis("off")
    return fig
