"""Plotting functions for QC, embeddings and analysis results."""

# Interactive heatmap uses plotly
from .communication import communication_heatmap, interaction_dotplot
from .embedding import embedding, lsi_depth, pca_variance
from .qc import qc_scatter, qc_violin
from .results import marker_dotplot, motif_barplot

__all__ = [
    "qc_violin",
    "qc_scatter",
    "embedding",
    "pca_variance",
    "lsi_depth",
    "marker_dotplot",
    "motif_barplot",
    # Communication
    "communication_heatmap",
    "interaction_dotplot",
]
