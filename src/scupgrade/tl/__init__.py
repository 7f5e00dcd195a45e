"""Tools: clustering, integration, annotation, cell-cell communication and accessibility."""

from .accessibility import differential_peaks, motif_enrichment
from .annotation import annotate_clusters, score_cell_types
from .clustering import cluster, find_markers, top_markers

# Ligand-receptor inference (requires liana)
from .communication import communication_summary, infer_communication, top_interactions
from .integration import integrate
from .workflows import atac_workflow, rna_workflow

__all__ = [
    "cluster",
    "find_markers",
    "top_markers",
    "integrate",
    "score_cell_types",
    "annotate_clusters",
    "infer_communication",
    "communication_summary",
    "top_interactions",
    "differential_peaks",
    "motif_enrichment",
    "rna_workflow",
    "atac_workflow",
]
