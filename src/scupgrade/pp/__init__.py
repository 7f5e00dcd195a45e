"""Preprocessing: object construction, quality control, normalization and ATAC processing."""

from .atac import filter_peaks, peak_qc, prepare_atacseq, tfidf
from .basic import load_samples, read
from .normalize import highly_variable, normalize, reduce_dimensions
from .qc import detect_doublets, filter_cells, filter_genes, mad_outliers, qc_metrics

__all__ = [
    "read",
    "load_samples",
    "qc_metrics",
    "mad_outliers",
    "filter_cells",
    "filter_genes",
    "detect_doublets",
    "normalize",
    "highly_variable",
    "reduce_dimensions",
    "peak_qc",
    "filter_peaks",
    "tfidf",
    "prepare_atacseq",
]
