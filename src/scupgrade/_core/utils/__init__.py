# making helpers visible
from .atacseq import compute_lsi, depth_correlation, parse_peak_names, tfidf_normalize
from .statistical_tests import apply_fdr_correction, hypergeometric_enrichment
from .validation import is_log_transformed, looks_like_counts, require_layer, require_obs, require_obsm

__all__ = [
    # ATAC
    "tfidf_normalize",
    "compute_lsi",
    "depth_correlation",
    "parse_peak_names",
    # Statistics
    "apply_fdr_correction",
    "hypergeometric_enrichment",
    # Validation
    "require_obs",
    "require_obsm",
    "require_layer",
    "is_log_transformed",
    "looks_like_counts",
]
