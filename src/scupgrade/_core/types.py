# src/scupgrade/_core/types.py
"""
Canonical configuration and result types for scupgrade.

THIS IS THE SINGLE SOURCE OF TRUTH FOR PARAMETERS AND ANNDATA KEYS.

Developer Notes:
    1. Every pp/tl function that takes a ``config`` also accepts keyword
       overrides, applied with ``config.updated(**overrides)``
    2. Invalid thresholds raise ``pydantic.ValidationError`` at construction
    3. Check ``AnnDataKeys`` before reading results out of an AnnData

Usage:
    from scupgrade._core.types import QCConfig, WorkflowConfig

    qc = QCConfig.from_preset("stringent")
    config = WorkflowConfig(qc=qc, batch_key="batch")
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# ENUMS
# =============================================================================


class QCPreset(str, Enum):
    """Named QC threshold presets used across the workshop sessions."""

    DEFAULT = "default"
    STRINGENT = "stringent"
    PERMISSIVE = "permissive"


class IntegrationMethod(str, Enum):
    """Batch integration backends."""

    HARMONY = "harmony"
    COMBAT = "combat"


class FDRMethod(str, Enum):
    """FDR correction methods."""

    BENJAMINI_HOCHBERG = "benjamini_hochberg"
    BONFERRONI = "bonferroni"


# =============================================================================
# RNA CONFIGURATION
# =============================================================================


class _Config(BaseModel):
    """Base for all configuration models: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    def updated(self, **overrides: Any):
        """Return a validated copy with ``overrides`` applied.

        Only keywords actually passed are applied, so ``max_genes=None`` turns a
        threshold off.
        """
        update = dict(overrides)
        unknown = set(update) - set(type(self).model_fields)
        if unknown:
            raise ValueError(
                f"Unknown {type(self).__name__} parameters: {sorted(unknown)}. "
                f"Available: {sorted(type(self).model_fields)}"
            )
        # model_copy skips validation, so round-trip through model_validate
        return type(self).model_validate({**self.model_dump(), **update})


def _check_range(low: float | None, high: float | None, name: str) -> None:
    if low is not None and high is not None and high < low:
        raise ValueError(f"max_{name} ({high}) must be >= min_{name} ({low})")


class QCConfig(_Config):
    """Cell and gene quality-control thresholds.

    ``None`` disables a threshold. ``nmads`` adds median-absolute-deviation
    outlier removal on log counts and log genes on top of the fixed cutoffs.

    Example:
        >>> QCConfig.from_preset("permissive").max_pct_mt
        25.0
    """

    min_genes: int | None = Field(200, ge=0, description="Minimum genes detected per cell")
    max_genes: int | None = Field(None, ge=0, description="Maximum genes detected per cell")
    min_counts: int | None = Field(None, ge=0, description="Minimum total counts per cell")
    max_counts: int | None = Field(None, ge=0, description="Maximum total counts per cell")
    max_pct_mt: float | None = Field(20.0, ge=0, le=100, description="Maximum % mitochondrial counts")
    max_pct_ribo: float | None = Field(None, ge=0, le=100, description="Maximum % ribosomal counts")
    nmads: float | None = Field(None, gt=0, description="MAD outlier cutoff on log counts/genes")
    min_cells: int = Field(3, ge=0, description="Minimum cells expressing a gene")
    mt_prefix: str = "MT-"
    ribo_prefixes: tuple[str, ...] = ("RPS", "RPL")
    hb_pattern: str = r"^HB[^(P)]"

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> QCConfig:
        _check_range(self.min_genes, self.max_genes, "genes")
        _check_range(self.min_counts, self.max_counts, "counts")
        return self

    @classmethod
    def from_preset(cls, preset: str | QCPreset = QCPreset.DEFAULT, **overrides: Any) -> QCConfig:
        """Build a config from a named preset, then apply ``overrides``."""
        try:
            preset = QCPreset(preset)
        except ValueError:
            raise ValueError(f"Unknown QC preset '{preset}'. Available: {[p.value for p in QCPreset]}") from None
        return cls(**{**QC_PRESETS[preset], **overrides})


QC_PRESETS: dict[QCPreset, dict[str, Any]] = {
    QCPreset.DEFAULT: {
        "min_genes": 200,
        "max_genes": 6000,
        "min_counts": 500,
        "max_counts": 50000,
        "max_pct_mt": 15.0,
    },
    QCPreset.STRINGENT: {
        "min_genes": 500,
        "max_genes": 5000,
        "min_counts": 1000,
        "max_counts": 40000,
        "max_pct_mt": 5.0,
        "nmads": 3.0,
    },
    QCPreset.PERMISSIVE: {
        "min_genes": 100,
        "max_genes": None,
        "min_counts": None,
        "max_counts": None,
        "max_pct_mt": 25.0,
    },
}


class NormalizationConfig(_Config):
    """Library-size normalization, feature selection and PCA."""

    target_sum: float | None = Field(1e4, gt=0, description="Counts per cell after normalization (None = median)")
    counts_layer: str = "counts"
    n_top_genes: int = Field(2000, gt=0)
    hvg_flavor: str = "seurat"
    scale_max: float | None = Field(10.0, gt=0)
    regress_out: list[str] | None = None
    n_comps: int = Field(50, gt=0)
    random_state: int = 0


class ClusteringConfig(_Config):
    """Neighbor graph, UMAP and Leiden clustering."""

    use_rep: str = "X_pca"
    n_neighbors: int = Field(15, ge=2)
    n_pcs: int | None = Field(30, gt=0)
    resolution: float = Field(0.5, gt=0)
    key_added: str = "leiden"
    umap_min_dist: float = Field(0.5, ge=0)
    random_state: int = 0


# =============================================================================
# ATAC CONFIGURATION
# =============================================================================


class PeakQCConfig(_Config):
    """Cell and peak thresholds for peak count matrices."""

    min_counts: int | None = Field(1000, ge=0, description="Minimum fragments in peaks per cell")
    max_counts: int | None = Field(None, ge=0, description="Maximum fragments in peaks per cell")
    min_peaks: int | None = Field(None, ge=0, description="Minimum accessible peaks per cell")
    min_cells: int = Field(10, ge=0, description="Minimum cells in which a peak is accessible")

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> PeakQCConfig:
        _check_range(self.min_counts, self.max_counts, "counts")
        return self


class LSIConfig(_Config):
    """TF-IDF normalization and truncated SVD (LSI)."""

    n_components: int = Field(50, gt=0)
    drop_first: bool = True
    log_tf: bool = True
    random_state: int = 42


# =============================================================================
# CELL-CELL COMMUNICATION
# =============================================================================


class CommunicationConfig(_Config):
    """Ligand-receptor inference parameters (passed through to liana)."""

    method: str = "rank_aggregate"
    resource_name: str = "consensus"
    expr_prop: float = Field(0.1, ge=0, le=1, description="Minimum fraction of cells expressing each subunit")
    min_cells: int = Field(5, ge=1, description="Minimum cells per group")
    n_perms: int | None = Field(1000, ge=0)
    use_raw: bool = Field(True, description="Score log-normalized adata.raw (set by pp.normalize) instead of adata.X")
    key_added: str = "liana_res"
    seed: int = 1337

    @field_validator("method")
    @classmethod
    def _known_method(cls, value: str) -> str:
        if value not in LIANA_METHODS:
            raise ValueError(f"Unknown method '{value}'. Available: {sorted(LIANA_METHODS)}")
        return value


# liana.mt methods; score columns and their direction are read from the method itself
LIANA_METHODS: tuple[str, ...] = (
    "rank_aggregate",
    "cellphonedb",
    "connectome",
    "logfc",
    "natmi",
    "singlecellsignalr",
    "cellchat",
    "geometric_mean",
    "scseqcomm",
)


# =============================================================================
# WORKFLOW
# =============================================================================


class WorkflowConfig(_Config):
    """End-to-end RNA workflow parameters.

    Example:
        >>> config = WorkflowConfig(batch_key="batch", markers={"T cell": ["CD3E", "CD3D"]})
        >>> adata = su.tl.rna_workflow(adata, config)
    """

    qc: QCConfig = Field(default_factory=QCConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    detect_doublets: bool = False
    batch_key: str | None = None
    integration_method: IntegrationMethod = IntegrationMethod.HARMONY
    markers: dict[str, list[str]] | None = None
    marker_method: str = "wilcoxon"


class ATACWorkflowConfig(_Config):
    """End-to-end ATAC workflow parameters."""

    qc: PeakQCConfig = Field(default_factory=PeakQCConfig)
    lsi: LSIConfig = Field(default_factory=LSIConfig)
    clustering: ClusteringConfig = Field(
        default_factory=lambda: ClusteringConfig(use_rep="X_lsi", n_pcs=None)
    )
    differential_method: str = "t-test"


# =============================================================================
# ADATA MODIFICATIONS REFERENCE
# =============================================================================


class AnnDataKeys:
    """Reference for keys stored in AnnData by scupgrade functions.

    This is a documentation class, not a runtime type.

    Usage:
        >>> from scupgrade._core.types import AnnDataKeys
        >>> adata.obs[AnnDataKeys.QC_PASS]
    """

    # pp.qc_metrics()
    N_GENES = "n_genes_by_counts"  # adata.obs
    TOTAL_COUNTS = "total_counts"  # adata.obs
    PCT_MT = "pct_counts_mt"  # adata.obs
    PCT_RIBO = "pct_counts_ribo"  # adata.obs
    PCT_HB = "pct_counts_hb"  # adata.obs

    # pp.filter_cells()
    QC_PASS = "qc_pass"  # adata.obs (cells) or adata.var (peak_qc min_cells), bool
    QC = "qc"  # adata.uns, {'config': ..., 'removed': {criterion: n_cells}}

    # pp.detect_doublets()
    DOUBLET_SCORE = "doublet_score"  # adata.obs
    PREDICTED_DOUBLET = "predicted_doublet"  # adata.obs

    # pp.normalize()
    COUNTS = "counts"  # adata.layers, raw counts

    # pp.reduce_dimensions()
    X_PCA = "X_pca"  # adata.obsm

    # pp.peak_qc() / pp.tfidf() / pp.prepare_atacseq()
    N_PEAKS = "n_peaks_by_counts"  # adata.obs
    TFIDF = "tfidf"  # adata.layers
    X_LSI = "X_lsi"  # adata.obsm
    LSI = "lsi"  # adata.uns, {'variance_ratio', 'depth_correlation', 'params'}

    # tl.integrate()
    X_PCA_HARMONY = "X_pca_harmony"  # adata.obsm

    # tl.cluster()
    LEIDEN = "leiden"  # adata.obs
    X_UMAP = "X_umap"  # adata.obsm

    # tl.annotate_clusters()
    CELL_TYPE = "cell_type"  # adata.obs
    ANNOTATION = "annotation"  # adata.uns, cluster x cell type mean scores

    # tl.infer_communication()
    LIANA_RES = "liana_res"  # adata.uns, pd.DataFrame
    LIANA_SCORES = "liana_res_scores"  # adata.uns, score column -> lower is better

    # tl.rna_workflow() / tl.atac_workflow()
    WORKFLOW = "workflow"  # adata.uns, step log and summary

    @classmethod
    def describe(cls) -> str:
        """Describe all AnnData keys and their locations."""
        return """
AnnData Storage Locations:
==========================

adata.obs (cell annotations):
  - 'n_genes_by_counts', 'total_counts', 'pct_counts_mt/ribo/hb': QC metrics
  - 'qc_pass': bool, cell passed filter_cells
  - 'doublet_score', 'predicted_doublet': scrublet output
  - 'n_peaks_by_counts': accessible peaks per cell
  - 'leiden': cluster labels
  - 'score_<cell type>': marker scores
  - 'cell_type': cluster annotation

adata.var (feature annotations):
  - 'n_cells_by_counts': cells in which each peak is accessible
  - 'qc_pass': bool, peak passed peak_qc(min_cells=...)
  - 'chrom', 'start', 'end', 'width': parsed peak coordinates

adata.obsm (cell-level matrices):
  - 'X_pca', 'X_pca_harmony', 'X_lsi', 'X_umap'

adata.layers:
  - 'counts': raw counts kept by normalize()
  - 'tfidf': TF-IDF matrix from tfidf()

adata.uns (unstructured):
  - 'qc': thresholds and removal counts
  - 'lsi': LSI variance ratio, depth correlation and params
  - 'annotation': cluster x cell type mean scores
  - 'liana_res': ligand-receptor results
  - 'liana_res_scores': direction of each liana score column
  - 'workflow': workflow step log
"""


# =============================================================================
# RESULT TABLE VALIDATION
# =============================================================================


class ResultColumns:
    """Standard column names used in result DataFrames."""

    GROUP = "group"
    GENE = "gene"
    SCORE = "score"
    LOG_FOLD_CHANGE = "log_fold_change"
    PVALUE = "pvalue"
    FDR_PVALUE = "fdr_pvalue"
    SIGNIFICANT = "significant"

    SOURCE = "source"
    TARGET = "target"
    LIGAND = "ligand_complex"
    RECEPTOR = "receptor_complex"

    MOTIF = "motif"
    OBSERVED = "observed"
    EXPECTED = "expected"
    FOLD_ENRICHMENT = "fold_enrichment"


_REQUIRED_COLUMNS = {
    "markers": [
        ResultColumns.GROUP,
        ResultColumns.GENE,
        ResultColumns.SCORE,
        ResultColumns.LOG_FOLD_CHANGE,
        ResultColumns.PVALUE,
        ResultColumns.FDR_PVALUE,
    ],
    "communication": [ResultColumns.SOURCE, ResultColumns.TARGET, ResultColumns.LIGAND, ResultColumns.RECEPTOR],
    "motifs": [
        ResultColumns.MOTIF,
        ResultColumns.OBSERVED,
        ResultColumns.EXPECTED,
        ResultColumns.FOLD_ENRICHMENT,
        ResultColumns.PVALUE,
        ResultColumns.FDR_PVALUE,
    ],
}


def validate_results(df: Any, result_type: str = "markers") -> bool:
    """Validate that a results DataFrame has the expected columns.

    Parameters
    ----------
    df : pd.DataFrame
        Results DataFrame to validate.
    result_type : str
        One of 'markers', 'communication', 'motifs'.

    Returns
    -------
    bool
        True if validation passes.

    Raises
    ------
    ValueError
        If the table is empty or required columns are missing.
    """
    if result_type not in _REQUIRED_COLUMNS:
        raise ValueError(f"Unknown result_type: {result_type}. Available: {list(_REQUIRED_COLUMNS)}")

    missing = set(_REQUIRED_COLUMNS[result_type]) - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns for {result_type} results: {sorted(missing)}")

    if len(df) == 0:
        raise ValueError(f"Empty {result_type} results: nothing to plot")

    return True
