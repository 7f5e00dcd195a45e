"""
End-to-end workshop pipelines.

The sessions run the same linear sequence on every dataset:

RNA:  QC metrics → cell/gene filtering → (doublets) → normalization → HVG →
      (ComBat) → PCA → (Harmony) → neighbors/UMAP/Leiden → markers → (annotation)
ATAC: peak QC → filtering → TF-IDF + LSI → neighbors/UMAP/Leiden → differential peaks

Each step is printed as it runs and recorded in ``adata.uns['workflow']``.
"""

import time

import pandas as pd
from anndata import AnnData

from .. import pp
from .._core.types import AnnDataKeys, ATACWorkflowConfig, IntegrationMethod, WorkflowConfig
from .accessibility import differential_peaks
from .annotation import annotate_clusters
from .clustering import cluster, find_markers
from .integration import integrate


class _StepLog:
    """Collect step names, timings and cell/feature counts."""

    def __init__(self, verbose: bool):
        self.verbose = verbose
        self.steps = []

    def run(self, name: str, adata: AnnData, func, *args, **kwargs):
        if self.verbose:
            print(f"\n=== {name} ===")
        start = time.perf_counter()
        out = func(*args, **kwargs)
        target = out if isinstance(out, AnnData) else adata
        self.steps.append(
            {
                "step": name,
                "seconds": round(time.perf_counter() - start, 3),
                "n_obs": int(target.n_obs),
                "n_vars": int(target.n_vars),
            }
        )
        return out


def rna_workflow(
    adata: AnnData,
    config: WorkflowConfig | None = None,
    *,
    copy: bool = True,
    verbose: bool = True,
) -> AnnData:
    """Run the standard scRNA-seq pipeline.

    Parameters
    ----------
    adata : AnnData
        Raw count matrix.
    config : WorkflowConfig, optional
        All parameters; defaults to ``WorkflowConfig()``. Set ``batch_key`` to
        integrate samples and ``markers`` to annotate clusters.
    copy : bool, default: True
        Work on a copy of ``adata``. Filtering always produces new objects, so the
        returned AnnData is the one to use.
    verbose : bool, default: True
        Print progress.

    Returns
    -------
    AnnData
        Filtered, normalized, clustered data with marker genes in
        ``adata.uns['markers']`` and the step log in ``adata.uns['workflow']``.

    Examples
    --------
    >>> config = su.WorkflowConfig(
    ...     qc=su.QCConfig.from_preset("default"),
    ...     markers={"T cell": ["CD3E", "CD3D"], "B cell": ["MS4A1", "CD79A"]},
    ... )
    >>> adata = su.tl.rna_workflow(adata, config)
    """
    config = config or WorkflowConfig()
    if copy:
        adata = adata.copy()
    log = _StepLog(verbose)
    norm = config.normalization

    log.run(
        "QC metrics",
        adata,
        pp.qc_metrics,
        adata,
        mt_prefix=config.qc.mt_prefix,
        ribo_prefixes=config.qc.ribo_prefixes,
        hb_pattern=config.qc.hb_pattern,
    )
    adata = log.run("Filter cells", adata, pp.filter_cells, adata, config.qc, verbose=verbose)
    adata = log.run("Filter genes", adata, pp.filter_genes, adata, min_cells=config.qc.min_cells, verbose=verbose)

    if config.detect_doublets:
        adata = log.run(
            "Doublets",
            adata,
            pp.detect_doublets,
            adata,
            batch_key=config.batch_key,
            remove=True,
            verbose=verbose,
        )

    log.run(
        "Normalize",
        adata,
        pp.normalize,
        adata,
        target_sum=norm.target_sum,
        counts_layer=norm.counts_layer,
        verbose=verbose,
    )
    log.run(
        "Highly variable genes",
        adata,
        pp.highly_variable,
        adata,
        n_top_genes=norm.n_top_genes,
        flavor=norm.hvg_flavor,
        batch_key=config.batch_key,
        verbose=verbose,
    )

    use_rep = config.clustering.use_rep
    if config.batch_key is not None and config.integration_method == IntegrationMethod.COMBAT:
        use_rep = log.run(
            "Integrate (ComBat)", adata, integrate, adata, config.batch_key, method="combat", verbose=verbose
        )

    log.run(
        "PCA",
        adata,
        pp.reduce_dimensions,
        adata,
        n_comps=norm.n_comps,
        scale_max=norm.scale_max,
        regress_out=norm.regress_out,
        random_state=norm.random_state,
        verbose=verbose,
    )

    if config.batch_key is not None and config.integration_method == IntegrationMethod.HARMONY:
        use_rep = log.run(
            "Integrate (Harmony)",
            adata,
            integrate,
            adata,
            config.batch_key,
            method="harmony",
            random_state=norm.random_state,
            verbose=verbose,
        )

    log.run("Cluster", adata, cluster, adata, config.clustering, use_rep=use_rep, verbose=verbose)

    cluster_key = config.clustering.key_added
    testable = _testable_groups(adata, cluster_key, verbose)
    if len(testable) >= 2:
        markers = log.run(
            "Markers", adata, find_markers, adata, cluster_key, groups=testable, method=config.marker_method
        )
        adata.uns["markers"] = markers
    elif verbose:
        print("[WARNING]  Fewer than 2 clusters with 2+ cells; skipping marker genes")

    if config.markers:
        log.run(
            "Annotate",
            adata,
            annotate_clusters,
            adata,
            config.markers,
            cluster_key=cluster_key,
            verbose=verbose,
        )

    adata.uns[AnnDataKeys.WORKFLOW] = {
        "type": "rna",
        "steps": pd.DataFrame(log.steps),
        "config": config.model_dump(mode="json", exclude_none=True),
    }
    if verbose:
        _summary(adata, cluster_key)
    return adata


def atac_workflow(
    adata: AnnData,
    config: ATACWorkflowConfig | None = None,
    *,
    copy: bool = True,
    verbose: bool = True,
) -> AnnData:
    """Run the standard scATAC-seq pipeline on a peak count matrix.

    Parameters
    ----------
    adata : AnnData
        Cells × peaks count matrix.
    config : ATACWorkflowConfig, optional
        All parameters; defaults to ``ATACWorkflowConfig()``.
    copy : bool, default: True
        Work on a copy of ``adata``.
    verbose : bool, default: True
        Print progress.

    Returns
    -------
    AnnData
        Filtered data with ``obsm['X_lsi']``, clusters, differential peaks in
        ``adata.uns['differential_peaks']`` and the step log in ``adata.uns['workflow']``.
    """
    config = config or ATACWorkflowConfig()
    if copy:
        adata = adata.copy()
    log = _StepLog(verbose)
    lsi = config.lsi

    adata = log.run("Peak QC", adata, pp.filter_peaks, adata, config.qc, verbose=verbose)
    log.run(
        "TF-IDF + LSI",
        adata,
        pp.prepare_atacseq,
        adata,
        n_components=lsi.n_components,
        drop_first=lsi.drop_first,
        log_tf=lsi.log_tf,
        random_state=lsi.random_state,
        verbose=verbose,
    )
    log.run("Cluster", adata, cluster, adata, config.clustering, verbose=verbose)

    cluster_key = config.clustering.key_added
    testable = _testable_groups(adata, cluster_key, verbose)
    if len(testable) >= 2:
        peaks = log.run(
            "Differential peaks",
            adata,
            differential_peaks,
            adata,
            cluster_key,
            groups=testable,
            method=config.differential_method,
        )
        adata.uns["differential_peaks"] = peaks
    elif verbose:
        print("[WARNING]  Fewer than 2 clusters with 2+ cells; skipping differential peaks")

    adata.uns[AnnDataKeys.WORKFLOW] = {
        "type": "atac",
        "steps": pd.DataFrame(log.steps),
        "config": config.model_dump(mode="json", exclude_none=True),
    }
    if verbose:
        _summary(adata, cluster_key)
    return adata


def _testable_groups(adata: AnnData, cluster_key: str, verbose: bool = False) -> list[str]:
    """Clusters with at least 2 cells; single-cell clusters cannot be tested."""
    sizes = adata.obs[cluster_key].value_counts()
    sizes = sizes[sizes > 0]
    keep = sorted(str(g) for g in sizes[sizes >= 2].index)
    dropped = sorted(str(g) for g in sizes[sizes < 2].index)
    if verbose and dropped and len(keep) >= 2:
        print(f"[WARNING]  Not testing clusters with a single cell: {dropped}")
    return keep


def _summary(adata: AnnData, cluster_key: str) -> None:
    steps = adata.uns[AnnDataKeys.WORKFLOW]["steps"]
    total = float(steps["seconds"].sum())
    print("\n" + "=" * 70)
    print(f"WORKFLOW COMPLETE: {adata.n_obs:,} cells x {adata.n_vars:,} features")
    print("=" * 70)
    print(f"Clusters: {adata.obs[cluster_key].nunique()} (adata.obs['{cluster_key}'])")
    if AnnDataKeys.CELL_TYPE in adata.obs.columns:
        print(f"Cell types: {sorted(adata.obs[AnnDataKeys.CELL_TYPE].unique())}")
    print(f"Steps: {len(steps)} in {total:.1f}s")
    print("=" * 70)
