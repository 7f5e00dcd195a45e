"""
Marker-based cell-type annotation.

Each cell type is scored per cell with ``scanpy.tl.score_genes``; clusters
are then labeled with the cell type whose score is highest on average.

Main Functions:
- score_cell_types(): One score column per cell type
- annotate_clusters(): Cluster → cell type labels
"""

import warnings

import numpy as np
import pandas as pd
import scanpy as sc
from anndata import AnnData

from .._core.types import AnnDataKeys
from .._core.utils.validation import require_obs

UNKNOWN = "Unknown"


def _score_key(cell_type: str) -> str:
    return f"score_{cell_type}"


def score_cell_types(
    adata: AnnData,
    markers: dict[str, list[str]],
    *,
    use_raw: bool | None = None,
    min_genes: int = 1,
    random_state: int = 0,
    verbose: bool = True,
) -> list[str]:
    """Score every cell for each cell type's marker genes.

    Parameters
    ----------
    adata : AnnData
        Log-normalized data (``adata.raw`` is used when present).
    markers : dict[str, list[str]]
        Cell type → marker genes.
    use_raw : bool, optional
        Score on ``adata.raw``; defaults to True when raw exists.
    min_genes : int, default: 1
        Cell types with fewer markers present in the data are skipped.
    random_state : int, default: 0
        Seed for control gene sampling.

    Returns
    -------
    list[str]
        Cell types that were scored. Scores are stored in ``adata.obs['score_<cell type>']``.
    """
    if not markers:
        raise ValueError("markers is empty: give at least one cell type with marker genes")

    if use_raw is None:
        use_raw = adata.raw is not None
    var_names = adata.raw.var_names if use_raw else adata.var_names
    available = set(var_names)

    scored = []
    for cell_type, genes in markers.items():
        present = [g for g in dict.fromkeys(genes) if g in available]
        missing = [g for g in genes if g not in available]
        if missing:
            warnings.warn(f"{cell_type}: {len(missing)} marker genes not found and ignored: {missing[:10]}")
        if len(present) < max(min_genes, 1):
            warnings.warn(f"{cell_type}: only {len(present)} marker genes present (min_genes={min_genes}); skipped")
            continue

        ctrl_size = max(1, min(50, len(var_names) - len(present)))
        sc.tl.score_genes(
            adata,
            present,
            score_name=_score_key(cell_type),
            ctrl_size=ctrl_size,
            use_raw=use_raw,
            random_state=random_state,
        )
        scored.append(cell_type)

    if not scored:
        raise ValueError("No cell type had enough marker genes present in the data")

    if verbose:
        print(f"[OK] Scored {len(scored)} / {len(markers)} cell types")
    return scored


def annotate_clusters(
    adata: AnnData,
    markers: dict[str, list[str]],
    *,
    cluster_key: str = "leiden",
    key_added: str = "cell_type",
    min_score: float = 0.0,
    use_raw: bool | None = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """Label each cluster with its best-scoring cell type.

    Parameters
    ----------
    adata : AnnData
        Clustered, log-normalized data.
    markers : dict[str, list[str]]
        Cell type → marker genes.
    cluster_key : str, default: "leiden"
        Column in ``adata.obs`` with cluster labels.
    key_added : str, default: "cell_type"
        Column in ``adata.obs`` for the annotation.
    min_score : float, default: 0.0
        Clusters whose best mean score is not above this value are labeled "Unknown".

    Returns
    -------
    pd.DataFrame
        Cluster × cell type mean scores plus 'label' and 'best_score' columns.
        The scores and labels are also stored in ``adata.uns['annotation']``.
    """
    require_obs(adata, cluster_key, hint="Run su.tl.cluster(adata) first.")
    scored = score_cell_types(adata, markers, use_raw=use_raw, verbose=verbose)

    score_cols = [_score_key(t) for t in scored]
    clusters = adata.obs[cluster_key].astype(str)
    table = adata.obs[score_cols].groupby(clusters.to_numpy()).mean()
    table.columns = scored
    table.index.name = cluster_key

    best_type = table.idxmax(axis=1)
    best_score = table.max(axis=1)
    labels = best_type.where(best_score > min_score, UNKNOWN)

    adata.obs[key_added] = pd.Categorical(clusters.map(labels).to_numpy())
    adata.uns[AnnDataKeys.ANNOTATION] = {
        "scores": table,
        "labels": labels.to_dict(),
        "min_score": min_score,
    }

    if verbose:
        print(f"[STATS] Annotated {len(labels)} clusters into adata.obs['{key_added}']:")
        for cluster, label in labels.items():
            print(f"   {cluster} -> {label} (score={best_score[cluster]:.3f})")

    return table.assign(label=labels, best_score=np.asarray(best_score))
