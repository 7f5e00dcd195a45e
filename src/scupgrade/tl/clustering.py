"""
Graph clustering and marker genes.

Main Functions:
- cluster(): Neighbor graph, UMAP and Leiden clustering
- find_markers(): Rank genes per group as a tidy DataFrame
- top_markers(): Best significant markers per group
"""

import warnings

import pandas as pd
import scanpy as sc
from anndata import AnnData

from .._core.types import ClusteringConfig
from .._core.utils.validation import require_layer, require_obs, require_obsm


def cluster(adata: AnnData, config: ClusteringConfig | None = None, *, verbose: bool = True, **overrides) -> None:
    """Build the neighbor graph, embed with UMAP and cluster with Leiden.

    Parameters
    ----------
    adata : AnnData
        Annotated data with a reduced representation in ``adata.obsm[config.use_rep]``.
    config : ClusteringConfig, optional
        Parameters. Defaults to ``ClusteringConfig()``.
    verbose : bool, default: True
        Print cluster sizes.
    **overrides
        Replace individual ``config`` fields, e.g. ``resolution=1.0``.

    Returns
    -------
    None
        Modifies ``adata`` in place:

        - ``adata.obsp['distances']``, ``adata.obsp['connectivities']``
        - ``adata.obsm['X_umap']``
        - ``adata.obs[config.key_added]``: categorical cluster labels
    """
    config = (config or ClusteringConfig()).updated(**overrides)
    require_obsm(
        adata,
        config.use_rep,
        hint="Run su.pp.reduce_dimensions(adata) (RNA) or su.pp.prepare_atacseq(adata) (ATAC) first.",
    )

    n_dims = adata.obsm[config.use_rep].shape[1]
    n_pcs = config.n_pcs
    if n_pcs is not None and n_pcs > n_dims:
        warnings.warn(f"n_pcs={n_pcs} exceeds the {n_dims} dimensions of '{config.use_rep}'; using all")
        n_pcs = n_dims
    n_neighbors = min(config.n_neighbors, adata.n_obs - 1)

    sc.pp.neighbors(
        adata,
        n_neighbors=n_neighbors,
        n_pcs=n_pcs,
        use_rep=config.use_rep,
        random_state=config.random_state,
    )
    sc.tl.umap(adata, min_dist=config.umap_min_dist, random_state=config.random_state)
    sc.tl.leiden(
        adata,
        resolution=config.resolution,
        key_added=config.key_added,
        random_state=config.random_state,
        flavor="igraph",
        n_iterations=2,
        directed=False,
    )

    if verbose:
        sizes = adata.obs[config.key_added].value_counts()
        print(f"[OK] Leiden (resolution={config.resolution}): {len(sizes)} clusters on '{config.use_rep}'")
        print(f"   Cluster sizes: min={sizes.min()}, median={int(sizes.median())}, max={sizes.max()}")


def find_markers(
    adata: AnnData,
    groupby: str,
    *,
    groups: list[str] | None = None,
    method: str = "wilcoxon",
    n_genes: int | None = None,
    layer: str | None = None,
    use_raw: bool | None = None,
    alpha: float = 0.05,
    key_added: str = "rank_genes_groups",
) -> pd.DataFrame:
    """Rank marker genes for each group with ``scanpy.tl.rank_genes_groups``.

    Parameters
    ----------
    adata : AnnData
        Log-normalized data (``adata.raw`` is used when present and no layer is given).
    groupby : str
        Column in ``adata.obs`` with group labels.
    groups : list of str, optional
        Groups to test, each against all other cells. Defaults to every group.
    method : str, default: "wilcoxon"
        'wilcoxon', 't-test', 't-test_overestim_var' or 'logreg'. logreg gives no
        p-values, so 'pvalue' and 'fdr_pvalue' are NaN and nothing is significant.
    n_genes : int, optional
        Genes reported per group (default: all).
    layer : str, optional
        Expression layer to test.
    use_raw : bool, optional
        Use ``adata.raw``; defaults to True when raw exists and no layer is given.
    alpha : float, default: 0.05
        Significance threshold on the adjusted p-value.
    key_added : str, default: "rank_genes_groups"
        Key in ``adata.uns`` for the scanpy result.

    Returns
    -------
    pd.DataFrame
        Columns: group, gene, score, log_fold_change, pvalue, fdr_pvalue, significant.
        Sorted by group then score.
    """
    require_obs(adata, groupby)
    require_layer(adata, layer)

    if not hasattr(adata.obs[groupby], "cat"):
        adata.obs[groupby] = adata.obs[groupby].astype("category")
    adata.obs[groupby] = adata.obs[groupby].cat.remove_unused_categories()
    sizes = adata.obs[groupby].value_counts()
    if len(sizes) < 2:
        raise ValueError(f"Need at least 2 groups in adata.obs['{groupby}'], found {len(sizes)}")

    tested = list(sizes.index)
    if groups is not None:
        wanted = {str(g) for g in groups}
        tested = [g for g in adata.obs[groupby].cat.categories if str(g) in wanted]
        unknown = sorted(wanted - {str(g) for g in tested})
        if unknown:
            raise ValueError(f"Groups not found in adata.obs['{groupby}']: {unknown}")
    singletons = [g for g in tested if sizes[g] < 2]
    if singletons:
        raise ValueError(f"Groups with fewer than 2 cells cannot be tested: {singletons}")

    if use_raw is None:
        use_raw = adata.raw is not None and layer is None

    sc.tl.rank_genes_groups(
        adata,
        groupby,
        groups="all" if groups is None else [str(g) for g in tested],
        method=method,
        n_genes=n_genes,
        layer=layer,
        use_raw=use_raw,
        key_added=key_added,
    )
    df = sc.get.rank_genes_groups_df(adata, group=None, key=key_added)
    if "group" not in df.columns:
        # scanpy omits the column when there is a single group
        df.insert(0, "group", tested[0])

    df = df.rename(
        columns={
            "names": "gene",
            "scores": "score",
            "logfoldchanges": "log_fold_change",
            "pvals": "pvalue",
            "pvals_adj": "fdr_pvalue",
        }
    )
    # logreg reports scores only
    for column in ("log_fold_change", "pvalue", "fdr_pvalue"):
        if column not in df.columns:
            df[column] = float("nan")
    df["significant"] = df["fdr_pvalue"] < alpha
    df["group"] = df["group"].astype(str)

    columns = ["group", "gene", "score", "log_fold_change", "pvalue", "fdr_pvalue", "significant"]
    return df[columns].sort_values(["group", "score"], ascending=[True, False]).reset_index(drop=True)


def top_markers(markers: pd.DataFrame, n: int = 5, *, significant_only: bool = True) -> dict[str, list[str]]:
    """Best ``n`` markers per group from a :func:`find_markers` table.

    Only up-regulated genes (positive score) are returned.
    """
    df = markers[markers["score"] > 0]
    if significant_only:
        df = df[df["significant"]]
    df = df.sort_values(["group", "score"], ascending=[True, False])
    return {group: sub["gene"].head(n).tolist() for group, sub in df.groupby("group", sort=True)}
