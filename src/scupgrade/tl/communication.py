"""
Cell-cell communication (ligand-receptor) inference.

Interactions are scored by liana from co-expression of curated ligand and
receptor genes between cell groups. This module runs liana with workshop
defaults and summarizes its result table.

Main Functions:
- infer_communication(): Run a liana method, results in ``adata.uns['liana_res']``
- communication_summary(): Source × target counts of passing interactions
- top_interactions(): Best interactions, optionally for given senders/receivers

Requires: ``pip install scupgrade[communication]`` (liana)
"""

import numpy as np
import pandas as pd
from anndata import AnnData

from .._core.types import AnnDataKeys, CommunicationConfig
from .._core.utils.validation import _check_liana, require_obs


def _score_directions(method) -> dict[str, bool]:
    """Score columns of a liana method mapped to whether lower values are better."""
    directions = {}
    for score, ascending in (
        (method.magnitude, method.magnitude_ascending),
        (method.specificity, method.specificity_ascending),
    ):
        if score is not None:
            directions[score] = bool(ascending)
    return directions


def infer_communication(
    adata: AnnData,
    groupby: str,
    config: CommunicationConfig | None = None,
    *,
    resource: pd.DataFrame | None = None,
    verbose: bool = True,
    **overrides,
) -> pd.DataFrame:
    """Infer ligand-receptor interactions between cell groups with liana.

    Parameters
    ----------
    adata : AnnData
        Data with cell group labels. Log-normalized expression is read from
        ``adata.raw`` by default (where ``su.pp.normalize`` keeps it), or
        from ``adata.X`` with ``use_raw=False``.
    groupby : str
        Column in ``adata.obs`` with sender/receiver groups (e.g. 'cell_type').
    config : CommunicationConfig, optional
        Method and thresholds. Defaults to ``CommunicationConfig()``
        (rank_aggregate over the consensus resource).
    resource : pd.DataFrame, optional
        Custom ligand-receptor pairs with 'ligand' and 'receptor' columns,
        used instead of ``config.resource_name``.
    **overrides
        Replace individual ``config`` fields, e.g. ``method="cellphonedb"``.

    Returns
    -------
    pd.DataFrame
        liana results (source, target, ligand_complex, receptor_complex and the
        method's score columns), also stored in ``adata.uns[config.key_added]``.
        Score directions are stored in ``adata.uns[config.key_added + '_scores']``.

    Raises
    ------
    ValueError
        If the scored matrix has negative values (scaled data), there are
        fewer than 2 groups, or ``use_raw=True`` without ``adata.raw``.
    """
    config = (config or CommunicationConfig()).updated(**overrides)
    li = _check_liana()
    require_obs(adata, groupby)

    if resource is not None:
        missing = {"ligand", "receptor"} - set(resource.columns)
        if missing:
            raise ValueError(f"Custom resource is missing columns: {sorted(missing)}")

    if not hasattr(adata.obs[groupby], "cat"):
        adata.obs[groupby] = adata.obs[groupby].astype("category")
    if adata.obs[groupby].nunique() < 2:
        raise ValueError(f"Need at least 2 groups in adata.obs['{groupby}'] to infer communication")
    if config.use_raw and adata.raw is None:
        raise ValueError("use_raw=True but adata.raw is not set. Pass use_raw=False to score adata.X")

    X = adata.raw.X if config.use_raw else adata.X
    # sparse .min() includes implicit zeros
    if X.min() < 0:
        where = "adata.raw.X" if config.use_raw else "adata.X"
        raise ValueError(
            f"{where} has negative values (scaled data?). liana needs log-normalized, non-negative expression"
        )

    method = getattr(li.mt, config.method)
    kwargs = {
        "groupby": groupby,
        "expr_prop": config.expr_prop,
        "min_cells": config.min_cells,
        "use_raw": config.use_raw,
        "key_added": config.key_added,
        "seed": config.seed,
        "verbose": False,
    }
    if config.n_perms is not None:
        kwargs["n_perms"] = config.n_perms
    if resource is not None:
        kwargs["resource"] = resource[["ligand", "receptor"]]
    else:
        kwargs["resource_name"] = config.resource_name

    if verbose:
        source = "custom resource" if resource is not None else f"'{config.resource_name}' resource"
        print(f"🧪 Inferring ligand-receptor interactions with liana.mt.{config.method} ({source})...")

    method(adata, **kwargs)
    results = adata.uns[config.key_added]
    directions = _score_directions(method)
    adata.uns[f"{config.key_added}_scores"] = directions

    if verbose:
        print(f"[OK] {len(results):,} interactions between {adata.obs[groupby].nunique()} groups")
        print(f"   Stored in adata.uns['{config.key_added}'] (score columns: {list(directions)})")
    return results


def _lower_is_better(score: str, directions: dict | None = None) -> bool:
    if directions and score in directions:
        return bool(directions[score])
    return score.endswith(("_rank", "pvals", "_pvalue"))


def _results(adata: AnnData, key: str, score: str | None = None) -> pd.DataFrame:
    if key not in adata.uns:
        raise ValueError(f"No communication results at adata.uns['{key}']. Run su.tl.infer_communication(adata) first.")
    results = adata.uns[key]
    if score is not None and score not in results.columns:
        raise ValueError(f"Score column '{score}' not in results. Available: {list(results.columns)}")
    return results


def communication_summary(
    adata: AnnData,
    *,
    key: str = AnnDataKeys.LIANA_RES,
    score: str = "magnitude_rank",
    cutoff: float = 0.05,
    lower_is_better: bool | None = None,
) -> pd.DataFrame:
    """Count interactions passing a score cutoff for every sender/receiver pair.

    Parameters
    ----------
    adata : AnnData
        Data with liana results in ``adata.uns[key]``.
    key : str, default: "liana_res"
        Results key.
    score : str, default: "magnitude_rank"
        Score column to threshold.
    cutoff : float, default: 0.05
        Threshold applied to ``score``.
    lower_is_better : bool, optional
        Direction of the score. Taken from the liana method that produced the
        results, else from the column name (ranks and p-values: lower is better).

    Returns
    -------
    pd.DataFrame
        Square source × target matrix of interaction counts covering every group.
    """
    results = _results(adata, key, score)
    if lower_is_better is None:
        lower_is_better = _lower_is_better(score, adata.uns.get(f"{key}_scores"))

    passing = results[results[score] <= cutoff] if lower_is_better else results[results[score] >= cutoff]
    groups = sorted(set(results["source"].astype(str)) | set(results["target"].astype(str)))

    counts = pd.crosstab(passing["source"].astype(str), passing["target"].astype(str))
    counts = counts.reindex(index=groups, columns=groups, fill_value=0).astype(np.int64)
    counts.index.name = "source"
    counts.columns.name = "target"
    return counts


def top_interactions(
    adata: AnnData,
    *,
    key: str = AnnDataKeys.LIANA_RES,
    score: str = "magnitude_rank",
    n: int = 20,
    source_labels: list[str] | None = None,
    target_labels: list[str] | None = None,
    lower_is_better: bool | None = None,
) -> pd.DataFrame:
    """Best ``n`` interactions, optionally restricted to given senders and receivers.

    Returns
    -------
    pd.DataFrame
        Rows of the liana table sorted by ``score``.
    """
    results = _results(adata, key, score)
    if lower_is_better is None:
        lower_is_better = _lower_is_better(score, adata.uns.get(f"{key}_scores"))

    if source_labels is not None:
        results = results[results["source"].astype(str).isin([str(s) for s in source_labels])]
    if target_labels is not None:
        results = results[results["target"].astype(str).isin([str(t) for t in target_labels])]

    return results.sort_values(score, ascending=lower_is_better).head(n).reset_index(drop=True)
