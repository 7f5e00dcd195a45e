"""
Normalization, feature selection and PCA for scRNA-seq.

Main Functions:
- normalize(): Keep counts in a layer, library-size normalize and log1p
- highly_variable(): Select highly variable genes
- reduce_dimensions(): Optional regression, scaling and PCA
"""

import warnings

import numpy as np
import scanpy as sc
from anndata import AnnData

from .._core.types import AnnDataKeys
from .._core.utils.validation import is_log_transformed, looks_like_counts, require_obs


def normalize(
    adata: AnnData,
    *,
    target_sum: float | None = 1e4,
    counts_layer: str = "counts",
    verbose: bool = True,
) -> None:
    """Library-size normalize and log-transform counts.

    Parameters
    ----------
    adata : AnnData
        Raw count matrix.
    target_sum : float or None, default: 1e4
        Total counts per cell after normalization. None uses the median.
    counts_layer : str, default: "counts"
        Layer where the raw counts are kept.
    verbose : bool, default: True
        Print progress.

    Returns
    -------
    None
        Modifies ``adata`` in place:

        - ``adata.layers[counts_layer]``: raw counts
        - ``adata.X``: log1p-normalized expression
        - ``adata.raw``: frozen copy of the log-normalized matrix (all genes)
    """
    if is_log_transformed(adata):
        raise ValueError(
            "adata is already log-transformed (adata.uns['log1p'] exists). "
            f"Restore counts from adata.layers['{counts_layer}'] to normalize again."
        )
    if not looks_like_counts(adata.X):
        warnings.warn("adata.X does not look like raw counts (negative or non-integer values)")

    adata.layers[counts_layer] = adata.X.copy()
    sc.pp.normalize_total(adata, target_sum=target_sum)
    sc.pp.log1p(adata)
    adata.raw = adata

    if verbose:
        label = "median" if target_sum is None else f"{target_sum:g}"
        print(f"[OK] Normalized to {label} counts per cell and log1p-transformed")
        print(f"   Raw counts stored in adata.layers['{counts_layer}']")


def highly_variable(
    adata: AnnData,
    *,
    n_top_genes: int = 2000,
    flavor: str = "seurat",
    batch_key: str | None = None,
    verbose: bool = True,
) -> None:
    """Flag highly variable genes in ``adata.var['highly_variable']``.

    ``n_top_genes`` is capped at the number of genes. The 'seurat' and
    'cell_ranger' flavors expect log-normalized data; 'seurat_v3' expects counts
    and reads them from ``adata.layers['counts']`` when present.
    """
    if batch_key is not None:
        require_obs(adata, batch_key)

    n_top = min(n_top_genes, adata.n_vars)
    kwargs = {}
    if flavor == "seurat_v3" and AnnDataKeys.COUNTS in adata.layers:
        kwargs["layer"] = AnnDataKeys.COUNTS
    elif flavor != "seurat_v3" and not is_log_transformed(adata):
        warnings.warn(f"flavor='{flavor}' expects log-normalized data. Run su.pp.normalize(adata) first.")

    sc.pp.highly_variable_genes(adata, n_top_genes=n_top, flavor=flavor, batch_key=batch_key, **kwargs)

    if verbose:
        print(f"[STATS] Highly variable genes: {int(adata.var['highly_variable'].sum()):,} / {adata.n_vars:,}")


def reduce_dimensions(
    adata: AnnData,
    *,
    n_comps: int = 50,
    scale_max: float | None = 10.0,
    regress_out: list[str] | None = None,
    use_highly_variable: bool = True,
    random_state: int = 0,
    verbose: bool = True,
) -> None:
    """Scale expression and compute PCA.

    Parameters
    ----------
    adata : AnnData
        Log-normalized data.
    n_comps : int, default: 50
        Number of principal components, capped at ``min(n_obs, n_vars) - 1``.
    scale_max : float or None, default: 10.0
        Clip scaled values to this maximum. None disables clipping.
    regress_out : list[str], optional
        ``adata.obs`` columns to regress out before scaling (e.g. 'total_counts', 'pct_counts_mt').
    use_highly_variable : bool, default: True
        Restrict PCA to highly variable genes when flagged.
    random_state : int, default: 0
        Seed for the PCA solver.

    Returns
    -------
    None
        Modifies ``adata`` in place:

        - ``adata.X``: scaled expression (log-normalized values remain in ``adata.raw``)
        - ``adata.obsm['X_pca']``, ``adata.varm['PCs']``
        - ``adata.uns['pca']['variance_ratio']``
    """
    for key in regress_out or []:
        require_obs(adata, key)

    if regress_out:
        sc.pp.regress_out(adata, regress_out)
    sc.pp.scale(adata, max_value=scale_max)

    use_hvg = use_highly_variable and "highly_variable" in adata.var.columns
    n_features = int(adata.var["highly_variable"].sum()) if use_hvg else adata.n_vars
    max_comps = min(adata.n_obs, n_features) - 1
    if max_comps < 1:
        raise ValueError(f"Too few cells ({adata.n_obs}) or features ({n_features}) for PCA")
    if n_comps > max_comps:
        warnings.warn(f"Capped PCA components at {max_comps} (requested {n_comps})")
        n_comps = max_comps

    mask_kwargs = {"mask_var": "highly_variable"} if use_hvg else {"mask_var": None}
    sc.pp.pca(adata, n_comps=n_comps, random_state=random_state, **mask_kwargs)

    if verbose:
        explained = float(np.sum(adata.uns["pca"]["variance_ratio"])) * 100
        print(f"[OK] PCA: {n_comps} components on {n_features:,} genes ({explained:.1f}% variance)")
