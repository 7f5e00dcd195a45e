"""Batch integration across samples (Harmony on PCA, or ComBat on expression)."""

import scanpy as sc
from anndata import AnnData

from .._core.types import AnnDataKeys, IntegrationMethod
from .._core.utils.validation import _check_harmony, require_obs, require_obsm


def integrate(
    adata: AnnData,
    batch_key: str,
    *,
    method: str | IntegrationMethod = IntegrationMethod.HARMONY,
    basis: str = "X_pca",
    random_state: int = 0,
    verbose: bool = True,
) -> str:
    """Correct batch effects between samples.

    Parameters
    ----------
    adata : AnnData
        For 'harmony': data with ``adata.obsm[basis]``. For 'combat':
        log-normalized expression in ``adata.X`` (run before scaling).
    batch_key : str
        Column in ``adata.obs`` with batch labels.
    method : str, default: "harmony"
        'harmony' adjusts the embedding (``scanpy.external.pp.harmony_integrate``);
        'combat' adjusts expression (``scanpy.pp.combat``).
    basis : str, default: "X_pca"
        Embedding corrected by Harmony.
    random_state : int, default: 0
        Seed passed to Harmony.

    Returns
    -------
    str
        The ``adata.obsm`` key to build the neighbor graph on:
        ``f"{basis}_harmony"`` for Harmony, ``"X_pca"`` for ComBat (PCA is
        recomputed if it already existed).

    Examples
    --------
    >>> rep = su.tl.integrate(adata, "batch")
    >>> su.tl.cluster(adata, use_rep=rep)
    """
    method = IntegrationMethod(method)
    require_obs(adata, batch_key)
    n_batches = adata.obs[batch_key].nunique()
    if n_batches < 2:
        raise ValueError(f"Integration needs at least 2 batches in adata.obs['{batch_key}'], found {n_batches}")

    if method == IntegrationMethod.HARMONY:
        _check_harmony()
        require_obsm(adata, basis, hint="Run su.pp.reduce_dimensions(adata) first.")
        adjusted = f"{basis}_harmony"
        sc.external.pp.harmony_integrate(
            adata, key=batch_key, basis=basis, adjusted_basis=adjusted, random_state=random_state, verbose=False
        )
        if verbose:
            print(f"[OK] Harmony integrated {n_batches} batches: adata.obsm['{adjusted}']")
        return adjusted

    if not hasattr(adata.obs[batch_key], "cat"):
        adata.obs[batch_key] = adata.obs[batch_key].astype("category")
    sc.pp.combat(adata, key=batch_key)
    if AnnDataKeys.X_PCA in adata.obsm:
        n_comps = adata.obsm[AnnDataKeys.X_PCA].shape[1]
        sc.pp.pca(adata, n_comps=n_comps, random_state=random_state)
    if verbose:
        print(f"[OK] ComBat corrected expression across {n_batches} batches")
    return AnnDataKeys.X_PCA
