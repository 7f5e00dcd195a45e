"""Input checks and optional-dependency imports shared by pp/tl/pl."""

import numpy as np
from anndata import AnnData


def _check_liana():
    """Import liana with helpful error on failure."""
    try:
        import liana as li

        return li
    except ImportError:
        raise ImportError(
            "liana is required for cell-cell communication inference. "
            "Install it with: pip install scupgrade[communication]  "
            "or: pip install liana"
        )


def _check_harmony():
    """Import harmonypy with helpful error on failure."""
    try:
        import harmonypy

        return harmonypy
    except ImportError:
        raise ImportError(
            "harmonypy is required for Harmony integration. "
            "Install it with: pip install scupgrade[integration]  "
            "or: pip install harmonypy. Alternatively use method='combat'."
        )


def require_obs(adata: AnnData, key: str, hint: str = "") -> None:
    """Raise ValueError if ``adata.obs[key]`` is missing."""
    if key not in adata.obs.columns:
        raise ValueError(
            f"Column '{key}' not found in adata.obs. Available: {list(adata.obs.columns)}." + (f" {hint}" if hint else "")
        )


def require_obsm(adata: AnnData, key: str, hint: str = "") -> None:
    """Raise ValueError if ``adata.obsm[key]`` is missing."""
    if key not in adata.obsm:
        raise ValueError(
            f"Key '{key}' not found in adata.obsm. Available keys: {list(adata.obsm.keys())}."
            + (f" {hint}" if hint else "")
        )


def require_layer(adata: AnnData, layer: str | None) -> None:
    """Raise ValueError if ``layer`` is set but missing from ``adata.layers``."""
    if layer is not None and layer not in adata.layers:
        raise ValueError(f"Layer '{layer}' not found in adata.layers. Available: {list(adata.layers.keys())}")


def is_log_transformed(adata: AnnData) -> bool:
    """True if scanpy's log1p marker is present on the object."""
    return "log1p" in adata.uns


def looks_like_counts(X, n_check: int = 1000) -> bool:
    """True if the first ``n_check`` stored values are non-negative integers."""
    data = X.data if hasattr(X, "data") and not isinstance(X, np.ndarray) else np.asarray(X).ravel()
    sample = np.asarray(data[:n_check], dtype=np.float64)
    if sample.size == 0:
        return True
    return bool(np.all(sample >= 0) and np.all(np.mod(sample, 1) == 0))
